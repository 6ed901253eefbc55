"""Shared state handed to every navigation iteration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from notewalk.config import ExternalCommands, SurfParsing
from notewalk.models import DynResources, PreviewType, RenderContext
from notewalk.selector import FzfSelector

if TYPE_CHECKING:
    from collections.abc import Callable

    from notewalk.config import NWConfig
    from notewalk.selector import Selector
    from notewalk.storage import Storage


@dataclass
class NavContext:
    """Storage handle, selector, and the preview settings of the current session.

    `preview_type` is the only field that changes during a session (ctrl-t).
    `ask(prompt, default)` reads a line from the user, used for renames.
    """

    storage: Storage
    selector: Selector
    external_commands: ExternalCommands = field(default_factory=ExternalCommands)
    surf_parsing: SurfParsing = field(default_factory=SurfParsing)
    preview_type: PreviewType = PreviewType.DETAILS
    render: RenderContext = field(default_factory=RenderContext)
    ask: Callable[[str, str], str] | None = None

    @classmethod
    def from_config(
        cls,
        cfg: NWConfig,
        storage: Storage,
        selector: Selector | None = None,
        ask: Callable[[str, str], str] | None = None,
    ) -> NavContext:
        return cls(
            storage=storage,
            selector=selector or FzfSelector(cfg.selector.command),
            external_commands=cfg.external_commands,
            surf_parsing=cfg.surf_parsing,
            preview_type=cfg.preview.type,
            render=RenderContext(code_theme=cfg.preview.code_theme, color_scheme=cfg.preview.color_scheme),
            ask=ask,
        )

    def resources(self) -> DynResources:
        return DynResources(
            external_commands=self.external_commands,
            surf_parsing=self.surf_parsing,
            preview_type=self.preview_type,
        )
