"""NWConfig: project-local config for a notewalk note collection.

Default layout (all relative to the project root):

    notewalk.toml         # project config
    notes/                # <timestamp>_<slug>.md note files (source of truth)
    .notewalk/
        index.db          # SQLite derived index: notes + link edges
        .gitignore        # auto-written: ignores everything in .notewalk/

notewalk.toml example:

    [notewalk]
    name = "my-notes"
    # notes_dir = "notes"        # default
    # index_dir = ".notewalk"    # default

    [external_commands]
    preview = ""                 # e.g. "bat --color=always {}"; empty = built-in render
    open = "xdg-open {}"

    [surf_parsing]
    markdown = true              # [text](target)
    wiki = true                  # [[target]]
    url = true                   # bare http(s) URLs

    [preview]
    type = "details"             # details | body
    code_theme = "monokai"
    color_scheme = "dark"        # dark | light

    [selector]
    command = "fzf"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from notewalk.errors import ConfigError
from notewalk.models import ColorScheme, PreviewType

_CONFIG_FILENAME = "notewalk.toml"
_ROOT_ENV = "NOTEWALK_ROOT"
_DEFAULT_NOTES_DIR = "notes"
_DEFAULT_INDEX_DIR = ".notewalk"
_GITIGNORE_CONTENT = "*\n"


@dataclass(frozen=True)
class ExternalCommands:
    """Command templates; `{}` is replaced with the note path or link target."""
    preview: str = ""
    open: str = "xdg-open {}"


@dataclass(frozen=True)
class SurfParsing:
    """Which link syntaxes surf mode extracts from a note body."""
    markdown: bool = True
    wiki: bool = True
    url: bool = True


@dataclass
class PreviewConfig:
    type: PreviewType = PreviewType.DETAILS
    code_theme: str = "monokai"
    color_scheme: ColorScheme = ColorScheme.DARK


@dataclass
class SelectorConfig:
    command: str = "fzf"


@dataclass
class NWConfig:
    """Resolved configuration for a notewalk project."""

    root: Path                      # directory that contains notewalk.toml
    name: str = ""
    notes_dir: Path = field(default_factory=Path)
    index_dir: Path = field(default_factory=Path)
    external_commands: ExternalCommands = field(default_factory=ExternalCommands)
    surf_parsing: SurfParsing = field(default_factory=SurfParsing)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)

    @property
    def db_path(self) -> Path:
        return self.index_dir / "index.db"

    def ensure_dirs(self) -> None:
        """Create notes_dir and index_dir if they don't exist."""
        self.notes_dir.mkdir(parents=True, exist_ok=True)
        self.index_dir.mkdir(parents=True, exist_ok=True)
        self._write_gitignore()

    def _write_gitignore(self) -> None:
        gitignore = self.index_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(_GITIGNORE_CONTENT)


def _enum_value(enum_cls: type, raw: Any, key: str) -> Any:
    try:
        return enum_cls(str(raw).lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        msg = f"invalid {key} = {raw!r} (expected one of: {allowed})"
        raise ConfigError(msg) from exc


def load_config(root: Path | str | None = None) -> NWConfig:
    """Load notewalk.toml from root (or $NOTEWALK_ROOT, or search upward from cwd)."""
    if root is None and os.environ.get(_ROOT_ENV):
        root = os.environ[_ROOT_ENV]
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            with config_path.open("rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            msg = f"{config_path}: {exc}"
            raise ConfigError(msg) from exc

    nw_section = raw.get("notewalk", {})
    cmd_section = raw.get("external_commands", {})
    surf_section = raw.get("surf_parsing", {})
    prev_section = raw.get("preview", {})
    sel_section = raw.get("selector", {})

    return NWConfig(
        root=root_path,
        name=nw_section.get("name", root_path.name),
        notes_dir=root_path / nw_section.get("notes_dir", _DEFAULT_NOTES_DIR),
        index_dir=root_path / nw_section.get("index_dir", _DEFAULT_INDEX_DIR),
        external_commands=ExternalCommands(
            preview=str(cmd_section.get("preview", "")),
            open=str(cmd_section.get("open", "xdg-open {}")),
        ),
        surf_parsing=SurfParsing(
            markdown=bool(surf_section.get("markdown", True)),
            wiki=bool(surf_section.get("wiki", True)),
            url=bool(surf_section.get("url", True)),
        ),
        preview=PreviewConfig(
            type=_enum_value(PreviewType, prev_section.get("type", "details"), "preview.type"),
            code_theme=str(prev_section.get("code_theme", "monokai")),
            color_scheme=_enum_value(ColorScheme, prev_section.get("color_scheme", "dark"), "preview.color_scheme"),
        ),
        selector=SelectorConfig(
            command=str(sel_section.get("command", "fzf")),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for notewalk.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default notewalk.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"notewalk.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[notewalk]
name = "{project_name}"
# notes_dir = "notes"        # default
# index_dir = ".notewalk"    # default

[external_commands]
# preview = "bat --color=always {{}}"   # empty = built-in markdown render
open = "xdg-open {{}}"

# [surf_parsing]
# markdown = true
# wiki = true
# url = true

# [preview]
# type = "details"           # details | body (ctrl-t toggles while exploring)
# code_theme = "monokai"
# color_scheme = "dark"      # dark | light

# [selector]
# command = "fzf"
"""
    config_path.write_text(content)
    return config_path
