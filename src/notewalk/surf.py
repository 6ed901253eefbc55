"""Surf mode: pick one of the links found in a note's body.

    enter   OPEN    hand the link to the external opener
    ctrl-j  JUMP    treat the target as a note and explore from there
    ctrl-e  RETURN  back to explore with the note being surfed
    esc     ABORT   raises Cancelled
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from notewalk.errors import Cancelled, NoSelectionError, SelectorError
from notewalk.pipeline import ItemChannel, spawn_preparation
from notewalk.selector import validate_bindings

if TYPE_CHECKING:
    from notewalk.context import NavContext
    from notewalk.link import Link
    from notewalk.note import Note

logger = logging.getLogger("notewalk.surf")


class SurfKind(Enum):
    OPEN = "open"
    JUMP = "jump"
    RETURN = "return to explore"
    ABORT = "abort"


BINDINGS: dict[str, SurfKind] = {
    "enter": SurfKind.OPEN,
    "ctrl-j": SurfKind.JUMP,
    "ctrl-e": SurfKind.RETURN,
    "esc": SurfKind.ABORT,
    "ctrl-c": SurfKind.ABORT,
}
validate_bindings(BINDINGS, SurfKind)


@dataclass(frozen=True)
class SurfAction:
    kind: SurfKind
    link: Link | None = None
    note: Note | None = None

    def __str__(self) -> str:
        subject = self.link if self.link is not None else self.note.name if self.note else ""
        return f"{self.kind.value} : {subject}"


class SurfIteration:
    def __init__(self, items: list[Link], note: Note, ctx: NavContext) -> None:
        self.items = items
        self.return_note = note
        self.ctx = ctx

    async def _prepare(self, link: Link) -> None:
        link.prepare_display()
        await asyncio.to_thread(link.prepare_preview, self.ctx.external_commands, self.ctx.render)

    async def run(self) -> SurfAction:
        channel: ItemChannel[Link] = ItemChannel()
        spawn_preparation(self.items, self._prepare, channel.sender())

        try:
            out = await asyncio.to_thread(
                self.ctx.selector.run,
                channel,
                prompt="(surf) > ",
                multi=False,
                keys=list(BINDINGS),
                preview_window="up:50%",
            )
        finally:
            channel.close_receiver()

        if out is None:
            msg = "selector produced no output"
            raise SelectorError(msg)
        kind = BINDINGS.get(out.final_key)
        if kind is None:
            msg = f"unbound key from selector: {out.final_key!r}"
            raise SelectorError(msg)
        if kind is SurfKind.ABORT:
            logger.debug("surf aborted by user")
            msg = "user chose to abort current iteration of surf cycle"
            raise Cancelled(msg)
        if kind is SurfKind.RETURN:
            return SurfAction(kind, note=self.return_note)
        if len(out.selected) != 1:
            msg = f"{kind.value}: expected exactly one selected link, got {len(out.selected)}"
            raise NoSelectionError(msg)
        return SurfAction(kind, link=out.selected[0])
