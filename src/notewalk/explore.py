"""Explore mode: navigate notes as nodes of the link graph.

One iteration streams the working set into the selector, waits for a key,
and turns (key, selection) into an action plus the next working set:

    enter   OPEN            [selected]
    ctrl-h  BACK            notes linking to selected, else the unfiltered input
    ctrl-l  FORWARD         notes selected links to, else [selected]
    ctrl-w  WIDEN           []   caller refetches the full list
    ctrl-t  TOGGLE_PREVIEW  [selected]   caller flips the preview type
    alt-r   RENAME          []
    alt-l   LINK            []
    alt-u   UNLINK          []
    esc     ABORT           raises Cancelled
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from notewalk.errors import Cancelled, NoSelectionError, SelectorError
from notewalk.pipeline import ItemChannel, spawn_preparation
from notewalk.selector import validate_bindings

if TYPE_CHECKING:
    from notewalk.context import NavContext
    from notewalk.note import Note

logger = logging.getLogger("notewalk.explore")


class ExploreKind(Enum):
    OPEN = "open"
    BACK = "back"
    FORWARD = "forward"
    WIDEN = "widen"
    TOGGLE_PREVIEW = "toggle-preview"
    RENAME = "rename"
    LINK = "link"
    UNLINK = "unlink"
    ABORT = "abort"


BINDINGS: dict[str, ExploreKind] = {
    "enter": ExploreKind.OPEN,
    "ctrl-h": ExploreKind.BACK,
    "ctrl-l": ExploreKind.FORWARD,
    "ctrl-w": ExploreKind.WIDEN,
    "ctrl-t": ExploreKind.TOGGLE_PREVIEW,
    "alt-r": ExploreKind.RENAME,
    "alt-l": ExploreKind.LINK,
    "alt-u": ExploreKind.UNLINK,
    "esc": ExploreKind.ABORT,
    "ctrl-c": ExploreKind.ABORT,
}
validate_bindings(BINDINGS, ExploreKind)

# choosing a note inside link/unlink: graph navigation only
_NOT_IN_PICKER = frozenset({ExploreKind.RENAME, ExploreKind.LINK, ExploreKind.UNLINK})
PICK_BINDINGS: dict[str, ExploreKind] = {key: kind for key, kind in BINDINGS.items() if kind not in _NOT_IN_PICKER}
validate_bindings(PICK_BINDINGS, ExploreKind, required=set(ExploreKind) - _NOT_IN_PICKER)

_NO_SELECTION_NEEDED = frozenset({ExploreKind.WIDEN, ExploreKind.ABORT})


@dataclass(frozen=True)
class ExploreAction:
    kind: ExploreKind
    note: Note | None = None

    def __str__(self) -> str:
        return f"{self.kind.value} : {self.note.name}" if self.note else self.kind.value


@dataclass
class ExploreOut:
    action: ExploreAction
    next_items: list[Note]


class ExploreIteration:
    def __init__(
        self,
        items: list[Note],
        ctx: NavContext,
        prompt: str = "(explore) > ",
        bindings: dict[str, ExploreKind] | None = None,
    ) -> None:
        self.items = items
        self.ctx = ctx
        self.prompt = prompt
        self.bindings = bindings or BINDINGS

    async def _prepare(self, note: Note) -> None:
        note.set_resources(self.ctx.resources())
        note.render = self.ctx.render
        await note.prepare_preview(self.ctx.storage)

    async def run(self) -> ExploreOut:
        items = self.items
        channel: ItemChannel[Note] = ItemChannel()
        # previews are attached to copies; the caller's notes stay untouched
        spawn_preparation([copy.copy(n) for n in items], self._prepare, channel.sender())

        try:
            out = await asyncio.to_thread(
                self.ctx.selector.run,
                channel,
                prompt=self.prompt,
                multi=False,
                keys=list(self.bindings),
                preview_window="right:55%",
            )
        finally:
            channel.close_receiver()

        if out is None:
            msg = "selector produced no output"
            raise SelectorError(msg)
        kind = self.bindings.get(out.final_key)
        if kind is None:
            msg = f"unbound key from selector: {out.final_key!r}"
            raise SelectorError(msg)
        if kind is ExploreKind.ABORT:
            logger.debug("explore aborted by user")
            msg = "user chose to abort current iteration of explore cycle"
            raise Cancelled(msg)
        if kind in _NO_SELECTION_NEEDED:
            return ExploreOut(action=ExploreAction(kind), next_items=[])
        if len(out.selected) != 1:
            msg = f"{kind.value}: expected exactly one selected note, got {len(out.selected)}"
            raise NoSelectionError(msg)

        note: Note = out.selected[0]
        return ExploreOut(action=ExploreAction(kind, note), next_items=await self._next_items(kind, note, items))

    async def _next_items(self, kind: ExploreKind, note: Note, items: list[Note]) -> list[Note]:
        storage, render = self.ctx.storage, self.ctx.render
        if kind is ExploreKind.BACK:
            backlinks = await storage.find_links_to(note.name, render)
            return backlinks or items
        if kind is ExploreKind.FORWARD:
            forward = await storage.find_links_from(note.name, render)
            return forward or [note]
        if kind in (ExploreKind.OPEN, ExploreKind.TOGGLE_PREVIEW):
            return [note]
        # RENAME, LINK, UNLINK: the caller mutates and re-enters
        return []
