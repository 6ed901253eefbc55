"""The mode loop: explore and surf iterations chained by their actions.

Explore OPEN surfs the note's body links (or opens the file when it has
none); surf RETURN and JUMP come back to explore. A Cancelled from the main
explore or surf selector ends the session. A nested link, unlink or rename
that is cancelled or fails falls back to the note it started from.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from notewalk.errors import (
    Cancelled,
    NoSelectionError,
    NoteNotFoundError,
    NotewalkError,
    SelfLinkError,
    StorageError,
)
from notewalk.explore import ExploreIteration, ExploreKind
from notewalk.graph import rename_note, run_link, run_unlink
from notewalk.link import extract_links
from notewalk.preview import open_target
from notewalk.surf import SurfIteration, SurfKind

if TYPE_CHECKING:
    from notewalk.context import NavContext
    from notewalk.link import Link
    from notewalk.note import Note

logger = logging.getLogger("notewalk.session")


async def _open(ctx: NavContext, target: str) -> None:
    await asyncio.to_thread(open_target, ctx.external_commands.open, target)


async def _resolve(ctx: NavContext, link: Link) -> Note | None:
    note_id = link.note_id()
    try:
        if note_id is not None:
            return await ctx.storage.get_by_id(note_id, ctx.render)
        return await ctx.storage.get(link.target, ctx.render)
    except NoteNotFoundError:
        logger.warning("jump target is not a note: %s", link.target)
        return None


async def surf_session(ctx: NavContext, note: Note) -> list[Note]:
    """Surf a note's links until the user jumps or returns; gives explore's next items."""
    links = extract_links(note.content, ctx.surf_parsing, base_dir=note.path.parent)
    if not links:
        await _open(ctx, str(note.path))
        return [note]
    while True:
        action = await SurfIteration(links, note, ctx).run()
        logger.debug("surf: %s", action)
        if action.kind is SurfKind.RETURN and action.note is not None:
            return [action.note]
        link = action.link
        if action.kind is SurfKind.OPEN and link is not None:
            local = link.local_path()
            await _open(ctx, str(local) if local is not None else link.target)
        elif action.kind is SurfKind.JUMP and link is not None:
            target = await _resolve(ctx, link)
            if target is not None:
                return [target]


async def _ask(ctx: NavContext, prompt: str, default: str) -> str:
    if ctx.ask is None:
        msg = "no interactive prompt available for rename"
        raise NotewalkError(msg)
    return (await asyncio.to_thread(ctx.ask, prompt, default)).strip()


async def explore_session(ctx: NavContext, items: list[Note] | None = None) -> None:
    """Run explore/surf until the user aborts."""
    if items is None:
        items = await ctx.storage.list(ctx.render)
    if not items:
        msg = "no notes yet, create one with `notewalk new NAME`"
        raise NotewalkError(msg)

    while True:
        try:
            out = await ExploreIteration(items, ctx).run()
        except Cancelled:
            logger.debug("explore session ended by user")
            return
        action = out.action
        logger.debug("explore: %s", action)
        kind, note = action.kind, action.note

        if kind is ExploreKind.OPEN and note is not None:
            try:
                items = await surf_session(ctx, note)
            except Cancelled:
                logger.debug("surf session ended by user")
                return
        elif kind is ExploreKind.WIDEN:
            items = await ctx.storage.list(ctx.render)
        elif kind is ExploreKind.TOGGLE_PREVIEW:
            ctx.preview_type = ctx.preview_type.toggled()
            items = out.next_items
        elif kind is ExploreKind.RENAME and note is not None:
            new_name = await _ask(ctx, f"rename {note.name!r} to", note.name)
            if new_name:
                try:
                    await rename_note(ctx.storage, note, new_name)
                except StorageError as exc:
                    logger.warning("rename of %r failed: %s", note.name, exc)
            items = [note]
        elif kind in (ExploreKind.LINK, ExploreKind.UNLINK) and note is not None:
            flow = run_link if kind is ExploreKind.LINK else run_unlink
            try:
                source, _ = await flow(ctx, source=note)
                items = [source]
            except Cancelled:
                logger.debug("%s cancelled, back to %r", kind.value, note.name)
                items = [note]
            except (NoSelectionError, SelfLinkError, StorageError) as exc:
                logger.warning("%s from %r failed: %s", kind.value, note.name, exc)
                items = [note]
        else:
            items = out.next_items or await ctx.storage.list(ctx.render)
