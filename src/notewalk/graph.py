"""Graph mutations and the interactive link/unlink flows.

Every edge change goes through link_notes / unlink_notes, which update the
source note's header `links` and the stored edge in one call. The header is
written first: it is the source of truth, and `notewalk reindex` regenerates
the edge table from headers if the second step ever fails.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notewalk.errors import SelfLinkError, StorageError
from notewalk.explore import PICK_BINDINGS, ExploreIteration, ExploreKind

if TYPE_CHECKING:
    from notewalk.context import NavContext
    from notewalk.note import Note
    from notewalk.storage import Storage

logger = logging.getLogger("notewalk.graph")


async def link_notes(storage: Storage, source: Note, target: Note) -> None:
    if source == target or source.name == target.name:
        msg = f"cannot link {source.name!r} to itself"
        raise SelfLinkError(msg)
    source.add_link(target.name)
    try:
        await storage.insert_link(source.name, target.name)
    except StorageError:
        logger.warning("header of %r lists %r but the edge was not stored; `notewalk reindex` restores it",
                       source.name, target.name)
        raise
    logger.info("linked %r -> %r", source.name, target.name)


async def unlink_notes(storage: Storage, source: Note, target: Note) -> None:
    source.remove_link(target.name)
    try:
        await storage.remove_link(source.name, target.name)
    except StorageError:
        logger.warning("header of %r no longer lists %r but the edge is still stored; `notewalk reindex` drops it",
                       source.name, target.name)
        raise
    logger.info("unlinked %r -> %r", source.name, target.name)


async def rename_note(storage: Storage, note: Note, new_name: str) -> None:
    """Rename a note and repoint the header links of every note linking to it."""
    old_name = note.name
    if new_name == old_name:
        return
    backlinks = await storage.find_links_to(old_name)
    await storage.rename_note(note, new_name)
    for other in backlinks:
        other.replace_link(old_name, new_name)


async def remove_note(storage: Storage, note: Note) -> None:
    """Delete a note; notes that linked to it drop the header entry too."""
    backlinks = await storage.find_links_to(note.name)
    for other in backlinks:
        other.remove_link(note.name)
    await storage.remove_note(note)
    logger.info("removed %r", note.name)


async def select_note(ctx: NavContext, items: list[Note], prompt: str) -> Note:
    """Explore until the user opens a note; that note is the selection.

    Graph navigation keys keep working while choosing; rename, link and
    unlink are not bound here. Cancelled and NoSelectionError propagate.
    """
    current = items
    while True:
        out = await ExploreIteration(current, ctx, prompt=prompt, bindings=PICK_BINDINGS).run()
        action = out.action
        if action.kind is ExploreKind.OPEN and action.note is not None:
            return action.note
        if action.kind is ExploreKind.TOGGLE_PREVIEW:
            ctx.preview_type = ctx.preview_type.toggled()
        if out.next_items:
            current = out.next_items
        else:
            current = await ctx.storage.list(ctx.render)


async def _pick_pair(ctx: NavContext, source: Note | None, verb: str) -> tuple[Note, Note]:
    if source is None:
        source = await select_note(ctx, await ctx.storage.list(ctx.render), f"({verb} from) > ")
    target = await select_note(ctx, await ctx.storage.list(ctx.render), f"({verb} to) > ")
    return source, target


async def run_link(ctx: NavContext, source: Note | None = None) -> tuple[Note, Note]:
    """Choose source (unless given) and target, then record the edge.

    Nothing is written unless both selections succeed.
    """
    source, target = await _pick_pair(ctx, source, "link")
    await link_notes(ctx.storage, source, target)
    return source, target


async def run_unlink(ctx: NavContext, source: Note | None = None) -> tuple[Note, Note]:
    source, target = await _pick_pair(ctx, source, "unlink")
    await unlink_notes(ctx.storage, source, target)
    return source, target
