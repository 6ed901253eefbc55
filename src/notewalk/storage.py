"""Async storage: note files on disk plus a SQLite index of names and link edges.

Note files are the source of truth; the index is derived and can be rebuilt
from the headers at any time with `reindex`. One connection is shared by the
whole process. Every operation takes an asyncio.Lock and runs its SQL in a
worker thread, so concurrent preview tasks can read while the event loop
stays responsive, and mutations are serialized against reads.

Usage:
    storage = SqliteStorage.open(cfg.db_path, cfg.notes_dir)
    notes = await storage.list(render)
    await storage.insert_link("alpha", "beta")
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from notewalk.db import get_conn
from notewalk.errors import InvalidNoteIdError, MatterError, NoteNotFoundError, StorageError
from notewalk.models import NoteId, RenderContext, slugify
from notewalk.note import Note

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

logger = logging.getLogger("notewalk.storage")

T = TypeVar("T")


class Storage(Protocol):
    """What the navigation engine needs from storage."""

    async def save(self, note: Note) -> None: ...
    async def list(self, render: RenderContext | None = None) -> list[Note]: ...
    async def get(self, name: str, render: RenderContext | None = None) -> Note: ...
    async def get_by_id(self, note_id: NoteId, render: RenderContext | None = None) -> Note: ...
    async def remove_note(self, note: Note) -> None: ...
    async def rename_note(self, note: Note, new_name: str) -> None: ...
    async def insert_link(self, from_name: str, to_name: str) -> None: ...
    async def remove_link(self, from_name: str, to_name: str) -> None: ...
    async def find_links_from(self, name: str, render: RenderContext | None = None) -> list[Note]: ...
    async def find_links_to(self, name: str, render: RenderContext | None = None) -> list[Note]: ...


class SqliteStorage:
    """Storage backed by a notes directory and a SQLite index."""

    def __init__(self, conn: sqlite3.Connection, notes_dir: Path) -> None:
        self._conn = conn
        self.notes_dir = notes_dir
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def open(cls, db_path: Path, notes_dir: Path) -> SqliteStorage:
        try:
            notes_dir.mkdir(parents=True, exist_ok=True)
            conn = get_conn(db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(str(exc)) from exc
        return cls(conn, notes_dir)

    def close(self) -> None:
        self._conn.close()

    def _loop_lock(self) -> asyncio.Lock:
        # an asyncio.Lock binds to the first loop that waits on it
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        async with self._loop_lock():
            try:
                return await asyncio.to_thread(fn, *args)
            except (sqlite3.Error, OSError) as exc:
                raise StorageError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _load(self, file_names: list[str], render: RenderContext | None) -> list[Note]:
        notes: list[Note] = []
        for file_name in file_names:
            path = self.notes_dir / file_name
            try:
                notes.append(Note.read(path, render))
            except FileNotFoundError:
                logger.warning("indexed note is missing on disk: %s (run `notewalk reindex`)", file_name)
        return notes

    def _file_names(self, sql: str, params: tuple[Any, ...]) -> list[str]:
        return [r[0] for r in self._conn.execute(sql, params).fetchall()]

    def _list(self, render: RenderContext | None) -> list[Note]:
        return self._load(self._file_names("SELECT file_name FROM notes ORDER BY file_name", ()), render)

    async def list(self, render: RenderContext | None = None) -> list[Note]:
        return await self._run(self._list, render)

    def _get(self, column: str, value: str, render: RenderContext | None) -> Note:
        row = self._conn.execute(f"SELECT file_name FROM notes WHERE {column} = ?", (value,)).fetchone()  # noqa: S608
        if row is None:
            msg = f"no note named {value!r}" if column == "name" else f"no note stored as {value!r}"
            raise NoteNotFoundError(msg)
        try:
            return Note.read(self.notes_dir / row[0], render)
        except FileNotFoundError as exc:
            msg = f"indexed note is missing on disk: {row[0]}"
            raise NoteNotFoundError(msg) from exc

    async def get(self, name: str, render: RenderContext | None = None) -> Note:
        return await self._run(self._get, "name", name, render)

    async def get_by_id(self, note_id: NoteId, render: RenderContext | None = None) -> Note:
        return await self._run(self._get, "file_name", note_id.file_name, render)

    def _links_from(self, name: str, render: RenderContext | None) -> list[Note]:
        return self._load(self._file_names(
            "SELECT n.file_name FROM links l JOIN notes n ON n.name = l.to_name "
            "WHERE l.from_name = ? ORDER BY n.file_name",
            (name,),
        ), render)

    async def find_links_from(self, name: str, render: RenderContext | None = None) -> list[Note]:
        """Notes that `name` links to."""
        return await self._run(self._links_from, name, render)

    def _links_to(self, name: str, render: RenderContext | None) -> list[Note]:
        return self._load(self._file_names(
            "SELECT n.file_name FROM links l JOIN notes n ON n.name = l.from_name "
            "WHERE l.to_name = ? ORDER BY n.file_name",
            (name,),
        ), render)

    async def find_links_to(self, name: str, render: RenderContext | None = None) -> list[Note]:
        """Notes that link to `name` (backlinks)."""
        return await self._run(self._links_to, name, render)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def _save(self, note: Note) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO notes(name, file_name) VALUES (?, ?) "
                "ON CONFLICT(name) DO UPDATE SET file_name = excluded.file_name",
                (note.name, note.path.name),
            )

    async def save(self, note: Note) -> None:
        await self._run(self._save, note)

    def _remove_note(self, note: Note) -> None:
        with self._conn:
            # links rows go with it (ON DELETE CASCADE)
            self._conn.execute("DELETE FROM notes WHERE name = ?", (note.name,))
        note.path.unlink(missing_ok=True)

    async def remove_note(self, note: Note) -> None:
        await self._run(self._remove_note, note)

    def _rename_note(self, note: Note, new_name: str) -> None:
        old_name = note.name
        if self._conn.execute("SELECT 1 FROM notes WHERE name = ?", (new_name,)).fetchone():
            msg = f"a note named {new_name!r} already exists"
            raise StorageError(msg)
        new_id = NoteId(timestamp=note.id.timestamp, slug=slugify(new_name))
        new_path = note.path.with_name(new_id.file_name)
        if new_path != note.path and new_path.exists():
            msg = f"file already exists: {new_path}"
            raise StorageError(msg)
        note.rename_header(new_name)
        note.path.rename(new_path)
        note.id, note.path = new_id, new_path
        with self._conn:
            # links rows follow the name (ON UPDATE CASCADE)
            self._conn.execute(
                "UPDATE notes SET name = ?, file_name = ? WHERE name = ?",
                (new_name, new_id.file_name, old_name),
            )
        logger.info("renamed %r -> %r (%s)", old_name, new_name, new_id.file_name)

    async def rename_note(self, note: Note, new_name: str) -> None:
        await self._run(self._rename_note, note, new_name)

    def _insert_link(self, from_name: str, to_name: str) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO links(from_name, to_name) VALUES (?, ?)",
                (from_name, to_name),
            )

    async def insert_link(self, from_name: str, to_name: str) -> None:
        await self._run(self._insert_link, from_name, to_name)

    def _remove_link(self, from_name: str, to_name: str) -> None:
        with self._conn:
            self._conn.execute(
                "DELETE FROM links WHERE from_name = ? AND to_name = ?",
                (from_name, to_name),
            )

    async def remove_link(self, from_name: str, to_name: str) -> None:
        await self._run(self._remove_link, from_name, to_name)

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    def _reindex(self) -> int:
        notes: list[Note] = []
        for path in sorted(self.notes_dir.glob("*.md")):
            try:
                notes.append(Note.read(path))
            except (InvalidNoteIdError, MatterError) as exc:
                logger.warning("skipping %s: %s", path.name, exc)

        by_name: dict[str, Note] = {}
        for note in notes:
            if note.name in by_name:
                logger.warning("duplicate note name %r: keeping %s, skipping %s",
                               note.name, by_name[note.name].path.name, note.path.name)
                continue
            by_name[note.name] = note

        with self._conn:
            self._conn.execute("DELETE FROM links")
            self._conn.execute("DELETE FROM notes")
            self._conn.executemany(
                "INSERT INTO notes(name, file_name) VALUES (?, ?)",
                [(n.name, n.path.name) for n in by_name.values()],
            )
            for note in by_name.values():
                for target in note.matter.links or []:
                    if target == note.name or target not in by_name:
                        logger.debug("dangling link %r -> %r", note.name, target)
                        continue
                    self._conn.execute(
                        "INSERT OR IGNORE INTO links(from_name, to_name) VALUES (?, ?)",
                        (note.name, target),
                    )
        return len(by_name)

    async def reindex(self) -> int:
        """Rebuild notes and edges from the files. Headers win over the old index."""
        return await self._run(self._reindex)
