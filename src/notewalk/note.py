"""Note files: reading, the header mutation engine, preview preparation.

A note file is `[header block][body]`. Every mutation rebuilds the header
from {name, tags, links} and rewrites the whole file: truncate, write the
header, then write the body exactly as it was read. There is no temp-file
swap; a crash between the two writes leaves a valid header and a truncated
body.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from notewalk.errors import NoteWriteError
from notewalk.models import DynResources, Matter, NoteId, PreviewType, RenderContext, split_matter
from notewalk.preview import render_details, render_markdown, run_command

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from notewalk.storage import Storage

logger = logging.getLogger("notewalk.note")


@dataclass(eq=False)
class Note:
    """A note loaded from disk. The file is the durable source of truth."""

    id: NoteId
    path: Path
    matter: Matter
    content: str
    resources: DynResources | None = None
    render: RenderContext = field(default_factory=RenderContext)

    @classmethod
    def read(cls, path: Path, render: RenderContext | None = None) -> Note:
        note_id = NoteId.parse(path.name)
        with path.open(encoding="utf-8", newline="") as f:
            text = f.read()
        header, content = split_matter(text)
        matter = Matter.from_yaml(header, default_name=note_id.slug) if header is not None else Matter(name=note_id.slug)
        return cls(id=note_id, path=path, matter=matter, content=content, render=render or RenderContext())

    @classmethod
    def create(
        cls,
        notes_dir: Path,
        name: str,
        content: str = "",
        tags: list[str] | None = None,
        now: datetime | None = None,
    ) -> Note:
        """Write a new note file. Raises FileExistsError if the id is taken."""
        note_id = NoteId.new(name, now=now)
        path = notes_dir / note_id.file_name
        if path.exists():
            msg = f"Note file already exists: {path}"
            raise FileExistsError(msg)
        note = cls(id=note_id, path=path, matter=Matter(name=name, tags=tags, links=None), content=content)
        note._write(note.matter)
        return note

    @property
    def name(self) -> str:
        return self.matter.name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Note):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Note({self.id}, name={self.name!r})"

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def has_link(self, name: str) -> bool:
        """Checks if the header links this note to `name`."""
        return name in (self.matter.links or [])

    def has_tag(self, name: str) -> bool:
        return name in (self.matter.tags or [])

    # ------------------------------------------------------------------
    # Mutations: return True when the file was rewritten, False for a no-op
    # ------------------------------------------------------------------

    def add_link(self, name: str) -> bool:
        if self.has_link(name):
            return False
        links = [*(self.matter.links or []), name]
        self._write(Matter(self.matter.name, self.matter.tags, links))
        return True

    def remove_link(self, name: str) -> bool:
        if not self.has_link(name):
            return False
        links = [link for link in self.matter.links or [] if link != name]
        self._write(Matter(self.matter.name, self.matter.tags, links))
        return True

    def add_tag(self, name: str) -> bool:
        if self.has_tag(name):
            return False
        tags = [*(self.matter.tags or []), name]
        self._write(Matter(self.matter.name, tags, self.matter.links))
        return True

    def remove_tag(self, name: str) -> bool:
        if not self.has_tag(name):
            return False
        tags = [tag for tag in self.matter.tags or [] if tag != name]
        self._write(Matter(self.matter.name, tags, self.matter.links))
        return True

    def replace_link(self, old: str, new: str) -> bool:
        """Point a link entry at a renamed note, keeping its position."""
        if not self.has_link(old):
            return False
        links: list[str] = []
        for link in self.matter.links or []:
            target = new if link == old else link
            if target not in links:
                links.append(target)
        self._write(Matter(self.matter.name, self.matter.tags, links))
        return True

    def rename_header(self, new_name: str) -> bool:
        if self.matter.name == new_name:
            return False
        self._write(Matter(new_name, self.matter.tags, self.matter.links))
        return True

    def _write(self, matter: Matter) -> None:
        try:
            with self.path.open("w", encoding="utf-8", newline="") as f:
                f.write(matter.to_yaml())
                f.write(self.content)
        except OSError as exc:
            msg = f"failed to rewrite {self.path}: {exc}"
            raise NoteWriteError(msg) from exc
        self.matter = matter
        logger.info("rewrote %s", self.path.name)

    # ------------------------------------------------------------------
    # Selector item
    # ------------------------------------------------------------------

    def set_resources(self, resources: DynResources) -> None:
        self.resources = resources

    def display(self) -> str:
        if self.matter.tags:
            return f"{self.name}  " + " ".join(f"#{t}" for t in self.matter.tags)
        return self.name

    def preview(self) -> str:
        if self.resources is None or self.resources.preview_result is None:
            return ""
        return self.resources.preview_result

    async def prepare_preview(self, storage: Storage) -> None:
        """Compute the preview for the attached resources' preview type."""
        res = self.resources
        if res is None:
            return
        if res.preview_type is PreviewType.DETAILS:
            forward = await storage.find_links_from(self.name, self.render)
            backlinks = await storage.find_links_to(self.name, self.render)
            res.preview_result = await asyncio.to_thread(render_details, self, forward, backlinks, self.render)
        elif res.external_commands.preview:
            res.preview_result = await asyncio.to_thread(run_command, res.external_commands.preview, str(self.path))
        else:
            res.preview_result = await asyncio.to_thread(render_markdown, self.content, self.render)
