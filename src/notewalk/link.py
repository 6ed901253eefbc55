"""Links found inside a note body, the items of surf mode.

Three syntaxes are recognised (each can be switched off in [surf_parsing]):

    [text](target)      markdown link
    [[target]]          wiki link, target is a note name
    https://...         bare URL

Links are transient: they live for one surf iteration and are never stored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from notewalk.errors import InvalidNoteIdError
from notewalk.models import NoteId, RenderContext
from notewalk.preview import render_markdown, run_command

if TYPE_CHECKING:
    from notewalk.config import ExternalCommands, SurfParsing

_MARKDOWN_RE = re.compile(r"(?<!!)\[([^\]\n]*)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
_WIKI_RE = re.compile(r"\[\[([^\]|\n]+)(?:\|([^\]\n]+))?\]\]")
_URL_RE = re.compile(r"https?://[^\s<>()\[\]\"']+")
_URL_TRAILING = ".,;:!?"


@dataclass
class Link:
    """A link target plus how it is shown in the selector."""

    target: str
    text: str = ""
    wiki: bool = False
    base_dir: Path | None = None
    display_text: str = ""
    preview_text: str | None = None

    @property
    def is_url(self) -> bool:
        return bool(re.match(r"^[a-z][a-z0-9+.-]*://", self.target))

    def local_path(self) -> Path | None:
        """Existing file the target points at, resolved against the note's directory."""
        if self.is_url or self.wiki:
            return None
        path = Path(self.target.split("#", 1)[0])
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path if path.is_file() else None

    def note_id(self) -> NoteId | None:
        """NoteId when the target is a note file name."""
        if self.is_url or self.wiki:
            return None
        try:
            return NoteId.parse(Path(self.target.split("#", 1)[0]).name)
        except InvalidNoteIdError:
            return None

    def __str__(self) -> str:
        return self.target

    def prepare_display(self) -> None:
        label = self.text.strip()
        if label and label != self.target:
            self.display_text = f"{label}  →  {self.target}"
        else:
            self.display_text = self.target

    def prepare_preview(self, external_commands: ExternalCommands, render: RenderContext) -> None:
        path = self.local_path()
        if path is None:
            lines = [self.target]
            if self.text and self.text != self.target:
                lines.insert(0, self.text)
            self.preview_text = "\n".join(lines)
        elif external_commands.preview:
            self.preview_text = run_command(external_commands.preview, str(path))
        elif path.suffix == ".md":
            self.preview_text = render_markdown(path.read_text(encoding="utf-8", errors="replace"), render)
        else:
            self.preview_text = path.read_text(encoding="utf-8", errors="replace")

    def display(self) -> str:
        return self.display_text or self.target

    def preview(self) -> str:
        return self.preview_text or ""


def extract_links(content: str, parsing: SurfParsing, base_dir: Path | None = None) -> list[Link]:
    """Links in body order, first occurrence of each target wins."""
    found: list[tuple[int, Link]] = []
    taken: list[tuple[int, int]] = []

    def _overlaps(start: int, end: int) -> bool:
        return any(start < e and s < end for s, e in taken)

    if parsing.wiki:
        for m in _WIKI_RE.finditer(content):
            target = m.group(1).strip()
            found.append((m.start(), Link(target=target, text=(m.group(2) or target).strip(), wiki=True)))
            taken.append(m.span())
    if parsing.markdown:
        for m in _MARKDOWN_RE.finditer(content):
            if _overlaps(*m.span()):
                continue
            found.append((m.start(), Link(target=m.group(2), text=m.group(1), base_dir=base_dir)))
            taken.append(m.span())
    if parsing.url:
        for m in _URL_RE.finditer(content):
            if _overlaps(*m.span()):
                continue
            url = m.group(0).rstrip(_URL_TRAILING)
            found.append((m.start(), Link(target=url, text=url)))

    links: list[Link] = []
    seen: set[str] = set()
    for _, link in sorted(found, key=lambda pair: pair[0]):
        if link.target in seen:
            continue
        seen.add(link.target)
        links.append(link)
    return links
