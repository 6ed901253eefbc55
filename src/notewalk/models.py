"""Data models: note identifiers, the YAML header ("matter"), preview context."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import yaml

from notewalk.errors import InvalidNoteIdError, MatterError

if TYPE_CHECKING:
    from notewalk.config import ExternalCommands, SurfParsing

_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
_NOTE_FILE_RE = re.compile(r"^(\d{14})_(.+)\.md$")
_SLUG_SEP_RE = re.compile(r"[^a-z0-9]+")

_FENCE = "---\n"


class _HeaderDumper(yaml.SafeDumper):
    """Block-style mapping, flow-style lists: `tags: [a, b]` under `name: x`."""


def _flow_list(dumper: yaml.SafeDumper, data: list[Any]) -> yaml.SequenceNode:
    return dumper.represent_sequence("tag:yaml.org,2002:seq", data, flow_style=True)


_HeaderDumper.add_representer(list, _flow_list)


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', strip edge hyphens.

    slugify("Hello World!")  # -> "hello-world"
    """
    slug = _SLUG_SEP_RE.sub("-", value.strip().lower()).strip("-")
    return slug or "note"


@dataclass(frozen=True)
class NoteId:
    """Timestamp prefix + slug, parsed from a note's file name."""

    timestamp: str
    slug: str

    @classmethod
    def parse(cls, file_name: str) -> NoteId:
        m = _NOTE_FILE_RE.match(file_name)
        if m is None:
            msg = f"not a note file name (want <YYYYMMDDHHMMSS>_<slug>.md): {file_name}"
            raise InvalidNoteIdError(msg)
        return cls(timestamp=m.group(1), slug=m.group(2))

    @classmethod
    def new(cls, name: str, now: datetime | None = None) -> NoteId:
        stamp = (now or datetime.now(UTC)).strftime(_TIMESTAMP_FORMAT)
        return cls(timestamp=stamp, slug=slugify(name))

    @property
    def file_name(self) -> str:
        return f"{self.timestamp}_{self.slug}.md"

    def __str__(self) -> str:
        return f"{self.timestamp}_{self.slug}"


def _str_list(value: Any, key: str) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        msg = f"header field '{key}' must be a list, got {type(value).__name__}"
        raise MatterError(msg)
    return [str(v) for v in value]


@dataclass
class Matter:
    """The header block of a note: name, optional tags, optional outbound links."""

    name: str
    tags: list[str] | None = None
    links: list[str] | None = None

    @staticmethod
    def build(name: str, tags: list[str] | None, links: list[str] | None) -> str:
        """Render the fixed header layout: fences around name, tags, links (in that order)."""
        data: dict[str, Any] = {"name": name}
        if tags is not None:
            data["tags"] = list(tags)
        if links is not None:
            data["links"] = list(links)
        body = yaml.dump(
            data, Dumper=_HeaderDumper, sort_keys=False, default_flow_style=False, allow_unicode=True, width=4096
        )
        return f"{_FENCE}{body}{_FENCE}"

    def to_yaml(self) -> str:
        return self.build(self.name, self.tags, self.links)

    @classmethod
    def from_yaml(cls, yaml_str: str, default_name: str = "") -> Matter:
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as exc:
            msg = f"invalid header: {exc}"
            raise MatterError(msg) from exc
        if not isinstance(data, dict):
            msg = "header must be a mapping"
            raise MatterError(msg)
        name = data.get("name")
        return cls(
            name=str(name) if name is not None else default_name,
            tags=_str_list(data.get("tags"), "tags"),
            links=_str_list(data.get("links"), "links"),
        )


def split_matter(text: str) -> tuple[str | None, str]:
    """Split a note file into (header yaml, body).

    The body is returned byte-for-byte as it follows the closing fence, so a
    rewrite of header + body never changes the body. Text without a header
    block returns (None, text). Fences may use LF or CRLF line endings; the
    opening fence decides which one the closing fence must use.
    """
    newline = "\r\n" if text.startswith("---\r\n") else "\n"
    opening, closing = f"---{newline}", f"{newline}---{newline}"
    if not text.startswith(opening):
        return None, text
    end = text.find(closing, len(opening) - len(newline))
    if end == -1:
        if text.endswith(f"{newline}---"):
            return text[len(opening):-len(newline) - 3], ""
        return None, text
    return text[len(opening):end + len(newline)], text[end + len(closing):]


class PreviewType(Enum):
    DETAILS = "details"   # header + graph neighbourhood
    BODY = "body"         # rendered note body

    def toggled(self) -> PreviewType:
        return PreviewType.BODY if self is PreviewType.DETAILS else PreviewType.DETAILS


class ColorScheme(Enum):
    DARK = "dark"
    LIGHT = "light"


@dataclass(frozen=True)
class RenderContext:
    """What previews need to render markdown; never affects query results."""

    code_theme: str = "monokai"
    color_scheme: ColorScheme = ColorScheme.DARK
    width: int = 100


@dataclass
class DynResources:
    """Per-item context attached just before a preparation task runs."""

    external_commands: ExternalCommands
    surf_parsing: SurfParsing
    preview_type: PreviewType
    preview_result: str | None = None
