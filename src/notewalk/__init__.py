"""Markdown notes as a navigable graph: files are the source of truth, SQLite is the index.

Layout:
    notes/
        <YYYYMMDDHHMMSS>_<slug>.md   # YAML header (name, tags, links) + body
    .notewalk/
        index.db                     # SQLite: note names + link edges (rebuildable)

Note file:
    ---
    name: Graph theory
    tags: [math]
    links: [Euler, Networks]
    ---
    Body text, passed through untouched by every header edit.

Navigation runs in two modes over fzf: explore (notes as graph nodes:
backlinks, forward links, widen) and surf (links inside one note's body).
"""

from notewalk.config import NWConfig, init_config, load_config
from notewalk.models import Matter, NoteId
from notewalk.note import Note
from notewalk.storage import SqliteStorage

__all__ = ["Matter", "NWConfig", "Note", "NoteId", "SqliteStorage", "init_config", "load_config"]
