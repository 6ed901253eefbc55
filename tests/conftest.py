"""Shared fixtures: a temp note store, its SQLite index, and a scripted selector."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from notewalk.context import NavContext
from notewalk.graph import link_notes
from notewalk.note import Note
from notewalk.selector import SelectorOutput
from notewalk.storage import SqliteStorage

_BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


def label(item) -> str:
    """How tests name selector items: note name or link target."""
    return item.name if isinstance(item, Note) else item.target


@dataclass
class SelectorCall:
    prompt: str
    keys: list[str]
    items: list = field(default_factory=list)

    @property
    def labels(self) -> set[str]:
        return {label(i) for i in self.items}


class ScriptedSelector:
    """Plays back (key, label) steps in place of fzf.

    Drains the item stream like fzf does (until every preparation task has
    sent), or stops after `take` items to simulate the user committing early.
    A key of None makes the selector fail (no output).
    """

    def __init__(self, *steps: tuple[str | None, str | None], take: int | None = None) -> None:
        self.steps = list(steps)
        self.take = take
        self.calls: list[SelectorCall] = []

    def run(self, source, *, prompt, multi, keys, preview_window="right:55%"):
        if not self.steps:
            msg = f"selector called more often than scripted (prompt {prompt!r})"
            raise AssertionError(msg)
        key, pick = self.steps.pop(0)
        call = SelectorCall(prompt=prompt, keys=list(keys))
        for item in source:
            call.items.append(item)
            if self.take is not None and len(call.items) >= self.take:
                break
        self.calls.append(call)
        if key is None:
            return None
        selected = [i for i in call.items if pick is not None and label(i) == pick]
        return SelectorOutput(final_key=key, selected=selected[:1])


@pytest.fixture
def notes_dir(tmp_path):
    d = tmp_path / "notes"
    d.mkdir()
    return d


@pytest.fixture
def storage(tmp_path, notes_dir):
    s = SqliteStorage.open(tmp_path / ".notewalk" / "index.db", notes_dir)
    yield s
    s.close()


@pytest.fixture
def add_note(storage, notes_dir):
    """Create a note file (one second apart, so ids never collide) and index it."""
    seconds = itertools.count()

    def _add(name: str, content: str = "", tags: list[str] | None = None) -> Note:
        now = _BASE_TIME + timedelta(seconds=next(seconds))
        note = Note.create(notes_dir, name, content=content, tags=tags, now=now)
        asyncio.run(storage.save(note))
        return note

    return _add


@pytest.fixture
def connect(storage):
    """Record source -> target through the single edge write path."""

    def _connect(source: Note, target: Note) -> None:
        asyncio.run(link_notes(storage, source, target))

    return _connect


@pytest.fixture
def make_ctx(storage):
    def _make(selector: ScriptedSelector) -> NavContext:
        return NavContext(storage=storage, selector=selector)

    return _make


@pytest.fixture
def abc(add_note):
    """Three unconnected notes A, B, C."""
    return add_note("A", "alpha body"), add_note("B", "beta body"), add_note("C", "gamma body")
