"""The note mutation engine: idempotent tag/link edits with full-file rewrites."""

import os
from datetime import UTC, datetime

import pytest

from notewalk.errors import NoteWriteError
from notewalk.models import Matter
from notewalk.note import Note

_NOW = datetime(2024, 3, 1, 8, 0, 0, tzinfo=UTC)
_BODY = "# Heading\n\nSome text with [a link](other.md).\r\nTrailing line without newline"


@pytest.fixture
def note(notes_dir):
    return Note.create(notes_dir, "Graph theory", content=_BODY, tags=["math"], now=_NOW)


def _freeze_mtime(path):
    os.utime(path, ns=(1_000_000_000, 1_000_000_000))
    return path.stat().st_mtime_ns


class TestReadCreate:
    def test_create_writes_header_then_body(self, note):
        text = note.path.read_bytes().decode("utf-8")
        assert text == "---\nname: Graph theory\ntags: [math]\n---\n" + _BODY
        assert note.path.name == "20240301080000_graph-theory.md"

    def test_read(self, note):
        loaded = Note.read(note.path)
        assert loaded.id == note.id
        assert loaded.name == "Graph theory"
        assert loaded.matter.tags == ["math"]
        assert loaded.matter.links is None
        assert loaded.content == _BODY

    def test_read_without_header_uses_slug(self, notes_dir):
        path = notes_dir / "20240301080000_plain.md"
        path.write_text("no header here\n")
        loaded = Note.read(path)
        assert loaded.name == "plain"
        assert loaded.content == "no header here\n"

    def test_crlf_note_keeps_its_header_on_rewrite(self, notes_dir):
        path = notes_dir / "20240301080000_x.md"
        path.write_bytes(b"---\r\nname: X\r\ntags: [a]\r\n---\r\nbody\r\n")
        note = Note.read(path)
        assert note.name == "X"
        assert note.add_tag("b") is True
        assert path.read_bytes() == b"---\nname: X\ntags: [a, b]\n---\nbody\r\n"

    def test_create_without_tags(self, notes_dir):
        note = Note.create(notes_dir, "Graph", now=_NOW)
        assert note.path.read_bytes().decode("utf-8") == "---\nname: Graph\n---\n"

    def test_create_refuses_existing_file(self, notes_dir, note):
        with pytest.raises(FileExistsError):
            Note.create(notes_dir, "Graph theory", now=_NOW)

    def test_equality_is_by_id(self, note):
        assert Note.read(note.path) == note
        assert len({note, Note.read(note.path)}) == 1


class TestTags:
    @pytest.mark.parametrize("initial", [None, [], ["math"], ["x", "math", "y"]])
    def test_add_then_remove(self, notes_dir, initial):
        note = Note.create(notes_dir, "n", tags=initial, now=_NOW)
        note.add_tag("math")
        assert note.has_tag("math")
        assert Note.read(note.path).has_tag("math")
        note.remove_tag("math")
        assert not note.has_tag("math")
        assert not Note.read(note.path).has_tag("math")

    def test_add_appends(self, note):
        assert note.add_tag("graphs") is True
        assert Note.read(note.path).matter.tags == ["math", "graphs"]

    def test_add_existing_does_not_write(self, note):
        before = _freeze_mtime(note.path)
        assert note.add_tag("math") is False
        assert note.path.stat().st_mtime_ns == before

    def test_remove_missing_does_not_write(self, note):
        before = _freeze_mtime(note.path)
        assert note.remove_tag("nope") is False
        assert note.path.stat().st_mtime_ns == before

    def test_remove_keeps_order_and_links(self, note):
        note.add_tag("a")
        note.add_tag("b")
        note.add_link("Euler")
        note.remove_tag("a")
        loaded = Note.read(note.path)
        assert loaded.matter.tags == ["math", "b"]
        assert loaded.matter.links == ["Euler"]


class TestLinks:
    def test_add_link_twice_stored_once(self, note):
        assert note.add_link("B") is True
        assert note.add_link("B") is False
        assert Note.read(note.path).matter.links == ["B"]

    def test_add_existing_link_does_not_write(self, note):
        note.add_link("B")
        before = _freeze_mtime(note.path)
        note.add_link("B")
        assert note.path.stat().st_mtime_ns == before

    def test_remove_keeps_survivor_order(self, note):
        for name in ["A", "B", "C", "D"]:
            note.add_link(name)
        note.remove_link("B")
        assert Note.read(note.path).matter.links == ["A", "C", "D"]

    def test_remove_last_leaves_empty_list(self, note):
        note.add_link("A")
        note.remove_link("A")
        assert Note.read(note.path).matter.links == []

    def test_replace_link_keeps_position(self, note):
        for name in ["A", "B", "C"]:
            note.add_link(name)
        assert note.replace_link("B", "Beta") is True
        assert Note.read(note.path).matter.links == ["A", "Beta", "C"]

    def test_replace_link_merges_duplicates(self, note):
        note.add_link("A")
        note.add_link("B")
        note.replace_link("B", "A")
        assert Note.read(note.path).matter.links == ["A"]

    def test_tags_untouched_by_link_edits(self, note):
        note.add_link("A")
        note.remove_link("A")
        assert Note.read(note.path).matter.tags == ["math"]


class TestRewrite:
    def test_body_passes_through_every_mutation(self, note):
        note.add_tag("t")
        note.add_link("L")
        note.remove_tag("t")
        note.remove_link("L")
        note.rename_header("Renamed")
        assert Note.read(note.path).content == _BODY

    def test_rename_header(self, note):
        assert note.rename_header("Graphs") is True
        assert note.rename_header("Graphs") is False
        assert Note.read(note.path).matter == Matter("Graphs", ["math"], None)

    def test_write_failure_is_typed(self, note):
        note.path.unlink()
        note.path.parent.rmdir()
        with pytest.raises(NoteWriteError):
            note.add_tag("new")
        # in-memory header only changes after a successful write
        assert not note.has_tag("new")
