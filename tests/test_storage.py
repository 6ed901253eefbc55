"""SQLite-backed storage: note index, edges, rename/remove, rebuild from headers."""

import asyncio

import pytest

from notewalk.errors import NoteNotFoundError, StorageError
from notewalk.models import NoteId
from notewalk.note import Note


def _names(notes):
    return [n.name for n in notes]


class TestNotes:
    def test_list_in_file_order(self, storage, abc):
        assert _names(asyncio.run(storage.list())) == ["A", "B", "C"]

    def test_get(self, storage, abc):
        note = asyncio.run(storage.get("B"))
        assert note.content == "beta body"
        assert note == abc[1]

    def test_get_missing(self, storage):
        with pytest.raises(NoteNotFoundError):
            asyncio.run(storage.get("nope"))

    def test_get_by_id(self, storage, abc):
        assert asyncio.run(storage.get_by_id(abc[2].id)).name == "C"
        with pytest.raises(NoteNotFoundError):
            asyncio.run(storage.get_by_id(NoteId("20000101000000", "ghost")))

    def test_list_skips_files_missing_on_disk(self, storage, abc):
        abc[0].path.unlink()
        assert _names(asyncio.run(storage.list())) == ["B", "C"]

    def test_save_is_upsert(self, storage, abc):
        asyncio.run(storage.save(abc[0]))
        assert len(asyncio.run(storage.list())) == 3


class TestEdges:
    def test_find_links_from_and_to(self, storage, abc):
        a, b, c = abc

        async def main():
            await storage.insert_link("A", "B")
            await storage.insert_link("A", "C")
            await storage.insert_link("C", "B")
            return (
                await storage.find_links_from("A"),
                await storage.find_links_to("B"),
                await storage.find_links_to("A"),
            )

        from_a, to_b, to_a = asyncio.run(main())
        assert _names(from_a) == ["B", "C"]
        assert _names(to_b) == ["A", "C"]
        assert to_a == []

    def test_insert_is_idempotent(self, storage, abc):
        asyncio.run(storage.insert_link("A", "B"))
        asyncio.run(storage.insert_link("A", "B"))
        assert _names(asyncio.run(storage.find_links_from("A"))) == ["B"]

    def test_remove_link(self, storage, abc):
        asyncio.run(storage.insert_link("A", "B"))
        asyncio.run(storage.remove_link("A", "B"))
        assert asyncio.run(storage.find_links_from("A")) == []

    def test_unknown_note_is_storage_error(self, storage, abc):
        with pytest.raises(StorageError):
            asyncio.run(storage.insert_link("A", "ghost"))

    def test_concurrent_reads(self, storage, abc):
        asyncio.run(storage.insert_link("A", "B"))

        async def main():
            return await asyncio.gather(*(storage.find_links_from("A") for _ in range(20)))

        results = asyncio.run(main())
        assert all(_names(r) == ["B"] for r in results)


class TestRenameRemove:
    def test_rename_moves_file_header_and_edges(self, storage, abc):
        a, b, _ = abc
        asyncio.run(storage.insert_link("A", "B"))
        old_path = b.path
        asyncio.run(storage.rename_note(b, "Beta"))

        assert not old_path.exists()
        assert b.path.name == f"{old_path.name[:14]}_beta.md"
        assert Note.read(b.path).name == "Beta"
        assert _names(asyncio.run(storage.find_links_from("A"))) == ["Beta"]
        with pytest.raises(NoteNotFoundError):
            asyncio.run(storage.get("B"))

    def test_rename_to_taken_name(self, storage, abc):
        with pytest.raises(StorageError):
            asyncio.run(storage.rename_note(abc[0], "B"))
        assert Note.read(abc[0].path).name == "A"

    def test_remove_note_drops_file_and_edges(self, storage, abc):
        a, b, _ = abc
        asyncio.run(storage.insert_link("A", "B"))
        asyncio.run(storage.remove_note(b))
        assert not b.path.exists()
        assert asyncio.run(storage.find_links_from("A")) == []
        assert _names(asyncio.run(storage.list())) == ["A", "C"]


class TestReindex:
    def test_edges_come_from_headers(self, storage, abc, notes_dir):
        a, b, c = abc
        a.add_link("B")
        a.add_link("Nowhere")
        c.add_link("C")
        asyncio.run(storage.insert_link("B", "C"))  # not in any header: dropped

        assert asyncio.run(storage.reindex()) == 3
        assert _names(asyncio.run(storage.find_links_from("A"))) == ["B"]
        assert asyncio.run(storage.find_links_from("B")) == []
        assert asyncio.run(storage.find_links_from("C")) == []

    def test_picks_up_new_files_and_skips_bad_ones(self, storage, abc, notes_dir):
        (notes_dir / "20240601000000_late.md").write_text("---\nname: Late\n---\nhi\n")
        (notes_dir / "not-a-note.md").write_text("x")
        (notes_dir / "20240601000001_broken.md").write_text("---\nname: [oops\n---\n")
        assert asyncio.run(storage.reindex()) == 4
        assert "Late" in _names(asyncio.run(storage.list()))

    def test_duplicate_names_keep_first(self, storage, abc, notes_dir):
        (notes_dir / "20990101000000_dup.md").write_text("---\nname: A\n---\n")
        assert asyncio.run(storage.reindex()) == 3
        assert asyncio.run(storage.get("A")).path == abc[0].path
