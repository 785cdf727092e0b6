import uuid

import pytest

from mynotes.storage.notes_store import LocalStoreError, NotesStore


def test_insert_and_get_round_trip(store):
    note = store.insert_note("N1", "t", "c", creation_date="2024-01-01T00:00:00+00:00")

    loaded = store.get_note(note.object_id)
    assert loaded == note
    assert loaded.creation_date == "2024-01-01T00:00:00+00:00"


def test_records_are_keyed_by_object_id_not_note_id(store):
    a = store.insert_note("N1", "t1", "c1")
    b = store.insert_note("N1", "t2", "c2")

    assert a.object_id != b.object_id
    assert {n.object_id for n in store.find_by_note_id("N1")} == {a.object_id, b.object_id}
    assert store.find_by_note_id("N2") == []


def test_list_skips_corrupted_records(store, tmp_path):
    store.insert_note("N1", "t", "c")
    (tmp_path / "notes" / f"{uuid.uuid4()}.json").write_text("{broken", encoding="utf-8")

    assert [n.note_id for n in store.list_notes()] == ["N1"]


def test_list_on_empty_store(tmp_path):
    assert NotesStore(tmp_path / "nothing-here").list_notes() == []


def test_get_unknown_record(store):
    assert store.get_note(uuid.uuid4()) is None


def test_delete_removes_record(store):
    note = store.insert_note("N1", "t", "c")
    store.delete_note(note)
    assert store.get_note(note.object_id) is None


def test_delete_missing_record_raises(store):
    note = store.insert_note("N1", "t", "c")
    store.delete_note(note)
    with pytest.raises(LocalStoreError):
        store.delete_note(note)


def test_insert_failure_raises_store_error(tmp_path):
    (tmp_path / "notes").write_text("x", encoding="utf-8")
    with pytest.raises(LocalStoreError):
        NotesStore(tmp_path).insert_note("N1", "t", "c")
