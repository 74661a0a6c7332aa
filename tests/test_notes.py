"""Tests for note operations."""
import pytest

from my_notes.api.core import NoteRead, UserRead
from my_notes.api.exceptions import DeleteFailed, NoteNotFound, UserNotFound


def test_create_note_defaults(service, user):
    """Verify a new note is empty, synced and owned by the user."""
    note = service.create_note(user)

    notes = service.get_all_notes()
    assert notes == [note]
    assert notes[0].text == ""
    assert notes[0].is_synced_with_cloud is True
    assert notes[0].user_id == user.id


def test_create_note_rejects_stale_owner(service, user):
    """Verify create_note raises UserNotFound when the owner id does not match."""
    stale = UserRead(id=user.id + 100, email=user.email)

    with pytest.raises(UserNotFound):
        service.create_note(stale)
    assert service.get_all_notes() == []
    assert service.cached_notes == ()


def test_create_note_for_deleted_owner(service, user):
    """Verify create_note raises UserNotFound once the owner is gone."""
    service.delete_user(user.email)

    with pytest.raises(UserNotFound):
        service.create_note(user)


def test_get_note(service, user):
    """Verify get_note reads the stored note."""
    note = service.create_note(user)

    fetched = service.get_note(note.id)
    assert fetched == note
    assert fetched.text == ""


def test_get_missing_note(service):
    """Verify get_note raises NoteNotFound for an unknown id."""
    with pytest.raises(NoteNotFound):
        service.get_note(42)


def test_get_note_moves_note_to_end_of_cache(service, user):
    """Verify get_note refreshes the cached entry in place of the old one."""
    first = service.create_note(user)
    second = service.create_note(user)

    service.get_note(first.id)

    assert [n.id for n in service.cached_notes] == [second.id, first.id]


def test_update_note(service, user):
    """Verify update_note stores the text and clears the synced flag."""
    note = service.create_note(user)
    assert note.is_synced_with_cloud

    updated = service.update_note(note, "hello")

    assert updated.text == "hello"
    assert updated.is_synced_with_cloud is False
    fetched = service.get_note(note.id)
    assert fetched.text == "hello"
    assert fetched.is_synced_with_cloud is False


def test_update_note_only_touches_that_note(service, user):
    """Verify update_note leaves other notes unchanged."""
    first = service.create_note(user)
    second = service.create_note(user)

    service.update_note(first, "changed")

    other = service.get_note(second.id)
    assert other.text == ""
    assert other.is_synced_with_cloud is True


def test_update_missing_note(service, user):
    """Verify update_note raises NoteNotFound before writing anything."""
    existing = service.create_note(user)
    missing = NoteRead(id=existing.id + 1, user_id=user.id, text="", is_synced_with_cloud=True)

    with pytest.raises(NoteNotFound):
        service.update_note(missing, "nope")
    assert service.get_note(existing.id).text == ""


def test_update_replaces_cached_note(service, user):
    """Verify the cache holds the updated note."""
    note = service.create_note(user)

    service.update_note(note, "cached")

    assert len(service.cached_notes) == 1
    assert service.cached_notes[0].text == "cached"


def test_delete_note(service, user):
    """Verify delete_note removes the note from storage and cache."""
    note = service.create_note(user)

    service.delete_note(note.id)

    assert service.get_all_notes() == []
    assert service.cached_notes == ()
    with pytest.raises(NoteNotFound):
        service.get_note(note.id)


def test_delete_missing_note(service):
    """Verify delete_note raises DeleteFailed when nothing was deleted."""
    with pytest.raises(DeleteFailed):
        service.delete_note(7)


def test_delete_all_notes(service, user):
    """Verify delete_all_notes returns the number of deleted rows."""
    for _ in range(3):
        service.create_note(user)

    assert service.delete_all_notes() == 3
    assert service.get_all_notes() == []
    assert service.cached_notes == ()


def test_delete_all_notes_when_empty(service):
    """Verify delete_all_notes on an empty table returns zero."""
    assert service.delete_all_notes() == 0


def test_deleting_user_orphans_notes(service, user):
    """Verify a user's notes remain readable after the user is deleted."""
    note = service.create_note(user)

    service.delete_user(user.email)

    orphan = service.get_note(note.id)
    assert orphan.user_id == user.id


def test_get_all_notes_does_not_touch_cache(service, user):
    """Verify get_all_notes leaves the cache alone."""
    service.create_note(user)
    cached = service.cached_notes

    service.get_all_notes()

    assert service.cached_notes == cached


def test_values_compare_by_id():
    """Verify value objects compare and hash by id only."""
    assert UserRead(id=1, email="a@x.com") == UserRead(id=1, email="b@x.com")
    assert UserRead(id=1, email="a@x.com") != UserRead(id=2, email="a@x.com")
    note_a = NoteRead(id=5, user_id=1, text="a", is_synced_with_cloud=True)
    note_b = NoteRead(id=5, user_id=2, text="b", is_synced_with_cloud=False)
    assert note_a == note_b
    assert len({note_a, note_b}) == 1


def test_note_from_row_mapping():
    """Verify a column mapping with 0/1 flag and NULL text maps to a note."""
    note = NoteRead.from_row({"id": 3, "user_id": 1, "text": None, "is_synced_with_cloud": 0})

    assert note.text == ""
    assert note.is_synced_with_cloud is False


def test_update_clears_synced_flag_on_unsynced_note(service, user):
    """Verify the synced flag stays cleared when an unsynced note is updated again."""
    note = service.update_note(service.create_note(user), "first")
    assert note.is_synced_with_cloud is False

    updated = service.update_note(note, "second")

    assert updated.text == "second"
    assert updated.is_synced_with_cloud is False
    assert service.get_note(note.id).is_synced_with_cloud is False
