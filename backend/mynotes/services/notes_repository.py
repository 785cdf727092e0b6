"""
Note repository: local store, remote table and analytics behind one object.

Each method talks to exactly one store. Local calls run on the caller's
thread; remote calls go through the dispatcher and only log how they ended.
Nothing ties the local and remote copies together beyond the shared note id.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from mynotes.storage.analytics import AnalyticsClient, NoteEventType
from mynotes.storage.notes_store import LocalStoreError, Note, NotesStore, _utc_now_iso
from mynotes.storage.remote_store import (
    NotesTable,
    RemoteDispatcher,
    RemoteNote,
    SaveBehavior,
    epoch_now,
)
from mynotes.utils.identity import IdentityProvider

log = logging.getLogger(__name__)

EMPTY_TITLE = " "
EMPTY_CONTENT = " "


class NotesRepository:
    def __init__(
        self,
        store: NotesStore,
        table: NotesTable,
        analytics: AnalyticsClient,
        identity: IdentityProvider,
        dispatcher: RemoteDispatcher,
    ):
        self.store = store
        self.table = table
        self.analytics = analytics
        self.identity = identity
        self.dispatcher = dispatcher
        # records touched through this repository, oldest first
        self.recent_notes: list[Note] = []

    # --- local store ---

    def insert(self, title: str, content: str) -> str:
        note_id = str(uuid.uuid4()).upper()
        log.info("New note being created: %s", note_id)
        try:
            note = self.store.insert_note(
                note_id=note_id,
                title=title,
                content=content,
                creation_date=_utc_now_iso(),
            )
            self.recent_notes.append(note)
        except LocalStoreError as exc:
            log.error("Could not save note. %s", exc)
        log.info("New note saved: %s", note_id)

        self.send_note_event(note_id, NoteEventType.ADD_NOTE)
        return note_id

    def update(self, note_id: str, title: str, content: str) -> Optional[Note]:
        """Write a fresh record carrying ``note_id``.

        Existing records with the same id are left as they are, so every
        update adds a row to the local store.
        """
        try:
            note = self.store.insert_note(
                note_id=note_id,
                title=title,
                content=content,
                updated_date=_utc_now_iso(),
            )
        except LocalStoreError as exc:
            log.error("Could not save note. %s", exc)
            return None
        self.recent_notes.append(note)
        log.info("Updated note with note id: %s", note_id)
        return note

    def delete(self, store: NotesStore, note: Note, note_id: str) -> None:
        try:
            store.delete_note(note)
        except LocalStoreError as exc:
            log.critical("Unresolved local delete error %s", exc)
            raise SystemExit(f"Unresolved local delete error {exc}") from exc
        log.info("Deleted local note id: %s", note_id)
        self.send_note_event(note_id, NoteEventType.DELETE_NOTE)

    def send_note_event(self, note_id: str, event_type: NoteEventType) -> None:
        event = self.analytics.create_event(event_type.value)
        event.add_attribute("NoteId", note_id)
        self.analytics.record(event)
        self.analytics.submit_events()

    # --- remote table ---

    def insert_remote(self, note_id: str, title: str, content: str) -> str:
        # title and content are not forwarded; the first remote copy is blank
        item = RemoteNote(
            user_id=self.identity.identity_id,
            note_id=note_id,
            title=EMPTY_TITLE,
            content=EMPTY_CONTENT,
            creation_date=epoch_now(),
        )
        self.dispatcher.submit(
            lambda: self.table.save(item),
            on_success=lambda _: log.info("New note was saved to remote table."),
            error_message="Remote save error on new note",
        )
        return item.note_id

    def update_remote(self, note_id: str, title: str, content: str) -> None:
        item = RemoteNote(
            user_id=self.identity.identity_id,
            note_id=note_id,
            title=title if title else EMPTY_TITLE,
            content=content if content else EMPTY_CONTENT,
            updated_date=epoch_now(),
        )
        self.dispatcher.submit(
            lambda: self.table.save(item, SaveBehavior.UPDATE_SKIP_NULL_ATTRIBUTES),
            on_success=lambda _: log.info("Existing note updated in remote table."),
            error_message="Remote save error on note update",
        )

    def delete_remote(self, note_id: str) -> None:
        user_id = self.identity.identity_id
        self.dispatcher.submit(
            lambda: self.table.remove(user_id, note_id),
            on_success=lambda _: log.info("A note was deleted in remote table."),
            error_message="Remote delete error",
        )

    def query_all_remote_for_user(self) -> None:
        user_id = self.identity.identity_id
        self.dispatcher.submit(
            lambda: self.table.query_by_user(user_id),
            on_success=_log_remote_notes,
            error_message="Remote query request failed",
        )

    def drain(self, timeout: Optional[float] = None) -> None:
        self.dispatcher.drain(timeout=timeout)


def _log_remote_notes(notes: list[RemoteNote]) -> None:
    log.info("Found [%d] notes", len(notes))
    for n in notes:
        log.info("NoteId: %s Title: %s Content: %s", n.note_id, n.title, n.content)
