import json
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class LocalStoreError(Exception):
    """Raised when the local store cannot write, read or remove a record."""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _notes_dir(base_dir: Path) -> Path:
    return base_dir / "notes"


def _record_path(base_dir: Path, object_id: uuid.UUID) -> Path:
    return _notes_dir(base_dir) / f"{object_id}.json"


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)


@dataclass(frozen=True)
class Note:
    object_id: uuid.UUID
    note_id: str
    title: str
    content: str
    creation_date: Optional[str] = None
    updated_date: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "object_id": str(self.object_id),
            "note_id": self.note_id,
            "title": self.title,
            "content": self.content,
            "creation_date": self.creation_date,
            "updated_date": self.updated_date,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Note":
        return cls(
            object_id=uuid.UUID(raw["object_id"]),
            note_id=raw["note_id"],
            title=raw["title"],
            content=raw["content"],
            creation_date=raw.get("creation_date"),
            updated_date=raw.get("updated_date"),
        )


class NotesStore:
    """On-device store of note records, one JSON file per managed record.

    Records are keyed by their own object id. ``note_id`` is an ordinary
    attribute, so nothing stops two records from sharing one.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir

    def insert_note(
        self,
        note_id: str,
        title: str,
        content: str,
        creation_date: Optional[str] = None,
        updated_date: Optional[str] = None,
    ) -> Note:
        note = Note(
            object_id=uuid.uuid4(),
            note_id=note_id,
            title=title,
            content=content,
            creation_date=creation_date,
            updated_date=updated_date,
        )
        try:
            _atomic_write_json(_record_path(self.base_dir, note.object_id), note.to_dict())
        except OSError as exc:
            raise LocalStoreError(f"Could not save note {note_id}: {exc}") from exc
        return note

    def get_note(self, object_id: uuid.UUID) -> Note | None:
        path = _record_path(self.base_dir, object_id)
        if not path.exists():
            return None
        try:
            return Note.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError) as exc:
            raise LocalStoreError(f"Could not read record {object_id}: {exc}") from exc

    def list_notes(self) -> list[Note]:
        notes_dir = _notes_dir(self.base_dir)
        if not notes_dir.exists():
            return []
        out: list[Note] = []
        for p in sorted(notes_dir.glob("*.json")):
            try:
                out.append(Note.from_dict(json.loads(p.read_text(encoding="utf-8"))))
            except (OSError, ValueError, KeyError):
                # skip records that are half-written or corrupted
                continue
        return out

    def find_by_note_id(self, note_id: str) -> list[Note]:
        return [n for n in self.list_notes() if n.note_id == note_id]

    def delete_note(self, note: Note) -> None:
        path = _record_path(self.base_dir, note.object_id)
        try:
            path.unlink()
        except OSError as exc:
            raise LocalStoreError(f"Could not delete record {note.object_id}: {exc}") from exc
