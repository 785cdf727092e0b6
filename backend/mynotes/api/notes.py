from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from mynotes.core.config import Settings
from mynotes.models.notes import NoteCreate, NoteOut, NoteUpdate
from mynotes.services.notes_repository import NotesRepository
from mynotes.storage.analytics import AnalyticsClient
from mynotes.storage.notes_store import NotesStore
from mynotes.storage.remote_store import NotesTable, RemoteDispatcher
from mynotes.utils.identity import StaticIdentity, get_current_user

router = APIRouter(prefix="/notes", tags=["notes"])

settings = Settings.from_env()
store = NotesStore(settings.data_dir)
table = NotesTable.connect(settings.notes_table_name, settings.aws_region)
analytics = AnalyticsClient.connect(
    settings.data_dir,
    app_id=settings.pinpoint_app_id,
    endpoint_id=settings.pinpoint_endpoint_id,
    region_name=settings.aws_region,
)
dispatcher = RemoteDispatcher(max_workers=settings.remote_max_workers)


def get_repository(user_id: str = Depends(get_current_user)) -> NotesRepository:
    return NotesRepository(
        store=store,
        table=table,
        analytics=analytics,
        identity=StaticIdentity(user_id),
        dispatcher=dispatcher,
    )


@router.post("", response_model=NoteOut, status_code=201)
def create_note(payload: NoteCreate, repo: NotesRepository = Depends(get_repository)) -> NoteOut:
    note_id = repo.insert(payload.title, payload.content)
    repo.insert_remote(note_id, payload.title, payload.content)

    saved = [n for n in repo.recent_notes if n.note_id == note_id]
    if not saved:
        raise HTTPException(status_code=500, detail="Could not save note")
    return NoteOut(**saved[-1].to_dict())


@router.get("", response_model=list[NoteOut])
def list_notes(user_id: str = Depends(get_current_user)) -> list[NoteOut]:
    return [NoteOut(**n.to_dict()) for n in store.list_notes()]


@router.put("/{note_id}", response_model=NoteOut)
def update_note(note_id: str, payload: NoteUpdate, repo: NotesRepository = Depends(get_repository)) -> NoteOut:
    note = repo.update(note_id, payload.title, payload.content)
    repo.update_remote(note_id, payload.title, payload.content)
    if note is None:
        raise HTTPException(status_code=500, detail="Could not save note")
    return NoteOut(**note.to_dict())


@router.delete("/objects/{object_id}", status_code=204)
def delete_note(object_id: UUID, repo: NotesRepository = Depends(get_repository)) -> None:
    note = store.get_note(object_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")

    repo.delete(store, note, note.note_id)
    repo.delete_remote(note.note_id)
    return None


@router.post("/remote/query", status_code=status.HTTP_202_ACCEPTED)
def query_remote_notes(repo: NotesRepository = Depends(get_repository)) -> dict:
    repo.query_all_remote_for_user()
    return {"scheduled": True}
