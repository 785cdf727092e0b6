from typing import Optional

from pydantic import BaseModel, Field


class NoteCreate(BaseModel):
    title: str = Field(default="", max_length=200)
    content: str = Field(default="", max_length=50_000)


class NoteUpdate(BaseModel):
    title: str = Field(default="", max_length=200)
    content: str = Field(default="", max_length=50_000)


class NoteOut(BaseModel):
    object_id: str
    note_id: str
    title: str
    content: str
    creation_date: Optional[str] = None
    updated_date: Optional[str] = None
