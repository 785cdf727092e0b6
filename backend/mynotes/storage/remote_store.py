"""DynamoDB-backed remote copy of the user's notes.

Items are keyed by ``userId`` (partition key, the caller's identity) and
``noteId`` (sort key). Calls into the table are plain blocking boto3 calls;
``RemoteDispatcher`` runs them on a thread pool so the repository can fire
and forget.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional

import boto3
from boto3.dynamodb.conditions import Key

log = logging.getLogger(__name__)

PARTITION_KEY = "userId"
SORT_KEY = "noteId"


def epoch_now() -> Decimal:
    # DynamoDB resources reject float, so timestamps travel as Decimal
    return Decimal(str(round(time.time(), 6)))


class SaveBehavior(str, Enum):
    # set present attributes, remove the ones left as None
    UPDATE = "update"
    # set present attributes, leave the ones left as None untouched
    UPDATE_SKIP_NULL_ATTRIBUTES = "update_skip_null_attributes"


@dataclass(frozen=True)
class RemoteNote:
    user_id: Optional[str]
    note_id: str
    title: Optional[str] = None
    content: Optional[str] = None
    creation_date: Optional[Decimal] = None
    updated_date: Optional[Decimal] = None

    def key(self) -> dict[str, Any]:
        return {PARTITION_KEY: self.user_id, SORT_KEY: self.note_id}

    def attributes(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "creationDate": self.creation_date,
            "updatedDate": self.updated_date,
        }

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "RemoteNote":
        return cls(
            user_id=item.get(PARTITION_KEY),
            note_id=item[SORT_KEY],
            title=item.get("title"),
            content=item.get("content"),
            creation_date=item.get("creationDate"),
            updated_date=item.get("updatedDate"),
        )


def _update_arguments(note: RemoteNote, behavior: SaveBehavior) -> dict[str, Any]:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    set_parts: list[str] = []
    remove_parts: list[str] = []

    for i, (attr, value) in enumerate(note.attributes().items()):
        placeholder = f"#a{i}"
        if value is None:
            if behavior is SaveBehavior.UPDATE:
                names[placeholder] = attr
                remove_parts.append(placeholder)
            continue
        names[placeholder] = attr
        values[f":v{i}"] = value
        set_parts.append(f"{placeholder} = :v{i}")

    args: dict[str, Any] = {"Key": note.key()}
    clauses = []
    if set_parts:
        clauses.append("SET " + ", ".join(set_parts))
    if remove_parts:
        clauses.append("REMOVE " + ", ".join(remove_parts))
    if clauses:
        args["UpdateExpression"] = " ".join(clauses)
        args["ExpressionAttributeNames"] = names
    if values:
        args["ExpressionAttributeValues"] = values
    return args


class NotesTable:
    """Thin mapper over a boto3 DynamoDB ``Table`` resource."""

    def __init__(self, table: Any):
        self.table = table

    @classmethod
    def connect(cls, table_name: str, region_name: str) -> "NotesTable":
        resource = boto3.resource("dynamodb", region_name=region_name)
        return cls(resource.Table(table_name))

    def save(self, note: RemoteNote, behavior: SaveBehavior = SaveBehavior.UPDATE) -> None:
        # update_item upserts, so this covers both new and existing items
        self.table.update_item(**_update_arguments(note, behavior))

    def remove(self, user_id: Optional[str], note_id: str) -> None:
        self.table.delete_item(Key={PARTITION_KEY: user_id, SORT_KEY: note_id})

    def query_by_user(self, user_id: Optional[str]) -> list[RemoteNote]:
        kwargs: dict[str, Any] = {"KeyConditionExpression": Key(PARTITION_KEY).eq(user_id)}
        out: list[RemoteNote] = []
        while True:
            resp = self.table.query(**kwargs)
            out.extend(RemoteNote.from_item(item) for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return out
            kwargs["ExclusiveStartKey"] = last_key


class RemoteDispatcher:
    """Runs remote calls on a worker pool and logs how each one ended.

    Completion handlers only log. Nothing is reported back to whoever
    submitted the call.
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="remote-notes")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def submit(
        self,
        func: Callable[[], Any],
        *,
        on_success: Callable[[Any], None],
        error_message: str,
    ) -> None:
        def _run() -> None:
            # completion runs on the worker so drain() also waits for the log line
            try:
                result = func()
            except Exception as exc:
                log.error("%s: %s", error_message, exc)
                return
            on_success(result)

        future = self._executor.submit(_run)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until every call submitted so far has completed."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
