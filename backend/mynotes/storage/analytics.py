import json
import logging
import os
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

log = logging.getLogger(__name__)


class NoteEventType(str, Enum):
    ADD_NOTE = "AddNote"
    DELETE_NOTE = "DeleteNote"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _journal_path(base_dir: Path) -> Path:
    return base_dir / "analytics" / "events.log"


def _endpoint_path(base_dir: Path) -> Path:
    return base_dir / "analytics" / "endpoint_id"


def load_endpoint_id(base_dir: Path) -> str:
    """Return this install's endpoint id, generating and saving one on first use."""
    path = _endpoint_path(base_dir)
    try:
        if path.exists():
            existing = path.read_text(encoding="utf-8").strip()
            if existing:
                return existing
        endpoint_id = str(uuid.uuid4())
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(endpoint_id, encoding="utf-8")
        tmp_path.replace(path)
        return endpoint_id
    except OSError as exc:
        log.warning("Could not persist analytics endpoint id, using a temporary one: %s", exc)
        return str(uuid.uuid4())


@dataclass
class Event:
    event_type: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=_utc_now_iso)
    attributes: dict[str, str] = field(default_factory=dict)

    def add_attribute(self, key: str, value: str) -> None:
        self.attributes[key] = value

    def to_json_line(self) -> str:
        obj = {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "ts": self.timestamp,
            "attributes": self.attributes,
        }
        return json.dumps(obj, ensure_ascii=False)

    @classmethod
    def from_json_line(cls, line: str) -> "Event":
        raw = json.loads(line)
        return cls(
            event_type=raw["event_type"],
            event_id=raw["event_id"],
            timestamp=raw["ts"],
            attributes=dict(raw.get("attributes") or {}),
        )

    def to_pinpoint(self) -> dict[str, Any]:
        return {
            "EventType": self.event_type,
            "Timestamp": self.timestamp,
            "Attributes": dict(self.attributes),
        }


class AnalyticsClient:
    """Records usage events locally and submits them to Amazon Pinpoint.

    ``record`` appends to a durable journal; ``submit_events`` pushes the
    journal in one ``put_events`` call and keeps only the events Pinpoint
    did not accept. Without a Pinpoint application nothing is journaled.
    Neither call raises on storage or delivery problems.
    """

    def __init__(
        self,
        base_dir: Path,
        pinpoint: Any = None,
        app_id: Optional[str] = None,
        endpoint_id: Optional[str] = None,
    ):
        self.base_dir = base_dir
        self.pinpoint = pinpoint
        self.app_id = app_id
        if endpoint_id is None and self.enabled:
            endpoint_id = load_endpoint_id(base_dir)
        self.endpoint_id = endpoint_id
        self._lock = threading.Lock()

    @classmethod
    def connect(
        cls, base_dir: Path, app_id: Optional[str], endpoint_id: Optional[str], region_name: str
    ) -> "AnalyticsClient":
        pinpoint = boto3.client("pinpoint", region_name=region_name) if app_id else None
        return cls(base_dir, pinpoint=pinpoint, app_id=app_id, endpoint_id=endpoint_id)

    @property
    def enabled(self) -> bool:
        return self.pinpoint is not None and bool(self.app_id)

    def create_event(self, event_type: str) -> Event:
        return Event(event_type=event_type)

    def record(self, event: Event) -> None:
        if not self.enabled:
            log.debug("Analytics disabled, dropping %s event", event.event_type)
            return
        path = _journal_path(self.base_dir)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                # append-only, durable write
                with path.open("a", encoding="utf-8") as f:
                    f.write(event.to_json_line() + "\n")
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as exc:
                log.warning("Could not record %s analytics event: %s", event.event_type, exc)

    def pending_events(self) -> list[Event]:
        path = _journal_path(self.base_dir)
        if not path.exists():
            return []
        out: list[Event] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                out.append(Event.from_json_line(line))
            except (ValueError, KeyError):
                continue
        return out

    def _rewrite_journal(self, events: list[Event]) -> None:
        path = _journal_path(self.base_dir)
        if not events:
            path.unlink(missing_ok=True)
            return
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            for e in events:
                f.write(e.to_json_line() + "\n")
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)

    def _rejected(self, events: list[Event], response: dict[str, Any]) -> list[Event]:
        results = (
            response.get("EventsResponse", {})
            .get("Results", {})
            .get(self.endpoint_id, {})
            .get("EventsItemResponse", {})
        )
        rejected = []
        for e in events:
            item = results.get(e.event_id)
            if item is not None and item.get("StatusCode") != 202:
                log.warning(
                    "Pinpoint rejected %s event %s: %s %s",
                    e.event_type, e.event_id, item.get("StatusCode"), item.get("Message"),
                )
                rejected.append(e)
        return rejected

    def submit_events(self) -> int:
        """Send pending events; return how many Pinpoint accepted."""
        if not self.enabled:
            log.debug("Analytics submission skipped: no Pinpoint application configured")
            return 0

        with self._lock:
            try:
                events = self.pending_events()
            except OSError as exc:
                log.warning("Could not read analytics journal: %s", exc)
                return 0
            if not events:
                return 0
            request = {
                "BatchItem": {
                    self.endpoint_id: {
                        "Endpoint": {},
                        "Events": {e.event_id: e.to_pinpoint() for e in events},
                    }
                }
            }
            try:
                response = self.pinpoint.put_events(ApplicationId=self.app_id, EventsRequest=request)
            except (BotoCoreError, ClientError) as exc:
                log.warning("Analytics submission failed, %d events kept: %s", len(events), exc)
                return 0

            rejected = self._rejected(events, response or {})
            try:
                self._rewrite_journal(rejected)
            except OSError as exc:
                log.warning("Could not update analytics journal: %s", exc)

        accepted = len(events) - len(rejected)
        log.info("Submitted %d analytics events", accepted)
        return accepted
