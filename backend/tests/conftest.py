import importlib
import re

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from mynotes.services.notes_repository import NotesRepository
from mynotes.storage.analytics import AnalyticsClient
from mynotes.storage.notes_store import NotesStore
from mynotes.storage.remote_store import NotesTable, RemoteDispatcher
from mynotes.utils.identity import StaticIdentity


def _client_error(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "boom"}},
        operation,
    )


class FakeDynamoTable:
    """Stands in for a boto3 ``Table``; understands the expressions NotesTable builds."""

    def __init__(self, page_size: int = 100):
        self.items: dict[tuple, dict] = {}
        self.calls: list[tuple[str, dict]] = []
        self.fail_on: set[str] = set()
        self.page_size = page_size

    def update_item(self, **kwargs):
        self.calls.append(("UpdateItem", kwargs))
        if "UpdateItem" in self.fail_on:
            raise _client_error("UpdateItem")
        key = kwargs["Key"]
        item = self.items.setdefault((key["userId"], key["noteId"]), dict(key))
        names = kwargs.get("ExpressionAttributeNames", {})
        values = kwargs.get("ExpressionAttributeValues", {})
        expr = kwargs.get("UpdateExpression", "")
        set_match = re.search(r"SET (.*?)(?: REMOVE |$)", expr)
        if set_match:
            for part in set_match.group(1).split(", "):
                name, value = part.split(" = ")
                item[names[name]] = values[value]
        remove_match = re.search(r"REMOVE (.*)$", expr)
        if remove_match:
            for name in remove_match.group(1).split(", "):
                item.pop(names[name], None)

    def delete_item(self, **kwargs):
        self.calls.append(("DeleteItem", kwargs))
        if "DeleteItem" in self.fail_on:
            raise _client_error("DeleteItem")
        key = kwargs["Key"]
        self.items.pop((key["userId"], key["noteId"]), None)

    def query(self, **kwargs):
        self.calls.append(("Query", kwargs))
        if "Query" in self.fail_on:
            raise _client_error("Query")
        user_id = kwargs["KeyConditionExpression"].get_expression()["values"][1]
        matching = sorted(
            (item for (uid, _), item in self.items.items() if uid == user_id),
            key=lambda i: i["noteId"],
        )
        start = 0
        if "ExclusiveStartKey" in kwargs:
            start = int(kwargs["ExclusiveStartKey"]["offset"])
        page = matching[start : start + self.page_size]
        resp = {"Items": page, "Count": len(page)}
        if start + self.page_size < len(matching):
            resp["LastEvaluatedKey"] = {"offset": start + self.page_size}
        return resp


class FakePinpoint:
    def __init__(self):
        self.requests: list[dict] = []
        self.fail = False
        # event types answered with a 400 item status
        self.reject_types: set[str] = set()

    def put_events(self, **kwargs):
        if self.fail:
            raise ClientError({"Error": {"Code": "BadRequestException", "Message": "nope"}}, "PutEvents")
        self.requests.append(kwargs)
        results = {}
        for endpoint_id, batch in kwargs["EventsRequest"]["BatchItem"].items():
            items = {}
            for event_id, event in batch["Events"].items():
                if event["EventType"] in self.reject_types:
                    items[event_id] = {"StatusCode": 400, "Message": "Invalid event"}
                else:
                    items[event_id] = {"StatusCode": 202, "Message": "Accepted"}
            results[endpoint_id] = {
                "EndpointItemResponse": {"StatusCode": 202, "Message": "Accepted"},
                "EventsItemResponse": items,
            }
        return {"EventsResponse": {"Results": results}}

    def submitted_events(self) -> list[dict]:
        out = []
        for req in self.requests:
            for batch in req["EventsRequest"]["BatchItem"].values():
                out.extend(batch["Events"].values())
        return out


@pytest.fixture()
def dynamo_table():
    return FakeDynamoTable()


@pytest.fixture()
def pinpoint():
    return FakePinpoint()


@pytest.fixture()
def store(tmp_path):
    return NotesStore(tmp_path)


@pytest.fixture()
def analytics(tmp_path, pinpoint):
    return AnalyticsClient(tmp_path, pinpoint=pinpoint, app_id="app-123", endpoint_id="device-1")


@pytest.fixture()
def dispatcher():
    d = RemoteDispatcher(max_workers=2)
    yield d
    d.shutdown()


@pytest.fixture()
def repo(store, dynamo_table, analytics, dispatcher):
    return NotesRepository(
        store=store,
        table=NotesTable(dynamo_table),
        analytics=analytics,
        identity=StaticIdentity("us-east-1:user-a"),
        dispatcher=dispatcher,
    )


@pytest.fixture()
def client(tmp_path, monkeypatch, dynamo_table, pinpoint):
    # isolate data dir per test
    monkeypatch.setenv("APP_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.delenv("PINPOINT_APP_ID", raising=False)

    # reload modules so that api/notes.py picks up new env vars
    import mynotes.api.notes
    import mynotes.main
    importlib.reload(mynotes.api.notes)
    importlib.reload(mynotes.main)

    notes_api = mynotes.api.notes
    monkeypatch.setattr(notes_api, "table", NotesTable(dynamo_table))
    monkeypatch.setattr(
        notes_api,
        "analytics",
        AnalyticsClient(tmp_path, pinpoint=pinpoint, app_id="app-123", endpoint_id="device-1"),
    )

    # leaving the context runs the lifespan shutdown, which joins the workers
    with TestClient(mynotes.main.app) as c:
        yield c
