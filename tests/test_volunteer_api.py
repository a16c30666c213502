from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

from alumni_api.core.config import get_settings
from alumni_api.main import app
from alumni_api.services.notifications import get_notifier
from alumni_api.services.repository import get_repository
from alumni_api.services.store import InMemoryRepository

TOKEN = "volunteer-secret"
AUTH = {"Authorization": f"Bearer {TOKEN}"}
RECORD = {
    "rollNumber": "IMT2015001",
    "name": "Asha Verma",
    "programName": "IMT",
    "lastPosition": "Engineer",
    "lastOrganization": "Acme",
    "email": "asha@example.com",
}


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    async def send(self, *, recipient: str, subject: str, body: str) -> None:
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository([RECORD])


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def volunteer_client(repository: InMemoryRepository, notifier: RecordingNotifier) -> TestClient:
    os.environ["ALUMNI_VOLUNTEER_TOKEN"] = TOKEN
    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    os.environ.pop("ALUMNI_VOLUNTEER_TOKEN", None)
    get_settings.cache_clear()


def _submit(client: TestClient, new_data: dict | None = None) -> str:
    response = client.post(
        "/update-request",
        json={
            "rollNumber": "IMT2015001",
            "oldData": {"lastPosition": "Engineer"},
            "newData": new_data or {"lastPosition": "CTO"},
        },
    )
    assert response.status_code == 201
    return response.json()["requestId"]


def test_submit_update_request_notifies_moderators(
    volunteer_client: TestClient,
    notifier: RecordingNotifier,
    repository: InMemoryRepository,
) -> None:
    response = volunteer_client.post(
        "/update-request",
        json={
            "rollNumber": "IMT2015001",
            "oldData": {"lastPosition": "Engineer"},
            "newData": {"lastPosition": "CTO"},
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["requestId"] in repository.update_requests
    assert len(notifier.sent) == 1
    assert "lastPosition" in notifier.sent[0]["body"]


def test_submit_requires_all_fields(volunteer_client: TestClient, repository: InMemoryRepository) -> None:
    response = volunteer_client.post("/update-request", json={"rollNumber": "IMT2015001", "newData": {}})

    assert response.status_code == 400
    assert repository.update_requests == {}


def test_submit_unknown_roll_number_is_404(volunteer_client: TestClient, repository: InMemoryRepository) -> None:
    response = volunteer_client.post(
        "/update-request",
        json={"rollNumber": "MISSING", "oldData": {}, "newData": {"name": "x"}},
    )

    assert response.status_code == 404
    assert repository.update_requests == {}


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer wrong"}, {"Authorization": TOKEN}, {"Authorization": "Basic abc"}],
)
def test_volunteer_routes_require_token(
    volunteer_client: TestClient,
    repository: InMemoryRepository,
    headers: dict[str, str],
) -> None:
    request_id = _submit(volunteer_client)

    listed = volunteer_client.get("/volunteer/update-requests", headers=headers)
    approved = volunteer_client.post(f"/volunteer/update-requests/{request_id}/approve", headers=headers)

    assert listed.status_code == 401
    assert approved.status_code == 401
    assert repository.update_requests[request_id]["status"] == "pending"
    assert repository.alumni["IMT2015001"]["lastPosition"] == "Engineer"


def test_volunteer_routes_unavailable_without_configured_token(
    repository: InMemoryRepository,
    notifier: RecordingNotifier,
) -> None:
    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: repository
    try:
        with TestClient(app) as client:
            response = client.get("/volunteer/update-requests", headers=AUTH)
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 503


def test_list_update_requests_defaults_to_pending(volunteer_client: TestClient) -> None:
    first = _submit(volunteer_client, {"name": "first"})
    second = _submit(volunteer_client, {"name": "second"})
    volunteer_client.post(f"/volunteer/update-requests/{first}/reject", headers=AUTH)

    pending = volunteer_client.get("/volunteer/update-requests", headers=AUTH).json()
    everything = volunteer_client.get(
        "/volunteer/update-requests",
        params={"status": "all", "limit": "1"},
        headers=AUTH,
    ).json()

    assert [row["id"] for row in pending["data"]] == [second]
    assert pending["totalCount"] == 1
    assert pending["hasMore"] is False
    assert everything["totalCount"] == 2
    assert everything["hasMore"] is True
    assert everything["data"][0]["id"] == second


def test_get_update_request_includes_changes(volunteer_client: TestClient) -> None:
    request_id = _submit(volunteer_client)

    response = volunteer_client.get(f"/volunteer/update-requests/{request_id}", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["rollNumber"] == "IMT2015001"
    assert body["status"] == "pending"
    assert body["changes"] == {"lastPosition": {"old": "Engineer", "new": "CTO"}}


def test_approve_applies_diff_once(volunteer_client: TestClient, repository: InMemoryRepository) -> None:
    request_id = _submit(volunteer_client)

    response = volunteer_client.post(
        f"/volunteer/update-requests/{request_id}/approve",
        json={"notes": "verified on LinkedIn"},
        headers={**AUTH, "X-Volunteer-Name": "ravi"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["alumni"] == {**RECORD, "lastPosition": "CTO"}
    stored = repository.update_requests[request_id]
    assert stored["status"] == "approved"
    assert stored["reviewed_at"] is not None
    assert stored["reviewed_by"] == "ravi"
    assert stored["notes"] == "verified on LinkedIn"

    again = volunteer_client.post(f"/volunteer/update-requests/{request_id}/approve", headers=AUTH)
    assert again.status_code == 409
    assert "already processed" in again.json()["detail"]


def test_reject_leaves_record_untouched(volunteer_client: TestClient, repository: InMemoryRepository) -> None:
    request_id = _submit(volunteer_client)

    response = volunteer_client.post(
        f"/volunteer/update-requests/{request_id}/reject",
        json={"notes": "not verifiable"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Update request rejected"}
    assert repository.alumni["IMT2015001"] == RECORD
    assert repository.update_requests[request_id]["status"] == "rejected"

    approve = volunteer_client.post(f"/volunteer/update-requests/{request_id}/approve", headers=AUTH)
    assert approve.status_code == 409
    assert repository.alumni["IMT2015001"] == RECORD


def test_unknown_request_is_404(volunteer_client: TestClient) -> None:
    response = volunteer_client.post("/volunteer/update-requests/does-not-exist/reject", headers=AUTH)

    assert response.status_code == 404


def test_approved_non_string_values_stay_searchable(volunteer_client: TestClient) -> None:
    request_id = _submit(volunteer_client, new_data={"lastPosition": 5, "serialNo": 12.5})
    approved = volunteer_client.post(f"/volunteer/update-requests/{request_id}/approve", headers=AUTH)
    assert approved.status_code == 200

    response = volunteer_client.get("/search", params={"name": "asha"})

    assert response.status_code == 200
    row = response.json()["data"][0]
    assert row["lastPosition"] == 5
    assert row["serialNo"] == 12.5
