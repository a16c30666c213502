from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from alumni_api.main import app
from alumni_api.services.errors import RepositoryUnavailableError
from alumni_api.services.repository import get_repository
from alumni_api.services.store import InMemoryRepository

ALUMNI = [
    {
        "rollNumber": "IMT2015001",
        "name": "Asha Verma",
        "programName": "MTECH",
        "serialNo": "4",
        "yearOfEntry": 2015,
        "lastOrganization": "A+B Labs",
        "lastPosition": "Staff Engineer",
        "currentLocationIndia": "New Delhi",
        "country": "India",
        "email": "asha@example.com",
        "phone": "+91-99999-00000",
        "linkedIn": "https://linkedin.example/asha",
    },
    {
        "rollNumber": "BCS2016002",
        "name": "Rahul Asha",
        "programName": "BCS",
        "serialNo": "9",
        "yearOfEntry": 2016,
        "lastOrganization": "AAB Systems",
        "currentLocationIndia": "Adelaide Road, Pune",
        "country": "India",
    },
    {
        "rollNumber": "X2017003",
        "name": "Asha Nair",
        "programName": "Unknown Program",
        "serialNo": "1",
        "yearOfEntry": 2017,
        "lastOrganization": "Acme",
        "currentOverseasLocation": "Delft",
        "country": "Netherlands",
    },
]


@pytest.fixture
def search_client() -> TestClient:
    repository = InMemoryRepository(ALUMNI)
    app.dependency_overrides[get_repository] = lambda: repository

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def test_search_without_filters_returns_nothing(search_client: TestClient) -> None:
    response = search_client.get("/search")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 0
    assert body["data"] == []
    assert body["totalCount"] == 0
    assert body["hasMore"] is False


def test_search_ranks_by_program_and_projects_public_fields(search_client: TestClient) -> None:
    response = search_client.get("/search", params={"name": "asha"})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    assert body["totalCount"] == 3
    assert [row["rollNumber"] for row in body["data"]] == ["BCS2016002", "IMT2015001", "X2017003"]
    first = body["data"][1]
    assert first["lastOrganization"] == "A+B Labs"
    assert "email" not in first
    assert "phone" not in first
    assert "linkedIn" not in first


def test_search_treats_metacharacters_literally(search_client: TestClient) -> None:
    response = search_client.get("/search", params={"lastOrganization": "A+B"})

    body = response.json()
    assert [row["rollNumber"] for row in body["data"]] == ["IMT2015001"]


def test_company_is_an_alias_for_last_organization(search_client: TestClient) -> None:
    response = search_client.get("/search", params={"company": "acme"})

    assert [row["rollNumber"] for row in response.json()["data"]] == ["X2017003"]


def test_filters_are_combined_with_and(search_client: TestClient) -> None:
    response = search_client.get("/search", params={"name": "asha", "country": " india ", "city": "del"})

    assert [row["rollNumber"] for row in response.json()["data"]] == ["IMT2015001"]


def test_city_matches_overseas_location(search_client: TestClient) -> None:
    response = search_client.get("/search", params={"city": "delft"})

    assert [row["rollNumber"] for row in response.json()["data"]] == ["X2017003"]


def test_invalid_year_is_ignored_not_rejected(search_client: TestClient) -> None:
    response = search_client.get("/search", params={"yearOfEntry": "soon"})

    assert response.status_code == 200
    assert response.json()["count"] == 0

    response = search_client.get("/search", params={"yearOfEntry": "2016"})
    assert [row["rollNumber"] for row in response.json()["data"]] == ["BCS2016002"]


def test_search_paginates_with_has_more(search_client: TestClient) -> None:
    first = search_client.get("/search", params={"name": "asha", "limit": "2"}).json()
    second = search_client.get("/search", params={"name": "asha", "limit": "2", "page": "2"}).json()

    assert first["count"] == 2
    assert first["page"] == 1
    assert first["limit"] == 2
    assert first["hasMore"] is True
    assert second["count"] == 1
    assert second["hasMore"] is False
    assert second["totalCount"] == 3


def test_search_clamps_limit(search_client: TestClient) -> None:
    body = search_client.get("/search", params={"name": "asha", "limit": "1000", "page": "-2"}).json()

    assert body["limit"] == 50
    assert body["page"] == 1


def test_search_store_failure_is_generic_503() -> None:
    class BrokenRepository(InMemoryRepository):
        async def search_alumni(self, query):
            raise RepositoryUnavailableError("connection refused to db-primary:5432")

    app.dependency_overrides[get_repository] = lambda: BrokenRepository()
    try:
        with TestClient(app) as client:
            response = client.get("/search", params={"name": "asha"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json() == {"detail": "store unavailable"}


def test_search_returns_records_with_fractional_values() -> None:
    repository = InMemoryRepository(
        [{"rollNumber": "IMG2019004", "name": "Asha Iyer", "serialNo": 1.5, "yearOfEntry": 2019.5}]
    )
    app.dependency_overrides[get_repository] = lambda: repository
    try:
        with TestClient(app) as client:
            response = client.get("/search", params={"name": "asha"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    row = response.json()["data"][0]
    assert row["serialNo"] == 1.5
    assert row["yearOfEntry"] == 2019.5
