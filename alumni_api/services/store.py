from __future__ import annotations

import copy
import itertools
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from alumni_api.services.errors import RepositoryNotFoundError, RepositoryValidationError
from alumni_api.services.search import SearchQuery, project_public_fields, rank_key
from alumni_api.services.workflow import merge_update_fields, validate_update_request_transition


class InMemoryRepository:
    """Process-local store for development and tests.

    Mirrors `PostgresRepository`. Every check-and-set below runs without an
    intervening await, so a decision on one request is atomic on the event loop.
    """

    def __init__(self, alumni: Iterable[dict[str, Any]] = ()) -> None:
        self.alumni: dict[str, dict[str, Any]] = {}
        self.update_requests: dict[str, dict[str, Any]] = {}
        self._submission_order: dict[str, int] = {}
        self._sequence = itertools.count()
        for document in alumni:
            self.add_alumni(document)

    def add_alumni(self, document: dict[str, Any]) -> None:
        roll_number = document.get("rollNumber")
        if not isinstance(roll_number, str) or not roll_number:
            raise RepositoryValidationError("rollNumber is required")
        if roll_number in self.alumni:
            raise RepositoryValidationError(f"duplicate rollNumber: {roll_number}")
        self.alumni[roll_number] = copy.deepcopy(document)

    async def connect(self, **_: Any) -> None:
        return None

    async def close(self) -> None:
        return None

    async def ping(self) -> None:
        return None

    async def search_alumni(self, query: SearchQuery) -> tuple[list[dict[str, Any]], int]:
        if query.is_empty:
            return [], 0
        matched = sorted(
            (document for document in self.alumni.values() if query.matches(document)),
            key=rank_key,
        )
        window = matched[query.skip : query.skip + query.limit]
        return [project_public_fields(document) for document in window], len(matched)

    async def create_update_request(
        self,
        *,
        roll_number: str,
        old_data: dict[str, Any],
        new_data: dict[str, Any],
    ) -> dict[str, Any]:
        if roll_number not in self.alumni:
            raise RepositoryNotFoundError("alumni record not found")

        request_id = str(uuid4())
        request = {
            "id": request_id,
            "roll_number": roll_number,
            "old_data": copy.deepcopy(old_data),
            "new_data": copy.deepcopy(new_data),
            "status": "pending",
            "submitted_at": datetime.now(timezone.utc),
            "reviewed_at": None,
            "reviewed_by": None,
            "notes": None,
        }
        self.update_requests[request_id] = request
        self._submission_order[request_id] = next(self._sequence)
        return copy.deepcopy(request)

    async def get_update_request(self, *, request_id: str) -> dict[str, Any]:
        return copy.deepcopy(self._require_update_request(request_id))

    async def list_update_requests(
        self,
        *,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[dict[str, Any]], int]:
        rows = [row for row in self.update_requests.values() if status is None or row["status"] == status]
        rows.sort(key=lambda row: (row["submitted_at"], self._submission_order[row["id"]]), reverse=True)
        return [copy.deepcopy(row) for row in rows[offset : offset + limit]], len(rows)

    async def approve_update_request(
        self,
        *,
        request_id: str,
        reviewer: str,
        notes: str | None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        request = self._require_update_request(request_id)
        validate_update_request_transition(from_status=request["status"], to_status="approved")

        document = self.alumni.get(request["roll_number"])
        if document is None:
            raise RepositoryNotFoundError("alumni record not found")

        merged = merge_update_fields(document, copy.deepcopy(request["new_data"]))
        self.alumni[request["roll_number"]] = merged
        self._finish(request, status="approved", reviewer=reviewer, notes=notes)
        return copy.deepcopy(request), copy.deepcopy(merged)

    async def reject_update_request(
        self,
        *,
        request_id: str,
        reviewer: str,
        notes: str | None,
    ) -> dict[str, Any]:
        request = self._require_update_request(request_id)
        validate_update_request_transition(from_status=request["status"], to_status="rejected")
        self._finish(request, status="rejected", reviewer=reviewer, notes=notes)
        return copy.deepcopy(request)

    def _require_update_request(self, request_id: str) -> dict[str, Any]:
        request = self.update_requests.get(request_id)
        if request is None:
            raise RepositoryNotFoundError("update request not found")
        return request

    @staticmethod
    def _finish(request: dict[str, Any], *, status: str, reviewer: str, notes: str | None) -> None:
        request["status"] = status
        request["reviewed_at"] = datetime.now(timezone.utc)
        request["reviewed_by"] = reviewer
        request["notes"] = notes
