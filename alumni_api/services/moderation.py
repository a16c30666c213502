from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx
from fastapi import Depends

from alumni_api.core.config import Settings, get_settings
from alumni_api.services.errors import RepositoryValidationError
from alumni_api.services.notifications import MailRelayNotifier, NotificationError, get_notifier
from alumni_api.services.repository import get_repository
from alumni_api.services.search import Page, parse_pagination
from alumni_api.services.workflow import UPDATE_REQUEST_LIST_FILTERS, render_update_request_notice

logger = logging.getLogger(__name__)


class UpdateRequestService:
    """Intake and reviewer decisions for proposed alumni corrections.

    Persistence and the pending-status guard live in the repository; this
    layer validates intake payloads and owns the best-effort notification.
    """

    def __init__(self, repository: Any, notifier: MailRelayNotifier, *, moderation_email: str) -> None:
        self.repository = repository
        self.notifier = notifier
        self.moderation_email = moderation_email

    async def submit(self, *, roll_number: Any, old_data: Any, new_data: Any) -> dict[str, Any]:
        if not isinstance(roll_number, str) or not roll_number.strip():
            raise RepositoryValidationError("rollNumber is required")
        if not isinstance(old_data, dict):
            raise RepositoryValidationError("oldData must be an object")
        if not isinstance(new_data, dict):
            raise RepositoryValidationError("newData must be an object")

        request = await self.repository.create_update_request(
            roll_number=roll_number.strip(),
            old_data=old_data,
            new_data=new_data,
        )
        logger.info("update request submitted id=%s roll_number=%s", request["id"], request["roll_number"])
        return request

    async def notify_submission(self, request: Mapping[str, Any]) -> None:
        subject, body = render_update_request_notice(request)
        try:
            await self.notifier.send(recipient=self.moderation_email, subject=subject, body=body)
        except (NotificationError, httpx.HTTPError):
            logger.exception("update request notification failed id=%s", request["id"])

    async def list_requests(self, *, status: str | None, page: Any, limit: Any) -> Page[dict[str, Any]]:
        normalized_status = (status or "pending").strip().lower()
        if normalized_status not in UPDATE_REQUEST_LIST_FILTERS:
            raise RepositoryValidationError(
                "status must be one of: " + ", ".join(UPDATE_REQUEST_LIST_FILTERS),
            )
        parsed_page, parsed_limit = parse_pagination(page, limit)
        rows, total_count = await self.repository.list_update_requests(
            status=None if normalized_status == "all" else normalized_status,
            limit=parsed_limit,
            offset=(parsed_page - 1) * parsed_limit,
        )
        return Page(items=rows, page=parsed_page, limit=parsed_limit, total_count=total_count)

    async def get_request(self, request_id: str) -> dict[str, Any]:
        return await self.repository.get_update_request(request_id=request_id)

    async def approve(
        self,
        *,
        request_id: str,
        reviewer: str,
        notes: str | None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        request, alumni = await self.repository.approve_update_request(
            request_id=request_id,
            reviewer=reviewer,
            notes=notes,
        )
        logger.info(
            "update request approved id=%s roll_number=%s reviewer=%s",
            request["id"],
            request["roll_number"],
            reviewer,
        )
        return request, alumni

    async def reject(self, *, request_id: str, reviewer: str, notes: str | None) -> dict[str, Any]:
        request = await self.repository.reject_update_request(
            request_id=request_id,
            reviewer=reviewer,
            notes=notes,
        )
        logger.info("update request rejected id=%s reviewer=%s", request["id"], reviewer)
        return request


def get_update_request_service(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    notifier: MailRelayNotifier = Depends(get_notifier),
) -> UpdateRequestService:
    return UpdateRequestService(repository, notifier, moderation_email=settings.moderation_email)
