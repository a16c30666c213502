import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alumni_api.core.auth import Principal
from alumni_api.core.security import get_volunteer_principal
from alumni_api.schemas.update_requests import (
    ApproveResponse,
    RejectResponse,
    ReviewDecisionRequest,
    UpdateRequestOut,
    UpdateRequestPage,
    UpdateRequestStatusFilter,
)
from alumni_api.services.errors import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from alumni_api.services.moderation import UpdateRequestService, get_update_request_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=UpdateRequestPage)
async def list_update_requests(
    principal: Principal = Depends(get_volunteer_principal),
    service: UpdateRequestService = Depends(get_update_request_service),
    request_status: UpdateRequestStatusFilter = Query(default="pending", alias="status"),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
) -> UpdateRequestPage:
    try:
        result = await service.list_requests(status=request_status, page=page, limit=limit)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        logger.exception("update request listing failed reviewer=%s", principal.subject)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc

    return UpdateRequestPage(
        data=[UpdateRequestOut(**row) for row in result.items],
        page=result.page,
        limit=result.limit,
        total_count=result.total_count,
        has_more=result.has_more,
    )


@router.get("/{request_id}", response_model=UpdateRequestOut)
async def get_update_request(
    request_id: str,
    principal: Principal = Depends(get_volunteer_principal),
    service: UpdateRequestService = Depends(get_update_request_service),
) -> UpdateRequestOut:
    try:
        row = await service.get_request(request_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        logger.exception("update request lookup failed id=%s reviewer=%s", request_id, principal.subject)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc
    return UpdateRequestOut(**row)


@router.post("/{request_id}/approve", response_model=ApproveResponse)
async def approve_update_request(
    request_id: str,
    payload: ReviewDecisionRequest | None = None,
    principal: Principal = Depends(get_volunteer_principal),
    service: UpdateRequestService = Depends(get_update_request_service),
) -> ApproveResponse:
    try:
        _, alumni = await service.approve(
            request_id=request_id,
            reviewer=principal.subject,
            notes=payload.notes if payload else None,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        logger.exception("update request approval failed id=%s", request_id)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc

    return ApproveResponse(message="Update request approved and applied", alumni=alumni)


@router.post("/{request_id}/reject", response_model=RejectResponse)
async def reject_update_request(
    request_id: str,
    payload: ReviewDecisionRequest | None = None,
    principal: Principal = Depends(get_volunteer_principal),
    service: UpdateRequestService = Depends(get_update_request_service),
) -> RejectResponse:
    try:
        await service.reject(
            request_id=request_id,
            reviewer=principal.subject,
            notes=payload.notes if payload else None,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        logger.exception("update request rejection failed id=%s", request_id)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc

    return RejectResponse(message="Update request rejected")
