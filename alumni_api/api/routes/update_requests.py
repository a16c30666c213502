import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from alumni_api.schemas.update_requests import UpdateRequestCreate, UpdateRequestCreated
from alumni_api.services.errors import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from alumni_api.services.moderation import UpdateRequestService, get_update_request_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/update-request", response_model=UpdateRequestCreated, status_code=status.HTTP_201_CREATED)
async def submit_update_request(
    payload: UpdateRequestCreate,
    background_tasks: BackgroundTasks,
    service: UpdateRequestService = Depends(get_update_request_service),
) -> UpdateRequestCreated:
    try:
        request = await service.submit(
            roll_number=payload.roll_number,
            old_data=payload.old_data,
            new_data=payload.new_data,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        logger.exception("update request intake failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc

    background_tasks.add_task(service.notify_submission, request)
    return UpdateRequestCreated(
        message="Update request submitted for review",
        request_id=request["id"],
    )
