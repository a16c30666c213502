import logging

from fastapi import APIRouter, Depends, HTTPException, status

from alumni_api.services.errors import RepositoryUnavailableError
from alumni_api.services.repository import get_repository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health(repository=Depends(get_repository)) -> dict[str, str]:
    try:
        await repository.ping()
    except RepositoryUnavailableError as exc:
        logger.exception("health check failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc
    return {"status": "ok", "store": "up"}
