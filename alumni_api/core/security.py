import hmac
import logging

from fastapi import Depends, Header, HTTPException, status

from alumni_api.core.auth import Principal, parse_bearer_token
from alumni_api.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_REVIEWER = "volunteer"


async def get_volunteer_principal(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_volunteer_name: str | None = Header(default=None, alias="X-Volunteer-Name"),
) -> Principal:
    if not settings.volunteer_token:
        logger.error("volunteer auth requested but ALUMNI_VOLUNTEER_TOKEN is not set")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="volunteer auth is not configured",
        )

    token = parse_bearer_token(authorization)
    if token is None:
        logger.warning("volunteer auth rejected: missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="volunteer auth requires bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(token.encode("utf-8"), settings.volunteer_token.encode("utf-8")):
        logger.warning("volunteer auth rejected: invalid bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid volunteer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    reviewer = (x_volunteer_name or "").strip() or DEFAULT_REVIEWER
    return Principal(subject=reviewer)
