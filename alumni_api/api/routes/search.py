import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alumni_api.schemas.alumni import AlumniSearchOut, AlumniSearchResponse
from alumni_api.services.errors import RepositoryUnavailableError
from alumni_api.services.repository import get_repository
from alumni_api.services.search import Page, build_search_query

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/search", response_model=AlumniSearchResponse)
async def search_alumni(
    name: str | None = Query(default=None),
    roll_number: str | None = Query(default=None, alias="rollNumber"),
    last_organization: str | None = Query(default=None, alias="lastOrganization"),
    company: str | None = Query(default=None),
    last_position: str | None = Query(default=None, alias="lastPosition"),
    college_clubs: str | None = Query(default=None, alias="collegeClubs"),
    nature_of_job: str | None = Query(default=None, alias="natureOfJob"),
    country: str | None = Query(default=None),
    city: str | None = Query(default=None),
    year_of_entry: str | None = Query(default=None, alias="yearOfEntry"),
    year_of_graduation: str | None = Query(default=None, alias="yearOfGraduation"),
    batch: str | None = Query(default=None),
    program_name: str | None = Query(default=None, alias="programName"),
    specialization: str | None = Query(default=None),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    repository=Depends(get_repository),
) -> AlumniSearchResponse:
    query = build_search_query(
        {
            "name": name,
            "rollNumber": roll_number,
            "lastOrganization": last_organization if last_organization and last_organization.strip() else company,
            "lastPosition": last_position,
            "collegeClubs": college_clubs,
            "natureOfJob": nature_of_job,
            "country": country,
            "city": city,
            "yearOfEntry": year_of_entry,
            "yearOfGraduation": year_of_graduation if year_of_graduation and year_of_graduation.strip() else batch,
            "programName": program_name,
            "specialization": specialization,
        },
        page=page,
        limit=limit,
    )

    if query.is_empty:
        result = Page(items=[], page=query.page, limit=query.limit, total_count=0)
    else:
        try:
            rows, total_count = await repository.search_alumni(query)
        except RepositoryUnavailableError as exc:
            logger.exception("alumni search failed")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc
        result = Page(items=rows, page=query.page, limit=query.limit, total_count=total_count)

    return AlumniSearchResponse(
        count=result.count,
        data=[AlumniSearchOut(**row) for row in result.items],
        page=result.page,
        limit=result.limit,
        total_count=result.total_count,
        has_more=result.has_more,
    )
