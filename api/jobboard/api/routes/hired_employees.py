from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobboard.schemas.interests import HiredEmployeePageOut, InterestStatus
from jobboard.services.aggregate import MAX_RECORD_ID
from jobboard.services.repository import RepositoryUnavailableError, RepositoryValidationError, get_repository

router = APIRouter()


@router.get("", response_model=HiredEmployeePageOut)
async def list_hired_employees(
    repository=Depends(get_repository),
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0, le=MAX_RECORD_ID),
    interest_status: InterestStatus | None = Query(default=None, alias="status"),
    job_profile_id: int | None = Query(default=None, gt=0, le=MAX_RECORD_ID),
    q: str | None = Query(default=None, max_length=200),
) -> HiredEmployeePageOut:
    try:
        page = await repository.list_hired_employees(
            limit=limit,
            offset=offset,
            status=interest_status,
            job_profile_id=job_profile_id,
            q=q,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return HiredEmployeePageOut(**page)
