from fastapi import APIRouter, Depends, HTTPException, Path, status

from jobboard.schemas.interests import EmployeeApplicationsOut, HiredJobOut
from jobboard.schemas.jobs import RecommendedJobOut
from jobboard.services.aggregate import MAX_RECORD_ID
from jobboard.services.repository import RepositoryNotFoundError, RepositoryUnavailableError, get_repository

router = APIRouter()


@router.get("/{employee_id}/applications", response_model=EmployeeApplicationsOut)
async def list_employee_applications(
    employee_id: int = Path(gt=0, le=MAX_RECORD_ID),
    repository=Depends(get_repository),
) -> EmployeeApplicationsOut:
    try:
        views = await repository.list_employee_applications(employee_id=employee_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return EmployeeApplicationsOut(**views)


@router.get("/{employee_id}/hired-jobs", response_model=list[HiredJobOut])
async def list_employee_hired_jobs(
    employee_id: int = Path(gt=0, le=MAX_RECORD_ID),
    repository=Depends(get_repository),
) -> list[HiredJobOut]:
    try:
        rows = await repository.list_employee_hired_jobs(employee_id=employee_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [HiredJobOut(**row) for row in rows]


@router.get("/{employee_id}/recommended-jobs", response_model=list[RecommendedJobOut])
async def list_recommended_jobs(
    employee_id: int = Path(gt=0, le=MAX_RECORD_ID),
    repository=Depends(get_repository),
) -> list[RecommendedJobOut]:
    try:
        rows = await repository.recommend_jobs(employee_id=employee_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [RecommendedJobOut(**row) for row in rows]
