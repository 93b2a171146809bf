from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from jobboard.core.auth import Principal
from jobboard.core.security import get_admin_principal
from jobboard.schemas.candidates import RecommendedCandidateOut
from jobboard.schemas.interests import ApplicantOut
from jobboard.schemas.jobs import (
    JobCreateRequest,
    JobDeleteOut,
    JobOut,
    JobPageOut,
    JobSortField,
    JobStatus,
    JobStatusPatchRequest,
    JobUpdateRequest,
    JobVerificationPatchRequest,
    JobVerificationStatus,
    JobWriteRequest,
    RecordId,
    SortDirection,
)
from jobboard.services.aggregate import CHILD_COLLECTIONS, JOB_SCALAR_FIELDS, MAX_RECORD_ID, JobChildren
from jobboard.services.repository import (
    RepositoryCreditExhaustedError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryTransactionError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()

JobId = Annotated[int, Path(gt=0, le=MAX_RECORD_ID)]


def _split_payload(payload: JobWriteRequest) -> tuple[dict[str, Any], JobChildren]:
    data = payload.model_dump()
    fields = {name: data.get(name) for name in JOB_SCALAR_FIELDS}
    children = JobChildren.build(
        **{collection.attribute: data.get(collection.attribute) or [] for collection in CHILD_COLLECTIONS}
    )
    return fields, children


@router.get("", response_model=JobPageOut)
async def list_jobs(
    repository=Depends(get_repository),
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0, le=MAX_RECORD_ID),
    employer_id: int | None = Query(default=None, gt=0, le=MAX_RECORD_ID),
    job_profile_id: list[RecordId] | None = Query(default=None),
    job_status: list[JobStatus] | None = Query(default=None, alias="status"),
    verification_status: JobVerificationStatus | None = Query(default=None),
    expired: bool | None = Query(default=None),
    recent: bool = Query(default=False),
    skill_id: list[RecordId] | None = Query(default=None),
    qualification_id: list[RecordId] | None = Query(default=None),
    shift_id: list[RecordId] | None = Query(default=None),
    gender: list[str] | None = Query(default=None),
    benefit_id: list[RecordId] | None = Query(default=None),
    experience_id: list[RecordId] | None = Query(default=None),
    q: str | None = Query(default=None, max_length=200),
    sort_by: JobSortField = Query(default="id"),
    sort_dir: SortDirection = Query(default="desc"),
) -> JobPageOut:
    child_filters = {
        "skills": skill_id or [],
        "qualifications": qualification_id or [],
        "shifts": shift_id or [],
        "genders": [value.strip().lower() for value in gender or [] if value.strip()],
        "job_benefits": benefit_id or [],
        "experiences": experience_id or [],
    }
    try:
        page = await repository.list_jobs(
            limit=limit,
            offset=offset,
            employer_id=employer_id,
            job_profile_ids=job_profile_id,
            statuses=job_status,
            verification_status=verification_status,
            expired=expired,
            recent=recent,
            child_filters=child_filters,
            q=q,
            sort_by=sort_by,
            sort_dir=sort_dir,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return JobPageOut(**page)


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    principal: Principal = Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> JobOut:
    fields, children = _split_payload(payload)
    try:
        row = await repository.create_job(
            employer_id=payload.employer_id,
            fields=fields,
            children=children,
            actor_id=principal.actor_id,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryCreditExhaustedError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "message": str(exc),
                "code": "NO_AD_CREDIT",
                "ad_credit": exc.ad_credit,
                "credit_expiry_at": exc.credit_expiry_at.isoformat() if exc.credit_expiry_at else None,
            },
        ) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryTransactionError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return JobOut(**row)


@router.get("/{job_id}", response_model=JobOut)
async def get_job(job_id: JobId, repository=Depends(get_repository)) -> JobOut:
    try:
        row = await repository.get_job(job_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return JobOut(**row)


@router.put("/{job_id}", response_model=JobOut)
async def update_job(
    job_id: JobId,
    payload: JobUpdateRequest,
    principal: Principal = Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> JobOut:
    fields, children = _split_payload(payload)
    try:
        row = await repository.update_job(
            job_id=job_id,
            fields=fields,
            children=children,
            actor_id=principal.actor_id,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryTransactionError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return JobOut(**row)


@router.delete("/{job_id}", response_model=JobDeleteOut)
async def delete_job(
    job_id: JobId,
    principal: Principal = Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> JobDeleteOut:
    try:
        row = await repository.delete_job(job_id=job_id, actor_id=principal.actor_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryTransactionError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return JobDeleteOut(**row)


@router.patch("/{job_id}/status", response_model=JobOut)
async def patch_job_status(
    job_id: JobId,
    payload: JobStatusPatchRequest,
    principal: Principal = Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        row = await repository.set_job_status(job_id=job_id, status=payload.status, actor_id=principal.actor_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryTransactionError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return JobOut(**row)


@router.patch("/{job_id}/verification-status", response_model=JobOut)
async def patch_job_verification_status(
    job_id: JobId,
    payload: JobVerificationPatchRequest,
    principal: Principal = Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        row = await repository.set_verification_status(
            job_id=job_id,
            verification_status=payload.verification_status,
            actor_id=principal.actor_id,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryTransactionError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return JobOut(**row)


@router.get("/{job_id}/recommended-candidates", response_model=list[RecommendedCandidateOut])
async def list_recommended_candidates(
    job_id: JobId,
    repository=Depends(get_repository),
) -> list[RecommendedCandidateOut]:
    try:
        rows = await repository.recommend_candidates(job_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [RecommendedCandidateOut(**row) for row in rows]


@router.get("/{job_id}/applicants", response_model=list[ApplicantOut])
async def list_job_applicants(job_id: JobId, repository=Depends(get_repository)) -> list[ApplicantOut]:
    try:
        rows = await repository.list_job_applicants(job_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [ApplicantOut(**row) for row in rows]
