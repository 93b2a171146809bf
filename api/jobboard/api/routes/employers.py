from fastapi import APIRouter, Depends, HTTPException, Path, status

from jobboard.core.auth import Principal
from jobboard.core.security import get_admin_principal
from jobboard.schemas.employers import EmployerCreditsAddRequest, EmployerCreditsOut
from jobboard.schemas.interests import EmployerApplicantOut
from jobboard.services.aggregate import MAX_RECORD_ID
from jobboard.services.repository import (
    RepositoryNotFoundError,
    RepositoryTransactionError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.get("/{employer_id}/applicants", response_model=list[EmployerApplicantOut])
async def list_employer_applicants(
    employer_id: int = Path(gt=0, le=MAX_RECORD_ID),
    repository=Depends(get_repository),
) -> list[EmployerApplicantOut]:
    try:
        rows = await repository.list_employer_applicants(employer_id=employer_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [EmployerApplicantOut(**row) for row in rows]


@router.get("/{employer_id}/credits", response_model=EmployerCreditsOut)
async def get_employer_credits(
    employer_id: int = Path(gt=0, le=MAX_RECORD_ID),
    repository=Depends(get_repository),
) -> EmployerCreditsOut:
    try:
        row = await repository.get_employer_credits(employer_id=employer_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return EmployerCreditsOut(**row)


@router.post("/{employer_id}/add-credits", response_model=EmployerCreditsOut)
async def add_employer_credits(
    payload: EmployerCreditsAddRequest,
    employer_id: int = Path(gt=0, le=MAX_RECORD_ID),
    principal: Principal = Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> EmployerCreditsOut:
    try:
        row = await repository.add_employer_credits(
            employer_id=employer_id,
            ad_credits=payload.ad_credits,
            credit_expiry_at=payload.credit_expiry_at,
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

    return EmployerCreditsOut(**row)
