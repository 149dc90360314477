"""
Diagnosis history API endpoints for Plant Doctor.

The repository is synchronous SQLAlchemy, so these are plain functions and
FastAPI runs them in its threadpool.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path

from plant_doctor.core import depends_repository
from plant_doctor.models.diagnosis import (
    ErrorResponse,
    HistoryDetail,
    HistoryItem,
    HistoryResponse,
)
from plant_doctor.services.repository import DiagnosisRepository

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=HistoryResponse)
def get_history(
    repository: DiagnosisRepository = Depends(depends_repository),
) -> HistoryResponse:
    """List all stored diagnoses, newest first."""
    records = repository.list_all()
    return HistoryResponse(history=[HistoryItem.from_record(r) for r in records])


@router.get(
    "/{diagnosis_id}",
    response_model=HistoryDetail,
    responses={404: {"model": ErrorResponse}},
)
def get_history_item(
    diagnosis_id: UUID = Path(..., description="Diagnosis ID"),
    repository: DiagnosisRepository = Depends(depends_repository),
) -> HistoryDetail:
    """
    Get one stored diagnosis, with its image URL.

    Raises:
        HTTPException: 404 when the diagnosis does not exist
    """
    record = repository.get_by_id(diagnosis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Diagnosis not found")
    return HistoryDetail.from_record(record)
