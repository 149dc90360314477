"""
DiagnosisRepository for Plant Doctor.

Stores diagnosis records in the plants_diagnoses table. Records are created
once and then only read; there is no update or delete.
"""

import logging
from datetime import timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from plant_doctor.core.database import get_session_factory
from plant_doctor.models.diagnosis import DiagnosisRecord
from plant_doctor.models.orm import PlantDiagnosis
from plant_doctor.models.prediction import EnhancedPrediction

logger = logging.getLogger(__name__)


class DiagnosisPersistenceError(Exception):
    """Raised when a diagnosis cannot be written to or read from the database."""

    pass


def _to_row(record: DiagnosisRecord) -> PlantDiagnosis:
    return PlantDiagnosis(
        id=record.id,
        plant_name=record.plant_name,
        predictions=[p.model_dump(mode="json") for p in record.predictions],
        disease_name=record.disease_name,
        image_path=record.image_path,
        treatment=record.treatment,
        additional_info=record.additional_info,
        created_at=record.created_at,
    )


def _to_record(row: PlantDiagnosis) -> DiagnosisRecord:
    created_at = row.created_at
    # SQLite drops the timezone
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return DiagnosisRecord(
        id=row.id,
        plant_name=row.plant_name,
        predictions=[EnhancedPrediction(**p) for p in row.predictions or []],
        disease_name=row.disease_name,
        image_path=row.image_path,
        treatment=row.treatment,
        additional_info=row.additional_info or {},
        created_at=created_at,
    )


class DiagnosisRepository:
    """
    Persistence for DiagnosisRecord.

    Every call opens its own session, so one repository can be shared
    between requests and worker tasks.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def save(self, record: DiagnosisRecord) -> DiagnosisRecord:
        """
        Insert a new diagnosis record.

        Args:
            record: Record to persist

        Returns:
            The persisted record

        Raises:
            DiagnosisPersistenceError: If the insert fails
        """
        try:
            with self._session_factory() as session:
                session.add(_to_row(record))
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save diagnosis {record.id}: {e}")
            raise DiagnosisPersistenceError(f"Failed to save diagnosis: {e}") from e

        logger.info(f"Saved diagnosis {record.id} ({record.plant_name}: {record.disease_name})")
        return record

    def get_by_id(self, diagnosis_id: UUID) -> Optional[DiagnosisRecord]:
        """Get a diagnosis by ID, or None if it does not exist."""
        try:
            with self._session_factory() as session:
                row = session.get(PlantDiagnosis, diagnosis_id)
                return _to_record(row) if row else None
        except SQLAlchemyError as e:
            raise DiagnosisPersistenceError(f"Failed to load diagnosis {diagnosis_id}: {e}") from e

    def list_all(self, limit: Optional[int] = None) -> List[DiagnosisRecord]:
        """
        List diagnoses, newest first.

        Args:
            limit: Maximum number of records (None for all)
        """
        stmt = select(PlantDiagnosis).order_by(PlantDiagnosis.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._session_factory() as session:
                return [_to_record(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise DiagnosisPersistenceError(f"Failed to list diagnoses: {e}") from e


# Module-level singleton instance
_diagnosis_repository: Optional[DiagnosisRepository] = None


def get_diagnosis_repository() -> DiagnosisRepository:
    """
    Get the shared DiagnosisRepository bound to the configured database.

    Returns:
        DiagnosisRepository instance
    """
    global _diagnosis_repository
    if _diagnosis_repository is None:
        _diagnosis_repository = DiagnosisRepository(get_session_factory())
    return _diagnosis_repository
