"""
SQLAlchemy table mappings for Plant Doctor.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from plant_doctor.core.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class PlantDiagnosis(Base):
    """One row per completed diagnosis."""

    __tablename__ = "plants_diagnoses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    plant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    predictions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    disease_name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_path: Mapped[str] = mapped_column(Text, nullable=False)
    treatment: Mapped[str] = mapped_column(Text, nullable=False)
    additional_info: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<PlantDiagnosis {self.id} {self.plant_name!r}: {self.disease_name!r}>"
