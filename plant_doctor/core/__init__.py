"""
Core configuration and utilities for Plant Doctor.
"""

from plant_doctor.core.deps import (
    depends_diagnosis_service,
    depends_repository,
    depends_storage,
    depends_taxonomy,
)

__all__ = [
    "depends_diagnosis_service",
    "depends_repository",
    "depends_storage",
    "depends_taxonomy",
]
