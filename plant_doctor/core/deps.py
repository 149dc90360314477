"""
FastAPI dependency injection utilities for Plant Doctor.

Routes depend on these functions rather than on the service factories, so
tests can swap a service through app.dependency_overrides.
"""

from typing import TYPE_CHECKING

from fastapi import Depends

if TYPE_CHECKING:
    from plant_doctor.services.diagnosis_service import DiagnosisService
    from plant_doctor.services.repository import DiagnosisRepository
    from plant_doctor.services.storage import StorageService
    from plant_doctor.services.taxonomy_service import TaxonomyService


# Lazy imports to avoid circular dependency
def _get_taxonomy_service():
    from plant_doctor.services.taxonomy_service import get_taxonomy_service
    return get_taxonomy_service()


def _get_storage_service():
    from plant_doctor.services.storage import get_storage_service
    return get_storage_service()


def _get_diagnosis_repository():
    from plant_doctor.services.repository import get_diagnosis_repository
    return get_diagnosis_repository()


def _get_diagnosis_service():
    from plant_doctor.services.diagnosis_service import get_diagnosis_service
    return get_diagnosis_service()


async def depends_taxonomy(
    service: "TaxonomyService" = Depends(_get_taxonomy_service),
) -> "TaxonomyService":
    """
    FastAPI dependency injection for TaxonomyService.

    Returns:
        TaxonomyService: The singleton taxonomy service instance
    """
    return service


async def depends_storage(
    service: "StorageService" = Depends(_get_storage_service),
) -> "StorageService":
    """
    FastAPI dependency injection for StorageService.

    Usage in routes:
        @router.post("/predict")
        async def predict(
            image: UploadFile,
            storage: StorageService = Depends(depends_storage)
        ):
            url = storage.upload_image(await image.read(), image.filename)

    Returns:
        StorageService: The singleton storage service instance
    """
    return service


async def depends_repository(
    repository: "DiagnosisRepository" = Depends(_get_diagnosis_repository),
) -> "DiagnosisRepository":
    """FastAPI dependency injection for DiagnosisRepository."""
    return repository


async def depends_diagnosis_service(
    service: "DiagnosisService" = Depends(_get_diagnosis_service),
) -> "DiagnosisService":
    """FastAPI dependency injection for DiagnosisService."""
    return service
