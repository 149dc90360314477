"""
Diagnosis tasks for Plant Doctor.

This module contains the Celery task that diagnoses an image reachable by URL.
"""

import asyncio
import base64
import logging
from typing import Optional

from plant_doctor.core.config import get_settings
from plant_doctor.core.ssrf_protection import ImageDownloadError, download_image_securely_async
from plant_doctor.services.diagnosis_service import get_diagnosis_service
from plant_doctor.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="plant_doctor.worker.diagnosis_tasks.diagnose_image", bind=True)
def diagnose_image(
    self,
    image_url: str,
    plant_name: Optional[str] = None,
):
    """
    Download an image and run the diagnosis pipeline on it.

    Args:
        self: Celery task instance (for bind=True)
        image_url: Public image URL
        plant_name: Optional plant name given by the user

    Returns:
        PredictionResult as a JSON-compatible dict

    Raises:
        RuntimeError: If the image cannot be downloaded
        NotAPlantError, InferenceError, ...: Pipeline failures, reported as
            task FAILURE
    """
    task_id = self.request.id
    settings = get_settings()
    logger.info(f"[Task {task_id}] Starting diagnosis for image: {image_url}")

    try:
        image_data = asyncio.run(
            download_image_securely_async(image_url, max_size=settings.max_upload_size)
        )
    except ImageDownloadError as e:
        logger.error(f"[Task {task_id}] Image download failed: {e}")
        raise RuntimeError(f"Image download failed: {e}") from e

    logger.info(f"[Task {task_id}] Image downloaded, size: {len(image_data)} bytes")

    service = get_diagnosis_service()
    image_base64 = base64.b64encode(image_data).decode("ascii")
    record = asyncio.run(
        service.diagnose(image_base64, plant_name_hint=plant_name, image_path=image_url)
    )

    logger.info(
        f"[Task {task_id}] Diagnosis {record.id} completed: "
        f"{record.plant_name} -> {record.disease_name}"
    )
    return service.to_prediction_result(record).model_dump(mode="json")
