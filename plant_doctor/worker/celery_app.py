"""
Celery application configuration for Plant Doctor.

This module initializes the Celery application with broker and backend configuration.
"""

from celery import Celery

from plant_doctor.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "plant_doctor_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["plant_doctor.worker.diagnosis_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # Three upstream calls with up to 7s of backoff each fit comfortably
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)


@celery_app.task(name="plant_doctor.worker.health_check")
def health_check():
    """Health check task for Celery worker."""
    return {"status": "healthy", "service": "plant-doctor-worker"}
