"""
Celery workers for Plant Doctor.

This package contains the background task that diagnoses images
submitted by URL.
"""

from plant_doctor.worker.celery_app import celery_app

__all__ = ["celery_app"]
