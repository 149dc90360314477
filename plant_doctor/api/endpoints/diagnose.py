"""
Asynchronous diagnosis API endpoints for Plant Doctor.

This module submits URL-based diagnosis tasks to Celery and reports
their status.
"""

import logging

from celery.result import AsyncResult
from fastapi import APIRouter, HTTPException

from plant_doctor.models.diagnosis import DiagnoseRequest, DiagnoseResponse, TaskStatus
from plant_doctor.worker.celery_app import celery_app
from plant_doctor.worker.diagnosis_tasks import diagnose_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnose", tags=["diagnose"])


@router.post("", response_model=DiagnoseResponse)
async def create_diagnosis(
    request: DiagnoseRequest,
) -> DiagnoseResponse:
    """
    Submit a diagnosis task and return its ID.

    Example:
        POST /api/v1/diagnose
        {"image_url": "https://example.com/images/tomato-leaf.jpg", "plant_name": "Tomato"}

        Response:
        {
            "task_id": "a1b2c3d4-5678-90ab-cdef-123456789abc",
            "status": "PENDING",
            "message": "Diagnosis task created successfully"
        }
    """
    try:
        task = diagnose_image.delay(
            image_url=str(request.image_url),
            plant_name=request.plant_name,
        )
    except Exception as e:
        logger.error(f"Failed to create diagnosis task: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create diagnosis task: {e}",
        ) from e

    return DiagnoseResponse(
        task_id=task.id,
        status=task.state,
        message="Diagnosis task created successfully",
    )


@router.get("/tasks/{task_id}", response_model=TaskStatus)
async def get_task_status(
    task_id: str,
) -> TaskStatus:
    """
    Get a diagnosis task's status, and its result once finished.

    Example:
        GET /api/v1/diagnose/tasks/a1b2c3d4-5678-90ab-cdef-123456789abc

        Response (PENDING):
        {"task_id": "a1b2c3d4-...", "status": "PENDING", "result": null, "error": null}
    """
    task = AsyncResult(task_id, app=celery_app)

    response_data = {
        "task_id": task_id,
        "status": task.state,
        "result": None,
        "error": None,
    }

    if task.state == "SUCCESS" and task.result:
        response_data["result"] = task.result
    elif task.state == "FAILURE":
        response_data["error"] = str(task.info)

    return TaskStatus(**response_data)
