"""
Prediction API endpoint for Plant Doctor.

Accepts an uploaded image, stores it in MinIO and runs the diagnosis
pipeline synchronously.
"""

import base64
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from plant_doctor.core import depends_diagnosis_service, depends_storage
from plant_doctor.core.config import get_settings
from plant_doctor.models.diagnosis import ErrorResponse, PredictionResult
from plant_doctor.services.diagnosis_service import DiagnosisService
from plant_doctor.services.storage import StorageService, build_object_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/predict", tags=["predict"])

ALLOWED_CONTENT_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]


@router.post(
    "",
    response_model=PredictionResult,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse, "description": "Image does not contain a plant"},
        503: {"model": ErrorResponse},
    },
)
async def predict_plant_disease(
    image: UploadFile = File(..., description="Plant image (jpg, jpeg, png, webp; max 10MB)"),
    plant_name: str = Form(..., min_length=1, max_length=255, description="Plant name"),
    storage: StorageService = Depends(depends_storage),
    diagnosis: DiagnosisService = Depends(depends_diagnosis_service),
) -> PredictionResult:
    """
    Diagnose a plant disease from an uploaded image.

    Example:
        POST /api/v1/predict
        Content-Type: multipart/form-data
        image=@tomato.jpg, plant_name=Tomato

        Response:
        {
            "success": true,
            "timestamp": "2025-03-14T10:00:00+00:00",
            "model": "surgeonwz/plant-village",
            "plant_name": "Tomato",
            "predictions": [
                {"disease": "Tomato - Late Blight", "confidence": "77.00%", "description": "..."}
            ],
            "disease_name": "Tomato - Late Blight",
            ...
        }
    """
    settings = get_settings()

    if image.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {image.content_type}. "
            f"Allowed: {', '.join(ALLOWED_CONTENT_TYPES)}",
        )

    content = await image.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(content) > settings.max_upload_size:
        raise HTTPException(
            status_code=400,
            detail=f"File too large: {len(content)} bytes. "
            f"Maximum size: {settings.max_upload_size} bytes",
        )

    filename = build_object_name(plant_name, image.filename)
    image_url = storage.upload_image(content, filename, content_type=image.content_type)

    image_base64 = base64.b64encode(content).decode("ascii")
    record = await diagnosis.diagnose(image_base64, plant_name_hint=plant_name, image_path=image_url)

    logger.info(f"Diagnosis {record.id}: {record.plant_name} -> {record.disease_name}")
    return diagnosis.to_prediction_result(record)
