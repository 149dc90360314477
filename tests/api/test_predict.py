"""
Prediction API tests with edge cases.

Storage and the diagnosis pipeline are replaced through dependency overrides.
"""

import uuid
from io import BytesIO
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from plant_doctor.api.main import app
from plant_doctor.core import depends_diagnosis_service, depends_storage
from plant_doctor.models.diagnosis import FormattedPrediction, PredictionResult
from plant_doctor.services.diagnosis_service import NotAPlantError
from plant_doctor.services.inference_client import (
    InferenceConfigurationError,
    InferenceRequestError,
    InferenceUnavailableError,
)
from plant_doctor.services.plant_validator import PlantValidationError
from plant_doctor.services.repository import DiagnosisPersistenceError
from plant_doctor.services.storage import StorageConnectionError

client = TestClient(app)

IMAGE_URL = "http://localhost:9000/plant-doctor-plants-images/Tomato_1700000000000.jpg"


def make_result():
    return PredictionResult(
        timestamp="2025-03-14T10:00:00+00:00",
        model="surgeonwz/plant-village",
        id=uuid.uuid4(),
        plant_name="Tomato",
        predictions=[
            FormattedPrediction(
                disease="Tomato - Late Blight",
                confidence="77.00%",
                description="Apply fungicides preventatively.",
            )
        ],
        disease_name="Tomato - Late Blight",
        treatment="Apply fungicides preventatively.",
        image_path=IMAGE_URL,
    )


@pytest.fixture
def storage():
    service = Mock()
    service.upload_image.return_value = IMAGE_URL
    app.dependency_overrides[depends_storage] = lambda: service
    yield service
    app.dependency_overrides.pop(depends_storage, None)


@pytest.fixture
def diagnosis():
    service = Mock()
    record = Mock(id=uuid.uuid4(), plant_name="Tomato", disease_name="Tomato - Late Blight")
    service.diagnose = AsyncMock(return_value=record)
    service.to_prediction_result.return_value = make_result()
    app.dependency_overrides[depends_diagnosis_service] = lambda: service
    yield service
    app.dependency_overrides.pop(depends_diagnosis_service, None)


def post_image(content=b"fake image data", content_type="image/jpeg", filename="leaf.jpg", **data):
    data.setdefault("plant_name", "Tomato")
    files = {"image": (filename, BytesIO(content), content_type)}
    return client.post("/api/v1/predict", files=files, data=data)


def test_predict_success(storage, diagnosis):
    response = post_image()

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["disease_name"] == "Tomato - Late Blight"
    assert data["predictions"][0]["confidence"] == "77.00%"
    assert data["image_path"] == IMAGE_URL
    assert "X-Request-ID" in response.headers


def test_predict_uploads_then_diagnoses(storage, diagnosis):
    post_image(b"\x89PNG data", content_type="image/png", filename="leaf.png")

    args, kwargs = storage.upload_image.call_args
    assert args[0] == b"\x89PNG data"
    assert args[1].startswith("Tomato_") and args[1].endswith(".png")
    assert kwargs["content_type"] == "image/png"

    image_base64 = diagnosis.diagnose.await_args.args[0]
    assert image_base64 == "iVBORyBkYXRh"
    assert diagnosis.diagnose.await_args.kwargs == {
        "plant_name_hint": "Tomato",
        "image_path": IMAGE_URL,
    }


@pytest.mark.parametrize("content_type", ["image/jpeg", "image/jpg", "image/png", "image/webp"])
def test_predict_accepts_image_types(storage, diagnosis, content_type):
    assert post_image(content_type=content_type).status_code == 200


def test_predict_unsupported_file_type(storage, diagnosis):
    response = post_image(b"%PDF", content_type="application/pdf", filename="doc.pdf")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["status"] == 400
    assert "Unsupported file type" in body["error"]
    storage.upload_image.assert_not_called()


def test_predict_empty_file(storage, diagnosis):
    response = post_image(b"")

    assert response.status_code == 400
    assert "Empty file" in response.json()["error"]


def test_predict_oversized_file(storage, diagnosis):
    response = post_image(b"x" * (10 * 1024 * 1024 + 1))

    assert response.status_code == 400
    assert "File too large" in response.json()["error"]
    diagnosis.diagnose.assert_not_awaited()


def test_predict_missing_plant_name(storage, diagnosis):
    files = {"image": ("leaf.jpg", BytesIO(b"data"), "image/jpeg")}

    response = client.post("/api/v1/predict", files=files)

    assert response.status_code == 422
    assert response.json()["error"].startswith("Invalid request")


def test_predict_missing_image(storage, diagnosis):
    response = client.post("/api/v1/predict", data={"plant_name": "Tomato"})

    assert response.status_code == 422


def test_predict_not_a_plant(storage, diagnosis):
    reason = "The image appears to be german shepherd rather than a plant."
    diagnosis.diagnose.side_effect = NotAPlantError(reason)

    response = post_image()

    assert response.status_code == 422
    body = response.json()
    assert body == {
        "success": False,
        "error": reason,
        "status": 422,
        "timestamp": body["timestamp"],
    }


@pytest.mark.parametrize(
    "error,status_code",
    [
        (PlantValidationError(retryable=True), 503),
        (PlantValidationError(), 500),
        (InferenceUnavailableError("Model is loading"), 503),
        (InferenceConfigurationError("Hugging Face API key is not configured"), 500),
        (InferenceRequestError("Bad request", status_code=400), 502),
        (DiagnosisPersistenceError("Failed to save diagnosis"), 500),
    ],
)
def test_predict_pipeline_errors(storage, diagnosis, error, status_code):
    diagnosis.diagnose.side_effect = error

    response = post_image()

    assert response.status_code == status_code
    assert response.json()["status"] == status_code


def test_predict_storage_unavailable(storage, diagnosis):
    storage.upload_image.side_effect = StorageConnectionError("MinIO unreachable")

    response = post_image()

    assert response.status_code == 503
    assert "MinIO unreachable" in response.json()["error"]
    diagnosis.diagnose.assert_not_awaited()
