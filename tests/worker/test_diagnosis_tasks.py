"""
Worker diagnosis task unit tests.

The download and the diagnosis service are patched; the task body runs
directly through diagnose_image.run.
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest

from plant_doctor.core.ssrf_protection import ImageDownloadError
from plant_doctor.models.diagnosis import DiagnosisRecord
from plant_doctor.models.prediction import EnhancedPrediction
from plant_doctor.services.diagnosis_service import DiagnosisService, NotAPlantError
from plant_doctor.worker.celery_app import health_check
from plant_doctor.worker.diagnosis_tasks import diagnose_image

IMAGE_URL = "https://example.com/images/tomato-leaf.jpg"


def make_record():
    return DiagnosisRecord(
        id=uuid.uuid4(),
        plant_name="Tomato",
        predictions=[
            EnhancedPrediction(
                label="Tomato___Late_blight",
                score=0.77,
                formatted_label="Tomato - Late Blight",
                treatment="Apply fungicides preventatively.",
            )
        ],
        disease_name="Tomato - Late Blight",
        image_path=IMAGE_URL,
        treatment="Apply fungicides preventatively.",
        additional_info={"fallback": "plant_type_filter"},
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def service():
    mock_service = Mock()
    mock_service.diagnose = AsyncMock(return_value=make_record())
    mock_service.disease_model_id = "surgeonwz/plant-village"
    # Real response building on top of the mocked pipeline
    mock_service.to_prediction_result.side_effect = (
        lambda record: DiagnosisService.to_prediction_result(mock_service, record)
    )
    with patch(
        "plant_doctor.worker.diagnosis_tasks.get_diagnosis_service", return_value=mock_service
    ):
        yield mock_service


@pytest.fixture
def download():
    with patch(
        "plant_doctor.worker.diagnosis_tasks.download_image_securely_async",
        new_callable=AsyncMock,
    ) as mock_download:
        mock_download.return_value = b"fake image data"
        yield mock_download


def test_diagnose_image_success(service, download):
    result = diagnose_image.run(IMAGE_URL, "Tomato")

    assert result["success"] is True
    assert result["disease_name"] == "Tomato - Late Blight"
    assert result["model"] == "surgeonwz/plant-village"
    assert result["predictions"][0]["confidence"] == "77.00%"
    # JSON-compatible for the Celery result backend
    assert isinstance(result["id"], str)

    assert download.await_args.args[0] == IMAGE_URL
    service.diagnose.assert_awaited_once_with(
        "ZmFrZSBpbWFnZSBkYXRh", plant_name_hint="Tomato", image_path=IMAGE_URL
    )


def test_diagnose_image_without_plant_name(service, download):
    diagnose_image.run(IMAGE_URL)

    assert service.diagnose.await_args.kwargs["plant_name_hint"] is None


def test_diagnose_image_download_failure(service, download):
    download.side_effect = ImageDownloadError("URL validation failed: Private address not allowed")

    with pytest.raises(RuntimeError) as exc_info:
        diagnose_image.run("http://192.168.1.10/leaf.jpg")

    assert "Image download failed" in str(exc_info.value)
    service.diagnose.assert_not_awaited()


def test_diagnose_image_not_a_plant_fails_task(service, download):
    service.diagnose.side_effect = NotAPlantError("The image appears to be envelope rather than a plant.")

    with pytest.raises(NotAPlantError):
        diagnose_image.run(IMAGE_URL)


def test_health_check_task():
    assert health_check.run() == {"status": "healthy", "service": "plant-doctor-worker"}
