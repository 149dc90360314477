"""
Unit tests for DiagnosisService.

The validator, inference client and repository are mocked; label matching
runs against the real taxonomy.
"""

import asyncio
import time
from unittest.mock import AsyncMock, Mock

import pytest

from plant_doctor.core.config import Settings
from plant_doctor.models.prediction import Prediction, ValidationResult
from plant_doctor.services.diagnosis_service import (
    BRANCH_FILTERED,
    BRANCH_GENERIC_HEALTHY,
    BRANCH_KEPT_WITH_WARNING,
    BRANCH_PEPPER_OVERRIDE,
    BRANCH_SYNTHESIZED_HEALTHY,
    HEALTHY_CARE_ADVICE,
    DiagnosisService,
    NotAPlantError,
    build_diagnosis_service,
)
from plant_doctor.services.inference_client import InferenceRequestError
from plant_doctor.services.label_matcher import LabelMatcher
from plant_doctor.services.plant_validator import PlantValidator
from plant_doctor.services.taxonomy_service import TaxonomyService

DISEASE_MODEL = "surgeonwz/plant-village"
LATE_BLIGHT_TREATMENT = "Apply fungicides preventatively. Remove infected plants to prevent spread."


@pytest.fixture(scope="module")
def matcher():
    TaxonomyService._instance = None
    return LabelMatcher(TaxonomyService())


def make_service(matcher, validation, disease_predictions):
    validator = Mock()
    validator.validate = AsyncMock(return_value=validation)
    validator.general_model_id = "google/vit-base-patch16-224"
    validator.plant_model_id = "merve/plant-disease-mobilenetv2"

    client = Mock()
    if isinstance(disease_predictions, Exception):
        client.classify = AsyncMock(side_effect=disease_predictions)
    else:
        client.classify = AsyncMock(return_value=disease_predictions)

    repository = Mock()
    repository.save.side_effect = lambda record: record

    service = DiagnosisService(
        validator=validator,
        inference_client=client,
        matcher=matcher,
        repository=repository,
        disease_model_id=DISEASE_MODEL,
    )
    return service, client, repository


def valid(plant_type, confidence=0.9):
    return ValidationResult(is_valid=True, plant_type=plant_type, confidence=confidence)


def test_tomato_late_blight(matcher):
    service, client, repository = make_service(
        matcher, valid("tomato"), [Prediction(label="Tomato___Late_blight", score=0.77)]
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert record.disease_name == "Tomato - Late Blight"
    assert record.treatment == LATE_BLIGHT_TREATMENT
    assert record.plant_name == "tomato"
    assert record.additional_info["fallback"] == BRANCH_FILTERED
    assert record.additional_info["disease_model"] == DISEASE_MODEL
    client.classify.assert_awaited_once_with("QUJD", DISEASE_MODEL)
    repository.save.assert_called_once_with(record)


def test_corn_rust_for_tomato_synthesizes_healthy_tomato(matcher):
    service, _, _ = make_service(
        matcher, valid("tomato"), [Prediction(label="Corn___Common_rust", score=0.6)]
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert len(record.predictions) == 1
    prediction = record.predictions[0]
    assert prediction.label == "Tomato___healthy"
    assert prediction.score == 0.9
    assert record.disease_name == "Tomato - Healthy"
    assert record.additional_info["fallback"] == BRANCH_SYNTHESIZED_HEALTHY


def test_pepper_override(matcher):
    service, _, _ = make_service(
        matcher,
        valid("Bell Pepper"),
        [
            Prediction(label="Pepper,_bell___healthy", score=0.6),
            Prediction(label="Tomato___Bacterial_spot", score=0.3),
        ],
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert [p.label for p in record.predictions] == ["Pepper,_bell___Bacterial_spot"]
    assert record.predictions[0].score == 0.85
    assert record.disease_name == "Bell Pepper - Bacterial Spot"
    assert record.additional_info["fallback"] == BRANCH_PEPPER_OVERRIDE


def test_pepper_without_bacterial_keyword_is_filtered_normally(matcher):
    service, _, _ = make_service(
        matcher,
        valid("Bell Pepper"),
        [
            Prediction(label="Pepper,_bell___healthy", score=0.6),
            Prediction(label="Tomato___healthy", score=0.3),
        ],
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert [p.label for p in record.predictions] == ["Pepper,_bell___healthy"]
    assert record.disease_name == "Bell Pepper - Healthy"
    assert record.additional_info["fallback"] == BRANCH_FILTERED


def test_filter_keeps_only_predictions_for_validated_plant(matcher):
    service, _, _ = make_service(
        matcher,
        valid("tomato"),
        [
            Prediction(label="Tomato___Late_blight", score=0.5),
            Prediction(label="Potato___Late_blight", score=0.3),
            Prediction(label="Tomato___Early_blight", score=0.2),
        ],
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert [p.label for p in record.predictions] == ["Tomato___Late_blight", "Tomato___Early_blight"]
    assert record.disease_name == "Tomato - Late Blight"


def test_implied_plant_type_keeps_predictions_with_warning(matcher):
    service, _, _ = make_service(
        matcher,
        valid("cherry tomato"),
        [
            Prediction(label="Tomato___Early_blight", score=0.55),
            Prediction(label="Corn___Common_rust", score=0.2),
        ],
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert len(record.predictions) == 2
    for prediction in record.predictions:
        assert "may not apply to the validated plant type (cherry tomato)" in prediction.note
    assert record.disease_name == "Tomato - Early Blight"
    assert record.additional_info["fallback"] == BRANCH_KEPT_WITH_WARNING


def test_unknown_plant_gets_generic_healthy_prediction(matcher):
    service, _, _ = make_service(
        matcher, valid("rose"), [Prediction(label="Corn___Common_rust", score=0.6)]
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert len(record.predictions) == 1
    prediction = record.predictions[0]
    assert prediction.formatted_label == "Healthy Rose"
    assert prediction.score == 0.9
    assert prediction.treatment == HEALTHY_CARE_ADVICE
    assert record.disease_name == "Healthy Rose"
    assert record.treatment == HEALTHY_CARE_ADVICE
    assert record.additional_info["fallback"] == BRANCH_GENERIC_HEALTHY


def test_not_a_plant_aborts_pipeline(matcher):
    reason = "The image appears to be german shepherd rather than a plant."
    service, client, repository = make_service(
        matcher, ValidationResult(is_valid=False, reason=reason), []
    )

    with pytest.raises(NotAPlantError) as exc_info:
        asyncio.run(service.diagnose("QUJD"))

    assert exc_info.value.reason == reason
    client.classify.assert_not_awaited()
    repository.save.assert_not_called()


def test_plant_name_hint_and_image_path_are_stored(matcher):
    service, _, _ = make_service(
        matcher, valid("tomato"), [Prediction(label="Tomato___Late_blight", score=0.77)]
    )

    record = asyncio.run(
        service.diagnose("QUJD", plant_name_hint="  Garden tomato ", image_path="http://img/1.jpg")
    )

    assert record.plant_name == "Garden tomato"
    assert record.image_path == "http://img/1.jpg"


def test_inference_failure_propagates_without_saving(matcher):
    service, _, repository = make_service(
        matcher, valid("tomato"), InferenceRequestError("Bad request", status_code=400)
    )

    with pytest.raises(InferenceRequestError):
        asyncio.run(service.diagnose("QUJD"))

    repository.save.assert_not_called()


def test_to_prediction_result(matcher):
    service, _, _ = make_service(
        matcher, valid("tomato"), [Prediction(label="Tomato___Late_blight", score=0.77)]
    )
    record = asyncio.run(service.diagnose("QUJD", plant_name_hint="Tomato"))

    result = service.to_prediction_result(record)

    assert result.success is True
    assert result.model == DISEASE_MODEL
    assert result.id == record.id
    assert result.timestamp
    assert result.disease_name == "Tomato - Late Blight"
    assert result.predictions[0].disease == "Tomato - Late Blight"
    assert result.predictions[0].confidence == "77.00%"
    assert result.predictions[0].description == LATE_BLIGHT_TREATMENT


def test_build_diagnosis_service_wires_models():
    settings = Settings(
        hugging_face_api_key="hf_abc",
        hugging_face_general_model_id="g/m",
        hugging_face_plant_model_id="p/m",
        hugging_face_disease_model_id="d/m",
    )

    service = build_diagnosis_service(settings, repository=Mock())

    assert service.disease_model_id == "d/m"
    assert isinstance(service._validator, PlantValidator)
    assert service._validator.general_model_id == "g/m"
    assert service._validator.plant_model_id == "p/m"


def test_plant_without_healthy_entry_gets_generic_healthy_prediction(matcher):
    # The taxonomy only knows diseased squash
    service, _, _ = make_service(
        matcher, valid("squash"), [Prediction(label="Corn___Common_rust", score=0.6)]
    )

    record = asyncio.run(service.diagnose("QUJD"))

    assert record.disease_name == "Healthy Squash"
    assert record.treatment == HEALTHY_CARE_ADVICE
    assert record.additional_info["fallback"] == BRANCH_GENERIC_HEALTHY


def test_concurrent_diagnoses_do_not_block_on_persistence(matcher):
    service, _, repository = make_service(
        matcher, valid("tomato"), [Prediction(label="Tomato___Late_blight", score=0.77)]
    )

    def slow_save(record):
        time.sleep(0.3)
        return record

    repository.save.side_effect = slow_save

    async def run_all():
        return await asyncio.gather(*(service.diagnose("QUJD") for _ in range(4)))

    started = time.perf_counter()
    records = asyncio.run(run_all())
    elapsed = time.perf_counter() - started

    assert len({r.id for r in records}) == 4
    # Saved one after another this would take 1.2s
    assert elapsed < 0.9
