"""
Diagnosis pipeline for Plant Doctor.

DiagnosisService runs one image through validation, disease classification
and label reconciliation, then persists the resulting DiagnosisRecord.

Pipeline:
    validate -> classify (disease model) -> pepper override | plant-type
    filter | no-match fallback -> enhance -> pick top -> save
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from plant_doctor.core.config import Settings, get_settings
from plant_doctor.core.vocabulary import has_bacterial_disease, is_pepper_type
from plant_doctor.models.diagnosis import DiagnosisRecord, FormattedPrediction, PredictionResult
from plant_doctor.models.prediction import EnhancedPrediction, Prediction, ValidationResult
from plant_doctor.services.inference_client import InferenceClient
from plant_doctor.services.label_matcher import (
    PEPPER_BACTERIAL_SPOT_LABEL,
    LabelMatcher,
    extract_plant_types,
)
from plant_doctor.services.plant_validator import PlantValidator
from plant_doctor.services.repository import DiagnosisRepository, get_diagnosis_repository
from plant_doctor.services.taxonomy_service import get_taxonomy_service

logger = logging.getLogger(__name__)

PEPPER_OVERRIDE_SCORE = 0.85
SYNTHETIC_HEALTHY_SCORE = 0.9

HEALTHY_CARE_ADVICE = (
    "No disease detected. Keep providing adequate light, water and nutrients, "
    "and inspect the leaves regularly for spots or discoloration."
)

# Values of additional_info["fallback"]
BRANCH_FILTERED = "plant_type_filter"
BRANCH_PEPPER_OVERRIDE = "pepper_override"
BRANCH_KEPT_WITH_WARNING = "kept_with_warning"
BRANCH_SYNTHESIZED_HEALTHY = "synthesized_healthy"
BRANCH_GENERIC_HEALTHY = "generic_healthy"


class NotAPlantError(Exception):
    """Raised when the uploaded image does not show a plant."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _label_mentions_plant(label: str, plant_type: str) -> bool:
    lower_label = label.lower()
    if is_pepper_type(plant_type):
        return "pepper" in lower_label
    return plant_type in lower_label or plant_type in lower_label.replace("_", " ")


def _is_implied(plant_type: str, implied_types: List[str]) -> bool:
    return any(t in plant_type or plant_type in t for t in implied_types)


class DiagnosisService:
    """
    Runs the diagnosis pipeline for one image at a time.

    The service itself keeps no per-request state; collaborators are
    injected so tests can replace any of them.
    """

    def __init__(
        self,
        validator: PlantValidator,
        inference_client: InferenceClient,
        matcher: LabelMatcher,
        repository: DiagnosisRepository,
        disease_model_id: str,
    ):
        self._validator = validator
        self._client = inference_client
        self._matcher = matcher
        self._repository = repository
        self.disease_model_id = disease_model_id

    async def diagnose(
        self,
        image_base64: str,
        plant_name_hint: Optional[str] = None,
        image_path: str = "",
    ) -> DiagnosisRecord:
        """
        Diagnose a plant image and persist the result.

        Args:
            image_base64: Base64 image (data-URI prefix allowed)
            plant_name_hint: Plant name supplied by the user, if any
            image_path: Where the image was stored

        Returns:
            The persisted DiagnosisRecord

        Raises:
            NotAPlantError: If validation rejects the image
            PlantValidationError: If validation could not run
            InferenceError: If disease classification fails
            DiagnosisPersistenceError: If the record cannot be saved
        """
        # 1. Validate
        validation = await self._validator.validate(image_base64)
        if not validation.is_valid:
            logger.info(f"Image rejected by plant validation: {validation.reason}")
            raise NotAPlantError(validation.reason or "The image does not appear to contain a plant.")

        plant_type = (validation.plant_type or "").lower()
        logger.info(
            f"Validated plant type '{validation.plant_type}' "
            f"(confidence: {validation.confidence})"
        )

        # 2. Classify with the disease model
        raw_predictions = await self._client.classify(image_base64, self.disease_model_id)

        # 3-5. Select the predictions that apply to the validated plant
        predictions, branch = self._select_predictions(raw_predictions, validation)
        logger.info(f"Prediction selection: {branch} ({len(predictions)} predictions)")

        # 6. Enhance; free-text fallbacks arrive already enhanced
        enhanced = [
            p if isinstance(p, EnhancedPrediction) else self._matcher.enhance(p)
            for p in predictions
        ]

        # 7. Top prediction gives the disease and treatment
        top = max(enhanced, key=lambda p: p.score)

        record = DiagnosisRecord(
            id=uuid.uuid4(),
            plant_name=(plant_name_hint or "").strip() or validation.plant_type or plant_type,
            predictions=enhanced,
            disease_name=top.formatted_label,
            image_path=image_path,
            treatment=top.treatment or HEALTHY_CARE_ADVICE,
            additional_info={
                "validated_plant_type": validation.plant_type,
                "validation_confidence": validation.confidence,
                "validator_models": [
                    self._validator.general_model_id,
                    self._validator.plant_model_id,
                ],
                "disease_model": self.disease_model_id,
                "fallback": branch,
            },
            created_at=datetime.now(timezone.utc),
        )

        # 8. Persist off the event loop
        return await asyncio.to_thread(self._repository.save, record)

    def _select_predictions(
        self, raw_predictions: List[Prediction], validation: ValidationResult
    ) -> tuple[List[Prediction], str]:
        plant_type = (validation.plant_type or "").lower()

        # Pepper override
        if is_pepper_type(plant_type) and any(
            has_bacterial_disease(p.label) for p in raw_predictions
        ):
            return [
                Prediction(
                    label=PEPPER_BACTERIAL_SPOT_LABEL,
                    score=PEPPER_OVERRIDE_SCORE,
                    note="Bacterial symptoms detected on a pepper plant.",
                )
            ], BRANCH_PEPPER_OVERRIDE

        # Plant-type filter
        filtered = [p for p in raw_predictions if _label_mentions_plant(p.label, plant_type)]
        if filtered:
            return filtered, BRANCH_FILTERED

        # Validated type implied by the model output but filtered out
        implied_types = extract_plant_types(raw_predictions)
        if raw_predictions and _is_implied(plant_type, implied_types):
            warning = (
                f"This prediction may not apply to the validated plant type "
                f"({validation.plant_type})."
            )
            return [
                p.model_copy(update={"note": f"{p.note} {warning}" if p.note else warning})
                for p in raw_predictions
            ], BRANCH_KEPT_WITH_WARNING

        logger.warning(
            f"Disease model output implies {implied_types or 'no plant types'}, "
            f"not '{validation.plant_type}'; assuming a healthy plant"
        )
        plant_key = self._matcher.find_closest_plant_key(plant_type)
        healthy_entry = self._matcher.taxonomy.get_healthy_entry(plant_key) if plant_key else None
        if healthy_entry:
            return [
                Prediction(
                    label=healthy_entry.canonical_label,
                    score=SYNTHETIC_HEALTHY_SCORE,
                    note=f"No disease matching {validation.plant_type} was detected.",
                )
            ], BRANCH_SYNTHESIZED_HEALTHY

        display_type = (validation.plant_type or "plant").title()
        return [
            EnhancedPrediction(
                label=f"Healthy {display_type}",
                score=SYNTHETIC_HEALTHY_SCORE,
                note=f"{display_type} is not covered by the disease model.",
                formatted_label=f"Healthy {display_type}",
                treatment=HEALTHY_CARE_ADVICE,
            )
        ], BRANCH_GENERIC_HEALTHY

    def to_prediction_result(self, record: DiagnosisRecord) -> PredictionResult:
        """
        Build the API response for a diagnosis.

        Args:
            record: Persisted diagnosis

        Returns:
            PredictionResult with response timestamp and disease model ID
        """
        return PredictionResult(
            timestamp=datetime.now(timezone.utc).isoformat(),
            model=self.disease_model_id,
            id=record.id,
            plant_name=record.plant_name,
            predictions=[FormattedPrediction.from_enhanced(p) for p in record.predictions],
            disease_name=record.disease_name,
            treatment=record.treatment,
            image_path=record.image_path,
            additional_info=record.additional_info,
            created_at=record.created_at,
        )


def build_diagnosis_service(
    settings: Optional[Settings] = None,
    repository: Optional[DiagnosisRepository] = None,
) -> DiagnosisService:
    """Wire a DiagnosisService from settings."""
    settings = settings or get_settings()
    client = InferenceClient.from_settings(settings)
    validator = PlantValidator(
        client,
        general_model_id=settings.hugging_face_general_model_id,
        plant_model_id=settings.hugging_face_plant_model_id,
    )
    return DiagnosisService(
        validator=validator,
        inference_client=client,
        matcher=LabelMatcher(get_taxonomy_service()),
        repository=repository or get_diagnosis_repository(),
        disease_model_id=settings.hugging_face_disease_model_id,
    )


# Module-level singleton instance
_diagnosis_service: Optional[DiagnosisService] = None


def get_diagnosis_service() -> DiagnosisService:
    """
    Get the shared DiagnosisService instance.

    Returns:
        DiagnosisService instance
    """
    global _diagnosis_service
    if _diagnosis_service is None:
        _diagnosis_service = build_diagnosis_service()
    return _diagnosis_service
