"""
Plant image validation for Plant Doctor.

Before running disease classification, an image is checked with a
general-purpose classifier and, if that is inconclusive, with a
plant-specific classifier. The validator rejects images showing animals,
people or objects, and extracts a normalized plant type from the best
plant-looking label.
"""

import logging
import re
from typing import List, Optional

from plant_doctor.core.vocabulary import (
    NON_PLANT_EXCLUSION_CATEGORIES,
    NON_PLANT_TERMS,
    PLANT_CATEGORIES,
    PLANT_KEYWORDS,
    PLANT_TYPE_SUFFIXES,
    contains_plant_term,
    contains_term,
    find_term,
    is_pepper_type,
)
from plant_doctor.models.prediction import Prediction, ValidationResult
from plant_doctor.models.taxonomy import LABEL_SEPARATOR
from plant_doctor.services.inference_client import InferenceClient, InferenceUnavailableError

logger = logging.getLogger(__name__)

# Min confidence for a non-plant detection to reject the image
CONFIDENCE_THRESHOLD = 0.6
# Number of top predictions inspected per model
TOP_K_PREDICTIONS = 3

NOT_A_PLANT_REASON = (
    "The image doesn't appear to contain a plant with sufficient confidence. "
    "Please upload a clearer image of a plant."
)
VALIDATION_FAILED_MESSAGE = (
    "Unable to validate image content. Please try again with a different image."
)

_QUALIFIED_PLANT_PATTERN = re.compile(r"^(healthy|diseased)\s+(\w+)")
_HEALTHY_PLANT_PATTERN = re.compile(r"^healthy\s+(\w+)$")
_HEALTHY_PREFIX = re.compile(r"^healthy\s+", re.IGNORECASE)


class PlantValidationError(Exception):
    """
    Raised when an image could not be validated at all.

    This is different from a negative ValidationResult: the classifiers
    could not be consulted, so nothing is known about the image.
    """

    def __init__(self, message: str = VALIDATION_FAILED_MESSAGE, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


def _normalize(label: str) -> str:
    return " ".join(label.lower().replace("_", " ").split())


def _is_known_plant_word(word: str) -> bool:
    return word in PLANT_CATEGORIES or word in PLANT_KEYWORDS


def _format_top(predictions: List[Prediction]) -> str:
    return ", ".join(f"{p.label} ({p.score * 100:.2f}%)" for p in predictions)


def find_non_plant(predictions: List[Prediction]) -> Optional[Prediction]:
    """
    Find a confident non-plant detection among the top predictions.

    A label counts when it names an excluded category or an isolated non-plant
    term, scores above CONFIDENCE_THRESHOLD, and is not a
    "healthy/diseased <plant>" label.
    """
    for prediction in predictions[:TOP_K_PREDICTIONS]:
        label = _normalize(prediction.label)

        qualified = _QUALIFIED_PLANT_PATTERN.match(label)
        if qualified and _is_known_plant_word(qualified.group(2)):
            continue

        excluded = find_term(label, NON_PLANT_EXCLUSION_CATEGORIES) or find_term(
            label, NON_PLANT_TERMS
        )
        if excluded and prediction.score > CONFIDENCE_THRESHOLD:
            logger.info(
                f"Non-plant detection '{prediction.label}' ({prediction.score:.2f}) "
                f"matched '{excluded}'"
            )
            return prediction

    return None


def is_plant_label(label: str) -> bool:
    """True if a label is evidence of a plant."""
    normalized = _normalize(label)
    if not normalized:
        return False

    healthy = _HEALTHY_PLANT_PATTERN.match(normalized)
    if healthy:
        # e.g. "Healthy tomato", but not "Healthy beetle"
        return healthy.group(1) not in NON_PLANT_TERMS

    in_plant_categories = contains_plant_term(normalized, PLANT_CATEGORIES)
    has_plant_keyword = contains_plant_term(normalized, PLANT_KEYWORDS)
    has_non_plant_term = contains_term(normalized, NON_PLANT_TERMS)

    return (in_plant_categories or has_plant_keyword) and not has_non_plant_term


def extract_plant_type(label: str) -> str:
    """
    Extract a clean plant type from a prediction label.

    "Healthy tomato leaf" -> "tomato", "Tomato___Late_blight" -> "Tomato",
    "bell pepper" -> "Bell Pepper".
    """
    plant_type = label.split(",")[0].strip()
    if LABEL_SEPARATOR in plant_type:
        plant_type = plant_type.split(LABEL_SEPARATOR, 1)[0]
    plant_type = " ".join(plant_type.replace("_", " ").split())

    plant_type = _HEALTHY_PREFIX.sub("", plant_type)

    for suffix in PLANT_TYPE_SUFFIXES:
        if plant_type.lower().endswith(suffix):
            plant_type = plant_type[: -len(suffix)]
            break

    # Pepper labels keep their comma ("Pepper,_bell___healthy"), check the full label
    if is_pepper_type(plant_type) or is_pepper_type(label.split(LABEL_SEPARATOR, 1)[0]):
        plant_type = "Bell Pepper"

    return plant_type.strip()


def find_plant_type(predictions: List[Prediction]) -> Optional[ValidationResult]:
    """
    Build a positive ValidationResult from the best plant-looking prediction.

    Returns:
        ValidationResult with plant type and confidence, or None when no top
        prediction looks like a plant
    """
    plant_matches = [
        p for p in predictions[:TOP_K_PREDICTIONS] if is_plant_label(p.label)
    ]
    if not plant_matches:
        return None

    best_match = max(plant_matches, key=lambda p: p.score)
    plant_type = extract_plant_type(best_match.label)
    if not plant_type:
        return None

    return ValidationResult(
        is_valid=True,
        plant_type=plant_type,
        confidence=best_match.score,
    )


class PlantValidator:
    """
    Two-stage plant validation.

    The general model runs first since it recognizes animals, people and
    objects; the plant-specific model is consulted only when the general
    model found no plant.
    """

    def __init__(
        self,
        inference_client: InferenceClient,
        general_model_id: str,
        plant_model_id: str,
    ):
        self._client = inference_client
        self.general_model_id = general_model_id
        self.plant_model_id = plant_model_id

    async def validate(self, image_base64: str) -> ValidationResult:
        """
        Decide whether an image contains a plant.

        Args:
            image_base64: Base64-encoded image

        Returns:
            ValidationResult; is_valid=False carries a human-readable reason

        Raises:
            PlantValidationError: If either classification call fails
        """
        try:
            general = await self._client.classify(image_base64, self.general_model_id)
            logger.info(
                f"General classification top predictions: "
                f"{_format_top(general[:TOP_K_PREDICTIONS])}"
            )

            non_plant = find_non_plant(general)
            if non_plant is not None:
                return ValidationResult(
                    is_valid=False,
                    reason=(
                        f"The image appears to be {non_plant.label.lower()} "
                        "rather than a plant."
                    ),
                )

            result = find_plant_type(general)
            if result is not None:
                return result

            specific = await self._client.classify(image_base64, self.plant_model_id)
            logger.info(
                f"Plant-specific classification top predictions: "
                f"{_format_top(specific[:TOP_K_PREDICTIONS])}"
            )

            result = find_plant_type(specific)
            if result is not None:
                return result

            return ValidationResult(is_valid=False, reason=NOT_A_PLANT_REASON)

        except Exception as e:
            logger.error(f"Error in plant validation: {e}", exc_info=True)
            raise PlantValidationError(
                retryable=isinstance(e, InferenceUnavailableError)
            ) from e
