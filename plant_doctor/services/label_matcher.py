"""
Label reconciliation for Plant Doctor.

Classifier labels are noisy free text ("Apple_Black_rot", "Tomato with Late
Blight", "bell pepper"). LabelMatcher maps them onto the fixed taxonomy so
every prediction can be shown with a human label and treatment advice.

Usage:
    from plant_doctor.services.label_matcher import LabelMatcher

    matcher = LabelMatcher(get_taxonomy_service())
    entry = matcher.match("Tomato with Late Blight")
"""

import logging
import re
from typing import Iterable, Optional

from plant_doctor.core.vocabulary import has_bacterial_disease, is_pepper_type
from plant_doctor.models.prediction import EnhancedPrediction, Prediction
from plant_doctor.models.taxonomy import LABEL_SEPARATOR, TaxonomyEntry
from plant_doctor.services.taxonomy_service import GENERIC_TREATMENT, TaxonomyService

logger = logging.getLogger(__name__)

PEPPER_BACTERIAL_SPOT_LABEL = "Pepper,_bell___Bacterial_spot"
PEPPER_HEALTHY_LABEL = "Pepper,_bell___healthy"
PEPPER_PLANT_KEY = "Pepper,_bell"

_WITH_PATTERN = re.compile(r"^([a-z\s]+) with ")
_HEALTHY_PATTERN = re.compile(r"^healthy ([a-z\s]+)$")


def _normalize_separator(label: str) -> str:
    """'Apple Black rot' / 'Apple_Black_rot' -> 'apple___black_rot'."""
    normalized = "_".join(label.lower().split())
    if LABEL_SEPARATOR not in normalized:
        normalized = normalized.replace("_", LABEL_SEPARATOR, 1)
    return normalized


def _as_words(label: str) -> str:
    return " ".join(label.lower().replace("_", " ").split())


class LabelMatcher:
    """
    Finds the closest taxonomy entry for a free-text classifier label.

    Rules are applied in order and the first hit wins: exact match, pepper
    normalization, separator normalization, "X with Y" decomposition, and the
    healthy-entry fallback. The matcher holds no mutable state.
    """

    def __init__(self, taxonomy: TaxonomyService):
        self._taxonomy = taxonomy
        self._entries: list[TaxonomyEntry] = taxonomy.get_all()
        self._by_separator_form: dict[str, TaxonomyEntry] = {}
        for entry in self._entries:
            self._by_separator_form.setdefault(
                _normalize_separator(entry.canonical_label), entry
            )

    @property
    def taxonomy(self) -> TaxonomyService:
        return self._taxonomy

    def match(self, raw_label: Optional[str]) -> Optional[TaxonomyEntry]:
        """
        Match a classifier label against the taxonomy.

        Args:
            raw_label: Label as emitted by a classifier

        Returns:
            The matching TaxonomyEntry, or None when nothing fits
        """
        if not raw_label or not raw_label.strip():
            return None
        lower_label = raw_label.strip().lower()

        # 1. Exact match
        entry = self._taxonomy.find_by_label(lower_label)
        if entry:
            return entry

        # 2. Every pepper-family label maps onto the bell pepper entries
        if is_pepper_type(lower_label):
            if has_bacterial_disease(lower_label):
                return self._taxonomy.find_by_label(PEPPER_BACTERIAL_SPOT_LABEL)
            return self._taxonomy.find_by_label(PEPPER_HEALTHY_LABEL)

        # 3. Separator variations, e.g. "Apple_Black_rot"
        entry = self._by_separator_form.get(_normalize_separator(lower_label))
        if entry:
            return entry

        # 4. "<plant> with <condition>"
        parts = lower_label.split(" with ")
        if len(parts) == 2:
            plant, condition = parts[0].strip(), parts[1].strip()
            if plant and condition:
                for entry in self._entries:
                    key = entry.canonical_label.lower()
                    words = _as_words(key)
                    if (plant in key or plant in words) and (
                        condition in key or condition in words
                    ):
                        return entry

        # 5. Healthy entry for a plant mentioned in the label
        for entry in self._entries:
            if entry.is_healthy and entry.plant_key.lower() in lower_label:
                return entry

        return None

    def enhance(self, prediction: Prediction) -> EnhancedPrediction:
        """
        Attach a human-readable label and treatment to a raw prediction.

        Args:
            prediction: Raw prediction from the inference API

        Returns:
            EnhancedPrediction; unmatched labels keep their raw text and get
            the generic treatment advice
        """
        note = prediction.note
        normalized_label = prediction.label.lower()
        entry = self.match(prediction.label)

        if entry is None:
            logger.debug(f"No taxonomy match for label '{prediction.label}'")
            return EnhancedPrediction(
                label=prediction.label,
                score=prediction.score,
                note=note,
                formatted_label=prediction.label,
                treatment=GENERIC_TREATMENT,
            )

        if is_pepper_type(normalized_label) and not normalized_label.startswith("pepper,_bell"):
            if has_bacterial_disease(normalized_label):
                pepper_note = (
                    "Detected signs of bacterial disease on pepper plant. "
                    "Using bell pepper bacterial spot treatment information."
                )
            else:
                pepper_note = "Detected pepper plant, using bell pepper disease information for treatment."
            note = f"{note} {pepper_note}" if note else pepper_note
        elif entry.canonical_label.lower() != normalized_label.strip():
            mapped_note = (
                f'Label "{prediction.label}" was mapped to '
                f'"{entry.canonical_label}" for treatment information.'
            )
            note = f"{note} {mapped_note}" if note else mapped_note

        return EnhancedPrediction(
            label=prediction.label,
            score=prediction.score,
            note=note,
            formatted_label=entry.human_label,
            treatment=entry.treatment,
        )

    def find_closest_plant_key(self, plant_type: str) -> Optional[str]:
        """
        Find the taxonomy plant key closest to a validated plant type.

        Args:
            plant_type: Plant type from validation (e.g., 'tomato', 'Bell Pepper')

        Returns:
            Plant key (e.g., 'Tomato'), or None when no plant key is related
        """
        if not plant_type or not plant_type.strip():
            return None
        lower_type = plant_type.strip().lower()

        if is_pepper_type(lower_type):
            return PEPPER_PLANT_KEY

        plant_keys = self._taxonomy.get_plant_keys()
        for key in plant_keys:
            if key.lower() == lower_type:
                return key

        for key in plant_keys:
            lower_key = key.lower()
            if lower_key in lower_type or lower_type in lower_key:
                return key

        return None


def extract_plant_types(predictions: Iterable[Prediction]) -> list[str]:
    """
    Extract the plant types a classifier's labels imply.

    Understands "Tomato with Late Blight", "Healthy Apple", composite
    "Corn___Common_rust" labels and pepper-family labels.

    Returns:
        Unique lower-case plant types, in first-seen order
    """
    plant_types: dict[str, None] = {}

    for prediction in predictions:
        label = prediction.label.strip().lower()

        with_match = _WITH_PATTERN.match(label)
        if with_match:
            plant_types[with_match.group(1).strip()] = None
            continue

        healthy_match = _HEALTHY_PATTERN.match(label)
        if healthy_match:
            plant_types[healthy_match.group(1).strip()] = None
            continue

        if label.startswith("pepper,_bell"):
            plant_types["bell pepper"] = None
            continue

        if is_pepper_type(label):
            plant_types["pepper"] = None
            continue

        if LABEL_SEPARATOR in label:
            plant = _as_words(label.split(LABEL_SEPARATOR, 1)[0])
            if plant:
                plant_types[plant] = None

    return list(plant_types)
