"""
TaxonomyService for Plant Doctor.

This module provides a singleton service that loads taxonomy_plant_village_v1.json
and provides fast in-memory lookups for taxonomy entries.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from plant_doctor.models.taxonomy import Metadata, TaxonomyEntry, TaxonomyStandard

logger = logging.getLogger(__name__)

DEFAULT_TAXONOMY_PATH = (
    Path(__file__).resolve().parent.parent / "data" / "taxonomy_plant_village_v1.json"
)

# Returned when a label cannot be reconciled with any taxonomy entry
GENERIC_TREATMENT = (
    "Consult with a local agricultural extension for treatment recommendations."
)


class TaxonomyNotFoundError(Exception):
    """Raised when a taxonomy entry is not found."""

    pass


class TaxonomyValidationError(Exception):
    """Raised when the taxonomy file does not match the expected schema."""

    pass


class TaxonomyService:
    """
    Singleton service for taxonomy lookups.

    This service loads taxonomy_plant_village_v1.json at startup
    and provides fast in-memory lookups. Entries are frozen, so the
    loaded table can be shared between concurrent requests.
    """

    _instance: Optional["TaxonomyService"] = None

    def __new__(cls) -> "TaxonomyService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        # Load JSON file
        json_path = DEFAULT_TAXONOMY_PATH
        if not json_path.exists():
            raise FileNotFoundError(
                f"Taxonomy file not found at {json_path}. "
                "Please ensure data/taxonomy_plant_village_v1.json exists."
            )

        with open(json_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        # Validate with Pydantic
        try:
            self._data = TaxonomyStandard(**data)
        except ValidationError as e:
            raise TaxonomyValidationError(f"Invalid taxonomy file {json_path}: {e}") from e

        # Build indexes for fast lookup
        self._by_label: dict[str, TaxonomyEntry] = {
            entry.canonical_label: entry for entry in self._data.taxonomy
        }
        self._by_lower_label: dict[str, TaxonomyEntry] = {
            entry.canonical_label.lower(): entry for entry in self._data.taxonomy
        }
        # dict.fromkeys keeps file order
        self._plant_keys: list[str] = list(
            dict.fromkeys(entry.plant_key for entry in self._data.taxonomy)
        )
        self._initialized = True

        logger.info(
            f"Taxonomy v{self._data.metadata.version} loaded: "
            f"{len(self._data.taxonomy)} entries, {len(self._plant_keys)} plants"
        )

    @property
    def metadata(self) -> Metadata:
        """Get taxonomy metadata."""
        return self._data.metadata

    def get_all(self) -> list[TaxonomyEntry]:
        """Get all taxonomy entries."""
        return list(self._data.taxonomy)

    def get_plant_keys(self) -> list[str]:
        """Get the distinct plant keys, e.g. ['Apple', 'Cherry', ...]."""
        return list(self._plant_keys)

    def get_by_label(self, label: str) -> TaxonomyEntry:
        """
        Get taxonomy entry by canonical label.

        Args:
            label: Canonical label (e.g., 'Tomato___Late_blight')

        Returns:
            TaxonomyEntry

        Raises:
            TaxonomyNotFoundError: If label not found
        """
        if label not in self._by_label:
            raise TaxonomyNotFoundError(f"Taxonomy label '{label}' not found")
        return self._by_label[label]

    def find_by_label(self, label: str) -> Optional[TaxonomyEntry]:
        """Case-insensitive lookup by canonical label; None when absent."""
        if not label:
            return None
        return self._by_lower_label.get(label.lower())

    def get_healthy_entry(self, plant_key: str) -> Optional[TaxonomyEntry]:
        """Get the '<plant>___healthy' entry for a plant key, if one exists."""
        return self.find_by_label(f"{plant_key}___healthy")


# Module-level singleton instance
_taxonomy_service: Optional[TaxonomyService] = None


def get_taxonomy_service() -> TaxonomyService:
    """
    Get the singleton TaxonomyService instance.

    Returns:
        TaxonomyService instance
    """
    global _taxonomy_service
    if _taxonomy_service is None:
        _taxonomy_service = TaxonomyService()
    return _taxonomy_service
