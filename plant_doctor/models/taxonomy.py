"""
Taxonomy data models for Plant Doctor.

This module defines Pydantic models that match the JSON structure of
data/taxonomy_plant_village_v1.json: the fixed set of plant/condition pairs
the disease classifier was trained on, with display labels and treatments.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

# Separator between plant key and condition key in canonical labels
LABEL_SEPARATOR = "___"


class Metadata(BaseModel):
    """Metadata for the taxonomy standard."""

    version: str = Field(..., description="Version of the taxonomy standard")
    last_updated: str = Field(..., description="Last update date (YYYY-MM-DD)")
    description: str = Field(..., description="Description of the taxonomy")
    maintainer: str = Field(..., description="Team maintaining the standard")


class TaxonomyEntry(BaseModel):
    """Single supported plant/condition pair."""

    model_config = ConfigDict(frozen=True)

    plant_key: str = Field(..., min_length=1, description="Plant key (e.g., 'Tomato')")
    condition_key: str = Field(
        ..., min_length=1, description="Condition key (e.g., 'Late_blight', 'healthy')"
    )
    human_label: str = Field(
        ..., min_length=1, description="Display label (e.g., 'Tomato - Late Blight')"
    )
    treatment: str = Field(..., min_length=1, description="Canned treatment advice")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def canonical_label(self) -> str:
        """Composite classifier label, e.g. 'Tomato___Late_blight'."""
        return f"{self.plant_key}{LABEL_SEPARATOR}{self.condition_key}"

    @property
    def is_healthy(self) -> bool:
        return self.condition_key.lower() == "healthy"


class TaxonomyStandard(BaseModel):
    """Complete taxonomy standard loaded from JSON."""

    metadata: Metadata
    taxonomy: List[TaxonomyEntry]


class TaxonomyMatch(BaseModel):
    """Result of reconciling a free-text label against the taxonomy."""

    label: str = Field(..., description="Label as submitted")
    matched: bool = Field(..., description="Whether a taxonomy entry was found")
    entry: Optional[TaxonomyEntry] = Field(None, description="Matched entry")
