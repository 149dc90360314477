"""
Prediction data models for Plant Doctor.

Predictions are produced per inference call and consumed within one request;
ValidationResult is the Plant Validator's verdict on a single image.
"""

from typing import Optional

from pydantic import BaseModel, Field


class Prediction(BaseModel):
    """Raw classifier output entry."""

    label: str = Field(..., description="Classifier label (free text)")
    score: float = Field(..., ge=0.0, le=1.0, description="Confidence (0-1)")
    note: Optional[str] = Field(None, description="Annotation added during reconciliation")


class EnhancedPrediction(Prediction):
    """Prediction reconciled against the taxonomy."""

    formatted_label: str = Field(..., description="Human-readable label")
    treatment: Optional[str] = Field(None, description="Treatment advice")


class ValidationResult(BaseModel):
    """Outcome of plant validation for one image."""

    is_valid: bool = Field(..., description="Whether the image plausibly contains a plant")
    reason: Optional[str] = Field(None, description="Human-readable rejection reason")
    plant_type: Optional[str] = Field(None, description="Normalized plant type")
    confidence: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Score of the prediction the plant type came from"
    )
