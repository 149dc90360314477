"""
Diagnosis data models for Plant Doctor.

This module contains Pydantic models for the diagnosis workflow including
the persisted record, requests, responses, and task status.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, HttpUrl

from plant_doctor.models.prediction import EnhancedPrediction


class DiagnosisRecord(BaseModel):
    """A completed diagnosis, immutable once persisted."""

    id: UUID = Field(..., description="Diagnosis ID")
    plant_name: str = Field(..., description="Plant name given by the user or validated type")
    predictions: List[EnhancedPrediction] = Field(
        default_factory=list, description="Reconciled predictions, in model order"
    )
    disease_name: str = Field(..., description="Human label of the top prediction")
    image_path: str = Field(..., description="Stored image URL or path")
    treatment: str = Field(..., description="Treatment of the top prediction")
    additional_info: Dict[str, Any] = Field(default_factory=dict, description="Pipeline metadata")
    created_at: datetime = Field(..., description="Creation time (UTC)")


class FormattedPrediction(BaseModel):
    """Prediction as returned to API clients."""
    disease: str = Field(..., description="Human-readable disease label")
    confidence: str = Field(..., description="Confidence as percentage, e.g. '87.50%'")
    description: str = Field(..., description="Treatment advice")

    @classmethod
    def from_enhanced(cls, prediction: EnhancedPrediction) -> "FormattedPrediction":
        return cls(
            disease=prediction.formatted_label,
            confidence=f"{prediction.score * 100:.2f}%",
            description=prediction.treatment or "",
        )


class PredictionResult(BaseModel):
    """Response payload of a successful diagnosis."""
    success: bool = Field(True, description="Always true for successful diagnoses")
    timestamp: str = Field(..., description="Response time (ISO-8601)")
    model: str = Field(..., description="Disease classifier model ID")
    id: UUID = Field(..., description="Diagnosis ID")
    plant_name: str
    predictions: List[FormattedPrediction]
    disease_name: str
    treatment: str
    image_path: str
    additional_info: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class DiagnoseRequest(BaseModel):
    """Diagnosis request for an image reachable by URL."""
    image_url: HttpUrl = Field(..., description="Image URL")
    plant_name: Optional[str] = Field(
        None, max_length=255, description="Plant name (optional)"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "image_url": "https://example.com/images/tomato-leaf.jpg",
                    "plant_name": "Tomato",
                }
            ]
        }
    }


class DiagnoseResponse(BaseModel):
    """Diagnosis task submission response."""
    task_id: str = Field(..., description="Celery task ID")
    status: str = Field(..., description="Task status (PENDING, STARTED, SUCCESS, FAILURE)")
    message: str = Field(..., description="Response message")


class TaskStatus(BaseModel):
    """Diagnosis task status."""
    task_id: str = Field(..., description="Celery task ID")
    status: str = Field(..., description="Task status (PENDING, STARTED, SUCCESS, FAILURE, RETRY)")
    result: Optional[PredictionResult] = Field(None, description="Diagnosis result (on success)")
    error: Optional[str] = Field(None, description="Error message (on failure)")


class HistoryItem(BaseModel):
    """Summary of a stored diagnosis."""
    id: UUID
    plant_name: str
    disease_name: str
    image_url: str
    predictions: List[EnhancedPrediction]
    additional_info: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_record(cls, record: DiagnosisRecord) -> "HistoryItem":
        return cls(
            id=record.id,
            plant_name=record.plant_name,
            disease_name=record.disease_name,
            image_url=record.image_path,
            predictions=record.predictions,
            additional_info=record.additional_info,
            created_at=record.created_at,
        )


class HistoryResponse(BaseModel):
    history: List[HistoryItem]


class HistoryDetail(DiagnosisRecord):
    """A stored diagnosis with the image URL the history list exposes."""
    image_url: str

    @classmethod
    def from_record(cls, record: DiagnosisRecord) -> "HistoryDetail":
        return cls(**record.model_dump(), image_url=record.image_path)


class ErrorResponse(BaseModel):
    """Structured error body returned for every failure."""
    success: bool = False
    error: str
    status: int
    timestamp: str
