"""
Taxonomy API endpoints for Plant Doctor.

Exposes the supported plant/condition pairs and the label matcher, which is
handy when checking how a classifier label will be reconciled.
"""

from fastapi import APIRouter, Depends, Path, Query

from plant_doctor.core import depends_taxonomy
from plant_doctor.models.taxonomy import TaxonomyEntry, TaxonomyMatch, TaxonomyStandard
from plant_doctor.services.label_matcher import LabelMatcher
from plant_doctor.services.taxonomy_service import TaxonomyService

router = APIRouter(prefix="/taxonomy", tags=["taxonomy"])


@router.get("", response_model=TaxonomyStandard)
async def list_taxonomy(
    taxonomy: TaxonomyService = Depends(depends_taxonomy),
) -> TaxonomyStandard:
    """Return the taxonomy metadata and all entries."""
    return TaxonomyStandard(metadata=taxonomy.metadata, taxonomy=taxonomy.get_all())


@router.get("/match", response_model=TaxonomyMatch)
async def match_label(
    label: str = Query(..., min_length=1, max_length=200, description="Classifier label"),
    taxonomy: TaxonomyService = Depends(depends_taxonomy),
) -> TaxonomyMatch:
    """
    Reconcile a free-text classifier label with the taxonomy.

    Example:
        GET /api/v1/taxonomy/match?label=Tomato%20with%20Late%20Blight
        Response:
        {
            "label": "Tomato with Late Blight",
            "matched": true,
            "entry": {"plant_key": "Tomato", "condition_key": "Late_blight", ...}
        }
    """
    entry = LabelMatcher(taxonomy).match(label)
    return TaxonomyMatch(label=label, matched=entry is not None, entry=entry)


@router.get("/entries/{canonical_label}", response_model=TaxonomyEntry)
async def get_taxonomy_entry(
    canonical_label: str = Path(..., description="Canonical label, e.g. 'Tomato___Late_blight'"),
    taxonomy: TaxonomyService = Depends(depends_taxonomy),
) -> TaxonomyEntry:
    """
    Get a taxonomy entry by canonical label.

    Unknown labels answer 404 (TaxonomyNotFoundError handler).
    """
    return taxonomy.get_by_label(canonical_label)
