"""Learned preference API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from cofounder.api.errors import http_error
from cofounder.core.engine import CoFounderEngine, get_engine
from cofounder.core.errors import CoFounderError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_preferences import (
    DecreaseConfidenceRequest,
    LearnedPreference,
    PreferenceCategory,
    PreferenceUpsertRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/preferences")


@router.get("", response_model=list[LearnedPreference])
def list_preferences(
    business_id: str = Query(..., description="Business id"),
    category: PreferenceCategory | None = Query(None, description="Filter by category"),
    engine: CoFounderEngine = Depends(get_engine),
):
    """Preferences for a business, highest confidence first."""
    try:
        if category:
            return engine.preferences.list_by_category(business_id, category)
        return engine.preferences.list(business_id)
    except CoFounderError as e:
        raise http_error(e) from e


@router.put("", response_model=LearnedPreference)
def update_preference(
    body: PreferenceUpsertRequest, engine: CoFounderEngine = Depends(get_engine)
):
    """Create a preference or update its confidence and examples."""
    try:
        preference = engine.preferences.upsert(
            body.business_id,
            body.category,
            body.preference,
            confidence=body.confidence,
            examples=body.examples,
        )
    except CoFounderError as e:
        raise http_error(e) from e

    if preference is None:
        raise HTTPException(status_code=500, detail="Preference was removed during update")
    return preference


@router.post("/{preference_id}/decrease")
def decrease_confidence(
    preference_id: str,
    body: DecreaseConfidenceRequest | None = None,
    engine: CoFounderEngine = Depends(get_engine),
) -> dict:
    """Lower confidence in a preference; it is deleted when it reaches 0."""
    amount = body.amount if body else DecreaseConfidenceRequest().amount
    try:
        preference = engine.preferences.decrease_confidence(preference_id, amount)
    except CoFounderError as e:
        raise http_error(e) from e

    return {
        "deleted": preference is None,
        "preference": preference.model_dump(mode="json") if preference else None,
    }


@router.delete("/{preference_id}")
def forget_preference(preference_id: str, engine: CoFounderEngine = Depends(get_engine)) -> dict:
    try:
        engine.preferences.forget(preference_id)
    except CoFounderError as e:
        raise http_error(e) from e
    return {"success": True}


@router.delete("")
def reset_category(
    business_id: str = Query(..., description="Business id"),
    category: PreferenceCategory = Query(..., description="Category to reset"),
    engine: CoFounderEngine = Depends(get_engine),
) -> dict:
    """Forget every preference in a category."""
    try:
        removed = engine.preferences.reset_category(business_id, category)
    except CoFounderError as e:
        raise http_error(e) from e
    return {"success": True, "removed": removed}
