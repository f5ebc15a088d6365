"""Learning API endpoints: insights, prompt summary, alignment checks."""

from fastapi import APIRouter, Depends, Query

from cofounder.api.errors import http_error
from cofounder.core.engine import CoFounderEngine, get_engine
from cofounder.core.errors import CoFounderError
from cofounder.core.schemas_preferences import AlignmentRequest, AlignmentResult, LearningInsight

router = APIRouter(prefix="/learning")


@router.get("/insights", response_model=list[LearningInsight])
def learning_insights(
    business_id: str = Query(..., description="Business id"),
    engine: CoFounderEngine = Depends(get_engine),
):
    try:
        return engine.insights.generate_insights(business_id)
    except CoFounderError as e:
        raise http_error(e) from e


@router.get("/summary")
def preference_summary(
    business_id: str = Query(..., description="Business id"),
    engine: CoFounderEngine = Depends(get_engine),
) -> dict:
    """Preference summary as injected into generation prompts."""
    try:
        return {"summary": engine.insights.preference_summary_for_ai(business_id)}
    except CoFounderError as e:
        raise http_error(e) from e


@router.post("/alignment", response_model=AlignmentResult)
def check_alignment(body: AlignmentRequest, engine: CoFounderEngine = Depends(get_engine)):
    """Advisory score of a proposed decision against learned preferences."""
    try:
        return engine.alignment.check_alignment(
            body.business_id, body.proposed_decision, body.decision_type
        )
    except CoFounderError as e:
        raise http_error(e) from e
