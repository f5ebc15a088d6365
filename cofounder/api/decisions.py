"""Decision ledger API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from cofounder.api.errors import http_error
from cofounder.core.engine import CoFounderEngine, get_engine
from cofounder.core.errors import CoFounderError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_decisions import (
    PENDING_FEEDBACK,
    Decision,
    DecisionCreate,
    DecisionFilters,
    DecisionType,
    Feedback,
    FeedbackRequest,
    OutcomeRequest,
)
from cofounder.core.schemas_preferences import FeedbackAnalysis

logger = get_logger(__name__)

router = APIRouter(prefix="/decisions")


@router.post("", status_code=201)
def log_decision(body: DecisionCreate, engine: CoFounderEngine = Depends(get_engine)) -> dict:
    """Log a new decision. Returns its id."""
    try:
        decision_id = engine.ledger.log(body)
    except CoFounderError as e:
        raise http_error(e) from e
    return {"id": decision_id}


@router.get("", response_model=list[Decision])
def decision_history(
    business_id: str = Query(..., description="Business id"),
    type: DecisionType | None = Query(None, description="Filter by decision type"),
    feedback: str | None = Query(
        None, description="approved, rejected, modified, or pending (no feedback yet)"
    ),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    limit: int | None = Query(None, ge=1, le=500),
    offset: int | None = Query(None, ge=0),
    engine: CoFounderEngine = Depends(get_engine),
):
    """Decision history for a business, newest first."""
    if feedback is not None and feedback != PENDING_FEEDBACK:
        try:
            feedback = Feedback(feedback)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Unknown feedback filter: {feedback}") from e

    filters = DecisionFilters(
        type=type,
        feedback=feedback,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    try:
        return engine.ledger.history(business_id, filters)
    except CoFounderError as e:
        raise http_error(e) from e


@router.get("/{decision_id}", response_model=Decision)
def get_decision(decision_id: str, engine: CoFounderEngine = Depends(get_engine)):
    try:
        decision = engine.ledger.get(decision_id)
    except CoFounderError as e:
        raise http_error(e) from e
    if decision is None:
        raise HTTPException(status_code=404, detail="Decision not found")
    return decision


@router.post("/{decision_id}/outcome")
def record_outcome(
    decision_id: str, body: OutcomeRequest, engine: CoFounderEngine = Depends(get_engine)
) -> dict:
    """Record what happened after a decision was executed (once)."""
    try:
        engine.ledger.record_outcome(decision_id, body.outcome)
    except CoFounderError as e:
        raise http_error(e) from e
    return {"success": True}


@router.post("/{decision_id}/feedback", response_model=FeedbackAnalysis)
def record_feedback(
    decision_id: str, body: FeedbackRequest, engine: CoFounderEngine = Depends(get_engine)
):
    """Record owner feedback on a decision and learn from it."""
    try:
        analysis = engine.feedback.process_feedback(body.business_id, decision_id, body.feedback)
        engine.ledger.record_feedback(decision_id, body.feedback)
        return analysis
    except CoFounderError as e:
        raise http_error(e) from e
