"""Co-Founder action API endpoints: generate, review, execute."""

from fastapi import APIRouter, Depends, HTTPException, Query

from cofounder.api.errors import http_error
from cofounder.core.engine import CoFounderEngine, get_engine
from cofounder.core.errors import CoFounderError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_actions import (
    ActionFilters,
    ActionStats,
    ActionStatus,
    ActionType,
    BatchExecutionResult,
    BulkActionRequest,
    CoFounderAction,
    CreateActionRequest,
    ExecuteRequest,
    ExecutionLogEntry,
    ExecutionResult,
    Priority,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/actions")

SCAN_REMINDERS = "scan_reminders"


def _batch_response(batch: BatchExecutionResult) -> dict:
    return {
        "results": [r.model_dump(mode="json") for r in batch.results],
        "success_count": batch.success_count,
        "message": batch.message,
    }


@router.get("")
def list_actions(
    business_id: str = Query(..., description="Business id"),
    type: ActionType | None = Query(None),
    status: ActionStatus | None = Query(None, description="Defaults to pending"),
    priority: Priority | None = Query(None),
    limit: int | None = Query(None, ge=1, le=200),
    include_stats: bool = Query(False, description="Also return counts by status and type"),
    engine: CoFounderEngine = Depends(get_engine),
) -> dict:
    filters = ActionFilters(type=type, status=status, priority=priority, limit=limit)
    try:
        actions = engine.lifecycle.list_pending(business_id, filters)
        response: dict = {"actions": [a.model_dump(mode="json") for a in actions]}
        if include_stats:
            response["stats"] = engine.lifecycle.stats(business_id).model_dump()
    except CoFounderError as e:
        raise http_error(e) from e
    return response


@router.get("/stats", response_model=ActionStats)
def action_stats(
    business_id: str = Query(..., description="Business id"),
    engine: CoFounderEngine = Depends(get_engine),
):
    try:
        return engine.lifecycle.stats(business_id)
    except CoFounderError as e:
        raise http_error(e) from e


@router.get("/executions", response_model=list[ExecutionLogEntry])
def execution_history(
    business_id: str = Query(..., description="Business id"),
    action_type: ActionType | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    engine: CoFounderEngine = Depends(get_engine),
):
    try:
        return engine.executor.execution_history(
            business_id, action_type.value if action_type else None, limit
        )
    except CoFounderError as e:
        raise http_error(e) from e


@router.get("/{action_id}", response_model=CoFounderAction)
def get_action(action_id: str, engine: CoFounderEngine = Depends(get_engine)):
    try:
        return engine.lifecycle.get_by_id(action_id)
    except CoFounderError as e:
        raise http_error(e) from e


@router.post("", status_code=201)
def create_action(body: CreateActionRequest, engine: CoFounderEngine = Depends(get_engine)) -> dict:
    """
    Generate an action from a source record.

    type=payment_reminder needs invoice_id, lead_response needs contact_id
    (conversation_id optional), review_reply needs review_id, alert needs
    category and message. type=scan_reminders scans overdue invoices.
    """
    factory = engine.factory
    try:
        if body.type == SCAN_REMINDERS:
            scan = factory.scan_for_pending_payment_reminders(body.business_id)
            return scan.model_dump(mode="json")

        if body.type == ActionType.PAYMENT_REMINDER.value:
            if not body.invoice_id:
                raise HTTPException(status_code=400, detail="invoice_id is required")
            action = factory.payment_reminder_for_invoice(body.business_id, body.invoice_id)

        elif body.type == ActionType.LEAD_RESPONSE.value:
            if not body.contact_id:
                raise HTTPException(status_code=400, detail="contact_id is required")
            action = factory.lead_response_for_contact(
                body.business_id, body.contact_id, body.conversation_id
            )

        elif body.type == ActionType.REVIEW_REPLY.value:
            if not body.review_id:
                raise HTTPException(status_code=400, detail="review_id is required")
            action = factory.review_reply_for_review(body.business_id, body.review_id)

        elif body.type == ActionType.ALERT.value:
            if not body.category or not body.message:
                raise HTTPException(status_code=400, detail="category and message are required")
            action = factory.generate_alert(body.business_id, body.category, body.message, body.data)

        else:
            raise HTTPException(status_code=400, detail=f"Unsupported action type: {body.type}")

    except CoFounderError as e:
        raise http_error(e) from e

    return {"action": action.model_dump(mode="json")}


@router.post("/bulk-approve")
def bulk_approve(body: BulkActionRequest, engine: CoFounderEngine = Depends(get_engine)) -> dict:
    try:
        updated = engine.lifecycle.bulk_approve(body.action_ids)
    except CoFounderError as e:
        raise http_error(e) from e
    return {"updated": len(updated), "actions": [a.model_dump(mode="json") for a in updated]}


@router.post("/bulk-reject")
def bulk_reject(body: BulkActionRequest, engine: CoFounderEngine = Depends(get_engine)) -> dict:
    try:
        updated = engine.lifecycle.bulk_reject(body.action_ids)
    except CoFounderError as e:
        raise http_error(e) from e
    return {"updated": len(updated), "actions": [a.model_dump(mode="json") for a in updated]}


@router.post("/execute")
def execute_actions(body: ExecuteRequest, engine: CoFounderEngine = Depends(get_engine)) -> dict:
    """Execute one action, a list of actions, or all approved actions of a business."""
    modes = sum([bool(body.action_id), bool(body.action_ids), body.execute_all])
    if modes != 1:
        raise HTTPException(
            status_code=400,
            detail="Provide exactly one of action_id, action_ids, or execute_all with business_id",
        )
    if body.execute_all and not body.business_id:
        raise HTTPException(status_code=400, detail="business_id is required with execute_all")

    try:
        if body.action_id:
            result = engine.executor.execute(body.action_id)
            return {"result": result.model_dump(mode="json")}
        if body.action_ids:
            return _batch_response(engine.executor.execute_many(body.action_ids))
        return _batch_response(engine.executor.execute_all_approved(body.business_id))
    except CoFounderError as e:
        raise http_error(e) from e


@router.post("/{action_id}/approve", response_model=CoFounderAction)
def approve_action(action_id: str, engine: CoFounderEngine = Depends(get_engine)):
    try:
        return engine.lifecycle.approve(action_id)
    except CoFounderError as e:
        raise http_error(e) from e


@router.post("/{action_id}/reject", response_model=CoFounderAction)
def reject_action(action_id: str, engine: CoFounderEngine = Depends(get_engine)):
    try:
        return engine.lifecycle.reject(action_id)
    except CoFounderError as e:
        raise http_error(e) from e


@router.post("/{action_id}/revert", response_model=CoFounderAction)
def revert_action(action_id: str, engine: CoFounderEngine = Depends(get_engine)):
    """Move an approved or rejected action back to pending."""
    try:
        return engine.lifecycle.revert(action_id)
    except CoFounderError as e:
        raise http_error(e) from e


@router.post("/{action_id}/retry", response_model=ExecutionResult)
def retry_action(action_id: str, engine: CoFounderEngine = Depends(get_engine)):
    """Re-attempt an approved action whose last execution failed."""
    try:
        return engine.executor.retry(action_id)
    except CoFounderError as e:
        raise http_error(e) from e
