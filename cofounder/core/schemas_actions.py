"""Pydantic models for Co-Founder actions.

An action is a proposed unit of autonomous work that waits for the owner:

  pending → approved → executed
          ↘ rejected

``details`` is a tagged variant: its shape is fully determined by the
action ``type`` (see DETAILS_MODELS). Raw dicts coming back from storage
are parsed into the matching model; a mismatched model is rejected.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enums
# =============================================================================


class ActionType(str, Enum):
    PAYMENT_REMINDER = "payment_reminder"
    LEAD_RESPONSE = "lead_response"
    REVIEW_REPLY = "review_reply"
    SCHEDULE_OPTIMIZATION = "schedule_optimization"
    ALERT = "alert"


class ActionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    EXECUTED = "executed"
    REJECTED = "rejected"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# =============================================================================
# Details variants (one per action type)
# =============================================================================


class PaymentReminderDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    invoice_id: str
    contact_name: str | None = None
    contact_phone: str
    amount_cents: int
    days_overdue: int
    suggested_message: str = ""


class LeadResponseDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lead_id: str
    contact_name: str | None = None
    contact_phone: str
    lead_source: str | None = None
    conversation_id: str | None = None
    lead_context: str = ""
    suggested_response: str = ""


class ReviewReplyDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    review_id: str
    review_platform: str
    review_rating: int = Field(ge=1, le=5)
    review_text: str = ""
    suggested_reply: str = ""


class ScheduleOptimizationDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    optimization_type: str
    current_state: str = ""
    suggested_change: str = ""
    expected_impact: str = ""


class AlertDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    alert_category: str
    alert_message: str
    alert_data: dict[str, Any] | None = None


ActionDetails = Union[
    PaymentReminderDetails,
    LeadResponseDetails,
    ReviewReplyDetails,
    ScheduleOptimizationDetails,
    AlertDetails,
]

DETAILS_MODELS: dict[ActionType, type[BaseModel]] = {
    ActionType.PAYMENT_REMINDER: PaymentReminderDetails,
    ActionType.LEAD_RESPONSE: LeadResponseDetails,
    ActionType.REVIEW_REPLY: ReviewReplyDetails,
    ActionType.SCHEDULE_OPTIMIZATION: ScheduleOptimizationDetails,
    ActionType.ALERT: AlertDetails,
}


# =============================================================================
# Records
# =============================================================================


class ExecutionResult(BaseModel):
    """Outcome of one attempt to execute an action."""

    success: bool
    message: str
    timestamp: datetime
    external_id: str | None = None  # e.g. SMS gateway message SID


class CoFounderAction(BaseModel):
    id: str
    business_id: str
    type: ActionType
    status: ActionStatus = ActionStatus.PENDING
    reasoning: str
    details: ActionDetails
    priority: Priority
    created_at: datetime
    updated_at: datetime
    executed_at: datetime | None = None
    execution_result: ExecutionResult | None = None
    # Ledger entry this action was proposed under, if any
    decision_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def parse_details(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "type" not in data:
            return data
        details = data.get("details")
        if isinstance(details, dict):
            model = DETAILS_MODELS[ActionType(data["type"])]
            return {**data, "details": model.model_validate(details)}
        return data

    @model_validator(mode="after")
    def check_details_match_type(self) -> "CoFounderAction":
        expected = DETAILS_MODELS[self.type]
        if not isinstance(self.details, expected):
            raise ValueError(
                f"details for {self.type.value} must be {expected.__name__}, "
                f"got {type(self.details).__name__}"
            )
        return self


class ActionFilters(BaseModel):
    """List filters. Status defaults to pending when not given."""

    type: ActionType | None = None
    status: ActionStatus | None = None
    priority: Priority | None = None
    limit: int | None = None


class ActionStats(BaseModel):
    pending: int = 0
    approved: int = 0
    executed: int = 0
    rejected: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)


class ExecutionLogEntry(BaseModel):
    """Execution-history row, one per attempt."""

    id: str
    action_id: str
    business_id: str
    action_type: ActionType
    action_details: dict[str, Any]
    execution_result: ExecutionResult
    executed_at: datetime
    success: bool


class ExecutionOutcome(BaseModel):
    """Per-item result of a batch execution."""

    action_id: str
    success: bool
    result: ExecutionResult | None = None
    error: str | None = None


class BatchExecutionResult(BaseModel):
    results: list[ExecutionOutcome] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def message(self) -> str:
        if not self.results:
            return "No approved actions to execute"
        return f"Executed {self.success_count}/{len(self.results)} actions"


class ScanFailure(BaseModel):
    invoice_id: str
    error: str


class ReminderScanResult(BaseModel):
    actions: list[CoFounderAction] = Field(default_factory=list)
    failures: list[ScanFailure] = Field(default_factory=list)


# =============================================================================
# API payloads
# =============================================================================


class CreateActionRequest(BaseModel):
    """Generate an action from a source record.

    ``type`` is an ActionType value or ``scan_reminders``.
    """

    business_id: str
    type: str
    invoice_id: str | None = None
    contact_id: str | None = None
    conversation_id: str | None = None
    review_id: str | None = None
    category: str | None = None
    message: str | None = None
    data: dict[str, Any] | None = None


class BulkActionRequest(BaseModel):
    action_ids: list[str] = Field(min_length=1)


class ExecuteRequest(BaseModel):
    """Exactly one of action_id, action_ids, or execute_all + business_id."""

    action_id: str | None = None
    action_ids: list[str] | None = None
    business_id: str | None = None
    execute_all: bool = False
