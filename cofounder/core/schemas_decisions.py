"""Pydantic models for the decision ledger.

A Decision is one AI-made choice: what triggered it (context), what was
chosen (decision), why (reasoning), and later what happened (outcome) and
how the owner reacted (owner_feedback). Only the last two are writable
after creation.

The context snapshot is keyed by the decision type: each type has its own
context model declaring the fields it is known to carry. Extra keys are
kept so the snapshot stays free-form.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, model_validator


# =============================================================================
# Enums
# =============================================================================


class DecisionType(str, Enum):
    MESSAGE_RESPONSE = "message_response"
    INVOICE_CREATION = "invoice_creation"
    LEAD_FOLLOWUP = "lead_followup"
    PRICING_SUGGESTION = "pricing_suggestion"
    SCHEDULING = "scheduling"
    MARKETING = "marketing"
    CUSTOMER_SERVICE = "customer_service"
    STRATEGIC = "strategic"
    OPERATIONAL = "operational"


class Feedback(str, Enum):
    """Owner reaction to a decision."""

    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"


# Synthetic history filter: feedback not yet given
PENDING_FEEDBACK = "pending"


# =============================================================================
# Context snapshots (one per decision type)
# =============================================================================


class DecisionContext(BaseModel):
    """Base context snapshot. Unknown keys are preserved."""

    model_config = ConfigDict(extra="allow", frozen=True)


class MessageResponseContext(DecisionContext):
    conversation_id: str | None = None
    contact_phone: str | None = None
    inbound_message: str | None = None


class InvoiceCreationContext(DecisionContext):
    invoice_id: str | None = None
    contact_phone: str | None = None
    amount_cents: int | None = None
    description: str | None = None


class LeadFollowupContext(DecisionContext):
    lead_id: str | None = None
    lead_source: str | None = None
    conversation_id: str | None = None
    lead_context: str | None = None


class PricingSuggestionContext(DecisionContext):
    service: str | None = None
    current_price_cents: int | None = None
    suggested_price_cents: int | None = None


class SchedulingContext(DecisionContext):
    appointment_id: str | None = None
    requested_time: str | None = None


class MarketingContext(DecisionContext):
    channel: str | None = None
    campaign: str | None = None


class CustomerServiceContext(DecisionContext):
    contact_phone: str | None = None
    invoice_id: str | None = None
    review_id: str | None = None
    issue: str | None = None


class StrategicContext(DecisionContext):
    goal_id: str | None = None
    horizon: str | None = None


class OperationalContext(DecisionContext):
    area: str | None = None


CONTEXT_MODELS: dict[DecisionType, type[DecisionContext]] = {
    DecisionType.MESSAGE_RESPONSE: MessageResponseContext,
    DecisionType.INVOICE_CREATION: InvoiceCreationContext,
    DecisionType.LEAD_FOLLOWUP: LeadFollowupContext,
    DecisionType.PRICING_SUGGESTION: PricingSuggestionContext,
    DecisionType.SCHEDULING: SchedulingContext,
    DecisionType.MARKETING: MarketingContext,
    DecisionType.CUSTOMER_SERVICE: CustomerServiceContext,
    DecisionType.STRATEGIC: StrategicContext,
    DecisionType.OPERATIONAL: OperationalContext,
}


def _coerce_context(data: Any) -> Any:
    """Parse a raw context dict into the model matching the decision type."""
    if not isinstance(data, dict):
        return data
    raw_type = data.get("type")
    context = data.get("context")
    if raw_type is None or isinstance(context, DecisionContext):
        return data
    model = CONTEXT_MODELS[DecisionType(raw_type)]
    return {**data, "context": model.model_validate(context or {})}


# =============================================================================
# Records
# =============================================================================


class DecisionCreate(BaseModel):
    """Input for logging a new decision."""

    business_id: str
    type: DecisionType
    context: SerializeAsAny[DecisionContext] = Field(default_factory=DecisionContext)
    decision: str
    reasoning: str
    outcome: str | None = None
    owner_feedback: Feedback | None = None

    @model_validator(mode="before")
    @classmethod
    def parse_context(cls, data: Any) -> Any:
        return _coerce_context(data)


class Decision(BaseModel):
    """A logged decision. Immutable; outcome/feedback change via the ledger."""

    model_config = ConfigDict(frozen=True)

    id: str
    business_id: str
    type: DecisionType
    context: SerializeAsAny[DecisionContext]
    decision: str
    reasoning: str
    outcome: str | None = None
    owner_feedback: Feedback | None = None
    created_at: datetime

    @model_validator(mode="before")
    @classmethod
    def parse_context(cls, data: Any) -> Any:
        return _coerce_context(data)


class DecisionFilters(BaseModel):
    """History filters. ``feedback="pending"`` selects decisions without feedback."""

    type: DecisionType | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    feedback: Feedback | Literal["pending"] | None = None
    limit: int | None = None
    offset: int | None = None


# =============================================================================
# API payloads
# =============================================================================


class OutcomeRequest(BaseModel):
    outcome: str


class FeedbackRequest(BaseModel):
    business_id: str
    feedback: Feedback
