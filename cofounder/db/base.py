"""Store interfaces for the Co-Founder engine.

Components receive these through their constructors. The Supabase
implementations live next to this module; tests use in-memory ones.

Contract shared by every store:
- reads scoped to an unknown business return empty results, not errors
- any persistence failure raises StorageError
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from cofounder.core.schemas_actions import (
    ActionFilters,
    ActionStatus,
    CoFounderAction,
    ExecutionLogEntry,
    ExecutionResult,
)
from cofounder.core.schemas_business import Contact, Conversation, Invoice, Review
from cofounder.core.schemas_decisions import Decision, DecisionCreate, DecisionFilters, Feedback
from cofounder.core.schemas_preferences import LearnedPreference, PreferenceCategory


class DecisionLedger(ABC):
    """Append-mostly log of AI decisions."""

    @abstractmethod
    def log(self, decision: DecisionCreate) -> str:
        """Persist a new decision and return its id."""

    @abstractmethod
    def record_outcome(self, decision_id: str, outcome: str) -> None:
        """Set the outcome once. NotFoundError / InvalidTransitionError otherwise."""

    @abstractmethod
    def record_feedback(self, decision_id: str, feedback: Feedback) -> None:
        """Set (or correct) owner feedback. NotFoundError if missing."""

    @abstractmethod
    def get(self, decision_id: str) -> Decision | None:
        ...

    @abstractmethod
    def history(self, business_id: str, filters: DecisionFilters | None = None) -> list[Decision]:
        """Decisions for a business, newest first."""


class PreferenceStore(ABC):
    """Per-business learned preferences, unique on (business, category, preference)."""

    @abstractmethod
    def list(self, business_id: str) -> list[LearnedPreference]:
        """All preferences for a business, highest confidence first."""

    @abstractmethod
    def list_by_category(
        self, business_id: str, category: PreferenceCategory
    ) -> list[LearnedPreference]:
        ...

    @abstractmethod
    def get(self, preference_id: str) -> LearnedPreference | None:
        ...

    @abstractmethod
    def find(
        self, business_id: str, category: PreferenceCategory, preference: str
    ) -> LearnedPreference | None:
        ...

    @abstractmethod
    def upsert(
        self,
        business_id: str,
        category: PreferenceCategory,
        preference: str,
        confidence: float | None = None,
        examples: list[str] | None = None,
    ) -> LearnedPreference | None:
        """Create or update a preference.

        New rows start at ``confidence`` (default 0.3). Existing rows take
        ``confidence`` when given, else +0.1. Examples are appended and only
        the most recent 10 are kept. Confidence is clamped to [0, 1]; an
        existing row set to 0 is deleted and None is returned.
        """

    @abstractmethod
    def decrease_confidence(self, preference_id: str, amount: float = 0.2) -> LearnedPreference | None:
        """Lower confidence by ``amount``; delete and return None on reaching 0."""

    @abstractmethod
    def forget(self, preference_id: str) -> None:
        ...

    @abstractmethod
    def reset_category(self, business_id: str, category: PreferenceCategory) -> int:
        """Delete every preference in a category; returns rows removed."""


class ActionStore(ABC):
    @abstractmethod
    def insert(self, action: CoFounderAction) -> CoFounderAction:
        ...

    @abstractmethod
    def get(self, action_id: str) -> CoFounderAction | None:
        ...

    @abstractmethod
    def list(self, business_id: str, filters: ActionFilters) -> list[CoFounderAction]:
        """Newest first. ``filters.status`` is applied as given (None = any)."""

    @abstractmethod
    def update_status(
        self,
        action_ids: list[str],
        status: ActionStatus,
        expected: set[ActionStatus],
        updated_at: datetime,
        execution_result: ExecutionResult | None = None,
        executed_at: datetime | None = None,
    ) -> list[CoFounderAction]:
        """Conditionally move actions to ``status`` in one write.

        Only rows whose current status is in ``expected`` change; the
        updated rows are returned.
        """

    @abstractmethod
    def pending_reminder_invoice_ids(self, business_id: str) -> set[str]:
        """Invoice ids already covered by a pending payment_reminder."""


class ExecutionLogStore(ABC):
    @abstractmethod
    def append(self, entry: ExecutionLogEntry) -> None:
        ...

    @abstractmethod
    def list(
        self, business_id: str, action_type: str | None = None, limit: int = 50
    ) -> list[ExecutionLogEntry]:
        ...


class BusinessRecordStore(ABC):
    """Read access to the records actions are generated from."""

    @abstractmethod
    def get_business_name(self, business_id: str) -> str | None:
        ...

    @abstractmethod
    def get_invoice(self, business_id: str, invoice_id: str) -> Invoice | None:
        ...

    @abstractmethod
    def list_overdue_invoices(
        self, business_id: str, sent_before: datetime, limit: int
    ) -> list[Invoice]:
        """Invoices in status sent/overdue sent before ``sent_before``, oldest first."""

    @abstractmethod
    def get_contact(self, business_id: str, contact_id: str) -> Contact | None:
        ...

    @abstractmethod
    def get_conversation(self, conversation_id: str) -> Conversation | None:
        ...

    @abstractmethod
    def recent_messages(self, conversation_id: str, limit: int = 5) -> list[str]:
        """Newest-first message lines rendered as ``Customer: ...`` / ``Business: ...``."""

    @abstractmethod
    def get_review(self, business_id: str, review_id: str) -> Review | None:
        ...

    @abstractmethod
    def mark_review_replied(self, review_id: str, reply_text: str, replied_at: datetime) -> None:
        ...
