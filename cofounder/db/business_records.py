"""Read access to invoices, contacts, conversations and reviews."""

from __future__ import annotations

from datetime import datetime

from supabase import Client

from cofounder.core.errors import StorageError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_business import Contact, Conversation, Invoice, Review
from cofounder.db.base import BusinessRecordStore

logger = get_logger(__name__)

OVERDUE_INVOICE_STATUSES = ["sent", "overdue"]


class SupabaseBusinessRecordStore(BusinessRecordStore):
    def __init__(self, client: Client):
        self.client = client

    def _first(self, query, what: str) -> dict | None:
        try:
            response = query.limit(1).execute()
        except Exception as e:
            logger.error(f"Failed to fetch {what}: {e}")
            raise StorageError(f"Failed to fetch {what}: {e}") from e
        return response.data[0] if response.data else None

    def get_business_name(self, business_id: str) -> str | None:
        row = self._first(
            self.client.table("businesses").select("name").eq("id", business_id), "business"
        )
        return row.get("name") if row else None

    def get_invoice(self, business_id: str, invoice_id: str) -> Invoice | None:
        row = self._first(
            self.client.table("invoices")
            .select("*")
            .eq("id", invoice_id)
            .eq("business_id", business_id),
            "invoice",
        )
        return Invoice.model_validate(row) if row else None

    def list_overdue_invoices(
        self, business_id: str, sent_before: datetime, limit: int
    ) -> list[Invoice]:
        try:
            response = (
                self.client.table("invoices")
                .select("*")
                .eq("business_id", business_id)
                .in_("status", OVERDUE_INVOICE_STATUSES)
                .lt("sent_at", sent_before.isoformat())
                .order("sent_at")
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to scan invoices for business {business_id}: {e}")
            raise StorageError(f"Failed to scan invoices: {e}") from e

        return [Invoice.model_validate(row) for row in response.data or []]

    def get_contact(self, business_id: str, contact_id: str) -> Contact | None:
        row = self._first(
            self.client.table("contacts")
            .select("*")
            .eq("id", contact_id)
            .eq("business_id", business_id),
            "contact",
        )
        return Contact.model_validate(row) if row else None

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        row = self._first(
            self.client.table("conversations").select("*").eq("id", conversation_id),
            "conversation",
        )
        return Conversation.model_validate(row) if row else None

    def recent_messages(self, conversation_id: str, limit: int = 5) -> list[str]:
        try:
            response = (
                self.client.table("messages")
                .select("content, direction")
                .eq("conversation_id", conversation_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch messages for conversation {conversation_id}: {e}")
            raise StorageError(f"Failed to fetch messages: {e}") from e

        return [
            f"{'Customer' if m.get('direction') == 'inbound' else 'Business'}: {m.get('content', '')}"
            for m in response.data or []
        ]

    def get_review(self, business_id: str, review_id: str) -> Review | None:
        row = self._first(
            self.client.table("reviews")
            .select("*")
            .eq("id", review_id)
            .eq("business_id", business_id),
            "review",
        )
        return Review.model_validate(row) if row else None

    def mark_review_replied(self, review_id: str, reply_text: str, replied_at: datetime) -> None:
        try:
            (
                self.client.table("reviews")
                .update(
                    {
                        "replied": True,
                        "reply_text": reply_text,
                        "replied_at": replied_at.isoformat(),
                    }
                )
                .eq("id", review_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to mark review {review_id} replied: {e}")
            raise StorageError(f"Failed to update review: {e}") from e
