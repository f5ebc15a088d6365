"""Action factory: turns business events into proposed (pending) actions.

Every generator follows the same shape:
1. derive deterministic facts from the source record
2. ask the text generator for (reasoning, suggested content), falling
   back to generic reasoning and empty content on any failure
3. compute priority from a fixed rule table
4. log a ledger decision for the suggestion (alerts excepted) and persist
   the action in ``pending``
"""

import json
import logging
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from cofounder.core.errors import CoFounderError, NotFoundError
from cofounder.core.insight_generator import InsightGenerator
from cofounder.core.llm import GeneratedContent, TextGenerator, parse_llm_json
from cofounder.core.locks import KeyedLock
from cofounder.core.logging import get_logger, log_with_context
from cofounder.core.schemas_actions import (
    ActionDetails,
    ActionStatus,
    ActionType,
    AlertDetails,
    CoFounderAction,
    LeadResponseDetails,
    PaymentReminderDetails,
    Priority,
    ReminderScanResult,
    ReviewReplyDetails,
    ScanFailure,
)
from cofounder.core.schemas_business import Contact, Conversation, Invoice, Review
from cofounder.core.schemas_decisions import (
    CustomerServiceContext,
    DecisionContext,
    DecisionCreate,
    DecisionType,
    LeadFollowupContext,
)
from cofounder.db.base import ActionStore, BusinessRecordStore, DecisionLedger

logger = get_logger(__name__)

FALLBACK_REASONING = "Action recommended based on business data."
NO_CONVERSATION_CONTEXT = "New lead, no conversation yet."
RECENT_MESSAGE_LIMIT = 5
SECONDS_PER_DAY = 86400

SYSTEM_PROMPT = """You are an AI Co-Founder assistant that helps small business owners automate tasks.
Your job is to explain WHY you recommend taking a specific action and provide the content for that action.

Business Context:
{business_context}

Respond in JSON format with two fields:
1. "reasoning": A clear, concise explanation (2-3 sentences) of why this action is recommended, referencing specific data points
2. "suggestedContent": The actual message/content to use for this action

Keep the tone professional but friendly. Be specific about the business benefits."""

PAYMENT_REMINDER_PROMPT = """Generate a payment reminder for an invoice:
- Customer: {customer}
- Amount: ${amount:.2f}
- Description: {description}
- Days outstanding: {days_overdue}
- Business name: {business_name}

Create a friendly but professional SMS payment reminder. Keep it under 160 characters if possible."""

LEAD_RESPONSE_PROMPT = """Generate a response for a new lead:
- Lead name: {name}
- Lead source: {source}
- Lead phone: {phone}
- Recent conversation context: {lead_context}

Create a warm, professional response to engage this lead. Ask a qualifying question if appropriate."""

REVIEW_REPLY_PROMPT = """Generate a reply to a customer review:
- Platform: {platform}
- Rating: {rating}/5 stars
- Reviewer: {reviewer}
- Review text: "{review_text}"
- Business name: {business_name}
- Sentiment: {sentiment}

Create an appropriate public reply. For negative reviews, acknowledge concerns and offer to resolve offline. For positive reviews, thank them warmly."""

# Ledger type each suggestion is recorded under
DECISION_TYPES: dict[ActionType, DecisionType] = {
    ActionType.PAYMENT_REMINDER: DecisionType.CUSTOMER_SERVICE,
    ActionType.LEAD_RESPONSE: DecisionType.LEAD_FOLLOWUP,
    ActionType.REVIEW_REPLY: DecisionType.CUSTOMER_SERVICE,
}


def calculate_priority(action_type: ActionType, details: ActionDetails | None = None) -> Priority:
    """Priority rule table keyed by action type."""
    if action_type == ActionType.PAYMENT_REMINDER and isinstance(details, PaymentReminderDetails):
        days_overdue = details.days_overdue
        amount = details.amount_cents / 100

        if days_overdue > 30 and amount > 500:
            return Priority.URGENT
        if days_overdue > 14 or amount > 1000:
            return Priority.HIGH
        if days_overdue > 7:
            return Priority.MEDIUM
        return Priority.LOW

    if action_type == ActionType.LEAD_RESPONSE:
        # Speed to lead
        return Priority.HIGH

    if action_type == ActionType.REVIEW_REPLY:
        rating = details.review_rating if isinstance(details, ReviewReplyDetails) else 5
        if rating <= 2:
            return Priority.URGENT
        if rating <= 3:
            return Priority.HIGH
        return Priority.MEDIUM

    if action_type == ActionType.ALERT:
        return Priority.HIGH

    return Priority.MEDIUM


def days_outstanding(invoice: Invoice, now: datetime) -> int:
    """Whole days since the invoice was sent (or created, if never sent)."""
    sent = invoice.sent_at or invoice.created_at
    if sent.tzinfo is None:
        sent = sent.replace(tzinfo=UTC)
    return int((now - sent).total_seconds() // SECONDS_PER_DAY)


def review_sentiment(rating: int) -> str:
    if rating >= 4:
        return "positive"
    if rating >= 3:
        return "neutral"
    return "negative"


class ActionFactory:
    def __init__(
        self,
        actions: ActionStore,
        records: BusinessRecordStore,
        generator: TextGenerator,
        ledger: DecisionLedger | None = None,
        insights: InsightGenerator | None = None,
        scan_batch_size: int = 10,
        min_days_outstanding: int = 7,
        locks: KeyedLock | None = None,
    ):
        self.actions = actions
        self.records = records
        self.generator = generator
        self.ledger = ledger
        self.insights = insights
        self.scan_batch_size = scan_batch_size
        self.min_days_outstanding = min_days_outstanding
        self.locks = locks or KeyedLock()

    # =========================================================================
    # Text generation
    # =========================================================================

    def generate_reasoning(
        self, business_id: str, prompt: str, business_context: dict
    ) -> GeneratedContent:
        """Ask for (reasoning, suggested content). Never raises."""
        system_prompt = SYSTEM_PROMPT.format(
            business_context=json.dumps(business_context, indent=2, default=str)
        )
        if self.insights:
            try:
                summary = self.insights.preference_summary_for_ai(business_id)
            except CoFounderError as e:
                logger.warning(f"Preference summary unavailable for business {business_id}: {e}")
                summary = ""
            if summary:
                system_prompt = f"{system_prompt}\n\n{summary}"

        try:
            raw = self.generator.generate(system_prompt, prompt)
            content = parse_llm_json(raw, GeneratedContent)
        except Exception as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"Reasoning generation failed, using fallback: {e}",
                business_id=business_id,
            )
            return GeneratedContent(reasoning=FALLBACK_REASONING, suggested_content="")

        if not content.reasoning.strip():
            return GeneratedContent(
                reasoning=FALLBACK_REASONING, suggested_content=content.suggested_content
            )
        return content

    # =========================================================================
    # Generators
    # =========================================================================

    def generate_payment_reminder(
        self,
        invoice: Invoice,
        business_name: str | None = None,
        now: datetime | None = None,
    ) -> CoFounderAction:
        now = now or datetime.now(UTC)
        days_overdue = days_outstanding(invoice, now)
        amount = invoice.amount_cents / 100

        generated = self.generate_reasoning(
            invoice.business_id,
            PAYMENT_REMINDER_PROMPT.format(
                customer=invoice.contact_name or "Customer",
                amount=amount,
                description=invoice.description or "Services",
                days_overdue=days_overdue,
                business_name=business_name or "Our business",
            ),
            {
                "invoiceAmount": amount,
                "daysOverdue": days_overdue,
                "customerName": invoice.contact_name,
            },
        )

        details = PaymentReminderDetails(
            invoice_id=invoice.id,
            contact_name=invoice.contact_name,
            contact_phone=invoice.contact_phone,
            amount_cents=invoice.amount_cents,
            days_overdue=days_overdue,
            suggested_message=generated.suggested_content,
        )
        context = CustomerServiceContext(
            contact_phone=invoice.contact_phone,
            invoice_id=invoice.id,
            issue="payment_overdue",
            days_overdue=days_overdue,
            amount_cents=invoice.amount_cents,
        )
        return self._store(invoice.business_id, ActionType.PAYMENT_REMINDER, details, generated, context)

    def generate_lead_response(
        self,
        contact: Contact,
        conversation: Conversation | None = None,
        recent_messages: list[str] | None = None,
    ) -> CoFounderAction:
        lead_context = "\n".join(recent_messages or []) or NO_CONVERSATION_CONTEXT

        generated = self.generate_reasoning(
            contact.business_id,
            LEAD_RESPONSE_PROMPT.format(
                name=contact.name or "Unknown",
                source=contact.source or "Direct",
                phone=contact.phone,
                lead_context=lead_context,
            ),
            {
                "leadName": contact.name,
                "leadSource": contact.source,
                "hasConversation": conversation is not None,
            },
        )

        details = LeadResponseDetails(
            lead_id=contact.id,
            contact_name=contact.name,
            contact_phone=contact.phone,
            lead_source=contact.source,
            conversation_id=conversation.id if conversation else None,
            lead_context=lead_context,
            suggested_response=generated.suggested_content,
        )
        context = LeadFollowupContext(
            lead_id=contact.id,
            lead_source=contact.source,
            conversation_id=details.conversation_id,
            lead_context=lead_context,
        )
        return self._store(contact.business_id, ActionType.LEAD_RESPONSE, details, generated, context)

    def generate_review_reply(
        self, review: Review, business_name: str | None = None
    ) -> CoFounderAction:
        sentiment = review_sentiment(review.rating)

        generated = self.generate_reasoning(
            review.business_id,
            REVIEW_REPLY_PROMPT.format(
                platform=review.platform,
                rating=review.rating,
                reviewer=review.reviewer_name or "Customer",
                review_text=review.review_text,
                business_name=business_name or "Our business",
                sentiment=sentiment,
            ),
            {"rating": review.rating, "platform": review.platform, "sentiment": sentiment},
        )

        details = ReviewReplyDetails(
            review_id=review.id,
            review_platform=review.platform,
            review_rating=review.rating,
            review_text=review.review_text,
            suggested_reply=generated.suggested_content,
        )
        context = CustomerServiceContext(
            review_id=review.id, issue=f"{sentiment}_review", rating=review.rating
        )
        return self._store(review.business_id, ActionType.REVIEW_REPLY, details, generated, context)

    def generate_alert(
        self,
        business_id: str,
        category: str,
        message: str,
        data: dict | None = None,
    ) -> CoFounderAction:
        """Alerts are informational; no text generation and no ledger entry."""
        details = AlertDetails(alert_category=category, alert_message=message, alert_data=data)
        generated = GeneratedContent(reasoning=f"Alert generated: {message}")
        return self._store(business_id, ActionType.ALERT, details, generated)

    # =========================================================================
    # Source-record lookups
    # =========================================================================

    def payment_reminder_for_invoice(self, business_id: str, invoice_id: str) -> CoFounderAction:
        invoice = self.records.get_invoice(business_id, invoice_id)
        if invoice is None:
            raise NotFoundError("invoice", invoice_id)
        business_name = self.records.get_business_name(business_id)
        return self.generate_payment_reminder(invoice, business_name)

    def lead_response_for_contact(
        self,
        business_id: str,
        contact_id: str,
        conversation_id: str | None = None,
    ) -> CoFounderAction:
        contact = self.records.get_contact(business_id, contact_id)
        if contact is None:
            raise NotFoundError("contact", contact_id)

        conversation = None
        recent_messages: list[str] = []
        if conversation_id:
            conversation = self.records.get_conversation(conversation_id)
            if conversation is None or conversation.business_id != business_id:
                raise NotFoundError("conversation", conversation_id)
            # Oldest first so the context reads as a transcript
            recent_messages = list(
                reversed(self.records.recent_messages(conversation_id, RECENT_MESSAGE_LIMIT))
            )

        return self.generate_lead_response(contact, conversation, recent_messages)

    def review_reply_for_review(self, business_id: str, review_id: str) -> CoFounderAction:
        review = self.records.get_review(business_id, review_id)
        if review is None:
            raise NotFoundError("review", review_id)
        business_name = self.records.get_business_name(business_id)
        return self.generate_review_reply(review, business_name)

    # =========================================================================
    # Batch
    # =========================================================================

    def scan_for_pending_payment_reminders(
        self, business_id: str, now: datetime | None = None
    ) -> ReminderScanResult:
        """
        Generate reminders for overdue invoices that lack a pending one.

        Only invoices in status sent/overdue, sent more than
        ``min_days_outstanding`` days ago, are considered, oldest first and
        at most ``scan_batch_size`` of them. One invoice failing does not
        stop the rest.
        """
        now = now or datetime.now(UTC)
        result = ReminderScanResult()

        # One scan per business at a time, so dedup sees earlier scans' actions
        with self.locks.hold((business_id, "reminder_scan")):
            invoices = self.records.list_overdue_invoices(
                business_id,
                sent_before=now - timedelta(days=self.min_days_outstanding),
                limit=self.scan_batch_size,
            )
            if not invoices:
                return result

            covered = self.actions.pending_reminder_invoice_ids(business_id)
            business_name = self.records.get_business_name(business_id)

            for invoice in invoices:
                if invoice.id in covered:
                    continue
                try:
                    result.actions.append(
                        self.generate_payment_reminder(invoice, business_name, now=now)
                    )
                    covered.add(invoice.id)
                except CoFounderError as e:
                    logger.error(f"Failed to generate reminder for invoice {invoice.id}: {e}")
                    result.failures.append(ScanFailure(invoice_id=invoice.id, error=str(e)))

        log_with_context(
            logger,
            logging.INFO,
            f"Reminder scan: {len(invoices)} overdue, {len(result.actions)} created, "
            f"{len(result.failures)} failed",
            business_id=business_id,
        )
        return result

    # =========================================================================
    # Persistence
    # =========================================================================

    def _store(
        self,
        business_id: str,
        action_type: ActionType,
        details: ActionDetails,
        generated: GeneratedContent,
        context: DecisionContext | None = None,
    ) -> CoFounderAction:
        now = datetime.now(UTC)
        decision_id = None
        if context is not None and self.ledger is not None:
            decision_id = self._log_decision(business_id, action_type, context, generated)

        action = CoFounderAction(
            id=str(uuid4()),
            business_id=business_id,
            type=action_type,
            status=ActionStatus.PENDING,
            reasoning=generated.reasoning,
            details=details,
            priority=calculate_priority(action_type, details),
            created_at=now,
            updated_at=now,
            decision_id=decision_id,
        )
        stored = self.actions.insert(action)

        log_with_context(
            logger,
            logging.INFO,
            f"Created {action_type.value} action {stored.id} ({stored.priority.value})",
            business_id=business_id,
            action_id=stored.id,
        )
        return stored

    def _log_decision(
        self,
        business_id: str,
        action_type: ActionType,
        context: DecisionContext,
        generated: GeneratedContent,
    ) -> str | None:
        """Record the suggestion in the ledger. Best-effort."""
        try:
            return self.ledger.log(
                DecisionCreate(
                    business_id=business_id,
                    type=DECISION_TYPES[action_type],
                    context=context,
                    decision=generated.suggested_content,
                    reasoning=generated.reasoning,
                )
            )
        except CoFounderError as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"Could not log decision for {action_type.value} action: {e}",
                business_id=business_id,
            )
            return None
