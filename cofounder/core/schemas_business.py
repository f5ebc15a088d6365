"""Source records the action factory reads: invoices, contacts, reviews."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Invoice(BaseModel):
    id: str
    business_id: str
    contact_phone: str
    contact_name: str | None = None
    amount_cents: int
    description: str | None = None
    status: str
    sent_at: datetime | None = None
    created_at: datetime


class Contact(BaseModel):
    id: str
    business_id: str
    name: str | None = None
    phone: str
    email: str | None = None
    source: str | None = None
    status: str | None = None
    created_at: datetime


class Conversation(BaseModel):
    id: str
    business_id: str
    contact_id: str | None = None
    phone: str
    status: str
    context: dict[str, Any] = Field(default_factory=dict)
    last_message_at: datetime | None = None
    created_at: datetime


class Review(BaseModel):
    id: str
    business_id: str
    platform: str
    rating: int
    reviewer_name: str | None = None
    review_text: str = ""
    replied: bool = False
    created_at: datetime
