"""Learned preferences backed by the cofounder_preferences table."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from supabase import Client

from cofounder.core.errors import InvalidPreferenceError, NotFoundError, StorageError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_preferences import (
    MAX_PREFERENCE_EXAMPLES,
    LearnedPreference,
    PreferenceCategory,
    clamp_confidence,
)
from cofounder.db.base import PreferenceStore

logger = get_logger(__name__)

TABLE = "cofounder_preferences"
INITIAL_CONFIDENCE = 0.3
DEFAULT_INCREMENT = 0.1


class SupabasePreferenceStore(PreferenceStore):
    def __init__(self, client: Client):
        self.client = client

    def _select(self, query, what: str) -> list[LearnedPreference]:
        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to fetch {what}: {e}")
            raise StorageError(f"Failed to fetch {what}: {e}") from e
        return [LearnedPreference.model_validate(row) for row in response.data or []]

    def list(self, business_id: str) -> list[LearnedPreference]:
        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("business_id", business_id)
            .order("confidence", desc=True)
        )
        return self._select(query, "preferences")

    def list_by_category(
        self, business_id: str, category: PreferenceCategory
    ) -> list[LearnedPreference]:
        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("business_id", business_id)
            .eq("category", category.value)
            .order("confidence", desc=True)
        )
        return self._select(query, "preferences by category")

    def get(self, preference_id: str) -> LearnedPreference | None:
        query = self.client.table(TABLE).select("*").eq("id", preference_id).limit(1)
        rows = self._select(query, "preference")
        return rows[0] if rows else None

    def find(
        self, business_id: str, category: PreferenceCategory, preference: str
    ) -> LearnedPreference | None:
        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("business_id", business_id)
            .eq("category", category.value)
            .eq("preference", preference)
            .limit(1)
        )
        rows = self._select(query, "preference")
        return rows[0] if rows else None

    def upsert(
        self,
        business_id: str,
        category: PreferenceCategory,
        preference: str,
        confidence: float | None = None,
        examples: list[str] | None = None,
    ) -> LearnedPreference | None:
        """Update or create a preference (one row per business/category/label)."""
        existing = self.find(business_id, category, preference)
        now = datetime.now(UTC).isoformat()

        if existing:
            new_confidence = clamp_confidence(
                confidence if confidence is not None else existing.confidence + DEFAULT_INCREMENT
            )
            if new_confidence == 0:
                self.forget(existing.id)
                return None
        elif confidence is not None and clamp_confidence(confidence) == 0:
            raise InvalidPreferenceError("A new preference cannot start at confidence 0")

        try:
            if existing:
                new_examples = (
                    (existing.examples + examples)[-MAX_PREFERENCE_EXAMPLES:]
                    if examples
                    else existing.examples
                )
                response = (
                    self.client.table(TABLE)
                    .update(
                        {
                            "confidence": new_confidence,
                            "examples": new_examples,
                            "updated_at": now,
                        }
                    )
                    .eq("id", existing.id)
                    .execute()
                )
            else:
                row = {
                    "id": str(uuid4()),
                    "business_id": business_id,
                    "category": category.value,
                    "preference": preference,
                    "confidence": clamp_confidence(
                        confidence if confidence is not None else INITIAL_CONFIDENCE
                    ),
                    "examples": (examples or [])[-MAX_PREFERENCE_EXAMPLES:],
                    "created_at": now,
                    "updated_at": now,
                }
                response = self.client.table(TABLE).insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to upsert preference {category.value}/{preference}: {e}")
            raise StorageError(f"Failed to update preference: {e}") from e

        if not response.data:
            raise StorageError(f"Failed to update preference {category.value}/{preference}")
        return LearnedPreference.model_validate(response.data[0])

    def decrease_confidence(self, preference_id: str, amount: float = 0.2) -> LearnedPreference | None:
        """Decrease confidence in a preference; the row is deleted at 0."""
        existing = self.get(preference_id)
        if existing is None:
            raise NotFoundError("preference", preference_id)

        new_confidence = clamp_confidence(existing.confidence - amount)

        if new_confidence == 0:
            self.forget(preference_id)
            logger.info(f"Preference {preference_id} decayed to 0 and was deleted")
            return None

        try:
            response = (
                self.client.table(TABLE)
                .update({"confidence": new_confidence, "updated_at": datetime.now(UTC).isoformat()})
                .eq("id", preference_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to decrease preference {preference_id}: {e}")
            raise StorageError(f"Failed to update preference: {e}") from e

        if not response.data:
            raise NotFoundError("preference", preference_id)
        return LearnedPreference.model_validate(response.data[0])

    def forget(self, preference_id: str) -> None:
        """Delete (forget) a specific preference."""
        try:
            self.client.table(TABLE).delete().eq("id", preference_id).execute()
        except Exception as e:
            logger.error(f"Failed to delete preference {preference_id}: {e}")
            raise StorageError(f"Failed to delete preference: {e}") from e

    def reset_category(self, business_id: str, category: PreferenceCategory) -> int:
        """Reset all preferences for a category."""
        try:
            response = (
                self.client.table(TABLE)
                .delete()
                .eq("business_id", business_id)
                .eq("category", category.value)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to reset {category.value} preferences: {e}")
            raise StorageError(f"Failed to reset preferences: {e}") from e

        removed = len(response.data or [])
        logger.info(
            f"Reset {removed} {category.value} preferences",
            extra={"business_id": business_id},
        )
        return removed
