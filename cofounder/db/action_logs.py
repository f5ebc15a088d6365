"""Execution history backed by the cofounder_action_logs table."""

from __future__ import annotations

from supabase import Client

from cofounder.core.errors import StorageError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_actions import ExecutionLogEntry
from cofounder.db.base import ExecutionLogStore

logger = get_logger(__name__)

TABLE = "cofounder_action_logs"


class SupabaseExecutionLogStore(ExecutionLogStore):
    def __init__(self, client: Client):
        self.client = client

    def append(self, entry: ExecutionLogEntry) -> None:
        try:
            self.client.table(TABLE).insert(entry.model_dump(mode="json")).execute()
        except Exception as e:
            logger.error(f"Failed to log execution of action {entry.action_id}: {e}")
            raise StorageError(f"Failed to log execution: {e}") from e

    def list(
        self, business_id: str, action_type: str | None = None, limit: int = 50
    ) -> list[ExecutionLogEntry]:
        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("business_id", business_id)
            .order("executed_at", desc=True)
            .limit(limit)
        )
        if action_type:
            query = query.eq("action_type", action_type)

        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to fetch execution history for business {business_id}: {e}")
            raise StorageError(f"Failed to fetch execution history: {e}") from e

        return [ExecutionLogEntry.model_validate(row) for row in response.data or []]
