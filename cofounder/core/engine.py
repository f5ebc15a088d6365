"""Composition root: wires stores, clients and components together."""

from dataclasses import dataclass
from functools import lru_cache

from supabase import Client

from cofounder.core.action_executor import ActionExecutor
from cofounder.core.action_factory import ActionFactory
from cofounder.core.action_lifecycle import ActionLifecycleManager
from cofounder.core.alignment_checker import AlignmentChecker
from cofounder.core.config import Settings, get_settings
from cofounder.core.feedback_processor import FeedbackProcessor
from cofounder.core.insight_generator import InsightGenerator
from cofounder.core.llm import AnthropicTextGenerator, TextGenerator
from cofounder.core.locks import KeyedLock
from cofounder.core.messaging import HttpSmsChannel, MessageChannel
from cofounder.core.pattern_extractor import HeuristicPatternExtractor, PatternExtractor
from cofounder.db.action_logs import SupabaseExecutionLogStore
from cofounder.db.actions import SupabaseActionStore
from cofounder.db.base import (
    ActionStore,
    BusinessRecordStore,
    DecisionLedger,
    ExecutionLogStore,
    PreferenceStore,
)
from cofounder.db.business_records import SupabaseBusinessRecordStore
from cofounder.db.decisions import SupabaseDecisionLedger
from cofounder.db.preferences import SupabasePreferenceStore
from cofounder.db.supabase_client import get_supabase


@dataclass
class CoFounderEngine:
    ledger: DecisionLedger
    preferences: PreferenceStore
    feedback: FeedbackProcessor
    insights: InsightGenerator
    alignment: AlignmentChecker
    factory: ActionFactory
    lifecycle: ActionLifecycleManager
    executor: ActionExecutor


def assemble_engine(
    ledger: DecisionLedger,
    preferences: PreferenceStore,
    actions: ActionStore,
    logs: ExecutionLogStore,
    records: BusinessRecordStore,
    generator: TextGenerator,
    channel: MessageChannel,
    settings: Settings | None = None,
    extractor: PatternExtractor | None = None,
) -> CoFounderEngine:
    """Build the engine from explicit collaborators (used by tests too)."""
    scan_batch_size = settings.REMINDER_SCAN_BATCH_SIZE if settings else 10
    min_days = settings.REMINDER_MIN_DAYS_OUTSTANDING if settings else 7
    execute_all_limit = settings.EXECUTE_ALL_LIMIT if settings else 50

    feedback = FeedbackProcessor(
        ledger, preferences, extractor or HeuristicPatternExtractor(), KeyedLock()
    )
    insights = InsightGenerator(ledger, preferences)
    lifecycle = ActionLifecycleManager(actions, ledger, feedback)

    return CoFounderEngine(
        ledger=ledger,
        preferences=preferences,
        feedback=feedback,
        insights=insights,
        alignment=AlignmentChecker(preferences),
        factory=ActionFactory(
            actions,
            records,
            generator,
            ledger=ledger,
            insights=insights,
            scan_batch_size=scan_batch_size,
            min_days_outstanding=min_days,
        ),
        lifecycle=lifecycle,
        executor=ActionExecutor(
            lifecycle,
            channel,
            records,
            logs,
            ledger=ledger,
            execute_all_limit=execute_all_limit,
        ),
    )


def build_engine(client: Client, settings: Settings) -> CoFounderEngine:
    """Build the production engine on Supabase, Anthropic and the SMS gateway."""
    return assemble_engine(
        ledger=SupabaseDecisionLedger(client),
        preferences=SupabasePreferenceStore(client),
        actions=SupabaseActionStore(client),
        logs=SupabaseExecutionLogStore(client),
        records=SupabaseBusinessRecordStore(client),
        generator=AnthropicTextGenerator(settings, usage_client=client),
        channel=HttpSmsChannel(settings),
        settings=settings,
    )


@lru_cache
def get_engine() -> CoFounderEngine:
    """FastAPI dependency; one engine per process."""
    return build_engine(get_supabase(), get_settings())
