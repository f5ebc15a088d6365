"""Pytest configuration and fixtures."""

import os

import pytest

from tests.fakes.fake_db import (
    FakeActionStore,
    FakeBusinessRecordStore,
    FakeChannel,
    FakeDecisionLedger,
    FakeExecutionLogStore,
    FakePreferenceStore,
    FakeTextGenerator,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
    os.environ["COFOUNDER_ENV"] = "test"


@pytest.fixture
def ledger():
    return FakeDecisionLedger()


@pytest.fixture
def preferences():
    return FakePreferenceStore()


@pytest.fixture
def action_store():
    return FakeActionStore()


@pytest.fixture
def execution_logs():
    return FakeExecutionLogStore()


@pytest.fixture
def records():
    return FakeBusinessRecordStore()


@pytest.fixture
def generator():
    return FakeTextGenerator()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def engine(ledger, preferences, action_store, execution_logs, records, generator, channel):
    """Fully wired engine over in-memory collaborators."""
    from cofounder.core.engine import assemble_engine

    return assemble_engine(
        ledger=ledger,
        preferences=preferences,
        actions=action_store,
        logs=execution_logs,
        records=records,
        generator=generator,
        channel=channel,
    )
