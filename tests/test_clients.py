"""Tests for LLM output parsing, the Anthropic generator and the SMS channel."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from pydantic import ValidationError

from cofounder.core.config import Settings
from cofounder.core.errors import ExternalServiceError
from cofounder.core.llm import AnthropicTextGenerator, GeneratedContent, parse_llm_json
from cofounder.core.llm_usage import estimate_cost, log_llm_usage
from cofounder.core.messaging import HttpSmsChannel


@pytest.fixture
def settings():
    return Settings(
        SUPABASE_URL="https://test.supabase.co",
        SUPABASE_SERVICE_ROLE_KEY="test-key",
        ANTHROPIC_API_KEY="test-anthropic-key",
        SMS_SEND_URL="https://sms.test/api/sms/send",
        SMS_API_TOKEN="sms-token",
    )


class TestParseLlmJson:
    def test_plain_json(self):
        content = parse_llm_json('{"reasoning": "r", "suggestedContent": "c"}', GeneratedContent)
        assert content.suggested_content == "c"

    def test_fenced_json(self):
        raw = 'Here you go:\n```json\n{"reasoning": "r", "suggestedContent": "c"}\n```'
        assert parse_llm_json(raw, GeneratedContent).reasoning == "r"

    def test_unterminated_fence(self):
        raw = '```json\n{"reasoning": "r"}'
        content = parse_llm_json(raw, GeneratedContent)
        assert content.suggested_content == ""

    def test_snake_case_accepted(self):
        content = parse_llm_json('{"reasoning": "r", "suggested_content": "c"}', GeneratedContent)
        assert content.suggested_content == "c"

    def test_not_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_llm_json("I think you should send a reminder.", GeneratedContent)

    def test_missing_reasoning(self):
        with pytest.raises(ValidationError):
            parse_llm_json('{"suggestedContent": "c"}', GeneratedContent)


class TestAnthropicTextGenerator:
    @pytest.fixture
    def anthropic(self):
        with patch("cofounder.core.llm.Anthropic") as mock:
            yield mock.return_value

    def test_returns_text(self, settings, anthropic):
        response = MagicMock()
        response.content = [MagicMock(text='{"reasoning": "r"}')]
        response.usage.input_tokens = 120
        response.usage.output_tokens = 40
        anthropic.messages.create.return_value = response

        text = AnthropicTextGenerator(settings).generate("system", "user")

        assert text == '{"reasoning": "r"}'
        kwargs = anthropic.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]
        assert kwargs["model"] == settings.COFOUNDER_MODEL

    def test_logs_usage(self, settings, anthropic):
        response = MagicMock()
        response.content = [MagicMock(text="ok")]
        response.usage.input_tokens = 1000
        response.usage.output_tokens = 100
        anthropic.messages.create.return_value = response
        usage_client = MagicMock()

        AnthropicTextGenerator(settings, usage_client=usage_client).generate("s", "u")

        usage_client.table.assert_called_with("llm_usage_log")
        row = usage_client.table.return_value.insert.call_args.args[0]
        assert row["workflow"] == "cofounder_actions"
        assert row["tokens_input"] == 1000

    def test_service_error(self, settings, anthropic):
        anthropic.messages.create.side_effect = RuntimeError("overloaded")

        with pytest.raises(ExternalServiceError, match="overloaded"):
            AnthropicTextGenerator(settings).generate("s", "u")

    def test_empty_response(self, settings, anthropic):
        response = MagicMock()
        response.content = []
        anthropic.messages.create.return_value = response

        with pytest.raises(ExternalServiceError, match="empty"):
            AnthropicTextGenerator(settings).generate("s", "u")


class TestLlmUsage:
    def test_estimate_cost_unknown_model(self):
        assert estimate_cost("some-unknown-model", 1000, 1000) == 0.0

    def test_usage_without_client_is_noop(self):
        log_llm_usage(None, workflow="w", model="m", tokens_input=1, tokens_output=1)

    def test_usage_write_failure_is_swallowed(self):
        client = MagicMock()
        client.table.side_effect = RuntimeError("db down")
        log_llm_usage(client, workflow="w", model="m", tokens_input=1, tokens_output=1)


class TestHttpSmsChannel:
    @pytest.fixture
    def transport(self):
        """Route the channel's httpx.Client through a MockTransport."""
        handler = MagicMock()
        real_client = httpx.Client

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        with patch("cofounder.core.messaging.httpx.Client", side_effect=client_factory):
            yield handler

    def test_send_returns_sid(self, settings, transport):
        transport.return_value = httpx.Response(200, json={"success": True, "messageSid": "SM123"})

        sid = HttpSmsChannel(settings).send("+15555550100", "Hello")

        assert sid == "SM123"
        request = transport.call_args.args[0]
        assert str(request.url) == "https://sms.test/api/sms/send"
        assert request.headers["Authorization"] == "Bearer sms-token"
        assert json.loads(request.content) == {"to": "+15555550100", "body": "Hello"}

    def test_gateway_error(self, settings, transport):
        transport.return_value = httpx.Response(503, json={"error": "unavailable"})

        with pytest.raises(ExternalServiceError, match="503"):
            HttpSmsChannel(settings).send("+15555550100", "Hello")

    def test_connection_error(self, settings, transport):
        transport.side_effect = httpx.ConnectError("refused")

        with pytest.raises(ExternalServiceError):
            HttpSmsChannel(settings).send("+15555550100", "Hello")

    def test_empty_body(self, settings, transport):
        transport.return_value = httpx.Response(200)
        assert HttpSmsChannel(settings).send("+15555550100", "Hello") is None
