"""Text-generation client and response parsing helpers."""

import json
import re
import time
from abc import ABC, abstractmethod
from typing import TypeVar

from anthropic import Anthropic
from pydantic import BaseModel, ConfigDict, Field
from supabase import Client

from cofounder.core.config import Settings
from cofounder.core.errors import ExternalServiceError
from cofounder.core.llm_usage import log_llm_usage
from cofounder.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class TextGenerator(ABC):
    """Black-box text completion: prompt in, text out, fallible."""

    @abstractmethod
    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """
        Generate a completion.

        Raises:
            ExternalServiceError: On any service failure or empty response
        """


class AnthropicTextGenerator(TextGenerator):
    """TextGenerator backed by the Anthropic Messages API."""

    def __init__(
        self,
        settings: Settings,
        usage_client: Client | None = None,
        workflow: str = "cofounder_actions",
    ):
        self.model = settings.COFOUNDER_MODEL
        self.max_tokens = settings.COFOUNDER_MAX_TOKENS
        self.client = Anthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
        self.usage_client = usage_client
        self.workflow = workflow

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        start = time.time()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except Exception as e:
            raise ExternalServiceError(f"Text generation failed: {e}") from e

        duration_ms = int((time.time() - start) * 1000)
        log_llm_usage(
            self.usage_client,
            workflow=self.workflow,
            model=self.model,
            tokens_input=response.usage.input_tokens if response.usage else 0,
            tokens_output=response.usage.output_tokens if response.usage else 0,
            duration_ms=duration_ms,
        )

        text = response.content[0].text if response.content else ""
        if not text.strip():
            raise ExternalServiceError("Text generation returned an empty response")
        return text


class GeneratedContent(BaseModel):
    """The (reasoning, suggested content) pair the action prompts ask for."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    reasoning: str
    suggested_content: str = Field(default="", alias="suggestedContent")


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    # Fallback: unterminated fence
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Parse LLM output as JSON and validate against a Pydantic model.

    Args:
        raw_output: Raw string from LLM response
        model: Pydantic model class to validate against

    Returns:
        Validated Pydantic model instance

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        pydantic.ValidationError: If parsed JSON doesn't match schema
    """
    cleaned = _strip_llm_fences(raw_output)
    parsed = json.loads(cleaned)
    return model.model_validate(parsed)
