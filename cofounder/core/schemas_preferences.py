"""Pydantic models for learned preferences and the feedback loop."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cofounder.core.schemas_decisions import Feedback

AVOID_PREFIX = "avoid:"
MAX_PREFERENCE_EXAMPLES = 10


class PreferenceCategory(str, Enum):
    COMMUNICATION_STYLE = "communication_style"
    TIMING = "timing"
    PRICING = "pricing"
    TONE = "tone"
    URGENCY_THRESHOLD = "urgency_threshold"
    FOLLOW_UP_FREQUENCY = "follow_up_frequency"
    RESPONSE_LENGTH = "response_length"
    FORMALITY = "formality"
    AUTOMATION_LEVEL = "automation_level"


def clamp_confidence(value: float) -> float:
    """Clamp to [0, 1] and drop float noise (0.30000000000000004 -> 0.3)."""
    return round(max(0.0, min(1.0, value)), 4)


class LearnedPreference(BaseModel):
    """A business's confidence-scored behavioral signal.

    ``preference`` is a short label; an ``avoid:`` prefix marks a negative
    preference learned from rejections.
    """

    id: str
    business_id: str
    category: PreferenceCategory
    preference: str
    confidence: float = Field(ge=0.0, le=1.0)
    examples: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("examples", mode="before")
    @classmethod
    def default_examples(cls, v):
        return v or []

    @property
    def is_avoidance(self) -> bool:
        return self.preference.startswith(AVOID_PREFIX)

    @property
    def label(self) -> str:
        """Preference label without the avoid: prefix."""
        return self.preference.removeprefix(AVOID_PREFIX)


# =============================================================================
# Learning results (transient)
# =============================================================================


class PatternMatch(BaseModel):
    """A categorical pattern extracted from a decision."""

    model_config = ConfigDict(frozen=True)

    category: PreferenceCategory
    pattern: str
    confidence: float
    examples: list[str] = Field(default_factory=list)


class PreferenceChange(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    CREATE = "create"
    DELETE = "delete"


class PreferenceUpdate(BaseModel):
    """One concrete change applied to the preference store."""

    category: PreferenceCategory
    preference: str
    action: PreferenceChange
    old_confidence: float | None = None
    new_confidence: float | None = None


class FeedbackAnalysis(BaseModel):
    decision_id: str
    feedback: Feedback
    patterns_detected: list[PatternMatch] = Field(default_factory=list)
    preferences_updated: list[PreferenceUpdate] = Field(default_factory=list)
    # Patterns whose store update failed; the rest were still applied
    failed_patterns: list[str] = Field(default_factory=list)


class LearningInsight(BaseModel):
    category: str
    insight: str
    confidence: float
    based_on: int  # number of examples / decisions behind the insight


class AlignmentResult(BaseModel):
    alignment_score: float
    conflicts: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


# =============================================================================
# API payloads
# =============================================================================


class PreferenceUpsertRequest(BaseModel):
    business_id: str
    category: PreferenceCategory
    preference: str
    confidence: float | None = Field(default=None, gt=0.0, le=1.0)
    examples: list[str] | None = None


class DecreaseConfidenceRequest(BaseModel):
    amount: float = Field(default=0.2, gt=0.0, le=1.0)


class AlignmentRequest(BaseModel):
    business_id: str
    proposed_decision: str
    decision_type: str
