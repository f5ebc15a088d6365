"""Pattern extraction from logged decisions.

A pattern is a short categorical label ("collaborative", "high_urgency")
derived from a decision's text. Extractors are pure: no storage and no
external calls. The heuristic extractor below is keyword based; another
implementation can be swapped in through the PatternExtractor interface.
"""

import re
from abc import ABC, abstractmethod

from cofounder.core.schemas_decisions import Decision, DecisionType
from cofounder.core.schemas_preferences import PatternMatch, PreferenceCategory

PATTERN_CONFIDENCE = 0.5
FORMALITY_CONFIDENCE = 0.4
EXAMPLE_MAX_CHARS = 200

STYLE_CUES: list[tuple[str, tuple[str, ...]]] = [
    ("collaborative", ("let me", "i'll", "we can")),
    ("directive", ("you should", "i recommend")),
    ("consultative", ("what if", "have you considered")),
    ("supportive", ("great question", "absolutely")),
]

FORMAL_TONE_MARKERS = ("regarding", "pursuant", "accordingly", "therefore", "hereby")
CASUAL_TONE_MARKERS = ("hey", "gonna", "wanna", "kinda", "btw", "fyi")

FORMAL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bplease\b",
        r"\bthank you\b",
        r"\bkindly\b",
        r"\bwould you\b",
        r"\bcould you\b",
        r"\bi appreciate\b",
    )
]
INFORMAL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"\bhey\b", r"\bhi\b", r"\byeah\b", r"\bnope\b", r"\bcool\b", r"\bawesome\b")
]

PRICING_CUES: list[tuple[str, tuple[str, ...]]] = [
    ("discount_friendly", ("discount", "% off")),
    ("premium_positioning", ("premium", "value-based")),
    ("competitive_pricing", ("competitive", "market rate")),
    ("bundling_strategy", ("bundle", "package")),
]

TIMING_CUES: list[tuple[str, tuple[str, ...]]] = [
    ("immediate_response", ("immediately", "right away", "asap")),
    ("same_day_response", ("within 24", "next day")),
    ("scheduled_followup", ("follow up", "check in")),
]

URGENCY_CUES: list[tuple[str, tuple[str, ...]]] = [
    ("high_urgency", ("urgent", "priority", "immediately")),
    ("low_urgency", ("when convenient", "no rush")),
]


class PatternExtractor(ABC):
    """Derives zero or more categorical patterns from a decision."""

    @abstractmethod
    def extract(self, decision: Decision) -> list[PatternMatch]:
        ...


def _first_match(text: str, cues: list[tuple[str, tuple[str, ...]]]) -> str | None:
    lowered = text.lower()
    for label, phrases in cues:
        if any(phrase in lowered for phrase in phrases):
            return label
    return None


def message_style(text: str) -> str | None:
    return _first_match(text, STYLE_CUES)


def tone(text: str) -> str:
    """formal / casual / enthusiastic, else professional (first match wins)."""
    lowered = text.lower()
    if any(marker in lowered for marker in FORMAL_TONE_MARKERS):
        return "formal"
    if any(marker in lowered for marker in CASUAL_TONE_MARKERS):
        return "casual"

    # Emoji live outside the Basic Multilingual Plane
    has_emoji = any(ord(ch) > 0xFFFF for ch in text)
    if text.count("!") > 2 or has_emoji:
        return "enthusiastic"
    return "professional"


def response_length(text: str) -> str:
    length = len(text)
    if length < 100:
        return "concise"
    if length < 300:
        return "moderate"
    if length < 600:
        return "detailed"
    return "comprehensive"


def formality(text: str) -> str:
    """Compare how many formal vs informal markers occur, with a margin of 1."""
    formal_score = sum(1 for p in FORMAL_PATTERNS if p.search(text))
    informal_score = sum(1 for p in INFORMAL_PATTERNS if p.search(text))

    if formal_score > informal_score + 1:
        return "high_formality"
    if informal_score > formal_score + 1:
        return "low_formality"
    return "balanced_formality"


def pricing_strategy(text: str) -> str | None:
    return _first_match(text, PRICING_CUES)


def followup_timing(text: str) -> str | None:
    return _first_match(text, TIMING_CUES)


def urgency(text: str) -> str:
    return _first_match(text, URGENCY_CUES) or "normal_urgency"


class HeuristicPatternExtractor(PatternExtractor):
    """Keyword and punctuation heuristics over the decision text."""

    def extract(self, decision: Decision) -> list[PatternMatch]:
        text = decision.decision
        example = text[:EXAMPLE_MAX_CHARS]
        patterns: list[PatternMatch] = []

        def add(category: PreferenceCategory, label: str | None, examples: list[str] | None = None):
            if label:
                patterns.append(
                    PatternMatch(
                        category=category,
                        pattern=label,
                        confidence=PATTERN_CONFIDENCE,
                        examples=examples if examples is not None else [example],
                    )
                )

        if decision.type == DecisionType.MESSAGE_RESPONSE:
            add(PreferenceCategory.COMMUNICATION_STYLE, message_style(text))
            add(PreferenceCategory.TONE, tone(text))
            add(
                PreferenceCategory.RESPONSE_LENGTH,
                response_length(text),
                [f"{len(text)} characters"],
            )

        elif decision.type == DecisionType.PRICING_SUGGESTION:
            add(PreferenceCategory.PRICING, pricing_strategy(text))

        elif decision.type == DecisionType.LEAD_FOLLOWUP:
            add(PreferenceCategory.TIMING, followup_timing(text))
            add(PreferenceCategory.URGENCY_THRESHOLD, urgency(text))

        # Formality is read from every decision regardless of type
        patterns.append(
            PatternMatch(
                category=PreferenceCategory.FORMALITY,
                pattern=formality(text),
                confidence=FORMALITY_CONFIDENCE,
                examples=[example],
            )
        )
        return patterns
