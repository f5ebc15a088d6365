"""Human-readable insights and the prompt summary built from learned preferences."""

from collections import Counter

from cofounder.core.logging import get_logger
from cofounder.core.schemas_decisions import DecisionFilters, Feedback
from cofounder.core.schemas_preferences import LearnedPreference, LearningInsight
from cofounder.db.base import DecisionLedger, PreferenceStore

logger = get_logger(__name__)

INSIGHT_MIN_CONFIDENCE = 0.5
SUMMARY_MIN_CONFIDENCE = 0.5
SUMMARY_PER_CATEGORY = 2
RECENT_DECISIONS = 100
MIN_FEEDBACK_SAMPLES = 10
OVERALL_ALIGNMENT = "overall_alignment"


def category_label(category: str) -> str:
    return category.replace("_", " ")


def group_by_category(
    preferences: list[LearnedPreference],
) -> dict[str, list[LearnedPreference]]:
    """Group preferences by category, each group highest confidence first."""
    grouped: dict[str, list[LearnedPreference]] = {}
    for pref in preferences:
        grouped.setdefault(pref.category.value, []).append(pref)
    for prefs in grouped.values():
        prefs.sort(key=lambda p: p.confidence, reverse=True)
    return grouped


class InsightGenerator:
    def __init__(self, ledger: DecisionLedger, preferences: PreferenceStore):
        self.ledger = ledger
        self.preferences = preferences

    def generate_insights(self, business_id: str) -> list[LearningInsight]:
        """
        Summarize what has been learned about a business.

        One insight per category whose top preference has confidence >= 0.5,
        plus an approval-rate insight once at least 10 of the last 100
        decisions carry feedback. Sorted by confidence, highest first.
        """
        insights: list[LearningInsight] = []

        for category, prefs in group_by_category(self.preferences.list(business_id)).items():
            top = prefs[0]
            if top.confidence < INSIGHT_MIN_CONFIDENCE:
                continue

            label = category_label(category)
            if top.is_avoidance:
                text = f"Avoids {top.label} in {label}"
            else:
                text = f"Prefers {top.preference} {label}"

            insights.append(
                LearningInsight(
                    category=category,
                    insight=text,
                    confidence=top.confidence,
                    based_on=len(top.examples),
                )
            )

        alignment = self._approval_insight(business_id)
        if alignment:
            insights.append(alignment)

        return sorted(insights, key=lambda i: i.confidence, reverse=True)

    def _approval_insight(self, business_id: str) -> LearningInsight | None:
        recent = self.ledger.history(business_id, DecisionFilters(limit=RECENT_DECISIONS))
        counts = Counter(d.owner_feedback for d in recent if d.owner_feedback)
        total = sum(counts.values())
        if total < MIN_FEEDBACK_SAMPLES:
            return None

        approval_rate = counts[Feedback.APPROVED] / total * 100
        if approval_rate >= 80:
            text = f"Strong alignment with owner preferences ({approval_rate:.0f}% approval rate)"
            confidence = 0.9
        elif approval_rate >= 60:
            text = f"Moderate alignment with owner preferences ({approval_rate:.0f}% approval rate)"
            confidence = 0.6
        else:
            text = "Learning in progress - continue providing feedback for better alignment"
            confidence = 0.3

        return LearningInsight(
            category=OVERALL_ALIGNMENT, insight=text, confidence=confidence, based_on=total
        )

    def preference_summary_for_ai(self, business_id: str) -> str:
        """
        Render confident preferences as a bullet list for a generation prompt.

        Returns:
            The summary, or "" when no preference reaches confidence 0.5
        """
        confident = [
            p for p in self.preferences.list(business_id) if p.confidence >= SUMMARY_MIN_CONFIDENCE
        ]
        if not confident:
            return ""

        lines = ["OWNER PREFERENCES (learned from feedback):"]
        for category, prefs in group_by_category(confident).items():
            label = category_label(category)
            for pref in prefs[:SUMMARY_PER_CATEGORY]:
                if pref.is_avoidance:
                    lines.append(f"- AVOID: {pref.label} ({label})")
                else:
                    lines.append(
                        f"- PREFER: {pref.preference} ({label}, {pref.confidence * 100:.0f}% confident)"
                    )
        return "\n".join(lines)
