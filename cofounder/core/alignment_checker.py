"""Advisory alignment scoring of a proposed decision against learned preferences."""

from cofounder.core.logging import get_logger
from cofounder.core.schemas_preferences import AlignmentResult, clamp_confidence
from cofounder.db.base import PreferenceStore

logger = get_logger(__name__)

NEUTRAL_SCORE = 0.5
PREFERENCE_WEIGHT = 0.1
AVOIDANCE_WEIGHT = 0.2
LOW_ALIGNMENT = 0.4
SUGGESTION_MIN_CONFIDENCE = 0.6
MAX_SUGGESTIONS = 3


class AlignmentChecker:
    """Scores text against preferences. Never blocks anything; it only annotates."""

    def __init__(self, preferences: PreferenceStore):
        self.preferences = preferences

    def check_alignment(
        self, business_id: str, proposed_decision: str, decision_type: str
    ) -> AlignmentResult:
        """
        Score a not-yet-taken decision.

        Starts at 0.5. Each preference whose label occurs in the text
        (case-insensitive) adds 0.1 x confidence, or for ``avoid:``
        preferences subtracts 0.2 x confidence and records a conflict.
        Below 0.4, up to 3 confident positive preferences are suggested.
        """
        preferences = self.preferences.list(business_id)
        text = proposed_decision.lower()

        score = NEUTRAL_SCORE
        conflicts: list[str] = []
        for pref in preferences:
            if pref.label.lower() not in text:
                continue
            if pref.is_avoidance:
                score -= AVOIDANCE_WEIGHT * pref.confidence
                conflicts.append(f'Contains "{pref.label}" which has been rejected previously')
            else:
                score += PREFERENCE_WEIGHT * pref.confidence

        score = clamp_confidence(score)

        suggestions: list[str] = []
        if score < LOW_ALIGNMENT:
            candidates = sorted(
                (
                    p
                    for p in preferences
                    if not p.is_avoidance and p.confidence >= SUGGESTION_MIN_CONFIDENCE
                ),
                key=lambda p: p.confidence,
                reverse=True,
            )
            suggestions = [
                f'Consider incorporating "{p.preference}" ({p.category.value})'
                for p in candidates[:MAX_SUGGESTIONS]
            ]

        logger.debug(
            f"Alignment for {decision_type} decision: score={score} conflicts={len(conflicts)}"
        )
        return AlignmentResult(alignment_score=score, conflicts=conflicts, suggestions=suggestions)
