"""Feedback processor: turns owner reactions into preference changes.

approved  -> matching preference +0.1 (cap 1.0), or created at 0.3
rejected  -> matching preference -0.25 (deleted at 0), plus an
             ``avoid:<pattern>`` preference set to 0.4 (never higher)
modified  -> matching preference -0.05 (floor 0.1), never deleted

Each pattern is applied independently: a storage failure on one pattern
is recorded in ``failed_patterns`` and the rest still apply. Preference
read-modify-write runs under a per-(business, category, label) lock.
"""

import logging

from cofounder.core.errors import CoFounderError, NotFoundError
from cofounder.core.locks import KeyedLock
from cofounder.core.logging import get_logger, log_with_context
from cofounder.core.pattern_extractor import PatternExtractor
from cofounder.core.schemas_decisions import Decision, Feedback
from cofounder.core.schemas_preferences import (
    AVOID_PREFIX,
    FeedbackAnalysis,
    PatternMatch,
    PreferenceChange,
    PreferenceUpdate,
    clamp_confidence,
)
from cofounder.db.base import DecisionLedger, PreferenceStore

logger = get_logger(__name__)

APPROVAL_BOOST = 0.1
NEW_PREFERENCE_CONFIDENCE = 0.3
REJECTION_PENALTY = 0.25
AVOID_CONFIDENCE = 0.4
MODIFICATION_PENALTY = 0.05
MODIFICATION_FLOOR = 0.1
REJECTED_EXAMPLE_CHARS = 100


class FeedbackProcessor:
    def __init__(
        self,
        ledger: DecisionLedger,
        preferences: PreferenceStore,
        extractor: PatternExtractor,
        locks: KeyedLock | None = None,
    ):
        self.ledger = ledger
        self.preferences = preferences
        self.extractor = extractor
        self.locks = locks or KeyedLock()

    def process_feedback(
        self, business_id: str, decision_id: str, feedback: Feedback
    ) -> FeedbackAnalysis:
        """
        Learn from owner feedback on a decision.

        Repeated calls for the same decision are independent learning
        events; the rule is applied again each time.

        Raises:
            NotFoundError: If the decision does not exist for this business
        """
        decision = self.ledger.get(decision_id)
        if decision is None or decision.business_id != business_id:
            raise NotFoundError("decision", decision_id)

        analysis = FeedbackAnalysis(decision_id=decision_id, feedback=feedback)
        for pattern in self.extractor.extract(decision):
            analysis.patterns_detected.append(pattern)
            try:
                analysis.preferences_updated.extend(
                    self._apply(business_id, decision, pattern, feedback)
                )
                if feedback == Feedback.REJECTED:
                    analysis.preferences_updated.append(
                        self._avoid(business_id, decision, pattern)
                    )
            except CoFounderError as e:
                label = f"{pattern.category.value}:{pattern.pattern}"
                analysis.failed_patterns.append(label)
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"Preference update failed for {label}: {e}",
                    business_id=business_id,
                    decision_id=decision_id,
                )

        log_with_context(
            logger,
            logging.INFO,
            f"Processed {feedback.value} feedback: {len(analysis.patterns_detected)} patterns, "
            f"{len(analysis.preferences_updated)} updates",
            business_id=business_id,
            decision_id=decision_id,
        )
        return analysis

    def _apply(
        self,
        business_id: str,
        decision: Decision,
        pattern: PatternMatch,
        feedback: Feedback,
    ) -> list[PreferenceUpdate]:
        updates: list[PreferenceUpdate] = []

        with self.locks.hold((business_id, pattern.category, pattern.pattern)):
            existing = self.preferences.find(business_id, pattern.category, pattern.pattern)

            if feedback == Feedback.APPROVED:
                if existing:
                    new_confidence = clamp_confidence(existing.confidence + APPROVAL_BOOST)
                    self.preferences.upsert(
                        business_id,
                        pattern.category,
                        pattern.pattern,
                        confidence=new_confidence,
                        examples=pattern.examples,
                    )
                    updates.append(
                        PreferenceUpdate(
                            category=pattern.category,
                            preference=pattern.pattern,
                            action=PreferenceChange.INCREASE,
                            old_confidence=existing.confidence,
                            new_confidence=new_confidence,
                        )
                    )
                else:
                    self.preferences.upsert(
                        business_id,
                        pattern.category,
                        pattern.pattern,
                        confidence=NEW_PREFERENCE_CONFIDENCE,
                        examples=pattern.examples,
                    )
                    updates.append(
                        PreferenceUpdate(
                            category=pattern.category,
                            preference=pattern.pattern,
                            action=PreferenceChange.CREATE,
                            new_confidence=NEW_PREFERENCE_CONFIDENCE,
                        )
                    )

            elif feedback == Feedback.REJECTED:
                if existing:
                    remaining = self.preferences.decrease_confidence(existing.id, REJECTION_PENALTY)
                    if remaining is None:
                        updates.append(
                            PreferenceUpdate(
                                category=pattern.category,
                                preference=pattern.pattern,
                                action=PreferenceChange.DELETE,
                                old_confidence=existing.confidence,
                            )
                        )
                    else:
                        updates.append(
                            PreferenceUpdate(
                                category=pattern.category,
                                preference=pattern.pattern,
                                action=PreferenceChange.DECREASE,
                                old_confidence=existing.confidence,
                                new_confidence=remaining.confidence,
                            )
                        )

            elif feedback == Feedback.MODIFIED and existing:
                new_confidence = max(
                    clamp_confidence(existing.confidence - MODIFICATION_PENALTY), MODIFICATION_FLOOR
                )
                self.preferences.upsert(
                    business_id, pattern.category, pattern.pattern, confidence=new_confidence
                )
                updates.append(
                    PreferenceUpdate(
                        category=pattern.category,
                        preference=pattern.pattern,
                        action=PreferenceChange.DECREASE,
                        old_confidence=existing.confidence,
                        new_confidence=new_confidence,
                    )
                )

        return updates

    def _avoid(
        self, business_id: str, decision: Decision, pattern: PatternMatch
    ) -> PreferenceUpdate:
        """Set the avoid:<pattern> preference to 0.4, keeping its examples."""
        avoid_label = f"{AVOID_PREFIX}{pattern.pattern}"
        example = f"Rejected: {decision.decision[:REJECTED_EXAMPLE_CHARS]}"

        with self.locks.hold((business_id, pattern.category, avoid_label)):
            self.preferences.upsert(
                business_id,
                pattern.category,
                avoid_label,
                confidence=AVOID_CONFIDENCE,
                examples=[example],
            )
            return PreferenceUpdate(
                category=pattern.category,
                preference=avoid_label,
                action=PreferenceChange.CREATE,
                new_confidence=AVOID_CONFIDENCE,
            )
