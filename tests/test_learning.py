"""Tests for insights, the prompt summary and alignment scoring."""

from cofounder.core.alignment_checker import AlignmentChecker
from cofounder.core.insight_generator import InsightGenerator
from cofounder.core.schemas_decisions import DecisionCreate, DecisionType, Feedback
from cofounder.core.schemas_preferences import PreferenceCategory
from tests.fakes.fake_db import BUSINESS_ID


def log_with_feedback(ledger, feedbacks):
    for feedback in feedbacks:
        ledger.log(
            DecisionCreate(
                business_id=BUSINESS_ID,
                type=DecisionType.MESSAGE_RESPONSE,
                decision="See you Tuesday",
                reasoning="Booked",
                owner_feedback=feedback,
            )
        )


class TestInsights:
    def test_top_preference_per_category(self, ledger, preferences):
        preferences.seed(PreferenceCategory.TONE, "casual", 0.7, examples=["a", "b"])
        preferences.seed(PreferenceCategory.TONE, "formal", 0.6)
        preferences.seed(PreferenceCategory.TIMING, "immediate_response", 0.4)

        insights = InsightGenerator(ledger, preferences).generate_insights(BUSINESS_ID)

        assert len(insights) == 1
        assert insights[0].category == "tone"
        assert insights[0].insight == "Prefers casual tone"
        assert insights[0].confidence == 0.7
        assert insights[0].based_on == 2

    def test_avoid_insight(self, ledger, preferences):
        preferences.seed(PreferenceCategory.COMMUNICATION_STYLE, "avoid:directive", 0.6)

        [insight] = InsightGenerator(ledger, preferences).generate_insights(BUSINESS_ID)

        assert insight.insight == "Avoids directive in communication style"

    def test_strong_alignment(self, ledger, preferences):
        log_with_feedback(ledger, [Feedback.APPROVED] * 9 + [Feedback.REJECTED])

        [insight] = InsightGenerator(ledger, preferences).generate_insights(BUSINESS_ID)

        assert insight.category == "overall_alignment"
        assert insight.insight == "Strong alignment with owner preferences (90% approval rate)"
        assert insight.confidence == 0.9
        assert insight.based_on == 10

    def test_moderate_alignment(self, ledger, preferences):
        log_with_feedback(ledger, [Feedback.APPROVED] * 7 + [Feedback.MODIFIED] * 3)
        [insight] = InsightGenerator(ledger, preferences).generate_insights(BUSINESS_ID)
        assert insight.confidence == 0.6
        assert "70% approval rate" in insight.insight

    def test_learning_in_progress(self, ledger, preferences):
        log_with_feedback(ledger, [Feedback.APPROVED] * 5 + [Feedback.REJECTED] * 5)
        [insight] = InsightGenerator(ledger, preferences).generate_insights(BUSINESS_ID)
        assert insight.confidence == 0.3
        assert insight.insight.startswith("Learning in progress")

    def test_too_few_samples(self, ledger, preferences):
        log_with_feedback(ledger, [Feedback.APPROVED] * 9 + [None] * 5)
        assert InsightGenerator(ledger, preferences).generate_insights(BUSINESS_ID) == []

    def test_sorted_by_confidence(self, ledger, preferences):
        preferences.seed(PreferenceCategory.TONE, "casual", 0.55)
        preferences.seed(PreferenceCategory.PRICING, "premium_positioning", 0.95)
        log_with_feedback(ledger, [Feedback.APPROVED] * 10)

        insights = InsightGenerator(ledger, preferences).generate_insights(BUSINESS_ID)

        assert [i.confidence for i in insights] == [0.95, 0.9, 0.55]


class TestPreferenceSummary:
    def test_empty_without_confident_preferences(self, ledger, preferences):
        preferences.seed(PreferenceCategory.TONE, "casual", 0.3)
        assert InsightGenerator(ledger, preferences).preference_summary_for_ai(BUSINESS_ID) == ""

    def test_renders_prefer_and_avoid(self, ledger, preferences):
        preferences.seed(PreferenceCategory.TONE, "casual", 0.8)
        preferences.seed(PreferenceCategory.COMMUNICATION_STYLE, "avoid:directive", 0.6)

        summary = InsightGenerator(ledger, preferences).preference_summary_for_ai(BUSINESS_ID)

        assert summary.splitlines() == [
            "OWNER PREFERENCES (learned from feedback):",
            "- PREFER: casual (tone, 80% confident)",
            "- AVOID: directive (communication style)",
        ]

    def test_at_most_two_per_category(self, ledger, preferences):
        for label, confidence in [("casual", 0.9), ("professional", 0.7), ("formal", 0.6)]:
            preferences.seed(PreferenceCategory.TONE, label, confidence)

        summary = InsightGenerator(ledger, preferences).preference_summary_for_ai(BUSINESS_ID)

        assert "casual" in summary
        assert "professional" in summary
        assert "formal" not in summary


class TestAlignment:
    def test_neutral_without_preferences(self, preferences):
        result = AlignmentChecker(preferences).check_alignment(BUSINESS_ID, "Hello", "message_response")
        assert result.alignment_score == 0.5
        assert result.conflicts == []
        assert result.suggestions == []

    def test_rejected_pattern_lowers_score(self, preferences):
        preferences.seed(PreferenceCategory.URGENCY_THRESHOLD, "avoid:urgent", 0.8)

        result = AlignmentChecker(preferences).check_alignment(
            BUSINESS_ID, "This is URGENT, please pay today", "message_response"
        )

        assert result.alignment_score == 0.34
        assert result.conflicts == ['Contains "urgent" which has been rejected previously']
        assert result.suggestions == []

    def test_matching_preference_raises_score(self, preferences):
        preferences.seed(PreferenceCategory.TONE, "friendly", 0.8)

        result = AlignmentChecker(preferences).check_alignment(
            BUSINESS_ID, "A friendly reminder", "message_response"
        )

        assert result.alignment_score == 0.58

    def test_score_clamped_at_zero(self, preferences):
        for label in ("late", "overdue", "final", "notice"):
            preferences.seed(PreferenceCategory.TONE, f"avoid:{label}", 1.0)

        result = AlignmentChecker(preferences).check_alignment(
            BUSINESS_ID, "Final notice: your invoice is late and overdue", "message_response"
        )

        assert result.alignment_score == 0.0
        assert len(result.conflicts) == 4

    def test_suggestions_when_poorly_aligned(self, preferences):
        preferences.seed(PreferenceCategory.URGENCY_THRESHOLD, "avoid:urgent", 1.0)
        preferences.seed(PreferenceCategory.TONE, "casual", 0.9)
        preferences.seed(PreferenceCategory.TIMING, "immediate_response", 0.8)
        preferences.seed(PreferenceCategory.PRICING, "discount_friendly", 0.7)
        preferences.seed(PreferenceCategory.FORMALITY, "low_formality", 0.65)
        preferences.seed(PreferenceCategory.RESPONSE_LENGTH, "concise", 0.5)

        result = AlignmentChecker(preferences).check_alignment(
            BUSINESS_ID, "Urgent payment required", "message_response"
        )

        assert result.alignment_score == 0.3
        assert result.suggestions == [
            'Consider incorporating "casual" (tone)',
            'Consider incorporating "immediate_response" (timing)',
            'Consider incorporating "discount_friendly" (pricing)',
        ]
