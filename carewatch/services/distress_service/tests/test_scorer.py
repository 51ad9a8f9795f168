"""Tests for RiskScorer - weights, thresholds and derived markers."""
import pytest

from carewatch.shared.models import Language, RiskLevel, Sentiment
from carewatch.services.distress_service.config import (
    DistressConfig,
    RiskThresholds,
    ScoringWeights,
)
from carewatch.services.distress_service.scorer import RiskScorer


@pytest.fixture
def scorer():
    return RiskScorer()


class TestMatching:
    """Tests for lexicon term matching."""

    def test_single_distress_term(self, scorer):
        result = scorer.score("I am hopeless", Language.ENGLISH)

        assert result.matches == {"distress": ("hopeless",)}
        assert result.score == 5

    def test_case_insensitive(self, scorer):
        result = scorer.score("I AM HOPELESS", Language.ENGLISH)

        assert result.matches["distress"] == ("hopeless",)

    def test_no_match_inside_word(self, scorer):
        result = scorer.score("We studied the crusade in history", Language.ENGLISH)

        assert result.matches == {}
        assert result.risk_level == RiskLevel.LOW

    def test_suffix_allowed(self, scorer):
        result = scorer.score("I keep panicking before tests", Language.ENGLISH)

        assert result.matches["anxiety"] == ("panic",)

    def test_short_terms_match_whole_words_only(self, scorer):
        result = scorer.score("I was given a number for the bus", Language.ENGLISH)

        assert result.matches == {}
        assert result.sentiment == Sentiment.NEUTRAL

    def test_whole_word_term_still_matches(self, scorer):
        result = scorer.score("I feel numb", Language.ENGLISH)

        assert result.matches == {"depression": ("numb",)}

    def test_curly_apostrophe_normalized(self, scorer):
        result = scorer.score("I can’t sleep at night", Language.ENGLISH)

        assert "can't sleep" in result.matches["depression"]

    def test_lithuanian_phrase(self, scorer):
        result = scorer.score("Aš noriu mirti", Language.LITHUANIAN)

        assert result.matches["emergency"] == ("noriu mirti",)

    def test_unknown_language_rejected(self, scorer):
        with pytest.raises(ValueError):
            scorer.score("anything", Language.UNKNOWN)


class TestRiskLevel:
    """Tests for threshold mapping."""

    @pytest.mark.parametrize("score,expected", [
        (0, RiskLevel.LOW),
        (7, RiskLevel.LOW),
        (8, RiskLevel.MEDIUM),
        (14, RiskLevel.MEDIUM),
        (15, RiskLevel.HIGH),
        (40, RiskLevel.HIGH),
    ])
    def test_thresholds(self, scorer, score, expected):
        assert scorer.determine_risk_level(score, has_emergency=False) == expected

    def test_emergency_overrides_score(self, scorer):
        assert scorer.determine_risk_level(-10, has_emergency=True) == RiskLevel.CRITICAL

    def test_emergency_with_positive_words_is_critical(self, scorer):
        result = scorer.score("I feel great but I want to die", Language.ENGLISH)

        assert result.risk_level == RiskLevel.CRITICAL
        assert result.has_emergency is True

    def test_high_from_distress_terms(self, scorer):
        result = scorer.score(
            "I feel hopeless and worthless, everything is awful", Language.ENGLISH
        )

        assert result.score == 15
        assert result.risk_level == RiskLevel.HIGH

    def test_medium_from_anxiety_terms(self, scorer):
        result = scorer.score(
            "I am worried, nervous and scared about the exam", Language.ENGLISH
        )

        assert result.score == 9
        assert result.risk_level == RiskLevel.MEDIUM

    def test_positive_terms_lower_score(self, scorer):
        result = scorer.score("The lesson was great and fun", Language.ENGLISH)

        assert result.score == -4
        assert result.risk_level == RiskLevel.LOW

    def test_custom_thresholds(self):
        config = DistressConfig(thresholds=RiskThresholds(HIGH_SCORE_MIN=6, MEDIUM_SCORE_MIN=3))
        scorer = RiskScorer(config)

        assert scorer.score("I am hopeless", Language.ENGLISH).risk_level == RiskLevel.MEDIUM


class TestConfidence:
    """Confidence grows with evidence and is capped."""

    def test_base_confidence(self, scorer):
        assert scorer.calculate_confidence(0) == pytest.approx(0.3)

    def test_per_term_increment(self, scorer):
        assert scorer.calculate_confidence(2) == pytest.approx(0.5)

    def test_capped(self, scorer):
        assert scorer.calculate_confidence(6) == pytest.approx(0.9)
        assert scorer.calculate_confidence(50) == pytest.approx(0.9)

    def test_non_decreasing_in_distinct_terms(self, scorer):
        terms = [
            "hopeless", "helpless", "worthless", "terrible",
            "awful", "miserable", "depressed", "frustrated",
        ]
        confidences = [
            scorer.score("I am " + " ".join(terms[:n]), Language.ENGLISH).confidence
            for n in range(len(terms) + 1)
        ]

        assert confidences == sorted(confidences)
        assert max(confidences) <= 0.9


class TestMarkers:
    """Tests for sentiment, emotions, intensity and indicators."""

    def test_negative_sentiment(self, scorer):
        result = scorer.score("I am lonely and sad", Language.ENGLISH)

        assert result.sentiment == Sentiment.NEGATIVE
        assert result.emotions == ("distress", "isolation")

    def test_positive_sentiment(self, scorer):
        result = scorer.score("Today's lesson was great", Language.ENGLISH)

        assert result.sentiment == Sentiment.POSITIVE
        assert result.emotions == ("positivity",)

    def test_neutral_sentiment(self, scorer):
        result = scorer.score("The lesson was about rivers", Language.ENGLISH)

        assert result.sentiment == Sentiment.NEUTRAL
        assert result.emotions == ()

    def test_mixed_text_is_negative(self, scorer):
        result = scorer.score("It was fun but I am so anxious", Language.ENGLISH)

        assert result.sentiment == Sentiment.NEGATIVE

    def test_intensity_scaled_and_clamped(self, scorer):
        assert scorer.score("I am hopeless", Language.ENGLISH).intensity == pytest.approx(0.25)
        assert scorer.score(
            "I want to die and kill myself, suicide", Language.ENGLISH
        ).intensity == 1.0
        assert scorer.score("The lesson was great", Language.ENGLISH).intensity == 0.0

    def test_indicators_exclude_positive(self, scorer):
        result = scorer.score("I am hopeless and lonely but the food was good", Language.ENGLISH)

        assert result.indicators == ("distress: hopeless", "isolation: lonely")

    def test_indicators_in_category_order(self, scorer):
        result = scorer.score("I am lonely and I want to die", Language.ENGLISH)

        assert result.indicators == ("emergency: want to die", "isolation: lonely")


class TestScoringWeights:
    """Weight ordering is validated."""

    def test_default_mapping(self):
        weights = ScoringWeights().as_mapping()

        assert weights["emergency"] == 10
        assert weights["positive"] == -2

    def test_rejects_inverted_ordering(self):
        with pytest.raises(ValueError):
            ScoringWeights(emergency=1, distress=5)

    def test_rejects_positive_weight_above_zero(self):
        with pytest.raises(ValueError):
            ScoringWeights(positive=1)


class TestConfigFromEnv:
    """Tests for DistressConfig.from_env()."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DISTRESS_HIGH_SCORE_MIN", raising=False)
        monkeypatch.delenv("DISTRESS_WEIGHT_ISOLATION", raising=False)

        config = DistressConfig.from_env()

        assert config.thresholds.HIGH_SCORE_MIN == 15
        assert config.weights == ScoringWeights()

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("DISTRESS_MEDIUM_SCORE_MIN", "6")
        monkeypatch.setenv("DISTRESS_WEIGHT_ISOLATION", "3")

        config = DistressConfig.from_env()

        assert config.thresholds.MEDIUM_SCORE_MIN == 6
        assert config.weights.isolation == 3
