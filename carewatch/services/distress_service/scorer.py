"""Weighted, category-based risk scoring over the keyword lexicon.

Each lexicon category contributes a fixed weight per matched term.
Emergency matches dominate: any one of them makes the result CRITICAL
whatever the numeric score.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from carewatch.shared.models import Language, RiskLevel, Sentiment
from .config import DistressConfig
from .lexicon import (
    ACADEMIC,
    ANXIETY,
    CATEGORIES,
    DEPRESSION,
    DISTRESS,
    EMERGENCY,
    ISOLATION,
    LEXICONS,
    POSITIVE,
    WHOLE_WORD_TERMS,
)

logger = logging.getLogger(__name__)

# Emotion tag reported for each matched category, in reporting order
EMOTION_TAGS: Tuple[Tuple[str, str], ...] = (
    (ANXIETY, "anxiety"),
    (DEPRESSION, "depression"),
    (DISTRESS, "distress"),
    (ISOLATION, "isolation"),
    (ACADEMIC, "academic_stress"),
    (EMERGENCY, "crisis"),
    (POSITIVE, "positivity"),
)


def normalize_text(text: str) -> str:
    """Lowercase and unify typographic apostrophes."""
    return text.lower().replace("’", "'").replace("‘", "'")


def compile_term(term: str, whole_word: bool = False) -> re.Pattern:
    """Compile a lexicon term into a case-insensitive phrase pattern.

    The term must start at a word start ("sad" does not match
    "crusade") but may carry any suffix, so inflected Lithuanian forms
    still match their stem entry. whole_word also forbids the suffix.
    """
    end = r"(?!\w)" if whole_word else ""
    return re.compile(rf"(?<!\w){re.escape(term)}{end}", re.IGNORECASE | re.UNICODE)


@dataclass(frozen=True)
class ScoringResult:
    """Outcome of scoring one text against one language's lexicon."""
    language: Language
    matches: Mapping[str, Tuple[str, ...]]
    score: int
    risk_level: RiskLevel
    confidence: float
    sentiment: Sentiment
    emotions: Tuple[str, ...] = ()
    intensity: float = 0.0
    indicators: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_emergency(self) -> bool:
        return bool(self.matches.get(EMERGENCY))

    @property
    def distinct_term_count(self) -> int:
        return len({t for terms in self.matches.values() for t in terms})


class RiskScorer:
    """Scores text against the lexicon of an already-detected language.

    Patterns are compiled once at construction; scoring itself touches
    no shared mutable state.
    """

    def __init__(self, config: Optional[DistressConfig] = None):
        self.config = config or DistressConfig()
        self._weights = self.config.weights.as_mapping()
        self._patterns: Dict[Language, Dict[str, List[Tuple[str, re.Pattern]]]] = {
            language: {
                category: [
                    (term, compile_term(term, term in WHOLE_WORD_TERMS.get(language, ())))
                    for term in lexicon[category]
                ]
                for category in CATEGORIES
            }
            for language, lexicon in LEXICONS.items()
        }

        logger.info(
            "RISK_SCORER_INITIALIZED",
            extra={
                "lexicon_version": self.config.lexicon_version,
                "languages": sorted(lang.value for lang in self._patterns),
                "high_score_min": self.config.thresholds.HIGH_SCORE_MIN,
                "medium_score_min": self.config.thresholds.MEDIUM_SCORE_MIN,
            }
        )

    def score(self, text: str, language: Language) -> ScoringResult:
        """Score text in a supported language.

        Args:
            text: Raw feedback text
            language: Detected language; must have a lexicon

        Returns:
            ScoringResult with matches, score and derived markers

        Raises:
            ValueError: If the language has no lexicon (e.g. UNKNOWN)
        """
        patterns = self._patterns.get(language)
        if patterns is None:
            raise ValueError(f"Cannot score text in unsupported language: {language.value}")

        normalized = normalize_text(text)
        matches = self.match_terms(normalized, patterns)
        score = self.calculate_score(matches)
        has_emergency = bool(matches.get(EMERGENCY))
        distinct_terms = len({t for terms in matches.values() for t in terms})

        return ScoringResult(
            language=language,
            matches=matches,
            score=score,
            risk_level=self.determine_risk_level(score, has_emergency),
            confidence=self.calculate_confidence(distinct_terms),
            sentiment=self._determine_sentiment(matches),
            emotions=tuple(tag for category, tag in EMOTION_TAGS if matches.get(category)),
            intensity=self._calculate_intensity(score),
            indicators=self._build_indicators(matches),
        )

    @staticmethod
    def match_terms(
        normalized_text: str,
        patterns: Mapping[str, List[Tuple[str, re.Pattern]]],
    ) -> Dict[str, Tuple[str, ...]]:
        """Return matched terms per category, omitting empty categories."""
        matches: Dict[str, Tuple[str, ...]] = {}
        for category in CATEGORIES:
            found = tuple(
                term for term, pattern in patterns[category]
                if pattern.search(normalized_text)
            )
            if found:
                matches[category] = found
        return matches

    def calculate_score(self, matches: Mapping[str, Tuple[str, ...]]) -> int:
        return sum(
            self._weights[category] * len(terms)
            for category, terms in matches.items()
        )

    def determine_risk_level(self, score: int, has_emergency: bool) -> RiskLevel:
        """Map a score to a risk level; emergency matches override."""
        if has_emergency:
            return RiskLevel.CRITICAL
        if score >= self.config.thresholds.HIGH_SCORE_MIN:
            return RiskLevel.HIGH
        if score >= self.config.thresholds.MEDIUM_SCORE_MIN:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def calculate_confidence(self, distinct_terms: int) -> float:
        """More evidence, more confidence - up to a fixed ceiling."""
        return min(
            self.config.max_confidence,
            self.config.base_confidence + self.config.confidence_per_term * distinct_terms,
        )

    def _determine_sentiment(self, matches: Mapping[str, Tuple[str, ...]]) -> Sentiment:
        has_negative = any(
            terms and self._weights[category] > 0
            for category, terms in matches.items()
        )
        if has_negative:
            return Sentiment.NEGATIVE
        if matches.get(POSITIVE):
            return Sentiment.POSITIVE
        return Sentiment.NEUTRAL

    def _calculate_intensity(self, score: int) -> float:
        return max(0.0, min(1.0, score / self.config.intensity_saturation_score))

    @staticmethod
    def _build_indicators(matches: Mapping[str, Tuple[str, ...]]) -> Tuple[str, ...]:
        return tuple(
            f"{category}: {', '.join(terms)}"
            for category, terms in matches.items()
            if category != POSITIVE
        )
