"""Distress analyzer - the single entry point for classifying feedback.

Pipeline:
- Language detection (marker counts)
- Risk scoring against that language's lexicon
- Cultural-context tagging
- Localized recommendations

The analyzer is pure: the same text always produces the same analysis,
and one instance is safe to share across request threads.
"""
import logging
import time
from typing import Iterable, List, Optional

from carewatch.shared.models import (
    DistressAnalysis,
    EmotionalMarkers,
    Language,
    RiskLevel,
    Sentiment,
)
from carewatch.shared.utils import fingerprint_text
from .config import DistressConfig
from .cultural_context import CulturalContextExtractor
from .language_detector import LanguageDetector
from .recommendations import RecommendationGenerator
from .resources import (
    RESUBMIT_RECOMMENDATION,
    UNKNOWN_LANGUAGE_INDICATOR,
    CrisisResources,
    get_crisis_resources,
)
from .scorer import RiskScorer

logger = logging.getLogger(__name__)


class DistressAnalyzer:
    """Classifies free-text feedback into a DistressAnalysis.

    Collaborators are injectable for tests; by default each is built
    from the given DistressConfig.
    """

    def __init__(
        self,
        config: Optional[DistressConfig] = None,
        detector: Optional[LanguageDetector] = None,
        scorer: Optional[RiskScorer] = None,
        context_extractor: Optional[CulturalContextExtractor] = None,
        recommender: Optional[RecommendationGenerator] = None,
    ):
        self.config = config or DistressConfig()
        self.detector = detector or LanguageDetector()
        self.scorer = scorer or RiskScorer(self.config)
        self.context_extractor = context_extractor or CulturalContextExtractor()
        self.recommender = recommender or RecommendationGenerator()

        logger.info(
            "DISTRESS_ANALYZER_INITIALIZED",
            extra={"lexicon_version": self.config.lexicon_version}
        )

    def analyze(self, text: str) -> DistressAnalysis:
        """Analyze one piece of feedback text.

        Empty text and text in an undetectable language are not errors:
        both produce a LOW result with low confidence.

        Args:
            text: Raw feedback text

        Returns:
            Immutable DistressAnalysis

        Logs:
            - DISTRESS_ANALYSIS_COMPLETED: every analysis (CRITICAL level
              for critical results), with a fingerprint of the text
        """
        start_time = time.perf_counter()

        if text is None or not text.strip():
            return DistressAnalysis(
                risk_level=RiskLevel.LOW,
                confidence=0.0,
                detected_language=Language.UNKNOWN,
            )

        language = self.detector.detect(text)

        if not language.is_supported:
            analysis = DistressAnalysis(
                risk_level=RiskLevel.LOW,
                confidence=self.config.unknown_language_confidence,
                detected_language=Language.UNKNOWN,
                indicators=(UNKNOWN_LANGUAGE_INDICATOR,),
                recommendations=(RESUBMIT_RECOMMENDATION,),
            )
            self._log_completed(text, analysis, start_time, score=0)
            return analysis

        result = self.scorer.score(text, language)
        context = self.context_extractor.extract(text, language)
        recommendations = self.recommender.generate(result.risk_level, language, context)

        analysis = DistressAnalysis(
            risk_level=result.risk_level,
            confidence=result.confidence,
            detected_language=language,
            indicators=result.indicators,
            cultural_context=context,
            recommendations=recommendations,
            emotional_markers=EmotionalMarkers(
                sentiment=result.sentiment,
                emotions=result.emotions,
                intensity=result.intensity,
            ),
        )
        self._log_completed(text, analysis, start_time, score=result.score)
        return analysis

    def analyze_batch(self, texts: Iterable[str]) -> List[DistressAnalysis]:
        """Analyze several texts, preserving input order."""
        return [self.analyze(text) for text in texts]

    def get_crisis_resources(self, language: Language) -> CrisisResources:
        return get_crisis_resources(language)

    def _log_completed(
        self,
        text: str,
        analysis: DistressAnalysis,
        start_time: float,
        score: int,
    ) -> None:
        extra = {
            "text_hash": fingerprint_text(text),
            "text_length": len(text),
            "language": analysis.detected_language.value,
            "risk_level": analysis.risk_level.value,
            "score": score,
            "confidence": analysis.confidence,
            "indicator_count": len(analysis.indicators),
            "lexicon_version": self.config.lexicon_version,
            "latency_ms": (time.perf_counter() - start_time) * 1000,
        }
        if analysis.risk_level == RiskLevel.CRITICAL:
            extra["action"] = "ALERT_DISPATCH_REQUIRED"
            logger.critical("DISTRESS_ANALYSIS_COMPLETED", extra=extra)
        else:
            logger.info("DISTRESS_ANALYSIS_COMPLETED", extra=extra)


def failed_analysis(reason: str = "Analysis failed") -> DistressAnalysis:
    """MEDIUM-risk placeholder returned when analysis itself breaks.

    We never fail open: a broken analyzer must still surface the text
    for human review.
    """
    return DistressAnalysis(
        risk_level=RiskLevel.MEDIUM,
        confidence=0.0,
        detected_language=Language.UNKNOWN,
        indicators=(reason,),
        emotional_markers=EmotionalMarkers(sentiment=Sentiment.NEUTRAL),
    )
