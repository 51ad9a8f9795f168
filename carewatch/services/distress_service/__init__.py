"""Distress Service: rule-based distress detection for student feedback.

Classifies English and Lithuanian free text into a risk level with
auditable indicators. No model inference - every decision traces back
to a lexicon term and a fixed weight.

Components:
- analyzer.py: DistressAnalyzer facade (detect, score, tag, recommend)
- language_detector.py: Marker-count language detection
- scorer.py: Weighted category scoring and risk thresholds
- cultural_context.py: Cultural-context tagging
- recommendations.py: Localized recommendations
- resources.py: Recommendation templates and crisis resources
- lexicon.py / config.py: Keyword tables, weights and thresholds
- handler.py: Flask HTTP endpoints (/health, /analyze)

Usage:
    from carewatch.services.distress_service import DistressAnalyzer
    analyzer = DistressAnalyzer()
    analysis = analyzer.analyze("I feel hopeless and alone")
"""

from .analyzer import DistressAnalyzer, failed_analysis
from .config import DistressConfig, RiskThresholds, ScoringWeights, LEXICON_VERSION
from .language_detector import LanguageDetector
from .scorer import RiskScorer, ScoringResult
from .cultural_context import CulturalContextExtractor
from .recommendations import RecommendationGenerator
from .resources import CrisisResources, Hotline, Website, get_crisis_resources

__all__ = [
    "DistressAnalyzer",
    "failed_analysis",
    "DistressConfig",
    "RiskThresholds",
    "ScoringWeights",
    "LEXICON_VERSION",
    "LanguageDetector",
    "RiskScorer",
    "ScoringResult",
    "CulturalContextExtractor",
    "RecommendationGenerator",
    "CrisisResources",
    "Hotline",
    "Website",
    "get_crisis_resources",
]
