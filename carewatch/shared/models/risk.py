"""Risk level and distress analysis domain models.

This file defines the core enums and value objects produced by the
distress analyzer. Everything here is immutable once created so an
analysis can be embedded by value into any alert derived from it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple


class RiskLevel(Enum):
    """Ordered risk classification for a piece of text.

    CRITICAL is terminal: any emergency-category match forces it
    regardless of the numeric score.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        """Numeric severity used by storage and trend analysis (2-5)."""
        return _RISK_SEVERITY[self]

    def __lt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity < other.severity

    def __le__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity <= other.severity

    def __gt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity > other.severity

    def __ge__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity >= other.severity


_RISK_SEVERITY = {
    RiskLevel.LOW: 2,
    RiskLevel.MEDIUM: 3,
    RiskLevel.HIGH: 4,
    RiskLevel.CRITICAL: 5,
}


class Language(Enum):
    """Languages the lexicon covers, plus UNKNOWN for everything else."""
    ENGLISH = "en"
    LITHUANIAN = "lt"
    UNKNOWN = "unknown"

    @property
    def is_supported(self) -> bool:
        return self is not Language.UNKNOWN

    @property
    def display_name(self) -> str:
        return {
            Language.ENGLISH: "English",
            Language.LITHUANIAN: "Lithuanian",
            Language.UNKNOWN: "Unknown",
        }[self]


class Sentiment(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class EmotionalMarkers:
    """Coarse emotional reading attached to an analysis."""
    sentiment: Sentiment = Sentiment.NEUTRAL
    emotions: Tuple[str, ...] = ()
    intensity: float = 0.0

    def __post_init__(self):
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"Intensity must be 0.0-1.0, got {self.intensity}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentiment": self.sentiment.value,
            "emotions": list(self.emotions),
            "intensity": round(self.intensity, 3),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmotionalMarkers":
        return cls(
            sentiment=Sentiment(data.get("sentiment", "neutral")),
            emotions=tuple(data.get("emotions", ())),
            intensity=float(data.get("intensity", 0.0)),
        )


@dataclass(frozen=True)
class DistressAnalysis:
    """Result of analyzing one piece of free text.

    Immutable - owned by the call that produced it and copied by value
    into any RealTimeAlert derived from it.

    Attributes:
        risk_level: Ordered risk classification
        confidence: 0.0 to 1.0, capped at 0.9 for keyword evidence
        detected_language: Language the lexicon was applied in
        indicators: "category: term, term" strings for auditability
        cultural_context: Deduplicated context tags
        recommendations: Localized suggested actions, in order
        emotional_markers: Sentiment, emotion tags and intensity
    """
    risk_level: RiskLevel
    confidence: float
    detected_language: Language
    indicators: Tuple[str, ...] = ()
    cultural_context: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    emotional_markers: EmotionalMarkers = field(default_factory=EmotionalMarkers)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")

    @property
    def has_emergency_indicator(self) -> bool:
        return any(i.startswith("emergency:") for i in self.indicators)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and JSON storage."""
        return {
            "risk_level": self.risk_level.value,
            "confidence": round(self.confidence, 3),
            "detected_language": self.detected_language.value,
            "indicators": list(self.indicators),
            "cultural_context": list(self.cultural_context),
            "recommendations": list(self.recommendations),
            "emotional_markers": self.emotional_markers.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DistressAnalysis":
        return cls(
            risk_level=RiskLevel(data["risk_level"]),
            confidence=float(data["confidence"]),
            detected_language=Language(data.get("detected_language", "unknown")),
            indicators=tuple(data.get("indicators", ())),
            cultural_context=tuple(data.get("cultural_context", ())),
            recommendations=tuple(data.get("recommendations", ())),
            emotional_markers=EmotionalMarkers.from_dict(
                data.get("emotional_markers", {})
            ),
        )
