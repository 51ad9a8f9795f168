"""Distress analyzer configuration: scoring weights and risk thresholds.

The weights and thresholds below are the baseline contract. They are
tunable (e.g. after recalibration against labeled feedback) but must
keep their ordering: emergency > distress > depression/anxiety >
isolation/academic > 0 > positive.
"""
import os
from dataclasses import dataclass, field
from typing import Dict

from .lexicon import (
    ACADEMIC,
    ANXIETY,
    DEPRESSION,
    DISTRESS,
    EMERGENCY,
    ISOLATION,
    POSITIVE,
)

LEXICON_VERSION = "2026.10.18"


@dataclass(frozen=True)
class ScoringWeights:
    """Points added per matched term, by lexicon category."""
    emergency: int = 10
    distress: int = 5
    depression: int = 3
    anxiety: int = 3
    isolation: int = 2
    academic: int = 2
    positive: int = -2

    def __post_init__(self):
        ordered = [
            self.emergency,
            self.distress,
            max(self.depression, self.anxiety),
        ]
        if ordered != sorted(ordered, reverse=True):
            raise ValueError("Weights must keep emergency >= distress >= depression/anxiety")
        if self.positive > 0:
            raise ValueError(f"Positive weight must not increase risk, got {self.positive}")

    def as_mapping(self) -> Dict[str, int]:
        return {
            EMERGENCY: self.emergency,
            DISTRESS: self.distress,
            DEPRESSION: self.depression,
            ANXIETY: self.anxiety,
            ISOLATION: self.isolation,
            ACADEMIC: self.academic,
            POSITIVE: self.positive,
        }


@dataclass(frozen=True)
class RiskThresholds:
    """Score thresholds for non-emergency text.

    Any emergency match is CRITICAL regardless of these values.
    """
    HIGH_SCORE_MIN: int = 15
    MEDIUM_SCORE_MIN: int = 8

    def __post_init__(self):
        if self.MEDIUM_SCORE_MIN > self.HIGH_SCORE_MIN:
            raise ValueError("MEDIUM_SCORE_MIN must not exceed HIGH_SCORE_MIN")


@dataclass(frozen=True)
class DistressConfig:
    """Configuration for the distress analyzer."""

    weights: ScoringWeights = field(default_factory=ScoringWeights)
    thresholds: RiskThresholds = field(default_factory=RiskThresholds)

    # Keyword evidence never claims near-certainty
    base_confidence: float = 0.3
    confidence_per_term: float = 0.1
    max_confidence: float = 0.9

    # Confidence reported when the language cannot be determined
    unknown_language_confidence: float = 0.1

    # Score at which emotional intensity saturates at 1.0
    intensity_saturation_score: int = 20

    lexicon_version: str = LEXICON_VERSION

    @classmethod
    def from_env(cls) -> "DistressConfig":
        """Create config from environment variables.

        Environment variables:
            DISTRESS_HIGH_SCORE_MIN: Score for HIGH (default 15)
            DISTRESS_MEDIUM_SCORE_MIN: Score for MEDIUM (default 8)
            DISTRESS_LEXICON_VERSION: Version tag for audit logs
            DISTRESS_WEIGHT_<CATEGORY>: Per-term weight override,
                e.g. DISTRESS_WEIGHT_ISOLATION=3
        """
        defaults = ScoringWeights()
        weights = ScoringWeights(**{
            name: int(os.getenv(f"DISTRESS_WEIGHT_{name.upper()}", str(value)))
            for name, value in defaults.as_mapping().items()
        })
        return cls(
            weights=weights,
            thresholds=RiskThresholds(
                HIGH_SCORE_MIN=int(os.getenv("DISTRESS_HIGH_SCORE_MIN", "15")),
                MEDIUM_SCORE_MIN=int(os.getenv("DISTRESS_MEDIUM_SCORE_MIN", "8")),
            ),
            lexicon_version=os.getenv("DISTRESS_LEXICON_VERSION", LEXICON_VERSION),
        )
