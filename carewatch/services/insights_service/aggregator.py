"""Trend and insight aggregation over the alert history.

Read-only: the aggregator never gates or changes delivery. It looks at
alerts already in the store and reports severity trends, language and
time-of-day patterns, and a short-range escalation estimate.

Subject identifiers only leave this module as hash_pii() hashes.
"""
import logging
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from carewatch.shared.database import AlertStore
from carewatch.shared.models import RealTimeAlert
from carewatch.shared.utils import hash_pii
from carewatch.services.distress_service.language_detector import LanguageDetector

logger = logging.getLogger(__name__)


TIMEFRAME_DAYS: Mapping[str, int] = {
    "week": 7,
    "month": 30,
    "semester": 120,
}

# Severity at or above which an alert counts as high risk (high, critical)
HIGH_RISK_SEVERITY = 4
MIN_LANGUAGE_ALERTS = 3
PEAK_HOUR_FACTOR = 1.5
TREND_CHANGE_THRESHOLD = 0.1
TREND_INSIGHT_MIN_CONFIDENCE = 0.7
ESCALATION_INSIGHT_MIN_PROBABILITY = 0.6
TOP_CATEGORY_LIMIT = 5


class InsightType(Enum):
    TREND = "trend"
    PATTERN = "pattern"
    ANOMALY = "anomaly"
    PREDICTION = "prediction"


class InsightSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Insight:
    """One observation about a scope's alert history."""
    type: InsightType
    severity: InsightSeverity
    title: str
    description: str
    confidence: float
    affected_subjects: Tuple[str, ...] = ()
    recommended_actions: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"insight_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "confidence": round(self.confidence, 3),
            "affected_subjects": list(self.affected_subjects),
            "recommended_actions": list(self.recommended_actions),
            "timestamp": self.timestamp.isoformat() + "Z",
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class SeverityTrend:
    direction: str
    change: float
    recent_avg: float
    older_avg: float
    confidence: float
    affected_subjects: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction,
            "change": round(self.change, 3),
            "recent_avg": round(self.recent_avg, 3),
            "older_avg": round(self.older_avg, 3),
            "confidence": round(self.confidence, 3),
        }


@dataclass(frozen=True)
class LanguageFinding:
    language: str
    count: int
    avg_severity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "count": self.count,
            "avg_severity": round(self.avg_severity, 3),
        }


@dataclass(frozen=True)
class LanguageDistribution:
    counts: Mapping[str, int]
    significant_findings: Tuple[LanguageFinding, ...] = ()
    affected_subjects: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PeakHours:
    peak_hours: Tuple[str, ...]
    hourly_distribution: Mapping[int, int]
    confidence: float


@dataclass(frozen=True)
class RiskEscalation:
    probability: float
    severity: InsightSeverity
    confidence: float
    recent_high_risk: int
    previous_high_risk: int
    at_risk_subjects: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probability": round(self.probability, 3),
            "severity": self.severity.value,
            "confidence": round(self.confidence, 3),
            "recent_high_risk": self.recent_high_risk,
            "previous_high_risk": self.previous_high_risk,
        }


@dataclass(frozen=True)
class CategoryTrend:
    category: str
    count: int
    direction: str

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "count": self.count, "direction": self.direction}


@dataclass(frozen=True)
class TrendSummary:
    """Dashboard-ready roll-up of a scope's alerts over a window."""
    scope: str
    since: datetime
    until: datetime
    total_alerts: int
    daily_counts: Mapping[str, Mapping[str, int]]
    language_distribution: Mapping[str, int]
    top_categories: Tuple[CategoryTrend, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "since": self.since.isoformat() + "Z",
            "until": self.until.isoformat() + "Z",
            "total_alerts": self.total_alerts,
            "daily_counts": {day: dict(levels) for day, levels in self.daily_counts.items()},
            "language_distribution": dict(self.language_distribution),
            "top_categories": [c.to_dict() for c in self.top_categories],
        }


def _severity(alert: RealTimeAlert) -> int:
    return alert.priority.severity


def _hashed_subjects(alerts: Sequence[RealTimeAlert]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for alert in alerts:
        if alert.subject_id:
            seen.setdefault(hash_pii(alert.subject_id), None)
    return tuple(seen)


def _direction(change: float) -> str:
    if change > TREND_CHANGE_THRESHOLD:
        return "increasing"
    if change < -TREND_CHANGE_THRESHOLD:
        return "decreasing"
    return "stable"


class InsightAggregator:
    """Computes insights and trend summaries for one scope at a time."""

    def __init__(self, store: AlertStore, detector: Optional[LanguageDetector] = None):
        self.store = store
        self.detector = detector or LanguageDetector()

    def generate_insights(
        self,
        scope: str,
        timeframe: str = "week",
        now: Optional[datetime] = None,
    ) -> List[Insight]:
        """Generate insights for a scope over a timeframe.

        Args:
            scope: Organization scope
            timeframe: "week", "month" or "semester"
            now: Reference time (defaults to utcnow)

        Returns:
            Insights in order: trend, language pattern, peak hours,
            escalation prediction (each only when significant)

        Raises:
            ValueError: If the timeframe is unknown
            RepositoryError: If the store cannot be read
        """
        if timeframe not in TIMEFRAME_DAYS:
            raise ValueError(
                f"Unknown timeframe: {timeframe} (expected one of {sorted(TIMEFRAME_DAYS)})"
            )
        now = now or datetime.utcnow()
        since = now - timedelta(days=TIMEFRAME_DAYS[timeframe])
        alerts = self.store.list_alerts(scope, since=since)

        insights: List[Insight] = []
        if alerts:
            insights.extend(self._trend_insights(alerts))
            insights.extend(self._pattern_insights(alerts))
            insights.extend(self._prediction_insights(alerts, now))

        logger.info(
            "INSIGHTS_GENERATED",
            extra={
                "scope": scope,
                "timeframe": timeframe,
                "alert_count": len(alerts),
                "insight_count": len(insights),
                "insight_types": [i.type.value for i in insights],
            }
        )
        return insights

    def severity_trend(self, alerts: Sequence[RealTimeAlert]) -> SeverityTrend:
        """Compare average severity of the newer half against the older half.

        Alerts must be ordered newest first, as the store returns them.
        """
        confidence = min(0.9, len(alerts) / 20)
        if len(alerts) < 2:
            avg = float(_severity(alerts[0])) if alerts else 0.0
            return SeverityTrend("stable", 0.0, avg, avg, confidence)

        half = len(alerts) // 2
        recent, older = alerts[:half], alerts[half:]
        recent_avg = sum(_severity(a) for a in recent) / len(recent)
        older_avg = sum(_severity(a) for a in older) / len(older)
        change = (recent_avg - older_avg) / older_avg

        return SeverityTrend(
            direction=_direction(change),
            change=change,
            recent_avg=recent_avg,
            older_avg=older_avg,
            confidence=confidence,
            affected_subjects=_hashed_subjects(recent),
        )

    def language_distribution(self, alerts: Sequence[RealTimeAlert]) -> LanguageDistribution:
        grouped: Dict[str, List[RealTimeAlert]] = defaultdict(list)
        for alert in alerts:
            grouped[self._alert_language(alert)].append(alert)

        findings = tuple(
            LanguageFinding(
                language=language,
                count=len(group),
                avg_severity=sum(_severity(a) for a in group) / len(group),
            )
            for language, group in sorted(grouped.items())
            if len(group) >= MIN_LANGUAGE_ALERTS
        )
        return LanguageDistribution(
            counts={language: len(group) for language, group in sorted(grouped.items())},
            significant_findings=findings,
            affected_subjects=_hashed_subjects(alerts),
        )

    def peak_hours(self, alerts: Sequence[RealTimeAlert]) -> PeakHours:
        """Hours of day whose alert count exceeds 1.5x the hourly mean."""
        hour_counts = Counter(a.timestamp.hour for a in alerts)
        threshold = (sum(hour_counts.values()) / 24) * PEAK_HOUR_FACTOR
        peaks = tuple(
            f"{hour}:00"
            for hour in sorted(hour_counts)
            if hour_counts[hour] > threshold
        )
        return PeakHours(
            peak_hours=peaks,
            hourly_distribution=dict(sorted(hour_counts.items())),
            confidence=min(0.9, len(alerts) / 50),
        )

    def risk_escalation(
        self,
        alerts: Sequence[RealTimeAlert],
        now: Optional[datetime] = None,
    ) -> RiskEscalation:
        """Estimate the chance of more high-risk alerts next week.

        Compares high-risk alerts in the last 7 days with the 7 days
        before that. No prior high-risk alerts means no measurable
        increase, so the estimate stays at the 0.5 baseline.
        """
        now = now or datetime.utcnow()
        week_ago = now - timedelta(days=7)
        two_weeks_ago = now - timedelta(days=14)

        recent = [a for a in alerts if a.timestamp > week_ago]
        previous = [a for a in alerts if two_weeks_ago < a.timestamp <= week_ago]
        recent_high = [a for a in recent if _severity(a) >= HIGH_RISK_SEVERITY]
        previous_high_count = sum(1 for a in previous if _severity(a) >= HIGH_RISK_SEVERITY)

        increase = (
            (len(recent_high) - previous_high_count) / previous_high_count
            if previous_high_count > 0 else 0.0
        )
        probability = min(0.9, max(0.1, 0.5 + increase))

        if probability > 0.8:
            severity = InsightSeverity.CRITICAL
        elif probability > 0.6:
            severity = InsightSeverity.WARNING
        else:
            severity = InsightSeverity.INFO

        return RiskEscalation(
            probability=probability,
            severity=severity,
            confidence=min(0.9, len(alerts) / 30),
            recent_high_risk=len(recent_high),
            previous_high_risk=previous_high_count,
            at_risk_subjects=_hashed_subjects(recent_high),
        )

    def summarize(
        self,
        scope: str,
        since: datetime,
        now: Optional[datetime] = None,
    ) -> TrendSummary:
        """Per-day risk counts, language mix and top indicator categories."""
        now = now or datetime.utcnow()
        alerts = [a for a in self.store.list_alerts(scope, since=since) if a.timestamp <= now]

        daily: Dict[str, Counter] = defaultdict(Counter)
        for alert in alerts:
            daily[alert.timestamp.date().isoformat()][alert.priority.value] += 1

        half = len(alerts) // 2
        recent_counts = self._category_counts(alerts[:half])
        older_counts = self._category_counts(alerts[half:])
        total_counts = recent_counts + older_counts
        top = sorted(total_counts.items(), key=lambda item: (-item[1], item[0]))

        summary = TrendSummary(
            scope=scope,
            since=since,
            until=now,
            total_alerts=len(alerts),
            daily_counts={day: dict(daily[day]) for day in sorted(daily)},
            language_distribution=self.language_distribution(alerts).counts,
            top_categories=tuple(
                CategoryTrend(
                    category=category,
                    count=count,
                    direction=self._category_direction(
                        recent_counts[category], older_counts[category]
                    ),
                )
                for category, count in top[:TOP_CATEGORY_LIMIT]
            ),
        )

        logger.info(
            "TREND_SUMMARY_GENERATED",
            extra={
                "scope": scope,
                "alert_count": len(alerts),
                "days": len(summary.daily_counts),
            }
        )
        return summary

    def _trend_insights(self, alerts: Sequence[RealTimeAlert]) -> List[Insight]:
        insights = []

        trend = self.severity_trend(alerts)
        if trend.direction == "increasing" and trend.confidence > TREND_INSIGHT_MIN_CONFIDENCE:
            insights.append(Insight(
                type=InsightType.TREND,
                severity=InsightSeverity.WARNING,
                title="Increasing Mental Health Concerns",
                description=(
                    f"Mental health alert severity has increased by "
                    f"{int(round(trend.change * 100))}% over the past period."
                ),
                confidence=trend.confidence,
                affected_subjects=trend.affected_subjects,
                recommended_actions=(
                    "Schedule additional counseling sessions",
                    "Review current stress factors in curriculum",
                    "Consider implementing wellness initiatives",
                ),
                metadata={"trend": trend.to_dict()},
            ))

        languages = self.language_distribution(alerts)
        if languages.significant_findings:
            insights.append(Insight(
                type=InsightType.PATTERN,
                severity=InsightSeverity.INFO,
                title="Language-Specific Mental Health Patterns",
                description="Different mental health expression patterns detected across languages.",
                confidence=0.8,
                affected_subjects=languages.affected_subjects,
                recommended_actions=(
                    "Provide culturally sensitive support resources",
                    "Train staff on language-specific indicators",
                    "Customize intervention approaches by language",
                ),
                metadata={
                    "findings": [f.to_dict() for f in languages.significant_findings],
                },
            ))

        return insights

    def _pattern_insights(self, alerts: Sequence[RealTimeAlert]) -> List[Insight]:
        peaks = self.peak_hours(alerts)
        if not peaks.peak_hours:
            return []
        return [Insight(
            type=InsightType.PATTERN,
            severity=InsightSeverity.INFO,
            title="Peak Distress Time Patterns",
            description=f"Mental health alerts peak during {', '.join(peaks.peak_hours)}",
            confidence=peaks.confidence,
            recommended_actions=(
                "Schedule support resources during peak times",
                "Investigate stress factors during these periods",
                "Implement preventive measures before peak times",
            ),
            metadata={
                "peak_hours": list(peaks.peak_hours),
                "hourly_distribution": {str(h): c for h, c in peaks.hourly_distribution.items()},
            },
        )]

    def _prediction_insights(self, alerts: Sequence[RealTimeAlert], now: datetime) -> List[Insight]:
        escalation = self.risk_escalation(alerts, now)
        if escalation.probability <= ESCALATION_INSIGHT_MIN_PROBABILITY:
            return []
        return [Insight(
            type=InsightType.PREDICTION,
            severity=escalation.severity,
            title="Risk Escalation Prediction",
            description=(
                f"{int(round(escalation.probability * 100))}% probability of increased "
                f"mental health concerns in the next week."
            ),
            confidence=escalation.confidence,
            affected_subjects=escalation.at_risk_subjects,
            recommended_actions=(
                "Proactively reach out to at-risk students",
                "Increase monitoring and support availability",
                "Prepare crisis intervention resources",
            ),
            metadata={"risk_prediction": escalation.to_dict()},
        )]

    def _alert_language(self, alert: RealTimeAlert) -> str:
        if alert.analysis is not None:
            return alert.analysis.detected_language.value
        return self.detector.detect(alert.message).value

    @staticmethod
    def _category_counts(alerts: Sequence[RealTimeAlert]) -> Counter:
        counts: Counter = Counter()
        for alert in alerts:
            if alert.analysis is None:
                continue
            for indicator in alert.analysis.indicators:
                category, sep, _ = indicator.partition(":")
                if sep:
                    counts[category.strip()] += 1
        return counts

    @staticmethod
    def _category_direction(recent: int, older: int) -> str:
        if recent > older:
            return "rising"
        if recent < older:
            return "falling"
        return "steady"
