"""JSON-serializable results of the query facade.

Shares and trends are held unrounded and rounded to ``precision`` decimal
places only in ``to_dict``.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from src.analytics.breakdown import EntityBreakdown
from src.analytics.errors import PartialDataDegraded
from src.analytics.periods import DateRange
from src.analytics.schemas import Entity


@dataclass
class AnalyticsReport:
    """Fields shared by every report."""

    project_id: str
    window: DateRange
    degraded: bool = False
    warnings: list[str] = field(default_factory=list)
    precision: int = 1

    def mark_degraded(self, notice: PartialDataDegraded) -> None:
        """Flag the report as served from rollup data only."""
        self.degraded = True
        if notice.user_message not in self.warnings:
            self.warnings.append(notice.user_message)

    def _body(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "range": self.window.to_dict(),
            "degraded": self.degraded,
            "warnings": list(self.warnings),
            **self._body(),
        }


@dataclass(frozen=True)
class PlatformStat:
    platform: str
    label: str
    mentions: int
    citations: int
    share: float
    trend: float

    def to_dict(self, precision: int = 1) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "label": self.label,
            "mentions": self.mentions,
            "citations": self.citations,
            "share": round(self.share, precision),
            "trend": round(self.trend, precision),
        }


@dataclass
class PlatformOverviewReport(AnalyticsReport):
    platforms: list[PlatformStat] = field(default_factory=list)
    total_mentions: int = 0
    total_citations: int = 0

    def _body(self) -> dict[str, Any]:
        return {
            "platforms": [p.to_dict(self.precision) for p in self.platforms],
            "total_mentions": self.total_mentions,
            "total_citations": self.total_citations,
        }


@dataclass(frozen=True)
class EvolutionPoint:
    """Mentions per platform on one calendar day."""

    day: date
    mentions: dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.mentions.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.strftime("%b %d"),
            "full_date": self.day.isoformat(),
            **self.mentions,
            "total": self.total,
        }


@dataclass
class PlatformEvolutionReport(AnalyticsReport):
    points: list[EvolutionPoint] = field(default_factory=list)

    def _body(self) -> dict[str, Any]:
        return {"points": [p.to_dict() for p in self.points]}


@dataclass
class EntityBreakdownReport(AnalyticsReport):
    platforms: dict[str, EntityBreakdown] = field(default_factory=dict)
    combined: EntityBreakdown = field(default_factory=EntityBreakdown)

    def _body(self) -> dict[str, Any]:
        return {
            "platforms": {
                platform: breakdown.to_dict(self.precision)
                for platform, breakdown in self.platforms.items()
            },
            "combined": self.combined.to_dict(self.precision),
        }


@dataclass(frozen=True)
class TopicPerformanceRow:
    """Brand mentions for one topic, per platform."""

    topic_id: str
    name: str
    mentions: dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.mentions.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.topic_id,
            "name": self.name,
            **self.mentions,
            "total": self.total,
        }


@dataclass
class TopicPerformanceReport(AnalyticsReport):
    topics: list[TopicPerformanceRow] = field(default_factory=list)

    def _body(self) -> dict[str, Any]:
        return {"topics": [t.to_dict() for t in self.topics]}


@dataclass(frozen=True)
class MomentumEntry:
    """An entity's current share on a platform and its change."""

    entity: Entity
    mentions: int
    percentage: float
    trend: float

    def to_dict(self, precision: int = 1) -> dict[str, Any]:
        return {
            **self.entity.to_dict(),
            "mentions": self.mentions,
            "percentage": round(self.percentage, precision),
            "trend": round(self.trend, precision),
        }


@dataclass
class MomentumReport(AnalyticsReport):
    platforms: dict[str, list[MomentumEntry]] = field(default_factory=dict)

    def _body(self) -> dict[str, Any]:
        return {
            "platforms": {
                platform: [e.to_dict(self.precision) for e in entries]
                for platform, entries in self.platforms.items()
            }
        }


@dataclass
class CitationSourcesReport(AnalyticsReport):
    platforms: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    def _body(self) -> dict[str, Any]:
        return {"platforms": {p: list(rows) for p, rows in self.platforms.items()}}
