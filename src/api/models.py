"""
Response models for the analytics API.

Report payloads come from ``AnalyticsReport.to_dict()``; these models
document and validate their shape.
"""

from pydantic import BaseModel, ConfigDict, Field


class ComponentHealth(BaseModel):
    """Health of one infrastructure dependency."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency")
    details: dict | None = Field(default=None, description="Error details")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy or unhealthy",
    )
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health checks",
    )
    version: str = Field(
        ...,
        description="Service version",
    )


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type",
    )


# Shared report fields


class DateRangeModel(BaseModel):
    start: str = Field(..., description="Inclusive first day (ISO date)")
    end: str = Field(..., description="Inclusive last day (ISO date)")


class AnalyticsResponse(BaseModel):
    """Fields present on every analytics response."""

    project_id: str
    range: DateRangeModel
    degraded: bool = Field(
        default=False,
        description="True when today's partial data could not be included",
    )
    warnings: list[str] = Field(default_factory=list)
    latency_ms: float = Field(..., description="Processing latency in milliseconds")


# Platform overview


class PlatformStatItem(BaseModel):
    platform: str
    label: str
    mentions: int
    citations: int
    share: float = Field(..., description="Percentage of mentions across platforms")
    trend: float = Field(..., description="Share change vs. previous period (points)")


class PlatformOverviewResponse(AnalyticsResponse):
    platforms: list[PlatformStatItem]
    total_mentions: int
    total_citations: int


# Platform evolution


class EvolutionPointItem(BaseModel):
    """One day; per-platform mention counts are extra keys (e.g. ``openai``)."""

    model_config = ConfigDict(extra="allow")

    date: str = Field(..., description="Short label, e.g. 'Oct 19'")
    full_date: str = Field(..., description="ISO date")
    total: int


class PlatformEvolutionResponse(AnalyticsResponse):
    points: list[EvolutionPointItem]


# Entity breakdown


class EntityShareItem(BaseModel):
    id: str
    name: str
    domain: str = ""
    is_brand: bool = False
    mentions: int
    citations: int
    percentage: float


class EntityBreakdownItem(BaseModel):
    entities: list[EntityShareItem]
    total_mentions: int
    total_citations: int


class EntityBreakdownResponse(AnalyticsResponse):
    platforms: dict[str, EntityBreakdownItem]
    combined: EntityBreakdownItem


# Topic performance


class TopicPerformanceItem(BaseModel):
    """One topic; per-platform brand mentions are extra keys."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    total: int


class TopicPerformanceResponse(AnalyticsResponse):
    topics: list[TopicPerformanceItem]


# Momentum


class MomentumEntryItem(BaseModel):
    id: str
    name: str
    domain: str = ""
    is_brand: bool = False
    mentions: int
    percentage: float
    trend: float


class MomentumResponse(AnalyticsResponse):
    platforms: dict[str, list[MomentumEntryItem]]


# Citation sources


class CitationSourceItem(BaseModel):
    domain: str
    count: int


class CitationSourcesResponse(AnalyticsResponse):
    platforms: dict[str, list[CitationSourceItem]]
