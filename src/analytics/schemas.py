"""Schema definitions for mention/citation analytics.

Raw events map to the ``brand_mentions`` and ``citations`` tables, rollup
rows to ``daily_brand_stats``. ``ResolvedEventDimensions`` is the single
value produced by the response -> prompt join and consumed by everything
downstream of it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

ENTITY_BRAND = "brand"
ENTITY_COMPETITOR = "competitor"

VALID_ENTITY_TYPES: frozenset[str] = frozenset({
    ENTITY_BRAND,
    ENTITY_COMPETITOR,
})

VALID_CITATION_TYPES: frozenset[str] = frozenset({
    "brand",
    "competitor",
    "other",
})

# Caller-facing names that map onto stored platform codes
PLATFORM_ALIASES: dict[str, str] = {
    "chatgpt": "openai",
    "anthropic": "claude",
}

PLATFORM_LABELS: dict[str, str] = {
    "openai": "OpenAI",
    "gemini": "Gemini",
    "claude": "Claude",
    "perplexity": "Perplexity",
}

# Filter values meaning "do not filter on this dimension" (compared lower-cased)
NO_FILTER_VALUES: frozenset[str] = frozenset({"", "all", "global"})

BRAND_ENTITY_ID = "brand"

EntityKey = tuple[str, str | None]
"""(entity_type, competitor_id); competitor_id is None for the brand."""


def _check_entity(entity_type: str, competitor_id: str | None) -> None:
    if entity_type not in VALID_ENTITY_TYPES:
        raise ValueError(
            f"Invalid entity_type {entity_type!r}. "
            f"Must be one of: {sorted(VALID_ENTITY_TYPES)}"
        )
    if entity_type == ENTITY_BRAND and competitor_id is not None:
        raise ValueError("Brand rows must not carry a competitor_id")


@dataclass(frozen=True)
class ResolvedEventDimensions:
    """Platform, region and topic of the response an event came from."""

    platform: str
    region_id: str | None = None
    topic_id: str | None = None


@dataclass(frozen=True)
class MentionEvent:
    """An entity named inside one AI-generated response.

    Attributes:
        event_id: Row identifier in ``brand_mentions``.
        project_id: Owning project.
        entity_type: ``brand`` or ``competitor``.
        competitor_id: Competitor identifier, None for the brand.
        response_id: Originating AI response (join key for dimensions).
        created_at: When the mention was recorded.
    """

    event_id: str
    project_id: str
    entity_type: str
    competitor_id: str | None
    response_id: str
    created_at: datetime

    def __post_init__(self) -> None:
        _check_entity(self.entity_type, self.competitor_id)

    @property
    def entity_key(self) -> EntityKey:
        return (self.entity_type, self.competitor_id)


@dataclass(frozen=True)
class CitationEvent:
    """A domain cited by an AI-generated response.

    ``other`` citations support no tracked entity: they count as citation
    sources but never towards an entity's citations.
    """

    event_id: str
    project_id: str
    citation_type: str
    competitor_id: str | None
    response_id: str
    created_at: datetime
    domain: str | None = None

    def __post_init__(self) -> None:
        if self.citation_type not in VALID_CITATION_TYPES:
            raise ValueError(
                f"Invalid citation_type {self.citation_type!r}. "
                f"Must be one of: {sorted(VALID_CITATION_TYPES)}"
            )

    @property
    def entity_key(self) -> EntityKey | None:
        if self.citation_type == "brand":
            return (ENTITY_BRAND, None)
        if self.citation_type == "competitor" and self.competitor_id:
            return (ENTITY_COMPETITOR, self.competitor_id)
        return None


@dataclass(frozen=True)
class DailyAggregate:
    """One rollup row: counts for an entity on a date in one dimension cell."""

    project_id: str
    stat_date: date
    entity_type: str
    competitor_id: str | None
    platform: str
    region_id: str | None = None
    topic_id: str | None = None
    mentions_count: int = 0
    citations_count: int = 0

    def __post_init__(self) -> None:
        _check_entity(self.entity_type, self.competitor_id)
        if self.mentions_count < 0 or self.citations_count < 0:
            raise ValueError("Aggregate counts must be non-negative")

    @property
    def entity_key(self) -> EntityKey:
        return (self.entity_type, self.competitor_id)


@dataclass(frozen=True)
class DimensionFilters:
    """Canonical filters after resolution. None means "do not filter"."""

    platforms: tuple[str, ...]
    region_id: str | None = None
    topic_id: str | None = None
    require_topic: bool = False

    def matches(self, dims: ResolvedEventDimensions) -> bool:
        """Row-level filter applied after the response join."""
        if dims.platform not in self.platforms:
            return False
        if self.region_id is not None and dims.region_id != self.region_id:
            return False
        if self.topic_id is not None and dims.topic_id != self.topic_id:
            return False
        if self.require_topic and dims.topic_id is None:
            return False
        return True


@dataclass
class Counts:
    """Mutable mention/citation accumulator."""

    mentions: int = 0
    citations: int = 0

    def add(self, mentions: int = 0, citations: int = 0) -> None:
        self.mentions += mentions
        self.citations += citations

    def to_dict(self) -> dict[str, int]:
        return {"mentions": self.mentions, "citations": self.citations}


@dataclass(frozen=True)
class Competitor:
    """A tracked competitor of a project."""

    competitor_id: str
    name: str
    domain: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Entity:
    """The brand or a competitor, as presented in breakdowns."""

    entity_id: str
    name: str
    domain: str = ""
    is_brand: bool = False

    @property
    def key(self) -> EntityKey:
        if self.is_brand:
            return (ENTITY_BRAND, None)
        return (ENTITY_COMPETITOR, self.entity_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.entity_id,
            "name": self.name,
            "domain": self.domain,
            "is_brand": self.is_brand,
        }


@dataclass
class EntityRoster:
    """The brand plus every competitor of a project (active or not)."""

    brand: Entity
    competitors: list[Competitor] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_id = {c.competitor_id: c for c in self.competitors}

    @property
    def active_competitors(self) -> list[Competitor]:
        return [c for c in self.competitors if c.is_active]

    def resolve(self, key: EntityKey) -> Entity | None:
        """Entity for a key, or None for unknown or inactive competitors."""
        entity_type, competitor_id = key
        if entity_type == ENTITY_BRAND:
            return self.brand
        competitor = self._by_id.get(competitor_id) if competitor_id else None
        if competitor is None or not competitor.is_active:
            return None
        return Entity(
            entity_id=competitor.competitor_id,
            name=competitor.name,
            domain=competitor.domain,
        )


@dataclass(frozen=True)
class Topic:
    """An active topic of a project."""

    topic_id: str
    name: str
