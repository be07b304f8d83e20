"""Entity breakdown: ranked brand/competitor shares of mentions."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from src.analytics.schemas import Counts, Entity, EntityKey, EntityRoster


@dataclass(frozen=True)
class EntityShare:
    """One ranked entry of a breakdown. ``percentage`` is unrounded."""

    entity: Entity
    mentions: int
    citations: int
    percentage: float

    def to_dict(self, precision: int = 1) -> dict[str, Any]:
        return {
            **self.entity.to_dict(),
            "mentions": self.mentions,
            "citations": self.citations,
            "percentage": round(self.percentage, precision),
        }


@dataclass
class EntityBreakdown:
    """Ranked entities with totals over the included entities."""

    entities: list[EntityShare] = field(default_factory=list)
    total_mentions: int = 0
    total_citations: int = 0

    def share_of(self, key: EntityKey) -> float:
        """Percentage for an entity key, 0.0 when it is not listed."""
        for share in self.entities:
            if share.entity.key == key:
                return share.percentage
        return 0.0

    def to_dict(self, precision: int = 1) -> dict[str, Any]:
        return {
            "entities": [share.to_dict(precision) for share in self.entities],
            "total_mentions": self.total_mentions,
            "total_citations": self.total_citations,
        }


class EntityBreakdownComposer:
    """Turn merged per-entity counts into a ranked breakdown.

    Rules:
    - the brand is always listed, even with zero mentions
    - competitors with zero mentions are omitted
    - inactive or unknown competitors are omitted
    - percentage = 100 * mentions / total mentions, 0 when the total is 0
    - ordered by percentage descending, then by name
    """

    @staticmethod
    def compose(
        counts_by_entity: Mapping[EntityKey, Counts],
        roster: EntityRoster,
    ) -> EntityBreakdown:
        included: list[tuple[Entity, Counts]] = []
        brand_counts = Counts()

        for key, counts in counts_by_entity.items():
            entity = roster.resolve(key)
            if entity is None:
                continue
            if entity.is_brand:
                brand_counts.add(counts.mentions, counts.citations)
                continue
            if counts.mentions <= 0:
                continue
            included.append((entity, counts))

        included.append((roster.brand, brand_counts))

        total_mentions = sum(counts.mentions for _, counts in included)
        total_citations = sum(counts.citations for _, counts in included)

        shares = [
            EntityShare(
                entity=entity,
                mentions=counts.mentions,
                citations=counts.citations,
                percentage=(
                    100.0 * counts.mentions / total_mentions
                    if total_mentions > 0
                    else 0.0
                ),
            )
            for entity, counts in included
        ]
        shares.sort(key=lambda s: (-s.percentage, s.entity.name))

        return EntityBreakdown(
            entities=shares,
            total_mentions=total_mentions,
            total_citations=total_citations,
        )
