"""Per-skill statistics projection.

A skill's ``statistics`` columns are a cache derived from the resources it
owns that are active, verified and not soft-deleted. Nothing subscribes to
resource changes: every catalog mutation that can alter those inputs calls
:meth:`CatalogStatisticsEngine.refresh_statistics` for the affected skill(s)
once it has persisted its own change.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.catalog.resource_model import LearningType, Resource
from app.models.catalog.skill_model import Skill
from app.services.catalog_errors import skill_not_found

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PopularityWeights:
    resources: float = 10.0
    rating: float = 20.0
    learners_divisor: float = 100.0

    @classmethod
    def from_settings(cls) -> "PopularityWeights":
        return cls(
            resources=settings.POPULARITY_RESOURCE_WEIGHT,
            rating=settings.POPULARITY_RATING_WEIGHT,
            learners_divisor=settings.POPULARITY_LEARNERS_DIVISOR,
        )

    def score(self, total_resources: int, average_rating: float, total_learners: int) -> float:
        learners_bonus = total_learners / self.learners_divisor if self.learners_divisor else 0.0
        return self.resources * total_resources + self.rating * average_rating + learners_bonus


@dataclass(frozen=True, slots=True)
class SkillStatistics:
    total_resources: int = 0
    free_resources: int = 0
    premium_resources: int = 0
    average_rating: float = 0.0
    total_learners: int = 0
    popularity_score: float = 0.0

    def as_dict(self) -> dict:
        return asdict(self)

    def apply_to(self, skill: Skill) -> None:
        skill.total_resources = self.total_resources
        skill.free_resources = self.free_resources
        skill.premium_resources = self.premium_resources
        skill.average_rating = self.average_rating
        skill.total_learners = self.total_learners
        skill.popularity_score = self.popularity_score


def compute_statistics(
    resources: Iterable[Resource],
    weights: PopularityWeights | None = None,
) -> SkillStatistics:
    """Aggregate counters over ``resources``; an empty input yields zeros."""

    weights = weights or PopularityWeights()
    total = free = premium = learners = 0
    rating_sum = 0.0

    for resource in resources:
        total += 1
        if resource.learning_type == LearningType.free:
            free += 1
        elif resource.learning_type == LearningType.premium:
            premium += 1
        rating_sum += resource.rating or 0.0
        learners += resource.enrollment_count or 0

    average_rating = rating_sum / total if total else 0.0
    return SkillStatistics(
        total_resources=total,
        free_resources=free,
        premium_resources=premium,
        average_rating=average_rating,
        total_learners=learners,
        popularity_score=weights.score(total, average_rating, learners),
    )


class CatalogStatisticsEngine:
    """Recomputes skill statistics and maintains skill membership lists."""

    def __init__(self, db: Session, weights: PopularityWeights | None = None):
        self.db = db
        self.weights = weights or PopularityWeights.from_settings()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    def counted_resources(self, skill_id: int) -> list[Resource]:
        # Primary-key order keeps the float sums identical between runs.
        return (
            self.db.query(Resource)
            .filter(
                Resource.skill_id == skill_id,
                Resource.is_active.is_(True),
                Resource.verified.is_(True),
                Resource.deleted_at.is_(None),
            )
            .order_by(Resource.id.asc())
            .all()
        )

    def refresh_statistics(self, skill_id: int) -> SkillStatistics:
        """Recompute and persist the statistics of ``skill_id``.

        Raises ``CatalogError("skill_not_found")`` for unknown skills.
        """
        skill = self.db.get(Skill, skill_id)
        if skill is None:
            raise skill_not_found()

        stats = compute_statistics(self.counted_resources(skill_id), self.weights)
        stats.apply_to(skill)
        self.db.commit()
        logger.debug("Statistics refreshed for skill %s: %s", skill_id, stats)
        return stats

    def refresh_many(self, skill_ids: Iterable[int]) -> dict[int, SkillStatistics]:
        """Refresh each distinct skill once, silently skipping missing ones."""
        refreshed: dict[int, SkillStatistics] = {}
        for skill_id in sorted(set(skill_ids)):
            if self.db.get(Skill, skill_id) is None:
                logger.warning("Skipping statistics refresh for missing skill %s", skill_id)
                continue
            refreshed[skill_id] = self.refresh_statistics(skill_id)
        return refreshed

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    def add_member(self, skill: Skill, resource: Resource) -> SkillStatistics:
        if resource not in skill.resources:
            skill.resources.append(resource)
            self.db.commit()
        return self.refresh_statistics(skill.id)

    def remove_member(self, skill: Skill, resource: Resource) -> SkillStatistics:
        if resource in skill.resources:
            skill.resources.remove(resource)
            self.db.commit()
        return self.refresh_statistics(skill.id)

    def move_resource(self, resource: Resource, from_skill: Skill, to_skill: Skill) -> None:
        """Transfer ``resource`` between skills and refresh both owners."""
        if resource in from_skill.resources:
            from_skill.resources.remove(resource)
        if resource not in to_skill.resources:
            to_skill.resources.append(resource)
        resource.skill_id = to_skill.id
        resource.skill = to_skill
        self.db.commit()

        logger.info(
            "Resource %s moved from skill %s to skill %s", resource.id, from_skill.id, to_skill.id
        )
        self.refresh_statistics(from_skill.id)
        self.refresh_statistics(to_skill.id)
