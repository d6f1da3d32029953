"""Admin-side catalog mutations.

Every operation persists its own change first, then asks the statistics
engine to refresh the skill(s) whose inputs may have changed. URL trust is
decided by :class:`~app.services.url_verifier.UrlVerifier` on creation, on
URL changes and on explicit re-verification; only the explicit path may turn
a verified resource back into an unverified one.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

import anyio
from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from app.models.catalog.resource_model import Resource
from app.models.catalog.skill_model import AudienceCategory, Skill, slugify
from app.schemas.catalog.resource_schema import ResourceCreate, ResourceUpdate
from app.schemas.catalog.skill_schema import SkillCreate, SkillUpdate
from app.services.catalog_errors import CatalogError, resource_not_found, skill_not_found
from app.services.catalog_stats_service import CatalogStatisticsEngine, SkillStatistics
from app.services.url_verifier import SOURCE_ALLOW_LIST, TrustDecision, UrlVerifier

logger = logging.getLogger(__name__)

SKILL_SORT_FIELDS = {"created_at", "name", "priority", "popularity_score", "updated_at"}
RESOURCE_SORT_FIELDS = {"created_at", "title", "rating", "view_count", "bookmark_count", "updated_at"}


@dataclass(slots=True)
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def as_dict(self) -> dict:
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "pages": self.pages,
            "limit": self.limit,
        }


@dataclass(slots=True)
class ResourceMutation:
    resource: Resource
    verification_warning: Optional[str] = None


@dataclass(slots=True)
class BulkVerifyItem:
    resource_id: int
    decision: TrustDecision


def paginate(query: Query, page: int, limit: int) -> Page:
    page = max(page, 1)
    limit = max(limit, 1)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, total=total, page=page, limit=limit)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogAdminService:
    """Business logic behind the ``/admin`` routes."""

    def __init__(
        self,
        db: Session,
        verifier: UrlVerifier,
        statistics: CatalogStatisticsEngine | None = None,
    ):
        self.db = db
        self.verifier = verifier
        self.statistics = statistics or CatalogStatisticsEngine(db)

    # ------------------------------------------------------------------
    # Skills
    # ------------------------------------------------------------------
    def list_skills(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        category: AudienceCategory | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        order: str = "desc",
    ) -> Page:
        query = self.db.query(Skill)
        if category is not None:
            query = query.filter(Skill.category == category)
        if is_active is not None:
            query = query.filter(Skill.is_active.is_(is_active))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Skill.name.ilike(pattern), Skill.description.ilike(pattern)))

        column = getattr(Skill, sort_by if sort_by in SKILL_SORT_FIELDS else "created_at")
        query = query.order_by(column.desc() if order == "desc" else column.asc(), Skill.id.asc())
        return paginate(query, page, limit)

    def get_skill(self, skill_id: int) -> Skill:
        skill = self.db.get(Skill, skill_id)
        if skill is None:
            raise skill_not_found()
        return skill

    def _ensure_unique_skill_name(self, name: str, *, exclude_id: int | None = None) -> None:
        # Soft-deleted skills keep their name reserved until restored.
        query = self.db.query(Skill.id).filter(func.lower(Skill.name) == name.lower())
        if exclude_id is not None:
            query = query.filter(Skill.id != exclude_id)
        if query.first() is not None:
            raise CatalogError("skill_name_taken")

    def _unique_slug(self, name: str, *, exclude_id: int | None = None) -> str:
        base = slugify(name) or "skill"
        slug, suffix = base, 2
        while True:
            query = self.db.query(Skill.id).filter(Skill.slug == slug)
            if exclude_id is not None:
                query = query.filter(Skill.id != exclude_id)
            if query.first() is None:
                return slug
            slug = f"{base}-{suffix}"
            suffix += 1

    def create_skill(self, payload: SkillCreate) -> Skill:
        self._ensure_unique_skill_name(payload.name)

        data = payload.model_dump(exclude_none=True)
        skill = Skill(slug=self._unique_slug(payload.name), **data)
        self.db.add(skill)
        self.db.commit()
        self.db.refresh(skill)
        logger.info("Skill %s created (%s)", skill.id, skill.slug)
        return skill

    def update_skill(self, skill_id: int, payload: SkillUpdate) -> Skill:
        skill = self.get_skill(skill_id)
        data = payload.model_dump(exclude_unset=True, exclude_none=True)

        if "name" in data:
            self._ensure_unique_skill_name(data["name"], exclude_id=skill.id)
            skill.slug = self._unique_slug(data["name"], exclude_id=skill.id)

        for field, value in data.items():
            setattr(skill, field, value)
        self.db.commit()

        self.statistics.refresh_statistics(skill.id)
        self.db.refresh(skill)
        logger.info("Skill %s updated (%s)", skill.id, sorted(data))
        return skill

    def toggle_skill_active(self, skill_id: int) -> Skill:
        skill = self.get_skill(skill_id)
        skill.is_active = not skill.is_active
        self.db.commit()
        self.db.refresh(skill)
        return skill

    def count_active_resources(self, skill_id: int) -> int:
        return (
            self.db.query(func.count(Resource.id))
            .filter(
                Resource.skill_id == skill_id,
                Resource.is_active.is_(True),
                Resource.deleted_at.is_(None),
            )
            .scalar()
            or 0
        )

    def delete_skill(self, skill_id: int) -> Skill:
        """Soft-delete a skill that no longer owns any active resource."""
        skill = self.get_skill(skill_id)
        active_count = self.count_active_resources(skill.id)
        if active_count > 0:
            raise CatalogError(
                "skill_has_active_resources",
                context={"active_resources_count": active_count},
            )

        skill.is_active = False
        skill.deleted_at = _utcnow()
        self.db.commit()
        self.db.refresh(skill)
        logger.info("Skill %s soft-deleted", skill.id)
        return skill

    def restore_skill(self, skill_id: int) -> Skill:
        skill = self.get_skill(skill_id)
        skill.is_active = True
        skill.deleted_at = None
        self.db.commit()
        self.db.refresh(skill)
        return skill

    def refresh_skill_statistics(self, skill_id: int) -> SkillStatistics:
        return self.statistics.refresh_statistics(skill_id)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------
    def list_resources(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        skill_id: int | None = None,
        resource_type: str | None = None,
        learning_type: str | None = None,
        category: str | None = None,
        level: str | None = None,
        verified: bool | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        order: str = "desc",
    ) -> Page:
        query = self.db.query(Resource)
        if skill_id is not None:
            query = query.filter(Resource.skill_id == skill_id)
        if resource_type is not None:
            query = query.filter(Resource.type == resource_type)
        if learning_type is not None:
            query = query.filter(Resource.learning_type == learning_type)
        if category is not None:
            query = query.filter(Resource.category == category)
        if level is not None:
            query = query.filter(Resource.level == level)
        if verified is not None:
            query = query.filter(Resource.verified.is_(verified))
        if is_active is not None:
            query = query.filter(Resource.is_active.is_(is_active))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Resource.title.ilike(pattern),
                    Resource.description.ilike(pattern),
                    Resource.creator.ilike(pattern),
                )
            )

        column = getattr(Resource, sort_by if sort_by in RESOURCE_SORT_FIELDS else "created_at")
        query = query.order_by(column.desc() if order == "desc" else column.asc(), Resource.id.asc())
        return paginate(query, page, limit)

    def get_resource(self, resource_id: int) -> Resource:
        resource = self.db.get(Resource, resource_id)
        if resource is None:
            raise resource_not_found()
        return resource

    def _ensure_unique_url(self, url: str, *, exclude_id: int | None = None) -> None:
        query = self.db.query(Resource.id).filter(Resource.url == url, Resource.deleted_at.is_(None))
        if exclude_id is not None:
            query = query.filter(Resource.id != exclude_id)
        if query.first() is not None:
            raise CatalogError("resource_url_taken")

    @staticmethod
    def _record_decision(resource: Resource, decision: TrustDecision) -> None:
        resource.verified = decision.verified
        resource.verification_error = decision.error
        resource.last_verified_at = decision.checked_at or _utcnow()

    def _decide(self, url: str) -> TrustDecision:
        decision = self.verifier.decide(url)
        if not decision.verified:
            logger.warning("Resource URL verification failed: %s - %s", url, decision.error)
        return decision

    def create_resource(self, payload: ResourceCreate) -> ResourceMutation:
        skill = self.db.get(Skill, payload.skill_id)
        if skill is None:
            raise skill_not_found()
        self._ensure_unique_url(payload.url)

        decision = self._decide(payload.url)
        data = payload.model_dump(exclude_none=True, exclude={"verified"})
        resource = Resource(**data)
        self._record_decision(resource, decision)
        if payload.verified and not decision.verified:
            # Explicit admin override; the probe error is still reported.
            resource.verified = True

        self.db.add(resource)
        self.db.commit()
        self.db.refresh(resource)
        logger.info("Resource %s created under skill %s (verified=%s)", resource.id, skill.id, resource.verified)

        self.statistics.add_member(skill, resource)
        self.db.refresh(resource)
        return ResourceMutation(resource=resource, verification_warning=decision.error)

    def update_resource(self, resource_id: int, payload: ResourceUpdate) -> ResourceMutation:
        resource = self.get_resource(resource_id)
        data = payload.model_dump(exclude_unset=True, exclude_none=True)
        explicit_verified = data.pop("verified", None)
        new_skill_id = data.pop("skill_id", None)
        warning: Optional[str] = None

        new_skill: Skill | None = None
        if new_skill_id is not None and new_skill_id != resource.skill_id:
            new_skill = self.db.get(Skill, new_skill_id)
            if new_skill is None:
                raise CatalogError("new_skill_not_found", status_code=404)

        new_url = data.get("url")
        if new_url is not None and new_url != resource.url:
            self._ensure_unique_url(new_url, exclude_id=resource.id)
            decision = self._decide(new_url)
            self._record_decision(resource, decision)
            warning = decision.error

        if explicit_verified is not None:
            resource.verified = explicit_verified

        for field, value in data.items():
            setattr(resource, field, value)
        self.db.commit()

        if new_skill is not None:
            old_skill = self.db.get(Skill, resource.skill_id)
            if old_skill is not None:
                self.statistics.move_resource(resource, old_skill, new_skill)
            else:
                resource.skill_id = new_skill.id
                self.db.commit()
                self.statistics.add_member(new_skill, resource)
        else:
            self.statistics.refresh_statistics(resource.skill_id)

        self.db.refresh(resource)
        logger.info("Resource %s updated (%s)", resource.id, sorted(data))
        return ResourceMutation(resource=resource, verification_warning=warning)

    def verify_resource(self, resource_id: int) -> tuple[Resource, TrustDecision]:
        """Re-run the trust decision and overwrite ``verified`` unconditionally."""
        resource = self.get_resource(resource_id)
        decision = self._decide(resource.url)
        self._record_decision(resource, decision)
        self.db.commit()

        self.statistics.refresh_statistics(resource.skill_id)
        self.db.refresh(resource)
        return resource, decision

    def toggle_resource_active(self, resource_id: int) -> Resource:
        resource = self.get_resource(resource_id)
        resource.is_active = not resource.is_active
        self.db.commit()
        self.statistics.refresh_statistics(resource.skill_id)
        self.db.refresh(resource)
        return resource

    def _soft_delete(self, resource: Resource, now: datetime) -> None:
        resource.is_active = False
        resource.deleted_at = now
        skill = resource.skill
        if skill is not None and resource in skill.resources:
            skill.resources.remove(resource)

    def delete_resource(self, resource_id: int) -> Resource:
        resource = self.get_resource(resource_id)
        self._soft_delete(resource, _utcnow())
        self.db.commit()
        self.statistics.refresh_statistics(resource.skill_id)
        self.db.refresh(resource)
        logger.info("Resource %s soft-deleted", resource.id)
        return resource

    def restore_resource(self, resource_id: int) -> Resource:
        resource = self.get_resource(resource_id)
        resource.is_active = True
        resource.deleted_at = None
        self.db.commit()

        skill = self.db.get(Skill, resource.skill_id)
        if skill is not None:
            self.statistics.add_member(skill, resource)
        self.db.refresh(resource)
        return resource

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------
    def _load_resources(self, resource_ids: Sequence[int]) -> list[Resource]:
        if not resource_ids:
            return []
        return (
            self.db.query(Resource)
            .filter(Resource.id.in_(list(resource_ids)))
            .order_by(Resource.id.asc())
            .all()
        )

    async def bulk_verify(self, resource_ids: Sequence[int]) -> list[BulkVerifyItem]:
        """Explicitly re-verify many resources; results may demote trust.

        Session work runs in a worker thread so the event loop only waits on
        the probes.
        """
        resources = await anyio.to_thread.run_sync(self._load_resources, resource_ids)
        now = _utcnow()
        decisions: dict[int, TrustDecision] = {}
        to_probe: list[tuple[int, str]] = []

        for resource in resources:
            if self.verifier.is_known_authentic_platform(resource.url):
                decisions[resource.id] = TrustDecision(verified=True, source=SOURCE_ALLOW_LIST, checked_at=now)
            else:
                to_probe.append((resource.id, resource.url))

        checks = await self.verifier.verify_many([url for _, url in to_probe])
        for (resource_id, _), check in zip(to_probe, checks):
            decisions[resource_id] = UrlVerifier.decision_from_result(check.result, checked_at=now)

        return await anyio.to_thread.run_sync(self._apply_bulk_decisions, resources, decisions)

    def _apply_bulk_decisions(
        self, resources: list[Resource], decisions: dict[int, TrustDecision]
    ) -> list[BulkVerifyItem]:
        items: list[BulkVerifyItem] = []
        skill_ids: list[int] = []
        for resource in resources:
            decision = decisions[resource.id]
            self._record_decision(resource, decision)
            items.append(BulkVerifyItem(resource_id=resource.id, decision=decision))
            skill_ids.append(resource.skill_id)
        self.db.commit()

        self.statistics.refresh_many(skill_ids)
        logger.info(
            "Bulk verification: %s/%s resources verified",
            sum(1 for item in items if item.decision.verified),
            len(items),
        )
        return items

    def bulk_delete(self, resource_ids: Sequence[int]) -> tuple[int, list[int]]:
        resources = self._load_resources(resource_ids)
        now = _utcnow()
        modified = 0
        for resource in resources:
            if resource.deleted_at is None or resource.is_active:
                modified += 1
            self._soft_delete(resource, now)
        self.db.commit()

        refreshed = self.statistics.refresh_many(resource.skill_id for resource in resources)
        return modified, sorted(refreshed)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------
    def _grouped_counts(self, column) -> dict[str, int]:
        rows = (
            self.db.query(column, func.count(Resource.id))
            .filter(Resource.is_active.is_(True), Resource.deleted_at.is_(None))
            .group_by(column)
            .all()
        )
        counts = {getattr(key, "value", str(key)): int(count) for key, count in rows}
        return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))

    def dashboard_stats(self, *, top: int = 5) -> dict:
        not_deleted_skill = Skill.deleted_at.is_(None)
        not_deleted_resource = Resource.deleted_at.is_(None)

        total_skills = self.db.query(func.count(Skill.id)).filter(not_deleted_skill).scalar() or 0
        active_skills = (
            self.db.query(func.count(Skill.id))
            .filter(not_deleted_skill, Skill.is_active.is_(True))
            .scalar()
            or 0
        )
        total_resources = self.db.query(func.count(Resource.id)).filter(not_deleted_resource).scalar() or 0
        active_resources = (
            self.db.query(func.count(Resource.id))
            .filter(not_deleted_resource, Resource.is_active.is_(True))
            .scalar()
            or 0
        )
        verified_resources = (
            self.db.query(func.count(Resource.id))
            .filter(not_deleted_resource, Resource.is_active.is_(True), Resource.verified.is_(True))
            .scalar()
            or 0
        )

        top_rated = (
            self.db.query(Resource)
            .filter(Resource.is_active.is_(True), not_deleted_resource, Resource.rating > 0)
            .order_by(Resource.rating.desc(), Resource.ratings_count.desc(), Resource.id.asc())
            .limit(top)
            .all()
        )
        popular_skills = (
            self.db.query(Skill)
            .filter(Skill.is_active.is_(True), not_deleted_skill)
            .order_by(Skill.popularity_score.desc(), Skill.id.asc())
            .limit(top)
            .all()
        )

        return {
            "skills": {
                "total": total_skills,
                "active": active_skills,
                "inactive": total_skills - active_skills,
            },
            "resources": {
                "total": total_resources,
                "active": active_resources,
                "inactive": total_resources - active_resources,
                "verified": verified_resources,
                "unverified": active_resources - verified_resources,
            },
            "by_type": self._grouped_counts(Resource.type),
            "by_category": self._grouped_counts(Resource.category),
            "by_learning_type": self._grouped_counts(Resource.learning_type),
            "top_rated_resources": [
                {
                    "id": resource.id,
                    "title": resource.title,
                    "rating": resource.rating,
                    "ratings_count": resource.ratings_count,
                    "type": resource.type.value,
                    "skill_name": resource.skill.name if resource.skill else None,
                }
                for resource in top_rated
            ],
            "popular_skills": [
                {
                    "id": skill.id,
                    "name": skill.name,
                    "total_resources": skill.total_resources,
                    "average_rating": skill.average_rating,
                    "total_learners": skill.total_learners,
                    "popularity_score": skill.popularity_score,
                }
                for skill in popular_skills
            ],
        }
