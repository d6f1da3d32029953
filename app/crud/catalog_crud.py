from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Query, Session

from app.models.catalog.bookmark_model import Bookmark
from app.models.catalog.resource_model import LearningType, Resource
from app.models.catalog.skill_model import Skill
from app.services.catalog_admin_service import Page, paginate
from app.services.catalog_errors import resource_not_found, skill_not_found
from app.services.catalog_stats_service import CatalogStatisticsEngine

PUBLIC_RESOURCE_SORTS = {"created_at", "title", "rating", "view_count", "bookmark_count"}
POPULAR_TIMEFRAME_DAYS = {"week": 7, "month": 30, "year": 365}


def visible_skills(db: Session) -> Query:
    return db.query(Skill).filter(Skill.is_active.is_(True), Skill.deleted_at.is_(None))


def visible_resources(db: Session) -> Query:
    """Resources end users may see: active, verified and not soft-deleted."""
    return db.query(Resource).filter(
        Resource.is_active.is_(True),
        Resource.verified.is_(True),
        Resource.deleted_at.is_(None),
    )


def _grouped_counts(query: Query, column, counted) -> dict[str, int]:
    rows = query.with_entities(column, func.count(counted)).group_by(column).all()
    counts = {getattr(key, "value", str(key)): int(count) for key, count in rows}
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


# --- Skills -----------------------------------------------------------------


def list_skills(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
) -> Page:
    query = visible_skills(db)
    if category:
        query = query.filter(Skill.category == category)
    if featured is not None:
        query = query.filter(Skill.is_featured.is_(featured))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Skill.name.ilike(pattern), Skill.description.ilike(pattern)))

    query = query.order_by(Skill.priority.desc(), Skill.popularity_score.desc(), Skill.id.asc())
    return paginate(query, page, limit)


def list_popular_skills(db: Session, limit: int = 10) -> List[Skill]:
    return (
        visible_skills(db)
        .order_by(Skill.popularity_score.desc(), Skill.id.asc())
        .limit(limit)
        .all()
    )


def get_skill(db: Session, id_or_slug: str) -> Skill:
    query = visible_skills(db)
    if id_or_slug.isdigit():
        skill = query.filter(Skill.id == int(id_or_slug)).first()
    else:
        skill = query.filter(Skill.slug == id_or_slug.lower()).first()
    if skill is None:
        raise skill_not_found()
    return skill


def get_skill_resources(db: Session, skill_id: int) -> List[Resource]:
    return (
        visible_resources(db)
        .filter(Resource.skill_id == skill_id)
        .order_by(Resource.rating.desc(), Resource.id.asc())
        .all()
    )


def get_related_skills(db: Session, skill: Skill, limit: int = 6) -> List[Skill]:
    return (
        visible_skills(db)
        .filter(Skill.category == skill.category, Skill.id != skill.id)
        .order_by(Skill.popularity_score.desc(), Skill.id.asc())
        .limit(limit)
        .all()
    )


def list_skill_resources(
    db: Session,
    id_or_slug: str,
    *,
    page: int = 1,
    limit: int = 20,
    learning_type: Optional[str] = None,
    level: Optional[str] = None,
    resource_type: Optional[str] = None,
    is_free: Optional[bool] = None,
    sort: Optional[str] = None,
) -> Tuple[Skill, Page]:
    skill = get_skill(db, id_or_slug)
    query = visible_resources(db).filter(Resource.skill_id == skill.id)
    if learning_type:
        query = query.filter(Resource.learning_type == learning_type)
    if level:
        query = query.filter(Resource.level == level)
    if resource_type:
        query = query.filter(Resource.type == resource_type)
    if is_free is True:
        query = query.filter(Resource.learning_type == LearningType.free)
    elif is_free is False:
        query = query.filter(Resource.learning_type != LearningType.free)

    query = query.order_by(_resource_ordering(sort), Resource.id.asc())
    return skill, paginate(query, page, limit)


def skill_stats_overview(db: Session, *, category: Optional[str] = None, top: int = 5) -> dict:
    """Public skill totals; resource counts only include visible resources."""
    query = visible_skills(db)
    if category:
        query = query.filter(Skill.category == category)

    resource_count = func.count(Resource.id)
    top_rows = (
        query.with_entities(Skill.id, Skill.name, Skill.slug, Skill.category, resource_count)
        .outerjoin(
            Resource,
            and_(
                Resource.skill_id == Skill.id,
                Resource.is_active.is_(True),
                Resource.verified.is_(True),
                Resource.deleted_at.is_(None),
            ),
        )
        .group_by(Skill.id, Skill.name, Skill.slug, Skill.category)
        .order_by(resource_count.desc(), Skill.id.asc())
        .limit(top)
        .all()
    )

    return {
        "total": query.order_by(None).count(),
        "by_category": _grouped_counts(query, Skill.category, Skill.id),
        "top_skills_by_resources": [
            {
                "id": row.id,
                "name": row.name,
                "slug": row.slug,
                "category": row.category.value,
                "resource_count": int(row[4]),
            }
            for row in top_rows
        ],
    }


# --- Resources --------------------------------------------------------------


def _resource_ordering(sort: Optional[str]):
    sort = (sort or "-created_at").strip()
    descending = sort.startswith("-")
    field = sort.lstrip("-")
    if field not in PUBLIC_RESOURCE_SORTS:
        field, descending = "created_at", True
    column = getattr(Resource, field)
    return column.desc() if descending else column.asc()


def list_resources(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    learning_type: Optional[str] = None,
    resource_type: Optional[str] = None,
    level: Optional[str] = None,
    skill_id: Optional[int] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
) -> Page:
    query = visible_resources(db)
    if category:
        query = query.filter(Resource.category == category)
    if learning_type:
        query = query.filter(Resource.learning_type == learning_type)
    if resource_type:
        query = query.filter(Resource.type == resource_type)
    if level:
        query = query.filter(Resource.level == level)
    if skill_id is not None:
        query = query.filter(Resource.skill_id == skill_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Resource.title.ilike(pattern),
                Resource.description.ilike(pattern),
                Resource.creator.ilike(pattern),
            )
        )

    query = query.order_by(_resource_ordering(sort), Resource.id.asc())
    return paginate(query, page, limit)


def get_resource(db: Session, resource_id: int) -> Resource:
    resource = visible_resources(db).filter(Resource.id == resource_id).first()
    if resource is None:
        raise resource_not_found()
    return resource


def get_related_resources(db: Session, resource: Resource, limit: int = 6) -> List[Resource]:
    return (
        visible_resources(db)
        .filter(Resource.skill_id == resource.skill_id, Resource.id != resource.id)
        .order_by(Resource.rating.desc(), Resource.id.asc())
        .limit(limit)
        .all()
    )


def list_popular_resources(
    db: Session,
    *,
    limit: int = 10,
    category: Optional[str] = None,
    timeframe: str = "all",
) -> List[Resource]:
    query = visible_resources(db)
    if category:
        query = query.filter(Resource.category == category)
    days = POPULAR_TIMEFRAME_DAYS.get(timeframe)
    if days:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        query = query.filter(Resource.created_at >= since)

    return (
        query.order_by(Resource.bookmark_count.desc(), Resource.view_count.desc(), Resource.id.asc())
        .limit(limit)
        .all()
    )


def resource_stats_overview(db: Session, *, category: Optional[str] = None) -> dict:
    query = visible_resources(db)
    if category:
        query = query.filter(Resource.category == category)

    return {
        "total": query.order_by(None).count(),
        "by_type": _grouped_counts(query, Resource.type, Resource.id),
        "by_category": _grouped_counts(query, Resource.category, Resource.id),
        "by_learning_type": _grouped_counts(query, Resource.learning_type, Resource.id),
    }


# --- Engagement -------------------------------------------------------------


def record_view(db: Session, resource_id: int) -> Resource:
    resource = get_resource(db, resource_id)
    resource.view_count = (resource.view_count or 0) + 1
    db.commit()
    db.refresh(resource)
    return resource


def apply_rating(db: Session, resource_id: int, rating: float) -> Resource:
    """Fold one user rating into the running average and refresh the skill."""
    resource = get_resource(db, resource_id)
    rating = min(max(float(rating), 0.0), 5.0)

    count = resource.ratings_count or 0
    resource.rating = ((resource.rating or 0.0) * count + rating) / (count + 1)
    resource.ratings_count = count + 1
    db.commit()

    CatalogStatisticsEngine(db).refresh_statistics(resource.skill_id)
    db.refresh(resource)
    return resource


# --- Bookmarks --------------------------------------------------------------


def list_bookmarks(db: Session, user_id: str) -> List[Bookmark]:
    """Bookmarks whose resource is still visible, newest first."""
    return (
        db.query(Bookmark)
        .join(Resource, Bookmark.resource_id == Resource.id)
        .filter(
            Bookmark.user_id == user_id,
            Resource.is_active.is_(True),
            Resource.verified.is_(True),
            Resource.deleted_at.is_(None),
        )
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .all()
    )


def add_bookmark(
    db: Session,
    user_id: str,
    resource_id: int,
    *,
    notes: Optional[str] = None,
    progress: int = 0,
) -> Tuple[Bookmark, bool]:
    """Save a visible resource for ``user_id``; saving it twice is a no-op."""
    resource = get_resource(db, resource_id)
    bookmark = (
        db.query(Bookmark)
        .filter(Bookmark.user_id == user_id, Bookmark.resource_id == resource.id)
        .first()
    )
    if bookmark is not None:
        return bookmark, False

    bookmark = Bookmark(user_id=user_id, resource_id=resource.id, notes=notes, progress=progress)
    db.add(bookmark)
    resource.bookmark_count = (resource.bookmark_count or 0) + 1
    db.commit()
    db.refresh(bookmark)
    return bookmark, True


def remove_bookmark(db: Session, user_id: str, resource_id: int) -> bool:
    bookmark = (
        db.query(Bookmark)
        .filter(Bookmark.user_id == user_id, Bookmark.resource_id == resource_id)
        .first()
    )
    if bookmark is None:
        return False

    resource = db.get(Resource, resource_id)
    if resource is not None:
        resource.bookmark_count = max((resource.bookmark_count or 0) - 1, 0)
    db.delete(bookmark)
    db.commit()
    return True
