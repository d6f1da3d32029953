from __future__ import annotations

import pytest
from fastapi import HTTPException

from starlette.requests import Request

from app.api.v2.dependencies import require_user
from app.api.v2.endpoints import bookmark_router, resource_router, skill_router
from app.core import security
from app.models.catalog.resource_model import ResourceType
from app.schemas.catalog.bookmark_schema import BookmarkIn
from app.schemas.catalog.resource_schema import RatingIn
from tests.utils import create_resource, create_skill


def test_skill_detail_lists_visible_resources(db_session):
    skill = create_skill(db_session, name="Web Development")
    create_skill(db_session, name="Data Analytics")
    shown = create_resource(db_session, skill, title="Shown", rating=4.0)
    create_resource(db_session, skill, title="Pending", verified=False)

    detail = skill_router.get_skill("web-development", db=db_session)

    assert detail.skill.slug == "web-development"
    assert [r.id for r in detail.resources] == [shown.id]
    assert [s.name for s in detail.related_skills] == ["Data Analytics"]


def test_unknown_skill_is_404(db_session):
    with pytest.raises(HTTPException) as exc:
        skill_router.get_skill("does-not-exist", db=db_session)
    assert exc.value.status_code == 404
    assert exc.value.detail == "skill_not_found"


def test_resource_types_catalogue():
    types = resource_router.get_resource_types()

    assert len(types) == len(ResourceType)
    youtube = next(item for item in types if item["type"] == "youtube")
    assert youtube["label"] == "YouTube"


def test_rate_resource_refreshes_skill(db_session):
    skill = create_skill(db_session)
    resource = create_resource(db_session, skill)

    result = resource_router.rate_resource(resource.id, RatingIn(rating=4.0), db=db_session)

    assert result.rating == 4.0
    assert result.ratings_count == 1
    db_session.refresh(skill)
    assert skill.average_rating == 4.0


def test_view_of_hidden_resource_is_404(db_session):
    skill = create_skill(db_session)
    resource = create_resource(db_session, skill, verified=False)

    with pytest.raises(HTTPException) as exc:
        resource_router.record_view(resource.id, db=db_session)
    assert exc.value.status_code == 404


def test_skill_resources_route(db_session):
    skill = create_skill(db_session, name="Web Development")
    create_resource(db_session, skill, title="First")
    create_resource(db_session, skill, title="Second")

    result = skill_router.list_skill_resources(
        "web-development",
        page=1,
        limit=1,
        learning_type=None,
        level=None,
        type=None,
        is_free=None,
        sort="title",
        db=db_session,
    )

    assert result.skill.slug == "web-development"
    assert [r.title for r in result.resources.items] == ["First"]
    assert (result.resources.total, result.resources.pages) == (2, 2)


def test_stats_overview_routes(db_session):
    skill = create_skill(db_session)
    create_resource(db_session, skill, type=ResourceType.video)

    skills = skill_router.get_skill_stats(category=None, db=db_session)
    resources = resource_router.get_resource_stats(category=None, db=db_session)

    assert skills["top_skills_by_resources"][0]["resource_count"] == 1
    assert resources["by_type"] == {"video": 1}


def test_popular_resources_route(db_session):
    skill = create_skill(db_session)
    quiet = create_resource(db_session, skill, view_count=1)
    busy = create_resource(db_session, skill, view_count=40)

    popular = resource_router.list_popular_resources(limit=10, category=None, timeframe="all", db=db_session)

    assert [r.id for r in popular] == [busy.id, quiet.id]


def test_require_user_accepts_any_role():
    token = security.create_access_token("learner-7", role="learner")
    headers = [(b"authorization", f"Bearer {token}".encode())]
    request = Request({"type": "http", "method": "GET", "path": "/", "headers": headers})

    assert require_user(request) == "learner-7"


def test_require_user_rejects_anonymous():
    request = Request({"type": "http", "method": "GET", "path": "/", "headers": []})
    with pytest.raises(HTTPException) as exc:
        require_user(request)
    assert exc.value.status_code == 401


def test_bookmark_routes(db_session):
    skill = create_skill(db_session)
    resource = create_resource(db_session, skill)

    saved = bookmark_router.add_bookmark(
        resource.id, BookmarkIn(notes="  watch tonight ", progress=20), db=db_session, user_id="learner-1"
    )
    assert saved.resource.id == resource.id
    assert (saved.notes, saved.progress) == ("watch tonight", 20)
    assert saved.resource.bookmark_count == 1

    listed = bookmark_router.list_bookmarks(db=db_session, user_id="learner-1")
    assert [b.resource.id for b in listed] == [resource.id]

    removed = bookmark_router.remove_bookmark(resource.id, db=db_session, user_id="learner-1")
    assert removed.bookmarked is False
    assert bookmark_router.list_bookmarks(db=db_session, user_id="learner-1") == []


def test_bookmark_unknown_resource_is_404(db_session):
    with pytest.raises(HTTPException) as exc:
        bookmark_router.add_bookmark(4242, None, db=db_session, user_id="learner-1")
    assert exc.value.status_code == 404
