import socket
import threading

import pytest
import requests
from pydantic import ValidationError
from sqlalchemy import event

from app.models.catalog.resource_model import LearningType, Resource, ResourceType
from app.models.catalog.skill_model import AudienceCategory, Skill
from app.schemas.catalog.resource_schema import ResourceCreate, ResourceUpdate
from app.schemas.catalog.skill_schema import SkillCreate, SkillUpdate
from app.services.catalog_admin_service import CatalogAdminService
from app.services.catalog_errors import CatalogError
from app.services.url_verifier import DOMAIN_NOT_FOUND, SOURCE_ALLOW_LIST, SOURCE_PROBE
from tests.utils import create_resource, create_skill

UNREACHABLE = requests.exceptions.ConnectionError(socket.gaierror(-2, "Name or service not known"))


@pytest.fixture()
def service(db_session, verifier):
    return CatalogAdminService(db=db_session, verifier=verifier)


@pytest.fixture()
def skill(db_session):
    return create_skill(db_session)


def _resource_payload(skill_id: int, url: str, **kwargs) -> ResourceCreate:
    data = {
        "title": "A useful course",
        "url": url,
        "type": ResourceType.article,
        "learning_type": LearningType.free,
        "skill_id": skill_id,
        "category": AudienceCategory.students,
    }
    data.update(kwargs)
    return ResourceCreate(**data)


# --- skills -----------------------------------------------------------------


def test_create_skill_builds_slug(service):
    skill = service.create_skill(SkillCreate(name="AI / ML", category=AudienceCategory.students))

    assert skill.slug == "ai-ml"
    assert skill.is_active is True
    assert skill.statistics["total_resources"] == 0


def test_skill_names_are_unique_case_insensitively(service):
    service.create_skill(SkillCreate(name="Web Development", category=AudienceCategory.students))

    with pytest.raises(CatalogError) as exc:
        service.create_skill(SkillCreate(name="web development", category=AudienceCategory.all))
    assert exc.value.code == "skill_name_taken"


def test_colliding_slugs_get_a_suffix(service):
    first = service.create_skill(SkillCreate(name="C++", category=AudienceCategory.students))
    second = service.create_skill(SkillCreate(name="C#", category=AudienceCategory.students))

    assert first.slug == "c"
    assert second.slug == "c-2"


def test_update_skill_renames_and_refreshes(db_session, service, skill):
    create_resource(db_session, skill, rating=4.0)

    updated = service.update_skill(skill.id, SkillUpdate(name="Frontend Development", priority=3))

    assert updated.name == "Frontend Development"
    assert updated.slug == "frontend-development"
    assert updated.priority == 3
    assert updated.total_resources == 1


def test_delete_skill_blocked_by_active_resources(db_session, service, skill):
    create_resource(db_session, skill)
    create_resource(db_session, skill, verified=False)

    with pytest.raises(CatalogError) as exc:
        service.delete_skill(skill.id)
    assert exc.value.code == "skill_has_active_resources"
    assert exc.value.status_code == 400
    assert exc.value.context == {"active_resources_count": 2}


def test_delete_skill_is_soft(db_session, service, skill):
    create_resource(db_session, skill, is_active=False)

    deleted = service.delete_skill(skill.id)

    assert deleted.is_active is False
    assert deleted.deleted_at is not None
    assert db_session.get(Skill, skill.id) is not None

    restored = service.restore_skill(skill.id)
    assert restored.is_active is True
    assert restored.deleted_at is None


def test_unknown_skill_raises_not_found(service):
    with pytest.raises(CatalogError) as exc:
        service.get_skill(12345)
    assert exc.value.code == "skill_not_found"
    assert exc.value.status_code == 404


def test_list_skills_filters_and_paginates(db_session, service):
    for index in range(5):
        create_skill(db_session, name=f"Skill {index}", priority=index)
    create_skill(db_session, name="Kids Maths", category=AudienceCategory.children)

    page = service.list_skills(page=2, limit=2, category=AudienceCategory.students, sort_by="priority", order="asc")

    assert page.total == 5
    assert page.pages == 3
    assert [skill.name for skill in page.items] == ["Skill 2", "Skill 3"]

    found = service.list_skills(search="kids")
    assert [skill.name for skill in found.items] == ["Kids Maths"]


# --- resource creation ------------------------------------------------------


def test_known_platform_is_verified_without_network(service, skill, http_session):
    mutation = service.create_resource(_resource_payload(skill.id, "https://www.youtube.com/watch?v=abc"))

    assert mutation.resource.verified is True
    assert mutation.verification_warning is None
    assert mutation.resource.last_verified_at is not None
    assert http_session.call_count == 0


def test_reachable_url_is_verified_by_probe(service, skill, http_session):
    mutation = service.create_resource(_resource_payload(skill.id, "https://example.org/guide"))

    assert mutation.resource.verified is True
    assert http_session.call_count == 1


def test_unreachable_url_still_creates_unverified_resource(db_session, service, skill, http_session):
    http_session.default = UNREACHABLE

    mutation = service.create_resource(_resource_payload(skill.id, "https://nowhere.invalid/course"))

    assert mutation.resource.id is not None
    assert mutation.resource.verified is False
    assert mutation.resource.verification_error == DOMAIN_NOT_FOUND
    assert mutation.verification_warning == DOMAIN_NOT_FOUND
    db_session.refresh(skill)
    assert [r.id for r in skill.resources] == [mutation.resource.id]
    assert skill.total_resources == 0


def test_admin_override_marks_resource_verified(service, skill, http_session):
    http_session.default = 404

    mutation = service.create_resource(
        _resource_payload(skill.id, "https://example.org/private", verified=True)
    )

    assert mutation.resource.verified is True
    assert mutation.verification_warning == "HTTP 404"


def test_create_refreshes_owner_statistics(db_session, service, skill):
    service.create_resource(
        _resource_payload(skill.id, "https://www.youtube.com/watch?v=1", rating=4.0, enrollment_count=1000)
    )

    db_session.refresh(skill)
    assert skill.total_resources == 1
    assert skill.popularity_score == pytest.approx(10 + 80 + 10)


def test_create_requires_existing_skill(service):
    with pytest.raises(CatalogError) as exc:
        service.create_resource(_resource_payload(999, "https://www.youtube.com/watch?v=1"))
    assert exc.value.code == "skill_not_found"


def test_duplicate_url_is_rejected(service, skill):
    service.create_resource(_resource_payload(skill.id, "https://www.youtube.com/watch?v=1"))

    with pytest.raises(CatalogError) as exc:
        service.create_resource(_resource_payload(skill.id, "https://www.youtube.com/watch?v=1"))
    assert exc.value.code == "resource_url_taken"


# --- resource update --------------------------------------------------------


def test_update_without_url_change_skips_verification(service, skill, http_session):
    resource = service.create_resource(_resource_payload(skill.id, "https://example.org/a")).resource
    calls_after_create = http_session.call_count
    http_session.default = UNREACHABLE

    mutation = service.update_resource(resource.id, ResourceUpdate(title="Renamed course"))

    assert mutation.resource.title == "Renamed course"
    assert mutation.resource.verified is True
    assert mutation.verification_warning is None
    assert http_session.call_count == calls_after_create


def test_update_with_new_url_reverifies(service, skill, http_session):
    resource = service.create_resource(_resource_payload(skill.id, "https://example.org/a")).resource
    http_session.default = UNREACHABLE

    mutation = service.update_resource(resource.id, ResourceUpdate(url="https://nowhere.invalid/b"))

    assert mutation.resource.url == "https://nowhere.invalid/b"
    assert mutation.resource.verified is False
    assert mutation.verification_warning == DOMAIN_NOT_FOUND


@pytest.mark.parametrize("field, value", [("url", "   "), ("title", " \t ")])
def test_update_rejects_blank_text_fields(field, value):
    with pytest.raises(ValidationError) as exc:
        ResourceUpdate(**{field: value})
    assert "must_not_be_blank" in str(exc.value)


def test_blank_url_update_leaves_resource_untouched(db_session, service, skill, http_session):
    resource = service.create_resource(_resource_payload(skill.id, "https://www.youtube.com/watch?v=abc")).resource

    with pytest.raises(ValidationError):
        service.update_resource(resource.id, ResourceUpdate(url="   "))

    db_session.refresh(resource)
    assert resource.url == "https://www.youtube.com/watch?v=abc"
    assert resource.verified is True
    assert http_session.call_count == 0


def test_update_skill_rejects_blank_name():
    with pytest.raises(ValidationError):
        SkillUpdate(name="   ")


def test_update_learning_type_refreshes_statistics(db_session, service, skill):
    resource = create_resource(db_session, skill, learning_type=LearningType.free)

    service.update_resource(resource.id, ResourceUpdate(learning_type=LearningType.premium))

    db_session.refresh(skill)
    assert skill.free_resources == 0
    assert skill.premium_resources == 1


def test_update_moves_resource_between_skills(db_session, service, skill):
    target = create_skill(db_session, name="Data Analytics")
    resource = create_resource(db_session, skill, enrollment_count=300)

    service.update_resource(resource.id, ResourceUpdate(skill_id=target.id))

    db_session.refresh(skill)
    db_session.refresh(target)
    assert skill.resources == []
    assert [r.id for r in target.resources] == [resource.id]
    assert skill.total_resources == 0
    assert target.total_learners == 300


def test_update_to_unknown_skill(db_session, service, skill):
    resource = create_resource(db_session, skill)

    with pytest.raises(CatalogError) as exc:
        service.update_resource(resource.id, ResourceUpdate(skill_id=999))
    assert exc.value.code == "new_skill_not_found"
    assert exc.value.status_code == 404


# --- explicit verification --------------------------------------------------


def test_explicit_verify_can_demote(db_session, service, skill, http_session):
    resource = create_resource(db_session, skill, url="https://example.org/was-fine", rating=5.0)
    service.refresh_skill_statistics(skill.id)
    http_session.default = 404

    verified_resource, decision = service.verify_resource(resource.id)

    assert decision.verified is False
    assert decision.source == SOURCE_PROBE
    assert verified_resource.verified is False
    assert verified_resource.verification_error == "HTTP 404"
    db_session.refresh(skill)
    assert skill.total_resources == 0


def test_explicit_verify_can_promote(db_session, service, skill, http_session):
    resource = create_resource(db_session, skill, url="https://www.coursera.org/learn/x", verified=False)

    verified_resource, decision = service.verify_resource(resource.id)

    assert decision.source == SOURCE_ALLOW_LIST
    assert verified_resource.verified is True
    assert verified_resource.verification_error is None
    assert http_session.call_count == 0


# --- activity and deletion --------------------------------------------------


def test_toggle_resource_active_refreshes(db_session, service, skill):
    resource = create_resource(db_session, skill)
    service.refresh_skill_statistics(skill.id)

    toggled = service.toggle_resource_active(resource.id)

    assert toggled.is_active is False
    db_session.refresh(skill)
    assert skill.total_resources == 0


def test_soft_delete_resource_refreshes_and_unlists(db_session, service, skill):
    keep = create_resource(db_session, skill, rating=2.0)
    gone = create_resource(db_session, skill, rating=5.0)
    service.refresh_skill_statistics(skill.id)

    deleted = service.delete_resource(gone.id)

    assert deleted.is_active is False
    assert deleted.deleted_at is not None
    assert db_session.get(Resource, gone.id) is not None
    db_session.refresh(skill)
    assert [r.id for r in skill.resources] == [keep.id]
    assert skill.total_resources == 1
    assert skill.average_rating == pytest.approx(2.0)

    restored = service.restore_resource(gone.id)
    assert restored.is_active is True
    db_session.refresh(skill)
    assert skill.total_resources == 2


# --- bulk operations --------------------------------------------------------


@pytest.mark.asyncio
async def test_bulk_verify_mixes_allow_list_and_probe(db_session, service, skill, http_session):
    known = create_resource(db_session, skill, url="https://www.youtube.com/watch?v=1", verified=False)
    ok = create_resource(db_session, skill, url="https://example.org/ok", verified=False)
    broken = create_resource(db_session, skill, url="https://example.org/broken", verified=True)
    http_session.responses["https://example.org/broken"] = 500

    items = await service.bulk_verify([broken.id, known.id, ok.id])

    assert [item.resource_id for item in items] == sorted([known.id, ok.id, broken.id])
    decisions = {item.resource_id: item.decision for item in items}
    assert decisions[known.id].source == SOURCE_ALLOW_LIST
    assert decisions[ok.id].verified is True
    assert decisions[broken.id].verified is False
    assert decisions[broken.id].error == "HTTP 500"
    assert http_session.call_count == 2

    db_session.refresh(skill)
    assert skill.total_resources == 2


@pytest.mark.asyncio
async def test_bulk_verify_runs_queries_off_the_event_loop(engine, db_session, service, skill):
    resource_id = create_resource(db_session, skill, url="https://example.org/ok").id
    loop_thread = threading.get_ident()
    query_threads: list[int] = []

    def record_thread(*_args):
        query_threads.append(threading.get_ident())

    event.listen(engine, "before_cursor_execute", record_thread)
    try:
        items = await service.bulk_verify([resource_id])
    finally:
        event.remove(engine, "before_cursor_execute", record_thread)

    assert [item.resource_id for item in items] == [resource_id]
    assert query_threads
    assert loop_thread not in query_threads


@pytest.mark.asyncio
async def test_bulk_verify_ignores_unknown_ids(service):
    assert await service.bulk_verify([1000, 1001]) == []


def test_bulk_delete_refreshes_every_owner(db_session, service, skill):
    other = create_skill(db_session, name="Data Analytics")
    first = create_resource(db_session, skill)
    second = create_resource(db_session, other)
    create_resource(db_session, other)

    modified, refreshed = service.bulk_delete([first.id, second.id, 999])

    assert modified == 2
    assert refreshed == sorted([skill.id, other.id])
    db_session.refresh(skill)
    db_session.refresh(other)
    assert skill.total_resources == 0
    assert other.total_resources == 1


# --- dashboard --------------------------------------------------------------


def test_dashboard_stats(db_session, service, skill):
    other = create_skill(db_session, name="Kids Maths", category=AudienceCategory.children, is_active=False)
    create_resource(db_session, skill, rating=4.5, type=ResourceType.youtube)
    create_resource(db_session, skill, rating=3.0, verified=False)
    create_resource(db_session, other, rating=0.0, is_active=False)
    service.refresh_skill_statistics(skill.id)

    stats = service.dashboard_stats()

    assert stats["skills"] == {"total": 2, "active": 1, "inactive": 1}
    assert stats["resources"] == {
        "total": 3,
        "active": 2,
        "inactive": 1,
        "verified": 1,
        "unverified": 1,
    }
    assert stats["by_type"] == {"article": 1, "youtube": 1}
    assert stats["by_learning_type"] == {"free": 2}
    assert [item["rating"] for item in stats["top_rated_resources"]] == [4.5, 3.0]
    assert stats["top_rated_resources"][0]["skill_name"] == skill.name
    assert [item["id"] for item in stats["popular_skills"]] == [skill.id]
