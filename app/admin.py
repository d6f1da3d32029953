"""Read-only SQLAdmin back office for the catalog.

Mutations go through the ``/api/v2/admin`` routes so URL verification and
skill statistics stay consistent; the views here only list and inspect.
"""

from __future__ import annotations

from markupsafe import Markup
from sqladmin import Admin, ModelView

from app.models.catalog.resource_model import Resource
from app.models.catalog.skill_model import Skill


def _flag(value: bool, *, yes: str, no: str) -> Markup:
    colour = "#16a34a" if value else "#dc2626"
    return Markup(f"<span style='color:{colour}; font-weight:600;'>{yes if value else no}</span>")


def _verification_badge(resource: Resource, _attr) -> Markup:
    badge = _flag(resource.verified, yes="verified", no="unverified")
    if not resource.verified and resource.verification_error:
        return Markup(f"{badge} <small style='color:#6b7280;'>({resource.verification_error})</small>")
    return badge


class ReadOnlyModelView(ModelView):
    can_create = False
    can_edit = False
    can_delete = False
    can_export = True


class BackOfficeAdmin(Admin):
    pass


class SkillAdmin(ReadOnlyModelView, model=Skill):
    name = "Skill"
    name_plural = "Skills"
    icon = "fa-solid fa-graduation-cap"
    category = "Catalog"
    column_list = [
        Skill.id,
        Skill.name,
        Skill.slug,
        Skill.category,
        Skill.is_active,
        Skill.is_featured,
        Skill.total_resources,
        Skill.average_rating,
        Skill.total_learners,
        Skill.popularity_score,
        Skill.deleted_at,
    ]
    column_searchable_list = [Skill.name, Skill.slug]
    column_sortable_list = [Skill.name, Skill.popularity_score, Skill.created_at]
    column_default_sort = [(Skill.popularity_score, True)]
    column_formatters = {
        Skill.category: lambda m, _: m.category.value,
        Skill.average_rating: lambda m, _: f"{m.average_rating or 0:.2f}",
        Skill.popularity_score: lambda m, _: f"{m.popularity_score or 0:.1f}",
        Skill.is_active: lambda m, _: _flag(m.is_active, yes="active", no="inactive"),
    }
    column_details_exclude_list = [Skill.resources, Skill.owned_resources]


class ResourceAdmin(ReadOnlyModelView, model=Resource):
    name = "Resource"
    name_plural = "Resources"
    icon = "fa-solid fa-link"
    category = "Catalog"
    column_list = [
        Resource.id,
        Resource.title,
        Resource.skill,
        Resource.type,
        Resource.learning_type,
        Resource.verified,
        Resource.rating,
        Resource.enrollment_count,
        Resource.is_active,
        Resource.last_verified_at,
    ]
    column_searchable_list = [Resource.title, Resource.url, Resource.creator]
    column_sortable_list = [Resource.created_at, Resource.rating, Resource.last_verified_at]
    column_default_sort = [(Resource.created_at, True)]
    column_labels = {
        Resource.verified: "Trust",
        Resource.enrollment_count: "Learners",
    }
    column_formatters = {
        Resource.type: lambda m, _: m.type.value,
        Resource.learning_type: lambda m, _: m.learning_type.value,
        Resource.verified: _verification_badge,
        Resource.is_active: lambda m, _: _flag(m.is_active, yes="active", no="inactive"),
    }
    column_formatters_detail = {
        Resource.verified: _verification_badge,
    }
