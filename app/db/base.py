"""Imports every catalog model so ``Base.metadata`` knows all tables."""

from app.db.base_class import Base

from app.models.catalog.skill_model import Skill, skill_resources
from app.models.catalog.resource_model import Resource
from app.models.catalog.bookmark_model import Bookmark

__all__ = (
    "Base",
    "Skill",
    "Resource",
    "Bookmark",
    "skill_resources",
)
