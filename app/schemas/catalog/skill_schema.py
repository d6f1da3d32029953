from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.catalog.skill_model import AudienceCategory, IconType

_HEX_COLOR = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"
_SKILL_LEVELS = {"beginner", "intermediate", "advanced", "expert"}


def _clean_tags(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    return [tag.strip().lower() for tag in value if tag and tag.strip()]


class SkillStatisticsOut(BaseModel):
    total_resources: int = 0
    free_resources: int = 0
    premium_resources: int = 0
    average_rating: float = 0.0
    total_learners: int = 0
    popularity_score: float = 0.0


class SkillBase(BaseModel):
    description: Optional[str] = Field(default=None, max_length=500)
    icon_type: Optional[IconType] = None
    icon_value: Optional[str] = Field(default=None, max_length=50)
    icon_emoji: Optional[str] = Field(default=None, max_length=16)
    color_primary: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    color_secondary: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    tags: Optional[List[str]] = None
    levels: Optional[List[str]] = None
    priority: Optional[int] = Field(default=None, ge=0)
    is_featured: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(value)

    @field_validator("levels")
    @classmethod
    def _check_levels(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        unknown = set(value) - _SKILL_LEVELS
        if unknown:
            raise ValueError(f"invalid_levels: {sorted(unknown)}")
        return value


class SkillCreate(SkillBase):
    name: str = Field(..., min_length=2, max_length=100)
    category: AudienceCategory

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("name_too_short")
        return value


class SkillUpdate(SkillBase):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    category: Optional[AudienceCategory] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if len(value) < 2:
            raise ValueError("name_too_short")
        return value


class SkillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str]
    category: AudienceCategory
    icon_type: IconType
    icon_value: str
    icon_emoji: Optional[str]
    display_icon: str
    color_primary: str
    color_secondary: str
    tags: List[str]
    levels: List[str]
    priority: int
    is_featured: bool
    is_active: bool
    deleted_at: Optional[datetime]
    statistics: SkillStatisticsOut
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class SkillSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    category: AudienceCategory


class SkillPage(BaseModel):
    items: List[SkillOut]
    total: int
    page: int
    pages: int
    limit: int
