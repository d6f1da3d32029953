from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.catalog.resource_model import LearningType, ResourceLevel, ResourceType
from app.models.catalog.skill_model import AudienceCategory
from app.schemas.catalog.skill_schema import SkillSummaryOut, _clean_tags


class ResourceBase(BaseModel):
    description: Optional[str] = Field(default=None, max_length=1000)
    level: Optional[ResourceLevel] = None
    thumbnail: Optional[str] = Field(default=None, max_length=2048)
    creator: Optional[str] = Field(default=None, max_length=100)
    duration: Optional[str] = Field(default=None, max_length=50)
    duration_in_minutes: Optional[int] = Field(default=None, ge=0)
    language: Optional[str] = Field(default=None, max_length=50)
    tags: Optional[List[str]] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    enrollment_count: Optional[int] = Field(default=None, ge=0)
    completion_rate: Optional[float] = Field(default=None, ge=0, le=100)
    price_amount: Optional[float] = Field(default=None, ge=0)
    price_currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    price_discounted_amount: Optional[float] = Field(default=None, ge=0)
    # Admin override: ``True`` marks the resource verified whatever the probe says.
    verified: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(value)

    @field_validator("price_currency")
    @classmethod
    def _upper_currency(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value


class ResourceCreate(ResourceBase):
    title: str = Field(..., min_length=3, max_length=200)
    url: str = Field(..., min_length=1, max_length=2048)
    type: ResourceType
    learning_type: LearningType
    skill_id: int = Field(..., ge=1)
    category: AudienceCategory

    @field_validator("title", "url")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must_not_be_blank")
        return value


class ResourceUpdate(ResourceBase):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    url: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    type: Optional[ResourceType] = None
    learning_type: Optional[LearningType] = None
    skill_id: Optional[int] = Field(default=None, ge=1)
    category: Optional[AudienceCategory] = None

    @field_validator("title", "url")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("must_not_be_blank")
        return value


class ResourceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    url: str
    type: ResourceType
    learning_type: LearningType
    skill_id: int
    skill: Optional[SkillSummaryOut] = None
    category: AudienceCategory
    level: ResourceLevel
    thumbnail: Optional[str]
    creator: str
    duration: Optional[str]
    duration_in_minutes: int
    language: str
    tags: List[str]
    verified: bool
    verification_error: Optional[str]
    last_verified_at: Optional[datetime]
    rating: float
    ratings_count: int
    view_count: int
    bookmark_count: int
    enrollment_count: int
    completion_rate: float
    price_amount: float
    price_currency: str
    price_discounted_amount: Optional[float]
    formatted_price: str
    is_active: bool
    deleted_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class ResourcePage(BaseModel):
    items: List[ResourceOut]
    total: int
    page: int
    pages: int
    limit: int


class ResourceMutationOut(BaseModel):
    resource: ResourceOut
    verification_warning: Optional[str] = None


class VerificationOut(BaseModel):
    resource: ResourceOut
    verified: bool
    source: str
    error: Optional[str] = None
    status_code: Optional[int] = None


class RatingIn(BaseModel):
    rating: float = Field(..., ge=0, le=5)


class ResourceTypeOut(BaseModel):
    type: str
    label: str
    icon: str
    color: str
    background_color: str
