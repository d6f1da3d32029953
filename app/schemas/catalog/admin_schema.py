from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class AdminLoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class BulkResourceIdsIn(BaseModel):
    resource_ids: List[int] = Field(..., min_length=1)

    @field_validator("resource_ids")
    @classmethod
    def _dedupe(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))


class BulkVerifyItemOut(BaseModel):
    resource_id: int
    verified: bool
    source: str
    error: Optional[str] = None


class BulkVerifyOut(BaseModel):
    verified_count: int
    unverified_count: int
    results: List[BulkVerifyItemOut]


class BulkDeleteOut(BaseModel):
    modified_count: int
    refreshed_skill_ids: List[int]


class SkillDeleteOut(BaseModel):
    status: str = "deleted"
    skill_id: int


class ToggleActiveOut(BaseModel):
    id: int
    is_active: bool


class CountBreakdown(BaseModel):
    total: int
    active: int
    inactive: int


class ResourceCountBreakdown(CountBreakdown):
    verified: int
    unverified: int


class TopResourceOut(BaseModel):
    id: int
    title: str
    rating: float
    ratings_count: int
    type: str
    skill_name: Optional[str]


class PopularSkillOut(BaseModel):
    id: int
    name: str
    total_resources: int
    average_rating: float
    total_learners: int
    popularity_score: float


class DashboardStatsOut(BaseModel):
    skills: CountBreakdown
    resources: ResourceCountBreakdown
    by_type: Dict[str, int]
    by_category: Dict[str, int]
    by_learning_type: Dict[str, int]
    top_rated_resources: List[TopResourceOut]
    popular_skills: List[PopularSkillOut]
