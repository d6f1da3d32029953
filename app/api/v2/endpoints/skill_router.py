from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_db
from app.crud import catalog_crud
from app.models.catalog.resource_model import LearningType, ResourceLevel, ResourceType
from app.models.catalog.skill_model import AudienceCategory
from app.schemas.catalog import resource_schema, skill_schema
from app.services.catalog_errors import CatalogError

router = APIRouter()


class SkillDetailOut(BaseModel):
    skill: skill_schema.SkillOut
    resources: List[resource_schema.ResourceOut]
    related_skills: List[skill_schema.SkillSummaryOut]


class SkillResourcesOut(BaseModel):
    skill: skill_schema.SkillSummaryOut
    resources: resource_schema.ResourcePage


class TopSkillOut(BaseModel):
    id: int
    name: str
    slug: str
    category: AudienceCategory
    resource_count: int


class SkillStatsOut(BaseModel):
    total: int
    by_category: Dict[str, int]
    top_skills_by_resources: List[TopSkillOut]


@router.get("", response_model=skill_schema.SkillPage)
def list_skills(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[AudienceCategory] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    return catalog_crud.list_skills(
        db, page=page, limit=limit, category=category, search=search, featured=featured
    ).as_dict()


@router.get("/popular", response_model=List[skill_schema.SkillOut])
def list_popular_skills(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return catalog_crud.list_popular_skills(db, limit=limit)


@router.get("/stats/overview", response_model=SkillStatsOut)
def get_skill_stats(category: Optional[AudienceCategory] = None, db: Session = Depends(get_db)):
    return catalog_crud.skill_stats_overview(db, category=category)


@router.get("/{id_or_slug}", response_model=SkillDetailOut)
def get_skill(id_or_slug: str, db: Session = Depends(get_db)):
    try:
        skill = catalog_crud.get_skill(db, id_or_slug)
    except CatalogError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc

    return SkillDetailOut(
        skill=skill_schema.SkillOut.model_validate(skill),
        resources=[
            resource_schema.ResourceOut.model_validate(resource)
            for resource in catalog_crud.get_skill_resources(db, skill.id)
        ],
        related_skills=[
            skill_schema.SkillSummaryOut.model_validate(related)
            for related in catalog_crud.get_related_skills(db, skill)
        ],
    )


@router.get("/{id_or_slug}/resources", response_model=SkillResourcesOut)
def list_skill_resources(
    id_or_slug: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    learning_type: Optional[LearningType] = None,
    level: Optional[ResourceLevel] = None,
    type: Optional[ResourceType] = None,
    is_free: Optional[bool] = None,
    sort: str = "-created_at",
    db: Session = Depends(get_db),
):
    try:
        skill, resources = catalog_crud.list_skill_resources(
            db,
            id_or_slug,
            page=page,
            limit=limit,
            learning_type=learning_type,
            level=level,
            resource_type=type,
            is_free=is_free,
            sort=sort,
        )
    except CatalogError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc

    return SkillResourcesOut(
        skill=skill_schema.SkillSummaryOut.model_validate(skill),
        resources=resource_schema.ResourcePage(
            items=[resource_schema.ResourceOut.model_validate(item) for item in resources.items],
            total=resources.total,
            page=resources.page,
            pages=resources.pages,
            limit=resources.limit,
        ),
    )
