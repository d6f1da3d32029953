from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_db
from app.core.resource_types import list_resource_types
from app.crud import catalog_crud
from app.models.catalog.resource_model import LearningType, ResourceLevel, ResourceType
from app.models.catalog.skill_model import AudienceCategory
from app.schemas.catalog import resource_schema
from app.services.catalog_errors import CatalogError

router = APIRouter()


class ResourceDetailOut(BaseModel):
    resource: resource_schema.ResourceOut
    related_resources: List[resource_schema.ResourceOut]


class ViewCountOut(BaseModel):
    id: int
    view_count: int


class RatingOut(BaseModel):
    id: int
    rating: float
    ratings_count: int


class ResourceStatsOut(BaseModel):
    total: int
    by_type: Dict[str, int]
    by_category: Dict[str, int]
    by_learning_type: Dict[str, int]


@router.get("", response_model=resource_schema.ResourcePage)
def list_resources(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[AudienceCategory] = None,
    learning_type: Optional[LearningType] = None,
    type: Optional[ResourceType] = None,
    level: Optional[ResourceLevel] = None,
    skill_id: Optional[int] = None,
    search: Optional[str] = None,
    sort: str = "-created_at",
    db: Session = Depends(get_db),
):
    return catalog_crud.list_resources(
        db,
        page=page,
        limit=limit,
        category=category,
        learning_type=learning_type,
        resource_type=type,
        level=level,
        skill_id=skill_id,
        search=search,
        sort=sort,
    ).as_dict()


@router.get("/types", response_model=List[resource_schema.ResourceTypeOut])
def get_resource_types():
    return list_resource_types()


@router.get("/popular", response_model=List[resource_schema.ResourceOut])
def list_popular_resources(
    limit: int = Query(10, ge=1, le=50),
    category: Optional[AudienceCategory] = None,
    timeframe: Literal["all", "week", "month", "year"] = "all",
    db: Session = Depends(get_db),
):
    return catalog_crud.list_popular_resources(db, limit=limit, category=category, timeframe=timeframe)


@router.get("/stats/overview", response_model=ResourceStatsOut)
def get_resource_stats(category: Optional[AudienceCategory] = None, db: Session = Depends(get_db)):
    return catalog_crud.resource_stats_overview(db, category=category)


@router.get("/{resource_id}", response_model=ResourceDetailOut)
def get_resource(resource_id: int, db: Session = Depends(get_db)):
    try:
        resource = catalog_crud.get_resource(db, resource_id)
    except CatalogError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc

    return ResourceDetailOut(
        resource=resource_schema.ResourceOut.model_validate(resource),
        related_resources=[
            resource_schema.ResourceOut.model_validate(related)
            for related in catalog_crud.get_related_resources(db, resource)
        ],
    )


@router.post("/{resource_id}/view", response_model=ViewCountOut)
def record_view(resource_id: int, db: Session = Depends(get_db)):
    try:
        resource = catalog_crud.record_view(db, resource_id)
    except CatalogError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc
    return ViewCountOut(id=resource.id, view_count=resource.view_count)


@router.post("/{resource_id}/rate", response_model=RatingOut)
def rate_resource(
    resource_id: int,
    payload: resource_schema.RatingIn,
    db: Session = Depends(get_db),
):
    try:
        resource = catalog_crud.apply_rating(db, resource_id, payload.rating)
    except CatalogError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc
    return RatingOut(id=resource.id, rating=resource.rating, ratings_count=resource.ratings_count)
