from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_db, get_url_verifier, require_admin
from app.core import security
from app.models.catalog.resource_model import LearningType, ResourceLevel, ResourceType
from app.models.catalog.skill_model import AudienceCategory
from app.schemas.catalog import admin_schema, resource_schema, skill_schema
from app.services.catalog_admin_service import CatalogAdminService
from app.services.catalog_errors import CatalogError
from app.services.url_verifier import UrlVerifier

logger = logging.getLogger(__name__)

router = APIRouter()


def _service(db: Session, verifier: UrlVerifier) -> CatalogAdminService:
    return CatalogAdminService(db=db, verifier=verifier)


def _http_error(exc: CatalogError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.code)


@router.post("/login", response_model=admin_schema.TokenOut)
def admin_login(payload: admin_schema.AdminLoginIn):
    if not security.authenticate_admin(payload.username, payload.password):
        logger.warning("Failed admin login for %s", payload.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_credentials")
    return admin_schema.TokenOut(access_token=security.create_access_token(payload.username))


# --- Skills -----------------------------------------------------------------


@router.get("/skills", response_model=skill_schema.SkillPage)
def list_skills(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[AudienceCategory] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    result = _service(db, verifier).list_skills(
        page=page,
        limit=limit,
        category=category,
        is_active=is_active,
        search=search,
        sort_by=sort_by,
        order=order,
    )
    return result.as_dict()


@router.get("/skills/{skill_id}", response_model=skill_schema.SkillOut)
def get_skill(
    skill_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        return _service(db, verifier).get_skill(skill_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc


@router.post("/skills", response_model=skill_schema.SkillOut, status_code=status.HTTP_201_CREATED)
def create_skill(
    payload: skill_schema.SkillCreate,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        return _service(db, verifier).create_skill(payload)
    except CatalogError as exc:
        raise _http_error(exc) from exc


@router.put("/skills/{skill_id}", response_model=skill_schema.SkillOut)
def update_skill(
    skill_id: int,
    payload: skill_schema.SkillUpdate,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        return _service(db, verifier).update_skill(skill_id, payload)
    except CatalogError as exc:
        raise _http_error(exc) from exc


@router.patch("/skills/{skill_id}/toggle-active", response_model=admin_schema.ToggleActiveOut)
def toggle_skill_active(
    skill_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        skill = _service(db, verifier).toggle_skill_active(skill_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return admin_schema.ToggleActiveOut(id=skill.id, is_active=skill.is_active)


@router.delete("/skills/{skill_id}", response_model=admin_schema.SkillDeleteOut)
def delete_skill(
    skill_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        skill = _service(db, verifier).delete_skill(skill_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return admin_schema.SkillDeleteOut(skill_id=skill.id)


@router.post("/skills/{skill_id}/restore", response_model=skill_schema.SkillOut)
def restore_skill(
    skill_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        return _service(db, verifier).restore_skill(skill_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc


@router.post("/skills/{skill_id}/refresh-statistics", response_model=skill_schema.SkillStatisticsOut)
def refresh_skill_statistics(
    skill_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        stats = _service(db, verifier).refresh_skill_statistics(skill_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return stats.as_dict()


# --- Resources --------------------------------------------------------------


@router.get("/resources", response_model=resource_schema.ResourcePage)
def list_resources(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    skill_id: Optional[int] = None,
    type: Optional[ResourceType] = None,
    learning_type: Optional[LearningType] = None,
    category: Optional[AudienceCategory] = None,
    level: Optional[ResourceLevel] = None,
    verified: Optional[bool] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    result = _service(db, verifier).list_resources(
        page=page,
        limit=limit,
        skill_id=skill_id,
        resource_type=type,
        learning_type=learning_type,
        category=category,
        level=level,
        verified=verified,
        is_active=is_active,
        search=search,
        sort_by=sort_by,
        order=order,
    )
    return result.as_dict()


# Declared before ``/resources/{resource_id}`` so the literal paths win.
@router.post("/resources/bulk-verify", response_model=admin_schema.BulkVerifyOut)
async def bulk_verify_resources(
    payload: admin_schema.BulkResourceIdsIn,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    items = await _service(db, verifier).bulk_verify(payload.resource_ids)
    verified_count = sum(1 for item in items if item.decision.verified)
    return admin_schema.BulkVerifyOut(
        verified_count=verified_count,
        unverified_count=len(items) - verified_count,
        results=[
            admin_schema.BulkVerifyItemOut(
                resource_id=item.resource_id,
                verified=item.decision.verified,
                source=item.decision.source,
                error=item.decision.error,
            )
            for item in items
        ],
    )


@router.post("/resources/bulk-delete", response_model=admin_schema.BulkDeleteOut)
def bulk_delete_resources(
    payload: admin_schema.BulkResourceIdsIn,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    modified, refreshed = _service(db, verifier).bulk_delete(payload.resource_ids)
    return admin_schema.BulkDeleteOut(modified_count=modified, refreshed_skill_ids=refreshed)


@router.get("/resources/{resource_id}", response_model=resource_schema.ResourceOut)
def get_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        return _service(db, verifier).get_resource(resource_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/resources",
    response_model=resource_schema.ResourceMutationOut,
    status_code=status.HTTP_201_CREATED,
)
def create_resource(
    payload: resource_schema.ResourceCreate,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        mutation = _service(db, verifier).create_resource(payload)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return resource_schema.ResourceMutationOut(
        resource=resource_schema.ResourceOut.model_validate(mutation.resource),
        verification_warning=mutation.verification_warning,
    )


@router.put("/resources/{resource_id}", response_model=resource_schema.ResourceMutationOut)
def update_resource(
    resource_id: int,
    payload: resource_schema.ResourceUpdate,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        mutation = _service(db, verifier).update_resource(resource_id, payload)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return resource_schema.ResourceMutationOut(
        resource=resource_schema.ResourceOut.model_validate(mutation.resource),
        verification_warning=mutation.verification_warning,
    )


@router.post("/resources/{resource_id}/verify", response_model=resource_schema.VerificationOut)
def verify_resource(
    resource_id: int,
    response: Response,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        resource, decision = _service(db, verifier).verify_resource(resource_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    if not decision.verified:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return resource_schema.VerificationOut(
        resource=resource_schema.ResourceOut.model_validate(resource),
        verified=decision.verified,
        source=decision.source,
        error=decision.error,
        status_code=decision.status_code,
    )


@router.patch("/resources/{resource_id}/toggle-active", response_model=admin_schema.ToggleActiveOut)
def toggle_resource_active(
    resource_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        resource = _service(db, verifier).toggle_resource_active(resource_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc
    return admin_schema.ToggleActiveOut(id=resource.id, is_active=resource.is_active)


@router.delete("/resources/{resource_id}", response_model=resource_schema.ResourceOut)
def delete_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        return _service(db, verifier).delete_resource(resource_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc


@router.post("/resources/{resource_id}/restore", response_model=resource_schema.ResourceOut)
def restore_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    try:
        return _service(db, verifier).restore_resource(resource_id)
    except CatalogError as exc:
        raise _http_error(exc) from exc


# --- Dashboard --------------------------------------------------------------


@router.get("/dashboard/stats", response_model=admin_schema.DashboardStatsOut)
def dashboard_stats(
    db: Session = Depends(get_db),
    verifier: UrlVerifier = Depends(get_url_verifier),
    _admin: str = Depends(require_admin),
):
    return _service(db, verifier).dashboard_stats()
