import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_db, require_user
from app.crud import catalog_crud
from app.models.catalog.bookmark_model import Bookmark
from app.schemas.catalog import bookmark_schema, resource_schema
from app.services.catalog_errors import CatalogError

logger = logging.getLogger(__name__)

router = APIRouter()


def _bookmark_out(bookmark: Bookmark) -> bookmark_schema.BookmarkOut:
    return bookmark_schema.BookmarkOut(
        resource=resource_schema.ResourceOut.model_validate(bookmark.resource),
        bookmarked_at=bookmark.created_at,
        notes=bookmark.notes,
        progress=bookmark.progress,
    )


@router.get("", response_model=List[bookmark_schema.BookmarkOut])
def list_bookmarks(db: Session = Depends(get_db), user_id: str = Depends(require_user)):
    return [_bookmark_out(bookmark) for bookmark in catalog_crud.list_bookmarks(db, user_id)]


@router.post("/{resource_id}", response_model=bookmark_schema.BookmarkOut, status_code=status.HTTP_201_CREATED)
def add_bookmark(
    resource_id: int,
    payload: Optional[bookmark_schema.BookmarkIn] = Body(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    payload = payload or bookmark_schema.BookmarkIn()
    try:
        bookmark, created = catalog_crud.add_bookmark(
            db, user_id, resource_id, notes=payload.notes, progress=payload.progress
        )
    except CatalogError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc
    if created:
        logger.info("User %s bookmarked resource %s", user_id, resource_id)
    return _bookmark_out(bookmark)


@router.delete("/{resource_id}", response_model=bookmark_schema.BookmarkStatusOut)
def remove_bookmark(resource_id: int, db: Session = Depends(get_db), user_id: str = Depends(require_user)):
    catalog_crud.remove_bookmark(db, user_id, resource_id)
    return bookmark_schema.BookmarkStatusOut(resource_id=resource_id, bookmarked=False)
