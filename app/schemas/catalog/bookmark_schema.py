from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.catalog.resource_schema import ResourceOut


class BookmarkIn(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=500)
    progress: int = Field(default=0, ge=0, le=100)

    @field_validator("notes")
    @classmethod
    def _strip_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class BookmarkOut(BaseModel):
    resource: ResourceOut
    bookmarked_at: Optional[datetime] = None
    notes: Optional[str] = None
    progress: int = 0


class BookmarkStatusOut(BaseModel):
    resource_id: int
    bookmarked: bool
