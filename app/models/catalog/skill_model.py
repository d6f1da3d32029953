from __future__ import annotations

import enum
import re
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from .resource_model import Resource


class AudienceCategory(str, enum.Enum):
    children = "children"
    students = "students"
    senior_citizens = "senior_citizens"
    professionals = "professionals"
    all = "all"


class IconType(str, enum.Enum):
    emoji = "emoji"
    lucide = "lucide"
    custom = "custom"


# Membership list owned by the skill. ``Resource.skill_id`` is the owner
# reference; this table only records which resources the skill lists.
skill_resources = Table(
    "skill_resources",
    Base.metadata,
    Column("skill_id", Integer, ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True),
    Column("resource_id", Integer, ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True),
)


_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _SLUG_STRIP.sub("-", name.lower()).strip("-")


class Skill(Base):
    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[AudienceCategory] = mapped_column(
        Enum(AudienceCategory, name="audience_category"), nullable=False, index=True
    )

    icon_type: Mapped[IconType] = mapped_column(
        Enum(IconType, name="skill_icon_type"), nullable=False, default=IconType.lucide
    )
    icon_value: Mapped[str] = mapped_column(String(50), nullable=False, default="BookOpen")
    icon_emoji: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    color_primary: Mapped[str] = mapped_column(String(7), nullable=False, default="#4CAF50")
    color_secondary: Mapped[str] = mapped_column(String(7), nullable=False, default="#E8F5E9")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    levels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Cached projection of the active + verified resources, see
    # ``app.services.catalog_stats_service``.
    total_resources: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    free_resources: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    premium_resources: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_learners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    popularity_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    resources: Mapped[List["Resource"]] = relationship(
        secondary=skill_resources,
        order_by="Resource.id",
    )
    owned_resources: Mapped[List["Resource"]] = relationship(
        back_populates="skill",
        order_by="Resource.id",
    )

    @property
    def statistics(self) -> dict:
        return {
            "total_resources": self.total_resources or 0,
            "free_resources": self.free_resources or 0,
            "premium_resources": self.premium_resources or 0,
            "average_rating": self.average_rating or 0.0,
            "total_learners": self.total_learners or 0,
            "popularity_score": self.popularity_score or 0.0,
        }

    @property
    def display_icon(self) -> str:
        if self.icon_type == IconType.emoji and self.icon_emoji:
            return self.icon_emoji
        return self.icon_value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Skill(id={self.id}, slug='{self.slug}')>"
