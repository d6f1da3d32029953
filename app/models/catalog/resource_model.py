from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base
from app.models.catalog.skill_model import AudienceCategory

if TYPE_CHECKING:
    from .skill_model import Skill


class ResourceType(str, enum.Enum):
    youtube = "youtube"
    udemy = "udemy"
    coursera = "coursera"
    edx = "edx"
    linkedin_learning = "linkedin-learning"
    pluralsight = "pluralsight"
    skillshare = "skillshare"
    khan_academy = "khan-academy"
    freecodecamp = "freecodecamp"
    codecademy = "codecademy"
    udacity = "udacity"
    medium = "medium"
    blog = "blog"
    documentation = "documentation"
    github = "github"
    podcast = "podcast"
    book = "book"
    article = "article"
    video = "video"
    interactive = "interactive"
    other = "other"


class LearningType(str, enum.Enum):
    free = "free"
    premium = "premium"
    freemium = "freemium"


class ResourceLevel(str, enum.Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"
    expert = "expert"
    all_levels = "all-levels"


class Resource(Base):
    __tablename__ = "resources"
    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_resource_rating_range"),
        CheckConstraint("ratings_count >= 0", name="ck_resource_ratings_count"),
        Index("ix_resources_skill_visibility", "skill_id", "is_active", "verified"),
        Index("ix_resources_type_learning", "type", "learning_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False, index=True)
    type: Mapped[ResourceType] = mapped_column(Enum(ResourceType, name="resource_type"), nullable=False)
    learning_type: Mapped[LearningType] = mapped_column(
        Enum(LearningType, name="learning_type"), nullable=False
    )
    skill_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("skills.id"), nullable=False, index=True
    )
    category: Mapped[AudienceCategory] = mapped_column(
        Enum(AudienceCategory, name="audience_category"), nullable=False, index=True
    )
    level: Mapped[ResourceLevel] = mapped_column(
        Enum(ResourceLevel, name="resource_level"), nullable=False, default=ResourceLevel.beginner
    )
    thumbnail: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    creator: Mapped[str] = mapped_column(String(100), nullable=False, default="Unknown")
    duration: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    duration_in_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    language: Mapped[str] = mapped_column(String(50), nullable=False, default="English")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    verification_error: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    ratings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bookmark_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    price_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    price_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    price_discounted_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    skill: Mapped["Skill"] = relationship(back_populates="owned_resources")

    @property
    def is_visible(self) -> bool:
        """Whether end users may see this resource."""
        return bool(self.is_active and self.verified and self.deleted_at is None)

    @property
    def formatted_price(self) -> str:
        if self.learning_type == LearningType.free:
            return "Free"
        discounted = self.price_discounted_amount
        if discounted is not None and discounted < self.price_amount:
            return f"{self.price_currency} {discounted:g} (was {self.price_amount:g})"
        return f"{self.price_currency} {self.price_amount:g}"

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Resource(id={self.id}, skill_id={self.skill_id}, verified={self.verified})>"
