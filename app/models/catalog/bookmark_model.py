from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from .resource_model import Resource


class Bookmark(Base):
    """A resource saved by a learner.

    ``user_id`` is the subject of the learner's access token; accounts
    themselves live with the identity provider.
    """

    __tablename__ = "bookmarks"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_id", name="_user_resource_bookmark_uc"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_bookmark_progress_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    resource_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    resource: Mapped["Resource"] = relationship()

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Bookmark(user_id={self.user_id!r}, resource_id={self.resource_id})>"
