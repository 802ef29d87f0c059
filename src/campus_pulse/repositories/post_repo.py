"""Data access helpers for working with pulse posts."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from campus_pulse.models.post import PulsePost

__all__ = ["PostRepository"]


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, post_id: str, *, refresh: bool = False) -> PulsePost | None:
        """Return a post by identifier.

        With ``refresh`` the row is re-read even if the session already holds it.
        """
        stmt = select(PulsePost).where(PulsePost.id == post_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return self.session.execute(stmt).scalars().first()

    def list_live(
        self,
        *,
        now: datetime,
        limit: int,
        category: str | None = None,
        before: tuple[datetime, str] | None = None,
    ) -> list[PulsePost]:
        """Return live posts newest first, starting strictly after ``before``."""
        stmt = select(PulsePost).where(
            PulsePost.deleted_at.is_(None),
            PulsePost.expires_at > now,
        )
        if category is not None:
            stmt = stmt.where(PulsePost.category == category)
        if before is not None:
            created_at, post_id = before
            stmt = stmt.where(
                or_(
                    PulsePost.created_at < created_at,
                    and_(PulsePost.created_at == created_at, PulsePost.id < post_id),
                )
            )
        stmt = stmt.order_by(PulsePost.created_at.desc(), PulsePost.id.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars())

    def create(
        self,
        *,
        author_id: str,
        content: str,
        category: str,
        is_anonymous: bool,
        created_at: datetime,
        expires_at: datetime,
    ) -> PulsePost:
        """Insert a new post and return the persisted ORM instance."""
        post = PulsePost(
            author_id=author_id,
            content=content,
            category=category,
            is_anonymous=is_anonymous,
            created_at=created_at,
            expires_at=expires_at,
        )
        self.session.add(post)
        self.session.flush()
        return post

    def list_purgeable(
        self,
        *,
        swept_before: datetime,
        deleted_before: datetime,
    ) -> list[PulsePost]:
        """Return posts whose retention window has closed."""
        stmt = select(PulsePost).where(
            or_(
                PulsePost.swept_at < swept_before,
                PulsePost.deleted_at < deleted_before,
            )
        )
        return list(self.session.execute(stmt).scalars())
