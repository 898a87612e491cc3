"""Re-export Base and provide common mixins for ORM models."""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

__all__ = ["Base", "TimestampMixin"]


class TimestampMixin:
    """Adds server-defaulted ``created_at`` / ``updated_at`` columns.

    ``updated_at`` is refreshed on every ORM UPDATE via ``onupdate``; bulk
    ``update()`` statements must set it explicitly.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
