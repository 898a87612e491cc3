"""SQLAlchemy 2.0 ORM models for the WikiGaiaLab workflow service.

Import all models here so Alembic's ``env.py`` can discover them via::

    from app.models.db import Base  # noqa: F401

Every model must be imported at module level to register with the
``DeclarativeBase`` metadata.
"""

from app.models.db.base import Base, TimestampMixin  # noqa: F401

from app.models.db.user import Category, User  # noqa: F401
from app.models.db.problem import Problem  # noqa: F401
from app.models.db.workflow_log import WorkflowLog  # noqa: F401
from app.models.db.development_queue import DevelopmentQueueItem  # noqa: F401
from app.models.db.notification import (  # noqa: F401
    Notification,
    NotificationPreference,
)
