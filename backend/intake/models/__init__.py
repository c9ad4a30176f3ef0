"""SQLAlchemy ORM models.

Only the user record is persisted by this service; onboarding sessions
live in memory for the lifetime of the wizard.
"""

from intake.models.base import Base
from intake.models.user import User

__all__ = ["Base", "User"]
