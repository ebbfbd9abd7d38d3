"""Import all models here for Alembic autogenerate."""

from tunematch.db.base_class import Base
from tunematch.models import decision, suggestion, user  # noqa: F401

__all__ = ["Base"]
