"""Database infrastructure - engines, sessions and the unit of work."""

from infrastructure.database.exceptions import DatabaseError, UnitOfWorkError

__all__ = ["DatabaseError", "UnitOfWorkError"]
