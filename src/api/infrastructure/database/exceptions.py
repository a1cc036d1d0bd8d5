"""Database-specific exceptions."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class UnitOfWorkError(DatabaseError):
    """Raised when a unit of work is used outside its context or reused."""

    pass
