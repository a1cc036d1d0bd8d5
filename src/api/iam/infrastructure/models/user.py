"""SQLAlchemy ORM models for the users and user_roles tables."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from infrastructure.database.models import Base, TimestampMixin, _utc_now


class UserModel(Base, TimestampMixin):
    """ORM model for the users table.

    Roles live in user_roles and are loaded eagerly with the user.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    email_confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    roles: Mapped[list[UserRoleModel]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<UserModel(id={self.id}, email={self.email})>"


class UserRoleModel(Base):
    """ORM model for the user_roles table."""

    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, insert_default=_utc_now
    )

    user: Mapped[UserModel] = relationship(back_populates="roles")

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<UserRoleModel(user_id={self.user_id}, role_name={self.role_name})>"
