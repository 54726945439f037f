"""User model."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from aquaflow.core.rbac import UserRole
from aquaflow.db.base import Base, TimestampMixin, enum_type


class User(Base, TimestampMixin):
    """User account for authentication and RBAC.

    Drivers, branch managers and fire brigades are all users; role-specific
    columns are simply left empty for the other roles.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        enum_type(UserRole),
        default=UserRole.CUSTOMER,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    branch_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    branch_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    salary: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    recycling_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
