"""User, authentication and branch schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import EmailStr, Field

from aquaflow.core.rbac import UserRole
from aquaflow.models.branch import BranchStatus
from aquaflow.schemas.base import CamelModel


class UserCreate(CamelModel):
    """Registration schema. Public sign-up always yields a customer or fire brigade account."""

    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    salary: float = Field(default=0, ge=0)


class UserUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    salary: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class UserResponse(CamelModel):
    id: int
    email: str
    name: str
    role: UserRole
    phone: Optional[str] = None
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    salary: float
    recycling_points: int
    is_active: bool


class BranchCreate(CamelModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    location: str = Field(min_length=1)
    manager_name: Optional[str] = None
    status: BranchStatus = BranchStatus.ACTIVE
    capacity: int = Field(default=0, ge=0)
    current_stock: int = Field(default=0, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None


class BranchUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[str] = None
    manager_name: Optional[str] = None
    status: Optional[BranchStatus] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    current_stock: Optional[int] = Field(default=None, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None


class BranchResponse(BranchCreate):
    id: int
    email: Optional[str] = None
