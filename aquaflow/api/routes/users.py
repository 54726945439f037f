"""User accounts, authentication and employee lookups."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireAdmin, RequireManager, UserRole
from aquaflow.core.responses import envelope
from aquaflow.core.security import get_password_hash, token_for_user, verify_password
from aquaflow.db.session import DbSession
from aquaflow.models.user import User
from aquaflow.schemas.user import LoginRequest, UserCreate, UserResponse, UserUpdate
from aquaflow.services.audit_service import log_login

logger = logging.getLogger("auth")

router = APIRouter()
employees_router = APIRouter()

SELF_SERVICE_ROLES = (UserRole.CUSTOMER, UserRole.FIRE_BRIGADE)


def _get_user(db, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _create_user(db, data: UserCreate) -> User:
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User with this email already exists")
    user = User(
        email=data.email,
        password_hash=get_password_hash(data.password),
        name=data.name,
        phone=data.phone,
        role=data.role,
        branch_id=data.branch_id,
        branch_name=data.branch_name,
        salary=data.salary,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, data: UserCreate, db: DbSession):
    """Self-service sign-up for customers and fire brigades."""
    if data.role not in SELF_SERVICE_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff accounts can only be created by an administrator",
        )
    user = _create_user(db, data)
    logger.info(f"Registered {user.role.value} account {user.email} (ID: {user.id})")
    token = token_for_user(user)
    return envelope("User registered successfully", user=UserResponse.model_validate(user), token=token)


@router.post("/login")
@limiter.limit("5/minute")
def login(request: Request, login_request: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    user = db.query(User).filter(User.email == login_request.email).first()

    if not user or not verify_password(login_request.password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {login_request.email} from IP: {client_ip}")
        log_login(user_id=None, email=login_request.email, ip_address=client_ip, success=False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {login_request.email} (ID: {user.id})")
        log_login(user_id=user.id, email=login_request.email, ip_address=client_ip, success=False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User account is inactive")

    logger.info(f"Successful login: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    log_login(user_id=user.id, email=user.email, ip_address=client_ip, success=True)
    token = token_for_user(user)
    return envelope("Login successful", token=token, user=UserResponse.model_validate(user))


@router.get("/me")
@limiter.limit("60/minute")
def get_me(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(user=UserResponse.model_validate(_get_user(db, current_user.user_id)))


@router.get("")
@limiter.limit("60/minute")
def list_users(
    request: Request,
    db: DbSession,
    current_user: RequireAdmin,
    role: Optional[UserRole] = Query(None),
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if branch_id:
        query = query.filter(User.branch_id == branch_id)
    users = query.order_by(User.name).all()
    return envelope(users=[UserResponse.model_validate(u) for u in users], count=len(users))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_user(request: Request, data: UserCreate, db: DbSession, current_user: RequireAdmin):
    """Create any kind of account, staff included."""
    user = _create_user(db, data)
    logger.info(f"Admin {current_user.email} created {user.role.value} account {user.email}")
    return envelope("User created successfully", user=UserResponse.model_validate(user))


@router.get("/{user_id}/recycling-points")
@limiter.limit("60/minute")
def get_recycling_points(request: Request, user_id: int, db: DbSession, current_user: CurrentUser):
    if current_user.user_id != user_id and current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied. Insufficient permissions.")
    user = _get_user(db, user_id)
    return envelope(userId=user.id, recyclingPoints=user.recycling_points)


@router.get("/{user_id}")
@limiter.limit("60/minute")
def get_user(request: Request, user_id: int, db: DbSession, current_user: RequireAdmin):
    return envelope(user=UserResponse.model_validate(_get_user(db, user_id)))


@router.put("/{user_id}")
@limiter.limit("30/minute")
def update_user(request: Request, user_id: int, data: UserUpdate, db: DbSession, current_user: RequireAdmin):
    user = _get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    if password:
        user.password_hash = get_password_hash(password)
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return envelope("User updated successfully", user=UserResponse.model_validate(user))


@router.delete("/{user_id}")
@limiter.limit("30/minute")
def delete_user(request: Request, user_id: int, db: DbSession, current_user: RequireAdmin):
    user = _get_user(db, user_id)
    if user.id == current_user.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    db.delete(user)
    db.commit()
    logger.info(f"Admin {current_user.email} deleted user {user.email}")
    return envelope("User deleted successfully")


@employees_router.get("/drivers/branch/{branch_id}")
@limiter.limit("60/minute")
def get_branch_driver_employees(request: Request, branch_id: str, db: DbSession, current_user: RequireManager):
    """Active driver accounts belonging to one branch."""
    drivers = (
        db.query(User)
        .filter(User.role == UserRole.DRIVER, User.branch_id == branch_id, User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )
    return envelope(drivers=[UserResponse.model_validate(d) for d in drivers], count=len(drivers))
