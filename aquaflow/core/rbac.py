"""Role-Based Access Control (RBAC) utilities.

Access is an allow-list per route: each route names the roles that may call
it via ``require_roles``. There is no hierarchy between roles.
"""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from aquaflow.core.security import decode_access_token, token_from_request
from aquaflow.db.session import DbSession


class UserRole(str, Enum):
    """User roles for RBAC."""

    ADMIN = "Admin"
    FACTORY_MANAGER = "Factory Manager"
    BRANCH_MANAGER = "Branch Manager"
    DRIVER = "Driver"
    CUSTOMER = "Customer"
    FIRE_BRIGADE = "Fire Brigade"


class TokenData:
    """Decoded token data.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        role: The user's role.
        name: The user's display name.
        branch_id: Branch code the user belongs to, if any.
    """

    def __init__(self, user_id: int, email: str, role: UserRole,
                 name: str = "", branch_id: Optional[str] = None):
        self.user_id = user_id
        self.id = user_id
        self.email = email
        self.role = role
        self.name = name or email.split("@")[0]
        self.branch_id = branch_id

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles


def get_current_user(request: Request, db: DbSession) -> TokenData:
    """Get the current authenticated user from JWT token.

    Checks the ``Authorization: Bearer`` header first, then the
    ``access_token`` cookie. The user must still exist and be active.
    """
    token = token_from_request(request.headers, request.cookies)
    payload = decode_access_token(token) if token else None

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None or payload.get("email") is None or payload.get("role") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    from aquaflow.models.user import User

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or inactive user",
        )

    return TokenData(
        user_id=user.id,
        email=user.email,
        role=user.role,
        name=user.name or "",
        branch_id=user.branch_id,
    )


def require_roles(*roles: UserRole):
    """Dependency factory that only lets the listed roles through."""

    def checker(current_user: Annotated[TokenData, Depends(get_current_user)]) -> TokenData:
        if not current_user.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Insufficient permissions.",
            )
        return current_user

    return checker


# Type aliases for dependency injection
CurrentUser = Annotated[TokenData, Depends(get_current_user)]
RequireAdmin = Annotated[TokenData, Depends(require_roles(UserRole.ADMIN))]
RequireFactoryStaff = Annotated[
    TokenData, Depends(require_roles(UserRole.ADMIN, UserRole.FACTORY_MANAGER))
]
RequireBranchStaff = Annotated[
    TokenData, Depends(require_roles(UserRole.ADMIN, UserRole.BRANCH_MANAGER))
]
RequireManager = Annotated[
    TokenData,
    Depends(require_roles(UserRole.ADMIN, UserRole.FACTORY_MANAGER, UserRole.BRANCH_MANAGER)),
]
