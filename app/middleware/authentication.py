from datetime import datetime, timezone
from typing import List

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.config import settings
from app.schemas.users import CurrentUser, normalize_role
from app.services.workspace import Workspace, registry

# Tokens are issued by the identity service; this API only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

async def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> CurrentUser:
    """
    Get the current authenticated user from the provided JWT token.

    Args:
        request: The incoming request; the user is attached to its state
        token: The JWT token

    Returns:
        The authenticated user with school and normalized role

    Raises:
        HTTPException: If token is invalid or lacks the identity claims
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    school_id = payload.get("school_id")
    if user_id is None or school_id is None:
        raise credentials_exception

    token_exp = payload.get("exp")
    if token_exp is None:
        raise credentials_exception

    if datetime.fromtimestamp(token_exp, tz=timezone.utc) < datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = CurrentUser(
            user_id=int(user_id),
            school_id=int(school_id),
            role=normalize_role(payload.get("role") or payload.get("user_type")),
        )
    except (TypeError, ValueError):
        raise credentials_exception

    request.state.user = user
    return user

async def get_workspace(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    token: str = Depends(oauth2_scheme),
) -> Workspace:
    """Dependency returning the caller's editing workspace."""
    workspace = registry.get(user, token)
    request.state.workspace = workspace
    return workspace

class RoleChecker:
    """
    Dependency for checking if a user has the required role(s).
    """
    def __init__(self, allowed_roles: List[str]):
        self.allowed_roles = allowed_roles

    async def __call__(self, user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your role is not allowed to perform this action"
            )
        return user
