from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from db import SessionDep
from enums import UserStatus
from models import User
from responses import send_result
from schemas import RefreshTokenRequest, UserCreate
from security import verify_access_token
from services import ServicesDep

router = APIRouter(tags=["users"])


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    session: SessionDep,
    authorization: Optional[str] = Header(default=None),
) -> User:
    """
    Reads the bearer token, verifies it and looks up the user.
    Raises 401 if not logged in / invalid.
    """
    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="User not authenticated")

    data = verify_access_token(token)
    if not data:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = session.get(User, data["user_id"])
    if user is None:
        raise HTTPException(status_code=401, detail="User not found for this token")
    if user.status != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=401, detail="Account is disabled")

    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_optional_user(
    session: SessionDep,
    authorization: Optional[str] = Header(default=None),
) -> Optional[User]:
    """
    Like get_current_user, but returns None instead of raising 401, so
    anonymous callers can still use the route.
    """
    token = _bearer_token(authorization)
    if token is None:
        return None

    data = verify_access_token(token)
    if not data:
        return None

    user = session.get(User, data["user_id"])
    if user is None or user.status != UserStatus.ACTIVE.value:
        return None
    return user


OptionalUserDep = Annotated[Optional[User], Depends(get_optional_user)]


@router.post("/register")
def register(user_in: UserCreate, session: SessionDep, services: ServicesDep):
    """
    Register a new user, or log in if the username already exists.
    Returns the user plus an access and a refresh token either way.
    """
    result = services.users.register_or_login(session, user_in)
    return send_result(result, status_code=201 if result.message == "User registered successfully" else 200)


@router.post("/refresh")
def refresh(payload: RefreshTokenRequest, session: SessionDep, services: ServicesDep):
    """Swap a stored, unexpired refresh token for a new access token."""
    return send_result(services.users.refresh_access_token(session, payload.refresh_token))


@router.post("/logout")
def logout(payload: RefreshTokenRequest, session: SessionDep, services: ServicesDep):
    return send_result(services.users.logout(session, payload.refresh_token))


@router.get("/me")
def read_me(current: CurrentUserDep, session: SessionDep, services: ServicesDep):
    """
    Get info about the currently logged-in user.
    """
    return send_result(services.users.get_user_by_id(session, current.id))
