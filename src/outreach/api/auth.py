from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from outreach.api.deps import SESSION_USER_KEY, get_db, get_identity
from outreach.api.schemas import LoginRequest, RegisterRequest, UserResponse, UserUpdateRequest
from outreach.core.errors import AuthenticationError, InvalidRequestError, NotFoundError
from outreach.core.identity import Identity, hash_password, verify_password
from outreach.db.models import User
from outreach.db.repositories import Repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        title=user.title,
        gmail_connected=user.gmail_connected,
        llm_api_key_set=bool(user.llm_api_key),
        apollo_api_key_set=bool(user.apollo_api_key),
    )


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(payload: RegisterRequest, request: Request, db: Session = Depends(get_db)) -> UserResponse:
    repo = Repository(db)
    if repo.get_user_by_username(payload.username):
        raise InvalidRequestError("Username already exists")
    if repo.get_user_by_email(payload.email):
        raise InvalidRequestError("Email already exists")

    user = repo.create_user(
        username=payload.username,
        password_hash=hash_password(payload.password),
        email=payload.email,
        name=payload.name,
    )
    request.session[SESSION_USER_KEY] = user.id
    logger.info("Registered user id=%s", user.id)
    return user_response(user)


@router.post("/auth/login", response_model=UserResponse)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)) -> UserResponse:
    user = Repository(db).get_user_by_username(payload.username)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid username or password")

    request.session[SESSION_USER_KEY] = user.id
    return user_response(user)


@router.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"message": "Logged out successfully"}


@router.get("/auth/user", response_model=UserResponse)
def current_user(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> UserResponse:
    user = Repository(db).get_user(identity.user_id)
    if not user:
        raise NotFoundError("User not found")
    return user_response(user)


@router.patch("/user", response_model=UserResponse)
def update_user(
    payload: UserUpdateRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> UserResponse:
    repo = Repository(db)
    updates = payload.model_dump(exclude_unset=True)

    if "email" in updates:
        owner = repo.get_user_by_email(updates["email"])
        if owner is not None and owner.id != identity.user_id:
            raise InvalidRequestError("Email already exists")
    if updates.get("gmail_access_token") and updates.get("gmail_refresh_token"):
        updates["gmail_connected"] = True
    elif "gmail_refresh_token" in updates and not updates["gmail_refresh_token"]:
        updates["gmail_connected"] = False

    user = repo.update_user(identity.user_id, updates)
    if not user:
        raise NotFoundError("User not found")
    logger.info("Updated user id=%s fields=%s", user.id, sorted(updates))
    return user_response(user)
