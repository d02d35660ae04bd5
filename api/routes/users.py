"""
api/routes/users.py -- Account administration (admin and superadmin only).

Routes:
  GET    /api/users                -- list identities (newest first, no hashes)
  POST   /api/users                -- create a "user" identity
  PUT    /api/users/{id}/role      -- disabled; always 403
  PUT    /api/users/{id}/password  -- set a new password
  DELETE /api/users/{id}           -- delete a "user" identity

Role policy:
  - Admins may create, re-password and delete only "user" identities.
  - A superadmin may additionally re-password admin and superadmin identities.
  - admin/superadmin identities are never deleted through the API.
  - Nobody may delete their own identity.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import MessageResponse, PasswordChange, UserCreate, UserCreatedResponse, UserListResponse, UserResponse
from auth.dependencies import require_admin
from auth.models import ROLE_SUPERADMIN, ROLE_USER, AuthenticatedSession, Identity
from auth.passwords import hash_password
from auth.store import IdentityStore
from core.config import get_settings
from core.errors import BadRequest, Conflict, Forbidden, Internal, NotFound

logger = logging.getLogger("portal.api")

# Auth policy: every route requires admin or superadmin (require_admin).
router = APIRouter()


@router.get("/users", response_model=UserListResponse)
def list_users(
    request: Request,
    session: AuthenticatedSession = Depends(require_admin),
) -> UserListResponse:
    store: IdentityStore = request.app.state.identity_store
    return UserListResponse(users=[UserResponse.from_identity(i) for i in store.list_identities()])


@router.post("/users", response_model=UserCreatedResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    session: AuthenticatedSession = Depends(require_admin),
) -> UserCreatedResponse:
    """Create a "user" identity. Any other requested role is refused with 403."""
    if not body.email or not body.password or not body.email.strip():
        raise BadRequest("Email and password are required")
    if body.role != ROLE_USER:
        raise Forbidden('You can only create users with "user" role')

    store: IdentityStore = request.app.state.identity_store
    if store.find_by_email(body.email) is not None:
        raise Conflict("Email already registered")

    new_identity = Identity(
        email=body.email,
        role=ROLE_USER,
        hashed_password=hash_password(body.password, get_settings().bcrypt_rounds),
    )
    try:
        identity_id = store.create_identity(new_identity)
    except IntegrityError as exc:
        raise Conflict("Email already registered") from exc

    created = store.get_by_id(identity_id)
    if created is None:
        raise Internal("User not found after write.")
    logger.info("Identity id=%s created by id=%s", identity_id, session.claims.subject_id)
    return UserCreatedResponse(user=UserResponse.from_identity(created))


@router.put("/users/{identity_id}/role", response_model=MessageResponse)
def update_role(identity_id: int, session: AuthenticatedSession = Depends(require_admin)) -> MessageResponse:
    raise Forbidden("Role update is disabled. Please contact superadmin for role changes.")


@router.put("/users/{identity_id}/password", response_model=MessageResponse)
def change_password(
    request: Request,
    identity_id: int,
    body: PasswordChange,
    session: AuthenticatedSession = Depends(require_admin),
) -> MessageResponse:
    """Set a new password without requiring the old one."""
    if not body.new_password:
        raise BadRequest("New password is required")

    store: IdentityStore = request.app.state.identity_store
    target = store.get_by_id(identity_id)
    if target is None:
        raise NotFound("User not found")
    if target.role != ROLE_USER and session.claims.role != ROLE_SUPERADMIN:
        raise Forbidden('You can only manage passwords for users with "user" role')

    store.update_password(identity_id, hash_password(body.new_password, get_settings().bcrypt_rounds))
    logger.info("Password changed for identity id=%s by id=%s", identity_id, session.claims.subject_id)
    return MessageResponse(message="Password changed successfully!")


@router.delete("/users/{identity_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    identity_id: int,
    session: AuthenticatedSession = Depends(require_admin),
) -> MessageResponse:
    store: IdentityStore = request.app.state.identity_store
    target = store.get_by_id(identity_id)
    if target is None:
        raise NotFound("User not found")
    if target.role != ROLE_USER:
        raise Forbidden('You can only delete users with "user" role')
    if str(target.id) == session.claims.subject_id:
        raise BadRequest("You cannot delete your own account")

    if not store.delete_identity(identity_id):
        # Deleted by a concurrent request between lookup and delete.
        raise NotFound("User not found")
    logger.info("Identity id=%s deleted by id=%s", identity_id, session.claims.subject_id)
    return MessageResponse(message="User deleted successfully!")
