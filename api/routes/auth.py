"""
api/routes/auth.py -- Session endpoints.

Routes:
  POST /api/login     -- password login (admin/superadmin only); returns a bearer token
  POST /api/logout    -- revoke the presented token
  GET  /api/me        -- identity carried by the current token
  POST /api/register  -- self-registration of a "user" account

Security:
  Login throttling is per identity (auth/lockout.py), not per IP.
  Unknown email and wrong password return the same 401 body.
  Cache-Control: no-store on login responses.
  Registration is IP rate-limited through slowapi (REGISTER_RATE_LIMIT).

Handlers that hash passwords or hit the database are plain `def` so FastAPI
runs them in its threadpool instead of on the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    SessionUser,
    UserSummary,
    is_strong_password,
    is_valid_email,
)
from auth.dependencies import get_current_session
from auth.login import LoginFlow
from auth.models import ROLE_USER, AuthenticatedSession, Identity
from auth.passwords import hash_password
from auth.revocation import RevocationLedger
from auth.store import IdentityStore
from core.config import get_settings
from core.errors import BadRequest, Conflict

logger = logging.getLogger("portal.api")

# Auth policy:
# - POST /api/login:    public -- throttled per identity by LockoutTracker
# - POST /api/register: public -- IP rate-limited
# - POST /api/logout:   requires a valid session (any role)
# - GET  /api/me:       requires a valid session (any role)
router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a 24h bearer token.

    All rejection paths raise core.errors exceptions from LoginFlow; the app's
    exception handler renders them (400/401/403/429).
    """
    flow: LoginFlow = request.app.state.login_flow
    result = flow.login(body.email, body.password)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=result.token.value,
            user=UserSummary(email=result.identity.email, id=result.identity.id, role=result.identity.role),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    session: AuthenticatedSession = Depends(get_current_session),
) -> MessageResponse:
    """Revoke the presented token until its own expiry.

    The gate already rejected revoked tokens, so a Conflict here means a
    concurrent logout of the same token won the insert.
    """
    ledger: RevocationLedger = request.app.state.revocation_ledger
    try:
        ledger.revoke(session.token, session.claims.expires_at)
    except Conflict:
        logger.info("Token for identity id=%s was already revoked", session.claims.subject_id)
    else:
        logger.info("Token revoked for identity id=%s", session.claims.subject_id)
    return MessageResponse(message="Logout successful")


@router.get("/me", response_model=MeResponse)
def me(session: AuthenticatedSession = Depends(get_current_session)) -> MeResponse:
    claims = session.claims
    return MeResponse(
        user=SessionUser(id=claims.subject_id, email=claims.email, role=claims.role),
        expires_at=claims.expires_at,
    )


@router.post("/register", response_model=MessageResponse, status_code=201)
@limiter.limit(lambda: get_settings().register_rate_limit)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Create a "user" account. Such accounts cannot log in to the admin panel."""
    if not body.email or not body.password:
        raise BadRequest("Email and password are required")
    email = body.email.strip()
    if not is_valid_email(email):
        raise BadRequest("Invalid email format")
    if not is_strong_password(body.password):
        raise BadRequest(
            "Password must be at least 8 characters long and contain at least one "
            "uppercase letter, one lowercase letter, and one number"
        )

    store: IdentityStore = request.app.state.identity_store
    if store.find_by_email(email) is not None:
        raise Conflict("Email already registered")

    identity = Identity(
        email=email,
        role=ROLE_USER,
        hashed_password=hash_password(body.password, get_settings().bcrypt_rounds),
    )
    try:
        store.create_identity(identity)
    except IntegrityError as exc:
        raise Conflict("Email already registered") from exc
    return MessageResponse(message="Registration successful! You can now login.")
