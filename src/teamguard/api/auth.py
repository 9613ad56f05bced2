"""Auth API — registration and the passwordless login flow.

Learn: Routes for user authentication and session lifecycle:
- POST /auth/register → tenant + team + unverified user
- POST /auth/login → email → one-time login link (via the notifier)
- POST /auth/verify → login token → session (cookie + body)
- GET /auth/me → current user info + permissions in own team
- POST /auth/logout → delete the session, clear the cookie
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr, Field

from teamguard.auth.context import Identity
from teamguard.auth.dependencies import (
    get_current_identity,
    get_session_manager,
    get_store,
    session_token_from_request,
)
from teamguard.auth.sessions import SessionManager
from teamguard.config import settings
from teamguard.notify import LogNotifier, Notifier
from teamguard.schemas.directory import PermissionMapRead, UserRead
from teamguard.services.auth_service import AuthService
from teamguard.services.directory_service import DirectoryService
from teamguard.store.base import IdentityStore

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1)
    tenant_name: str = Field(..., min_length=1)
    team_name: str = Field(..., min_length=1)


class RegisterResponse(BaseModel):
    message: str
    user_id: str


class LoginRequest(BaseModel):
    email: EmailStr


class LoginResponse(BaseModel):
    message: str
    # Only populated when TEAMGUARD_EXPOSE_LOGIN_TOKEN is on (development)
    token: Optional[str] = None


class VerifyRequest(BaseModel):
    token: str = Field(..., min_length=1)


class VerifyResponse(BaseModel):
    message: str
    user: UserRead
    permissions: PermissionMapRead
    session_token: str


class MeResponse(BaseModel):
    user: UserRead
    permissions: PermissionMapRead


# ─── Dependencies ────────────────────────────────────────


def get_notifier() -> Notifier:
    return LogNotifier(settings.frontend_url, reveal_links=not settings.is_production)


def _svc(
    store: IdentityStore = Depends(get_store),
    sessions: SessionManager = Depends(get_session_manager),
    notifier: Notifier = Depends(get_notifier),
) -> AuthService:
    return AuthService(store, sessions, notifier)


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.session_ttl_hours * 3600,
        path="/",
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(body: RegisterRequest, store: IdentityStore = Depends(get_store)):
    """Create a new (unverified) account in a new tenant and team."""
    user = await DirectoryService(store).register(
        email=body.email,
        name=body.name,
        tenant_name=body.tenant_name,
        team_name=body.team_name,
    )
    return RegisterResponse(
        message="Registration successful. Awaiting admin verification.",
        user_id=str(user.id),
    )


# ─── Login / verify ──────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Send a one-time login link to a verified user."""
    token = await svc.request_login(body.email)
    return LoginResponse(
        message="Authentication link sent to your email",
        token=token if settings.expose_login_token else None,
    )


@router.post("/verify", response_model=VerifyResponse)
async def verify(body: VerifyRequest, response: Response, svc: AuthService = Depends(_svc)):
    """Redeem a login token (single use) and open a session."""
    result = await svc.verify(body.token)
    _set_session_cookie(response, result.session_token)

    user = await svc.store.get_user(result.identity.user_id)
    return VerifyResponse(
        message="Authentication successful",
        user=UserRead.model_validate(user),
        permissions=PermissionMapRead.from_map(result.permissions),
        session_token=result.session_token,
    )


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(
    identity: Identity = Depends(get_current_identity),
    svc: AuthService = Depends(_svc),
):
    """Current user and their permissions in their own team."""
    user = await svc.store.get_user(identity.user_id)
    permissions = await svc.permissions_for(identity)
    return MeResponse(
        user=UserRead.model_validate(user),
        permissions=PermissionMapRead.from_map(permissions),
    )


# ─── Logout ─────────────────────────────────────────────


@router.post("/logout")
async def logout(
    response: Response,
    token: Optional[str] = Depends(session_token_from_request),
    svc: AuthService = Depends(_svc),
):
    if token:
        await svc.logout(token)
    response.delete_cookie(settings.session_cookie_name, path="/")
    return {"message": "Logged out successfully"}
