# siteauth/api/endpoints/auth.py
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from siteauth.api.dependencies import get_auth_service, get_bearer_token
from siteauth.core.rate_limit import auth_rate_limit, limiter
from siteauth.schemas.token import AuthResponse, MessageResponse
from siteauth.schemas.user import LoginRequest, RegisterRequest, User as UserSchema
from siteauth.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid email, weak password or missing names"},
        409: {"description": "Email already registered"},
        429: {"description": "Too many authentication attempts from this address"},
    },
)
@limiter.limit(auth_rate_limit)
async def register(
    request: Request,
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> Any:
    """
    Creates an account and signs the new user in straight away.
    """
    token, user = await auth_service.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        confirm_password=body.confirm_password,
    )
    return AuthResponse(token=token, user=UserSchema.model_validate(user))


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        400: {"description": "Email or password missing"},
        401: {"description": "Invalid email or password"},
        423: {"description": "Account locked after too many failed attempts"},
        429: {"description": "Too many authentication attempts from this address"},
    },
)
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> Any:
    """
    Exchanges email and password for a bearer token.

    Unknown emails and wrong passwords get the same 401. After
    LOGIN_MAX_FAILED_ATTEMPTS consecutive failures the account answers 423
    until the lockout window has passed, even for the correct password.
    """
    token, user = await auth_service.login(email=body.email, password=body.password)
    return AuthResponse(token=token, user=UserSchema.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> Any:
    """Revokes the presented token; later requests carrying it get 401."""
    await auth_service.logout(token)
    return MessageResponse(message="Logged out")
