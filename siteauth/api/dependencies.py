# siteauth/api/dependencies.py
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from siteauth.core.config import Settings
from siteauth.core.exceptions import InvalidTokenException
from siteauth.crud.crud_session import CRUDSession
from siteauth.crud.crud_user import CRUDUser
from siteauth.db.session import get_db
from siteauth.models.user import User as UserModel
from siteauth.services.auth_service import AuthService, TokenIdentity

# auto_error=False so a missing header is a 401 with our body, not a 403
bearer_scheme = HTTPBearer(auto_error=False, description="JWT issued by /auth/login or /auth/register")


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_user_crud(
    db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings_dep)
) -> CRUDUser:
    return CRUDUser(db, settings)


def get_auth_service(
    db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings_dep)
) -> AuthService:
    return AuthService(CRUDUser(db, settings), CRUDSession(db, settings), settings)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Access token required")
    return credentials.credentials


async def get_current_identity(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenIdentity:
    try:
        return await auth_service.verify(token)
    except InvalidTokenException as e:
        # expired, tampered and revoked all look the same to the client
        raise _unauthorized(e.message)


async def get_current_user(
    identity: TokenIdentity = Depends(get_current_identity),
    users: CRUDUser = Depends(get_user_crud),
) -> UserModel:
    user = await users.get(id=identity.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
