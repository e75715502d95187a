# siteauth/schemas/token.py
from typing import Literal

from siteauth.schemas.user import CamelModel, User


class AuthResponse(CamelModel):
    token: str
    token_type: Literal["Bearer"] = "Bearer"
    user: User


class MessageResponse(CamelModel):
    message: str
