# siteauth/schemas/user.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    """Public view of a user. The password hash is never part of it."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    created_at: datetime
    last_login: Optional[datetime] = None
    is_active: bool

    @computed_field(alias="fullName")
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# Shape checks only; field rules live in AuthService so they hold for every caller
class RegisterRequest(CamelModel):
    email: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    confirm_password: Optional[str] = None


class LoginRequest(CamelModel):
    email: str = ""
    password: str = ""


class ProfileUpdateRequest(CamelModel):
    first_name: str = ""
    last_name: str = ""


class UserResponse(CamelModel):
    user: User


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_users: int
    users_per_page: int
    has_next_page: bool
    has_prev_page: bool


class UserListResponse(CamelModel):
    users: list[User]
    pagination: Pagination


class UserStats(CamelModel):
    total_users: int
    registered_today: int
    active_last_month: int
    timestamp: datetime
