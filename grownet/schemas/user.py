from datetime import datetime

from pydantic import BaseModel

from grownet.authorization import Role


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    bio: str | None
    avatar_url: str | None

    model_config = {"from_attributes": True}


class UserRead(BaseModel):
    id: int
    email: str
    name: str
    role: Role
    bio: str | None
    avatar_url: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    email: str | None = None
    name: str | None = None
    role: Role | None = None
    bio: str | None = None
    avatar_url: str | None = None
    is_active: bool | None = None
