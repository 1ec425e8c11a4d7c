from typing import Literal

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    name: str
    password: str
    role: Literal["mentor", "mentee"] = "mentee"


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
