from pydantic import BaseModel, EmailStr
from typing import Optional

from snapfeed.modules.session.schemas import ViewSnapshot


class Session(BaseModel):
    """Authenticated-user state issued by Supabase Auth. The token is opaque."""
    user_id: str
    email: Optional[str] = None
    access_token: str = ""


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    confirm_password: str


class AuthResponse(BaseModel):
    message: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    state: Optional[ViewSnapshot] = None
