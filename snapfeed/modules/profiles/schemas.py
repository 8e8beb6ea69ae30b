import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from snapfeed.config import settings

_USERNAME_STRIP = re.compile(r"[^a-z0-9_]")


def normalize_username(value: str) -> str:
    """Lower-case and drop everything outside [a-z0-9_]."""
    return _USERNAME_STRIP.sub("", (value or "").lower())


class Profile(BaseModel):
    id: str
    username: str
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_setup_complete: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileCreate(BaseModel):
    id: str
    username: str
    avatar_url: str
    is_setup_complete: bool = False


class ProfileSetupRequest(BaseModel):
    username: str
    full_name: Optional[str] = None
    bio: Optional[str] = ""
    avatar_url: Optional[str] = None

    @field_validator("username", mode="before")
    @classmethod
    def _normalize_username(cls, value):
        username = normalize_username(value)
        if len(username) < settings.username_min_length:
            raise ValueError(
                f"Username must be at least {settings.username_min_length} characters"
            )
        return username

    @field_validator("bio")
    @classmethod
    def _check_bio(cls, value):
        if value and len(value) > settings.bio_max_length:
            raise ValueError(f"Bio must be at most {settings.bio_max_length} characters")
        return value

    def to_update(self) -> dict:
        """Fields written to the profile row; unset optional fields are left alone."""
        update_data = {"username": self.username, "bio": self.bio or ""}
        if self.full_name is not None:
            update_data["full_name"] = self.full_name
        if self.avatar_url is not None:
            update_data["avatar_url"] = self.avatar_url
        return update_data


class ProfileStats(BaseModel):
    posts: int = 0


class ProfileResponse(BaseModel):
    profile: Profile
    stats: ProfileStats
