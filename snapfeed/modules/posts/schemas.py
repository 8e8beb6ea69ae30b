from pydantic import BaseModel
from typing import Optional, List, Literal, Union
from datetime import datetime

MediaType = Literal["image", "video"]


class PostAuthor(BaseModel):
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class Post(BaseModel):
    id: Union[int, str]
    user_id: str
    content: str
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = None
    created_at: Optional[datetime] = None
    profile: Optional[PostAuthor] = None

    class Config:
        from_attributes = True


class PostCreate(BaseModel):
    user_id: str
    content: str
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = None


class FeedResponse(BaseModel):
    posts: List[Post]
    stale: bool = False
