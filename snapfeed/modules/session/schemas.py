from pydantic import BaseModel
from typing import Optional, Literal

from snapfeed.modules.profiles.schemas import Profile
from snapfeed.modules.session.models import SessionState, ProfileState, View


class Message(BaseModel):
    type: Literal["error", "info"]
    text: str


class ViewSnapshot(BaseModel):
    view: View
    session: SessionState
    profile_state: ProfileState
    user_id: Optional[str] = None
    email: Optional[str] = None
    profile: Optional[Profile] = None
    message: Optional[Message] = None


class ClientSessionResponse(BaseModel):
    client_id: str
    state: ViewSnapshot


class NavigateRequest(BaseModel):
    view: View
