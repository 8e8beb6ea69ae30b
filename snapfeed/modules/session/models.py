from enum import Enum


class SessionState(str, Enum):
    PENDING = "pending"
    PRESENT = "present"
    ABSENT = "absent"


class ProfileState(str, Enum):
    PENDING = "pending"
    ABSENT = "absent"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


class View(str, Enum):
    LOGIN = "login"
    LOADING = "loading"
    PROFILE_SETUP = "profile-setup"
    FEED = "feed"
    PROFILE_DETAIL = "profile-detail"


# Views a user with a complete profile can move between
NAVIGABLE_VIEWS = (View.FEED, View.PROFILE_DETAIL)
