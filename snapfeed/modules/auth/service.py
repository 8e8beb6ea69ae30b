import logging

from snapfeed.backend.base import BackendClient
from snapfeed.core.errors import AuthError, SnapfeedError
from snapfeed.modules.auth.schemas import LoginRequest, RegisterRequest, AuthResponse
from snapfeed.modules.session.orchestrator import SessionOrchestrator
from snapfeed.modules.session.schemas import Message

logger = logging.getLogger(__name__)


class AuthService:
    """Sign-in / sign-up through Supabase Auth.

    Successful calls change the session on the client's backend, which fires
    the orchestrator's auth listener; the view follows from there.
    """

    def __init__(self, backend: BackendClient, orchestrator: SessionOrchestrator):
        self.backend = backend
        self.orchestrator = orchestrator

    async def register(self, register_data: RegisterRequest) -> AuthResponse:
        if register_data.password != register_data.confirm_password:
            self._fail(AuthError("Passwords do not match!", status_code=400))

        try:
            session = await self.backend.sign_up(register_data.email, register_data.password)
        except SnapfeedError as e:
            logger.info(f"Registration failed for {register_data.email}: {e}")
            self._fail(e)

        if session is None:
            text = "Account created! Check your email for the confirmation link."
        else:
            text = "Account created successfully!"
        self.orchestrator.message = Message(type="info", text=text)
        return AuthResponse(
            message=text,
            user_id=session.user_id if session else None,
            email=register_data.email,
        )

    async def login(self, login_data: LoginRequest) -> AuthResponse:
        try:
            session = await self.backend.sign_in_with_password(login_data.email, login_data.password)
        except SnapfeedError as e:
            logger.info(f"Login failed for {login_data.email}: {e}")
            self._fail(e)

        return AuthResponse(
            message="Signed in",
            user_id=session.user_id,
            email=session.email or login_data.email,
        )

    async def logout(self) -> AuthResponse:
        await self.orchestrator.sign_out()
        return AuthResponse(message="Logged out successfully")

    def _fail(self, error: SnapfeedError):
        self.orchestrator.message = Message(type="error", text=error.message)
        raise error
