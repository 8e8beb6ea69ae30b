"""
Session/view orchestration for a single client session.

The view a client renders is derived from two external signals: whether
Supabase Auth reports a session, and whether that user's profile has
completed setup.

    session absent                      -> login
    session present, profile unknown    -> loading (lookup / creation in flight)
    session present, profile incomplete -> profile-setup
    session present, profile complete   -> feed or profile-detail

Auth events and realtime notifications arrive asynchronously. Every auth
event bumps a sequence number and every change of signed-in identity bumps a
generation; work started under an older generation is cancelled or its
result discarded, so the most recent event always decides the view.
"""

import asyncio
import logging
from typing import Awaitable, List, Optional, Set

from snapfeed.backend.base import BackendClient, Subscription
from snapfeed.config import settings
from snapfeed.core.errors import (
    BackendError,
    ProfileLookupFailure,
    UsernameTaken,
    ViewTransitionError,
)
from snapfeed.modules.auth.schemas import Session
from snapfeed.modules.posts.schemas import Post
from snapfeed.modules.posts.service import fetch_feed
from snapfeed.modules.profiles.schemas import Profile, ProfileSetupRequest
from snapfeed.modules.profiles.service import default_profile
from snapfeed.modules.session.models import NAVIGABLE_VIEWS, ProfileState, SessionState, View
from snapfeed.modules.session.schemas import Message, ViewSnapshot

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    def __init__(
        self,
        backend: BackendClient,
        retry_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
    ):
        self.backend = backend
        if retry_attempts is None:
            retry_attempts = settings.profile_retry_attempts
        if retry_backoff_seconds is None:
            retry_backoff_seconds = settings.profile_retry_backoff_seconds
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds

        self.session: Optional[Session] = None
        self.session_state = SessionState.PENDING
        self.profile: Optional[Profile] = None
        self.profile_state = ProfileState.PENDING
        self.message: Optional[Message] = None
        self.posts: List[Post] = []
        self.feed_stale = True

        self._selected_view = View.FEED
        self._sequence = 0
        self._generation = 0
        self._auth_subscription: Optional[Subscription] = None
        self._feed_subscription: Optional[Subscription] = None
        self._bootstrap_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._profile_lock = asyncio.Lock()
        self._closed = False

    @property
    def active_view(self) -> View:
        if self.session_state is SessionState.ABSENT:
            return View.LOGIN
        if self.session_state is SessionState.PENDING:
            return View.LOADING
        if self.profile_state is ProfileState.INCOMPLETE:
            return View.PROFILE_SETUP
        if self.profile_state is ProfileState.COMPLETE:
            return self._selected_view
        return View.LOADING

    def snapshot(self) -> ViewSnapshot:
        return ViewSnapshot(
            view=self.active_view,
            session=self.session_state,
            profile_state=self.profile_state,
            user_id=self.session.user_id if self.session else None,
            email=self.session.email if self.session else None,
            profile=self.profile,
            message=self.message,
        )

    # Lifecycle

    async def start(self) -> None:
        """Register the auth listener, then resolve the current session once."""
        self._auth_subscription = self.backend.on_session_change(self.on_session_changed)
        sequence = self._sequence
        try:
            session = await self.backend.get_current_session()
        except BackendError as e:
            logger.error(f"Initial session fetch failed: {e}")
            if sequence == self._sequence:
                self.on_session_changed(None)
                self.message = Message(type="error", text=e.message)
            return

        if sequence != self._sequence:
            # An auth event landed while we were waiting; it is newer than this result
            logger.debug("Discarding initial session fetch superseded by auth event")
            return
        self.on_session_changed(session)

    async def close(self) -> None:
        """Release listeners and cancel in-flight work."""
        if self._closed:
            return
        self._closed = True

        if self._auth_subscription is not None:
            try:
                await self._auth_subscription.close()
            except Exception as e:
                logger.warning(f"Error removing auth listener: {e}")
            self._auth_subscription = None
        await self._close_feed_subscription()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.backend.aclose()

    async def settle(self, timeout: Optional[float] = None) -> None:
        """Wait (bounded) until no transition is in flight."""
        if timeout is None:
            timeout = settings.view_settle_timeout_seconds
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.debug(f"{len(pending)} task(s) still running after settle timeout")
                return
            await asyncio.wait(pending, timeout=remaining)

    # Auth events

    def on_session_changed(self, session: Optional[Session]) -> None:
        """Auth listener callback. The most recent event always wins."""
        if self._closed:
            return
        self._sequence += 1

        if session is None:
            if self.session_state is not SessionState.ABSENT:
                logger.info("Session ended")
            self._generation += 1
            self._cancel_bootstrap()
            self.session = None
            self.session_state = SessionState.ABSENT
            self._reset_profile()
            return

        same_user = self.session is not None and self.session.user_id == session.user_id
        self.session = session
        self.session_state = SessionState.PRESENT
        if same_user and (self.profile is not None or self._bootstrap_running()):
            # Token refresh or user update for the identity we already track
            return

        logger.info(f"Session started for user {session.user_id}")
        self._generation += 1
        self._cancel_bootstrap()
        self._reset_profile()
        self.message = None
        self._bootstrap_task = self._spawn(self._bootstrap(self._generation, session.user_id))

    async def sign_out(self) -> None:
        """Ask the backend to end the session; the auth listener drives the view to login."""
        try:
            await self.backend.sign_out()
        except BackendError as e:
            logger.error(f"Sign out failed: {e}")
            self.message = Message(type="error", text=e.message)
            raise

    # Profile

    async def ensure_profile(self, user_id: str) -> Profile:
        """Fetch the user's profile, creating the default one if there is none."""
        async with self._profile_lock:
            try:
                profile = await self.backend.get_profile(user_id)
                if profile is None:
                    if self.session is not None and self.session.user_id == user_id:
                        self.profile_state = ProfileState.ABSENT
                    logger.info(f"No profile for user {user_id}, creating default")
                    profile = await self.backend.create_profile(default_profile(user_id))
            except BackendError as e:
                raise ProfileLookupFailure(e.message) from e
        return profile

    async def retry_bootstrap(self) -> None:
        """Re-run the profile lookup after it gave up."""
        if self.session_state is not SessionState.PRESENT or self.profile is not None:
            raise ViewTransitionError("Nothing to retry")
        if self._bootstrap_running():
            return
        self.message = None
        self._bootstrap_task = self._spawn(self._bootstrap(self._generation, self.session.user_id))

    async def complete_setup(self, edits: ProfileSetupRequest) -> Profile:
        """Persist the setup form and flip the setup flag. One way only."""
        if self.active_view is not View.PROFILE_SETUP:
            raise ViewTransitionError("Profile setup is not pending")
        generation = self._generation
        user_id = self.profile.id

        try:
            taken = await self.backend.is_username_taken(edits.username, user_id)
            if taken:
                raise UsernameTaken()
            fields = edits.to_update()
            fields["is_setup_complete"] = True
            profile = await self.backend.update_profile(user_id, fields)
        except (BackendError, UsernameTaken) as e:
            logger.info(f"Profile setup failed for {user_id}: {e}")
            if generation == self._generation:
                self.message = Message(type="error", text=e.message)
            raise

        if generation != self._generation:
            logger.info(f"Session changed during setup for {user_id}; result not applied")
            return profile

        self._apply_profile(profile)
        self._selected_view = View.FEED
        self.message = None
        logger.info(f"Profile setup complete for {user_id}")
        if profile.is_setup_complete:
            await self._open_feed()
        return profile

    async def update_profile(self, fields: dict) -> Profile:
        """Edit a completed profile. The setup flag is not writable here."""
        current = self.require_profile()
        generation = self._generation
        fields = {k: v for k, v in fields.items() if k != "is_setup_complete"}
        profile = await self.backend.update_profile(current.id, fields)
        if generation == self._generation:
            self._apply_profile(profile)
        return profile

    def require_profile(self) -> Profile:
        if self.session_state is not SessionState.PRESENT or self.profile_state is not ProfileState.COMPLETE:
            raise ViewTransitionError("Finish setting up your profile first")
        return self.profile

    # Navigation

    def navigate(self, view: View) -> View:
        if view not in NAVIGABLE_VIEWS:
            raise ViewTransitionError(f"Cannot navigate to {view.value}")
        self.require_profile()
        self._selected_view = view
        return self.active_view

    # Feed

    async def refresh_feed(self) -> List[Post]:
        """Refetch the feed and replace the cached list wholesale."""
        generation = self._generation
        try:
            posts = await fetch_feed(self.backend)
        except BackendError as e:
            logger.error(f"Fetch posts error: {e}")
            self.message = Message(type="error", text=e.message)
            raise
        if generation == self._generation:
            self.posts = posts
            self.feed_stale = False
        return posts

    # Internals

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", exc_info=task.exception())

    def _bootstrap_running(self) -> bool:
        return self._bootstrap_task is not None and not self._bootstrap_task.done()

    def _cancel_bootstrap(self) -> None:
        if self._bootstrap_running():
            self._bootstrap_task.cancel()
        self._bootstrap_task = None

    def _reset_profile(self) -> None:
        self.profile = None
        self.profile_state = ProfileState.PENDING
        self._selected_view = View.FEED
        self.posts = []
        self.feed_stale = True
        if self._feed_subscription is not None:
            subscription, self._feed_subscription = self._feed_subscription, None
            self._spawn(self._release_subscription(subscription))

    def _apply_profile(self, profile: Profile) -> None:
        if (
            self.profile_state is ProfileState.COMPLETE
            and self.profile is not None
            and self.profile.id == profile.id
            and not profile.is_setup_complete
        ):
            logger.warning(f"Ignoring setup flag reset for {profile.id}")
            profile = profile.model_copy(update={"is_setup_complete": True})
        self.profile = profile
        self.profile_state = ProfileState.COMPLETE if profile.is_setup_complete else ProfileState.INCOMPLETE

    async def _ensure_profile_with_retry(self, user_id: str) -> Profile:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await self.ensure_profile(user_id)
            except ProfileLookupFailure as e:
                if attempt == self.retry_attempts:
                    raise
                delay = self.retry_backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    f"Profile lookup attempt {attempt}/{self.retry_attempts} for {user_id} failed: {e}; "
                    f"retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

    async def _bootstrap(self, generation: int, user_id: str) -> None:
        try:
            profile = await self._ensure_profile_with_retry(user_id)
        except ProfileLookupFailure as e:
            if generation == self._generation:
                logger.error(f"Profile bootstrap failed for {user_id}: {e}")
                self.message = Message(type="error", text=e.message)
            return

        if generation != self._generation:
            logger.debug(f"Discarding stale profile result for {user_id}")
            return
        self._apply_profile(profile)
        logger.info(f"Profile loaded for {user_id} ({self.profile_state.value})")
        if profile.is_setup_complete:
            await self._open_feed()

    async def _open_feed(self) -> None:
        generation = self._generation
        if self._feed_subscription is None:
            try:
                subscription = await self.backend.subscribe_to_table_changes(
                    settings.posts_table, self._on_posts_changed
                )
            except BackendError as e:
                # Feed still loads on request, just without live refresh
                logger.error(f"Realtime subscription failed: {e}")
            else:
                if self._closed or generation != self._generation or self._feed_subscription is not None:
                    logger.debug("Session changed while subscribing to posts; dropping channel")
                    await self._release_subscription(subscription)
                else:
                    self._feed_subscription = subscription
        if self._closed or generation != self._generation:
            return
        await self.refresh_feed_quietly()

    async def _close_feed_subscription(self) -> None:
        subscription, self._feed_subscription = self._feed_subscription, None
        if subscription is not None:
            await self._release_subscription(subscription)

    async def _release_subscription(self, subscription: Subscription) -> None:
        try:
            await subscription.close()
        except Exception as e:
            logger.warning(f"Error closing realtime subscription: {e}")

    def _on_posts_changed(self) -> None:
        if self._closed:
            return
        if self.active_view is View.FEED:
            self._spawn(self.refresh_feed_quietly())
        else:
            self.feed_stale = True

    async def refresh_feed_quietly(self) -> None:
        """Refresh the feed, leaving a failure as the inline message only."""
        try:
            await self.refresh_feed()
        except BackendError:
            # Already logged and surfaced as the inline message
            pass
