"""Registry of client_id -> SessionOrchestrator for open client sessions."""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from snapfeed.backend.base import BackendClient
from snapfeed.config import settings
from snapfeed.modules.session.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)

BackendFactory = Callable[[], Awaitable[BackendClient]]


@dataclass
class _Entry:
    orchestrator: SessionOrchestrator
    last_seen: float


class SessionRegistry:
    def __init__(
        self,
        backend_factory: BackendFactory,
        idle_timeout_seconds: Optional[float] = None,
        **orchestrator_options,
    ):
        self._backend_factory = backend_factory
        if idle_timeout_seconds is None:
            idle_timeout_seconds = settings.session_idle_timeout_seconds
        self.idle_timeout_seconds = idle_timeout_seconds
        self._orchestrator_options = orchestrator_options
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def open(self) -> Tuple[str, SessionOrchestrator]:
        """Create a backend client and orchestrator for a new client session."""
        await self.evict_idle()
        backend = await self._backend_factory()
        orchestrator = SessionOrchestrator(backend, **self._orchestrator_options)
        await orchestrator.start()
        client_id = uuid.uuid4().hex
        self._entries[client_id] = _Entry(orchestrator, time.monotonic())
        logger.info(f"Opened client session {client_id} ({len(self._entries)} open)")
        return client_id, orchestrator

    def get(self, client_id: str) -> Optional[SessionOrchestrator]:
        entry = self._entries.get(client_id)
        if entry is None:
            return None
        entry.last_seen = time.monotonic()
        return entry.orchestrator

    async def close(self, client_id: str) -> bool:
        entry = self._entries.pop(client_id, None)
        if entry is None:
            return False
        try:
            await entry.orchestrator.close()
        except Exception as e:
            logger.warning(f"Error closing client session {client_id}: {e}")
        logger.info(f"Closed client session {client_id}")
        return True

    async def evict_idle(self) -> List[str]:
        now = time.monotonic()
        expired = [
            client_id for client_id, entry in self._entries.items()
            if now - entry.last_seen > self.idle_timeout_seconds
        ]
        for client_id in expired:
            logger.info(f"Evicting idle client session {client_id}")
            await self.close(client_id)
        return expired

    async def sweep_loop(self, interval_seconds: Optional[float] = None) -> None:
        """Background task that periodically closes idle client sessions"""
        if interval_seconds is None:
            interval_seconds = settings.session_sweep_interval_seconds
        while True:
            try:
                await self.evict_idle()
            except Exception as e:
                logger.error(f"Error in idle session sweep: {e}")
            await asyncio.sleep(interval_seconds)

    async def close_all(self) -> None:
        for client_id in list(self._entries):
            await self.close(client_id)
