"""In-memory registry of live onboarding runs, one per user.

A run pairs a :class:`FlowController` with the :class:`BufferedPresenter`
it talks to.  Requests for the same user are serialised through the run's
lock; different users never contend.

Runs idle for longer than the configured timeout are abandoned (which
flushes their progress to persistence) and dropped from memory.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from onboarding_flow.engine import FlowController
from onboarding_flow.interfaces import PersistenceAdapter
from onboarding_flow.registry import SchemaRegistry

from onboarding_server.presenter import BufferedPresenter

logger = logging.getLogger(__name__)


@dataclass
class Run:
    """One user's live controller and its presenter."""

    controller: FlowController
    presenter: BufferedPresenter
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_seen: float = 0.0


class SessionRegistry:
    """Creates, finds and retires runs by user id.

    Args:
        registry: loaded flow definition shared by every run
        persistence: adapter handed to each controller (None = memory only)
        idle_timeout_minutes: evict runs idle this long; 0 disables eviction
        clock: monotonic seconds, injectable for tests
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        persistence: PersistenceAdapter | None = None,
        *,
        idle_timeout_minutes: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._persistence = persistence
        self._idle_seconds = idle_timeout_minutes * 60
        self._clock = clock
        self._runs: dict[str, Run] = {}

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._runs

    def get(self, user_id: str) -> Run:
        """Return the live run for *user_id*.

        Raises:
            ValueError: if the user has no run (call start first).
        """
        run = self._runs.get(user_id)
        if run is None:
            raise ValueError(f"Onboarding not started for user {user_id}")
        run.last_seen = self._clock()
        return run

    async def open(self, user_id: str) -> Run:
        """Return the user's run, creating a fresh controller if needed."""
        await self.evict_idle()
        run = self._runs.get(user_id)
        if run is None:
            presenter = BufferedPresenter()
            controller = FlowController(
                self._registry,
                presenter,
                user_id=user_id,
                persistence=self._persistence,
            )
            controller.on_complete(self._make_completion_logger(user_id))
            run = Run(controller=controller, presenter=presenter)
            self._runs[user_id] = run
            logger.info("Opened onboarding run for %s (%d live)", user_id, len(self._runs))
        run.last_seen = self._clock()
        return run

    async def close(self, user_id: str) -> bool:
        """Abandon and forget the user's run.  Returns False if there was none."""
        run = self._runs.pop(user_id, None)
        if run is None:
            return False
        async with run.lock:
            await run.controller.abandon()
        logger.info("Closed onboarding run for %s", user_id)
        return True

    async def close_all(self) -> None:
        """Abandon every live run (graceful shutdown)."""
        for user_id in list(self._runs):
            await self.close(user_id)

    async def evict_idle(self) -> int:
        """Close runs idle longer than the timeout.  Returns how many were closed."""
        if self._idle_seconds <= 0:
            return 0
        cutoff = self._clock() - self._idle_seconds
        stale = [uid for uid, run in self._runs.items() if run.last_seen < cutoff]
        for user_id in stale:
            await self.close(user_id)
        if stale:
            logger.info("Evicted %d idle onboarding runs", len(stale))
        return len(stale)

    @staticmethod
    def _make_completion_logger(user_id: str) -> Callable[[dict[str, Any]], None]:
        def _completed(app_profile: dict[str, Any]) -> None:
            goals = (app_profile.get("goals") or {}).get("oneYearGoals") or []
            logger.info("User %s finished onboarding (%d goals)", user_id, len(goals))
        return _completed
