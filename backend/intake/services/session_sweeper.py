"""Expired onboarding session sweeper.

asyncio background task started from the FastAPI lifespan. Sessions are
also expired lazily on access; the sweep tears down wizards nobody comes
back to, so their pending verifications are cancelled promptly.
"""

import asyncio
import contextlib
import logging

from intake.services.session_store import OnboardingSessionStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60


class SessionSweeper:
    """Background worker that periodically discards expired sessions.

    Lifecycle:
    - start() creates an asyncio task that runs the sweep loop.
    - stop() cancels the task and waits for it to finish.
    - run_once() executes a single sweep (for testing).

    Args:
        store: Session store to sweep.
        interval_seconds: Seconds between sweeps.
    """

    def __init__(
        self,
        store: OnboardingSessionStore,
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop. No-op if already running.

        Must be called from a running event loop.
        """
        if self.is_running:
            logger.warning("Session sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Session sweeper started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Session sweeper stopped")

    def run_once(self) -> int:
        """Discard expired sessions once.

        Returns:
            Number of sessions removed.
        """
        return self._store.cleanup_expired()

    async def _run_loop(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self._interval_seconds)
                try:
                    removed = self.run_once()
                    if removed:
                        logger.info("Swept %d expired onboarding sessions", removed)
                except Exception:  # noqa: BLE001
                    logger.exception("Error sweeping onboarding sessions")
        except asyncio.CancelledError:
            logger.debug("Session sweep loop cancelled")
            raise
