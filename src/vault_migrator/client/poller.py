"""Periodic vault state refresh."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from vault_migrator.client.session import VaultSession, VaultState

logger = logging.getLogger(__name__)

StateCallback = Callable[[VaultState], Awaitable[None]]


class StatePoller:
    """Re-reads vault state every `interval` seconds until stopped.

    Read errors are logged and the loop carries on at the next tick.
    """

    def __init__(self, session: VaultSession, callback: StateCallback, interval: float = 10.0):
        self.session = session
        self.callback = callback
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> Optional[VaultState]:
        """Run one read + callback cycle."""
        try:
            state = await self.session.read_state()
        except Exception as e:
            logger.error(f"Vault state refresh failed: {e}")
            return None

        try:
            await self.callback(state)
        except Exception as e:
            logger.error(f"State callback error: {e}")
        return state

    async def _run(self) -> None:
        logger.info(f"Polling vault state every {self.interval}s")
        while not self.session.closed:
            await self.refresh()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        """Start polling in the background."""
        if not self.running:
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped polling vault state")
