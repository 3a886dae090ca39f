"""Status poller for one active swap.

Polls the resolver at a fixed interval and hands every result to the
orchestrator. Transport failures are logged and the next tick retries; only a
terminal status or ``stop()`` ends the loop. After ``stop()`` no result is
forwarded, even if a request was already in flight.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from zenithswap.errors import StatusPollError, SwapNotFoundError
from zenithswap.resolver.client import ExchangeAPIClient
from zenithswap.resolver.contracts import SwapStatusResponse
from zenithswap.swap.state import SwapStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 15.0

UpdateCallback = Callable[[str, SwapStatusResponse], Optional[SwapStatus]]
NotFoundCallback = Callable[[str], Optional[SwapStatus]]
SleepFunc = Callable[[float], Awaitable[None]]


class StatusPoller:
    """Cancellable repeating status check bound to a single swap ID."""

    def __init__(
        self,
        api: ExchangeAPIClient,
        swap_id: str,
        on_update: UpdateCallback,
        on_not_found: NotFoundCallback,
        interval: float = DEFAULT_POLL_INTERVAL,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize poller.

        Args:
            api: Resolver client
            swap_id: Swap to watch
            on_update: Receives each status response, returns the resulting status
            on_not_found: Called when the resolver no longer knows the swap
            interval: Seconds between polls (fixed, no backoff)
            sleep: Sleep function; tests pass a fake clock
        """
        self.api = api
        self.swap_id = swap_id
        self.on_update = on_update
        self.on_not_found = on_not_found
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """Start polling. Must be called with a running event loop."""
        if self._task is not None:
            return
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"status-poller-{self.swap_id}"
        )

    def stop(self) -> None:
        """Stop polling; no further results are forwarded after this returns."""
        if self._stopped:
            return
        self._stopped = True
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
        logger.info(f"Status poller stopped for swap {self.swap_id}")

    async def join(self) -> None:
        """Wait for the polling task to finish."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def poll_once(self) -> Optional[SwapStatus]:
        """Run a single status check.

        Returns:
            The status the orchestrator settled on, or None if nothing was applied
        """
        if self._stopped:
            return None
        self.ticks += 1

        try:
            response = await self.api.get_swap_status(self.swap_id)
        except SwapNotFoundError:
            if self._stopped:
                return None
            logger.warning(f"Swap {self.swap_id} not found on resolver")
            status = self.on_not_found(self.swap_id)
        except StatusPollError as e:
            logger.warning(f"Status poll for swap {self.swap_id} failed: {e}")
            return None
        else:
            if self._stopped:
                logger.debug(f"Dropping status for stopped swap {self.swap_id}")
                return None
            status = self.on_update(self.swap_id, response)

        if status is not None and status.is_terminal:
            logger.info(f"Swap {self.swap_id} reached {status.value}, polling finished")
            self._stopped = True
        return status

    async def _run(self) -> None:
        logger.info(
            f"Status poller started for swap {self.swap_id} (interval: {self.interval}s)"
        )
        while not self._stopped:
            await self._sleep(self.interval)
            if self._stopped:
                break
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Status poller error for swap {self.swap_id}: {e}")
