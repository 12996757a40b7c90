"""Debounce / supersede / isolate state machine shared by the coordinators.

A coordinator owns one immutable state snapshot and replaces it wholesale
on every transition. Each trigger bumps a sequence number; the unit of
work it spawns carries that number, and its outcome is applied only while
the number is still the latest. Older work is cancelled when superseded,
so results are published in trigger order regardless of completion order.

All methods must be called from the event loop that runs the coordinator.
"""

import asyncio
import dataclasses
import logging
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar

from ..errors import DiagnosticsError, TransientFetchError

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")

Listener = Callable[[Any], None]


class Status(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"
    READY = "ready"
    FAILED = "failed"


class Coordinator(Generic[S, R]):
    """Single-writer state machine driving one downstream unit of work.

    Subclasses provide ``_fetch`` (the unit of work for a set of request
    parameters) and ``_applied`` (the state changes a successful result
    produces). The state dataclass must have ``status``, ``seq``,
    ``result_seq`` and ``error`` fields.
    """

    name = "coordinator"

    def __init__(self, initial: S, debounce: float = 0.3, timeout: Optional[float] = 5.0):
        """
        Initialize coordinator.

        Args:
            initial: Initial state snapshot
            debounce: Quiet period in seconds before a trigger starts its work
            timeout: Maximum duration of one unit of work (None disables)
        """
        self._state = initial
        self.debounce = debounce
        self.timeout = timeout
        self._seq = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener`` for every new snapshot.

        Returns:
            Callable removing the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, **changes: Any) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception(f"{self.name}: listener failed")

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    def _request(self, state: S) -> Any:
        """Request parameters the unit of work needs, taken from ``state``."""
        raise NotImplementedError

    async def _fetch(self, request: Any) -> R:
        raise NotImplementedError

    def _applied(self, result: R) -> dict:
        """State changes produced by a successful result."""
        raise NotImplementedError

    def _trigger(self, debounce: Optional[float] = None, **changes: Any) -> int:
        """
        Apply ``changes`` and start a new unit of work, superseding any pending one.

        Returns:
            Sequence number of the new trigger
        """
        if self._closed:
            raise RuntimeError(f"{self.name} is closed")

        self._seq += 1
        seq = self._seq

        if self._task is not None and not self._task.done():
            logger.debug(f"{self.name}: trigger {seq} supersedes pending work")
            self._task.cancel()

        delay = self.debounce if debounce is None else debounce
        if delay > 0:
            self._publish(status=Status.DEBOUNCING, seq=seq, **changes)
        else:
            self._publish(status=Status.FETCHING, seq=seq, error=None, **changes)
        request = self._request(self._state)
        self._task = asyncio.get_running_loop().create_task(self._run(seq, request, delay))
        return seq

    async def _run(self, seq: int, request: Any, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
            self._publish(status=Status.FETCHING, error=None)

        try:
            if self.timeout is None:
                result = await self._fetch(request)
            else:
                result = await asyncio.wait_for(self._fetch(request), self.timeout)
        except asyncio.TimeoutError:
            self._fail(seq, TransientFetchError(f"Request timed out after {self.timeout}s"))
            return
        except Exception as e:
            self._fail(seq, e)
            return

        if seq != self._seq:
            logger.debug(f"{self.name}: discarding stale result of trigger {seq}")
            return

        try:
            applied = self._applied(result)
        except Exception as e:
            self._fail(seq, e)
            return

        self._publish(status=Status.READY, result_seq=seq, error=None, **applied)

    def _fail(self, seq: int, error: BaseException) -> None:
        if seq != self._seq:
            return
        if isinstance(error, DiagnosticsError):
            logger.warning(f"{self.name}: trigger {seq} failed: {error}")
        else:
            logger.error(f"{self.name}: trigger {seq} failed: {error!r}", exc_info=error)
        self._publish(status=Status.FAILED, error=str(error) or type(error).__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    async def settled(self) -> S:
        """Wait until no work is pending (including work triggered meanwhile)."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._state

    async def aclose(self) -> None:
        """Cancel pending work and refuse further triggers."""
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
