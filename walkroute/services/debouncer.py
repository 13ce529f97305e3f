import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from walkroute.core.config import settings

logger = logging.getLogger(__name__)

SearchCallback = Callable[[str, int], Awaitable[None]]


class SearchDebouncer:
    """
    Coalesces rapid query changes into a single lookup.

    Every `schedule` call cancels the pending timer, cancels a callback that
    is still in flight and mints a new token. When the timer fires,
    `callback(text, token)` runs as a task, so at most one callback is ever
    in flight. A callback must still check `is_current(token)` before
    applying its result: it may resume after a later `schedule` or `cancel`
    without having hit an await in between.
    Tokens are compared, never texts: two keystrokes can produce the same text.
    """

    def __init__(self, delay: Optional[float] = None):
        self.delay = settings.SEARCH_DEBOUNCE_SECONDS if delay is None else delay
        self._token = 0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def token(self) -> int:
        return self._token

    @property
    def pending(self) -> bool:
        """True while a scheduled callback has not fired yet."""
        return self._handle is not None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def is_current(self, token: int) -> bool:
        return token == self._token

    def schedule(self, text: str, callback: SearchCallback) -> int:
        self._supersede()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, loop, text, callback, self._token)
        return self._token

    def cancel(self) -> None:
        self._supersede()

    def close(self) -> None:
        self.cancel()

    async def wait(self) -> None:
        """Wait until no callback is scheduled or in flight."""
        loop = asyncio.get_running_loop()
        while self._handle is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(max(0.0, self._handle.when() - loop.time()))

    def _supersede(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        for task in list(self._tasks):
            task.cancel()
            self._tasks.discard(task)
        self._token += 1

    def _fire(self, loop: asyncio.AbstractEventLoop, text: str, callback: SearchCallback, token: int) -> None:
        self._handle = None
        task = loop.create_task(callback(text, token))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Debounced search callback failed: {task.exception()!r}")
