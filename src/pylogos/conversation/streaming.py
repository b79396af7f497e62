"""Applies streamed deltas to a session.

Hidden design decisions:
- Incremental vs withheld display
- Per-character pacing of the typing effect
- Coalescing of persistence writes while a reply streams
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable

from ..config import AUTHOR_AI, DEFAULT_CHAR_DELAY_MS, PERSIST_INTERVAL_SECONDS, SLOW_LOADING_HINT
from ..persistence import MessagePersistenceGateway, StoredMessage
from .models import StreamTask
from .state import SessionState

logger = logging.getLogger(__name__)


class StreamingResponseHandler:
    """Consumes the deltas of one reply into a SessionState."""

    def __init__(
        self,
        state: SessionState,
        gateway: MessagePersistenceGateway,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        persist_interval: float = PERSIST_INTERVAL_SECONDS
    ):
        self._state = state
        self._gateway = gateway
        self._clock = clock
        self._sleep = sleep
        self._persist_interval = persist_interval

    async def consume(self, task: StreamTask, deltas: AsyncIterator[str]) -> str:
        """Apply deltas until the stream ends or the task is cancelled.

        Returns:
            The accumulated reply text
        """
        settings = self._state.settings
        delay = settings.char_delay_ms / 1000

        async with contextlib.aclosing(deltas):
            async for delta in deltas:
                if task.cancelled:
                    break

                if not settings.stream_response:
                    task.append(delta)
                    task.first_content.set()
                    if task.hint_job is None:
                        task.hint_job = self._state.scope.launch(
                            self._type_hint(task),
                            name=f"hint-{task.task_id}"
                        )
                elif delay > 0:
                    for char in delta:
                        if task.cancelled:
                            break
                        self._show(task, char)
                        await self._sleep(delay)
                else:
                    self._show(task, delta)

                await self.persist(task)

        return task.text

    def _show(self, task: StreamTask, text: str) -> None:
        task.append(text)
        self._state.append_to_last(text)
        if not task.first_content.is_set():
            task.first_content.set()
            self._state.set_loading(task.message_index, False)

    async def _type_hint(self, task: StreamTask) -> None:
        delay = (self._state.settings.char_delay_ms or DEFAULT_CHAR_DELAY_MS) / 1000
        for char in SLOW_LOADING_HINT:
            if task.cancelled:
                return
            self._state.append_to_last(char)
            task.hint_shown = True
            await self._sleep(delay)

    async def stop_hint(self, task: StreamTask) -> None:
        """Cancel the typing hint, if one is running."""
        job = task.hint_job
        if job is not None and not job.done():
            job.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await job

    async def finish(self, task: StreamTask) -> None:
        """Reveal the full reply and write its final state."""
        await self.stop_hint(task)
        if not self._state.settings.stream_response or task.hint_shown:
            self._state.replace_content(task.message_index, task.text)
        self._state.set_loading(task.message_index, False)
        await self.persist(task, force=True)

    async def persist(self, task: StreamTask, content: str | None = None, force: bool = False) -> None:
        """Write the reply's latest text, at most once per persist interval."""
        now = self._clock()
        if not force and now - task.last_persisted_at < self._persist_interval:
            return
        task.last_persisted_at = now

        item = StoredMessage(author=AUTHOR_AI, content=task.text if content is None else content)
        try:
            await self._gateway.replace_last_assistant_message(self._state.session_id, item)
        except Exception as e:
            logger.warning("Failed to persist reply for session %s: %s", self._state.session_id, e)
