"""Conversation orchestrator.

Drives one session through IDLE -> SENDING -> STREAMING -> COMPLETED,
CANCELLED or FAILED, with a single fallback retry after a failure and
optional planner-driven continuation turns.

Following Parnas principles, this module hides:
- Request assembly (history window, retrieval, agent template)
- Which provider and model serve a turn
- Cleanup of the reply placeholder on each terminal phase
"""

import asyncio
import functools
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from uuid import uuid4

from ..config import (
    AUTHOR_AI,
    AUTHOR_ME,
    AUTHOR_SYSTEM,
    CANCELLED_MARKER,
    NEW_CHAT_NAME,
    RESPONSE_TIMEOUT_SECONDS,
    SESSION_TITLE_LENGTH,
)
from ..llm import create_codec, decode_stream
from ..llm.errors import (
    LLMError,
    NetworkError,
    RequestCancelledError,
    describe_error,
    wrap_transport_error,
)
from ..llm.models import ChatMessage, GeminiConfig, GenerationParams, LocalConfig, OpenAIConfig
from ..persistence import MessagePersistenceGateway, NoOpPersistenceGateway
from ..persistence.models import StoredMessage
from ..transport import SseClient, TransportPool
from .fallback import FallbackPolicy
from .models import ImageAttachment, StreamTask, TurnPhase, UiMessage
from .planner import AutoLoopPlanner
from .prompt import (
    augment_with_context,
    auto_loop_display,
    build_history,
    build_request_messages,
    build_user_parts,
    from_stored,
    render_template,
    strip_auto_loop_prefix,
    to_stored,
)
from .state import SessionState
from .streaming import StreamingResponseHandler

logger = logging.getLogger(__name__)

AnyProvider = OpenAIConfig | GeminiConfig | LocalConfig
Retriever = Callable[[str], Awaitable[str]]

NO_PROVIDER_MESSAGE = "No AI Provider configured."


def _caller_cancelled() -> bool:
    """True when the running task itself has a pending cancellation request."""
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0


class ConversationOrchestrator:
    """Runs the turns of one session.

    Examples:
        >>> orchestrator = ConversationOrchestrator(state, pool, gateway, retriever=engine.retrieve_knowledge)
        >>> await orchestrator.send("What is the capital of France?")
        >>> await orchestrator.cancel()  # from another task while a reply streams
    """

    def __init__(
        self,
        state: SessionState,
        pool: TransportPool,
        gateway: MessagePersistenceGateway | None = None,
        *,
        retriever: Retriever | None = None,
        fallback: FallbackPolicy | None = None,
        planner: AutoLoopPlanner | None = None,
        on_session_updated: Callable[[str], object] | None = None,
        on_rename: Callable[[str, str], object] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        response_timeout: float = RESPONSE_TIMEOUT_SECONDS
    ):
        """Initialize the orchestrator.

        Args:
            state: Session to drive
            pool: Shared stream clients
            gateway: Durable message store (writes are discarded when None)
            retriever: Returns knowledge-base context for a question
            fallback: Provider registry used for the fallback retry
            planner: Auto-loop planner
            on_session_updated: Called with the session id after each completed reply
            on_rename: Called with (session id, title) when a new chat is named
            clock: Monotonic clock for persistence coalescing
            sleep: Sleep used for typing pacing
            response_timeout: First-content deadline when regenerating
        """
        self._state = state
        self._pool = pool
        self._gateway = gateway or NoOpPersistenceGateway()
        self._retriever = retriever
        self._fallback = fallback or FallbackPolicy()
        self._planner = planner or AutoLoopPlanner()
        self._on_session_updated = on_session_updated
        self._on_rename = on_rename
        self._clock = clock
        self._response_timeout = response_timeout
        self._handler = StreamingResponseHandler(state, self._gateway, clock=clock, sleep=sleep)

    @property
    def state(self) -> SessionState:
        return self._state

    async def restore_history(self) -> int:
        """Load persisted messages into an empty session.

        Returns:
            Number of messages loaded
        """
        if self._state.messages:
            return 0
        stored = await self._gateway.get_messages(self._state.session_id)
        self._state.load_messages([from_stored(item) for item in stored])
        return len(stored)

    async def send(self, text: str, *, image: ImageAttachment | None = None) -> None:
        """Send a user turn and wait until it (and any continuations) settle."""
        image_url = image.to_data_uri() if image else None
        await self._run_job(self._process_message(text, image_url))

    async def rollback_and_regenerate(self) -> bool:
        """Drop the latest reply and ask again.

        Fails the turn with a timeout if no content arrives within the
        response timeout.

        Returns:
            False if there was nothing to regenerate
        """
        await self._stop_active()

        ai_index = self._state.last_index_of(AUTHOR_AI)
        if ai_index == -1:
            return False
        self._state.remove_at(ai_index)
        try:
            await self._gateway.remove_last_assistant_message(self._state.session_id)
        except Exception as e:
            logger.warning("Failed to remove persisted reply: %s", e)

        user_index = self._state.last_index_of(AUTHOR_ME)
        if user_index == -1:
            return False
        user = self._state.message_at(user_index)
        text = strip_auto_loop_prefix(user.content)

        await self._run_job(self._process_message(
            text,
            user.image_url,
            automated=text != user.content,
            reuse_user_message=True,
            first_content_timeout=self._response_timeout
        ))
        return True

    async def cancel(self) -> None:
        """Cancel the active reply. With nothing active, only clears the generating flag."""
        stream = self._state.active_stream
        job = self._state.active_job

        if stream is not None:
            stream.cancelled = True
            self._pool.cancel(stream.task_id)

        if job is not None and not job.done() and job is not asyncio.current_task():
            job.cancel()
            try:
                await job
            except asyncio.CancelledError:
                if _caller_cancelled():
                    raise

        await self._finish_cancelled(stream)

    async def _stop_active(self) -> None:
        job = self._state.active_job
        if job is not None and not job.done():
            logger.debug("Session %s: superseding active turn", self._state.session_id)
            await self.cancel()

    async def _run_job(self, coro) -> None:
        await self._stop_active()
        job = self._state.scope.launch(coro, name=f"turn-{self._state.session_id}")
        self._state.active_job = job
        try:
            await job
        except asyncio.CancelledError:
            if not job.cancelled():
                raise
            # A superseding turn may already own active_stream.
            if self._state.active_job is job:
                await self._finish_cancelled(self._state.active_stream)
            # A cancel aimed at the caller itself must still propagate.
            if _caller_cancelled():
                raise
        finally:
            if self._state.active_job is job:
                self._state.active_job = None

    async def _process_message(
        self,
        text: str,
        image_url: str | None,
        *,
        automated: bool = False,
        loop_count: int = 0,
        is_retry: bool = False,
        reuse_user_message: bool = False,
        provider: AnyProvider | None = None,
        model: str | None = None,
        first_content_timeout: float | None = None
    ) -> None:
        state = self._state
        settings = state.settings
        provider = provider or state.provider
        model = model or state.model

        if not reuse_user_message:
            display = auto_loop_display(text, loop_count) if automated else text
            user_message = UiMessage(author=AUTHOR_ME, content=display, image_url=image_url)
            state.add_message(user_message)
            await self._append_persisted(to_stored(user_message))
            if not automated:
                await self._maybe_rename(text)

        if provider is None or not model:
            state.add_message(UiMessage(author=AUTHOR_SYSTEM, content=NO_PROVIDER_MESSAGE))
            return

        state.phase = TurnPhase.SENDING
        state.set_generating(True)

        user_index = state.last_index_of(AUTHOR_ME)
        prior = state.messages[:user_index] if user_index >= 0 else state.messages
        history = build_history(prior)

        content = text
        if not automated:
            if settings.retrieval_enabled and self._retriever is not None:
                context = await self._retrieve(text)
                if context:
                    content = augment_with_context(context, text)
            content = render_template(state.agent.message_template, content)

        current = ChatMessage(role="user", parts=build_user_parts(content, image_url))
        messages = build_request_messages(state.agent, history, current)

        stream = StreamTask(last_persisted_at=self._clock())
        stream.message_index = state.add_message(UiMessage(author=AUTHOR_AI, is_loading=True))
        state.active_stream = stream
        await self._append_persisted(StoredMessage(author=AUTHOR_AI, content=""))
        state.phase = TurnPhase.STREAMING

        try:
            response = await self._stream(provider, model, messages, stream, first_content_timeout)
        except RequestCancelledError as e:
            if stream.cancelled:
                return
            error = NetworkError("response timed out") if stream.timed_out else e
            await self._on_failure(
                stream, error, provider, model, text, image_url,
                automated=automated, loop_count=loop_count, is_retry=is_retry,
                first_content_timeout=first_content_timeout
            )
            return
        except LLMError as e:
            await self._on_failure(
                stream, e, provider, model, text, image_url,
                automated=automated, loop_count=loop_count, is_retry=is_retry,
                first_content_timeout=first_content_timeout
            )
            return

        if stream.cancelled:
            return

        await self._on_complete(stream, response, provider, model, loop_count)

    async def _stream(
        self,
        provider: AnyProvider,
        model: str,
        messages: Sequence[ChatMessage],
        stream: StreamTask,
        first_content_timeout: float | None
    ) -> str:
        settings = self._state.settings
        codec = create_codec(provider)
        params = GenerationParams(
            model=model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            top_p=settings.top_p
        )
        request = codec.build_request(provider, messages, params)
        client = await self._pool.get(provider)

        watchdog = None
        if first_content_timeout:
            watchdog = self._state.scope.launch(
                self._watch_first_content(stream, client, first_content_timeout),
                name=f"watchdog-{stream.task_id}"
            )

        try:
            payloads = client.open(request, stream.task_id)
            return await self._handler.consume(stream, decode_stream(codec, payloads))
        except (LLMError, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.exception("Unexpected failure while streaming from %s", provider.name)
            raise wrap_transport_error(e) from e
        finally:
            if watchdog is not None:
                watchdog.cancel()

    async def _watch_first_content(self, stream: StreamTask, client: SseClient, timeout: float) -> None:
        try:
            await asyncio.wait_for(stream.first_content.wait(), timeout)
        except asyncio.TimeoutError:
            if stream.cancelled:
                return
            logger.warning("No content within %.1fs for task %s", timeout, stream.task_id)
            stream.timed_out = True
            client.cancel(stream.task_id)

    async def _on_complete(
        self,
        stream: StreamTask,
        response: str,
        provider: AnyProvider,
        model: str,
        loop_count: int
    ) -> None:
        state = self._state
        stream.terminal = True
        await self._handler.finish(stream)
        if state.active_stream is stream:
            state.active_stream = None
        state.phase = TurnPhase.COMPLETED

        try:
            await self._gateway.touch_session(state.session_id)
        except Exception as e:
            logger.warning("Failed to touch session %s: %s", state.session_id, e)
        state.set_generating(False)
        await self._notify(self._on_session_updated, state.session_id)

        settings = state.settings
        if not (settings.auto_loop_enabled and loop_count < settings.max_loop_count and response.strip()):
            return

        instruction = await self._planner.next_instruction(
            response,
            model,
            functools.partial(self._complete, provider)
        )
        if instruction is None or state.scope.is_cancelled:
            return

        logger.info("Session %s: auto-loop %d", state.session_id, loop_count + 1)
        await self._process_message(
            instruction,
            None,
            automated=True,
            loop_count=loop_count + 1,
            provider=provider,
            model=model
        )

    async def _on_failure(
        self,
        stream: StreamTask,
        error: LLMError,
        provider: AnyProvider,
        model: str,
        text: str,
        image_url: str | None,
        *,
        automated: bool,
        loop_count: int,
        is_retry: bool,
        first_content_timeout: float | None
    ) -> None:
        state = self._state
        stream.terminal = True
        if state.active_stream is stream:
            state.active_stream = None
        logger.warning("Request to %s (%s) failed: %s", provider.name, model, error)

        await self._handler.stop_hint(stream)
        await self._settle_placeholder(stream, stream.text)
        state.phase = TurnPhase.FAILED

        choice = self._fallback.select(provider, state.settings, is_retry)
        if choice is not None:
            fallback, fallback_model = choice
            logger.info("Session %s: retrying on fallback %s", state.session_id, fallback.name)
            state.add_message(UiMessage(
                author=AUTHOR_SYSTEM,
                content=f"{provider.name} request failed, switching to fallback {fallback.name} ({fallback_model})..."
            ))
            await self._process_message(
                text,
                image_url,
                automated=automated,
                loop_count=loop_count,
                is_retry=True,
                reuse_user_message=True,
                provider=fallback,
                model=fallback_model,
                first_content_timeout=first_content_timeout
            )
            return

        state.add_message(UiMessage(author=AUTHOR_SYSTEM, content=describe_error(error)))
        state.set_generating(False)

    async def _finish_cancelled(self, stream: StreamTask | None) -> None:
        state = self._state
        if stream is not None and not stream.terminal:
            stream.terminal = True
            stream.cancelled = True
            if state.active_stream is stream:
                state.active_stream = None

            await self._handler.stop_hint(stream)
            if stream.text:
                await self._settle_placeholder(stream, f"{stream.text} {CANCELLED_MARKER}")
            elif stream.hint_shown:
                await self._settle_placeholder(stream, CANCELLED_MARKER)
            else:
                await self._settle_placeholder(stream, "")
            state.phase = TurnPhase.CANCELLED
            logger.debug("Session %s: turn cancelled", state.session_id)

        state.set_generating(False)

    async def _settle_placeholder(self, stream: StreamTask, content: str) -> None:
        """Give the reply placeholder its final content, or remove it when empty."""
        state = self._state
        message = state.message_at(stream.message_index)
        if message is None or not message.is_assistant:
            return

        if content:
            state.replace_content(stream.message_index, content)
            state.set_loading(stream.message_index, False)
            await self._handler.persist(stream, content=content, force=True)
            return

        state.remove_at(stream.message_index)
        try:
            await self._gateway.remove_last_assistant_message(state.session_id)
        except Exception as e:
            logger.warning("Failed to remove persisted placeholder: %s", e)

    async def _complete(
        self,
        provider: AnyProvider,
        messages: Sequence[ChatMessage],
        params: GenerationParams
    ) -> str:
        """Hidden request on a throw-away task id; returns the whole reply."""
        codec = create_codec(provider)
        request = codec.build_request(provider, messages, params)
        client = await self._pool.get(provider)
        deltas = []
        async for delta in decode_stream(codec, client.open(request, uuid4().hex)):
            deltas.append(delta)
        return "".join(deltas)

    async def _retrieve(self, text: str) -> str:
        try:
            return await self._retriever(text)
        except Exception:
            logger.exception("Knowledge retrieval failed")
            return ""

    async def _maybe_rename(self, text: str) -> None:
        state = self._state
        if state.channel_name != NEW_CHAT_NAME:
            return
        # Only the first user message names the chat.
        if sum(1 for m in state.messages if m.is_user) > 1:
            return
        title = text[:SESSION_TITLE_LENGTH].strip()
        if not title:
            return
        state.channel_name = title
        await self._notify(self._on_rename, state.session_id, title)

    async def _append_persisted(self, item: StoredMessage) -> None:
        try:
            await self._gateway.append_message(self._state.session_id, item)
        except Exception as e:
            logger.warning("Failed to persist message for session %s: %s", self._state.session_id, e)

    @staticmethod
    async def _notify(callback: Callable | None, *args) -> None:
        if callback is None:
            return
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
