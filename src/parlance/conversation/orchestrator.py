"""Conversation orchestrator.

Hidden design decisions:
- History and the idle/processing status are owned here and mutated only
  from the event loop thread
- One turn at a time: a second submit fails fast and touches nothing
- A turn either appends exactly one assistant message or none at all
- Cancellation marks the turn, resets the decoder and cancels the turn
  task, which closes the provider stream at the pending fragment await
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from ..blocks import ContentBlock, ContentBlockParser
from ..config import ParlanceSettings
from ..errors import BusyError, ErrorKind, NotProcessingError, ParlanceError
from ..llm.base import ModelProvider
from ..streaming import StreamDecoder
from .events import AssistantMessageReady, EventStream, Failed, FragmentDecoded, Processing
from .models import ChatMessage, Conversation, Role

logger = logging.getLogger(__name__)


class OrchestratorStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"


class TurnState(str, Enum):
    """How a turn ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TurnOutcome:
    """Result of one submit."""

    turn_id: str
    state: TurnState
    message: ChatMessage | None = None
    error: ErrorKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.state == TurnState.COMPLETED


class Turn:
    """Handle for an in-flight turn.

    Await it (or call ``wait()``) for the TurnOutcome.
    """

    def __init__(self, turn_id: str, prompt: ChatMessage):
        self.id = turn_id
        self.prompt = prompt
        self.cancelled = False
        self.task: asyncio.Task | None = None

    def done(self) -> bool:
        return self.task is not None and self.task.done()

    async def wait(self) -> TurnOutcome:
        if self.task is None:
            raise RuntimeError(f"{self.id} has not been started")
        try:
            return await self.task
        except asyncio.CancelledError:
            # Cancelled before the task got to run its first step
            if self.cancelled and self.task.cancelled():
                return TurnOutcome(self.id, TurnState.CANCELLED, error=ErrorKind.CANCELLED)
            raise

    def __await__(self):
        return self.wait().__await__()


class ConversationOrchestrator:
    """Drives conversation turns against a model provider.

    Usage:
        orchestrator = ConversationOrchestrator(provider, settings)
        subscription = orchestrator.events.subscribe()
        turn = orchestrator.submit("Hello")
        outcome = await turn
    """

    def __init__(
        self,
        provider: ModelProvider,
        settings: ParlanceSettings | None = None,
        *,
        parser: ContentBlockParser | None = None,
        events: EventStream | None = None,
        conversation: Conversation | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            provider: Model provider collaborator
            settings: Timeouts and decoder threshold (defaults if None)
            parser: Content block parser (default parser if None)
            events: Event stream to publish to (new stream if None)
            conversation: Existing conversation to continue (new if None)
        """
        self._provider = provider
        self._settings = settings or ParlanceSettings()
        self._parser = parser or ContentBlockParser()
        self._events = events or EventStream()
        self._conversation = conversation or Conversation()
        self._decoder = StreamDecoder(fallback_threshold=self._settings.fallback_threshold)
        self._status = OrchestratorStatus.IDLE
        self._active: Turn | None = None
        self._turn_count = 0

    @property
    def events(self) -> EventStream:
        return self._events

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        return self._conversation.messages

    @property
    def status(self) -> OrchestratorStatus:
        return self._status

    @property
    def active_turn(self) -> Turn | None:
        return self._active

    def message(self, message_id: str) -> ChatMessage:
        return self._conversation.get(message_id)

    def prompt_for(self, message_id: str) -> ChatMessage:
        return self._conversation.prompt_for(message_id)

    def submit(self, prompt: str, *, branch_of: str | None = None) -> Turn:
        """Start a turn for a user prompt.

        Must be called from the event loop thread.

        Args:
            prompt: Prompt text
            branch_of: Id of the prompt this one regenerates or edits

        Returns:
            Turn handle resolving to a TurnOutcome

        Raises:
            BusyError: A turn is already in flight
            ValueError: The prompt is empty
            UnknownMessageError: branch_of names no message
        """
        loop = asyncio.get_running_loop()

        if self._active is not None:
            raise BusyError("A response is already being generated")
        if not prompt.strip():
            raise ValueError("Prompt must not be empty")
        if branch_of is not None:
            self._conversation.get(branch_of)

        user_message = ChatMessage.user(self._conversation.next_id(), prompt, branch_of=branch_of)
        self._conversation.append(user_message)

        self._turn_count += 1
        turn = Turn(f"turn-{self._turn_count}", user_message)
        self._active = turn
        self._status = OrchestratorStatus.PROCESSING
        self._decoder.reset()

        self._events.publish(Processing(turn_id=turn.id, prompt_id=user_message.id))
        turn.task = loop.create_task(self._run_turn(turn))
        return turn

    def cancel(self) -> None:
        """Abandon the in-flight turn.

        Raises:
            NotProcessingError: No turn is in flight
        """
        turn = self._active
        if turn is None:
            raise NotProcessingError("No response is being generated")

        logger.info("Cancelling %s", turn.id)
        turn.cancelled = True
        self._finish()
        self._events.publish(Failed(turn_id=turn.id, kind=ErrorKind.CANCELLED, message="Cancelled"))
        if turn.task is not None:
            turn.task.cancel()

    async def close(self) -> None:
        """Cancel any in-flight turn, close the provider and end the event stream."""
        turn = self._active
        if turn is not None:
            self.cancel()
            await turn.wait()
        await self._provider.close()
        self._events.close()

    async def _run_turn(self, turn: Turn) -> TurnOutcome:
        try:
            body = await self._receive(turn)
        except asyncio.CancelledError:
            if turn.cancelled:
                return TurnOutcome(turn.id, TurnState.CANCELLED, error=ErrorKind.CANCELLED)
            self._fail(turn, ErrorKind.CANCELLED, "Turn task cancelled")
            raise
        except asyncio.TimeoutError:
            detail = f"No response fragment within {self._settings.fragment_timeout:g}s"
            logger.warning("%s timed out: %s", turn.id, detail)
            return self._fail(turn, ErrorKind.TIMEOUT, detail)
        except ParlanceError as e:
            logger.warning("%s failed: %s", turn.id, e)
            return self._fail(turn, e.kind, str(e))
        except Exception as e:
            logger.exception("Unexpected error while streaming %s", turn.id)
            return self._fail(turn, ErrorKind.NETWORK_FAILURE, str(e) or e.__class__.__name__)

        if body is None or turn.cancelled:
            return TurnOutcome(turn.id, TurnState.CANCELLED, error=ErrorKind.CANCELLED)

        try:
            blocks = self._parser.parse(body)
        except Exception as e:
            logger.exception("Could not parse the response for %s", turn.id)
            return self._fail(turn, ErrorKind.MALFORMED_RESPONSE, f"Could not parse response: {e}")
        return self._complete(turn, blocks)

    async def _receive(self, turn: Turn) -> str | None:
        """Stream the response through the decoder.

        Returns the decoded body, or None if the turn was cancelled at a
        fragment boundary.
        """
        stream = await self._provider.stream(self._conversation.to_provider_messages())
        try:
            while True:
                try:
                    fragment = await asyncio.wait_for(
                        stream.__anext__(), timeout=self._settings.fragment_timeout
                    )
                except StopAsyncIteration:
                    break

                if turn.cancelled:
                    return None
                for decoded in self._decoder.feed(fragment):
                    self._events.publish(FragmentDecoded(turn_id=turn.id, kind=decoded.kind, text=decoded.text))

            for decoded in self._decoder.finish():
                self._events.publish(FragmentDecoded(turn_id=turn.id, kind=decoded.kind, text=decoded.text))
            return self._decoder.text
        finally:
            await stream.aclose()

    def _complete(self, turn: Turn, blocks: list[ContentBlock]) -> TurnOutcome:
        message = ChatMessage(
            id=self._conversation.next_id(),
            role=Role.ASSISTANT,
            blocks=blocks,
            model_name=self._provider.model,
            in_reply_to=turn.prompt.id,
        )
        self._conversation.append(message)
        self._finish()
        self._events.publish(AssistantMessageReady(turn_id=turn.id, message=message))
        logger.debug("%s completed with %d blocks", turn.id, len(message.blocks))
        return TurnOutcome(turn.id, TurnState.COMPLETED, message=message)

    def _fail(self, turn: Turn, kind: ErrorKind, detail: str) -> TurnOutcome:
        if self._active is turn:
            self._finish()
            self._events.publish(Failed(turn_id=turn.id, kind=kind, message=detail))
        return TurnOutcome(turn.id, TurnState.FAILED, error=kind, detail=detail)

    def _finish(self) -> None:
        self._active = None
        self._status = OrchestratorStatus.IDLE
        self._decoder.reset()
