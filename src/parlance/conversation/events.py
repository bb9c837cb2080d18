"""Lifecycle events and the outbound event stream.

The orchestrator and the execution state machine publish events here;
rendering layers subscribe. The stream is ordered and broadcast: every
subscriber sees every event published after it subscribed, in order.
Closing the stream ends all subscriptions.
"""

import asyncio
import logging
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..blocks import ExecutionStatus
from ..errors import ErrorKind
from ..streaming import FragmentKind
from .models import ChatMessage

logger = logging.getLogger(__name__)


class Processing(BaseModel):
    """A turn was accepted and the provider call is starting."""

    model_config = ConfigDict(frozen=True)

    type: Literal["processing"] = "processing"
    turn_id: str
    prompt_id: str


class FragmentDecoded(BaseModel):
    """Part of the response became decodable."""

    model_config = ConfigDict(frozen=True)

    type: Literal["fragment"] = "fragment"
    turn_id: str
    kind: FragmentKind
    text: str


class AssistantMessageReady(BaseModel):
    """The turn completed and its assistant message was appended."""

    model_config = ConfigDict(frozen=True)

    type: Literal["assistant_message"] = "assistant_message"
    turn_id: str
    message: ChatMessage


class Failed(BaseModel):
    """The turn ended without an assistant message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["failed"] = "failed"
    turn_id: str
    kind: ErrorKind
    message: str = ""


class ExecutionStatusChanged(BaseModel):
    """A code block changed execution state."""

    model_config = ConfigDict(frozen=True)

    type: Literal["execution_status"] = "execution_status"
    message_id: str
    block_index: int
    status: ExecutionStatus


Event = Annotated[
    Processing | FragmentDecoded | AssistantMessageReady | Failed | ExecutionStatusChanged,
    Field(discriminator="type"),
]

_CLOSED: Any = object()


class Subscription:
    """An ordered view of the events published after subscribing.

    Iterate with ``async for``; iteration ends when the stream closes or
    the subscription is cancelled.
    """

    def __init__(self, stream: "EventStream"):
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue()
        self._done = False

    def _put(self, item: Any) -> None:
        self._queue.put_nowait(item)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Event:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._done = True
            raise StopAsyncIteration
        return item

    def drain(self) -> list[Event]:
        """Return every event already queued without waiting."""
        events = []
        while not self._done:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is _CLOSED:
                self._done = True
                break
            events.append(item)
        return events

    def cancel(self) -> None:
        """Stop receiving events."""
        self._stream._remove(self)
        self._put(_CLOSED)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cancel()


class EventStream:
    """Broadcast stream of lifecycle events."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._closed = False
        self._published = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def published_count(self) -> int:
        return self._published

    def subscribe(self) -> Subscription:
        if self._closed:
            raise RuntimeError("Event stream is closed")
        subscription = Subscription(self)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: Event) -> None:
        """Deliver an event to every current subscriber."""
        if self._closed:
            logger.debug("Dropping %s published after close", event.type)
            return
        self._published += 1
        for subscription in self._subscriptions:
            subscription._put(event)

    def close(self) -> None:
        """End the stream; all subscriptions finish iterating."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription._put(_CLOSED)
        self._subscriptions.clear()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
