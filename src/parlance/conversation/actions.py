"""User actions and their dispatcher.

Actions are what a rendering layer sends back when the user clicks
something on a message. The dispatcher validates them against the
conversation and routes them to the orchestrator or the execution state
machine; it never raises for a rejected action.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..blocks import CodeBlock
from ..errors import ErrorKind, NotExecutableError, ParlanceError
from .orchestrator import ConversationOrchestrator

if TYPE_CHECKING:
    from ..execution import ExecutionStateMachine

logger = logging.getLogger(__name__)


class CopyText(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["copy_text"] = "copy_text"
    text: str


class ExecuteCode(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["execute_code"] = "execute_code"
    message_id: str
    block_index: int = Field(ge=0)


class RateMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["rate_message"] = "rate_message"
    message_id: str
    positive: bool


class Regenerate(BaseModel):
    """Re-submit the prompt behind a message as a new branch."""

    model_config = ConfigDict(frozen=True)

    type: Literal["regenerate"] = "regenerate"
    message_id: str


class EditMessage(BaseModel):
    """Submit an edited version of a prompt as a new branch."""

    model_config = ConfigDict(frozen=True)

    type: Literal["edit_message"] = "edit_message"
    message_id: str
    content: str = Field(min_length=1)


Action = Annotated[
    CopyText | ExecuteCode | RateMessage | Regenerate | EditMessage,
    Field(discriminator="type"),
]


@dataclass
class ActionAck:
    """Result of dispatching an action.

    ``pending`` holds the task or turn started by the action, if any.
    """

    action: Any
    accepted: bool
    error: ErrorKind | None = None
    detail: str = ""
    pending: Any = None


class ActionDispatcher:
    """Routes user actions to the orchestrator and the execution state machine."""

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        machine: "ExecutionStateMachine",
        clipboard: Callable[[str], None] | None = None,
    ):
        self._orchestrator = orchestrator
        self._machine = machine
        self._clipboard = clipboard

    def dispatch(self, action: Action) -> ActionAck:
        """Handle one action.

        Must be called from the event loop thread when the action starts
        a turn or a code run.
        """
        handlers: dict[type, Callable[[Any], Any]] = {
            CopyText: self._copy,
            ExecuteCode: self._execute,
            RateMessage: self._rate,
            Regenerate: self._regenerate,
            EditMessage: self._edit,
        }
        handler = handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unsupported action: {type(action).__name__}")

        try:
            pending = handler(action)
        except ParlanceError as e:
            logger.info("Rejected %s: %s", action.type, e)
            return ActionAck(action, accepted=False, error=e.kind, detail=str(e))
        return ActionAck(action, accepted=True, pending=pending)

    def _copy(self, action: CopyText) -> None:
        if self._clipboard is not None:
            self._clipboard(action.text)

    def _execute(self, action: ExecuteCode) -> asyncio.Task:
        message = self._orchestrator.message(action.message_id)
        if action.block_index >= len(message.blocks):
            raise NotExecutableError(f"Message {message.id} has no block {action.block_index}")
        block = message.blocks[action.block_index]
        if not isinstance(block, CodeBlock):
            raise NotExecutableError(f"Block {action.block_index} of {message.id} is not code")

        loop = asyncio.get_running_loop()
        key = (message.id, action.block_index)
        self._machine.begin(key, block)
        return loop.create_task(self._machine.execute(key))

    def _rate(self, action: RateMessage) -> None:
        self._orchestrator.message(action.message_id).feedback = action.positive

    def _regenerate(self, action: Regenerate):
        prompt = self._orchestrator.prompt_for(action.message_id)
        return self._orchestrator.submit(prompt.full_text(), branch_of=prompt.id)

    def _edit(self, action: EditMessage):
        prompt = self._orchestrator.prompt_for(action.message_id)
        return self._orchestrator.submit(action.content, branch_of=prompt.id)
