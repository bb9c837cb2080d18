"""Execution state machine for code blocks.

Hidden design decisions:
- Blocks are keyed by (message_id, block_index); the machine is the only
  writer of each block's ``status``
- Running blocks are held strongly; finished blocks only weakly, so the
  machine never outlives the messages that own them
- Rejected transitions leave the block untouched
- Executor failures end up as an Error status on that block only
"""

import asyncio
import logging
import weakref

from ..blocks import CodeBlock, ExecutionStatus
from ..conversation.events import EventStream, ExecutionStatusChanged
from ..errors import BlockBusyError, NotExecutableError
from .base import CodeExecutor, ExecutionResult
from .local import SubprocessExecutor

logger = logging.getLogger(__name__)

BlockKey = tuple[str, int]


class ExecutionStateMachine:
    """Tracks the run lifecycle of executable code blocks.

    Idle -> Running -> Success | Error, and Success | Error -> Running on
    re-run. At most one Running state per block at a time.
    """

    def __init__(self, executor: CodeExecutor | None = None, events: EventStream | None = None):
        self._executor = executor or SubprocessExecutor()
        self._events = events
        self._running: dict[BlockKey, CodeBlock] = {}
        self._finished: weakref.WeakValueDictionary[BlockKey, CodeBlock] = weakref.WeakValueDictionary()

    def status(self, key: BlockKey) -> ExecutionStatus:
        """Current status of a block; unknown blocks are idle."""
        block = self._running.get(key)
        if block is None:
            block = self._finished.get(key)
        return block.status if block is not None else ExecutionStatus.idle()

    def is_running(self, key: BlockKey) -> bool:
        return self.status(key).is_running

    def begin(self, key: BlockKey, block: CodeBlock) -> None:
        """Move a block to Running.

        Raises:
            NotExecutableError: The block is not marked executable
            BlockBusyError: The block is already running
        """
        if not block.is_executable:
            raise NotExecutableError(f"Block {key[1]} of {key[0]} is not executable")
        if block.status.is_running:
            raise BlockBusyError(f"Block {key[1]} of {key[0]} is already running")

        self._finished.pop(key, None)
        self._running[key] = block
        self._transition(key, ExecutionStatus.running())

    def complete(self, key: BlockKey, output: str) -> None:
        """Record a successful run."""
        self._require_running(key)
        self._transition(key, ExecutionStatus.success(output))
        self._release(key)

    def fail(self, key: BlockKey, message: str) -> None:
        """Record a failed run."""
        self._require_running(key)
        self._transition(key, ExecutionStatus.error(message))
        self._release(key)

    async def execute(self, key: BlockKey) -> ExecutionStatus:
        """Run a block that was already moved to Running by ``begin``."""
        self._require_running(key)
        block = self._running[key]

        try:
            result = await self._executor.execute(block.language, block.code)
        except asyncio.CancelledError:
            self.fail(key, "Execution cancelled")
            raise
        except Exception as e:
            logger.warning("Executor raised for block %s: %s", key, e)
            self.fail(key, str(e) or e.__class__.__name__)
            return block.status

        self.record(key, result)
        return block.status

    def record(self, key: BlockKey, result: ExecutionResult) -> None:
        """Apply an executor result to a running block."""
        if result.ok:
            self.complete(key, result.output)
        else:
            self.fail(key, result.error_text)

    async def run(self, key: BlockKey, block: CodeBlock) -> ExecutionStatus:
        """Begin, execute and record a run of a block."""
        self.begin(key, block)
        return await self.execute(key)

    def _require_running(self, key: BlockKey) -> None:
        block = self._running.get(key)
        if block is None or not block.status.is_running:
            raise ValueError(f"Block {key[1]} of {key[0]} is not running")

    def _release(self, key: BlockKey) -> None:
        self._finished[key] = self._running.pop(key)

    def _transition(self, key: BlockKey, status: ExecutionStatus) -> None:
        block = self._running[key]
        block.status = status
        logger.debug("Block %s -> %s", key, status.state.value)
        if self._events is not None:
            self._events.publish(ExecutionStatusChanged(
                message_id=key[0],
                block_index=key[1],
                status=status,
            ))
