from .base import CodeExecutor, ExecutionResult
from .local import INTERPRETERS, SubprocessExecutor
from .machine import BlockKey, ExecutionStateMachine

__all__ = [
    "BlockKey",
    "CodeExecutor",
    "ExecutionResult",
    "ExecutionStateMachine",
    "INTERPRETERS",
    "SubprocessExecutor",
]
