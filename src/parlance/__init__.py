"""
Parlance: the conversation core of an LLM chat client.

Turns streamed model responses into ordered content blocks, drives one
conversation turn at a time, and tracks the run lifecycle of executable
code blocks. Each module hides a specific design decision.
"""

__version__ = "0.1.0"

from .blocks import (
    CitationBlock,
    CodeBlock,
    ContentBlock,
    ContentBlockParser,
    ExecutionStatus,
    FileDownloadBlock,
    TextBlock,
)
from .config import ParlanceSettings
from .conversation import (
    ActionDispatcher,
    ChatMessage,
    ConversationOrchestrator,
    EventStream,
)
from .errors import ErrorKind, ParlanceError
from .execution import ExecutionStateMachine, SubprocessExecutor
from .llm import ModelProvider, create_model_provider
from .streaming import StreamDecoder

__all__ = [
    "ActionDispatcher",
    "ChatMessage",
    "CitationBlock",
    "CodeBlock",
    "ContentBlock",
    "ContentBlockParser",
    "ConversationOrchestrator",
    "ErrorKind",
    "EventStream",
    "ExecutionStateMachine",
    "ExecutionStatus",
    "FileDownloadBlock",
    "ModelProvider",
    "ParlanceError",
    "ParlanceSettings",
    "StreamDecoder",
    "SubprocessExecutor",
    "TextBlock",
    "create_model_provider",
]
