"""Content block models.

A rendered assistant message is an ordered list of blocks. Blocks are a
tagged union on ``type`` so they serialize cleanly for a rendering layer.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class ExecutionState(str, Enum):
    """Run lifecycle of a code block."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class ExecutionStatus(BaseModel):
    """Current execution status of a code block.

    ``output`` is set for SUCCESS, ``message`` for ERROR.
    """

    model_config = ConfigDict(frozen=True)

    state: ExecutionState = ExecutionState.IDLE
    output: str | None = None
    message: str | None = None

    @classmethod
    def idle(cls) -> "ExecutionStatus":
        return cls()

    @classmethod
    def running(cls) -> "ExecutionStatus":
        return cls(state=ExecutionState.RUNNING)

    @classmethod
    def success(cls, output: str) -> "ExecutionStatus":
        return cls(state=ExecutionState.SUCCESS, output=output)

    @classmethod
    def error(cls, message: str) -> "ExecutionStatus":
        return cls(state=ExecutionState.ERROR, message=message)

    @property
    def is_running(self) -> bool:
        return self.state == ExecutionState.RUNNING


class TextBlock(BaseModel):
    """A run of plain (markdown) text."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class CodeBlock(BaseModel):
    """A fenced code region.

    ``status`` is the only mutable field and is owned by the execution
    state machine.
    """

    model_config = ConfigDict(validate_assignment=True)

    type: Literal["code"] = "code"
    language: str = Field(default="", description="Language from the fence info string, may be empty")
    code: str
    is_executable: bool = False
    status: ExecutionStatus = Field(default_factory=ExecutionStatus.idle)


class CitationBlock(BaseModel):
    """An inline citation marker ``[^n]``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["citation"] = "citation"
    index: int = Field(ge=1)


class FileDownloadBlock(BaseModel):
    """An inline download marker ``[file:name|kind|size]``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["file_download"] = "file_download"
    name: str
    kind: str
    size_bytes: int = Field(ge=0)

    @property
    def display_size(self) -> str:
        """Human readable size (B, KB, MB)."""
        if self.size_bytes < 1024:
            return f"{self.size_bytes} B"
        if self.size_bytes < 1024 * 1024:
            return f"{self.size_bytes / 1024:.1f} KB"
        return f"{self.size_bytes / (1024 * 1024):.1f} MB"


ContentBlock = Annotated[
    TextBlock | CodeBlock | CitationBlock | FileDownloadBlock,
    Field(discriminator="type"),
]


def block_plain_text(block: TextBlock | CodeBlock | CitationBlock | FileDownloadBlock) -> str:
    """Render one block back to the markup it was parsed from."""
    if isinstance(block, TextBlock):
        return block.text
    if isinstance(block, CodeBlock):
        info = block.language
        if block.is_executable:
            info = f"{info} exec".strip()
        return f"```{info}\n{block.code}\n```"
    if isinstance(block, CitationBlock):
        return f"[^{block.index}]"
    return f"[file:{block.name}|{block.kind}|{block.size_bytes}]"
