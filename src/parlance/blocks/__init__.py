from .models import (
    CitationBlock,
    CodeBlock,
    ContentBlock,
    ExecutionState,
    ExecutionStatus,
    FileDownloadBlock,
    TextBlock,
    block_plain_text,
)
from .parser import ContentBlockParser, parse_blocks

__all__ = [
    "CitationBlock",
    "CodeBlock",
    "ContentBlock",
    "ContentBlockParser",
    "ExecutionState",
    "ExecutionStatus",
    "FileDownloadBlock",
    "TextBlock",
    "block_plain_text",
    "parse_blocks",
]
