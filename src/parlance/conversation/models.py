"""Conversation data models.

These models define messages and the append-only conversation they live
in, independent of how a rendering layer displays them.
"""

import itertools
from collections.abc import Iterator
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..blocks import CitationBlock, CodeBlock, ContentBlock, FileDownloadBlock, TextBlock, block_plain_text
from ..errors import UnknownMessageError
from ..llm.models import ProviderMessage


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A message in the conversation.

    Published messages are immutable except for ``feedback``
    and the execution status of their code blocks.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(description="Unique within the conversation")
    role: Role
    blocks: list[ContentBlock] = Field(default_factory=list)
    feedback: bool | None = Field(default=None, description="None = unrated, True = up, False = down")
    model_name: str = Field(description="Model that produced the message, or 'user'")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    in_reply_to: str | None = Field(
        default=None,
        description="For assistant messages, the id of the prompt that produced it"
    )
    branch_of: str | None = Field(
        default=None,
        description="For regenerated or edited prompts, the id of the prompt branched from"
    )

    def __setattr__(self, name: str, value: Any) -> None:
        # Published messages only change through their rating
        if name != "feedback":
            raise AttributeError(f"ChatMessage.{name} is read-only")
        super().__setattr__(name, value)

    @classmethod
    def user(cls, message_id: str, prompt: str, branch_of: str | None = None) -> "ChatMessage":
        return cls(
            id=message_id,
            role=Role.USER,
            blocks=[TextBlock(text=prompt)],
            model_name="user",
            branch_of=branch_of,
        )

    @property
    def text(self) -> str:
        """Markup equivalent of the blocks, used as provider context."""
        parts: list[str] = []
        for block in self.blocks:
            rendered = block_plain_text(block)
            if isinstance(block, CodeBlock):
                if parts and not parts[-1].endswith("\n"):
                    rendered = "\n" + rendered
                rendered += "\n"
            parts.append(rendered)
        return "".join(parts)

    def full_text(self) -> str:
        """Copy-friendly text: block contents separated by blank lines."""
        rendered = []
        for block in self.blocks:
            if isinstance(block, TextBlock):
                rendered.append(block.text)
            elif isinstance(block, CodeBlock):
                rendered.append(block.code)
            elif isinstance(block, CitationBlock):
                rendered.append(f"[{block.index}]")
            elif isinstance(block, FileDownloadBlock):
                rendered.append(f"[File: {block.name}]")
        return "\n\n".join(rendered)

    def code_blocks(self) -> list[tuple[int, CodeBlock]]:
        """Code blocks with their positions in ``blocks``."""
        return [(i, b) for i, b in enumerate(self.blocks) if isinstance(b, CodeBlock)]


class Conversation:
    """Ordered, append-only sequence of messages.

    Editing or regenerating never mutates or removes an entry; a new user
    message with ``branch_of`` set is appended instead.
    """

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []
        self._by_id: dict[str, ChatMessage] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def next_id(self) -> str:
        """Allocate the next message id."""
        return f"msg-{next(self._ids)}"

    def append(self, message: ChatMessage) -> None:
        if message.id in self._by_id:
            raise ValueError(f"Duplicate message id: {message.id}")
        self._messages.append(message)
        self._by_id[message.id] = message

    def get(self, message_id: str) -> ChatMessage:
        try:
            return self._by_id[message_id]
        except KeyError:
            raise UnknownMessageError(f"No message with id {message_id!r}") from None

    def prompt_for(self, message_id: str) -> ChatMessage:
        """Resolve the user prompt behind a message.

        For a user message this is the message itself; for an assistant
        message it is the prompt it replied to.
        """
        message = self.get(message_id)
        if message.role == Role.USER:
            return message
        if message.in_reply_to is None:
            raise UnknownMessageError(f"Message {message_id!r} has no originating prompt")
        return self.get(message.in_reply_to)

    def branches(self, message_id: str) -> list[ChatMessage]:
        """All user prompts sharing a branch root with the given prompt."""
        root = self._root(self.prompt_for(message_id))
        return [
            m for m in self._messages
            if m.role == Role.USER and self._root(m).id == root.id
        ]

    def replies_to(self, message_id: str) -> list[ChatMessage]:
        return [m for m in self._messages if m.in_reply_to == message_id]

    def _root(self, message: ChatMessage) -> ChatMessage:
        while message.branch_of is not None and message.branch_of in self._by_id:
            message = self._by_id[message.branch_of]
        return message

    def to_provider_messages(self) -> list[ProviderMessage]:
        """Full ordered history in provider format."""
        return [ProviderMessage(role=m.role.value, content=m.text) for m in self._messages]
