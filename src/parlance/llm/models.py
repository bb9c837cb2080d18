import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FragmentStream:
    """Wrapper for a provider response stream that captures usage info.

    Acts as an async iterator over raw fragments (bytes or text in the
    ``{"candidate": ...}`` / ``{"result": ...}`` wire format) while storing
    token usage that becomes available at the end of the stream.

    Usage:
        stream = await provider.stream(messages)
        try:
            async for fragment in stream:
                decoder.feed(fragment)
        finally:
            await stream.aclose()
        print(stream.usage)
    """

    def __init__(self, async_iter: AsyncIterator[bytes | str]):
        """Initialize with an async iterator of raw fragments.

        Args:
            async_iter: Async iterator yielding response fragments
        """
        self._iter = async_iter
        self._usage: dict[str, Any] | None = None
        self._closed = False

    @classmethod
    def from_generator(
        cls,
        generate: Callable[["FragmentStream"], AsyncIterator[bytes | str]]
    ) -> "FragmentStream":
        """Create a stream whose generator is handed the stream it feeds.

        Lets each provider generator record usage on its own stream
        rather than on shared provider state.
        """
        stream = cls.__new__(cls)
        stream.__init__(generate(stream))
        return stream

    @property
    def usage(self) -> dict[str, Any] | None:
        """Get token usage info (available after iteration completes)."""
        return self._usage

    @property
    def closed(self) -> bool:
        return self._closed

    def set_usage(self, usage: dict[str, Any]) -> None:
        """Set token usage info (called by provider at end of stream)."""
        self._usage = usage

    def __aiter__(self) -> "FragmentStream":
        return self

    async def __anext__(self) -> bytes | str:
        if self._closed:
            raise StopAsyncIteration
        return await self._iter.__anext__()

    async def aclose(self) -> None:
        """Release the underlying stream, abandoning any unread fragments."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._iter, "aclose", None)
        if aclose is not None:
            await aclose()


class ProviderMessage(BaseModel):
    """A message in the history sent to a model provider."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")


def encode_fragment(text: str, final: bool = False) -> str:
    """Encode text as one newline-delimited wire payload.

    Providers whose SDKs yield plain text use this so every provider
    speaks the same wire format to the decoder.
    """
    key = "result" if final else "candidate"
    return json.dumps({key: text}) + "\n"
