from abc import ABC, abstractmethod
from typing import Any

from .models import FragmentStream, ProviderMessage


class ModelProvider(ABC):
    """Abstract base class for model providers.

    This module hides the design decision of which remote model answers a
    prompt. Implementations must handle provider-specific details like:
    - API client setup and authentication
    - Request format conversion
    - Mapping transport failures to ProviderError

    Every provider yields raw fragments in the same wire format, so the
    stream decoder never needs to know which provider produced them.

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            stream = await provider.stream(messages)
        # Automatically cleaned up
    """

    @property
    @abstractmethod
    def model(self) -> str:
        """Name of the model answering prompts."""
        pass

    @abstractmethod
    async def stream(
        self,
        messages: list[ProviderMessage],
        **kwargs: Any
    ) -> FragmentStream:
        """Start a streaming completion.

        Args:
            messages: Full ordered conversation history, ending with the
                prompt to answer
            **kwargs: Provider-specific parameters

        Returns:
            FragmentStream yielding raw response fragments. After
            iteration, access usage via stream.usage

        Raises:
            ProviderError: If the request fails before or during streaming
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""
        pass

    async def __aenter__(self) -> "ModelProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
