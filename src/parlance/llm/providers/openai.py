from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from ...errors import ProviderError
from ..base import ModelProvider
from ..models import FragmentStream, ProviderMessage, encode_fragment


class OpenAIProvider(ModelProvider):
    """OpenAI model provider implementation.

    Hidden design decisions:
    - OpenAI API client initialization
    - Chat Completions streaming with usage in the final chunk
    - Each content delta is re-encoded as a candidate payload
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        organization: str | None = None,
        temperature: float = 0.7,
        **client_kwargs: Any
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Default model to use
            base_url: Optional custom API base URL (OpenAI-compatible servers)
            organization: Optional organization ID
            temperature: Sampling temperature
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._temperature = temperature
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        return self._model

    async def stream(
        self,
        messages: list[ProviderMessage],
        **kwargs: Any
    ) -> FragmentStream:
        """Start a streaming completion using OpenAI.

        Args:
            messages: Conversation history
            **kwargs: Additional Chat Completions parameters

        Returns:
            FragmentStream yielding candidate payloads
        """
        request_params: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            "temperature": kwargs.pop("temperature", self._temperature),
            "stream": True,
            "stream_options": {"include_usage": True},
            **kwargs
        }

        return FragmentStream.from_generator(
            lambda response: self._chat_stream_generator(request_params, response)
        )

    async def _chat_stream_generator(
        self,
        request_params: dict[str, Any],
        response: FragmentStream,
    ) -> AsyncIterator[str]:
        """Internal generator for Chat Completions streaming with usage capture."""
        try:
            stream = await self._client.chat.completions.create(**request_params)
            async for chunk in stream:
                if chunk.usage is not None:
                    response.set_usage({
                        "prompt_tokens": chunk.usage.prompt_tokens,
                        "completion_tokens": chunk.usage.completion_tokens,
                        "total_tokens": chunk.usage.total_tokens,
                    })

                if chunk.choices and chunk.choices[0].delta.content:
                    yield encode_fragment(chunk.choices[0].delta.content)
        except openai.APIError as e:
            raise ProviderError(f"OpenAI request failed: {e}") from e

    async def close(self) -> None:
        """Close the OpenAI client."""
        await self._client.close()
