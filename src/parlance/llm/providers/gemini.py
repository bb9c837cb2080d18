"""Google Gemini model provider implementation.

Uses the official Google GenAI SDK for async streaming completions.
Reference: https://github.com/googleapis/python-genai

Note: Gemini can return empty chunks due to safety filtering; those are
skipped rather than forwarded as empty candidates.
"""

from collections.abc import AsyncIterator
from typing import Any

import httpx
from google import genai
from google.genai import errors, types

from ...errors import ProviderError
from ..base import ModelProvider
from ..models import FragmentStream, ProviderMessage, encode_fragment

# Default safety settings - relaxed to avoid blocking code-related content
DEFAULT_SAFETY_SETTINGS = [
    types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_ONLY_HIGH"),
]


class GeminiProvider(ModelProvider):
    """Google Gemini model provider implementation.

    Hidden design decisions:
    - Google GenAI client initialization
    - History conversion (assistant turns become 'model' turns)
    - Relaxed safety settings to avoid blocking code content
    - Each text chunk is re-encoded as a candidate payload
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.7,
        **client_kwargs: Any
    ):
        """Initialize Gemini provider.

        Args:
            api_key: Google AI API key
            model: Default model (gemini-2.5-flash, gemini-2.5-pro)
            temperature: Sampling temperature
            **client_kwargs: Additional kwargs for Client
        """
        self._model = model
        self._temperature = temperature
        self._client = genai.Client(api_key=api_key, **client_kwargs)

    @property
    def model(self) -> str:
        return self._model

    def _convert_messages(self, messages: list[ProviderMessage]) -> tuple[str | None, list[types.Content]]:
        """Convert history to Gemini format.

        Returns:
            Tuple of (system_instruction, contents)
        """
        system_instruction = None
        contents = []

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            elif msg.role == "user":
                contents.append(types.Content(
                    role="user",
                    parts=[types.Part(text=msg.content)]
                ))
            elif msg.role == "assistant":
                contents.append(types.Content(
                    role="model",
                    parts=[types.Part(text=msg.content)]
                ))

        return system_instruction, contents

    def _extract_content(self, response) -> str:
        """Extract text content from a Gemini chunk, handling empty chunks."""
        if response.candidates and len(response.candidates) > 0:
            candidate = response.candidates[0]
            if candidate.content and candidate.content.parts:
                texts = [part.text for part in candidate.content.parts if getattr(part, "text", None)]
                if texts:
                    return "".join(texts)

        try:
            return response.text or ""
        except (ValueError, AttributeError):
            return ""

    async def stream(
        self,
        messages: list[ProviderMessage],
        **kwargs: Any
    ) -> FragmentStream:
        """Start a streaming completion using Google Gemini.

        Args:
            messages: Conversation history
            **kwargs: Additional GenerateContentConfig parameters

        Returns:
            FragmentStream yielding candidate payloads
        """
        system_instruction, contents = self._convert_messages(messages)

        # mode=NONE prevents UNEXPECTED_TOOL_CALL when prompts contain function-like syntax
        tool_config = types.ToolConfig(
            function_calling_config=types.FunctionCallingConfig(mode="NONE")
        )
        config = types.GenerateContentConfig(
            temperature=kwargs.pop("temperature", self._temperature),
            system_instruction=system_instruction,
            safety_settings=DEFAULT_SAFETY_SETTINGS,
            tool_config=tool_config,
            **kwargs
        )

        return FragmentStream.from_generator(
            lambda response: self._stream_generator(contents, config, response)
        )

    async def _stream_generator(
        self,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
        response: FragmentStream,
    ) -> AsyncIterator[str]:
        """Internal generator that yields payloads and captures usage from chunks."""
        usage = None

        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=self._model, contents=contents, config=config
            )
            async for chunk in stream:
                if chunk.usage_metadata:
                    usage = {
                        "prompt_tokens": chunk.usage_metadata.prompt_token_count or 0,
                        "completion_tokens": chunk.usage_metadata.candidates_token_count or 0,
                        "total_tokens": chunk.usage_metadata.total_token_count or 0,
                    }

                text = self._extract_content(chunk)
                if text:
                    yield encode_fragment(text)
        except (errors.APIError, httpx.HTTPError) as e:
            raise ProviderError(f"Gemini request failed: {e}") from e

        if usage:
            response.set_usage(usage)

    async def close(self) -> None:
        """Close the Gemini client.

        Note: The Google GenAI client doesn't require explicit closing,
        but we implement this for interface consistency.
        """
        pass
