"""HTTP endpoint provider.

Talks to a backend that accepts ``POST {prompt, history}`` and streams
its answer back as ``{"candidate": ...}`` / ``{"result": ...}`` payloads,
possibly wrapped in a JSON array. The response bytes are forwarded
untouched; framing is the decoder's concern.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ...errors import ProviderError
from ..base import ModelProvider
from ..models import FragmentStream, ProviderMessage

logger = logging.getLogger(__name__)


class HttpProvider(ModelProvider):
    """Model provider backed by a streaming HTTP endpoint.

    Hidden design decisions:
    - httpx.AsyncClient ownership (closed only if created here)
    - Request body layout: the last user message is the prompt, everything
      before it is history
    - Error status responses are read in full and raised as ProviderError
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        model: str = "remote",
        timeout: float = 60.0,
        path: str = "/prompt",
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize HTTP provider.

        Args:
            base_url: Endpoint base URL
            api_key: Optional bearer token
            model: Name reported for messages produced by this endpoint
            timeout: Request timeout in seconds
            path: Path the prompt is posted to
            client: Optional pre-configured client (not closed by close())
        """
        self._model = model
        self._path = path
        self._owns_client = client is None

        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers

        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @property
    def model(self) -> str:
        return self._model

    @staticmethod
    def build_request_body(messages: list[ProviderMessage], model: str) -> dict[str, Any]:
        """Split history into the prompt and the preceding messages."""
        if not messages:
            raise ValueError("At least one message is required")
        *history, prompt = messages
        return {
            "prompt": prompt.content,
            "history": [{"role": m.role, "content": m.content} for m in history],
            "model": model,
        }

    async def stream(
        self,
        messages: list[ProviderMessage],
        **kwargs: Any
    ) -> FragmentStream:
        """Post the prompt and stream the response body.

        Args:
            messages: Conversation history ending with the prompt
            **kwargs: Extra fields merged into the request body

        Returns:
            FragmentStream yielding raw response bytes
        """
        body = self.build_request_body(messages, self._model)
        body.update(kwargs)
        return FragmentStream(self._stream_generator(body))

    async def _stream_generator(self, body: dict[str, Any]) -> AsyncIterator[bytes]:
        try:
            async with self._client.stream("POST", self._path, json=body, headers=self._headers) as response:
                if response.is_error:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    logger.warning("Endpoint returned %d: %.200s", response.status_code, detail)
                    raise ProviderError(f"Endpoint returned {response.status_code}: {detail[:200]}")
                async for chunk in response.aiter_bytes():
                    if chunk:
                        yield chunk
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {self._path} failed: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
