from typing import Any

from .base import ModelProvider
from .providers import GeminiProvider, HttpProvider, OpenAIProvider


def create_model_provider(provider: str, **config: Any) -> ModelProvider:
    """Create a model provider instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('gemini', 'openai', 'http')
        **config: Provider-specific configuration
            For Gemini:
                - api_key: str (required)
                - model: str (default: 'gemini-2.5-flash')
            For OpenAI:
                - api_key: str (required)
                - model: str (default: 'gpt-4o-mini')
                - base_url: str | None
            For HTTP:
                - base_url: str (required)
                - api_key: str | None
                - model: str (default: 'remote')
                - timeout: float (default: 60)

    Returns:
        Initialized model provider instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> provider = create_model_provider(
        ...     "gemini",
        ...     api_key="...",
        ...     model="gemini-2.5-flash"
        ... )

        >>> provider = create_model_provider(
        ...     "http",
        ...     base_url="http://localhost:8080"
        ... )
    """
    provider_lower = provider.lower()

    if provider_lower == "gemini":
        if not config.get("api_key"):
            raise TypeError("Gemini provider requires 'api_key' in config")
        config.pop("base_url", None)
        return GeminiProvider(**config)

    if provider_lower == "openai":
        if not config.get("api_key"):
            raise TypeError("OpenAI provider requires 'api_key' in config")
        return OpenAIProvider(**config)

    if provider_lower == "http":
        if not config.get("base_url"):
            raise TypeError("HTTP provider requires 'base_url' in config")
        return HttpProvider(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'gemini', 'openai', 'http'"
    )
