"""Runtime configuration.

All knobs the core needs (provider, credentials, model, timeouts, decoder
threshold) live in one model that is injected at construction time. Nothing
below this module reads the environment.
"""

import os

from pydantic import BaseModel, ConfigDict, Field

# Environment variable holding the API key for each provider
PROVIDER_KEY_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "http": "PARLANCE_HTTP_API_KEY",
}

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
    "http": "remote",
}


class ParlanceSettings(BaseModel):
    """Settings for a conversation session."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(default="gemini", description="Provider type: gemini, openai or http")
    api_key: str | None = Field(default=None, description="Provider API key")
    model: str = Field(default="gemini-2.5-flash", description="Model identifier")
    base_url: str | None = Field(
        default=None,
        description="Endpoint URL (required for the http provider, optional for openai)"
    )
    fragment_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds to wait for the next response fragment before failing the turn"
    )
    fallback_threshold: int = Field(
        default=65536,
        ge=1,
        description="Characters buffered without a decodable payload before raw fallback"
    )
    execution_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds a local code run may take"
    )
    log_level: str = Field(default="WARNING", description="Log level for the CLI")

    @classmethod
    def from_env(cls, **overrides: object) -> "ParlanceSettings":
        """Build settings from environment variables.

        Environment variables:
            PARLANCE_PROVIDER: Provider type (default: gemini)
            GEMINI_API_KEY / OPENAI_API_KEY / PARLANCE_HTTP_API_KEY: Provider key
            PARLANCE_MODEL: Model identifier (default depends on provider)
            PARLANCE_BASE_URL: Endpoint URL
            PARLANCE_FRAGMENT_TIMEOUT: Seconds (default: 60)
            PARLANCE_FALLBACK_THRESHOLD: Characters (default: 65536)
            PARLANCE_EXECUTION_TIMEOUT: Seconds (default: 30)
            PARLANCE_LOG_LEVEL: Log level (default: WARNING)

        Explicit keyword overrides win over the environment. Callers are
        expected to have loaded any .env file beforehand.
        """
        provider = str(overrides.pop("provider", None) or os.getenv("PARLANCE_PROVIDER", "gemini")).lower()
        key_var = PROVIDER_KEY_VARS.get(provider)

        values: dict[str, object] = {
            "provider": provider,
            "api_key": os.getenv(key_var) if key_var else None,
            "model": os.getenv("PARLANCE_MODEL", DEFAULT_MODELS.get(provider, "gemini-2.5-flash")),
            "base_url": os.getenv("PARLANCE_BASE_URL"),
            "fragment_timeout": float(os.getenv("PARLANCE_FRAGMENT_TIMEOUT", "60")),
            "fallback_threshold": int(os.getenv("PARLANCE_FALLBACK_THRESHOLD", "65536")),
            "execution_timeout": float(os.getenv("PARLANCE_EXECUTION_TIMEOUT", "30")),
            "log_level": os.getenv("PARLANCE_LOG_LEVEL", "WARNING"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
