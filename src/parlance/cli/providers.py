"""Provider factory functions for CLI.

Centralizes creation of settings, model providers and executors from
environment variables. Hides configuration details from command
implementations.
"""

import logging
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..config import PROVIDER_KEY_VARS, ParlanceSettings
from ..execution import SubprocessExecutor
from ..llm import ModelProvider, create_model_provider

# Default console for output
_console = Console()


def configure_logging(level: str, console: Console | None = None) -> None:
    """Route library logging through rich at the given level."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or _console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def get_settings(**overrides: Any) -> ParlanceSettings:
    """Create settings from environment variables and command-line overrides.

    Environment variables:
        PARLANCE_PROVIDER: Provider type (gemini, openai, http; default: gemini)
        GEMINI_API_KEY / OPENAI_API_KEY / PARLANCE_HTTP_API_KEY: Provider key
        PARLANCE_MODEL: Model identifier
        PARLANCE_BASE_URL: Endpoint URL (required for http)
        PARLANCE_FRAGMENT_TIMEOUT: Seconds to wait per fragment (default: 60)
        PARLANCE_EXECUTION_TIMEOUT: Seconds per code run (default: 30)
        PARLANCE_LOG_LEVEL: Log level (default: WARNING)
    """
    try:
        return ParlanceSettings.from_env(**overrides)
    except ValueError as e:
        _console.print(f"[red]Error: Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e


def get_provider(settings: ParlanceSettings, console: Console | None = None) -> ModelProvider:
    """Create the configured model provider.

    Args:
        settings: Session settings
        console: Optional Rich console for output

    Returns:
        Model provider instance

    Raises:
        SystemExit: If the provider's key or endpoint is not configured
    """
    con = console or _console
    provider = settings.provider

    if provider == "http":
        if not settings.base_url:
            con.print("[red]Error: PARLANCE_BASE_URL not set for the http provider[/red]")
            raise typer.Exit(code=1)
        return create_model_provider(
            "http",
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            timeout=settings.fragment_timeout,
        )

    if provider not in PROVIDER_KEY_VARS:
        con.print(f"[red]Error: Unknown provider: {provider}[/red]")
        raise typer.Exit(code=1)

    if not settings.api_key:
        con.print(f"[red]Error: {PROVIDER_KEY_VARS[provider]} not set in environment[/red]")
        raise typer.Exit(code=1)

    config: dict[str, Any] = {"api_key": settings.api_key, "model": settings.model}
    if provider == "openai" and settings.base_url:
        config["base_url"] = settings.base_url
    return create_model_provider(provider, **config)


def get_executor(settings: ParlanceSettings) -> SubprocessExecutor:
    """Create the local code executor."""
    return SubprocessExecutor(timeout=settings.execution_timeout)
