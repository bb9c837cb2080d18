"""Unit tests for settings and errors."""
import pytest

from parlance.config import ParlanceSettings
from parlance.errors import (
    BlockBusyError,
    BusyError,
    ErrorKind,
    ExecutionRejected,
    NotExecutableError,
    ParlanceError,
    ProviderError,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "PARLANCE_PROVIDER",
        "PARLANCE_MODEL",
        "PARLANCE_BASE_URL",
        "PARLANCE_FRAGMENT_TIMEOUT",
        "PARLANCE_FALLBACK_THRESHOLD",
        "PARLANCE_EXECUTION_TIMEOUT",
        "PARLANCE_LOG_LEVEL",
        "GEMINI_API_KEY",
        "OPENAI_API_KEY",
        "PARLANCE_HTTP_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestParlanceSettings:
    """Tests for ParlanceSettings."""

    def test_defaults(self):
        settings = ParlanceSettings()

        assert settings.provider == "gemini"
        assert settings.fragment_timeout == 60.0
        assert settings.fallback_threshold == 65536

    @pytest.mark.parametrize("field,value", [
        ("fragment_timeout", 0),
        ("fallback_threshold", 0),
        ("execution_timeout", -1),
    ])
    def test_invalid_values(self, field: str, value):
        with pytest.raises(ValueError):
            ParlanceSettings(**{field: value})

    def test_settings_are_frozen(self):
        settings = ParlanceSettings()

        with pytest.raises(ValueError):
            settings.model = "other"

    def test_from_env_defaults(self, clean_env):
        settings = ParlanceSettings.from_env()

        assert settings.provider == "gemini"
        assert settings.api_key is None
        assert settings.model == "gemini-2.5-flash"

    def test_from_env_reads_provider_key(self, clean_env):
        """Test that the key variable follows the chosen provider."""
        clean_env.setenv("PARLANCE_PROVIDER", "OpenAI")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("GEMINI_API_KEY", "unused")
        clean_env.setenv("PARLANCE_FRAGMENT_TIMEOUT", "5")

        settings = ParlanceSettings.from_env()

        assert settings.provider == "openai"
        assert settings.api_key == "sk-test"
        assert settings.model == "gpt-4o-mini"
        assert settings.fragment_timeout == 5.0

    def test_overrides_win(self, clean_env):
        clean_env.setenv("PARLANCE_MODEL", "from-env")

        settings = ParlanceSettings.from_env(provider="http", model="from-flag", base_url=None)

        assert settings.provider == "http"
        assert settings.model == "from-flag"
        assert settings.base_url is None


class TestErrors:
    """Tests for the error hierarchy."""

    @pytest.mark.parametrize("error,kind", [
        (BusyError(), ErrorKind.BUSY),
        (ProviderError("down"), ErrorKind.NETWORK_FAILURE),
        (NotExecutableError(), ErrorKind.NOT_EXECUTABLE),
        (BlockBusyError(), ErrorKind.BUSY),
    ])
    def test_kinds(self, error: ParlanceError, kind: ErrorKind):
        assert error.kind == kind

    def test_kind_override(self):
        assert ProviderError("slow", kind=ErrorKind.TIMEOUT).kind == ErrorKind.TIMEOUT

    def test_execution_rejections_share_a_base(self):
        assert issubclass(NotExecutableError, ExecutionRejected)
        assert issubclass(BlockBusyError, ExecutionRejected)

    def test_default_message_from_docstring(self):
        assert str(BusyError()) == "A turn is already in flight."
