from .base import ModelProvider
from .factory import create_model_provider
from .models import FragmentStream, ProviderMessage, encode_fragment
from .providers import GeminiProvider, HttpProvider, OpenAIProvider

__all__ = [
    "ModelProvider",
    "create_model_provider",
    "FragmentStream",
    "ProviderMessage",
    "encode_fragment",
    "GeminiProvider",
    "HttpProvider",
    "OpenAIProvider",
]
