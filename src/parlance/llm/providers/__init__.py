from .gemini import GeminiProvider
from .http import HttpProvider
from .openai import OpenAIProvider

__all__ = ["GeminiProvider", "HttpProvider", "OpenAIProvider"]
