from .anthropic import AnthropicProvider
from .gemini import GEMINI_MODELS, GeminiProvider
from .openai import OpenAIProvider

__all__ = ["AnthropicProvider", "GEMINI_MODELS", "GeminiProvider", "OpenAIProvider"]
