from .base import LLMProvider
from .factory import SUPPORTED_PROVIDERS, create_llm_provider
from .models import ChatMessage, LLMResponse, StreamingResponse, TokenUsage
from .providers import GEMINI_MODELS, AnthropicProvider, GeminiProvider, OpenAIProvider

__all__ = [
    "LLMProvider",
    "SUPPORTED_PROVIDERS",
    "create_llm_provider",
    "ChatMessage",
    "LLMResponse",
    "StreamingResponse",
    "TokenUsage",
    "GEMINI_MODELS",
    "AnthropicProvider",
    "GeminiProvider",
    "OpenAIProvider",
]
