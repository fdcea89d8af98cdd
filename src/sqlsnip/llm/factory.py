from typing import Any

from .base import LLMProvider
from .providers import AnthropicProvider, GeminiProvider, OpenAIProvider

_PROVIDERS: dict[str, type[LLMProvider]] = {
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
}

SUPPORTED_PROVIDERS = ("gemini", "openai", "anthropic")


def create_llm_provider(provider: str, **config: Any) -> LLMProvider:
    """Build the provider registered under ``provider`` (case-insensitive).

    ``claude`` is accepted as an alias for ``anthropic``. Every provider
    needs ``api_key``; ``model`` selects its default model and any other
    keyword is passed to the provider's constructor.

    Raises:
        ValueError: If the provider name is unknown
        TypeError: If ``api_key`` is missing

    Examples:
        >>> llm = create_llm_provider("gemini", api_key="...", model="gemini-3-pro-preview")
    """
    cls = _PROVIDERS.get(provider.lower())
    if cls is None:
        raise ValueError(
            f"Unsupported provider: {provider}. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    if not config.get("api_key"):
        raise TypeError(f"{cls.__name__} requires 'api_key' in config")
    return cls(**config)
