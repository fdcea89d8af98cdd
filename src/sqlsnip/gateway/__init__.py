"""LLM gateway: SQL intelligence operations and the assistant chat session."""

from .chat import CHAT_ERROR_MESSAGE, QUICK_PROMPTS, ChatSession
from .fallbacks import FALLBACKS, FailureKind, GatewayFailure, Operation, resolve_fallback
from .models import DbtModel, LintResult, SafetyCheck, TagSuggestion
from .service import SqlIntelligence, strip_code_fence

__all__ = [
    "CHAT_ERROR_MESSAGE",
    "ChatSession",
    "QUICK_PROMPTS",
    "FALLBACKS",
    "FailureKind",
    "GatewayFailure",
    "Operation",
    "resolve_fallback",
    "DbtModel",
    "LintResult",
    "SafetyCheck",
    "TagSuggestion",
    "SqlIntelligence",
    "strip_code_fence",
]
