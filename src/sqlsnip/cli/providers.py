"""Provider factory functions for CLI.

Centralizes creation of the LLM provider, gateway and executor from
environment variables and the session config. Hides configuration details
from command implementations.
"""

import os

from rich.console import Console

from ..dialects import SqlDialect
from ..executor import MockExecutor
from ..gateway import SqlIntelligence
from ..llm import GEMINI_MODELS, LLMProvider, create_llm_provider
from ..state import SessionConfig

# Default console for output
_console = Console()

DEFAULT_PROVIDER = "gemini"


def get_session_config(dialect: str | None = None) -> SessionConfig:
    """Create the initial session config from environment variables.

    Args:
        dialect: Dialect override, e.g. from a command-line option

    Raises:
        ValueError: If the dialect or Gemini model is unknown

    Environment variables:
        SQLSNIP_DIALECT: SQL dialect (default: PostgreSQL)
        SQLSNIP_GEMINI_MODEL: Gemini model (default: gemini-3-flash-preview)
    """
    return SessionConfig(
        dialect=SqlDialect.parse(dialect or os.getenv("SQLSNIP_DIALECT", SqlDialect.POSTGRESQL)),
        gemini_model=os.getenv("SQLSNIP_GEMINI_MODEL", GEMINI_MODELS[0]),
    )


def build_llm(config: SessionConfig, console: Console | None = None) -> LLMProvider | None:
    """Create the LLM provider for ``config``.

    Keys entered in the session config take precedence over the environment.

    Args:
        config: Session config supplying keys and the Gemini model
        console: Console for warnings; None to stay quiet

    Returns:
        LLM provider instance, or None if not configured

    Environment variables:
        LLM_PROVIDER: Provider type (gemini, openai, anthropic; default: gemini)
        GEMINI_API_KEY / GOOGLE_API_KEY: Gemini API key (for gemini provider)
        OPENAI_API_KEY: OpenAI API key (for openai provider)
        OPENAI_CHAT_MODEL: OpenAI model (default: gpt-4o-mini)
        ANTHROPIC_API_KEY: Anthropic API key (for anthropic provider)
        ANTHROPIC_MODEL: Anthropic model (default: claude-sonnet-4-20250514)
    """
    llm_provider = os.getenv("LLM_PROVIDER", DEFAULT_PROVIDER).lower()

    def _warn(message: str) -> None:
        if console is not None:
            console.print(f"[yellow]Warning: {message}, LLM features disabled[/yellow]")

    if llm_provider == "gemini":
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            _warn("GEMINI_API_KEY not set")
            return None
        return create_llm_provider("gemini", api_key=api_key, model=config.gemini_model)

    elif llm_provider == "openai":
        api_key = config.openai_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            _warn("OPENAI_API_KEY not set")
            return None
        model = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
        return create_llm_provider("openai", api_key=api_key, model=model)

    elif llm_provider in ("anthropic", "claude"):
        api_key = config.anthropic_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            _warn("ANTHROPIC_API_KEY not set")
            return None
        model = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
        return create_llm_provider("anthropic", api_key=api_key, model=model)

    else:
        if console is not None:
            console.print(f"[red]Error: Unknown LLM provider: {llm_provider}[/red]")
        return None


def get_intelligence(config: SessionConfig, console: Console | None = None) -> SqlIntelligence:
    """Create the gateway; without a provider every operation returns its fallback."""
    return SqlIntelligence(build_llm(config, console or _console))


def require_intelligence(config: SessionConfig, console: Console | None = None) -> SqlIntelligence:
    """Get the gateway, raising error if no LLM provider is configured.

    Raises:
        SystemExit: If LLM provider is not configured
    """
    import typer

    con = console or _console
    intelligence = get_intelligence(config, con)
    if intelligence.llm is None:
        con.print("[red]Error: LLM provider not configured[/red]")
        raise typer.Exit(code=1)
    return intelligence


def get_executor(latency: float | None = None) -> MockExecutor:
    """Create the mock executor.

    Environment variables:
        SQLSNIP_LATENCY: Simulated latency in seconds (default: 0.6)
    """
    if latency is None:
        latency = float(os.getenv("SQLSNIP_LATENCY", "0.6"))
    return MockExecutor(latency=latency)
