"""Main CLI application using Typer."""
import asyncio
import logging
import os
import sys
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from ..executor import QueryResult
from ..gateway import CHAT_ERROR_MESSAGE, ChatSession
from ..harness import HarnessOutcome, run_suite
from ..state import AppState, Snippet, SnippetController, Store, initial_state
from .providers import build_llm, get_executor, get_intelligence, get_session_config, require_intelligence

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="sqlsnip",
    help="SQL snippet manager with LLM-assisted tagging, safety checks, linting and dbt export",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = ("debug", "info", "warning", "error")

DialectOption = typer.Option(
    None,
    "--dialect",
    "-d",
    help="SQL dialect (PostgreSQL, MySQL, SQLite, Snowflake, BigQuery, Redshift)"
)
FileOption = typer.Option(
    None,
    "--file",
    "-f",
    help="Read SQL from a file ('-' for stdin)"
)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def configure(
    ctx: typer.Context,
    log_level: str = typer.Option(
        "warning",
        "--log-level",
        "-l",
        help="Log level: debug, info, warning or error"
    ),
):
    """Configure logging for every command."""
    if log_level.lower() not in LOG_LEVELS:
        err_console.print(f"[red]Error: Unknown log level: {log_level}[/red]")
        raise typer.Exit(code=1)
    ctx.obj = {"log_level": log_level.lower()}
    # The TUI routes log records to its own panel
    if ctx.invoked_subcommand != "tui":
        _setup_logging(log_level)


def _load_config(dialect: str | None):
    try:
        return get_session_config(dialect)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


def _read_sql(sql: str | None, file: Path | None) -> str:
    if file is not None:
        text = sys.stdin.read() if str(file) == "-" else file.read_text(encoding="utf-8")
    else:
        text = sql or ""
    if not text.strip():
        console.print("[red]Error: No SQL given (pass it as an argument or with --file)[/red]")
        raise typer.Exit(code=1)
    return text


def _print_result(result: QueryResult) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    for column in result.columns:
        table.add_column(column)
    for row in result.rows:
        table.add_row(*(str(row.get(column, "")) for column in result.columns))

    console.print(table)
    color = "green" if result.status == "success" else "red"
    console.print(f"[{color}]{result.message}[/{color}] [dim]({result.execution_time}ms)[/dim]")


@app.command()
def run(
    sql: str | None = typer.Argument(None, help="SQL to execute"),
    file: Path | None = FileOption,
    dialect: str | None = DialectOption,
    name: str = typer.Option("Ad-hoc Query", "--name", "-n", help="Name recorded in history"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Run without asking when the safety check raises concerns"
    ),
    skip_check: bool = typer.Option(False, "--skip-check", help="Bypass the safety check entirely"),
):
    """Execute SQL against the mock backend, behind the safety gate."""
    code = _read_sql(sql, file)
    config = _load_config(dialect)

    async def _run():
        intelligence = get_intelligence(config, console)
        store = Store(AppState(config=config))
        controller = SnippetController(store, intelligence, get_executor())
        controller.rename(name)
        controller.edit_code(code)

        try:
            with console.status("[dim]Running...[/dim]"):
                result = await controller.run_query(skip_safety_check=skip_check)

            if result is None and store.state.show_safety_approval:
                safety = store.state.safety
                warnings = "\n".join(f"- {w}" for w in safety.warnings) if safety else ""
                console.print(Panel(
                    f"{warnings or 'Marked as unsafe.'}\n\n[dim]{safety.suggestions if safety else ''}[/dim]",
                    title="[bold yellow]Safety check[/bold yellow]",
                    border_style="yellow",
                ))
                if not yes and not typer.confirm("Run anyway?"):
                    controller.abort_run()
                    console.print("[dim]Aborted.[/dim]")
                    return
                result = await controller.confirm_run()

            if result is not None:
                _print_result(result)
        finally:
            if intelligence.llm is not None:
                await intelligence.llm.close()

    asyncio.run(_run())


@app.command()
def lint(
    sql: str | None = typer.Argument(None, help="SQL to lint"),
    file: Path | None = FileOption,
    dialect: str | None = DialectOption,
    write: bool = typer.Option(False, "--write", "-w", help="Rewrite --file with the formatted SQL"),
):
    """Lint SQL and print it reformatted."""
    code = _read_sql(sql, file)
    config = _load_config(dialect)

    async def _lint():
        intelligence = require_intelligence(config, console)
        try:
            with console.status("[dim]Linting...[/dim]"):
                result = await intelligence.lint_and_format(code, config.dialect)
        finally:
            await intelligence.llm.close()

        status = "[green]valid[/green]" if result.is_valid else "[red]invalid[/red]"
        console.print(f"SQL is {status}")
        for error in result.errors:
            console.print(f"  [red]x[/red] {error}")
        for suggestion in result.suggestions:
            console.print(f"  [yellow]![/yellow] {suggestion}")
        console.print(Syntax(result.formatted_code, "sql", theme="monokai", word_wrap=True))

        if write and file is not None and str(file) != "-":
            file.write_text(result.formatted_code + "\n", encoding="utf-8")
            console.print(f"[dim]Wrote {file}[/dim]")

    asyncio.run(_lint())


@app.command()
def tag(
    sql: str | None = typer.Argument(None, help="SQL to tag"),
    file: Path | None = FileOption,
    dialect: str | None = DialectOption,
):
    """Suggest tags and a category for SQL."""
    code = _read_sql(sql, file)
    config = _load_config(dialect)

    async def _tag():
        intelligence = require_intelligence(config, console)
        try:
            suggestion = await intelligence.auto_tag(code, config.dialect)
        finally:
            await intelligence.llm.close()

        console.print(f"[bold]Category:[/bold] {suggestion.category}")
        console.print(f"[bold]Tags:[/bold] {', '.join(suggestion.tags) or '[dim]none[/dim]'}")

    asyncio.run(_tag())


@app.command()
def dbt(
    sql: str | None = typer.Argument(None, help="SQL to convert"),
    file: Path | None = FileOption,
    name: str | None = typer.Option(None, "--name", "-n", help="Model name (default: file stem)"),
    dialect: str | None = DialectOption,
    out: Path | None = typer.Option(None, "--out", "-o", help="Directory to write <name>.sql and schema.yml"),
):
    """Convert SQL into a dbt model and schema.yml."""
    code = _read_sql(sql, file)
    config = _load_config(dialect)
    model_name = name or (file.stem if file is not None and str(file) != "-" else "Untitled Model")

    async def _dbt():
        intelligence = require_intelligence(config, console)
        try:
            with console.status("[dim]Generating dbt files...[/dim]"):
                model = await intelligence.generate_dbt_model(model_name, code, config.dialect)
        finally:
            await intelligence.llm.close()

        if out is not None:
            out.mkdir(parents=True, exist_ok=True)
            sql_path = out / f"{model_name}.sql"
            sql_path.write_text(model.model_sql + "\n", encoding="utf-8")
            (out / "schema.yml").write_text(model.schema_yaml + "\n", encoding="utf-8")
            console.print(f"[green]Wrote {sql_path} and {out / 'schema.yml'}[/green]")
            return

        console.print(Panel(Syntax(model.model_sql, "sql", theme="monokai"), title=f"{model_name}.sql"))
        console.print(Panel(Syntax(model.schema_yaml, "yaml", theme="monokai"), title="schema.yml"))

    asyncio.run(_dbt())


@app.command()
def search(
    query: str = typer.Argument(..., help="Natural-language search query"),
    directory: Path | None = typer.Option(
        None,
        "--dir",
        help="Search .sql files in this directory instead of the built-in snippets"
    ),
):
    """Semantic search over snippets."""
    if not query.strip():
        raise typer.Exit()
    config = _load_config(None)

    async def _search():
        intelligence = require_intelligence(config, console)
        state = initial_state(config)
        store = Store(state)
        if directory is not None:
            snippets = tuple(
                Snippet(id=path.stem, name=path.stem, code=path.read_text(encoding="utf-8"))
                for path in sorted(directory.glob("*.sql"))
            )
            store = Store(state.model_copy(update={"snippets": snippets, "active_id": None}))

        controller = SnippetController(store, intelligence, get_executor())
        try:
            with console.status("[dim]Searching...[/dim]"):
                matches = await controller.search(query)
        finally:
            await intelligence.llm.close()

        if not matches:
            console.print("[yellow]No results found[/yellow]")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", width=3)
        table.add_column("Name", style="cyan")
        table.add_column("Category")
        table.add_column("SQL", style="dim", overflow="ellipsis", no_wrap=True)
        for i, snippet in enumerate(matches, 1):
            table.add_row(str(i), snippet.name, snippet.category, snippet.code.strip())
        console.print(table)

    asyncio.run(_search())


@app.command()
def chat(
    dialect: str | None = DialectOption,
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        help="SQL file attached as context to every message"
    ),
):
    """Interactive chat with the SQL assistant."""
    config = _load_config(dialect)
    current_sql = file.read_text(encoding="utf-8") if file is not None else ""

    async def _chat():
        llm = build_llm(config, console)
        if not llm:
            console.print("[red]Error: LLM provider not configured[/red]")
            raise typer.Exit(code=1)

        session = ChatSession(llm, config.dialect)
        console.print(f"[bold cyan]SQL Assistant[/bold cyan] [dim]({config.dialect}, {llm.model})[/dim]")
        console.print("[dim]Type '/clear' to reset, 'exit', 'quit', or 'q' to leave[/dim]\n")

        try:
            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                if not user_input.strip():
                    continue
                if user_input.strip().lower() in ("exit", "quit", "q"):
                    console.print("[dim]Goodbye![/dim]")
                    break
                if user_input.strip() == "/clear":
                    session.reset(config.dialect)
                    console.print("[dim]Conversation cleared.[/dim]\n")
                    continue

                console.print("[bold green]Assistant:[/bold green] ", end="")
                try:
                    async for chunk in session.send(user_input, current_sql=current_sql):
                        console.print(chunk, end="", markup=False, highlight=False)
                except Exception as e:
                    logging.getLogger(__name__).debug("Chat failed", exc_info=True)
                    console.print(f"[red]{CHAT_ERROR_MESSAGE} ({e})[/red]", end="")
                console.print("\n")
        finally:
            await llm.close()

    asyncio.run(_chat())


@app.command()
def selftest(
    latency: float = typer.Option(0.1, "--latency", help="Simulated executor latency in seconds"),
):
    """Run the built-in checks against the executor and the LLM; exit 1 on failure."""
    config = _load_config(None)

    def _report(outcome: HarnessOutcome) -> None:
        case = outcome.case
        label = f"[{case.category:<9}] {case.name:<30}"
        if outcome.passed:
            console.print(f"{label} [green]PASSED[/green] [dim]({outcome.duration_ms:.0f}ms)[/dim]")
        else:
            console.print(f"{label} [red]FAILED[/red]")
            console.print(f"   [red]Error: {outcome.error}[/red]")

    async def _selftest() -> list[HarnessOutcome]:
        intelligence = get_intelligence(config, console)
        try:
            return await run_suite(intelligence, get_executor(latency), on_outcome=_report)
        finally:
            if intelligence.llm is not None:
                await intelligence.llm.close()

    console.print("[bold cyan]Running self-test suite...[/bold cyan]\n")
    outcomes = asyncio.run(_selftest())
    failed = [o for o in outcomes if not o.passed]

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total", str(len(outcomes)))
    table.add_row("Passed", str(len(outcomes) - len(failed)))
    table.add_row("Failed", str(len(failed)))
    table.add_row("Time", f"{sum(o.duration_ms for o in outcomes):.0f}ms")
    console.print()
    console.print(Panel(table, title="[bold]Summary[/bold]", border_style="cyan"))

    if failed:
        console.print("[red]Status: FAILED[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Status: SUCCESS[/green]")


@app.command()
def health():
    """Check LLM configuration and the mock executor."""
    async def _health():
        all_healthy = True
        config = _load_config(None)

        provider = os.getenv("LLM_PROVIDER", "gemini").lower()
        console.print(f"[dim]LLM provider: {provider}[/dim]")

        for label, names in (
            ("Gemini API key", ("GEMINI_API_KEY", "GOOGLE_API_KEY")),
            ("OpenAI API key", ("OPENAI_API_KEY",)),
            ("Anthropic API key", ("ANTHROPIC_API_KEY",)),
        ):
            if any(os.getenv(name) for name in names):
                console.print(f"[green]+[/green] {label}: SET")
            else:
                console.print(f"[yellow]![/yellow] {label}: NOT SET")

        try:
            llm = build_llm(config)
        except (TypeError, ValueError) as e:
            console.print(f"[red]x[/red] LLM provider: FAILED ({e})")
            all_healthy = False
        else:
            if llm is None:
                console.print("[yellow]![/yellow] LLM provider: NOT CONFIGURED (fallbacks only)")
            else:
                console.print(f"[green]+[/green] LLM provider: OK ({llm.model})")
                await llm.close()

        try:
            result = await get_executor(0).execute("SELECT 1", config.dialect)
            console.print(f"[green]+[/green] Mock executor: OK ({result.message})")
        except Exception as e:
            console.print(f"[red]x[/red] Mock executor: FAILED ({e})")
            all_healthy = False

        if not all_healthy:
            raise typer.Exit(code=1)

    asyncio.run(_health())


@app.command(name="tui")
def tui_command(
    ctx: typer.Context,
    dialect: str | None = DialectOption,
):
    """Launch the interactive snippet manager."""
    config = _load_config(dialect)
    log_level = ctx.obj["log_level"] if ctx.obj else "warning"

    async def _tui():
        from ..ui import run_textual_tui

        llm = build_llm(config, console)
        if not llm:
            console.print("[yellow]Running without an LLM: tagging, safety checks and chat use fallbacks[/yellow]")

        try:
            await run_textual_tui(
                config=config,
                llm=llm,
                provider_factory=build_llm,
                log_level=log_level,
            )
        finally:
            try:
                if llm is not None:
                    await llm.close()
            except BaseException:
                pass
            console.print("\n[dim]Goodbye![/dim]")

    try:
        asyncio.run(_tui())
    except KeyboardInterrupt:
        pass


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
