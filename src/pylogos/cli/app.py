"""Main CLI application using Typer."""
import asyncio
import contextlib
import logging
import mimetypes
import os
import signal
from pathlib import Path
from uuid import uuid4

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import AUTHOR_AI, AUTHOR_SYSTEM, NEW_CHAT_NAME
from ..conversation import (
    AppendedToLast,
    ConversationOrchestrator,
    FallbackPolicy,
    GeneratingChanged,
    ImageAttachment,
    LastContentReplaced,
    MessageAdded,
    MessageRemoved,
    SessionStateCache,
    UiEvent,
)
from ..indexer import is_supported
from ..llm.errors import LLMError
from ..search import RetrievalEngine
from ..transport import TransportPool
from .providers import get_gateway, get_knowledge_store, get_providers

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="pylogos",
    help="Streaming chat with multiple LLM providers and a local knowledge base",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()


def setup_logging(level: str) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    log_level: str = typer.Option(
        os.getenv("PYLOGOS_LOG_LEVEL", "WARNING"),
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
):
    """pylogos command line."""
    setup_logging(log_level)


class _ChatRenderer:
    """Prints session events as they happen."""

    def __init__(self, console: Console):
        self._console = console

    def __call__(self, event: UiEvent) -> None:
        out = self._console
        if isinstance(event, MessageAdded):
            message = event.message
            if message.author == AUTHOR_SYSTEM:
                out.print(f"\n[yellow]{message.content}[/yellow]")
            elif message.author == AUTHOR_AI:
                out.print("[bold cyan]AI:[/bold cyan] ", end="")
            elif message.content.startswith("[Auto-Loop"):
                out.print(f"\n[dim]{message.content}[/dim]", highlight=False)
        elif isinstance(event, AppendedToLast):
            out.print(event.text, end="", markup=False, highlight=False)
        elif isinstance(event, LastContentReplaced):
            out.print()
            out.print(event.content, markup=False, highlight=False)
        elif isinstance(event, MessageRemoved) and event.message.author == AUTHOR_AI:
            out.print("[dim](no reply)[/dim]")
        elif isinstance(event, GeneratingChanged) and not event.is_generating:
            out.print()


def _parse_image_command(line: str) -> tuple[str, ImageAttachment]:
    """'/image PATH question...' -> (question, attachment)."""
    _, _, rest = line.partition(" ")
    path_text, _, question = rest.strip().partition(" ")
    path = Path(path_text).expanduser()
    mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    return question.strip() or "Describe this image.", ImageAttachment(data=path.read_bytes(), mime_type=mime_type)


@app.command()
def chat(
    session: str = typer.Option(
        None,
        "--session",
        "-s",
        help="Session id to resume (a new session is created when omitted)"
    ),
    no_stream: bool = typer.Option(
        False,
        "--no-stream",
        help="Show replies only once complete"
    ),
    auto_loop: int = typer.Option(
        0,
        "--auto-loop",
        help="Let the planner continue up to N automated turns"
    ),
    no_rag: bool = typer.Option(
        False,
        "--no-rag",
        help="Do not augment questions with knowledge-base context"
    )
):
    """Interactive chat. Ctrl-C cancels a reply; /regen regenerates; /quit exits."""
    async def _chat():
        try:
            primary, fallback = get_providers(console)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        if primary is None:
            console.print("[red]Error: no AI provider configured (see LLM_PROVIDER)[/red]")
            raise typer.Exit(code=1)

        store = get_knowledge_store()
        gateway = get_gateway()
        pool = TransportPool()
        cache = SessionStateCache()
        loop = asyncio.get_running_loop()

        try:
            await store.connect()
            await gateway.connect()

            session_id = session or uuid4().hex
            state = cache.get_or_create(session_id, name=session or NEW_CHAT_NAME)
            state.provider = primary
            state.model = primary.models[0]
            state.settings.stream_response = not no_stream
            state.settings.auto_loop_enabled = auto_loop > 0
            state.settings.max_loop_count = auto_loop
            state.settings.retrieval_enabled = not no_rag
            if fallback is not None:
                state.settings.fallback_provider_id = fallback.id

            engine = RetrievalEngine(store)
            orchestrator = ConversationOrchestrator(
                state,
                pool,
                gateway,
                retriever=engine.retrieve_knowledge,
                fallback=FallbackPolicy([p for p in (primary, fallback) if p is not None]),
                on_rename=lambda _sid, title: console.print(f"[dim]Session named: {title}[/dim]")
            )
            restored = await orchestrator.restore_history()

            console.print(Panel(
                f"Provider: {primary.name} ({state.model})\n"
                f"Fallback: {fallback.name if fallback else 'none'}\n"
                f"Session: {session_id}" + (f" ({restored} messages restored)" if restored else ""),
                title="pylogos chat",
                border_style="cyan"
            ))
            state.subscribe(_ChatRenderer(console))

            while True:
                try:
                    line = (await asyncio.to_thread(console.input, "[bold green]you>[/bold green] ")).strip()
                except EOFError:
                    break
                if not line:
                    continue
                if line in ("/quit", "/exit"):
                    break

                if line == "/regen":
                    turn = orchestrator.rollback_and_regenerate()
                elif line.startswith("/image "):
                    try:
                        text, attachment = _parse_image_command(line)
                    except OSError as e:
                        console.print(f"[red]Error: {e}[/red]")
                        continue
                    turn = orchestrator.send(text, image=attachment)
                else:
                    turn = orchestrator.send(line)

                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(
                        signal.SIGINT,
                        lambda: state.scope.launch(orchestrator.cancel(), name="sigint-cancel")
                    )
                try:
                    await turn
                finally:
                    with contextlib.suppress(NotImplementedError):
                        loop.remove_signal_handler(signal.SIGINT)

        except (LLMError, ValueError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            cache.clear()
            await pool.close_all()
            await gateway.disconnect()
            await store.disconnect()

    asyncio.run(_chat())


@app.command()
def ingest(
    files: list[Path] = typer.Argument(
        ...,
        help="Documents to add (.pdf, .txt, .md)",
        exists=True,
        dir_okay=False
    )
):
    """Add documents to the knowledge base, replacing earlier versions."""
    async def _ingest():
        store = get_knowledge_store()
        try:
            await store.connect()
            engine = RetrievalEngine(store)

            total = 0
            for path in files:
                if not is_supported(path.name):
                    console.print(f"[yellow]Skipping unsupported file: {path}[/yellow]")
                    continue
                count = await engine.ingest_file(path)
                total += count
                console.print(f"[dim]{path.name}: {count} chunks[/dim]")

            console.print(f"[green]Ingested {total} chunks[/green]")

        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_ingest())


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    trace: bool = typer.Option(
        False,
        "--trace",
        "-t",
        help="Show how candidates were scored"
    )
):
    """Run knowledge-base retrieval for a query."""
    async def _search():
        store = get_knowledge_store()
        try:
            await store.connect()
            result = await RetrievalEngine(store).retrieve(query)

            if result.is_empty:
                console.print("[yellow]No results found[/yellow]")
            else:
                table = Table(show_header=True, header_style="bold cyan")
                table.add_column("#", style="dim", width=3)
                table.add_column("Source", style="cyan")
                table.add_column("Score", style="green", width=6)
                table.add_column("Rank", style="dim", width=5)
                for i, hit in enumerate(result.hits, 1):
                    table.add_row(str(i), hit.chunk.source_filename, f"{hit.score:.2f}", str(hit.rank))
                console.print(table)
                console.print(Panel(result.augmented_context, title="Context", border_style="dim"))

            if trace and result.explain_trace:
                console.print(Panel(result.explain_trace, title="Trace", border_style="yellow"))
        finally:
            await store.disconnect()

    asyncio.run(_search())


@app.command()
def sources():
    """List ingested documents, newest first."""
    async def _sources():
        store = get_knowledge_store()
        try:
            await store.connect()
            summaries = await store.list_sources()
            stats = await store.get_stats()

            if not summaries:
                console.print("[yellow]Knowledge base is empty[/yellow]")
                return

            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Source", style="cyan")
            table.add_column("Chunks", style="green")
            table.add_column("Ingested", style="dim")
            for summary in summaries:
                table.add_row(
                    summary.filename,
                    str(summary.chunk_count),
                    summary.last_ingested.strftime("%Y-%m-%d %H:%M")
                )
            console.print(table)
            console.print(f"[dim]{stats.total_chunks} chunks, {stats.total_size_bytes} bytes[/dim]")
        finally:
            await store.disconnect()

    asyncio.run(_sources())


@app.command()
def forget(filename: str = typer.Argument(..., help="Source filename to remove")):
    """Remove one document from the knowledge base."""
    async def _forget():
        store = get_knowledge_store()
        try:
            await store.connect()
            removed = await store.delete_by_source(filename)
            if removed:
                console.print(f"[green]Removed {removed} chunks of {filename}[/green]")
            else:
                console.print(f"[yellow]No chunks found for {filename}[/yellow]")
        finally:
            await store.disconnect()

    asyncio.run(_forget())


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")
):
    """Delete every document from the knowledge base."""
    if not yes and not typer.confirm("Delete all ingested documents?"):
        console.print("[dim]Aborted.[/dim]")
        return

    async def _clear():
        store = get_knowledge_store()
        try:
            await store.connect()
            removed = await store.clear()
            console.print(f"[green]Removed {removed} chunks[/green]")
        finally:
            await store.disconnect()

    asyncio.run(_clear())


if __name__ == "__main__":
    app()
