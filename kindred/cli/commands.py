"""CLI commands for kindred."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kindred import __logo__, __version__

app = typer.Typer(
    name="kindred",
    help=f"{__logo__} kindred - conversation memory tools",
    no_args_is_help=True,
)

console = Console()

DataDirOption = typer.Option(None, "--data-dir", "-d", help="Data directory (default from config)")


def _make_pipeline(data_dir: Path | None):
    """Build a MemoryPipeline from config and a LiteLLM provider."""
    from kindred.config.loader import load_config
    from kindred.memory.pipeline import MemoryPipeline
    from kindred.providers.litellm_provider import LiteLLMProvider

    config = load_config()
    provider = LiteLLMProvider(
        api_key=config.get_api_key(),
        api_base=config.get_api_base(),
        default_model=config.summarizer.model,
    )
    return MemoryPipeline.from_config(config, provider, data_dir=data_dir)


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} kindred v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """kindred - conversation memory tools."""
    pass


# ============================================================================
# Inspection
# ============================================================================


@app.command()
def conversations(
    data_dir: Path | None = DataDirOption,
):
    """List conversations with their message and summary counts."""
    pipeline = _make_pipeline(data_dir)
    ids = pipeline.message_log.list_conversations()
    if not ids:
        console.print("No conversations found.")
        return

    table = Table(title="Conversations")
    table.add_column("Conversation", style="cyan")
    table.add_column("Messages", justify="right")
    table.add_column("Summaries", justify="right")
    for cid in ids:
        table.add_row(
            cid,
            str(pipeline.message_log.count(cid)),
            str(pipeline.summary_store.count(cid)),
        )
    console.print(table)


@app.command()
def status(
    conversation_id: str = typer.Argument(..., help="Conversation to inspect"),
    limit: int = typer.Option(20, "--limit", "-n", help="Summaries to list"),
    data_dir: Path | None = DataDirOption,
):
    """Show message count, summaries and compaction state for a conversation."""
    pipeline = _make_pipeline(data_dir)

    total = pipeline.message_log.count(conversation_id)
    summaries = pipeline.summary_store.recent(conversation_id, limit)
    latest = summaries[0] if summaries else None
    pending = pipeline.message_log.count_since(
        conversation_id, latest.end_message_id if latest else None
    )
    due = pipeline.trigger.should_compact(conversation_id, total)

    console.print(f"[bold]{conversation_id}[/bold]")
    console.print(f"  Messages: {total}")
    console.print(f"  Summaries: {pipeline.summary_store.count(conversation_id)}")
    console.print(f"  Unsummarized: {pending} (threshold {pipeline.trigger.threshold})")
    console.print(f"  Compaction due: {'[green]yes[/green]' if due else 'no'}")

    if not summaries:
        return

    table = Table(title="Summaries (newest first)")
    table.add_column("Created", style="cyan")
    table.add_column("Messages", justify="right")
    table.add_column("Tone")
    table.add_column("Themes")
    table.add_column("Summary")

    for s in summaries:
        table.add_row(
            s.created_at.strftime("%Y-%m-%d %H:%M"),
            str(s.message_count),
            s.emotional_tone,
            ", ".join(s.key_themes) or "-",
            s.summary_text,
        )
    console.print(table)


@app.command()
def context(
    conversation_id: str = typer.Argument(..., help="Conversation to render"),
    max_summaries: int = typer.Option(3, "--max", "-m", help="Maximum summaries to include"),
    data_dir: Path | None = DataDirOption,
):
    """Preview the memory context injected into the system prompt."""
    pipeline = _make_pipeline(data_dir)
    text = pipeline.build_context(conversation_id, max_summaries)
    if not text:
        console.print("[yellow]No summaries yet for this conversation.[/yellow]")
        return
    console.print(Panel(text, title="AI context"))


@app.command()
def memory(
    user_id: str = typer.Argument(..., help="User whose memory to show"),
    data_dir: Path | None = DataDirOption,
):
    """Show aggregated memory for a user."""
    pipeline = _make_pipeline(data_dir)
    record = pipeline.user_memory.get(user_id)

    console.print(f"[bold]Global facts[/bold] ({len(record.global_facts)})")
    for fact in record.global_facts:
        console.print(f"  • {fact}")
    console.print(f"[bold]Preferences[/bold] ({len(record.preferences)})")
    for pref in record.preferences:
        console.print(f"  • {pref}")

    if not record.conversation_summaries:
        return

    table = Table(title="Conversations")
    table.add_column("Conversation", style="cyan")
    table.add_column("Supporter")
    table.add_column("Last summary")
    table.add_column("Messages", justify="right")
    for cid, digest in record.conversation_summaries.items():
        last = digest.last_summary_at.strftime("%Y-%m-%d %H:%M") if digest.last_summary_at else "-"
        table.add_row(cid, digest.supporter_id, last, str(digest.message_count))
    console.print(table)


# ============================================================================
# Compaction
# ============================================================================


@app.command()
def compact(
    conversation_id: str = typer.Argument(..., help="Conversation to compact"),
    user_id: str | None = typer.Option(None, "--user", "-u", help="Owner of the conversation"),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore the message threshold"),
    data_dir: Path | None = DataDirOption,
):
    """Run one compaction cycle."""
    pipeline = _make_pipeline(data_dir)
    result = asyncio.run(pipeline.compact(conversation_id, user_id, force=force))

    if result.compacted:
        console.print(
            f"[green]✓[/green] Compacted {result.summary.message_count} messages "
            f"(summary {result.summary_id})"
        )
        console.print(result.summary.summary_text)
    elif result.error:
        console.print(f"[red]Compaction failed: {result.error}[/red]")
        raise typer.Exit(1)
    else:
        console.print(f"Nothing to do ({result.outcome.value})")


@app.command()
def backfill(
    conversation_id: str = typer.Argument(..., help="Conversation to summarize"),
    user_id: str | None = typer.Option(None, "--user", "-u", help="Owner of the conversation"),
    batch_size: int | None = typer.Option(None, "--batch-size", "-b", help="Messages per summary"),
    data_dir: Path | None = DataDirOption,
):
    """Summarize all unsummarized history in fixed-size batches."""
    pipeline = _make_pipeline(data_dir)
    try:
        created = asyncio.run(pipeline.backfill(conversation_id, user_id, batch_size))
    except Exception as e:
        console.print(f"[red]Backfill failed: {e}[/red]")
        raise typer.Exit(1)

    total = sum(s.message_count for s in created)
    console.print(
        f"[green]✓[/green] Created {len(created)} summaries from {total} messages"
    )
