"""CLI interface for the support agent.

This module provides a Typer-based command-line interface for chatting with
the assistant and inspecting stored conversations. History is kept in a
JSONL store so that consecutive ``chat`` calls share context.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Optional

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from support_agent.config import AppConfig, ConfigLoadError, get_settings
from support_agent.conversations import ConversationStoreError, JsonlConversationStore
from support_agent.graph import GraphError, SupportAgent, TurnResult
from support_agent.llm_client import LLMClientError
from support_agent.security import sanitize_error_message

app = typer.Typer(help="Customer support assistant - NLU, handoff and product tools")
console = Console()

DEFAULT_STORE_DIR = Path(".support_agent") / "conversations"


def _load_settings() -> AppConfig:
    try:
        return get_settings()
    except (ValidationError, ConfigLoadError) as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(2) from e


def _store(settings: AppConfig) -> JsonlConversationStore:
    return JsonlConversationStore(
        settings.conversation_store_path or DEFAULT_STORE_DIR,
        ttl_seconds=settings.conversation_ttl_seconds,
    )


async def _handle_request(
    settings: AppConfig, conversation_id: str, message: str, timeout: float | None
) -> TurnResult:
    """Run one conversation turn.

    Args:
        settings: Application settings.
        conversation_id: Conversation identifier.
        message: The customer's message.
        timeout: Optional deadline in seconds.

    Returns:
        TurnResult with reply, cost and trace id.
    """
    agent = SupportAgent.from_settings(settings, _store(settings))
    return await agent.invoke(conversation_id, message, timeout=timeout)


@app.command(name="chat")
def chat_command(
    message: str = typer.Argument(..., help="Customer message to send to the assistant"),
    conversation_id: Optional[str] = typer.Option(
        None, "--conversation-id", "-c", help="Conversation ID for multi-turn conversations"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Deadline for the turn in seconds"
    ),
    show_steps: bool = typer.Option(False, "--steps", help="Show the executed steps"),
) -> None:
    """Send one message to the assistant.

    Examples:
        support-agent chat "Do you have gaming laptops?"
        support-agent chat "Which one is cheaper?" -c my-conversation
    """
    settings = _load_settings()
    if not conversation_id:
        conversation_id = str(uuid.uuid4())

    try:
        result = asyncio.run(_handle_request(settings, conversation_id, message, timeout))
    except (GraphError, LLMClientError, ConversationStoreError, ConfigLoadError) as e:
        console.print(f"[red]{sanitize_error_message(e)}[/red]")
        raise typer.Exit(1) from e

    if result["handed_off"]:
        console.print("\n[bold red]Escalated:[/bold red]")
    else:
        console.print("\n[bold blue]Assistant:[/bold blue]")
    console.print(Markdown(result["reply"] or "_(no reply)_"))

    if show_steps:
        table = Table(title="Steps")
        table.add_column("#", style="cyan")
        table.add_column("Step", style="green")
        table.add_column("Next", style="blue")
        table.add_column("ms", justify="right")
        for record in result["steps"]:
            table.add_row(
                str(record["index"]),
                record["step"],
                record["next_step"],
                f"{record['duration_ms']:.1f}",
            )
        console.print(table)

    console.print(
        f"\n[dim]Conversation: {result['conversation_id']}  "
        f"Tool rounds: {result['tool_call_count']}  "
        f"Cost: ${result['total_cost_usd']:.6f}  "
        f"Trace ID: {result['trace_id']}[/dim]"
    )


@app.command(name="history")
def history_command(
    conversation_id: str = typer.Argument(..., help="Conversation ID to show"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON instead of a table"),
) -> None:
    """Show the stored messages of a conversation."""
    store = _store(_load_settings())
    try:
        messages = asyncio.run(store.load_history(conversation_id))
    except ConversationStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    if json_output:
        console.print(orjson.dumps(messages, option=orjson.OPT_INDENT_2).decode())
        return
    if not messages:
        console.print(f"[yellow]No messages stored for conversation: {conversation_id}[/yellow]")
        return

    table = Table(title=f"Conversation {conversation_id} ({len(messages)} messages)")
    table.add_column("Role", style="cyan")
    table.add_column("Content", style="white", overflow="fold")
    for message in messages:
        table.add_row(str(message.get("role", "")), str(message.get("content") or ""))
    console.print(table)


@app.command(name="clear")
def clear_command(
    conversation_id: str = typer.Argument(..., help="Conversation ID to delete"),
) -> None:
    """Delete the stored history of a conversation."""
    store = _store(_load_settings())
    try:
        asyncio.run(store.clear_history(conversation_id))
    except ConversationStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e
    console.print(f"[green]Cleared conversation {conversation_id}[/green]")


if __name__ == "__main__":
    app()
