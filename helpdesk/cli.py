"""
Helpdesk CLI

Terminal front end for the helpdesk chat widget.

Usage:
    helpdesk chat                 # Interactive widget with multiple conversations
    helpdesk ask "Hello"          # Send one message in the active conversation
    helpdesk history              # List saved conversations
    helpdesk serve                # Run the chat service (POST /api/chat)
    helpdesk models               # List Gemini models for the configured key
    helpdesk reset                # Forget saved conversations
"""

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from helpdesk import __version__
from helpdesk.client import HttpChatClient
from helpdesk.config import Settings, get_settings
from helpdesk.controller import SendStatus, SessionController
from helpdesk.conversations.models import Conversation, Message
from helpdesk.conversations.persistence import JsonFilePersistence
from helpdesk.formatting import format_text

console = Console()

EXIT_COMMANDS = {"exit", "quit", ":q", "/exit", "/quit"}

HELP_TEXT = (
    "[bold]/new[/bold] start a conversation   "
    "[bold]/list[/bold] show conversations   "
    "[bold]/switch N[/bold] open conversation N   "
    "[bold]/delete N[/bold] delete conversation N   "
    "[bold]exit[/bold] leave"
)

_SPAN_STYLES = {"plain": "", "bold": "bold", "code": "bold magenta", "link": "underline cyan"}


def configure_cli_logging() -> None:
    logging.disable(logging.CRITICAL)
    logging.basicConfig(level=logging.CRITICAL)
    for logger_name in ("helpdesk", "httpx", "asyncio", "google", "grpc"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


def create_controller(settings: Settings) -> SessionController:
    """Build a controller backed by the on-disk session file and the HTTP chat client."""
    client = HttpChatClient(settings.widget.api_url, timeout=settings.widget.request_timeout)
    persistence = JsonFilePersistence(settings.widget.storage_path)
    return SessionController(client, persistence, settings=settings.widget)


def render_message_text(text: str) -> Text:
    """Formatted spans as rich Text; user content is never parsed as rich markup."""
    rendered = Text()
    for index, spans in enumerate(format_text(text)):
        if index:
            rendered.append("\n")
        for span in spans:
            if span.kind == "link":
                rendered.append(span.text, style=f"{_SPAN_STYLES['link']} link {span.href}")
                rendered.append(f" ({span.href})", style="dim")
            else:
                rendered.append(span.text, style=_SPAN_STYLES[span.kind])
    return rendered


def print_message(message: Message) -> None:
    if message.role == "user":
        console.print(Text("You:", style="bold cyan"), render_message_text(message.text))
    else:
        console.print(Text("Assistant:", style="bold green"), render_message_text(message.text))


def print_conversation(conversation: Conversation) -> None:
    console.print(Panel.fit(Text(conversation.title, style="bold"), border_style="green"))
    for message in conversation.messages:
        print_message(message)


def print_conversation_list(controller: SessionController) -> None:
    table = Table(title="Conversations", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Active", justify="center")
    active_id = controller.active_conversation.id
    for index, conversation in enumerate(controller.conversations, start=1):
        table.add_row(
            str(index),
            conversation.title,
            str(len(conversation.messages)),
            "●" if conversation.id == active_id else "",
        )
    console.print(table)


def _should_exit_chat(line: str) -> bool:
    return line.strip().lower() in EXIT_COMMANDS


def _resolve_index(controller: SessionController, argument: str) -> str | None:
    """Conversation id for a 1-based list position, or None."""
    try:
        position = int(argument)
    except ValueError:
        return None
    conversations = controller.conversations
    if 1 <= position <= len(conversations):
        return conversations[position - 1].id
    return None


def handle_command(controller: SessionController, line: str) -> bool:
    """Run a slash command. Returns False when line is not a command."""
    if not line.startswith("/"):
        return False
    command, _, argument = line[1:].strip().partition(" ")
    command = command.lower()
    argument = argument.strip()

    if command == "new":
        print_conversation(controller.new_conversation())
    elif command == "list":
        print_conversation_list(controller)
    elif command in {"switch", "delete"}:
        conversation_id = _resolve_index(controller, argument)
        if conversation_id is None:
            console.print(f"[red]No conversation #{argument or '?'}[/red]")
        elif command == "switch":
            controller.select_conversation(conversation_id)
            print_conversation(controller.active_conversation)
        else:
            controller.delete_conversation(conversation_id)
            console.print("[yellow]Conversation deleted.[/yellow]")
            print_conversation(controller.active_conversation)
    elif command == "help":
        console.print(HELP_TEXT)
    else:
        console.print(f"[red]Unknown command: /{command}[/red]  {HELP_TEXT}")
    return True


async def send_and_print(controller: SessionController, text: str) -> None:
    with console.status("[cyan]Assistant is typing...[/cyan]", spinner="dots"):
        result = await controller.send(text)
    if result.status is SendStatus.REJECTED:
        return
    if result.reply is not None:
        print_message(result.reply)


# ============================================================================
# CLI Commands
# ============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="Helpdesk")
def cli():
    """Helpdesk - chat with your site's assistant from the terminal."""
    configure_cli_logging()


@cli.command()
def chat():
    """Interactive chat widget with multiple saved conversations."""
    settings = get_settings()
    controller = create_controller(settings)
    console.print(
        Panel.fit(
            "[bold green]Helpdesk Assistant[/bold green]\n" + HELP_TEXT,
            border_style="green",
        )
    )
    print_conversation(controller.active_conversation)

    async def run_chat():
        try:
            while True:
                try:
                    line = console.input("[bold cyan]You:[/bold cyan] ")
                except KeyboardInterrupt:
                    console.print("\n[yellow]Interrupted. Type 'exit' to quit.[/yellow]")
                    continue
                if _should_exit_chat(line):
                    console.print("\n[yellow]Goodbye![/yellow]")
                    break
                if handle_command(controller, line.strip()):
                    continue
                await send_and_print(controller, line)
        except EOFError:
            console.print("\n[yellow]Goodbye![/yellow]")
        finally:
            await controller.client.close()

    asyncio.run(run_chat())


@cli.command()
@click.argument("message")
def ask(message: str):
    """Send MESSAGE in the active conversation and print the reply."""
    if not message.strip():
        console.print("[red]Message is empty.[/red]")
        sys.exit(1)
    controller = create_controller(get_settings())

    async def run_ask():
        try:
            return await controller.send(message)
        finally:
            await controller.client.close()

    result = asyncio.run(run_ask())
    if result.reply is not None:
        print_message(result.reply)
    if result.status is SendStatus.FAILED:
        sys.exit(1)


@cli.command()
@click.option("--show", "show_all", is_flag=True, help="Print the active conversation too.")
def history(show_all: bool):
    """List saved conversations."""
    controller = create_controller(get_settings())
    print_conversation_list(controller)
    if show_all:
        print_conversation(controller.active_conversation)


@cli.command()
@click.option("--host", default=None, help="Bind host (defaults to API_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (defaults to API_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the chat service that answers POST /api/chat."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "helpdesk.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


@cli.command()
def models():
    """List Gemini models available to the configured API key."""
    from helpdesk.llm.google import GoogleProvider

    settings = get_settings()
    if not settings.llm.google_api_key:
        console.print("[red]GEMINI_API_KEY is not set.[/red]")
        sys.exit(1)
    provider = GoogleProvider(api_key=settings.llm.google_api_key, model=settings.llm.google_model)
    try:
        available = provider.list_models()
    except Exception as exc:
        console.print(f"[red]Failed to list models: {exc}[/red]")
        sys.exit(1)

    table = Table(title="Gemini models", show_header=True, header_style="bold cyan")
    table.add_column("Model")
    table.add_column("Display name")
    table.add_column("Input tokens", justify="right")
    table.add_column("Output tokens", justify="right")
    for info in available:
        marker = " [green](configured)[/green]" if info.name == settings.llm.google_model else ""
        table.add_row(
            f"{info.name}{marker}",
            info.display_name or "",
            str(info.context_window),
            str(info.max_output),
        )
    console.print(table)


@cli.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
def reset(yes: bool):
    """Forget every saved conversation."""
    settings = get_settings()
    if not yes and not click.confirm("Delete all saved conversations?", default=False):
        console.print("[yellow]Aborted.[/yellow]")
        return
    JsonFilePersistence(settings.widget.storage_path).clear()
    console.print("[green]✓ Saved conversations cleared[/green]")


def main():
    cli()


if __name__ == "__main__":
    main()
