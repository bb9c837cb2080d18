"""Main CLI application using Typer."""
import asyncio
import shlex
import signal
from collections.abc import Callable
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from ..blocks import parse_blocks
from ..conversation import (
    ActionDispatcher,
    ConversationOrchestrator,
    CopyText,
    EditMessage,
    ExecuteCode,
    RateMessage,
    Regenerate,
    Turn,
    TurnOutcome,
)
from ..errors import ParlanceError
from ..execution import ExecutionStateMachine
from ..streaming import FragmentKind, StreamDecoder
from .providers import configure_logging, get_executor, get_provider, get_settings
from .render import block_table, print_history, render_blocks, render_message, render_status

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="parlance",
    help="Chat with LLM providers and run the code they answer with",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

CHAT_HELP = """[dim]Commands:
  /run <message-id> <block>     run an executable code block
  /rate <message-id> up|down    rate a message
  /regen <message-id>           regenerate the answer to a prompt
  /edit <message-id> <text>     resubmit a prompt with new text
  /copy <message-id>            print a message as plain text
  /history                      list messages
  /quit                         leave
Ctrl-C cancels a response in progress.[/dim]"""


def _cancel_active(orchestrator: ConversationOrchestrator) -> None:
    if orchestrator.active_turn is not None:
        orchestrator.cancel()


async def _stream_turn(orchestrator: ConversationOrchestrator, start: Callable[[], Turn]) -> TurnOutcome | None:
    """Start a turn and show its fragments live until it ends."""
    subscription = orchestrator.events.subscribe()
    try:
        turn = start()
    except ParlanceError as e:
        subscription.cancel()
        console.print(f"[red]Error ({e.kind.value}): {e}[/red]")
        return None

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _cancel_active, orchestrator)
    except NotImplementedError:
        # Event loops without signal support; Ctrl-C falls back to KeyboardInterrupt
        pass

    body = ""
    try:
        with Live(Text(""), console=console, transient=True, refresh_per_second=12) as live:
            async for event in subscription:
                if getattr(event, "turn_id", None) != turn.id:
                    continue
                if event.type == "fragment":
                    body = event.text if event.kind == FragmentKind.RESULT else body + event.text
                    live.update(Text(body))
                elif event.type in ("assistant_message", "failed"):
                    break
    finally:
        subscription.cancel()
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass

    outcome = await turn
    if outcome.message is not None:
        console.print(render_message(outcome.message))
    else:
        style = "yellow" if outcome.state.value == "cancelled" else "red"
        console.print(f"[{style}]Turn {outcome.state.value}: {outcome.detail or outcome.error.value}[/{style}]")
        console.print(f"[dim]Retry with /regen {turn.prompt.id}[/dim]")
    return outcome


async def _handle_command(
    line: str,
    orchestrator: ConversationOrchestrator,
    dispatcher: ActionDispatcher,
) -> bool:
    """Run a slash command. Returns False when the session should end."""
    try:
        parts = shlex.split(line)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return True

    command, args = parts[0].lower(), parts[1:]

    if command in ("/quit", "/exit", "/q"):
        return False

    if command == "/history":
        print_history(console, orchestrator.history)
        return True

    if command == "/copy" and len(args) == 1:
        try:
            text = orchestrator.message(args[0]).full_text()
        except ParlanceError as e:
            console.print(f"[red]Error: {e}[/red]")
            return True
        dispatcher.dispatch(CopyText(text=text))
        return True

    if command == "/rate" and len(args) == 2 and args[1] in ("up", "down"):
        ack = dispatcher.dispatch(RateMessage(message_id=args[0], positive=args[1] == "up"))
        if not ack.accepted:
            console.print(f"[red]Error ({ack.error.value}): {ack.detail}[/red]")
        return True

    if command == "/run" and len(args) == 2 and args[1].isdigit():
        ack = dispatcher.dispatch(ExecuteCode(message_id=args[0], block_index=int(args[1])))
        if not ack.accepted:
            console.print(f"[red]Error ({ack.error.value}): {ack.detail}[/red]")
            return True
        with console.status("[dim]Running...[/dim]"):
            status = await ack.pending
        console.print(render_status(status))
        return True

    if command == "/regen" and len(args) == 1:
        await _stream_turn(orchestrator, lambda: _turn_from(dispatcher, Regenerate(message_id=args[0])))
        return True

    if command == "/edit" and len(args) >= 2:
        content = " ".join(args[1:])
        await _stream_turn(
            orchestrator,
            lambda: _turn_from(dispatcher, EditMessage(message_id=args[0], content=content)),
        )
        return True

    console.print(CHAT_HELP)
    return True


def _turn_from(dispatcher: ActionDispatcher, action: Regenerate | EditMessage) -> Turn:
    ack = dispatcher.dispatch(action)
    if not ack.accepted:
        raise ParlanceError(ack.detail, kind=ack.error)
    return ack.pending


@app.command()
def chat(
    provider: str = typer.Option(None, "--provider", "-p", help="Provider: gemini, openai or http"),
    model: str = typer.Option(None, "--model", "-m", help="Model identifier"),
):
    """Interactive chat session."""
    async def _chat():
        settings = get_settings(provider=provider, model=model)
        configure_logging(settings.log_level, console)

        llm = get_provider(settings, console)
        orchestrator = ConversationOrchestrator(llm, settings)
        machine = ExecutionStateMachine(get_executor(settings), events=orchestrator.events)
        dispatcher = ActionDispatcher(orchestrator, machine, clipboard=lambda text: console.print(Panel(text, title="Copied")))

        console.print(f"[bold cyan]Parlance Chat[/bold cyan] [dim]{settings.provider} · {llm.model}[/dim]")
        console.print("[dim]Type /help for commands, /quit to leave[/dim]\n")

        try:
            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ").strip()
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    if not await _handle_command(user_input, orchestrator, dispatcher):
                        console.print("[dim]Goodbye![/dim]")
                        break
                    continue

                await _stream_turn(orchestrator, lambda: orchestrator.submit(user_input))
        finally:
            await orchestrator.close()

    asyncio.run(_chat())


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    provider: str = typer.Option(None, "--provider", "-p", help="Provider: gemini, openai or http"),
    model: str = typer.Option(None, "--model", "-m", help="Model identifier"),
):
    """Send a single prompt and print the answer."""
    async def _ask():
        settings = get_settings(provider=provider, model=model)
        configure_logging(settings.log_level, console)

        orchestrator = ConversationOrchestrator(get_provider(settings, console), settings)
        try:
            outcome = await _stream_turn(orchestrator, lambda: orchestrator.submit(prompt))
        finally:
            await orchestrator.close()

        if outcome is None or not outcome.ok:
            raise typer.Exit(code=1)

    asyncio.run(_ask())


@app.command()
def parse(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Response body to parse"),
    render: bool = typer.Option(False, "--render", "-r", help="Render the blocks instead of listing them"),
):
    """Show the content blocks of a response body."""
    blocks = parse_blocks(file.read_text(encoding="utf-8"))
    if render:
        for renderable in render_blocks(file.name, blocks):
            console.print(renderable)
    else:
        console.print(block_table(blocks))


@app.command()
def decode(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Captured raw response stream"),
    chunk_size: int = typer.Option(64, "--chunk-size", "-c", min=1, help="Bytes per replayed fragment"),
    threshold: int = typer.Option(None, "--threshold", "-t", min=1, help="Raw fallback threshold"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print each decoded fragment"),
):
    """Replay a captured stream through the decoder and print the body."""
    settings = get_settings(fallback_threshold=threshold)
    configure_logging(settings.log_level, console)

    data = file.read_bytes()
    decoder = StreamDecoder(fallback_threshold=settings.fallback_threshold)
    fragments = []
    for offset in range(0, len(data), chunk_size):
        fragments.extend(decoder.feed(data[offset:offset + chunk_size]))
    fragments.extend(decoder.finish())

    if verbose:
        for fragment in fragments:
            console.print(f"[cyan]{fragment.kind.value:>9}[/cyan] {escape(repr(fragment.text))}")
        console.print()

    console.print(decoder.text, markup=False, highlight=False)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
