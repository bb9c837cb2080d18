"""Terminal rendering of messages and blocks with rich."""

from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from ..blocks import CitationBlock, CodeBlock, ContentBlock, ExecutionState, ExecutionStatus, FileDownloadBlock, TextBlock
from ..conversation import ChatMessage, Role

STATUS_STYLES = {
    ExecutionState.IDLE: "dim",
    ExecutionState.RUNNING: "yellow",
    ExecutionState.SUCCESS: "green",
    ExecutionState.ERROR: "red",
}


def status_label(status: ExecutionStatus) -> str:
    style = STATUS_STYLES[status.state]
    return f"[{style}]{status.state.value}[/{style}]"


def render_code(message_id: str, index: int, block: CodeBlock) -> Panel:
    title = f"[{index}] {block.language or 'text'}"
    if block.is_executable:
        title += f" · exec · {status_label(block.status)}"
    return Panel(
        Syntax(block.code, block.language or "text", theme="monokai", line_numbers=False, word_wrap=True),
        title=title,
        title_align="left",
        subtitle=f"/run {message_id} {index}" if block.is_executable else None,
        subtitle_align="right",
    )


def render_status(status: ExecutionStatus) -> Panel:
    """Output panel for a finished code run."""
    if status.state == ExecutionState.ERROR:
        return Panel(Text(status.message or ""), title="[red]Error[/red]", border_style="red")
    return Panel(Text(status.output or "(no output)"), title="[green]Output[/green]", border_style="green")


def _inline_markup(block: ContentBlock) -> str:
    if isinstance(block, TextBlock):
        return block.text
    if isinstance(block, CitationBlock):
        return f"**[{block.index}]**"
    if isinstance(block, FileDownloadBlock):
        return f"`[{block.name} · {block.kind} · {block.display_size}]`"
    return ""


def render_blocks(message_id: str, blocks: list[ContentBlock]) -> list[RenderableType]:
    """Render blocks in order, joining inline blocks into markdown runs."""
    renderables: list[RenderableType] = []
    inline: list[str] = []

    for index, block in enumerate(blocks):
        if isinstance(block, CodeBlock):
            if inline:
                renderables.append(Markdown("".join(inline)))
                inline = []
            renderables.append(render_code(message_id, index, block))
        else:
            inline.append(_inline_markup(block))

    if inline:
        renderables.append(Markdown("".join(inline)))
    return renderables


def render_message(message: ChatMessage) -> Panel:
    if message.role == Role.USER:
        title = f"[bold yellow]You[/bold yellow] [dim]{message.id}[/dim]"
        border = "yellow"
    else:
        title = f"[bold green]{message.model_name}[/bold green] [dim]{message.id}[/dim]"
        border = "green"

    if message.feedback is not None:
        title += " 👍" if message.feedback else " 👎"

    return Panel(Group(*render_blocks(message.id, message.blocks)), title=title, title_align="left", border_style=border)


def print_history(console: Console, messages: tuple[ChatMessage, ...]) -> None:
    table = Table(title="History", show_lines=False)
    table.add_column("ID", style="cyan")
    table.add_column("Role")
    table.add_column("Blocks", justify="right")
    table.add_column("Branch of", style="dim")
    table.add_column("Preview")

    for message in messages:
        preview = message.full_text().replace("\n", " ")
        table.add_row(
            message.id,
            message.role.value,
            str(len(message.blocks)),
            message.branch_of or message.in_reply_to or "",
            preview[:60] + ("..." if len(preview) > 60 else ""),
        )
    console.print(table)


def block_table(blocks: list[ContentBlock]) -> Table:
    """Structure view of parsed blocks."""
    table = Table(title=f"{len(blocks)} blocks")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Type")
    table.add_column("Details")

    for index, block in enumerate(blocks):
        if isinstance(block, TextBlock):
            details = repr(block.text if len(block.text) <= 60 else block.text[:57] + "...")
        elif isinstance(block, CodeBlock):
            lines = block.code.count("\n") + 1 if block.code else 0
            details = f"language={block.language or '-'} exec={block.is_executable} lines={lines}"
        elif isinstance(block, CitationBlock):
            details = f"index={block.index}"
        else:
            details = f"{block.name} ({block.kind}, {block.display_size})"
        table.add_row(str(index), block.type, details)
    return table
