"""Command line entry points using Typer."""
import asyncio

import typer
import uvicorn
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from .config import Configuration
from .exceptions import ChatError, UserInputError
from .logging_utils import setup_logging
from .models import ChatMessage
from .renderer import ChatRenderer
from .server import create_app

app = typer.Typer(
    name="dat1-chat",
    help="Streaming chat proxy and terminal client for dat1-hosted models",
    no_args_is_help=True,
)

console = Console()


def _render_reply(message: ChatMessage | None) -> Panel:
    body = Markdown(message.content) if message and message.content else Text("...")
    subtitle = message.thinking if message and message.thinking else None
    return Panel(body, title="assistant", subtitle=subtitle, border_style="cyan")


def _last_assistant(messages: tuple[ChatMessage, ...]) -> ChatMessage | None:
    if messages and messages[-1].role == "assistant":
        return messages[-1]
    return None


async def _send_and_render(renderer: ChatRenderer) -> None:
    """Send the pending input, redrawing the reply as it grows."""
    with Live(_render_reply(None), console=console, refresh_per_second=12) as live:
        def redraw(messages: tuple[ChatMessage, ...]) -> None:
            live.update(_render_reply(_last_assistant(messages)))

        renderer.subscribe(redraw)
        try:
            await renderer.send_message()
        finally:
            renderer.unsubscribe(redraw)


def _build_renderer(
    configuration: Configuration, proxy_url: str | None, mode: str | None
) -> ChatRenderer:
    client_config = configuration.get_client_config()
    renderer = ChatRenderer(
        base_url=proxy_url or client_config["proxy_url"],
        connect_timeout=client_config["connect_timeout"],
    )
    renderer.set_mode(mode or client_config["mode"])
    return renderer


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port"),
):
    """Run the chat proxy server."""
    configuration = Configuration()
    setup_logging(configuration.get_logging_config().get("level", "INFO"))
    server_config = configuration.get_server_config()

    console.print(
        f"[bold green]Proxying to[/bold green] {configuration.upstream_url}"
    )
    uvicorn.run(
        create_app(configuration),
        host=host or server_config["host"],
        port=port or server_config["port"],
    )


@app.command()
def chat(
    mode: str = typer.Option(
        None, "--mode", "-m", help="streaming or normal"
    ),
    proxy_url: str = typer.Option(None, "--proxy-url", help="Proxy base URL"),
):
    """Interactive chat in the terminal.

    Commands: /reset clears the chat, /mode <normal|streaming> switches
    mode, /quit exits.
    """
    configuration = Configuration()
    setup_logging("WARNING")

    async def loop() -> None:
        async with _build_renderer(configuration, proxy_url, mode) as renderer:
            console.print(
                Panel(
                    f"Mode: [bold]{renderer.state.mode.value}[/bold]\n"
                    "Type /reset, /mode <normal|streaming> or /quit",
                    title="dat1 chat",
                    border_style="green",
                )
            )
            while True:
                text = await asyncio.to_thread(console.input, "[bold]you>[/bold] ")
                command = text.strip()

                if command in ("/quit", "/exit"):
                    return
                if command == "/reset":
                    renderer.reset_chat()
                    console.print("[dim]Chat cleared[/dim]")
                    continue
                if command.startswith("/mode"):
                    try:
                        renderer.set_mode(command.removeprefix("/mode").strip())
                    except ValueError:
                        console.print("[red]Mode must be normal or streaming[/red]")
                        continue
                    console.print(f"[dim]Mode: {renderer.state.mode.value}[/dim]")
                    continue

                renderer.set_input(text)
                try:
                    await _send_and_render(renderer)
                except UserInputError as e:
                    console.print(f"[yellow]{e}[/yellow]")
                except ChatError as e:
                    console.print(f"[red]Error:[/red] {e}")

    try:
        asyncio.run(loop())
    except (KeyboardInterrupt, EOFError):
        console.print()


@app.command()
def ask(
    question: str = typer.Argument(..., help="Message to send"),
    mode: str = typer.Option(None, "--mode", "-m", help="streaming or normal"),
    proxy_url: str = typer.Option(None, "--proxy-url", help="Proxy base URL"),
):
    """Send one message and print the reply."""
    configuration = Configuration()
    setup_logging("WARNING")

    async def run() -> None:
        async with _build_renderer(configuration, proxy_url, mode) as renderer:
            renderer.set_input(question)
            await _send_and_render(renderer)

    try:
        asyncio.run(run())
    except ChatError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2) from e


if __name__ == "__main__":
    app()
