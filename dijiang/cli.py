"""Command-line interface for Dijiang.

Provides ``dijiang serve``, ``chat`` and ``status``. The entry point is
registered via ``pyproject.toml`` as ``dijiang = "dijiang.cli:cli"``.
"""

import asyncio
import logging

import click
import httpx

from dijiang.config import DIJIANG_DIR, LOG_FILE, get_port
from dijiang.events.types import SessionEvent, SessionEventType
from dijiang.session.controller import SessionController
from dijiang.session.types import Role

logger = logging.getLogger(__name__)

_MIN_PORT = 1024
_MAX_PORT = 65535

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_CHAT_HELP = (
    "Type a message and press Enter. Commands: "
    "/rec (start or stop recording), /speak [n] (speak the n-th latest reply), "
    "/quit"
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_port(port: int | None) -> int:
    """Return the port to use, falling back to env var / default."""
    if port is not None:
        return port
    return get_port()


def _validate_port(port: int) -> None:
    """Raise ``click.BadParameter`` if *port* is out of range."""
    if not (_MIN_PORT <= port <= _MAX_PORT):
        raise click.BadParameter(
            f"Port must be between {_MIN_PORT} and {_MAX_PORT}, got {port}."
        )


def _setup_logging(verbose: bool, to_file: bool) -> None:
    """Configure the root logger for console or file output.

    The interactive chat logs to a file so log lines do not interleave with
    the conversation.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if to_file:
        DIJIANG_DIR.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(LOG_FILE)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)


def _run_server(port: int) -> None:
    """Start uvicorn with the Dijiang FastAPI app. Blocks until shutdown."""
    import uvicorn

    from dijiang.server.app import create_app

    app = create_app()
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="info")


def _echo_event(event: SessionEvent) -> None:
    """Print the parts of a session event that matter in a terminal."""
    if event.type == SessionEventType.ALERT:
        click.echo(click.style(f"! {event.text}", fg="yellow"))
    elif event.type == SessionEventType.MESSAGE_APPENDED and event.message:
        if event.message.role == Role.ASSISTANT:
            click.echo(click.style(f"Dijiang: {event.message.content}", fg="cyan"))
    elif event.type == SessionEventType.INPUT_CHANGED and event.text:
        click.echo(click.style(f"(heard) {event.text}", fg="green"))
        click.echo("Press Enter to send it, or type a replacement.")


async def _print_events(queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        _echo_event(event)


def _nth_latest_reply(controller: SessionController, n: int) -> str | None:
    replies = [m for m in controller.timeline if m.role == Role.ASSISTANT]
    if n < 1 or n > len(replies):
        return None
    return replies[-n].id


async def _chat_loop(controller: SessionController) -> None:
    await controller.start()
    queue = await controller.subscribe()
    printer = asyncio.create_task(_print_events(queue))
    click.echo(_CHAT_HELP)
    try:
        while True:
            line = await asyncio.to_thread(click.prompt, "you", default="", show_default=False)
            command = line.strip()

            if command == "/quit":
                break
            if command == "/rec":
                if controller.is_recording:
                    click.echo("Recording stopped — transcribing...")
                    await controller.stop_recording()
                elif await controller.start_recording():
                    click.echo("Recording... type /rec again to stop.")
                else:
                    click.echo(click.style("Could not start recording.", fg="yellow"))
                continue
            if command.startswith("/speak"):
                arg = command[len("/speak"):].strip() or "1"
                message_id = _nth_latest_reply(controller, int(arg)) if arg.isdigit() else None
                if message_id is None or controller.speak(message_id) is None:
                    click.echo(click.style("No such reply to speak.", fg="yellow"))
                continue

            # An empty line sends whatever transcription left in the buffer.
            if command:
                controller.set_input(line)
            if not await controller.submit():
                if controller.is_loading:
                    click.echo(click.style("Still waiting — try again shortly.", fg="yellow"))
            # Let the printer drain the reply before prompting again.
            await asyncio.sleep(0)
    finally:
        printer.cancel()
        try:
            await printer
        except asyncio.CancelledError:
            pass
        await controller.unsubscribe(queue)
        await controller.stop()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Dijiang -- talk to a mythic persona by text or voice."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--port", default=None, type=int, help="Server port (default: 7866)")
@click.pass_context
def serve(ctx: click.Context, port: int | None) -> None:
    """Run the local HTTP server for a browser front end."""
    port = _resolve_port(port)
    _validate_port(port)
    _setup_logging(ctx.obj["verbose"], to_file=False)

    click.echo(f"Starting Dijiang on port {port}...")
    try:
        _run_server(port)
    except OSError as exc:
        if "address already in use" in str(exc).lower():
            click.echo(
                click.style(
                    f"Port {port} is already in use. "
                    "Choose a different port with --port.",
                    fg="red",
                )
            )
            raise SystemExit(1)
        raise


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def chat(ctx: click.Context) -> None:
    """Talk to Dijiang in this terminal."""
    _setup_logging(ctx.obj["verbose"], to_file=True)
    try:
        asyncio.run(_chat_loop(SessionController()))
    except (KeyboardInterrupt, click.Abort):
        click.echo()
    click.echo("Farewell.")


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--port", default=None, type=int, help="Server port to check")
def status(port: int | None) -> None:
    """Show whether a local Dijiang server is up."""
    port = _resolve_port(port)
    try:
        resp = httpx.get(f"http://127.0.0.1:{port}/health", timeout=2.0)
        data = resp.json()
    except (httpx.HTTPError, OSError, ValueError):
        click.echo(
            click.style(f"No Dijiang server responding on port {port}.", fg="yellow")
        )
        raise SystemExit(1)

    click.echo(click.style("Server is healthy.", fg="green"))
    click.echo(f"  Version:    {data.get('version', '?')}")
    click.echo(f"  Port:       {port}")
    click.echo(f"  Microphone: {data.get('mic_available', '?')}")
    click.echo(f"  Speakers:   {data.get('audio_available', '?')}")
    click.echo(f"  State:      {data.get('submit_state', '?')}")
