"""app-ipc CLI.

Talks to a peer process from the shell, mostly for debugging a peer.

Usage:
    app-ipc request ping '{"x": 1}' -c "my-peer --stdio"   # One-shot request
    app-ipc listen watch /tmp -c my-peer --count 5          # Stream responses
    app-ipc config                                          # Show configuration

The peer can also be configured with APP_IPC_COMMAND / APP_IPC_URL.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
import sys
from typing import Any

import click

from .client import create_client
from .config import IpcConfig
from .errors import RemoteError

FORMAT_TEXT = "text"
FORMAT_JSON = "json"


def parse_arg(raw: str) -> Any:
    """Decode a command-line argument as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def format_value(value: Any, output_format: str) -> str:
    if output_format == FORMAT_TEXT and isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def _build_config(command: str | None, url: str | None) -> IpcConfig:
    config = IpcConfig.from_env(
        command=shlex.split(command) if command else None,
        url=url,
    )
    if config.resolved_mode == "fallback":
        raise click.UsageError(
            "No peer configured. Pass --command or --url, "
            "or set APP_IPC_COMMAND / APP_IPC_URL."
        )
    return config


peer_options = [
    click.option("--command", "-c", help="Peer command to launch (stdio transport)"),
    click.option("--url", "-u", help="Peer WebSocket URL"),
    click.option("--timeout", "-t", default=30.0, show_default=True, help="Seconds to wait"),
]


def with_peer_options(fn: Any) -> Any:
    for option in reversed(peer_options):
        fn = option(fn)
    return fn


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (default: APP_IPC_LOG_LEVEL or WARNING)",
)
def main(log_level: str | None) -> None:
    """app-ipc - send correlated requests to a peer process."""
    level = (log_level or IpcConfig.from_env().log_level).upper()
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("event")
@click.argument("args", nargs=-1)
@with_peer_options
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_JSON, FORMAT_TEXT]),
    default=FORMAT_JSON,
    help="Output format",
)
def request(
    event: str,
    args: tuple[str, ...],
    command: str | None,
    url: str | None,
    timeout: float,
    output_format: str,
) -> None:
    """Send a one-shot request and print the response data.

    Examples:

        app-ipc request ping '{"x": 1}' -c "python peer.py"

        app-ipc request app:info --url ws://localhost:8765
    """
    config = _build_config(command, url)
    params = [parse_arg(a) for a in args]

    async def run() -> Any:
        async with create_client(config) as client:
            return await asyncio.wait_for(client.request_once(event, *params), timeout)

    try:
        result = asyncio.run(run())
    except RemoteError as e:
        click.echo(f"Remote error: {format_value(e.error, FORMAT_JSON)}", err=True)
        sys.exit(1)
    except TimeoutError:
        click.echo(f"No response to {event!r} within {timeout}s", err=True)
        sys.exit(1)
    except ConnectionError as e:
        click.echo(f"Cannot reach peer: {e}", err=True)
        sys.exit(1)

    click.echo(format_value(result, output_format))


@main.command()
@click.argument("event")
@click.argument("args", nargs=-1)
@with_peer_options
@click.option("--count", "-n", default=0, help="Stop after N responses (0 = until timeout)")
def listen(
    event: str,
    args: tuple[str, ...],
    command: str | None,
    url: str | None,
    timeout: float,
    count: int,
) -> None:
    """Send a persistent request and print every response as a JSON line.

    Stops after --count responses, or when no response arrives for
    --timeout seconds.
    """
    config = _build_config(command, url)
    params = [parse_arg(a) for a in args]

    async def run() -> int:
        received = 0
        queue: asyncio.Queue[tuple[Any, Any]] = asyncio.Queue()

        async with create_client(config) as client:
            client.request_callback(
                event, *params, handler=lambda error, data: queue.put_nowait((error, data))
            )
            while count <= 0 or received < count:
                try:
                    error, data = await asyncio.wait_for(queue.get(), timeout)
                except TimeoutError:
                    break
                received += 1
                click.echo(json.dumps({"error": error, "data": data}, default=str))
        return received

    try:
        received = asyncio.run(run())
    except ConnectionError as e:
        click.echo(f"Cannot reach peer: {e}", err=True)
        sys.exit(1)

    if count and received < count:
        click.echo(f"Received {received} of {count} responses", err=True)
        sys.exit(1)


@main.command("config")
def show_config() -> None:
    """Show the configuration resolved from the environment."""
    click.echo(json.dumps(IpcConfig.from_env().to_dict(), indent=2))


if __name__ == "__main__":
    main()
