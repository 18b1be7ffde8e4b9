"""Transport over a subprocess's stdin/stdout.

Wire format:
- Requests: JSON object + newline to subprocess stdin
- Responses: JSON object + newline from subprocess stdout

Anything the peer prints on stderr is forwarded to the logger.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import AsyncIterator

from ..config import IpcConfig
from ..errors import TransportNotConnectedError
from ..protocol.messages import RequestMessage, ResponseMessage
from .base import BaseTransport

logger = logging.getLogger(__name__)


class StdioTransport(BaseTransport):
    """Launches the peer as a subprocess and talks JSON lines to it."""

    def __init__(self, config: IpcConfig | None = None):
        super().__init__(config or IpcConfig(mode="stdio"))
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def _do_connect(self) -> None:
        """Launch subprocess and establish communication."""
        cmd = self.config.command
        if not cmd:
            raise ValueError("No peer command configured")

        env = None
        if self.config.env:
            env = {**os.environ, **self.config.env}

        self._process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.config.working_directory,
            env=env,
            limit=self.config.max_line_bytes,
        )

        self._stderr_task = asyncio.create_task(self._read_stderr())

        logger.info(f"Launched peer: {' '.join(cmd)} (pid={self._process.pid})")

    async def _do_disconnect(self) -> None:
        """Close stdin and terminate the subprocess."""
        if self._process:
            if self._process.stdin and not self._process.stdin.is_closing():
                self._process.stdin.close()

            if self._process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    self._process.terminate()
                try:
                    await asyncio.wait_for(
                        self._process.wait(), timeout=self.config.terminate_timeout
                    )
                except TimeoutError:
                    self._process.kill()
                    await self._process.wait()
            logger.info(f"Peer terminated (pid={self._process.pid})")

        if self._stderr_task:
            self._stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._stderr_task
            self._stderr_task = None

        self._process = None

    def _do_send(self, message: RequestMessage) -> None:
        """Write the request as a JSON line to stdin."""
        if not self._process or not self._process.stdin:
            raise TransportNotConnectedError("Peer process not running")

        self._process.stdin.write(message.to_line().encode("utf-8"))

    async def _receive_messages(self) -> AsyncIterator[ResponseMessage]:
        """Read responses from stdout until EOF."""
        if not self._process or not self._process.stdout:
            raise TransportNotConnectedError("Peer process not running")

        while True:
            try:
                line = await self._process.stdout.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                # readline() drops the buffered part; a leftover tail fails to parse
                logger.warning(
                    f"Discarding line longer than {self.config.max_line_bytes} bytes: {e}"
                )
                continue
            if not line:
                logger.info("Peer closed stdout")
                break

            try:
                line_str = line.decode("utf-8").strip()
            except UnicodeDecodeError as e:
                logger.warning(f"Skipping undecodable line: {e}")
                continue
            if not line_str:
                continue

            # Skip non-JSON lines (e.g., log output that leaked to stdout)
            if not line_str.startswith("{"):
                logger.debug(f"Skipping non-JSON line: {line_str[:50]}")
                continue

            message = self._parse(line_str)
            if message is not None:
                yield message

    async def _read_stderr(self) -> None:
        """Forward peer stderr to the log."""
        if not self._process or not self._process.stderr:
            return

        while True:
            try:
                line = await self._process.stderr.readline()
            except (ValueError, asyncio.LimitOverrunError):
                logger.debug("[peer stderr] <line too long, discarded>")
                continue
            if not line:
                break
            logger.debug(f"[peer stderr] {line.decode('utf-8', errors='replace').rstrip()}")
