"""Client configuration.

Values can come from code, or from APP_IPC_* environment variables via
IpcConfig.from_env():

    APP_IPC_MODE            auto | stdio | websocket | fallback
    APP_IPC_COMMAND         peer command line (shell-style quoting)
    APP_IPC_CWD             working directory for the peer process
    APP_IPC_URL             WebSocket URL of the peer
    APP_IPC_FALLBACK_DELAY  seconds before a buffered response is re-delivered
    APP_IPC_MAX_LINE_BYTES  longest response line accepted from a stdio peer
    APP_IPC_LOG_LEVEL       log level used by the CLI
"""

from __future__ import annotations

import os
import shlex
from dataclasses import asdict, dataclass, field
from typing import Any

MODES = ("auto", "stdio", "websocket", "fallback")


@dataclass
class IpcConfig:
    """Configuration for the client and its transport."""

    # Transport selection
    mode: str = "auto"

    # Stdio settings (peer launched as subprocess)
    command: list[str] = field(default_factory=list)
    working_directory: str | None = None
    env: dict[str, str] | None = None
    terminate_timeout: float = 5.0
    max_line_bytes: int = 4 * 1024 * 1024

    # WebSocket settings
    url: str | None = None

    # Fallback transport
    fallback_delay: float = 0.001

    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"Unknown transport mode {self.mode!r}, expected one of {MODES}")
        if self.fallback_delay < 0:
            raise ValueError("fallback_delay must be >= 0")
        if self.max_line_bytes <= 0:
            raise ValueError("max_line_bytes must be > 0")

    @property
    def resolved_mode(self) -> str:
        """The concrete transport mode ("auto" resolved)."""
        if self.mode != "auto":
            return self.mode
        if self.command:
            return "stdio"
        if self.url:
            return "websocket"
        return "fallback"

    @classmethod
    def from_env(cls, **overrides: Any) -> IpcConfig:
        """Build a config from APP_IPC_* variables; keyword overrides win."""
        values: dict[str, Any] = {}
        if mode := os.getenv("APP_IPC_MODE"):
            values["mode"] = mode.strip().lower()
        if command := os.getenv("APP_IPC_COMMAND"):
            values["command"] = shlex.split(command)
        if cwd := os.getenv("APP_IPC_CWD"):
            values["working_directory"] = cwd
        if url := os.getenv("APP_IPC_URL"):
            values["url"] = url
        if delay := os.getenv("APP_IPC_FALLBACK_DELAY"):
            try:
                values["fallback_delay"] = float(delay)
            except ValueError as e:
                raise ValueError(f"APP_IPC_FALLBACK_DELAY must be a number, got {delay!r}") from e
        if max_line := os.getenv("APP_IPC_MAX_LINE_BYTES"):
            try:
                values["max_line_bytes"] = int(max_line)
            except ValueError as e:
                raise ValueError(
                    f"APP_IPC_MAX_LINE_BYTES must be an integer, got {max_line!r}"
                ) from e
        if level := os.getenv("APP_IPC_LOG_LEVEL"):
            values["log_level"] = level.upper()

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["resolved_mode"] = self.resolved_mode
        return data
