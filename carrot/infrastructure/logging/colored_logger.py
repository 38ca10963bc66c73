"""Colored agent logger — ANSI-colored console logging for agent turns.

Provides an AgentLogger with color-coded output per loop step,
making it easy to visually trace a multi-turn tool-calling run in the terminal.

Color scheme:
    🔵 Blue    — Model call
    🟣 Magenta — Tool execution
    🟢 Green   — Final answer
    🟡 Yellow  — Iteration limit
    🔴 Red     — Errors
    ⚪ Gray    — Details
"""

import logging
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    GRAY = "\033[90m"


# ── Agent Step Definitions ───────────────────────────────────────────

class AgentStep:
    """Predefined agent loop steps with colors and icons."""

    MODEL = ("MODEL", _Colors.BLUE, "🤖")
    TOOLS = ("TOOLS", _Colors.MAGENTA, "🔧")
    DONE = ("DONE", _Colors.GREEN, "✅")
    LIMIT = ("LIMIT", _Colors.YELLOW, "⏹️")
    ERROR = ("ERROR", _Colors.RED, "❌")


# ── AgentLogger ──────────────────────────────────────────────────────

class AgentLogger:
    """Color-coded logger for the agent loop.

    Usage:
        log = AgentLogger("carrot.agent")
        log.step(AgentStep.MODEL, "Calling model", iteration=1)
        log.detail("2 tool call(s): get_weather, get_time")
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    def step(self, step: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log one loop step with its color."""
        label, color, icon = step
        formatted = (
            f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}"
        )
        if kwargs:
            details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            formatted += f" {_Colors.GRAY}({details}){_Colors.RESET}"
        if step is AgentStep.LIMIT:
            self._logger.warning(formatted)
        else:
            self._logger.info(formatted)

    def error(self, message: str, error: Exception | None = None) -> None:
        """Log a failed step in red."""
        label, _, icon = AgentStep.ERROR
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        """Log additional detail (gray/dimmed)."""
        formatted = f"   {_Colors.GRAY}├─ {message}{_Colors.RESET}"
        if kwargs:
            details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            formatted += f" {_Colors.DIM}({details}){_Colors.RESET}"
        self._logger.info(formatted)
