"""The normalized chat request passed from the orchestrator to a backend."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .chat_message import Message, TokenUsage
from .tool import ToolDefinition

# Called once per completed chat call or stream with (usage, model).
UsageCallback = Callable[[TokenUsage, str], Awaitable[None] | None]


@dataclass
class ChatRequest:
    """Request payload for a single chat invocation.

    Unset generation parameters fall back to the backend's configured
    defaults; an unset ``retries`` falls back to the orchestrator's.
    """

    messages: list[Message]
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    stop_sequences: list[str] | None = None
    retries: int | None = None
    fallback_models: list[str] = field(default_factory=list)
    system_instruction: str | None = None
    tools: list[ToolDefinition] = field(default_factory=list)
    on_usage: UsageCallback | None = None
