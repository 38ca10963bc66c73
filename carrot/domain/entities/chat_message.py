"""Domain entities for chat messages — backend-independent, tool-aware."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model in its response."""

    id: str  # Unique within the turn
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """The outcome of executing one ToolCall."""

    tool_call_id: str
    content: str  # Serialized result or error description
    is_error: bool = False


@dataclass(frozen=True)
class Message:
    """A single turn in a conversation.

    Content is plain text for user/assistant/system turns. For tool
    responses, set role="tool" and content to the ordered list of
    ToolResult records answering the preceding assistant tool calls.
    """

    role: str  # "system" | "user" | "assistant" | "tool"
    content: str | list[ToolResult] = ""
    tool_calls: list[ToolCall] | None = None  # Assistant messages only

    def __post_init__(self) -> None:
        if self.tool_calls and self.role != "assistant":
            raise ValueError(
                f"Only assistant messages may carry tool calls (got role='{self.role}')"
            )
        if not isinstance(self.content, str) and self.role != "tool":
            raise ValueError(
                f"Tool results must be carried by a 'tool' message (got role='{self.role}')"
            )
        # Own copies, so the caller's lists cannot change a stored message
        if not isinstance(self.content, str):
            object.__setattr__(self, "content", list(self.content))
        if self.tool_calls is not None:
            object.__setattr__(self, "tool_calls", list(self.tool_calls))

    @classmethod
    def from_tool_results(cls, results: list[ToolResult]) -> "Message":
        return cls(role="tool", content=results)

    @property
    def tool_results(self) -> list[ToolResult]:
        if isinstance(self.content, str):
            return []
        return list(self.content)

    @property
    def text(self) -> str:
        """Text content, or an empty string for tool-result messages."""
        return self.content if isinstance(self.content, str) else ""


@dataclass
class TokenUsage:
    """Token accounting for one completed invocation."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass
class ChatResponse:
    """Normalized result of a non-streaming chat call."""

    content: str
    model: str  # The model that actually produced this response
    usage: TokenUsage = field(default_factory=TokenUsage)
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"  # "stop" | "length" | "tool_calls" | backend-specific
    provider: str = ""
    role: str = "assistant"


@dataclass
class ToolCallFragment:
    """A partial tool call as delivered by a streaming backend.

    Fragments sharing an index belong to the same call. ``arguments`` is a
    piece of the JSON-encoded parameter object; ``final`` marks the last
    fragment of the call.
    """

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str = ""
    final: bool = False


@dataclass
class StreamChunk:
    """One backend stream unit, already mapped out of the wire format."""

    content: str = ""
    tool_call: ToolCallFragment | None = None
    usage: TokenUsage | None = None
    finish_reason: str | None = None
    done: bool = False  # Terminal marker


@dataclass
class StreamEvent:
    """What callers of a chat stream receive."""

    type: str  # "content" | "tool_call" | "usage" | "done"
    content: str = ""
    tool_call: ToolCall | None = None
    usage: TokenUsage | None = None
    model: str = ""
    finish_reason: str | None = None
