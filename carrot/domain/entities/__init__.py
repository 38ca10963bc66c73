from .chat_message import (
    ChatResponse,
    Message,
    StreamChunk,
    StreamEvent,
    TokenUsage,
    ToolCall,
    ToolCallFragment,
    ToolResult,
)
from .chat_request import ChatRequest, UsageCallback
from .tool import (
    ToolDefinition,
    ToolFunction,
    ValidationFailure,
    ValidationIssue,
    ValidationOk,
    ValidationResult,
    tool,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "Message",
    "StreamChunk",
    "StreamEvent",
    "TokenUsage",
    "ToolCall",
    "ToolCallFragment",
    "ToolDefinition",
    "ToolFunction",
    "ToolResult",
    "UsageCallback",
    "ValidationFailure",
    "ValidationIssue",
    "ValidationOk",
    "ValidationResult",
    "tool",
]
