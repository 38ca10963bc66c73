"""Carrot — provider-agnostic chat orchestration with a tool-calling agent.

Typical use:

    from carrot import create_agent, tool

    agent = create_agent(tools=[get_weather])
    answer = await agent.run("What's the weather in Oslo?")
"""

from carrot.application.interfaces import ChatBackend, SchemaConverter
from carrot.application.services import (
    MAX_ITERATIONS_REACHED,
    CarrotAgent,
    ChatOrchestrator,
    ConversationHistory,
    ToolExecutor,
    ToolRegistry,
    UsageTracker,
)
from carrot.config import Settings, get_settings
from carrot.domain.entities import (
    ChatRequest,
    ChatResponse,
    Message,
    StreamEvent,
    TokenUsage,
    ToolCall,
    ToolDefinition,
    ToolResult,
    tool,
)
from carrot.domain.exceptions import (
    AuthenticationError,
    BackendError,
    CarrotError,
    ClientRequestError,
    RateLimitError,
    TransientBackendError,
)
from carrot.infrastructure.bedrock import BedrockBackend
from carrot.infrastructure.dependencies import (
    create_agent,
    create_backend,
    create_history,
    create_orchestrator,
)
from carrot.infrastructure.logging.log_config import setup_logging
from carrot.infrastructure.ollama import OllamaBackend

__all__ = [
    "MAX_ITERATIONS_REACHED",
    "AuthenticationError",
    "BackendError",
    "BedrockBackend",
    "CarrotAgent",
    "CarrotError",
    "ChatBackend",
    "ChatOrchestrator",
    "ChatRequest",
    "ChatResponse",
    "ClientRequestError",
    "ConversationHistory",
    "Message",
    "OllamaBackend",
    "RateLimitError",
    "SchemaConverter",
    "Settings",
    "StreamEvent",
    "TokenUsage",
    "ToolCall",
    "ToolDefinition",
    "ToolExecutor",
    "ToolRegistry",
    "ToolResult",
    "TransientBackendError",
    "UsageTracker",
    "create_agent",
    "create_backend",
    "create_history",
    "create_orchestrator",
    "get_settings",
    "setup_logging",
    "tool",
]
