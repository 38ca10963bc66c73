from .agent import CarrotAgent, MAX_ITERATIONS_REACHED
from .chat_orchestrator import ChatOrchestrator
from .conversation_history import ConversationHistory
from .tool_executor import ToolExecutor, ToolRegistry
from .tool_schema import to_json_schema, validate_arguments
from .usage_tracker import UsageTracker

__all__ = [
    "CarrotAgent",
    "MAX_ITERATIONS_REACHED",
    "ChatOrchestrator",
    "ConversationHistory",
    "ToolExecutor",
    "ToolRegistry",
    "to_json_schema",
    "validate_arguments",
    "UsageTracker",
]
