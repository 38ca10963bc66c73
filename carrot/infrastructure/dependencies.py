"""Dependency wiring — builds backends, orchestrators and agents from Settings.

Settings are read here once; everything below receives plain constructor
values and never consults the environment itself.
"""

from carrot.application.interfaces.chat_backend import ChatBackend, SchemaConverter
from carrot.application.services import (
    CarrotAgent,
    ChatOrchestrator,
    ConversationHistory,
)
from carrot.application.services.tool_schema import to_json_schema
from carrot.config import Settings, get_settings
from carrot.domain.entities import ToolDefinition, UsageCallback
from carrot.infrastructure.bedrock import BedrockBackend
from carrot.infrastructure.ollama import OllamaBackend


def create_backend(
    settings: Settings | None = None,
    *,
    schema_converter: SchemaConverter = to_json_schema,
) -> ChatBackend:
    """Provides the backend adapter selected by ``settings.provider``."""
    settings = settings or get_settings()

    if settings.provider == "bedrock":
        return BedrockBackend(
            region=settings.bedrock_region,
            default_model=settings.bedrock_default_model,
            endpoint_url=settings.bedrock_endpoint_url,
            temperature=settings.default_temperature,
            top_p=settings.default_top_p,
            max_tokens=settings.default_max_tokens,
            schema_converter=schema_converter,
        )
    if settings.provider == "ollama":
        return OllamaBackend(
            base_url=settings.ollama_base_url,
            default_model=settings.ollama_default_model,
            temperature=settings.default_temperature,
            top_p=settings.default_top_p,
            max_tokens=settings.default_max_tokens,
            timeout=settings.ollama_timeout,
            schema_converter=schema_converter,
        )
    raise ValueError(f"Unsupported provider: {settings.provider!r}")


def create_orchestrator(
    settings: Settings | None = None,
    *,
    backend: ChatBackend | None = None,
    on_usage: UsageCallback | None = None,
) -> ChatOrchestrator:
    """Provides a ChatOrchestrator bound to the configured backend."""
    settings = settings or get_settings()
    return ChatOrchestrator(
        backend or create_backend(settings),
        default_retries=settings.default_retries,
        retry_base_delay=settings.retry_base_delay,
        retry_backoff_factor=settings.retry_backoff_factor,
        retry_max_delay=settings.retry_max_delay,
        on_usage=on_usage,
    )


def create_history(settings: Settings | None = None) -> ConversationHistory:
    """Provides a ConversationHistory with the configured cap."""
    settings = settings or get_settings()
    return ConversationHistory(max_messages=settings.history_max_messages)


def create_agent(
    settings: Settings | None = None,
    *,
    orchestrator: ChatOrchestrator | None = None,
    tools: list[ToolDefinition] | None = None,
    system_prompt: str | None = None,
    history: ConversationHistory | None = None,
) -> CarrotAgent:
    """Provides a CarrotAgent using the configured iteration cap and memory size."""
    settings = settings or get_settings()
    return CarrotAgent(
        orchestrator or create_orchestrator(settings),
        tools=tools,
        system_prompt=system_prompt,
        history=history,
        max_iterations=settings.agent_max_iterations,
        history_size=settings.agent_history_size,
    )
