"""Abstract chat backend interface — port for model-serving adapters.

Each supported backend (Bedrock, Ollama) implements this interface.
The orchestrator is bound to exactly one implementation for its lifetime.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel

from carrot.domain.entities import ChatRequest, ChatResponse, StreamChunk

# Pure conversion from a tool's parameter model to the backend's schema dialect.
SchemaConverter = Callable[[type[BaseModel]], dict[str, Any]]


class ChatBackend(ABC):
    """Port — defines what the orchestrator needs from any backend."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Unique name identifying this backend (e.g. 'bedrock', 'ollama')."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when a request does not name one."""
        ...

    @abstractmethod
    async def invoke(self, model: str, request: ChatRequest) -> ChatResponse:
        """Send a non-streaming chat request.

        Args:
            model: The model identifier to call.
            request: The normalized request. ``request.model`` is ignored.

        Returns:
            A normalized ChatResponse tagged with ``model``.

        Raises:
            BackendError: A classified failure (see classify_backend_error).
        """
        ...

    @abstractmethod
    async def invoke_stream(
        self, model: str, request: ChatRequest
    ) -> AsyncIterator[StreamChunk]:
        """Send a streaming chat request.

        Yields normalized StreamChunks in the order the backend produces
        them. Tool calls may arrive split across several chunks as
        ToolCallFragments.

        Raises:
            BackendError: A classified failure, before or during the stream.
        """
        ...
