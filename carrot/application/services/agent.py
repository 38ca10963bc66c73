"""Autonomous tool-calling agent built on the chat orchestrator."""

from carrot.application.services.chat_orchestrator import ChatOrchestrator
from carrot.application.services.conversation_history import ConversationHistory
from carrot.application.services.tool_executor import ToolExecutor, ToolRegistry
from carrot.domain.entities import ChatRequest, Message, ToolDefinition
from carrot.infrastructure.logging.colored_logger import AgentLogger, AgentStep

alog = AgentLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant with access to tools. "
    "Call a tool when it helps you answer; otherwise answer directly."
)
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_HISTORY_SIZE = 20
MAX_ITERATIONS_REACHED = "Max iterations reached."


class CarrotAgent:
    """Drives a model through repeated tool-calling turns.

    Each turn sends the whole conversation to the orchestrator. When the
    model asks for tools, every call of the turn runs concurrently and the
    results are appended as one "tool" message before the next turn. The
    run ends when the model answers without tool calls, or with
    MAX_ITERATIONS_REACHED once ``max_iterations`` tool turns have passed.

    Pass a ConversationHistory to keep memory across ``run`` calls; by
    default each agent owns a fresh one.
    """

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        *,
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
        history: ConversationHistory | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        history_size: int = DEFAULT_HISTORY_SIZE,
        model: str | None = None,
        fallback_models: list[str] | None = None,
    ):
        self._orchestrator = orchestrator
        self._registry = ToolRegistry(tools or [])
        self._executor = ToolExecutor(self._registry)
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._history = history if history is not None else ConversationHistory(history_size)
        self._max_iterations = max_iterations
        self._model = model
        self._fallback_models = list(fallback_models or [])

    @property
    def history(self) -> ConversationHistory:
        return self._history

    @property
    def tools(self) -> ToolRegistry:
        return self._registry

    async def run(self, prompt: str) -> str:
        """Run one autonomous interaction and return the final answer."""
        self._history.append(Message(role="user", content=prompt))

        iterations = 0
        while iterations < self._max_iterations:
            alog.step(AgentStep.MODEL, "Calling model", iteration=iterations + 1)
            try:
                response = await self._orchestrator.chat(self._build_request())
            except Exception as e:
                alog.error("Model call failed", error=e)
                raise

            if not response.tool_calls:
                self._history.append(Message(role="assistant", content=response.content))
                alog.step(AgentStep.DONE, "Final answer", iterations=iterations, model=response.model)
                return response.content

            self._history.append(
                Message(
                    role="assistant",
                    content=response.content,
                    tool_calls=list(response.tool_calls),
                )
            )

            alog.step(AgentStep.TOOLS, f"{len(response.tool_calls)} tool call(s)")
            alog.detail(", ".join(tc.name for tc in response.tool_calls))
            results = await self._executor.execute_all(response.tool_calls)
            failed = sum(1 for r in results if r.is_error)
            if failed:
                alog.detail(f"{failed} of {len(results)} tool call(s) failed")

            self._history.append(Message.from_tool_results(results))
            iterations += 1

        alog.step(AgentStep.LIMIT, "Max iterations reached", max_iterations=self._max_iterations)
        return MAX_ITERATIONS_REACHED

    def _build_request(self) -> ChatRequest:
        return ChatRequest(
            messages=self._history.list(),
            model=self._model,
            fallback_models=self._fallback_models,
            system_instruction=self._system_prompt,
            tools=self._registry.list(),
        )
