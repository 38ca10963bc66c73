"""End-to-end agent run through the real Ollama adapter over a mocked HTTP transport."""

import json

import httpx
import pytest
from pydantic import BaseModel

from carrot.application.services.agent import CarrotAgent
from carrot.application.services.chat_orchestrator import ChatOrchestrator
from carrot.application.services.usage_tracker import UsageTracker
from carrot.domain.entities import tool
from carrot.infrastructure.ollama import OllamaBackend


class CityArgs(BaseModel):
    city: str


@tool(parameters=CityArgs)
async def get_weather(args: CityArgs) -> dict:
    """Current weather for a city."""
    return {"city": args.city, "forecast": "sunny", "celsius": 21}


class FakeOllama:
    """Scripted /api/chat endpoint: fails once, then asks for a tool, then answers."""

    def __init__(self):
        self.payloads: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)

        if len(self.payloads) == 1:
            return httpx.Response(503, json={"error": "server busy"})

        if payload["messages"][-1]["role"] == "user":
            return httpx.Response(200, json={
                "model": payload["model"],
                "message": {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {"function": {"name": "get_weather", "arguments": {"city": "Oslo"}}}
                    ],
                },
                "done": True,
                "prompt_eval_count": 30,
                "eval_count": 10,
            })

        return httpx.Response(200, json={
            "model": payload["model"],
            "message": {"role": "assistant", "content": "It is sunny and 21°C in Oslo."},
            "done": True,
            "done_reason": "stop",
            "prompt_eval_count": 50,
            "eval_count": 12,
        })


@pytest.mark.asyncio
async def test_agent_answers_with_tool_over_ollama():
    """Retry, tool execution and the follow-up turn all go through the wire format."""
    server = FakeOllama()
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    backend = OllamaBackend(base_url="http://ollama.test", http_client=client)
    tracker = UsageTracker(feature="agent")
    orchestrator = ChatOrchestrator(backend, retry_base_delay=0.0, on_usage=tracker)
    agent = CarrotAgent(orchestrator, tools=[get_weather], system_prompt="You report weather.")

    answer = await agent.run("What's the weather in Oslo?")
    await client.aclose()

    assert answer == "It is sunny and 21°C in Oslo."
    # One failed attempt, then the tool turn and the answer turn
    assert len(server.payloads) == 3

    final_messages = server.payloads[-1]["messages"]
    assert final_messages[0] == {"role": "system", "content": "You report weather."}
    assert [m["role"] for m in final_messages] == ["system", "user", "assistant", "tool"]
    assert final_messages[3]["tool_name"] == "get_weather"
    assert json.loads(final_messages[3]["content"]) == {
        "city": "Oslo",
        "forecast": "sunny",
        "celsius": 21,
    }
    assert server.payloads[-1]["tools"][0]["function"]["name"] == "get_weather"

    assert tracker.calls == 2
    assert tracker.total.total_tokens == 102
    assert [m.role for m in agent.history.list()] == ["user", "assistant", "tool", "assistant"]
