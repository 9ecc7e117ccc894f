import asyncio
import json
import unittest
from types import SimpleNamespace

from termai.llm_models import CLAUDE_37_SONNET, get_model
from termai.models import Message, Role, TokenUsage, ToolCall, ToolResult
from termai.provider import ProviderConfig
from termai.provider_events import Complete, ContentDelta, ContentStart, ContentStop, ThinkingDelta
from termai.providers.anthropic_provider import AnthropicProvider

from tests.fakes import FakeTool


class _FakeStreamContext:
    def __init__(self, events: list[object], final_message: object):
        self._events = events
        self._final_message = final_message

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def __aiter__(self):
        self._iter = iter(self._events)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration

    async def get_final_message(self):
        return self._final_message


class _FakeMessages:
    def __init__(self, stream_ctx=None, create_response=None):
        self._stream_ctx = stream_ctx
        self._create_response = create_response
        self.requests: list[dict] = []

    def stream(self, **kwargs):
        self.requests.append(kwargs)
        return self._stream_ctx

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return self._create_response


class _FakeClient:
    def __init__(self, stream_ctx=None, create_response=None):
        self.messages = _FakeMessages(stream_ctx, create_response)


def _user(text: str) -> Message:
    return Message(id="u", session_id="s", role=Role.USER, content=text)


def _final_message(content: list, **usage) -> SimpleNamespace:
    usage.setdefault("input_tokens", 10)
    usage.setdefault("output_tokens", 5)
    return SimpleNamespace(stop_reason="end_turn", usage=SimpleNamespace(**usage), content=content)


class AnthropicProviderTests(unittest.TestCase):
    def _make_provider(self, stream_ctx=None, create_response=None) -> AnthropicProvider:
        provider = AnthropicProvider.__new__(AnthropicProvider)
        provider._config = ProviderConfig(
            api_key="test-key",
            model=get_model(CLAUDE_37_SONNET),
            system_prompt="sys",
            max_tokens=100,
        )
        provider._client = _FakeClient(stream_ctx, create_response)
        return provider

    def test_convert_tools_caches_last_tool(self) -> None:
        provider = self._make_provider()

        result = provider.convert_tools([FakeTool("glob"), FakeTool("view")])

        self.assertEqual(["glob", "view"], [t["name"] for t in result])
        self.assertNotIn("cache_control", result[0])
        self.assertEqual({"type": "ephemeral"}, result[1]["cache_control"])

    def test_convert_messages_maps_roles(self) -> None:
        provider = self._make_provider()
        history = [
            _user("find it"),
            Message(
                id="a",
                session_id="s",
                role=Role.ASSISTANT,
                content="Looking",
                tool_calls=[ToolCall(id="t1", name="glob", input='{"pattern": "*.py"}')],
            ),
            Message(
                id="t",
                session_id="s",
                role=Role.TOOL,
                tool_results=[ToolResult(tool_call_id="t1", content="a.py", is_error=False)],
            ),
            _user("thanks"),
        ]

        result = provider.convert_messages(history)

        self.assertEqual(["user", "assistant", "user", "user"], [m["role"] for m in result])
        self.assertEqual({"type": "ephemeral"}, result[0]["content"][0]["cache_control"])
        self.assertEqual({"type": "ephemeral"}, result[1]["content"][0]["cache_control"])
        self.assertNotIn("cache_control", result[3]["content"][0])
        tool_use = result[1]["content"][1]
        self.assertEqual({"type": "tool_use", "id": "t1", "name": "glob", "input": {"pattern": "*.py"}}, tool_use)
        self.assertEqual("tool_result", result[2]["content"][0]["type"])
        self.assertEqual("t1", result[2]["content"][0]["tool_use_id"])

    def test_convert_messages_keeps_malformed_tool_input_paired(self) -> None:
        provider = self._make_provider()
        history = [
            Message(
                id="a",
                session_id="s",
                role=Role.ASSISTANT,
                tool_calls=[ToolCall(id="t1", name="glob", input="{not json")],
            ),
            Message(
                id="b",
                session_id="s",
                role=Role.TOOL,
                tool_results=[ToolResult(tool_call_id="t1", content="error running tool: bad input", is_error=True)],
            ),
        ]

        result = provider.convert_messages(history)

        tool_use = result[0]["content"][0]
        self.assertEqual({"type": "tool_use", "id": "t1", "name": "glob", "input": {"raw": "{not json"}}, tool_use)
        self.assertEqual("t1", result[1]["content"][0]["tool_use_id"])

    def test_stream_response_translates_frames(self) -> None:
        events = [
            SimpleNamespace(type="message_start"),
            SimpleNamespace(type="content_block_start"),
            SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="thinking_delta", thinking="hmm")),
            SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="Hello")),
            SimpleNamespace(type="content_block_stop"),
            SimpleNamespace(type="message_stop"),
        ]
        final = _final_message(
            [
                SimpleNamespace(type="text", text="Hello"),
                SimpleNamespace(type="tool_use", id="t1", name="view", input={"file_path": "x"}),
            ],
            cache_creation_input_tokens=7,
            cache_read_input_tokens=None,
        )
        provider = self._make_provider(stream_ctx=_FakeStreamContext(events, final))

        async def run():
            return [event async for event in provider.stream_response([_user("hi")], [])]

        received = asyncio.run(run())

        self.assertEqual(
            [ContentStart(), ThinkingDelta("hmm"), ContentDelta("Hello"), ContentStop()],
            received[:-1],
        )
        self.assertIsInstance(received[-1], Complete)
        response = received[-1].response
        self.assertEqual("Hello", response.content)
        self.assertEqual([ToolCall(id="t1", name="view", input=json.dumps({"file_path": "x"}))], response.tool_calls)
        self.assertEqual(TokenUsage(input_tokens=10, output_tokens=5, cache_creation_tokens=7), response.usage)

    def test_stream_temperature_follows_think_keyword(self) -> None:
        final = _final_message([SimpleNamespace(type="text", text="ok")])
        provider = self._make_provider(stream_ctx=_FakeStreamContext([], final))

        async def run(text: str):
            return [event async for event in provider.stream_response([_user(text)], [FakeTool("ls")])]

        asyncio.run(run("please think hard"))
        asyncio.run(run("list files"))

        requests = provider._client.messages.requests
        self.assertEqual(1.0, requests[0]["temperature"])
        self.assertEqual(0.0, requests[1]["temperature"])
        self.assertEqual("sys", requests[0]["system"][0]["text"])
        self.assertEqual({"type": "ephemeral"}, requests[0]["system"][0]["cache_control"])
        self.assertEqual("claude-3-7-sonnet-latest", requests[0]["model"])
        self.assertEqual(["ls"], [t["name"] for t in requests[0]["tools"]])

    def test_send_messages_returns_full_response(self) -> None:
        create_response = _final_message([SimpleNamespace(type="text", text="A short title")])
        provider = self._make_provider(create_response=create_response)

        response = asyncio.run(provider.send_messages([_user("hello")], []))

        self.assertEqual("A short title", response.content)
        self.assertEqual([], response.tool_calls)
        request = provider._client.messages.requests[0]
        self.assertEqual(0.0, request["temperature"])
        self.assertNotIn("tools", request)


if __name__ == "__main__":
    unittest.main()
