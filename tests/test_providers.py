import asyncio
import json

import httpx
import pytest

from app.core.config import Settings
from app.llm.models.llm_model import FunctionSpec, LLMMessage, ProviderResponse
from app.llm.service.llm_service import LLMService, create_provider
from app.llm.service.provider.anthropic import AnthropicProvider
from app.llm.service.provider.base_provider import BaseProvider, ProviderError, flatten_tool_message
from app.llm.service.provider.cloudflare import CloudflareProvider
from app.llm.service.provider.deepseek import DeepSeekProvider
from app.llm.service.provider.gemini import GeminiProvider
from app.llm.service.provider.ollama import OllamaProvider
from app.llm.service.provider.openai_provider import OpenAIProvider

TIME_TOOL = FunctionSpec(
    name="get_current_time",
    description="Get the current time",
    parameters={"type": "object", "properties": {"timezone": {"type": "string", "description": "IANA zone"}}, "required": []},
)

MESSAGES = [
    LLMMessage(role="system", content="You are EMO."),
    LLMMessage(role="user", content="[alice]: what time is it?"),
]


class Recorder:
    """httpx.MockTransport handler that records requests and replies from a script."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)

    def transport(self):
        return httpx.MockTransport(self)


def cloudflare(recorder, **kwargs):
    return CloudflareProvider("acct", "token", transport=recorder.transport(), **kwargs)


# Cloudflare

@pytest.mark.asyncio
async def test_cloudflare_text_reply():
    recorder = Recorder(httpx.Response(200, json={"success": True, "result": {"response": "Hi alice!"}}))

    response = await cloudflare(recorder).call(MESSAGES)

    assert response == ProviderResponse(text="Hi alice!")
    request = recorder.requests[0]
    assert request.url.path == "/client/v4/accounts/acct/ai/run/@cf/meta/llama-3-8b-instruct"
    assert request.headers["Authorization"] == "Bearer token"
    assert "tools" not in recorder.last_json
    assert recorder.last_json["messages"][0] == {"role": "system", "content": "You are EMO."}


@pytest.mark.asyncio
async def test_cloudflare_tools_use_tool_model_and_flat_shape():
    body = {
        "success": True,
        "result": {"tool_calls": [{"name": "get_current_time", "arguments": {"timezone": "UTC"}}, {"arguments": {}}]},
    }
    recorder = Recorder(httpx.Response(200, json=body))

    response = await cloudflare(recorder).call(MESSAGES, [TIME_TOOL])

    assert recorder.requests[0].url.path.endswith("/ai/run/@cf/meta/llama-3.1-8b-instruct")
    assert recorder.last_json["tools"] == [TIME_TOOL.model_dump()]
    assert response.has_tool_calls
    # nameless entries are dropped
    [call] = response.tool_calls
    assert call.name == "get_current_time"
    assert call.arguments == {"timezone": "UTC"}


@pytest.mark.asyncio
async def test_cloudflare_null_tool_calls_is_text():
    recorder = Recorder(httpx.Response(200, json={"success": True, "result": {"response": "ok", "tool_calls": None}}))
    response = await cloudflare(recorder).call(MESSAGES, [TIME_TOOL])
    assert response.text == "ok"
    assert not response.has_tool_calls


@pytest.mark.asyncio
async def test_cloudflare_http_error():
    recorder = Recorder(httpx.Response(500, text="internal boom"))

    with pytest.raises(ProviderError) as exc:
        await cloudflare(recorder).call(MESSAGES)

    assert exc.value.status == 500
    assert str(exc.value) == "cloudflare API error: 500 internal boom"


def test_provider_error_truncates_long_bodies():
    error = ProviderError("gemini", 502, "x" * 1000)
    assert str(error) == f"gemini API error: 502 {'x' * 300}..."
    assert error.body == "x" * 1000


@pytest.mark.asyncio
async def test_cloudflare_unsuccessful_body():
    recorder = Recorder(httpx.Response(200, json={"success": False, "errors": [{"message": "bad model"}]}))
    with pytest.raises(ProviderError):
        await cloudflare(recorder).call(MESSAGES)


@pytest.mark.asyncio
async def test_cloudflare_malformed_body():
    recorder = Recorder(httpx.Response(200, text="<html>not json</html>"))
    with pytest.raises(ProviderError) as exc:
        await cloudflare(recorder).call(MESSAGES)
    assert "malformed response" in str(exc.value)


@pytest.mark.asyncio
async def test_cloudflare_transport_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = CloudflareProvider("acct", "token", transport=httpx.MockTransport(refuse))
    with pytest.raises(ProviderError) as exc:
        await provider.call(MESSAGES)
    assert exc.value.status == "transport"


@pytest.mark.asyncio
async def test_missing_credentials_fail_without_network():
    recorder = Recorder()
    provider = CloudflareProvider(None, None, transport=recorder.transport())

    assert not provider.is_enabled()
    with pytest.raises(ProviderError) as exc:
        await provider.call(MESSAGES)
    assert exc.value.status == "disabled"
    assert recorder.requests == []


# Ollama

@pytest.mark.asyncio
async def test_ollama_local_chat_with_nested_tools():
    body = {"message": {"role": "assistant", "content": "", "tool_calls": [{"function": {"name": "get_current_time", "arguments": {"timezone": "UTC"}}}]}}
    recorder = Recorder(httpx.Response(200, json=body))
    provider = OllamaProvider(host="http://localhost:11434/", transport=recorder.transport())

    response = await provider.call(MESSAGES, [TIME_TOOL])

    assert str(recorder.requests[0].url) == "http://localhost:11434/api/chat"
    payload = recorder.last_json
    assert payload["stream"] is False
    assert payload["options"] == {"temperature": 0.6, "num_predict": 256}
    assert payload["tools"] == [{"type": "function", "function": TIME_TOOL.model_dump()}]
    assert response.tool_calls[0].name == "get_current_time"
    assert response.tool_calls[0].id is None


@pytest.mark.asyncio
async def test_ollama_local_text_reply():
    recorder = Recorder(httpx.Response(200, json={"message": {"role": "assistant", "content": "Hello!"}}))
    provider = OllamaProvider(transport=recorder.transport())
    assert (await provider.call(MESSAGES)).text == "Hello!"
    assert "tools" not in recorder.last_json


@pytest.mark.asyncio
async def test_ollama_cloud_uses_flattened_prompt():
    recorder = Recorder(httpx.Response(200, json={"response": "Hi there"}))
    provider = OllamaProvider(host="https://ollama.com", model="gpt-oss:20b", api_key="k", transport=recorder.transport())
    messages = MESSAGES + [
        LLMMessage(role="assistant", content="Let me check."),
        LLMMessage(role="tool", content="12:00 (UTC)", name="get_current_time"),
    ]

    response = await provider.call(messages, [TIME_TOOL])

    assert provider.is_cloud
    assert response.text == "Hi there"
    request = recorder.requests[0]
    assert request.url.path == "/api/generate"
    assert request.headers["Authorization"] == "Bearer k"
    payload = recorder.last_json
    assert "tools" not in payload
    assert payload["prompt"] == "\n\n".join(
        [
            "System: You are EMO.",
            "User: [alice]: what time is it?",
            "Assistant: Let me check.",
            "User: [tool result: get_current_time] 12:00 (UTC)",
        ]
    )


# Gemini

@pytest.mark.asyncio
async def test_gemini_payload_shape():
    body = {"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "alice"}]}}]}
    recorder = Recorder(httpx.Response(200, json=body))
    provider = GeminiProvider("g-key", transport=recorder.transport())
    messages = MESSAGES + [LLMMessage(role="assistant", content="Hi!")]

    response = await provider.call(messages, [TIME_TOOL])

    assert response.text == "Hello alice"
    request = recorder.requests[0]
    assert request.url.path == "/v1beta/models/gemini-2.5-flash:generateContent"
    assert request.url.params["key"] == "g-key"
    payload = recorder.last_json
    assert payload["systemInstruction"] == {"parts": [{"text": "You are EMO."}]}
    assert [c["role"] for c in payload["contents"]] == ["user", "model"]
    assert payload["generationConfig"] == {"temperature": 0.6, "maxOutputTokens": 256}
    assert payload["tools"] == [{"functionDeclarations": [TIME_TOOL.model_dump()]}]


@pytest.mark.asyncio
async def test_gemini_collects_every_function_call():
    parts = [
        {"functionCall": {"name": "get_current_time", "args": {"timezone": "UTC"}}},
        {"functionCall": {"name": "get_current_time", "args": {"timezone": "Asia/Tokyo"}}},
    ]
    recorder = Recorder(httpx.Response(200, json={"candidates": [{"content": {"parts": parts}}]}))

    response = await GeminiProvider("g-key", transport=recorder.transport()).call(MESSAGES, [TIME_TOOL])

    assert [c.arguments for c in response.tool_calls] == [{"timezone": "UTC"}, {"timezone": "Asia/Tokyo"}]
    assert all(c.id is None for c in response.tool_calls)


def test_gemini_normalizes_foreign_model():
    assert GeminiProvider("k", model="gpt-4o").model == "gemini-2.5-flash"


# OpenAI-compatible

def openai_completion(message):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-3.5-turbo",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
    }


@pytest.mark.asyncio
async def test_openai_tool_call_arguments_stay_a_string():
    message = {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {"id": "call_1", "type": "function", "function": {"name": "get_current_time", "arguments": '{"timezone": "UTC"}'}}
        ],
    }
    recorder = Recorder(httpx.Response(200, json=openai_completion(message)))
    provider = OpenAIProvider(
        "sk-test", host="https://llm.example.com", http_client=httpx.AsyncClient(transport=recorder.transport())
    )

    response = await provider.call(MESSAGES, [TIME_TOOL])

    assert recorder.requests[0].url.path == "/v1/chat/completions"
    assert recorder.last_json["tools"] == [{"type": "function", "function": TIME_TOOL.model_dump()}]
    [call] = response.tool_calls
    assert call.id == "call_1"
    assert call.arguments == '{"timezone": "UTC"}'
    await provider.aclose()


@pytest.mark.asyncio
async def test_openai_status_error_is_provider_error():
    recorder = Recorder(httpx.Response(401, json={"error": {"message": "bad key"}}))
    provider = OpenAIProvider("sk-bad", http_client=httpx.AsyncClient(transport=recorder.transport()))

    with pytest.raises(ProviderError) as exc:
        await provider.call(MESSAGES)

    assert exc.value.status == 401
    assert "bad key" in exc.value.body
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_deepseek_reuses_openai_wire_format():
    recorder = Recorder(httpx.Response(200, json=openai_completion({"role": "assistant", "content": "Hello"})))
    provider = DeepSeekProvider("ds-key", model="gpt-4", http_client=httpx.AsyncClient(transport=recorder.transport()))

    response = await provider.call(MESSAGES)

    assert response.text == "Hello"
    assert provider.model == "deepseek-chat"
    assert recorder.requests[0].url.host == "api.deepseek.com"
    assert recorder.requests[0].url.path == "/v1/chat/completions"
    assert recorder.last_json["model"] == "deepseek-chat"


def test_openai_base_url_is_not_doubled():
    assert OpenAIProvider("k", host="https://api.openai.com/v1/").base_url == "https://api.openai.com/v1"


# Anthropic

def anthropic_message(content):
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-5-haiku-latest",
        "content": content,
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 1, "output_tokens": 1},
    }


@pytest.mark.asyncio
async def test_anthropic_tool_use_and_request_shape():
    content = [{"type": "tool_use", "id": "toolu_1", "name": "get_current_time", "input": {"timezone": "UTC"}}]
    recorder = Recorder(httpx.Response(200, json=anthropic_message(content)))
    provider = AnthropicProvider("a-key", http_client=httpx.AsyncClient(transport=recorder.transport()))

    response = await provider.call(MESSAGES, [TIME_TOOL])

    assert recorder.requests[0].url.path == "/v1/messages"
    payload = recorder.last_json
    assert payload["system"] == "You are EMO."
    assert payload["messages"] == [{"role": "user", "content": "[alice]: what time is it?"}]
    assert payload["tools"] == [
        {"name": TIME_TOOL.name, "description": TIME_TOOL.description, "input_schema": TIME_TOOL.parameters}
    ]
    [call] = response.tool_calls
    assert (call.id, call.name, call.arguments) == ("toolu_1", "get_current_time", {"timezone": "UTC"})


@pytest.mark.asyncio
async def test_anthropic_text_blocks_are_joined():
    content = [{"type": "text", "text": "Hello "}, {"type": "text", "text": "alice"}]
    recorder = Recorder(httpx.Response(200, json=anthropic_message(content)))
    provider = AnthropicProvider("a-key", http_client=httpx.AsyncClient(transport=recorder.transport()))

    assert (await provider.call(MESSAGES)).text == "Hello alice"


def test_anthropic_merges_roles_and_starts_with_user():
    messages = [
        LLMMessage(role="system", content="sys"),
        LLMMessage(role="assistant", content="a1"),
        LLMMessage(role="user", content="u1"),
        LLMMessage(role="tool", content="42", name="calc"),
        LLMMessage(role="assistant", content="a2"),
    ]
    assert AnthropicProvider._to_messages(messages) == [
        {"role": "user", "content": "(earlier conversation omitted)"},
        {"role": "assistant", "content": "a1"},
        {"role": "user", "content": "u1\n\n[tool result: calc] 42"},
        {"role": "assistant", "content": "a2"},
    ]


# Shared pieces

def test_flatten_tool_message():
    tool = LLMMessage(role="tool", content="12:00", name="get_current_time", tool_call_id="call_1")
    assert flatten_tool_message(tool) == LLMMessage(role="user", content="[tool result: get_current_time] 12:00")
    assert flatten_tool_message(MESSAGES[1]) is MESSAGES[1]


class SlowProvider(BaseProvider):
    name = "slow"

    def __init__(self, delay):
        super().__init__("slow-model")
        self.delay = delay

    async def call(self, messages, tools=None):
        await asyncio.sleep(self.delay)
        return ProviderResponse(text="late")


@pytest.mark.asyncio
async def test_llm_service_times_out():
    service = LLMService(SlowProvider(1.0), request_timeout_ms=20)
    with pytest.raises(ProviderError) as exc:
        await service.call(MESSAGES)
    assert exc.value.status == "timeout"
    assert "slow" not in service.provider_latency


@pytest.mark.asyncio
async def test_llm_service_records_latency():
    service = LLMService(SlowProvider(0), request_timeout_ms=1000)
    assert (await service.call(MESSAGES)).text == "late"
    assert service.provider_name == "slow"
    assert service.provider_latency["slow"] >= 0


@pytest.mark.parametrize(
    "name,expected",
    [
        ("cloudflare", CloudflareProvider),
        ("Ollama", OllamaProvider),
        ("openai", OpenAIProvider),
        ("deepseek", DeepSeekProvider),
        ("gemini", GeminiProvider),
        ("anthropic", AnthropicProvider),
        ("nope", CloudflareProvider),
        ("", CloudflareProvider),
    ],
)
def test_create_provider(name, expected):
    provider = create_provider(Settings(_env_file=None, AI_PROVIDER=name))
    assert type(provider) is expected
