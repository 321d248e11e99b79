import json

import httpx
import pytest

from fakes import FakeUpstream, gemini_reply
from voice_relay.models.chat_models import ChatRequest, ChatTurn
from voice_relay.services.llm_service import (
    ChatRelay,
    GeminiProvider,
    GeminiSystemInstructionProvider,
    build_contents,
    create_generation_provider,
    extract_text,
)
from voice_relay.utils.error_handler import (
    ConfigurationError,
    EmptyGenerationError,
    MalformedResponseError,
    RequestValidationFailed,
    UpstreamError,
)


def test_build_contents_empty_history_with_persona():
    contents = build_contents("  Xin chào  ", [], persona="Be nice.")
    assert contents == [
        {"role": "user", "parts": [{"text": "Be nice."}]},
        {"role": "user", "parts": [{"text": "Xin chào"}]},
    ]


def test_build_contents_empty_history_without_persona():
    assert build_contents("hi", []) == [{"role": "user", "parts": [{"text": "hi"}]}]


def test_build_contents_keeps_order_and_maps_roles():
    history = [
        ChatTurn(role="user", text="one"),
        ChatTurn(role="assistant", text="two"),
        ChatTurn(role="model", text="three"),
        ChatTurn(role="bot", text="four"),
        ChatTurn(role="user", text="five"),
    ]
    contents = build_contents("six", history)

    assert [c["parts"][0]["text"] for c in contents] == ["one", "two", "three", "four", "five", "six"]
    assert [c["role"] for c in contents] == ["user", "model", "model", "model", "user", "user"]


def test_system_instruction_variant_moves_persona_out_of_contents():
    provider = GeminiSystemInstructionProvider("key", persona="  Be nice.  ")
    payload = provider.build_payload("hi", [])

    assert payload["systemInstruction"] == {"parts": [{"text": "Be nice."}]}
    assert payload["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
    assert payload["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 1024}


def test_create_generation_provider_follows_persona_mode(settings):
    assert type(create_generation_provider(settings)) is GeminiProvider
    settings.persona_mode = "system_instruction"
    assert isinstance(create_generation_provider(settings), GeminiSystemInstructionProvider)


@pytest.mark.parametrize("data", [
    {},
    {"candidates": []},
    {"candidates": [{"content": {"parts": []}}]},
    {"candidates": [{"content": {"parts": [{"text": "   "}]}}]},
    {"candidates": [{"finishReason": "SAFETY"}]},
    [],
])
def test_extract_text_missing(data):
    assert extract_text(data) == ""


async def test_reply_success_sends_expected_request():
    upstream = FakeUpstream(gemini_reply("  Chào anh!  "))
    async with upstream.client() as client:
        relay = ChatRelay(GeminiProvider("secret", persona="Persona"), client)
        text = await relay.reply(ChatRequest(message="Chào em", history=[{"role": "assistant", "text": "Hi"}]))

    assert text == "Chào anh!"
    assert len(upstream.requests) == 1
    request = upstream.requests[0]
    assert request.url.path == "/v1beta/models/gemini-2.5-flash:generateContent"
    assert request.url.params["key"] == "secret"
    body = json.loads(request.content)
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["contents"][-1]["parts"][0]["text"] == "Chào em"


async def test_reply_without_credential_makes_no_call():
    upstream = FakeUpstream(gemini_reply("unused"))
    async with upstream.client() as client:
        relay = ChatRelay(GeminiProvider(None), client)
        with pytest.raises(ConfigurationError) as exc_info:
            await relay.reply(ChatRequest(message="hello"))

    assert exc_info.value.status_code == 500
    assert "GEMINI_API_KEY" in exc_info.value.message
    assert upstream.requests == []


async def test_reply_rejects_blank_message():
    upstream = FakeUpstream(gemini_reply("unused"))
    async with upstream.client() as client:
        relay = ChatRelay(GeminiProvider("key"), client)
        with pytest.raises(RequestValidationFailed):
            await relay.reply(ChatRequest(message="   "))
    assert upstream.requests == []


async def test_reply_passes_through_upstream_error_body():
    upstream = FakeUpstream(httpx.Response(429, text='{"error": {"code": 429}}'))
    async with upstream.client() as client:
        relay = ChatRelay(GeminiProvider("key"), client)
        with pytest.raises(UpstreamError) as exc_info:
            await relay.reply(ChatRequest(message="hello"))

    assert exc_info.value.status_code == 429
    assert exc_info.value.detail == '{"error": {"code": 429}}'


async def test_reply_without_text_is_empty_generation():
    payload = {"candidates": [{"content": {"parts": []}}]}
    upstream = FakeUpstream(httpx.Response(200, json=payload))
    async with upstream.client() as client:
        relay = ChatRelay(GeminiProvider("key"), client)
        with pytest.raises(EmptyGenerationError) as exc_info:
            await relay.reply(ChatRequest(message="hello"))

    assert exc_info.value.raw == payload


async def test_reply_non_json_body_is_malformed():
    upstream = FakeUpstream(httpx.Response(200, text="<html>oops</html>"))
    async with upstream.client() as client:
        relay = ChatRelay(GeminiProvider("key"), client)
        with pytest.raises(MalformedResponseError):
            await relay.reply(ChatRequest(message="hello"))


async def test_reply_network_failure_is_upstream_error():
    upstream = FakeUpstream(httpx.ConnectError("connection refused"))
    async with upstream.client() as client:
        relay = ChatRelay(GeminiProvider("key"), client)
        with pytest.raises(UpstreamError) as exc_info:
            await relay.reply(ChatRequest(message="hello"))

    assert not isinstance(exc_info.value, EmptyGenerationError)
    assert exc_info.value.status_code == 500
    assert "connection refused" in exc_info.value.message


class BrokenGeminiProvider(GeminiProvider):
    async def generate(self, client, message, history):
        raise UnicodeEncodeError("ascii", "é", 0, 1, "ordinal not in range(128)")


async def test_reply_unexpected_failure_is_upstream_error():
    upstream = FakeUpstream(gemini_reply("unused"))
    async with upstream.client() as client:
        relay = ChatRelay(BrokenGeminiProvider("key"), client)
        with pytest.raises(UpstreamError) as exc_info:
            await relay.reply(ChatRequest(message="hello"))

    assert exc_info.value.status_code == 500
    assert "ordinal not in range" in exc_info.value.message
