"""Tests for HTTP-based adapters."""

import asyncio
import json
import logging
from types import SimpleNamespace

import httpx
import pytest

from ingredient_scanner.adapters import openai_inference_client
from ingredient_scanner.adapters.openai_inference_client import OpenAIInferenceClient
from ingredient_scanner.adapters.telegram_client import HttpxTelegramClient
from ingredient_scanner.adapters.telegram_file_client import HttpxTelegramFileClient
from ingredient_scanner.domain.usage import CallKind
from ingredient_scanner.errors import ImageFetchError
from ingredient_scanner.services.inference import InferenceRequest


class _FakeResponses:
    def __init__(self, response: object) -> None:
        self.response = response
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return self.response


class _FakeOpenAI:
    def __init__(self, response: object) -> None:
        self.responses = _FakeResponses(response)


def _response() -> SimpleNamespace:
    return SimpleNamespace(
        output=[
            SimpleNamespace(
                type="reasoning",
                summary=[SimpleNamespace(type="summary_text", text="Looking {")],
            ),
            SimpleNamespace(type="web_search_call"),
            SimpleNamespace(
                type="message",
                content=[
                    SimpleNamespace(type="output_text", text='{"is_product": '),
                    SimpleNamespace(type="output_text", text="true}"),
                ],
            ),
        ],
        usage=SimpleNamespace(
            input_tokens=1200,
            output_tokens=300,
            output_tokens_details=SimpleNamespace(reasoning_tokens=200),
        ),
    )


def _request(**overrides: object) -> InferenceRequest:
    values: dict[str, object] = {
        "kind": CallKind.DEEP_ANALYSIS,
        "model": "gpt-5.2",
        "prompt": "Analyze",
        "schema_name": "product_analysis",
        "schema": {"type": "object"},
        "max_output_tokens": 8192,
        "image_data_url": "data:image/jpeg;base64,ZmFrZQ==",
        "web_search": True,
        "reasoning_effort": "low",
    }
    values.update(overrides)
    return InferenceRequest(**values)  # type: ignore[arg-type]


def test_openai_inference_client_splits_segments_and_counts() -> None:
    fake = _FakeOpenAI(_response())
    client = OpenAIInferenceClient(client=fake)  # type: ignore[arg-type]

    reply = asyncio.run(client.complete(_request()))

    assert reply.answer_text == '{"is_product": true}'
    assert [segment.reasoning for segment in reply.segments] == [True, False, False]
    assert reply.counters.prompt_tokens == 1200
    assert reply.counters.output_tokens == 100
    assert reply.counters.thought_tokens == 200
    assert reply.counters.search_requests == 1


def test_openai_inference_client_builds_structured_request(
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake = _FakeOpenAI(_response())
    client = OpenAIInferenceClient(client=fake)  # type: ignore[arg-type]
    logger = logging.getLogger(openai_inference_client.__name__)
    caplog.set_level(logging.INFO, logger=logger.name)
    logger.addHandler(caplog.handler)
    try:
        asyncio.run(client.complete(_request(temperature=0.0)))
    finally:
        logger.removeHandler(caplog.handler)

    payload = fake.responses.last_payload
    assert payload is not None
    assert payload["text"]["format"]["strict"] is True  # type: ignore[index]
    assert payload["text"]["format"]["name"] == "product_analysis"  # type: ignore[index]
    assert payload["tools"] == [{"type": "web_search"}]
    assert payload["reasoning"] == {"effort": "low"}
    assert "temperature" not in payload
    assert "Dropping temperature=0.0 for deep_analysis call" in caplog.text
    content = payload["input"][0]["content"]  # type: ignore[index]
    assert content[1]["type"] == "input_image"


def test_openai_inference_client_sends_temperature_and_instructions() -> None:
    fake = _FakeOpenAI(SimpleNamespace(output=[], usage=None))
    client = OpenAIInferenceClient(client=fake)  # type: ignore[arg-type]

    reply = asyncio.run(
        client.complete(
            _request(
                reasoning_effort=None,
                temperature=0.0,
                system_instruction="Return only JSON.",
                web_search=False,
                image_data_url=None,
            )
        )
    )

    payload = fake.responses.last_payload
    assert payload is not None
    assert payload["temperature"] == 0.0
    assert payload["instructions"] == "Return only JSON."
    assert "tools" not in payload
    assert len(payload["input"][0]["content"]) == 1  # type: ignore[index]
    assert reply.answer_text == ""
    assert reply.counters.prompt_tokens == 0


def test_telegram_client_send_message_and_chat_action() -> None:
    seen: list[tuple[str, dict[str, object]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, json.loads(request.content.decode())))
        return httpx.Response(200, json={"ok": True, "result": {}})

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxTelegramClient(bot_token="token", http_client=async_client)

    asyncio.run(client.send_message(chat_id=1, text="Hi", reply_to_message_id=7))
    asyncio.run(client.send_chat_action(chat_id=1))

    assert seen[0][0] == "/bottoken/sendMessage"
    assert seen[0][1]["reply_parameters"] == {"message_id": 7}
    assert seen[1][0] == "/bottoken/sendChatAction"
    assert seen[1][1]["action"] == "typing"


def test_telegram_client_commands() -> None:
    seen_paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_paths.append(request.url.path)
        payload = json.loads(request.content.decode())
        assert payload["commands"][0]["command"] == "start"
        return httpx.Response(200, json={"ok": True, "result": True})

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxTelegramClient(bot_token="token", http_client=async_client)

    asyncio.run(
        client.set_my_commands(
            [{"command": "start", "description": "Welcome and how scanning works"}]
        )
    )

    assert seen_paths == ["/bottoken/setMyCommands"]


def test_telegram_client_raises_on_http_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxTelegramClient(bot_token="token", http_client=async_client)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.send_message(chat_id=1, text="Hi"))


def test_telegram_file_client_downloads_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/getFile"):
            return httpx.Response(
                200,
                json={
                    "ok": True,
                    "result": {"file_path": "photos/file.jpg"},
                },
            )
        assert request.url.path == "/file/bottoken/photos/file.jpg"
        return httpx.Response(200, content=b"image-bytes")

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxTelegramFileClient(bot_token="token", http_client=async_client)

    data = asyncio.run(client.download_file_bytes("file-id"))

    assert data == b"image-bytes"


def test_telegram_file_client_rejects_failed_lookup() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"ok": False, "result": {}})
    )
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxTelegramFileClient(bot_token="token", http_client=async_client)

    with pytest.raises(ImageFetchError):
        asyncio.run(client.download_file_bytes("file-id"))


def test_telegram_file_client_rejects_empty_download() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/getFile"):
            return httpx.Response(
                200, json={"ok": True, "result": {"file_path": "photos/x.jpg"}}
            )
        return httpx.Response(200, content=b"")

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxTelegramFileClient(bot_token="token", http_client=async_client)

    with pytest.raises(ImageFetchError):
        asyncio.run(client.download_file_bytes("file-id"))
