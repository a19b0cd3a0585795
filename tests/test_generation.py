"""
Tests for GenerationClient with a mocked AsyncOpenAI client
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIError

from cropsight.services.generation import (
    Generation,
    GenerationClient,
    GenerationCitation,
    GenerationError,
    EmptyGenerationError,
    extract_citations,
)
from cropsight.services.pipeline import ImagePayload


def _response(content, annotations=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, annotations=annotations)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


def _client(create):
    openai_client = MagicMock()
    openai_client.chat.completions.create = create
    return GenerationClient(model="google/gemini-test", openai_client=openai_client, timeout=5)


class TestExtractCitations:
    def test_url_citations_only(self):
        message = SimpleNamespace(annotations=[
            {"type": "url_citation", "url_citation": {"url": "https://a.edu", "title": "A"}},
            SimpleNamespace(type="url_citation", url_citation=SimpleNamespace(url="https://b.org", title=None)),
            {"type": "file", "file": {}},
            {"type": "url_citation", "url_citation": {"title": "no url"}},
        ])
        assert extract_citations(message) == [
            GenerationCitation(title="A", uri="https://a.edu"),
            GenerationCitation(title="", uri="https://b.org"),
        ]

    def test_no_annotations(self):
        assert extract_citations(SimpleNamespace(annotations=None)) == []


class TestGenerate:
    def test_request_shape(self):
        create = AsyncMock(return_value=_response('{"ok": true}'))
        client = _client(create)
        image = ImagePayload(data=b"abc", mime_type="image/png")

        result = asyncio.run(client.generate(
            "describe",
            images=[image],
            response_shape={"type": "object"},
            temperature=0.0,
            system="json only",
        ))

        assert result == Generation(text='{"ok": true}', citations=[])
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "google/gemini-test"
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"][0] == {"role": "system", "content": "json only"}
        content = kwargs["messages"][1]["content"]
        assert content[0] == {"type": "text", "text": "describe"}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,YWJj"
        assert kwargs["response_format"]["type"] == "json_schema"
        assert "extra_body" not in kwargs
        assert "HTTP-Referer" in kwargs["extra_headers"]

    def test_grounded_collects_citations(self):
        annotations = [{"type": "url_citation", "url_citation": {"url": "https://x.gov", "title": "X"}}]
        create = AsyncMock(return_value=_response("text", annotations))
        result = asyncio.run(_client(create).generate("q", grounded=True, model="other-model"))

        kwargs = create.call_args.kwargs
        assert kwargs["extra_body"] == {"plugins": [{"id": "web"}]}
        assert kwargs["model"] == "other-model"
        assert result.citations == [GenerationCitation(title="X", uri="https://x.gov")]

    def test_ungrounded_ignores_annotations(self):
        annotations = [{"type": "url_citation", "url_citation": {"url": "https://x.gov", "title": "X"}}]
        create = AsyncMock(return_value=_response("text", annotations))
        assert asyncio.run(_client(create).generate("q")).citations == []

    @pytest.mark.parametrize("response", [
        SimpleNamespace(choices=[]),
        _response(None),
        _response("   "),
        _response("partial", finish_reason="content_filter"),
    ])
    def test_empty_or_blocked(self, response):
        create = AsyncMock(return_value=response)
        with pytest.raises(GenerationError):
            asyncio.run(_client(create).generate("q"))

    @pytest.mark.parametrize("content", [None, "", "  \n "])
    def test_empty_text_has_its_own_error(self, content):
        create = AsyncMock(return_value=_response(content))
        with pytest.raises(EmptyGenerationError):
            asyncio.run(_client(create).generate("q"))

    @pytest.mark.parametrize("response", [
        SimpleNamespace(choices=[]),
        _response("partial", finish_reason="content_filter"),
    ])
    def test_failures_are_not_empty_errors(self, response):
        create = AsyncMock(return_value=response)
        with pytest.raises(GenerationError) as exc_info:
            asyncio.run(_client(create).generate("q"))
        assert not isinstance(exc_info.value, EmptyGenerationError)

    def test_history_sent_before_prompt(self):
        create = AsyncMock(return_value=_response("Use copper spray."))
        asyncio.run(_client(create).generate(
            "What now?",
            system="agronomist",
            history=[("user", "My tomato has spots"), ("model", "Looks like early blight.")],
        ))
        messages = create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[1]["content"] == "My tomato has spots"
        assert messages[2]["content"] == "Looks like early blight."
        assert messages[3]["content"][0]["text"] == "What now?"

    @pytest.mark.parametrize("error", [
        APIError("quota exceeded", request=httpx.Request("POST", "https://openrouter.ai"), body=None),
        httpx.ConnectError("connection refused"),
    ])
    def test_transport_errors_wrapped(self, error):
        create = AsyncMock(side_effect=error)
        with pytest.raises(GenerationError) as exc_info:
            asyncio.run(_client(create).generate("q"))
        assert exc_info.value.__cause__ is error

    def test_timeout(self):
        async def slow(**kwargs):
            await asyncio.sleep(5)

        openai_client = MagicMock()
        openai_client.chat.completions.create = slow
        client = GenerationClient(model="m", openai_client=openai_client, timeout=0.01)
        with pytest.raises(GenerationError, match="timeout"):
            asyncio.run(client.generate("q"))

    def test_missing_api_key(self):
        client = GenerationClient(model="m", api_key=None)
        assert client.is_configured is False
        with pytest.raises(GenerationError):
            asyncio.run(client.generate("q"))
