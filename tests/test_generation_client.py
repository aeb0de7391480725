"""
Tests for the generation backends' error mapping.

The network-facing `_complete` hook is replaced in every test; no request
leaves the process.
"""

import httpx
import openai
import pytest
from autogen_agentchat.messages import TextMessage
from google.genai import errors as genai_errors

from stock_research import generation_client
from stock_research.config import Settings
from stock_research.credential_store import Credential
from stock_research.generation_client import (
    GeminiGenerationClient,
    GeneratedText,
    GenerationError,
    OpenAIGenerationClient,
    build_generation_client,
    redact_secret,
    verify_credential,
)
from stock_research.research_prompts import CREDENTIAL_CHECK_PROMPT
from stock_research.research_state import ErrorKind

KEY = Credential("sk-secret-123")
REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _completing_with(client, outcome):
    calls = []

    async def _complete(prompt, api_key):
        calls.append((prompt, api_key))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    client._complete = _complete
    return calls


class TestSharedContract:
    """Behaviour common to every backend."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("client_cls", [OpenAIGenerationClient, GeminiGenerationClient])
    async def test_missing_credential_skips_call(self, client_cls):
        client = client_cls()
        calls = _completing_with(client, "never")
        result = await client.generate("prompt", Credential(""))
        assert isinstance(result, GenerationError)
        assert result.kind is ErrorKind.MISSING_CREDENTIAL
        assert calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("client_cls", [OpenAIGenerationClient, GeminiGenerationClient])
    async def test_success_returns_full_text(self, client_cls):
        client = client_cls()
        text = "# Memo\n" + "x" * 50_000
        calls = _completing_with(client, text)
        result = await client.generate("prompt", KEY)
        assert result == GeneratedText(text)
        assert calls == [("prompt", "sk-secret-123")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("client_cls", [OpenAIGenerationClient, GeminiGenerationClient])
    async def test_empty_response_is_rejected(self, client_cls):
        client = client_cls()
        _completing_with(client, "   ")
        result = await client.generate("prompt", KEY)
        assert result.kind is ErrorKind.REJECTED_BY_SERVICE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("client_cls", [OpenAIGenerationClient, GeminiGenerationClient])
    async def test_unexpected_exception_becomes_value(self, client_cls):
        client = client_cls()
        _completing_with(client, RuntimeError("socket closed for sk-secret-123"))
        result = await client.generate("prompt", KEY)
        assert result.kind is ErrorKind.TRANSPORT_FAILURE
        assert "sk-secret-123" not in result.message

    @pytest.mark.asyncio
    async def test_verify_credential_sends_check_prompt(self):
        client = GeminiGenerationClient()
        calls = _completing_with(client, "The key matches")
        result = await verify_credential(client, KEY)
        assert result == GeneratedText("The key matches")
        assert calls[0][0] == CREDENTIAL_CHECK_PROMPT


class TestOpenAIGenerationClient:
    """OpenAI exception classification."""

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_failure(self):
        client = OpenAIGenerationClient()
        _completing_with(client, openai.APIConnectionError(request=REQUEST))
        result = await client.generate("prompt", KEY)
        assert result.kind is ErrorKind.TRANSPORT_FAILURE

    @pytest.mark.asyncio
    async def test_status_error_is_rejection(self):
        client = OpenAIGenerationClient()
        error = openai.AuthenticationError(
            "Incorrect API key provided: sk-secret-123",
            response=httpx.Response(401, request=REQUEST),
            body=None,
        )
        _completing_with(client, error)
        result = await client.generate("prompt", KEY)
        assert result.kind is ErrorKind.REJECTED_BY_SERVICE
        assert result.message.startswith("401")
        assert "sk-secret-123" not in result.message

    def test_extract_text_prefers_writer(self):
        messages = [
            TextMessage(content="task", source="user"),
            TextMessage(content="memo body", source="research_writer"),
        ]
        assert OpenAIGenerationClient._extract_text(messages, preferred_source="research_writer") == "memo body"

    def test_extract_text_without_messages(self):
        assert OpenAIGenerationClient._extract_text([]) == ""


class TestGeminiGenerationClient:
    """google-genai exception classification."""

    @pytest.mark.asyncio
    async def test_api_error_is_rejection(self):
        client = GeminiGenerationClient()
        error = genai_errors.ClientError(
            400,
            {"error": {"code": 400, "message": "API key not valid.", "status": "INVALID_ARGUMENT"}},
        )
        _completing_with(client, error)
        result = await client.generate("prompt", KEY)
        assert result.kind is ErrorKind.REJECTED_BY_SERVICE
        assert result.message.startswith("400")

    @pytest.mark.asyncio
    async def test_network_error_is_transport_failure(self):
        client = GeminiGenerationClient()
        _completing_with(client, httpx.ConnectError("name resolution failed"))
        result = await client.generate("prompt", KEY)
        assert result.kind is ErrorKind.TRANSPORT_FAILURE
        assert "name resolution failed" in result.message


class TestFactory:
    def test_gemini_backend(self):
        client = build_generation_client(Settings(backend="gemini", model_name="gemini-2.5-flash"))
        assert isinstance(client, GeminiGenerationClient)
        assert client.model_name == "gemini-2.5-flash"

    def test_openai_backend(self):
        client = build_generation_client(Settings(backend="openai", model_name="gpt-5-nano"))
        assert isinstance(client, OpenAIGenerationClient)


class TestRedactSecret:
    def test_removes_known_secret_and_query_keys(self):
        text = redact_secret("failed https://x.test/models?key=abc123&x=1 with sk-1", "sk-1")
        assert "abc123" not in text
        assert "sk-1" not in text
        assert "[REDACTED]" in text


class FakeAsyncGenaiClient:
    def __init__(self, text):
        self.text = text
        self.closed = False
        self.models = self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    async def generate_content(self, *, model, contents, config):
        if self.closed:
            raise RuntimeError("client already closed")
        return type("Response", (), {"text": self.text})()


class TestGeminiClientLifecycle:
    @pytest.mark.asyncio
    async def test_async_client_closed_after_call(self, monkeypatch):
        created = []

        class FakeClient:
            def __init__(self, *, api_key):
                self.api_key = api_key
                self.aio = FakeAsyncGenaiClient("memo body")
                created.append(self)

        monkeypatch.setattr(generation_client.genai, "Client", FakeClient)

        result = await GeminiGenerationClient().generate("prompt", KEY)

        assert result == GeneratedText("memo body")
        assert created[0].api_key == "sk-secret-123"
        assert created[0].aio.closed is True
