"""
Generation backends for the research memo (AutoGen/OpenAI + Google Gemini).

Both clients share one contract: `await client.generate(prompt, credential)`
returns either `GeneratedText` or `GenerationError`.  Backend exceptions are
mapped to one of the `ErrorKind` values and never escape `generate`, so the
orchestrator always receives an explicit result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol, Union

import httpx
import openai
from autogen_agentchat.agents import AssistantAgent
from autogen_agentchat.messages import BaseChatMessage
from autogen_core.models import ChatCompletionClient, ModelInfo
from autogen_ext.models.openai import OpenAIChatCompletionClient
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from .config import BACKEND_GEMINI, BACKEND_OPENAI, ConfigurationError, Settings
from .credential_store import Credential
from .research_prompts import CREDENTIAL_CHECK_PROMPT, REPORT_SYSTEM_PROMPT
from .research_state import ErrorKind

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_MESSAGE = "Please enter a valid API key first."


@dataclass(frozen=True, slots=True)
class GeneratedText:
    text: str


@dataclass(frozen=True, slots=True)
class GenerationError:
    kind: ErrorKind
    message: str


GenerationResult = Union[GeneratedText, GenerationError]


class GenerationClient(Protocol):
    backend: str
    model_name: str

    async def generate(self, prompt: str, credential: Credential) -> GenerationResult:
        ...


def redact_secret(text: str, secret: str = "") -> str:
    """Strip API keys from error text before it is logged or shown."""

    redacted = re.sub(r"(key=)[^&\s]+", r"\1[REDACTED]", text, flags=re.IGNORECASE)
    secret = (secret or "").strip()
    if secret:
        redacted = redacted.replace(secret, "[REDACTED]")
    return redacted


class _BaseGenerationClient:
    backend = ""

    def __init__(self, *, model_name: str, temperature: Optional[float] = None,
                 system_message: str = REPORT_SYSTEM_PROMPT) -> None:
        self.model_name = model_name
        self._temperature = temperature
        self._system_message = system_message

    async def generate(self, prompt: str, credential: Credential) -> GenerationResult:
        if not credential.is_set:
            return GenerationError(ErrorKind.MISSING_CREDENTIAL, MISSING_CREDENTIAL_MESSAGE)

        logger.info("Requesting memo from %s model '%s' (%d prompt chars).",
                    self.backend, self.model_name, len(prompt))
        try:
            text = await self._complete(prompt, credential.value)
        except Exception as exc:
            kind = self._classify(exc)
            message = redact_secret(self._describe(exc), credential.value)
            if kind is None:
                logger.exception("Unexpected %s backend failure: %s", self.backend, message)
                kind = ErrorKind.TRANSPORT_FAILURE
            else:
                logger.warning("%s backend failed (%s): %s", self.backend, kind.value, message)
            return GenerationError(kind, message)

        if not text or not text.strip():
            logger.warning("%s backend returned an empty response.", self.backend)
            return GenerationError(ErrorKind.REJECTED_BY_SERVICE, "The service returned an empty response.")
        logger.info("Received %d characters from %s.", len(text), self.backend)
        return GeneratedText(text)

    async def _complete(self, prompt: str, api_key: str) -> str:
        raise NotImplementedError

    def _classify(self, exc: Exception) -> Optional[ErrorKind]:
        """Map a backend exception to an error kind, or None when unrecognised."""
        raise NotImplementedError

    def _describe(self, exc: Exception) -> str:
        return str(exc) or type(exc).__name__


class OpenAIGenerationClient(_BaseGenerationClient):
    """AutoGen assistant over any OpenAI-compatible chat completion endpoint."""

    backend = BACKEND_OPENAI

    def __init__(self, *, model_name: str = "gpt-5-nano", base_url: str = "https://api.openai.com/v1",
                 temperature: Optional[float] = None, system_message: str = REPORT_SYSTEM_PROMPT) -> None:
        super().__init__(model_name=model_name, temperature=temperature, system_message=system_message)
        self._base_url = base_url

    async def _complete(self, prompt: str, api_key: str) -> str:
        model_client = self._build_openai_client(api_key=api_key)
        agent = AssistantAgent(
            name="research_writer",
            model_client=model_client,
            system_message=self._system_message,
            description="Writes the investment research memo.",
            tools=[],
            max_tool_iterations=1,
        )
        try:
            result = await agent.run(task=prompt)
        finally:
            await model_client.close()
        return self._extract_text(result.messages, preferred_source=agent.name)

    def _classify(self, exc: Exception) -> Optional[ErrorKind]:
        if isinstance(exc, openai.APIConnectionError):
            return ErrorKind.TRANSPORT_FAILURE
        if isinstance(exc, (openai.APIStatusError, openai.APIResponseValidationError)):
            return ErrorKind.REJECTED_BY_SERVICE
        if isinstance(exc, httpx.TransportError):
            return ErrorKind.TRANSPORT_FAILURE
        return None

    def _describe(self, exc: Exception) -> str:
        if isinstance(exc, openai.APIStatusError):
            return f"{exc.status_code}: {exc.message}"
        return super()._describe(exc)

    @staticmethod
    def _extract_text(messages: Iterable[Any], preferred_source: Optional[str] = None) -> str:
        candidate: Optional[BaseChatMessage] = None
        for message in reversed(list(messages)):
            if not isinstance(message, BaseChatMessage):
                continue
            if preferred_source and getattr(message, "source", None) == preferred_source:
                candidate = message
                break
            if candidate is None:
                candidate = message
        if candidate is None:
            return ""
        return candidate.to_text()

    def _build_openai_client(self, *, api_key: str) -> ChatCompletionClient:
        model_info: ModelInfo = {
            "vision": False,
            "function_calling": False,
            "json_output": False,
            "structured_output": False,
            "family": "openai",
        }
        client_kwargs = {
            "model": self.model_name,
            "api_key": api_key,
            "base_url": self._base_url,
            "include_name_in_message": False,
            "model_info": model_info,
        }
        if self._temperature is not None:
            client_kwargs["temperature"] = self._temperature
        return OpenAIChatCompletionClient(**client_kwargs)


class GeminiGenerationClient(_BaseGenerationClient):
    """Google Gemini through the `google-genai` SDK."""

    backend = BACKEND_GEMINI

    def __init__(self, *, model_name: str = "gemini-2.5-pro", temperature: Optional[float] = None,
                 system_message: str = REPORT_SYSTEM_PROMPT) -> None:
        super().__init__(model_name=model_name, temperature=temperature, system_message=system_message)

    async def _complete(self, prompt: str, api_key: str) -> str:
        config = genai_types.GenerateContentConfig(
            system_instruction=self._system_message,
            temperature=self._temperature,
        )
        async with genai.Client(api_key=api_key).aio as aclient:
            response = await aclient.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config,
            )
        return response.text or ""

    def _classify(self, exc: Exception) -> Optional[ErrorKind]:
        if isinstance(exc, genai_errors.APIError):
            return ErrorKind.REJECTED_BY_SERVICE
        if isinstance(exc, httpx.TransportError):
            return ErrorKind.TRANSPORT_FAILURE
        return None

    def _describe(self, exc: Exception) -> str:
        if isinstance(exc, genai_errors.APIError):
            detail = exc.message or exc.status or ""
            return f"{exc.code}: {detail}".rstrip(": ")
        return super()._describe(exc)


def build_generation_client(settings: Settings) -> GenerationClient:
    if settings.backend == BACKEND_GEMINI:
        return GeminiGenerationClient(model_name=settings.model_name, temperature=settings.temperature)
    if settings.backend == BACKEND_OPENAI:
        return OpenAIGenerationClient(
            model_name=settings.model_name,
            base_url=settings.openai_base_url,
            temperature=settings.temperature,
        )
    raise ConfigurationError(f"Unsupported backend '{settings.backend}'.")


async def verify_credential(client: GenerationClient, credential: Credential) -> GenerationResult:
    """Send a trivial prompt to confirm the credential is accepted."""

    return await client.generate(CREDENTIAL_CHECK_PROMPT, credential)
