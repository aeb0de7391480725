from __future__ import annotations

import asyncio
from typing import List, Tuple

import pytest

from stock_research.credential_store import Credential, CredentialStore, JsonFileStorage
from stock_research.generation_client import GeneratedText, GenerationResult
from stock_research.orchestrator import ResearchOrchestrator


class StubGenerationClient:
    """Returns a fixed result and records every call."""

    backend = "stub"
    model_name = "stub-model"

    def __init__(self, result: GenerationResult | None = None) -> None:
        self.result = result or GeneratedText("# Title\nSome **bold** text")
        self.calls: List[Tuple[str, Credential]] = []

    async def generate(self, prompt: str, credential: Credential) -> GenerationResult:
        self.calls.append((prompt, credential))
        return self.result


class GatedGenerationClient:
    """Holds each call open until the test resolves its future."""

    backend = "stub"
    model_name = "stub-model"

    def __init__(self) -> None:
        self.prompts: List[str] = []
        self.gates: List[asyncio.Future] = []

    async def generate(self, prompt: str, credential: Credential) -> GenerationResult:
        self.prompts.append(prompt)
        gate = asyncio.get_running_loop().create_future()
        self.gates.append(gate)
        return await gate

    async def wait_for_calls(self, count: int) -> None:
        while len(self.gates) < count:
            await asyncio.sleep(0)


@pytest.fixture
def storage(tmp_path):
    return JsonFileStorage(tmp_path / "credentials.json")


@pytest.fixture
def store(storage):
    store = CredentialStore(storage)
    store.save("test-key")
    return store


@pytest.fixture
def empty_store(storage):
    return CredentialStore(storage)


@pytest.fixture
def stub_client():
    return StubGenerationClient()


@pytest.fixture
def gated_client():
    return GatedGenerationClient()


@pytest.fixture
def orchestrator(store, stub_client):
    return ResearchOrchestrator(credential_store=store, generation_client=stub_client)
