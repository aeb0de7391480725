"""
Request lifecycle for Deep Stock Research.

`ResearchOrchestrator` owns the single observable request:

    Idle -> Validating -> InFlight(subject) -> Succeeded | Failed

Every `submit()` bumps a request counter.  When a backend response arrives it
is applied only if its captured counter is still the current one, so a
response for a superseded subject is dropped instead of overwriting newer
state.  The superseded network call itself is left to finish.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set, Tuple

from .config import Settings
from .credential_store import Credential, CredentialStore, JsonFileStorage
from .generation_client import (
    MISSING_CREDENTIAL_MESSAGE,
    GeneratedText,
    GenerationClient,
    GenerationError,
    GenerationResult,
    build_generation_client,
)
from .interaction_log import InteractionLog, InteractionRecord
from .rendering import ContentBlock, render
from .research_prompts import build_prompt
from .research_state import ErrorKind, Failed, Idle, InFlight, RequestState, Succeeded, Validating

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "The request was cancelled before a response arrived."

StateListener = Callable[[RequestState], None]


class ResearchOrchestrator:
    """Drives the credential store, prompt builder, generation client and renderer."""

    def __init__(
        self,
        *,
        credential_store: CredentialStore,
        generation_client: GenerationClient,
        prompt_builder: Callable[[str], str] = build_prompt,
        renderer: Callable[[str], Tuple[ContentBlock, ...]] = render,
        interaction_log: Optional[InteractionLog] = None,
    ) -> None:
        self._credential_store = credential_store
        self._generation_client = generation_client
        self._build_prompt = prompt_builder
        self._render = renderer
        self._interaction_log = interaction_log or InteractionLog()

        self._state: RequestState = Idle()
        self._request_id = 0
        self._credential_required = False
        self._listeners: List[StateListener] = []
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResearchOrchestrator":
        store = CredentialStore(JsonFileStorage(settings.credential_path), fallback=settings.fallback_api_key)
        return cls(
            credential_store=store,
            generation_client=build_generation_client(settings),
            interaction_log=InteractionLog(
                log_dir=settings.log_dir,
                response_dir=settings.response_dir,
                enabled=settings.verbose,
            ),
        )

    # ------------------------------------------------------------------
    # Read-only surface
    # ------------------------------------------------------------------
    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def credential_required(self) -> bool:
        """True after a submit was refused because no credential is set."""

        return self._credential_required

    @property
    def credential(self) -> Credential:
        return self._credential_store.credential

    @property
    def generation_client(self) -> GenerationClient:
        return self._generation_client

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* on every transition; returns an unsubscribe function."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def set_credential(self, value: str) -> bool:
        persisted = self._credential_store.save(value)
        if self._credential_store.credential.is_set:
            self._credential_required = False
        return persisted

    def submit(self, subject: str) -> Optional[asyncio.Task]:
        """
        Start researching *subject*.

        Blank subjects are ignored.  Returns the task awaiting the backend, or
        None when no request was started.  Raises RuntimeError, without touching
        state, when a credential is set but no event loop is running.
        """

        cleaned = (subject or "").strip()
        if not cleaned:
            logger.debug("Ignoring blank subject.")
            return None

        credential = self._credential_store.credential
        loop: Optional[asyncio.AbstractEventLoop] = None
        if credential.is_set:
            loop = asyncio.get_running_loop()

        self._request_id += 1
        request_id = self._request_id
        self._transition(Validating())

        if not credential.is_set:
            self._credential_required = True
            self._transition(Failed(cleaned, ErrorKind.MISSING_CREDENTIAL, MISSING_CREDENTIAL_MESSAGE))
            return None

        self._credential_required = False
        self._transition(InFlight(cleaned))

        record = self._interaction_log.start(cleaned, request_id)
        prompt = self._build_prompt(cleaned)
        record.step("prompt", {"backend": self._generation_client.backend,
                               "model": self._generation_client.model_name,
                               "prompt": prompt})

        task = loop.create_task(
            self._run_request(request_id, cleaned, prompt, credential, record)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def research(self, subject: str) -> RequestState:
        """Submit *subject* and wait for its outcome; returns the resulting state."""

        task = self.submit(subject)
        if task is not None:
            await task
        return self._state

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _run_request(
        self,
        request_id: int,
        subject: str,
        prompt: str,
        credential: Credential,
        record: InteractionRecord,
    ) -> None:
        try:
            outcome = await self._generation_client.generate(prompt, credential)
        except asyncio.CancelledError:
            self._apply(request_id, subject, GenerationError(ErrorKind.TRANSPORT_FAILURE, CANCELLED_MESSAGE), record)
            raise
        except Exception as exc:
            logger.exception("Generation client raised for '%s'.", subject)
            outcome = GenerationError(ErrorKind.TRANSPORT_FAILURE, str(exc) or type(exc).__name__)
        self._apply(request_id, subject, outcome, record)

    def _apply(self, request_id: int, subject: str, outcome: GenerationResult, record: InteractionRecord) -> None:
        superseded = request_id != self._request_id
        record.step("outcome", {"result": outcome, "superseded": superseded})

        if superseded:
            logger.info("Dropping superseded response for '%s' (request %d).", subject, request_id)
            self._finish_record(record, outcome, superseded=True)
            return

        if isinstance(outcome, GeneratedText):
            blocks = self._render(outcome.text)
            self._transition(Succeeded(subject, outcome.text, blocks))
            self._interaction_log.persist_response(subject=subject, response=outcome.text)
        else:
            self._transition(Failed(subject, outcome.kind, outcome.message))
        self._finish_record(record, outcome)

    def _finish_record(self, record: InteractionRecord, outcome: GenerationResult, *, superseded: bool = False) -> None:
        if isinstance(outcome, GeneratedText):
            self._interaction_log.finish(record, final_response=outcome.text, superseded=superseded)
        else:
            self._interaction_log.finish(record, error=f"{outcome.kind.value}: {outcome.message}",
                                         superseded=superseded)

    def _transition(self, state: RequestState) -> None:
        self._state = state
        subject = getattr(state, "subject", None)
        if subject is None:
            logger.info("Request state -> %s", state.phase)
        else:
            logger.info("Request state -> %s (%s)", state.phase, subject)
        for listener in list(self._listeners):
            listener(state)
