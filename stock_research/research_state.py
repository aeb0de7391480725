"""
State models supporting the research request lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Tuple, Union

from .rendering import ContentBlock


class ErrorKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    TRANSPORT_FAILURE = "transport_failure"
    REJECTED_BY_SERVICE = "rejected_by_service"


@dataclass(frozen=True, slots=True)
class Idle:
    phase: ClassVar[str] = "idle"


@dataclass(frozen=True, slots=True)
class Validating:
    phase: ClassVar[str] = "validating"


@dataclass(frozen=True, slots=True)
class InFlight:
    """A generation request for `subject` is awaiting the backend."""

    subject: str
    phase: ClassVar[str] = "in_flight"


@dataclass(frozen=True, slots=True)
class Succeeded:
    """The latest request completed; `blocks` is the rendered `raw_text`."""

    subject: str
    raw_text: str
    blocks: Tuple[ContentBlock, ...]
    phase: ClassVar[str] = "succeeded"


@dataclass(frozen=True, slots=True)
class Failed:
    """The latest request ended with an error the user can act on."""

    subject: str
    error_kind: ErrorKind
    message: str
    phase: ClassVar[str] = "failed"


RequestState = Union[Idle, Validating, InFlight, Succeeded, Failed]
