"""
Credential persistence for the generation backend API key.

The key lives in a small JSON file so it survives between sessions, much like
a browser's local storage.  When nothing has been saved yet, the fallback
value resolved from the environment is used instead.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "research_api_key"


@dataclass(frozen=True, slots=True)
class Credential:
    """Opaque API token; an empty value means the credential is unset."""

    value: str = field(default="", repr=False)

    @property
    def is_set(self) -> bool:
        return bool(self.value.strip())

    def __repr__(self) -> str:
        return f"Credential(is_set={self.is_set})"


class JsonFileStorage:
    """Key/value storage backed by a single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        data = self._read()
        value = data.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.chmod(0o600)
        tmp_path.replace(self._path)

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}


class CredentialStore:
    """
    Holds the single active credential.

    `load()` reads storage first and the fallback second.  `save()` updates
    the in-memory value immediately and then persists it; a storage failure
    is logged and reported through the return value only.
    """

    def __init__(self, storage: JsonFileStorage, *, fallback: str = "") -> None:
        self._storage = storage
        self._fallback = fallback or ""
        self._credential = self.load()

    @property
    def credential(self) -> Credential:
        return self._credential

    def load(self) -> Credential:
        try:
            stored = self._storage.get(CREDENTIAL_KEY)
        except (OSError, ValueError) as exc:
            logger.warning("Credential storage unreadable; ignoring saved value: %s", exc)
            stored = None

        if stored is not None:
            logger.debug("Loaded credential from storage.")
            return Credential(stored)
        if self._fallback:
            logger.debug("Using fallback credential from environment.")
            return Credential(self._fallback)
        return Credential()

    def save(self, value: str) -> bool:
        self._credential = Credential(value or "")
        try:
            self._storage.set(CREDENTIAL_KEY, self._credential.value)
        except (OSError, ValueError) as exc:
            logger.warning("Unable to persist credential; keeping it for this session only: %s", exc)
            return False
        logger.info("Credential %s.", "saved" if self._credential.is_set else "cleared")
        return True
