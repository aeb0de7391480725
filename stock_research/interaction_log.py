"""
Per-request JSON interaction logs and saved reports.

When disabled every method is a no-op, so the orchestrator can call it
unconditionally.  Filesystem problems are logged and never raised.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class InteractionRecord:
    """Steps recorded for one submitted subject."""

    subject: str
    request_id: int
    timestamp: str = field(default_factory=lambda: _utc_now().strftime("%Y%m%d_%H%M%S"))
    steps: List[Dict[str, Any]] = field(default_factory=list)

    def step(self, name: str, context: Dict[str, Any]) -> None:
        self.steps.append(
            {
                "step": name,
                "timestamp": _utc_now().isoformat(timespec="seconds"),
                "context": make_serializable(context),
            }
        )


class InteractionLog:
    def __init__(self, *, log_dir: Path = Path("logs"), response_dir: Path = Path("responses"),
                 enabled: bool = False) -> None:
        self._log_dir = Path(log_dir)
        self._response_dir = Path(response_dir)
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start(self, subject: str, request_id: int) -> InteractionRecord:
        return InteractionRecord(subject=subject, request_id=request_id)

    def finish(
        self,
        record: InteractionRecord,
        *,
        final_response: Optional[str] = None,
        error: Optional[str] = None,
        superseded: bool = False,
    ) -> Optional[Path]:
        if not self._enabled:
            return None
        document: Dict[str, Any] = {
            "timestamp": record.timestamp,
            "request_id": record.request_id,
            "subject": record.subject,
            "steps": record.steps,
            "superseded": superseded,
        }
        if final_response is not None:
            document["final_response"] = final_response
        if error:
            document["error"] = error

        path = self._log_dir / f"research_{record.timestamp}_{uuid4().hex[:8]}.json"
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write interaction log %s: %s", path, exc)
            return None
        logger.info("Wrote interaction log to %s", path)
        return path

    def persist_response(self, *, subject: str, response: str) -> Optional[Path]:
        if not self._enabled:
            return None
        timestamp = _utc_now().strftime("%Y%m%d_%H%M%S")
        safe_subject = re.sub(r"[^a-zA-Z0-9-_ ]", "", subject).strip()[:50]
        path = self._response_dir / f"{timestamp}_{safe_subject or 'report'}.md"
        try:
            self._response_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(response, encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to save report %s: %s", path, exc)
            return None
        logger.info("Saved report to %s", path)
        return path


def make_serializable(data: Any) -> Any:
    if isinstance(data, Enum):
        return data.value
    if is_dataclass(data) and not isinstance(data, type):
        return make_serializable(asdict(data))
    if isinstance(data, dict):
        return {str(key): make_serializable(value) for key, value in data.items()}
    if isinstance(data, (list, tuple, set)):
        return [make_serializable(item) for item in data]
    if isinstance(data, (str, int, float, bool)) or data is None:
        return data
    return repr(data)
