"""
Lists the models a credential can use on the configured backend.

Both Gemini and OpenAI-compatible services expose a plain HTTP JSON listing,
so this module talks to them directly with `requests` instead of going
through the generation SDKs.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import BACKEND_GEMINI, Settings
from .credential_store import Credential
from .generation_client import redact_secret

logger = logging.getLogger(__name__)

GEMINI_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class ModelCatalogError(RuntimeError):
    """Raised when the model listing cannot be retrieved."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ModelCatalogClient:
    """Minimal HTTP client for the backend's model listing endpoint."""

    def __init__(self, *, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self._backend = settings.backend
        self._openai_base_url = settings.openai_base_url.rstrip("/")
        self._timeout = settings.request_timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": "DeepStockResearch/0.1",
            }
        )

    def list_models(self, credential: Credential) -> List[str]:
        if not credential.is_set:
            raise ModelCatalogError("An API key is required to list models.")
        if self._backend == BACKEND_GEMINI:
            return self._list_gemini_models(credential.value)
        return self._list_openai_models(credential.value)

    def _list_gemini_models(self, api_key: str) -> List[str]:
        models: List[str] = []
        params: Dict[str, str] = {}
        while True:
            data = self._get_json(GEMINI_MODELS_URL, api_key, headers={"x-goog-api-key": api_key}, params=params)
            for model in data.get("models", []):
                # Embedding-only and tuning models cannot produce a memo.
                if "generateContent" in model.get("supportedGenerationMethods", []):
                    models.append(model.get("name", ""))
            token = data.get("nextPageToken")
            if not token:
                break
            params = {"pageToken": token}
        return [name for name in models if name]

    def _list_openai_models(self, api_key: str) -> List[str]:
        data = self._get_json(
            f"{self._openai_base_url}/models",
            api_key,
            headers={"Authorization": f"Bearer {api_key}"},
        )
        return sorted(str(model.get("id")) for model in data.get("data", []) if model.get("id"))

    def _get_json(self, url: str, api_key: str, *, headers: Dict[str, str],
                  params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        logger.info("Fetching model catalogue from %s", url)
        try:
            response = self._session.get(url, headers=headers, params=params or {}, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            raise ModelCatalogError(redact_secret(f"Model listing request failed: {exc}", api_key)) from exc

        logger.info("Model catalogue response status: %s", response.status_code)
        if response.status_code >= 400:
            raise ModelCatalogError(
                redact_secret(f"Model listing rejected ({response.status_code}): {response.text[:500]}", api_key),
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ModelCatalogError("Model listing returned invalid JSON.") from exc
        if not isinstance(data, dict):
            raise ModelCatalogError("Model listing returned an unexpected payload.")
        return data
