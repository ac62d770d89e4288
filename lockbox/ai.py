"""
Optional AI helpers: idea brainstorming and website title suggestion.

Backed by the Gemini generateContent REST endpoint. Without an API key the
helpers are disabled instead of failing at import time. Vault data is never
sent to the service.
"""

import os
import logging
from typing import Any, Dict, List, Optional

import requests

from . import config
from .errors import AIServiceError, AIUnavailableError

logger = logging.getLogger(__name__)


def _api_key_from_env() -> Optional[str]:
    return os.environ.get(config.AI_API_KEY_ENV) or os.environ.get(config.AI_API_KEY_FALLBACK_ENV)


class IdeaService:
    """Thin client for the two prompts LockBox sends to Gemini."""

    def __init__(self, api_key: Optional[str] = None, model: str = config.AI_MODEL,
                 base_url: str = config.AI_BASE_URL, session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else _api_key_from_env()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        if not self.api_key:
            logger.warning("Gemini API key not found. AI features will be disabled.")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _generate(self, prompt: str) -> str:
        if not self.enabled:
            raise AIUnavailableError("Gemini API is not initialized. Please provide an API key.")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        try:
            resp = self.session.post(
                url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=config.AI_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error(f"Error calling Gemini API: {e}")
            raise AIServiceError("Could not reach the AI service. Please check your connection.") from e

        if resp.status_code >= 400:
            logger.error(f"Gemini API returned {resp.status_code}: {resp.text[:200]}")
            raise AIServiceError(f"AI service error {resp.status_code}. Please check your API key or quota.")
        try:
            data = resp.json()
        except ValueError as e:
            raise AIServiceError("AI service returned a malformed response.") from e
        return _extract_text(data)

    def generate_ideas(self, topic: str) -> str:
        """Brainstorm feature ideas for ``topic``."""
        return self._generate(config.IDEA_PROMPT_TEMPLATE.format(topic=topic))

    def suggest_title(self, url: str) -> str:
        """Suggest a short, friendly title for a website URL."""
        return self._generate(config.TITLE_PROMPT_TEMPLATE.format(url=url)).strip()


def _extract_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise AIServiceError(f"AI service blocked the prompt: {block_reason}")
        raise AIServiceError("AI service returned no text.")

    texts: List[str] = []
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        parts = (candidate.get("content") or {}).get("parts") or []
        for part in parts:
            if isinstance(part, dict) and part.get("text"):
                texts.append(str(part["text"]))

    combined = "".join(texts).strip()
    if not combined:
        raise AIServiceError("AI service returned no text.")
    return combined
