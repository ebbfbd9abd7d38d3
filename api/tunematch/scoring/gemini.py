"""Gemini-backed compatibility estimates used to enrich queued suggestions."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import httpx

from tunematch.core.config import settings
from tunematch.scoring.http import ExternalAPIError, with_connect_retry
from tunematch.scoring.observability import ScoringMonitor, scoring_monitor
from tunematch.scoring.similarity import TasteProfile

logger = logging.getLogger("tunematch.scoring.gemini")

_FENCE_RE = re.compile(r"```(?:[A-Za-z][\w+-]*)?")
_MARKUP_RE = re.compile(r"[`*_#%]")
_LETTER_RE = re.compile(r"[^\W\d_]")
_INTEGER_RE = re.compile(r"-?\d+")

PROMPT_TEMPLATE = """Calculate music compatibility between two people.

Person A:
Genres: {a_genres}
Artists: {a_artists}
Songs: {a_songs}

Person B:
Genres: {b_genres}
Artists: {b_artists}
Songs: {b_songs}

Use these weights:
- Genres: 30%
- Artists: 40%
- Songs: 30%

Return ONLY a single integer between 0 and 100 with no explanation, code, or markdown.
Valid responses look like: 78 or 45 or 92"""


def parse_score(text: str | None) -> int | None:
    """Extract a 0-100 integer from a model reply.

    Code fences, backticks, emphasis, headings, and percent signs are tolerated.
    Replies that still contain words once that markup is removed are treated as
    malformed, so "approximately 80%" yields None while "```80%```" yields 80.
    The first integer token is clamped, so "1000" yields 100 and "-5" yields 0.
    """
    if not text:
        return None
    cleaned = _MARKUP_RE.sub(" ", _FENCE_RE.sub(" ", text)).strip()
    if not cleaned or _LETTER_RE.search(cleaned):
        return None
    match = _INTEGER_RE.search(cleaned)
    if not match:
        return None
    token = match.group(0)
    digits = token.lstrip("-").lstrip("0") or "0"
    if len(digits) > 3:
        # Out of range in either direction.
        return 0 if token.startswith("-") else 100
    return min(max(int(token), 0), 100)


def _format_labels(labels: tuple[str, ...]) -> str:
    return ", ".join(labels) if labels else "(none)"


def build_prompt(profile_a: TasteProfile, profile_b: TasteProfile) -> str:
    return PROMPT_TEMPLATE.format(
        a_genres=_format_labels(profile_a.genres),
        a_artists=_format_labels(profile_a.artists),
        a_songs=_format_labels(profile_a.songs),
        b_genres=_format_labels(profile_b.genres),
        b_artists=_format_labels(profile_b.artists),
        b_songs=_format_labels(profile_b.songs),
    )


def extract_text(payload: dict[str, Any]) -> str | None:
    """Return the first candidate's text part from a generateContent reply."""
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    for part in parts or []:
        text = part.get("text") if isinstance(part, dict) else None
        if text:
            return str(text).strip()
    return None


class GeminiCompatibilityClient:
    """Task-safe client for the Gemini ``generateContent`` endpoint.

    The underlying ``httpx.AsyncClient`` is created by ``connect()``, which is
    idempotent and guarded by a lock, and released by ``aclose()``.
    """

    source_name = "gemini"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout_seconds: float = 15.0,
        connect_attempts: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
        monitor: ScoringMonitor | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.connect_attempts = connect_attempts
        self._transport = transport
        self._monitor = monitor or scoring_monitor
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, **overrides: Any) -> "GeminiCompatibilityClient":
        options: dict[str, Any] = {
            "api_key": settings.gemini_api_key,
            "model": settings.gemini_model,
            "base_url": settings.gemini_base_url,
            "timeout_seconds": settings.gemini_timeout_seconds,
            "connect_attempts": settings.gemini_connect_attempts,
        }
        options.update(overrides)
        return cls(**options)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def connect(self) -> httpx.AsyncClient:
        async with self._lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.AsyncClient(
                    timeout=self.timeout_seconds,
                    transport=self._transport,
                    headers={"Accept": "application/json"},
                )
            return self._client

    async def aclose(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self) -> "GeminiCompatibilityClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def build_payload(self, profile_a: TasteProfile, profile_b: TasteProfile) -> dict[str, Any]:
        return {"contents": [{"role": "user", "parts": [{"text": build_prompt(profile_a, profile_b)}]}]}

    async def _request(self, payload: dict[str, Any]) -> str | None:
        client = await self.connect()
        try:
            response = await with_connect_retry(
                lambda: client.post(self.endpoint, json=payload, headers={"x-goog-api-key": self.api_key or ""}),
                attempts=self.connect_attempts,
            )
        except httpx.TimeoutException as exc:
            raise ExternalAPIError(f"Gemini request timed out after {self.timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            raise ExternalAPIError(f"Gemini transport error: {exc.__class__.__name__}") from exc
        if response.status_code >= 400:
            raise ExternalAPIError(f"Gemini API error {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalAPIError("Gemini returned a non-JSON body") from exc
        return extract_text(body)

    async def score(
        self,
        profile_a: TasteProfile,
        profile_b: TasteProfile,
        *,
        context: dict[str, Any] | None = None,
    ) -> int | None:
        """Return the provider's 0-100 estimate, or None when the reply is unusable.

        Transport failures and error statuses raise ``ExternalAPIError``; an open
        circuit raises ``CircuitOpenError``.
        """
        if not self.configured:
            logger.debug("Gemini API key not configured; skipping external score")
            return None
        payload = self.build_payload(profile_a, profile_b)
        text = await self._monitor.track(self.source_name, "score", lambda: self._request(payload), context=context)
        value = parse_score(text)
        if value is None:
            logger.info("Discarding unparseable Gemini reply: %r", (text or "")[:80])
        return value


gemini_client = GeminiCompatibilityClient.from_settings()
