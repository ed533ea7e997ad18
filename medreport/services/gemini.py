"""Thin Gemini text-completion client used for the optional narrative."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from medreport.utils.app import _env_int, _env_str
from medreport.utils.exceptions import NarrativeServiceError

logger = logging.getLogger("medreport")

_GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def _gemini_api_key() -> str:
    return (os.getenv("GEMINI_API_KEY") or "").strip()


def is_configured() -> bool:
    return bool(_gemini_api_key())


def _extract_text(data: Any) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise NarrativeServiceError("Gemini response had no candidates") from exc
    if not isinstance(parts, list):
        raise NarrativeServiceError("Gemini response had no content parts")
    text = "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict)).strip()
    if not text:
        raise NarrativeServiceError("Gemini response was empty")
    return text


def generate_text(
    prompt: str,
    *,
    timeout_s: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """Send one prompt and return the completion text.

    Raises NarrativeServiceError on any failure: missing key, transport
    error, non-2xx status or a payload without text. No retries.
    """
    api_key = _gemini_api_key()
    if not api_key:
        raise NarrativeServiceError("GEMINI_API_KEY is not set")
    model = _env_str("GEMINI_MODEL", "gemini-2.5-flash")
    payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt.strip()}]}]}
    timeout = timeout_s if timeout_s is not None else _env_int("GEMINI_TIMEOUT_S", 20)

    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.post(
                _GEMINI_ENDPOINT.format(model=model),
                params={"key": api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as exc:
        raise NarrativeServiceError(f"Gemini returned HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise NarrativeServiceError(f"Gemini request failed: {exc.__class__.__name__}") from exc
    except ValueError as exc:
        raise NarrativeServiceError("Gemini response was not JSON") from exc

    text = _extract_text(data)
    logger.info({"function": "gemini_generate", "model": model, "chars": len(text)})
    return text


__all__ = ["generate_text", "is_configured"]
