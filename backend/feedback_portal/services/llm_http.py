"""HTTP callers for the supported LLM providers, in JSON mode.

``call_provider_json()`` sends one prompt plus a JSON schema and returns the
raw text of the model's answer. Gemini is asked for
``application/json`` with a ``responseSchema``; OpenAI is asked for a
``json_object`` response with the schema embedded in the system message.

No retry logic lives here. Callers decide what a failure means.
"""
from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from feedback_portal.services.http_client_manager import PURPOSE_AI, get_http_client

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _get_client() -> httpx.AsyncClient:
    return get_http_client(PURPOSE_AI)


async def _call_gemini(
    prompt: str,
    schema: dict[str, Any],
    api_key: str,
    model: str,
    temperature: float,
) -> str:
    """Generate JSON via Google Gemini ``generateContent``."""
    client = _get_client()
    resp = await client.post(
        GEMINI_URL.format(model=model),
        params={"key": api_key},
        json={
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        },
    )
    resp.raise_for_status()
    return resp.json()["candidates"][0]["content"]["parts"][0]["text"]


async def _call_openai(
    prompt: str,
    schema: dict[str, Any],
    api_key: str,
    model: str,
    temperature: float,
) -> str:
    """Generate JSON via OpenAI chat completions."""
    client = _get_client()
    system = (
        "Respond with a single JSON object matching this JSON schema:\n"
        + json.dumps(schema)
    )
    resp = await client.post(
        OPENAI_URL,
        headers={"Authorization": f"Bearer {api_key}"},
        json={
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        },
    )
    resp.raise_for_status()
    return resp.json()["choices"][0]["message"]["content"]


_CALLERS = {
    "gemini": _call_gemini,
    "google": _call_gemini,
    "openai": _call_openai,
}


async def call_provider_json(
    prompt: str,
    schema: dict[str, Any],
    provider: str,
    model: str,
    api_key: str,
    temperature: float = 0.2,
) -> str:
    """Send a prompt to an LLM provider and return its raw JSON text.

    Raises
    ------
    ValueError : unknown provider or missing API key
    httpx.HTTPStatusError : HTTP errors from provider (4xx, 5xx)
    httpx.TransportError : connection errors and timeouts
    KeyError, IndexError : response body missing the expected fields
    """
    caller = _CALLERS.get(provider)
    if caller is None:
        raise ValueError(f"Unknown LLM provider: {provider}")
    if not api_key:
        raise ValueError(f"API key required for provider {provider}")

    logger.debug("Calling %s model=%s (%d prompt chars)", provider, model, len(prompt))
    return await caller(prompt, schema, api_key, model, temperature)
