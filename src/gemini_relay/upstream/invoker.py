"""Async client for the Gemini generateContent endpoint.

Every call draws the next key from the shared ``CredentialRotator``. Transport
and HTTP failures never escape as httpx exceptions; they are mapped onto the
``UpstreamError`` family with the raw upstream message kept in
``details["sdkError"]``. A failed call is not retried with another key.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any

import httpx

from gemini_relay.common.config import DEFAULT_BASE_URL, DEFAULT_MODEL
from gemini_relay.common.errors import (
    UpstreamAuthFailure,
    UpstreamBlocked,
    UpstreamError,
    UpstreamQuotaExceeded,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from gemini_relay.common.schema import GenerationRequest, Outcome
from gemini_relay.upstream.classifier import classify
from gemini_relay.upstream.payload import build_request
from gemini_relay.upstream.rotator import CredentialRotator

LOGGER = logging.getLogger("gemini_relay.upstream.invoker")

_AUTH_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED"}


def map_upstream_error(r: httpx.Response) -> UpstreamError:
    """
    Map an HTTP error response from Gemini onto the error taxonomy.

    Args:
        r: Error response; Google's ``{"error": {...}}`` envelope is
            unpacked when present, otherwise the body text is the message.
    """
    status_code = r.status_code
    message, status, extra = r.text.strip(), "", {}
    try:
        envelope = r.json()
        err = envelope.get("error", {}) if isinstance(envelope, dict) else {}
        if isinstance(err, dict):
            message = str(err.get("message") or message)
            status = str(err.get("status") or "")
            extra = {k: v for k, v in err.items() if k in ("blockReason", "safetyRatings")}
    except ValueError:
        pass

    lowered = message.lower()
    details: dict[str, Any] = {"sdkError": message, "upstreamStatus": status_code}
    if status_code in (401, 403) or status in _AUTH_STATUSES or "api key not valid" in lowered:
        return UpstreamAuthFailure("Authentication failed. Check your Gemini API keys.", details)
    if status_code == 429 or status == "RESOURCE_EXHAUSTED" or "quota" in lowered:
        return UpstreamQuotaExceeded("API quota exceeded. Please check your usage limits.", details)
    if "blocked" in lowered:
        reason = extra.get("blockReason", "Safety settings")
        details.update(extra)
        details.setdefault("safetyRatings", None)
        return UpstreamBlocked(f"Request blocked due to safety settings: {reason}", details)
    return UpstreamUnavailable("Error communicating with the Google AI service.", details)


class GeminiInvoker:
    """Owns the key rotation and issues generateContent calls."""

    def __init__(
        self,
        rotator: CredentialRotator,
        model_name: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 900.0,
        generation_config: dict[str, Any] | None = None,
        safety_settings: list[dict[str, Any]] | None = None,
        include_raw: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rotator = rotator
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.generation_config = generation_config
        self.safety_settings = safety_settings
        self.include_raw = include_raw
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model_name}:generateContent"

    async def invoke(self, payload: dict[str, Any]) -> Any:
        """
        Send one generateContent request with the next key in rotation.

        Returns:
            The decoded JSON body (``None`` if the upstream sent ``null``).

        Raises:
            UpstreamError: one of its subclasses for every failure path.
        """
        slot, key = self.rotator.next_slot()
        LOGGER.info("Sending request to Gemini (%s) with key slot %d/%d", self.model_name, slot + 1, len(self.rotator))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await asyncio.wait_for(
                    client.post(self.url, headers={"x-goog-api-key": key}, json=payload),
                    timeout=self.timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            LOGGER.error("Gemini request timed out after %ss (key slot %d)", self.timeout, slot + 1)
            raise UpstreamTimeout(
                "The Google AI service did not respond in time.",
                {"sdkError": str(e) or type(e).__name__, "timeoutSeconds": self.timeout},
            ) from e
        except httpx.HTTPError as e:
            LOGGER.error("Error calling Gemini API: %s", e)
            raise UpstreamUnavailable("Error communicating with the Google AI service.", {"sdkError": str(e)}) from e
        except Exception as e:
            LOGGER.exception("Unexpected failure calling Gemini API")
            raise UpstreamUnavailable("Error communicating with the Google AI service.", {"sdkError": str(e)}) from e

        if r.status_code >= 400:
            err = map_upstream_error(r)
            LOGGER.error("Gemini returned HTTP %s (key slot %d): %s", r.status_code, slot + 1, err.details.get("sdkError"))
            raise err

        try:
            data = r.json()
        except ValueError as e:
            LOGGER.error("Gemini returned a non-JSON body: %s", e)
            raise UpstreamUnavailable("Malformed response from the Google AI service.", {"sdkError": str(e)}) from e
        LOGGER.info("Received response from Gemini API.")
        return data

    async def generate(self, request: GenerationRequest) -> Outcome:
        """Build, send and classify one generation request."""
        if request.image is not None:
            LOGGER.info("Adding image to request (%s)", request.image.mime_type)
        else:
            LOGGER.info("No image provided, sending text-only request.")
        payload = build_request(
            request.prompt_text,
            request.image,
            self.generation_config,
            self.safety_settings,
        )
        raw = await self.invoke(payload)
        return classify(raw, include_raw=self.include_raw)
