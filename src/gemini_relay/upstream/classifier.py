"""Turn a raw generateContent response into exactly one normalized outcome.

Rules are evaluated in order and the first match wins:

1. no response object                   -> error
2. prompt feedback carries a block      -> error (safety ratings attached)
3. no candidates                        -> text if an abnormal finish reason
                                           is reported, else empty
4. candidate 0 stopped abnormally       -> error for SAFETY / RECITATION,
                                           text notice for anything else
   candidate 0 has no parts             -> empty
5. scan parts: the last image part wins, text parts are concatenated;
   image (text as caption) > text > empty

Only candidate 0 is ever inspected. ``classify`` never raises: any failure
while reading the payload becomes an ``ErrorOutcome``.
"""
from __future__ import annotations
import logging
from typing import Any

from pydantic import ValidationError

from gemini_relay.common.schema import EmptyOutcome, ErrorOutcome, ImageOutcome, Outcome, TextOutcome
from gemini_relay.upstream.payload import (
    NORMAL_FINISH,
    RECITATION_FINISH,
    SAFETY_FINISH,
    Blob,
    Candidate,
    GenerateContentResponse,
    InlineDataPart,
    OtherPart,
    Part,
    TextPart,
)

LOGGER = logging.getLogger("gemini_relay.upstream.classifier")


def classify(raw: Any, include_raw: bool = False) -> Outcome:
    """
    Classify a raw upstream payload.

    Args:
        raw: Decoded JSON body (a dict), an already parsed
            ``GenerateContentResponse``, or ``None``.
        include_raw: Attach the raw payload to processing-failure outcomes.
            Intended for development only.
    """
    try:
        return _classify(raw)
    except Exception as e:
        LOGGER.error("Error processing API response: %s", e)
        details = {"rawResponse": _jsonable(raw)} if include_raw else None
        return ErrorOutcome(f"Failed to process the API response: {_short_cause(e)}", details)


def _short_cause(e: Exception) -> str:
    """Describe a failure without echoing any upstream values."""
    if isinstance(e, ValidationError):
        errors = e.errors(include_url=False, include_input=False)
        if errors:
            first = errors[0]
            loc = ".".join(str(p) for p in first["loc"]) or "response"
            return f"{loc}: {first['msg']}"
    return type(e).__name__


def _classify(raw: Any) -> Outcome:
    if raw is None:
        LOGGER.warning("API response object is missing.")
        return ErrorOutcome("Received no response object from API.")

    response = raw if isinstance(raw, GenerateContentResponse) else GenerateContentResponse.model_validate(raw)
    candidates = response.candidates or []

    feedback = response.prompt_feedback
    if feedback is not None and feedback.block_reason:
        LOGGER.warning("Response blocked: %s", feedback.block_reason)
        ratings = candidates[0].safety_ratings if candidates else None
        if ratings is None:
            ratings = feedback.safety_ratings
        return ErrorOutcome(
            f"Content generation blocked due to: {feedback.block_reason}",
            {"safetyRatings": ratings},
        )

    if not candidates:
        LOGGER.warning("No candidates found in the response.")
        if _is_abnormal(response.finish_reason):
            return TextOutcome(f"Generation stopped due to: {response.finish_reason}. No content available.")
        return EmptyOutcome("The model did not return any content.")

    candidate = candidates[0]
    if _is_abnormal(candidate.finish_reason):
        return _abnormal_stop(candidate)

    parts = candidate.content.parts if candidate.content is not None else []
    if not parts:
        LOGGER.warning("No content parts found in the candidate.")
        return EmptyOutcome("The model returned a candidate but no content parts.")

    return _scan_parts(parts)


def _is_abnormal(finish_reason: str | None) -> bool:
    return bool(finish_reason) and finish_reason != NORMAL_FINISH


def _abnormal_stop(candidate: Candidate) -> Outcome:
    reason = candidate.finish_reason
    LOGGER.warning("Candidate finish reason: %s", reason)
    if reason == SAFETY_FINISH:
        return ErrorOutcome(
            "Content generation stopped due to safety concerns.",
            {"safetyRatings": candidate.safety_ratings},
        )
    if reason == RECITATION_FINISH:
        return ErrorOutcome("Content generation stopped due to potential recitation.")
    return TextOutcome(f"Generation stopped unexpectedly ({reason}). Partial content might be missing.")


def _scan_parts(parts: list[Part]) -> Outcome:
    image: Blob | None = None
    text: str | None = None
    for part in parts:
        if isinstance(part, InlineDataPart):
            if part.inline_data.mime_type.startswith("image/"):
                LOGGER.info("Image found in response (mimeType: %s)", part.inline_data.mime_type)
                image = part.inline_data
        elif isinstance(part, TextPart):
            text = (text or "") + part.text
        elif isinstance(part, OtherPart):
            LOGGER.debug("Skipping unsupported part with fields %s", sorted(part.model_extra or {}))
        else:
            raise TypeError(f"unhandled part type {type(part).__name__}")

    if image is not None and image.data:
        return ImageOutcome(f"data:{image.mime_type};base64,{image.data}", text or None)
    if text:
        return TextOutcome(text)

    LOGGER.warning("Response received, but no recognizable text or image data found in parts.")
    return EmptyOutcome(
        "Model response did not contain usable text or image data.",
        {"rawParts": [p.model_dump(mode="json") for p in parts]},
    )


def _jsonable(raw: Any) -> Any:
    if isinstance(raw, GenerateContentResponse):
        return raw.model_dump(mode="json")
    return raw
