"""Map normalized outcomes and relay errors onto HTTP responses."""
from __future__ import annotations
from typing import Any

from fastapi.responses import JSONResponse

from gemini_relay.common.errors import RelayError
from gemini_relay.common.schema import (
    EmptyOutcome,
    ErrorOutcome,
    ImageOut,
    ImageOutcome,
    MessageOut,
    Outcome,
    TextOut,
    TextOutcome,
)

# Raw upstream text; never sent to clients in production.
DIAGNOSTIC_KEYS = frozenset({"sdkError", "rawResponse"})


def _scrub(details: dict[str, Any] | None, production: bool) -> dict[str, Any] | None:
    if not details or not production:
        return details
    kept = {k: v for k, v in details.items() if k not in DIAGNOSTIC_KEYS}
    return kept or None


def outcome_status(outcome: ErrorOutcome) -> int:
    return 400 if "blocked" in outcome.message.lower() else 500


def present(outcome: Outcome, production: bool = False) -> JSONResponse:
    """
    Render one outcome.

    Args:
        outcome: Result of classification.
        production: Strip diagnostic detail from error bodies.
    """
    if isinstance(outcome, ImageOutcome):
        body = ImageOut(imageUrl=outcome.data_uri, text=outcome.caption)
        return JSONResponse(body.model_dump(), status_code=200)
    if isinstance(outcome, TextOutcome):
        return JSONResponse(TextOut(text=outcome.text).model_dump(), status_code=200)
    if isinstance(outcome, EmptyOutcome):
        return JSONResponse(MessageOut(message=outcome.reason or "No content generated.").model_dump(), status_code=200)
    if isinstance(outcome, ErrorOutcome):
        return JSONResponse(
            {"error": outcome.message, "details": _scrub(outcome.details, production)},
            status_code=outcome_status(outcome),
        )
    raise TypeError(f"Unexpected outcome type: {type(outcome).__name__}")


def render_error(exc: RelayError, production: bool = False) -> JSONResponse:
    """
    Render a ``RelayError`` as ``{"error", "details"}`` or ``{"error", "message"}``.
    """
    body: dict[str, Any] = {"error": exc.message}
    details = _scrub(exc.details, production)
    if details:
        body["details"] = details
    else:
        body["message"] = "See error field for details." if production else exc.message
    return JSONResponse(body, status_code=exc.status_code)
