from __future__ import annotations

from typing import Any

import pytest

from gemini_relay.common.schema import EmptyOutcome, ErrorOutcome, ImageOutcome, TextOutcome
from gemini_relay.upstream.classifier import classify
from gemini_relay.upstream.payload import GenerateContentResponse

RATINGS = [{"category": "HARM_CATEGORY_HARASSMENT", "probability": "HIGH"}]


def _image(data: str = "SU1H", mime: str = "image/png") -> dict[str, Any]:
    return {"inlineData": {"mimeType": mime, "data": data}}


def _resp(parts: list[dict[str, Any]] | None, finish: str | None = "STOP", **cand: Any) -> dict[str, Any]:
    candidate: dict[str, Any] = {"finishReason": finish, **cand}
    if parts is not None:
        candidate["content"] = {"role": "model", "parts": parts}
    return {"candidates": [candidate]}


def test_missing_response_object() -> None:
    out = classify(None)
    assert out == ErrorOutcome("Received no response object from API.")


def test_prompt_block_reason_carries_candidate_ratings() -> None:
    raw = {
        "promptFeedback": {"blockReason": "SAFETY"},
        "candidates": [{"safetyRatings": RATINGS, "finishReason": "STOP", "content": {"parts": [{"text": "x"}]}}],
    }
    out = classify(raw)
    assert isinstance(out, ErrorOutcome)
    assert "blocked" in out.message and "SAFETY" in out.message
    assert out.details == {"safetyRatings": RATINGS}


def test_prompt_block_without_candidates_uses_feedback_ratings() -> None:
    out = classify({"promptFeedback": {"blockReason": "OTHER", "safetyRatings": RATINGS}})
    assert isinstance(out, ErrorOutcome)
    assert out.details == {"safetyRatings": RATINGS}


@pytest.mark.parametrize("raw", [{}, {"candidates": []}, {"candidates": None}])
def test_no_candidates_is_empty(raw: dict[str, Any]) -> None:
    out = classify(raw)
    assert out == EmptyOutcome("The model did not return any content.")


def test_no_candidates_with_abnormal_top_level_finish() -> None:
    out = classify({"candidates": [], "finishReason": "MAX_TOKENS"})
    assert isinstance(out, TextOutcome)
    assert "MAX_TOKENS" in out.text


def test_safety_stop_is_error_even_with_content() -> None:
    raw = _resp([{"text": "partial"}, _image()], finish="SAFETY", safetyRatings=RATINGS)
    out = classify(raw)
    assert out == ErrorOutcome("Content generation stopped due to safety concerns.", {"safetyRatings": RATINGS})


def test_recitation_stop_is_error() -> None:
    out = classify(_resp([{"text": "quoted"}], finish="RECITATION"))
    assert isinstance(out, ErrorOutcome)
    assert "recitation" in out.message


def test_other_abnormal_finish_is_text_notice() -> None:
    out = classify(_resp([{"text": "cut"}], finish="MAX_TOKENS"))
    assert isinstance(out, TextOutcome)
    assert out.text == "Generation stopped unexpectedly (MAX_TOKENS). Partial content might be missing."


@pytest.mark.parametrize("parts", [None, []])
def test_candidate_without_parts_is_empty(parts: list[dict[str, Any]] | None) -> None:
    out = classify(_resp(parts))
    assert out == EmptyOutcome("The model returned a candidate but no content parts.")


def test_missing_finish_reason_counts_as_normal() -> None:
    out = classify(_resp([{"text": "ok"}], finish=None))
    assert out == TextOutcome("ok")


def test_single_text_part() -> None:
    assert classify(_resp([{"text": "Here is..."}])) == TextOutcome("Here is...")


def test_text_parts_are_concatenated_without_separator() -> None:
    assert classify(_resp([{"text": "Hel"}, {"text": "lo"}])) == TextOutcome("Hello")


def test_image_takes_precedence_and_text_becomes_caption() -> None:
    out = classify(_resp([{"text": "A"}, _image("WA=="), {"text": "B"}]))
    assert out == ImageOutcome("data:image/png;base64,WA==", "AB")


def test_image_without_text_has_no_caption() -> None:
    out = classify(_resp([_image("Zm9v", "image/jpeg")]))
    assert out == ImageOutcome("data:image/jpeg;base64,Zm9v", None)


def test_last_image_wins() -> None:
    out = classify(_resp([_image("Rmlyc3Q=", "image/png"), _image("TGFzdA==", "image/webp")]))
    assert isinstance(out, ImageOutcome)
    assert out.data_uri == "data:image/webp;base64,TGFzdA=="


def test_non_image_inline_data_is_ignored() -> None:
    out = classify(_resp([{"inlineData": {"mimeType": "audio/wav", "data": "AAAA"}}, {"text": "t"}]))
    assert out == TextOutcome("t")


def test_unusable_parts_are_empty_with_raw_parts() -> None:
    out = classify(_resp([{"functionCall": {"name": "f"}}, {"text": ""}]))
    assert isinstance(out, EmptyOutcome)
    assert out.reason == "Model response did not contain usable text or image data."
    assert len(out.details["rawParts"]) == 2


def test_only_first_candidate_is_inspected() -> None:
    raw = {
        "candidates": [
            {"finishReason": "STOP", "content": {"parts": [{"text": "first"}]}},
            {"finishReason": "STOP", "content": {"parts": [_image()]}},
        ]
    }
    assert classify(raw) == TextOutcome("first")


def test_parsed_model_is_accepted() -> None:
    resp = GenerateContentResponse.model_validate(_resp([{"text": "typed"}]))
    assert classify(resp) == TextOutcome("typed")


@pytest.mark.parametrize(
    "raw",
    [
        "not a dict",
        42,
        [1, 2, 3],
        {"candidates": "nope"},
        {"candidates": [None]},
        {"candidates": [{"content": {"parts": "nope"}}]},
        {"candidates": [{"content": {"parts": [None]}}]},
        {"candidates": [{"content": {"parts": [{"inlineData": {"data": "AAAA"}}]}}]},
        {"candidates": [{"finishReason": 7, "content": {"parts": [{"text": "x"}]}}]},
        {"promptFeedback": "blocked?"},
    ],
)
def test_malformed_payloads_never_raise(raw: Any) -> None:
    out = classify(raw)
    assert isinstance(out, ErrorOutcome)
    assert out.message.startswith("Failed to process the API response:")
    assert out.details is None


def test_failure_message_does_not_echo_upstream_values() -> None:
    raw = {"candidates": [{"content": {"parts": [{"inlineData": {"data": "UPSTREAM-BYTES"}}]}}]}
    out = classify(raw)
    assert isinstance(out, ErrorOutcome)
    assert "UPSTREAM-BYTES" not in out.message
    assert "input_value" not in out.message
    assert "errors.pydantic.dev" not in out.message
    assert "mimeType" in out.message or "mime_type" in out.message


def test_empty_image_data_is_not_an_image() -> None:
    out = classify(_resp([{"text": "cap"}, _image("")]))
    assert out == TextOutcome("cap")


def test_raw_payload_attached_in_diagnostic_mode() -> None:
    out = classify({"candidates": "nope"}, include_raw=True)
    assert isinstance(out, ErrorOutcome)
    assert out.details == {"rawResponse": {"candidates": "nope"}}


def test_unknown_finish_reason_is_handled() -> None:
    out = classify(_resp([{"text": "x"}], finish="SOMETHING_NEW"))
    assert isinstance(out, TextOutcome)
    assert "SOMETHING_NEW" in out.text
