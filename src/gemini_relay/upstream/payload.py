"""Gemini generateContent wire shapes.

Outbound: ``build_request`` assembles the JSON body for one prompt and an
optional image.

Inbound: the pydantic models below give the raw response an explicit shape.
Each part is exactly one of ``TextPart``, ``InlineDataPart`` or ``OtherPart``
so the classifier can dispatch on type instead of inspecting dict keys.
"""
from __future__ import annotations
import base64
from typing import Annotated, Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

from gemini_relay.common.errors import InvalidInput
from gemini_relay.common.schema import ImageInput

NORMAL_FINISH = "STOP"
SAFETY_FINISH = "SAFETY"
RECITATION_FINISH = "RECITATION"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Blob(_WireModel):
    mime_type: str = Field(validation_alias=AliasChoices("mimeType", "mime_type"))
    data: str


class TextPart(_WireModel):
    text: str


class InlineDataPart(_WireModel):
    inline_data: Blob = Field(validation_alias=AliasChoices("inlineData", "inline_data"))


class OtherPart(_WireModel):
    """Any part the relay does not interpret (function calls, file refs, ...)."""


def part_kind(raw: Any) -> str | None:
    """Tag a part by shape: ``inlineData`` wins over ``text``; anything else is "other"."""
    if isinstance(raw, InlineDataPart):
        return "inline"
    if isinstance(raw, TextPart):
        return "text"
    if isinstance(raw, OtherPart):
        return "other"
    if not isinstance(raw, dict):
        return None
    if raw.get("inlineData") is not None or raw.get("inline_data") is not None:
        return "inline"
    if isinstance(raw.get("text"), str):
        return "text"
    return "other"


Part = Annotated[
    Union[
        Annotated[InlineDataPart, Tag("inline")],
        Annotated[TextPart, Tag("text")],
        Annotated[OtherPart, Tag("other")],
    ],
    Discriminator(part_kind),
]


class Content(_WireModel):
    role: str | None = None
    parts: list[Part] = Field(default_factory=list)

    @field_validator("parts", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class Candidate(_WireModel):
    content: Content | None = None
    finish_reason: str | None = Field(default=None, validation_alias=AliasChoices("finishReason", "finish_reason"))
    safety_ratings: list[dict[str, Any]] | None = Field(
        default=None, validation_alias=AliasChoices("safetyRatings", "safety_ratings")
    )


class PromptFeedback(_WireModel):
    block_reason: str | None = Field(default=None, validation_alias=AliasChoices("blockReason", "block_reason"))
    safety_ratings: list[dict[str, Any]] | None = Field(
        default=None, validation_alias=AliasChoices("safetyRatings", "safety_ratings")
    )


class GenerateContentResponse(_WireModel):
    candidates: list[Candidate] | None = None
    prompt_feedback: PromptFeedback | None = Field(
        default=None, validation_alias=AliasChoices("promptFeedback", "prompt_feedback")
    )
    # Not part of the documented response; honoured when a proxy supplies it.
    finish_reason: str | None = Field(default=None, validation_alias=AliasChoices("finishReason", "finish_reason"))


def build_request(
    prompt_text: str,
    image: ImageInput | None = None,
    generation_config: dict[str, Any] | None = None,
    safety_settings: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """
    Build a generateContent request body.

    Args:
        prompt_text: Trimmed, non-empty prompt.
        image: Optional uploaded image.
        generation_config: Sampling options and response modalities.
        safety_settings: Harm category thresholds.

    Raises:
        InvalidInput: if the image MIME type is not ``image/*``.
    """
    parts: list[dict[str, Any]] = [{"text": prompt_text}]
    if image is not None:
        if not image.mime_type.startswith("image/"):
            raise InvalidInput("Invalid image MIME type provided.", {"receivedType": image.mime_type})
        parts.append(
            {
                "inlineData": {
                    "mimeType": image.mime_type,
                    "data": base64.b64encode(image.data).decode("ascii"),
                }
            }
        )

    body: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
    if generation_config:
        body["generationConfig"] = generation_config
    if safety_settings:
        body["safetySettings"] = safety_settings
    return body
