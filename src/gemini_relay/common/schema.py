"""Pydantic models and dataclasses for request/response types."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class ImageInput:
    """Uploaded image held in memory."""
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class GenerationRequest:
    """Prompt plus optional image, as handed to the upstream layer."""
    prompt_text: str
    image: ImageInput | None = None


@dataclass(frozen=True)
class ImageOutcome:
    data_uri: str
    caption: str | None = None


@dataclass(frozen=True)
class TextOutcome:
    text: str


@dataclass(frozen=True)
class EmptyOutcome:
    reason: str
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ErrorOutcome:
    message: str
    details: dict[str, Any] | None = None


Outcome = Union[ImageOutcome, TextOutcome, EmptyOutcome, ErrorOutcome]


class GenerateIn(BaseModel):
    prompt: str | None = None


class ImageOut(BaseModel):
    imageUrl: str
    text: str | None = None


class TextOut(BaseModel):
    text: str


class MessageOut(BaseModel):
    message: str


class HealthOut(BaseModel):
    status: str
    timestamp: str
    model: str
