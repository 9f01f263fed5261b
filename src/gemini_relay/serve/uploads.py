"""Read the prompt and optional image from an incoming generate request.

Multipart bodies are the normal path. Exactly one file is accepted, under
the ``image`` field, with an ``image/*`` content type and at most
``max_bytes`` bytes. All checks run before anything touches the upstream.
A JSON body ``{"prompt": "..."}`` is also accepted for text-only calls.
"""
from __future__ import annotations
import logging

from fastapi import Request
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from gemini_relay.common.errors import InvalidInput, UploadRejected
from gemini_relay.common.schema import GenerateIn, ImageInput

LOGGER = logging.getLogger("gemini_relay.serve.uploads")

IMAGE_FIELD = "image"


async def read_generation_input(request: Request, max_bytes: int) -> tuple[str | None, ImageInput | None]:
    """
    Extract ``(prompt, image)`` from the request body.

    Args:
        request: Incoming request.
        max_bytes: Upload size cap.

    Raises:
        UploadRejected: wrong field, too many files, wrong type or too large.
        InvalidInput: malformed JSON body.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        return await _read_json(request), None

    try:
        form = await request.form()
    except Exception as e:
        LOGGER.error("Multipart parse error during file upload: %s", e)
        raise UploadRejected(f"File upload error: {getattr(e, 'detail', e)}") from e

    try:
        uploads: list[UploadFile] = []
        for field, value in form.multi_items():
            if not isinstance(value, UploadFile):
                continue
            if field != IMAGE_FIELD:
                raise UploadRejected(f"Unexpected file field: '{field}'. Please use the 'image' field.")
            if value.filename:
                uploads.append(value)
        if len(uploads) > 1:
            raise UploadRejected("Only one image file may be uploaded per request.")

        image = await _read_image(uploads[0], max_bytes) if uploads else None
        prompt = form.get("prompt")
        return (prompt if isinstance(prompt, str) else None), image
    finally:
        await form.close()


async def _read_image(upload: UploadFile, max_bytes: int) -> ImageInput:
    mime = upload.content_type or ""
    if not mime.startswith("image/"):
        LOGGER.warning("Rejected file upload: Invalid MIME type %s for field %s", mime, IMAGE_FIELD)
        raise UploadRejected("Invalid file type. Only image files are allowed.", {"receivedType": mime})

    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        LOGGER.warning("Rejected file upload: %s exceeds %d bytes", upload.filename, max_bytes)
        raise UploadRejected(f"File size limit exceeded (max {max_bytes // (1024 * 1024)}MB).")
    LOGGER.info("Image received: %s (%s, %d bytes)", upload.filename, mime, len(data))
    return ImageInput(data=data, mime_type=mime)


async def _read_json(request: Request) -> str | None:
    raw = await request.body()
    try:
        body = GenerateIn.model_validate_json(raw or b"{}")
    except ValidationError as e:
        raise InvalidInput(
            "Bad Request: Malformed JSON",
            {"reason": "The request body could not be parsed as valid JSON."},
        ) from e
    return body.prompt
