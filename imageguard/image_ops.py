"""Backend-agnostic image operations: measure and downscale.

These functions pick a backend through `imageguard.backends.selection` unless
one is passed explicitly. Every operation has an async twin prefixed with `a`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from imageguard.backends.protocol import BackendKind, ImageBackend, ImageMetadata, OutputFormat
from imageguard.backends.selection import resolve_backend
from imageguard.backends.sips import SipsBackend
from imageguard.config import ImageConfig
from imageguard.exceptions import ImageBackendError
from imageguard.mime import is_image_mime, sniff_mime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResizedImage:
    """Encoded output of a resize and the MIME type sniffed from its bytes."""

    data: bytes
    mime_type: str


def output_format_for(mime_type: str) -> OutputFormat:
    """Pick the Pillow output format that keeps the input's format family.

    JPEG stays JPEG and WEBP stays WEBP. PNG and everything else become PNG.
    """
    mime = mime_type.lower()
    if mime in ("image/jpeg", "image/jpg"):
        return "jpeg"
    if mime == "image/webp":
        return "webp"
    return "png"


def _resized_image(out: bytes, fallback_mime: str) -> ResizedImage:
    sniffed = sniff_mime(out[:256])
    return ResizedImage(data=out, mime_type=sniffed if is_image_mime(sniffed) else fallback_mime)


def get_image_metadata(
    buffer: bytes,
    *,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
) -> ImageMetadata | None:
    """Return the pixel dimensions of `buffer`, or `None` if they cannot be read.

    Args:
        buffer: Encoded image bytes.
        config: Used to select the backend when `backend` is not given.
        backend: Explicit backend to use.

    Returns:
        `ImageMetadata` with positive sides, or `None` on any decode error.

    Raises:
        ImageBackendError: The image is over the decoder's pixel limit.
    """
    backend = backend or resolve_backend(config)
    return backend.probe(buffer)


async def aget_image_metadata(
    buffer: bytes,
    *,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
) -> ImageMetadata | None:
    """Async version of `get_image_metadata`."""
    backend = backend or resolve_backend(config)
    return await backend.aprobe(buffer)


def resize_image(
    buffer: bytes,
    mime_type: str,
    *,
    max_side: int,
    quality: int | None = None,
    without_enlargement: bool = True,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
    fallback_backend: ImageBackend | None = None,
) -> ResizedImage:
    """Downscale `buffer` to fit inside a `max_side` square.

    With Pillow the output keeps the input's format family (see
    `output_format_for`). When Pillow fails the resize is retried with the
    `sips` backend, which always emits JPEG. The returned MIME type is sniffed
    from the output bytes, so callers must use it instead of `mime_type`.

    Args:
        buffer: Encoded source image.
        mime_type: Declared MIME type of `buffer`.
        max_side: Longest allowed output side in pixels.
        quality: Lossy encoder quality. Defaults to `config.jpeg_quality`.
        without_enlargement: Never upscale images that already fit.
        config: Backend selection and tool settings.
        backend: Explicit primary backend.
        fallback_backend: Backend used when the native backend fails.
            Defaults to `SipsBackend(config)`.

    Returns:
        The resized image and its sniffed MIME type.

    Raises:
        ImageBackendError: Neither backend could produce output.
    """
    config = config or ImageConfig()
    quality = config.jpeg_quality if quality is None else quality
    backend = backend or resolve_backend(config)

    if backend.kind is not BackendKind.NATIVE:
        out = backend.resize(
            buffer,
            max_side=max_side,
            quality=quality,
            output_format="jpeg",
            without_enlargement=without_enlargement,
        )
        return _resized_image(out, mime_type)

    try:
        out = backend.resize(
            buffer,
            max_side=max_side,
            quality=quality,
            output_format=output_format_for(mime_type),
            without_enlargement=without_enlargement,
        )
    except ImageBackendError as exc:
        logger.warning("Native image resize failed, falling back to sips: %s", exc)
        fallback = fallback_backend or SipsBackend(config)
        out = fallback.resize(
            buffer,
            max_side=max_side,
            quality=quality,
            output_format="jpeg",
            without_enlargement=without_enlargement,
        )
    return _resized_image(out, mime_type)


async def aresize_image(
    buffer: bytes,
    mime_type: str,
    *,
    max_side: int,
    quality: int | None = None,
    without_enlargement: bool = True,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
    fallback_backend: ImageBackend | None = None,
) -> ResizedImage:
    """Async version of `resize_image`."""
    config = config or ImageConfig()
    quality = config.jpeg_quality if quality is None else quality
    backend = backend or resolve_backend(config)

    if backend.kind is not BackendKind.NATIVE:
        out = await backend.aresize(
            buffer,
            max_side=max_side,
            quality=quality,
            output_format="jpeg",
            without_enlargement=without_enlargement,
        )
        return _resized_image(out, mime_type)

    try:
        out = await backend.aresize(
            buffer,
            max_side=max_side,
            quality=quality,
            output_format=output_format_for(mime_type),
            without_enlargement=without_enlargement,
        )
    except ImageBackendError as exc:
        logger.warning("Native image resize failed, falling back to sips: %s", exc)
        fallback = fallback_backend or SipsBackend(config)
        out = await fallback.aresize(
            buffer,
            max_side=max_side,
            quality=quality,
            output_format="jpeg",
            without_enlargement=without_enlargement,
        )
    return _resized_image(out, mime_type)


def resize_to_jpeg(
    buffer: bytes,
    *,
    max_side: int,
    quality: int | None = None,
    without_enlargement: bool = True,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
) -> bytes:
    """Downscale `buffer` with the selected backend and always encode JPEG."""
    config = config or ImageConfig()
    backend = backend or resolve_backend(config)
    return backend.resize(
        buffer,
        max_side=max_side,
        quality=config.jpeg_quality if quality is None else quality,
        output_format="jpeg",
        without_enlargement=without_enlargement,
    )


async def aresize_to_jpeg(
    buffer: bytes,
    *,
    max_side: int,
    quality: int | None = None,
    without_enlargement: bool = True,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
) -> bytes:
    """Async version of `resize_to_jpeg`."""
    config = config or ImageConfig()
    backend = backend or resolve_backend(config)
    return await backend.aresize(
        buffer,
        max_side=max_side,
        quality=config.jpeg_quality if quality is None else quality,
        output_format="jpeg",
        without_enlargement=without_enlargement,
    )
