"""Sanitize image blocks in tool results before they reach the model.

Every inline image is classified from its bytes, measured and, when either
side exceeds the limit, downscaled to fit while keeping its aspect ratio.
Images that cannot be processed are replaced in place by a text block
explaining why, so a single bad payload never aborts the rest of the result.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from typing import Any, TypeVar

from imageguard.backends.protocol import ImageBackend
from imageguard.config import ImageConfig
from imageguard.content import ImageBlock, has_media_blocks, parse_block, text_block
from imageguard.exceptions import ImagePayloadError
from imageguard.image_ops import aget_image_metadata, aresize_image, get_image_metadata, resize_image
from imageguard.mime import is_image_mime, sniff_mime_from_base64
from imageguard.tool_results import amap_result_content, map_result_content

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


def _empty_payload_text(label: str) -> dict[str, str]:
    return text_block(f"[{label}] omitted empty image payload")


def _failed_payload_text(label: str, exc: Exception) -> dict[str, str]:
    return text_block(f"[{label}] omitted image payload: {exc}")


def _limit(max_dimension_px: int | None, config: ImageConfig) -> int:
    return max(config.max_dimension_px if max_dimension_px is None else max_dimension_px, 1)


def _verified_mime(block: ImageBlock, data: str) -> str:
    """Return the MIME type sniffed from the payload, or the declared one if unknown."""
    sniffed = sniff_mime_from_base64(data)
    if sniffed is None:
        return block.mime_type
    if not is_image_mime(sniffed):
        msg = f"payload looks like {sniffed}, not {block.mime_type}"
        raise ImagePayloadError(msg)
    if sniffed != block.mime_type:
        logger.debug("Relabeling image block from %s to %s", block.mime_type, sniffed)
    return sniffed


def _unchanged(block: ImageBlock, mime_type: str) -> Any:
    if mime_type == block.mime_type:
        return block.raw
    return block.replace(mime_type=mime_type)


def _sanitize_image_block(
    block: ImageBlock,
    data: str,
    limit: int,
    config: ImageConfig,
    backend: ImageBackend | None,
    fallback_backend: ImageBackend | None,
) -> Any:
    mime_type = _verified_mime(block, data)
    buffer = base64.b64decode(data, validate=True)
    meta = get_image_metadata(buffer, config=config, backend=backend)
    if meta is None or meta.max_side <= limit:
        return _unchanged(block, mime_type)

    resized = resize_image(
        buffer,
        mime_type,
        max_side=limit,
        quality=config.jpeg_quality,
        without_enlargement=True,
        config=config,
        backend=backend,
        fallback_backend=fallback_backend,
    )
    logger.debug(
        "Downscaled %sx%s %s image to fit %spx (%s)",
        meta.width,
        meta.height,
        mime_type,
        limit,
        resized.mime_type,
    )
    return block.replace(data=base64.b64encode(resized.data).decode("ascii"), mime_type=resized.mime_type)


async def _asanitize_image_block(
    block: ImageBlock,
    data: str,
    limit: int,
    config: ImageConfig,
    backend: ImageBackend | None,
    fallback_backend: ImageBackend | None,
) -> Any:
    mime_type = _verified_mime(block, data)
    buffer = base64.b64decode(data, validate=True)
    meta = await aget_image_metadata(buffer, config=config, backend=backend)
    if meta is None or meta.max_side <= limit:
        return _unchanged(block, mime_type)

    resized = await aresize_image(
        buffer,
        mime_type,
        max_side=limit,
        quality=config.jpeg_quality,
        without_enlargement=True,
        config=config,
        backend=backend,
        fallback_backend=fallback_backend,
    )
    logger.debug(
        "Downscaled %sx%s %s image to fit %spx (%s)",
        meta.width,
        meta.height,
        mime_type,
        limit,
        resized.mime_type,
    )
    return block.replace(data=base64.b64encode(resized.data).decode("ascii"), mime_type=resized.mime_type)


def sanitize_content_blocks(
    blocks: Sequence[Any],
    label: str,
    *,
    max_dimension_px: int | None = None,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
    fallback_backend: ImageBackend | None = None,
) -> list[Any]:
    """Return a new block list with every image block checked and downscaled.

    Blocks are processed one at a time and keep their positions. Every image
    is classified from its bytes first: a wrong image label is replaced by
    the sniffed one (payload unchanged) and a payload that is not an image at
    all becomes a placeholder. Non-image blocks and correctly labeled images
    inside the limit are returned untouched (same objects). Images whose
    size cannot be determined are forwarded without resizing.

    Args:
        blocks: Content blocks of a tool result.
        label: Prefix for placeholder texts, e.g. ``"read:/tmp/a.png"``.
        max_dimension_px: Longest allowed side. Defaults to
            `config.max_dimension_px`; values below 1 are clamped to 1.
        config: Backend selection and encoder settings.
        backend: Explicit backend, bypassing selection.
        fallback_backend: Backend used when the native backend fails.

    Returns:
        The sanitized blocks. Failed or empty images become text blocks of
        the form ``"[<label>] omitted ..."``.
    """
    config = config or ImageConfig()
    limit = _limit(max_dimension_px, config)
    out: list[Any] = []

    for raw in blocks:
        block = parse_block(raw)
        if not isinstance(block, ImageBlock):
            out.append(raw)
            continue

        data = block.data.strip()
        if not data:
            logger.warning("[%s] omitting empty image payload", label)
            out.append(_empty_payload_text(label))
            continue

        try:
            out.append(_sanitize_image_block(block, data, limit, config, backend, fallback_backend))
        except Exception as exc:  # noqa: BLE001
            logger.warning("[%s] omitting image payload: %s", label, exc)
            out.append(_failed_payload_text(label, exc))

    return out


async def asanitize_content_blocks(
    blocks: Sequence[Any],
    label: str,
    *,
    max_dimension_px: int | None = None,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
    fallback_backend: ImageBackend | None = None,
) -> list[Any]:
    """Async version of `sanitize_content_blocks`."""
    config = config or ImageConfig()
    limit = _limit(max_dimension_px, config)
    out: list[Any] = []

    for raw in blocks:
        block = parse_block(raw)
        if not isinstance(block, ImageBlock):
            out.append(raw)
            continue

        data = block.data.strip()
        if not data:
            logger.warning("[%s] omitting empty image payload", label)
            out.append(_empty_payload_text(label))
            continue

        try:
            out.append(await _asanitize_image_block(block, data, limit, config, backend, fallback_backend))
        except Exception as exc:  # noqa: BLE001
            logger.warning("[%s] omitting image payload: %s", label, exc)
            out.append(_failed_payload_text(label, exc))

    return out


def sanitize_tool_result(
    result: ResultT,
    label: str,
    *,
    max_dimension_px: int | None = None,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
    fallback_backend: ImageBackend | None = None,
) -> ResultT:
    """Sanitize the image blocks of a `ToolMessage`, `Command` or content mapping.

    Results without any image or text block are returned as the same object.
    Otherwise a copy with sanitized content is returned; the input is never
    mutated.
    """

    def transform(content: list[Any]) -> list[Any] | None:
        if not has_media_blocks(content):
            return None
        return sanitize_content_blocks(
            content,
            label,
            max_dimension_px=max_dimension_px,
            config=config,
            backend=backend,
            fallback_backend=fallback_backend,
        )

    return map_result_content(result, transform)


async def asanitize_tool_result(
    result: ResultT,
    label: str,
    *,
    max_dimension_px: int | None = None,
    config: ImageConfig | None = None,
    backend: ImageBackend | None = None,
    fallback_backend: ImageBackend | None = None,
) -> ResultT:
    """Async version of `sanitize_tool_result`."""

    async def transform(content: list[Any]) -> list[Any] | None:
        if not has_media_blocks(content):
            return None
        return await asanitize_content_blocks(
            content,
            label,
            max_dimension_px=max_dimension_px,
            config=config,
            backend=backend,
            fallback_backend=fallback_backend,
        )

    return await amap_result_content(result, transform)
