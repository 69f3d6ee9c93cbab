"""Repair MIME labels on image results returned by file-read tools.

Read tools label images by file extension. A PNG saved as ``.jpg`` would be
forwarded as ``image/jpeg`` and rejected downstream, so the first image block
is sniffed and every image block (plus the ``Read image file [...]`` header the
tool writes next to it) is relabeled with the real type.

Unlike `imageguard.sanitize`, problems here raise: an empty payload or a
non-image file from a direct read means the caller asked for the wrong file.
"""

from __future__ import annotations

import logging
import re
from typing import Any, TypeVar

from imageguard.content import ImageBlock, TextBlock, parse_block
from imageguard.exceptions import ImageReadError
from imageguard.mime import is_image_mime, sniff_mime_from_base64
from imageguard.tool_results import map_result_content

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

READ_IMAGE_HEADER_RE = re.compile(r"Read image file \[.*\]", re.DOTALL)


def rewrite_read_image_header(text: str, mime_type: str) -> str:
    """Point a ``Read image file [<mime>]`` header at `mime_type`; other text is unchanged."""
    if READ_IMAGE_HEADER_RE.fullmatch(text):
        return f"Read image file [{mime_type}]"
    return text


def _normalize_content(content: list[Any], file_path: str) -> list[Any] | None:
    image = next((block for block in map(parse_block, content) if isinstance(block, ImageBlock)), None)
    if image is None:
        return None

    if not image.data.strip():
        msg = f"read: image payload is empty ({file_path})"
        raise ImageReadError(msg, file_path=file_path)

    sniffed = sniff_mime_from_base64(image.data)
    if sniffed is None:
        return None

    if not is_image_mime(sniffed):
        msg = f"read: file looks like {sniffed} but was treated as {image.mime_type} ({file_path})"
        raise ImageReadError(msg, file_path=file_path)

    if sniffed == image.mime_type:
        return None

    logger.info("read: relabeling %s from %s to %s", file_path, image.mime_type, sniffed)
    normalized: list[Any] = []
    for raw in content:
        block = parse_block(raw)
        if isinstance(block, ImageBlock):
            normalized.append(block.replace(mime_type=sniffed))
        elif isinstance(block, TextBlock):
            normalized.append(block.replace(text=rewrite_read_image_header(block.text, sniffed)))
        else:
            normalized.append(raw)
    return normalized


def normalize_read_image_result(result: ResultT, file_path: str) -> ResultT:
    """Relabel the image blocks of a read result with their sniffed MIME type.

    Args:
        result: A `ToolMessage`, `Command` or mapping with a ``content`` list.
        file_path: Path the tool read, used in error messages.

    Returns:
        `result` itself when there is no image, the type cannot be sniffed, or
        the declared type is already right; otherwise a relabeled copy.

    Raises:
        ImageReadError: The first image block has an empty payload, or its
            bytes are not an image at all.
    """
    return map_result_content(result, lambda content: _normalize_content(content, file_path))
