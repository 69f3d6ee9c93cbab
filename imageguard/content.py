"""Typed view over the content blocks of a tool result.

Tool messages carry their content as a list of plain dicts. `parse_block` maps
each entry onto a closed set of variants so the sanitizer can match on type
instead of probing dict shapes at every step:

- `ImageBlock`: ``{"type": "image"}`` with a base64 payload and a MIME type,
  in either the LangChain standard shape (``base64`` / ``mime_type``) or the
  compact shape (``data`` / ``mimeType``).
- `TextBlock`: ``{"type": "text", "text": str}``.
- `OtherBlock`: everything else, passed through untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# (payload key, MIME key) pairs, checked in order.
IMAGE_BLOCK_SHAPES: tuple[tuple[str, str], ...] = (
    ("base64", "mime_type"),
    ("data", "mimeType"),
)


@dataclass(frozen=True)
class ImageBlock:
    """Inline base64 image."""

    data: str
    mime_type: str
    raw: Mapping[str, Any]
    data_key: str = "base64"
    mime_key: str = "mime_type"

    def replace(self, *, data: str | None = None, mime_type: str | None = None) -> dict[str, Any]:
        """Return a copy of the original dict with new payload and/or MIME type.

        Key names and any extra keys of the original block are preserved.
        """
        updated = dict(self.raw)
        if data is not None:
            updated[self.data_key] = data
        if mime_type is not None:
            updated[self.mime_key] = mime_type
        return updated


@dataclass(frozen=True)
class TextBlock:
    """Plain text."""

    text: str
    raw: Mapping[str, Any]

    def replace(self, *, text: str) -> dict[str, Any]:
        return {**self.raw, "text": text}


@dataclass(frozen=True)
class OtherBlock:
    """Any block that is neither an inline image nor text."""

    raw: Any


ContentBlock = ImageBlock | TextBlock | OtherBlock


def parse_block(block: object) -> ContentBlock:
    """Classify a raw content block."""
    if not isinstance(block, Mapping):
        return OtherBlock(raw=block)

    block_type = block.get("type")
    if block_type == "image":
        for data_key, mime_key in IMAGE_BLOCK_SHAPES:
            data = block.get(data_key)
            mime_type = block.get(mime_key)
            if isinstance(data, str) and isinstance(mime_type, str):
                return ImageBlock(
                    data=data,
                    mime_type=mime_type,
                    raw=block,
                    data_key=data_key,
                    mime_key=mime_key,
                )
    elif block_type == "text" and isinstance(block.get("text"), str):
        return TextBlock(text=block["text"], raw=block)

    return OtherBlock(raw=block)


def text_block(text: str) -> dict[str, str]:
    """Build a raw text content block."""
    return {"type": "text", "text": text}


def has_media_blocks(content: object) -> bool:
    """Return True if `content` is a block list holding any image or text block."""
    if not isinstance(content, list):
        return False
    return any(isinstance(parse_block(block), ImageBlock | TextBlock) for block in content)
