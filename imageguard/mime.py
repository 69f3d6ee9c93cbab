"""MIME type detection from file magic bytes.

Tool results routinely carry a MIME label derived from a file extension (or no
label at all), so every payload is classified from its first bytes instead.
All supported signatures live within the first few dozen bytes, which is why
callers only ever pass a short prefix.
"""

from __future__ import annotations

import base64
import binascii

# Every signature below fits well inside these prefixes.
SNIFF_PREFIX_CHARS = 256
MAX_SNIFF_BYTES = 256
MIN_SNIFF_BYTES = 8

_ISO_BMFF_BRANDS = {
    b"avif": "image/avif",
    b"avis": "image/avif",
    b"heic": "image/heic",
    b"heix": "image/heic",
    b"hevc": "image/heic",
    b"hevx": "image/heic",
    b"heim": "image/heic",
    b"heis": "image/heic",
    b"mif1": "image/heif",
    b"msf1": "image/heif",
    b"qt  ": "video/quicktime",
}

_PREFIX_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"BM", "image/bmp"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
    (b"ID3", "audio/mpeg"),
)

_TEXT_CONTROL_CHARS = frozenset("\t\n\r\f\v\b\x1b")


def is_image_mime(mime_type: str | None) -> bool:
    """Return True when `mime_type` names an image format."""
    return bool(mime_type) and mime_type.lower().startswith("image/")


def sniff_mime(buffer: bytes) -> str | None:
    """Classify `buffer` by its magic bytes.

    Args:
        buffer: The payload or any prefix of it of at least 8 bytes.

    Returns:
        The detected MIME type, or `None` when the prefix is too short or no
        signature matches. `None` means "keep whatever label you had".
    """
    head = bytes(buffer[:MAX_SNIFF_BYTES])
    if len(head) < MIN_SNIFF_BYTES:
        return None

    if head[:4] == b"RIFF" and len(head) >= 12:
        kind = head[8:12]
        if kind == b"WEBP":
            return "image/webp"
        if kind == b"WAVE":
            return "audio/wav"
        if kind == b"AVI ":
            return "video/x-msvideo"
        return None

    if head[4:8] == b"ftyp" and len(head) >= 12:
        return _ISO_BMFF_BRANDS.get(head[8:12], "video/mp4")

    for signature, mime_type in _PREFIX_SIGNATURES:
        if head.startswith(signature):
            if mime_type == "image/bmp" and not _looks_like_bmp(head):
                continue
            return mime_type

    return _sniff_text(head)


def sniff_mime_from_base64(data: str) -> str | None:
    """Classify a base64 payload by decoding only its first bytes.

    The slice is rounded down to a multiple of 4 characters so a truncated
    prefix still decodes cleanly.
    """
    trimmed = data.strip()
    if not trimmed:
        return None

    take = min(SNIFF_PREFIX_CHARS, len(trimmed))
    slice_len = take - (take % 4)
    if slice_len < MIN_SNIFF_BYTES:
        return None

    try:
        head = base64.b64decode(trimmed[:slice_len], validate=True)
    except (binascii.Error, ValueError):
        return None
    return sniff_mime(head)


def _looks_like_bmp(head: bytes) -> bool:
    # "BM" alone is too weak; the DIB header size sits at offset 14.
    if len(head) < 18:
        return False
    dib_header_size = int.from_bytes(head[14:18], byteorder="little", signed=False)
    return dib_header_size in (12, 40, 52, 56, 64, 108, 124)


def _sniff_text(head: bytes) -> str | None:
    if b"\x00" in head:
        return None

    text = None
    # The prefix may end in the middle of a multi-byte UTF-8 sequence.
    for cut in range(4):
        try:
            text = head[: len(head) - cut].decode("utf-8")
            break
        except UnicodeDecodeError:
            continue
    if text is None:
        return None

    text = text.removeprefix("\ufeff")
    if any(not ch.isprintable() and ch not in _TEXT_CONTROL_CHARS for ch in text):
        return None

    lowered = text.lstrip().lower()
    if lowered.startswith("<svg") or (lowered.startswith("<?xml") and "<svg" in lowered):
        return "image/svg+xml"
    if lowered.startswith("<?xml"):
        return "application/xml"
    if lowered.startswith(("<!doctype html", "<html")):
        return "text/html"
    return "text/plain"
