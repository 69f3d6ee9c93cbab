"""Image sanitizing for agent tool results."""

from imageguard._version import __version__
from imageguard.backends.protocol import BackendKind, ImageMetadata
from imageguard.config import DEFAULT_MAX_DIMENSION_PX, ImageConfig
from imageguard.exceptions import ImageBackendError, ImageGuardError, ImagePayloadError, ImageReadError
from imageguard.image_ops import (
    ResizedImage,
    aget_image_metadata,
    aresize_image,
    get_image_metadata,
    resize_image,
    resize_to_jpeg,
)
from imageguard.middleware import ImageSanitizerMiddleware
from imageguard.mime import sniff_mime, sniff_mime_from_base64
from imageguard.read_result import normalize_read_image_result
from imageguard.sanitize import (
    asanitize_content_blocks,
    asanitize_tool_result,
    sanitize_content_blocks,
    sanitize_tool_result,
)

__all__ = [
    "DEFAULT_MAX_DIMENSION_PX",
    "BackendKind",
    "ImageBackendError",
    "ImageConfig",
    "ImageGuardError",
    "ImageMetadata",
    "ImagePayloadError",
    "ImageReadError",
    "ImageSanitizerMiddleware",
    "ResizedImage",
    "__version__",
    "aget_image_metadata",
    "aresize_image",
    "asanitize_content_blocks",
    "asanitize_tool_result",
    "get_image_metadata",
    "normalize_read_image_result",
    "resize_image",
    "resize_to_jpeg",
    "sanitize_content_blocks",
    "sanitize_tool_result",
    "sniff_mime",
    "sniff_mime_from_base64",
]
