"""Image backends for measuring and downscaling images."""

from imageguard.backends.pillow import PillowBackend
from imageguard.backends.protocol import BackendKind, ImageBackend, ImageMetadata
from imageguard.backends.selection import (
    get_backend,
    prefers_external_tool,
    resolve_backend,
    select_backend_kind,
)
from imageguard.backends.sips import CommandRunner, SipsBackend

__all__ = [
    "BackendKind",
    "CommandRunner",
    "ImageBackend",
    "ImageMetadata",
    "PillowBackend",
    "SipsBackend",
    "get_backend",
    "prefers_external_tool",
    "resolve_backend",
    "select_backend_kind",
]
