"""Protocol definition for image backends.

This module defines the ImageBackend interface that every image backend
implements. Backends decode, measure and downscale raw image buffers; they know
nothing about tool results or content blocks.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from enum import Enum
from typing import Literal

OutputFormat = Literal["jpeg", "webp", "png"]


class BackendKind(str, Enum):
    """Tag identifying which backend implementation to use."""

    NATIVE = "native"
    """In-process decoding with Pillow."""

    EXTERNAL_TOOL = "external-tool"
    """The macOS `sips` command-line tool, run as a subprocess."""


@dataclass(frozen=True)
class ImageMetadata:
    """Pixel dimensions of an image. Both sides are always positive."""

    width: int
    height: int

    @property
    def max_side(self) -> int:
        return max(self.width, self.height)


def metadata_or_none(width: object, height: object) -> ImageMetadata | None:
    """Build `ImageMetadata` from raw values, or `None` if they are not usable."""
    if not isinstance(width, int) or not isinstance(height, int):
        return None
    if width <= 0 or height <= 0:
        return None
    return ImageMetadata(width=width, height=height)


class ImageBackend(abc.ABC):
    """Interface for image decode/resize backends.

    `probe` reports a header it cannot read as `None` so callers can forward the
    image unresized, and raises `ImageBackendError` for images over the
    decoder's pixel limit. `resize` raises `ImageBackendError` (or a
    subclass) when it cannot produce output.
    """

    kind: BackendKind

    @abc.abstractmethod
    def probe(self, buffer: bytes) -> ImageMetadata | None:
        """Return the pixel dimensions of `buffer`, or `None` if unknown.

        Raises:
            ImageBackendError: The image exceeds the decoder's pixel limit.
        """

    @abc.abstractmethod
    async def aprobe(self, buffer: bytes) -> ImageMetadata | None:
        """Async version of `probe`."""

    @abc.abstractmethod
    def resize(
        self,
        buffer: bytes,
        *,
        max_side: int,
        quality: int,
        output_format: OutputFormat = "jpeg",
        without_enlargement: bool = True,
    ) -> bytes:
        """Downscale `buffer` to fit inside `max_side` x `max_side`.

        Args:
            buffer: Encoded source image.
            max_side: Longest allowed side of the output, in pixels.
            quality: Encoder quality for lossy formats, 1-100.
            output_format: Requested output encoding. Backends that can only
                emit one format ignore it.
            without_enlargement: Never upscale images that already fit.

        Returns:
            The encoded output image.
        """

    @abc.abstractmethod
    async def aresize(
        self,
        buffer: bytes,
        *,
        max_side: int,
        quality: int,
        output_format: OutputFormat = "jpeg",
        without_enlargement: bool = True,
    ) -> bytes:
        """Async version of `resize`."""
