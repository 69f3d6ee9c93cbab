"""In-process image backend built on Pillow."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import TYPE_CHECKING

from imageguard.backends.protocol import (
    BackendKind,
    ImageBackend,
    ImageMetadata,
    OutputFormat,
    metadata_or_none,
)
from imageguard.exceptions import ImageBackendError

if TYPE_CHECKING:
    from PIL.Image import Image as PILImage

logger = logging.getLogger(__name__)

_PIL_FORMATS: dict[str, str] = {"jpeg": "JPEG", "webp": "WEBP", "png": "PNG"}
_PNG_SAFE_MODES = frozenset({"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"})


def fit_inside(width: int, height: int, max_side: int, *, without_enlargement: bool = True) -> tuple[int, int]:
    """Compute output dimensions that fit a `max_side` square, keeping aspect ratio.

    Example:
        ```python
        fit_inside(4000, 3000, 2000)  # (2000, 1500)
        fit_inside(800, 600, 2000)  # (800, 600)
        fit_inside(800, 600, 2000, without_enlargement=False)  # (2000, 1500)
        ```
    """
    longest = max(width, height)
    if longest <= 0:
        msg = f"Invalid image dimensions: {width}x{height}"
        raise ValueError(msg)
    if without_enlargement and longest <= max_side:
        return width, height
    scale = max_side / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def _import_pillow():
    try:
        from PIL import Image
    except ImportError as exc:
        msg = "Pillow is not available in this runtime"
        raise ImageBackendError(msg) from exc
    return Image


def _prepare_for_format(img: PILImage, output_format: OutputFormat) -> PILImage:
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    if output_format == "jpeg":
        if img.mode in ("RGB", "L", "CMYK"):
            return img
        if has_alpha:
            img = img.convert("RGBA")
        return img.convert("RGB")
    if output_format == "webp":
        if img.mode in ("RGB", "RGBA"):
            return img
        return img.convert("RGBA" if has_alpha else "RGB")
    if img.mode in _PNG_SAFE_MODES:
        return img
    return img.convert("RGBA" if has_alpha else "RGB")


class PillowBackend(ImageBackend):
    """Decode and downscale images in-process with Pillow.

    Output keeps the requested format family. Animated inputs are flattened to
    their first frame.
    """

    kind = BackendKind.NATIVE

    def probe(self, buffer: bytes) -> ImageMetadata | None:
        try:
            image_module = _import_pillow()
        except ImageBackendError as exc:
            logger.debug("Pillow could not read image header: %s", exc)
            return None

        try:
            with image_module.open(io.BytesIO(buffer)) as img:
                width, height = img.size
        except image_module.DecompressionBombError as exc:
            msg = f"image is too large to decode safely: {exc}"
            raise ImageBackendError(msg) from exc
        except Exception as exc:  # noqa: BLE001
            logger.debug("Pillow could not read image header: %s", exc)
            return None
        return metadata_or_none(width, height)

    async def aprobe(self, buffer: bytes) -> ImageMetadata | None:
        return await asyncio.to_thread(self.probe, buffer)

    def resize(
        self,
        buffer: bytes,
        *,
        max_side: int,
        quality: int,
        output_format: OutputFormat = "jpeg",
        without_enlargement: bool = True,
    ) -> bytes:
        image_module = _import_pillow()
        try:
            with image_module.open(io.BytesIO(buffer)) as img:
                img.load()
                target = fit_inside(img.width, img.height, max_side, without_enlargement=without_enlargement)
                resized = img.resize(target, image_module.Resampling.LANCZOS) if target != img.size else img.copy()
            resized = _prepare_for_format(resized, output_format)

            out = io.BytesIO()
            save_kwargs: dict[str, object] = {}
            if output_format in ("jpeg", "webp"):
                save_kwargs["quality"] = max(1, min(100, round(quality)))
            if output_format == "png":
                save_kwargs["optimize"] = True
            resized.save(out, format=_PIL_FORMATS[output_format], **save_kwargs)
        except ImageBackendError:
            raise
        except Exception as exc:
            msg = f"Pillow could not resize image: {exc}"
            raise ImageBackendError(msg) from exc

        logger.debug("Pillow resized image to %sx%s (%s)", target[0], target[1], output_format)
        return out.getvalue()

    async def aresize(
        self,
        buffer: bytes,
        *,
        max_side: int,
        quality: int,
        output_format: OutputFormat = "jpeg",
        without_enlargement: bool = True,
    ) -> bytes:
        return await asyncio.to_thread(
            self.resize,
            buffer,
            max_side=max_side,
            quality=quality,
            output_format=output_format,
            without_enlargement=without_enlargement,
        )
