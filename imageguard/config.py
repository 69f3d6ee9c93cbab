"""Configuration for image sanitizing."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Anthropic rejects any image where either side exceeds 2000px once a request
# carries many images, so everything is downscaled to fit this box.
DEFAULT_MAX_DIMENSION_PX = 2000
DEFAULT_JPEG_QUALITY = 85
DEFAULT_SIPS_PATH = "/usr/bin/sips"

BACKEND_ENV_VAR = "IMAGEGUARD_IMAGE_BACKEND"
MAX_DIMENSION_ENV_VAR = "IMAGEGUARD_MAX_DIMENSION_PX"
JPEG_QUALITY_ENV_VAR = "IMAGEGUARD_JPEG_QUALITY"
SIPS_PATH_ENV_VAR = "IMAGEGUARD_SIPS_PATH"


@dataclass(frozen=True)
class ImageConfig:
    """Process-wide settings for image backends and sanitizing.

    Build one instance at startup and pass it to the middleware (or to the
    functions in `imageguard.image_ops` / `imageguard.sanitize`). Core logic
    never reads the environment itself, so tests can hand in any config.

    Example:
        Force the external `sips` backend::

            from imageguard import ImageConfig, ImageSanitizerMiddleware

            middleware = ImageSanitizerMiddleware(config=ImageConfig(backend="sips"))

        Read overrides from the environment once::

            config = ImageConfig.from_env()
    """

    backend: str | None = None
    """Backend override: ``"native"``/``"pillow"`` or ``"external-tool"``/``"sips"``.

    ``None`` lets the selection policy decide.
    """

    max_dimension_px: int = DEFAULT_MAX_DIMENSION_PX
    """Largest allowed width or height for forwarded images."""

    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    """Quality used when re-encoding lossy formats (1-100)."""

    sips_path: str = DEFAULT_SIPS_PATH
    """Location of the `sips` binary used by the external-tool backend."""

    metadata_timeout_s: float = 10.0
    metadata_max_output_bytes: int = 512 * 1024
    resize_timeout_s: float = 20.0
    resize_max_output_bytes: int = 1024 * 1024

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ImageConfig:
        """Build a config from ``IMAGEGUARD_*`` environment variables.

        Args:
            environ: Mapping to read from. Defaults to `os.environ`.

        Returns:
            A config with unset or unparsable variables left at their defaults.
        """
        env = os.environ if environ is None else environ
        backend = env.get(BACKEND_ENV_VAR, "").strip() or None
        return cls(
            backend=backend,
            max_dimension_px=_int_from_env(env, MAX_DIMENSION_ENV_VAR, DEFAULT_MAX_DIMENSION_PX),
            jpeg_quality=_int_from_env(env, JPEG_QUALITY_ENV_VAR, DEFAULT_JPEG_QUALITY),
            sips_path=env.get(SIPS_PATH_ENV_VAR, "").strip() or DEFAULT_SIPS_PATH,
        )


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive", name, raw)
        return default
    return value
