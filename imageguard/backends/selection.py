"""Choose which image backend handles a call.

Selection is a pure function of the configured override, whether Pillow can be
loaded in this runtime, and the platform. Nothing is cached: every call
re-evaluates, so a test can change any input between two calls.
"""

from __future__ import annotations

import logging
import sys

from imageguard.backends.pillow import PillowBackend
from imageguard.backends.protocol import BackendKind, ImageBackend
from imageguard.backends.sips import CommandRunner, SipsBackend
from imageguard.config import ImageConfig

logger = logging.getLogger(__name__)

# `sips` ships with every macOS install.
EXTERNAL_TOOL_PLATFORM = "darwin"

_OVERRIDE_ALIASES: dict[str, BackendKind] = {
    "native": BackendKind.NATIVE,
    "pillow": BackendKind.NATIVE,
    "external-tool": BackendKind.EXTERNAL_TOOL,
    "sips": BackendKind.EXTERNAL_TOOL,
}


def parse_backend_override(value: str | BackendKind | None) -> BackendKind | None:
    """Map a configured override to a `BackendKind`; unknown values mean no override."""
    if value is None or isinstance(value, BackendKind):
        return value
    normalized = value.strip().lower()
    if not normalized:
        return None
    kind = _OVERRIDE_ALIASES.get(normalized)
    if kind is None:
        logger.warning("Ignoring unknown image backend override %r", value)
    return kind


def native_backend_available() -> bool:
    """Return True if Pillow can be imported in this runtime."""
    try:
        from PIL import Image  # noqa: F401
    except ImportError:
        return False
    return True


def prefers_external_tool(
    override: BackendKind | None,
    *,
    native_available: bool,
    platform: str,
) -> bool:
    """Decide whether the external tool should be preferred over Pillow.

    Args:
        override: Explicit backend request, if any.
        native_available: Whether Pillow loads in this runtime.
        platform: A `sys.platform` value.

    Returns:
        True when the override asks for the external tool, or when there is no
        native override, Pillow is missing, and the platform ships `sips`.
    """
    if override is BackendKind.EXTERNAL_TOOL:
        return True
    if override is BackendKind.NATIVE:
        return False
    return not native_available and platform == EXTERNAL_TOOL_PLATFORM


def select_backend_kind(
    config: ImageConfig | None = None,
    *,
    native_available: bool | None = None,
    platform: str | None = None,
) -> BackendKind:
    """Evaluate the selection policy for the current runtime.

    `native_available` and `platform` default to the live runtime values.
    """
    config = config or ImageConfig()
    override = parse_backend_override(config.backend)
    if native_available is None:
        native_available = native_backend_available()
    if platform is None:
        platform = sys.platform
    kind = (
        BackendKind.EXTERNAL_TOOL
        if prefers_external_tool(override, native_available=native_available, platform=platform)
        else BackendKind.NATIVE
    )
    logger.debug(
        "Selected image backend %s (override=%s, native_available=%s, platform=%s)",
        kind.value,
        override.value if override else None,
        native_available,
        platform,
    )
    return kind


def get_backend(
    kind: BackendKind,
    config: ImageConfig | None = None,
    *,
    runner: CommandRunner | None = None,
) -> ImageBackend:
    """Instantiate the backend for `kind`."""
    if kind is BackendKind.EXTERNAL_TOOL:
        return SipsBackend(config, runner=runner)
    return PillowBackend()


def resolve_backend(config: ImageConfig | None = None) -> ImageBackend:
    """Select and instantiate the backend for the current runtime."""
    return get_backend(select_backend_kind(config), config)
