"""Shared fixtures for imageguard unit tests."""

from __future__ import annotations

import io
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest
from PIL import Image

from imageguard.backends.sips import CommandRunner, SipsBackend
from imageguard.exceptions import ExternalToolError


def render_image(width: int, height: int, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Encode a solid-color image of the given size."""
    color: tuple[int, ...] | int
    if mode == "RGBA":
        color = (200, 40, 40, 128)
    elif mode == "L":
        color = 128
    else:
        color = (200, 40, 40)
    buf = io.BytesIO()
    Image.new(mode, (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        return img.size


class FakeSipsRunner(CommandRunner):
    """Stand-in for `/usr/bin/sips` that implements its flags with Pillow.

    Records every call along with the temp directory it touched so tests can
    check cleanup.
    """

    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.calls: list[tuple[list[str], float, int]] = []
        self.temp_dirs: list[Path] = []

    def run(self, argv: Sequence[str], *, timeout_s: float, max_output_bytes: int) -> str:
        argv = list(argv)
        self.calls.append((argv, timeout_s, max_output_bytes))
        if self.fail_with is not None:
            raise self.fail_with

        if "-g" in argv:
            src = Path(argv[-1])
            self.temp_dirs.append(src.parent)
            try:
                with Image.open(src) as img:
                    width, height = img.size
            except OSError as exc:
                msg = "sips exited with status 1"
                raise ExternalToolError(msg, returncode=1) from exc
            return f"{src}\n  pixelWidth: {width}\n  pixelHeight: {height}\n"

        side = int(argv[argv.index("-Z") + 1])
        quality = int(argv[argv.index("formatOptions") + 1])
        src = Path(argv[argv.index("--out") - 1])
        out = Path(argv[-1])
        self.temp_dirs.append(src.parent)
        try:
            with Image.open(src) as img:
                scale = side / max(img.size)
                size = (max(1, round(img.width * scale)), max(1, round(img.height * scale)))
                img.convert("RGB").resize(size).save(out, format="JPEG", quality=quality)
        except OSError as exc:
            msg = "sips exited with status 1"
            raise ExternalToolError(msg, returncode=1) from exc
        return f"{src}\n  {out}\n"

    async def arun(self, argv: Sequence[str], *, timeout_s: float, max_output_bytes: int) -> str:
        return self.run(argv, timeout_s=timeout_s, max_output_bytes=max_output_bytes)


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory producing encoded test images: ``make_image(w, h, fmt="PNG", mode="RGB")``."""
    return render_image


@pytest.fixture
def measure() -> Callable[[bytes], tuple[int, int]]:
    """Return a function reading ``(width, height)`` from encoded bytes."""
    return image_size


@pytest.fixture
def fake_sips_runner() -> FakeSipsRunner:
    return FakeSipsRunner()


@pytest.fixture
def sips_backend(fake_sips_runner: FakeSipsRunner) -> SipsBackend:
    return SipsBackend(runner=fake_sips_runner)
