"""External-tool image backend that shells out to macOS `sips`.

Used where Pillow cannot be loaded. Every call writes the input to a private
temporary directory, runs `sips` with a bounded timeout and output cap, and
removes the directory again on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from imageguard.backends.protocol import (
    BackendKind,
    ImageBackend,
    ImageMetadata,
    OutputFormat,
    metadata_or_none,
)
from imageguard.config import ImageConfig
from imageguard.exceptions import (
    ExternalToolError,
    ExternalToolOutputError,
    ExternalToolTimeoutError,
    ImageBackendError,
)

logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX = "imageguard-img-"
_PIXEL_WIDTH_RE = re.compile(r"pixelWidth:\s*([0-9]+)")
_PIXEL_HEIGHT_RE = re.compile(r"pixelHeight:\s*([0-9]+)")


@contextmanager
def scoped_temp_dir(prefix: str = TEMP_DIR_PREFIX) -> Iterator[Path]:
    """Yield a fresh temporary directory that is removed when the block exits."""
    with tempfile.TemporaryDirectory(prefix=prefix, ignore_cleanup_errors=True) as tmp:
        yield Path(tmp)


class CommandRunner:
    """Run a command with a timeout and a cap on captured stdout."""

    def run(self, argv: Sequence[str], *, timeout_s: float, max_output_bytes: int) -> str:
        """Run `argv` and return its stdout.

        Raises:
            ExternalToolTimeoutError: The command did not finish in `timeout_s`.
            ExternalToolOutputError: stdout exceeded `max_output_bytes`.
            ExternalToolError: The command could not start or exited non-zero.
        """
        try:
            proc = subprocess.run(  # noqa: S603
                list(argv),
                capture_output=True,
                timeout=timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            msg = f"{argv[0]} timed out after {timeout_s:g}s"
            raise ExternalToolTimeoutError(msg) from exc
        except OSError as exc:
            msg = f"{argv[0]} could not be started: {exc}"
            raise ExternalToolError(msg) from exc
        return _checked_output(argv, proc.returncode, proc.stdout, proc.stderr, max_output_bytes)

    async def arun(self, argv: Sequence[str], *, timeout_s: float, max_output_bytes: int) -> str:
        """Async version of `run`. The process is killed when the timeout expires."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            msg = f"{argv[0]} could not be started: {exc}"
            raise ExternalToolError(msg) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            msg = f"{argv[0]} timed out after {timeout_s:g}s"
            raise ExternalToolTimeoutError(msg) from exc
        return _checked_output(argv, proc.returncode, stdout, stderr, max_output_bytes)


def _checked_output(
    argv: Sequence[str],
    returncode: int | None,
    stdout: bytes,
    stderr: bytes,
    max_output_bytes: int,
) -> str:
    stderr_text = stderr.decode("utf-8", errors="replace").strip()
    if len(stdout) > max_output_bytes:
        msg = f"{argv[0]} produced more than {max_output_bytes} bytes of output"
        raise ExternalToolOutputError(msg, returncode=returncode, stderr=stderr_text)
    if returncode != 0:
        detail = f": {stderr_text}" if stderr_text else ""
        msg = f"{argv[0]} exited with status {returncode}{detail}"
        raise ExternalToolError(msg, returncode=returncode, stderr=stderr_text)
    return stdout.decode("utf-8", errors="replace")


def parse_sips_dimensions(output: str) -> ImageMetadata | None:
    """Parse `sips -g pixelWidth -g pixelHeight` output.

    Example:
        ```python
        parse_sips_dimensions("/tmp/in.img\\n  pixelWidth: 640\\n  pixelHeight: 480\\n")
        # ImageMetadata(width=640, height=480)
        ```
    """
    width = _PIXEL_WIDTH_RE.search(output)
    height = _PIXEL_HEIGHT_RE.search(output)
    if width is None or height is None:
        return None
    return metadata_or_none(int(width.group(1)), int(height.group(1)))


class SipsBackend(ImageBackend):
    """Measure and downscale images with `/usr/bin/sips`.

    `sips` has no "don't enlarge" flag, so `resize` probes first and clamps the
    target to the current longest side. Output is always JPEG regardless of
    the requested format.

    Args:
        config: Supplies the binary path, timeouts and output caps.
        runner: Command runner. Tests pass a fake here.
    """

    kind = BackendKind.EXTERNAL_TOOL

    def __init__(self, config: ImageConfig | None = None, *, runner: CommandRunner | None = None) -> None:
        self._config = config or ImageConfig()
        self._runner = runner or CommandRunner()

    def _probe_argv(self, input_path: Path) -> list[str]:
        return [self._config.sips_path, "-g", "pixelWidth", "-g", "pixelHeight", str(input_path)]

    def _resize_argv(self, input_path: Path, output_path: Path, max_side: int, quality: int) -> list[str]:
        return [
            self._config.sips_path,
            "-Z",
            str(max(1, round(max_side))),
            "-s",
            "format",
            "jpeg",
            "-s",
            "formatOptions",
            str(max(1, min(100, round(quality)))),
            str(input_path),
            "--out",
            str(output_path),
        ]

    def _target_side(self, meta: ImageMetadata | None, max_side: int, without_enlargement: bool) -> int:
        if without_enlargement and meta is not None and meta.max_side <= max_side:
            return meta.max_side
        return max_side

    def probe(self, buffer: bytes) -> ImageMetadata | None:
        try:
            with scoped_temp_dir() as tmp:
                input_path = tmp / "in.img"
                input_path.write_bytes(buffer)
                output = self._runner.run(
                    self._probe_argv(input_path),
                    timeout_s=self._config.metadata_timeout_s,
                    max_output_bytes=self._config.metadata_max_output_bytes,
                )
        except (ImageBackendError, OSError) as exc:
            logger.debug("sips could not read image header: %s", exc)
            return None
        return parse_sips_dimensions(output)

    async def aprobe(self, buffer: bytes) -> ImageMetadata | None:
        try:
            with scoped_temp_dir() as tmp:
                input_path = tmp / "in.img"
                await asyncio.to_thread(input_path.write_bytes, buffer)
                output = await self._runner.arun(
                    self._probe_argv(input_path),
                    timeout_s=self._config.metadata_timeout_s,
                    max_output_bytes=self._config.metadata_max_output_bytes,
                )
        except (ImageBackendError, OSError) as exc:
            logger.debug("sips could not read image header: %s", exc)
            return None
        return parse_sips_dimensions(output)

    def resize(
        self,
        buffer: bytes,
        *,
        max_side: int,
        quality: int,
        output_format: OutputFormat = "jpeg",
        without_enlargement: bool = True,
    ) -> bytes:
        meta = self.probe(buffer) if without_enlargement else None
        target = self._target_side(meta, max_side, without_enlargement)
        with scoped_temp_dir() as tmp:
            input_path = tmp / "in.img"
            output_path = tmp / "out.jpg"
            input_path.write_bytes(buffer)
            self._runner.run(
                self._resize_argv(input_path, output_path, target, quality),
                timeout_s=self._config.resize_timeout_s,
                max_output_bytes=self._config.resize_max_output_bytes,
            )
            return _read_output(output_path)

    async def aresize(
        self,
        buffer: bytes,
        *,
        max_side: int,
        quality: int,
        output_format: OutputFormat = "jpeg",
        without_enlargement: bool = True,
    ) -> bytes:
        meta = await self.aprobe(buffer) if without_enlargement else None
        target = self._target_side(meta, max_side, without_enlargement)
        with scoped_temp_dir() as tmp:
            input_path = tmp / "in.img"
            output_path = tmp / "out.jpg"
            await asyncio.to_thread(input_path.write_bytes, buffer)
            await self._runner.arun(
                self._resize_argv(input_path, output_path, target, quality),
                timeout_s=self._config.resize_timeout_s,
                max_output_bytes=self._config.resize_max_output_bytes,
            )
            return await asyncio.to_thread(_read_output, output_path)


def _read_output(output_path: Path) -> bytes:
    try:
        return output_path.read_bytes()
    except FileNotFoundError as exc:
        msg = "sips did not write an output image"
        raise ExternalToolError(msg) from exc
