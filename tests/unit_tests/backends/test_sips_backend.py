"""Unit tests for the sips external-tool backend."""

import sys

import pytest

from imageguard.backends.protocol import ImageMetadata
from imageguard.backends.sips import CommandRunner, SipsBackend, parse_sips_dimensions, scoped_temp_dir
from imageguard.config import ImageConfig
from imageguard.exceptions import (
    ExternalToolError,
    ExternalToolOutputError,
    ExternalToolTimeoutError,
)
from imageguard.mime import sniff_mime


class TestParseSipsDimensions:
    def test_parses_typical_output(self) -> None:
        output = "/tmp/imageguard-img-x/in.img\n  pixelWidth: 3024\n  pixelHeight: 4032\n"
        assert parse_sips_dimensions(output) == ImageMetadata(width=3024, height=4032)

    def test_missing_fields(self) -> None:
        assert parse_sips_dimensions("/tmp/in.img\n  pixelWidth: 10\n") is None
        assert parse_sips_dimensions("") is None

    def test_zero_dimension_is_rejected(self) -> None:
        assert parse_sips_dimensions("pixelWidth: 0\npixelHeight: 10") is None


def test_scoped_temp_dir_is_removed_after_error() -> None:
    with pytest.raises(RuntimeError), scoped_temp_dir() as tmp:
        (tmp / "in.img").write_bytes(b"data")
        seen = tmp
        raise RuntimeError("boom")
    assert not seen.exists()


def test_probe_invokes_sips_with_limits(sips_backend, fake_sips_runner, make_image) -> None:
    assert sips_backend.probe(make_image(640, 480)) == ImageMetadata(width=640, height=480)

    argv, timeout_s, max_output = fake_sips_runner.calls[0]
    assert argv[:5] == ["/usr/bin/sips", "-g", "pixelWidth", "-g", "pixelHeight"]
    assert argv[-1].endswith("in.img")
    assert timeout_s == 10.0  # noqa: PLR2004
    assert max_output == 512 * 1024
    assert all(not path.exists() for path in fake_sips_runner.temp_dirs)


def test_probe_returns_none_when_sips_fails(sips_backend, fake_sips_runner, make_image) -> None:
    fake_sips_runner.fail_with = ExternalToolTimeoutError("sips timed out after 10s")
    assert sips_backend.probe(make_image(10, 10)) is None


def test_probe_returns_none_for_garbage(sips_backend, fake_sips_runner) -> None:
    assert sips_backend.probe(b"not an image") is None
    assert all(not path.exists() for path in fake_sips_runner.temp_dirs)


def test_resize_outputs_jpeg_within_bounds(sips_backend, fake_sips_runner, make_image, measure) -> None:
    out = sips_backend.resize(make_image(3000, 1500), max_side=2000, quality=85, output_format="png")

    assert sniff_mime(out) == "image/jpeg"
    assert measure(out) == (2000, 1000)
    argv, timeout_s, max_output = fake_sips_runner.calls[-1]
    assert argv[1:9] == ["-Z", "2000", "-s", "format", "jpeg", "-s", "formatOptions", "85"]
    assert argv[-2] == "--out"
    assert timeout_s == 20.0  # noqa: PLR2004
    assert max_output == 1024 * 1024
    assert all(not path.exists() for path in fake_sips_runner.temp_dirs)


def test_resize_does_not_enlarge_small_images(sips_backend, fake_sips_runner, make_image, measure) -> None:
    """sips has no enlargement guard, so the target is clamped to the current size."""
    out = sips_backend.resize(make_image(300, 200), max_side=2000, quality=85)

    resize_argv = fake_sips_runner.calls[-1][0]
    assert resize_argv[resize_argv.index("-Z") + 1] == "300"
    assert measure(out) == (300, 200)


def test_resize_enlarges_when_allowed(sips_backend, fake_sips_runner, make_image, measure) -> None:
    out = sips_backend.resize(make_image(300, 200), max_side=600, quality=85, without_enlargement=False)

    assert len(fake_sips_runner.calls) == 1
    assert measure(out) == (600, 400)


def test_resize_clamps_quality(sips_backend, fake_sips_runner, make_image) -> None:
    sips_backend.resize(make_image(50, 50), max_side=10, quality=500)
    argv = fake_sips_runner.calls[-1][0]
    assert argv[argv.index("formatOptions") + 1] == "100"


def test_resize_propagates_tool_errors(sips_backend, fake_sips_runner, make_image) -> None:
    fake_sips_runner.fail_with = ExternalToolError("sips exited with status 13", returncode=13)
    with pytest.raises(ExternalToolError, match="status 13"):
        sips_backend.resize(make_image(50, 50), max_side=10, quality=85)


def test_custom_binary_path(fake_sips_runner, make_image) -> None:
    backend = SipsBackend(ImageConfig(sips_path="/opt/sips"), runner=fake_sips_runner)
    backend.probe(make_image(5, 5))
    assert fake_sips_runner.calls[0][0][0] == "/opt/sips"


@pytest.mark.asyncio
async def test_async_resize(sips_backend, fake_sips_runner, make_image, measure) -> None:
    data = make_image(1200, 2400)
    assert await sips_backend.aprobe(data) == ImageMetadata(width=1200, height=2400)
    out = await sips_backend.aresize(data, max_side=600, quality=70)
    assert measure(out) == (300, 600)
    assert all(not path.exists() for path in fake_sips_runner.temp_dirs)


class TestCommandRunner:
    """Exercise the real subprocess runner with the Python interpreter as the tool."""

    def test_returns_stdout(self) -> None:
        out = CommandRunner().run([sys.executable, "-c", "print('pixelWidth: 4')"], timeout_s=10, max_output_bytes=1024)
        assert out.strip() == "pixelWidth: 4"

    def test_non_zero_exit(self) -> None:
        argv = [sys.executable, "-c", "import sys; sys.stderr.write('bad input'); sys.exit(3)"]
        with pytest.raises(ExternalToolError, match="status 3: bad input") as exc_info:
            CommandRunner().run(argv, timeout_s=10, max_output_bytes=1024)
        assert exc_info.value.returncode == 3  # noqa: PLR2004

    def test_timeout(self) -> None:
        argv = [sys.executable, "-c", "import time; time.sleep(5)"]
        with pytest.raises(ExternalToolTimeoutError, match="timed out"):
            CommandRunner().run(argv, timeout_s=0.2, max_output_bytes=1024)

    def test_output_cap(self) -> None:
        argv = [sys.executable, "-c", "print('x' * 5000)"]
        with pytest.raises(ExternalToolOutputError):
            CommandRunner().run(argv, timeout_s=10, max_output_bytes=1024)

    def test_missing_binary(self) -> None:
        with pytest.raises(ExternalToolError, match="could not be started"):
            CommandRunner().run(["/nonexistent/imageguard-sips"], timeout_s=1, max_output_bytes=1024)

    @pytest.mark.asyncio
    async def test_async_returns_stdout(self) -> None:
        out = await CommandRunner().arun([sys.executable, "-c", "print('ok')"], timeout_s=10, max_output_bytes=1024)
        assert out.strip() == "ok"

    @pytest.mark.asyncio
    async def test_async_timeout_kills_process(self) -> None:
        argv = [sys.executable, "-c", "import time; time.sleep(5)"]
        with pytest.raises(ExternalToolTimeoutError):
            await CommandRunner().arun(argv, timeout_s=0.2, max_output_bytes=1024)

    @pytest.mark.asyncio
    async def test_async_non_zero_exit(self) -> None:
        with pytest.raises(ExternalToolError, match="status 2"):
            await CommandRunner().arun([sys.executable, "-c", "raise SystemExit(2)"], timeout_s=10, max_output_bytes=1024)
