"""Unit tests for read-result MIME normalization."""

import base64
import logging

import pytest
from langchain_core.messages import ToolMessage
from langgraph.types import Command

from imageguard.exceptions import ImageReadError
from imageguard.read_result import normalize_read_image_result, rewrite_read_image_header


def read_message(data: bytes, mime_type: str, *, header: str | None = None) -> ToolMessage:
    header = header if header is not None else f"Read image file [{mime_type}]"
    return ToolMessage(
        content=[
            {"type": "text", "text": header},
            {"type": "image", "base64": base64.b64encode(data).decode("ascii"), "mime_type": mime_type},
        ],
        tool_call_id="read-1",
        name="read_file",
    )


class TestRewriteHeader:
    def test_rewrites_header(self) -> None:
        assert rewrite_read_image_header("Read image file [image/jpeg]", "image/png") == "Read image file [image/png]"

    def test_other_text_is_unchanged(self) -> None:
        assert rewrite_read_image_header("Some notes [image/jpeg]", "image/png") == "Some notes [image/jpeg]"
        assert rewrite_read_image_header("Read image file [image/jpeg] extra", "image/png") == (
            "Read image file [image/jpeg] extra"
        )


def test_png_labeled_as_jpeg_is_relabeled(make_image, caplog) -> None:
    message = read_message(make_image(16, 16, "PNG"), "image/jpeg")

    with caplog.at_level(logging.INFO, logger="imageguard.read_result"):
        result = normalize_read_image_result(message, "/tmp/photo.jpg")

    assert result is not message
    assert result.content[0] == {"type": "text", "text": "Read image file [image/png]"}
    assert result.content[1]["mime_type"] == "image/png"
    assert result.content[1]["base64"] == message.content[1]["base64"]
    assert message.content[1]["mime_type"] == "image/jpeg"
    assert "/tmp/photo.jpg" in caplog.text


def test_every_image_block_is_relabeled(make_image) -> None:
    payload = base64.b64encode(make_image(8, 8, "GIF")).decode("ascii")
    message = ToolMessage(
        content=[
            {"type": "image", "base64": payload, "mime_type": "image/png"},
            {"type": "text", "text": "caption"},
            {"type": "image", "base64": payload, "mime_type": "image/png"},
        ],
        tool_call_id="read-2",
    )

    result = normalize_read_image_result(message, "/tmp/anim.png")

    assert [block.get("mime_type") for block in result.content] == ["image/gif", None, "image/gif"]
    assert result.content[1]["text"] == "caption"


def test_matching_label_returns_same_object(make_image) -> None:
    message = read_message(make_image(8, 8, "PNG"), "image/png")
    assert normalize_read_image_result(message, "/tmp/a.png") is message


def test_unknown_signature_returns_same_object() -> None:
    message = read_message(bytes(range(1, 64)), "image/png")
    assert normalize_read_image_result(message, "/tmp/odd.png") is message


def test_result_without_images_returns_same_object() -> None:
    message = ToolMessage(content="     1\thello", tool_call_id="read-3")
    assert normalize_read_image_result(message, "/tmp/a.txt") is message


@pytest.mark.parametrize("payload", ["", "  \n"])
def test_empty_payload_raises(payload: str) -> None:
    message = ToolMessage(
        content=[{"type": "image", "base64": payload, "mime_type": "image/png"}],
        tool_call_id="read-4",
    )
    with pytest.raises(ImageReadError, match=r"read: image payload is empty \(/tmp/empty.png\)") as exc_info:
        normalize_read_image_result(message, "/tmp/empty.png")
    assert exc_info.value.file_path == "/tmp/empty.png"


def test_text_file_with_image_label_raises() -> None:
    message = read_message(b"these are notes, not pixels\n", "image/png")
    with pytest.raises(ImageReadError) as exc_info:
        normalize_read_image_result(message, "/tmp/notes.png")
    assert str(exc_info.value) == "read: file looks like text/plain but was treated as image/png (/tmp/notes.png)"


def test_pdf_with_image_label_raises() -> None:
    message = read_message(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n", "image/jpeg")
    with pytest.raises(ImageReadError, match="looks like application/pdf"):
        normalize_read_image_result(message, "/tmp/doc.jpg")


def test_read_error_is_a_value_error() -> None:
    message = read_message(b"", "image/png")
    with pytest.raises(ValueError, match="empty"):
        normalize_read_image_result(message, "/tmp/x.png")


def test_command_result(make_image) -> None:
    message = read_message(make_image(8, 8, "JPEG"), "image/png")
    command = Command(update={"messages": [message]})

    result = normalize_read_image_result(command, "/tmp/pic.png")

    assert result.update["messages"][0].content[1]["mime_type"] == "image/jpeg"
    assert result.update["messages"][0].content[0]["text"] == "Read image file [image/jpeg]"


def test_compact_shape_mapping(make_image) -> None:
    result = {
        "content": [
            {
                "type": "image",
                "data": base64.b64encode(make_image(8, 8, "WEBP")).decode("ascii"),
                "mimeType": "image/png",
            }
        ]
    }
    out = normalize_read_image_result(result, "/tmp/a.png")
    assert out["content"][0]["mimeType"] == "image/webp"
