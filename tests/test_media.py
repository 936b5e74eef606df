import base64
import io

import pytest
from PIL import Image

from polyclinic.media import block_type, compress_image, prepare_attachment, to_media_part
from polyclinic.models import Attachment


def test_large_image_is_downscaled_to_jpeg(png_bytes):
    data = compress_image(png_bytes)
    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "JPEG"
        assert img.size == (1024, 512)


def test_small_image_keeps_its_size():
    buffer = io.BytesIO()
    Image.new("RGBA", (300, 200)).save(buffer, format="PNG")
    with Image.open(io.BytesIO(compress_image(buffer.getvalue()))) as img:
        assert img.size == (300, 200)


def test_non_image_passes_through():
    attachment = Attachment(b"%PDF-1.4", "application/pdf", caption="lab report")
    assert prepare_attachment(attachment) is attachment


def test_unreadable_image_is_sent_as_is():
    attachment = Attachment(b"not really a png", "image/png")
    assert prepare_attachment(attachment) is attachment


def test_prepared_image_keeps_caption(png_bytes):
    prepared = prepare_attachment(Attachment(png_bytes, "image/png", caption="left eye"))
    assert prepared.mime_type == "image/jpeg"
    assert prepared.caption == "left eye"


def test_media_part_is_base64():
    part = to_media_part(Attachment(b"abc", "audio/webm"))
    assert part == {"type": "audio", "source_type": "base64", "mime_type": "audio/webm",
                    "data": base64.b64encode(b"abc").decode()}


@pytest.mark.parametrize("mime_type, block", [
    ("image/jpeg", "image"),
    ("audio/mp3", "audio"),
    ("video/mp4", "file"),
    ("application/pdf", "file"),
])
def test_block_type(mime_type, block):
    assert block_type(mime_type) == block
