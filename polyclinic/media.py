import base64
import io
from typing import Dict

from PIL import Image, UnidentifiedImageError

from polyclinic.config import JPEG_QUALITY, MAX_IMAGE_SIDE, logger
from polyclinic.models import Attachment


def compress_image(data: bytes, max_side: int = MAX_IMAGE_SIDE, quality: int = JPEG_QUALITY) -> bytes:
    """
    Downscale an image so its longer side is at most max_side and re-encode it as JPEG.

    Args:
        data: Raw image bytes in any format Pillow can open
        max_side: Longest side of the output in pixels
        quality: JPEG quality (1-95)

    Returns:
        JPEG bytes
    """
    with Image.open(io.BytesIO(data)) as img:
        img = img.convert("RGB")
        img.thumbnail((max_side, max_side))
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def prepare_attachment(attachment: Attachment) -> Attachment:
    """Compress images before upload; other media and unreadable images pass through."""
    if attachment.kind != "image":
        return attachment
    try:
        compressed = compress_image(attachment.data)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Image compression failed, sending original file: {e}")
        return attachment
    return Attachment(data=compressed, mime_type="image/jpeg", caption=attachment.caption)


def block_type(mime_type: str) -> str:
    """Standard LangChain data block type for a media type: image, audio or file."""
    kind = mime_type.split("/", 1)[0].lower()
    return kind if kind in ("image", "audio") else "file"


def to_media_part(attachment: Attachment) -> Dict[str, str]:
    """
    Standard LangChain base64 data block for an attachment.

    Both ChatGoogleGenerativeAI and ChatOllama convert these blocks; Ollama only
    reads the image ones.
    """
    return {
        "type": block_type(attachment.mime_type),
        "source_type": "base64",
        "mime_type": attachment.mime_type,
        "data": base64.b64encode(attachment.data).decode("ascii"),
    }
