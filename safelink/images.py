"""
images.py

Inline image attachments for comments, carried as base64 data URLs.
"""

import base64
import binascii
import logging
import re
from typing import Iterable, List

logger = logging.getLogger("images")

ALLOWED_MIME_TYPES = ("image/png", "image/jpeg")
MAX_IMAGE_BYTES = 6 * 1024 * 1024
MAX_IMAGES_PER_COMMENT = 3

DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$', re.DOTALL)


class AttachmentError(ValueError):
    pass


def encode_image(data: bytes, mime: str) -> str:
    """Encode raw image bytes as a data URL after checking type and size."""
    if mime not in ALLOWED_MIME_TYPES:
        raise AttachmentError("Only JPG and PNG images are allowed")
    if len(data) > MAX_IMAGE_BYTES:
        raise AttachmentError("Image size must be less than 6MB")
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def validate_image(data_url: str) -> str:
    """Check a data URL is a PNG/JPEG within the size limit; returns it unchanged."""
    m = DATA_URL_RE.match(data_url or "")
    if not m:
        raise AttachmentError("Attachment is not a base64 data URL")
    if m.group("mime") not in ALLOWED_MIME_TYPES:
        raise AttachmentError("Only JPG and PNG images are allowed")
    try:
        raw = base64.b64decode(m.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise AttachmentError("Attachment is not valid base64")
    if len(raw) > MAX_IMAGE_BYTES:
        raise AttachmentError("Image size must be less than 6MB")
    return data_url


def prepare_attachments(images: Iterable[str]) -> List[str]:
    """Validate attachments and keep at most the first three."""
    images = list(images or [])
    if len(images) > MAX_IMAGES_PER_COMMENT:
        logger.info("Dropping %d attachments over the limit of %d",
                    len(images) - MAX_IMAGES_PER_COMMENT, MAX_IMAGES_PER_COMMENT)
        images = images[:MAX_IMAGES_PER_COMMENT]
    return [validate_image(img) for img in images]
