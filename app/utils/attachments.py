from typing import Optional
from urllib.parse import urlparse

from app.models.chat import MessageType


# Extensions rendered inline by the chat clients
IMAGE_EXTENSIONS = {
    "jpg", "jpeg",
    "png",
    "gif",
    "webp",
}

AUDIO_EXTENSIONS = {
    "mp3",
    "wav",
    "m4a", "aac",  # Voice notes recorded on mobile
    "ogg",
}


def attachment_extension(url: str) -> str:
    """Lower-cased extension of the URL path, ignoring query and fragment."""
    path = urlparse(url).path
    filename = path.rsplit("/", 1)[-1]
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def classify_attachment(url: Optional[str]) -> MessageType:
    if not url:
        return MessageType.TEXT

    ext = attachment_extension(url)
    if ext in IMAGE_EXTENSIONS:
        return MessageType.IMAGE
    if ext in AUDIO_EXTENSIONS:
        return MessageType.AUDIO
    return MessageType.FILE
