from typing import Optional

from .models import MediaType

def classify_media_type(content_type: Optional[str]) -> MediaType:
    """Map an upload's MIME type to the media type stored on the message."""
    major = (content_type or "").split("/", 1)[0].strip().lower()
    if major == "image":
        return MediaType.IMAGE
    if major == "video":
        return MediaType.VIDEO
    return MediaType.DOCUMENT
