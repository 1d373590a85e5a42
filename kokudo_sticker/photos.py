import base64
from typing import Optional

from .config import settings
from .errors import PhotoRejected


def encode_photo(data: bytes, content_type: Optional[str], max_size: Optional[int] = None) -> str:
    """Encode an uploaded image as a self-contained data URI.

    Non-image content types and files above ``max_size`` bytes are refused
    before any encoding happens.
    """
    media_type = (content_type or "").split(";")[0].strip().lower()
    if not media_type.startswith("image/"):
        raise PhotoRejected("Only image files can be attached", reason="type")
    limit = settings.max_photo_size if max_size is None else max_size
    if len(data) > limit:
        raise PhotoRejected(f"Image must be {limit // (1024 * 1024)}MB or smaller", reason="size")
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"
