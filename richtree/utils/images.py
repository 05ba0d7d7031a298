import base64
import mimetypes
from pathlib import Path
from typing import Optional, Union


def guess_image_mime(path: Union[str, Path]) -> Optional[str]:
    """The image MIME type for `path`, or None if it is not an image."""
    mime, _ = mimetypes.guess_type(str(path))
    if mime and mime.startswith("image/"):
        return mime
    return None


def encode_data_uri(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
