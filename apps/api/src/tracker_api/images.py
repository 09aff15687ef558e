from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
import logging
from pathlib import Path
import re
from typing import Protocol

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)
_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class ImageDecodeError(ValueError):
    pass


@dataclass(frozen=True)
class DecodedImage:
    data: bytes
    extension: str


class ImageStore(Protocol):
    def upload(self, filename: str, data: bytes) -> str: ...

    def url_for(self, filename: str) -> str: ...

    def delete(self, filename: str) -> None: ...


class LocalImageStore:
    def __init__(self, *, root_dir: Path, base_url: str) -> None:
        self._root_dir = root_dir
        self._base_url = base_url.rstrip("/")

    def upload(self, filename: str, data: bytes) -> str:
        self._root_dir.mkdir(parents=True, exist_ok=True)
        (self._root_dir / filename).write_bytes(data)
        logger.info("stored image filename=%s bytes=%d", filename, len(data))
        return self.url_for(filename)

    def url_for(self, filename: str) -> str:
        return f"{self._base_url}/{filename}"

    def delete(self, filename: str) -> None:
        path = self._root_dir / filename
        if path.exists():
            path.unlink()


def decode_image(value: str) -> DecodedImage:
    """Accepts a bare base64 string or a ``data:<mime>;base64,`` URL."""
    extension = ".png"
    match = _DATA_URL.match(value.strip())
    if match is not None:
        mime = match.group("mime").lower()
        if mime not in _EXTENSIONS:
            raise ImageDecodeError(f"unsupported image type: {mime}")
        extension = _EXTENSIONS[mime]
        value = match.group("data")

    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError("image is not valid base64") from exc
    if not data:
        raise ImageDecodeError("image is empty")
    return DecodedImage(data=data, extension=extension)
