"""
Local Image Store

File-based image store for development and self-hosting without a CDN.

Cache structure:
cache_dir/
├── images/
│   └── mainnet/metadata/asset1....bin
└── metadata.json

Every size variant is served from the stored original; resizing is
left to a CDN in front of this service.
"""

import asyncio
import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import asdict, dataclass
from io import BytesIO
from pathlib import Path
from typing import AsyncIterator, Dict, Mapping, Optional

from PIL import Image, UnidentifiedImageError

from asset_metadata.models import CacheKey
from image_proxy.errors import ServeFailure, UploadFailure

from .base import ImageStore, ServedImage

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class StoredImage:
    """Metadata for a stored image."""
    image_id: str
    content_type: str
    size_bytes: int
    etag: str
    created_at: float


def sniff_content_type(data: bytes) -> Optional[str]:
    """
    Detect the MIME type of image bytes.

    SVG is checked by signature, bitmap formats with Pillow.
    Returns None when the bytes are not an image.
    """
    header = data[:500].lstrip()
    if header.startswith(b"<svg") or (header.startswith(b"<?xml") and b"<svg" in data[:2048]):
        return "image/svg+xml"

    try:
        with Image.open(BytesIO(data)) as img:
            image_format = img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    if not image_format:
        return None
    return Image.MIME.get(image_format, f"image/{image_format.lower()}")


class LocalImageStore(ImageStore):
    """
    Stores images on disk with a JSON metadata index.

    Uploads are written to a temp file and moved into place, so readers
    never see partial files and the last write wins.
    """

    def __init__(self, cache_dir: str = "./image_cache"):
        self.cache_dir = Path(cache_dir)
        self.images_dir = self.cache_dir / "images"
        self.metadata_file = self.cache_dir / "metadata.json"

        self._metadata: Dict[str, StoredImage] = {}
        self._lock = asyncio.Lock()

        self._init_cache_dir()
        self._load_metadata()

    def _init_cache_dir(self) -> None:
        self.images_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[LocalStore] Cache directory: {self.cache_dir}")

    def _load_metadata(self) -> None:
        """Load metadata from disk."""
        if not self.metadata_file.exists():
            self._metadata = {}
            return
        try:
            with open(self.metadata_file, "r") as f:
                data = json.load(f)
            self._metadata = {k: StoredImage(**v) for k, v in data.items()}
            logger.info(f"[LocalStore] Loaded {len(self._metadata)} stored images")
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"[LocalStore] Failed to load metadata: {e}")
            self._metadata = {}

    def _save_metadata(self) -> None:
        data = {k: asdict(v) for k, v in self._metadata.items()}
        self._atomic_write(self.metadata_file, json.dumps(data, indent=2).encode())

    def _image_path(self, image_id: str) -> Path:
        return self.images_dir / f"{image_id}.bin"

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def exists(self, key: CacheKey) -> bool:
        async with self._lock:
            entry = self._metadata.get(key.image_id)
            return entry is not None and self._image_path(key.image_id).exists()

    async def upload(self, data: bytes, key: CacheKey) -> None:
        content_type = sniff_content_type(data)
        if content_type is None:
            raise UploadFailure(f"Not an image: {key.image_id} ({len(data)} bytes)")

        async with self._lock:
            try:
                self._atomic_write(self._image_path(key.image_id), data)
                self._metadata[key.image_id] = StoredImage(
                    image_id=key.image_id,
                    content_type=content_type,
                    size_bytes=len(data),
                    etag=f'"{hashlib.sha256(data).hexdigest()[:32]}"',
                    created_at=time.time(),
                )
                self._save_metadata()
            except OSError as e:
                raise UploadFailure(f"Failed to store {key.image_id}: {e}") from e

        logger.info(f"[LocalStore] Stored {key.image_id} ({len(data)} bytes, {content_type})")

    async def serve(
        self,
        key: CacheKey,
        size: str,
        request_headers: Optional[Mapping[str, str]] = None,
    ) -> ServedImage:
        async with self._lock:
            entry = self._metadata.get(key.image_id)
        path = self._image_path(key.image_id)
        if entry is None or not path.exists():
            raise ServeFailure(f"Image not stored: {key.image_id}")

        headers = {"ETag": entry.etag, "Content-Type": entry.content_type}

        if_none_match = {k.lower(): v for k, v in (request_headers or {}).items()}.get("if-none-match")
        if if_none_match and entry.etag in [tag.strip() for tag in if_none_match.split(",")]:
            return ServedImage(status_code=304, headers=headers)

        return ServedImage(status_code=200, headers=headers, body=self._read_chunks(path))

    @staticmethod
    async def _read_chunks(path: Path) -> AsyncIterator[bytes]:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
