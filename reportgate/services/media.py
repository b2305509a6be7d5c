"""Media uploads: Cloudinary unsigned uploads, or a local directory for development."""
import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Protocol

import httpx
from PIL import Image, UnidentifiedImageError

from reportgate.config import settings
from reportgate.errors import MediaUploadError
from reportgate.utils.ids import generate_media_name

logger = logging.getLogger(__name__)

CLOUDINARY_HOST = "https://res.cloudinary.com"
UPLOAD_ROUTE = "/api/upload"


class MediaUploader(Protocol):
    def is_hosted(self, ref: str) -> bool: ...

    async def upload(self, data: str, folder: str) -> str: ...


def decode_data_url(data: str) -> tuple[bytes, str]:
    """Split a base64 data URL into (bytes, content_type)."""
    if not data.startswith("data:") or "," not in data:
        raise MediaUploadError("Not a data URL")
    header, payload = data[5:].split(",", 1)
    content_type = header.split(";")[0] or "application/octet-stream"
    if not header.endswith(";base64"):
        raise MediaUploadError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True), content_type
    except (binascii.Error, ValueError) as e:
        raise MediaUploadError(f"Invalid base64 payload: {e}") from e


def image_format(content: bytes) -> str:
    """Return the Pillow format name (PNG, JPEG...) or raise if the bytes are not an image."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
            fmt = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise MediaUploadError(f"Not a readable image: {e}") from e
    if not fmt:
        raise MediaUploadError("Image format could not be determined")
    return fmt


class CloudinaryUploader:
    """Unsigned uploads to Cloudinary. Returns the secure URL."""

    def __init__(
        self,
        cloud_name: str,
        upload_preset: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.upload_url = f"https://api.cloudinary.com/v1_1/{cloud_name}/auto/upload"
        self.upload_preset = upload_preset
        self._timeout = timeout
        self._transport = transport

    def is_hosted(self, ref: str) -> bool:
        return ref.startswith(CLOUDINARY_HOST)

    async def upload(self, data: str, folder: str) -> str:
        form = {
            "file": data,
            "upload_preset": self.upload_preset,
            "folder": folder,
            "tags": "reporte",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(self.upload_url, data=form)
        except httpx.HTTPError as e:
            raise MediaUploadError(f"Cloudinary upload failed: {e}") from e
        if not r.is_success:
            raise MediaUploadError(f"Cloudinary upload failed with status {r.status_code}: {r.text}")
        url = r.json().get("secure_url")
        if not url:
            raise MediaUploadError("Cloudinary response has no secure_url")
        return url


class LocalMediaStore:
    """Writes uploads under a directory; files are served by the files router."""

    def __init__(self, upload_dir: Path, base_url: str = "") -> None:
        self.upload_dir = upload_dir
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.strip().rstrip("/")

    def public_url(self, filename: str) -> str:
        return f"{self.base_url}{UPLOAD_ROUTE}/{filename}"

    def is_hosted(self, ref: str) -> bool:
        """True only for files this store served; foreign URLs are not accepted as uploads."""
        prefix = f"{UPLOAD_ROUTE}/"
        if ref.startswith(prefix):
            return True
        return bool(self.base_url) and ref.startswith(self.base_url + prefix)

    def save_bytes(self, content: bytes, folder: str = "") -> str:
        """Verify the bytes are an image and write them. Returns the file name."""
        fmt = image_format(content)
        extension = ".jpg" if fmt == "JPEG" else f".{fmt.lower()}"
        prefix = f"{folder}-" if folder else ""
        filename = prefix + generate_media_name(extension)
        (self.upload_dir / filename).write_bytes(content)
        return filename

    async def upload(self, data: str, folder: str) -> str:
        content, _ = decode_data_url(data)
        try:
            filename = self.save_bytes(content, folder)
        except OSError as e:
            raise MediaUploadError(f"Local media write failed: {e}") from e
        return self.public_url(filename)


_instance: "MediaUploader | None" = None
_local_store: "LocalMediaStore | None" = None


def get_local_store() -> LocalMediaStore:
    global _local_store
    if _local_store is None:
        _local_store = LocalMediaStore(Path(settings.upload_dir), settings.media_base_url)
    return _local_store


def get_uploader() -> MediaUploader:
    """Return the process-wide uploader, building it from settings on first use."""
    global _instance
    if _instance is None:
        if settings.cloudinary_cloud_name:
            _instance = CloudinaryUploader(
                settings.cloudinary_cloud_name,
                settings.cloudinary_upload_preset,
                timeout=settings.http_timeout_seconds,
            )
            logger.info("Cloudinary uploader initialized for %s", settings.cloudinary_cloud_name)
        else:
            logger.warning("CLOUDINARY_CLOUD_NAME not set: storing uploads in %s", settings.upload_dir)
            _instance = get_local_store()
    return _instance


def set_uploader(uploader: "MediaUploader | None") -> None:
    global _instance
    _instance = uploader
