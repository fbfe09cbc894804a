"""
StudioGen Backend - Image Payload and File Storage Service
============================================================

What:  Decodes base64 / data-URL image payloads, validates them, stores them
       on disk and serves them back.
How:   Strips the data: prefix, decodes strictly, enforces MAX_IMAGE_SIZE and
       identifies the real format with Pillow. Files land in date-organized
       directories with UUID names.
Who:   ProjectService (images saved into projects), GenerationService (input
       images forwarded to the model) and the /api/files route.

Security Model:
    1. Size check:      estimated from the base64 length before decoding, then exact
    2. Content sniffing: Pillow parses the header; the declared MIME type is
                         only a hint, the detected format wins
    3. UUID filename:   no user input reaches the file system path
    4. Path resolution: served paths must resolve inside STORAGE_ROOT

Directory Structure:
    storage/
    └── 2025/
        └── 01/
            └── 15/
                ├── a1b2c3d4-....png
                └── e5f6g7h8-....webp
"""

import base64
import binascii
import io
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import aiofiles.os
from PIL import Image, UnidentifiedImageError

from studiogen.config import settings
from studiogen.exceptions import FileStorageError, NotFoundError, ValidationError
from studiogen.utils import utc_now

logger = logging.getLogger(__name__)

FILES_URL_PREFIX = "/api/files/"

# Pillow format name → (MIME type, extension)
SUPPORTED_FORMATS = {
    "PNG": ("image/png", ".png"),
    "JPEG": ("image/jpeg", ".jpg"),
    "WEBP": ("image/webp", ".webp"),
}

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]*)*?);base64,", re.I)


@dataclass(frozen=True)
class DecodedImage:
    data: bytes
    mime_type: str
    extension: str
    declared_mime_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


def split_data_url(payload: str) -> Tuple[Optional[str], str]:
    """
    Separate a `data:<mime>;base64,` prefix from the base64 body.

    Returns (declared_mime or None, base64_body). Plain base64 passes through.
    """
    payload = payload.strip()
    match = DATA_URL_PATTERN.match(payload)
    if match:
        return match.group("mime"), payload[match.end():]
    if payload.startswith("data:"):
        raise ValidationError("Image data URL must be base64 encoded", field="image")
    return None, payload


def is_data_url(value: str) -> bool:
    return value.lstrip().startswith("data:")


class FileService:
    """Validates image payloads and manages their lifecycle on disk."""

    def __init__(self, storage_root: Optional[str] = None, max_size: Optional[int] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
            max_size: Override MAX_IMAGE_SIZE in bytes.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.max_size = max_size or settings.max_image_size
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────
    def _size_error(self, size: int) -> ValidationError:
        max_mb = self.max_size / (1024 * 1024)
        return ValidationError(
            message=f"Image size exceeds maximum of {max_mb:.0f}MB. Please use a smaller image.",
            field="image",
            context={"max_size_mb": round(max_mb, 1), "actual_size": size},
        )

    def decode_base64(self, payload: str) -> Tuple[Optional[str], bytes]:
        """Decode a data URL or raw base64 string into bytes."""
        declared_mime, body = split_data_url(payload)
        body = "".join(body.split())
        if not body:
            raise ValidationError("Image data is empty", field="image")

        # Reject before allocating the decoded buffer
        estimated = len(body) * 3 // 4
        if estimated > self.max_size + 3:
            raise self._size_error(estimated)

        try:
            data = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Invalid base64 image data", field="image")

        if len(data) > self.max_size:
            raise self._size_error(len(data))
        return declared_mime, data

    def detect_format(self, data: bytes) -> Tuple[str, str]:
        """
        Identify the real image format from its content.

        Returns (mime_type, extension). Raises ValidationError for anything
        that is not a readable PNG, JPEG or WEBP image.
        """
        try:
            with Image.open(io.BytesIO(data)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            logger.info("Rejected image payload: %s", e)
            raise ValidationError(
                message="Image data is not a valid image (PNG, JPEG or WEBP).",
                field="image",
            )

        if image_format not in SUPPORTED_FORMATS:
            raise ValidationError(
                message=f"Image format '{image_format}' is not supported. Use PNG, JPEG or WEBP.",
                field="image",
                context={"detected_format": image_format},
            )
        return SUPPORTED_FORMATS[image_format]

    def decode_image(self, payload: str, declared_mime: Optional[str] = None) -> DecodedImage:
        """
        Full validation pipeline for an incoming image payload.

        Validation order (cheapest first):
            1. data: prefix split and size estimate
            2. strict base64 decode and exact size
            3. content sniffing with Pillow
        """
        prefix_mime, data = self.decode_base64(payload)
        mime_type, extension = self.detect_format(data)
        declared = declared_mime or prefix_mime
        if declared and declared.lower() != mime_type:
            logger.debug("Declared MIME %s differs from detected %s", declared, mime_type)
        return DecodedImage(
            data=data,
            mime_type=mime_type,
            extension=extension,
            declared_mime_type=declared,
        )

    # ── Storage ───────────────────────────────────────────────────────────
    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """YYYY/MM/DD/<uuid><ext>; returns (absolute_path, relative_path)."""
        date_dir = utc_now().strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_image(self, image: DecodedImage) -> str:
        """
        Write validated image bytes to disk.

        Returns:
            Path relative to the storage root (stored in the database).

        Raises:
            FileStorageError if directory creation or the write fails.
        """
        absolute_path, relative_path = self._generate_storage_path(image.extension)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(image.data)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, e)
            raise FileStorageError(
                message="Failed to save image. Please try again.",
                context={"path": relative_path, "os_error": str(e)},
            )

        logger.info("File stored: %s (%d bytes)", relative_path, image.size)
        return relative_path

    async def save_data_url(self, data_url: str) -> Tuple[str, str]:
        """Decode, validate and store a data URL. Returns (relative_path, public_url)."""
        image = self.decode_image(data_url)
        relative_path = await self.store_image(image)
        return relative_path, self.public_url(relative_path)

    def public_url(self, relative_path: str) -> str:
        return f"{FILES_URL_PREFIX}{relative_path}"

    def resolve_path(self, relative_path: str) -> Path:
        """
        Map a stored relative path to an absolute one inside the storage root.

        Raises:
            NotFoundError for paths escaping the root or missing files.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root) or candidate == self.storage_root:
            logger.warning("Rejected file path outside storage root: %s", relative_path)
            raise NotFoundError("file", relative_path)
        if not candidate.is_file():
            raise NotFoundError("file", relative_path)
        return candidate

    async def cleanup_file(self, relative_path: str) -> None:
        """
        Best-effort removal of a stored file.

        Runs as a background task after the response is sent, so failures
        are logged, never raised.
        """
        try:
            path = self.resolve_path(relative_path)
        except NotFoundError:
            logger.debug("Cleanup: file already gone: %s", relative_path)
            return

        try:
            await aiofiles.os.remove(path)
            logger.info("Cleaned up file: %s", relative_path)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", relative_path, e)


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
