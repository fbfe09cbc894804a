"""
StudioGen Backend - File Service Unit Tests
=============================================

What:  Image payload validation and on-disk storage.
How:   Real images are produced with Pillow; storage goes to tmp_path.

Test Strategy:
    ✅ base64 and data: URL decoding, strict base64
    ✅ content sniffing (detected MIME wins over the declared one)
    ✅ size limit
    ✅ YYYY/MM/DD storage layout, traversal rejection, cleanup
"""

import base64
import io
from pathlib import Path

import pytest
from PIL import Image

from studiogen.exceptions import NotFoundError, ValidationError
from studiogen.services.file_service import FileService, is_data_url, split_data_url


def _jpeg_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(10, 120, 10)).save(buffer, format="JPEG")
    return buffer.getvalue()


def _gif_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("P", (4, 4)).save(buffer, format="GIF")
    return buffer.getvalue()


class TestDataUrls:
    def test_split_data_url(self):
        mime, body = split_data_url("data:image/png;base64,QUJD")
        assert mime == "image/png"
        assert body == "QUJD"

    def test_plain_base64_passes_through(self):
        assert split_data_url("QUJD") == (None, "QUJD")

    def test_non_base64_data_url_rejected(self):
        with pytest.raises(ValidationError, match="base64"):
            split_data_url("data:image/svg+xml,<svg></svg>")

    def test_is_data_url(self):
        assert is_data_url("data:image/png;base64,QUJD")
        assert not is_data_url("https://cdn.example.com/a.png")


class TestDecodeImage:
    def setup_method(self):
        self.service = FileService()

    def test_decodes_raw_base64_png(self, png_bytes, png_base64):
        image = self.service.decode_image(png_base64, "image/png")
        assert image.data == png_bytes
        assert image.mime_type == "image/png"
        assert image.extension == ".png"

    def test_decodes_data_url(self, png_data_url):
        image = self.service.decode_image(png_data_url)
        assert image.mime_type == "image/png"
        assert image.declared_mime_type == "image/png"

    def test_detected_format_wins_over_declared(self):
        payload = base64.b64encode(_jpeg_bytes()).decode()
        image = self.service.decode_image(payload, "image/png")
        assert image.mime_type == "image/jpeg"
        assert image.extension == ".jpg"
        assert image.declared_mime_type == "image/png"

    def test_invalid_base64_rejected(self):
        with pytest.raises(ValidationError, match="Invalid base64 image data"):
            self.service.decode_image("not*base64!!", "image/png")

    def test_empty_payload_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.decode_image("data:image/png;base64,", "image/png")

    def test_non_image_rejected(self):
        payload = base64.b64encode(b"just some text, not pixels").decode()
        with pytest.raises(ValidationError, match="not a valid image"):
            self.service.decode_image(payload, "image/png")

    def test_unsupported_format_rejected(self):
        payload = base64.b64encode(_gif_bytes()).decode()
        with pytest.raises(ValidationError, match="not supported") as exc_info:
            self.service.decode_image(payload, "image/gif")
        assert exc_info.value.context["detected_format"] == "GIF"

    def test_oversized_image_rejected(self, temp_storage, png_base64):
        service = FileService(storage_root=temp_storage, max_size=16)
        with pytest.raises(ValidationError, match="exceeds maximum"):
            service.decode_image(png_base64, "image/png")


class TestStorage:
    @pytest.mark.asyncio
    async def test_store_image_uses_date_layout(self, temp_storage, png_data_url):
        service = FileService(storage_root=temp_storage)
        relative_path, public_url = await service.save_data_url(png_data_url)

        parts = relative_path.split("/")
        assert len(parts) == 4
        assert len(parts[0]) == 4 and len(parts[1]) == 2 and len(parts[2]) == 2
        assert parts[3].endswith(".png")
        assert public_url == f"/api/files/{relative_path}"
        assert (Path(temp_storage) / relative_path).is_file()

    @pytest.mark.asyncio
    async def test_resolve_path_rejects_traversal(self, temp_storage):
        service = FileService(storage_root=temp_storage)
        with pytest.raises(NotFoundError):
            service.resolve_path("../../etc/passwd")

    def test_resolve_path_missing_file(self, temp_storage):
        service = FileService(storage_root=temp_storage)
        with pytest.raises(NotFoundError):
            service.resolve_path("2025/01/01/missing.png")

    @pytest.mark.asyncio
    async def test_cleanup_removes_file(self, temp_storage, png_data_url):
        service = FileService(storage_root=temp_storage)
        relative_path, _ = await service.save_data_url(png_data_url)

        await service.cleanup_file(relative_path)

        assert not (Path(temp_storage) / relative_path).exists()

    @pytest.mark.asyncio
    async def test_cleanup_of_missing_file_is_silent(self, temp_storage):
        service = FileService(storage_root=temp_storage)
        await service.cleanup_file("2025/01/01/never-existed.png")
