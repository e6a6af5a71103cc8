"""
RentHive - Room Image Tests
"""

import io

import pytest
from httpx import AsyncClient
from PIL import Image

from renthive.core.errors import PayloadTooLarge, ValidationFailed
from renthive.services import image_service


def _png(width: int = 64, height: int = 64) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


# =============================================================================
# Processing
# =============================================================================

class TestProcessing:
    def test_validate_media(self):
        image_service.validate_media("photo.JPG", "image/jpeg", 10)
        image_service.validate_media("clip.mp4", "video/mp4", 10)
        with pytest.raises(ValidationFailed):
            image_service.validate_media("notes.pdf", "application/pdf", 10)
        with pytest.raises(ValidationFailed):
            image_service.validate_media("photo.png", "text/plain", 10)

    def test_validate_media_size(self, monkeypatch, settings):
        monkeypatch.setattr(settings, "max_image_upload_size_mb", 1)
        with pytest.raises(PayloadTooLarge):
            image_service.validate_media("photo.png", "image/png", 2 * 1024 * 1024)

    def test_small_images_untouched(self):
        data = _png()
        assert image_service.compress_if_needed(data, "photo.png", max_size=len(data)) is data

    def test_large_images_become_webp(self):
        data = _png(256, 256)
        compressed = image_service.compress_if_needed(data, "photo.png", max_size=100)
        assert compressed is not data
        with Image.open(io.BytesIO(compressed)) as img:
            assert img.format == "WEBP"

    def test_videos_never_recompressed(self):
        data = b"\x00" * 500
        assert image_service.compress_if_needed(data, "clip.mov", max_size=100) is data

    def test_undecodable_image_kept(self):
        data = b"not really a png" * 20
        assert image_service.compress_if_needed(data, "photo.png", max_size=10) is data

    def test_compression_quality_steps(self):
        assert image_service.compression_quality(500, 100) == 30
        assert image_service.compression_quality(300, 100) == 50
        assert image_service.compression_quality(150, 100) == 70

    def test_room_display_name(self):
        assert image_service.room_display_name("unspecified") == "General"
        assert image_service.room_display_name("living-room") == "Living Room"


# =============================================================================
# API
# =============================================================================

@pytest.mark.anyio
async def test_upload_and_list_by_room(client: AsyncClient, prop, owner, local_storage):
    response = await client.post(
        "/api/upload/image",
        params={"propertyId": prop["id"], "roomName": "Living Room!"},
        files={"image": ("Sofa Stain.png", _png(), "image/png")},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["roomName"] == "living-room"
    assert data["path"].startswith(f"{owner.id}/{prop['id']}/images/living-room/sofa-stain-")
    assert data["path"].endswith(".png")
    assert "signature=" in data["url"]
    assert await local_storage.exists(data["path"])

    await client.post(
        "/api/upload/image",
        params={"propertyId": prop["id"]},
        files={"image": ("hall.png", _png(), "image/png")},
    )

    response = await client.get(f"/api/upload/property/{prop['id']}/images")
    rooms = {room["name"]: room for room in response.json()["data"]["rooms"]}
    assert set(rooms) == {"living-room", "unspecified"}
    assert rooms["unspecified"]["display_name"] == "General"
    assert len(rooms["living-room"]["images"]) == 1


@pytest.mark.anyio
async def test_signed_url_serves_the_file(client: AsyncClient, prop):
    content = _png()
    data = (await client.post(
        "/api/upload/image",
        params={"propertyId": prop["id"]},
        files={"image": ("hall.png", content, "image/png")},
    )).json()["data"]

    response = await client.get(data["url"])
    assert response.status_code == 200
    assert response.content == content
    assert response.headers["content-type"] == "image/png"


@pytest.mark.anyio
async def test_upload_multiple(client: AsyncClient, prop):
    files = [("images", (f"room-{i}.png", _png(), "image/png")) for i in range(3)]
    response = await client.post("/api/upload/images", params={"propertyId": prop["id"]}, files=files)
    assert response.status_code == 201
    assert len(response.json()["data"]) == 3
    assert response.json()["message"] == "3 files uploaded successfully"


@pytest.mark.anyio
async def test_upload_validation(client: AsyncClient, prop, stranger, login):
    response = await client.post(
        "/api/upload/image",
        params={"propertyId": prop["id"]},
        files={"image": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Only image and video files are allowed!"

    response = await client.post(
        "/api/upload/image",
        files={"image": ("hall.png", _png(), "image/png")},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "propertyId query parameter is required"

    login(stranger)
    response = await client.post(
        "/api/upload/image",
        params={"propertyId": prop["id"]},
        files={"image": ("hall.png", _png(), "image/png")},
    )
    assert response.status_code == 404


@pytest.mark.anyio
async def test_delete_own_image(client: AsyncClient, prop, local_storage):
    data = (await client.post(
        "/api/upload/image",
        params={"propertyId": prop["id"]},
        files={"image": ("hall.png", _png(), "image/png")},
    )).json()["data"]

    response = await client.request(
        "DELETE", "/api/upload/image",
        params={"propertyId": prop["id"]},
        json={"imagePath": data["path"]},
    )
    assert response.status_code == 200
    assert not await local_storage.exists(data["path"])

    listed = await client.get(f"/api/upload/property/{prop['id']}/images")
    assert listed.json()["data"]["rooms"] == []


@pytest.mark.anyio
async def test_cannot_delete_someone_elses_image(client: AsyncClient, shared_prop, tenant, login):
    data = (await client.post(
        "/api/upload/image",
        params={"propertyId": shared_prop["id"]},
        files={"image": ("hall.png", _png(), "image/png")},
    )).json()["data"]

    login(tenant)
    response = await client.request(
        "DELETE", "/api/upload/image",
        params={"propertyId": shared_prop["id"]},
        json={"imagePath": data["path"]},
    )
    assert response.status_code == 403


@pytest.mark.anyio
async def test_image_url_helper(client: AsyncClient, owner):
    response = await client.get("/api/test-image-url")
    assert response.status_code == 400
    assert response.json()["error"] == "Image path is required"

    response = await client.get("/api/test-image-url", params={"path": "a/b.png"})
    assert response.json()["data"] == {"path": "a/b.png", "url": "http://test/api/files/a/b.png"}
