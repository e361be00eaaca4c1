"""Integration tests for image upload endpoints."""

import fakeredis.aioredis
import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.dependencies import get_media_storage
from app.services.media_storage import StoredMedia
from tests.support import create_user, make_auth_headers

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class InMemoryStorage:
    def __init__(self) -> None:
        self.uploads: list[tuple[str, str, int]] = []

    async def upload(self, data: bytes, filename: str, folder: str) -> StoredMedia:
        self.uploads.append((filename, folder, len(data)))
        return StoredMedia(
            url=f"https://media.test/{folder}/{filename}",
            width=640,
            height=480,
            size=len(data),
            format="png",
            public_id=f"{folder}/{filename}",
        )


@pytest.fixture
def storage(async_client: AsyncClient) -> InMemoryStorage:
    from app.main import app

    fake = InMemoryStorage()
    app.dependency_overrides[get_media_storage] = lambda: fake
    return fake


class TestMessageImage:
    async def test_upload_returns_image_details(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        storage: InMemoryStorage,
    ) -> None:
        me = await create_user("jordan")

        resp = await async_client.post(
            "/api/v1/messages/upload",
            files={"image": ("cat.png", PNG, "image/png")},
            headers=make_auth_headers(fake_redis, me.id),
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Image uploaded successfully"
        assert body["data"] == {
            "url": "https://media.test/messages/cat.png",
            "width": 640,
            "height": 480,
            "size": len(PNG),
            "format": "png",
        }
        assert storage.uploads == [("cat.png", "messages", len(PNG))]

    async def test_disallowed_extension(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        storage: InMemoryStorage,
    ) -> None:
        me = await create_user("jordan")

        resp = await async_client.post(
            "/api/v1/messages/upload",
            files={"image": ("notes.pdf", b"%PDF-1.7", "application/pdf")},
            headers=make_auth_headers(fake_redis, me.id),
        )

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        assert storage.uploads == []

    async def test_oversized_image(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        storage: InMemoryStorage,
    ) -> None:
        me = await create_user("jordan")
        too_big = b"\x00" * (settings.file_upload.max_file_size_bytes + 1)

        resp = await async_client.post(
            "/api/v1/messages/upload",
            files={"image": ("huge.png", too_big, "image/png")},
            headers=make_auth_headers(fake_redis, me.id),
        )

        assert resp.status_code == 400
        assert "MB" in resp.json()["error"]["message"]
        assert storage.uploads == []

    async def test_missing_file(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        storage: InMemoryStorage,
    ) -> None:
        me = await create_user("jordan")
        resp = await async_client.post(
            "/api/v1/messages/upload", headers=make_auth_headers(fake_redis, me.id)
        )
        assert resp.status_code == 422

    async def test_requires_auth(self, async_client: AsyncClient) -> None:
        resp = await async_client.post(
            "/api/v1/messages/upload",
            files={"image": ("cat.png", PNG, "image/png")},
        )
        assert resp.status_code == 401

    async def test_unconfigured_host(
        self, async_client: AsyncClient, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        me = await create_user("jordan")

        resp = await async_client.post(
            "/api/v1/messages/upload",
            files={"image": ("cat.png", PNG, "image/png")},
            headers=make_auth_headers(fake_redis, me.id),
        )

        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "UPLOAD_FAILED"


class TestProfilePicture:
    async def test_upload_updates_profile(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        storage: InMemoryStorage,
    ) -> None:
        me = await create_user("jordan")
        headers = make_auth_headers(fake_redis, me.id)

        resp = await async_client.post(
            "/api/v1/users/profile/picture",
            files={"image": ("me.jpg", PNG, "image/jpeg")},
            headers=headers,
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["image_url"] == "https://media.test/profiles/me.jpg"
        assert data["user"]["profile_picture"] == data["image_url"]
        assert storage.uploads == [("me.jpg", "profiles", len(PNG))]

        profile = await async_client.get(f"/api/v1/users/{me.id}", headers=headers)
        assert profile.json()["data"]["profile_picture"] == data["image_url"]

    async def test_non_image_rejected(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        storage: InMemoryStorage,
    ) -> None:
        me = await create_user("jordan")

        resp = await async_client.post(
            "/api/v1/users/profile/picture",
            files={"image": ("me.png", b"#!/bin/sh", "text/x-shellscript")},
            headers=make_auth_headers(fake_redis, me.id),
        )

        assert resp.status_code == 400
        assert storage.uploads == []
