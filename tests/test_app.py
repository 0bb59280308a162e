"""Tests for the FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import FaultyBlobStore
from video_catalogue import __version__
from video_catalogue.app import _content_disposition, create_app
from video_catalogue.config import Settings
from video_catalogue.db import StoreContext, build_memory_context

VIDEO = b"\x00\x00\x00\x18ftypmp42 fake video body"


@pytest.fixture
def settings() -> Settings:
    return Settings(public_base_url="http://videos.test", blob_chunk_size=8)


@pytest.fixture
def context(settings: Settings) -> StoreContext:
    return build_memory_context(settings)


@pytest.fixture
async def client(settings: Settings, context: StoreContext) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(settings, context)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def upload(
    client: AsyncClient,
    payload: bytes = VIDEO,
    name: str = "clip.mp4",
    content_type: str = "video/mp4",
):
    return await client.post("/v1/files", files={"data": (name, payload, content_type)})


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


async def test_upload_returns_created_with_location(client: AsyncClient) -> None:
    response = await upload(client)

    assert response.status_code == 201
    file_id = response.json()["fileid"]
    assert response.headers["location"] == f"http://videos.test/v1/files/locate/{file_id}"


async def test_duplicate_upload_conflicts(client: AsyncClient) -> None:
    first = (await upload(client)).json()["fileid"]

    response = await upload(client, name="again.mp4")

    assert response.status_code == 409
    assert response.json()["fileid"] == first
    assert first in response.json()["message"]
    assert len((await client.get("/v1/files")).json()) == 1


async def test_unsupported_media_type(client: AsyncClient) -> None:
    response = await upload(client, name="notes.txt", content_type="text/plain")

    assert response.status_code == 415
    assert (await client.get("/v1/files")).json() == []


async def test_missing_data_part(client: AsyncClient) -> None:
    response = await client.post("/v1/files", files={"other": ("clip.mp4", VIDEO, "video/mp4")})

    assert response.status_code == 400


async def test_empty_file_rejected(client: AsyncClient) -> None:
    response = await upload(client, payload=b"")

    assert response.status_code == 400
    assert response.json()["error"] == "empty file"
    assert (await client.get("/v1/files")).json() == []


async def test_media_type_parameters_are_ignored(client: AsyncClient) -> None:
    response = await upload(client, content_type='video/mp4; codecs="avc1.42E01E"')

    assert response.status_code == 201
    locate = await client.get(f"/v1/files/locate/{response.json()['fileid']}")
    assert locate.json()["fileData"]["mime_type"] == "video/mp4"


async def test_download_round_trip(client: AsyncClient) -> None:
    file_id = (await upload(client, content_type="video/mpeg", name="clip.mpeg")).json()["fileid"]

    response = await client.get(f"/v1/files/{file_id}")

    assert response.status_code == 200
    assert response.content == VIDEO
    assert response.headers["content-type"] == "video/mpeg"
    assert response.headers["content-disposition"] == 'attachment; filename="clip.mpeg"'


def test_content_disposition_non_latin_filename() -> None:
    assert _content_disposition("clip.mp4") == 'attachment; filename="clip.mp4"'
    assert _content_disposition("видео.mp4") == (
        "attachment; filename*=UTF-8''%D0%B2%D0%B8%D0%B4%D0%B5%D0%BE.mp4"
    )


async def test_locate_returns_metadata(client: AsyncClient) -> None:
    file_id = (await upload(client)).json()["fileid"]

    response = await client.get(f"/v1/files/locate/{file_id}")

    assert response.status_code == 200
    data = response.json()["fileData"]
    assert data["id"] == file_id
    assert data["name"] == "clip.mp4"
    assert data["size"] == len(VIDEO)
    assert data["mime_type"] == "video/mp4"
    assert len(data["content_hash"]) == 64


async def test_list_projections(client: AsyncClient) -> None:
    payloads = [VIDEO, VIDEO + b"-2", VIDEO + b"-three"]
    for i, payload in enumerate(payloads):
        assert (await upload(client, payload=payload, name=f"{i}.mp4")).status_code == 201

    listing = (await client.get("/v1/files")).json()

    assert len(listing) == 3
    assert sorted(item["size"] for item in listing) == sorted(len(p) for p in payloads)
    assert set(listing[0]) == {"fileid", "name", "size", "created_at"}


async def test_delete_then_not_found(client: AsyncClient) -> None:
    file_id = (await upload(client)).json()["fileid"]

    response = await client.delete(f"/v1/files/{file_id}")

    assert response.status_code == 204
    assert (await client.get(f"/v1/files/{file_id}")).status_code == 404
    assert (await client.get(f"/v1/files/locate/{file_id}")).status_code == 404
    assert (await client.delete(f"/v1/files/{file_id}")).status_code == 404


async def test_unknown_id_is_not_found(client: AsyncClient) -> None:
    response = await client.get("/v1/files/0123456789abcdef")

    assert response.status_code == 404
    assert response.json()["message"] == "File not found!!"


async def test_store_failure_is_internal_error(settings: Settings, context: StoreContext) -> None:
    context.blob_store = FaultyBlobStore(context.blob_store, fail_on={"upload"})
    app = create_app(settings, context)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await upload(client)
        listing = (await client.get("/v1/files")).json()
        orphan_response = await client.get(f"/v1/files/{listing[0]['fileid']}")

    assert response.status_code == 500
    assert orphan_response.status_code == 404


async def test_cors_headers(client: AsyncClient) -> None:
    response = await client.get("/v1/health", headers={"Origin": "http://example.com"})

    assert response.headers["access-control-allow-origin"] == "*"
