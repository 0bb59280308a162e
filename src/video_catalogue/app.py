"""FastAPI application for Video Catalogue.

Thin HTTP boundary over ``CatalogueManager``: request parsing, the MIME
allow-list, CORS and the mapping of domain errors to status codes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from video_catalogue import __version__
from video_catalogue.config import Settings, get_settings
from video_catalogue.db import StoreContext, build_context, init_db
from video_catalogue.errors import (
    DuplicateContentError,
    EmptyPayloadError,
    NotFoundError,
    StoreFailure,
)
from video_catalogue.services.catalogue import CatalogueManager

logger = logging.getLogger(__name__)


def build_manager(context: StoreContext, settings: Settings) -> CatalogueManager:
    return CatalogueManager(
        context.catalogue_store,
        context.blob_store,
        context.hasher,
        orphan_policy=settings.orphan_policy,
        store_timeout=settings.store_timeout_seconds,
    )


def get_manager(request: Request) -> CatalogueManager:
    """Dependency for the per-process catalogue manager."""
    return request.app.state.manager


Manager = Annotated[CatalogueManager, Depends(get_manager)]


def _content_disposition(filename: str) -> str:
    try:
        filename.encode("latin-1")
    except UnicodeEncodeError:
        return f"attachment; filename*=UTF-8''{quote(filename)}"
    return f'attachment; filename="{filename}"'


def _media_type(content_type: str | None) -> str:
    """Strip parameters such as ``codecs`` from a Content-Type value."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def create_app(
    settings: Settings | None = None,
    context: StoreContext | None = None,
) -> FastAPI:
    """Create the application.

    When ``context`` is given it is used as-is (tests, in-memory serving);
    otherwise SQL stores are built and initialized at startup and disposed
    at shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        if context is not None:
            yield
            return

        owned = build_context(settings)
        if owned.engine is not None:
            await init_db(owned.engine)
        app.state.manager = build_manager(owned, settings)
        logger.info("Catalogue stores ready")
        try:
            yield
        finally:
            await owned.close()

    app = FastAPI(
        title="Video Catalogue",
        description="Content-addressed video file catalogue",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if context is not None:
        app.state.manager = build_manager(context, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"message": "File not found!!", "error": str(exc)},
        )

    @app.exception_handler(DuplicateContentError)
    async def duplicate_handler(request: Request, exc: DuplicateContentError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"message": str(exc), "fileid": exc.existing_id},
        )

    @app.exception_handler(EmptyPayloadError)
    async def empty_payload_handler(request: Request, exc: EmptyPayloadError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Parsing form-data failed", "error": "empty file"},
        )

    @app.exception_handler(StoreFailure)
    async def store_failure_handler(request: Request, exc: StoreFailure) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal storage failure", "error": str(exc)},
        )

    @app.get("/v1/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    @app.post("/v1/files", status_code=status.HTTP_201_CREATED)
    async def upload_file(
        manager: Manager,
        data: Annotated[UploadFile | None, File()] = None,
    ) -> JSONResponse:
        """Upload a single video file from the multipart field ``data``."""
        if data is None:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"message": "Parsing form-data failed", "error": "missing 'data' part"},
            )
        media_type = _media_type(data.content_type)
        if media_type not in settings.supported_media_types:
            return JSONResponse(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                content={"message": "media type not supported"},
            )

        payload = await data.read()
        file_id = await manager.upload_video(payload, data.filename or "upload", media_type)
        location = f"{settings.public_base_url or ''}/v1/files/locate/{file_id}"
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"fileid": file_id},
            headers={"Location": location},
        )

    @app.get("/v1/files")
    async def list_files(manager: Manager) -> list[dict[str, Any]]:
        """List projections of every stored video."""
        return [
            {"fileid": p.id, "name": p.name, "size": p.size, "created_at": p.created_at}
            for p in await manager.list_video_files()
        ]

    @app.get("/v1/files/locate/{fileid}")
    async def locate_file(fileid: str, manager: Manager) -> dict[str, Any]:
        """Return the metadata record of one video."""
        record = await manager.get_metadata_by_id(fileid)
        return {"fileData": record.model_dump(mode="json")}

    @app.get("/v1/files/{fileid}")
    async def get_file(fileid: str, manager: Manager) -> Response:
        """Download one video as an attachment."""
        video = await manager.get_file_by_id(fileid)
        return Response(
            content=video.data,
            media_type=video.mime_type,
            headers={"Content-Disposition": _content_disposition(video.name)},
        )

    @app.delete("/v1/files/{fileid}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_file(fileid: str, manager: Manager) -> Response:
        """Delete one video's record and payload."""
        await manager.delete_video_file(fileid)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app
