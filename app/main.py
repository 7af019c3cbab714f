"""Entry point for the FastAPI-powered media catalog API."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from .auth import current_user, resolve_user_id
from .config import settings
from .database import Database
from .db_models import MAX_SQL_INTEGER
from .errors import CatalogError, UnauthenticatedError
from .events import EventBus
from .models import MediaSummary, RematchResult
from .services.catalog_store import CatalogStore
from .services.media_service import MediaService
from .services.tmdb import TMDBClient

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

MEDIA_PREFIX = "/api/v1/media"

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    tmdb: TMDBClient | None = None
    if settings.tmdb_api_key:
        tmdb = TMDBClient(settings, tmdb_http_client)
    else:
        logger.info("TMDB_API_KEY not configured, external search disabled")

    events = EventBus()
    store = CatalogStore(
        database.session_factory, max_concurrency=settings.catalog_concurrency
    )
    fastapi_app.state.database = database
    fastapi_app.state.events = events
    fastapi_app.state.media_service = MediaService(settings, store, events, tmdb)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Media library catalog with per-user playback progress",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_media_service(app: FastAPI) -> MediaService:
    service = getattr(app.state, "media_service", None)
    if not isinstance(service, MediaService):
        raise RuntimeError("Media service not initialised")
    return service


def get_event_bus(app: FastAPI) -> EventBus:
    events = getattr(app.state, "events", None)
    if not isinstance(events, EventBus):
        raise RuntimeError("Event bus not initialised")
    return events


async def stop_forwarding(task: asyncio.Task[None], subscriber: str) -> None:
    """Cancel an event forwarding task and wait until it has finished."""

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        # The task may have died earlier, e.g. on a send to a closed socket.
        logger.info("Event forwarding to %s had stopped: %s", subscriber, exc)


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # Registered before the /{media_id} routes so the literal path wins.
    @fastapi_app.get(f"{MEDIA_PREFIX}/tmdb_search")
    async def tmdb_search(
        query: str,
        media_type: str,
        year: int | None = None,
        _user: str = Depends(current_user),
    ) -> list[dict[str, Any]]:
        service = get_media_service(fastapi_app)
        try:
            return await service.search_external(query, media_type=media_type, year=year)
        except CatalogError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc

    @fastapi_app.get(f"{MEDIA_PREFIX}/{{media_id}}")
    async def get_media(
        media_id: int, _user: str = Depends(current_user)
    ) -> MediaSummary:
        service = get_media_service(fastapi_app)
        try:
            return await service.get_summary(media_id)
        except CatalogError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
        except asyncio.TimeoutError as exc:
            raise HTTPException(
                status_code=504, detail="Catalog lookup timed out"
            ) from exc

    @fastapi_app.get(f"{MEDIA_PREFIX}/{{media_id}}/info")
    async def get_media_info(
        media_id: int, user_id: str = Depends(current_user)
    ) -> dict[str, Any]:
        service = get_media_service(fastapi_app)
        try:
            detail = await service.get_detail(media_id, user_id)
        except CatalogError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
        except asyncio.TimeoutError as exc:
            raise HTTPException(
                status_code=504, detail="Catalog lookup timed out"
            ) from exc
        return detail.model_dump(mode="json")

    @fastapi_app.patch(f"{MEDIA_PREFIX}/{{media_id}}")
    async def update_media(
        media_id: int, request: Request, _user: str = Depends(current_user)
    ) -> Response:
        service = get_media_service(fastapi_app)
        try:
            payload = await request.json()
        except ValueError:
            # Malformed JSON or a body that is not UTF-8.
            payload = None
        try:
            await service.update_media(media_id, payload)
        except (CatalogError, SQLAlchemyError) as exc:
            # Every failure is reported as 304; the cause only reaches the log.
            logger.info("Media %s not modified: %s", media_id, exc)
            return Response(status_code=304)
        return Response(status_code=204)

    @fastapi_app.delete(f"{MEDIA_PREFIX}/{{media_id}}")
    async def delete_media(
        media_id: int, _user: str = Depends(current_user)
    ) -> Response:
        service = get_media_service(fastapi_app)
        try:
            await service.delete_media(media_id)
        except CatalogError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
        return Response(status_code=200)

    @fastapi_app.patch(f"{MEDIA_PREFIX}/{{media_id}}/match")
    async def rematch_media(
        media_id: int, tmdb_id: int, _user: str = Depends(current_user)
    ) -> Response:
        service = get_media_service(fastapi_app)
        result = await service.rematch_media(media_id, tmdb_id)
        if result is RematchResult.UNAVAILABLE:
            raise HTTPException(
                status_code=503, detail="Rematching media is currently unavailable"
            )
        return Response(status_code=202)

    @fastapi_app.post(f"{MEDIA_PREFIX}/{{media_id}}/progress")
    async def map_progress(
        media_id: int,
        offset: int = Query(ge=0, le=MAX_SQL_INTEGER),
        user_id: str = Depends(current_user),
    ) -> Response:
        service = get_media_service(fastapi_app)
        try:
            await service.record_progress(media_id, user_id, offset)
        except CatalogError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
        return Response(status_code=200)

    @fastapi_app.websocket("/api/v1/events")
    async def event_stream(websocket: WebSocket, token: str | None = None) -> None:
        try:
            user_id = resolve_user_id(token or "")
        except UnauthenticatedError:
            await websocket.close(code=1008)
            return

        events = get_event_bus(fastapi_app)
        queue = events.subscribe()
        await websocket.accept()
        logger.info("Event subscriber connected: %s", user_id)

        async def _forward() -> None:
            while True:
                event = await queue.get()
                await websocket.send_json(event.model_dump(mode="json"))

        forwarder = asyncio.create_task(_forward())
        try:
            while True:
                # Incoming messages are ignored; reading notices disconnects.
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Event subscriber disconnected: %s", user_id)
        finally:
            await stop_forwarding(forwarder, user_id)
            events.unsubscribe(queue)


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
