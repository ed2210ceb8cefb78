"""FastAPI application exposing ingest, query and live-view endpoints.

Routes:
    POST /api/logs             - ingest one log chunk (CS2 log-address format)
    GET  /api/logs/{log_id}    - full reassembled log as text
    GET  /api/listlogs         - session listing, most recent activity first
    GET  /api/admin/logs       - same listing, for the admin UI
    GET  /api/health           - liveness and viewer count
    WS   /ws                   - live view (subscribe to log_chunk / new_log)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from ..config import RelayConfig
from ..exceptions import LogNotFoundError, StorageIOError, ValidationError
from ..live import BroadcastHub, LiveViewServer
from ..local import LogStore
from ..reassembly import ReassemblyEngine
from .headers import parse_chunk_headers

logger = logging.getLogger(__name__)


def create_app(config: RelayConfig | None = None) -> FastAPI:
    """Create the relay application and the components it owns.

    The store, hub, engine and live view server are attached to
    ``app.state`` so tests and the CLI can reach them.
    """
    config = config or RelayConfig()
    store = LogStore(config.data_dir)
    hub = BroadcastHub(queue_size=config.viewer_queue_size)
    engine = ReassemblyEngine(store, hub, config.correlation_window_seconds)
    live = LiveViewServer(hub)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Prepare storage on startup, drop viewers on shutdown."""
        await store.initialize()
        logger.info(f"Log relay storing under {store.base_dir}")
        yield
        await hub.close()

    app = FastAPI(
        title="CS2 Log Storage",
        description="Reassembles streamed CS2 server logs and relays them to live viewers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.hub = hub
    app.state.engine = engine
    app.state.live = live

    _add_exception_handlers(app)
    _add_routes(app, store, engine, live)

    if config.static_dir and Path(config.static_dir).is_dir():
        app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="web")

    return app


def _add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=400, content={"error": exc.message, "details": exc.details})

    @app.exception_handler(LogNotFoundError)
    async def not_found(request: Request, exc: LogNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": exc.message, "details": exc.details})

    @app.exception_handler(StorageIOError)
    async def storage_error(request: Request, exc: StorageIOError) -> JSONResponse:
        logger.error(f"Storage failure on {request.url.path}: {exc.message}", exc_info=exc)
        return JSONResponse(
            status_code=503, content={"error": exc.message, "details": exc.details}
        )


def _add_routes(
    app: FastAPI, store: LogStore, engine: ReassemblyEngine, live: LiveViewServer
) -> None:
    @app.post("/api/logs")
    async def ingest_chunk(request: Request) -> dict:
        """Accept one chunk pushed by a game server."""
        chunk = parse_chunk_headers(request.headers)
        body = await request.body()
        if len(body) != chunk.declared_length:
            raise ValidationError(
                "Content-Length",
                f"body has {len(body)} bytes but offsets declare {chunk.declared_length}",
                str(len(body)),
            )

        is_new = await engine.submit_chunk(
            token=chunk.token,
            data=body,
            begin_offset=chunk.begin_offset,
            end_offset=chunk.end_offset,
            timestamp=chunk.timestamp,
            game_map=chunk.game_map,
            server_addr=chunk.server_addr,
            steam_id=chunk.steam_id,
            game_state=chunk.game_state,
        )
        return {"status": "ok", "new_log": is_new}

    @app.get("/api/logs/{log_id}")
    async def get_log(log_id: str) -> Response:
        content = await store.read_full_log(log_id)
        return Response(content=content, media_type="text/plain")

    @app.get("/api/listlogs")
    @app.get("/api/admin/logs")
    async def list_logs() -> list[dict]:
        return [summary.to_dict() for summary in await engine.list_logs()]

    @app.get("/api/health")
    async def health() -> dict:
        return {"status": "ok", "viewers": live.hub.connection_count}

    @app.websocket("/ws")
    async def live_view(websocket: WebSocket) -> None:
        await websocket.accept()

        async def receive() -> str | None:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return None
            if message.get("text") is not None:
                return message["text"]
            return (message.get("bytes") or b"").decode("utf-8", errors="replace")

        await live.handle_connection(receive, websocket.send_text)
