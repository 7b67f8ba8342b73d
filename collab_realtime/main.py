"""FastAPI application entry point for the realtime collaboration service."""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import dispose_engine
from .services.auth_service import decode_access_token
from .services.redis_service import redis_service
from .websocket import TransportMessageType, WebSocketConnection, event_router, manager

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

# Close code sent when the handshake token is missing or invalid
WS_AUTH_FAILED = 4001

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    await manager.registry.start()

    if settings.redis_url:
        logger.info("Connecting to Redis...")
        try:
            await redis_service.connect()
            await manager.initialize_redis()
            await redis_service.start_listening()
            logger.info("Redis pub/sub fan-out enabled")
        except Exception as e:
            if settings.redis_required:
                logger.error(f"Redis connection failed and REDIS_REQUIRED=true: {e}")
                raise RuntimeError(
                    f"Redis is required for multi-worker deployment but connection failed: {e}"
                )
            await redis_service.disconnect()
            logger.warning(f"Redis connection failed, running in single-worker mode: {e}")
    else:
        logger.info("REDIS_URL not set, running in single-worker mode")

    yield

    # Shutdown
    await redis_service.disconnect()
    await manager.registry.clear()
    await dispose_engine()
    logger.info("Realtime service stopped")


app = FastAPI(
    title="Research Collaboration Realtime API",
    description="Realtime messaging, document co-editing and presence",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "status": "healthy",
        "service": "Research Collaboration Realtime API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and keep-alive pings."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "redis": await redis_service.health_check(),
        "websocket": {
            "connections": manager.total_connections,
            "rooms": manager.total_rooms,
        },
    }


def _extract_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    """Token from the query string, falling back to an Authorization header."""
    if token:
        return token
    auth_header = websocket.headers.get("authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def _receive_frame(websocket: WebSocket) -> Optional[str]:
    """Receive one frame as text; None for undecodable binary frames."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    if message.get("text") is not None:
        return message["text"]
    if message.get("bytes") is not None:
        try:
            return message["bytes"].decode("utf-8")
        except UnicodeDecodeError:
            return None
    return None


async def _server_ping(connection: WebSocketConnection) -> None:
    """Send periodic liveness probes until the socket dies."""
    ping = {"type": TransportMessageType.PING.value, "data": {}}
    try:
        while True:
            await asyncio.sleep(settings.ws_ping_interval)
            if not await manager.send_personal(connection, ping):
                break
    except asyncio.CancelledError:
        pass


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = None):
    """
    WebSocket endpoint for realtime collaboration.

    Authentication runs once, before the socket is accepted. Browser
    clients pass the token as a query parameter since they cannot set
    headers on the handshake.

    Usage:
        ws://localhost:8000/ws?token=<jwt_token>
    """
    raw_token = _extract_token(websocket, token)
    if not raw_token:
        logger.debug("WebSocket connection attempt without token")
        await websocket.close(code=WS_AUTH_FAILED, reason="Authentication error")
        return

    identity = decode_access_token(raw_token)
    if identity is None:
        logger.debug("WebSocket connection with invalid token")
        await websocket.close(code=WS_AUTH_FAILED, reason="Authentication error")
        return

    connection = await event_router.on_connect(websocket, identity)
    ping_task = asyncio.create_task(_server_ping(connection))

    try:
        while True:
            try:
                raw_message = await asyncio.wait_for(
                    _receive_frame(websocket),
                    timeout=settings.receive_timeout,
                )
            except asyncio.TimeoutError:
                logger.info(f"Liveness timeout for user: {identity.user_id}")
                try:
                    await websocket.close(code=1001, reason="Ping timeout")
                except Exception as e:
                    logger.debug(f"Close after timeout failed: {e}")
                break

            if raw_message is None:
                logger.warning(f"Undecodable binary frame from user {identity.user_id}")
                continue

            frame_size = len(raw_message.encode("utf-8"))
            if frame_size > settings.ws_max_message_size:
                logger.warning(
                    f"Message too large from user {identity.user_id}: "
                    f"{frame_size} bytes (max: {settings.ws_max_message_size})"
                )
                continue

            try:
                data = json.loads(raw_message)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON from user {identity.user_id}")
                continue

            if not isinstance(data, dict):
                logger.warning(f"Non-object frame from user {identity.user_id}")
                continue

            frame_type = data.get("type")
            if frame_type == TransportMessageType.PING.value:
                await manager.send_personal(
                    connection, {"type": TransportMessageType.PONG.value, "data": {}}
                )
                continue
            if frame_type == TransportMessageType.PONG.value:
                continue

            await event_router.route(connection, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnect for user: {identity.user_id}")
    except Exception as e:
        logger.error(f"WebSocket exception for user {identity.user_id}: {e}")
    finally:
        ping_task.cancel()
        try:
            await ping_task
        except asyncio.CancelledError:
            pass
        await event_router.on_disconnect(connection)
