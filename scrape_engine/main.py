"""FastAPI application entry point."""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .models import ScrapingEvent
from .routes import data, exports, sessions
from .services import ScrapeEngine
from .utils.logger import logger


# WebSocket connection manager
class ConnectionManager:
    """Manager for WebSocket connections."""

    def __init__(self):
        """Initialize connection manager."""
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, websocket: WebSocket, session_id: str):
        """Connect a WebSocket client.

        Args:
            websocket: WebSocket connection
            session_id: Session identifier
        """
        await websocket.accept()
        if session_id not in self.active_connections:
            self.active_connections[session_id] = set()
        self.active_connections[session_id].add(websocket)
        logger.info(f"WebSocket connected for session: {session_id}")

    def disconnect(self, websocket: WebSocket, session_id: str):
        """Disconnect a WebSocket client.

        Args:
            websocket: WebSocket connection
            session_id: Session identifier
        """
        if session_id in self.active_connections:
            self.active_connections[session_id].discard(websocket)
            if not self.active_connections[session_id]:
                del self.active_connections[session_id]
        logger.info(f"WebSocket disconnected for session: {session_id}")

    async def send_message(self, session_id: str, message: dict):
        """Send message to all clients connected to a session.

        Args:
            session_id: Session identifier
            message: Message to send
        """
        if session_id in self.active_connections:
            disconnected = set()
            for connection in list(self.active_connections[session_id]):
                try:
                    await connection.send_json(message)
                except Exception as e:
                    logger.error(f"Error sending message: {e}")
                    disconnected.add(connection)

            # Clean up disconnected clients
            for connection in disconnected:
                self.active_connections[session_id].discard(connection)

    def forward_event(self, event: ScrapingEvent) -> None:
        """Event bus subscriber: push the event to the session's sockets.

        Delivery is scheduled on the server loop so publishers never wait on
        network writes.
        """
        if self.loop is None or event.session_id not in self.active_connections:
            return
        message = {"type": "event", "event": event.model_dump(mode="json")}
        asyncio.run_coroutine_threadsafe(self.send_message(event.session_id, message), self.loop)


def create_app(engine: Optional[ScrapeEngine] = None) -> FastAPI:
    """Build the API around an engine instance.

    Args:
        engine: Engine to serve. A new one is constructed when omitted

    Returns:
        Configured FastAPI application
    """
    engine = engine if engine is not None else ScrapeEngine()
    manager = ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Scrape Engine API")
        logger.info(f"Export path: {settings.export_path}")
        logger.info(f"Debug mode: {settings.debug}")
        manager.loop = asyncio.get_running_loop()
        subscription_id = engine.subscribe(None, None, manager.forward_event)
        engine.start()
        yield
        logger.info("Shutting down Scrape Engine API")
        engine.unsubscribe(subscription_id)
        await engine.shutdown()
        manager.loop = None

    app = FastAPI(
        title="Scrape Engine API",
        description="Session tracking and data processing for scraped records",
        version=settings.engine_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.connections = manager

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(sessions.router)
    app.include_router(data.router)
    app.include_router(exports.router)

    # WebSocket endpoint
    @app.websocket("/ws/{session_id}")
    async def websocket_endpoint(websocket: WebSocket, session_id: str):
        """WebSocket endpoint for real-time session events.

        Args:
            websocket: WebSocket connection
            session_id: Session identifier
        """
        await manager.connect(websocket, session_id)

        try:
            # Send initial connection message
            await websocket.send_json(
                {
                    "type": "connected",
                    "session_id": session_id,
                    "message": "WebSocket connected",
                }
            )

            # Events are pushed by the manager; incoming text is ignored
            while True:
                try:
                    await websocket.receive_text()
                except WebSocketDisconnect:
                    break

        except Exception as e:
            logger.error(f"WebSocket connection error: {e}")
        finally:
            manager.disconnect(websocket, session_id)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint.

        Returns:
            Health status
        """
        return {
            "status": "healthy",
            "service": "scrape-engine",
            "active_sessions": engine.sessions.get_active_session_count(),
        }

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint.

        Returns:
            Welcome message
        """
        return {
            "message": "Scrape Engine API",
            "version": settings.engine_version,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scrape_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
