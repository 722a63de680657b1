"""
FastAPI relay server for the Mood Museum service.

This module exposes a key/value backend over HTTP so that clients can run the
collection store protocol remotely, streams every write to Server-Sent Events
subscribers, and serves read-only projections of the stored exhibits.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field

from .backend import InMemoryBackend
from .config import get_settings
from .errors import BackendUnavailable
from .models import BackendIdentity, ExhibitRecord, TransactionAck
from .stats import emotion_distribution
from .store import EXHIBITS, KeyedCollectionStore

logger = logging.getLogger(__name__)


# API Request/Response Schemas
class AvailabilityResponse(BaseModel):
    """Response model for the availability endpoint."""

    available: bool = Field(..., description="Whether the backend accepts writes")


class ExhibitResponse(BaseModel):
    """Plaintext projection of an exhibit record."""

    id: str
    name: str
    description: str
    emotion_match: str = Field(..., serialization_alias="emotionMatch")
    location: str
    encrypted_data: str = Field(..., serialization_alias="encryptedData")
    timestamp: int

    @classmethod
    def from_record(cls, record: ExhibitRecord) -> "ExhibitResponse":
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            emotion_match=record.emotion_match,
            location=record.location,
            encrypted_data=record.payload,
            timestamp=record.created_at,
        )


def create_app(backend: InMemoryBackend) -> FastAPI:
    """
    Create a FastAPI application serving the given backend.

    Args:
        backend: The InMemoryBackend instance to expose

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Lifespan context manager for FastAPI application."""
        identity = await backend.identity()
        logger.info(
            "Serving contract %s on chain %d",
            identity.contract_address,
            identity.chain_id,
        )
        yield

    app = FastAPI(
        title="Mood Museum",
        description="Key/value relay for encrypted moods and exhibit recommendations",
        version="0.1.0",
        lifespan=lifespan,
    )
    store = KeyedCollectionStore(backend)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "mood-museum"}

    @app.get("/available")
    async def get_available() -> AvailabilityResponse:
        return AvailabilityResponse(available=await backend.is_available())

    @app.get("/identity")
    async def get_identity() -> BackendIdentity:
        return await backend.identity()

    @app.get("/data/{key}")
    async def get_data(key: str) -> Response:
        """
        Read the raw bytes stored under a key.

        Returns:
            The stored bytes; an empty body means the key is absent
        """
        return Response(
            content=await backend.get_data(key),
            media_type="application/octet-stream",
        )

    @app.put("/data/{key}")
    async def set_data(key: str, request: Request) -> TransactionAck:
        """
        Store the raw request body under a key and notify subscribers.

        Returns:
            The acknowledgement of the write
        """
        try:
            return await backend.set_data(key, await request.body())
        except BackendUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))

    @app.get("/exhibits")
    async def list_exhibits() -> list[ExhibitResponse]:
        """
        Get every visible exhibit, newest first.
        """
        exhibits = await store.read_all(EXHIBITS)
        return [ExhibitResponse.from_record(exhibit) for exhibit in exhibits]

    @app.get("/stats/emotions")
    async def get_emotion_stats() -> dict[str, int]:
        """Count visible exhibits per matched emotion."""
        return emotion_distribution(await store.read_all(EXHIBITS))

    @app.get("/stream")
    async def stream_writes() -> StreamingResponse:
        """
        Stream backend writes via Server-Sent Events.

        Each event carries the written key and its position in the write log.
        Only writes made after the connection is established are sent.

        Returns:
            StreamingResponse with text/event-stream content type
        """

        async def event_generator() -> AsyncGenerator[str, None]:
            """Generate SSE events for backend writes."""
            try:
                async with backend.watch() as writes:
                    # Comment line so clients see the stream open before any write
                    yield ": connected\n\n"
                    async for write in writes:
                        yield f"data: {write.model_dump_json()}\n\n"
            except asyncio.CancelledError:
                # Client disconnected
                pass
            except Exception as e:
                # Send error event and close
                error_data = json.dumps({"error": str(e)})
                yield f"event: error\ndata: {error_data}\n\n"

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Headers": "*",
            },
        )

    return app


def _default_backend() -> InMemoryBackend:
    settings = get_settings()
    return InMemoryBackend(
        contract_address=settings.contract_address, chain_id=settings.chain_id
    )


# Default app instance served by ``main``
app = create_app(_default_backend())


def main() -> None:
    """Main entry point for the server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "mood_museum.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
