"""
Key/value backend capability for the Mood Museum service.

The collection store only needs four operations from its backend: an
availability flag, byte reads, byte writes and the address/chain identity of
the deployment. ``InMemoryBackend`` keeps everything in process and streams
writes to subscribers; ``HttpBackend`` talks to the relay server over HTTP.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from .config import DEFAULT_BASE_URL, DEFAULT_CHAIN_ID, DEFAULT_CONTRACT_ADDRESS
from .errors import BackendUnavailable, TransportError
from .models import BackendIdentity, KeyWrite, TransactionAck

logger = logging.getLogger(__name__)

# Writes kept for subscribers that fall behind the newest write
WRITE_LOG_SIZE = 1024


class KeyValueBackend(Protocol):
    """Flat key/value store consumed by the collection store."""

    async def is_available(self) -> bool: ...

    async def get_data(self, key: str) -> bytes:
        """Return the stored bytes, or ``b""`` when the key is absent."""
        ...

    async def set_data(self, key: str, value: bytes) -> TransactionAck: ...

    async def identity(self) -> BackendIdentity: ...


# MARK: - In-memory


class InMemoryBackend:
    """
    In-memory key/value storage with a streamable write log.

    Every write gets the next sequence number, is appended to a bounded log
    and is announced through a condition variable, so any number of
    subscribers can follow writes as they happen. Only the newest
    ``write_log_size`` writes are kept; a subscriber that falls further
    behind skips the writes that were dropped.
    Writes are refused with ``BackendUnavailable`` while ``available`` is off.
    """

    def __init__(
        self,
        contract_address: str = DEFAULT_CONTRACT_ADDRESS,
        chain_id: int = DEFAULT_CHAIN_ID,
        available: bool = True,
        write_log_size: int = WRITE_LOG_SIZE,
    ) -> None:
        self.available = available
        self._identity = BackendIdentity(
            contract_address=contract_address, chain_id=chain_id
        )
        self._data: dict[str, bytes] = {}
        self._writes: deque[KeyWrite] = deque(maxlen=write_log_size)
        self._sequence = 0
        self._condition = asyncio.Condition()

    async def is_available(self) -> bool:
        return self.available

    async def get_data(self, key: str) -> bytes:
        return self._data.get(key, b"")

    async def set_data(self, key: str, value: bytes) -> TransactionAck:
        if not self.available:
            raise BackendUnavailable()

        async with self._condition:
            self._data[key] = bytes(value)
            write = KeyWrite(key=key, sequence=self._sequence, timestamp=time.time())
            self._sequence += 1
            self._writes.append(write)

            # Wake up every subscriber waiting for a new write
            self._condition.notify_all()

        logger.debug("Stored %d bytes under %s", len(value), key)
        return TransactionAck(key=key, sequence=write.sequence)

    async def identity(self) -> BackendIdentity:
        return self._identity

    @asynccontextmanager
    async def watch(self) -> AsyncGenerator[AsyncGenerator[KeyWrite, None], None]:
        """
        Stream writes made after subscribing.

        Yields:
            An async generator of KeyWrite objects in write order
        """
        subscribed_at = self._sequence

        async def write_generator() -> AsyncGenerator[KeyWrite, None]:
            last_seen = subscribed_at

            try:
                while True:
                    async with self._condition:
                        await self._condition.wait_for(
                            lambda: self._sequence > last_seen
                        )
                        pending = [w for w in self._writes if w.sequence >= last_seen]
                        last_seen = self._sequence

                    for write in pending:
                        yield write

            except (asyncio.CancelledError, GeneratorExit):
                # Subscriber went away
                return

        yield write_generator()


# MARK: - HTTP


class HttpBackend:
    """
    Backend client for the relay server.

    HTTP 503 responses surface as ``BackendUnavailable``; every other failed
    round-trip surfaces as ``TransportError``.
    """

    def __init__(
        self, base_url: str = DEFAULT_BASE_URL, client: httpx.AsyncClient | None = None
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url)

    async def __aenter__(self) -> "HttpBackend":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def is_available(self) -> bool:
        response = await self._request("GET", "/available")
        return bool(response.json()["available"])

    async def get_data(self, key: str) -> bytes:
        response = await self._request("GET", _data_path(key))
        return response.content

    async def set_data(self, key: str, value: bytes) -> TransactionAck:
        response = await self._request("PUT", _data_path(key), content=value)
        try:
            return TransactionAck.model_validate(response.json())
        except ValueError as e:
            raise TransportError(
                f"PUT {_data_path(key)} returned a malformed ack"
            ) from e

    async def identity(self) -> BackendIdentity:
        response = await self._request("GET", "/identity")
        return BackendIdentity.model_validate(response.json())

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 503:
                raise BackendUnavailable() from e
            raise TransportError(
                f"{method} {url} failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            error_msg = str(e) if str(e) else type(e).__name__
            raise TransportError(f"{method} {url} failed: {error_msg}") from e
        return response


def _data_path(key: str) -> str:
    return f"/data/{quote(key, safe='')}"
