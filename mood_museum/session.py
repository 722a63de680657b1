"""
Session context threaded through the Mood Museum workflows.

A session bundles the caller's identity, its signing capability and the
parameters of the reveal challenge. Workflows receive it explicitly.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Protocol

from .backend import KeyValueBackend
from .config import DEFAULT_DURATION_DAYS


class Signer(Protocol):
    """Signing capability of a connected identity."""

    async def sign(self, message: str) -> str | None:
        """Return a signature, or ``None`` when the identity declines."""
        ...


@dataclass(frozen=True)
class SessionContext:
    address: str | None
    signer: Signer | None
    contract_address: str
    chain_id: int
    public_key: str
    start_timestamp: int
    duration_days: int = DEFAULT_DURATION_DAYS

    @property
    def is_connected(self) -> bool:
        return bool(self.address) and self.signer is not None


def generate_public_key() -> str:
    """Random session key material: ``0x`` followed by 2000 hex digits."""
    return "0x" + secrets.token_hex(1000)


async def open_session(
    backend: KeyValueBackend,
    address: str | None,
    signer: Signer | None,
    duration_days: int = DEFAULT_DURATION_DAYS,
) -> SessionContext:
    """Start a session against a backend deployment, stamped with the current time."""
    identity = await backend.identity()
    return SessionContext(
        address=address,
        signer=signer,
        contract_address=identity.contract_address,
        chain_id=identity.chain_id,
        public_key=generate_public_key(),
        start_timestamp=int(time.time()),
        duration_days=duration_days,
    )
