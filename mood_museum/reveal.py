"""
Signature-gated reveal of encoded payloads.

Before a payload is decoded the connected identity signs a challenge built
from the session parameters. The signature is requested but NOT verified
against any key or authorization list: it only shows that the identity is
live and consents. Any identity able to sign passes the gate.
"""

import json
import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .codec import decode
from .errors import NotAuthenticated, SignatureDeclined
from .models import Record
from .session import SessionContext, Signer

logger = logging.getLogger(__name__)


class RevealStatus(str, Enum):
    REVEALED = "revealed"
    HIDDEN = "hidden"
    DECLINED = "declined"


class RevealResult(BaseModel):
    """Outcome of toggling a record's visibility."""

    record_id: str
    status: RevealStatus
    plaintext: str | None = None
    content: dict[str, Any] | None = None


def build_challenge_message(session: SessionContext) -> str:
    """Build the challenge string; field order and format are fixed."""
    return (
        f"publickey:{session.public_key}\n"
        f"contractAddresses:{session.contract_address}\n"
        f"contractsChainId:{session.chain_id}\n"
        f"startTimestamp:{session.start_timestamp}\n"
        f"durationDays:{session.duration_days}"
    )


class RevealWorkflow:
    """
    Reveal and hide record payloads for one session.

    Revealed plaintext is held locally, keyed by record id. Hiding is a local
    toggle and never asks for a signature.
    """

    def __init__(self, session: SessionContext) -> None:
        self.session = session
        self._revealed: dict[str, str] = {}

    def is_revealed(self, record_id: str) -> bool:
        return record_id in self._revealed

    async def toggle(self, record: Record) -> RevealResult:
        """
        Reveal a record's payload, or hide it when already revealed.

        Raises:
            NotAuthenticated: No identity is connected
        """
        if not self.session.is_connected:
            raise NotAuthenticated()

        if record.id in self._revealed:
            del self._revealed[record.id]
            return RevealResult(record_id=record.id, status=RevealStatus.HIDDEN)

        signature = await self._request_signature(self.session.signer)
        if signature is None:
            logger.info("Reveal of %s declined", record.id)
            return RevealResult(record_id=record.id, status=RevealStatus.DECLINED)

        plaintext = decode(record.payload)
        self._revealed[record.id] = plaintext
        return RevealResult(
            record_id=record.id,
            status=RevealStatus.REVEALED,
            plaintext=plaintext,
            content=_parse_content(plaintext),
        )

    async def _request_signature(self, signer: Signer) -> str | None:
        message = build_challenge_message(self.session)
        try:
            return await signer.sign(message)
        except SignatureDeclined:
            return None


def _parse_content(plaintext: str) -> dict[str, Any] | None:
    try:
        content = json.loads(plaintext)
    except json.JSONDecodeError:
        return None
    return content if isinstance(content, dict) else None
