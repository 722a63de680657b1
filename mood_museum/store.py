"""
Keyed collection storage for the Mood Museum service.

A flat key/value backend has no way to enumerate keys, so every collection
keeps an index entry ``<collection>_keys`` holding a JSON array of member ids,
plus one ``<collection>_<id>`` entry per member. Records are written before
the index, so an indexed id never points at a record that was not written.
The converse is allowed: a failed index write leaves an invisible orphan.

Index updates are read-modify-write without locking. Two writers appending
to the same collection at once can lose one index entry (never the record).
"""

import json
import logging
import random
import re
import string
import time
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import ValidationError

from .backend import KeyValueBackend
from .errors import ParseFailure
from .models import ExhibitDocument, ExhibitRecord, MoodRecord, Record

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_PATTERN = re.compile(r"^[A-Za-z]+-(\d+)-")


def now_millis() -> int:
    return int(time.time() * 1000)


def new_record_id(kind: str, millis: int | None = None) -> str:
    """
    Generate an id of the form ``<kind>-<wallTimeMillis>-<suffix>``.

    Uniqueness is the caller's contract; collisions are not detected.
    """
    if millis is None:
        millis = now_millis()
    suffix = "".join(random.choices(ID_ALPHABET, k=4))
    return f"{kind}-{millis}-{suffix}"


# MARK: - Collections


class Collection(ABC, Generic[R]):
    """A named group of records and its wire serialization."""

    name: str

    @property
    def index_key(self) -> str:
        return f"{self.name}_keys"

    def record_key(self, record_id: str) -> str:
        return f"{self.name}_{record_id}"

    @abstractmethod
    def dump(self, record: R) -> bytes:
        """Serialize a record into the bytes stored under its record key."""

    @abstractmethod
    def load(self, record_id: str, raw: bytes) -> R:
        """Parse stored bytes, raising ``ParseFailure`` on malformed input."""


class MoodCollection(Collection[MoodRecord]):
    """Moods are stored as the bare encoded payload."""

    name = "mood"

    def dump(self, record: MoodRecord) -> bytes:
        return record.payload.encode("utf-8")

    def load(self, record_id: str, raw: bytes) -> MoodRecord:
        try:
            payload = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseFailure(f"Mood {record_id} is not valid UTF-8") from e

        # The blob carries no plaintext timestamp; the id scheme does
        match = _ID_PATTERN.match(record_id)
        created_at = int(match.group(1)) if match else 0
        return MoodRecord(id=record_id, payload=payload, created_at=created_at)


class ExhibitCollection(Collection[ExhibitRecord]):
    """Exhibits are stored as a JSON document with plaintext projections."""

    name = "exhibit"

    def dump(self, record: ExhibitRecord) -> bytes:
        document = ExhibitDocument(
            name=record.name,
            description=record.description,
            emotion_match=record.emotion_match,
            location=record.location,
            data=record.payload,
            timestamp=record.created_at,
        )
        return document.model_dump_json(by_alias=True).encode("utf-8")

    def load(self, record_id: str, raw: bytes) -> ExhibitRecord:
        try:
            document = ExhibitDocument.model_validate_json(raw)
        except ValidationError as e:
            raise ParseFailure(f"Exhibit {record_id} is malformed: {e}") from e

        return ExhibitRecord(
            id=record_id,
            payload=document.data,
            created_at=document.timestamp,
            attributes={
                "name": document.name,
                "description": document.description,
                "emotionMatch": document.emotion_match,
                "location": document.location,
            },
        )


MOODS = MoodCollection()
EXHIBITS = ExhibitCollection()
COLLECTIONS: dict[str, Collection] = {c.name: c for c in (MOODS, EXHIBITS)}


# MARK: - Stores


class CollectionStore(ABC):
    """Append-only list-of-records contract."""

    @abstractmethod
    async def list_ids(self, collection: Collection[R]) -> list[str]:
        """Return member ids in index order; empty on any corruption."""

    @abstractmethod
    async def read_record(self, collection: Collection[R], record_id: str) -> R | None:
        """Return one record, or ``None`` when absent or unparsable."""

    @abstractmethod
    async def append_record(self, collection: Collection[R], record: R) -> None:
        """Persist a record and make it visible to ``list_ids``."""

    async def read_all(self, collection: Collection[R]) -> list[R]:
        """
        Read every visible record of a collection, newest first.

        Ids whose record is absent are skipped: the record may simply not
        be visible yet.
        """
        records = []
        for record_id in await self.list_ids(collection):
            record = await self.read_record(collection, record_id)
            if record is not None:
                records.append(record)

        records.sort(key=lambda record: record.created_at, reverse=True)
        return records


class KeyedCollectionStore(CollectionStore):
    """Collection store layered over a flat key/value backend."""

    def __init__(self, backend: KeyValueBackend) -> None:
        self.backend = backend

    async def list_ids(self, collection: Collection[R]) -> list[str]:
        key = collection.index_key
        raw = await self.backend.get_data(key)
        if not raw:
            return []

        try:
            text = raw.decode("utf-8")
            if not text.strip():
                return []
            ids = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Error parsing %s: %s", key, e)
            return []

        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            logger.warning("Ignoring %s: expected a JSON array of ids", key)
            return []
        return ids

    async def read_record(self, collection: Collection[R], record_id: str) -> R | None:
        raw = await self.backend.get_data(collection.record_key(record_id))
        if not raw:
            return None

        try:
            return collection.load(record_id, raw)
        except ParseFailure as e:
            logger.warning("Skipping %s record %s: %s", collection.name, record_id, e)
            return None

    async def append_record(self, collection: Collection[R], record: R) -> None:
        # Record first, so the index never references a missing entry
        await self.backend.set_data(
            collection.record_key(record.id), collection.dump(record)
        )

        # Re-read right before writing to narrow the lost-update window
        ids = await self.list_ids(collection)
        if record.id not in ids:
            ids.append(record.id)
            await self.backend.set_data(collection.index_key, _dump_index(ids))

        logger.debug("Appended %s to %s (%d members)", record.id, collection.name, len(ids))


def _dump_index(ids: list[str]) -> bytes:
    return json.dumps(ids, separators=(",", ":")).encode("utf-8")
