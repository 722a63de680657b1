"""
Shared data models for the Mood Museum service.

This module defines the record types kept in the collection store, the wire
documents they are serialized into, and the small value types exchanged with
the key/value backend. They are used across the store, the workflows, the
HTTP relay and the CLI.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MoodSnapshot(BaseModel):
    """A self-reported emotional state at a point in time."""

    emotion: str = Field(..., min_length=1, description="Emotion tag")
    intensity: int = Field(..., ge=1, le=10, description="Intensity from 1 to 10")
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")


class ExhibitSeed(BaseModel):
    """A static exhibit recommendation."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    location: str


# MARK: - Records


class Record(BaseModel):
    """
    Generic unit of the collection store.

    ``payload`` is always codec output; ``attributes`` holds the plaintext
    projection fields stored alongside it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique id within the collection")
    payload: str = Field(..., description="Encoded payload")
    created_at: int = Field(0, description="Unix timestamp in milliseconds")
    attributes: dict[str, str] = Field(default_factory=dict)


class MoodRecord(Record):
    """A record whose payload decodes to a :class:`MoodSnapshot`."""

    kind: Literal["mood"] = "mood"


class ExhibitRecord(Record):
    """A recommended exhibit carrying the encoded originating mood."""

    kind: Literal["exhibit"] = "exhibit"

    @property
    def name(self) -> str:
        return self.attributes.get("name", "")

    @property
    def description(self) -> str:
        return self.attributes.get("description", "")

    @property
    def emotion_match(self) -> str:
        return self.attributes.get("emotionMatch", "")

    @property
    def location(self) -> str:
        return self.attributes.get("location", "")


class ExhibitDocument(BaseModel):
    """JSON document stored under ``exhibit_<id>``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    emotion_match: str = Field(..., alias="emotionMatch")
    location: str
    data: str = Field(..., description="Encoded mood snapshot")
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")


# MARK: - Backend values


class TransactionAck(BaseModel):
    """Acknowledgement returned by a backend write."""

    key: str
    sequence: int = Field(..., description="Sequence number of the write")


class BackendIdentity(BaseModel):
    """Address and chain the backend is deployed on."""

    model_config = ConfigDict(populate_by_name=True)

    contract_address: str = Field(..., alias="contractAddress")
    chain_id: int = Field(..., alias="chainId")


class KeyWrite(BaseModel):
    """A single write observed on the backend."""

    key: str
    sequence: int
    timestamp: float | None = Field(None, description="Unix timestamp of the write")
