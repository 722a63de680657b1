"""
Tests for the mood submission workflow.
"""

import json

import httpx
import pytest
from pydantic import ValidationError

from mood_museum import submission as submission_module
from mood_museum.backend import HttpBackend, InMemoryBackend
from mood_museum.codec import decode
from mood_museum.errors import (
    BackendUnavailable,
    NotAuthenticated,
    PartialWriteFailure,
    TransportError,
)
from mood_museum.session import SessionContext
from mood_museum.store import EXHIBITS, MOODS, KeyedCollectionStore, new_record_id
from mood_museum.submission import MoodSubmission, SubmissionState


class StaticSigner:
    async def sign(self, message: str) -> str | None:
        return "0xsignature"


def _session(address: str | None = "0xabc") -> SessionContext:
    return SessionContext(
        address=address,
        signer=StaticSigner() if address else None,
        contract_address="0xcontract",
        chain_id=11155111,
        public_key="0x1234",
        start_timestamp=1700000000,
    )


class FailingExhibitBackend(InMemoryBackend):
    """Fails the n-th exhibit record write."""

    def __init__(self, fail_at: int) -> None:
        super().__init__()
        self.fail_at = fail_at
        self.exhibit_writes = 0

    async def set_data(self, key, value):
        if key.startswith("exhibit_exhibit-"):
            self.exhibit_writes += 1
            if self.exhibit_writes == self.fail_at:
                raise TransportError("transaction reverted")
        return await super().set_data(key, value)


class StateRecordingBackend(InMemoryBackend):
    """Records the submission state seen by every backend call."""

    def __init__(self) -> None:
        super().__init__()
        self.submission = None
        self.calls: list[tuple[str, str, SubmissionState, str]] = []

    def record(self, op: str, key: str) -> None:
        self.calls.append((op, key, self.submission.state, self.submission.status))

    async def get_data(self, key):
        self.record("get", key)
        return await super().get_data(key)

    async def set_data(self, key, value):
        self.record("set", key)
        return await super().set_data(key, value)


class TestMoodSubmission:
    """Test suite for MoodSubmission."""

    def setup_method(self):
        """Set up a fresh backend and store for each test."""
        self.backend = InMemoryBackend()
        self.store = KeyedCollectionStore(self.backend)

    async def test_calm_submission(self):
        """Test that a calm mood stores one mood and three exhibits."""
        submission = MoodSubmission(self.store, _session())
        assert submission.state == SubmissionState.IDLE

        result = await submission.run("calm", 7)

        assert submission.state == SubmissionState.DONE
        moods = await self.store.read_all(MOODS)
        exhibits = await self.store.read_all(EXHIBITS)
        assert [m.id for m in moods] == [result.mood_id]
        assert len(exhibits) == 3
        assert sorted(result.exhibit_ids) == sorted(e.id for e in exhibits)
        assert all(e.emotion_match == "calm" for e in exhibits)
        assert {e.name for e in exhibits} == {
            "Serene Landscapes",
            "Zen Garden",
            "Water Reflections",
        }

        # Refreshed view reflects the new records
        assert {e.id for e in result.exhibits} == set(result.exhibit_ids)

    async def test_payloads_carry_the_originating_mood(self):
        """Test that mood and exhibits all encode the same snapshot."""
        result = await MoodSubmission(self.store, _session()).run("happy", 4)

        mood = await self.store.read_record(MOODS, result.mood_id)
        snapshot = json.loads(decode(mood.payload))
        assert snapshot["emotion"] == "happy"
        assert snapshot["intensity"] == 4
        assert list(snapshot) == ["emotion", "intensity", "timestamp"]
        assert mood.created_at == snapshot["timestamp"]
        assert mood.payload.startswith("FHE-")

        for exhibit in await self.store.read_all(EXHIBITS):
            assert json.loads(decode(exhibit.payload)) == snapshot

    async def test_not_authenticated(self):
        """Test that an unconnected session fails before any write."""
        submission = MoodSubmission(self.store, _session(address=None))

        with pytest.raises(NotAuthenticated):
            await submission.run("calm", 7)

        assert submission.state == SubmissionState.FAILED
        assert await self.backend.get_data("mood_keys") == b""
        assert await self.backend.get_data("exhibit_keys") == b""

    async def test_backend_unavailable(self):
        """Test that a failed mood write stores no exhibits."""
        self.backend.available = False
        submission = MoodSubmission(self.store, _session())

        with pytest.raises(BackendUnavailable):
            await submission.run("calm", 7)

        assert submission.state == SubmissionState.FAILED
        assert submission.status.startswith("Submission failed")
        self.backend.available = True
        assert await self.store.read_all(MOODS) == []
        assert await self.store.read_all(EXHIBITS) == []

    async def test_partial_exhibit_failure(self):
        """Test that exhibit writes are attempted independently."""
        backend = FailingExhibitBackend(fail_at=2)
        store = KeyedCollectionStore(backend)
        submission = MoodSubmission(store, _session())

        with pytest.raises(PartialWriteFailure) as exc_info:
            await submission.run("curious", 3)

        assert submission.state == SubmissionState.FAILED
        assert len(exc_info.value.written_ids) == 2
        assert len(exc_info.value.failures) == 1
        assert backend.exhibit_writes == 3

        # Nothing is rolled back
        assert len(await store.read_all(MOODS)) == 1
        exhibits = await store.read_all(EXHIBITS)
        assert sorted(e.id for e in exhibits) == sorted(exc_info.value.written_ids)

    async def test_unknown_emotion_stores_mood_only(self):
        """Test that an emotion without recommendations still succeeds."""
        result = await MoodSubmission(self.store, _session()).run("bored", 2)

        assert result.exhibit_ids == []
        assert len(await self.store.read_all(MOODS)) == 1
        assert await self.store.read_all(EXHIBITS) == []

    async def test_invalid_intensity(self):
        """Test that out-of-range intensity is rejected before writing."""
        submission = MoodSubmission(self.store, _session())

        with pytest.raises(ValidationError):
            await submission.run("calm", 11)

        assert submission.state == SubmissionState.FAILED
        assert await self.store.read_all(MOODS) == []

    async def test_submissions_are_additive(self):
        """Test that a second submission keeps the first one's records."""
        await MoodSubmission(self.store, _session()).run("calm", 7)
        result = await MoodSubmission(self.store, _session()).run("inspired", 9)

        assert len(await self.store.read_all(MOODS)) == 2
        assert len(result.exhibits) == 6
        emotions = sorted(e.emotion_match for e in result.exhibits)
        assert emotions == ["calm"] * 3 + ["inspired"] * 3

    async def test_state_sequence(self, monkeypatch):
        """Test the state and status in effect at every step of a run."""
        backend = StateRecordingBackend()
        submission = MoodSubmission(KeyedCollectionStore(backend), _session())
        backend.submission = submission

        def traced(name, func):
            def wrapper(*args):
                backend.record(name, "")
                return func(*args)

            return wrapper

        monkeypatch.setattr(
            submission_module, "encode", traced("encode", submission_module.encode)
        )
        monkeypatch.setattr(
            submission_module,
            "recommend",
            traced("recommend", submission_module.recommend),
        )

        result = await submission.run("calm", 7)

        persisting = (SubmissionState.PERSISTING, "Storing your encrypted mood...")
        exhibits = (
            SubmissionState.PERSISTING_EXHIBITS,
            "Storing 3 exhibit recommendations...",
        )
        refreshing = (SubmissionState.REFRESHING, "Refreshing recommendations...")

        expected = [
            ("encode", "", SubmissionState.ENCRYPTING, "Encrypting your mood..."),
            ("set", f"mood_{result.mood_id}", *persisting),
            ("get", "mood_keys", *persisting),
            ("set", "mood_keys", *persisting),
            (
                "recommend",
                "",
                SubmissionState.DERIVING_RECOMMENDATIONS,
                "Processing your mood to find matching exhibits...",
            ),
        ]
        for exhibit_id in result.exhibit_ids:
            expected += [
                ("set", f"exhibit_{exhibit_id}", *exhibits),
                ("get", "exhibit_keys", *exhibits),
                ("set", "exhibit_keys", *exhibits),
            ]
        expected.append(("get", "exhibit_keys", *refreshing))

        calls = backend.calls
        assert calls[: len(expected)] == expected

        # The refresh reads every exhibit record after the index
        refresh = calls[len(expected) :]
        assert sorted(key for _, key, _, _ in refresh) == sorted(
            f"exhibit_{exhibit_id}" for exhibit_id in result.exhibit_ids
        )
        assert all(call[0] == "get" for call in refresh)
        assert all(call[2:] == refreshing for call in refresh)

        assert submission.state == SubmissionState.DONE
        assert submission.status == "Personalized exhibit recommendations generated!"

    async def test_exhibit_ids_are_distinct_within_a_batch(self, monkeypatch):
        """Test that a repeated exhibit id is regenerated before storing."""
        exhibit_ids = iter(
            [
                "exhibit-1000-aaaa",
                "exhibit-1000-aaaa",
                "exhibit-1000-bbbb",
                "exhibit-1000-aaaa",
                "exhibit-1000-bbbb",
                "exhibit-1000-cccc",
            ]
        )

        def fixed_ids(kind, millis=None):
            if kind == "exhibit":
                return next(exhibit_ids)
            return new_record_id(kind, millis)

        monkeypatch.setattr(submission_module, "new_record_id", fixed_ids)

        result = await MoodSubmission(self.store, _session()).run("calm", 7)

        assert result.exhibit_ids == [
            "exhibit-1000-aaaa",
            "exhibit-1000-bbbb",
            "exhibit-1000-cccc",
        ]
        exhibits = await self.store.read_all(EXHIBITS)
        assert sorted(e.id for e in exhibits) == result.exhibit_ids
        assert {e.name for e in exhibits} == {
            "Serene Landscapes",
            "Zen Garden",
            "Water Reflections",
        }

    async def test_malformed_ack_is_recorded_as_a_failure(self):
        """Test that a bad write acknowledgement does not stop the batch."""
        broken = False

        def relay(request: httpx.Request) -> httpx.Response:
            nonlocal broken
            key = request.url.path.removeprefix("/data/")
            if request.method == "GET":
                return httpx.Response(200, content=b"")
            if key.startswith("exhibit_exhibit-") and not broken:
                broken = True
                return httpx.Response(200, text="ok")
            return httpx.Response(200, json={"key": key, "sequence": 0})

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(relay), base_url="http://museum.test"
        )
        async with HttpBackend(client=client) as backend:
            submission = MoodSubmission(KeyedCollectionStore(backend), _session())
            with pytest.raises(PartialWriteFailure) as exc_info:
                await submission.run("calm", 7)

        assert submission.state == SubmissionState.FAILED
        assert len(exc_info.value.written_ids) == 2
        [(failed_id, error)] = exc_info.value.failures
        assert failed_id not in exc_info.value.written_ids
        assert isinstance(error, TransportError)
