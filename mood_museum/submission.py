"""
Mood submission workflow.

Encodes a mood, stores it, derives exhibit recommendations from its emotion,
stores one exhibit record per recommendation and refreshes the exhibit list.
Every write is additive. Exhibit writes are attempted independently and are
never rolled back, so a failed run may leave a subset of them behind.
"""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from .codec import encode
from .errors import MuseumError, NotAuthenticated, PartialWriteFailure
from .models import ExhibitRecord, MoodRecord, MoodSnapshot
from .recommend import recommend
from .session import SessionContext
from .store import EXHIBITS, MOODS, CollectionStore, new_record_id, now_millis

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    IDLE = "idle"
    ENCRYPTING = "encrypting"
    PERSISTING = "persisting"
    DERIVING_RECOMMENDATIONS = "deriving_recommendations"
    PERSISTING_EXHIBITS = "persisting_exhibits"
    REFRESHING = "refreshing"
    DONE = "done"
    FAILED = "failed"


class SubmissionResult(BaseModel):
    """Outcome of a successful submission."""

    mood_id: str
    exhibit_ids: list[str] = Field(default_factory=list)
    exhibits: list[ExhibitRecord] = Field(
        default_factory=list, description="Refreshed exhibit list, newest first"
    )


class MoodSubmission:
    """
    A single run of the submission workflow.

    ``state`` and ``status`` expose progress to the caller while round-trips
    are in flight. A failed run is retried by creating a new submission.
    """

    def __init__(self, store: CollectionStore, session: SessionContext) -> None:
        self.store = store
        self.session = session
        self.state = SubmissionState.IDLE
        self.status = ""

    async def run(self, emotion: str, intensity: int) -> SubmissionResult:
        """
        Submit a mood and persist its recommendations.

        Args:
            emotion: Emotion tag; unknown tags store the mood with no exhibits
            intensity: Intensity from 1 to 10

        Returns:
            The stored ids and the refreshed exhibit list

        Raises:
            NotAuthenticated: No identity is connected, nothing was written
            PartialWriteFailure: The mood and only some exhibits were stored
        """
        if not self.session.is_connected:
            self._transition(SubmissionState.FAILED, "Please connect wallet first")
            raise NotAuthenticated()

        try:
            result = await self._run(emotion, intensity)
        except Exception as e:
            self._transition(SubmissionState.FAILED, f"Submission failed: {e}")
            raise

        self._transition(
            SubmissionState.DONE, "Personalized exhibit recommendations generated!"
        )
        return result

    async def _run(self, emotion: str, intensity: int) -> SubmissionResult:
        self._transition(SubmissionState.ENCRYPTING, "Encrypting your mood...")
        snapshot = MoodSnapshot(
            emotion=emotion, intensity=intensity, timestamp=now_millis()
        )
        payload = encode(snapshot.model_dump_json())

        self._transition(SubmissionState.PERSISTING, "Storing your encrypted mood...")
        mood = MoodRecord(
            id=new_record_id("mood", snapshot.timestamp),
            payload=payload,
            created_at=snapshot.timestamp,
        )
        await self.store.append_record(MOODS, mood)

        self._transition(
            SubmissionState.DERIVING_RECOMMENDATIONS,
            "Processing your mood to find matching exhibits...",
        )
        seeds = recommend(snapshot.emotion)

        self._transition(
            SubmissionState.PERSISTING_EXHIBITS,
            f"Storing {len(seeds)} exhibit recommendations...",
        )
        written: list[str] = []
        failures: list[tuple[str, Exception]] = []
        claimed: set[str] = set()
        for seed in seeds:
            # Ids in one batch share a millisecond, so only the suffix differs
            exhibit_id = new_record_id("exhibit")
            while exhibit_id in claimed:
                exhibit_id = new_record_id("exhibit")
            claimed.add(exhibit_id)

            # Each exhibit carries the originating mood, not a new one
            exhibit = ExhibitRecord(
                id=exhibit_id,
                payload=payload,
                created_at=now_millis(),
                attributes={
                    "name": seed.name,
                    "description": seed.description,
                    "emotionMatch": snapshot.emotion,
                    "location": seed.location,
                },
            )
            try:
                await self.store.append_record(EXHIBITS, exhibit)
            except MuseumError as e:
                logger.warning("Could not store exhibit %s: %s", exhibit.id, e)
                failures.append((exhibit.id, e))
            else:
                written.append(exhibit.id)

        if failures:
            raise PartialWriteFailure(written, failures)

        self._transition(SubmissionState.REFRESHING, "Refreshing recommendations...")
        exhibits = await self.store.read_all(EXHIBITS)

        return SubmissionResult(mood_id=mood.id, exhibit_ids=written, exhibits=exhibits)

    def _transition(self, state: SubmissionState, status: str) -> None:
        logger.debug("Submission %s -> %s", self.state.value, state.value)
        self.state = state
        self.status = status
