"""Aggregate views over stored exhibits."""

from collections.abc import Iterable

from .models import ExhibitRecord


def emotion_distribution(exhibits: Iterable[ExhibitRecord]) -> dict[str, int]:
    """Count exhibits per matched emotion, in first-seen order."""
    counts: dict[str, int] = {}
    for exhibit in exhibits:
        emotion = exhibit.emotion_match.lower()
        counts[emotion] = counts.get(emotion, 0) + 1
    return counts
