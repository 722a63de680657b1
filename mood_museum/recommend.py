"""
Exhibit recommendations keyed by emotion.

``recommend`` is a pure lookup with no dependency on stored state.
"""

from .models import ExhibitSeed

EXHIBITS_BY_EMOTION: dict[str, tuple[ExhibitSeed, ...]] = {
    "calm": (
        ExhibitSeed(
            name="Serene Landscapes",
            description="A collection of tranquil nature scenes",
            location="Gallery A",
        ),
        ExhibitSeed(
            name="Zen Garden",
            description="Traditional Japanese meditation garden",
            location="Outdoor Garden",
        ),
        ExhibitSeed(
            name="Water Reflections",
            description="Photography exhibition of water surfaces",
            location="Hall B",
        ),
    ),
    "happy": (
        ExhibitSeed(
            name="Colorful Abstractions",
            description="Vibrant abstract paintings",
            location="Modern Wing",
        ),
        ExhibitSeed(
            name="Children's Art",
            description="Playful creations by young artists",
            location="Family Gallery",
        ),
        ExhibitSeed(
            name="Festival Masks",
            description="Cultural masks from celebrations worldwide",
            location="Cultural Hall",
        ),
    ),
    "curious": (
        ExhibitSeed(
            name="Scientific Discoveries",
            description="Exhibit on groundbreaking scientific findings",
            location="Science Wing",
        ),
        ExhibitSeed(
            name="Ancient Mysteries",
            description="Artifacts from lost civilizations",
            location="History Hall",
        ),
        ExhibitSeed(
            name="Interactive Light",
            description="Interactive light and sound installation",
            location="Innovation Lab",
        ),
    ),
    "contemplative": (
        ExhibitSeed(
            name="Philosophical Art",
            description="Works that provoke deep thought",
            location="East Wing",
        ),
        ExhibitSeed(
            name="Religious Icons",
            description="Sacred art from various traditions",
            location="Spirituality Room",
        ),
        ExhibitSeed(
            name="Minimalist Sculptures",
            description="Simple forms with profound meaning",
            location="Sculpture Garden",
        ),
    ),
    "inspired": (
        ExhibitSeed(
            name="Innovation Gallery",
            description="Cutting-edge designs and inventions",
            location="Future Wing",
        ),
        ExhibitSeed(
            name="Visionary Artists",
            description="Works by artists ahead of their time",
            location="Modern Masters",
        ),
        ExhibitSeed(
            name="Social Change",
            description="Art that drives social transformation",
            location="Activism Corner",
        ),
    ),
}

EMOTIONS: tuple[str, ...] = tuple(EXHIBITS_BY_EMOTION)


def recommend(emotion: str) -> list[ExhibitSeed]:
    """Return the exhibits matching an emotion; unknown emotions match nothing."""
    return list(EXHIBITS_BY_EMOTION.get(emotion, ()))
