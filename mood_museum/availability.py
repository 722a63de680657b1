"""Availability probe for the key/value backend."""

import logging
from enum import Enum

from .backend import KeyValueBackend

logger = logging.getLogger(__name__)


class Availability(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    PROBE_ERROR = "probe_error"


async def check_availability(backend: KeyValueBackend) -> Availability:
    """
    Ask the backend whether it accepts operations.

    A backend answering ``False`` is ``UNAVAILABLE``; a probe that fails to
    get an answer at all is ``PROBE_ERROR``.
    """
    try:
        available = await backend.is_available()
    except Exception as e:
        logger.warning("Error checking backend availability: %s", e)
        return Availability.PROBE_ERROR

    return Availability.AVAILABLE if available else Availability.UNAVAILABLE
