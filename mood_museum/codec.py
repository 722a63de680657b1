"""
Reversible payload codec.

Stands in for a real homomorphic encryption scheme: values are tagged with
``FHE-`` and base64 encoded. Untagged values pass through ``decode`` unchanged
so legacy plaintext entries never raise.
"""

import base64
import binascii
import logging

logger = logging.getLogger(__name__)

TAG = "FHE-"


def encode(plaintext: str) -> str:
    """Encode a plaintext string into a tagged opaque string."""
    body = base64.b64encode(plaintext.encode("utf-8")).decode("ascii")
    return f"{TAG}{body}"


def decode(value: str) -> str:
    """Decode a tagged string; untagged input is returned as-is."""
    if not is_encoded(value):
        return value

    try:
        raw = base64.b64decode(value[len(TAG) :], validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.warning("Could not decode tagged value, passing through: %s", e)
        return value


def is_encoded(value: str) -> bool:
    return value.startswith(TAG)
