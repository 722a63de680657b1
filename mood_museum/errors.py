"""
Error taxonomy for the Mood Museum service.

Parse failures are absorbed by the collection store and never reach callers.
Authentication and transport failures surface with a human-readable message
and are retried by re-running the workflow from the top.
"""


class MuseumError(Exception):
    """Base class for all Mood Museum errors."""


class NotAuthenticated(MuseumError):
    """Raised when a workflow runs without a connected identity."""

    def __init__(self, message: str = "Please connect wallet first") -> None:
        super().__init__(message)


class BackendUnavailable(MuseumError):
    """Raised when the key/value backend refuses operations."""

    def __init__(self, message: str = "Contract is currently unavailable") -> None:
        super().__init__(message)


class TransportError(MuseumError):
    """Generic failure of a backend round-trip."""


class ParseFailure(MuseumError):
    """Stored bytes could not be parsed into the expected shape."""


class SignatureDeclined(MuseumError):
    """The identity declined to sign the challenge message."""

    def __init__(self, message: str = "Signature request declined") -> None:
        super().__init__(message)


class PartialWriteFailure(MuseumError):
    """Only a subset of a multi-record batch was persisted."""

    def __init__(
        self, written_ids: list[str], failures: list[tuple[str, Exception]]
    ) -> None:
        self.written_ids = written_ids
        self.failures = failures
        super().__init__(
            f"Stored {len(written_ids)} of {len(written_ids) + len(failures)} "
            f"records: {failures[0][1] if failures else 'unknown error'}"
        )
