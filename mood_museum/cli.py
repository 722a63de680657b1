"""
Command-line interface tools for the Mood Museum service.
"""

import asyncio
import hashlib
import json
from collections.abc import Coroutine
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import httpx
import typer
from httpx_sse import ServerSentEvent, aconnect_sse
from pydantic import ValidationError

from .availability import Availability, check_availability
from .backend import HttpBackend
from .config import configure_logging, get_settings
from .errors import MuseumError
from .models import ExhibitRecord, KeyWrite
from .recommend import EMOTIONS
from .reveal import RevealStatus, RevealWorkflow, build_challenge_message
from .session import open_session
from .stats import emotion_distribution
from .store import COLLECTIONS, EXHIBITS, MOODS, KeyedCollectionStore
from .submission import MoodSubmission

settings = get_settings()

app = typer.Typer(help="Mood Museum CLI tools")


def _url_option() -> Any:
    return typer.Option(
        settings.backend_url, "--url", "-u", help="Base URL of the Mood Museum relay"
    )


def _address_option() -> Any:
    return typer.Option(
        None, "--address", "-a", envvar="MUSEUM_ADDRESS", help="Connected wallet address"
    )


class CollectionName(str, Enum):
    mood = "mood"
    exhibit = "exhibit"


class PromptSigner:
    """Signs challenge messages after the user confirms on the terminal."""

    def __init__(self, address: str, assume_yes: bool = False) -> None:
        self.address = address
        self.assume_yes = assume_yes

    async def sign(self, message: str) -> str | None:
        if not self.assume_yes:
            print(message)
            prompt = f"Sign this message as {self.address}?"
            if not await asyncio.to_thread(typer.confirm, prompt):
                return None
        digest = hashlib.sha256(f"{self.address}\n{message}".encode("utf-8"))
        return "0x" + digest.hexdigest()


def _open_backend(base_url: str) -> HttpBackend:
    return HttpBackend(base_url)


# MARK: - Commands


@app.callback()
def configure(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="Logging level"
    ),
) -> None:
    """Encrypted mood submissions and exhibit recommendations."""
    configure_logging(log_level)


@app.command()
def submit(
    emotion: str = typer.Argument(..., help=f"One of: {', '.join(EMOTIONS)}"),
    intensity: int = typer.Option(
        5, "--intensity", "-i", min=1, max=10, help="Intensity from 1 to 10"
    ),
    address: Optional[str] = _address_option(),
    base_url: str = _url_option(),
) -> None:
    """Submit an encrypted mood and store its exhibit recommendations."""

    async def _submit() -> None:
        async with _open_backend(base_url) as backend:
            session = await open_session(
                backend,
                address,
                PromptSigner(address) if address else None,
                settings.duration_days,
            )
            submission = MoodSubmission(KeyedCollectionStore(backend), session)
            result = await submission.run(emotion, intensity)

            print(submission.status)
            print(f"Mood stored as {result.mood_id}")
            recommended = [e for e in result.exhibits if e.id in result.exhibit_ids]
            for exhibit in recommended:
                print(_format_exhibit(exhibit))

    _run_with_error_handling(_submit(), base_url)


@app.command()
def exhibits(
    base_url: str = _url_option(),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output raw JSON"),
) -> None:
    """List stored exhibit recommendations, newest first."""

    async def _exhibits() -> None:
        async with _open_backend(base_url) as backend:
            records = await KeyedCollectionStore(backend).read_all(EXHIBITS)

        if json_output:
            print(json.dumps([r.model_dump() for r in records], indent=2))
            return

        if not records:
            print("No exhibits yet")
        for record in records:
            print(_format_exhibit(record))

    _run_with_error_handling(_exhibits(), base_url)


@app.command()
def moods(base_url: str = _url_option()) -> None:
    """List stored moods, newest first. Payloads stay encrypted."""

    async def _moods() -> None:
        async with _open_backend(base_url) as backend:
            records = await KeyedCollectionStore(backend).read_all(MOODS)

        if not records:
            print("No moods yet")
        for record in records:
            print(f"{_format_millis(record.created_at)} > {record.id}")

    _run_with_error_handling(_moods(), base_url)


@app.command()
def reveal(
    collection: CollectionName = typer.Argument(..., help="Collection of the record"),
    record_id: str = typer.Argument(..., help="Id of the record to decrypt"),
    address: Optional[str] = _address_option(),
    yes: bool = typer.Option(False, "--yes", "-y", help="Sign without prompting"),
    base_url: str = _url_option(),
) -> None:
    """Decrypt a record after signing the session challenge."""

    async def _reveal() -> None:
        async with _open_backend(base_url) as backend:
            session = await open_session(
                backend,
                address,
                PromptSigner(address, assume_yes=yes) if address else None,
                settings.duration_days,
            )
            record = await KeyedCollectionStore(backend).read_record(
                COLLECTIONS[collection.value], record_id
            )

        if record is None:
            print(f"No {collection.value} record {record_id}")
            raise typer.Exit(1)

        result = await RevealWorkflow(session).toggle(record)
        if result.status == RevealStatus.DECLINED:
            print("Signature declined, record stays encrypted")
            return

        if result.content is not None:
            print(json.dumps(result.content, indent=2))
        else:
            print(result.plaintext)

    _run_with_error_handling(_reveal(), base_url)


@app.command()
def challenge(
    address: Optional[str] = _address_option(),
    base_url: str = _url_option(),
) -> None:
    """
    Print the challenge message for a fresh session.

    Every invocation opens a new session with its own public key and start
    time, so a later reveal signs a different message with the same layout.
    """

    async def _challenge() -> None:
        async with _open_backend(base_url) as backend:
            session = await open_session(backend, address, None, settings.duration_days)
        print(build_challenge_message(session))

    _run_with_error_handling(_challenge(), base_url)


@app.command()
def status(base_url: str = _url_option()) -> None:
    """Check whether the backend accepts operations."""

    async def _status() -> None:
        async with _open_backend(base_url) as backend:
            availability = await check_availability(backend)

        if availability == Availability.AVAILABLE:
            print("Backend is available and ready to process your mood")
        elif availability == Availability.UNAVAILABLE:
            print("Backend is currently unavailable")
            raise typer.Exit(1)
        else:
            print("Error checking backend availability")
            raise typer.Exit(1)

    _run_with_error_handling(_status(), base_url)


@app.command()
def stats(base_url: str = _url_option()) -> None:
    """Show how many exhibits match each emotion."""

    async def _stats() -> None:
        async with _open_backend(base_url) as backend:
            records = await KeyedCollectionStore(backend).read_all(EXHIBITS)

        distribution = emotion_distribution(records)
        if not distribution:
            print("Submit your mood to see exhibit recommendations")
        for emotion, count in distribution.items():
            print(f"{emotion}: {count}")

    _run_with_error_handling(_stats(), base_url)


@app.command()
def watch(base_url: str = _url_option()) -> None:
    """Stream backend writes in real-time."""

    async def _watch() -> None:
        print(f"Watching {base_url}/stream... (Ctrl+C to stop)")

        async with httpx.AsyncClient(timeout=None) as client:
            async with aconnect_sse(client, "GET", f"{base_url}/stream") as event_source:
                async for sse in event_source.aiter_sse():
                    _handle_sse_event(sse)

    _run_with_error_handling(_watch(), base_url)


# MARK: - Private Helpers


def _format_millis(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _format_exhibit(exhibit: ExhibitRecord) -> str:
    return (
        f"{exhibit.name} ({exhibit.location}) [{exhibit.emotion_match}] "
        f"- {exhibit.description} <{exhibit.id}>"
    )


def _handle_sse_event(sse: ServerSentEvent) -> None:
    """Handle a single SSE event."""
    try:
        # Handle error events from server
        if sse.event == "error":
            error_data = json.loads(sse.data)
            print(f"Server error: {error_data.get('error', 'Unknown error')}")
            return

        write = KeyWrite.model_validate_json(sse.data)
        timestamp = datetime.fromtimestamp(write.timestamp) if write.timestamp else None
        prefix = timestamp.strftime("%H:%M:%S") if timestamp else f"#{write.sequence}"
        print(f"{prefix} > {write.key}")

    except (json.JSONDecodeError, ValidationError) as e:
        print(f"Warning: Could not parse SSE data: {sse.data} - {e}")


def _run_with_error_handling(coro: Coroutine[Any, Any, Any], base_url: str) -> None:
    """Run an async coroutine with standardized error handling."""
    try:
        asyncio.run(coro)
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        print("\nStopped")
        raise typer.Exit(0)
    except httpx.ConnectError:
        print(f"Error: Could not connect to {base_url}")
        raise typer.Exit(1)
    except httpx.HTTPStatusError as e:
        print(f"Error: HTTP {e.response.status_code}")
        raise typer.Exit(1)
    except MuseumError as e:
        print(f"Error: {e}")
        raise typer.Exit(1)
    except Exception as e:
        error_msg = str(e) if str(e) else f"Unknown error of type {type(e).__name__}"
        print(f"Error: {error_msg}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
