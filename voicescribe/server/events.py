"""Wire events of the transcription stream and their ``data: <json>`` framing."""
import json
from dataclasses import dataclass

from voicescribe.constants import (
    EVENT_DELTA,
    EVENT_DONE,
    EVENT_ERROR,
    EVENT_PREFIX,
    EVENT_TERMINATOR,
)


@dataclass(frozen=True)
class DeltaEvent:
    text: str


@dataclass(frozen=True)
class DoneEvent:
    text: str


@dataclass(frozen=True)
class ErrorEvent:
    message: str


StreamEvent = DeltaEvent | DoneEvent | ErrorEvent


def event_payload(event: StreamEvent) -> dict[str, str]:
    match event:
        case DeltaEvent(text=text):
            return {"type": EVENT_DELTA, "text": text}
        case DoneEvent(text=text):
            return {"type": EVENT_DONE, "text": text}
        case ErrorEvent(message=message):
            return {"type": EVENT_ERROR, "error": message}
        case _:
            raise TypeError(f"Not a stream event: {event!r}")


def encode_event(event: StreamEvent) -> bytes:
    """One frame: a single ``data:`` line followed by a blank line."""
    return f"{EVENT_PREFIX}{json.dumps(event_payload(event))}{EVENT_TERMINATOR}".encode()
