"""StreamDecoder — rebuilds transcription events from an arbitrarily chunked byte stream."""
import codecs
import json
import logging
from collections.abc import AsyncIterable, Callable

from voicescribe.constants import EVENT_PREFIX, FRAME_EXCERPT_CHARS, MSG_TRANSPORT_FAILED
from voicescribe.exceptions import MalformedWireFrame, RelayError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class StreamDecoder:
    """Holds the partial line between chunks and the running transcript.

    ``feed`` may be called with chunks split anywhere, including inside a
    multi-byte character. A ``done`` event replaces the accumulated deltas; an
    ``error`` event raises RelayError and drops the rest of the buffer.
    """

    def __init__(self, on_progress: ProgressCallback | None = None) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._on_progress = on_progress
        self._buffer = ""
        self.full_text = ""

    def feed(self, chunk: bytes) -> None:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._handle_line(line)

    def finish(self) -> str:
        """Flush the decoder and return the transcript, with or without a done event."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        self._handle_line(remainder)
        return self.full_text

    async def consume(self, chunks: AsyncIterable[bytes]) -> str:
        async for chunk in chunks:
            self.feed(chunk)
        return self.finish()

    def _handle_line(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.startswith(EVENT_PREFIX):
            return
        try:
            payload = json.loads(line[len(EVENT_PREFIX):])
        except json.JSONDecodeError:
            logger.debug("Skipping incomplete frame: %s", line[:FRAME_EXCERPT_CHARS])
            return

        match payload:
            case {"type": "delta", "text": str() as text}:
                match text:
                    case "":
                        pass
                    case _:
                        self.full_text += text
                        if self._on_progress is not None:
                            self._on_progress(self.full_text)
            case {"type": "delta"} if payload.get("text") is None:
                logger.debug("Skipping delta without text")
            case {"type": "delta"}:
                raise MalformedWireFrame(line, "delta text is not a string")
            case {"type": "done", "text": str() as text}:
                self.full_text = text
            case {"type": "done"}:
                raise MalformedWireFrame(line, "done without text")
            case {"type": "error"}:
                raise RelayError(str(payload.get("error") or MSG_TRANSPORT_FAILED))
            case dict():
                logger.debug("Ignoring unrecognized event: %s", payload.get("type"))
            case _:
                raise MalformedWireFrame(line, "payload is not an object")


async def consume(chunks: AsyncIterable[bytes], on_progress: ProgressCallback | None = None) -> str:
    return await StreamDecoder(on_progress).consume(chunks)
