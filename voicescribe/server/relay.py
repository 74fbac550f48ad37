"""TranscriptionRelay — one sequential pipeline per request.

decode → classify → (convert) → upstream call → events. The streaming variant
is an async generator consumed by ``EventStreamResponse``; each upstream delta
is yielded before the next one is awaited.
"""
import base64
import binascii
import logging
from collections.abc import AsyncGenerator

from voicescribe.audio.converter import FormatConverter, NormalizedAudio, normalize
from voicescribe.audio.sniffer import AudioBuffer
from voicescribe.constants import MSG_AUDIO_INVALID, MSG_AUDIO_REQUIRED, MSG_STREAM_DONE
from voicescribe.exceptions import InvalidRequest
from voicescribe.server.events import DeltaEvent, DoneEvent, StreamEvent
from voicescribe.transcription.client import TranscriptionClient

logger = logging.getLogger(__name__)


def decode_audio(audio_b64: str | None) -> bytes:
    match audio_b64:
        case None | "":
            raise InvalidRequest(MSG_AUDIO_REQUIRED)
        case _:
            pass
    try:
        audio = base64.b64decode(audio_b64)
    except (binascii.Error, ValueError) as exc:
        raise InvalidRequest(MSG_AUDIO_INVALID) from exc
    match audio:
        case b"":
            raise InvalidRequest(MSG_AUDIO_REQUIRED)
        case _:
            return audio


class TranscriptionRelay:

    def __init__(self, transcriber: TranscriptionClient, converter: FormatConverter) -> None:
        self._transcriber = transcriber
        self._converter = converter

    async def close(self) -> None:
        await self._transcriber.close()

    async def _normalize(self, audio: bytes) -> NormalizedAudio:
        buffer = AudioBuffer.from_bytes(audio)
        logger.info("Received %d bytes of %s audio", len(buffer.data), buffer.format.value)
        return await normalize(buffer, self._converter)

    async def transcribe(self, audio: bytes) -> str:
        normalized = await self._normalize(audio)
        return await self._transcriber.transcribe(normalized.data, normalized.format)

    async def events(self, audio: bytes) -> AsyncGenerator[StreamEvent, None]:
        """Yield a delta per upstream fragment, then one done with the full text.

        Exceptions propagate to the caller, which owns the choice of failure
        channel. Closing this generator closes the upstream iterator.
        """
        normalized = await self._normalize(audio)
        deltas = self._transcriber.transcribe_stream(normalized.data, normalized.format)
        full_text = ""
        count = 0
        try:
            async for delta in deltas:
                full_text += delta
                count += 1
                yield DeltaEvent(text=delta)
        finally:
            await deltas.aclose()
        logger.info(MSG_STREAM_DONE, count, len(full_text))
        yield DoneEvent(text=full_text)
