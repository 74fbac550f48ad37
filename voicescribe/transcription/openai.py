"""OpenAITranscriptionClient — OpenAI speech-to-text backend (sync and streaming)."""
import io
import logging
from collections.abc import AsyncGenerator

import httpx
from openai import AsyncOpenAI, OpenAIError

from voicescribe.constants import (
    DEFAULT_TRANSCRIBE_MODEL,
    UPLOAD_FILENAME,
    UPSTREAM_DELTA_EVENT,
    UPSTREAM_DONE_EVENT,
)
from voicescribe.exceptions import UpstreamFailure
from voicescribe.transcription.client import TranscriptionClient

logger = logging.getLogger(__name__)


def _audio_file(audio: bytes, audio_format: str) -> io.BytesIO:
    audio_file = io.BytesIO(audio)
    audio_file.name = UPLOAD_FILENAME % audio_format
    return audio_file


class OpenAITranscriptionClient(TranscriptionClient):

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_TRANSCRIBE_MODEL,
        base_url: str | None = None,
    ) -> None:
        self._model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def close(self) -> None:
        await self._client.close()

    async def transcribe(self, audio: bytes, audio_format: str) -> str:
        try:
            response = await self._client.audio.transcriptions.create(
                model=self._model,
                file=_audio_file(audio, audio_format),
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            raise UpstreamFailure(exc) from exc
        return response.text.strip()

    async def transcribe_stream(self, audio: bytes, audio_format: str) -> AsyncGenerator[str, None]:
        try:
            stream = await self._client.audio.transcriptions.create(
                model=self._model,
                file=_audio_file(audio, audio_format),
                stream=True,
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            raise UpstreamFailure(exc) from exc

        try:
            async for event in stream:
                match event.type:
                    case t if t == UPSTREAM_DELTA_EVENT:
                        match event.delta:
                            case "" | None:
                                pass
                            case delta:
                                yield delta
                    case t if t == UPSTREAM_DONE_EVENT:
                        return
                    case other:
                        logger.debug("Ignoring upstream event %s", other)
        except (OpenAIError, httpx.HTTPError) as exc:
            raise UpstreamFailure(exc) from exc
        finally:
            await stream.close()
