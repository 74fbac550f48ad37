"""TranscribeApiClient — calls the relay's streaming and simple endpoints over httpx."""
import logging
from urllib.parse import urljoin

import httpx

from voicescribe.client.decoder import ProgressCallback, StreamDecoder
from voicescribe.constants import (
    CLIENT_CONNECT_TIMEOUT,
    CLIENT_TIMEOUT,
    DEFAULT_SERVER_URL,
    EVENT_STREAM_MEDIA_TYPE,
    MSG_TRANSPORT_FAILED,
    RESPONSE_EXCERPT_CHARS,
    ROUTE_TRANSCRIBE,
    ROUTE_TRANSCRIBE_STREAM,
)
from voicescribe.exceptions import TransportFailure

logger = logging.getLogger(__name__)


class TranscribeApiClient:

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        timeout: float = CLIENT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = httpx.Timeout(timeout, connect=CLIENT_CONNECT_TIMEOUT)
        self._transport = transport

    def _url(self, route: str) -> str:
        return urljoin(self._base_url, route.lstrip("/"))

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def transcribe(self, base64_audio: str, on_progress: ProgressCallback | None = None) -> str:
        """Stream a transcription, reporting the running text through ``on_progress``."""
        decoder = StreamDecoder(on_progress)
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    self._url(ROUTE_TRANSCRIBE_STREAM),
                    json={"audio": base64_audio},
                    headers={"Accept": EVENT_STREAM_MEDIA_TYPE},
                ) as response:
                    match response.is_success:
                        case False:
                            await response.aread()
                            logger.error("Relay answered %s: %s", response.status_code, response.text[:RESPONSE_EXCERPT_CHARS])
                            raise TransportFailure(MSG_TRANSPORT_FAILED, status_code=response.status_code)
                        case True:
                            pass
                    return await decoder.consume(response.aiter_bytes())
        except httpx.HTTPError as exc:
            raise TransportFailure(MSG_TRANSPORT_FAILED, cause=exc) from exc

    async def transcribe_simple(self, base64_audio: str) -> str:
        try:
            async with self._client() as client:
                response = await client.post(
                    self._url(ROUTE_TRANSCRIBE),
                    json={"audio": base64_audio},
                )
        except httpx.HTTPError as exc:
            raise TransportFailure(MSG_TRANSPORT_FAILED, cause=exc) from exc

        match response.is_success:
            case False:
                logger.error("Relay answered %s: %s", response.status_code, response.text[:RESPONSE_EXCERPT_CHARS])
                raise TransportFailure(MSG_TRANSPORT_FAILED, status_code=response.status_code)
            case True:
                return response.json()["text"]
