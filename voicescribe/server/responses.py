"""EventStreamResponse — ASGI response that relays transcription events.

The response has two failure channels and tracks which one is still open:
before the ``http.response.start`` message goes out a failure becomes a plain
JSON error; afterwards it can only be reported as a final ``error`` event.
"""
import json
import logging
from functools import partial

import anyio
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from voicescribe.constants import (
    EVENT_STREAM_HEADERS,
    EVENT_STREAM_MEDIA_TYPE,
    JSON_HEADERS,
    MSG_CLIENT_GONE,
    MSG_TRANSCRIBE_FAILED,
)
from voicescribe.exceptions import ConversionFailure, InvalidRequest, UpstreamFailure
from voicescribe.server.events import ErrorEvent, encode_event
from voicescribe.server.relay import TranscriptionRelay, decode_audio

logger = logging.getLogger(__name__)


class _DownstreamClosed(Exception):
    """The client went away; nothing more can be written."""


def error_message(exc: Exception) -> str:
    match exc:
        case InvalidRequest(reason=reason):
            return reason
        case ConversionFailure() | UpstreamFailure():
            return str(exc)
        case _:
            return MSG_TRANSCRIBE_FAILED


def error_status(exc: Exception) -> int:
    return 400 if isinstance(exc, InvalidRequest) else 500


class EventStreamResponse(Response):

    def __init__(self, relay: TranscriptionRelay, audio_b64: str | None) -> None:
        super().__init__(media_type=EVENT_STREAM_MEDIA_TYPE)
        self._relay = relay
        self._audio_b64 = audio_b64
        self.headers_sent = False
        self.closed = False

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        async with anyio.create_task_group() as task_group:

            async def run_then_cancel(func) -> None:
                await func()
                task_group.cancel_scope.cancel()

            task_group.start_soon(run_then_cancel, partial(self._listen_for_disconnect, receive))
            await run_then_cancel(partial(self._relay_events, send))

        if self.background is not None:
            await self.background()

    async def _listen_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                logger.warning(MSG_CLIENT_GONE)
                break

    async def _send(self, send: Send, message: Message) -> None:
        try:
            await send(message)
        except OSError as exc:
            raise _DownstreamClosed() from exc

    async def _relay_events(self, send: Send) -> None:
        events = None
        try:
            audio = decode_audio(self._audio_b64)
            await self._send(send, {
                "type": "http.response.start",
                "status": 200,
                "headers": list(EVENT_STREAM_HEADERS),
            })
            self.headers_sent = True
            events = self._relay.events(audio)
            async for event in events:
                await self._send(send, {
                    "type": "http.response.body",
                    "body": encode_event(event),
                    "more_body": True,
                })
        except _DownstreamClosed:
            logger.warning(MSG_CLIENT_GONE)
            return
        except Exception as exc:
            match exc:
                case InvalidRequest() | ConversionFailure() | UpstreamFailure():
                    logger.error("Transcription stream failed: %s", exc)
                case _:
                    logger.exception("Transcription stream failed")
            try:
                await self._fail(send, exc)
            except _DownstreamClosed:
                logger.warning(MSG_CLIENT_GONE)
                return
        finally:
            if events is not None:
                with anyio.CancelScope(shield=True):
                    await events.aclose()

        if not self.closed:
            try:
                await self._close(send)
            except _DownstreamClosed:
                logger.warning(MSG_CLIENT_GONE)

    async def _fail(self, send: Send, exc: Exception) -> None:
        message = error_message(exc)
        match self.headers_sent:
            case True:
                await self._send(send, {
                    "type": "http.response.body",
                    "body": encode_event(ErrorEvent(message=message)),
                    "more_body": True,
                })
            case False:
                body = json.dumps({"error": message}).encode()
                await self._send(send, {
                    "type": "http.response.start",
                    "status": error_status(exc),
                    "headers": [*JSON_HEADERS, (b"content-length", str(len(body)).encode())],
                })
                self.headers_sent = True
                await self._send(send, {"type": "http.response.body", "body": body, "more_body": False})
                self.closed = True

    async def _close(self, send: Send) -> None:
        await self._send(send, {"type": "http.response.body", "body": b"", "more_body": False})
        self.closed = True
