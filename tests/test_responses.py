import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from fakes import CONVERTED, WAV, WEBM, FakeTranscriber, b64
from voicescribe.audio.converter import FormatConverter, NormalizedAudio
from voicescribe.exceptions import ConversionFailure, UpstreamFailure
from voicescribe.server.relay import TranscriptionRelay
from voicescribe.server.responses import EventStreamResponse


def make_response(transcriber: FakeTranscriber, audio_b64: str, convert_error: Exception | None = None):
    converter = FormatConverter()
    converter.convert = AsyncMock(
        return_value=NormalizedAudio(data=CONVERTED, format="wav"),
        side_effect=convert_error,
    )
    return EventStreamResponse(TranscriptionRelay(transcriber, converter), audio_b64)


async def run(response: EventStreamResponse, *, fail_after: int | None = None, receive=None) -> list[dict]:
    """Drive the response as an ASGI server would and return the messages it sent."""
    sent: list[dict] = []

    async def send(message):
        if fail_after is not None and len(sent) >= fail_after:
            raise OSError("broken pipe")
        sent.append(message)

    async def never_disconnect():
        await asyncio.Event().wait()

    await asyncio.wait_for(response({"type": "http"}, receive or never_disconnect, send), timeout=5)
    return sent


def frames(sent: list[dict]) -> list[dict]:
    bodies = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
    return [
        json.loads(line[len("data: "):])
        for line in bodies.decode().split("\n")
        if line.startswith("data: ")
    ]


# ── committed stream ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_stream_sends_headers_first():
    sent = await run(make_response(FakeTranscriber(deltas=("hi",)), b64(WAV)))

    start = sent[0]
    assert start["type"] == "http.response.start"
    assert start["status"] == 200
    headers = dict(start["headers"])
    assert headers[b"content-type"] == b"text/event-stream"
    assert headers[b"cache-control"] == b"no-cache"
    assert headers[b"x-accel-buffering"] == b"no"


@pytest.mark.asyncio
async def test_stream_relays_deltas_then_done_and_closes():
    response = make_response(FakeTranscriber(deltas=("Hello", " world")), b64(WAV))

    sent = await run(response)

    assert frames(sent) == [
        {"type": "delta", "text": "Hello"},
        {"type": "delta", "text": " world"},
        {"type": "done", "text": "Hello world"},
    ]
    assert sent[-1] == {"type": "http.response.body", "body": b"", "more_body": False}
    assert response.closed


@pytest.mark.asyncio
async def test_each_event_is_one_frame():
    sent = await run(make_response(FakeTranscriber(deltas=("a\nb",)), b64(WAV)))

    body_messages = [m["body"] for m in sent[1:-1]]
    assert body_messages[0] == b'data: {"type": "delta", "text": "a\\nb"}\n\n'


@pytest.mark.asyncio
async def test_conversion_failure_after_headers_becomes_error_event():
    response = make_response(FakeTranscriber(), b64(WEBM), convert_error=ConversionFailure(returncode=1))

    sent = await run(response)

    assert sent[0]["status"] == 200
    assert frames(sent) == [{"type": "error", "error": "Audio conversion failed with exit code 1"}]
    assert sent[-1]["more_body"] is False
    assert response.headers_sent


@pytest.mark.asyncio
async def test_upstream_failure_mid_stream_ends_with_error_event():
    transcriber = FakeTranscriber(deltas=("part",), error=UpstreamFailure(RuntimeError("reset")))

    sent = await run(make_response(transcriber, b64(WAV)))

    events = frames(sent)
    assert events[0] == {"type": "delta", "text": "part"}
    assert events[-1]["type"] == "error"
    assert "reset" in events[-1]["error"]
    assert not any(e["type"] == "done" for e in events)


@pytest.mark.asyncio
async def test_unexpected_failure_after_headers_uses_generic_message():
    transcriber = FakeTranscriber(error=KeyError("secret detail"))

    sent = await run(make_response(transcriber, b64(WAV)))

    assert frames(sent) == [{"type": "error", "error": "Failed to transcribe audio"}]


# ── failures before the stream commits ───────────────────────────────────────


@pytest.mark.asyncio
async def test_invalid_base64_before_headers_is_json_400():
    response = make_response(FakeTranscriber(), "abc")

    sent = await run(response)

    assert len(sent) == 2
    assert sent[0]["status"] == 400
    assert dict(sent[0]["headers"])[b"content-type"] == b"application/json"
    assert json.loads(sent[1]["body"]) == {"error": "Audio data is not valid base64"}
    assert sent[1]["more_body"] is False


@pytest.mark.asyncio
async def test_unexpected_failure_before_headers_is_json_500():
    response = make_response(FakeTranscriber(), b64(WAV))

    with patch("voicescribe.server.responses.decode_audio", side_effect=RuntimeError("boom")):
        sent = await run(response)

    assert sent[0]["status"] == 500
    assert json.loads(sent[1]["body"]) == {"error": "Failed to transcribe audio"}
    assert not any(m.get("body", b"").startswith(b"data: ") for m in sent)


# ── downstream going away ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_write_failure_stops_upstream_without_error_event():
    transcriber = FakeTranscriber(deltas=("a", "b", "c", "d"))

    # headers and the first delta go out, the second write fails
    sent = await run(make_response(transcriber, b64(WAV)), fail_after=2)

    assert len(sent) == 2
    assert frames(sent) == [{"type": "delta", "text": "a"}]
    assert transcriber.closed


@pytest.mark.asyncio
async def test_client_disconnect_cancels_upstream_consumption():
    transcriber = FakeTranscriber(deltas=("first", "never"), stall_after=1)

    async def receive():
        await transcriber.stalled.wait()
        return {"type": "http.disconnect"}

    sent = await run(make_response(transcriber, b64(WAV)), receive=receive)

    assert frames(sent) == [{"type": "delta", "text": "first"}]
    assert transcriber.closed
