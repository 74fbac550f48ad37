import pytest
from unittest.mock import AsyncMock, patch

from fakes import CONVERTED, MP3, WAV, WEBM, FakeTranscriber, b64
from voicescribe.audio.converter import FormatConverter, NormalizedAudio
from voicescribe.exceptions import ConversionFailure, InvalidRequest, UpstreamFailure
from voicescribe.server.events import DeltaEvent, DoneEvent
from voicescribe.server.relay import TranscriptionRelay, decode_audio


def make_relay(transcriber: FakeTranscriber, converted: bytes = CONVERTED):
    converter = FormatConverter()
    converter.convert = AsyncMock(return_value=NormalizedAudio(data=converted, format="wav"))
    return TranscriptionRelay(transcriber, converter), converter


async def collect(relay: TranscriptionRelay, audio: bytes) -> list:
    return [event async for event in relay.events(audio)]


# ── decode_audio ──────────────────────────────────────────────────────────────


@pytest.mark.parametrize("value", [None, ""])
def test_decode_audio_rejects_missing(value):
    with pytest.raises(InvalidRequest):
        decode_audio(value)


def test_decode_audio_rejects_bad_padding():
    with pytest.raises(InvalidRequest):
        decode_audio("abc")


def test_decode_audio_returns_bytes():
    assert decode_audio(b64(WAV)) == WAV


# ── streaming pipeline ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_events_emit_deltas_then_done_with_full_text():
    transcriber = FakeTranscriber(deltas=("Hel", "lo", " world"))
    relay, converter = make_relay(transcriber)

    events = await collect(relay, WAV)

    assert events == [
        DeltaEvent(text="Hel"),
        DeltaEvent(text="lo"),
        DeltaEvent(text=" world"),
        DoneEvent(text="Hello world"),
    ]
    converter.convert.assert_not_called()


@pytest.mark.asyncio
async def test_events_with_no_deltas_still_emit_done():
    relay, _ = make_relay(FakeTranscriber())

    assert await collect(relay, WAV) == [DoneEvent(text="")]


@pytest.mark.asyncio
@pytest.mark.parametrize("audio, fmt", [(WAV, "wav"), (MP3, "mp3")])
async def test_events_pass_accepted_formats_through(audio, fmt):
    transcriber = FakeTranscriber(deltas=("x",))
    relay, converter = make_relay(transcriber)

    await collect(relay, audio)

    assert transcriber.calls == [(audio, fmt)]
    converter.convert.assert_not_called()


@pytest.mark.asyncio
async def test_events_convert_other_formats_to_wav():
    transcriber = FakeTranscriber(deltas=("x",))
    relay, converter = make_relay(transcriber)

    await collect(relay, WEBM)

    converter.convert.assert_called_once_with(WEBM)
    assert transcriber.calls == [(CONVERTED, "wav")]


@pytest.mark.asyncio
async def test_events_propagate_conversion_failure():
    transcriber = FakeTranscriber(deltas=("x",))
    relay, converter = make_relay(transcriber)
    converter.convert.side_effect = ConversionFailure(returncode=1)

    with pytest.raises(ConversionFailure):
        await collect(relay, WEBM)

    assert transcriber.calls == []


@pytest.mark.asyncio
async def test_events_propagate_upstream_failure_after_deltas():
    transcriber = FakeTranscriber(deltas=("a", "b"), error=UpstreamFailure(RuntimeError("reset")))
    relay, _ = make_relay(transcriber)
    received = []

    with pytest.raises(UpstreamFailure):
        async for event in relay.events(WAV):
            received.append(event)

    assert received == [DeltaEvent(text="a"), DeltaEvent(text="b")]
    assert transcriber.closed


@pytest.mark.asyncio
async def test_closing_events_closes_upstream():
    transcriber = FakeTranscriber(deltas=("a", "b", "c"))
    relay, _ = make_relay(transcriber)

    events = relay.events(WAV)
    assert await events.__anext__() == DeltaEvent(text="a")
    await events.aclose()

    assert transcriber.closed


# ── synchronous pipeline ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_transcribe_returns_upstream_text():
    transcriber = FakeTranscriber(text="all at once")
    relay, _ = make_relay(transcriber)

    assert await relay.transcribe(WAV) == "all at once"
    assert transcriber.calls == [(WAV, "wav")]


@pytest.mark.asyncio
async def test_transcribe_normalizes_before_upstream():
    transcriber = FakeTranscriber(text="converted")
    relay, converter = make_relay(transcriber)

    with patch("asyncio.create_subprocess_exec", new=AsyncMock()) as spawn:
        await relay.transcribe(WEBM)

    spawn.assert_not_called()
    converter.convert.assert_called_once_with(WEBM)
    assert transcriber.calls == [(CONVERTED, "wav")]


@pytest.mark.asyncio
async def test_close_releases_transcriber():
    transcriber = FakeTranscriber()
    relay, _ = make_relay(transcriber)

    await relay.close()

    assert transcriber.released
