"""Audio container detection from leading magic bytes."""
from dataclasses import dataclass
from enum import Enum

from voicescribe.constants import SNIFF_MIN_BYTES


class FormatTag(str, Enum):
    WAV = "wav"
    MP3 = "mp3"
    WEBM = "webm"
    MP4 = "mp4"
    OGG = "ogg"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AudioBuffer:
    data: bytes
    format: FormatTag

    @classmethod
    def from_bytes(cls, data: bytes) -> "AudioBuffer":
        return cls(data=data, format=classify(data))


_MP3_FRAME_SYNC = frozenset((0xFB, 0xFA, 0xF3))


def _is_mp3(head: bytes) -> bool:
    return (head[0] == 0xFF and head[1] in _MP3_FRAME_SYNC) or head[:3] == b"ID3"


# Evaluated in order, first match wins.
_SIGNATURES = (
    (FormatTag.WAV, lambda head: head[:4] == b"RIFF"),
    (FormatTag.WEBM, lambda head: head[:4] == b"\x1a\x45\xdf\xa3"),
    (FormatTag.MP3, _is_mp3),
    (FormatTag.MP4, lambda head: head[4:8] == b"ftyp"),
    (FormatTag.OGG, lambda head: head[:4] == b"OggS"),
)


def classify(data: bytes) -> FormatTag:
    """Return the container format of ``data``, or UNKNOWN. Never raises."""
    match len(data):
        case n if n < SNIFF_MIN_BYTES:
            return FormatTag.UNKNOWN
        case _:
            pass
    head = bytes(data[:SNIFF_MIN_BYTES])
    return next(
        (tag for tag, matches in _SIGNATURES if matches(head)),
        FormatTag.UNKNOWN,
    )
