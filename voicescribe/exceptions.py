"""Exceptions shared by the relay server and its client."""
from voicescribe.constants import FRAME_EXCERPT_CHARS


class InvalidRequest(Exception):
    """Raised when a transcription request carries no usable audio."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ConversionFailure(Exception):
    """Raised when ffmpeg exits non-zero, times out or cannot be started."""

    def __init__(
        self,
        returncode: int | None = None,
        stderr: str = "",
        cause: Exception | None = None,
    ):
        self.returncode = returncode
        self.stderr = stderr
        self.cause = cause
        match (returncode, cause):
            case (None, None):
                message = "Audio conversion failed"
            case (None, exc):
                message = f"Audio conversion could not run: {exc}"
            case (code, _):
                message = f"Audio conversion failed with exit code {code}"
        super().__init__(message)


class UpstreamFailure(Exception):
    """Raised when the transcription provider call fails, including mid-stream."""

    def __init__(self, cause: Exception | None = None):
        self.cause = cause
        super().__init__(f"Transcription provider failed: {cause}" if cause else "Transcription provider failed")


class MalformedWireFrame(Exception):
    """Raised by the decoder for a frame that parses but is not a valid event."""

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed event frame ({reason}): {line[:FRAME_EXCERPT_CHARS]}")


class TransportFailure(Exception):
    """Raised when the relay cannot be reached or answers with a failure status."""

    def __init__(self, message: str, status_code: int | None = None, cause: Exception | None = None):
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class RelayError(Exception):
    """Raised by the decoder when the relay sends an ``error`` event."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
