"""Tunable values, wire names and message strings shared across the package."""

# Audio formats the upstream provider accepts without conversion
PASSTHROUGH_FORMATS = ("wav", "mp3")
SNIFF_MIN_BYTES = 12

# ffmpeg invocation: strip video, force WAV, 16 kHz mono 16-bit PCM, overwrite
FFMPEG_INPUT_FLAG = "-i"
FFMPEG_ARGS = ("-vn", "-f", "wav", "-ar", "16000", "-ac", "1", "-acodec", "pcm_s16le", "-y")
CONVERTED_FORMAT = "wav"
TEMP_INPUT_SUFFIX = ".input"
TEMP_OUTPUT_SUFFIX = ".wav"
STDERR_EXCERPT_CHARS = 200
FRAME_EXCERPT_CHARS = 80

# Config defaults
DEFAULT_TRANSCRIBE_MODEL = "gpt-4o-mini-transcribe"
DEFAULT_FFMPEG_PATH = "ffmpeg"
DEFAULT_CONVERSION_TIMEOUT = "120"
DEFAULT_MAX_CONCURRENT_CONVERSIONS = "4"
DEFAULT_MAX_BODY_BYTES = str(50 * 1024 * 1024)
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = "5000"
DEFAULT_SERVER_URL = "http://localhost:5000/"
DEFAULT_HISTORY_PATH = ".voicescribe_transcriptions.json"

# Relay client
CLIENT_TIMEOUT = 300.0
CLIENT_CONNECT_TIMEOUT = 10.0
RESPONSE_EXCERPT_CHARS = 200

# History record ids: <epoch ms>-<suffix>
HISTORY_ID_SUFFIX_CHARS = 9

# Upstream payload naming
UPLOAD_FILENAME = "audio.%s"
UPSTREAM_DELTA_EVENT = "transcript.text.delta"
UPSTREAM_DONE_EVENT = "transcript.text.done"

# HTTP surface
ROUTE_TRANSCRIBE = "/transcribe"
ROUTE_TRANSCRIBE_STREAM = "/transcribe/stream"
ROUTE_HEALTH = "/health"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
EVENT_STREAM_HEADERS = (
    (b"content-type", b"text/event-stream"),
    (b"cache-control", b"no-cache"),
    (b"connection", b"keep-alive"),
    (b"x-accel-buffering", b"no"),
)
JSON_HEADERS = ((b"content-type", b"application/json"),)

# Wire protocol
EVENT_PREFIX = "data: "
EVENT_TERMINATOR = "\n\n"
EVENT_DELTA = "delta"
EVENT_DONE = "done"
EVENT_ERROR = "error"

# Log / user-facing messages
MSG_SERVER_STARTING = "Starting voicescribe relay on %s:%s"
MSG_AUDIO_REQUIRED = "Audio data (base64) is required"
MSG_AUDIO_INVALID = "Audio data is not valid base64"
MSG_BODY_TOO_LARGE = "Request body exceeds %d bytes"
MSG_TRANSCRIBE_FAILED = "Failed to transcribe audio"
MSG_TRANSPORT_FAILED = "Transcription failed"
MSG_CONVERTING = "Converting %s audio (%d bytes) to wav"
MSG_CONVERSION_TIMEOUT = "ffmpeg timed out after %ss"
MSG_STREAM_DONE = "Stream finished: %d deltas, %d chars"
MSG_CLIENT_GONE = "Client disconnected mid-stream, abandoning upstream"

# CLI
MSG_NO_HISTORY = "No transcriptions yet."
MSG_DELETED = "Deleted %s"
MSG_NOT_FOUND = "No transcription with id %s"
MSG_SAVED = "Saved as %s"
