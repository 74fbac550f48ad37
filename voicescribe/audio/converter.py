"""FormatConverter — ffmpeg-backed conversion to 16 kHz mono PCM WAV."""
import asyncio
import logging
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path

from voicescribe.audio.sniffer import AudioBuffer
from voicescribe.constants import (
    CONVERTED_FORMAT,
    DEFAULT_CONVERSION_TIMEOUT,
    DEFAULT_FFMPEG_PATH,
    DEFAULT_MAX_CONCURRENT_CONVERSIONS,
    FFMPEG_ARGS,
    FFMPEG_INPUT_FLAG,
    MSG_CONVERSION_TIMEOUT,
    MSG_CONVERTING,
    PASSTHROUGH_FORMATS,
    STDERR_EXCERPT_CHARS,
    TEMP_INPUT_SUFFIX,
    TEMP_OUTPUT_SUFFIX,
)
from voicescribe.exceptions import ConversionFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedAudio:
    data: bytes
    format: str


@dataclass(frozen=True)
class ConversionJob:
    input_path: Path
    output_path: Path

    @classmethod
    def create(cls, temp_dir: Path) -> "ConversionJob":
        job_id = uuid.uuid4().hex
        return cls(
            input_path=temp_dir / f"{job_id}{TEMP_INPUT_SUFFIX}",
            output_path=temp_dir / f"{job_id}{TEMP_OUTPUT_SUFFIX}",
        )

    def cleanup(self) -> None:
        """Best-effort removal of both paths. Never raises."""
        for path in (self.input_path, self.output_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.debug("Could not remove %s: %s", path, exc)


class FormatConverter:
    """Runs one ffmpeg process per call; at most ``max_concurrent`` at a time."""

    def __init__(
        self,
        ffmpeg_path: str = DEFAULT_FFMPEG_PATH,
        timeout: float = float(DEFAULT_CONVERSION_TIMEOUT),
        max_concurrent: int = int(DEFAULT_MAX_CONCURRENT_CONVERSIONS),
        temp_dir: str | None = None,
    ) -> None:
        self._ffmpeg = ffmpeg_path
        self._timeout = timeout
        self._slots = asyncio.Semaphore(max_concurrent)
        self._temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())

    def _command(self, job: ConversionJob) -> list[str]:
        return [
            self._ffmpeg,
            FFMPEG_INPUT_FLAG,
            str(job.input_path),
            *FFMPEG_ARGS,
            str(job.output_path),
        ]

    async def convert(self, data: bytes) -> NormalizedAudio:
        async with self._slots:
            job = ConversionJob.create(self._temp_dir)
            try:
                try:
                    await asyncio.to_thread(job.input_path.write_bytes, data)
                except OSError as exc:
                    raise ConversionFailure(cause=exc) from exc
                returncode, stderr = await self._run(job)
                match returncode:
                    case 0:
                        pass
                    case code:
                        logger.error("ffmpeg exited with %s: %s", code, stderr)
                        raise ConversionFailure(returncode=code, stderr=stderr)
                try:
                    converted = await asyncio.to_thread(job.output_path.read_bytes)
                except OSError as exc:
                    logger.error("ffmpeg produced no readable output: %s", exc)
                    raise ConversionFailure(cause=exc) from exc
                return NormalizedAudio(data=converted, format=CONVERTED_FORMAT)
            finally:
                job.cleanup()

    async def _run(self, job: ConversionJob) -> tuple[int, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command(job),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Could not start ffmpeg: %s", exc)
            raise ConversionFailure(cause=exc) from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error(MSG_CONVERSION_TIMEOUT, self._timeout)
            raise ConversionFailure(cause=TimeoutError(MSG_CONVERSION_TIMEOUT % self._timeout)) from exc
        finally:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        excerpt = stderr.decode(errors="replace")[-STDERR_EXCERPT_CHARS:] if stderr else ""
        return process.returncode, excerpt


async def normalize(audio: AudioBuffer, converter: FormatConverter) -> NormalizedAudio:
    """Pass ``wav``/``mp3`` through untouched, convert everything else to wav."""
    match audio.format.value:
        case fmt if fmt in PASSTHROUGH_FORMATS:
            return NormalizedAudio(data=audio.data, format=fmt)
        case fmt:
            logger.info(MSG_CONVERTING, fmt, len(audio.data))
            return await converter.convert(audio.data)
