"""Entry point — wires Config → FormatConverter + OpenAI client → relay app → uvicorn."""
import logging

import uvicorn
from fastapi import FastAPI
from rich.logging import RichHandler

from voicescribe.audio.converter import FormatConverter
from voicescribe.config import Config
from voicescribe.constants import MSG_SERVER_STARTING
from voicescribe.server.app import create_app
from voicescribe.server.relay import TranscriptionRelay
from voicescribe.transcription.openai import OpenAITranscriptionClient


def setup_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    list(map(root.removeHandler, root.handlers[:]))
    root.addHandler(RichHandler(rich_tracebacks=True))


def build_app(config: Config) -> FastAPI:
    transcriber = OpenAITranscriptionClient(
        config.openai_api_key,
        model=config.transcribe_model,
        base_url=config.openai_base_url,
    )
    converter = FormatConverter(
        ffmpeg_path=config.ffmpeg_path,
        timeout=config.conversion_timeout,
        max_concurrent=config.max_concurrent_conversions,
        temp_dir=config.temp_dir,
    )
    return create_app(TranscriptionRelay(transcriber, converter), config.max_body_bytes)


def main() -> None:
    config = Config.from_env()
    setup_logging(config.log_level)

    logger = logging.getLogger(__name__)
    logger.info(MSG_SERVER_STARTING, config.host, config.port)

    uvicorn.run(build_app(config), host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
