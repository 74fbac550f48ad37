from dataclasses import dataclass
from typing import Optional
import os
from dotenv import load_dotenv

from voicescribe.constants import (
    DEFAULT_CONVERSION_TIMEOUT,
    DEFAULT_FFMPEG_PATH,
    DEFAULT_HOST,
    DEFAULT_MAX_BODY_BYTES,
    DEFAULT_MAX_CONCURRENT_CONVERSIONS,
    DEFAULT_PORT,
    DEFAULT_TRANSCRIBE_MODEL,
)


@dataclass(frozen=True)
class Config:
    openai_api_key: str
    openai_base_url: Optional[str]
    transcribe_model: str
    ffmpeg_path: str
    conversion_timeout: float
    max_concurrent_conversions: int
    max_body_bytes: int
    temp_dir: Optional[str]
    host: str
    port: int
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        load_dotenv()

        api_key = os.getenv("OPENAI_API_KEY")
        base_url = os.getenv("OPENAI_BASE_URL") or None
        model = os.getenv("TRANSCRIBE_MODEL", DEFAULT_TRANSCRIBE_MODEL)
        ffmpeg_path = os.getenv("FFMPEG_PATH", DEFAULT_FFMPEG_PATH)
        conversion_timeout = os.getenv("CONVERSION_TIMEOUT", DEFAULT_CONVERSION_TIMEOUT)
        max_conversions = os.getenv("MAX_CONCURRENT_CONVERSIONS", DEFAULT_MAX_CONCURRENT_CONVERSIONS)
        max_body = os.getenv("MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES)
        temp_dir = os.getenv("TEMP_DIR") or None
        host = os.getenv("HOST", DEFAULT_HOST)
        port = os.getenv("PORT", DEFAULT_PORT)
        log_level = os.getenv("LOG_LEVEL", "INFO")

        return cls._validate(
            openai_api_key=api_key,
            openai_base_url=base_url,
            transcribe_model=model,
            ffmpeg_path=ffmpeg_path,
            conversion_timeout=float(conversion_timeout),
            max_concurrent_conversions=int(max_conversions),
            max_body_bytes=int(max_body),
            temp_dir=temp_dir,
            host=host,
            port=int(port),
            log_level=log_level,
        )

    @staticmethod
    def _validate(
        openai_api_key: Optional[str],
        openai_base_url: Optional[str],
        transcribe_model: str,
        ffmpeg_path: str,
        conversion_timeout: float,
        max_concurrent_conversions: int,
        max_body_bytes: int,
        temp_dir: Optional[str],
        host: str,
        port: int,
        log_level: str,
    ) -> "Config":
        match openai_api_key:
            case None | "":
                raise ValueError("OPENAI_API_KEY must be set in .env")
            case _:
                pass

        match max_concurrent_conversions:
            case n if n < 1:
                raise ValueError("MAX_CONCURRENT_CONVERSIONS must be at least 1")
            case _:
                pass

        match conversion_timeout:
            case t if t <= 0:
                raise ValueError("CONVERSION_TIMEOUT must be positive")
            case _:
                pass

        return Config(
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            transcribe_model=transcribe_model,
            ffmpeg_path=ffmpeg_path,
            conversion_timeout=conversion_timeout,
            max_concurrent_conversions=max_concurrent_conversions,
            max_body_bytes=max_body_bytes,
            temp_dir=temp_dir,
            host=host,
            port=port,
            log_level=log_level,
        )
