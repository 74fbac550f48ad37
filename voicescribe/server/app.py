"""FastAPI application — sync and streaming transcription endpoints."""
import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.types import ASGIApp, Receive, Scope, Send

from voicescribe.constants import (
    MSG_AUDIO_REQUIRED,
    MSG_BODY_TOO_LARGE,
    ROUTE_HEALTH,
    ROUTE_TRANSCRIBE,
    ROUTE_TRANSCRIBE_STREAM,
)
from voicescribe.exceptions import ConversionFailure, InvalidRequest, UpstreamFailure
from voicescribe.server.relay import TranscriptionRelay, decode_audio
from voicescribe.server.responses import EventStreamResponse, error_message, error_status

logger = logging.getLogger(__name__)


class TranscribeRequest(BaseModel):
    audio: str | None = None


class TranscribeResponse(BaseModel):
    text: str


def get_relay(request: Request) -> TranscriptionRelay:
    return request.app.state.relay


RelayDep = Annotated[TranscriptionRelay, Depends(get_relay)]

router = APIRouter()


def _error_response(exc: Exception) -> JSONResponse:
    return JSONResponse({"error": error_message(exc)}, status_code=error_status(exc))


@router.get(ROUTE_HEALTH)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post(ROUTE_TRANSCRIBE, response_model=TranscribeResponse)
async def transcribe(body: TranscribeRequest, relay: RelayDep):
    try:
        audio = decode_audio(body.audio)
        text = await relay.transcribe(audio)
    except (InvalidRequest, ConversionFailure, UpstreamFailure) as exc:
        logger.error("Transcription failed: %s", exc)
        return _error_response(exc)
    except Exception as exc:
        logger.exception("Transcription failed")
        return _error_response(exc)
    return TranscribeResponse(text=text)


@router.post(ROUTE_TRANSCRIBE_STREAM)
async def transcribe_stream(body: TranscribeRequest, relay: RelayDep):
    match body.audio:
        case None | "":
            return _error_response(InvalidRequest(MSG_AUDIO_REQUIRED))
        case audio_b64:
            return EventStreamResponse(relay, audio_b64)


class BodyLimitMiddleware:
    """Rejects requests whose declared Content-Length exceeds the ceiling."""

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        match scope["type"]:
            case "http":
                declared = dict(scope["headers"]).get(b"content-length", b"")
                if declared.isdigit() and int(declared) > self.max_body_bytes:
                    response = JSONResponse(
                        {"error": MSG_BODY_TOO_LARGE % self.max_body_bytes},
                        status_code=413,
                    )
                    await response(scope, receive, send)
                    return
            case _:
                pass
        await self.app(scope, receive, send)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": MSG_AUDIO_REQUIRED}, status_code=400)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Shutting down, closing transcription provider")
    await app.state.relay.close()


def create_app(relay: TranscriptionRelay, max_body_bytes: int) -> FastAPI:
    app = FastAPI(title="voicescribe relay", lifespan=lifespan)
    app.state.relay = relay
    app.add_middleware(BodyLimitMiddleware, max_body_bytes=max_body_bytes)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)
    return app
