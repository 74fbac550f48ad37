"""TranscriptionClient — abstract base for speech-to-text backends."""
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator


class TranscriptionClient(ABC):
    @abstractmethod
    async def transcribe(self, audio: bytes, audio_format: str) -> str:
        """Convert audio bytes to text in one call. Raises UpstreamFailure."""
        ...

    @abstractmethod
    def transcribe_stream(self, audio: bytes, audio_format: str) -> AsyncGenerator[str, None]:
        """Yield text deltas in upstream order; exhaustion marks completion.

        Raises UpstreamFailure, possibly after some deltas were yielded.
        """
        ...

    async def close(self) -> None:
        """Release provider connections. Backends without any keep the default."""
        return None
