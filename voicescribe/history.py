import json
import logging
import random
import string
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from voicescribe.constants import DEFAULT_HISTORY_PATH, HISTORY_ID_SUFFIX_CHARS

logger = logging.getLogger(__name__)

Source = Literal["recording", "file"]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _generate_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=HISTORY_ID_SUFFIX_CHARS))
    return f"{int(time.time() * 1000)}-{suffix}"


@dataclass(frozen=True)
class TranscriptionRecord:
    id: str
    text: str
    source: Source
    created_at: str
    file_name: Optional[str] = None
    duration: Optional[float] = None


class HistoryStore(ABC):
    @abstractmethod
    def get(self, record_id: str) -> TranscriptionRecord | None: ...

    @abstractmethod
    def list(self) -> list[TranscriptionRecord]:
        """All records, newest first."""
        ...

    @abstractmethod
    def create(
        self,
        text: str,
        source: Source,
        file_name: str | None = None,
        duration: float | None = None,
    ) -> TranscriptionRecord: ...

    @abstractmethod
    def delete(self, record_id: str) -> None: ...


class JsonHistoryStore(HistoryStore):

    def __init__(self, path: Path = Path(DEFAULT_HISTORY_PATH)) -> None:
        self._path = path
        self._records: list[TranscriptionRecord] = []
        self._load()

    def _load(self) -> None:
        match self._path.exists():
            case True:
                try:
                    with open(self._path) as f:
                        raw = json.load(f)
                    self._records = [TranscriptionRecord(**entry) for entry in raw]
                except Exception as e:
                    logger.warning("History load failed: %s, starting fresh", e)
            case False:
                pass

    def _save(self) -> None:
        try:
            with open(self._path, "w") as f:
                json.dump([asdict(r) for r in self._records], f, indent=2)
        except Exception as e:
            logger.warning("History save failed: %s", e)

    def get(self, record_id: str) -> TranscriptionRecord | None:
        return next((r for r in self._records if r.id == record_id), None)

    def list(self) -> list[TranscriptionRecord]:
        return self._records[:]

    def create(
        self,
        text: str,
        source: Source,
        file_name: str | None = None,
        duration: float | None = None,
    ) -> TranscriptionRecord:
        record = TranscriptionRecord(
            id=_generate_id(),
            text=text,
            source=source,
            created_at=datetime.now(timezone.utc).isoformat(),
            file_name=file_name,
            duration=duration,
        )
        self._records.insert(0, record)
        self._save()
        return record

    def delete(self, record_id: str) -> None:
        remaining = [r for r in self._records if r.id != record_id]
        match len(remaining) == len(self._records):
            case True:
                pass
            case False:
                self._records = remaining
                self._save()
