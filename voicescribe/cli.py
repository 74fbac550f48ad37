"""voicescribe-transcribe — send an audio file to the relay and keep the result in history."""
import argparse
import asyncio
import base64
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from voicescribe.client.api import TranscribeApiClient
from voicescribe.constants import (
    DEFAULT_HISTORY_PATH,
    DEFAULT_SERVER_URL,
    MSG_DELETED,
    MSG_NO_HISTORY,
    MSG_NOT_FOUND,
    MSG_SAVED,
)
from voicescribe.exceptions import MalformedWireFrame, RelayError, TransportFailure
from voicescribe.history import HistoryStore, JsonHistoryStore
from voicescribe.main import setup_logging

console = Console()


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voicescribe-transcribe", description=__doc__)
    parser.add_argument("file", nargs="?", type=Path, help="audio file to transcribe")
    parser.add_argument("--server", default=os.getenv("VOICESCRIBE_SERVER_URL", DEFAULT_SERVER_URL))
    parser.add_argument("--simple", action="store_true", help="wait for the full text, no live progress")
    parser.add_argument("--no-history", action="store_true", help="do not record the result")
    parser.add_argument("--history", action="store_true", help="list stored transcriptions")
    parser.add_argument("--delete", metavar="ID", help="delete a stored transcription")
    return parser


def _show_history(store: HistoryStore) -> None:
    records = store.list()
    match records:
        case []:
            console.print(MSG_NO_HISTORY)
        case _:
            table = Table("id", "created", "source", "text")
            for r in records:
                table.add_row(r.id, r.created_at, r.file_name or r.source, r.text)
            console.print(table)


async def _transcribe(client: TranscribeApiClient, audio: bytes, simple: bool) -> str:
    encoded = base64.b64encode(audio).decode()
    match simple:
        case True:
            with console.status("Transcribing…"):
                return await client.transcribe_simple(encoded)
        case False:
            with Live(Text("Transcribing…"), console=console, transient=True) as live:
                return await client.transcribe(encoded, lambda text: live.update(Text(text)))


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    setup_logging(os.getenv("LOG_LEVEL", "WARNING"))
    parser = _parser()
    args = parser.parse_args(argv)
    store = JsonHistoryStore(Path(os.getenv("VOICESCRIBE_HISTORY_PATH", DEFAULT_HISTORY_PATH)))

    match args:
        case argparse.Namespace(history=True):
            _show_history(store)
            return 0
        case argparse.Namespace(delete=str() as record_id):
            match store.get(record_id):
                case None:
                    console.print(MSG_NOT_FOUND % record_id)
                    return 1
                case _:
                    store.delete(record_id)
                    console.print(MSG_DELETED % record_id)
                    return 0
        case argparse.Namespace(file=None):
            parser.print_usage()
            return 2
        case _:
            pass

    client = TranscribeApiClient(args.server)
    try:
        text = asyncio.run(_transcribe(client, args.file.read_bytes(), args.simple))
    except (RelayError, TransportFailure, MalformedWireFrame, OSError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return 1

    console.print(text)
    match args.no_history:
        case True:
            pass
        case False:
            record = store.create(text, "file", file_name=args.file.name)
            console.print(MSG_SAVED % record.id, style="dim")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
