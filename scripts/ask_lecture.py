import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from loguru import logger

from lecture_rag.pipeline import LecturePipeline


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a lecture recording and ask questions about it.")
    parser.add_argument("audio", nargs="?", help="Audio file to ingest (skip to query existing lectures)")
    parser.add_argument("--source-id", help="Lecture identifier; defaults to the audio file stem")
    parser.add_argument("--mime-type", help="Audio MIME type; guessed from the file name when omitted")
    parser.add_argument("--question", "-q", action="append", default=[], help="Question to ask (repeatable)")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


async def main() -> None:
    """Ingest an optional recording, then answer each question from the indexed lectures."""
    args = parse_args()
    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    pipeline = LecturePipeline.from_settings()

    if args.audio:
        path = Path(args.audio)
        mime_type = args.mime_type or mimetypes.guess_type(path.name)[0] or "audio/mpeg"
        chunks = await pipeline.ingest(args.source_id or path.stem, path.read_bytes(), mime_type)
        print(f"Indexed {len(chunks)} chunks from {path.name}")

    for question in args.question:
        answer = await pipeline.ask(question)
        print(f"\nQ: {question}\nA: {answer.text}")
        if answer.chunk_ids:
            print(f"Sources: {', '.join(answer.chunk_ids)}")


if __name__ == "__main__":
    asyncio.run(main())
