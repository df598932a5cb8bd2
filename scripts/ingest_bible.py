import argparse
import asyncio
import logging
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv(".env.local")

from bible_search.config import settings
from bible_search.core.errors import BibleSearchError
from bible_search.ingest import build_corpus, sync_translations


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Build the Bible search corpus.")
    parser.add_argument("-t", "--translation", default=settings.bible_translation)
    parser.add_argument("-d", "--dimension", type=int, default=settings.embed_dim)
    parser.add_argument("--skip-sync", action="store_true", help="Do not mirror translations to Blob storage.")
    parser.add_argument("--force-upload", action="store_true", default=settings.bible_force_upload)
    return parser.parse_args(argv)


async def main(argv) -> int:
    args = parse_args(argv)
    translation = args.translation.upper()

    print(f"Loading {translation} translation (embedding dimension {args.dimension})")
    count = await build_corpus(translation=translation, dimension=args.dimension)
    print(f"Saved {count:,} {translation} verses to {settings.bible_database_path}")

    if args.skip_sync:
        print("Done!")
        return 0

    report = await sync_translations(force_upload=args.force_upload)
    if report is None:
        print("Done! (Blob sync skipped)")
        return 0

    for result in report.results:
        suffix = f" ({result.error})" if result.error else ""
        print(f"  {result.translation}: {result.outcome.value}{suffix}")

    if report.quota_exceeded:
        print("Blob storage quota exceeded; sync aborted. Reduce payload size before retrying.")
        return 2

    print("Done!")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        exit_code = asyncio.run(main(sys.argv[1:]))
    except BibleSearchError as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)
