import argparse
import asyncio
import logging
import os
import sys
import time

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv(".env.local")

from bible_search.api.client import search_via_api
from bible_search.config import settings
from bible_search.core.errors import BibleSearchError
from bible_search.search import BibleSearchEngine


def positive_limit(value):
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("Limit must be a finite integer.")
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Limit must be greater than zero.")
    return parsed


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Search Bible verses from the command line.")
    parser.add_argument("term", nargs="*", default=["love"])
    parser.add_argument("-t", "--translation", default=settings.bible_translation)
    parser.add_argument("-l", "--limit", type=positive_limit, default=settings.default_search_limit)
    parser.add_argument(
        "--api",
        action="store_true",
        help="Query the service at BIBLE_API_BASE_URL instead of the local corpus.",
    )
    return parser.parse_args(argv)


async def main(argv) -> int:
    args = parse_args(argv)
    term = " ".join(args.term).strip() or "love"
    translation = args.translation.upper()

    start = time.perf_counter()
    if args.api:
        results = await search_via_api(term, translation, args.limit)
    else:
        results = await BibleSearchEngine().search(term, translation=translation, limit=args.limit)
    duration_ms = (time.perf_counter() - start) * 1000

    if not results:
        print("No verses found.")
        return 0

    references = [f"{r.book} {r.chapter}:{r.verse}" for r in results]
    scores = [f"{r.score:.3f}" for r in results]

    ref_width = max(len("Reference"), *(len(x) for x in references))
    score_width = max(len("Score"), *(len(x) for x in scores))
    tr_width = max(len("Translation"), *(len(r.translation) for r in results))

    header = f'Results for "{term}" ({translation}, limit {args.limit})'
    if args.api:
        header += " via API"
    separator = "-" * max(len(header), ref_width + score_width + tr_width + len("Verse") + 6)

    print(header)
    print(f"Completed in {duration_ms:.0f} ms")
    print(separator)
    print("  ".join(["Reference".ljust(ref_width), "Score".ljust(score_width), "Translation".ljust(tr_width), "Verse"]))
    print(separator)
    for ref, score, r in zip(references, scores, results):
        print("  ".join([ref.ljust(ref_width), score.ljust(score_width), r.translation.ljust(tr_width), r.text]))
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        exit_code = asyncio.run(main(sys.argv[1:]))
    except BibleSearchError as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)
