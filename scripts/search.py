#!/usr/bin/env python3
"""
Search CLI — similarity search over completed reports.

Usage:
    python -m scripts.search "innovación abierta"
    python -m scripts.search "talento" --ecosystem santiago --limit 5
    python -m scripts.search "inversión" --region Chile --threshold 0.6
"""

import argparse
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ecoreports import config                                # noqa: E402
from ecoreports.errors import SearchError                     # noqa: E402
from ecoreports.ingest.embedder import build_embedder         # noqa: E402
from ecoreports.repository import ReportRepository            # noqa: E402
from ecoreports.search.similarity import SimilaritySearch     # noqa: E402

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("search")


async def run(args: argparse.Namespace) -> int:
    async with build_embedder() as embedder:
        searcher = SimilaritySearch(ReportRepository(), embedder)
        try:
            results = await searcher.search(
                args.query,
                ecosystem=args.ecosystem,
                region=args.region,
                limit=args.limit,
                threshold=args.threshold,
            )
        except SearchError as e:
            logger.error("✗ %s", e)
            return 1

    print(f"\nTop {len(results)} results for: \"{args.query}\"\n")
    for i, r in enumerate(results, 1):
        preview = " ".join(r.chunk.content.split())[:200]
        print(f"  {i}. [{r.similarity:.3f}] {r.report.title} — {r.report.ecosystem}")
        print(f"     section: {r.chunk.section_type.value}  chunk #{r.chunk.chunk_index}")
        print(f"     {preview}…\n")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Search ingested ecosystem reports.")
    parser.add_argument("query", type=str, help="Free-text query")
    parser.add_argument("--ecosystem", type=str, help="Ecosystem name filter (substring, case-insensitive)")
    parser.add_argument("--region", type=str, help="Region filter (exact match)")
    parser.add_argument("--limit", type=int, default=config.SEARCH_LIMIT, help="Maximum number of results")
    parser.add_argument("--threshold", type=float, help="Minimum similarity (default: SEARCH_THRESHOLD)")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
