#!/usr/bin/env python3
"""
Ingestion CLI — register and ingest ecosystem report PDFs.

Usage
-----
Single report:
    python -m scripts.ingest --pdf data/pdfs/santiago_2024.pdf \
        --ecosystem "Chile - Santiago" --title "Informe Santiago 2024"

Batch — ingest every PDF in a directory under one ecosystem
(titles default to the file names):
    python -m scripts.ingest --dir data/pdfs/santiago/ --ecosystem "Chile - Santiago"

Comparative (cross-ecosystem benchmark) report:
    python -m scripts.ingest --pdf data/pdfs/benchmark.pdf --comparative

The region defaults to the country prefix of the ecosystem name
("Chile - Santiago" → "Chile"); override it with --region.
"""

import argparse
import asyncio
import glob
import logging
import os
import sys
import time

# Ensure repo root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ecoreports import config                                # noqa: E402
from ecoreports.corpus.manager import ReportCatalog           # noqa: E402
from ecoreports.ingest.embedder import build_embedder         # noqa: E402
from ecoreports.ingest.pipeline import IngestPipeline         # noqa: E402
from ecoreports.repository import ReportRepository            # noqa: E402
from ecoreports.storage import LocalObjectStore               # noqa: E402

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("ingest")


def _title_from_filename(path: str) -> str:
    """``informe_santiago-2024.pdf`` → ``informe santiago 2024``."""
    stem = os.path.splitext(os.path.basename(path))[0]
    return " ".join(stem.replace("_", " ").replace("-", " ").split())


async def _ingest_one(
    catalog: ReportCatalog,
    pipeline: IngestPipeline,
    pdf_path: str,
    title: str | None,
    ecosystem: str,
    region: str | None,
    comparative: bool,
) -> bool:
    """Register and ingest a single PDF. Returns True on success."""
    basename = os.path.basename(pdf_path)
    t0 = time.time()
    logger.info("▶ Ingesting %s", basename)

    with open(pdf_path, "rb") as f:
        payload = f.read()

    report = catalog.register_report(
        filename=basename,
        payload=payload,
        title=title or _title_from_filename(pdf_path),
        ecosystem=ecosystem,
        region=region,
        is_comparative=comparative,
    )
    result = await pipeline.run(report.id)
    elapsed = time.time() - t0

    if result.status == "completed":
        logger.info(
            "✓ %s → %s  |  %d chunks (%d embedded), %d pages, %d words  [%.1fs]",
            basename, result.report_id, result.chunks_created,
            result.embeddings_created, result.page_count, result.word_count, elapsed,
        )
        return True
    logger.error("✗ %s — %s", basename, result.message)
    return False


async def _preflight_checks(embedder) -> bool:
    """Verify the embedding backend is configured and reachable."""
    if config.EMBEDDING_PROVIDER == "openai" and not config.OPENAI_API_KEY:
        logger.error("✗ OPENAI_API_KEY is not set. Add it to your .env file.")
        return False

    if not await embedder.health():
        logger.error(
            "✗ Embedding model '%s' is not reachable via %s",
            embedder.model, config.EMBEDDING_PROVIDER,
        )
        return False
    logger.info("✓ Embeddings available (%s: %s)", config.EMBEDDING_PROVIDER, embedder.model)
    return True


async def run(args: argparse.Namespace) -> int:
    pdf_paths: list[str] = []
    if args.pdf:
        pdf_paths.append(args.pdf)
    else:
        pdf_paths = sorted(glob.glob(os.path.join(args.dir, "*.pdf")))
        if not pdf_paths:
            logger.error("No PDF files found in %s", args.dir)
            return 1
        logger.info("Found %d PDFs in %s", len(pdf_paths), args.dir)

    repository = ReportRepository()
    object_store = LocalObjectStore()
    async with build_embedder() as embedder:
        if not args.skip_preflight and not await _preflight_checks(embedder):
            logger.error("Pre-flight checks failed — aborting.")
            return 1

        catalog = ReportCatalog(repository, object_store)
        pipeline = IngestPipeline(repository, object_store, embedder)

        successes = failures = 0
        for path in pdf_paths:
            ok = await _ingest_one(
                catalog,
                pipeline,
                pdf_path=path,
                title=args.title if args.pdf else None,
                ecosystem=args.ecosystem or "",
                region=args.region,
                comparative=args.comparative,
            )
            if ok:
                successes += 1
            else:
                failures += 1

    logger.info("━" * 60)
    logger.info("Done: %d succeeded, %d failed, %d total", successes, failures, len(pdf_paths))
    return 1 if failures else 0


def main():
    parser = argparse.ArgumentParser(
        description="Register and ingest ecosystem report PDFs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--pdf", type=str, help="Path to a single PDF file")
    source.add_argument("--dir", type=str, help="Directory containing PDFs for batch ingest")

    parser.add_argument("--title", type=str, help="Report title (single PDF only; defaults to the file name)")
    parser.add_argument("--ecosystem", type=str, help='Ecosystem name, e.g. "Chile - Santiago"')
    parser.add_argument("--region", type=str, help="Override the region derived from the ecosystem")
    parser.add_argument("--comparative", action="store_true", help="Flag as a cross-ecosystem comparative report")
    parser.add_argument("--skip-preflight", action="store_true", help="Do not check the embedding backend first")

    args = parser.parse_args()
    if not args.comparative and not args.ecosystem:
        parser.error("--ecosystem is required unless --comparative is given")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
