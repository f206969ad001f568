#!/usr/bin/env python3
"""
Mark reports stuck in ``processing`` as failed.

An ingestion run that crashes mid-way leaves its report in ``processing``
forever.  Run this periodically (or by hand) to close those out:

    python -m scripts.reconcile                 # older than STALE_PROCESSING_MINUTES
    python -m scripts.reconcile --minutes 5
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ecoreports import config                                # noqa: E402
from ecoreports.corpus.manager import ReportCatalog           # noqa: E402
from ecoreports.repository import ReportRepository            # noqa: E402
from ecoreports.storage import LocalObjectStore               # noqa: E402

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("reconcile")


def main():
    parser = argparse.ArgumentParser(description="Fail reports stuck in processing.")
    parser.add_argument(
        "--minutes",
        type=int,
        default=config.STALE_PROCESSING_MINUTES,
        help="Treat reports untouched for this many minutes as stale",
    )
    args = parser.parse_args()

    catalog = ReportCatalog(ReportRepository(), LocalObjectStore())
    reconciled = catalog.reconcile_stale(args.minutes)

    if not reconciled:
        logger.info("✓ No reports stuck in processing.")
        return
    for report in reconciled:
        logger.info("✗ %s (%s) → failed", report.title, report.ecosystem)
    logger.info("Reconciled %d reports.", len(reconciled))


if __name__ == "__main__":
    main()
