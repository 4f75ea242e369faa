#!/usr/bin/env python3
"""
Nomenclátor Table Build Script

Downloads the AEMPS Nomenclátor de prescripción dump (or uses a local copy)
and writes the normalized CSV tables for a PostgreSQL bulk import.

Features:
- Parallel per-record parsing (one worker per CPU core by default)
- Partial failures recorded per document; the rest of the dump still loads
- run_summary.json next to the tables; exit status 1 when the table set is
  unsafe to load
- Ctrl-C stops dispatch, lets in-flight documents finish and marks the
  tables incomplete

Usage:
    python3 scripts/build_tables.py
    python3 scripts/build_tables.py --archive nomenclator_data/prescripcion.zip
    python3 scripts/build_tables.py --output-dir csv_output --concurrency 4 --verify
    python3 scripts/build_tables.py --fail-on-error --quiet

Environment (.env):
    NOMENCLATOR_OUTPUT_DIR, NOMENCLATOR_WORK_DIR,
    NOMENCLATOR_CONCURRENCY, NOMENCLATOR_DUMP_URL
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from nomenclator.common.log_config import setup_logging
from nomenclator.pipeline import NomenclatorPipeline, PipelineConfig, print_summary

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)


def env_overrides() -> dict:
    """Settings taken from NOMENCLATOR_* environment variables."""
    overrides = {
        'output_dir': os.getenv('NOMENCLATOR_OUTPUT_DIR'),
        'work_dir': os.getenv('NOMENCLATOR_WORK_DIR'),
        'dump_url': os.getenv('NOMENCLATOR_DUMP_URL'),
    }
    concurrency = os.getenv('NOMENCLATOR_CONCURRENCY')
    if concurrency:
        overrides['concurrency'] = int(concurrency)
    return overrides


def main():
    parser = argparse.ArgumentParser(
        description="Build normalized CSV tables from the AEMPS Nomenclátor dump"
    )
    parser.add_argument(
        "--output-dir", "-o",
        help="Directory for the CSV tables (default: csv_output)"
    )
    parser.add_argument(
        "--work-dir", "-w",
        help="Directory for the downloaded archive (default: nomenclator_data)"
    )
    parser.add_argument(
        "--concurrency", "-c",
        type=int,
        help="Number of parallel workers (default: CPU count)"
    )
    parser.add_argument(
        "--fail-on-error",
        action="store_true",
        default=None,
        help="Report failure if any document fails (all documents are still processed)"
    )
    parser.add_argument(
        "--archive",
        help="Use a local dump archive instead of downloading"
    )
    parser.add_argument(
        "--url",
        help="Dump archive URL (default: AEMPS prescripcion.zip)"
    )
    parser.add_argument(
        "--delimiter",
        help="CSV field delimiter (default: comma)"
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        default=None,
        help="Check keys and references of the emitted tables after the build"
    )
    parser.add_argument(
        "--log-file",
        help="Also write a debug log of the build to this file"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress info messages, show only warnings and errors"
    )

    args = parser.parse_args()
    setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    try:
        overrides = env_overrides()
    except ValueError as e:
        logger.error("Invalid NOMENCLATOR_CONCURRENCY: %s", e)
        sys.exit(2)
    overrides.update({
        'output_dir': args.output_dir or overrides['output_dir'],
        'work_dir': args.work_dir or overrides['work_dir'],
        'dump_url': args.url or overrides['dump_url'],
        'concurrency': args.concurrency if args.concurrency is not None else overrides.get('concurrency'),
        'fail_on_error': args.fail_on_error,
        'verify_output': args.verify,
        'archive_path': args.archive,
        'delimiter': args.delimiter,
    })

    try:
        config = PipelineConfig.from_settings(overrides)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(2)

    print("=" * 60)
    print("Nomenclátor Table Build")
    print("=" * 60)
    print(f"  Source:           {config.archive_path or config.dump_url}")
    print(f"  Output dir:       {config.output_dir}")
    print(f"  Concurrency:      {config.concurrency}")
    print(f"  Fail on error:    {config.fail_on_error}")
    print(f"  Verify output:    {config.verify_output}")

    pipeline = NomenclatorPipeline(config)

    def handle_interrupt(signum, frame):
        print("\nInterrupted, finishing in-flight documents...")
        pipeline.cancel()

    signal.signal(signal.SIGINT, handle_interrupt)

    summary = pipeline.run()
    print_summary(summary, config.output_dir)
    sys.exit(summary.exit_code)


if __name__ == "__main__":
    main()
