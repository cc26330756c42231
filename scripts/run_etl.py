"""
Command line entry point for the SRA metadata pipeline.

Usage:
    python scripts/run_etl.py download-archive
    python scripts/run_etl.py build-xml-db [--archive PATH] [--record-type sample ...]
    python scripts/run_etl.py build-samples-db [--workers 4] [--timeout 10]
    python scripts/run_etl.py download-accessions
    python scripts/run_etl.py build-accessions-db [--file PATH]
    python scripts/run_etl.py init-db

Exit status: 0 on completion (including a clean drain after SIGINT/SIGTERM),
1 on fatal archive/store/download errors, 2 on invalid usage.
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.logging import setup_logging
from ingestion.runner import PipelineRunner
from ingestion.shutdown import EXIT_OK, EXIT_USAGE

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run_etl",
        description="Build SQLite databases from the NCBI SRA metadata dumps",
    )
    parser.add_argument("--log-level", default=None, help=f"Logging level (default: {settings.LOG_LEVEL})")
    parser.add_argument("--data-dir", default=None, help=f"Download folder (default: {settings.DATA_DIR})")
    subparsers = parser.add_subparsers(dest="command", required=True)

    download_archive = subparsers.add_parser("download-archive", help="Download the newest full metadata archive")
    download_archive.add_argument("--index-url", default=None, help="Metadata index page URL")

    build_xml = subparsers.add_parser("build-xml-db", help="Load archive XML files into the XML database")
    build_xml.add_argument("--archive", default=None, help="Archive path (default: newest archive in the data folder)")
    build_xml.add_argument("--db", default=None, help=f"XML database path (default: {settings.xml_db_path})")
    build_xml.add_argument(
        "--record-type", action="append", dest="record_types", default=None,
        help="Keep only this record type; repeat for several (default: all types)"
    )
    build_xml.add_argument("--batch-size", type=positive_int, default=None,
                           help=f"Rows per transaction (default: {settings.XML_BATCH_SIZE})")

    build_samples = subparsers.add_parser("build-samples-db", help="Transform sample XML into the samples database")
    build_samples.add_argument("--xml-db", default=None, help=f"XML database path (default: {settings.xml_db_path})")
    build_samples.add_argument("--db", default=None, help=f"Samples database path (default: {settings.samples_db_path})")
    build_samples.add_argument("--record-type", default=None,
                               help=f"Record type to transform (default: {settings.TRANSFORM_RECORD_TYPE})")
    build_samples.add_argument("--workers", type=positive_int, default=None,
                               help=f"Worker processes (default: {settings.WORKER_POOL_SIZE})")
    build_samples.add_argument("--timeout", type=positive_float, default=None,
                               help=f"Seconds per record before the worker is killed (default: {settings.WORKER_TIMEOUT_SECONDS})")
    build_samples.add_argument("--batch-size", type=positive_int, default=None,
                               help=f"Rows per transaction (default: {settings.SAMPLE_BATCH_SIZE})")
    build_samples.add_argument("--page-size", type=positive_int, default=None,
                               help=f"Rows per page read (default: {settings.PAGE_SIZE})")
    build_samples.add_argument("--identifier-key", default=None,
                               help=f"Element or attribute name to extract (default: {settings.IDENTIFIER_KEY})")

    download_accessions = subparsers.add_parser("download-accessions", help="Download SRA_Accessions.tab")
    download_accessions.add_argument("--url", default=None, help="Accessions file URL")

    build_accessions = subparsers.add_parser("build-accessions-db", help="Load SRA_Accessions.tab into its database")
    build_accessions.add_argument("--file", default=None, help="Accessions file (default: in the data folder)")
    build_accessions.add_argument("--db", default=None, help=f"Accessions database path (default: {settings.accessions_db_path})")
    build_accessions.add_argument("--batch-size", type=positive_int, default=None,
                                  help=f"Rows per transaction (default: {settings.ACCESSIONS_BATCH_SIZE})")

    subparsers.add_parser("init-db", help="Create every database file and table")
    return parser


async def run_command(args: argparse.Namespace) -> int:
    """Dispatch one parsed command; returns the exit status"""
    if args.command == "download-archive":
        runner = PipelineRunner(data_dir=args.data_dir)
        code, _ = await runner.download_archive(args.index_url)
    elif args.command == "build-xml-db":
        runner = PipelineRunner(xml_db_path=args.db, data_dir=args.data_dir)
        code, _ = await runner.build_xml_db(args.archive, args.record_types, args.batch_size)
    elif args.command == "build-samples-db":
        runner = PipelineRunner(xml_db_path=args.xml_db, samples_db_path=args.db, data_dir=args.data_dir)
        code, _ = await runner.build_samples_db(
            record_type=args.record_type,
            pool_size=args.workers,
            timeout=args.timeout,
            batch_size=args.batch_size,
            page_size=args.page_size,
            identifier_key=args.identifier_key,
        )
    elif args.command == "download-accessions":
        runner = PipelineRunner(data_dir=args.data_dir)
        code, _ = await runner.download_accessions(args.url)
    elif args.command == "build-accessions-db":
        runner = PipelineRunner(accessions_db_path=args.db, data_dir=args.data_dir)
        code, _ = await runner.build_accessions_db(args.file, args.batch_size)
    elif args.command == "init-db":
        counts = await PipelineRunner().init_stores()
        for name, count in counts.items():
            logger.info(f"Table {name}: {count} rows")
        code = EXIT_OK
    else:
        return EXIT_USAGE
    return code


def main(argv=None) -> int:
    # argparse exits with status 2 on invalid usage
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(run_command(args))


if __name__ == "__main__":
    sys.exit(main())
