from __future__ import annotations

import argparse
import logging
import sys

from pos_ingest.config import settings
from pos_ingest.db import create_tables
from pos_ingest.services.ingest_service import IngestFailure, ingest_many


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description='Ingest POS journal, fuel, summary and pricebook files.')
    parser.add_argument('paths', nargs='+', help='Files to ingest, processed in the order given.')
    parser.add_argument('--create-tables', action='store_true', help='Create missing tables before ingesting.')
    parser.add_argument(
        '--deadline-seconds',
        type=float,
        default=settings.ingest_deadline_seconds,
        help='Stop starting new records in a file once this many seconds have passed.',
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action='store_true', help='Log debug output.')
    verbosity.add_argument('-q', '--quiet', action='store_true', help='Log warnings and errors only.')
    args = parser.parse_args(argv)

    _configure_logging(args.verbose, args.quiet)
    if args.create_tables:
        create_tables()

    failed = False
    for result in ingest_many(args.paths, deadline_seconds=args.deadline_seconds):
        if isinstance(result, IngestFailure):
            failed = True
            print(f'{result.file_name}: FAILED ({result.error})')
            continue
        if result.error_count:
            failed = True
        suffix = ' timed_out=true' if result.timed_out else ''
        print(
            f'{result.file_name}: kind={result.record_kind} processed={result.processed_count} '
            f'errors={result.error_count} skipped={result.skipped_count}{suffix}'
        )
    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
