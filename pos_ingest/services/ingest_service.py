from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from pos_ingest.config import settings
from pos_ingest.db import SessionLocal
from pos_ingest.exceptions import FileStructureError, RecordError
from pos_ingest.services.catalog_normalizer import catalog_plans
from pos_ingest.services.fuel_normalizer import fuel_plans
from pos_ingest.services.generic_normalizer import generic_plans
from pos_ingest.services.plans import PlanContext, WritePlan
from pos_ingest.services.summary_normalizer import summary_plans
from pos_ingest.services.transaction_writer import journal_plans
from pos_ingest.services.tree import parse_csv, parse_xml

logger = logging.getLogger(__name__)

CATALOG_KIND = 'PRICEBOOK'
CSV_KIND = 'CSV'
UNKNOWN_KIND = 'UNKNOWN'

RECORD_KIND_PREFIX = re.compile(r'^([a-z]{3})', re.IGNORECASE)

Normalizer = Callable[..., Iterator[WritePlan]]

NORMALIZERS: dict[str, Normalizer] = {
    'CPJ': journal_plans,
    'FCF': fuel_plans,
    'SUM': summary_plans,
    CATALOG_KIND: catalog_plans,
}


@dataclass
class IngestResult:
    record_kind: str
    file_name: str
    processed_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    timed_out: bool = False


@dataclass
class IngestFailure:
    file_name: str
    error: str
    record_kind: str | None = None


def detect_record_kind(file_name: str) -> str:
    """``.csv`` files are catalogs when named so; anything else goes by its three-letter prefix."""
    name = Path(file_name).name.lower()
    if name.endswith('.csv'):
        return CATALOG_KIND if 'pricebook' in name else CSV_KIND
    match = RECORD_KIND_PREFIX.match(name)
    return match.group(1).upper() if match else UNKNOWN_KIND


def supported_record_kinds() -> list[str]:
    return sorted(NORMALIZERS)


def deadline_after(seconds: float | None) -> float | None:
    if seconds is None:
        return None
    return time.monotonic() + seconds


def _read(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FileStructureError(f'Cannot read {path}: {exc}') from exc


def _run_plan(session_factory: sessionmaker, plan: WritePlan) -> None:
    try:
        with session_factory.begin() as db:
            plan.execute(db)
    except Exception as exc:
        raise RecordError(plan.label, exc) from exc


def ingest(
    file_path: str | Path,
    *,
    session_factory: sessionmaker | None = None,
    deadline: float | None = None,
    created_by: str | None = None,
) -> IngestResult:
    """Ingest one file, one transaction per record.

    ``deadline`` is a ``time.monotonic()`` value; once it passes no further
    record is started and the partial counts are returned with ``timed_out``
    set. Only ``FileStructureError`` escapes.
    """
    path = Path(file_path)
    record_kind = detect_record_kind(path.name)
    session_factory = session_factory or SessionLocal
    if deadline is None:
        deadline = deadline_after(settings.ingest_deadline_seconds)

    normalizer = NORMALIZERS.get(record_kind)
    if normalizer is None:
        logger.info('No dedicated normalizer for %s files; using generic normalizer for %s', record_kind, path.name)
        normalizer = generic_plans
    else:
        logger.info('Processing %s file %s', record_kind, path.name)

    data = _read(path)
    document = parse_csv(data) if path.suffix.lower() == '.csv' else parse_xml(data)
    context = PlanContext(
        source_file=path.name,
        record_kind=record_kind,
        created_by=created_by or settings.record_created_by,
    )

    result = IngestResult(record_kind=record_kind, file_name=path.name)
    for plan in normalizer(document, context):
        if deadline is not None and time.monotonic() >= deadline:
            result.timed_out = True
            logger.warning('Deadline reached for %s; stopping before %s', path.name, plan.label)
            break
        if plan.skip_reason:
            result.skipped_count += 1
            logger.debug('Skipped %s: %s', plan.label, plan.skip_reason)
            continue
        try:
            _run_plan(session_factory, plan)
        except RecordError as exc:
            result.error_count += 1
            logger.error('Failed %s in %s: %s', exc.label, path.name, exc.cause, exc_info=exc.cause)
            continue
        result.processed_count += 1

    logger.info(
        '%s processing of %s completed: %d processed, %d errors, %d skipped%s',
        record_kind,
        path.name,
        result.processed_count,
        result.error_count,
        result.skipped_count,
        ' (timed out)' if result.timed_out else '',
    )
    return result


def ingest_many(
    file_paths: Iterable[str | Path],
    *,
    session_factory: sessionmaker | None = None,
    deadline_seconds: float | None = None,
    created_by: str | None = None,
) -> list[IngestResult | IngestFailure]:
    """Ingest files in order; a file that cannot be ingested becomes an ``IngestFailure`` entry."""
    results: list[IngestResult | IngestFailure] = []
    for file_path in file_paths:
        path = Path(file_path)
        try:
            results.append(
                ingest(
                    path,
                    session_factory=session_factory,
                    deadline=deadline_after(deadline_seconds),
                    created_by=created_by,
                )
            )
        except FileStructureError as exc:
            logger.error('Failed to ingest %s: %s', path.name, exc)
            results.append(IngestFailure(file_name=path.name, error=str(exc), record_kind=detect_record_kind(path.name)))
        except Exception as exc:
            logger.exception('Unexpected failure ingesting %s', path.name)
            results.append(IngestFailure(file_name=path.name, error=str(exc), record_kind=detect_record_kind(path.name)))
    return results
