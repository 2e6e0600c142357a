from __future__ import annotations

import logging
import tempfile
from dataclasses import asdict
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import sessionmaker

from pos_ingest.config import settings
from pos_ingest.db import SessionLocal
from pos_ingest.exceptions import FileStructureError
from pos_ingest.services.ingest_service import (
    IngestFailure,
    detect_record_kind,
    deadline_after,
    ingest,
    supported_record_kinds,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/process', tags=['process'])

CHUNK_SIZE = 1024 * 1024


class FileRequest(BaseModel):
    file_name: str = Field(min_length=1)


class BatchRequest(BaseModel):
    file_names: list[str] = Field(min_length=1)


def get_session_factory() -> sessionmaker:
    return SessionLocal


def _input_path(file_name: str) -> Path:
    # Only bare names are accepted; anything else would escape the input directory.
    return Path(settings.input_dir) / Path(file_name).name


def _allowed(file_name: str) -> bool:
    return Path(file_name).suffix.lower() in settings.allowed_upload_suffixes


def _ingest_or_422(path: Path, session_factory: sessionmaker) -> dict:
    try:
        result = ingest(
            path,
            session_factory=session_factory,
            deadline=deadline_after(settings.ingest_deadline_seconds),
        )
    except FileStructureError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {'success': True, **asdict(result)}


@router.post('/upload')
def upload_file(
    file: UploadFile = File(...),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    file_name = Path(file.filename or '').name
    if not file_name or not _allowed(file_name):
        raise HTTPException(
            status_code=400,
            detail=f'Only {", ".join(settings.allowed_upload_suffixes)} files are accepted',
        )

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    # Each request gets its own directory so concurrent uploads of one name stay apart.
    with tempfile.TemporaryDirectory(dir=upload_dir) as request_dir:
        target = Path(request_dir) / file_name
        written = 0
        with target.open('wb') as handle:
            while True:
                chunk = file.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > settings.max_upload_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=f'File exceeds {settings.max_upload_bytes} bytes',
                    )
                handle.write(chunk)
        logger.info('Received upload %s (%d bytes)', file_name, written)
        return _ingest_or_422(target, session_factory)


@router.post('/file')
def process_file(
    payload: FileRequest,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    path = _input_path(payload.file_name)
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f'File not found: {path.name}')
    return _ingest_or_422(path, session_factory)


@router.post('/batch')
def process_batch(
    payload: BatchRequest,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    results = []
    for file_name in payload.file_names:
        path = _input_path(file_name)
        if not path.is_file():
            failure = IngestFailure(file_name=path.name, error='File not found', record_kind=detect_record_kind(path.name))
            results.append({'success': False, **asdict(failure)})
            continue
        try:
            results.append(_ingest_or_422(path, session_factory))
        except HTTPException as exc:
            failure = IngestFailure(file_name=path.name, error=str(exc.detail), record_kind=detect_record_kind(path.name))
            results.append({'success': False, **asdict(failure)})

    return {
        'total_files': len(results),
        'successful': sum(1 for item in results if item['success']),
        'failed': sum(1 for item in results if not item['success']),
        'results': results,
    }


@router.get('/files')
def list_files():
    input_dir = Path(settings.input_dir)
    grouped: dict[str, list[str]] = {}
    if input_dir.is_dir():
        for path in sorted(input_dir.iterdir()):
            if path.is_file() and _allowed(path.name):
                grouped.setdefault(detect_record_kind(path.name), []).append(path.name)
    return {
        'input_dir': str(input_dir),
        'total_files': sum(len(names) for names in grouped.values()),
        'files_by_kind': grouped,
    }


@router.get('/status')
def processing_status():
    return {
        'status': 'ready',
        'supported_record_kinds': supported_record_kinds(),
        'allowed_upload_suffixes': list(settings.allowed_upload_suffixes),
        'max_upload_bytes': settings.max_upload_bytes,
    }
