from __future__ import annotations

import logging
import tempfile
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from outreach.core.errors import InvalidRequestError

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


@dataclass(frozen=True, slots=True)
class StagedFile:
    path: Path
    filename: str


def safe_filename(filename: str | None) -> str:
    name = Path(filename or "").name.strip()
    return name or "attachment"


def copy_limited(source: BinaryIO, target: BinaryIO, max_bytes: int) -> int:
    written = 0
    while chunk := source.read(_CHUNK):
        written += len(chunk)
        if written > max_bytes:
            raise InvalidRequestError(f"File exceeds the {max_bytes // (1024 * 1024)}MB upload limit")
        target.write(chunk)
    return written


@contextmanager
def staged_upload(
    stream: BinaryIO | None,
    filename: str | None,
    *,
    upload_dir: Path,
    max_bytes: int,
) -> Iterator[StagedFile | None]:
    """Write an uploaded stream to a request-scoped temp file.

    The file is removed when the block exits, whether the body returned or raised.
    Yields ``None`` when there is no upload.
    """
    if stream is None:
        yield None
        return

    upload_dir.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(dir=upload_dir, prefix="upload-", delete=False)
    path = Path(handle.name)
    try:
        with handle:
            copy_limited(stream, handle, max_bytes)
        yield StagedFile(path=path, filename=safe_filename(filename))
    finally:
        path.unlink(missing_ok=True)
        logger.debug("Removed staged upload %s", path.name)


def store_upload(stream: BinaryIO, filename: str | None, *, target_dir: Path, max_bytes: int) -> Path:
    """Persist an upload under ``target_dir``; a partial file is removed on failure."""
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"{uuid.uuid4().hex}-{safe_filename(filename)}"
    try:
        with target.open("wb") as handle:
            copy_limited(stream, handle, max_bytes)
    except BaseException:
        target.unlink(missing_ok=True)
        raise
    return target


def discard(path: str | Path) -> None:
    Path(path).unlink(missing_ok=True)
