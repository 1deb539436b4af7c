import io
from pathlib import Path

import pytest

from outreach.core.errors import InvalidRequestError
from outreach.core.uploads import safe_filename, staged_upload, store_upload


def test_staged_upload_is_removed_after_block(tmp_path: Path) -> None:
    with staged_upload(io.BytesIO(b"%PDF-1.4"), "../../cv.pdf", upload_dir=tmp_path, max_bytes=1024) as staged:
        assert staged is not None
        assert staged.path.read_bytes() == b"%PDF-1.4"
        assert staged.filename == "cv.pdf"
        path = staged.path

    assert not path.exists()
    assert list(tmp_path.iterdir()) == []


def test_staged_upload_is_removed_when_block_raises(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        with staged_upload(io.BytesIO(b"data"), "cv.pdf", upload_dir=tmp_path, max_bytes=1024):
            raise RuntimeError("send failed")

    assert list(tmp_path.iterdir()) == []


def test_oversized_upload_is_rejected_and_removed(tmp_path: Path) -> None:
    with pytest.raises(InvalidRequestError):
        with staged_upload(io.BytesIO(b"x" * 2048), "big.pdf", upload_dir=tmp_path, max_bytes=1024):
            pass

    assert list(tmp_path.iterdir()) == []


def test_no_stream_yields_none(tmp_path: Path) -> None:
    with staged_upload(None, None, upload_dir=tmp_path, max_bytes=1024) as staged:
        assert staged is None


def test_store_upload_keeps_file_under_unique_name(tmp_path: Path) -> None:
    path = store_upload(io.BytesIO(b"resume"), "cv.pdf", target_dir=tmp_path, max_bytes=1024)

    assert path.parent == tmp_path
    assert path.name.endswith("-cv.pdf")
    assert path.read_bytes() == b"resume"


def test_safe_filename_defaults() -> None:
    assert safe_filename(None) == "attachment"
    assert safe_filename("/etc/passwd") == "passwd"
