import os
from pathlib import Path, PurePosixPath

import pytest

from pdf_export.utils import atomic_copy, atomic_write_bytes, format_bytes, format_duration, output_path_for


def test_output_path_mirrors_relative_location(tmp_path: Path) -> None:
    target = output_path_for(PurePosixPath("reports/2024/q1.html"), tmp_path)
    assert target == tmp_path / "reports" / "2024" / "q1.pdf"


def test_format_bytes() -> None:
    assert format_bytes(512) == "512 B"
    assert format_bytes(2048) == "2.0 KB"
    assert format_bytes(5 * 1024 * 1024) == "5.0 MB"


def test_format_duration() -> None:
    assert format_duration(0.25) == "250ms"
    assert format_duration(12.34) == "12.3s"
    assert format_duration(125) == "2m 5s"


def test_atomic_write_and_copy(tmp_path: Path) -> None:
    source = tmp_path / "nested" / "a.pdf"
    atomic_write_bytes(source, b"%PDF")
    assert source.read_bytes() == b"%PDF"
    destination = tmp_path / "copy" / "a.pdf"
    atomic_copy(source, destination)
    assert destination.read_bytes() == b"%PDF"
    assert not list(destination.parent.glob("*.tmp"))


def test_failed_write_leaves_no_temp_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_fsync(fd: int) -> None:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "fsync", broken_fsync)
    target = tmp_path / "a.pdf"
    with pytest.raises(OSError):
        atomic_write_bytes(target, b"%PDF")
    assert list(tmp_path.iterdir()) == []
