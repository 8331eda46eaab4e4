import asyncio
from pathlib import Path, PurePosixPath

from fakes import FakeSession

from pdf_export.config import QRConfig, QRPosition
from pdf_export.detection import DEFAULT
from pdf_export.discovery import Document
from pdf_export.qr import QRAnnotator, build_target_url, page_path, render_qr_png

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def make_document(tmp_path: Path, relative: str) -> Document:
    return Document(source_path=tmp_path / relative, relative_path=PurePosixPath(relative), document_type=DEFAULT)


def enabled_qr(**kwargs) -> QRConfig:
    kwargs.setdefault("base_url", "https://reports.example.org/")
    return QRConfig(enabled=True, **kwargs)


def test_page_path_drops_suffix_and_index() -> None:
    assert page_path(PurePosixPath("reports/q1.html")) == "reports/q1"
    assert page_path(PurePosixPath("docs/index.html")) == "docs/"
    assert page_path(PurePosixPath("index.html")) == ""


def test_build_target_url() -> None:
    assert build_target_url("https://x.org/", PurePosixPath("a/b.html")) == "https://x.org/a/b"
    assert build_target_url("https://x.org/view?p={path}", PurePosixPath("a/b.html")) == "https://x.org/view?p=a/b"


def test_render_qr_png_produces_png() -> None:
    assert render_qr_png("https://x.org/a", QRConfig(error_correction="H")).startswith(PNG_SIGNATURE)


def test_disabled_qr_touches_nothing(tmp_path: Path) -> None:
    session = FakeSession()
    outcome = asyncio.run(QRAnnotator().annotate(session, make_document(tmp_path, "a.html"), QRConfig()))
    assert outcome.annotated is False
    assert outcome.reason is None
    assert session.calls == []


def test_annotate_injects_link(tmp_path: Path) -> None:
    session = FakeSession()
    qr = enabled_qr(position=QRPosition(corner="bottom-left", size=64, margin=10))
    annotator = QRAnnotator(encoder=lambda data, config: PNG_SIGNATURE + data.encode())
    outcome = asyncio.run(annotator.annotate(session, make_document(tmp_path, "reports/q1.html"), qr))
    assert outcome.annotated
    assert outcome.url == "https://reports.example.org/reports/q1"
    _, name, arg = session.calls[-1]
    assert name == "inject_qr"
    assert arg["dataUrl"].startswith("data:image/png;base64,")
    assert arg["corner"] == "bottom-left"
    assert arg["size"] == 64


def test_encoder_failure_is_a_warning_not_an_error(tmp_path: Path) -> None:
    def broken(data: str, config: QRConfig) -> bytes:
        raise ValueError("Invalid version")

    session = FakeSession()
    outcome = asyncio.run(QRAnnotator(encoder=broken).annotate(session, make_document(tmp_path, "a.html"), enabled_qr()))
    assert outcome.annotated is False
    assert outcome.reason == "Invalid version"
    assert session.calls == []


def test_injection_failure_is_reported(tmp_path: Path) -> None:
    session = FakeSession(fail_qr=True)
    outcome = asyncio.run(QRAnnotator().annotate(session, make_document(tmp_path, "a.html"), enabled_qr()))
    assert outcome.annotated is False
    assert "document.body is null" in (outcome.reason or "")


def test_unexpected_encoder_error_is_a_warning(tmp_path: Path) -> None:
    def broken(data: str, config: QRConfig) -> bytes:
        raise RuntimeError("cannot identify image mode")

    session = FakeSession()
    outcome = asyncio.run(QRAnnotator(encoder=broken).annotate(session, make_document(tmp_path, "a.html"), enabled_qr()))
    assert outcome.annotated is False
    assert outcome.reason == "cannot identify image mode"


def test_hanging_injection_is_bounded(tmp_path: Path) -> None:
    session = FakeSession(hang_scripts={"inject_qr"})
    annotate = QRAnnotator().annotate(session, make_document(tmp_path, "a.html"), enabled_qr(), timeout_s=0.1)
    outcome = asyncio.run(asyncio.wait_for(annotate, timeout=5))
    assert outcome.annotated is False
    assert outcome.reason == "injection did not finish within 0.1s"
