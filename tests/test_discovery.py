from pathlib import Path

from pdf_export.discovery import discover_documents, is_excluded
from pdf_export.detection import DEFAULT


def build_site(root: Path) -> None:
    for relative in [
        "index.html",
        "time-series.html",
        "404.html",
        "dashboard/sales.html",
        "drafts/wip.html",
        "_observablehq/client.html",
        "_file/data.csv",
    ]:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("<html><body></body></html>", encoding="utf-8")


def test_discovers_html_recursively_minus_exclusions(tmp_path: Path) -> None:
    build_site(tmp_path)
    documents = discover_documents(tmp_path, ["404.html", "drafts/*", "_observablehq/*"], {"dashboard"})
    names = [document.name for document in documents]
    assert names == ["dashboard/sales.html", "index.html", "time-series.html"]
    typed = {document.name: document.document_type for document in documents}
    assert typed["dashboard/sales.html"].name == "dashboard"
    assert typed["time-series.html"] is DEFAULT


def test_discovery_is_idempotent(tmp_path: Path) -> None:
    build_site(tmp_path)
    first = discover_documents(tmp_path, ["drafts/*"])
    second = discover_documents(tmp_path, ["drafts/*"])
    assert set(first) == set(second)


def test_empty_or_missing_input_yields_no_documents(tmp_path: Path) -> None:
    assert discover_documents(tmp_path) == []
    assert discover_documents(tmp_path / "missing") == []


def test_exclusion_matches_file_name_or_relative_path() -> None:
    from pathlib import PurePosixPath

    assert is_excluded(PurePosixPath("a/b/404.html"), ["404.html"])
    assert is_excluded(PurePosixPath("drafts/x.html"), ["drafts/*"])
    assert not is_excluded(PurePosixPath("reports/x.html"), ["drafts/*"])
