from pathlib import PurePosixPath

from pdf_export.detection import DEFAULT, DocumentType, detect_document_type, type_candidates


def test_type_candidates_prefer_stem_then_nearest_directory() -> None:
    assert type_candidates(PurePosixPath("reports/2024/q1.html")) == ["q1", "2024", "reports"]


def test_index_pages_are_typed_by_their_directory() -> None:
    assert type_candidates(PurePosixPath("dashboards/index.html")) == ["dashboards"]
    result = detect_document_type(PurePosixPath("dashboards/index.html"), {"dashboards"})
    assert result == DocumentType("dashboards")


def test_detect_document_type_by_file_name() -> None:
    result = detect_document_type(PurePosixPath("data-tables.html"), {"data-tables", "dashboard"})
    assert result.name == "data-tables"
    assert result.is_default is False


def test_unknown_documents_fall_back_to_default() -> None:
    result = detect_document_type(PurePosixPath("methods.html"), {"dashboard"})
    assert result is DEFAULT
    assert result.is_default
