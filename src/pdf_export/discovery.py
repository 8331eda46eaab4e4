"""Enumerate the HTML documents eligible for export."""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Collection, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .detection import DocumentType, detect_document_type

LOGGER = logging.getLogger(__name__)

DOCUMENT_PATTERN = "*.html"


@dataclass(frozen=True, slots=True)
class Document:
    source_path: Path
    relative_path: PurePosixPath
    document_type: DocumentType

    @property
    def name(self) -> str:
        return self.relative_path.as_posix()


def is_excluded(relative_path: PurePosixPath, patterns: Iterable[str]) -> bool:
    posix = relative_path.as_posix()
    for pattern in patterns:
        if fnmatch.fnmatchcase(posix, pattern) or fnmatch.fnmatchcase(relative_path.name, pattern):
            return True
    return False


def iter_html_files(input_root: Path) -> Iterator[Path]:
    for path in sorted(input_root.rglob(DOCUMENT_PATTERN)):
        if path.is_file():
            yield path


def make_document(source: Path, input_root: Path, known_types: Collection[str]) -> Document:
    source = source.resolve()
    try:
        relative = PurePosixPath(source.relative_to(input_root.resolve()).as_posix())
    except ValueError:
        relative = PurePosixPath(source.name)
    return Document(
        source_path=source,
        relative_path=relative,
        document_type=detect_document_type(relative, known_types),
    )


def discover_documents(
    input_root: Path,
    exclude_patterns: Iterable[str] = (),
    known_types: Collection[str] = (),
) -> list[Document]:
    patterns = tuple(exclude_patterns)
    root = input_root.resolve()
    documents: list[Document] = []
    if not root.is_dir():
        LOGGER.warning("Input directory %s does not exist", root)
        return documents
    for path in iter_html_files(root):
        document = make_document(path, root, known_types)
        if is_excluded(document.relative_path, patterns):
            LOGGER.debug("Excluded %s", document.name)
            continue
        documents.append(document)
    LOGGER.info("Found %d HTML files to convert", len(documents))
    return documents


__all__ = ["Document", "discover_documents", "is_excluded", "make_document"]
