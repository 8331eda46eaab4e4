from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from pathlib import PurePosixPath


DEFAULT_TYPE_NAME = "default"
INDEX_STEM = "index"


@dataclass(frozen=True, slots=True)
class DocumentType:
    """Category used to select page and QR overrides.

    Either one of the type names declared in the configuration or the
    explicit ``DEFAULT`` variant, which never matches an override.
    """

    name: str
    is_default: bool = False

    def __str__(self) -> str:
        return self.name


DEFAULT = DocumentType(DEFAULT_TYPE_NAME, is_default=True)


def type_candidates(relative_path: PurePosixPath) -> list[str]:
    """Names a document may be typed by, most specific first."""

    candidates: list[str] = []
    if relative_path.stem != INDEX_STEM:
        candidates.append(relative_path.stem)
    candidates.extend(reversed(relative_path.parent.parts))
    return candidates


def detect_document_type(relative_path: PurePosixPath, known_types: Collection[str]) -> DocumentType:
    for candidate in type_candidates(relative_path):
        if candidate in known_types:
            return DocumentType(candidate)
    return DEFAULT
