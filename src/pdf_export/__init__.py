"""Export statically built HTML pages to print-ready PDFs."""

from .config import ExportConfig, load_config, resolve_page_rules, resolve_qr_config
from .core import ExportService
from .discovery import Document, discover_documents
from .errors import ExportError
from .models import BatchResult, ConversionResult, Failure, Success

__all__ = [
    "BatchResult",
    "ConversionResult",
    "Document",
    "ExportConfig",
    "ExportError",
    "ExportService",
    "Failure",
    "Success",
    "discover_documents",
    "load_config",
    "resolve_page_rules",
    "resolve_qr_config",
]
