from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field, is_dataclass, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .detection import DocumentType
from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

CONFIG_FILE = Path("pdf-export.json")

CORNERS = ("top-left", "top-right", "bottom-left", "bottom-right")
ORIENTATIONS = ("portrait", "landscape")
ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")

DEFAULT_STRIP_SELECTORS: tuple[str, ...] = (
    ".observablehq-header",
    ".observablehq-footer",
    ".observablehq-sidebar",
    ".observablehq-sidebar-toggle",
    ".observablehq-toc",
    ".observablehq-toc-toggle",
    ".observablehq-search",
    ".observablehq-theme-toggle",
    ".observablehq-pager",
    "#observablehq-sidebar-toggle",
    "#observablehq-toc-toggle",
)


@dataclass(frozen=True, slots=True)
class Margin:
    top: str = "0"
    right: str = "0"
    bottom: str = "0"
    left: str = "0"

    @classmethod
    def uniform(cls, value: str) -> "Margin":
        return cls(top=value, right=value, bottom=value, left=value)

    def as_dict(self) -> dict[str, str]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}


@dataclass(frozen=True, slots=True)
class PageRules:
    format: str = "A4"
    landscape: bool = False
    margin: Margin = field(default_factory=lambda: Margin.uniform("1cm"))
    print_background: bool = True
    display_header_footer: bool = False
    header_template: str = ""
    footer_template: str = ""
    prefer_css_page_size: bool = False
    scale: float = 1.0
    timeout_ms: int = 30_000
    css: str | None = None

    @property
    def orientation(self) -> str:
        return "landscape" if self.landscape else "portrait"


@dataclass(frozen=True, slots=True)
class QRPosition:
    corner: str = "top-right"
    size: int = 80
    margin: int = 20


@dataclass(frozen=True, slots=True)
class QRConfig:
    enabled: bool = False
    base_url: str = ""
    position: QRPosition = field(default_factory=QRPosition)
    error_correction: str = "M"
    show_link: bool = True


@dataclass(frozen=True, slots=True)
class WaitRules:
    wait_for_svgs: bool = True
    wait_for_images: bool = True
    additional_wait_ms: int = 0
    render_timeout_ms: int = 30_000
    condition_timeout_ms: int = 10_000
    poll_interval_ms: int = 100
    loading_selector: str = "observablehq-loading"
    cell_selector: str = '[id^="cell-"]'


@dataclass(frozen=True, slots=True)
class Viewport:
    width: int = 1200
    height: int = 800
    device_scale_factor: float = 2.0


@dataclass(frozen=True, slots=True)
class PublishConfig:
    enabled: bool = True
    directory: Path | None = None


def _frozen_overrides() -> Mapping[str, Mapping[str, Any]]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class ExportConfig:
    defaults: PageRules = field(default_factory=PageRules)
    documents: Mapping[str, Mapping[str, Any]] = field(default_factory=_frozen_overrides)
    qr_code: QRConfig = field(default_factory=QRConfig)
    qr_documents: Mapping[str, Mapping[str, Any]] = field(default_factory=_frozen_overrides)
    wait: WaitRules = field(default_factory=WaitRules)
    exclude_files: tuple[str, ...] = ()
    viewport: Viewport = field(default_factory=Viewport)
    language: str = "en"
    strip_selectors: tuple[str, ...] = DEFAULT_STRIP_SELECTORS
    compact_table_max_rows: int = 6
    publish: PublishConfig = field(default_factory=PublishConfig)
    run_log: str | None = "export-log.jsonl"
    summary_csv: str | None = "summary.csv"

    @property
    def document_types(self) -> frozenset[str]:
        return frozenset(self.documents) | frozenset(self.qr_documents)


# Resolution


def resolve_page_rules(config: ExportConfig, document_type: DocumentType) -> PageRules:
    """Shallow-merge the defaults with the override for *document_type*."""

    if document_type.is_default:
        return config.defaults
    override = config.documents.get(document_type.name)
    if not override:
        return config.defaults
    return replace(config.defaults, **override)


def resolve_qr_config(config: ExportConfig, document_type: DocumentType) -> QRConfig:
    if document_type.is_default:
        return config.qr_code
    override = config.qr_documents.get(document_type.name)
    if not override:
        return config.qr_code
    return replace(config.qr_code, **override)


# Value coercion


def _as_bool(value: object, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def _as_int(value: object, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"'{key}' must not be negative, got {value!r}")
    return int(value)


def _as_float(value: object, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    return float(value)


def _as_str(value: object, key: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' must be a string, got {value!r}")
    return value


def _as_optional_str(value: object, key: str) -> str | None:
    if value is None or value == "":
        return None
    return _as_str(value, key)


def _as_mapping(value: object, key: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a table/object, got {value!r}")
    return value


def _as_str_tuple(value: object, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"'{key}' must be a list of strings, got {value!r}")
    return tuple(_as_str(item, key) for item in value)


def _as_margin(value: object, key: str) -> Margin:
    if isinstance(value, str):
        return Margin.uniform(value)
    data = _as_mapping(value, key)
    sides = {side: _as_str(data[side], f"{key}.{side}") for side in ("top", "right", "bottom", "left") if side in data}
    return Margin(**sides)


def _as_orientation(value: object, key: str) -> bool:
    text = _as_str(value, key).lower()
    if text not in ORIENTATIONS:
        raise ConfigError(f"'{key}' must be one of {', '.join(ORIENTATIONS)}, got {value!r}")
    return text == "landscape"


def _as_corner(value: object, key: str) -> str:
    text = _as_str(value, key)
    if text not in CORNERS:
        raise ConfigError(f"'{key}' must be one of {', '.join(CORNERS)}, got {value!r}")
    return text


def _as_error_correction(value: object, key: str) -> str:
    text = _as_str(value, key).upper()
    if text not in ERROR_CORRECTION_LEVELS:
        raise ConfigError(f"'{key}' must be one of {', '.join(ERROR_CORRECTION_LEVELS)}, got {value!r}")
    return text


def _as_position(value: object, key: str) -> QRPosition:
    data = _as_mapping(value, key)
    return QRPosition(**_collect(data, _POSITION_KEYS, key))


Converter = Callable[[object, str], Any]

_PAGE_KEYS: dict[str, tuple[str, Converter]] = {
    "format": ("format", _as_str),
    "landscape": ("landscape", _as_bool),
    "orientation": ("landscape", _as_orientation),
    "margin": ("margin", _as_margin),
    "printBackground": ("print_background", _as_bool),
    "displayHeaderFooter": ("display_header_footer", _as_bool),
    "headerTemplate": ("header_template", _as_str),
    "footerTemplate": ("footer_template", _as_str),
    "preferCSSPageSize": ("prefer_css_page_size", _as_bool),
    "scale": ("scale", _as_float),
    "timeout": ("timeout_ms", _as_int),
    "css": ("css", _as_optional_str),
}

_POSITION_KEYS: dict[str, tuple[str, Converter]] = {
    "corner": ("corner", _as_corner),
    "size": ("size", _as_int),
    "margin": ("margin", _as_int),
}

_QR_KEYS: dict[str, tuple[str, Converter]] = {
    "enabled": ("enabled", _as_bool),
    "baseUrl": ("base_url", _as_str),
    "baseURL": ("base_url", _as_str),
    "position": ("position", _as_position),
    "errorCorrection": ("error_correction", _as_error_correction),
    "showLink": ("show_link", _as_bool),
}

_WAIT_KEYS: dict[str, tuple[str, Converter]] = {
    "waitForSVGs": ("wait_for_svgs", _as_bool),
    "waitForImages": ("wait_for_images", _as_bool),
    "additionalWaitTime": ("additional_wait_ms", _as_int),
    "renderTimeout": ("render_timeout_ms", _as_int),
    "conditionTimeout": ("condition_timeout_ms", _as_int),
    "pollInterval": ("poll_interval_ms", _as_int),
    "loadingSelector": ("loading_selector", _as_str),
    "cellSelector": ("cell_selector", _as_str),
}

_VIEWPORT_KEYS: dict[str, tuple[str, Converter]] = {
    "width": ("width", _as_int),
    "height": ("height", _as_int),
    "deviceScaleFactor": ("device_scale_factor", _as_float),
}


def _collect(data: Mapping[str, Any], keys: Mapping[str, tuple[str, Converter]], where: str) -> dict[str, Any]:
    """Translate the keys present in *data* into dataclass field values.

    Both the camelCase file keys and the Python field names are accepted.
    """

    aliases = dict(keys)
    for name, converter in keys.values():
        aliases.setdefault(name, (name, converter))
    collected: dict[str, Any] = {}
    for key, value in data.items():
        entry = aliases.get(key)
        if entry is None:
            LOGGER.warning("Ignoring unknown configuration key '%s.%s'", where, key)
            continue
        name, converter = entry
        collected[name] = converter(value, f"{where}.{key}")
    return collected


def _build_overrides(
    data: object, keys: Mapping[str, tuple[str, Converter]], where: str
) -> Mapping[str, Mapping[str, Any]]:
    if data is None:
        return MappingProxyType({})
    table = _as_mapping(data, where)
    overrides = {
        str(name): MappingProxyType(_collect(_as_mapping(value, f"{where}.{name}"), keys, f"{where}.{name}"))
        for name, value in table.items()
    }
    return MappingProxyType(overrides)


def _build_qr(data: object) -> tuple[QRConfig, Mapping[str, Mapping[str, Any]]]:
    if data is None:
        return QRConfig(), MappingProxyType({})
    table = dict(_as_mapping(data, "qrCode"))
    documents = _build_overrides(table.pop("documents", None), _QR_KEYS, "qrCode.documents")
    return QRConfig(**_collect(table, _QR_KEYS, "qrCode")), documents


def _build_wait(data: object) -> WaitRules:
    if data is None:
        return WaitRules()
    return WaitRules(**_collect(_as_mapping(data, "waitConditions"), _WAIT_KEYS, "waitConditions"))


def _build_viewport(data: object) -> Viewport:
    if data is None:
        return Viewport()
    return Viewport(**_collect(_as_mapping(data, "viewport"), _VIEWPORT_KEYS, "viewport"))


def _build_publish(data: object, base_dir: Path | None) -> PublishConfig:
    if data is None:
        return PublishConfig()
    table = _as_mapping(data, "publish")
    enabled = _as_bool(table.get("enabled", True), "publish.enabled")
    directory: Path | None = None
    raw_directory = _as_optional_str(table.get("directory"), "publish.directory")
    if raw_directory:
        directory = Path(raw_directory).expanduser()
        if not directory.is_absolute() and base_dir is not None:
            directory = base_dir / directory
    return PublishConfig(enabled=enabled, directory=directory)


def build_config(raw: Mapping[str, Any], *, base_dir: Path | None = None) -> ExportConfig:
    """Build an :class:`ExportConfig` from a parsed configuration mapping.

    Raises :class:`ConfigError` when the mapping is malformed. The
    ``defaults`` table is required; every other section is optional.
    """

    if "defaults" not in raw:
        raise ConfigError("Configuration is missing the required 'defaults' table")
    defaults = PageRules(**_collect(_as_mapping(raw["defaults"], "defaults"), _PAGE_KEYS, "defaults"))
    qr_code, qr_documents = _build_qr(raw.get("qrCode"))
    max_rows = raw.get("compactTableMaxRows")
    return ExportConfig(
        defaults=defaults,
        documents=_build_overrides(raw.get("documents"), _PAGE_KEYS, "documents"),
        qr_code=qr_code,
        qr_documents=qr_documents,
        wait=_build_wait(raw.get("waitConditions")),
        exclude_files=_as_str_tuple(raw.get("excludeFiles", []), "excludeFiles"),
        viewport=_build_viewport(raw.get("viewport")),
        language=_as_str(raw.get("language", "en"), "language"),
        strip_selectors=(
            _as_str_tuple(raw["stripSelectors"], "stripSelectors")
            if "stripSelectors" in raw
            else DEFAULT_STRIP_SELECTORS
        ),
        compact_table_max_rows=6 if max_rows is None else _as_int(max_rows, "compactTableMaxRows"),
        publish=_build_publish(raw.get("publish"), base_dir),
        run_log=_as_optional_str(raw.get("runLog", "export-log.jsonl"), "runLog"),
        summary_csv=_as_optional_str(raw.get("summaryCsv", "summary.csv"), "summaryCsv"),
    )


def _read_config_file(path: Path) -> Mapping[str, Any]:
    try:
        if path.suffix.lower() == ".toml":
            with path.open("rb") as handle:
                raw = tomllib.load(handle)
        else:
            raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration {path}: {exc}") from exc
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Malformed configuration {path}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Configuration {path} must contain an object at the top level")
    return raw


def load_config(path: Path | None = None) -> ExportConfig:
    """Load the export configuration.

    Without an explicit *path* the ``pdf-export.json`` file in the working
    directory is used when present, otherwise the built-in defaults apply.
    """

    if path is None:
        if not CONFIG_FILE.exists():
            return ExportConfig()
        path = CONFIG_FILE
    raw = _read_config_file(path)
    return build_config(raw, base_dir=path.resolve().parent)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        return _jsonable(asdict(value))
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def dump_config(config: ExportConfig, document_type: DocumentType | None = None) -> str:
    if document_type is not None:
        payload: dict[str, Any] = {
            "documentType": document_type.name,
            "page": asdict(resolve_page_rules(config, document_type)),
            "qrCode": asdict(resolve_qr_config(config, document_type)),
        }
    else:
        payload = {
            "defaults": asdict(config.defaults),
            "documents": config.documents,
            "qrCode": asdict(config.qr_code),
            "qrDocuments": config.qr_documents,
            "waitConditions": asdict(config.wait),
            "excludeFiles": config.exclude_files,
            "viewport": asdict(config.viewport),
            "language": config.language,
            "stripSelectors": config.strip_selectors,
            "compactTableMaxRows": config.compact_table_max_rows,
            "publish": asdict(config.publish),
            "runLog": config.run_log,
            "summaryCsv": config.summary_csv,
        }
    return json.dumps(_jsonable(payload), indent=2)


__all__ = [
    "ExportConfig",
    "Margin",
    "PageRules",
    "PublishConfig",
    "QRConfig",
    "QRPosition",
    "Viewport",
    "WaitRules",
    "build_config",
    "dump_config",
    "load_config",
    "resolve_page_rules",
    "resolve_qr_config",
]
