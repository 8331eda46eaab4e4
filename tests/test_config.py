import json
from pathlib import Path

import pytest

from pdf_export.config import (
    ExportConfig,
    Margin,
    PageRules,
    build_config,
    dump_config,
    load_config,
    resolve_page_rules,
    resolve_qr_config,
)
from pdf_export.detection import DEFAULT, DocumentType
from pdf_export.errors import ConfigError


def write_json(path: Path, payload: dict) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_dashboard_override_wins_and_report_keeps_defaults() -> None:
    config = build_config(
        {
            "defaults": {"format": "A4"},
            "documents": {"dashboard": {"format": "A3", "orientation": "landscape"}},
        }
    )
    dashboard = resolve_page_rules(config, DocumentType("dashboard"))
    assert dashboard.format == "A3"
    assert dashboard.orientation == "landscape"

    report = resolve_page_rules(config, DocumentType("report"))
    assert report.format == "A4"
    assert report.orientation == "portrait"
    assert resolve_page_rules(config, DEFAULT) == config.defaults


def test_fields_missing_from_override_keep_default_values() -> None:
    config = build_config(
        {
            "defaults": {"format": "Letter", "printBackground": False, "timeout": 45000, "margin": "2cm"},
            "documents": {"slides": {"margin": {"top": "5mm"}, "scale": 0.8}},
        }
    )
    rules = resolve_page_rules(config, DocumentType("slides"))
    assert rules.format == "Letter"
    assert rules.print_background is False
    assert rules.timeout_ms == 45000
    assert rules.scale == 0.8
    # shallow merge: the override's margin replaces the default margin wholesale
    assert rules.margin == Margin(top="5mm")


def test_qr_overrides_merge_with_top_level_fields() -> None:
    config = build_config(
        {
            "defaults": {},
            "qrCode": {
                "enabled": True,
                "baseUrl": "https://reports.example.org",
                "position": {"corner": "top-right", "size": 90},
                "documents": {"dashboard": {"position": {"corner": "bottom-left", "size": 60}}},
            },
        }
    )
    base = resolve_qr_config(config, DocumentType("methods"))
    assert base.enabled is True
    assert base.position.corner == "top-right"
    assert base.position.size == 90

    dashboard = resolve_qr_config(config, DocumentType("dashboard"))
    assert dashboard.base_url == "https://reports.example.org"
    assert dashboard.position.corner == "bottom-left"
    assert dashboard.position.size == 60
    assert config.document_types == frozenset({"dashboard"})


def test_missing_defaults_is_fatal() -> None:
    with pytest.raises(ConfigError) as exc:
        build_config({"documents": {}})
    assert "defaults" in str(exc.value)


@pytest.mark.parametrize(
    "payload",
    [
        {"defaults": {"landscape": "yes"}},
        {"defaults": {"timeout": "30s"}},
        {"defaults": {"orientation": "sideways"}},
        {"defaults": {}, "qrCode": {"position": {"corner": "middle"}}},
        {"defaults": {}, "excludeFiles": 5},
        {"defaults": []},
    ],
)
def test_malformed_values_raise_config_error(payload: dict) -> None:
    with pytest.raises(ConfigError):
        build_config(payload)


def test_load_config_reads_json(tmp_path: Path) -> None:
    path = write_json(
        tmp_path / "config.json",
        {
            "defaults": {"format": "A4", "displayHeaderFooter": True},
            "waitConditions": {"waitForSVGs": False, "additionalWaitTime": 500},
            "excludeFiles": ["404.html", "drafts/*"],
            "publish": {"directory": "site/src"},
        },
    )
    config = load_config(path)
    assert config.defaults.display_header_footer is True
    assert config.wait.wait_for_svgs is False
    assert config.wait.additional_wait_ms == 500
    assert config.exclude_files == ("404.html", "drafts/*")
    assert config.publish.directory == tmp_path.resolve() / "site" / "src"


def test_load_config_reads_toml(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        '[defaults]\nformat = "A4"\n\n[documents.dashboard]\nformat = "A3"\nlandscape = true\n',
        encoding="utf-8",
    )
    config = load_config(path)
    rules = resolve_page_rules(config, DocumentType("dashboard"))
    assert rules.format == "A3"
    assert rules.landscape is True


def test_unreadable_or_malformed_file_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(broken)


def test_load_config_without_file_uses_builtin_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config()
    assert config == ExportConfig()
    assert config.defaults == PageRules()


def test_config_is_immutable() -> None:
    config = build_config({"defaults": {}, "documents": {"dashboard": {"format": "A3"}}})
    with pytest.raises(AttributeError):
        config.language = "fr"  # type: ignore[misc]
    with pytest.raises(TypeError):
        config.documents["dashboard"]["format"] = "A5"  # type: ignore[index]


def test_dump_config_is_json() -> None:
    config = build_config({"defaults": {}, "documents": {"dashboard": {"margin": "1in"}}})
    payload = json.loads(dump_config(config))
    assert payload["documents"]["dashboard"]["margin"]["top"] == "1in"
    resolved = json.loads(dump_config(config, DocumentType("dashboard")))
    assert resolved["documentType"] == "dashboard"
    assert resolved["page"]["margin"]["left"] == "1in"
