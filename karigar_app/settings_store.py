from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .mapping_parser import ALL_SHEETS, DEFAULT_MAPPING_SCAN_ROWS, SHEET_SCAN_MODES, MappingParserConfig
from .order_parser import DEFAULT_ORDER_SCAN_ROWS


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
MAX_SCAN_ROWS = 50


@dataclass
class AppSettings:
    db_path: str
    generic_name_required: bool = True
    sheet_scan_mode: str = ALL_SHEETS
    mapping_header_scan_rows: int = DEFAULT_MAPPING_SCAN_ROWS
    order_header_scan_rows: int = DEFAULT_ORDER_SCAN_ROWS
    fold_design_separators: bool = False
    log_level: str = "INFO"

    def mapping_config(self) -> MappingParserConfig:
        return MappingParserConfig(
            generic_name_required=self.generic_name_required,
            sheet_scan_mode=self.sheet_scan_mode,
            max_rows_to_scan=self.mapping_header_scan_rows,
        )


def app_data_dir() -> Path:
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / "Karigar"
    return Path.home() / ".karigar"


def default_settings_path() -> Path:
    return app_data_dir() / "settings.json"


def default_db_path() -> Path:
    return app_data_dir() / "karigar.db"


def default_log_dir() -> Path:
    return app_data_dir() / "logs"


def _scan_rows(value: object, default: int) -> int:
    try:
        rows = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if rows < 1 or rows > MAX_SCAN_ROWS:
        return default
    return rows


def load_settings(settings_path: Path | None = None) -> AppSettings:
    path = settings_path or default_settings_path()
    if not path.exists():
        return AppSettings(db_path=str(default_db_path()))
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        db_path = str(payload.get("db_path", "") or "").strip() or str(default_db_path())
        generic_name_required = bool(payload.get("generic_name_required", True))
        sheet_scan_mode = str(payload.get("sheet_scan_mode", ALL_SHEETS)).lower().strip()
        if sheet_scan_mode not in SHEET_SCAN_MODES:
            sheet_scan_mode = ALL_SHEETS
        mapping_header_scan_rows = _scan_rows(payload.get("mapping_header_scan_rows"), DEFAULT_MAPPING_SCAN_ROWS)
        order_header_scan_rows = _scan_rows(payload.get("order_header_scan_rows"), DEFAULT_ORDER_SCAN_ROWS)
        fold_design_separators = bool(payload.get("fold_design_separators", False))
        log_level = str(payload.get("log_level", "INFO")).upper().strip()
        if log_level not in LOG_LEVELS:
            log_level = "INFO"
        return AppSettings(
            db_path=db_path,
            generic_name_required=generic_name_required,
            sheet_scan_mode=sheet_scan_mode,
            mapping_header_scan_rows=mapping_header_scan_rows,
            order_header_scan_rows=order_header_scan_rows,
            fold_design_separators=fold_design_separators,
            log_level=log_level,
        )
    except Exception:
        return AppSettings(db_path=str(default_db_path()))


def save_settings(settings: AppSettings, settings_path: Path | None = None) -> None:
    path = settings_path or default_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    sheet_scan_mode = settings.sheet_scan_mode if settings.sheet_scan_mode in SHEET_SCAN_MODES else ALL_SHEETS
    log_level = settings.log_level.upper() if settings.log_level.upper() in LOG_LEVELS else "INFO"
    payload = {
        "db_path": settings.db_path,
        "generic_name_required": bool(settings.generic_name_required),
        "sheet_scan_mode": sheet_scan_mode,
        "mapping_header_scan_rows": _scan_rows(settings.mapping_header_scan_rows, DEFAULT_MAPPING_SCAN_ROWS),
        "order_header_scan_rows": _scan_rows(settings.order_header_scan_rows, DEFAULT_ORDER_SCAN_ROWS),
        "fold_design_separators": bool(settings.fold_design_separators),
        "log_level": log_level,
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
