from __future__ import annotations

import json
from typing import Any

from .errors import MappingDecodeError
from .mapping_parser import KarigarMappingEntry
from .workbook import ParsedMappingWorkbook


def encode_mapping(workbook: ParsedMappingWorkbook) -> bytes:
    payload: dict[str, Any] = {}
    for sheet_name, entries in workbook.items():
        payload[sheet_name] = {
            "entries": [
                {
                    "design": entry.design,
                    "designNormalized": entry.design_normalized,
                    "karigar": entry.karigar,
                    "genericName": entry.generic_name,
                }
                for entry in entries.values()
            ]
        }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode_mapping(blob: bytes) -> ParsedMappingWorkbook:
    """Decode a stored mapping blob.

    The stored "designNormalized" value is ignored: keys are rebuilt from the
    original design text with the current normalization rules, so blobs
    written by older versions pick up rule fixes without a migration.
    """
    try:
        payload = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MappingDecodeError(f"Failed to decode mapping blob: {exc}") from exc
    if not isinstance(payload, dict):
        raise MappingDecodeError("Failed to decode mapping blob: expected an object of sheets")

    workbook: ParsedMappingWorkbook = {}
    for sheet_name, sheet in payload.items():
        if not isinstance(sheet, dict) or not isinstance(sheet.get("entries"), list):
            continue
        entries: dict[str, KarigarMappingEntry] = {}
        for raw in sheet["entries"]:
            if not isinstance(raw, dict):
                continue
            entry = KarigarMappingEntry.create(
                design=str(raw.get("design") or ""),
                karigar=str(raw.get("karigar") or ""),
                generic_name=str(raw.get("genericName") or "") or None,
            )
            if not entry.design_normalized:
                continue
            entries[entry.design_normalized] = entry
        if entries:
            workbook[str(sheet_name)] = entries
    return workbook
