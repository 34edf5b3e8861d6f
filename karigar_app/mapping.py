from __future__ import annotations

import re
from typing import Iterable, Sequence

from .text_normalize import normalize_cell_value, normalize_header


ORDER_NO = "order_no"
DESIGN = "design"
WEIGHT = "weight"
SIZE = "size"
QUANTITY = "quantity"
REMARKS = "remarks"
KARIGAR = "karigar"
GENERIC_NAME = "generic_name"

ORDER_FIELDS = (ORDER_NO, DESIGN, WEIGHT, SIZE, QUANTITY, REMARKS)
MAPPING_FIELDS = (DESIGN, KARIGAR, GENERIC_NAME)

# Adding aliases is safe; removing or renaming one breaks existing uploads.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    ORDER_NO: ("order no", "order no.", "orderno", "order number", "order #", "order", "sr no", "sr no.", "serial no"),
    DESIGN: ("design", "design code", "designcode", "design no", "design no.", "item", "item code", "product", "code", "style"),
    WEIGHT: ("weight", "wt", "wt.", "net wt", "net wt.", "net weight", "gross wt", "gross weight", "netwt"),
    SIZE: ("size", "sz", "sz.", "dimension", "dimensions", "dim"),
    QUANTITY: ("quantity", "qty", "qty.", "quan", "quan.", "count", "pieces", "pcs", "nos"),
    REMARKS: ("remarks", "remark", "remark's", "note", "notes", "comment", "comments", "description", "desc", "rmks"),
    KARIGAR: ("karigar", "artisan", "worker", "craftsman", "maker"),
    GENERIC_NAME: ("name", "product name", "generic", "generic name", "item name", "description"),
}

FIELD_LABELS = {
    ORDER_NO: "Order No",
    DESIGN: "Design",
    WEIGHT: "Weight",
    SIZE: "Size",
    QUANTITY: "Quantity",
    REMARKS: "Remarks",
    KARIGAR: "Karigar",
    GENERIC_NAME: "Generic Name",
}

MAPPING_FIELD_LABELS = {
    DESIGN: "Design Code",
    KARIGAR: "Karigar Name",
    GENERIC_NAME: "Generic Name",
}

# Ring-size and weight-ratio columns ("3+1", "2/3", "10 - 12") must never be read as product names.
NUMERIC_RATIO_PATTERN = re.compile(r"^[\d\s+\-:/]+$")


def matches_header_alias(header: object, aliases: Iterable[str]) -> bool:
    normalized = normalize_header(header)
    if not normalized:
        return False
    for alias in aliases:
        alias_norm = normalize_header(alias)
        if not alias_norm:
            continue
        if normalized == alias_norm or alias_norm in normalized:
            return True
    return False


def find_column_index(row: Sequence[object], aliases: Iterable[str], exclude: Iterable[int] = ()) -> int:
    alias_list = list(aliases)
    skipped = set(exclude)
    for idx, cell in enumerate(row):
        if idx in skipped:
            continue
        if matches_header_alias(cell, alias_list):
            return idx
    return -1


def find_exact_column_index(row: Sequence[object], aliases: Iterable[str], exclude: Iterable[int] = ()) -> int:
    skipped = set(exclude)
    normalized_row = [normalize_header(cell) for cell in row]
    for alias in aliases:
        alias_norm = normalize_header(alias)
        if not alias_norm:
            continue
        for idx, cell_norm in enumerate(normalized_row):
            if idx not in skipped and cell_norm == alias_norm:
                return idx
    return -1


def is_numeric_ratio(value: object) -> bool:
    text = normalize_cell_value(value)
    return bool(text) and bool(NUMERIC_RATIO_PATTERN.match(text))


def map_headers(row: Sequence[object], fields: Iterable[str]) -> dict[str, int]:
    """Resolve logical fields to column indices for one candidate header row.

    Fields are claimed in the given order and a claimed column is not offered
    to later fields, so "Karigar Name" cannot also be read as the "name"
    column. An exact alias match wins over a containment match, and among
    exact matches the earlier alias wins ("Order No" over "Sr No").
    """
    mapping: dict[str, int] = {}
    claimed: set[int] = set()
    for field in fields:
        aliases = COLUMN_ALIASES[field]
        idx = find_exact_column_index(row, aliases, exclude=claimed)
        if idx == -1:
            idx = find_column_index(row, aliases, exclude=claimed)
        if idx == -1:
            continue
        mapping[field] = idx
        claimed.add(idx)
    return mapping
