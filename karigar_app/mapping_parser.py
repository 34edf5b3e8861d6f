from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Iterable, Sequence

from .errors import format_headers
from .header_detection import DETECTED_HEADER_SAMPLE, HeaderDetectionFailure, HeaderSpec, detect_header
from .mapping import DESIGN, GENERIC_NAME, KARIGAR, MAPPING_FIELD_LABELS, MAPPING_FIELDS, is_numeric_ratio
from .text_normalize import normalize_cell_value, normalize_design_code, normalize_header


logger = logging.getLogger(__name__)

ALL_SHEETS = "all_sheets"
PRIORITY_ONLY = "priority_only"
SHEET_SCAN_MODES = (ALL_SHEETS, PRIORITY_ONLY)
DEFAULT_MAPPING_SCAN_ROWS = 10

PDF_CELL_SPLIT = re.compile(r"\t|\||;|\s{2,}")
PDF_WORD_SPLIT = re.compile(r"\s+")


@dataclass(frozen=True)
class MappingParserConfig:
    """Selects the mapping file variant once, at the call site.

    generic_name_required=True is the strict three-column format (Design,
    Karigar, Generic Name); False is the looser two-column format where the
    Generic Name column is optional.
    """

    generic_name_required: bool = True
    sheet_scan_mode: str = ALL_SHEETS
    max_rows_to_scan: int = DEFAULT_MAPPING_SCAN_ROWS

    def __post_init__(self) -> None:
        if self.sheet_scan_mode not in SHEET_SCAN_MODES:
            raise ValueError(f"Unknown sheet scan mode: {self.sheet_scan_mode}")
        if self.max_rows_to_scan < 1:
            raise ValueError("max_rows_to_scan must be at least 1")

    @property
    def required_fields(self) -> tuple[str, ...]:
        if self.generic_name_required:
            return (DESIGN, GENERIC_NAME, KARIGAR)
        return (DESIGN, KARIGAR)

    def header_spec(self) -> HeaderSpec:
        return HeaderSpec(
            fields=MAPPING_FIELDS,
            key_fields=(DESIGN, KARIGAR),
            min_non_empty_cells=3 if self.generic_name_required else 2,
        )


@dataclass(frozen=True)
class KarigarMappingEntry:
    design: str
    design_normalized: str
    karigar: str
    generic_name: str | None = None

    @classmethod
    def create(cls, design: str, karigar: str, generic_name: str | None = None) -> "KarigarMappingEntry":
        return cls(
            design=design,
            design_normalized=normalize_design_code(design),
            karigar=karigar,
            generic_name=generic_name or None,
        )


@dataclass
class MappingSheetResult:
    sheet_name: str
    entries: dict[str, KarigarMappingEntry] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.entries)


def parse_mapping_sheet(
    sheet_name: str, rows: Sequence[Sequence[object]], config: MappingParserConfig | None = None
) -> MappingSheetResult:
    config = config or MappingParserConfig()
    if not rows:
        return _failed(sheet_name, "Sheet is empty.")

    detection = detect_header(rows, config.header_spec(), max_rows_to_scan=config.max_rows_to_scan)
    if isinstance(detection, HeaderDetectionFailure):
        return _header_failure(sheet_name, config, detection.fields_seen, detection.detected_headers)
    missing = detection.missing(config.required_fields)
    if missing:
        return _header_failure(
            sheet_name,
            config,
            set(detection.column_indices),
            [header for header in detection.headers if header],
        )

    design_col = detection.column(DESIGN)
    karigar_col = detection.column(KARIGAR)
    name_col = detection.column(GENERIC_NAME)
    header_labels = {
        normalize_header(detection.headers[design_col]),
        normalize_header(detection.headers[karigar_col]),
        DESIGN,
        KARIGAR,
    }

    entries: dict[str, KarigarMappingEntry] = {}
    for row in rows[detection.row_index + 1 :]:
        design = _cell(row, design_col)
        karigar = _cell(row, karigar_col)
        if not design or not karigar:
            continue
        # A repeated header row inside the data block.
        if normalize_header(design) in header_labels or normalize_header(karigar) in header_labels:
            continue
        generic_name = _cell(row, name_col) if name_col >= 0 else ""
        if is_numeric_ratio(generic_name):
            generic_name = ""
        entry = KarigarMappingEntry.create(design, karigar, generic_name)
        if not entry.design_normalized:
            continue
        entries[entry.design_normalized] = entry

    if not entries:
        return _failed(
            sheet_name,
            f'Sheet "{sheet_name}": header row found at row {detection.row_index + 1} '
            "but no rows with both a design code and a karigar name.",
        )
    logger.debug("Sheet %r: %d mapping entries (header row %d)", sheet_name, len(entries), detection.row_index + 1)
    return MappingSheetResult(sheet_name=sheet_name, entries=entries)


def _cell(row: Sequence[object], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return normalize_cell_value(row[index])


def _failed(sheet_name: str, error: str) -> MappingSheetResult:
    logger.warning("Mapping sheet %r skipped: %s", sheet_name, error)
    return MappingSheetResult(sheet_name=sheet_name, entries={}, error=error)


def _header_failure(
    sheet_name: str, config: MappingParserConfig, fields_found: Iterable[str], detected_headers: list[str]
) -> MappingSheetResult:
    found = set(fields_found)
    missing = [MAPPING_FIELD_LABELS[name] for name in config.required_fields if name not in found]
    if missing:
        problem = f"could not find column(s): {', '.join(missing)}"
    else:
        labels = ", ".join(MAPPING_FIELD_LABELS[name] for name in config.required_fields)
        problem = f"columns {labels} were not found together in one header row"
    sample = format_headers(detected_headers[:DETECTED_HEADER_SAMPLE])
    return _failed(
        sheet_name,
        f'Sheet "{sheet_name}": {problem} in the first {config.max_rows_to_scan} rows. Detected headers: {sample}',
    )


def pdf_pages_to_rows(pages: Iterable[str]) -> list[list[str]]:
    """Turn extracted PDF page text into a pseudo-sheet, one row per line."""
    rows: list[list[str]] = []
    for page in pages:
        for line in (page or "").splitlines():
            if not line.strip():
                continue
            cells = [cell.strip() for cell in PDF_CELL_SPLIT.split(line)]
            cells = [cell for cell in cells if cell]
            if len(cells) <= 1:
                cells = [cell for cell in PDF_WORD_SPLIT.split(line.strip()) if cell]
            rows.append(cells)
    return rows
