from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, Iterable, Sequence

from .decoders import DEFAULT_DECODERS, Decoders, RawGrid, Sheet, detect_file_type, is_image_file
from .errors import EmptyDocumentError, HeaderNotFoundError, UnsupportedFormatError
from .mapping import MAPPING_FIELD_LABELS
from .mapping_parser import (
    PRIORITY_ONLY,
    KarigarMappingEntry,
    MappingParserConfig,
    MappingSheetResult,
    parse_mapping_sheet,
    pdf_pages_to_rows,
)


logger = logging.getLogger(__name__)

PRIORITY_SHEETS = ("1", "3", "2")
PDF_SHEET_NAME = "PDF"
MAPPING_FILE_TYPES = {"xlsx", "xls", "csv", "pdf"}

# sheet name -> (normalized design code -> entry); only sheets with entries appear.
ParsedMappingWorkbook = Dict[str, Dict[str, KarigarMappingEntry]]


@dataclass
class WorkbookResolution:
    workbook: ParsedMappingWorkbook
    sheet_results: list[MappingSheetResult] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [result.error for result in self.sheet_results if result.error]

    @property
    def total_entries(self) -> int:
        return sum(len(entries) for entries in self.workbook.values())


def get_mapping_sheet_read_order(sheet_names: Iterable[str]) -> list[str]:
    """Priority sheets "1", "3", "2" first (when present), then the rest alphabetically."""
    available = list(sheet_names)
    ordered = [name for name in PRIORITY_SHEETS if name in available]
    remaining = sorted({name for name in available if name not in PRIORITY_SHEETS})
    return ordered + remaining


def resolve_mapping_workbook(
    sheets: Sequence[Sheet], config: MappingParserConfig | None = None
) -> WorkbookResolution:
    config = config or MappingParserConfig()
    grids: dict[str, RawGrid] = {}
    for name, rows in sheets:
        grids.setdefault(name, rows)
    if not any(grids.values()):
        raise EmptyDocumentError("File is empty")
    read_order = get_mapping_sheet_read_order(grids)
    if config.sheet_scan_mode == PRIORITY_ONLY:
        read_order = [name for name in read_order if name in PRIORITY_SHEETS]
        if not read_order:
            raise HeaderNotFoundError(
                'No sheets named "1", "2", or "3" found in the workbook. '
                "Please ensure the file contains the required sheets."
            )

    resolution = WorkbookResolution(workbook={})
    for name in read_order:
        result = parse_mapping_sheet(name, grids[name], config)
        resolution.sheet_results.append(result)
        if result.ok:
            resolution.workbook[name] = result.entries

    if not resolution.workbook:
        required = ", ".join(MAPPING_FIELD_LABELS[name] for name in config.required_fields)
        details = "\n".join(f"  - {error}" for error in resolution.errors)
        raise HeaderNotFoundError(
            "No valid design-karigar mappings found in any sheet.\n"
            f"{details}\n"
            f"Each mapping sheet needs these columns: {required}."
        )
    logger.info(
        "Mapping workbook resolved: %d entries from sheet(s) %s; %d sheet(s) skipped",
        resolution.total_entries,
        ", ".join(resolution.workbook),
        len(resolution.errors),
    )
    return resolution


def parse_mapping_file(
    data: bytes,
    filename: str,
    mime_type: str = "",
    decoders: Decoders = DEFAULT_DECODERS,
    config: MappingParserConfig | None = None,
) -> WorkbookResolution:
    if is_image_file(filename, mime_type):
        raise UnsupportedFormatError(
            "Screenshots and images cannot be parsed. "
            "Please upload Excel files (.xlsx or .xls) or PDF files with tabular data."
        )
    file_type = detect_file_type(filename, mime_type)
    if file_type not in MAPPING_FILE_TYPES:
        raise UnsupportedFormatError(
            "Unsupported file format. Please upload Excel files (.xlsx or .xls) or PDF files with tabular data."
        )
    if file_type == "pdf":
        sheets: list[Sheet] = [(PDF_SHEET_NAME, pdf_pages_to_rows(decoders.read_pdf_pages(data)))]
    else:
        sheets = decoders.read_sheets(data, file_type)
    return resolve_mapping_workbook(sheets, config)
