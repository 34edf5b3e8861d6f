from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
from typing import Sequence, Union

from .decoders import DEFAULT_DECODERS, Decoders, detect_file_type
from .errors import EmptyDocumentError, HeaderNotFoundError, NoValidRowsError, UnsupportedFormatError, format_headers
from .header_detection import HeaderDetectionFailure, HeaderSpec, detect_header
from .mapping import DESIGN, FIELD_LABELS, ORDER_FIELDS, ORDER_NO, QUANTITY, REMARKS, SIZE, WEIGHT
from .text_normalize import normalize_cell_value


logger = logging.getLogger(__name__)

ORDER_HEADER_SPEC = HeaderSpec(
    fields=ORDER_FIELDS,
    key_fields=(ORDER_NO, DESIGN),
    min_non_empty_cells=2,
)
CRITICAL_ORDER_FIELDS = (ORDER_NO, DESIGN)
OPTIONAL_ORDER_FIELDS = (WEIGHT, SIZE, QUANTITY, REMARKS)
ORDER_FILE_TYPES = {"csv", "xlsx", "xls"}
DEFAULT_ORDER_SCAN_ROWS = 20


@dataclass(frozen=True)
class ParsedOrder:
    order_no: str = ""
    design: str = ""
    weight: str = ""
    size: str = ""
    quantity: str = ""
    remarks: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "ParsedOrder":
        return cls(**{name: str(payload.get(name) or "") for name in ORDER_FIELDS})


@dataclass(frozen=True)
class MissingColumnsWarning:
    columns: list[str]
    detected_headers: list[str]
    header_row_index: int

    @property
    def message(self) -> str:
        return (
            f"Optional columns not found: {', '.join(self.columns)}. These fields will be left blank. "
            f"Detected headers: {format_headers(self.detected_headers)}"
        )


@dataclass(frozen=True)
class NonFirstHeaderRowWarning:
    header_row_index: int

    @property
    def skipped_rows(self) -> int:
        return self.header_row_index - 1

    @property
    def message(self) -> str:
        return (
            f"Header row detected at row {self.header_row_index} "
            f"(skipped {self.skipped_rows} leading row{'s' if self.skipped_rows != 1 else ''})."
        )


ParseWarning = Union[MissingColumnsWarning, NonFirstHeaderRowWarning]


@dataclass
class OrderParseResult:
    orders: list[ParsedOrder]
    warnings: list[ParseWarning] = field(default_factory=list)


def parse_order_rows(rows: Sequence[Sequence[object]], max_rows_to_scan: int = DEFAULT_ORDER_SCAN_ROWS) -> OrderParseResult:
    if not rows:
        raise EmptyDocumentError("File is empty")
    detection = detect_header(rows, ORDER_HEADER_SPEC, max_rows_to_scan=max_rows_to_scan)
    if isinstance(detection, HeaderDetectionFailure):
        missing = [FIELD_LABELS[name] for name in CRITICAL_ORDER_FIELDS if name not in detection.fields_seen]
        if not missing:
            missing = [FIELD_LABELS[name] for name in CRITICAL_ORDER_FIELDS]
        raise HeaderNotFoundError(
            f"Missing critical columns: {', '.join(missing)}. "
            f"Could not find a header row containing both Order No and Design in the first {max_rows_to_scan} rows. "
            f"Detected headers: {format_headers(detection.detected_headers)}",
            missing_columns=missing,
            detected_headers=detection.detected_headers,
        )

    warnings: list[ParseWarning] = []
    detected_headers = [header for header in detection.headers if header]
    missing_optional = [FIELD_LABELS[name] for name in detection.missing(OPTIONAL_ORDER_FIELDS)]
    if missing_optional:
        warnings.append(
            MissingColumnsWarning(
                columns=missing_optional,
                detected_headers=detected_headers,
                header_row_index=detection.row_index + 1,
            )
        )
    if detection.row_index > 0:
        warnings.append(NonFirstHeaderRowWarning(header_row_index=detection.row_index + 1))

    orders: list[ParsedOrder] = []
    for row in rows[detection.row_index + 1 :]:
        values = {name: read_field(row, detection.column(name)) for name in ORDER_FIELDS}
        if not values[ORDER_NO] and not values[DESIGN]:
            continue
        orders.append(ParsedOrder(**values))

    if not orders:
        raise NoValidRowsError("No valid orders found in the file")
    logger.info(
        "Parsed %d order(s) with header at row %d (%d warning(s))",
        len(orders),
        detection.row_index + 1,
        len(warnings),
    )
    return OrderParseResult(orders=orders, warnings=warnings)


def read_field(row: Sequence[object], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return normalize_cell_value(row[index])


def parse_order_file(
    data: bytes,
    filename: str,
    mime_type: str = "",
    decoders: Decoders = DEFAULT_DECODERS,
    max_rows_to_scan: int = DEFAULT_ORDER_SCAN_ROWS,
) -> OrderParseResult:
    file_type = detect_file_type(filename, mime_type)
    if file_type not in ORDER_FILE_TYPES:
        raise UnsupportedFormatError("Unsupported file format. Please upload .csv, .xlsx, or .xls files.")
    sheets = decoders.read_sheets(data, file_type)
    if not sheets or not sheets[0][1]:
        raise EmptyDocumentError("File is empty")
    sheet_name, rows = sheets[0]
    logger.debug("Parsing orders from sheet %r of %s", sheet_name, filename)
    return parse_order_rows(rows, max_rows_to_scan=max_rows_to_scan)
