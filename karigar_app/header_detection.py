from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from .mapping import map_headers
from .text_normalize import normalize_cell_value


logger = logging.getLogger(__name__)

COLUMN_SCORE = 10
KEY_COLUMN_BONUS = 20
DEFAULT_MIN_SCORE = 20
DETECTED_HEADER_SAMPLE = 8
MIN_HEADER_CELLS = 2


@dataclass(frozen=True)
class HeaderSpec:
    """Which logical columns a sheet kind carries and how a header row is scored.

    `fields` are claimed left to right when resolving columns. `key_fields`
    earn the bonus and must all be present for a row to qualify.
    """

    fields: tuple[str, ...]
    key_fields: tuple[str, ...]
    min_non_empty_cells: int
    min_score: int = DEFAULT_MIN_SCORE


@dataclass
class HeaderDetectionResult:
    row_index: int
    column_indices: dict[str, int]
    score: int
    headers: list[str] = field(default_factory=list)

    def column(self, field_name: str) -> int:
        return self.column_indices.get(field_name, -1)

    def missing(self, fields: Sequence[str]) -> list[str]:
        return [name for name in fields if name not in self.column_indices]


@dataclass
class HeaderDetectionFailure:
    detected_headers: list[str]
    fields_seen: set[str]


def non_empty_cells(row: Sequence[object]) -> list[str]:
    cells = [normalize_cell_value(cell) for cell in row]
    return [cell for cell in cells if cell]


def score_header_row(row: Sequence[object], spec: HeaderSpec) -> tuple[int, dict[str, int]]:
    """Score a header candidate; the mapping is returned even for rows scored 0."""
    mapping = map_headers(row, spec.fields)
    if len(non_empty_cells(row)) < spec.min_non_empty_cells:
        return 0, mapping
    score = COLUMN_SCORE * len(mapping)
    for key in spec.key_fields:
        if key in mapping:
            score += KEY_COLUMN_BONUS
    return score, mapping


def detect_header(
    rows: Sequence[Sequence[object]], spec: HeaderSpec, max_rows_to_scan: int = 20
) -> HeaderDetectionResult | HeaderDetectionFailure:
    best: HeaderDetectionResult | None = None
    best_partial_index: int | None = None
    best_partial_fields = 0
    fields_seen: set[str] = set()
    for idx, row in enumerate(rows[:max_rows_to_scan]):
        if not row:
            continue
        score, mapping = score_header_row(row, spec)
        # Single-cell rows are titles; their words never count as detected columns.
        if len(non_empty_cells(row)) >= MIN_HEADER_CELLS:
            fields_seen.update(mapping)
            if len(mapping) > best_partial_fields:
                best_partial_fields = len(mapping)
                best_partial_index = idx
        if score < spec.min_score:
            continue
        if any(key not in mapping for key in spec.key_fields):
            continue
        # Strictly greater keeps the earliest row on ties.
        if best is None or score > best.score:
            best = HeaderDetectionResult(
                row_index=idx,
                column_indices=mapping,
                score=score,
                headers=[normalize_cell_value(cell) for cell in row],
            )
    if best is not None:
        logger.debug("Header row %d selected (score=%d, columns=%s)", best.row_index, best.score, best.column_indices)
        return best
    return HeaderDetectionFailure(
        detected_headers=_diagnostic_headers(rows, best_partial_index, max_rows_to_scan),
        fields_seen=fields_seen,
    )


def _diagnostic_headers(
    rows: Sequence[Sequence[object]], best_partial_index: int | None, max_rows_to_scan: int
) -> list[str]:
    if best_partial_index is not None:
        return non_empty_cells(rows[best_partial_index])
    candidates = [non_empty_cells(row or []) for row in rows[:max_rows_to_scan]]
    for cells in candidates:
        if len(cells) >= MIN_HEADER_CELLS:
            return cells
    for cells in candidates:
        if cells:
            return cells
    return []
