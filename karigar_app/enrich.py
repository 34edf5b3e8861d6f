from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import Iterable, Mapping

from .mapping_parser import KarigarMappingEntry
from .order_parser import ParsedOrder
from .text_normalize import design_lookup_key
from .workbook import ParsedMappingWorkbook, get_mapping_sheet_read_order


logger = logging.getLogger(__name__)

UNMAPPED = "Unmapped"
SAMPLE_SIZE = 5


@dataclass(frozen=True)
class LookupValue:
    karigar: str
    generic_name: str | None = None


MappingLookup = dict[str, LookupValue]


@dataclass(frozen=True)
class EnrichedOrder:
    order_no: str = ""
    design: str = ""
    weight: str = ""
    size: str = ""
    quantity: str = ""
    remarks: str = ""
    karigar: str | None = None
    generic_name: str | None = None
    assigned: bool = False

    @classmethod
    def from_order(cls, order: ParsedOrder, match: LookupValue | None) -> "EnrichedOrder":
        return cls(
            order_no=order.order_no,
            design=order.design,
            weight=order.weight,
            size=order.size,
            quantity=order.quantity,
            remarks=order.remarks,
            karigar=match.karigar if match else None,
            generic_name=match.generic_name if match else None,
        )

    @property
    def karigar_label(self) -> str:
        return self.karigar or UNMAPPED


@dataclass
class EnrichmentDiagnostics:
    total_orders: int = 0
    matched_orders: int = 0
    unmatched_orders: int = 0
    distinct_order_keys: int = 0
    mapping_entries: int = 0
    has_mapping_but_no_matches: bool = False
    sample_order_keys: list[str] = field(default_factory=list)
    sample_mapping_keys: list[str] = field(default_factory=list)
    matched_by_karigar: dict[str, int] = field(default_factory=dict)
    unmatched_designs: list[str] = field(default_factory=list)
    assigned_orders: int = 0


@dataclass
class EnrichmentResult:
    orders: list[EnrichedOrder]
    diagnostics: EnrichmentDiagnostics


@dataclass
class MappingSummary:
    total_entries: int
    sheet_names: list[str]


def build_mapping_lookup(workbook: ParsedMappingWorkbook, fold_separators: bool = False) -> MappingLookup:
    """Flatten a workbook into one lookup; the earliest sheet in read order wins a shared key.

    Keys are recomputed from each entry's original design text, never taken
    from the stored normalized key.
    """
    lookup: MappingLookup = {}
    for sheet_name in get_mapping_sheet_read_order(workbook):
        for entry in _entries(workbook[sheet_name]):
            key = design_lookup_key(entry.design, fold_separators=fold_separators)
            if not key or key in lookup:
                continue
            lookup[key] = LookupValue(karigar=entry.karigar, generic_name=entry.generic_name)
    return lookup


def _entries(sheet: Mapping[str, KarigarMappingEntry] | Iterable[KarigarMappingEntry]) -> Iterable[KarigarMappingEntry]:
    if isinstance(sheet, Mapping):
        return sheet.values()
    return sheet


def enrich_orders(
    orders: Iterable[ParsedOrder], workbook: ParsedMappingWorkbook, fold_separators: bool = False
) -> EnrichmentResult:
    lookup = build_mapping_lookup(workbook, fold_separators=fold_separators)
    return enrich_with_lookup(orders, lookup, fold_separators=fold_separators)


def enrich_with_lookup(
    orders: Iterable[ParsedOrder], lookup: MappingLookup, fold_separators: bool = False
) -> EnrichmentResult:
    enriched: list[EnrichedOrder] = []
    order_keys: list[str] = []
    diagnostics = EnrichmentDiagnostics(mapping_entries=len(lookup))
    for order in orders:
        key = design_lookup_key(order.design, fold_separators=fold_separators)
        order_keys.append(key)
        match = lookup.get(key) if key else None
        enriched.append(EnrichedOrder.from_order(order, match))
        if match is not None:
            diagnostics.matched_orders += 1
            diagnostics.matched_by_karigar[match.karigar] = diagnostics.matched_by_karigar.get(match.karigar, 0) + 1
        elif order.design and order.design not in diagnostics.unmatched_designs:
            diagnostics.unmatched_designs.append(order.design)

    diagnostics.total_orders = len(enriched)
    diagnostics.unmatched_orders = diagnostics.total_orders - diagnostics.matched_orders
    distinct_keys = list(dict.fromkeys(key for key in order_keys if key))
    diagnostics.distinct_order_keys = len(distinct_keys)
    diagnostics.has_mapping_but_no_matches = (
        diagnostics.mapping_entries > 0 and diagnostics.matched_orders == 0 and diagnostics.total_orders > 0
    )
    if diagnostics.has_mapping_but_no_matches:
        diagnostics.sample_order_keys = distinct_keys[:SAMPLE_SIZE]
        diagnostics.sample_mapping_keys = list(lookup)[:SAMPLE_SIZE]
        logger.warning(
            "Mapping loaded (%d entries) but none of %d orders matched. Order keys: %s; mapping keys: %s",
            diagnostics.mapping_entries,
            diagnostics.total_orders,
            diagnostics.sample_order_keys,
            diagnostics.sample_mapping_keys,
        )
    else:
        logger.info("Enriched %d/%d orders", diagnostics.matched_orders, diagnostics.total_orders)
    return EnrichmentResult(orders=enriched, diagnostics=diagnostics)


def apply_assignments(result: EnrichmentResult, assignments: Mapping[str, str]) -> EnrichmentResult:
    """Overlay hand-made karigar assignments (order number -> karigar) on a mapping result.

    An assignment wins over the mapped karigar; the mapped generic name is kept.
    """
    if not assignments:
        return result
    orders: list[EnrichedOrder] = []
    assigned = 0
    for order in result.orders:
        karigar = assignments.get(order.order_no)
        if karigar:
            order = replace(order, karigar=karigar, assigned=True)
            assigned += 1
        orders.append(order)
    logger.info("Applied %d manual karigar assignment(s)", assigned)
    return EnrichmentResult(orders=orders, diagnostics=replace(result.diagnostics, assigned_orders=assigned))


def group_orders_by_karigar(orders: Iterable[EnrichedOrder]) -> dict[str, list[EnrichedOrder]]:
    groups: dict[str, list[EnrichedOrder]] = {}
    for order in orders:
        groups.setdefault(order.karigar_label, []).append(order)
    ordered_names = sorted((name for name in groups if name != UNMAPPED), key=str.casefold)
    if UNMAPPED in groups:
        ordered_names.append(UNMAPPED)
    return {name: groups[name] for name in ordered_names}


def filter_orders(orders: Iterable[EnrichedOrder], search: str = "", descending: bool = False) -> list[EnrichedOrder]:
    needle = search.strip().lower()
    selected = list(orders)
    if needle:
        selected = [
            order
            for order in selected
            if needle in order.order_no.lower() or needle in order.design.lower() or needle in order.remarks.lower()
        ]
    return sorted(selected, key=lambda order: order.design.casefold(), reverse=descending)


def mapping_summary(workbook: ParsedMappingWorkbook) -> MappingSummary:
    return MappingSummary(
        total_entries=sum(len(sheet) for sheet in workbook.values()),
        sheet_names=list(workbook),
    )
