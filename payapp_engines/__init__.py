"""
Module: payapp_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payment application engines. This is the canonical import surface for
    higher layers (payapp_services, scripts).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payapp_kernel (and sibling engine modules).
    MUST NOT import payapp_services, payapp_ingestion or payapp_config.

Invariants enforced:
    - Purity: engines never read clocks, files or the network.
    - Decimal-only arithmetic: floats never enter a computation.
    - Determinism: identical inputs always produce identical outputs.
    - One-way dependency: the summary engine reads only the continuation
      engine's published totals, never raw line items.

Failure modes:
    - DataError from malformed line items or project figures.
    - DependencyError when a summary formula cites a missing total.

Usage:
    from payapp_engines import build_continuation, build_summary

    continuation = build_continuation(line_items, project.retainage)
    summary = build_summary(project, continuation)
"""

from payapp_engines.audit import check_formula
from payapp_engines.continuation import (
    ContinuationRow,
    ContinuationSheet,
    ContinuationTotals,
    build_continuation,
    compute_row,
    compute_totals,
    row_formulas,
    verify_continuation,
)
from payapp_engines.formulas import (
    Add,
    Compare,
    Div,
    Expr,
    If,
    Mul,
    Num,
    Ref,
    Sub,
    SumRange,
    evaluate,
    format_number,
    references,
    render,
    render_formula,
)
from payapp_engines.layout import (
    ContinuationColumn,
    SummaryLineKey,
    continuation_cell,
    summary_cell,
)
from payapp_engines.summary import (
    RetainageSource,
    SummaryLine,
    SummarySheet,
    build_summary,
    summary_labels,
    verify_summary,
)
from payapp_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "Add",
    "Compare",
    "ContinuationColumn",
    "ContinuationRow",
    "ContinuationSheet",
    "ContinuationTotals",
    "Div",
    "Expr",
    "If",
    "Mul",
    "Num",
    "Ref",
    "RetainageSource",
    "Sub",
    "SumRange",
    "SummaryLine",
    "SummaryLineKey",
    "SummarySheet",
    "build_continuation",
    "build_summary",
    "check_formula",
    "compute_input_fingerprint",
    "compute_row",
    "compute_totals",
    "continuation_cell",
    "evaluate",
    "format_number",
    "references",
    "render",
    "render_formula",
    "row_formulas",
    "summary_cell",
    "summary_labels",
    "traced_engine",
    "verify_continuation",
    "verify_summary",
]
