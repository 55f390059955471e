"""
Formula audit -- proves each stored figure is reproducible from its inputs.

Pure functions with deterministic behavior. No I/O.

A figure passes when re-evaluating its formula against the cells it cites
lands within half a cent of the stored value.
"""

from __future__ import annotations

from decimal import Decimal

from payapp_engines.formulas import Expr, Resolver, evaluate
from payapp_kernel.domain.cells import CellRef
from payapp_kernel.domain.values import within_cent
from payapp_kernel.exceptions import DependencyError


def check_formula(
    cell: CellRef,
    expr: Expr,
    expected: Decimal,
    resolve: Resolver,
) -> Decimal:
    """
    Evaluate ``expr`` and compare it with the stored ``expected`` value.

    Returns:
        The recomputed value.

    Raises:
        DependencyError: a cited cell is missing, or the recomputed value
            differs from ``expected`` by half a cent or more.
    """
    actual = evaluate(expr, resolve)
    if not within_cent(actual, expected):
        raise DependencyError(
            str(cell),
            f"Formula at {cell} recomputes to {actual}, stored value is {expected}",
        )
    return actual
