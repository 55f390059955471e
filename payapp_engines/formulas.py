"""
Formula expressions -- symbolic cell formulas for the payment application.

Pure functions with deterministic behavior. No I/O.

Every derived figure on the continuation and summary sheets carries an
expression tree alongside its value. The tree can be:

- evaluated against a resolver (CellRef -> Decimal), which is how the
  audit check proves each figure is reproducible from the cells it cites;
- rendered to spreadsheet formula text, qualifying references to the other
  sheet with its display title.

Usage:
    from payapp_engines.formulas import Add, Mul, Num, Ref, render_formula

    expr = Add((Mul(Ref(d7), Num(Decimal("0.1"))), Ref(f7)))
    render_formula(expr, SheetId.CONTINUATION, titles)   # "=D7*0.1+F7"
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from decimal import Decimal

from payapp_kernel.domain.cells import CellRef, SheetId
from payapp_kernel.domain.values import is_finite_decimal
from payapp_kernel.exceptions import DependencyError

Resolver = Callable[[CellRef], Decimal]

# Binding strength used to decide where parentheses are needed.
_PREC_COMPARE = 0
_PREC_ADD = 1
_PREC_MUL = 2
_PREC_ATOM = 3


# ============================================================================
# Expression nodes
# ============================================================================


class Expr:
    """Base class for formula expression nodes."""

    __slots__ = ()

    precedence: int = _PREC_ATOM


@dataclass(frozen=True, slots=True)
class Num(Expr):
    """Literal number."""

    value: Decimal

    @property
    def precedence(self) -> int:  # type: ignore[override]
        # A negative literal needs wrapping when used as an operand.
        return _PREC_ADD if self.value < 0 else _PREC_ATOM


@dataclass(frozen=True, slots=True)
class Ref(Expr):
    """Reference to a single cell."""

    cell: CellRef


@dataclass(frozen=True, slots=True)
class Add(Expr):
    """Sum of two or more terms."""

    terms: tuple[Expr, ...]
    precedence = _PREC_ADD

    def __post_init__(self) -> None:
        if len(self.terms) < 2:
            raise ValueError("Add requires at least two terms")


@dataclass(frozen=True, slots=True)
class Sub(Expr):
    left: Expr
    right: Expr
    precedence = _PREC_ADD


@dataclass(frozen=True, slots=True)
class Mul(Expr):
    left: Expr
    right: Expr
    precedence = _PREC_MUL


@dataclass(frozen=True, slots=True)
class Div(Expr):
    left: Expr
    right: Expr
    precedence = _PREC_MUL


@dataclass(frozen=True, slots=True)
class SumRange(Expr):
    """
    SUM over a contiguous range within one column or one row.

    Both ends must be on the same sheet.
    """

    start: CellRef
    end: CellRef

    def __post_init__(self) -> None:
        if self.start.sheet != self.end.sheet:
            raise ValueError("SumRange endpoints must be on the same sheet")
        if self.start.column != self.end.column and self.start.row != self.end.row:
            raise ValueError("SumRange must span a single column or a single row")
        if self.start.column == self.end.column and self.end.row < self.start.row:
            raise ValueError("SumRange end row precedes start row")

    def cells(self) -> Iterator[CellRef]:
        if self.start.column == self.end.column:
            for row in range(self.start.row, self.end.row + 1):
                yield CellRef(self.start.sheet, row, self.start.column)
            return
        first, last = sorted((_column_index(self.start.column), _column_index(self.end.column)))
        for idx in range(first, last + 1):
            yield CellRef(self.start.sheet, self.start.row, _column_letter(idx))


@dataclass(frozen=True, slots=True)
class Compare(Expr):
    """Comparison used as an IF condition. ``op`` is ``=`` or ``>``."""

    op: str
    left: Expr
    right: Expr
    precedence = _PREC_COMPARE

    def __post_init__(self) -> None:
        if self.op not in _COMPARATORS:
            raise ValueError(f"Unsupported comparison operator: {self.op!r}")


@dataclass(frozen=True, slots=True)
class If(Expr):
    condition: Compare
    then: Expr
    otherwise: Expr


_COMPARATORS: dict[str, Callable[[Decimal, Decimal], bool]] = {
    "=": lambda a, b: a == b,
    ">": lambda a, b: a > b,
}


# ============================================================================
# Evaluation
# ============================================================================


def evaluate(expr: Expr, resolve: Resolver) -> Decimal:
    """
    Compute the value of an expression.

    Args:
        expr: Expression tree.
        resolve: Returns the value of a referenced cell.

    Raises:
        DependencyError: a referenced cell is missing or not a finite number.
    """
    if isinstance(expr, Num):
        return expr.value
    if isinstance(expr, Ref):
        return _resolve(expr.cell, resolve)
    if isinstance(expr, Add):
        total = Decimal("0")
        for term in expr.terms:
            total += evaluate(term, resolve)
        return total
    if isinstance(expr, Sub):
        return evaluate(expr.left, resolve) - evaluate(expr.right, resolve)
    if isinstance(expr, Mul):
        return evaluate(expr.left, resolve) * evaluate(expr.right, resolve)
    if isinstance(expr, Div):
        return evaluate(expr.left, resolve) / evaluate(expr.right, resolve)
    if isinstance(expr, SumRange):
        total = Decimal("0")
        for cell in expr.cells():
            total += _resolve(cell, resolve)
        return total
    if isinstance(expr, If):
        branch = expr.then if evaluate_condition(expr.condition, resolve) else expr.otherwise
        return evaluate(branch, resolve)
    raise TypeError(f"Cannot evaluate {type(expr).__name__}")


def evaluate_condition(cond: Compare, resolve: Resolver) -> bool:
    return _COMPARATORS[cond.op](evaluate(cond.left, resolve), evaluate(cond.right, resolve))


def _resolve(cell: CellRef, resolve: Resolver) -> Decimal:
    try:
        value = resolve(cell)
    except KeyError as exc:
        raise DependencyError(str(cell)) from exc
    if not is_finite_decimal(value):
        raise DependencyError(str(cell))
    return Decimal(value)


def references(expr: Expr) -> tuple[CellRef, ...]:
    """All cells an expression cites, in order of first appearance."""
    seen: dict[CellRef, None] = {}
    _collect(expr, seen)
    return tuple(seen)


def _collect(expr: Expr, seen: dict[CellRef, None]) -> None:
    if isinstance(expr, Ref):
        seen.setdefault(expr.cell, None)
    elif isinstance(expr, SumRange):
        for cell in expr.cells():
            seen.setdefault(cell, None)
    elif isinstance(expr, Add):
        for term in expr.terms:
            _collect(term, seen)
    elif isinstance(expr, (Sub, Mul, Div, Compare)):
        _collect(expr.left, seen)
        _collect(expr.right, seen)
    elif isinstance(expr, If):
        _collect(expr.condition, seen)
        _collect(expr.then, seen)
        _collect(expr.otherwise, seen)


# ============================================================================
# Rendering
# ============================================================================


def render(
    expr: Expr,
    sheet: SheetId,
    titles: Mapping[SheetId, str],
) -> str:
    """
    Render an expression as spreadsheet formula text (no leading ``=``).

    Args:
        expr: Expression tree.
        sheet: Sheet the formula will be written to. References to any
            other sheet are qualified with that sheet's title.
        titles: Display title for each logical sheet.
    """
    if isinstance(expr, Num):
        return format_number(expr.value)
    if isinstance(expr, Ref):
        return _render_ref(expr.cell, sheet, titles)
    if isinstance(expr, Add):
        return "+".join(_operand(t, _PREC_ADD, sheet, titles) for t in expr.terms)
    if isinstance(expr, Sub):
        return (
            _operand(expr.left, _PREC_ADD, sheet, titles)
            + "-"
            + _operand(expr.right, _PREC_MUL, sheet, titles)
        )
    if isinstance(expr, Mul):
        return (
            _operand(expr.left, _PREC_MUL, sheet, titles)
            + "*"
            + _operand(expr.right, _PREC_MUL, sheet, titles)
        )
    if isinstance(expr, Div):
        return (
            _operand(expr.left, _PREC_MUL, sheet, titles)
            + "/"
            + _operand(expr.right, _PREC_ATOM, sheet, titles)
        )
    if isinstance(expr, SumRange):
        start = _render_ref(expr.start, sheet, titles)
        return f"SUM({start}:{expr.end.address})"
    if isinstance(expr, Compare):
        return (
            _operand(expr.left, _PREC_ADD, sheet, titles)
            + expr.op
            + _operand(expr.right, _PREC_ADD, sheet, titles)
        )
    if isinstance(expr, If):
        parts = (
            render(expr.condition, sheet, titles),
            render(expr.then, sheet, titles),
            render(expr.otherwise, sheet, titles),
        )
        return f"IF({','.join(parts)})"
    raise TypeError(f"Cannot render {type(expr).__name__}")


def render_formula(
    expr: Expr,
    sheet: SheetId,
    titles: Mapping[SheetId, str],
) -> str:
    """Render an expression as a cell formula, e.g. ``=SUM(D7:F7)``."""
    return "=" + render(expr, sheet, titles)


def format_number(value: Decimal) -> str:
    """Plain positional notation without trailing zeros: 0.10 -> 0.1."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def _operand(
    expr: Expr,
    required: int,
    sheet: SheetId,
    titles: Mapping[SheetId, str],
) -> str:
    text = render(expr, sheet, titles)
    if expr.precedence < required:
        return f"({text})"
    return text


def _render_ref(cell: CellRef, sheet: SheetId, titles: Mapping[SheetId, str]) -> str:
    if cell.sheet == sheet:
        return cell.address
    try:
        title = titles[cell.sheet]
    except KeyError as exc:
        raise DependencyError(str(cell), f"No sheet title for {cell.sheet.value}") from exc
    return cell.qualified(title)


def _column_index(letters: str) -> int:
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx


def _column_letter(idx: int) -> str:
    letters = ""
    while idx:
        idx, rem = divmod(idx - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters
