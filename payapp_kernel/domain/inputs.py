"""
Inputs -- Immutable inputs to a payment application run.

Responsibility:
    Defines the three input value objects consumed by the engines:
    BudgetLineItem (one row of work), ProjectInfo (invoice metadata and
    contract figures) and RetainageParams (rates as fractions). Also
    provides the batch validators the engines run before computing
    anything.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Currency fields of a line item are finite, non-negative Decimals.
      previous + current may exceed the scheduled value (over-billing is
      surfaced by the engines, not rejected here).
    - Retainage percentages lie in [0, 100]; the reduction threshold and
      the reduced percentage are supplied together or not at all.
    - Validation is all-or-nothing: the first malformed field aborts the
      batch with a DataError carrying field name and item index.

Failure modes:
    - MissingFieldError / InvalidNumberError / OutOfRangeError (all
      DataError subclasses) from the validators and ``from_mapping``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any

from payapp_kernel.domain.values import ONE_HUNDRED, ZERO, percent_to_rate, to_decimal
from payapp_kernel.exceptions import DataError, MissingFieldError, OutOfRangeError

LINE_ITEM_AMOUNT_FIELDS = (
    "scheduled_value",
    "previous_completed",
    "current_completed",
    "stored_materials",
)

DEFAULT_RETAINAGE_PERCENT = Decimal("10")


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class BudgetLineItem:
    """
    One row of work on the schedule of values.

    Attributes:
        description: Description of work (cost code or line name)
        scheduled_value: Budgeted contract amount for the line
        previous_completed: Work completed in earlier periods
        current_completed: Work completed this period
        stored_materials: Materials presently stored, not yet installed
    """

    description: str
    scheduled_value: Decimal
    previous_completed: Decimal = ZERO
    current_completed: Decimal = ZERO
    stored_materials: Decimal = ZERO

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        item_index: int | None = None,
    ) -> BudgetLineItem:
        """Build a line item from a normalized mapping, coercing amounts."""
        if "description" not in data or data["description"] is None:
            raise MissingFieldError("description", item_index=item_index)
        if "scheduled_value" not in data:
            raise MissingFieldError("scheduled_value", item_index=item_index)
        amounts = {
            name: to_decimal(data.get(name, ZERO), name, item_index)
            for name in LINE_ITEM_AMOUNT_FIELDS
        }
        item = cls(description=str(data["description"]).strip(), **amounts)
        _check_line_item(item, item_index)
        return item


@dataclass(frozen=True)
class RetainageParams:
    """
    Retainage rates expressed as fractions (0.10 for 10%).

    When ``reduction_threshold`` is set, a row whose percent complete is
    strictly greater than the threshold withholds ``reduced_rate`` on its
    completed work instead of ``completed_rate``. Stored materials always
    use ``stored_rate``.
    """

    completed_rate: Decimal
    stored_rate: Decimal
    reduction_threshold: Decimal | None = None
    reduced_rate: Decimal | None = None

    def __post_init__(self) -> None:
        for attr in ("completed_rate", "stored_rate", "reduction_threshold", "reduced_rate"):
            val = getattr(self, attr)
            if val is None:
                continue
            if not isinstance(val, Decimal) or not val.is_finite():
                raise DataError(f"{attr} must be a finite Decimal", field=attr, value=val)
            if val < 0 or val > 1:
                raise OutOfRangeError(attr, val, "between 0 and 1")
        if (self.reduction_threshold is None) != (self.reduced_rate is None):
            raise DataError(
                "reduction_threshold and reduced_rate must be given together",
                field="reduced_rate" if self.reduced_rate is None else "reduction_threshold",
            )

    @property
    def has_threshold(self) -> bool:
        return self.reduction_threshold is not None

    @classmethod
    def from_percentages(
        cls,
        completed_percent: Decimal | int | str,
        stored_percent: Decimal | int | str,
        threshold_percent: Decimal | int | str | None = None,
        reduced_percent: Decimal | int | str | None = None,
    ) -> RetainageParams:
        """Build rates from percentages as entered on the form (0-100)."""
        pct = {
            "retainage_completed_percent": completed_percent,
            "retainage_stored_percent": stored_percent,
            "retainage_reduction_threshold": threshold_percent,
            "reduced_retainage_percent": reduced_percent,
        }
        checked: dict[str, Decimal | None] = {}
        for name, raw in pct.items():
            if raw is None:
                checked[name] = None
                continue
            val = to_decimal(raw, name)
            _check_percent(name, val)
            checked[name] = val

        def rate(name: str) -> Decimal | None:
            val = checked[name]
            return None if val is None else percent_to_rate(val)

        return cls(
            completed_rate=rate("retainage_completed_percent"),
            stored_rate=rate("retainage_stored_percent"),
            reduction_threshold=rate("retainage_reduction_threshold"),
            reduced_rate=rate("reduced_retainage_percent"),
        )


@dataclass(frozen=True)
class ProjectInfo:
    """
    Invoice metadata and contract figures for one payment application.

    Percentages are stored as entered (10 means 10%); ``retainage``
    converts them to a RetainageParams of fractions.
    """

    owner_name: str
    project_name: str
    application_number: str
    contractor_name: str
    original_contract_sum: Decimal
    change_orders_sum: Decimal
    previous_payments: Decimal
    retainage_completed_percent: Decimal = DEFAULT_RETAINAGE_PERCENT
    retainage_stored_percent: Decimal = DEFAULT_RETAINAGE_PERCENT
    retainage_reduction_threshold: Decimal | None = None
    reduced_retainage_percent: Decimal | None = None
    period_to: date | None = None
    contract_date: date | None = None

    @property
    def has_threshold(self) -> bool:
        return self.retainage_reduction_threshold is not None

    @property
    def retainage(self) -> RetainageParams:
        return RetainageParams.from_percentages(
            self.retainage_completed_percent,
            self.retainage_stored_percent,
            self.retainage_reduction_threshold,
            self.reduced_retainage_percent,
        )

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        default_retainage_percent: Decimal = DEFAULT_RETAINAGE_PERCENT,
    ) -> ProjectInfo:
        """
        Build ProjectInfo from a flat mapping of form-style fields.

        Missing retainage percentages fall back to
        ``default_retainage_percent``. Dates accept ``date`` objects or ISO
        ``YYYY-MM-DD`` strings.
        """
        text = {
            name: _text(data, name)
            for name in ("owner_name", "project_name", "application_number", "contractor_name")
        }
        money = {
            name: to_decimal(data.get(name), name)
            for name in ("original_contract_sum", "change_orders_sum", "previous_payments")
        }
        percents: dict[str, Decimal | None] = {}
        for name in ("retainage_completed_percent", "retainage_stored_percent"):
            raw = data.get(name)
            percents[name] = (
                default_retainage_percent if raw is None or raw == "" else to_decimal(raw, name)
            )
        for name in ("retainage_reduction_threshold", "reduced_retainage_percent"):
            raw = data.get(name)
            percents[name] = None if raw is None or raw == "" else to_decimal(raw, name)

        project = cls(
            **text,
            **money,
            **percents,
            period_to=parse_date(data.get("period_to"), "period_to"),
            contract_date=parse_date(data.get("contract_date"), "contract_date"),
        )
        return validate_project_info(project)


# ============================================================================
# Validation
# ============================================================================


def validate_line_items(
    items: Iterable[BudgetLineItem | Mapping[str, Any]],
) -> tuple[BudgetLineItem, ...]:
    """
    Check every line item before any row is computed.

    Mappings are converted with ``BudgetLineItem.from_mapping``; line
    items built directly with int or float amounts are normalized to
    Decimal. Returns the normalized batch.

    Raises:
        DataError: first malformed item, with its index and field.
    """
    normalized: list[BudgetLineItem] = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            normalized.append(BudgetLineItem.from_mapping(item, item_index=index))
            continue
        if not isinstance(item, BudgetLineItem):
            raise DataError(
                f"expected BudgetLineItem, got {type(item).__name__}",
                item_index=index,
            )
        if not isinstance(item.description, str):
            raise DataError(
                "description must be text",
                field="description",
                item_index=index,
                value=item.description,
            )
        amounts = {
            name: to_decimal(getattr(item, name), name, index)
            for name in LINE_ITEM_AMOUNT_FIELDS
        }
        item = replace(item, **amounts)
        _check_line_item(item, index)
        normalized.append(item)
    return tuple(normalized)


def validate_project_info(project: ProjectInfo) -> ProjectInfo:
    """
    Check the contract figures and retainage settings of a ProjectInfo.

    Returns a copy with every numeric field normalized to Decimal.

    Raises:
        DataError: malformed or out-of-range field.
    """
    if not isinstance(project, ProjectInfo):
        raise DataError(f"expected ProjectInfo, got {type(project).__name__}")

    for name in ("owner_name", "project_name", "application_number", "contractor_name"):
        if not isinstance(getattr(project, name), str):
            raise DataError(f"{name} must be text", field=name, value=getattr(project, name))

    updates: dict[str, Decimal | None] = {}
    for name in ("original_contract_sum", "change_orders_sum", "previous_payments"):
        updates[name] = to_decimal(getattr(project, name), name)
    for name in ("original_contract_sum", "previous_payments"):
        if updates[name] < 0:
            raise OutOfRangeError(name, updates[name], "non-negative")

    for name in ("retainage_completed_percent", "retainage_stored_percent"):
        updates[name] = to_decimal(getattr(project, name), name)
        _check_percent(name, updates[name])

    threshold = project.retainage_reduction_threshold
    reduced = project.reduced_retainage_percent
    if (threshold is None) != (reduced is None):
        missing = "reduced_retainage_percent" if reduced is None else "retainage_reduction_threshold"
        raise DataError(
            "retainage_reduction_threshold and reduced_retainage_percent must be given together",
            field=missing,
        )
    for name, raw in (
        ("retainage_reduction_threshold", threshold),
        ("reduced_retainage_percent", reduced),
    ):
        if raw is None:
            updates[name] = None
            continue
        updates[name] = to_decimal(raw, name)
        _check_percent(name, updates[name])

    for name in ("period_to", "contract_date"):
        val = getattr(project, name)
        if val is not None and not isinstance(val, date):
            raise DataError(f"{name} must be a date", field=name, value=val)

    return replace(project, **updates)


def parse_date(value: Any, field: str) -> date | None:
    """Parse an ISO ``YYYY-MM-DD`` date; None and blank stay None."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise DataError(
            f"{field} must be a valid date in YYYY-MM-DD format",
            field=field,
            value=value,
        ) from exc


# ============================================================================
# Internal helpers
# ============================================================================


def _check_line_item(item: BudgetLineItem, item_index: int | None) -> None:
    for name in LINE_ITEM_AMOUNT_FIELDS:
        val = getattr(item, name)
        if val < 0:
            raise OutOfRangeError(name, val, "non-negative", item_index=item_index)


def _check_percent(name: str, value: Decimal) -> None:
    if value < 0 or value > ONE_HUNDRED:
        raise OutOfRangeError(name, value, "between 0 and 100")


def _text(data: Mapping[str, Any], name: str) -> str:
    val = data.get(name)
    return "" if val is None else str(val).strip()
