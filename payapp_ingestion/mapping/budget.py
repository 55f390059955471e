"""
Budget record mapping -- upstream budget rows to BudgetLineItem.

Two record shapes are accepted:

    normalized   description, scheduled_value, previous_completed,
                 current_completed, stored_materials
    provider     the budget line item shape of the project-management
                 API: cost_code.full_code, revised_budget_amount,
                 original_budget_amount, amount_billed,
                 current_period_amount_billed, material_stored

Provider mapping:
    description        cost_code.full_code, else description, else name,
                       else "Unknown Item"
    scheduled_value    revised_budget_amount, else original_budget_amount,
                       else 0
    current_completed  current_period_amount_billed (0 when absent)
    previous_completed amount_billed - current_period_amount_billed
    stored_materials   material_stored (0 when absent)

Mapping is all-or-nothing: the first bad record aborts the batch with a
DataError carrying its index.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from payapp_kernel.domain.inputs import BudgetLineItem
from payapp_kernel.domain.values import ZERO, to_decimal
from payapp_kernel.exceptions import DataError
from payapp_kernel.logging_config import get_logger

logger = get_logger("ingestion.budget")

UNKNOWN_DESCRIPTION = "Unknown Item"

_DESCRIPTION_KEYS = ("description", "name")
_SCHEDULED_KEYS = ("revised_budget_amount", "original_budget_amount")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _first_present(record: Mapping[str, Any], keys: Iterable[str]) -> tuple[str | None, Any]:
    for key in keys:
        if not _blank(record.get(key)):
            return key, record[key]
    return None, None


def _amount(record: Mapping[str, Any], key: str, item_index: int | None) -> Decimal:
    raw = record.get(key)
    if _blank(raw):
        return ZERO
    return to_decimal(raw, key, item_index)


def _description(record: Mapping[str, Any]) -> str:
    cost_code = record.get("cost_code")
    if isinstance(cost_code, Mapping):
        full_code = cost_code.get("full_code")
        if not _blank(full_code):
            return str(full_code).strip()
    elif not _blank(cost_code):
        # Flat exports carry the code as a plain column
        return str(cost_code).strip()
    _, value = _first_present(record, _DESCRIPTION_KEYS)
    return UNKNOWN_DESCRIPTION if value is None else str(value).strip()


def is_normalized_record(record: Mapping[str, Any]) -> bool:
    return "scheduled_value" in record


def map_budget_record(
    record: Mapping[str, Any],
    item_index: int | None = None,
) -> BudgetLineItem:
    """
    Map one budget record to a BudgetLineItem.

    Raises:
        DataError: the record is not a mapping or an amount is malformed
            or negative (including previous work when amount_billed is
            less than current_period_amount_billed).
    """
    if not isinstance(record, Mapping):
        raise DataError(
            f"budget record must be an object, got {type(record).__name__}",
            item_index=item_index,
        )

    if is_normalized_record(record):
        return BudgetLineItem.from_mapping(record, item_index=item_index)

    scheduled_key, scheduled_raw = _first_present(record, _SCHEDULED_KEYS)
    scheduled = ZERO if scheduled_key is None else to_decimal(scheduled_raw, scheduled_key, item_index)
    billed = _amount(record, "amount_billed", item_index)
    current = _amount(record, "current_period_amount_billed", item_index)

    return BudgetLineItem.from_mapping(
        {
            "description": _description(record),
            "scheduled_value": scheduled,
            "previous_completed": billed - current,
            "current_completed": current,
            "stored_materials": _amount(record, "material_stored", item_index),
        },
        item_index=item_index,
    )


def map_budget_records(records: Iterable[Any]) -> tuple[BudgetLineItem, ...]:
    """
    Map a batch of budget records in source order.

    Records with no non-blank value are skipped. An empty source maps to
    an empty tuple; a non-empty source where every record is skipped is
    a DataError.

    Raises:
        DataError: first bad record, or no usable record in a non-empty
            source.
    """
    items: list[BudgetLineItem] = []
    seen = 0
    skipped = 0
    for index, record in enumerate(records):
        seen += 1
        if isinstance(record, Mapping) and all(_blank(v) for v in record.values()):
            skipped += 1
            continue
        items.append(map_budget_record(record, item_index=index))

    if seen and not items:
        raise DataError(
            f"Budget source contained {seen} record(s) but none could be mapped to a line item"
        )

    logger.info("budget_records_mapped", extra={
        "record_count": seen,
        "line_item_count": len(items),
        "skipped_count": skipped,
    })
    return tuple(items)
