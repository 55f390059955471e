"""
Project metadata form validation.

Validates the invoice form as a whole and reports every problem in one
FormValidationError rather than stopping at the first, then builds the
ProjectInfo.

Required:   owner_name, project_name, application_number, contractor_name,
            period_to, contract_date, original_contract_sum,
            change_orders_sum, previous_payments,
            retainage_completed_percent, retainage_stored_percent
Numeric:    the three contract figures and every retainage percentage
Dates:      period_to and contract_date, YYYY-MM-DD
Optional:   retainage_reduction_threshold and reduced_retainage_percent,
            supplied together

A base retainage percentage may be left blank when a default is supplied
for it; the configured defaults are passed in by the service layer.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from payapp_kernel.domain.inputs import ProjectInfo
from payapp_kernel.domain.values import ONE_HUNDRED, to_decimal
from payapp_kernel.exceptions import DataError, FormValidationError
from payapp_kernel.logging_config import get_logger

logger = get_logger("ingestion.project")

TEXT_FIELDS = ("owner_name", "project_name", "application_number", "contractor_name")
DATE_FIELDS = ("period_to", "contract_date")
MONEY_FIELDS = ("original_contract_sum", "change_orders_sum", "previous_payments")
PERCENT_FIELDS = ("retainage_completed_percent", "retainage_stored_percent")
THRESHOLD_FIELDS = ("retainage_reduction_threshold", "reduced_retainage_percent")

_ISO_DATE = re.compile(r"^[0-9]{4}-(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])$")


def _label(name: str) -> str:
    return name.replace("_", " ").capitalize()


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_project_form(
    form: Mapping[str, Any],
    default_percents: Mapping[str, Decimal] | None = None,
) -> ProjectInfo:
    """
    Validate a project metadata form and build a ProjectInfo.

    Args:
        form: Flat mapping of field name to raw value (strings, numbers
            or dates).
        default_percents: Values for blank base retainage percentages,
            keyed by field name. A percentage with no default is required.

    Raises:
        FormValidationError: one or more fields are missing or malformed;
            ``problems`` lists every one of them.
    """
    if not isinstance(form, Mapping):
        raise DataError(f"project form must be an object, got {type(form).__name__}")

    problems: list[str] = []
    values: dict[str, Any] = {}

    defaults = dict(default_percents or {})
    required = TEXT_FIELDS + DATE_FIELDS + MONEY_FIELDS
    required += tuple(name for name in PERCENT_FIELDS if name not in defaults)
    for name in required:
        if _blank(form.get(name)):
            problems.append(f"Missing required field: {_label(name)}")

    for name in TEXT_FIELDS:
        if not _blank(form.get(name)):
            values[name] = str(form[name]).strip()

    for name in DATE_FIELDS:
        raw = form.get(name)
        if _blank(raw):
            continue
        if isinstance(raw, date):
            values[name] = raw
            continue
        text = str(raw).strip()
        parsed = None
        if _ISO_DATE.match(text):
            try:
                parsed = date.fromisoformat(text)
            except ValueError:
                parsed = None
        if parsed is None:
            problems.append(f"{_label(name)} must be a valid date in YYYY-MM-DD format.")
        else:
            values[name] = parsed

    for name in MONEY_FIELDS + PERCENT_FIELDS + THRESHOLD_FIELDS:
        raw = form.get(name)
        if _blank(raw):
            continue
        try:
            values[name] = to_decimal(raw, name)
        except DataError:
            problems.append(f"{_label(name)} must be a valid number.")

    for name in ("original_contract_sum", "previous_payments"):
        if name in values and values[name] < 0:
            problems.append(f"{_label(name)} must not be negative.")

    for name in PERCENT_FIELDS + THRESHOLD_FIELDS:
        if name in values and not (0 <= values[name] <= ONE_HUNDRED):
            problems.append(f"{_label(name)} must be between 0 and 100.")

    threshold_given = [not _blank(form.get(name)) for name in THRESHOLD_FIELDS]
    if any(threshold_given) and not all(threshold_given):
        problems.append(
            "Retainage reduction threshold and reduced retainage percent "
            "must be given together."
        )

    if problems:
        logger.warning("project_form_invalid", extra={
            "problem_count": len(problems),
            "fields": sorted({name for name in form if isinstance(name, str)}),
        })
        raise FormValidationError(problems)

    for name in PERCENT_FIELDS:
        if name not in values:
            values[name] = to_decimal(defaults[name], name)

    return ProjectInfo(
        owner_name=values["owner_name"],
        project_name=values["project_name"],
        application_number=values["application_number"],
        contractor_name=values["contractor_name"],
        original_contract_sum=values["original_contract_sum"],
        change_orders_sum=values["change_orders_sum"],
        previous_payments=values["previous_payments"],
        retainage_completed_percent=values["retainage_completed_percent"],
        retainage_stored_percent=values["retainage_stored_percent"],
        retainage_reduction_threshold=values.get("retainage_reduction_threshold"),
        reduced_retainage_percent=values.get("reduced_retainage_percent"),
        period_to=values["period_to"],
        contract_date=values["contract_date"],
    )
