"""
Typed Exception Hierarchy for the Payment Application Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from PayAppError:

    PayAppError (base)
    |
    +-- DataError
    |   +-- MissingFieldError
    |   +-- InvalidNumberError
    |   +-- OutOfRangeError
    |   +-- FormValidationError
    |
    +-- DependencyError
    |
    +-- SourceError
    |
    +-- RenderError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code               | When Raised
-------------|--------------------|------------------------------------------------
Data         | DATA_ERROR         | Malformed line item or project field
             | MISSING_FIELD      | Required field absent or blank
             | INVALID_NUMBER     | Currency/percent field is not a finite number
             | OUT_OF_RANGE       | Negative amount or percentage outside [0, 100]
             | FORM_INVALID       | Project form has one or more invalid fields
-------------|--------------------|------------------------------------------------
Dependency   | DEPENDENCY_ERROR   | Formula cites a missing or NaN upstream value
-------------|--------------------|------------------------------------------------
Source       | SOURCE_ERROR       | Budget export unreadable or unsupported
-------------|--------------------|------------------------------------------------
Render       | RENDER_ERROR       | Workbook could not be built or written

Every error aborts the whole run. There is no partial document.
"""

from __future__ import annotations

from typing import Any


class PayAppError(Exception):
    """
    Base exception for all payment application errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYAPP_ERROR"


# Input data exceptions


class DataError(PayAppError):
    """A BudgetLineItem or ProjectInfo field is missing or malformed."""

    code: str = "DATA_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        item_index: int | None = None,
        value: Any = None,
    ):
        self.field = field
        self.item_index = item_index
        self.value = value
        if item_index is not None:
            message = f"Line item {item_index}: {message}"
        super().__init__(message)


class MissingFieldError(DataError):
    """Required field was not supplied."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str, item_index: int | None = None):
        super().__init__(
            f"Missing required field: {field}",
            field=field,
            item_index=item_index,
        )


class InvalidNumberError(DataError):
    """Field must be a finite number."""

    code: str = "INVALID_NUMBER"

    def __init__(self, field: str, value: Any, item_index: int | None = None):
        super().__init__(
            f"{field} must be a valid number, got {value!r}",
            field=field,
            item_index=item_index,
            value=value,
        )


class OutOfRangeError(DataError):
    """Numeric field lies outside its permitted range."""

    code: str = "OUT_OF_RANGE"

    def __init__(
        self,
        field: str,
        value: Any,
        bounds: str,
        item_index: int | None = None,
    ):
        self.bounds = bounds
        super().__init__(
            f"{field} must be {bounds}, got {value}",
            field=field,
            item_index=item_index,
            value=value,
        )


class FormValidationError(DataError):
    """
    Project metadata form failed validation.

    Carries every problem found, not just the first.
    """

    code: str = "FORM_INVALID"

    def __init__(self, problems: list[str]):
        self.problems = tuple(problems)
        super().__init__("Validation failed:\n- " + "\n- ".join(self.problems))


# Formula dependency exceptions


class DependencyError(PayAppError):
    """
    A formula references an upstream value that is absent or non-numeric.

    `reference` identifies the missing input, e.g. "continuation.totals.G"
    or a cell address such as "'G703 - Continuation Sheet'!G9".
    """

    code: str = "DEPENDENCY_ERROR"

    def __init__(self, reference: str, message: str | None = None):
        self.reference = reference
        super().__init__(message or f"Missing or non-numeric dependency: {reference}")


# Boundary exceptions


class SourceError(PayAppError):
    """Budget source file could not be read."""

    code: str = "SOURCE_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot read budget source {source}: {reason}")


class RenderError(PayAppError):
    """Workbook could not be rendered or saved."""

    code: str = "RENDER_ERROR"

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"Cannot render {target}: {reason}")
