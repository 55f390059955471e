"""
payapp_services -- Orchestration and rendering of payment applications.

    PaymentApplicationService   engines + audit under a run LogContext
    WorkbookWriter              openpyxl two-sheet workbook
    render_text_report/to_dict  value-only renderings
"""

from payapp_services.payment_application import (
    PaymentApplication,
    PaymentApplicationService,
    output_filename,
)
from payapp_services.report import format_money, format_percent, render_text_report, to_dict
from payapp_services.workbook_writer import WorkbookWriter

__all__ = [
    "PaymentApplication",
    "PaymentApplicationService",
    "WorkbookWriter",
    "format_money",
    "format_percent",
    "output_filename",
    "render_text_report",
    "to_dict",
]
