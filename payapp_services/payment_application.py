"""
payapp_services.payment_application -- Builds a complete payment application.

Responsibility:
    Run the continuation engine, the summary engine and the formula audit
    for one invoice, under a run-scoped LogContext, and hand back an
    immutable PaymentApplication that every renderer consumes.

Architecture position:
    Services -- orchestration over engines + kernel + config.
    Engines stay pure; this layer picks the configuration, binds the log
    context and decides which retainage source applies.

Invariants enforced:
    - All-or-nothing: any DataError or DependencyError aborts the run and
      no PaymentApplication is returned.
    - Every formula on both sheets is re-evaluated before the
      application is returned (``verify=False`` skips this for
      benchmarks only).

Failure modes:
    - DataError (and subclasses) from malformed line items or project
      figures.
    - DependencyError from a summary formula citing a missing total, or
      from a figure that does not reproduce from its formula.

Usage:
    from payapp_services import PaymentApplicationService

    service = PaymentApplicationService()
    application = service.prepare(line_items, project)
    application.summary.current_payment_due
"""

from __future__ import annotations

import re
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from payapp_config import PayAppConfig, get_active_config
from payapp_engines import (
    ContinuationSheet,
    RetainageSource,
    SummarySheet,
    build_continuation,
    build_summary,
    verify_continuation,
    verify_summary,
)
from payapp_ingestion.mapping import parse_project_form
from payapp_kernel.domain.cells import SheetId
from payapp_kernel.domain.inputs import BudgetLineItem, ProjectInfo, validate_project_info
from payapp_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.payment_application")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


@dataclass(frozen=True)
class PaymentApplication:
    """Everything needed to render one payment application."""

    project: ProjectInfo
    continuation: ContinuationSheet
    summary: SummarySheet
    config: PayAppConfig
    retainage_source: RetainageSource
    run_id: str

    @property
    def sheet_titles(self) -> dict[SheetId, str]:
        return self.config.sheet_titles.as_mapping()

    @property
    def filename(self) -> str:
        return output_filename(self.project, self.config)


def output_filename(project: ProjectInfo, config: PayAppConfig) -> str:
    """Download filename for a project, e.g. AIA_G702G703_Main_St_3.xlsx."""
    return config.filename_pattern.format(
        project=_UNSAFE_FILENAME_CHARS.sub("_", project.project_name),
        application=_UNSAFE_FILENAME_CHARS.sub("_", project.application_number),
    )


class PaymentApplicationService:
    """
    Prepares payment applications from line items and project figures.

    Contract:
        Receives an optional PayAppConfig; without one the active
        configuration is loaded once at construction.
    Guarantees:
        - ``prepare`` returns a verified PaymentApplication or raises.
        - The retainage source is the explicit constructor argument, else
          the configured default.
    Non-goals:
        - Does not read budget files; see payapp_ingestion.
        - Does not write documents; see WorkbookWriter and the reports.
    """

    def __init__(
        self,
        config: PayAppConfig | None = None,
        retainage_source: RetainageSource | str | None = None,
        verify: bool = True,
    ):
        self._config = config if config is not None else get_active_config()
        self._retainage_source = RetainageSource(
            retainage_source if retainage_source is not None else self._config.retainage.source
        )
        self._verify = verify

    @property
    def config(self) -> PayAppConfig:
        return self._config

    @property
    def retainage_source(self) -> RetainageSource:
        return self._retainage_source

    def prepare(
        self,
        line_items: Iterable[BudgetLineItem | Mapping[str, Any]],
        project: ProjectInfo | Mapping[str, Any],
        run_id: str | None = None,
    ) -> PaymentApplication:
        """
        Build both sheets for one invoice and audit their formulas.

        ``project`` may be a ProjectInfo or a raw form mapping; blank
        retainage percentages on a form fall back to the configured
        defaults.
        """
        if isinstance(project, Mapping):
            project = parse_project_form(
                project,
                default_percents={
                    "retainage_completed_percent": self._config.retainage.completed_percent,
                    "retainage_stored_percent": self._config.retainage.stored_percent,
                },
            )
        project = validate_project_info(project)
        run_id = run_id or uuid4().hex

        with LogContext.bind(
            run_id=run_id,
            project_name=project.project_name,
            application_number=project.application_number,
        ):
            t0 = time.monotonic()
            logger.info("payment_application_started", extra={
                "retainage_source": self._retainage_source.value,
                "config_checksum": self._config.checksum,
            })

            continuation = build_continuation(line_items, project.retainage)
            summary = build_summary(project, continuation, self._retainage_source)
            if self._verify:
                verify_continuation(continuation)
                verify_summary(summary, continuation)

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("payment_application_prepared", extra={
                "row_count": len(continuation.rows),
                "total_completed_and_stored": summary.total_completed_and_stored,
                "total_retainage": summary.total_retainage,
                "current_payment_due": summary.current_payment_due,
                "balance_to_finish": summary.balance_to_finish,
                "verified": self._verify,
                "duration_ms": duration_ms,
            })

        return PaymentApplication(
            project=summary.project,
            continuation=continuation,
            summary=summary,
            config=self._config,
            retainage_source=self._retainage_source,
            run_id=run_id,
        )
