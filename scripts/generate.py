#!/usr/bin/env python3
"""
Generate an AIA G702/G703 payment application from a budget export.

Usage:
    python -m scripts.generate BUDGET PROJECT [-o OUT] [--values-only]
        [--format xlsx|json|text] [--config FILE]
        [--retainage-source continuation|recompute] [--log-level LEVEL]
    python -m scripts.generate BUDGET --probe-only

BUDGET is a JSON, JSON Lines, CSV or XLSX budget export. PROJECT is a
YAML or JSON file with the invoice form fields (owner_name, project_name,
application_number, contractor_name, period_to, contract_date,
original_contract_sum, change_orders_sum, previous_payments and the
retainage percentages).

--probe-only prints the row count, columns, record shape and the first
records of BUDGET and exits without mapping it.

Exit codes:
    0  document written, or source probed
    2  bad input (DataError, SourceError)
    3  formula dependency failure (DependencyError)
    1  anything else
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from payapp_config import RETAINAGE_SOURCES, get_active_config
from payapp_ingestion import load_line_items, probe_budget_source
from payapp_kernel.exceptions import DataError, DependencyError, PayAppError, SourceError
from payapp_kernel.logging_config import configure_logging, get_logger
from payapp_services import (
    PaymentApplicationService,
    WorkbookWriter,
    render_text_report,
    to_dict,
)

logger = get_logger("cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_INPUT = 2
EXIT_DEPENDENCY = 3

FORMATS = ("xlsx", "json", "text")


def load_project_file(path: Path) -> dict[str, Any]:
    """Read the project form fields from a YAML or JSON file."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise SourceError(str(path), "file not found") from exc
    except yaml.YAMLError as exc:
        raise SourceError(str(path), f"malformed project file: {exc}") from exc
    if not isinstance(data, dict):
        raise SourceError(str(path), "project file must contain a mapping of form fields")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m scripts.generate",
        description="Generate an AIA G702/G703 payment application.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("budget", type=Path, help="Budget export (.json, .jsonl, .csv, .xlsx)")
    parser.add_argument(
        "project",
        type=Path,
        nargs="?",
        default=None,
        help="Project form fields (.yaml or .json); not needed with --probe-only",
    )
    parser.add_argument(
        "-o", "--out",
        type=Path,
        default=None,
        help="Output file or directory (xlsx default: configured filename in the current directory; "
             "json/text default: stdout)",
    )
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default="xlsx",
        help="Output format (default: xlsx)",
    )
    parser.add_argument(
        "--values-only",
        action="store_true",
        help="Write computed values instead of live formulas (xlsx only)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration merged over the packaged defaults",
    )
    parser.add_argument(
        "--retainage-source",
        choices=RETAINAGE_SOURCES,
        default=None,
        help="Where summary line 5 takes retainage from (default: from config)",
    )
    parser.add_argument(
        "--probe-only",
        action="store_true",
        help="Probe the budget source (row count, columns, sample rows) and exit",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Structured log level on stderr (default: WARNING)",
    )
    return parser


def print_probe(budget: Path) -> None:
    probe = probe_budget_source(budget)
    print(f"Rows: {probe.row_count}")
    print(f"Columns: {list(probe.columns)}")
    print(f"Shape: {probe.shape}")
    print("Sample (first 3):")
    for i, row in enumerate(probe.sample_rows[:3], 1):
        print(f"  {i}: {row}")


def run(args: argparse.Namespace) -> Path | None:
    """Build the application and write it. Returns the file written, if any."""
    config = get_active_config(args.config)
    line_items = load_line_items(args.budget)
    project_form = load_project_file(args.project)

    service = PaymentApplicationService(config, retainage_source=args.retainage_source)
    application = service.prepare(line_items, project_form)

    if args.format == "xlsx":
        writer = WorkbookWriter(application, formulas=not args.values_only)
        return writer.save(args.out if args.out is not None else Path.cwd())

    if args.format == "json":
        text = json.dumps(to_dict(application), indent=2) + "\n"
    else:
        text = render_text_report(application)

    if args.out is None:
        sys.stdout.write(text)
        return None
    args.out.write_text(text, encoding="utf-8")
    return args.out


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.project is None and not args.probe_only:
        parser.error("the following arguments are required: project")
    configure_logging(level=args.log_level)

    try:
        if args.probe_only:
            print_probe(args.budget)
            return EXIT_OK
        written = run(args)
    except (DataError, SourceError) as exc:
        logger.error("generate_failed", exc_info=exc, extra={"budget": str(args.budget)})
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except DependencyError as exc:
        logger.error("generate_failed", exc_info=exc, extra={"budget": str(args.budget)})
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_DEPENDENCY
    except (PayAppError, OSError, ValueError, KeyError, yaml.YAMLError) as exc:
        logger.error("generate_failed", exc_info=exc, extra={"budget": str(args.budget)})
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    if written is not None:
        print(f"Wrote {written}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
