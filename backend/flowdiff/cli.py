#!/usr/bin/env python3
"""Command line front end for the workflow diff engine.

Usage:
    flowdiff apply --workflow workflow.json --operations ops.json [--output out.json]
    flowdiff validate --workflow workflow.json

Examples:
    # Check a batch without writing anything
    flowdiff apply -w workflow.json -o ops.json --validate-only

    # Apply what can be applied and write the new workflow
    flowdiff apply -w workflow.json -o ops.json --continue-on-error --output new.json

    # Print the raw result payload
    flowdiff apply -w workflow.json -o ops.json --json

The operations file holds either a JSON list of operations or a full request
object ``{"operations": [...], "validateOnly": ..., "continueOnError": ...}``.

Exit codes: 0 success, 1 rejected, 2 unreadable input.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from flowdiff.config import get_settings
from flowdiff.models import ApplyResult, StructuralReport, WorkflowDiffRequest, WorkflowGraph
from flowdiff.services import StructuralValidator, WorkflowDiffEngine

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_BAD_INPUT = 2


# ANSI color codes
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text."""
    return f"{color}{text}{Colors.RESET}"


def out(text: str = "") -> None:
    """Print with immediate flush for non-TTY environments."""
    print(text, flush=True)


class InputError(Exception):
    """An input file is missing or does not hold what was expected."""

    pass


def load_json(path: str) -> Any:
    file_path = Path(path)
    if not file_path.exists():
        raise InputError(f"File not found: {file_path}")
    try:
        return json.loads(file_path.read_text())
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {file_path}: {e}") from e


def load_workflow(path: str) -> WorkflowGraph:
    try:
        return WorkflowGraph.model_validate(load_json(path))
    except ValidationError as e:
        raise InputError(f"Invalid workflow in {path}: {e.error_count()} error(s)\n{e}") from e


def load_request(path: str, validate_only: bool, continue_on_error: bool) -> WorkflowDiffRequest:
    data = load_json(path)
    if isinstance(data, list):
        data = {"operations": data}
    if not isinstance(data, dict):
        raise InputError(f"Operations file must hold a list or an object: {path}")

    # Flags only ever switch a mode on
    if validate_only:
        data["validateOnly"] = True
    if continue_on_error:
        data["continueOnError"] = True
    try:
        return WorkflowDiffRequest.model_validate(data)
    except ValidationError as e:
        raise InputError(f"Invalid diff request in {path}: {e}") from e


def print_result(result: ApplyResult) -> None:
    if result.success:
        out(colorize(f"✓ {result.message}", Colors.GREEN))
    else:
        out(colorize(f"✗ {result.message}", Colors.RED))

    for error in result.errors or []:
        where = "batch" if error.operation_index < 0 else f"operation {error.operation_index}"
        out(colorize(f"  [{error.kind.value}] {where}: {error.message}", Colors.RED))
    for warning in result.warnings or []:
        where = "batch" if warning.operation_index < 0 else f"operation {warning.operation_index}"
        out(colorize(f"  [warning] {where}: {warning.message}", Colors.YELLOW))
    for rename in result.renames or []:
        out(colorize(f'  renamed "{rename.old_name}" -> "{rename.new_name}"', Colors.DIM))
    for stale in result.stale_connections_removed or []:
        out(colorize(f"  removed stale connection {stale.from_node} -> {stale.to_node}", Colors.DIM))


def print_report(report: StructuralReport) -> None:
    if report.valid:
        out(colorize("✓ Workflow structure is valid", Colors.GREEN))
    else:
        out(colorize("✗ Workflow structure is invalid", Colors.RED))
    for issue in report.issues:
        out(colorize(f"  [{issue.code.value}] {issue.message}", Colors.RED))
    for warning in report.warnings:
        out(colorize(f"  [warning] {warning}", Colors.YELLOW))


def cmd_apply(args: argparse.Namespace) -> int:
    workflow = load_workflow(args.workflow)
    request = load_request(args.operations, args.validate_only, args.continue_on_error)

    max_operations = get_settings().max_operations
    if len(request.operations) > max_operations:
        raise InputError(
            f"Batch has {len(request.operations)} operations; the limit is {max_operations}"
        )

    result = WorkflowDiffEngine().apply_diff(workflow, request)

    if args.json:
        out(json.dumps(result.to_payload(), indent=2))
    else:
        print_result(result)

    if result.success and result.workflow is not None and args.output:
        Path(args.output).write_text(json.dumps(result.workflow.to_payload(), indent=2) + "\n")
        logger.info(f"Wrote workflow to {args.output}")

    return EXIT_OK if result.success else EXIT_REJECTED


def cmd_validate(args: argparse.Namespace) -> int:
    workflow = load_workflow(args.workflow)
    report = StructuralValidator(WorkflowDiffEngine().classifier).validate(workflow)

    if args.json:
        out(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        print_report(report)

    return EXIT_OK if report.valid else EXIT_REJECTED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowdiff",
        description="Apply diff operations to workflow graphs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply_parser = subparsers.add_parser("apply", help="Apply a batch of operations")
    apply_parser.add_argument(
        "--workflow", "-w",
        required=True,
        help="Path to the workflow JSON file",
    )
    apply_parser.add_argument(
        "--operations", "-o",
        required=True,
        help="Path to the operations (or full request) JSON file",
    )
    apply_parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Check the batch without producing a new workflow",
    )
    apply_parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Skip invalid operations instead of rejecting the batch",
    )
    apply_parser.add_argument(
        "--output",
        help="Write the resulting workflow to this file",
    )
    apply_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the raw result payload",
    )
    apply_parser.set_defaults(handler=cmd_apply)

    validate_parser = subparsers.add_parser("validate", help="Check a workflow's structure")
    validate_parser.add_argument(
        "--workflow", "-w",
        required=True,
        help="Path to the workflow JSON file",
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the raw report",
    )
    validate_parser.set_defaults(handler=cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, get_settings().log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        return args.handler(args)
    except InputError as e:
        out(colorize(f"Error: {e}", Colors.RED))
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
