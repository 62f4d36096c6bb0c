"""Run-spec CLI command wiring.

This module registers the run-spec subcommand and delegates execution to the
shared run-spec engine used by CLI and SDK entry points.
"""

from __future__ import annotations

import argparse
from typing import Any

from ingest.upload_sdk import ChainfeedClient


def add_run_spec_command(subparsers: Any) -> None:
    """Register run-spec subcommand."""
    parser = subparsers.add_parser(
        "run-spec",
        help="Run a declarative YAML batch spec",
    )
    parser.add_argument("spec_file", help="Path to YAML run-spec file")


def run_run_spec_command(client: ChainfeedClient, args: argparse.Namespace) -> int:
    """Handle run-spec command invocation."""
    outcome = client.run_spec(args.spec_file)
    for line in outcome.output_lines:
        print(line)
    return 1 if outcome.has_failures else 0
