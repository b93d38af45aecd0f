"""CLI entrypoint: replay a saved history through a workflow definition.

Runs exactly one decision cycle offline and prints the decisions as JSON, so
a definition change can be checked against real executions before deploying.
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from swf_decider import __version__
from swf_decider.config import DeciderSettings
from swf_decider.decider.decider import Decider
from swf_decider.decider.events import WorkflowExecution
from swf_decider.decider.steps import Step
from swf_decider.logging import configure_logging

logger = logging.getLogger(__name__)


def load_pipeline(spec: str) -> Step:
    """Import `package.module:attribute`; a callable attribute is called with no arguments."""

    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Pipeline must be given as 'module:attribute', got {spec!r}")

    target: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        target = getattr(target, part)
    if not isinstance(target, Step) and callable(target):
        target = target()
    if not isinstance(target, Step):
        raise TypeError(f"{spec!r} is not a task or pipeline")
    return target


def load_history(path: Path) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
    """Read a history file: either a list of events or a saved poll response."""

    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data, None
    if isinstance(data, dict) and isinstance(data.get("events"), list):
        return data["events"], data.get("workflowExecution")
    raise ValueError(f"{path} holds neither an event list nor a decision task")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swf-decider",
        description="Replay workflow histories through a decider definition",
    )
    parser.add_argument("--version", action="version", version=f"swf-decider {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser(
        "replay", help="Compute the next decisions for a saved execution history"
    )
    replay.add_argument(
        "--history",
        required=True,
        type=Path,
        help="JSON file with the event list or a full decision task",
    )
    replay.add_argument(
        "--pipeline",
        required=True,
        help="Workflow definition as 'package.module:attribute'",
    )
    replay.add_argument(
        "--workflow-id",
        default=None,
        help="Execution id to use when the file does not carry one",
    )
    replay.add_argument(
        "--run-id",
        default=None,
        help="Run id to use when the file does not carry one",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = DeciderSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "replay":
            history, execution = load_history(args.history)
            if execution is None and args.workflow_id:
                execution = WorkflowExecution(args.workflow_id, args.run_id or "").to_json()

            decider = Decider(load_pipeline(args.pipeline), settings=settings)
            decisions = decider.decide(history, execution)
            logger.info(
                "Replayed history",
                extra={"path": str(args.history), "events": len(history)},
            )
            print(json.dumps(decisions, indent=2))
            return 0

        parser.error(f"Unknown command: {args.command}")
        return 2
    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
