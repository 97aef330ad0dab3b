"""CLI entrypoint for the protocol engine.

Each invocation builds an engine from settings, restores persisted runs, runs
one command and exits. Structured results are printed as JSON on stdout; logs
go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from protocol_engine import __version__
from protocol_engine.engine.config import EngineSettings
from protocol_engine.engine.errors import ProtocolEngineError
from protocol_engine.engine.factory import EngineFactory
from protocol_engine.engine.help import HELP_TOPICS, get_help
from protocol_engine.engine.logging import configure_logging

logger = logging.getLogger(__name__)


def _json_object(value: str) -> dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("expected a JSON object")
    return parsed


def _json_value(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        # Bare words are recorded as plain strings.
        return value


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protocol-engine",
        description="Guided execution of multi-step protocols",
    )
    parser.add_argument("--version", action="version", version=f"protocol-engine {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Find protocols triggered by an input")
    detect.add_argument("input", help="Free-text input or command")
    detect.add_argument(
        "--context",
        type=_json_object,
        default=None,
        help='Context as a JSON object, e.g. \'{"event": "new_conversation"}\'',
    )

    start = subparsers.add_parser("start", help="Start executing a protocol")
    start.add_argument("protocol_id", help="ID of the protocol to start")
    start.add_argument(
        "--context",
        type=_json_object,
        default=None,
        help="Context for the protocol as a JSON object",
    )

    next_action = subparsers.add_parser("next", help="Get the next action for an active protocol")
    next_action.add_argument("active_id", help="ID of the active protocol")

    complete = subparsers.add_parser("complete-step", help="Mark a protocol step as completed")
    complete.add_argument("active_id", help="ID of the active protocol")
    complete.add_argument("step_id", help="ID of the completed step")
    complete.add_argument(
        "--result",
        type=_json_value,
        default=None,
        help="Result of the step (JSON, or a plain string)",
    )

    status = subparsers.add_parser("status", help="Show progress of an active protocol")
    status.add_argument("active_id", help="ID of the active protocol")

    list_cmd = subparsers.add_parser("list", help="List available protocols")
    list_cmd.add_argument("--category", default=None, help="Filter by category")

    subparsers.add_parser("active", help="List currently active protocols")

    archive = subparsers.add_parser("archive", help="Move an active protocol to history")
    archive.add_argument("active_id", help="ID of the active protocol")
    archive.add_argument(
        "--failed",
        action="store_true",
        help="Record the run as unsuccessful",
    )

    subparsers.add_parser("stats", help="Show execution statistics")

    cleanup = subparsers.add_parser("cleanup", help="Drop stale active protocols")
    cleanup.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="Age threshold in hours (defaults to PROTOCOL_ENGINE_STALE_AFTER_HOURS)",
    )

    help_cmd = subparsers.add_parser("help", help="Show usage help")
    help_cmd.add_argument("topic", nargs="?", default=None, choices=sorted(HELP_TOPICS))

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        print(get_help(args.topic))
        return 0

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        engine = EngineFactory.create(settings)

        if args.command == "detect":
            matches = engine.detect_triggers(args.input, args.context)
            _print_json([p.to_json() for p in matches])
            return 0

        if args.command == "start":
            active = engine.start_protocol(args.protocol_id, args.context)
            _print_json(active.to_json())
            return 0

        if args.command == "next":
            _print_json(engine.get_next_action(args.active_id).to_json())
            return 0

        if args.command == "complete-step":
            engine.complete_step(args.active_id, args.step_id, args.result)
            print(engine.display_progress(args.active_id))
            return 0

        if args.command == "status":
            print(engine.display_progress(args.active_id))
            return 0

        if args.command == "list":
            _print_json(engine.list_protocols(args.category))
            return 0

        if args.command == "active":
            _print_json(engine.list_active_protocols())
            return 0

        if args.command == "archive":
            engine.archive_protocol(args.active_id, success=not args.failed)
            print(f"Archived {args.active_id}")
            return 0

        if args.command == "stats":
            _print_json(engine.statistics().model_dump(mode="json"))
            return 0

        if args.command == "cleanup":
            max_age = (
                timedelta(hours=args.max_age_hours)
                if args.max_age_hours is not None
                else settings.stale_after
            )
            removed = engine.cleanup(max_age)
            _print_json({"removed": removed})
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except ProtocolEngineError as e:
        logger.warning(str(e), extra={"command": args.command})
        print(f"Error: {e}", file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
