#!/usr/bin/env python3
"""Programmatic protocol walk-through.

This demonstrates using the engine components directly:

* load settings from `.env`
* detect protocols for a piece of free text
* start the best match and walk it to completion, persisting progress to
  `data/active-protocols.json`
* archive the finished run into `data/protocol-history.json`

Commands are only printed, never executed.
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from protocol_engine.engine.config import EngineSettings
from protocol_engine.engine.factory import EngineFactory
from protocol_engine.engine.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk a protocol end to end (programmatic example).")
    parser.add_argument("text", help='Free text to detect protocols from, e.g. "update repo"')
    parser.add_argument(
        "--context",
        default="{}",
        help='Context as a JSON object, e.g. \'{"commit_message": "docs: typo"}\'',
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    context = json.loads(args.context)

    settings = EngineSettings()
    configure_logging(settings.log_level)

    engine = EngineFactory.create(settings)

    matches = engine.detect_triggers(args.text, context)
    if not matches:
        print(f"No protocol matches {args.text!r}")
        return 0

    protocol = matches[0]
    active = engine.start_protocol(protocol.id, context)
    print(f"Started {protocol.name} as {active.id}")

    while True:
        action = engine.get_next_action(active.id)
        if action.type == "complete" or action.step is None:
            print(action.message)
            print(action.summary)
            break
        print(action.display)
        engine.complete_step(active.id, action.step.id, {"simulated": True})

    engine.archive_protocol(active.id)
    print(f"Archived to: {settings.history_file}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
