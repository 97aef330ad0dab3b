"""Static help text for the CLI and HTTP surfaces."""

from __future__ import annotations

HELP_TOPICS: dict[str, str] = {
    "getting-started": """\
# Getting Started with the Protocol Engine

The protocol engine walks you through multi-step workflows one step at a time.

## Basic Usage:
1. Detect applicable protocols: detect "your command"
2. Start a protocol: start <protocol-id>
3. Get next action: next <active-id>
4. Execute the command shown
5. Mark complete: complete-step <active-id> <step-id>
6. Repeat until done

## Example:
User: "update repo"
1. detect "update repo" -> shows applicable protocols
2. start repo-update -> starts the protocol
3. next repo-update_1700000000000_ab12cd34 -> shows next command
4. Execute: git:git_status()
5. complete-step repo-update_1700000000000_ab12cd34 status
6. Continue until all steps complete
""",
    "protocols": """\
# Built-in Protocols

## Repository Update (repo-update)
Triggers: "update repo", "commit changes", "push to github"
Steps: Git status -> Tests -> Commit -> Push -> Summary

## Session Initialization (session-init)
Triggers: "start session", new conversation
Steps: Brain init -> Bag of tricks -> Locations -> Project -> Captain's log

## Auto-Continuation (auto-continuation)
Triggers: second continue detected, max prompt length twice
Steps: Analyze -> Generate note -> Save state -> Create artifact

## Error Recovery (error-recovery)
Triggers: tool errors, file not found, permission denied
Steps: Diagnose -> Attempt fix -> Fallback -> Report

Use list to see every registered protocol.
""",
    "commands": """\
# Protocol Commands

## Detection & Discovery
- detect INPUT [--context JSON]  Find applicable protocols
- list [--category C]            List all protocols
- active                         Show active protocols

## Execution
- start PROTOCOL_ID [--context JSON]             Begin a protocol
- next ACTIVE_ID                                 Get next action
- complete-step ACTIVE_ID STEP_ID [--result J]   Mark step done
- status ACTIVE_ID                               Check progress

## Maintenance
- archive ACTIVE_ID [--failed]    Move a run to history
- stats                           Execution statistics
- cleanup [--max-age-hours H]     Drop stale active runs

## Help
- help [TOPIC]                    Get help on a specific topic
""",
    "troubleshooting": """\
# Troubleshooting

## Protocol won't start
- Check the protocol exists: list
- Verify the trigger matches: detect "your input"
- Ensure required context is provided

## Step won't complete
- Verify the step ID is correct (unknown step IDs are rejected)
- Check the validation criteria
- Review error messages

## Lost track of progress
- Use active to see all active protocols
- Use status <active-id> to see specific progress
- Inspect active-protocols.json in the data directory

## Protocol stuck
- Some steps are conditional and skipped when their context key is unset
- Check if manual intervention is needed
- Review the protocol definition for requirements
""",
}

DEFAULT_HELP = """\
# Protocol Engine Help

The protocol engine provides guided execution of multi-step workflows.

## Available Topics:
- getting-started: Basic usage and examples
- protocols: List of built-in protocols
- commands: Command reference
- troubleshooting: Common issues and solutions

Use help <topic> for specific help.

## Quick Start:
1. Say what you want to do
2. Use detect to find matching protocols
3. Start the protocol with start
4. Follow the step-by-step guidance
"""


def get_help(topic: str | None = None) -> str:
    return HELP_TOPICS.get(topic or "", DEFAULT_HELP)
