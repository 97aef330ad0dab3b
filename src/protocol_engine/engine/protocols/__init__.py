"""Protocol domain concepts.

This package holds first-class types for:
- Protocol definitions (triggers, ordered steps, conditionals)
- Active executions (the per-run step state machine)
- The engine that detects, starts and advances protocols

Commands in steps are opaque templates; the caller runs them and reports back.
"""

__all__: list[str] = []
