"""Protocol engine components.

- Settings loaded from .env
- Structured logging
- Protocol catalog, active-execution state machine and engine
- JSON-file persistence of active runs and history
- A small CLI surface
"""
