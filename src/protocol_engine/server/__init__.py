"""FastAPI server adapter for protocol-engine.

This module exposes the engine's operations as HTTP endpoints.

Design intent:
- Keep protocol logic in `protocol_engine.engine.*`
- Keep server-specific concerns (routing, CORS, error mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from protocol_engine.server.app import create_app
