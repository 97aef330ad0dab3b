"""Protocol Engine.

Guided, step-by-step execution of named multi-step protocols:
- trigger detection over free text and caller context
- active executions persisted to local JSON documents
- a small CLI and an HTTP surface over the same engine
"""

__version__ = "0.1.0"

from protocol_engine.engine.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
