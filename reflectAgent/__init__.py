"""Plan, execute and reflect agent orchestrator."""

__version__ = "0.1.0"
