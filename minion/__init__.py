"""Minions - autonomous coding agents in disposable sandboxes."""

__version__ = "0.1.0"
