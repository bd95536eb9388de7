"""Execution journal kept by the sandbox agent."""

from pathlib import Path

TEMPLATE = """## Plan

<!-- Update this section immediately after reading the task -->

## Execution Log

<!-- Append to this section after each significant action -->

## Verification

<!-- Fill this section after running build/lint/test -->

## Status

<!-- Must be one of: COMPLETED, BLOCKED — <reason>, PARTIAL — <what remains> -->
"""


def seed_journal(path: str | Path) -> bool:
    """Write the empty template unless a journal already exists.

    Returns True if the template was written.
    """
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(TEMPLATE, encoding="utf-8")
    return True


def read_journal(path: str | Path) -> str:
    """Journal text, or an empty string if it cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError:
        return ""
