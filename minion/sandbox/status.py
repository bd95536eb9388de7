"""Sandbox status document."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from minion.core.errors import ValidationError
from minion.models import PHASE_ORDER, SandboxStatus

logger = logging.getLogger(__name__)


def can_transition(current: str, new: str) -> bool:
    """Phases move forward through PHASE_ORDER or directly to ``failed``.

    ``done`` and ``failed`` are final.
    """
    if current in ("done", "failed"):
        return new == current
    if new == "failed":
        return True
    if new not in PHASE_ORDER:
        return False
    return PHASE_ORDER.index(new) >= PHASE_ORDER.index(current)


def read_status(path: str | Path) -> SandboxStatus | None:
    """Parse a status document, or None if it is missing or malformed."""
    try:
        return SandboxStatus.model_validate_json(Path(path).read_text())
    except (OSError, PydanticValidationError) as e:
        logger.debug(f"No usable status at {path}: {e}")
        return None


class StatusFile:
    """Writer for status.json that refuses backward phase moves."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> SandboxStatus:
        return read_status(self.path) or SandboxStatus()

    def update(self, **changes: Any) -> SandboxStatus:
        """Merge changes into the document and rewrite it.

        Raises:
            ValidationError: If the phase change would move backward
        """
        current = self.read()
        new_phase = changes.get("phase")
        if new_phase and not can_transition(current.phase, new_phase):
            raise ValidationError(f"Cannot move status from {current.phase} to {new_phase}")

        status = SandboxStatus.model_validate({**current.model_dump(), **changes})
        self._write(status)
        if new_phase and new_phase != current.phase:
            logger.info(f"Sandbox phase {current.phase} -> {new_phase}")
        return status

    def _write(self, status: SandboxStatus) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(status.model_dump(mode="json", exclude_none=True), f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
