"""File-backed status documents under ``.hive/status``."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .models import WorkerStatus

logger = logging.getLogger(__name__)


class StatusStore:
    """Reads worker status documents; workers are the only regular writers.

    A document that fails to parse (most often one caught half-written) is
    answered with the last value successfully read for that slot, so a torn
    write never shows up as a status change.
    """

    def __init__(self, hive_dir: Path) -> None:
        self._hive_dir = Path(hive_dir)
        self._last_known: dict[int, WorkerStatus] = {}

    @property
    def directory(self) -> Path:
        return self._hive_dir / "status"

    def path_for(self, slot: int) -> Path:
        return self.directory / f"worker-{slot}.json"

    def read(self, slot: int) -> WorkerStatus | None:
        path = self.path_for(slot)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._last_known.pop(slot, None)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Status read failed", extra={"slot": slot, "error": str(exc)})
            return self._last_known.get(slot)

        try:
            document = json.loads(content)
            if not isinstance(document, dict):
                raise ValueError("status document must be a JSON object")
            status = WorkerStatus.model_validate(document)
        except (ValueError, ValidationError) as exc:
            logger.debug("Ignoring malformed status document", extra={"slot": slot, "error": str(exc)})
            return self._last_known.get(slot)

        self._last_known[slot] = status
        return status

    def write(self, slot: int, status: WorkerStatus) -> Path:
        """Atomically replace the document for ``slot`` after strict validation."""

        status.validate_for_write()
        path = self.path_for(slot)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".worker-{slot}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(status.to_document(), handle, indent=2)
                handle.write("\n")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path

    def reset(self, slot: int) -> bool:
        """Remove the document for ``slot``; returns whether one existed."""

        self._last_known.pop(slot, None)
        try:
            self.path_for(slot).unlink()
        except FileNotFoundError:
            return False
        return True


__all__ = ["StatusStore"]
