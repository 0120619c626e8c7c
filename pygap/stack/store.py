"""Durable storage of the stacks file."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from ..errors import PersistenceError
from .models import StacksFile

logger = logging.getLogger(__name__)

class StackStore:
    """Load and save the whole stacks file.

    A missing or unreadable file reads as an empty mapping. Writes replace the
    file atomically and raise ``PersistenceError`` on failure.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> StacksFile:
        try:
            self._ensure_dir()
        except OSError as e:
            logger.error(f"Failed to create gap directory {self.path.parent}: {e}")
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable stacks file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring stacks file {self.path}: top level is not an object")
            return {}
        return data

    def save(self, stacks: StacksFile) -> None:
        try:
            self._ensure_dir()
            fd, tmp_path = tempfile.mkstemp(prefix=".stacks-", suffix=".json", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(stacks, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save stacks to {self.path}: {e}") from e
        logger.debug(f"Saved stacks to {self.path}")
