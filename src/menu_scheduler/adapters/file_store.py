"""File-backed key/value store for persisted local state."""

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote


@dataclass
class FileKeyValueStore:
    """Stores each key as a UTF-8 file inside a directory."""

    directory: Path

    def get_item(self, key: str) -> str | None:
        """Return the file contents for a key, if present."""
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        """Atomically replace the file for a key."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    def remove_item(self, key: str) -> None:
        """Delete the file for a key if it exists."""
        self._path(key).unlink(missing_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"
