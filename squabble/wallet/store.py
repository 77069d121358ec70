"""Write-once storage of per-user wallet records."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class WalletStore(ABC):
    """Per-user wallet blobs. ``save`` never overwrites an existing record."""

    @abstractmethod
    def load(self, user_id: str) -> str | None:
        """Return the stored blob, or None."""

    @abstractmethod
    def save(self, user_id: str, blob: str) -> bool:
        """Store blob if none exists yet. Returns True when something was written."""


class FileWalletStore(WalletStore):
    """One ``<user_id>.json`` file per user under a directory."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, user_id: str) -> Path:
        safe = _UNSAFE.sub("_", user_id) or "_"
        return self.directory / f"{safe}.json"

    def load(self, user_id: str) -> str | None:
        path = self._path(user_id)
        try:
            if path.exists():
                return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read wallet data from {path}: {e}")
        return None

    def save(self, user_id: str, blob: str) -> bool:
        path = self._path(user_id)
        try:
            if path.exists():
                return False
            path.write_text(blob, encoding="utf-8")
            logger.info(f"Wallet data saved for user {user_id}")
            return True
        except OSError as e:
            logger.error(f"Failed to save wallet data to {path}: {e}")
            return False


class InMemoryWalletStore(WalletStore):
    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    def load(self, user_id: str) -> str | None:
        return self._blobs.get(user_id)

    def save(self, user_id: str, blob: str) -> bool:
        if user_id in self._blobs:
            return False
        self._blobs[user_id] = blob
        return True
