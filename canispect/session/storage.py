"""Session persistence.

A stored session is the delegated key (PKCS#8 PEM) plus its expiry. Storage
backends are async so that a remote or keyring-backed store can slot in.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class StoredSession(BaseModel):
    """Serialised form of a delegated identity."""

    pem: str
    expiration_ns: int


class SessionStorage(Protocol):
    async def load(self) -> StoredSession | None: ...

    async def save(self, session: StoredSession) -> None: ...

    async def clear(self) -> None: ...


class MemoryStorage:
    """In-process storage, lost at exit."""

    def __init__(self, session: StoredSession | None = None) -> None:
        self._session = session

    async def load(self) -> StoredSession | None:
        return self._session

    async def save(self, session: StoredSession) -> None:
        self._session = session

    async def clear(self) -> None:
        self._session = None


class FileStorage:
    """JSON file storage, readable by the owning user only."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    async def load(self) -> StoredSession | None:
        if not self.path.exists():
            return None
        try:
            return StoredSession.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None

    async def save(self, session: StoredSession) -> None:
        """Atomically replace the file with a fresh 0600 one."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(session.model_dump_json())
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def clear(self) -> None:
        self.path.unlink(missing_ok=True)
