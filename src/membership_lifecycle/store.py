# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Durable grant storage.

The store is the single source of truth for live grants. Nothing else in
the process keeps its own copy: the sweeper and the enrollment service
read through ``all()`` and ``get()`` every time.

Durability:
- Every successful ``upsert``/``delete`` has been written to disk with
  write-to-temp, fsync, then atomic rename before the call returns.
- In-memory state is only updated after the write succeeded, so a failed
  write leaves the store exactly as it was.

Startup:
- A missing file is created as an empty mapping.
- A file that exists but cannot be parsed raises StoreCorruptedError and
  is never overwritten.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union, runtime_checkable

from membership_lifecycle.errors import StoreCorruptedError
from membership_lifecycle.grants import Grant

logger = logging.getLogger(__name__)


@runtime_checkable
class GrantStore(Protocol):
    """Keyed storage of grants, one per subject."""

    def upsert(self, grant: Grant) -> None:
        """Replace any grant for ``grant.subject_id``; durable on return."""
        ...

    def delete(self, subject_id: str) -> None:
        """Remove the grant for ``subject_id`` if present; durable on return."""
        ...

    def get(self, subject_id: str) -> Optional[Grant]:
        """Return the current grant for ``subject_id``, or None."""
        ...

    def all(self) -> List[Grant]:
        """Return a snapshot of every stored grant, in no particular order."""
        ...


class JsonGrantStore:
    """Grant store backed by a single pretty-printed JSON file.

    Example:
        >>> store = JsonGrantStore(Path("members.json"))
        >>> store.upsert(Grant.issue("123", "VIP", 30, utc_now()))
        >>> [g.subject_id for g in store.all()]
        ['123']
    """

    def __init__(self, path: Union[str, Path]):
        """Open the store, creating an empty file if none exists.

        Args:
            path: Location of the JSON file.

        Raises:
            StoreCorruptedError: If the file exists but cannot be parsed.
        """
        self.path = Path(path)
        self._lock = threading.RLock()
        self._grants: Dict[str, Grant] = self._load()

    def _load(self) -> Dict[str, Grant]:
        if not self.path.exists():
            logger.info(f"Grant store {self.path} not found, starting empty")
            self._write({})
            return {}

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreCorruptedError(self.path, f"unreadable: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreCorruptedError(self.path, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise StoreCorruptedError(self.path, "top-level value is not an object")

        grants: Dict[str, Grant] = {}
        for subject_id, record in data.items():
            try:
                grants[subject_id] = Grant.from_record(subject_id, record)
            except ValueError as e:
                raise StoreCorruptedError(self.path, str(e)) from e

        logger.info(f"Loaded {len(grants)} grant(s) from {self.path}")
        return grants

    def _write(self, grants: Dict[str, Grant]) -> None:
        """Atomically replace the file with ``grants``."""
        if self.path.is_symlink():
            raise ValueError(f"Refusing to write to symlink: {self.path}")

        directory = self.path.parent if str(self.path.parent) else Path(".")
        directory.mkdir(parents=True, exist_ok=True)

        payload = {sid: grant.to_record() for sid, grant in grants.items()}

        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            dir=directory,
            text=True,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        self._fsync_directory(directory)

    @staticmethod
    def _fsync_directory(directory: Path) -> None:
        # Makes the rename itself durable; not supported on every platform
        try:
            dir_fd = os.open(directory, os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(dir_fd)
        except OSError:
            pass
        finally:
            os.close(dir_fd)

    def upsert(self, grant: Grant) -> None:
        with self._lock:
            updated = dict(self._grants)
            updated[grant.subject_id] = grant
            self._write(updated)
            self._grants = updated
        logger.debug(f"Stored grant for {grant.subject_id} in {grant.group_id}")

    def delete(self, subject_id: str) -> None:
        with self._lock:
            if subject_id not in self._grants:
                return
            updated = dict(self._grants)
            del updated[subject_id]
            self._write(updated)
            self._grants = updated
        logger.debug(f"Deleted grant for {subject_id}")

    def get(self, subject_id: str) -> Optional[Grant]:
        with self._lock:
            return self._grants.get(subject_id)

    def all(self) -> List[Grant]:
        with self._lock:
            return list(self._grants.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._grants)
