# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential Store persistence.

The store is a flat JSON object keyed by credential id, each value the
camelCase CredentialStatus shape. A missing or corrupt file is treated
as empty so the pool degrades to "every credential active" instead of
refusing to start.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Union

from ..core.types import CredentialStatus

lib_logger = logging.getLogger("genai_rotator")


class KeyStatusStorage:
    """
    JSON file backed Credential Store.

    Usage:
        storage = KeyStatusStorage("key_status.json")
        statuses = storage.load()
        storage.save(statuses)
    """

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    def load(self) -> Dict[str, CredentialStatus]:
        """
        Load persisted statuses.

        Never raises: missing, unreadable or malformed data yields an empty map.
        """
        if not self.file_path.exists():
            return {}

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            lib_logger.error(f"Failed to load key status from {self.file_path}: {e}")
            return {}

        if not isinstance(raw, dict):
            lib_logger.error(
                f"Ignoring key status file {self.file_path}: expected an object, "
                f"got {type(raw).__name__}"
            )
            return {}

        statuses: Dict[str, CredentialStatus] = {}
        for cred_id, entry in raw.items():
            if not isinstance(entry, dict):
                lib_logger.warning(f"Skipping malformed key status entry '{cred_id}'")
                continue
            try:
                statuses[cred_id] = CredentialStatus.from_dict(cred_id, entry)
            except (TypeError, ValueError) as e:
                lib_logger.warning(f"Skipping malformed key status entry '{cred_id}': {e}")
        return statuses

    def save(self, statuses: Dict[str, CredentialStatus]) -> bool:
        """
        Persist statuses atomically.

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            data = {cred_id: status.to_dict() for cred_id, status in statuses.items()}

            temp_path = self.file_path.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_path.replace(self.file_path)
            return True
        except Exception as e:
            lib_logger.error(f"Failed to save key status to {self.file_path}: {e}")
            return False

    def clear_all(self) -> None:
        """Remove every persisted status."""
        try:
            self.file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            lib_logger.error(f"Failed to clear key status file {self.file_path}: {e}")

    def clear_one(self, cred_id: str) -> bool:
        """Remove a single entry. Returns whether it existed."""
        statuses = self.load()
        if cred_id not in statuses:
            return False
        del statuses[cred_id]
        self.save(statuses)
        return True


class MemoryKeyStatusStorage:
    """In-process Credential Store with the same interface, for tests and ephemeral runs."""

    def __init__(self, initial: Dict[str, CredentialStatus] = None):
        self._data: Dict[str, dict] = {
            cred_id: status.to_dict() for cred_id, status in (initial or {}).items()
        }
        self.save_count = 0

    def load(self) -> Dict[str, CredentialStatus]:
        return {
            cred_id: CredentialStatus.from_dict(cred_id, entry)
            for cred_id, entry in self._data.items()
        }

    def save(self, statuses: Dict[str, CredentialStatus]) -> bool:
        self._data = {cred_id: status.to_dict() for cred_id, status in statuses.items()}
        self.save_count += 1
        return True

    def clear_all(self) -> None:
        self._data = {}

    def clear_one(self, cred_id: str) -> bool:
        return self._data.pop(cred_id, None) is not None

    def raw(self, cred_id: str) -> dict:
        """Persisted dict for one entry, as it would appear on disk."""
        return dict(self._data[cred_id])
