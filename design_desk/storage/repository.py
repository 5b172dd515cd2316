"""
Repository pattern for data access.

Handles reading, validating and writing the JSON client file.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from design_desk.core.errors import ConfigIntegrityError
from .models import ClientDirectory, ClientRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CLIENTS_PATH = "clients.json"

# One lock per resolved file path, shared by every repository instance
_path_locks: Dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _path_locks[key] = lock
        return lock


class ClientRepository:
    """Repository for the client file.

    The file is re-read on every call and rewritten in full on every
    change; nothing is cached between calls. Use `update` for
    read-modify-write so concurrent invocations cannot lose an increment.
    """

    def __init__(self, path: str = DEFAULT_CLIENTS_PATH):
        """Initialize the repository with a file path.

        Args:
            path: Path to the JSON client file
        """
        self.path = Path(path)

    def load(self) -> ClientDirectory:
        """Read and validate the whole client file.

        Returns:
            ClientDirectory with every client record

        Raises:
            ConfigIntegrityError: If the file is missing, not JSON, or any
                record is malformed
        """
        if not self.path.exists():
            raise ConfigIntegrityError(f"Client file not found: {self.path}")

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f, object_pairs_hook=_reject_duplicate_keys)
        except json.JSONDecodeError as e:
            raise ConfigIntegrityError(f"Invalid JSON in client file {self.path}: {e}")
        except ValueError as e:
            raise ConfigIntegrityError(f"Invalid client file {self.path}: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Could not read client file {self.path}: {e}")

        return parse_client_directory(raw, source=str(self.path))

    def save(self, directory: ClientDirectory) -> None:
        """Write the whole client file, replacing the prior contents atomically.

        The data is written to a temporary file in the same directory and
        moved over the original, so readers never see a half-written file.
        """
        payload = json.dumps(dump_client_directory(directory), indent=2, ensure_ascii=False)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def update(self, mutator: Callable[[ClientDirectory], T]) -> T:
        """Load, mutate and save as one serialized step.

        The mutator receives the freshly loaded directory and may change it
        in place. The file is only written when the mutator returns without
        raising; its return value is passed through.
        """
        with _lock_for(self.path):
            directory = self.load()
            before = dump_client_directory(directory)
            result = mutator(directory)
            if dump_client_directory(directory) != before:
                self.save(directory)
                logger.debug("Saved client file %s", self.path)
            return result


def parse_client_directory(raw: Any, source: str = "client file") -> ClientDirectory:
    """Validate a decoded client document and build typed records.

    Expected shape: {"clients": {"<roleId>": {"name", "monthlyQuota", "used"}}}

    Raises:
        ConfigIntegrityError: On any structural or type problem
    """
    if not isinstance(raw, dict):
        raise ConfigIntegrityError(f"{source}: top level must be an object")

    unknown_keys = set(raw.keys()) - {'clients'}
    if unknown_keys:
        raise ConfigIntegrityError(f"{source}: unknown top-level keys: {unknown_keys}")

    if 'clients' not in raw:
        raise ConfigIntegrityError(f"{source}: missing required 'clients' object")

    clients_data = raw['clients']
    if not isinstance(clients_data, dict):
        raise ConfigIntegrityError(f"{source}: 'clients' must be an object")

    directory = ClientDirectory()
    for role_key, record_data in clients_data.items():
        if not _is_canonical_role_id(role_key):
            raise ConfigIntegrityError(
                f"{source}: role ID {role_key!r} must be a plain decimal number without leading zeros"
            )
        directory.put(int(role_key), _parse_record(record_data, f"{source}: clients.{role_key}"))
    return directory


def _is_canonical_role_id(role_key: Any) -> bool:
    # "0111" or non-ASCII digits would collapse onto another role ID
    return (
        isinstance(role_key, str)
        and role_key.isascii()
        and role_key.isdigit()
        and str(int(role_key)) == role_key
    )


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ValueError(f"duplicate key {key!r}")
        result[key] = value
    return result


def _parse_record(data: Any, path: str) -> ClientRecord:
    if not isinstance(data, dict):
        raise ConfigIntegrityError(f"{path} must be an object")

    unknown_keys = set(data.keys()) - {'name', 'monthlyQuota', 'used'}
    if unknown_keys:
        raise ConfigIntegrityError(f"{path}: unknown keys: {unknown_keys}")

    for key in ('name', 'monthlyQuota', 'used'):
        if key not in data:
            raise ConfigIntegrityError(f"{path}: missing required '{key}'")

    if not isinstance(data['name'], str):
        raise ConfigIntegrityError(f"{path}: 'name' must be a string")

    for key in ('monthlyQuota', 'used'):
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigIntegrityError(f"{path}: '{key}' must be an integer, got {value!r}")

    try:
        return ClientRecord(
            name=data['name'],
            monthly_quota=data['monthlyQuota'],
            used=data['used'],
        )
    except ValueError as e:
        raise ConfigIntegrityError(f"{path}: {e}")


def dump_client_directory(directory: ClientDirectory) -> Dict[str, Any]:
    """Serialize a directory back to the on-disk document shape."""
    return {
        "clients": {
            str(role_id): {
                "name": record.name,
                "monthlyQuota": record.monthly_quota,
                "used": record.used,
            }
            for role_id, record in directory.clients.items()
        }
    }


# Global repository instance
_default_repository: Optional[ClientRepository] = None


def get_repository(path: str = DEFAULT_CLIENTS_PATH) -> ClientRepository:
    """Get a repository instance.

    Returns the shared instance unless a different path is requested.
    """
    global _default_repository
    if _default_repository is None or _default_repository.path != Path(path):
        _default_repository = ClientRepository(path)
    return _default_repository
