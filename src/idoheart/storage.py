"""Key/value storage for local referral state."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from idoheart.exceptions import CorruptStorageError, StorageError
from idoheart.logging_config import get_logger

logger = get_logger(__name__)

SENT_REFERRALS_KEY = "sentReferrals"
RECEIVED_CODE_KEY = "receivedCode"


class MemoryStorage:
    """In-memory storage, nothing survives the process."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self.data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        # Keep the JSON contract of the file storage
        self.data[key] = json.loads(json.dumps(value))

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStorage:
    """Storage backed by a single JSON document on disk.

    The document maps each key to its JSON value. Every write replaces the
    whole file atomically.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        except ValueError as e:
            raise CorruptStorageError(f"Malformed JSON in {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CorruptStorageError(f"Unexpected content in {self.path}")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e
        logger.debug("storage_written", path=str(self.path), keys=sorted(data))

    def get(self, key: str) -> Any | None:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._read()
        except CorruptStorageError:
            logger.warning("storage_unreadable_overwriting", path=str(self.path))
            data = {}
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)
