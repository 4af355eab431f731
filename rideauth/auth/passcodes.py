"""
One-time passcode storage.

Keeps at most one live passcode record per phone number in a JSON file.
Callers mutate records through `modify`, which runs the whole
read-compare-write under the store lock, so two concurrent verifications
for the same phone can never both observe the same attempt count.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Tuple, TypeVar
from dataclasses import dataclass, asdict

logger = logging.getLogger(__name__)

PASSCODES_FILENAME = "passcodes.json"

T = TypeVar("T")


@dataclass
class PasscodeRecord:
    """A live passcode for one phone number."""
    phone: str
    code: str
    expires_at: float  # Epoch seconds
    attempts: int = 0
    created_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PasscodeRecord":
        return cls(
            phone=data["phone"],
            code=data["code"],
            expires_at=float(data["expires_at"]),
            attempts=int(data.get("attempts", 0)),
            created_at=float(data.get("created_at", 0.0))
        )


class PasscodeStore:
    """JSON-based passcode storage keyed by normalized phone number."""

    def __init__(self, file_path: Path):
        self.file_path = file_path
        self._lock = threading.RLock()
        self._ensure_file()

    def _ensure_file(self):
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.file_path.exists():
            self._save_all({})

    def _load_all(self) -> dict[str, dict]:
        try:
            with open(self.file_path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            return {}

    def _save_all(self, records: dict[str, dict]):
        with open(self.file_path, "w") as f:
            json.dump(records, f, indent=2)

    def put(self, record: PasscodeRecord) -> PasscodeRecord:
        """Store a record, replacing any existing one for the same phone."""
        with self._lock:
            records = self._load_all()
            records[record.phone] = record.to_dict()
            self._save_all(records)
        return record

    def get(self, phone: str) -> Optional[PasscodeRecord]:
        with self._lock:
            data = self._load_all().get(phone)
        return PasscodeRecord.from_dict(data) if data else None

    def delete(self, phone: str) -> bool:
        with self._lock:
            records = self._load_all()
            if records.pop(phone, None) is None:
                return False
            self._save_all(records)
            return True

    def modify(
        self,
        phone: str,
        fn: Callable[[Optional[PasscodeRecord]], Tuple[Optional[PasscodeRecord], T]]
    ) -> T:
        """
        Atomically compare-and-set the record for a phone.

        Args:
            phone: Record key
            fn: Receives the current record (or None) and returns
                (replacement, result). A None replacement deletes the record.

        Returns:
            Whatever `fn` returned as result
        """
        with self._lock:
            records = self._load_all()
            data = records.get(phone)
            current = PasscodeRecord.from_dict(data) if data else None

            replacement, result = fn(current)

            if replacement is None:
                if current is not None:
                    del records[phone]
                    self._save_all(records)
            else:
                records[phone] = replacement.to_dict()
                self._save_all(records)

            return result

    def purge_expired(self, now: float) -> int:
        """
        Delete every record whose expiry has passed.

        Returns:
            Number of records removed
        """
        with self._lock:
            records = self._load_all()
            live = {
                phone: data for phone, data in records.items()
                if float(data.get("expires_at", 0)) > now
            }
            removed = len(records) - len(live)
            if removed:
                self._save_all(live)

        if removed:
            logger.info(f"Purged {removed} expired passcode(s)")
        return removed
