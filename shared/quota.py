"""
Client-side daily quota for video submissions.

Tracks how many video generations were submitted today and refuses new ones
once the daily limit is reached, independent of server-side throttling.
"""

import asyncio
import json
import os
import tempfile
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

from shared.config import settings
from shared.logging import get_logger
from shared.models.quota import QuotaCheck, QuotaRecord, QuotaStatus

logger = get_logger("quota")

QUOTA_KEY = "video_generation_quota"


class QuotaChargePolicy(str, Enum):
    """When a video submission consumes a quota unit."""

    ON_ATTEMPT = "on_attempt"
    ON_ACCEPTED = "on_accepted"


class QuotaStore(Protocol):
    """Durable key-value boundary for quota records."""

    def load(self, key: str) -> Optional[QuotaRecord]:
        ...

    def save(self, key: str, record: QuotaRecord) -> None:
        ...


class InMemoryQuotaStore:
    """Process-local store, lost on restart."""

    def __init__(self):
        self._records: Dict[str, QuotaRecord] = {}

    def load(self, key: str) -> Optional[QuotaRecord]:
        return self._records.get(key)

    def save(self, key: str, record: QuotaRecord) -> None:
        self._records[key] = record.model_copy()


class JSONFileQuotaStore:
    """
    Quota records persisted in a JSON file keyed by quota key.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.quota_store_path)

    def _read_all(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(
                f"Quota store unreadable, starting from empty: {str(e)}",
                extra={"path": str(self.path)}
            )
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> Optional[QuotaRecord]:
        raw = self._read_all().get(key)
        if raw is None:
            return None
        try:
            return QuotaRecord.model_validate(raw)
        except ValueError as e:
            logger.warning(f"Discarding malformed quota record: {str(e)}", extra={"key": key})
            return None

    def save(self, key: str, record: QuotaRecord) -> None:
        data = self._read_all()
        data[key] = record.model_dump()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class QuotaLedger:
    """
    Date-scoped submission counter with a fixed daily limit.

    The stored count is treated as 0 whenever the stored date differs from
    today's local calendar date. check_and_increment is guarded by a lock so
    concurrent submissions within one process cannot both pass the gate on
    the last free unit.

    Usage:
        ledger = QuotaLedger()
        check = await ledger.check_and_increment()
        if not check.allowed:
            ...  # refuse to submit
    """

    def __init__(
        self,
        store: Optional[QuotaStore] = None,
        limit: Optional[int] = None,
        today: Callable[[], date] = date.today,
        key: str = QUOTA_KEY,
    ):
        self.store = store if store is not None else JSONFileQuotaStore()
        self.limit = limit if limit is not None else settings.video_daily_limit
        self.key = key
        self._today = today
        self._lock = asyncio.Lock()

    def _current_record(self) -> QuotaRecord:
        """Load the record, resetting it when it belongs to another day."""
        today = self._today()
        record = self.store.load(self.key)
        if record is None or not record.is_for(today):
            if record is not None:
                logger.info(
                    "Quota day boundary passed, resetting count",
                    extra={"previous_date": record.date, "previous_count": record.count}
                )
            record = QuotaRecord(count=0, date=today.isoformat())
            self.store.save(self.key, record)
        return record

    def peek(self) -> QuotaStatus:
        """Current usage without consuming a unit."""
        record = self._current_record()
        return QuotaStatus(count=record.count, limit=self.limit)

    async def check(self, units: int = 1) -> QuotaCheck:
        """Evaluate the gate for units submissions without consuming anything."""
        async with self._lock:
            record = self._current_record()
            return QuotaCheck(allowed=record.count + units <= self.limit, new_count=record.count)

    async def increment(self) -> int:
        """
        Consume one unit and return the new count.

        The count never exceeds the limit; at the limit the call is a logged
        no-op returning the unchanged count.
        """
        async with self._lock:
            record = self._current_record()
            if record.count >= self.limit:
                logger.warning(
                    "Daily video quota already at limit, not incrementing",
                    extra={"count": record.count, "limit": self.limit}
                )
                return record.count
            updated = QuotaRecord(count=record.count + 1, date=record.date)
            self.store.save(self.key, updated)
            return updated.count

    async def release(self, units: int = 1) -> int:
        """
        Return previously reserved units that were never used.

        Args:
            units: Units to give back

        Returns:
            The new count, never below 0
        """
        async with self._lock:
            record = self._current_record()
            updated = QuotaRecord(count=max(0, record.count - units), date=record.date)
            self.store.save(self.key, updated)
            logger.info(
                "Video quota released",
                extra={"released": units, "count": updated.count, "limit": self.limit}
            )
            return updated.count

    async def check_and_increment(self, units: int = 1) -> QuotaCheck:
        """
        Gate a video submission.

        Args:
            units: Submissions to reserve at once (one per video prompt)

        Returns:
            QuotaCheck with allowed=False once the daily limit is reached.
            When allowed, the incremented count is already persisted.
        """
        async with self._lock:
            record = self._current_record()
            if record.count + units > self.limit:
                logger.warning(
                    "Daily video quota reached",
                    extra={"count": record.count, "requested": units, "limit": self.limit}
                )
                return QuotaCheck(allowed=False, new_count=record.count)

            updated = QuotaRecord(count=record.count + units, date=record.date)
            self.store.save(self.key, updated)
            logger.info(
                "Video quota consumed",
                extra={"count": updated.count, "limit": self.limit}
            )
            return QuotaCheck(allowed=True, new_count=updated.count)
