"""
==============================================================================
ENTRY STORE
==============================================================================

Sole owner of the journal's durable state: `reviews.json` plus a single
backup slot `reviews_backup.json` in the data directory.

1. Mutations (add/update/delete/clear) serialize on one asyncio.Lock
2. Every write goes to a temp file that is then os.replace()d into place
3. The in-memory list is swapped only after the write succeeded
4. Backups after add/update run as tracked background tasks and are skipped
   when a later write already superseded them; delete backs up first and
   waits for it
5. Load failures never stop startup: the collection resets to empty and the
   error is published

Statistics and queries are plain reads over the in-memory list.
"""

import asyncio
import calendar
import json
import logging
import os
import tempfile
import uuid
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from deepreview.core.config import settings
from deepreview.features.journal import export
from deepreview.features.journal.models import Entry
from deepreview.shared.observable import StatePublisher
from deepreview.shared.errors import (
    BackupError,
    BackupMissingError,
    DeserializationError,
    EntryNotFoundError,
    FileReadError,
    FileWriteError,
    InstanceUnavailableError,
    StoreError,
)

logger = logging.getLogger("DeepReview.Store")


# =============================================================================
# PUBLISHED STATE
# =============================================================================

class IntegrityStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CORRUPTED = "corrupted"
    UNKNOWN = "unknown"


class IntegrityReport(BaseModel):
    """Result of perform_integrity_check(). Computed on demand, never stored."""
    status: IntegrityStatus
    issues: List[str] = Field(default_factory=list)
    total_records: int = 0
    primary_file_exists: bool = False
    backup_file_exists: bool = False
    duplicate_records: int = 0
    corrupted_records: int = 0
    last_backup_at: Optional[datetime] = None

    @property
    def health_score(self) -> float:
        score = 1.0
        if not self.primary_file_exists:
            score -= 0.4
        if not self.backup_file_exists:
            score -= 0.2
        if self.duplicate_records > 0:
            score -= 0.1
        if self.corrupted_records > 0:
            score -= 0.3
        return max(0.0, round(score, 2))

    @property
    def is_healthy(self) -> bool:
        return self.health_score >= 0.8


class StoreState(BaseModel):
    """Snapshot of the store's observable fields."""
    is_loading: bool = False
    error_message: Optional[str] = None
    integrity_status: IntegrityStatus = IntegrityStatus.UNKNOWN
    last_backup_at: Optional[datetime] = None
    entry_count: int = 0


def classify_issues(issue_count: int) -> IntegrityStatus:
    if issue_count == 0:
        return IntegrityStatus.HEALTHY
    if issue_count <= 2:
        return IntegrityStatus.DEGRADED
    return IntegrityStatus.CORRUPTED


# =============================================================================
# FILE HELPERS (run in worker threads)
# =============================================================================

def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Write data to path so readers see either the old file or the new one.

    The temp file lives in the same directory so os.replace stays a rename
    on one filesystem.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def serialize_entries(entries: List[Entry]) -> bytes:
    records = [entry.to_record() for entry in entries]
    return json.dumps(records, ensure_ascii=False).encode("utf-8")


def deserialize_entries(raw: bytes, source: Path) -> List[Entry]:
    try:
        records = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DeserializationError(str(source), str(e)) from e

    if not isinstance(records, list):
        raise DeserializationError(str(source), "top-level value is not a list")

    try:
        return [Entry.from_record(record) for record in records]
    except (ValidationError, TypeError) as e:
        raise DeserializationError(str(source), str(e)) from e


def newest_first(entries: List[Entry]) -> List[Entry]:
    return sorted(entries, key=lambda e: e.date, reverse=True)


# =============================================================================
# STORE
# =============================================================================

class EntryStore(StatePublisher[StoreState]):
    """
    Durable collection of journal entries.

    Construct one per data directory and share it; nothing else should
    touch the two files it owns.

    Args:
        data_dir: Directory holding reviews.json (default: settings.DATA_DIR)
        today: Callable returning the current calendar day (injectable for tests)
    """

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        super().__init__()
        self.data_dir = Path(data_dir) if data_dir is not None else Path(settings.DATA_DIR)
        self.reviews_path = self.data_dir / settings.REVIEWS_FILE_NAME
        self.backup_path = self.data_dir / settings.BACKUP_FILE_NAME
        self._today = today or date.today

        self._entries: List[Entry] = []
        self._lock = asyncio.Lock()
        self._backup_tasks: set[asyncio.Task] = set()
        # Bumped by every commit; a background backup only runs if nothing
        # was committed after the mutation that scheduled it.
        self._generation = 0
        self._closed = False

        self.is_loading = False
        self.error_message: Optional[str] = None
        self.integrity_status = IntegrityStatus.UNKNOWN
        self.last_backup_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return StoreState(
            is_loading=self.is_loading,
            error_message=self.error_message,
            integrity_status=self.integrity_status,
            last_backup_at=self.last_backup_at,
            entry_count=len(self._entries),
        )

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> Optional[StoreError]:
        """
        Read reviews.json into memory, newest first.

        A missing file is an empty journal. An unreadable or undecodable file
        resets the collection to empty; the error is returned and published
        as error_message instead of raised.
        """
        self._ensure_open()
        async with self._lock:
            self.is_loading = True
            self.error_message = None
            self._publish()
            try:
                entries = await asyncio.to_thread(self._read_entries, self.reviews_path)
            except StoreError as e:
                self._entries = []
                self.error_message = e.message
                logger.error(f"Failed to load entries: {e.message}")
                return e
            finally:
                self.is_loading = False
                self._publish()

            self._entries = newest_first(entries)
            self._publish()
            logger.info(f"Loaded {len(self._entries)} entries from {self.reviews_path}")
            return None

    @staticmethod
    def _read_entries(path: Path) -> List[Entry]:
        if not path.exists():
            logger.info("No reviews file yet, starting with an empty journal")
            return []
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise FileReadError(str(path), str(e)) from e
        return deserialize_entries(raw, path)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add(self, entry: Entry) -> None:
        """
        Insert an entry and persist.

        At most one entry per calendar day: an existing entry on the same date
        is replaced by the new one. A backup is scheduled in the background.
        """
        self._ensure_open()
        async with self._lock:
            replaced = [e for e in self._entries if e.date == entry.date or e.id == entry.id]
            remaining = [e for e in self._entries if e.date != entry.date and e.id != entry.id]
            updated = newest_first([entry] + remaining)
            await self._commit(updated)
            self._schedule_backup("add")

        if replaced:
            logger.info(f"Replaced existing entry for {entry.date} with {entry.id}")
        else:
            logger.info(f"Added entry {entry.id} for {entry.date}")

    async def update(self, entry: Entry) -> None:
        """Replace the entry with the same id. Raises EntryNotFoundError if absent."""
        self._ensure_open()
        async with self._lock:
            if not any(e.id == entry.id for e in self._entries):
                raise EntryNotFoundError(entry.id)
            updated = newest_first([entry if e.id == entry.id else e for e in self._entries])
            await self._commit(updated)
            self._schedule_backup("update")

        logger.info(f"Updated entry {entry.id}")

    async def delete(self, entry: Entry) -> None:
        """
        Back up the current file, then remove the entry and persist.

        Background backups still pending from earlier mutations are skipped
        once the delete commits, so the slot keeps the pre-delete copy.
        """
        self._ensure_open()
        await self.flush_backups()
        async with self._lock:
            if not any(e.id == entry.id for e in self._entries):
                raise EntryNotFoundError(entry.id)
            await self._backup_locked("before delete")
            updated = [e for e in self._entries if e.id != entry.id]
            await self._commit(updated)

        logger.info(f"Deleted entry {entry.id}")

    async def clear_all_data(self) -> None:
        """Persist an empty journal and drop the backup slot."""
        self._ensure_open()
        await self.flush_backups()
        async with self._lock:
            await self._commit([])
            try:
                await asyncio.to_thread(self.backup_path.unlink, missing_ok=True)
            except OSError as e:
                raise BackupError(str(e), "clear") from e
            self.last_backup_at = None
            self._publish()

        logger.warning("All journal data cleared")

    async def _commit(self, entries: List[Entry]) -> None:
        """Write entries to disk, then make them the in-memory state."""
        await self._save_to_file(entries)
        self._entries = entries
        self._generation += 1
        self._publish()

    async def _save_to_file(self, entries: List[Entry]) -> None:
        data = serialize_entries(entries)
        try:
            await asyncio.to_thread(atomic_write_bytes, self.reviews_path, data)
        except OSError as e:
            logger.error(f"Failed to save entries: {e}")
            raise FileWriteError(str(self.reviews_path), str(e)) from e
        logger.debug(f"Saved {len(entries)} entries")

    # ------------------------------------------------------------------
    # Backup / restore
    # ------------------------------------------------------------------

    async def create_backup(self, reason: str) -> bool:
        """
        Copy reviews.json into the backup slot, overwriting the previous backup.

        Returns:
            True if a backup was written, False if there was no primary file yet
        """
        self._ensure_open()
        async with self._lock:
            return await self._backup_locked(reason)

    async def _backup_locked(self, reason: str) -> bool:
        if not self.reviews_path.exists():
            logger.debug(f"Skipping backup ({reason}): no primary file yet")
            return False
        try:
            raw = await asyncio.to_thread(self.reviews_path.read_bytes)
            await asyncio.to_thread(atomic_write_bytes, self.backup_path, raw)
        except OSError as e:
            raise BackupError(str(e), reason) from e

        self.last_backup_at = datetime.now(timezone.utc)
        self._publish()
        logger.info(f"Backup created ({reason})", extra={"bytes": len(raw)})
        return True

    def _schedule_backup(self, reason: str) -> None:
        """Called with the lock held, right after the commit it backs up."""
        task = asyncio.create_task(self._background_backup(reason, self._generation))
        self._backup_tasks.add(task)
        task.add_done_callback(self._backup_tasks.discard)

    async def _background_backup(self, reason: str, generation: int) -> None:
        try:
            async with self._lock:
                if generation != self._generation:
                    logger.debug(f"Skipping backup ({reason}): superseded by a later write")
                    return
                await self._backup_locked(reason)
        except BackupError as e:
            logger.error(f"Background backup failed: {e.message}")

    def _ensure_open(self) -> None:
        if self._closed:
            raise InstanceUnavailableError()

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """
        Wait for pending backups, then refuse further file operations.

        Reads of the in-memory collection keep working; load, mutations,
        backup and restore raise InstanceUnavailableError afterwards.
        """
        if self._closed:
            return
        await self.flush_backups()
        self._closed = True
        logger.info("Entry store closed")

    @property
    def pending_backups(self) -> int:
        return len(self._backup_tasks)

    async def flush_backups(self) -> None:
        """Wait for every scheduled background backup to finish."""
        while self._backup_tasks:
            await asyncio.gather(*list(self._backup_tasks))

    async def restore_from_backup(self) -> None:
        """
        Overwrite reviews.json with the backup and reload.

        The backup is decoded before anything is written, so a damaged backup
        leaves the primary file and the in-memory list untouched.
        """
        self._ensure_open()
        async with self._lock:
            if not self.backup_path.exists():
                raise BackupMissingError(str(self.backup_path))
            try:
                raw = await asyncio.to_thread(self.backup_path.read_bytes)
            except OSError as e:
                raise BackupError(str(e), "restore") from e

            entries = deserialize_entries(raw, self.backup_path)
            try:
                await asyncio.to_thread(atomic_write_bytes, self.reviews_path, raw)
            except OSError as e:
                raise FileWriteError(str(self.reviews_path), str(e)) from e

            self._entries = newest_first(entries)
            self._generation += 1
            self.error_message = None
            self._publish()

        logger.info(f"Restored {len(entries)} entries from backup")

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    async def perform_integrity_check(self) -> IntegrityReport:
        """
        Inspect the file and the in-memory collection. Reports, never repairs.

        0 issues is healthy, 1-2 degraded, 3 or more corrupted.
        """
        issues: List[str] = []

        primary_exists = await asyncio.to_thread(self.reviews_path.exists)
        backup_exists = await asyncio.to_thread(self.backup_path.exists)
        if not primary_exists:
            issues.append("Primary data file is missing")

        empty_ids = [e for e in self._entries if e.id.int == 0]
        for entry in empty_ids:
            issues.append(f"Entry dated {entry.date.isoformat()} has an empty identifier")

        counts = Counter(e.id for e in self._entries if e.id.int != 0)
        duplicates = {entry_id: n for entry_id, n in counts.items() if n > 1}
        for entry_id, n in duplicates.items():
            issues.append(f"Identifier {entry_id} appears {n} times")

        status = classify_issues(len(issues))
        report = IntegrityReport(
            status=status,
            issues=issues,
            total_records=len(self._entries),
            primary_file_exists=primary_exists,
            backup_file_exists=backup_exists,
            duplicate_records=sum(n - 1 for n in duplicates.values()),
            corrupted_records=len(empty_ids),
            last_backup_at=self.last_backup_at,
        )

        self.integrity_status = status
        if issues:
            self.error_message = f"Integrity check found {len(issues)} issue(s): " + "; ".join(issues)
            logger.warning(self.error_message)
        else:
            logger.info("Integrity check passed")
        self._publish()
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all(self) -> List[Entry]:
        return list(self._entries)

    def by_id(self, entry_id: Union[uuid.UUID, str]) -> Optional[Entry]:
        wanted = entry_id if isinstance(entry_id, uuid.UUID) else uuid.UUID(str(entry_id))
        return next((e for e in self._entries if e.id == wanted), None)

    def by_date(self, day: date) -> Optional[Entry]:
        return next((e for e in self._entries if e.date == day), None)

    def recent(self, limit: int = 10) -> List[Entry]:
        return self._entries[:limit]

    def search(self, keyword: str) -> List[Entry]:
        """Case-insensitive match over the long free-text fields; "" returns everything."""
        if not keyword:
            return self.all()
        return [e for e in self._entries if e.matches(keyword)]

    def entries_between(self, start: date, end: date) -> List[Entry]:
        """Entries dated within [start, end], inclusive."""
        return [e for e in self._entries if start <= e.date <= end]

    def entries_this_week(self) -> List[Entry]:
        today = self._today()
        monday = today - timedelta(days=today.weekday())
        return self.entries_between(monday, monday + timedelta(days=6))

    def entries_this_month(self) -> List[Entry]:
        today = self._today()
        last_day = calendar.monthrange(today.year, today.month)[1]
        return self.entries_between(today.replace(day=1), today.replace(day=last_day))

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @property
    def streak_days(self) -> int:
        """Consecutive days with an entry, counting back from today."""
        days = {e.date for e in self._entries}
        streak = 0
        cursor = self._today()
        while cursor in days:
            streak += 1
            cursor -= timedelta(days=1)
        return streak

    @property
    def monthly_reviews(self) -> int:
        today = self._today()
        return sum(1 for e in self._entries if e.date.year == today.year and e.date.month == today.month)

    @property
    def total_reviews(self) -> int:
        return len(self._entries)

    @property
    def completion_rate(self) -> float:
        if not self._entries:
            return 0.0
        complete = sum(1 for e in self._entries if e.counts_as_complete)
        return complete / len(self._entries)

    @property
    def has_today_review(self) -> bool:
        return self.today_review is not None

    @property
    def today_review(self) -> Optional[Entry]:
        return self.by_date(self._today())

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        return export.to_json(self._entries)

    def to_csv(self) -> str:
        return export.to_csv(self._entries)

    def export_all(self, app_version: Optional[str] = None) -> str:
        return export.export_envelope(self._entries, app_version or settings.APP_VERSION)
