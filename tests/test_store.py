"""
Tests for EntryStore: persistence, atomic writes, backup/restore,
integrity checks, statistics and queries.
"""
import asyncio
import json
import os
import uuid

import pytest

from deepreview.features.journal.store import EntryStore, IntegrityStatus
from deepreview.shared.errors import (
    BackupMissingError,
    DeserializationError,
    EntryNotFoundError,
    FileWriteError,
    InstanceUnavailableError,
)

from conftest import TODAY, days_ago, make_entry, record, write_records


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------

class TestLoad:
    def test_missing_file_is_empty_journal(self, store):
        assert run(store.load()) is None
        assert store.all() == []
        assert store.error_message is None

    def test_corrupt_file_resets_to_empty_and_publishes_error(self, store, data_dir):
        data_dir.mkdir(parents=True)
        store.reviews_path.write_text("{not json", encoding="utf-8")

        error = run(store.load())

        assert isinstance(error, DeserializationError)
        assert store.all() == []
        assert store.error_message == error.message

    def test_non_list_document_is_a_deserialization_error(self, store, data_dir):
        data_dir.mkdir(parents=True)
        store.reviews_path.write_text('{"reviews": []}', encoding="utf-8")
        assert isinstance(run(store.load()), DeserializationError)

    def test_load_sorts_newest_first(self, store, data_dir):
        data_dir.mkdir(parents=True)
        write_records(store.reviews_path, [
            record(day=days_ago(5)),
            record(day=TODAY),
            record(day=days_ago(2)),
        ])
        run(store.load())
        assert [e.date for e in store.all()] == [TODAY, days_ago(2), days_ago(5)]

    def test_round_trip_through_a_new_store(self, store, data_dir):
        entries = [
            make_entry(TODAY, free_writing="a sleeping dragon", ai_analysis="calm"),
            make_entry(days_ago(1), daily_metaphor="a kettle just before boiling"),
            make_entry(days_ago(3)),
        ]

        async def scenario():
            for entry in entries:
                await store.add(entry)
            await store.flush_backups()
            reopened = EntryStore(data_dir=data_dir, today=lambda: TODAY)
            await reopened.load()
            return reopened

        reopened = run(scenario())
        assert reopened.all() == store.all()
        assert {e.id for e in reopened.all()} == {e.id for e in entries}


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

class TestMutations:
    def test_add_persists_and_puts_newest_first(self, store):
        older, newer = make_entry(days_ago(1)), make_entry(TODAY)

        async def scenario():
            await store.add(older)
            await store.add(newer)
            await store.flush_backups()

        run(scenario())
        on_disk = json.loads(store.reviews_path.read_text(encoding="utf-8"))
        assert [r["id"] for r in on_disk] == [str(newer.id), str(older.id)]
        assert store.all() == [newer, older]

    def test_add_replaces_entry_on_same_day(self, store):
        first = make_entry(TODAY, free_writing="first draft")
        second = make_entry(TODAY, free_writing="second draft")

        async def scenario():
            await store.add(first)
            await store.add(second)

        run(scenario())
        assert store.total_reviews == 1
        assert store.today_review == second

    def test_add_schedules_background_backup(self, store):
        async def scenario():
            await store.add(make_entry())
            await store.flush_backups()

        run(scenario())
        assert store.backup_path.read_bytes() == store.reviews_path.read_bytes()
        assert store.last_backup_at is not None
        assert store.pending_backups == 0

    def test_update_replaces_by_id(self, store):
        entry = make_entry(TODAY)

        async def scenario():
            await store.add(entry)
            await store.update(entry.with_analysis("A gentle day."))

        run(scenario())
        assert store.by_id(entry.id).ai_analysis == "A gentle day."
        on_disk = json.loads(store.reviews_path.read_text(encoding="utf-8"))
        assert on_disk[0]["aiAnalysis"] == "A gentle day."

    def test_update_unknown_entry_raises(self, store):
        with pytest.raises(EntryNotFoundError):
            run(store.update(make_entry()))

    def test_delete_unknown_entry_raises(self, store):
        with pytest.raises(EntryNotFoundError):
            run(store.delete(make_entry()))

    def test_delete_backs_up_before_removing(self, store, monkeypatch):
        entry = make_entry(TODAY)
        seen_at_save = {}

        async def scenario():
            await store.add(entry)
            await store.flush_backups()
            before = store.reviews_path.read_bytes()
            store.backup_path.unlink()

            original_save = store._save_to_file

            async def spying_save(entries):
                seen_at_save["backup"] = store.backup_path.read_bytes()
                await original_save(entries)

            monkeypatch.setattr(store, "_save_to_file", spying_save)
            await store.delete(entry)
            return before

        before = run(scenario())
        assert seen_at_save["backup"] == before
        assert store.backup_path.read_bytes() == before
        assert json.loads(store.reviews_path.read_text(encoding="utf-8")) == []
        assert store.all() == []

    def test_clear_all_data_removes_backup(self, store):
        async def scenario():
            await store.add(make_entry())
            await store.clear_all_data()

        run(scenario())
        assert store.all() == []
        assert json.loads(store.reviews_path.read_text(encoding="utf-8")) == []
        assert not store.backup_path.exists()
        assert store.last_backup_at is None

    def test_mutations_are_serialized(self, store):
        entries = [make_entry(days_ago(i)) for i in range(10)]

        async def scenario():
            await asyncio.gather(*(store.add(e) for e in entries))
            await store.flush_backups()

        run(scenario())
        assert store.total_reviews == 10
        on_disk = json.loads(store.reviews_path.read_text(encoding="utf-8"))
        assert len(on_disk) == 10

    def test_add_racing_delete_keeps_deleted_entry_in_backup(self, store):
        kept, doomed = make_entry(TODAY), make_entry(days_ago(1))

        async def scenario():
            await store.add(doomed)
            await store.flush_backups()
            await asyncio.gather(store.add(kept), store.delete(doomed))
            await store.flush_backups()

        run(scenario())
        backed_up = {r["id"] for r in json.loads(store.backup_path.read_text(encoding="utf-8"))}
        assert str(doomed.id) in backed_up
        assert store.all() == [kept]

        run(store.restore_from_backup())
        assert store.by_id(doomed.id) == doomed

    def test_add_racing_clear_leaves_no_backup(self, store):
        async def scenario():
            await asyncio.gather(store.add(make_entry()), store.clear_all_data())
            await store.flush_backups()

        run(scenario())
        assert store.all() == []
        assert not store.backup_path.exists()
        assert store.last_backup_at is None

    def test_superseded_background_backup_is_skipped(self, store):
        first, second = make_entry(days_ago(1)), make_entry(TODAY)

        async def scenario():
            await store.add(first)
            await store.add(second)
            await store.flush_backups()

        run(scenario())
        # Whichever backups ran, the slot ends up matching the latest write.
        assert store.backup_path.read_bytes() == store.reviews_path.read_bytes()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------

class TestAtomicSave:
    def test_crash_before_replace_keeps_previous_file(self, store, monkeypatch):
        kept = make_entry(days_ago(1))

        async def setup():
            await store.add(kept)
            await store.flush_backups()

        run(setup())
        before = store.reviews_path.read_bytes()

        def crash(src, dst):
            raise OSError("simulated crash")

        monkeypatch.setattr(os, "replace", crash)

        with pytest.raises(FileWriteError):
            run(store.add(make_entry(TODAY)))

        assert store.reviews_path.read_bytes() == before
        assert store.all() == [kept]
        leftovers = [p for p in store.data_dir.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_failed_write_leaves_memory_unchanged(self, store, monkeypatch):
        entry = make_entry(TODAY)
        run(store.add(entry))

        async def failing_save(entries):
            raise FileWriteError(str(store.reviews_path), "disk full")

        monkeypatch.setattr(store, "_save_to_file", failing_save)
        with pytest.raises(FileWriteError):
            run(store.update(entry.with_analysis("never stored")))
        assert store.by_id(entry.id).ai_analysis is None


# ---------------------------------------------------------------------------
# Backup / restore
# ---------------------------------------------------------------------------

class TestBackupRestore:
    def test_backup_without_primary_is_noop(self, store):
        assert run(store.create_backup("manual")) is False
        assert not store.backup_path.exists()

    def test_restore_without_backup_raises(self, store):
        with pytest.raises(BackupMissingError):
            run(store.restore_from_backup())

    def test_restore_brings_back_backed_up_state(self, store):
        keep = make_entry(days_ago(1), free_writing="worth keeping")

        async def scenario():
            await store.add(keep)
            await store.flush_backups()
            snapshot = store.reviews_path.read_bytes()
            await store.delete(keep)
            await store.restore_from_backup()
            return snapshot

        snapshot = run(scenario())
        assert store.all() == [keep]
        assert store.reviews_path.read_bytes() == snapshot
        assert store.error_message is None

    def test_corrupt_backup_does_not_touch_primary(self, store):
        entry = make_entry()

        async def scenario():
            await store.add(entry)
            await store.flush_backups()

        run(scenario())
        before = store.reviews_path.read_bytes()
        store.backup_path.write_text("garbage", encoding="utf-8")

        with pytest.raises(DeserializationError):
            run(store.restore_from_backup())
        assert store.reviews_path.read_bytes() == before
        assert store.all() == [entry]


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------

class TestIntegrity:
    def test_status_unknown_before_first_check(self, store):
        assert store.integrity_status == IntegrityStatus.UNKNOWN

    def test_missing_primary_is_degraded(self, store):
        report = run(store.perform_integrity_check())
        assert report.status == IntegrityStatus.DEGRADED
        assert report.issues == ["Primary data file is missing"]
        assert store.integrity_status == IntegrityStatus.DEGRADED
        assert "1 issue" in store.error_message

    def test_healthy_store(self, store):
        async def scenario():
            await store.add(make_entry())
            await store.flush_backups()
            return await store.perform_integrity_check()

        report = run(scenario())
        assert report.status == IntegrityStatus.HEALTHY
        assert report.issues == []
        assert report.is_healthy

    def test_duplicates_and_empty_ids_are_corrupted(self, store, data_dir):
        data_dir.mkdir(parents=True)
        dup_a, dup_b = uuid.uuid4(), uuid.uuid4()
        write_records(store.reviews_path, [
            record(dup_a, day=TODAY),
            record(dup_a, day=days_ago(1)),
            record(dup_b, day=days_ago(2)),
            record(dup_b, day=days_ago(3)),
            record(uuid.UUID(int=0), day=days_ago(4)),
        ])

        async def scenario():
            await store.load()
            return await store.perform_integrity_check()

        report = run(scenario())
        assert report.status == IntegrityStatus.CORRUPTED
        assert len(report.issues) == 3
        assert report.duplicate_records == 2
        assert report.corrupted_records == 1
        # Reports only; nothing is repaired.
        assert store.total_reviews == 5

    def test_check_is_idempotent(self, store, data_dir):
        data_dir.mkdir(parents=True)
        same = uuid.uuid4()
        write_records(store.reviews_path, [record(same), record(same, day=days_ago(1))])

        async def scenario():
            await store.load()
            first = await store.perform_integrity_check()
            second = await store.perform_integrity_check()
            return first, second

        first, second = run(scenario())
        assert first == second
        assert first.status == IntegrityStatus.DEGRADED


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def _store_with(store, entries):
    async def scenario():
        for entry in entries:
            await store.add(entry)

    run(scenario())
    return store


class TestStatistics:
    def test_streak_of_three(self, store):
        _store_with(store, [make_entry(TODAY), make_entry(days_ago(1)), make_entry(days_ago(2))])
        assert store.streak_days == 3

    def test_streak_stops_at_gap(self, store):
        _store_with(store, [make_entry(TODAY), make_entry(days_ago(3))])
        assert store.streak_days == 1

    def test_empty_store_has_no_streak(self, store):
        assert store.streak_days == 0

    def test_streak_needs_today(self, store):
        _store_with(store, [make_entry(days_ago(1)), make_entry(days_ago(2))])
        assert store.streak_days == 0

    def test_shared_dates_count_once(self, store, data_dir):
        data_dir.mkdir(parents=True)
        write_records(store.reviews_path, [
            record(day=TODAY),
            record(day=TODAY),
            record(day=days_ago(1)),
        ])
        run(store.load())
        assert store.streak_days == 2

    def test_monthly_reviews(self, store):
        _store_with(store, [make_entry(TODAY), make_entry(days_ago(10)), make_entry(days_ago(40))])
        assert store.monthly_reviews == 2
        assert store.total_reviews == 3

    def test_completion_rate_uses_narrow_policy(self, store):
        complete = make_entry(
            TODAY,
            energy_source="",
            time_observation="",
            free_writing="three pages",
            cognitive_breakthrough_good="asked early",
            cognitive_breakthrough_bad="over-planning",
        )
        incomplete = make_entry(days_ago(1))
        _store_with(store, [complete, incomplete])

        assert store.completion_rate == pytest.approx(0.5)
        assert complete.completion_percentage == pytest.approx(3 / 9)

    def test_completion_rate_of_empty_store(self, store):
        assert store.completion_rate == 0.0

    def test_today_review(self, store):
        assert store.has_today_review is False
        entry = make_entry(TODAY)
        _store_with(store, [entry, make_entry(days_ago(1))])
        assert store.has_today_review is True
        assert store.today_review == entry


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestQueries:
    def test_search_finds_metaphor(self, store):
        dragon = make_entry(TODAY, daily_metaphor="today was a sleeping dragon")
        _store_with(store, [dragon, make_entry(days_ago(1)), make_entry(days_ago(2))])

        assert store.search("dragon") == [dragon]
        assert store.search("DRAGON") == [dragon]
        assert len(store.search("")) == 3

    def test_search_ignores_non_searchable_fields(self, store):
        _store_with(store, [make_entry(TODAY, tomorrow_plan_seed="dragon fruit smoothie")])
        assert store.search("dragon") == []

    def test_by_date_and_by_id(self, store):
        entry = make_entry(days_ago(2))
        _store_with(store, [entry, make_entry(TODAY)])
        assert store.by_date(days_ago(2)) == entry
        assert store.by_id(str(entry.id)) == entry
        assert store.by_id(uuid.uuid4()) is None

    def test_recent_limit(self, store):
        _store_with(store, [make_entry(days_ago(i)) for i in range(5)])
        assert [e.date for e in store.recent(2)] == [TODAY, days_ago(1)]

    def test_range_is_inclusive(self, store):
        _store_with(store, [make_entry(days_ago(i)) for i in range(6)])
        dates = [e.date for e in store.entries_between(days_ago(4), days_ago(1))]
        assert dates == [days_ago(1), days_ago(2), days_ago(3), days_ago(4)]

    def test_this_week_starts_monday(self, store):
        # TODAY is a Wednesday: Monday is two days back.
        _store_with(store, [make_entry(days_ago(i)) for i in range(4)])
        assert [e.date for e in store.entries_this_week()] == [TODAY, days_ago(1), days_ago(2)]

    def test_this_month(self, store):
        _store_with(store, [make_entry(TODAY), make_entry(days_ago(17)), make_entry(days_ago(18))])
        assert [e.date for e in store.entries_this_month()] == [TODAY, days_ago(17)]


# ---------------------------------------------------------------------------
# Published state
# ---------------------------------------------------------------------------

class TestState:
    def test_subscribers_receive_snapshots(self, store):
        snapshots = []
        unsubscribe = store.subscribe(snapshots.append)

        run(store.add(make_entry()))
        assert snapshots[-1].entry_count == 1

        unsubscribe()
        count = len(snapshots)
        run(store.clear_all_data())
        assert len(snapshots) == count

    def test_load_toggles_loading_flag(self, store):
        seen = []
        store.subscribe(lambda s: seen.append(s.is_loading))
        run(store.load())
        assert seen[0] is True
        assert seen[-1] is False

    def test_failing_listener_does_not_break_mutation(self, store):
        def broken(_):
            raise RuntimeError("ui went away")

        store.subscribe(broken)
        run(store.add(make_entry()))
        assert store.total_reviews == 1


# ---------------------------------------------------------------------------
# Close
# ---------------------------------------------------------------------------

class TestClose:
    def test_close_waits_for_pending_backup(self, store):
        async def scenario():
            await store.add(make_entry())
            await store.close()

        run(scenario())
        assert store.is_closed
        assert store.pending_backups == 0
        assert store.backup_path.read_bytes() == store.reviews_path.read_bytes()

    def test_file_operations_after_close_raise(self, store):
        entry = make_entry()

        async def scenario():
            await store.add(entry)
            await store.close()

        run(scenario())
        for operation in (
            store.load(),
            store.add(make_entry(days_ago(1))),
            store.update(entry.with_analysis("late")),
            store.delete(entry),
            store.clear_all_data(),
            store.create_backup("manual"),
            store.restore_from_backup(),
        ):
            with pytest.raises(InstanceUnavailableError):
                run(operation)

    def test_reads_still_work_after_close(self, store):
        entry = make_entry()

        async def scenario():
            await store.add(entry)
            await store.close()
            await store.close()

        run(scenario())
        assert store.all() == [entry]
        assert store.streak_days == 1
