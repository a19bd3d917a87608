"""
Unit Tests for the repository watcher

Debounce timing is driven through explicit `now` values so no test depends on
wall-clock sleeps; submitted work is drained with wait_idle() or stop().
"""

import threading
from unittest.mock import MagicMock

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from device_spec_analyzer.adapters.primary.watcher_adapter import (
    ChangeDebouncer,
    RepositoryWatcher,
    _RepositoryEventHandler,
)
from device_spec_analyzer.application.use_cases import calculate_file_hash
from device_spec_analyzer.domain.models import FileChangeType


@pytest.fixture
def processor():
    return MagicMock()


@pytest.fixture
def watcher(processor, tmp_path):
    watcher = RepositoryWatcher(processor, str(tmp_path), debounce_delay_ms=2000, clock=lambda: 0.0)
    yield watcher
    watcher.stop()


# ---------------------------------------------------------------------------
# DEBOUNCER
# ---------------------------------------------------------------------------


class TestChangeDebouncer:

    def test_path_is_due_only_after_quiet_period(self):
        debouncer = ChangeDebouncer(2.0)
        debouncer.record("a.pdf", now=1.0)

        assert debouncer.flush_due(now=2.9) == []
        assert debouncer.flush_due(now=3.0) == ["a.pdf"]
        assert len(debouncer) == 0

    def test_repeated_changes_restart_the_quiet_period(self):
        debouncer = ChangeDebouncer(2.0)
        for now in (0.0, 0.5, 1.0):
            debouncer.record("a.pdf", now=now)

        assert debouncer.pending_paths() == ["a.pdf"]
        assert debouncer.flush_due(now=2.5) == []
        assert debouncer.flush_due(now=3.0) == ["a.pdf"]

    def test_next_due_in(self):
        debouncer = ChangeDebouncer(2.0)
        assert debouncer.next_due_in(now=0.0) is None

        debouncer.record("a.pdf", now=1.0)
        debouncer.record("b.pdf", now=1.5)
        assert debouncer.next_due_in(now=2.0) == pytest.approx(1.0)

        debouncer.flush_due(now=3.0)
        assert debouncer.next_due_in(now=3.0) == pytest.approx(0.5)
        assert debouncer.next_due_in(now=10.0) == 0.0

    def test_uses_injected_clock(self):
        debouncer = ChangeDebouncer(1.0, clock=lambda: 5.0)
        debouncer.record("a.pdf")
        assert debouncer.flush_due(now=5.5) == []
        assert debouncer.flush_due(now=6.0) == ["a.pdf"]


# ---------------------------------------------------------------------------
# FLUSH AND DISPATCH
# ---------------------------------------------------------------------------


class TestFlush:

    def test_burst_of_events_is_processed_once(self, watcher, processor, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"%PDF x")
        for now in (0.0, 0.5, 1.0):
            watcher.record_change(str(path), now=now)

        assert watcher.flush(now=2.5) == []
        assert watcher.flush(now=3.0) == [str(path)]
        watcher.stop()

        processor.process_document_update.assert_called_once_with(str(path))

    def test_existing_file_is_an_update_with_file_info(self, processor, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"%PDF x")
        events = []
        watcher = RepositoryWatcher(processor, str(tmp_path), on_file_changed=events.append)

        watcher.record_change(str(path), now=0.0)
        watcher.flush(now=5.0)
        watcher.stop()

        assert len(events) == 1
        assert events[0].change_type == FileChangeType.MODIFIED
        assert events[0].file_size == len(b"%PDF x")
        assert events[0].file_hash == calculate_file_hash(str(path))

    def test_missing_file_is_a_deletion(self, processor, tmp_path):
        path = str(tmp_path / "gone.pdf")
        events = []
        watcher = RepositoryWatcher(processor, str(tmp_path), on_file_deleted=events.append)

        watcher.record_change(path, now=0.0)
        watcher.flush(now=5.0)
        watcher.stop()

        processor.process_document_deletion.assert_called_once_with(path)
        processor.process_document_update.assert_not_called()
        assert events[0].change_type == FileChangeType.DELETED
        assert events[0].file_size == 0
        assert events[0].file_hash is None

    def test_path_in_flight_is_requeued(self, processor, watcher, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"%PDF x")
        release = threading.Event()
        processor.process_document_update.side_effect = lambda p: release.wait(5)

        watcher.record_change(str(path), now=0.0)
        assert watcher.flush(now=3.0) == [str(path)]

        watcher.record_change(str(path), now=4.0)
        assert watcher.flush(now=6.0) == []
        assert watcher.debouncer.pending_paths() == [str(path)]

        release.set()
        assert watcher.wait_idle(5)
        assert watcher.flush(now=7.9) == []
        assert watcher.flush(now=8.0) == [str(path)]
        assert watcher.wait_idle(5)
        assert processor.process_document_update.call_count == 2

    def test_change_during_existing_file_scan_waits_for_the_scan(self, processor, watcher, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"%PDF x")
        release = threading.Event()
        processor.process_new_document.side_effect = lambda p: release.wait(5)

        assert watcher.scan_existing_files() == 1
        watcher.record_change(str(path), now=0.0)
        assert watcher.flush(now=3.0) == []
        assert watcher.scan_existing_files() == 0
        processor.process_document_update.assert_not_called()

        release.set()
        assert watcher.wait_idle(5)
        assert watcher.flush(now=5.0) == [str(path)]
        assert watcher.wait_idle(5)
        processor.process_new_document.assert_called_once_with(str(path))
        processor.process_document_update.assert_called_once_with(str(path))

    def test_no_work_is_submitted_after_stop(self, processor, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"%PDF x")
        watcher = RepositoryWatcher(processor, str(tmp_path), process_existing_files=False, clock=lambda: 0.0)
        watcher.start()

        flush_due = watcher.debouncer.flush_due

        def stop_then_flush(now=None):
            due = flush_due(now)
            watcher.stop()
            return due

        watcher.debouncer.flush_due = stop_then_flush
        watcher.record_change(str(path), now=0.0)

        assert watcher.flush(now=3.0) == []
        assert not watcher.is_running
        assert watcher.debouncer.pending_paths() == [str(path)]
        assert watcher.scan_existing_files() == 0
        assert watcher.wait_idle(1)
        processor.process_document_update.assert_not_called()
        processor.process_new_document.assert_not_called()

    def test_failure_on_one_path_does_not_block_others(self, processor, watcher, tmp_path):
        bad, good = tmp_path / "bad.pdf", tmp_path / "good.pdf"
        bad.write_bytes(b"%PDF bad")
        good.write_bytes(b"%PDF good")

        def update(path):
            if path == str(bad):
                raise RuntimeError("parser exploded")
            return True

        processor.process_document_update.side_effect = update
        watcher.record_change(str(bad), now=0.0)
        watcher.record_change(str(good), now=0.0)
        watcher.flush(now=5.0)
        assert watcher.wait_idle(5)

        called = sorted(c.args[0] for c in processor.process_document_update.call_args_list)
        assert called == sorted([str(bad), str(good)])

        # the lease of the failed path is released
        watcher.record_change(str(bad), now=10.0)
        assert watcher.flush(now=12.0) == [str(bad)]

    def test_listener_error_is_contained(self, processor, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"%PDF x")
        listener = MagicMock(side_effect=ValueError("listener bug"))
        watcher = RepositoryWatcher(processor, str(tmp_path), on_file_changed=listener)

        watcher.record_change(str(path), now=0.0)
        watcher.flush(now=5.0)
        assert watcher.wait_idle(5)

        listener.assert_called_once()
        watcher.record_change(str(path), now=10.0)
        assert watcher.flush(now=12.0) == [str(path)]
        watcher.stop()


# ---------------------------------------------------------------------------
# WATCHDOG EVENT HANDLER
# ---------------------------------------------------------------------------


class TestEventHandler:

    def test_supported_file_events_are_recorded(self, watcher, tmp_path):
        handler = _RepositoryEventHandler(watcher)
        handler.dispatch(FileCreatedEvent(str(tmp_path / "a.pdf")))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "B.PDF")))

        assert sorted(watcher.debouncer.pending_paths()) == sorted([str(tmp_path / "a.pdf"), str(tmp_path / "B.PDF")])

    def test_move_records_both_paths(self, watcher, tmp_path):
        handler = _RepositoryEventHandler(watcher)
        handler.dispatch(FileMovedEvent(str(tmp_path / "old.pdf"), str(tmp_path / "new.pdf")))

        assert sorted(watcher.debouncer.pending_paths()) == sorted([str(tmp_path / "old.pdf"), str(tmp_path / "new.pdf")])

    def test_directories_and_other_extensions_are_ignored(self, watcher, tmp_path):
        handler = _RepositoryEventHandler(watcher)
        handler.dispatch(DirModifiedEvent(str(tmp_path / "sub.pdf")))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "notes.txt")))

        assert len(watcher.debouncer) == 0


# ---------------------------------------------------------------------------
# LIFECYCLE
# ---------------------------------------------------------------------------


class TestLifecycle:

    def test_scan_existing_files(self, processor, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "a.pdf").write_bytes(b"%PDF a")
        (tmp_path / "sub" / "b.PDF").write_bytes(b"%PDF b")
        (tmp_path / "notes.txt").write_text("not a pdf")
        added = []
        watcher = RepositoryWatcher(processor, str(tmp_path), on_file_added=added.append)

        assert watcher.scan_existing_files() == 2
        watcher.stop()

        called = sorted(c.args[0] for c in processor.process_new_document.call_args_list)
        assert called == sorted([str(tmp_path / "a.pdf"), str(tmp_path / "sub" / "b.PDF")])
        assert {e.change_type for e in added} == {FileChangeType.CREATED}

    def test_start_creates_directory_and_stop_is_idempotent(self, processor, tmp_path):
        repository_path = tmp_path / "repo" / "nested"
        watcher = RepositoryWatcher(processor, str(repository_path))

        watcher.start()
        try:
            assert repository_path.is_dir()
            assert watcher.is_running
            watcher.start()
            assert watcher.is_running
        finally:
            watcher.stop()

        assert not watcher.is_running
        watcher.stop()
        assert not watcher.is_running

    def test_timer_flushes_while_running(self, processor, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"%PDF x")
        done = threading.Event()
        processor.process_document_update.side_effect = lambda p: done.set()
        watcher = RepositoryWatcher(processor, str(tmp_path), debounce_delay_ms=50, process_existing_files=False)

        watcher.start()
        try:
            watcher.record_change(str(path))
            assert done.wait(5)
        finally:
            watcher.stop()

        processor.process_document_update.assert_called_once_with(str(path))

    def test_timer_callback_keeps_a_newly_armed_timer_single(self, processor, tmp_path):
        watcher = RepositoryWatcher(processor, str(tmp_path), process_existing_files=False, clock=lambda: 0.0)
        watcher.start()
        try:
            watcher.record_change(str(tmp_path / "a.pdf"), now=0.0)
            armed = watcher._timer

            # callback finishing outside the armed timer thread replaces it instead of leaking it
            watcher._on_timer()

            assert armed.finished.is_set()
            assert watcher._timer is not None
            assert watcher._timer is not armed
        finally:
            watcher.stop()

    def test_dead_observer_is_restarted(self, processor, tmp_path):
        watcher = RepositoryWatcher(processor, str(tmp_path), process_existing_files=False)
        watcher.start()
        try:
            assert watcher.check_observer() is False

            dead = watcher._observer
            dead.stop()
            dead.join()

            assert watcher.check_observer() is True
            assert watcher._observer is not dead
            assert watcher._observer.is_alive()
            assert watcher.check_observer() is False
        finally:
            watcher.stop()

    def test_observer_is_not_checked_when_stopped(self, processor, tmp_path):
        assert RepositoryWatcher(processor, str(tmp_path)).check_observer() is False

    def test_run_until_returns_when_event_is_set(self, processor, tmp_path):
        watcher = RepositoryWatcher(processor, str(tmp_path), process_existing_files=False)
        stop_event = threading.Event()
        stop_event.set()

        watcher.run_until(stop_event, poll_interval=0.01)

        assert not watcher.is_running
