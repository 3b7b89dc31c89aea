"""Tests for the scan controller state machine."""

import math

import pytest

from postmaint.scan import (
    MSG_ALREADY_RUNNING,
    MSG_STARTED,
    NotificationType,
    ScanStatus,
    ScanValidationError,
)
from postmaint.scan.store import KEY_PROGRESS, KEY_SCHEDULE


def run_next(controller, clock):
    """Advance the clock to the pending batch, claim it and run it."""
    pending = controller.scheduler.pending()
    assert pending is not None, "expected a scheduled batch"
    clock.now = max(clock.now, pending.due_at)
    batch = controller.scheduler.claim_due()
    assert batch is not None
    return controller.run_batch(batch)


def run_to_end(controller, clock, limit=100):
    """Run batches until nothing is scheduled. Returns the batch results."""
    results = []
    while controller.scheduler.pending() is not None:
        assert len(results) < limit
        results.append(run_next(controller, clock))
    return results


class TestStartValidation:
    """Tests for start() parameter validation."""

    @pytest.mark.parametrize("batch_size", [0, -1, 101, "10", 2.5, True])
    def test_invalid_batch_size_raises_without_state_change(
        self, make_controller, make_source, batch_size
    ):
        """Out-of-range or non-int batch sizes are rejected synchronously."""
        controller = make_controller(make_source(list(range(1, 26))))

        with pytest.raises(ScanValidationError) as exc_info:
            controller.start(["post"], batch_size)

        assert exc_info.value.field == "batch_size"
        state = controller.get_state()
        assert state.status == ScanStatus.IDLE
        assert state.generation == 0
        assert controller.scheduler.pending() is None
        assert controller.store.get(KEY_PROGRESS) is None

    def test_validation_error_is_value_error(self, make_controller):
        with pytest.raises(ValueError):
            make_controller().start(["post"], 0)

    @pytest.mark.parametrize("post_types", [[], [""], ["post", "  "], ""])
    def test_invalid_post_types_raise(self, make_controller, post_types):
        controller = make_controller()

        with pytest.raises(ScanValidationError) as exc_info:
            controller.start(post_types, 10)

        assert exc_info.value.field == "post_types"
        assert controller.get_state().status == ScanStatus.IDLE

    def test_post_types_are_deduplicated_in_order(self, make_controller):
        controller = make_controller()

        controller.start(["page", "post", "page"], 10)

        assert controller.get_scan_progress().post_types == ["page", "post"]

    def test_comma_separated_string_accepted(self, make_controller):
        controller = make_controller()

        result = controller.start("post, page", 10)

        assert result.ok
        assert controller.get_scan_progress().post_types == ["post", "page"]

    def test_default_batch_size_from_config(self, make_controller):
        controller = make_controller(batch_size=25)

        controller.start(["post"])

        assert controller.get_scan_progress().batch_size == 25
        assert controller.scheduler.pending().batch_size == 25


class TestStart:
    """Tests for accepted and rejected starts."""

    def test_start_initializes_state(self, make_controller, make_source, clock):
        controller = make_controller(make_source(list(range(1, 26))))

        result = controller.start(["post"], 10)

        assert result.ok
        assert result.message == MSG_STARTED
        assert result.generation == 1

        state = controller.get_state()
        assert state.status == ScanStatus.RUNNING
        assert state.started_at == clock.now
        assert state.generation == 1

        progress = controller.get_scan_progress()
        assert progress.total == 25
        assert progress.processed == 0
        assert progress.current_offset == 0

        batch = controller.scheduler.pending()
        assert batch.offset == 0
        assert batch.due_at == clock.now
        assert batch.generation == 1

    def test_start_clears_previous_notification(
        self, make_controller, make_source, clock
    ):
        controller = make_controller(make_source([1, 2]))
        controller.start(["post"], 10)
        run_to_end(controller, clock)
        assert controller.get_state().notification is not None

        controller.start(["post"], 10)

        assert controller.get_state().notification is None

    def test_second_start_is_rejected_while_running(
        self, make_controller, make_source
    ):
        """Single-flight: a running scan rejects a new start unchanged."""
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)
        before = controller.store.get(KEY_PROGRESS)
        schedule_before = controller.store.get(KEY_SCHEDULE)

        result = controller.start(["page"], 5)

        assert not result.ok
        assert result.message == MSG_ALREADY_RUNNING
        assert controller.get_state().generation == 1
        assert controller.store.get(KEY_PROGRESS) == before
        assert controller.store.get(KEY_SCHEDULE) == schedule_before

    def test_count_failure_reports_error(self, make_controller, make_source):
        source = make_source(count_error=RuntimeError("database gone"))
        controller = make_controller(source)

        result = controller.start(["post"], 10)

        assert not result.ok
        assert "database gone" in result.message
        state = controller.get_state()
        assert state.status == ScanStatus.IDLE
        assert state.notification.type == NotificationType.ERROR
        assert controller.scheduler.pending() is None

    def test_start_after_completion(self, make_controller, make_source, clock):
        controller = make_controller(make_source([1, 2, 3]))
        controller.start(["post"], 10)
        run_to_end(controller, clock)
        assert controller.get_state().status == ScanStatus.COMPLETED

        result = controller.start(["post"], 10)

        assert result.ok
        assert result.generation == 2
        assert controller.get_scan_progress().processed == 0

    def test_start_reclaims_stale_scan(self, make_controller, make_source, clock):
        """A running scan past the startup timeout does not block a new start."""
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)
        clock.advance(61)

        result = controller.start(["post"], 10)

        assert result.ok
        assert result.generation == 2
        assert controller.get_state().status == ScanStatus.RUNNING


class TestBatchTrace:
    """End-to-end batch sequences."""

    def test_25_posts_in_batches_of_10(self, make_controller, make_source, clock):
        """Counts 10,10,5,0 complete after the fourth, empty batch."""
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)

        counts, processed, statuses, offsets = [], [], [], []
        while controller.scheduler.pending() is not None:
            result = run_next(controller, clock)
            progress = controller.get_scan_progress()
            counts.append(result.count)
            processed.append(progress.processed)
            offsets.append(progress.current_offset)
            statuses.append(controller.get_state().status)

        assert counts == [10, 10, 5, 0]
        assert processed == [10, 20, 25, 25]
        assert offsets == [10, 20, 30, 0]
        assert statuses == [
            ScanStatus.RUNNING,
            ScanStatus.RUNNING,
            ScanStatus.RUNNING,
            ScanStatus.COMPLETED,
        ]
        assert len(counts) <= math.ceil(25 / 10) + 1

        state = controller.get_state()
        assert state.last_completed_at == clock.now
        assert state.notification.type == NotificationType.SUCCESS
        assert (
            state.notification.message
            == "Scan completed successfully! Processed 25 posts."
        )

        progress = controller.get_progress()
        assert progress.percent == 100.0
        assert controller.get_scan_progress().batches == 4

    def test_batches_run_in_increasing_offset_order(
        self, make_controller, make_source, clock
    ):
        source = make_source(list(range(1, 8)))
        controller = make_controller(source)
        controller.start(["post"], 3)

        run_to_end(controller, clock)

        assert [offset for _, offset in source.page_calls] == [0, 3, 6, 9]
        assert source.touched == list(range(1, 8))

    def test_next_batch_waits_inter_batch_delay(
        self, make_controller, make_source, clock
    ):
        controller = make_controller(
            make_source(list(range(1, 26))), inter_batch_delay_seconds=2.5
        )
        controller.start(["post"], 10)

        run_next(controller, clock)

        pending = controller.scheduler.pending()
        assert pending.offset == 10
        assert pending.due_at == clock.now + 2.5

    def test_empty_source_completes_with_zero_percent(
        self, make_controller, make_source, clock
    ):
        controller = make_controller(make_source([]))
        controller.start(["post"], 10)

        snapshot = controller.get_progress()
        assert snapshot.total == 0
        assert snapshot.percent == 0.0

        run_to_end(controller, clock)

        assert controller.get_state().status == ScanStatus.COMPLETED
        assert controller.get_progress().processed == 0

    def test_processed_and_offset_are_monotonic(
        self, make_controller, make_source, clock
    ):
        controller = make_controller(make_source(list(range(1, 48))))
        controller.start(["post"], 7)

        last_processed, last_offset = 0, 0
        while controller.scheduler.pending() is not None:
            run_next(controller, clock)
            if controller.get_state().status == ScanStatus.COMPLETED:
                break
            progress = controller.get_scan_progress()
            assert progress.processed >= last_processed
            assert progress.current_offset == last_offset + 7
            assert progress.processed <= progress.total
            last_processed, last_offset = progress.processed, progress.current_offset

    def test_completion_clears_resume_offset(
        self, make_controller, make_source, clock
    ):
        """A completed scan keeps its counts but has nothing to resume."""
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)

        run_to_end(controller, clock)

        progress = controller.get_scan_progress()
        assert progress.current_offset == 0
        assert progress.processed == 25
        assert progress.total == 25
        assert progress.batches == 4
        assert controller.store.get(KEY_PROGRESS)["current_offset"] == 0


class TestOnBatchCompleted:
    """Tests for progress accounting and continuation handling."""

    def test_processed_is_clamped_to_total(self, make_controller, make_source, clock):
        """Posts added after the snapshot never push processed past total."""
        source = make_source([1, 2, 3, 4, 5])
        controller = make_controller(source)
        controller.start(["post"], 10)
        source.ids.extend([6, 7, 8])

        run_to_end(controller, clock)

        progress = controller.get_scan_progress()
        assert progress.total == 5
        assert progress.processed == 5
        assert controller.get_state().status == ScanStatus.COMPLETED

    def test_failed_touches_are_counted_and_warned(
        self, make_controller, make_source, clock
    ):
        source = make_source([1, 2, 3, 4], failing_ids={2}, raising_ids={4})
        controller = make_controller(source)
        controller.start(["post"], 10)

        run_to_end(controller, clock)

        progress = controller.get_scan_progress()
        assert progress.processed == 2
        assert progress.failed == 2
        state = controller.get_state()
        assert state.status == ScanStatus.COMPLETED
        assert state.notification.type == NotificationType.WARNING
        assert "2 failed" in state.notification.message

    def test_all_failed_batch_is_not_treated_as_empty(
        self, make_controller, make_source, clock
    ):
        source = make_source([1, 2, 3, 4], failing_ids={1, 2})
        controller = make_controller(source)
        controller.start(["post"], 2)

        first = run_next(controller, clock)

        assert first.count == 0
        assert not first.exhausted
        assert controller.get_state().status == ScanStatus.RUNNING
        assert controller.scheduler.pending().offset == 2

    def test_stale_generation_batch_is_discarded(
        self, make_controller, make_source, clock
    ):
        source = make_source(list(range(1, 26)))
        controller = make_controller(source)
        controller.start(["post"], 10)
        old_batch = controller.scheduler.claim_due()

        controller.reset()
        controller.start(["post"], 10)
        result = controller.run_batch(old_batch)

        assert result is None
        assert source.touched == []
        progress = controller.get_scan_progress()
        assert progress.processed == 0
        assert controller.scheduler.pending().generation == 3
        assert controller.get_state().generation == 3

    def test_batch_after_reset_is_discarded(self, make_controller, make_source):
        source = make_source(list(range(1, 26)))
        controller = make_controller(source)
        controller.start(["post"], 10)
        batch = controller.scheduler.claim_due()

        controller.reset()

        assert controller.run_batch(batch) is None
        assert controller.get_state().status == ScanStatus.IDLE
        assert controller.scheduler.pending() is None
        assert source.touched == []

    def test_late_completion_is_discarded(self, make_controller, make_source):
        """A completion that lands after reset does not resurrect progress."""
        source = make_source(list(range(1, 26)))
        controller = make_controller(source)
        controller.start(["post"], 10)
        batch = controller.scheduler.claim_due()
        result = controller.processor.run(batch.post_types, 10, 0)

        controller.reset()
        applied = controller.on_batch_completed(batch, result)

        assert not applied
        assert controller.get_scan_progress() is None
        assert controller.scheduler.pending() is None

    def test_processor_exception_sets_error(self, make_controller, make_source):
        source = make_source(list(range(1, 26)), page_error=RuntimeError("disk I/O"))
        controller = make_controller(source)
        controller.start(["post"], 10)
        batch = controller.scheduler.claim_due()

        assert controller.run_batch(batch) is None

        state = controller.get_state()
        assert state.status == ScanStatus.ERROR
        assert state.notification.type == NotificationType.ERROR
        assert "disk I/O" in state.notification.message
        assert controller.scheduler.pending() is None
        assert controller.get_scan_progress() is None

    def test_start_after_error(self, make_controller, make_source):
        source = make_source([1, 2], page_error=RuntimeError("boom"))
        controller = make_controller(source)
        controller.start(["post"], 10)
        controller.run_batch(controller.scheduler.claim_due())
        source.page_error = None

        result = controller.start(["post"], 10)

        assert result.ok
        assert controller.get_state().status == ScanStatus.RUNNING

    def test_overall_timeout_demotes_before_next_batch(
        self, make_controller, make_source, clock
    ):
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)
        batch = controller.scheduler.claim_due()
        clock.advance(301)

        controller.run_batch(batch)

        state = controller.get_state()
        assert state.status == ScanStatus.IDLE
        assert state.notification.type == NotificationType.ERROR
        assert "timed out after 5 minutes" in state.notification.message
        assert controller.scheduler.pending() is None
        assert controller.get_scan_progress() is None


class TestReset:
    """Tests for reset()."""

    def test_reset_is_idempotent_from_idle(self, make_controller):
        controller = make_controller()

        controller.reset()
        controller.reset()

        state = controller.get_state()
        assert state.status == ScanStatus.IDLE
        assert state.notification is None
        assert state.generation == 2

    def test_reset_cancels_running_scan(self, make_controller, make_source):
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)

        controller.reset()

        state = controller.get_state()
        assert state.status == ScanStatus.IDLE
        assert state.started_at is None
        assert state.generation == 2
        assert controller.scheduler.pending() is None
        assert controller.get_scan_progress() is None

    def test_reset_from_completed_clears_progress(
        self, make_controller, make_source, clock
    ):
        controller = make_controller(make_source([1, 2, 3]))
        controller.start(["post"], 10)
        run_to_end(controller, clock)

        controller.reset()

        snapshot = controller.get_progress()
        assert snapshot.status == ScanStatus.IDLE
        assert snapshot.total == 0
        assert snapshot.notification is None


class TestProgressAndWatchdog:
    """Tests for get_progress() and watchdog recovery."""

    def test_progress_snapshot(self, make_controller, make_source, clock):
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post", "page"], 10)
        run_next(controller, clock)

        snapshot = controller.get_progress()

        assert snapshot.status == ScanStatus.RUNNING
        assert snapshot.is_running
        assert snapshot.processed == 10
        assert snapshot.total == 25
        assert snapshot.percent == 40.0
        data = snapshot.to_dict()
        assert data["progress"] == 40.0
        assert data["is_running"] is True
        assert data["post_types"] == ["post", "page"]

    def test_startup_stall_reclaimed_on_progress_read(
        self, make_controller, make_source, clock
    ):
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)
        clock.advance(61)

        snapshot = controller.get_progress()

        assert snapshot.status == ScanStatus.IDLE
        assert snapshot.notification.type == NotificationType.ERROR
        assert (
            snapshot.notification.message
            == "Scan failed to start properly. Please try again."
        )
        assert controller.scheduler.pending() is None

    def test_healthy_scan_not_reclaimed(self, make_controller, make_source, clock):
        controller = make_controller(make_source(list(range(1, 26))))
        controller.start(["post"], 10)
        clock.advance(59)

        assert controller.check_watchdog() is None
        assert controller.get_progress().status == ScanStatus.RUNNING

    def test_clear_notification(self, make_controller, make_source, clock):
        controller = make_controller(make_source([1]))
        controller.start(["post"], 10)
        run_to_end(controller, clock)

        assert controller.clear_notification() is True
        assert controller.clear_notification() is False
        assert controller.get_state().notification is None
