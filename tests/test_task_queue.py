"""
Tests for the ordered single-flight lookup queue.

Focus: drain order, one run() at a time, failure isolation, worker lifecycle.
"""

import asyncio

import pytest
from lookup.task_queue import LookupTask, OrderedTaskQueue

EMPTY = b"\x00"


def _recording_task(log, timestamp, label=None, delay=0.0, fail=False, callbacks=None):
    label = timestamp if label is None else label

    async def run():
        log.append(("start", label))
        await asyncio.sleep(delay)
        log.append(("end", label))
        if fail:
            raise RuntimeError(f"task {label} exploded")
        if callbacks is not None:
            callbacks.append((label, None, b"ok"))

    def callback(error, result):
        if callbacks is not None:
            callbacks.append((label, error, result))

    return LookupTask(run=run, callback=callback, timestamp=timestamp)


def _started(log):
    return [label for event, label in log if event == "start"]


class TestOrdering:
    @pytest.mark.asyncio
    async def test_drains_by_timestamp_regardless_of_enqueue_order(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        for ts in (30, 10, 20):
            queue.enqueue(_recording_task(log, ts))
        await queue.join()
        assert _started(log) == [10, 20, 30]

    @pytest.mark.asyncio
    async def test_equal_timestamps_drain_in_enqueue_order(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        for label in ("first", "second", "third"):
            queue.enqueue(_recording_task(log, 100, label=label))
        await queue.join()
        assert _started(log) == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_tasks_without_timestamp_run_before_timestamped_ones(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        queue.enqueue(_recording_task(log, 5, label="ts5"))
        queue.enqueue(_recording_task(log, None, label="untimed-a"))
        queue.enqueue(_recording_task(log, 1, label="ts1"))
        queue.enqueue(_recording_task(log, None, label="untimed-b"))
        await queue.join()
        assert _started(log) == ["untimed-a", "untimed-b", "ts1", "ts5"]

    @pytest.mark.asyncio
    async def test_sequence_numbers_are_assigned_monotonically(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        tasks = [queue.enqueue(_recording_task(log, ts)) for ts in (3, 2, 1)]
        assert [t.sequence for t in tasks] == [0, 1, 2]
        assert [t.timestamp for t in queue.pending()] == [1, 2, 3]
        await queue.join()

    @pytest.mark.asyncio
    async def test_preassigned_sequence_is_kept(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        late = _recording_task(log, 7, label="late")
        late.sequence = 99
        early = _recording_task(log, 7, label="early")
        early.sequence = 1
        queue.enqueue(late)
        queue.enqueue(early)
        await queue.join()
        assert late.sequence == 99
        assert _started(log) == ["early", "late"]

    @pytest.mark.asyncio
    async def test_late_older_task_overtakes_queued_but_not_running_ones(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []

        async def run_and_enqueue_older():
            log.append(("start", 50))
            queue.enqueue(_recording_task(log, 5))
            await asyncio.sleep(0)
            log.append(("end", 50))

        queue.enqueue(LookupTask(run=run_and_enqueue_older, callback=lambda e, r: None, timestamp=50))
        queue.enqueue(_recording_task(log, 60))
        queue.enqueue(_recording_task(log, 70))
        await queue.join()

        # 50 was already running, so only the not-yet-started tasks were reordered
        assert _started(log) == [50, 5, 60, 70]


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_runs_never_overlap(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []

        async def producer(offset):
            for i in range(5):
                queue.enqueue(_recording_task(log, offset + i * 3, delay=0.002))
                await asyncio.sleep(0)

        await asyncio.gather(producer(0), producer(1), producer(2))
        await queue.join()

        assert len(log) == 30
        # strictly alternating start/end of the same task means no overlap
        for i in range(0, len(log), 2):
            assert log[i][0] == "start"
            assert log[i + 1] == ("end", log[i][1])

    @pytest.mark.asyncio
    async def test_worker_stops_when_empty_and_restarts_on_enqueue(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        assert not queue.is_running

        queue.enqueue(_recording_task(log, 1))
        assert queue.is_running
        await queue.join()
        assert not queue.is_running

        queue.enqueue(_recording_task(log, 2))
        assert queue.is_running
        await queue.join()
        assert _started(log) == [1, 2]
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_join_on_idle_queue_returns_immediately(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        await asyncio.wait_for(queue.join(), timeout=1)


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_failing_task_gets_empty_result_and_drain_continues(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        callbacks = []
        queue.enqueue(_recording_task(log, 1, callbacks=callbacks))
        queue.enqueue(_recording_task(log, 2, fail=True, callbacks=callbacks))
        queue.enqueue(_recording_task(log, 3, callbacks=callbacks))
        queue.enqueue(_recording_task(log, 4, callbacks=callbacks))
        await queue.join()

        assert _started(log) == [1, 2, 3, 4]
        assert (2, None, EMPTY) in callbacks
        assert [label for label, _, result in callbacks if result == b"ok"] == [1, 3, 4]
        assert queue.pending_count == 0
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_stop_the_drain(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []

        async def boom():
            raise ValueError("run failed")

        def bad_callback(error, result):
            raise RuntimeError("callback failed too")

        queue.enqueue(LookupTask(run=boom, callback=bad_callback, timestamp=1))
        queue.enqueue(_recording_task(log, 2))
        await queue.join()
        assert _started(log) == [2]


class TestAbort:
    @pytest.mark.asyncio
    async def test_answers_running_and_pending_tasks_with_empty_result(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        never = asyncio.Event()
        answered = []

        def make(label):
            async def run():
                await never.wait()

            return LookupTask(run=run, callback=lambda e, r: answered.append((label, e, r)), timestamp=label)

        for label in (1, 2, 3):
            queue.enqueue(make(label))
        await asyncio.sleep(0.01)  # let task 1 start

        await queue.abort()

        assert sorted(answered) == [(1, None, EMPTY), (2, None, EMPTY), (3, None, EMPTY)]
        assert queue.pending_count == 0
        assert not queue.is_running
        await asyncio.wait_for(queue.join(), timeout=1)

    @pytest.mark.asyncio
    async def test_before_worker_started(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        answered = []

        async def run():
            answered.append("ran")

        queue.enqueue(LookupTask(run=run, callback=lambda e, r: answered.append(r), timestamp=1))
        await queue.abort()

        assert answered == [EMPTY]
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_worker_started_while_cancelling_is_kept(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        callbacks = []
        late = _recording_task(log, 2, label="late", callbacks=callbacks)

        async def blocked():
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                # lands after this worker has exited, before abort() resumes
                asyncio.get_running_loop().call_soon(queue.enqueue, late)
                raise

        queue.enqueue(LookupTask(run=blocked, callback=lambda e, r: callbacks.append(("blocked", e, r)), timestamp=1))
        await asyncio.sleep(0.01)

        await queue.abort()

        assert queue.is_running
        await asyncio.wait_for(queue.join(), timeout=1)
        assert _started(log) == ["late"]
        assert callbacks == [("blocked", None, EMPTY), ("late", None, b"ok")]
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_task_enqueued_during_cancellation_still_runs(self):
        queue = OrderedTaskQueue(empty_result=EMPTY)
        log = []
        callbacks = []
        late = _recording_task(log, 2, label="late", callbacks=callbacks)

        async def blocked():
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                queue.enqueue(late)
                await asyncio.sleep(0)
                raise

        queue.enqueue(LookupTask(run=blocked, callback=lambda e, r: callbacks.append(("blocked", e, r)), timestamp=1))
        await asyncio.sleep(0.01)

        await queue.abort()
        await asyncio.wait_for(queue.join(), timeout=1)

        assert _started(log) == ["late"]
        assert callbacks == [("blocked", None, EMPTY), ("late", None, b"ok")]
        assert not queue.is_running
