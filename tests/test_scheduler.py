from unittest.mock import MagicMock

import pytest

from dual_n_back.errors import InvalidConfiguration
from dual_n_back.scheduler import ClockScheduler, ManualScheduler


class TestClockScheduler:
    def test_fires_when_due(self):
        now = [0]
        sched = ClockScheduler(lambda: now[0])
        cb = MagicMock()
        sched.call_every(100, cb)

        now[0] = 99
        assert sched.run_pending() == 0
        now[0] = 100
        assert sched.run_pending() == 1
        assert cb.call_count == 1

    def test_late_poll_fires_once_and_reanchors(self):
        """
        A poll that arrives several periods late fires the task once and
        counts the next period from the poll time.
        """
        now = [0]
        sched = ClockScheduler(lambda: now[0])
        cb = MagicMock()
        task = sched.call_every(100, cb)

        now[0] = 350
        assert sched.run_pending() == 1
        assert cb.call_count == 1
        assert task.next_due_ms == 450

        # nothing is left over to replay on the next poll
        assert sched.run_pending() == 0
        now[0] = 449
        assert sched.run_pending() == 0
        now[0] = 450
        assert sched.run_pending() == 1
        assert cb.call_count == 2

    def test_cancel(self):
        now = [0]
        sched = ClockScheduler(lambda: now[0])
        cb = MagicMock()
        task = sched.call_every(100, cb)
        task.cancel()
        task.cancel()

        now[0] = 1000
        assert sched.run_pending() == 0
        cb.assert_not_called()
        assert not task.active
        assert sched.active_tasks == []

    def test_cancel_from_earlier_callback_in_same_poll(self):
        now = [0]
        sched = ClockScheduler(lambda: now[0])
        first = sched.call_every(100, lambda: second.cancel())
        second = sched.call_every(150, MagicMock())
        now[0] = 500
        assert sched.run_pending() == 1
        assert not second.active
        assert first.next_due_ms == 600

    @pytest.mark.parametrize("interval", [0, -5])
    def test_invalid_interval(self, interval):
        sched = ClockScheduler(lambda: 0)
        with pytest.raises(InvalidConfiguration):
            sched.call_every(interval, MagicMock())


class TestManualScheduler:
    def test_advance_fires_in_time_order(self):
        sched = ManualScheduler()
        calls = []
        sched.call_every(300, lambda: calls.append(("slow", sched.time_ms)))
        sched.call_every(200, lambda: calls.append(("fast", sched.time_ms)))

        fired = sched.advance(600)

        assert fired == 5
        assert calls == [
            ("fast", 200),
            ("slow", 300),
            ("fast", 400),
            ("slow", 600),
            ("fast", 600),
        ]
        assert sched.time_ms == 600

    def test_advance_without_tasks(self):
        sched = ManualScheduler(start_ms=10)
        assert sched.advance(50) == 0
        assert sched.now() == 60

    def test_task_scheduled_during_advance(self):
        """
        A task created by a callback is due relative to the simulated
        time at which it was created.
        """
        sched = ManualScheduler()
        inner = MagicMock()
        created = []

        def outer():
            if not created:
                created.append(sched.call_every(100, inner))

        sched.call_every(250, outer)
        sched.advance(500)
        # inner scheduled at 250 -> due at 350, 450
        assert inner.call_count == 2

    def test_negative_advance(self):
        with pytest.raises(ValueError):
            ManualScheduler().advance(-1)
