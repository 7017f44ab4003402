import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from dual_n_back.errors import InvalidConfiguration


class RepeatingTask:
    """
    Handle for a callback scheduled every `interval_ms`.
    Cancelling is idempotent; a cancelled task never fires again.
    """

    def __init__(self, interval_ms: int, callback: Callable[[], None], first_due_ms: int):
        self.interval_ms = interval_ms
        self.callback = callback
        self.next_due_ms = first_due_ms
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._active = False

    def _fire(self, now_ms: int) -> None:
        # next period counts from this firing, not from the missed due time
        self.next_due_ms = now_ms + self.interval_ms
        self.callback()


class Scheduler(ABC):
    """Source of cancellable repeating tasks for the trial engine."""

    @abstractmethod
    def call_every(
        self, interval_ms: int, callback: Callable[[], None]
    ) -> RepeatingTask: ...


class ClockScheduler(Scheduler):
    """
    Polled scheduler. The owner calls run_pending() from its main loop
    (e.g. once per pygame frame); every task that became due since the
    last poll fires once, in due-time order, and its next period is
    counted from the poll time. Missed periods are dropped, not replayed.
    """

    def __init__(
        self,
        now_ms: Callable[[], int],
        logger: Optional[logging.Logger] = None,
    ):
        self._now_ms = now_ms
        self.logger = logger or logging.getLogger(__name__)
        self._tasks: list[RepeatingTask] = []

    def now(self) -> int:
        return int(self._now_ms())

    def call_every(
        self, interval_ms: int, callback: Callable[[], None]
    ) -> RepeatingTask:
        if interval_ms <= 0:
            raise InvalidConfiguration(
                f"interval_ms must be positive, got {interval_ms}"
            )
        task = RepeatingTask(interval_ms, callback, self.now() + interval_ms)
        self._tasks.append(task)
        self.logger.debug("Scheduled task every %d ms", interval_ms)
        return task

    @property
    def active_tasks(self) -> list[RepeatingTask]:
        return [t for t in self._tasks if t.active]

    def run_pending(self) -> int:
        """Fire each due callback at most once; returns how many fired."""
        now = self.now()
        due = sorted(
            (t for t in self._tasks if t.active and t.next_due_ms <= now),
            key=lambda t: t.next_due_ms,
        )
        fired = 0
        for task in due:
            # an earlier callback in this pass may have cancelled it
            if not task.active:
                continue
            task._fire(now)
            fired += 1
        self._tasks = [t for t in self._tasks if t.active]
        return fired


class ManualScheduler(ClockScheduler):
    """
    Simulated clock for tests and headless runs. Time only moves when
    advance() is called.
    """

    def __init__(self, start_ms: int = 0, logger: Optional[logging.Logger] = None):
        self.time_ms = start_ms
        super().__init__(lambda: self.time_ms, logger=logger)

    def advance(self, ms: int) -> int:
        """
        Move the clock forward by `ms`, firing due callbacks at their due
        times in order. Returns how many callbacks fired.
        """
        if ms < 0:
            raise ValueError("cannot move the clock backwards")
        target = self.time_ms + ms
        fired = 0
        while True:
            pending = [t.next_due_ms for t in self.active_tasks if t.next_due_ms <= target]
            if not pending:
                break
            self.time_ms = min(pending)
            fired += self.run_pending()
        self.time_ms = target
        return fired
