import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from dual_n_back.errors import PresentationFailure
from dual_n_back.nback import Stimulus
from dual_n_back.scoring import Tally


class Presentation(ABC):
    """
    Everything the trial engine needs from a front end:
      - show a stimulus (highlight a cell, speak a letter)
      - enable/disable the response controls
      - report the final tally
    Calls are fire-and-forget; the engine never waits on them.
    """

    @abstractmethod
    def on_stimulus(self, stimulus: Stimulus, trial_index: int) -> None: ...

    @abstractmethod
    def on_session_end(self, tally: Tally, total_evaluated_trials: int) -> None: ...

    @abstractmethod
    def set_controls_enabled(self, enabled: bool) -> None: ...


class NullPresentation(Presentation):
    """Presentation that ignores everything (headless runs)."""

    def on_stimulus(self, stimulus: Stimulus, trial_index: int) -> None:
        pass

    def on_session_end(self, tally: Tally, total_evaluated_trials: int) -> None:
        pass

    def set_controls_enabled(self, enabled: bool) -> None:
        pass


class CompositePresentation(Presentation):
    """
    Fan a call out to several presentations (e.g. the window and an OSC
    marker stream). One sink failing does not stop the others; failures
    are logged and re-raised together as a single PresentationFailure.
    """

    def __init__(
        self,
        sinks: Iterable[Presentation],
        logger: Optional[logging.Logger] = None,
    ):
        self.sinks: list[Presentation] = list(sinks)
        self.logger = logger or logging.getLogger(__name__)

    def _broadcast(self, method: str, *args) -> None:
        first_error: Optional[BaseException] = None
        for sink in self.sinks:
            try:
                getattr(sink, method)(*args)
            except Exception as e:
                self.logger.exception(
                    "%s.%s failed: %s", type(sink).__name__, method, e
                )
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise PresentationFailure(method, first_error)

    def on_stimulus(self, stimulus: Stimulus, trial_index: int) -> None:
        self._broadcast("on_stimulus", stimulus, trial_index)

    def on_session_end(self, tally: Tally, total_evaluated_trials: int) -> None:
        self._broadcast("on_session_end", tally, total_evaluated_trials)

    def set_controls_enabled(self, enabled: bool) -> None:
        self._broadcast("set_controls_enabled", enabled)
