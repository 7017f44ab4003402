import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from dual_n_back.config import SessionConfig
from dual_n_back.errors import PresentationFailure
from dual_n_back.nback import (
    MODALITIES,
    Modality,
    Stimulus,
    StimulusSequence,
    generate_sequence,
)
from dual_n_back.presentation import NullPresentation, Presentation
from dual_n_back.scheduler import RepeatingTask, Scheduler
from dual_n_back.scoring import Outcome, Tally, classify

SequenceFactory = Callable[[SessionConfig], StimulusSequence]


class EngineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ENDED = "ended"


@dataclass
class ResponseFlags:
    position: bool = False
    letter: bool = False

    def is_set(self, modality: Modality) -> bool:
        return getattr(self, modality.value)

    def set(self, modality: Modality) -> bool:
        """Raise the flag; returns True iff it was not already raised."""
        if self.is_set(modality):
            return False
        setattr(self, modality.value, True)
        return True

    def clear(self, modality: Modality) -> None:
        setattr(self, modality.value, False)


@dataclass(frozen=True)
class TrialRecord:
    """Scoring of one elapsed trial (only trials with an n-back partner)."""

    index: int
    stimulus: Stimulus
    outcomes: dict[Modality, Outcome]


@dataclass
class Session:
    """
    All mutable state of one run. A new Session is built by every
    TrialEngine.start(), so nothing leaks from one run into the next.
    """

    n: int
    sequence: StimulusSequence
    current_trial_index: int = 0
    response_flags: ResponseFlags = field(default_factory=ResponseFlags)
    tally: Tally = field(default_factory=Tally)
    records: list[TrialRecord] = field(default_factory=list)

    @property
    def trials(self) -> int:
        return len(self.sequence)

    @property
    def current_stimulus(self) -> Optional[Stimulus]:
        if self.current_trial_index >= self.trials:
            return None
        return self.sequence[self.current_trial_index]

    @property
    def evaluated_trials(self) -> int:
        return len(self.records)


class TrialEngine:
    """
    Drives a dual n-back session:

      IDLE --start--> RUNNING --tick x trials--> ENDED
                         |
                         +--stop--> IDLE

    Every tick scores the trial that just elapsed (once it has a partner
    n trials back) against the response flags raised during it, clears
    the flags and shows the next stimulus.

    The engine owns a single repeating task at a time; starting while
    running stops the previous session first.
    """

    def __init__(
        self,
        config: SessionConfig,
        scheduler: Scheduler,
        presentation: Optional[Presentation] = None,
        *,
        rng: Optional[random.Random] = None,
        sequence_factory: Optional[SequenceFactory] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.scheduler = scheduler
        self.presentation = presentation or NullPresentation()
        self.rng = rng
        self.sequence_factory = sequence_factory or self._generate
        self.logger = logger or logging.getLogger(__name__)

        self.presentation_failures: list[PresentationFailure] = []
        self._state = EngineState.IDLE
        self._session: Optional[Session] = None
        self._task: Optional[RepeatingTask] = None

    # ---- read-only view ----
    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is EngineState.RUNNING

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def tally(self) -> Optional[Tally]:
        return self._session.tally if self._session else None

    @property
    def current_trial_index(self) -> int:
        return self._session.current_trial_index if self._session else 0

    @property
    def evaluated_trials(self) -> int:
        return self._session.evaluated_trials if self._session else 0

    # ---- presentation boundary ----
    def _present(self, method: str, *args) -> None:
        """Call the presentation; failures are logged and never reach the tick."""
        try:
            getattr(self.presentation, method)(*args)
        except Exception as e:
            failure = e if isinstance(e, PresentationFailure) else PresentationFailure(method, e)
            self.presentation_failures.append(failure)
            self.logger.exception("Ignoring presentation failure: %s", failure)

    def _generate(self, config: SessionConfig) -> StimulusSequence:
        return generate_sequence(
            config.trials, config.grid_size, config.letters, rng=self.rng
        )

    # ---- presentation -> core ----
    def start(self, n: Optional[int] = None) -> Session:
        """
        Begin a new session, optionally overriding the configured N.
        Raises InvalidConfiguration before anything is changed.
        """
        config = self.config if n is None else self.config.with_n(n)
        config.validate()

        sequence = self.sequence_factory(config)
        if len(sequence) != config.trials:
            raise ValueError(
                f"sequence factory returned {len(sequence)} stimuli, "
                f"expected {config.trials}"
            )

        if self.running:
            self.logger.info("Restart requested; stopping the running session")
            self.stop()

        self._session = Session(n=config.n, sequence=sequence)
        self._task = self.scheduler.call_every(config.interval_ms, self.tick)
        self._state = EngineState.RUNNING
        self.logger.info(
            "Session started: n=%d trials=%d (%d scored) interval=%dms",
            config.n,
            config.trials,
            config.evaluated_trials,
            config.interval_ms,
        )

        self._present("set_controls_enabled", True)
        self._present("on_stimulus", sequence[0], 0)
        return self._session

    def stop(self) -> None:
        """Abort the running session; its partial tally is still reported."""
        if not self.running:
            return
        self._cancel_task()
        self._state = EngineState.IDLE
        self.logger.info(
            "Session stopped at trial %d/%d",
            self._session.current_trial_index,
            self._session.trials,
        )
        self._finish()

    def respond(self, modality: Union[Modality, str]) -> bool:
        """
        Register "this matches n back" for a modality during the current
        trial. Returns True iff the response was recorded; repeats within
        the same trial and responses outside a running session are ignored.
        """
        modality = Modality.parse(modality)
        if not self.running:
            self.logger.debug("Ignoring %s response: no session running", modality.value)
            return False
        recorded = self._session.response_flags.set(modality)
        if recorded:
            self.logger.debug(
                "%s response on trial %d",
                modality.value,
                self._session.current_trial_index,
            )
        return recorded

    # ---- timer ----
    def tick(self) -> None:
        """Close the current trial and move on to the next one."""
        if not self.running:
            return
        session = self._session
        t = session.current_trial_index

        outcomes: dict[Modality, Outcome] = {}
        for modality in MODALITIES:
            if t >= session.n:
                is_match = session.sequence.is_match(t, modality, session.n)
                responded = session.response_flags.is_set(modality)
                outcome = classify(is_match, responded)
                session.tally.record(modality, outcome)
                outcomes[modality] = outcome
            session.response_flags.clear(modality)

        if outcomes:
            session.records.append(
                TrialRecord(index=t, stimulus=session.sequence[t], outcomes=outcomes)
            )
            self.logger.debug(
                "Trial %d: %s",
                t,
                ", ".join(f"{m.value}={o.value}" for m, o in outcomes.items()),
            )

        session.current_trial_index += 1
        if session.current_trial_index == session.trials:
            self._cancel_task()
            self._state = EngineState.ENDED
            self.logger.info("Session complete: %s", session.tally.summary())
            self._finish()
        else:
            self._present(
                "on_stimulus",
                session.sequence[session.current_trial_index],
                session.current_trial_index,
            )

    def _cancel_task(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _finish(self) -> None:
        self._present("set_controls_enabled", False)
        self._present(
            "on_session_end", self._session.tally, self._session.evaluated_trials
        )
