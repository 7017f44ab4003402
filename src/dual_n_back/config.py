from dataclasses import dataclass, replace

from dual_n_back.constants import (
    DEFAULT_GRID_SIZE,
    DEFAULT_INTERVAL_MS,
    DEFAULT_LETTERS,
    DEFAULT_N,
    DEFAULT_TRIALS,
)
from dual_n_back.errors import InvalidConfiguration


@dataclass(frozen=True)
class SessionConfig:
    """
    Settings read once at the start of every session.

    - n: how many trials back a stimulus is compared against
    - trials: number of stimuli shown per session
    - grid_size: number of cells a position can fall in
    - letters: alphabet the spoken letter is drawn from
    - interval_ms: time each stimulus stays up before the next tick
    """

    n: int = DEFAULT_N
    trials: int = DEFAULT_TRIALS
    grid_size: int = DEFAULT_GRID_SIZE
    letters: tuple[str, ...] = DEFAULT_LETTERS
    interval_ms: int = DEFAULT_INTERVAL_MS

    def __post_init__(self):
        # Accept any iterable of letters (list from the CLI, a plain string, ...)
        object.__setattr__(self, "letters", tuple(self.letters))

    def validate(self) -> "SessionConfig":
        """
        Raise InvalidConfiguration if a session with these settings
        would be malformed. Returns self so calls can be chained.
        """
        if self.n < 1:
            raise InvalidConfiguration(f"n must be at least 1, got {self.n}")
        if self.trials < 1:
            raise InvalidConfiguration(
                f"trials must be positive, got {self.trials}"
            )
        if self.n >= self.trials:
            raise InvalidConfiguration(
                f"n ({self.n}) must be smaller than trials ({self.trials}), "
                "otherwise no trial has a stimulus to compare against"
            )
        if self.grid_size < 1:
            raise InvalidConfiguration(
                f"grid_size must be positive, got {self.grid_size}"
            )
        if not self.letters:
            raise InvalidConfiguration("letter alphabet must not be empty")
        if any(not isinstance(c, str) or not c.strip() for c in self.letters):
            raise InvalidConfiguration(f"blank letter in alphabet {self.letters!r}")
        if len(set(self.letters)) != len(self.letters):
            raise InvalidConfiguration(
                f"duplicate letters in alphabet {self.letters!r}"
            )
        if self.interval_ms < 1:
            raise InvalidConfiguration(
                f"interval_ms must be positive, got {self.interval_ms}"
            )
        return self

    def with_n(self, n: int) -> "SessionConfig":
        """Copy of this config with a different N."""
        return replace(self, n=n)

    @property
    def evaluated_trials(self) -> int:
        """Trials scored per modality over a full session."""
        return self.trials - self.n
