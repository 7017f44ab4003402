import random
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Sequence, Union

from dual_n_back.errors import InvalidConfiguration


class Modality(str, Enum):
    """The two independent stimulus channels."""

    POSITION = "position"
    LETTER = "letter"

    @classmethod
    def parse(cls, value: Union["Modality", str]) -> "Modality":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown modality {value!r}, expected one of "
                f"{[m.value for m in cls]}"
            ) from None


MODALITIES: tuple[Modality, ...] = (Modality.POSITION, Modality.LETTER)


@dataclass(frozen=True)
class Stimulus:
    """One trial: a highlighted grid cell and a spoken letter."""

    position: int
    letter: str

    def value(self, modality: Modality) -> Union[int, str]:
        return getattr(self, Modality.parse(modality).value)


class StimulusSequence:
    """
    Read-only, fixed-length list of stimuli for one session.

    Matches are not planted: whether trial i matches trial i - n in a
    modality is whatever the random draw produced.
    """

    def __init__(self, stimuli: Sequence[Stimulus]):
        self._stimuli: tuple[Stimulus, ...] = tuple(stimuli)

    def __len__(self) -> int:
        return len(self._stimuli)

    def __iter__(self) -> Iterator[Stimulus]:
        return iter(self._stimuli)

    def __getitem__(self, index: int) -> Stimulus:
        return self._stimuli[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, StimulusSequence):
            return self._stimuli == other._stimuli
        return NotImplemented

    def __repr__(self) -> str:
        return f"StimulusSequence({list(self._stimuli)!r})"

    def values(self, modality: Modality) -> list:
        """All values of one modality, in presentation order."""
        return [s.value(modality) for s in self._stimuli]

    def is_match(self, index: int, modality: Modality, n: int) -> bool:
        """
        Ground truth for trial `index`: does it repeat the stimulus shown
        n trials earlier? The first n trials never match.
        """
        if index < n:
            return False
        return self._stimuli[index].value(modality) == self._stimuli[
            index - n
        ].value(modality)

    def match_count(self, modality: Modality, n: int) -> int:
        return sum(1 for i in range(len(self)) if self.is_match(i, modality, n))


def generate_sequence(
    trials: int,
    grid_size: int,
    letters: Sequence[str],
    rng: Optional[random.Random] = None,
) -> StimulusSequence:
    """
    Draw `trials` stimuli, each position and letter independently and
    uniformly at random. Nothing ties consecutive or n-separated stimuli,
    so the match rate stays low and unpredictable.
    """
    if trials < 1:
        raise InvalidConfiguration(f"trials must be positive, got {trials}")
    if grid_size < 1:
        raise InvalidConfiguration(f"grid_size must be positive, got {grid_size}")
    if not letters:
        raise InvalidConfiguration("letter alphabet must not be empty")

    # The random module exposes the same randrange/choice API as an instance
    rng = rng if rng is not None else random
    letters = list(letters)
    return StimulusSequence(
        [
            Stimulus(position=rng.randrange(grid_size), letter=rng.choice(letters))
            for _ in range(trials)
        ]
    )
