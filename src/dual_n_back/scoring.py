from dataclasses import dataclass, field
from enum import Enum

from scipy.stats import norm

from dual_n_back.nback import MODALITIES, Modality


class Outcome(str, Enum):
    CORRECT_ACCEPT = "correct_accept"  # match, responded
    MISS = "miss"  # match, no response
    FALSE_POSITIVE = "false_positive"  # no match, responded
    CORRECT_REJECT = "correct_reject"  # no match, no response

    @property
    def correct(self) -> bool:
        return self in (Outcome.CORRECT_ACCEPT, Outcome.CORRECT_REJECT)


def classify(is_match: bool, responded: bool) -> Outcome:
    """Map (ground truth, user response) onto exactly one outcome."""
    if is_match:
        return Outcome.CORRECT_ACCEPT if responded else Outcome.MISS
    return Outcome.FALSE_POSITIVE if responded else Outcome.CORRECT_REJECT


@dataclass
class ModalityTally:
    """Outcome counts for one modality over a session."""

    correct_accept: int = 0
    miss: int = 0
    false_positive: int = 0
    correct_reject: int = 0

    def add(self, outcome: Outcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def count(self, outcome: Outcome) -> int:
        return getattr(self, outcome.value)

    @property
    def evaluated(self) -> int:
        return self.correct_accept + self.miss + self.false_positive + self.correct_reject

    @property
    def correct(self) -> int:
        return self.correct_accept + self.correct_reject

    @property
    def incorrect(self) -> int:
        return self.miss + self.false_positive

    @property
    def accuracy(self) -> float:
        return self.correct / self.evaluated if self.evaluated else 0.0

    @property
    def hit_rate(self) -> float:
        signals = self.correct_accept + self.miss
        return self.correct_accept / signals if signals else 0.0

    @property
    def false_alarm_rate(self) -> float:
        noise = self.false_positive + self.correct_reject
        return self.false_positive / noise if noise else 0.0

    @property
    def d_prime(self) -> float:
        """
        Sensitivity index z(H) - z(FA). Rates use the log-linear
        correction (+0.5 / +1) so all-hit or no-signal sessions
        still give a finite value.
        """
        signals = self.correct_accept + self.miss
        noise = self.false_positive + self.correct_reject
        hit = (self.correct_accept + 0.5) / (signals + 1)
        fa = (self.false_positive + 0.5) / (noise + 1)
        return float(norm.ppf(hit) - norm.ppf(fa))

    def as_dict(self) -> dict[str, int]:
        return {o.value: self.count(o) for o in Outcome}


@dataclass
class Tally:
    """Per-modality outcome counts for one session."""

    by_modality: dict[Modality, ModalityTally] = field(
        default_factory=lambda: {m: ModalityTally() for m in MODALITIES}
    )

    def __getitem__(self, modality) -> ModalityTally:
        return self.by_modality[Modality.parse(modality)]

    @property
    def position(self) -> ModalityTally:
        return self.by_modality[Modality.POSITION]

    @property
    def letter(self) -> ModalityTally:
        return self.by_modality[Modality.LETTER]

    def record(self, modality: Modality, outcome: Outcome) -> None:
        self[modality].add(outcome)

    def as_dict(self) -> dict[str, dict[str, int]]:
        return {m.value: t.as_dict() for m, t in self.by_modality.items()}

    def summary(self) -> str:
        parts = []
        for m, t in self.by_modality.items():
            parts.append(
                f"{m.value.capitalize()}: {t.correct}/{t.evaluated} "
                f"({100.0 * t.accuracy:.1f}%, d'={t.d_prime:.2f})"
            )
        return "   ".join(parts)
