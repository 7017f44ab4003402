from dual_n_back.nback import Stimulus
from dual_n_back.presentation import Presentation
from dual_n_back.scoring import Tally

from .base import BaseStreamer


class MarkerStreamer(BaseStreamer, Presentation):
    """
    Presentation sink that mirrors engine events as OSC messages, so an
    EEG/ERP recorder listening on the same port can time-lock to stimuli:

      /event "stimulus" <trial> <position> <letter>
      /event "controls" <0|1>
      /event "end" <evaluated> <position correct> <letter correct>
    """

    def __init__(self, ip: str = "127.0.0.1", port: int = 5005, address: str = "/event"):
        super().__init__(ip, port)
        self.address = address

    def on_stimulus(self, stimulus: Stimulus, trial_index: int) -> None:
        self.client.send_message(
            self.address,
            ["stimulus", trial_index, stimulus.position, stimulus.letter],
        )

    def set_controls_enabled(self, enabled: bool) -> None:
        self.client.send_message(self.address, ["controls", int(enabled)])

    def on_session_end(self, tally: Tally, total_evaluated_trials: int) -> None:
        self.client.send_message(
            self.address,
            [
                "end",
                total_evaluated_trials,
                tally.position.correct,
                tally.letter.correct,
            ],
        )
