import logging
import random

import typer
from pythonosc import dispatcher, osc_server

from dual_n_back.config import SessionConfig
from dual_n_back.constants import (
    DEFAULT_GRID_SIZE,
    DEFAULT_INTERVAL_MS,
    DEFAULT_LETTERS,
    DEFAULT_N,
    DEFAULT_TRIALS,
)
from dual_n_back.engine import EngineState, TrialEngine
from dual_n_back.errors import InvalidConfiguration
from dual_n_back.nback import MODALITIES, Modality, generate_sequence
from dual_n_back.presentation import NullPresentation
from dual_n_back.scheduler import ManualScheduler

app = typer.Typer()
osc_app = typer.Typer()
app.add_typer(osc_app, name="osc")


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_config(
    n: int, trials: int, grid_size: int, letters: str, interval_ms: int
) -> SessionConfig:
    config = SessionConfig(
        n=n,
        trials=trials,
        grid_size=grid_size,
        letters=tuple(letters.upper()),
        interval_ms=interval_ms,
    )
    try:
        return config.validate()
    except InvalidConfiguration as e:
        print(f"Invalid configuration: {e}")
        raise typer.Exit(code=2)


@osc_app.command()
def reader(ip: str = "127.0.0.1", port: int = 5005):
    """OSC reader (prints the markers sent by `play --osc-port`)."""

    def print_handler(address, *args):
        print(f"Received message from {address}: {args}")

    disp = dispatcher.Dispatcher()
    disp.map("/*", print_handler)

    server = osc_server.ThreadingOSCUDPServer((ip, port), disp)
    print(f"Serving on {server.server_address}")
    server.serve_forever()


@app.command()
def play(
    n: int = DEFAULT_N,
    trials: int = DEFAULT_TRIALS,
    grid_size: int = DEFAULT_GRID_SIZE,
    letters: str = "".join(DEFAULT_LETTERS),
    interval_ms: int = DEFAULT_INTERVAL_MS,
    seed: int | None = None,
    osc_ip: str = "127.0.0.1",
    osc_port: int | None = None,
    verbose: bool = False,
):
    """
    Run an interactive dual n-back session (grid position + spoken letter).
    """
    _setup_logging(verbose)
    config = _build_config(n, trials, grid_size, letters, interval_ms)

    extra = []
    if osc_port is not None:
        from dual_n_back.streaming.markers import MarkerStreamer

        extra.append(MarkerStreamer(ip=osc_ip, port=osc_port))

    from dual_n_back.game import DualNBackGame

    game = DualNBackGame(config, extra_presentations=extra, seed=seed)
    game.run()


@app.command()
def simulate(
    n: int = DEFAULT_N,
    trials: int = DEFAULT_TRIALS,
    grid_size: int = DEFAULT_GRID_SIZE,
    letters: str = "".join(DEFAULT_LETTERS),
    interval_ms: int = DEFAULT_INTERVAL_MS,
    accuracy: float = typer.Option(0.8, min=0.0, max=1.0),
    seed: int | None = None,
    verbose: bool = False,
):
    """
    Play a session headlessly on a simulated clock. The simulated player
    judges each trial correctly with probability --accuracy.
    """
    _setup_logging(verbose)
    config = _build_config(n, trials, grid_size, letters, interval_ms)
    rng = random.Random(seed)

    scheduler = ManualScheduler()
    engine = TrialEngine(config, scheduler, NullPresentation(), rng=rng)
    session = engine.start()

    while engine.state is EngineState.RUNNING:
        t = session.current_trial_index
        for modality in MODALITIES:
            is_match = session.sequence.is_match(t, modality, session.n)
            wants_press = is_match if rng.random() < accuracy else not is_match
            if wants_press:
                engine.respond(modality)
        scheduler.advance(config.interval_ms)

    print(f"n={config.n} trials={config.trials} scored={session.evaluated_trials}")
    for modality in MODALITIES:
        mt = session.tally[modality]
        counts = "  ".join(f"{k}={v}" for k, v in mt.as_dict().items())
        print(f"{modality.value:>8}: {counts}")
    print(session.tally.summary())


@app.command()
def preview(
    n: int = DEFAULT_N,
    trials: int = DEFAULT_TRIALS,
    grid_size: int = DEFAULT_GRID_SIZE,
    letters: str = "".join(DEFAULT_LETTERS),
    seed: int | None = None,
):
    """
    Print a generated sequence and how many true n-back matches it holds.
    """
    config = _build_config(n, trials, grid_size, letters, DEFAULT_INTERVAL_MS)
    seq = generate_sequence(
        config.trials, config.grid_size, config.letters, rng=random.Random(seed)
    )
    print(
        "n_back:", config.n, "trials:", config.trials, "scored:", config.evaluated_trials
    )
    print("positions:", seq.values(Modality.POSITION))
    print("letters:  ", "".join(seq.values(Modality.LETTER)))
    for modality in MODALITIES:
        print(f"{modality.value} matches: {seq.match_count(modality, config.n)}")


if __name__ == "__main__":
    app()
