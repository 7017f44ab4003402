import logging
import math
import random
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pygame
from pygame import Rect

from dual_n_back.config import SessionConfig
from dual_n_back.constants import AUDIO_DIR
from dual_n_back.engine import EngineState, TrialEngine
from dual_n_back.nback import Modality, Stimulus
from dual_n_back.presentation import CompositePresentation, Presentation
from dual_n_back.scheduler import ClockScheduler
from dual_n_back.scoring import Tally

BACKGROUND = (20, 22, 26)
TEXT = (235, 235, 235)
TEXT_DIM = (200, 200, 200)
CELL = (60, 60, 65)
CELL_ACTIVE = (30, 144, 255)
BORDER = (160, 160, 170)


# -------------------- Utilities --------------------
def make_beep(
    frequency: float = 880, duration_ms: int = 120, volume: float = 0.5
) -> pygame.mixer.Sound:
    """Generate a sine beep as a pygame Sound. Assumes mixer is initialized."""
    init = pygame.mixer.get_init()
    if init is None:
        raise RuntimeError("pygame.mixer not initialized")
    sample_rate, _fmt, channels = init

    n_samples = int(sample_rate * (duration_ms / 1000.0))
    t = np.linspace(
        0.0, duration_ms / 1000.0, n_samples, endpoint=False, dtype=np.float64
    )
    wave = 0.5 * np.sin(2.0 * np.pi * float(frequency) * t)
    mono = (wave * (2**15 - 1)).astype(np.int16, copy=False)

    if channels == 1:
        pcm = mono
    elif channels == 2:
        pcm = np.column_stack((mono, mono))
    else:
        raise ValueError(f"Unsupported mixer channels: {channels}")

    pcm = np.ascontiguousarray(pcm)
    snd = pygame.sndarray.make_sound(pcm)
    snd.set_volume(max(0.0, min(1.0, float(volume))))
    return snd


def grid_side(grid_size: int) -> int:
    """Smallest square grid that holds grid_size cells."""
    return max(1, math.ceil(math.sqrt(grid_size)))


class LetterVoice:
    """
    Speaks letters from <audio_dir>/<letter>.wav. Letters without a
    recording get a distinct synthesized tone instead. Sounds are loaded
    up front; audio errors are logged and the letter stays silent.
    """

    def __init__(
        self,
        letters: Sequence[str],
        audio_dir: Path = AUDIO_DIR,
        logger: Optional[logging.Logger] = None,
    ):
        self.letters = list(letters)
        self.audio_dir = Path(audio_dir)
        self.logger = logger or logging.getLogger(__name__)
        self._cache: dict[str, pygame.mixer.Sound] = {}
        for letter in self.letters:
            self._preload(letter)

    def _load(self, letter: str) -> pygame.mixer.Sound:
        path = self.audio_dir / f"{letter.lower()}.wav"
        if path.exists():
            return pygame.mixer.Sound(str(path))
        self.logger.debug("No recording for %r at %s, using a tone", letter, path)
        # one semitone per letter above A4
        idx = self.letters.index(letter) if letter in self.letters else 0
        return make_beep(440.0 * 2 ** (idx / 12.0), 350, 0.6)

    def _preload(self, letter: str) -> Optional[pygame.mixer.Sound]:
        try:
            self._cache[letter] = self._load(letter)
        except Exception:
            self.logger.exception("Could not load audio for letter %r", letter)
        return self._cache.get(letter)

    def speak(self, letter: str) -> None:
        sound = self._cache.get(letter)
        if sound is None:
            sound = self._preload(letter)
        if sound is None:
            return
        try:
            sound.play()
        except Exception:
            self.logger.exception("Could not play letter %r", letter)


# -------------------- Response panel --------------------
class ResponsePanel:
    """
    One per modality: label & key hint, filled green/red once pressed
    (green if the current trial really is an n-back match).
    """

    def __init__(self, modality: Modality, label: str, trigger_key: int):
        self.modality = modality
        self.label = label
        self.trigger_key = trigger_key
        self.rect: Optional[Rect] = None
        self.pressed = False
        self.correct_on_press = False

    def reset(self):
        self.pressed = False
        self.correct_on_press = False

    def draw(self, screen: pygame.Surface, font, *, enabled: bool):
        assert self.rect is not None, "rect not set via layout"
        rect = self.rect
        pygame.draw.rect(screen, (40, 42, 48), rect, border_radius=12)
        pygame.draw.rect(screen, BORDER, rect, width=2, border_radius=12)
        if self.pressed:
            fill = (40, 160, 90, 140) if self.correct_on_press else (180, 60, 60, 140)
            overlay = pygame.Surface((rect.w, rect.h), pygame.SRCALPHA)
            overlay.fill(fill)
            screen.blit(overlay, rect.topleft)
        color = TEXT if enabled else (120, 120, 120)
        label = font.render(self.label, True, color)
        screen.blit(label, label.get_rect(center=rect.center))


# -------------------- Window presentation --------------------
class PygamePresentation(Presentation):
    """Draws the grid/letter and speaks letters for the trial engine."""

    def __init__(
        self,
        voice: Optional[LetterVoice],
        panels: list[ResponsePanel],
    ):
        self.voice = voice
        self.panels = panels
        self.stimulus: Optional[Stimulus] = None
        self.trial_index = 0
        self.controls_enabled = False
        self.summary: Optional[str] = None

    def on_stimulus(self, stimulus: Stimulus, trial_index: int) -> None:
        self.stimulus = stimulus
        self.trial_index = trial_index
        self.summary = None
        for panel in self.panels:
            panel.reset()
        if self.voice is not None:
            self.voice.speak(stimulus.letter)

    def set_controls_enabled(self, enabled: bool) -> None:
        self.controls_enabled = enabled
        if not enabled:
            self.stimulus = None

    def on_session_end(self, tally: Tally, total_evaluated_trials: int) -> None:
        self.summary = f"Done! ({total_evaluated_trials} scored)  " + tally.summary()


# -------------------- Game --------------------
class DualNBackGame:
    """
    Window + event loop around a TrialEngine. The loop polls a
    ClockScheduler on pygame ticks, so the engine's fixed interval
    advances trials while key presses are routed to respond().

    Keys: A position match, L letter match, Space start/restart,
    S stop, Esc quit.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        extra_presentations: Sequence[Presentation] = (),
        window_size=(900, 650),
        seed: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config.validate()
        self.logger = logger or logging.getLogger(__name__)

        pygame.init()
        pygame.mixer.init(frequency=44100, size=-16, channels=2, buffer=512)
        self.screen = pygame.display.set_mode(window_size)
        pygame.display.set_caption("Dual N-Back")
        self.clock = pygame.time.Clock()
        self.font_big = pygame.font.SysFont(None, 48)
        self.font_letter = pygame.font.SysFont(None, 120)
        self.font_small = pygame.font.SysFont(None, 24)

        self.panels = [
            ResponsePanel(Modality.POSITION, "Position (A)", pygame.K_a),
            ResponsePanel(Modality.LETTER, "Letter (L)", pygame.K_l),
        ]
        self.grid_rect, panel_rects = self.layout_ui(self.screen.get_size())
        for panel, rect in zip(self.panels, panel_rects):
            panel.rect = rect

        self.view = PygamePresentation(
            LetterVoice(config.letters, logger=self.logger), self.panels
        )
        presentation: Presentation = self.view
        if extra_presentations:
            presentation = CompositePresentation(
                [self.view, *extra_presentations], logger=self.logger
            )

        self.scheduler = ClockScheduler(pygame.time.get_ticks, logger=self.logger)
        self.engine = TrialEngine(
            config,
            self.scheduler,
            presentation,
            rng=random.Random(seed) if seed is not None else None,
            logger=self.logger,
        )

    @staticmethod
    def layout_ui(window_size: tuple[int, int]) -> tuple[Rect, list[Rect]]:
        """Square grid on the left, response panels stacked to its right."""
        W, H = window_size
        side = max(60, min(H - 230, W // 2 - 30))
        grid = Rect(80, 110, side, side)
        right_x = grid.right + 40
        panel_w = max(120, W - right_x - 40)
        mid = grid.centery
        return grid, [
            Rect(right_x, mid - 60, panel_w, 90),
            Rect(right_x, mid + 50, panel_w, 90),
        ]

    # ---- rendering helpers ----
    def _draw_header(self):
        session = self.engine.session
        if session is not None and self.engine.state is EngineState.RUNNING:
            text = f"Trial {session.current_trial_index + 1}/{session.trials}   n={session.n}"
        else:
            text = f"n={self.config.n}   Press Space to start"
        hdr = self.font_big.render(text, True, TEXT)
        self.screen.blit(hdr, (24, 24))
        tip = self.font_small.render(
            "A: position match   L: letter match   S: stop   Esc: quit",
            True,
            (210, 210, 210),
        )
        self.screen.blit(tip, (24, 64))

    def _draw_grid(self):
        side = grid_side(self.config.grid_size)
        cell_w = self.grid_rect.w // side
        cell_h = self.grid_rect.h // side
        active = self.view.stimulus.position if self.view.stimulus else None
        for cell in range(self.config.grid_size):
            row, col = divmod(cell, side)
            rect = Rect(
                self.grid_rect.x + col * cell_w + 4,
                self.grid_rect.y + row * cell_h + 4,
                cell_w - 8,
                cell_h - 8,
            )
            color = CELL_ACTIVE if cell == active else CELL
            pygame.draw.rect(self.screen, color, rect, border_radius=8)
            pygame.draw.rect(self.screen, BORDER, rect, width=2, border_radius=8)

    def _draw_letter(self):
        if self.view.stimulus is None:
            return
        x = self.panels[0].rect.centerx
        surf = self.font_letter.render(self.view.stimulus.letter, True, TEXT)
        self.screen.blit(surf, surf.get_rect(center=(x, 170)))

    def _draw_scorebar(self):
        tally = self.engine.tally
        if self.view.summary:
            text = self.view.summary
        elif tally is not None:
            text = "   ".join(
                f"{m.value.capitalize()}: {tally[m].correct}/{tally[m].evaluated}"
                for m in tally.by_modality
            )
        else:
            text = ""
        s_txt = self.font_small.render(text, True, TEXT_DIM)
        self.screen.blit(s_txt, (24, self.screen.get_height() - 30))

    def draw(self):
        self.screen.fill(BACKGROUND)
        self._draw_header()
        self._draw_grid()
        self._draw_letter()
        for panel in self.panels:
            panel.draw(self.screen, self.font_big, enabled=self.view.controls_enabled)
        self._draw_scorebar()
        pygame.display.flip()

    # ---- input routing ----
    def _handle_keydown(self, key: int):
        if key == pygame.K_SPACE:
            self.engine.start()
            return
        if key == pygame.K_s:
            self.engine.stop()
            return
        for panel in self.panels:
            if key == panel.trigger_key and self.view.controls_enabled:
                if self.engine.respond(panel.modality):
                    session = self.engine.session
                    panel.pressed = True
                    panel.correct_on_press = session.sequence.is_match(
                        session.current_trial_index, panel.modality, session.n
                    )

    # ---- main loop ----
    def run(self):
        running = True
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        running = False
                    else:
                        self._handle_keydown(event.key)
            self.scheduler.run_pending()
            self.draw()
            self.clock.tick(120)

        self.engine.stop()
        pygame.quit()
