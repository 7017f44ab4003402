from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DATA_DIR = BASE_DIR / "data"
AUDIO_DIR = DATA_DIR / "audio"

# Session defaults (3x3 grid, one stimulus every 3 seconds)
DEFAULT_N = 2
DEFAULT_TRIALS = 20
DEFAULT_GRID_SIZE = 3 * 3
DEFAULT_LETTERS = ("C", "H", "K", "L", "Q", "R", "S", "T")
DEFAULT_INTERVAL_MS = 3000
