"""Bundled task list and config files shipped with the package."""

from pathlib import Path

DATA_DIR = Path(__file__).resolve().parent
CONFIGS_DIR = DATA_DIR / "configs"
DEFAULT_TASKS_FILE = DATA_DIR / "default_tasks.yml"
