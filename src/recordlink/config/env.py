"""Environment loading for configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dotenv import find_dotenv, load_dotenv

if TYPE_CHECKING:
    from pathlib import Path


def load_environment(path: Path | None = None, *, override: bool = False) -> bool:
    """Populate ``os.environ`` from ``path`` or the nearest ``.env`` above the working dir.

    Variables already set in the environment win unless ``override`` is true.
    """

    return load_dotenv(dotenv_path=path or find_dotenv(usecwd=True), override=override)
