# chess_review/utils/system_utils.py
"""
Provides system-level utility functions.
"""
import os
import shutil
from pathlib import Path
from typing import Optional


def find_stockfish_executable(provided_path: Optional[str] = None) -> Path:
    """
    Finds a runnable UCI engine executable, raising FileNotFoundError if unsuccessful.

    The search is performed in the following order of precedence:
    1. The path provided via the `provided_path` argument.
    2. The path specified in the `STOCKFISH_PATH` environment variable.
    3. A `stockfish` binary on the system `PATH`.

    Raises:
        FileNotFoundError: If no executable can be found.
    """
    candidates = []
    if provided_path:
        candidates.append(Path(provided_path).expanduser())
    if env_path := os.environ.get("STOCKFISH_PATH"):
        candidates.append(Path(env_path).expanduser())

    for path in candidates:
        if path.is_file() and os.access(path, os.X_OK):
            return path.resolve()

    if system_path := shutil.which("stockfish"):
        return Path(system_path)

    raise FileNotFoundError(
        "Engine executable not found. Install Stockfish, set STOCKFISH_PATH, "
        "or pass --stockfish-path."
    )
