# tests/utils/test_system_utils.py
import pytest

from chess_review.utils.system_utils import find_stockfish_executable


def _make_executable(path):
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)
    return path


def test_explicit_path_wins(tmp_path, monkeypatch):
    explicit = _make_executable(tmp_path / "my-engine")
    monkeypatch.setenv("STOCKFISH_PATH", str(_make_executable(tmp_path / "env-engine")))

    assert find_stockfish_executable(str(explicit)) == explicit.resolve()


def test_environment_variable_is_used(tmp_path, monkeypatch):
    from_env = _make_executable(tmp_path / "env-engine")
    monkeypatch.setenv("STOCKFISH_PATH", str(from_env))

    assert find_stockfish_executable() == from_env.resolve()


def test_missing_engine_raises(tmp_path, monkeypatch):
    monkeypatch.delenv("STOCKFISH_PATH", raising=False)
    monkeypatch.setattr("shutil.which", lambda name: None)

    with pytest.raises(FileNotFoundError):
        find_stockfish_executable(str(tmp_path / "does-not-exist"))
