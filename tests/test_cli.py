"""Tests for CLI commands."""

import pytest
from rich.console import Console
from typer.testing import CliRunner

from tradebench.cli import commands
from tradebench.cli.commands import app
from tradebench.config import app_config
from tradebench.config.app_config import ENV_LOCAL_DB
from tradebench.db.local_storage import LocalStorage, progress_key, quiz_sessions_key

runner = CliRunner()


@pytest.fixture(autouse=True)
def offline_env(db_path, tmp_path, monkeypatch):
    """Offline mode over a temporary database, with a wide console."""
    monkeypatch.setattr(app_config, "CONFIG_FILE", tmp_path / "missing.yaml")
    monkeypatch.setenv(ENV_LOCAL_DB, str(db_path))
    monkeypatch.setattr(commands, "console", Console(width=200))


@pytest.fixture
def storage(db_path):
    return LocalStorage(db_path)


class TestReferenceCommands:
    def test_years(self):
        result = runner.invoke(app, ["years"])
        assert result.exit_code == 0
        assert "Period 1" in result.output
        assert "Period 4" in result.output

    def test_questions_filtered(self):
        result = runner.invoke(app, ["questions", "--year", "3", "--section", "Welding"])
        assert result.exit_code == 0
        assert "y3-welding-001" in result.output
        assert "y1-safety-001" not in result.output
        assert "2 question(s)" in result.output

    def test_questions_none_found(self):
        result = runner.invoke(app, ["questions", "--section", "Underwater Basket Weaving"])
        assert result.exit_code == 0
        assert "No questions found" in result.output

    def test_guides(self):
        result = runner.invoke(app, ["guides", "--year", "4"])
        assert result.exit_code == 0
        assert "guide-y4-codes" in result.output


class TestProgressCommands:
    def test_progress_empty(self):
        result = runner.invoke(app, ["progress", "u1", "1"])
        assert result.exit_code == 0
        assert "No progress recorded" in result.output

    def test_progress_unknown_year(self):
        result = runner.invoke(app, ["progress", "u1", "9"])
        assert result.exit_code == 1
        assert "Unknown year" in result.output

    def test_progress_summary(self, storage):
        storage.set_item(
            progress_key("u1", 1),
            {
                "user_id": "u1",
                "year": 1,
                "statistics": {"total_answered": 20, "total_correct": 10, "accuracy": 50.0},
                "exam_readiness": {"score": 10.0, "label": "NOT READY"},
                "weak_areas": [
                    {"section": "Trade Math", "answered": 8, "incorrect": 6, "accuracy": 25.0}
                ],
                "streak_data": {"study_days": 2, "best_correct": 4},
            },
        )
        result = runner.invoke(app, ["progress", "u1", "1"])
        assert result.exit_code == 0
        assert "NOT READY" in result.output
        assert "10/20" in result.output
        assert "Trade Math" in result.output

    def test_reset_progress(self, storage):
        storage.set_item(
            progress_key("u1", 1),
            {"user_id": "u1", "year": 1, "statistics": {"total_answered": 5}},
        )
        result = runner.invoke(app, ["reset-progress", "u1", "1", "--yes"])
        assert result.exit_code == 0
        assert storage.get_item(progress_key("u1", 1))["statistics"] == {}

    def test_reset_progress_cancelled(self, storage):
        storage.set_item(
            progress_key("u1", 1),
            {"user_id": "u1", "year": 1, "statistics": {"total_answered": 5}},
        )
        result = runner.invoke(app, ["reset-progress", "u1", "1"], input="n\n")
        assert result.exit_code == 0
        assert storage.get_item(progress_key("u1", 1))["statistics"] == {"total_answered": 5}

    def test_history(self, storage):
        storage.set_item(
            quiz_sessions_key("u1"),
            [
                {
                    "id": "s1",
                    "user_id": "u1",
                    "year": 1,
                    "quiz_mode": "exam",
                    "questions": ["a", "b"],
                    "score": 2,
                    "total_questions": 2,
                    "time_taken": 40,
                    "completed_at": "2026-03-02T10:00:00+00:00",
                },
                {
                    "id": "s2",
                    "user_id": "u1",
                    "year": 1,
                    "quiz_mode": "practice",
                    "questions": ["a"],
                    "completed_at": None,
                },
            ],
        )
        result = runner.invoke(app, ["history", "u1", "1"])
        assert result.exit_code == 0
        assert "exam" in result.output
        assert "2/2" in result.output
        assert "practice" not in result.output

    def test_history_empty(self):
        result = runner.invoke(app, ["history", "u1", "2"])
        assert result.exit_code == 0
        assert "No completed quizzes" in result.output


class TestConfigCommand:
    def test_shows_offline_database(self, db_path):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "offline" in result.output
        assert str(db_path) in result.output
