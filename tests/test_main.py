from typer.testing import CliRunner

from dual_n_back.main import app

runner = CliRunner()


class TestSimulate:
    def test_scores_trials_minus_n(self):
        result = runner.invoke(
            app, ["simulate", "--n", "2", "--trials", "12", "--seed", "1"]
        )
        assert result.exit_code == 0, result.output
        assert "n=2 trials=12 scored=10" in result.output
        assert "Position:" in result.output
        assert "Letter:" in result.output

    def test_perfect_player(self):
        result = runner.invoke(
            app,
            ["simulate", "--trials", "15", "--accuracy", "1.0", "--seed", "9"],
        )
        assert result.exit_code == 0, result.output
        assert result.output.count("miss=0") == 2
        assert result.output.count("false_positive=0") == 2
        assert result.output.count("13/13 (100.0%") == 2

    def test_invalid_configuration(self):
        result = runner.invoke(app, ["simulate", "--n", "5", "--trials", "5"])
        assert result.exit_code == 2
        assert "Invalid configuration" in result.output


class TestPreview:
    def test_preview(self):
        result = runner.invoke(
            app, ["preview", "--n", "1", "--trials", "8", "--letters", "ab", "--seed", "3"]
        )
        assert result.exit_code == 0, result.output
        assert "n_back: 1 trials: 8 scored: 7" in result.output
        letters_line = next(
            line for line in result.output.splitlines() if line.startswith("letters:")
        )
        assert set(letters_line.split()[1]) <= {"A", "B"}
        assert "position matches:" in result.output
