"""Tests for CLI commands."""

import json

import pytest

from expense_matcher.runner.main import create_cli, main


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_all_commands_registered(self):
        """Verify all expected commands are registered."""
        parser = create_cli()

        subparsers_action = None
        for action in parser._actions:
            if action.dest == "command":
                subparsers_action = action
                break

        assert subparsers_action is not None
        commands = set(subparsers_action.choices.keys())
        assert commands == {
            "init-config",
            "import",
            "add-receipt",
            "ocr-result",
            "find",
            "auto-match",
            "confirm",
            "reject",
            "delete-match",
            "delete-transaction",
            "delete-receipt",
            "matches",
            "stats",
        }

    def test_ocr_result_options(self):
        """ocr-result parses typed extraction fields."""
        args = create_cli().parse_args(
            ["ocr-result", "3", "--amount", "4.50", "--date", "2024-01-15", "--merchant", "Cafe"]
        )
        assert args.receipt_id == 3
        assert str(args.amount) == "4.50"
        assert args.date.isoformat() == "2024-01-15"
        assert args.failed is None

    def test_invalid_date_rejected(self):
        """Bad dates are argument errors."""
        with pytest.raises(SystemExit):
            create_cli().parse_args(["ocr-result", "3", "--date", "15/01/2024"])

    def test_auto_match_threshold_optional(self):
        """auto-match threshold defaults to the config value."""
        assert create_cli().parse_args(["auto-match"]).threshold is None
        assert create_cli().parse_args(["auto-match", "--threshold", "85"]).threshold == 85.0

    def test_no_command_prints_help(self, capsys):
        """No command is a usage error."""
        assert main([]) == 1
        assert "expense-matcher" in capsys.readouterr().out


class TestCLICommands:
    """Tests running commands against a temporary database."""

    @pytest.fixture
    def run(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("EXPENSE_MATCHER_DB", str(tmp_path / "cli.db"))
        config_path = tmp_path / "config.yaml"

        def _run(*argv: str) -> tuple[int, str]:
            code = main(["-c", str(config_path), *argv])
            return code, capsys.readouterr().out

        return _run

    def test_init_config(self, run, tmp_path):
        """init-config writes the template once."""
        code, _ = run("init-config")
        assert code == 0
        assert (tmp_path / "config.yaml").exists()

        code, out = run("init-config")
        assert code == 1
        assert "already exists" in out

    def test_full_flow(self, run, statement_csv):
        """Import, receipt, OCR, auto-match, confirm, stats."""
        code, out = run("import", str(statement_csv))
        assert code == 0
        assert "Imported: 4" in out

        code, out = run("--json", "add-receipt", "uploads/coffee.jpg", "--filename", "c.jpg")
        assert code == 0
        receipt_id = json.loads(out)["id"]

        code, _ = run(
            "ocr-result",
            str(receipt_id),
            "--amount",
            "4.50",
            "--date",
            "2024-01-15",
            "--merchant",
            "Starbucks",
        )
        assert code == 0

        code, out = run("--json", "auto-match", "--threshold", "70")
        assert code == 0
        assert json.loads(out)["matched"] == 1

        code, out = run("--json", "matches", "--status", "pending")
        (match,) = json.loads(out)
        assert match["description"] == "STARBUCKS STORE #12345"

        assert run("confirm", str(match["id"]))[0] == 0

        code, out = run("reject", str(match["id"]))
        assert code == 1
        assert "confirmed" in out

        code, out = run("--json", "stats")
        assert json.loads(out)["confirmed_matches"] == 1

    def test_reimport_skips(self, run, statement_csv):
        """A second import reports only duplicates."""
        run("import", str(statement_csv))

        code, out = run("--json", "import", str(statement_csv))

        assert code == 0
        data = json.loads(out)
        assert data["imported"] == 0
        assert data["skipped"] == 4

    def test_missing_csv(self, run, tmp_path):
        """A missing file fails cleanly."""
        code, out = run("import", str(tmp_path / "nope.csv"))
        assert code == 1
        assert "Import failed" in out

    def test_ocr_failure(self, run):
        """--failed marks the receipt failed."""
        run("add-receipt", "uploads/blurry.jpg")

        code, out = run("ocr-result", "1", "--failed", "too blurry")

        assert code == 0
        assert "failed" in out

    @pytest.mark.parametrize(
        "argv",
        [
            ("confirm", "42"),
            ("reject", "42"),
            ("delete-match", "42"),
            ("delete-transaction", "42"),
            ("delete-receipt", "42"),
            ("find", "42"),
        ],
    )
    def test_not_found_exit_code(self, run, argv):
        """Unknown ids exit with 1."""
        code, out = run(*argv)
        assert code == 1
        assert "not found" in out

    def test_invalid_threshold(self, run):
        """Thresholds outside 0-100 fail."""
        code, _ = run("auto-match", "--threshold", "150")
        assert code == 1

    def test_invalid_config(self, run, tmp_path):
        """An invalid config file fails before running the command."""
        (tmp_path / "config.yaml").write_text("matching:\n  weight_amount: 5\n")

        code, out = run("stats")

        assert code == 1
        assert "Failed to load config" in out
