"""Tests for the CLI interface."""

import os
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from gearledger.cli import app
from gearledger.clock import utcnow
from gearledger.config import reset_config
from gearledger.db import get_db
from gearledger.db.models import Item, Member
from gearledger.db.sqlite import reset_db
from gearledger.lending import LendingLedger, LoanCreate
from gearledger.lending.models import Loan


@pytest.fixture(autouse=True)
def setup_test_db():
    """Set up a test database for each test."""
    reset_db()
    reset_config()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["GEARLEDGER_DB_PATH"] = db_path
    # Wide enough that rich tables do not wrap cell text
    os.environ["COLUMNS"] = "200"
    for name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASS"):
        os.environ.pop(name, None)

    yield

    # Cleanup
    reset_db()
    reset_config()
    os.environ.pop("COLUMNS", None)
    if "GEARLEDGER_DB_PATH" in os.environ:
        del os.environ["GEARLEDGER_DB_PATH"]
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


def _add_basics(runner: CliRunner) -> None:
    assert runner.invoke(app, ["items", "add", "Tent A", "--category", "Tents", "--serial", "T-001"]).exit_code == 0
    assert runner.invoke(app, ["members", "add", "Alice Walker", "--email", "alice@example.org"]).exit_code == 0


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Track shared equipment" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestItemCommands:
    """Tests for item and category commands."""

    def test_add_and_list(self, runner: CliRunner):
        _add_basics(runner)

        result = runner.invoke(app, ["items", "list"])
        assert result.exit_code == 0
        assert "Tent A" in result.stdout
        assert "available" in result.stdout

        categories = runner.invoke(app, ["categories", "list"])
        assert "Tents" in categories.stdout

    def test_duplicate_serial(self, runner: CliRunner):
        _add_basics(runner)

        result = runner.invoke(app, ["items", "add", "Tent B", "--category", "Tents", "--serial", "T-001"])
        assert result.exit_code == 1
        assert "already exists" in result.stdout

    def test_scan(self, runner: CliRunner):
        _add_basics(runner)
        with get_db().get_session() as session:
            token = session.query(Item.scan_token).scalar()

        result = runner.invoke(app, ["items", "scan", token])
        assert result.exit_code == 0
        assert "available" in result.stdout

    def test_names_with_brackets(self, runner: CliRunner):
        added = runner.invoke(app, ["items", "add", "Tarp [/b] large", "--category", "[Shelters]"])
        assert added.exit_code == 0
        assert "Added: Tarp [/b] large" in added.stdout

        listed = runner.invoke(app, ["items", "list"])
        assert listed.exit_code == 0
        assert "Tarp [/b] large" in listed.stdout

        categories = runner.invoke(app, ["categories", "list"])
        assert "[Shelters]" in categories.stdout

    def test_scan_unknown(self, runner: CliRunner):
        result = runner.invoke(app, ["items", "scan", "NOPE"])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_show_unknown(self, runner: CliRunner):
        result = runner.invoke(app, ["items", "show", "nothing"])
        assert result.exit_code == 1
        assert "Item not found" in result.stdout


class TestLoanCommands:
    """Tests for checkout and check-in."""

    def test_checkout_and_checkin(self, runner: CliRunner):
        _add_basics(runner)

        out = runner.invoke(app, ["loans", "checkout", "T-001", "--member", "alice@example.org", "--days", "3"])
        assert out.exit_code == 0
        assert "Checked out Tent A to Alice Walker" in out.stdout

        again = runner.invoke(app, ["loans", "checkout", "T-001", "--member", "Alice Walker"])
        assert again.exit_code == 1
        assert "item already on loan" in again.stdout

        active = runner.invoke(app, ["loans", "active"])
        assert "Tent A" in active.stdout

        back = runner.invoke(app, ["loans", "checkin", "T-001", "--condition", "FAIR"])
        assert back.exit_code == 0
        assert "FAIR" in back.stdout

        twice = runner.invoke(app, ["loans", "checkin", "T-001"])
        assert twice.exit_code == 1
        assert "not checked out" in twice.stdout

        history = runner.invoke(app, ["loans", "history", "T-001"])
        assert "returned" in history.stdout

    def test_checkout_unknown_member(self, runner: CliRunner):
        _add_basics(runner)

        result = runner.invoke(app, ["loans", "checkout", "T-001", "--member", "nobody"])
        assert result.exit_code == 1
        assert "Member not found" in result.stdout


class TestImportExport:
    """Tests for import and export commands."""

    def test_import_members(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "members.csv"
        path.write_text(
            "name,email\nAda,ada@example.org\nBea,ada@example.org\nCy,\n",
            encoding="utf-8",
        )

        result = runner.invoke(app, ["import", "members", str(path)])

        assert result.exit_code == 0
        assert "Imported: 2, Failed: 1, Total: 3" in result.stdout
        assert "Row 3: Email 'ada@example.org' already exists" in result.stdout

    def test_import_missing_file(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(app, ["import", "items", str(tmp_path / "nope.csv")])
        assert result.exit_code == 1

    def test_import_empty_file(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "empty.csv"
        path.write_text("name,category\n", encoding="utf-8")

        result = runner.invoke(app, ["import", "items", str(path)])
        assert result.exit_code == 1
        assert "No rows to import" in result.stdout

    def test_export_to_file(self, runner: CliRunner, tmp_path: Path):
        _add_basics(runner)
        output = tmp_path / "items.csv"

        result = runner.invoke(app, ["export", "items", "--output", str(output)])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8").splitlines()[1].startswith('"Tent A"')

    def test_export_stdout(self, runner: CliRunner):
        result = runner.invoke(app, ["export", "overdue", "--stdout"])
        assert result.exit_code == 0
        assert '"Days Overdue"' in result.stdout


class TestNotifyAndStats:
    """Tests for notify-overdue and stats."""

    def _make_overdue(self, runner: CliRunner) -> str:
        _add_basics(runner)
        db = get_db()
        with db.get_session() as session:
            item_id = session.query(Item.id).scalar()
            member_id = session.query(Member.id).scalar()

        start = utcnow() - timedelta(days=5)
        ledger = LendingLedger(db, clock=lambda: start)
        loan = ledger.checkout(
            LoanCreate(item_id=item_id, member_id=member_id, expected_return=start + timedelta(days=1))
        )
        return loan.id

    def test_notify_without_smtp_skips(self, runner: CliRunner):
        self._make_overdue(runner)

        result = runner.invoke(app, ["notify-overdue"])

        assert result.exit_code == 0
        assert "SMTP is not configured" in result.stdout

    def test_notify_console(self, runner: CliRunner):
        loan_id = self._make_overdue(runner)

        result = runner.invoke(app, ["notify-overdue", "--console"])

        assert result.exit_code == 0
        assert "Overdue Item: Tent A" in result.stdout
        assert "Notified: 1" in result.stdout
        with get_db().get_session() as session:
            assert session.get(Loan, loan_id).notification_sent is True

    def test_stats(self, runner: CliRunner):
        self._make_overdue(runner)

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "Overdue:" in result.stdout
        assert "Tent A" in result.stdout


class TestPackingCommands:
    """Tests for packing list commands."""

    def test_packing_flow(self, runner: CliRunner):
        _add_basics(runner)

        created = runner.invoke(app, ["packing", "create", "Spring Camp", "--date", "2026-04-18"])
        assert created.exit_code == 0

        added = runner.invoke(app, ["packing", "add", "Spring Camp", "T-001", "--quantity", "2"])
        assert added.exit_code == 0

        packed = runner.invoke(app, ["packing", "pack", "Spring Camp", "Tent A"])
        assert packed.exit_code == 0
        assert "(1/1 packed)" in packed.stdout

        listing = runner.invoke(app, ["packing", "list"])
        assert "1/1" in listing.stdout

    def test_unknown_list(self, runner: CliRunner):
        result = runner.invoke(app, ["packing", "show", "nothing"])
        assert result.exit_code == 1
