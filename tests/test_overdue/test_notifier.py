"""Tests for the notification senders."""

import smtplib
from io import StringIO
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

from gearledger.config import Config
from gearledger.overdue import ConsoleNotifier, SMTPNotifier, render_overdue_text


def _config(**overrides) -> Config:
    values = dict(
        db_path=":memory:",
        default_loan_days=7,
        base_url="http://localhost:3000",
        org_name="Troop 12",
        log_level="WARNING",
        smtp_host="smtp.example.org",
        smtp_port=587,
        smtp_user="quartermaster@example.org",
        smtp_pass="secret",
        smtp_from="gear@example.org",
    )
    values.update(overrides)
    return Config(**values)


class TestRenderText:
    """Tests for the notice body."""

    def test_contains_details(self):
        text = render_overdue_text("Tent A", "Alice", "2026-03-04", "Troop 12")

        assert text.startswith("Dear Alice,")
        assert "Item: Tent A" in text
        assert "Due date: 2026-03-04" in text
        assert text.rstrip().endswith("Troop 12")


class TestSMTPNotifier:
    """Tests for SMTPNotifier."""

    def test_from_config(self):
        notifier = SMTPNotifier.from_config(_config())

        assert notifier.host == "smtp.example.org"
        assert notifier.sender == "gear@example.org"
        assert notifier.org_name == "Troop 12"

    def test_from_config_requires_smtp(self):
        with pytest.raises(ValueError):
            SMTPNotifier.from_config(_config(smtp_host=None))

    def test_build_message(self):
        notifier = SMTPNotifier.from_config(_config())
        message = notifier.build_message("alice@example.org", "Tent A", "Alice", "2026-03-04")

        assert message["Subject"] == "Overdue Item: Tent A"
        assert message["To"] == "alice@example.org"
        assert message["From"] == "gear@example.org"
        assert "Dear Alice," in message.get_content()

    @patch("gearledger.overdue.notifier.smtplib.SMTP")
    def test_send_with_starttls(self, mock_smtp):
        """Test a successful send on the submission port."""
        server = MagicMock()
        server.has_extn.return_value = True
        mock_smtp.return_value.__enter__.return_value = server
        mock_smtp.return_value.has_extn.return_value = True

        notifier = SMTPNotifier.from_config(_config())
        assert notifier.send("alice@example.org", "Tent A", "Alice", "2026-03-04") is True

        mock_smtp.assert_called_once_with("smtp.example.org", 587, timeout=30.0)
        mock_smtp.return_value.starttls.assert_called_once()
        server.login.assert_called_once_with("quartermaster@example.org", "secret")
        server.send_message.assert_called_once()

    @patch("gearledger.overdue.notifier.smtplib.SMTP_SSL")
    def test_send_over_ssl(self, mock_ssl):
        server = MagicMock()
        mock_ssl.return_value.__enter__.return_value = server

        notifier = SMTPNotifier.from_config(_config(smtp_port=465))
        assert notifier.send("alice@example.org", "Tent A", "Alice", "2026-03-04") is True

        mock_ssl.assert_called_once_with("smtp.example.org", 465, timeout=30.0)
        server.send_message.assert_called_once()

    @patch("gearledger.overdue.notifier.smtplib.SMTP")
    def test_send_failure_returns_false(self, mock_smtp):
        """Test that SMTP errors are reported as an unsent notice."""
        server = MagicMock()
        server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
        mock_smtp.return_value.__enter__.return_value = server

        notifier = SMTPNotifier.from_config(_config())
        assert notifier.send("alice@example.org", "Tent A", "Alice", "2026-03-04") is False

    @patch("gearledger.overdue.notifier.smtplib.SMTP")
    def test_connection_refused_returns_false(self, mock_smtp):
        mock_smtp.side_effect = ConnectionRefusedError()

        notifier = SMTPNotifier.from_config(_config())
        assert notifier.send("alice@example.org", "Tent A", "Alice", "2026-03-04") is False


class TestConsoleNotifier:
    """Tests for ConsoleNotifier."""

    def test_prints_notice(self):
        buffer = StringIO()
        notifier = ConsoleNotifier(console=Console(file=buffer, width=120), org_name="Troop 12")

        assert notifier.send("alice@example.org", "Tent A", "Alice", "2026-03-04") is True

        output = buffer.getvalue()
        assert "alice@example.org" in output
        assert "Overdue Item: Tent A" in output
        assert "Troop 12" in output

    def test_names_with_brackets_printed_literally(self):
        buffer = StringIO()
        notifier = ConsoleNotifier(console=Console(file=buffer, width=120), org_name="Troop 12")

        assert notifier.send("alice@example.org", "Tarp [/b] large", "Al [red]ice", "2026-03-04") is True

        output = buffer.getvalue()
        assert "Overdue Item: Tarp [/b] large" in output
        assert "Dear Al [red]ice," in output
