"""Tests for OverdueScanner."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from gearledger.db.schemas import ItemCondition
from gearledger.lending import LendingLedger, LoanCreate
from gearledger.overdue import OverdueScanner


class RecordingNotifier:
    """Notifier double that records calls and returns a scripted result."""

    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def send(self, address, item_name, member_name, due_date_text):
        self.calls.append((address, item_name, member_name, due_date_text))
        if isinstance(self.result, Exception):
            raise self.result
        if callable(self.result):
            return self.result(address)
        return self.result


def _checkout(ledger: LendingLedger, item, member, days: float):
    return ledger.checkout(
        LoanCreate(item_id=item.id, member_id=member.id, expected_return=ledger.now() + timedelta(days=days))
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def scanner(db, notifier, clock) -> OverdueScanner:
    return OverdueScanner(db, notifier, clock=clock)


class TestScanAndNotify:
    """Tests for a scan run."""

    def test_notifies_overdue_once(self, scanner, notifier, ledger, tent, alice, clock):
        """An overdue loan gets one notice across repeated scans."""
        loan = _checkout(ledger, tent, alice, days=2)
        clock.advance(days=3)

        first = scanner.scan_and_notify()
        second = scanner.scan_and_notify()

        assert first.candidates == 1
        assert first.notified == 1
        assert second.candidates == 0
        assert notifier.calls == [("alice@example.org", "Tent A", "Alice Walker", "2026-03-04")]
        assert ledger.get_loan(loan.id).notification_sent is True

    def test_not_yet_due_ignored(self, scanner, notifier, ledger, tent, alice, clock):
        _checkout(ledger, tent, alice, days=2)
        clock.advance(days=1)

        report = scanner.scan_and_notify()

        assert report.candidates == 0
        assert notifier.calls == []

    def test_returned_loans_ignored(self, scanner, notifier, ledger, tent, alice, clock):
        loan = _checkout(ledger, tent, alice, days=1)
        clock.advance(days=4)
        ledger.checkin(loan.id, ItemCondition.GOOD)

        assert scanner.scan_and_notify().candidates == 0
        assert notifier.calls == []

    def test_members_without_email_skipped(self, scanner, notifier, ledger, tent, carol, clock):
        _checkout(ledger, tent, carol, days=1)
        clock.advance(days=2)

        assert scanner.scan_and_notify().candidates == 0
        assert notifier.calls == []

    def test_failed_send_retried_next_scan(self, db, ledger, tent, alice, clock):
        """A notice that fails to send is not flagged, so the next scan retries."""
        _checkout(ledger, tent, alice, days=1)
        clock.advance(days=2)

        failing = RecordingNotifier(result=False)
        report = OverdueScanner(db, failing, clock=clock).scan_and_notify()
        assert report.failed == 1
        assert report.notified == 0
        assert report.errors == ["alice@example.org: delivery failed"]

        working = RecordingNotifier()
        retry = OverdueScanner(db, working, clock=clock).scan_and_notify()
        assert retry.notified == 1
        assert len(working.calls) == 1

    def test_notifier_exception_does_not_stop_scan(self, db, ledger, tent, stove, alice, bob, clock):
        """A notifier blowing up for one loan leaves the others unaffected."""
        _checkout(ledger, tent, alice, days=1)
        _checkout(ledger, stove, bob, days=2)
        clock.advance(days=5)

        def flaky(address):
            if address.startswith("alice"):
                raise ConnectionError("mail relay down")
            return True

        notifier = RecordingNotifier(result=flaky)
        report = OverdueScanner(db, notifier, clock=clock).scan_and_notify()

        assert report.candidates == 2
        assert report.failed == 1
        assert report.notified == 1
        assert "mail relay down" in report.errors[0]
        assert len(notifier.calls) == 2

    def test_loan_closed_after_query_is_skipped(self, db, ledger, tent, alice, clock):
        """A loan returned between the candidate query and the send is skipped."""
        loan = _checkout(ledger, tent, alice, days=1)
        clock.advance(days=2)

        notifier = RecordingNotifier()
        scanner = OverdueScanner(db, notifier, clock=clock)
        pending = scanner.find_pending()
        ledger.checkin(loan.id, ItemCondition.GOOD)

        original = scanner.find_pending
        scanner.find_pending = lambda now=None: pending
        try:
            report = scanner.scan_and_notify()
        finally:
            scanner.find_pending = original

        assert report.candidates == 1
        assert report.skipped == 1
        assert notifier.calls == []

    def test_pending_ordered_by_due_date(self, scanner, ledger, tent, stove, alice, bob, clock):
        _checkout(ledger, tent, alice, days=3)
        _checkout(ledger, stove, bob, days=1)
        clock.advance(days=4)

        pending = scanner.find_pending()

        assert [p.address for p in pending] == ["bob@example.org", "alice@example.org"]

    def test_summary(self, scanner):
        report = scanner.scan_and_notify()
        assert report.summary == "Candidates: 0, Notified: 0, Failed: 0, Skipped: 0"


class TestStorageErrors:
    """Database failures stay with the loan they hit."""

    @staticmethod
    def _locked():
        return OperationalError("UPDATE loans", {}, Exception("database is locked"))

    def test_reread_error_does_not_stop_scan(
        self, monkeypatch, scanner, notifier, ledger, tent, stove, alice, bob, clock
    ):
        first = _checkout(ledger, tent, alice, days=1)
        _checkout(ledger, stove, bob, days=2)
        clock.advance(days=5)

        original = scanner._still_pending

        def still_pending(loan_id):
            if loan_id == first.id:
                raise self._locked()
            return original(loan_id)

        monkeypatch.setattr(scanner, "_still_pending", still_pending)
        report = scanner.scan_and_notify()

        assert report.candidates == 2
        assert report.failed == 1
        assert report.notified == 1
        assert report.errors == ["alice@example.org: database error (OperationalError)"]
        assert [call[0] for call in notifier.calls] == ["bob@example.org"]

    def test_flag_error_reported_and_retried(self, monkeypatch, db, ledger, tent, alice, clock):
        """A sent notice whose flag update fails is reported and sent again next scan."""
        loan = _checkout(ledger, tent, alice, days=1)
        clock.advance(days=2)

        notifier = RecordingNotifier()
        scanner = OverdueScanner(db, notifier, clock=clock)

        def mark_sent(loan_id):
            raise self._locked()

        monkeypatch.setattr(scanner, "_mark_sent", mark_sent)
        report = scanner.scan_and_notify()

        assert report.notified == 1
        assert report.errors == ["alice@example.org: sent but not recorded (OperationalError)"]
        assert ledger.get_loan(loan.id).notification_sent is False

        retry = OverdueScanner(db, notifier, clock=clock).scan_and_notify()
        assert retry.notified == 1
        assert len(notifier.calls) == 2
