"""Tests for ReportAggregator."""

import csv
from datetime import timedelta
from io import StringIO
from pathlib import Path

import pytest

from gearledger.db.schemas import ItemCondition, ItemCreate, ItemUpdate, MemberCreate
from gearledger.lending import LoanCreate
from gearledger.reports import ExportKind, ReportAggregator, default_filename, render_csv


@pytest.fixture
def aggregator(db, clock) -> ReportAggregator:
    return ReportAggregator(db, clock=clock)


def _checkout(ledger, item, member, days: float):
    return ledger.checkout(
        LoanCreate(item_id=item.id, member_id=member.id, expected_return=ledger.now() + timedelta(days=days))
    )


def _parse(text: str) -> list[list[str]]:
    return list(csv.reader(StringIO(text)))


class TestRenderCsv:
    """Tests for the CSV format itself."""

    def test_all_values_quoted(self):
        text = render_csv(["A", "B"], [["x", 'say "hi"'], ["", "3"]])

        assert text == '"A","B"\n"x","say ""hi"""\n"","3"'

    def test_header_only(self):
        assert render_csv(["A"], []) == '"A"'


class TestInventory:
    """Tests for the inventory export."""

    def test_inventory_rows(self, aggregator, items, tent, stove):
        items.update_item(stove.id, ItemUpdate(notes="Needs gas"))
        items.deactivate_item(tent.id)

        rows = aggregator.inventory_rows()

        assert len(rows) == 1
        assert rows[0].name == "Camp Stove"
        assert rows[0].category == "Tents"
        assert rows[0].notes == "Needs gas"
        assert rows[0].qr_code == stove.scan_token

    def test_export_items_csv(self, aggregator, items, category):
        tarp = items.create_item(
            ItemCreate(
                name='Tarp 3x4, "heavy"',
                category_id=category.id,
                serial_number="TP-1",
                condition=ItemCondition.FAIR,
            )
        )

        parsed = _parse(aggregator.export_csv(ExportKind.ITEMS))

        assert parsed[0] == ["Name", "Description", "Serial Number", "Category", "Condition", "QR Code", "Notes"]
        assert parsed[1][0] == 'Tarp 3x4, "heavy"'
        assert parsed[1][2:5] == ["TP-1", "Tents", "FAIR"]
        assert parsed[1][5] == tarp.scan_token


class TestCheckoutHistory:
    """Tests for the checkout history export."""

    def test_history_rows(self, aggregator, ledger, tent, stove, alice, bob, clock):
        returned = _checkout(ledger, tent, alice, days=2)
        clock.advance(days=1)
        ledger.checkin(returned.id, ItemCondition.FAIR)
        clock.advance(hours=1)
        _checkout(ledger, stove, bob, days=3)

        rows = aggregator.checkout_history_rows()

        assert [r.status for r in rows] == ["Active", "Returned"]
        assert rows[0].checked_in == ""
        assert rows[1].item_name == "Tent A"
        assert rows[1].checked_out == "2026-03-02T09:00:00Z"
        assert rows[1].checked_in == "2026-03-03T09:00:00Z"
        assert rows[1].condition_in == "FAIR"

    def test_export_checkouts_header(self, aggregator):
        parsed = _parse(aggregator.export_csv(ExportKind.CHECKOUTS))

        assert parsed == [
            [
                "Item Name",
                "Member Name",
                "Checked Out",
                "Expected Return",
                "Checked In",
                "Condition Out",
                "Condition In",
                "Status",
            ]
        ]


class TestOverdue:
    """Tests for the overdue export."""

    def test_overdue_rows(self, aggregator, ledger, tent, stove, alice, bob, clock):
        _checkout(ledger, tent, alice, days=1)
        _checkout(ledger, stove, bob, days=5)
        clock.advance(days=3, hours=6)

        rows = aggregator.overdue_rows()

        assert len(rows) == 1
        assert rows[0].member_email == "alice@example.org"
        assert rows[0].days_overdue == 2

    def test_matches_ledger(self, aggregator, ledger, items, members, category, alice, bob, clock):
        """The overdue export and the ledger listing agree at every clock reading."""
        carried = [alice, bob, members.create_member(MemberCreate(name="Dee", email="dee@example.org"))]
        for i in range(6):
            item = items.create_item(ItemCreate(name=f"Pack {i}", category_id=category.id))
            loan = _checkout(ledger, item, carried[i % 3], days=i + 0.5)
            if i % 4 == 3:
                ledger.checkin(loan.id, ItemCondition.GOOD)

        for _ in range(8):
            clock.advance(hours=19)
            from_ledger = [loan.id for loan in ledger.list_overdue()]
            from_report = [row.loan_id for row in aggregator.overdue_rows()]
            assert from_report == from_ledger

    def test_export_overdue_csv(self, aggregator, ledger, tent, alice, clock):
        _checkout(ledger, tent, alice, days=1)
        clock.advance(days=4)

        parsed = _parse(aggregator.export_csv(ExportKind.OVERDUE))

        assert parsed[0][-1] == "Days Overdue"
        assert parsed[1] == [
            "Tent A",
            "Alice Walker",
            "alice@example.org",
            "2026-03-02T09:00:00Z",
            "2026-03-03T09:00:00Z",
            "3",
        ]


class TestWriteExport:
    """Tests for writing exports to disk."""

    def test_write_export(self, aggregator, tent, tmp_path: Path):
        output = tmp_path / "out" / default_filename(ExportKind.ITEMS)

        result = aggregator.write_export(ExportKind.ITEMS, output)

        assert result.success
        assert result.records_exported == 1
        assert result.file_path == output
        assert output.read_text(encoding="utf-8").startswith('"Name","Description"')

    def test_default_filenames(self):
        assert default_filename(ExportKind.ITEMS) == "inventory_items.csv"
        assert default_filename(ExportKind.CHECKOUTS) == "checkout_history.csv"
        assert default_filename(ExportKind.OVERDUE) == "overdue_items.csv"


class TestDashboard:
    """Tests for dashboard stats."""

    def test_dashboard_stats(self, aggregator, ledger, items, category, tent, stove, alice, bob, carol, clock):
        third = items.create_item(ItemCreate(name="Lantern", category_id=category.id))
        _checkout(ledger, tent, alice, days=1)
        clock.advance(minutes=5)
        _checkout(ledger, stove, bob, days=10)
        clock.advance(days=2)

        stats = aggregator.get_dashboard_stats()

        assert stats.total_items == 3
        assert stats.checked_out_items == 2
        assert stats.available_items == 1
        assert stats.overdue_items == 1
        assert stats.total_members == 3
        assert [loan.item_name for loan in stats.recent_checkouts] == ["Camp Stove", "Tent A"]
        assert third.id not in {loan.item_id for loan in stats.recent_checkouts}
