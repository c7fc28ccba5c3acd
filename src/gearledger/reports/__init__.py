"""Reports, CSV exports and dashboard stats."""

from .aggregator import ReportAggregator, default_filename, render_csv
from .schemas import (
    CheckoutHistoryRow,
    DashboardStats,
    ExportKind,
    ExportResult,
    InventoryRow,
    OverdueRow,
)

__all__ = [
    "ReportAggregator",
    "default_filename",
    "render_csv",
    "CheckoutHistoryRow",
    "DashboardStats",
    "ExportKind",
    "ExportResult",
    "InventoryRow",
    "OverdueRow",
]
