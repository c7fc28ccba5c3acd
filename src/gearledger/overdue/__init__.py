"""Overdue loan scanning and borrower notification."""

from .notifier import ConsoleNotifier, Notifier, SMTPNotifier, render_overdue_text
from .scanner import OverdueNotice, OverdueScanner, ScanReport

__all__ = [
    "ConsoleNotifier",
    "Notifier",
    "SMTPNotifier",
    "render_overdue_text",
    "OverdueNotice",
    "OverdueScanner",
    "ScanReport",
]
