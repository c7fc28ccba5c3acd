"""Command-line interface for gearledger.

Built with Typer for commands and Rich for output.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .clock import utcnow
from .config import get_config
from .db import get_db
from .db.models import Item, Member
from .db.schemas import CategoryCreate, ItemCondition, ItemCreate, MemberCreate, MemberRole
from .errors import LedgerError
from .lending import LendingLedger, LoanCreate, LoanStatus, LoanSummary
from .overdue import ConsoleNotifier, OverdueScanner, SMTPNotifier
from .packing import PackingListCreate, PackingListItemCreate, PackingListItemUpdate, PackingListManager
from .reconcile import BulkReconciler, ImportKind, read_csv_rows
from .registry import ItemRegistry, MemberRegistry, build_scan_url
from .reports import ExportKind, ReportAggregator, default_filename

# Create the main app
app = typer.Typer(
    name="gearledger",
    help="Track shared equipment: who has what, and what is overdue.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
items_app = typer.Typer(help="Manage equipment items.")
app.add_typer(items_app, name="items")

categories_app = typer.Typer(help="Manage item categories.")
app.add_typer(categories_app, name="categories")

members_app = typer.Typer(help="Manage members.")
app.add_typer(members_app, name="members")

loans_app = typer.Typer(help="Check equipment out and in.")
app.add_typer(loans_app, name="loans")

packing_app = typer.Typer(help="Packing lists for trips.")
app.add_typer(packing_app, name="packing")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {escape(message)}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {escape(message)}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{escape(message)}[/dim]")


def _fmt(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _resolve_item(registry: ItemRegistry, ref: str) -> Item:
    """Find an item by ID, scan token or serial number."""
    item = (
        registry.get_item(ref)
        or registry.get_item_by_scan_token(ref.strip().upper())
        or registry.get_item_by_serial(ref.strip())
    )
    if item is None:
        print_error(f"Item not found: {ref}")
        raise typer.Exit(1)
    return item


def _resolve_member(registry: MemberRegistry, ref: str) -> Member:
    """Find a member by ID, email or name."""
    member = (
        registry.get_member(ref)
        or registry.get_member_by_email(ref)
        or registry.get_member_by_name(ref)
    )
    if member is None:
        print_error(f"Member not found: {ref}")
        raise typer.Exit(1)
    return member


def format_loan_table(loans: list[LoanSummary], title: str = "Loans") -> Table:
    """Create a rich table for displaying loans."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Item", style="cyan", max_width=30)
    table.add_column("Member", style="green", max_width=25)
    table.add_column("Out")
    table.add_column("Due")
    table.add_column("Returned")
    table.add_column("Status", style="yellow")
    table.add_column("Days Over", justify="right")

    for loan in loans:
        status = loan.status.value
        if loan.status == LoanStatus.OVERDUE:
            status = f"[red]{status}[/red]"
        table.add_row(
            escape(loan.item_name),
            escape(loan.member_name),
            _fmt(loan.opened_at),
            _fmt(loan.expected_return),
            _fmt(loan.closed_at),
            status,
            str(loan.days_overdue) if loan.days_overdue else "-",
        )

    return table


# ============================================================================
# App Callback and Basics
# ============================================================================


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Track shared equipment: who has what, and what is overdue."""
    level = logging.DEBUG if verbose else get_config().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.command()
def version() -> None:
    """Show the version."""
    console.print(f"gearledger {__version__}")


@app.command()
def stats() -> None:
    """Show dashboard numbers."""
    dashboard = ReportAggregator(get_db()).get_dashboard_stats()

    console.print(
        Panel(
            f"[bold]Items:[/bold] {dashboard.total_items}\n"
            f"[bold]Available:[/bold] {dashboard.available_items}\n"
            f"[bold]Checked out:[/bold] {dashboard.checked_out_items}\n"
            f"[bold]Overdue:[/bold] [red]{dashboard.overdue_items}[/red]\n"
            f"[bold]Members:[/bold] {dashboard.total_members}",
            title="Dashboard",
        )
    )
    if dashboard.recent_checkouts:
        console.print(format_loan_table(dashboard.recent_checkouts, title="Recent Checkouts"))


# ============================================================================
# Category Commands
# ============================================================================


@categories_app.command("add")
def category_add(
    name: str = typer.Argument(..., help="Category name"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    color: str = typer.Option("#3B82F6", "--color", help="Display color (hex)"),
) -> None:
    """Add a category."""
    registry = ItemRegistry(get_db())
    try:
        category = registry.create_category(
            CategoryCreate(name=name, description=description, color=color)
        )
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added category: {category.name}")


@categories_app.command("list")
def category_list() -> None:
    """List categories with item counts."""
    categories = ItemRegistry(get_db()).list_categories()
    if not categories:
        print_info("No categories yet.")
        return

    table = Table(title="Categories", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Items", justify="right")
    for category in categories:
        table.add_row(
            escape(category.name), escape(category.description or "-"), str(category.item_count)
        )
    console.print(table)


# ============================================================================
# Item Commands
# ============================================================================


@items_app.command("add")
def item_add(
    name: str = typer.Argument(..., help="Item name"),
    category: str = typer.Option(..., "--category", "-c", help="Category name (created if new)"),
    serial: Optional[str] = typer.Option(None, "--serial", "-s", help="Serial number"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    condition: ItemCondition = typer.Option(ItemCondition.GOOD, "--condition", help="Condition"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Notes"),
) -> None:
    """Add an item to the inventory."""
    registry = ItemRegistry(get_db())
    try:
        cat, _ = registry.find_or_create_category(category)
        item = registry.create_item(
            ItemCreate(
                name=name,
                category_id=cat.id,
                serial_number=serial,
                description=description,
                condition=condition,
                notes=notes,
            )
        )
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added: {item.name} (scan token {item.scan_token})")
    print_info(build_scan_url(item.scan_token, get_config().base_url))


@items_app.command("list")
def item_list(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category name"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Search name/description/serial"),
    available: Optional[bool] = typer.Option(
        None, "--available/--out", help="Only available items, or only items on loan"
    ),
    include_inactive: bool = typer.Option(False, "--all", "-a", help="Include deactivated items"),
) -> None:
    """List items."""
    registry = ItemRegistry(get_db())

    category_id = None
    if category:
        cat = registry.get_category_by_name(category)
        if cat is None:
            print_error(f"Category not found: {category}")
            raise typer.Exit(1)
        category_id = cat.id

    items = registry.list_items(
        category_id=category_id,
        search=search,
        active_only=not include_inactive,
        available=available,
    )
    if not items:
        print_info("No items found.")
        return

    ledger = LendingLedger(get_db())
    table = Table(title=f"Items ({len(items)})", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan", max_width=35)
    table.add_column("Serial")
    table.add_column("Condition", style="yellow")
    table.add_column("Token", style="dim")
    table.add_column("Status")
    for item in items:
        if not item.is_active:
            status = "[dim]inactive[/dim]"
        elif ledger.is_available(item.id):
            status = "[green]available[/green]"
        else:
            status = "[red]on loan[/red]"
        table.add_row(
            escape(item.name), escape(item.serial_number or "-"), item.condition, item.scan_token, status
        )
    console.print(table)


@items_app.command("show")
def item_show(
    ref: str = typer.Argument(..., help="Item ID, scan token or serial number"),
) -> None:
    """Show an item and its loan history."""
    registry = ItemRegistry(get_db())
    item = _resolve_item(registry, ref)
    status = registry.resolve_scan_token(item.scan_token)

    lines = [
        f"[bold]Category:[/bold] {escape(status.category_name)}",
        f"[bold]Condition:[/bold] {item.condition}",
        f"[bold]Serial:[/bold] {escape(item.serial_number or '-')}",
        f"[bold]Scan URL:[/bold] {build_scan_url(item.scan_token, get_config().base_url)}",
    ]
    if item.description:
        lines.append(f"[bold]Description:[/bold] {escape(item.description)}")
    if status.is_available:
        lines.append("[green]Available[/green]")
    else:
        lines.append(
            f"[red]On loan[/red] to {escape(status.borrower_name)}, due {_fmt(status.active_loan.expected_return)}"
        )
    console.print(Panel("\n".join(lines), title=escape(item.name)))

    history = LendingLedger(get_db()).summarize(item_id=item.id)
    if history:
        console.print(format_loan_table(history, title="History"))


@items_app.command("scan")
def item_scan(
    token: str = typer.Argument(..., help="Scan token from the item's QR code"),
) -> None:
    """Look up an item by scan token."""
    try:
        status = ItemRegistry(get_db()).resolve_scan_token(token)
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    label = f"[cyan]{escape(status.item.name)}[/cyan] ({escape(status.category_name)})"
    if status.is_available:
        console.print(f"{label} is [green]available[/green]")
    else:
        console.print(
            f"{label} is [red]on loan[/red] "
            f"to {escape(status.borrower_name)}, due {_fmt(status.active_loan.expected_return)}"
        )


@items_app.command("deactivate")
def item_deactivate(
    ref: str = typer.Argument(..., help="Item ID, scan token or serial number"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Deactivate an item. Its loan history is kept."""
    registry = ItemRegistry(get_db())
    item = _resolve_item(registry, ref)

    if not force and not typer.confirm(f"Deactivate '{item.name}'?"):
        print_info("Cancelled.")
        raise typer.Exit(0)

    registry.deactivate_item(item.id)
    print_success(f"Deactivated: {item.name}")


# ============================================================================
# Member Commands
# ============================================================================


@members_app.command("add")
def member_add(
    name: str = typer.Argument(..., help="Member name"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Email address"),
    phone: Optional[str] = typer.Option(None, "--phone", "-p", help="Phone number"),
    role: MemberRole = typer.Option(MemberRole.MEMBER, "--role", "-r", help="Role"),
) -> None:
    """Add a member."""
    try:
        member = MemberRegistry(get_db()).create_member(
            MemberCreate(name=name, email=email, phone=phone, role=role)
        )
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added member: {member.name}")


@members_app.command("list")
def member_list(
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Search name or email"),
    active_only: bool = typer.Option(False, "--active", help="Only active members"),
) -> None:
    """List members with their open loan counts."""
    registry = MemberRegistry(get_db())
    members = registry.list_members(active_only=active_only, search=search)
    if not members:
        print_info("No members found.")
        return

    counts = registry.get_active_loan_counts()
    table = Table(title="Members", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    table.add_column("Role", style="yellow")
    table.add_column("Out", justify="right")
    table.add_column("Active")
    for member in members:
        table.add_row(
            escape(member.name),
            escape(member.email or "-"),
            member.role,
            str(counts.get(member.id, 0)),
            "yes" if member.is_active else "no",
        )
    console.print(table)


@members_app.command("deactivate")
def member_deactivate(
    ref: str = typer.Argument(..., help="Member ID, email or name"),
) -> None:
    """Deactivate a member."""
    registry = MemberRegistry(get_db())
    member = _resolve_member(registry, ref)
    registry.deactivate_member(member.id)
    print_success(f"Deactivated: {member.name}")


# ============================================================================
# Loan Commands
# ============================================================================


@loans_app.command("checkout")
def loan_checkout(
    item_ref: str = typer.Argument(..., help="Item ID, scan token or serial number"),
    member_ref: str = typer.Option(..., "--member", "-m", help="Member ID, email or name"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Loan length in days"),
    due: Optional[datetime] = typer.Option(None, "--due", help="Due date", formats=["%Y-%m-%d"]),
    condition: ItemCondition = typer.Option(ItemCondition.GOOD, "--condition", help="Condition going out"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Checkout notes"),
    by: Optional[str] = typer.Option(None, "--by", help="Who handed the item out"),
) -> None:
    """Check an item out to a member."""
    item = _resolve_item(ItemRegistry(get_db()), item_ref)
    member = _resolve_member(MemberRegistry(get_db()), member_ref)

    if due is None:
        due = utcnow() + timedelta(days=days or get_config().default_loan_days)

    try:
        loan = LendingLedger(get_db()).checkout(
            LoanCreate(
                item_id=item.id,
                member_id=member.id,
                expected_return=due,
                condition_out=condition,
                notes=notes,
                opened_by=by,
            )
        )
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Checked out {item.name} to {member.name}, due {_fmt(loan.expected_return)}")


@loans_app.command("checkin")
def loan_checkin(
    ref: str = typer.Argument(..., help="Loan ID, or item ID / scan token / serial number"),
    condition: ItemCondition = typer.Option(ItemCondition.GOOD, "--condition", help="Condition on return"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Check-in notes"),
    by: Optional[str] = typer.Option(None, "--by", help="Who received the item"),
) -> None:
    """Check an item back in."""
    ledger = LendingLedger(get_db())

    loan = ledger.get_loan(ref)
    if loan is None:
        item = _resolve_item(ItemRegistry(get_db()), ref)
        loan = ledger.get_open_loan_for_item(item.id)
        if loan is None:
            print_error(f"{item.name} is not checked out")
            raise typer.Exit(1)

    try:
        loan = ledger.checkin(loan.id, condition, notes=notes, closed_by=by)
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Checked in at {_fmt(loan.closed_at)} ({loan.condition_in})")


@loans_app.command("active")
def loan_active() -> None:
    """List loans that are still out."""
    loans = LendingLedger(get_db()).summarize(status=LoanStatus.ACTIVE)
    if not loans:
        print_info("Nothing is checked out.")
        return
    console.print(format_loan_table(loans, title="Active Loans"))


@loans_app.command("overdue")
def loan_overdue() -> None:
    """List overdue loans, oldest due first."""
    loans = LendingLedger(get_db()).summarize(status=LoanStatus.OVERDUE)
    if not loans:
        print_info("Nothing is overdue.")
        return
    console.print(format_loan_table(loans, title="Overdue Loans"))


@loans_app.command("history")
def loan_history(
    item_ref: Optional[str] = typer.Argument(None, help="Limit to one item"),
    limit: int = typer.Option(50, "--limit", "-l", help="Max rows"),
) -> None:
    """Show loan history, newest first."""
    item_id = _resolve_item(ItemRegistry(get_db()), item_ref).id if item_ref else None
    loans = LendingLedger(get_db()).summarize(item_id=item_id, limit=limit)
    if not loans:
        print_info("No loans recorded.")
        return
    console.print(format_loan_table(loans, title="Loan History"))


# ============================================================================
# Import / Export / Notifications
# ============================================================================


@app.command("import")
def import_command(
    kind: ImportKind = typer.Argument(..., help="What the file holds: items or members"),
    file_path: Path = typer.Argument(..., help="CSV file with a header row"),
) -> None:
    """Import items or members from a CSV file."""
    try:
        rows = read_csv_rows(file_path)
        report = BulkReconciler(get_db()).import_rows(kind, rows, show_progress=True)
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print(f"\n[bold]Import Results:[/bold] {report.summary}")
    if report.errors:
        console.print("\n[bold red]Errors:[/bold red]")
        for error in report.errors[:10]:
            console.print(f"  - {escape(error)}")
        if len(report.errors) > 10:
            print_info(f"  ... and {len(report.errors) - 10} more")

    if report.success:
        print_success(f"Imported {report.success} {kind.value}")


@app.command("export")
def export_command(
    kind: ExportKind = typer.Argument(..., help="items, checkouts or overdue"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
    stdout: bool = typer.Option(False, "--stdout", help="Print CSV instead of writing a file"),
) -> None:
    """Export a report as CSV."""
    aggregator = ReportAggregator(get_db())

    if stdout:
        typer.echo(aggregator.export_csv(kind))
        return

    result = aggregator.write_export(kind, output or Path(default_filename(kind)))
    if not result.success:
        print_error(f"Export failed: {result.error}")
        raise typer.Exit(1)

    print_success(f"Exported {result.records_exported} rows to {result.file_path}")


@app.command("notify-overdue")
def notify_overdue(
    console_only: bool = typer.Option(
        False, "--console", help="Print notices instead of emailing them"
    ),
) -> None:
    """Send one notice per overdue loan. Run it from cron or a timer."""
    config = get_config()
    if console_only:
        notifier = ConsoleNotifier(console=console, org_name=config.org_name)
    elif config.has_smtp_config():
        notifier = SMTPNotifier.from_config(config)
    else:
        print_warning("SMTP is not configured (SMTP_HOST, SMTP_USER, SMTP_PASS); skipping.")
        print_info("Use --console to print the notices instead.")
        return

    report = OverdueScanner(get_db(), notifier).scan_and_notify()

    console.print(f"[bold]Overdue scan:[/bold] {report.summary}")
    for error in report.errors:
        print_warning(error)


# ============================================================================
# Packing List Commands
# ============================================================================


@packing_app.command("create")
def packing_create(
    name: str = typer.Argument(..., help="List name"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    camp_date: Optional[datetime] = typer.Option(None, "--date", help="Trip date", formats=["%Y-%m-%d"]),
) -> None:
    """Create a packing list."""
    try:
        packing_list = PackingListManager(get_db()).create_list(
            PackingListCreate(
                name=name,
                description=description,
                camp_date=camp_date.date() if camp_date else None,
            )
        )
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Created packing list: {packing_list.name} ({packing_list.id})")


@packing_app.command("list")
def packing_list_command() -> None:
    """List packing lists."""
    lists = PackingListManager(get_db()).list_lists()
    if not lists:
        print_info("No packing lists yet.")
        return

    table = Table(title="Packing Lists", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Date")
    table.add_column("Packed", justify="right")
    for summary in lists:
        table.add_row(
            summary.id[:8],
            escape(summary.name),
            summary.camp_date.isoformat() if summary.camp_date else "-",
            f"{summary.packed_count}/{summary.item_count}",
        )
    console.print(table)


def _find_list_id(manager: PackingListManager, ref: str) -> str:
    """Match a list by full ID, ID prefix or name."""
    for summary in manager.list_lists():
        if summary.id == ref or summary.id.startswith(ref) or summary.name.lower() == ref.lower():
            return summary.id
    print_error(f"Packing list not found: {ref}")
    raise typer.Exit(1)


@packing_app.command("show")
def packing_show(
    ref: str = typer.Argument(..., help="List ID or name"),
) -> None:
    """Show a packing list."""
    manager = PackingListManager(get_db())
    packing_list = manager.get_list(_find_list_id(manager, ref))

    table = Table(
        title=f"{escape(packing_list.name)} ({packing_list.packed_count}/{len(packing_list.entries)} packed)",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("", width=3)
    table.add_column("Item", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Notes")
    table.add_column("Entry", style="dim")
    for entry in packing_list.entries:
        table.add_row(
            "[green]✓[/green]" if entry.is_packed else "",
            escape(entry.item_name),
            str(entry.quantity),
            escape(entry.notes or ""),
            entry.id[:8],
        )
    console.print(table)


@packing_app.command("add")
def packing_add(
    ref: str = typer.Argument(..., help="List ID or name"),
    item_ref: str = typer.Argument(..., help="Item ID, scan token or serial number"),
    quantity: int = typer.Option(1, "--quantity", "-q", help="How many"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Notes"),
) -> None:
    """Add an item to a packing list."""
    manager = PackingListManager(get_db())
    list_id = _find_list_id(manager, ref)
    item = _resolve_item(ItemRegistry(get_db()), item_ref)

    try:
        manager.add_item(list_id, PackingListItemCreate(item_id=item.id, quantity=quantity, notes=notes))
    except LedgerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added {item.name} to the list")


@packing_app.command("pack")
def packing_pack(
    ref: str = typer.Argument(..., help="List ID or name"),
    entry_ref: str = typer.Argument(..., help="Entry ID (or prefix) or item name"),
    unpack: bool = typer.Option(False, "--unpack", help="Mark as not packed"),
) -> None:
    """Mark an entry on a packing list as packed."""
    manager = PackingListManager(get_db())
    packing_list = manager.get_list(_find_list_id(manager, ref))

    entry = next(
        (
            e
            for e in packing_list.entries
            if e.id.startswith(entry_ref) or e.item_name.lower() == entry_ref.lower()
        ),
        None,
    )
    if entry is None:
        print_error(f"No entry matching '{entry_ref}' on {packing_list.name}")
        raise typer.Exit(1)

    manager.update_entry(entry.id, PackingListItemUpdate(is_packed=not unpack))
    packed, total = manager.get_progress(packing_list.id)
    print_success(f"{'Unpacked' if unpack else 'Packed'} {entry.item_name} ({packed}/{total} packed)")


if __name__ == "__main__":
    app()
