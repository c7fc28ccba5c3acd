"""Read CSV files into rows for the reconciler."""

import csv
from pathlib import Path
from typing import Optional

from ..errors import TransportError


def read_csv_rows(file_path: Path) -> list[dict[str, Optional[str]]]:
    """Read a CSV file with a header row into trimmed dict rows.

    Rows whose cells are all empty are skipped.

    Args:
        file_path: Path to CSV file

    Returns:
        List of column name -> value mappings

    Raises:
        TransportError: the file is missing, unreadable or not valid CSV
    """
    rows = []
    try:
        with open(file_path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            for record in reader:
                cleaned = {
                    key.strip(): value.strip() if isinstance(value, str) else None
                    for key, value in record.items()
                    if key is not None
                }
                if not any(cleaned.values()):
                    continue
                rows.append(cleaned)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise TransportError(f"Could not read {file_path}: {e}") from e

    return rows
