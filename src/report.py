import csv
import sys
from decimal import Decimal
from typing import Iterable, TextIO

from models import AccountSnapshot

REPORT_HEADER = ["client", "available", "held", "total", "locked"]


def format_decimal(value: Decimal) -> str:
    """Format decimal with up to 4 decimal places, removing trailing zeros."""
    normalized = value.normalize()
    return f"{normalized:f}"


class ReportWriter:
    """Writes the final account table as CSV, one row per client, sorted by client id."""

    def __init__(self, output: TextIO = None):
        self._output = output or sys.stdout

    def write(self, snapshots: Iterable[AccountSnapshot]) -> int:
        """Write the report and return the number of account rows written."""
        writer = csv.writer(self._output, lineterminator="\n")
        writer.writerow(REPORT_HEADER)
        rows = 0
        for snapshot in sorted(snapshots, key=lambda s: s.client):
            writer.writerow([
                snapshot.client,
                format_decimal(snapshot.available),
                format_decimal(snapshot.held),
                format_decimal(snapshot.total),
                str(snapshot.locked).lower(),
            ])
            rows += 1
        self._output.flush()
        return rows
