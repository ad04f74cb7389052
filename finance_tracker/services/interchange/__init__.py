"""Transaction import/export: JSON documents and CSV reports."""

from finance_tracker.services.interchange.documents import (
    EXPORT_FILENAME,
    export_transactions,
    parse_transactions,
)
from finance_tracker.services.interchange.csv_report import (
    CSV_COLUMNS,
    export_csv,
    parse_csv,
    report_filename,
)

__all__ = [
    "CSV_COLUMNS",
    "EXPORT_FILENAME",
    "export_csv",
    "export_transactions",
    "parse_csv",
    "parse_transactions",
    "report_filename",
]
