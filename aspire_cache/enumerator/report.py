"""Enumeration of rows from exported Aspire report CSV files.

Reports such as All Lists are exported from Aspire as ISO-8859-1 CSV files
with a header row. Cells holding YYYY-MM-DD dates are converted to date
objects; all other cells are left as strings.
"""

import csv
from collections.abc import Callable, Iterable, Iterator, Sequence
from datetime import date, datetime
from pathlib import Path

import structlog

from aspire_cache.caching.constants import LIST_LINK_COLUMN


logger = structlog.get_logger()

REPORT_ENCODING = "ISO-8859-1"
REPORT_DATE_FORMAT = "%Y-%m-%d"

# Report columns used by the list filters
PRIVACY_CONTROL_COLUMN = "Privacy Control"
STATUS_COLUMN = "Status"
TIME_PERIOD_COLUMN = "Time Period"

ReportValue = str | date
ReportRow = dict[str, ReportValue]
RowFilter = Callable[[ReportRow], bool]


def convert_date(value: str) -> ReportValue:
    """Convert a YYYY-MM-DD value to a date, returning other values unchanged."""
    try:
        return datetime.strptime(value, REPORT_DATE_FORMAT).date()  # noqa: DTZ007
    except ValueError:
        return value


class ReportEnumerator:
    """Iterates over the rows of a report which pass all filters.

    Each filter accepts a row and returns True to accept it. A row is
    yielded only if every filter accepts it.
    """

    def __init__(
        self, file: Path | str, filters: Sequence[RowFilter] | None = None
    ) -> None:
        """Initialize the enumerator.

        Args:
            file: The report filename.
            filters: Row filters, all of which must pass.
        """
        self.file = Path(file)
        self.filters = list(filters or [])

    def __iter__(self) -> Iterator[ReportRow]:
        """Yield the converted rows which pass all filters.

        Raises:
            OSError: If the report cannot be read.
        """
        rows = 0
        accepted = 0
        with self.file.open(encoding=REPORT_ENCODING, newline="") as f:
            for raw in csv.DictReader(f):
                rows += 1
                row: ReportRow = {
                    key: convert_date(value or "")
                    for key, value in raw.items()
                    if key is not None
                }
                if self.accept(row):
                    accepted += 1
                    yield row
        logger.debug("report_enumerated", file=str(self.file), rows=rows, accepted=accepted)

    def accept(self, row: ReportRow) -> bool:
        """Check if a row passes all filters."""
        return all(f(row) for f in self.filters)


def list_filters(
    time_periods: Sequence[str] | None = None,
    status: str | None = None,
    privacy_control: str | None = None,
) -> list[RowFilter]:
    """Return the All Lists report filters used by the cache builder.

    Args:
        time_periods: Time periods to accept. If empty, only lists with no
            time period are accepted.
        status: Accept lists whose status starts with this value, e.g.
            "Published". All statuses are accepted if empty.
        privacy_control: Accept lists with this privacy control, e.g.
            "Public". All are accepted if empty.

    Returns:
        The row filters.
    """
    periods = set(time_periods or []) - {""} or {""}
    filters: list[RowFilter] = [
        lambda row: str(row.get(TIME_PERIOD_COLUMN, "")) in periods,
    ]
    if status:
        filters.append(lambda row: str(row.get(STATUS_COLUMN, "")).startswith(status))
    if privacy_control:
        filters.append(lambda row: row.get(PRIVACY_CONTROL_COLUMN) == privacy_control)
    return filters


def list_urls(rows: Iterable[ReportRow]) -> Iterator[str]:
    """Yield the list URLs of All Lists report rows, skipping empty links."""
    for row in rows:
        url = str(row.get(LIST_LINK_COLUMN) or "").strip()
        if url:
            yield url
