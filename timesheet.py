"""
Turning timesheets into partner rosters.

Two sources feed the distribution engine: the plain ``Name: hours`` lines the
image-reading service returns, and Excel/CSV exports of the schedule.
"""
import logging
import re
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from distribution import PartnerHours

logger = logging.getLogger(__name__)

# John Smith: 32 | Maria Garcia - 24.5 | Alex Johnson (18.75 hours) | Sam: 7h
HOURS_LINE = re.compile(
    r"^\s*(?:[-*•]\s+)?"
    r"(?P<name>[^:(]*?[^\W\d_][^:(]*?)\s*(?::|-|–|\()\s*"
    r"(?P<sign>[-+])?\s*(?P<hours>\d+(?:\.\d+)?)\s*(?:h|hrs?|hours?)?\.?\s*\)?\s*$",
    re.IGNORECASE,
)

NAME_HEADERS = ("name", "partner", "employee")
HOURS_HEADERS = ("hour", "hrs")
SUMMARY_NAMES = {"total", "totals", "sum"}


class TimesheetParseError(ValueError):
    """Nothing usable could be read from the timesheet."""


def parse_hours_line(line: str) -> Optional[PartnerHours]:
    match = HOURS_LINE.match(line)
    if not match:
        return None
    if match.group("sign") == "-":
        raise TimesheetParseError(f"Negative hours for {match.group('name').strip()}: {line.strip()!r}")
    return PartnerHours(name=match.group("name"), hours=Decimal(match.group("hours")))


def parse_hours_text(text: str) -> List[PartnerHours]:
    """
    Parse one partner per line. Lines that don't look like a name followed by
    hours are skipped; duplicates are kept as separate rows in input order.
    """
    partners = []
    skipped = 0
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        partner = parse_hours_line(line)
        if partner is None:
            skipped += 1
            continue
        partners.append(partner)

    if not partners:
        raise TimesheetParseError("No 'Name: hours' lines found in the text")
    if skipped:
        logger.info("hours_lines_skipped", extra={"skipped": skipped, "parsed": len(partners)})
    return partners


def _find_column(columns, wanted) -> Optional[str]:
    for col in columns:
        label = str(col).strip().lower()
        if any(w in label for w in wanted):
            return col
    return None


def read_timesheet_frame(path: Union[str, Path], sheet_name=0) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise TimesheetParseError(f"File not found: {path}")
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path)
    return pd.read_excel(path, sheet_name=sheet_name, engine="openpyxl")


def frame_to_partners(df: pd.DataFrame, name_column: Optional[str] = None,
                      hours_column: Optional[str] = None) -> List[PartnerHours]:
    """
    Build the roster from a data frame. Columns are picked by header when not
    given; blank names and summary rows such as "Total" are dropped.
    """
    name_column = name_column or _find_column(df.columns, NAME_HEADERS)
    hours_column = hours_column or _find_column(df.columns, HOURS_HEADERS)
    if name_column is None or hours_column is None:
        raise TimesheetParseError(
            f"Could not find name/hours columns in {[str(c) for c in df.columns]}"
        )

    hours = pd.to_numeric(df[hours_column], errors="coerce")
    partners = []
    for idx, name in df[name_column].items():
        if pd.isna(name) or not str(name).strip():
            continue
        name = str(name).strip()
        if name.lower() in SUMMARY_NAMES:
            continue
        value = hours.loc[idx]
        if pd.isna(value):
            raise TimesheetParseError(f"Row {idx}: hours for {name} are not a number")
        partners.append(PartnerHours(name=name, hours=Decimal(str(float(value)))))

    if not partners:
        raise TimesheetParseError("Timesheet has no partner rows")
    return partners


def load_timesheet(path: Union[str, Path], name_column: Optional[str] = None,
                   hours_column: Optional[str] = None, sheet_name=0) -> List[PartnerHours]:
    df = read_timesheet_frame(path, sheet_name=sheet_name)
    partners = frame_to_partners(df, name_column, hours_column)
    logger.info("timesheet_loaded", extra={"path": str(path), "partners": len(partners)})
    return partners
