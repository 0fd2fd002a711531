"""
CSV ingestion for municipal budget line items.

Turns the text of an uploaded CSV into ImportedRow records. Parsing is
lenient on purpose: malformed lines are skipped and unreadable amounts become
0, but both are counted so callers can surface a warning.

Usage:
    from app.ingest import normalize_csv
"""

import csv
import logging
import math
from dataclasses import dataclass, field
from typing import List, Tuple

from .errors import ValidationError
from .schemas import ImportedRow

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["account", "glcode", "budget_a", "used_amt", "remaining_amt"]
NUMERIC_COLUMNS = ["budget_a", "used_amt", "remaining_amt"]

# The CSV's budget_a figure is stored under account_budget_a
FIELD_MAP = {
    "account": "account",
    "glcode": "glcode",
    "budget_a": "account_budget_a",
    "used_amt": "used_amt",
    "remaining_amt": "remaining_amt",
}


@dataclass
class NormalizedCsv:
    rows: List[ImportedRow] = field(default_factory=list)
    skipped_rows: int = 0       # unreadable, or field count did not match the header
    rejected_rows: int = 0      # account or glcode empty
    defaulted_values: int = 0   # non-empty amounts that could not be parsed

    @property
    def warning_count(self) -> int:
        return self.skipped_rows + self.rejected_rows + self.defaulted_values


def parse_amount(value: str) -> Tuple[float, bool]:
    """
    Parse a currency cell such as "$1,250.50".

    Returns:
        (amount, ok) where ok is False when a non-empty value had to be
        defaulted to 0.
    """
    cleaned = (value or "").replace("$", "").replace(",", "").strip()
    if not cleaned:
        return 0.0, True
    try:
        amount = float(cleaned)
    except ValueError:
        return 0.0, False
    if not math.isfinite(amount):
        return 0.0, False
    return amount, True


def read_header(line: List[str]) -> List[str]:
    headers = [h.strip().lower() for h in line]
    if headers:
        headers[0] = headers[0].lstrip("\ufeff")
    return headers


def split_line(line: str) -> List[str]:
    """Split one physical line; quotes never carry over to the next line."""
    return next(csv.reader([line]), [])


def normalize_csv(content: str) -> NormalizedCsv:
    """
    Normalize CSV text into budget rows.

    Args:
        content: Full text of the uploaded file; the first line is the header

    Returns:
        NormalizedCsv with the accepted rows and warning counters

    Raises:
        ValidationError: required columns are missing or no row survives
    """
    lines = [line for line in content.strip().splitlines() if line.strip()]

    headers: List[str] = []
    if lines:
        try:
            headers = read_header(split_line(lines[0]))
        except csv.Error as e:
            raise ValidationError(f"Unreadable CSV header: {e}")
    logger.info(f"CSV headers: {headers}")

    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        raise ValidationError(
            f"Missing required columns: {', '.join(missing)}",
            missing_columns=missing,
        )

    result = NormalizedCsv()
    for text in lines[1:]:
        try:
            line = split_line(text)
        except csv.Error:
            result.skipped_rows += 1
            continue
        if len(line) != len(headers):
            result.skipped_rows += 1
            continue

        record = {}
        for header, raw in zip(headers, line):
            target = FIELD_MAP.get(header)
            if target is None:
                continue
            value = raw.strip()
            if header in NUMERIC_COLUMNS:
                amount, ok = parse_amount(value)
                if not ok:
                    result.defaulted_values += 1
                record[target] = amount
            else:
                record[target] = value

        if not record.get("account") or not record.get("glcode"):
            result.rejected_rows += 1
            continue
        result.rows.append(ImportedRow(**record))

    logger.info(f"Parsed {len(result.rows)} budget records")
    if result.warning_count:
        logger.warning(
            f"CSV import warnings: {result.skipped_rows} malformed lines skipped, "
            f"{result.rejected_rows} rows without account/glcode, "
            f"{result.defaulted_values} amounts defaulted to 0"
        )

    if not result.rows:
        raise ValidationError("No valid rows found in CSV")

    return result
