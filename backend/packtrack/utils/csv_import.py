"""CSV parsing helpers for packing-list imports."""

import csv
import io
import re

HEADER_SCAN_ROWS = 5
HEADER_KEYWORDS = ("case", "part", "qty")


def decode_upload(content: bytes) -> str:
    return content.decode("utf-8-sig")  # handle BOM from Excel


def parse_csv_rows(text: str) -> list[list[str]]:
    """Split CSV text into trimmed cell lists, dropping blank lines."""
    text = text.lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text, newline=""))
    rows = []
    for raw in reader:
        cells = [cell.strip() for cell in raw]
        if any(cells):
            rows.append(cells)
    return rows


def normalize_header(h: str) -> str:
    """'CASE NO.' -> 'caseno', 'Part-No' -> 'partno'."""
    return re.sub(r"[^a-z0-9]", "", h.replace("\ufeff", "").lower())


def detect_header_row(rows: list[list[str]], max_scan: int = HEADER_SCAN_ROWS) -> int | None:
    """Index of the first row (within ``max_scan``) naming case, part and qty columns."""
    for idx, row in enumerate(rows[:max_scan]):
        normalized = " ".join(normalize_header(c) for c in row)
        if all(k in normalized for k in HEADER_KEYWORDS):
            return idx
    return None


def coerce_positive_int(val: str) -> int | None:
    """Parse a quantity cell; None when missing, non-numeric or not > 0.

    Accepts "5", "5.0" and "1,200" but not "2.5".
    """
    cleaned = val.strip().replace(",", "")
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if not number.is_integer() or number <= 0:
        return None
    return int(number)


def generate_template_csv(headers: list[str], sample_rows: list[list[str]] | None = None) -> str:
    """CSV template string with headers and optional sample rows."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in sample_rows or []:
        writer.writerow(row)
    return output.getvalue()
