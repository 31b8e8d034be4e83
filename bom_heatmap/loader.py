"""
loader.py: BOM CSV importer for bom-heatmap

Public API:
    result = parse_csv_file("path/to/bom.csv")
    rows   = result.data

Every entry point returns a ParseResult and never raises for bad input:
    success  False only for fatal problems (empty file, missing headers,
             wrong extension, oversized or structurally broken file)
    data     sanitized BomRow list (always empty when success is False)
    errors   fatal messages, or non-fatal "Row N: ..." warnings on success
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from pathlib import Path
from typing import Any, Optional, Union

import chardet
import pandas as pd

from bom_heatmap.config import MAX_CSV_FILE_SIZE
from bom_heatmap.models import HEADER_FIELDS, REQUIRED_HEADERS, SUPPLIER_KEYS, BomRow, ParseResult
from bom_heatmap.numbers import parse_numeric
from bom_heatmap.sources import check_upload
from bom_heatmap.validation import sanitize_bom_row, validate_bom_row, validate_headers

logger = logging.getLogger(__name__)

EMPTY_FILE_ERROR = "CSV file is empty or contains no data rows"
EXPECTED_HEADERS_MESSAGE = f"Expected headers: {', '.join(REQUIRED_HEADERS)}"

PathLike = Union[str, Path]


# ══════════════════════════════════════════════════════════════════════════════
# DECODING
# ══════════════════════════════════════════════════════════════════════════════

def detect_encoding_info(raw: bytes) -> dict[str, Any]:
    """Return detected encoding, confidence and whether it is UTF-8 compatible."""
    result = chardet.detect(raw)
    detected = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)
    is_utf8 = detected.upper().replace("-", "") in ("UTF8", "UTF8SIG", "ASCII")
    return {"detected": detected, "confidence": confidence, "is_utf8": is_utf8}


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line by line: UTF-8, then the detected encoding, then
    latin-1, and finally cp1252 with replacement. Null bytes are dropped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: Optional[str] = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines)


def decode_csv_bytes(raw: bytes) -> tuple[str, dict[str, Any]]:
    enc_info = detect_encoding_info(raw)
    enc = enc_info["detected"] if enc_info["detected"] != "unknown" else "utf-8"
    text = _read_text_safely(raw, enc)
    return text.lstrip("\ufeff"), enc_info


# ══════════════════════════════════════════════════════════════════════════════
# PARSING
# ══════════════════════════════════════════════════════════════════════════════

def read_bom_frame(text: str, warnings: list[str]) -> Optional[pd.DataFrame]:
    """
    Tokenize header-delimited text into a string DataFrame.

    Empty lines are skipped. Records with too many fields keep their leading
    fields and records with too few are padded with blanks; both add a
    non-fatal "Row N: ..." warning. Returns None when there is no header.
    """
    records = [record for record in csv.reader(io.StringIO(text)) if record]
    if not records:
        return None
    headers = [header.strip() for header in records[0]]
    width = len(headers)
    rows: list[list[str]] = []
    for number, record in enumerate(records[1:], start=1):
        if len(record) > width:
            warnings.append(f"Row {number}: Too many fields: expected {width} fields but parsed {len(record)}")
            record = record[:width]
        elif len(record) < width:
            warnings.append(f"Row {number}: Too few fields: expected {width} fields but parsed {len(record)}")
            record = record + [""] * (width - len(record))
        rows.append(record)
    return pd.DataFrame(rows, columns=headers, dtype=str)


def _cell(record: dict[str, Any], header: str) -> str:
    value = record.get(header)
    return value.strip() if isinstance(value, str) else ""


def _is_blank_record(record: dict[str, Any]) -> bool:
    return not any(isinstance(value, str) and value.strip() for value in record.values())


def build_row(record: dict[str, Any], index: int) -> BomRow:
    """Map one raw CSV record onto an unsanitized BomRow with id ``row-{index}``."""
    text = {attr: _cell(record, header) for header, attr in HEADER_FIELDS.items()}
    return BomRow(
        category=text["category"],
        sub_category_1=text["sub_category_1"],
        sub_category_2=text["sub_category_2"],
        item_code=text["item_code"],
        material=text["item_code"],
        description=text["description"],
        quantity=parse_numeric(record.get("Quantity")),
        estimated_rate=parse_numeric(record.get("Estimated Rate")),
        suppliers={key: parse_numeric(record.get(key)) for key in SUPPLIER_KEYS},
        id=f"row-{index}",
    )


def parse_csv_text(text: str) -> ParseResult:
    parse_warnings: list[str] = []
    try:
        df = read_bom_frame(text, parse_warnings)
    except csv.Error as exc:
        logger.warning("CSV structure could not be parsed: %s", exc)
        return ParseResult.failure(f"Failed to parse CSV file: {exc}")

    if df is None or df.empty:
        return ParseResult.failure(EMPTY_FILE_ERROR)

    header_check = validate_headers(df.columns)
    if not header_check.is_valid:
        logger.info("Rejected CSV with missing headers: %s", ", ".join(header_check.missing))
        return ParseResult.failure(*header_check.errors, EXPECTED_HEADERS_MESSAGE)

    errors = list(parse_warnings)
    data: list[BomRow] = []
    for index, record in enumerate(df.to_dict(orient="records")):
        if _is_blank_record(record):
            continue
        row = build_row(record, index)
        row_errors = validate_bom_row(row)
        if row_errors:
            errors.append(f"Row {index + 1}: {', '.join(row_errors)}")
        data.append(sanitize_bom_row(row))

    logger.debug("Parsed %d rows with %d warnings", len(data), len(errors))
    return ParseResult(success=True, data=data, errors=errors)


def parse_csv_bytes(raw: bytes) -> ParseResult:
    text, enc_info = decode_csv_bytes(raw)
    logger.debug("Decoded CSV as %s (confidence %.2f)", enc_info["detected"], enc_info["confidence"])
    return parse_csv_text(text)


def parse_csv_file(path: PathLike, *, max_bytes: int = MAX_CSV_FILE_SIZE) -> ParseResult:
    path = Path(path)
    if not path.exists():
        return ParseResult.failure(f"File not found: {path}")
    try:
        size = path.stat().st_size
    except OSError as exc:
        return ParseResult.failure(f"Could not read file: {exc}")
    upload_errors = check_upload(path.name, size, max_bytes=max_bytes)
    if upload_errors:
        return ParseResult.failure(*upload_errors)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        return ParseResult.failure(f"Could not read file: {exc}")
    logger.info("Importing %s (%d bytes)", path, size)
    return parse_csv_bytes(raw)


async def parse_csv_file_async(path: PathLike, *, max_bytes: int = MAX_CSV_FILE_SIZE) -> ParseResult:
    """Read and parse ``path`` off the event loop; resolves once with a ParseResult."""
    return await asyncio.to_thread(parse_csv_file, path, max_bytes=max_bytes)
