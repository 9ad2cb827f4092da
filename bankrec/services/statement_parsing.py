"""Bank statement file parsing (CSV, OFX, QFX).

Parsing is all-or-nothing: the whole file is converted to
``ParsedTransaction`` objects before anything touches the database, and the
first malformed row aborts with ``ParseError``.
"""

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path

from ofxparse import OfxParser
from ofxparse.ofxparse import OfxParserException

from bankrec.logger import get_logger, log_timing
from bankrec.models.statement import StatementFileFormat
from bankrec.services.errors import ParseError, ValidationError

logger = get_logger(__name__)

CENT = Decimal("0.01")

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d")

# Normalized header -> canonical column
HEADER_ALIASES: dict[str, str] = {
    "date": "date",
    "transaction_date": "date",
    "posted_date": "date",
    "description": "description",
    "memo": "description",
    "payee": "description",
    "amount": "amount",
    "debit": "debit",
    "withdrawal": "debit",
    "credit": "credit",
    "deposit": "credit",
    "reference": "reference",
    "ref": "reference",
    "check_number": "check_number",
    "check_no": "check_number",
    "check": "check_number",
    "balance": "balance",
    "running_balance": "balance",
    "type": "type",
    "transaction_type": "type",
}


@dataclass(frozen=True)
class ParsedTransaction:
    """One statement line in file order. ``amount`` is signed, deposits positive."""

    txn_date: date
    description: str
    amount: Decimal
    reference: str | None = None
    check_number: str | None = None
    running_balance: Decimal | None = None
    transaction_type: str = "other"


def detect_format(filename: str | None) -> StatementFileFormat:
    """Resolve the statement format from a filename extension."""
    suffix = Path(filename or "").suffix.lower().lstrip(".")
    try:
        return StatementFileFormat(suffix)
    except ValueError:
        raise ValidationError(f"Unsupported statement file type: {suffix or '(none)'}") from None


def parse_amount(raw: str) -> Decimal:
    """Parse a money string such as ``1,234.50``, ``$-12.00`` or ``(45.10)``."""
    text = raw.strip().replace("$", "").replace(",", "").replace(" ", "")
    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]
    if not text:
        raise ValueError("empty amount")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"invalid amount {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"invalid amount {raw!r}")
    if negative:
        value = -value
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_date(raw: str) -> date:
    text = raw.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid date {raw!r}")


def _infer_type(amount: Decimal) -> str:
    if amount > 0:
        return "deposit"
    if amount < 0:
        return "withdrawal"
    return "other"


def _optional(row: dict[str, str], column: str) -> str | None:
    value = (row.get(column) or "").strip()
    return value or None


def _canonical_headers(fieldnames: list[str]) -> dict[str, str]:
    """Map raw header -> canonical column, keeping only known columns."""
    mapping: dict[str, str] = {}
    for raw in fieldnames:
        key = raw.strip().lower().replace(" ", "_").replace("-", "_")
        canonical = HEADER_ALIASES.get(key)
        if canonical and canonical not in mapping.values():
            mapping[raw] = canonical
    return mapping


def parse_csv(content: bytes) -> list[ParsedTransaction]:
    """Parse a CSV statement with a header row.

    Required columns: ``date``, ``description`` and either ``amount`` or a
    ``debit``/``credit`` pair. Optional: ``reference``, ``check_number``,
    ``balance``, ``type``.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError("File is not valid UTF-8 text") from exc

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise ParseError("CSV file has no header row")

    mapping = _canonical_headers(reader.fieldnames)
    columns = set(mapping.values())
    missing = {"date", "description"} - columns
    if missing:
        raise ParseError(f"CSV header is missing required columns: {', '.join(sorted(missing))}")
    has_amount = "amount" in columns
    if not has_amount and not {"debit", "credit"} <= columns:
        raise ParseError("CSV header needs an 'amount' column or both 'debit' and 'credit'")

    transactions: list[ParsedTransaction] = []
    row_number = 0
    try:
        for raw_row in reader:
            # DictReader files surplus fields under None and pads short rows with None
            surplus = raw_row.pop(None, None) or []
            short = any(v is None for v in raw_row.values())
            values = [v or "" for v in raw_row.values()] + surplus
            if not any(value.strip() for value in values):
                continue
            row_number += 1
            if surplus:
                raise ParseError(f"row has {len(surplus)} more field(s) than the header", row=row_number)
            if short:
                raise ParseError("row has fewer fields than the header", row=row_number)
            row = {mapping[k]: v for k, v in raw_row.items() if k in mapping}
            transactions.append(_parse_csv_row(row, row_number, has_amount))
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV: {exc}", row=row_number + 1) from exc

    return transactions


def _parse_csv_row(row: dict[str, str], row_number: int, has_amount: bool) -> ParsedTransaction:
    try:
        txn_date = parse_date(row.get("date", ""))
        if has_amount:
            amount = parse_amount(row.get("amount", ""))
        else:
            credit = parse_amount(row["credit"]) if row.get("credit", "").strip() else Decimal("0.00")
            debit = parse_amount(row["debit"]) if row.get("debit", "").strip() else Decimal("0.00")
            amount = abs(credit) - abs(debit)
        balance_raw = _optional(row, "balance")
        running_balance = parse_amount(balance_raw) if balance_raw else None
    except ValueError as exc:
        raise ParseError(str(exc), row=row_number) from exc

    description = (row.get("description") or "").strip()
    if not description:
        raise ParseError("description is required", row=row_number)

    type_hint = _optional(row, "type")
    return ParsedTransaction(
        txn_date=txn_date,
        description=description,
        amount=amount,
        reference=_optional(row, "reference"),
        check_number=_optional(row, "check_number"),
        running_balance=running_balance,
        transaction_type=type_hint.lower() if type_hint else _infer_type(amount),
    )


def parse_ofx(content: bytes) -> list[ParsedTransaction]:
    """Parse OFX/QFX content (QFX is OFX with Intuit extensions)."""
    try:
        ofx = OfxParser.parse(io.BytesIO(content))
    except (OfxParserException, ValueError, TypeError, AttributeError, KeyError, IndexError) as exc:
        raise ParseError(f"Failed to parse OFX: {exc}") from exc

    accounts = list(getattr(ofx, "accounts", None) or [])
    if not accounts:
        raise ParseError("OFX file contains no account statement")

    transactions: list[ParsedTransaction] = []
    row_number = 0
    for account in accounts:
        statement = getattr(account, "statement", None)
        for tx in getattr(statement, "transactions", None) or []:
            row_number += 1
            transactions.append(_parse_ofx_transaction(tx, row_number))
    return transactions


def _parse_ofx_transaction(tx, row_number: int) -> ParsedTransaction:
    if tx.date is None:
        raise ParseError("transaction has no date", row=row_number)
    txn_date = tx.date.date() if isinstance(tx.date, datetime) else tx.date
    try:
        amount = Decimal(str(tx.amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as exc:
        raise ParseError(f"invalid amount {tx.amount!r}", row=row_number) from exc

    description = (tx.payee or tx.memo or "").strip()
    if tx.payee and tx.memo and tx.memo.strip() != tx.payee.strip():
        description = f"{tx.payee.strip()} {tx.memo.strip()}"
    if not description:
        raise ParseError("description is required", row=row_number)

    return ParsedTransaction(
        txn_date=txn_date,
        description=description,
        amount=amount,
        reference=(getattr(tx, "id", None) or None),
        check_number=(getattr(tx, "checknum", None) or None),
        running_balance=None,
        transaction_type=_infer_type(amount),
    )


def parse_statement_file(content: bytes, file_format: StatementFileFormat | str) -> list[ParsedTransaction]:
    """Parse a statement file into transactions in file order.

    Raises:
        ParseError: empty content, no transactions, unreadable file, or any malformed row
        ValidationError: unsupported format
    """
    try:
        fmt = StatementFileFormat(str(getattr(file_format, "value", file_format)).lower())
    except ValueError:
        raise ValidationError(f"Unsupported statement file type: {file_format}") from None

    if not content or not content.strip():
        raise ParseError("Statement file is empty")

    with log_timing(
        "parse_statement_file", logger=logger, level="debug", file_format=fmt.value, size=len(content)
    ) as ctx:
        transactions = parse_csv(content) if fmt == StatementFileFormat.CSV else parse_ofx(content)
        ctx["rows"] = len(transactions)
    if not transactions:
        raise ParseError("Statement file contains no transactions")
    return transactions
