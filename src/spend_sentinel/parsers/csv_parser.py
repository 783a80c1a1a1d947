"""CSV parser for Date, Description, Credit, Debit, Balance statements."""

from collections import Counter
from decimal import Decimal
from typing import Optional

from spend_sentinel.models.transaction import RawTransaction
from spend_sentinel.parsers.base import BaseParser, ParseError, ParseResult
from spend_sentinel.processing.categorizer import categorize_transaction
from spend_sentinel.processing.normalizer import extract_merchant_name
from spend_sentinel.utils.date_utils import parse_date
from spend_sentinel.utils.decimal_utils import normalize_amount
from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)

# Maximum number of data rows to prevent memory exhaustion from many small rows
MAX_CSV_ROWS = 100_000

# A first line containing any of these (case-insensitive) is a header
HEADER_KEYWORDS = [
    "date", "amount", "description", "merchant", "transaction", "debit", "credit", "balance",
]

# Date, Description, Credit, Debit, Balance
EXPECTED_FIELD_COUNT = 5

DEFAULT_DESCRIPTION = "Transaction from CSV"


class RowRejected(Exception):
    """Raised when a single row cannot become a transaction."""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        super().__init__(f"{reason}: {detail}" if detail else reason)


def split_csv_line(line: str) -> list[str]:
    """Split a line on commas, honouring double quotes.

    A double quote toggles an in-quotes state in which commas do not split.
    Quote characters are dropped and each field is trimmed.

    Args:
        line: One line of CSV text.

    Returns:
        List of field values.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


class CSVParser(BaseParser):
    """Parser for CSV bank statements.

    Expects five columns in a fixed order: Date, Description, Credit, Debit,
    Balance. Rows that don't fit are dropped and counted; they never abort
    the file.
    """

    def __init__(self, strict: bool = False, max_rows: int = MAX_CSV_ROWS):
        """Initialize CSV parser.

        Args:
            strict: If True, raise ParseError on the first rejected row.
                   If False, log and skip rejected rows.
            max_rows: Maximum number of data rows accepted.
        """
        self.strict = strict
        self.max_rows = max_rows

    @property
    def supported_extensions(self) -> list[str]:
        """Return supported file extensions."""
        return [".csv"]

    @property
    def supported_mime_types(self) -> list[str]:
        """Return supported MIME types."""
        return ["text/csv", "application/csv"]

    def parse(self, content: bytes, filename: str) -> ParseResult:
        """Parse CSV statement content.

        Args:
            content: Raw file bytes.
            filename: Original file name.

        Returns:
            ParseResult with parsed transactions and the rejected row count.

        Raises:
            ParseError: If the file is empty, too large, or (in strict mode)
                contains a rejected row.
        """
        text = content.decode("utf-8-sig", errors="replace")
        lines = [line for line in text.splitlines() if line.strip()]
        if not lines:
            raise ParseError("CSV file is empty", filename)

        start_index = 0
        if self._is_header(lines[0]):
            start_index = 1
            logger.debug(f"Detected header row in {filename}, skipping first line")

        data_lines = lines[start_index:]
        if len(data_lines) > self.max_rows:
            raise ParseError(
                f"File exceeds maximum row limit ({self.max_rows:,} rows). "
                f"Split file into smaller chunks.",
                filename,
            )

        logger.info(f"Parsing {filename} as CSV ({len(data_lines)} data rows)")

        result = ParseResult()
        rejected: Counter[str] = Counter()

        for row_num, line in enumerate(data_lines, start=start_index + 1):
            try:
                txn = self._parse_row(line.strip(), filename)
            except RowRejected as e:
                if self.strict:
                    raise ParseError(f"Row {row_num}: {e}", filename) from e
                logger.debug(f"Skipping row {row_num} in {filename}: {e}")
                rejected[e.reason] += 1
                continue

            txn.raw_data = {"row": row_num, "line": line, "source": "csv"}
            result.transactions.append(txn)

        result.skipped_count = sum(rejected.values())

        logger.info(
            f"Parsed {len(result.transactions)} transactions from {filename} "
            f"({result.skipped_count} rows skipped)"
        )
        if rejected:
            breakdown = ", ".join(f"{reason}={count}" for reason, count in sorted(rejected.items()))
            logger.warning(f"{result.skipped_count} rows could not be parsed in {filename} ({breakdown})")
        return result

    def _is_header(self, line: str) -> bool:
        """Check whether a line is a header row.

        Args:
            line: First non-empty line of the file.

        Returns:
            True if any header keyword appears in the line.
        """
        lowered = line.lower()
        return any(keyword in lowered for keyword in HEADER_KEYWORDS)

    def _parse_row(self, line: str, source_file: str) -> RawTransaction:
        """Parse a single CSV row into a RawTransaction.

        Args:
            line: Row text.
            source_file: Source file name.

        Returns:
            Parsed RawTransaction.

        Raises:
            RowRejected: If the row does not describe a transaction.
        """
        fields = split_csv_line(line)
        if len(fields) != EXPECTED_FIELD_COUNT:
            raise RowRejected("field_count", f"expected {EXPECTED_FIELD_COUNT} fields, got {len(fields)}")

        date_str, description, credit_str, debit_str, _balance = fields

        amount = self._resolve_amount(credit_str, debit_str)
        if amount is None:
            raise RowRejected("zero_amount", f"credit={credit_str!r} debit={debit_str!r}")

        parsed_date = parse_date(date_str)
        if parsed_date is None:
            raise RowRejected("invalid_date", repr(date_str))

        description = description or DEFAULT_DESCRIPTION
        merchant = extract_merchant_name(description)

        return RawTransaction(
            date=parsed_date,
            merchant=merchant,
            description=description,
            amount=amount,
            category=categorize_transaction(merchant, description),
            source_file=source_file,
        )

    def _resolve_amount(self, credit_str: str, debit_str: str) -> Optional[Decimal]:
        """Combine the credit and debit columns into one signed amount.

        Credit wins when non-zero; otherwise a non-zero debit becomes an
        outflow.

        Returns:
            Signed amount, or None when neither column carries a value.
        """
        credit = normalize_amount(credit_str)
        debit = normalize_amount(debit_str)

        if credit != 0:
            return abs(credit)
        if debit != 0:
            return -abs(debit)
        return None
