"""PDF parser scanning extracted statement text line by line."""

import io
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import pdfplumber

from spend_sentinel.models.transaction import RawTransaction
from spend_sentinel.parsers.base import BaseParser, ParseError, ParseResult, build_placeholder
from spend_sentinel.processing.categorizer import categorize_transaction
from spend_sentinel.processing.normalizer import extract_merchant_name
from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)

# Maximum number of pages to process to prevent resource exhaustion
MAX_PDF_PAGES = 200

# Lines shorter than this never hold a transaction
MIN_LINE_LENGTH = 10

# First "$" amount on a line; a leading "-" marks money out
CURRENCY_PATTERN = re.compile(r"(-?)\$(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")

# Leading "DD Mon YYYY" date
LEADING_DATE_PATTERN = re.compile(r"^\s*(\d{1,2})\s+([A-Za-z]{3})\s+(\d{4})\b")

DEFAULT_DESCRIPTION = "Transaction from PDF"


class PDFParser(BaseParser):
    """Parser for PDF bank statements.

    Uses pdfplumber to extract page text and scans each line for a dollar
    amount. This is a heuristic: the sign must be explicit in the text
    ("-$12.00" is money out, "$12.00" money in) and lines without a leading
    "DD Mon YYYY" date are dated today.
    """

    def __init__(self, max_pages: int = MAX_PDF_PAGES):
        """Initialize PDF parser.

        Args:
            max_pages: Maximum number of pages accepted.
        """
        self.max_pages = max_pages

    @property
    def supported_extensions(self) -> list[str]:
        """Return supported file extensions."""
        return [".pdf"]

    @property
    def supported_mime_types(self) -> list[str]:
        """Return supported MIME types."""
        return ["application/pdf"]

    def parse(self, content: bytes, filename: str) -> ParseResult:
        """Parse PDF statement content.

        Args:
            content: Raw file bytes.
            filename: Original file name.

        Returns:
            ParseResult. Holds a single placeholder when no line yields a
            transaction.

        Raises:
            ParseError: If the document cannot be opened or has too many pages.
        """
        logger.info(f"Parsing PDF file: {filename}")

        text = self._extract_text(content, filename)

        result = ParseResult()
        today = date.today()
        for line_num, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if len(line) < MIN_LINE_LENGTH:
                continue

            txn = self._parse_line(line, filename, today)
            if txn is None:
                result.skipped_count += 1
                continue

            txn.raw_data = {"line_num": line_num, "line": line, "source": "pdf"}
            result.transactions.append(txn)

        logger.info(
            f"Parsed {len(result.transactions)} transactions from {filename} "
            f"({result.skipped_count} lines skipped)"
        )

        if not result.transactions:
            logger.warning(f"No transactions found in {filename}, returning placeholder")
            result.transactions.append(build_placeholder(filename, "no transaction lines recognized"))

        return result

    def _extract_text(self, content: bytes, filename: str) -> str:
        """Extract the text of every page.

        Args:
            content: Raw file bytes.
            filename: Original file name.

        Returns:
            Page texts joined by newlines.

        Raises:
            ParseError: If the document cannot be read.
        """
        page_texts: list[str] = []
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                if len(pdf.pages) > self.max_pages:
                    raise ParseError(
                        f"PDF has too many pages ({len(pdf.pages)}). "
                        f"Maximum allowed is {self.max_pages}",
                        filename,
                    )

                for page_num, page in enumerate(pdf.pages, start=1):
                    try:
                        page_texts.append(page.extract_text() or "")
                    except Exception as e:
                        logger.warning(f"Could not extract text from page {page_num} of {filename}: {e}")
        except ParseError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to read PDF file: {e}", filename) from e

        return "\n".join(page_texts)

    def _parse_line(self, line: str, source_file: str, today: date) -> Optional[RawTransaction]:
        """Parse one line of statement text.

        Args:
            line: Stripped line text.
            source_file: Source file name.
            today: Date used when the line carries none.

        Returns:
            RawTransaction, or None if the line holds no usable amount.
        """
        currency_match = CURRENCY_PATTERN.search(line)
        if currency_match is None:
            return None

        try:
            magnitude = Decimal(currency_match.group(2).replace(",", ""))
        except InvalidOperation:
            return None
        if not magnitude.is_finite() or magnitude == 0:
            return None
        amount = -magnitude if currency_match.group(1) == "-" else magnitude

        description_start = 0
        txn_date = today
        date_match = LEADING_DATE_PATTERN.match(line)
        if date_match and date_match.end() <= currency_match.start():
            parsed = self._parse_date_token(*date_match.groups())
            if parsed is not None:
                txn_date = parsed
                description_start = date_match.end()

        description = line[description_start:currency_match.start()].strip() or DEFAULT_DESCRIPTION
        merchant = extract_merchant_name(description)

        return RawTransaction(
            date=txn_date,
            merchant=merchant,
            description=description,
            amount=amount,
            category=categorize_transaction(merchant, description),
            source_file=source_file,
        )

    def _parse_date_token(self, day: str, month: str, year: str) -> Optional[date]:
        try:
            return datetime.strptime(f"{day} {month} {year}", "%d %b %Y").date()
        except ValueError:
            return None
