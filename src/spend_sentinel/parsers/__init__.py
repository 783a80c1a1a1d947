"""File parsers for bank statement formats."""

from spend_sentinel.parsers.base import BaseParser, ParseError, ParseResult, build_placeholder
from spend_sentinel.parsers.csv_parser import CSVParser, split_csv_line
from spend_sentinel.parsers.detector import StatementParser
from spend_sentinel.parsers.pdf_parser import PDFParser

__all__ = [
    "BaseParser",
    "ParseError",
    "ParseResult",
    "build_placeholder",
    "CSVParser",
    "PDFParser",
    "StatementParser",
    "split_csv_line",
]
