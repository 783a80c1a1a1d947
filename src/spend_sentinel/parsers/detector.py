"""Statement format detection and parser dispatch."""

from typing import Optional

from spend_sentinel.config import IngestConfig
from spend_sentinel.parsers.base import BaseParser, ParseError, ParseResult, build_placeholder
from spend_sentinel.parsers.csv_parser import CSVParser
from spend_sentinel.parsers.pdf_parser import PDFParser
from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)


class StatementParser:
    """Detects statement formats and dispatches to the matching parser.

    This class provides:
    - Format detection from the declared MIME type or the file suffix
    - Upload size enforcement
    - A placeholder result for unsupported formats instead of an error
    """

    def __init__(self, config: Optional[IngestConfig] = None, strict: bool = False):
        """Initialize with all available parsers.

        Args:
            config: Ingestion limits. Defaults to IngestConfig().
            strict: If True, the CSV parser raises on row-level errors.
        """
        self.config = config or IngestConfig()
        self.parsers: list[BaseParser] = [
            CSVParser(strict=strict, max_rows=self.config.max_csv_rows),
            PDFParser(max_pages=self.config.max_pdf_pages),
        ]

    @property
    def supported_extensions(self) -> list[str]:
        """Get all supported file extensions.

        Returns:
            List of supported extensions.
        """
        extensions: set[str] = set()
        for parser in self.parsers:
            extensions.update(parser.supported_extensions)
        return sorted(extensions)

    def detect_parser(self, filename: str, mime_type: Optional[str] = None) -> BaseParser | None:
        """Detect the appropriate parser for a file.

        The declared MIME type is checked first across all parsers, then the
        file suffix.

        Args:
            filename: Original file name.
            mime_type: Declared MIME type, if any.

        Returns:
            Parser that can handle the file, or None.
        """
        if mime_type:
            for parser in self.parsers:
                if parser.can_parse("", mime_type):
                    logger.debug(f"File {filename} matched by {parser.name} (MIME {mime_type})")
                    return parser

        for parser in self.parsers:
            if parser.can_parse(filename):
                logger.debug(f"File {filename} matched by {parser.name}")
                return parser

        return None

    def parse(self, content: bytes, filename: str, mime_type: Optional[str] = None) -> ParseResult:
        """Parse a statement using the appropriate parser.

        Args:
            content: Raw file bytes.
            filename: Original file name.
            mime_type: Declared MIME type, if any.

        Returns:
            ParseResult. Unsupported formats yield a single placeholder.

        Raises:
            ParseError: If the upload is too large or the file is unreadable.
        """
        if len(content) > self.config.max_upload_bytes:
            raise ParseError(
                f"File too large ({len(content):,} bytes). "
                f"Maximum allowed is {self.config.max_upload_bytes:,} bytes",
                filename,
            )

        parser = self.detect_parser(filename, mime_type)
        if parser is None:
            logger.warning(f"No parser found for {filename} (MIME {mime_type}), storing placeholder")
            return ParseResult(transactions=[build_placeholder(filename, "unsupported file type")])

        return parser.parse(content, filename)
