"""Abstract base class for statement parsers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from spend_sentinel.models.transaction import RawTransaction

PLACEHOLDER_MERCHANT = "Unparsed Statement"


def build_placeholder(filename: str, reason: str) -> RawTransaction:
    """Build the stand-in record for a statement nothing could be read from.

    The placeholder has a zero amount and the "other" category, so it never
    takes part in anomaly baselines or scoring.

    Args:
        filename: Original file name.
        reason: Short explanation stored in the description.

    Returns:
        Placeholder RawTransaction dated today.
    """
    return RawTransaction(
        date=date.today(),
        merchant=PLACEHOLDER_MERCHANT,
        description=f"No transactions extracted from {filename}: {reason}",
        amount=Decimal("0"),
        category="other",
        source_file=filename,
        is_placeholder=True,
    )


class ParseError(Exception):
    """Exception raised when a whole statement cannot be read."""

    def __init__(self, message: str, filename: Optional[str] = None):
        """Initialize ParseError.

        Args:
            message: Error message.
            filename: Optional name of the file that failed to parse.
        """
        self.filename = filename
        super().__init__(message)


@dataclass
class ParseResult:
    """Transactions extracted from one statement.

    Attributes:
        transactions: Extracted candidates.
        skipped_count: Rows or lines dropped as malformed.
    """

    transactions: list[RawTransaction] = field(default_factory=list)
    skipped_count: int = 0


class BaseParser(ABC):
    """Abstract base class for all statement parsers.

    Subclasses must implement:
    - parse(): Extract raw transactions from file content
    - supported_extensions / supported_mime_types: What this parser handles
    """

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """Return list of file extensions this parser supports.

        Returns:
            List of extensions like ['.csv'].
        """
        pass

    @property
    @abstractmethod
    def supported_mime_types(self) -> list[str]:
        """Return list of MIME types this parser supports."""
        pass

    @property
    def name(self) -> str:
        """Return parser name for logging."""
        return self.__class__.__name__

    def can_parse(self, filename: str, mime_type: Optional[str] = None) -> bool:
        """Check if this parser handles the declared type or file suffix.

        Args:
            filename: Original file name.
            mime_type: Declared MIME type, if any.

        Returns:
            True if either the MIME type or the suffix matches.
        """
        if mime_type and mime_type.split(";")[0].strip().lower() in self.supported_mime_types:
            return True
        return any(filename.lower().endswith(ext) for ext in self.supported_extensions)

    @abstractmethod
    def parse(self, content: bytes, filename: str) -> ParseResult:
        """Parse statement content.

        Args:
            content: Raw file bytes.
            filename: Original file name (for logging and audit).

        Returns:
            ParseResult with the extracted transactions.

        Raises:
            ParseError: If the file as a whole cannot be read.
        """
        pass
