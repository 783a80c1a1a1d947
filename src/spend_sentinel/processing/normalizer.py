"""Merchant name extraction from raw statement descriptions."""

import re

UNKNOWN_MERCHANT = "Unknown Merchant"

MAX_MERCHANT_LENGTH = 50

# Transaction-type prefixes banks put in front of the payee
PREFIX_PATTERN = re.compile(
    r"^(?:(?:PURCHASE|PAYMENT|DEBIT|CREDIT|POS|ATM)\b[\s:*\-]*)+",
    re.IGNORECASE,
)

# Dates embedded in descriptions
EMBEDDED_DATE_PATTERNS = [
    re.compile(r"\b\d{4}-\d{1,2}-\d{1,2}\b"),
    re.compile(r"\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}\b"),
    re.compile(r"\b\d{1,2}\s+[A-Za-z]{3}\s+\d{4}\b"),
]

# Reference tokens like "#12345" or "# AB-991"
REFERENCE_PATTERN = re.compile(r"#\s*[\w\-]+")

# Separators after which the rest of the description is dropped
SEPARATORS = (" - ", " | ", "  ", "\t")


class MerchantNameExtractor:
    """Derives a display merchant name from a statement description.

    The rules are a fixed heuristic:
    - leading PURCHASE/PAYMENT/DEBIT/CREDIT/POS/ATM prefixes are removed
    - embedded dates and #reference tokens are removed
    - the text is cut at the first " - ", " | ", double space or tab
    - the result is capped at 50 characters
    - an empty result becomes "Unknown Merchant"
    """

    def extract(self, description: str | None) -> str:
        """Extract the merchant name.

        Args:
            description: Raw statement description.

        Returns:
            Merchant name, never empty.
        """
        if not description:
            return UNKNOWN_MERCHANT

        name = description.strip()
        name = PREFIX_PATTERN.sub("", name)
        for pattern in EMBEDDED_DATE_PATTERNS:
            name = pattern.sub("", name)
        name = REFERENCE_PATTERN.sub("", name)
        name = self._truncate(name.strip())

        name = re.sub(r"\s+", " ", name).strip(" -|,;:")
        name = name[:MAX_MERCHANT_LENGTH].strip()

        return name or UNKNOWN_MERCHANT

    def _truncate(self, name: str) -> str:
        cut = len(name)
        for separator in SEPARATORS:
            idx = name.find(separator)
            if idx != -1 and idx < cut:
                cut = idx
        return name[:cut]


_extractor = MerchantNameExtractor()


def extract_merchant_name(description: str | None) -> str:
    """Convenience function to extract a merchant name.

    Args:
        description: Raw statement description.

    Returns:
        Merchant name.
    """
    return _extractor.extract(description)
