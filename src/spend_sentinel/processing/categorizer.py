"""Keyword-based transaction categorizer."""

from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CATEGORY = "other"

# Ordered keyword table. Substring match on the lowercased merchant and
# description; the first category with any hit wins, so order is the
# tie-break.
CATEGORY_KEYWORDS: list[tuple[str, list[str]]] = [
    (
        "dining",
        [
            "restaurant", "coffee", "dining", "starbucks", "mcdonald", "burger",
            "pizza", "cafe", "bistro", "grill", "kitchen", "bar", "pub", "diner",
        ],
    ),
    (
        "groceries",
        [
            "grocery", "supermarket", "food", "walmart", "kroger", "safeway",
            "whole foods", "trader joe", "costco", "target", "fresh market",
        ],
    ),
    (
        "transport",
        [
            "gas", "fuel", "transport", "uber", "lyft", "taxi", "shell", "exxon",
            "chevron", "bp", "mobil", "parking", "metro", "bus",
        ],
    ),
    (
        "shopping",
        [
            "shop", "store", "amazon", "target", "mall", "retail", "clothing",
            "fashion", "electronics", "best buy", "home depot", "lowes",
        ],
    ),
    (
        "utilities",
        [
            "utility", "electric", "water", "internet", "phone", "cable", "power",
            "gas company", "telecom", "wireless",
        ],
    ),
    (
        "entertainment",
        [
            "entertainment", "movie", "netflix", "spotify", "theater", "cinema",
            "streaming", "music", "game", "concert", "show",
        ],
    ),
]


class CategoryClassifier:
    """Assigns a category from merchant and description keywords.

    This is a fixed heuristic, not a learned model. Anything without a
    keyword hit is categorized as "other".
    """

    def __init__(self, table: list[tuple[str, list[str]]] | None = None):
        """Initialize classifier.

        Args:
            table: Ordered (category, keywords) pairs. Defaults to CATEGORY_KEYWORDS.
        """
        self.table = table if table is not None else CATEGORY_KEYWORDS

    def classify(self, merchant: str | None, description: str | None = None) -> str:
        """Classify a transaction.

        Args:
            merchant: Extracted merchant name.
            description: Full statement description.

        Returns:
            Category label.
        """
        text = f"{merchant or ''} {description or ''}".lower()

        for category, keywords in self.table:
            for keyword in keywords:
                if keyword in text:
                    logger.debug(f"Categorized {text.strip()[:40]!r} as {category} (keyword {keyword!r})")
                    return category

        return DEFAULT_CATEGORY


_classifier = CategoryClassifier()


def categorize_transaction(merchant: str | None, description: str | None = None) -> str:
    """Convenience function to categorize a transaction.

    Args:
        merchant: Extracted merchant name.
        description: Full statement description.

    Returns:
        Category label.
    """
    return _classifier.classify(merchant, description)
