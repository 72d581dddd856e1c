"""Filter matching: pure predicates over a Variant and FilterCriteria."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from dealmonitor.scrapers.base import Variant
from dealmonitor.services.categories import matches_any_category, matches_any_excluded_category


@dataclass
class FilterCriteria:
    """A user-configured matching rule (read-only snapshot for one run)."""

    discount_threshold: Decimal  # 1-99, inclusive
    max_price: Optional[Decimal] = None
    keywords: List[str] = field(default_factory=list)
    included_categories: List[str] = field(default_factory=list)
    excluded_categories: List[str] = field(default_factory=list)
    id: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        if self.discount_threshold is None or not (1 <= self.discount_threshold <= 99):
            raise ValueError("discount_threshold must be between 1 and 99")


def evaluate_variant(variant: Variant, criteria: FilterCriteria) -> bool:
    """True when the variant satisfies every criterion of the filter.

    - discount_percentage >= discount_threshold
    - best_price <= max_price (when set)
    - display name contains at least one keyword (when any), case-insensitive
    - categories match an included category (when any)
    - categories match no excluded category (when any)
    """
    if variant.discount_percentage < criteria.discount_threshold:
        return False

    if criteria.max_price is not None and variant.best_price > criteria.max_price:
        return False

    if criteria.keywords:
        name = variant.display_name.lower()
        if not any(keyword.lower() in name for keyword in criteria.keywords):
            return False

    if criteria.included_categories and not matches_any_category(
        criteria.included_categories, variant.categories
    ):
        return False

    if criteria.excluded_categories and matches_any_excluded_category(
        criteria.excluded_categories, variant.categories
    ):
        return False

    return True


def find_matching_filters(
    variant: Variant,
    filters: Sequence[FilterCriteria],
) -> List[FilterCriteria]:
    """All filters the variant satisfies, in input order."""
    return [criteria for criteria in filters if evaluate_variant(variant, criteria)]
