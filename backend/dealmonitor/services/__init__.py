"""Services used by the scrape job: filtering, dedup and persistence."""

from dealmonitor.services.categories import CATEGORY_ALIASES, CATEGORY_LABELS, matches_any_category
from dealmonitor.services.filter_engine import FilterCriteria, evaluate_variant, find_matching_filters
from dealmonitor.services.seen_tracker import SeenTracker
from dealmonitor.services.store import SqlConfigStore, SqlDealRepository

__all__ = [
    "CATEGORY_ALIASES",
    "CATEGORY_LABELS",
    "matches_any_category",
    "FilterCriteria",
    "evaluate_variant",
    "find_matching_filters",
    "SeenTracker",
    "SqlConfigStore",
    "SqlDealRepository",
]
