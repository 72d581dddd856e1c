"""Canonical deal categories and alias-based fuzzy matching.

Filters store canonical category values (e.g. "electronics"); retailers
label products however they like ("Consumer Electronics", "TV & Video").
A product matches a canonical category when any alias is a
case-insensitive substring of any of its raw categories.
"""

from typing import Dict, Iterable, List, Sequence

CATEGORY_LABELS: Dict[str, str] = {
    "electronics": "Electronics",
    "clothing": "Clothing & Apparel",
    "shoes": "Shoes & Footwear",
    "sports": "Sports & Outdoors",
    "home": "Home & Garden",
    "health": "Health & Beauty",
    "toys": "Toys & Games",
    "food": "Food & Grocery",
    "automotive": "Automotive",
    "baby": "Baby & Kids",
    "pets": "Pet Supplies",
    "office": "Office & School",
    "jewelry": "Jewelry & Watches",
    "luggage": "Luggage & Travel",
}

# Lowercase substrings matched against raw product categories
CATEGORY_ALIASES: Dict[str, List[str]] = {
    "electronics": [
        "electronic", "computer", "laptop", "tablet", "phone", "tv", "television",
        "audio", "video", "camera", "gaming", "console", "smart home", "wearable",
    ],
    "clothing": [
        "clothing", "apparel", "fashion", "men's", "women's", "kids'", "shirts",
        "pants", "dresses", "outerwear", "uniforms", "activewear",
    ],
    "shoes": ["shoe", "footwear", "sneaker", "boot", "sandal", "slipper"],
    "sports": [
        "sport", "outdoor", "fitness", "exercise", "camping", "hiking", "hunting",
        "fishing", "athletic", "recreation",
    ],
    "home": [
        "home", "garden", "furniture", "kitchen", "bedding", "bath", "decor",
        "patio", "lawn", "appliance", "housewares",
    ],
    "health": [
        "health", "beauty", "personal care", "skincare", "makeup", "cosmetic",
        "fragrance", "vitamin", "supplement", "wellness", "grooming",
    ],
    "toys": ["toy", "game", "puzzle", "lego", "action figure", "doll", "board game", "play"],
    "food": ["food", "grocery", "snack", "beverage", "drink", "candy", "gourmet"],
    "automotive": ["auto", "car", "vehicle", "motor", "tire", "automotive"],
    "baby": ["baby", "infant", "toddler", "nursery", "kids", "children"],
    "pets": ["pet", "dog", "cat", "animal"],
    "office": ["office", "school", "stationery", "supplies", "desk"],
    "jewelry": ["jewelry", "jewellery", "watch", "ring", "necklace", "bracelet"],
    "luggage": ["luggage", "travel", "suitcase", "backpack", "bag"],
}


def matches_category(canonical_value: str, product_categories: Iterable[str]) -> bool:
    """True if any alias of ``canonical_value`` occurs in a product category.

    Unknown canonical values never match.
    """
    aliases = CATEGORY_ALIASES.get(canonical_value)
    if not aliases:
        return False
    lowered = [category.lower() for category in product_categories]
    return any(alias in category for alias in aliases for category in lowered)


def matches_any_category(
    canonical_values: Sequence[str],
    product_categories: Sequence[str],
) -> bool:
    """True if the product matches at least one canonical category.

    An empty selection matches everything; a product without categories
    matches no non-empty selection.
    """
    if not canonical_values:
        return True
    if not product_categories:
        return False
    return any(matches_category(value, product_categories) for value in canonical_values)


def matches_any_excluded_category(
    excluded_values: Sequence[str],
    product_categories: Sequence[str],
) -> bool:
    if not excluded_values:
        return False
    return matches_any_category(excluded_values, product_categories)
