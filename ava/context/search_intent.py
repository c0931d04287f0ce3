"""Search intent inference over a session's query history.

A small lexicon-driven classifier: no model, just category/brand keyword
tables, price and specificity markers, and term frequency.
"""

from __future__ import annotations

import re
from collections import Counter

from ava.models.context import IntentType, PriceSensitivity, SearchContext, SearchIntent

MAX_CONFIDENCE = 0.95

CATEGORY_MAP: dict[str, str] = {
    # electronics
    "laptop": "laptops",
    "macbook": "laptops",
    "notebook": "laptops",
    "chromebook": "laptops",
    "ultrabook": "laptops",
    "gaming": "gaming laptops",
    "phone": "smartphones",
    "iphone": "smartphones",
    "android": "smartphones",
    "smartphone": "smartphones",
    "tablet": "tablets",
    "ipad": "tablets",
    "headphone": "headphones",
    "headphones": "headphones",
    "earbuds": "earbuds",
    "airpods": "earbuds",
    "charger": "chargers & cables",
    "cable": "chargers & cables",
    "case": "cases & covers",
    "keyboard": "keyboards",
    "mouse": "mice & accessories",
    "monitor": "monitors",
    # fashion
    "dress": "dresses",
    "shirt": "shirts",
    "tshirt": "t-shirts",
    "jeans": "jeans",
    "pants": "pants",
    "jacket": "jackets",
    "coat": "coats",
    "sweater": "sweaters",
    "hoodie": "hoodies",
    "shoe": "footwear",
    "shoes": "footwear",
    "sneaker": "sneakers",
    "sneakers": "sneakers",
    "boot": "boots",
    "boots": "boots",
    "sandal": "sandals",
    "heel": "heels",
    "bag": "bags",
    "purse": "bags",
    "wallet": "wallets",
    "watch": "watches",
    "ring": "rings",
    "necklace": "necklaces",
    "bracelet": "bracelets",
    "sunglasses": "eyewear",
    # home
    "furniture": "furniture",
    "chair": "chairs",
    "desk": "desks",
    "table": "tables",
    "lamp": "lighting",
    "rug": "rugs",
    # outdoors
    "fitness": "fitness equipment",
    "yoga": "yoga & pilates",
    "camping": "camping gear",
    "hiking": "outdoor gear",
}

# token -> (category, brand)
BRAND_MAP: dict[str, tuple[str, str]] = {
    "apple": ("electronics", "Apple"),
    "macbook": ("laptops", "Apple"),
    "iphone": ("smartphones", "Apple"),
    "ipad": ("tablets", "Apple"),
    "airpods": ("earbuds", "Apple"),
    "samsung": ("electronics", "Samsung"),
    "galaxy": ("smartphones", "Samsung"),
    "dell": ("laptops", "Dell"),
    "hp": ("laptops", "HP"),
    "lenovo": ("laptops", "Lenovo"),
    "thinkpad": ("laptops", "Lenovo"),
    "asus": ("laptops", "ASUS"),
    "acer": ("laptops", "Acer"),
    "sony": ("electronics", "Sony"),
    "bose": ("headphones", "Bose"),
    "nike": ("footwear", "Nike"),
    "adidas": ("footwear", "Adidas"),
    "puma": ("footwear", "Puma"),
}

BUDGET_MARKERS = frozenset({"cheap", "budget", "affordable", "under", "inexpensive", "deal", "sale", "discount"})
BUDGET_PHRASES = ("less than",)
PREMIUM_MARKERS = frozenset({"best", "premium", "pro", "high-end", "luxury", "professional", "top"})
SPECIFICITY_MARKERS = frozenset(
    {"inch", "gb", "tb", "ram", "ssd", "hz", "core", "i5", "i7", "i9", "ryzen", "size", "color"}
)
COMPARISON_MARKERS = frozenset({"vs", "versus", "compare", "or"})
RESEARCH_MARKERS = frozenset({"best", "review", "reviews", "which", "recommend"})

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9\-]*")
# Matches "16gb", "15inch", "144hz" as well as the bare unit.
_UNIT_SUFFIX_RE = re.compile(r"^\d+(gb|tb|hz|inch)$")


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _has_specifics(tokens: list[str]) -> bool:
    return any(token in SPECIFICITY_MARKERS or _UNIT_SUFFIX_RE.match(token) for token in tokens)


def _price_sensitivity(tokens: set[str], text: str) -> PriceSensitivity:
    if tokens & BUDGET_MARKERS or any(phrase in text for phrase in BUDGET_PHRASES):
        return "budget"
    if tokens & PREMIUM_MARKERS:
        return "premium"
    return "neutral"


def analyze_search_intent(search: SearchContext) -> SearchIntent:
    queries = search.queries
    if not queries:
        return SearchIntent()

    text = " ".join(item.query.lower() for item in queries)
    tokens = [token for token in _tokenize(text) if len(token) > 1 or token.isdigit()]
    frequency = Counter(tokens)
    token_set = set(tokens)

    category: str | None = None
    strength = 0.0
    for token in tokens:
        if token in CATEGORY_MAP:
            category = CATEGORY_MAP[token]
            strength = min(0.9, 0.5 + frequency[token] * 0.1)
            break

    brand: str | None = None
    for token in tokens:
        if token in BRAND_MAP:
            brand_category, brand = BRAND_MAP[token]
            category = category or brand_category
            strength = min(MAX_CONFIDENCE, strength + 0.2)
            break

    price_sensitivity = _price_sensitivity(token_set, text)
    specific = _has_specifics(tokens)
    failed = sum(1 for item in queries if item.results_count == 0)

    intent_type: IntentType = "browsing"
    if specific or (brand and category):
        intent_type = "specific_product"
    if token_set & COMPARISON_MARKERS:
        intent_type = "comparison"
    if token_set & RESEARCH_MARKERS:
        intent_type = "research"
    if failed >= 2 and not specific and not brand:
        intent_type = "browsing"

    filters: list[str] = []
    if brand:
        filters.append(f"brand:{brand}")
    if price_sensitivity == "budget":
        filters.append("price:low-to-high")
    elif price_sensitivity == "premium":
        filters.append("price:high-to-low")

    confidence = strength
    if brand:
        confidence = min(MAX_CONFIDENCE, confidence + 0.15)
    if len(queries) > 2:
        confidence = min(MAX_CONFIDENCE, confidence + 0.1)
    if failed:
        confidence = max(0.3, confidence - 0.1)

    return SearchIntent(
        category=category,
        brand=brand,
        intent_type=intent_type,
        price_sensitivity=price_sensitivity,
        confidence=round(min(confidence, MAX_CONFIDENCE), 4),
        suggested_filters=filters,
    )


__all__ = ["BRAND_MAP", "CATEGORY_MAP", "analyze_search_intent"]
