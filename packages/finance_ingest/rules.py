"""Built-in categorization rules.

Rules name a category (``category_name``) rather than an id; the engine
resolves the name case-insensitively against the caller's catalog, so a rule
only fires for users who actually have that category.

- ``DEFAULT_MERCHANT_RULES``: exact merchant matches, confidence 100.
- ``DEFAULT_KEYWORD_RULES``: keyword groups matched as substrings of the
  merchant (group confidence) or of the description (group confidence - 10).
  Declaration order decides between groups.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StaticRule:
    category_name: str
    confidence: int
    merchant_pattern: str | None = None
    keywords: tuple[str, ...] = ()


def _merchants(category_name: str, *patterns: str) -> tuple[StaticRule, ...]:
    return tuple(StaticRule(category_name, 100, merchant_pattern=p) for p in patterns)


DEFAULT_MERCHANT_RULES: tuple[StaticRule, ...] = (
    *_merchants(
        "Dining",
        "STARBUCKS",
        "MCDONALDS",
        "SUBWAY",
        "CHIPOTLE",
        "PANERA BREAD",
        "DUNKIN",
        "TACO BELL",
        "PIZZA HUT",
        "DOMINOS",
        "BURGER KING",
        "WENDYS",
        "KFC",
    ),
    *_merchants(
        "Shopping",
        "AMAZON",
        "WALMART",
        "TARGET",
        "COSTCO",
        "BEST BUY",
        "HOME DEPOT",
        "LOWES",
        "IKEA",
        "MACYS",
        "NORDSTROM",
    ),
    *_merchants(
        "Groceries",
        "WHOLE FOODS",
        "TRADER JOES",
        "SAFEWAY",
        "KROGER",
        "PUBLIX",
        "ALBERTSONS",
    ),
    *_merchants(
        "Transportation",
        "SHELL",
        "CHEVRON",
        "EXXON",
        "BP",
        "MOBIL",
        "UBER",
        "LYFT",
        "PARKING",
    ),
    *_merchants("Utilities", "AT&T", "VERIZON", "COMCAST", "SPECTRUM", "T-MOBILE"),
    *_merchants(
        "Entertainment",
        "NETFLIX",
        "SPOTIFY",
        "HULU",
        "DISNEY+",
        "HBO",
        "AMC THEATRES",
        "REGAL CINEMAS",
    ),
    *_merchants("Healthcare", "CVS", "WALGREENS", "RITE AID"),
)

DEFAULT_KEYWORD_RULES: tuple[StaticRule, ...] = (
    StaticRule(
        "Dining", 85, keywords=("RESTAURANT", "CAFE", "COFFEE", "DINER", "BAKERY", "BISTRO", "GRILL")
    ),
    StaticRule("Dining", 85, keywords=("PIZZA", "BURGER", "SUSHI", "TACO", "BBQ", "STEAKHOUSE")),
    StaticRule("Transportation", 85, keywords=("GAS", "FUEL", "GASOLINE", "PETROL")),
    StaticRule("Transportation", 85, keywords=("PARKING", "TOLL", "AUTO", "CAR WASH")),
    StaticRule("Groceries", 85, keywords=("GROCERY", "MARKET", "SUPERMARKET", "FOOD MART")),
    StaticRule("Shopping", 75, keywords=("STORE", "SHOP", "RETAIL", "MALL")),
    StaticRule(
        "Utilities",
        85,
        keywords=("ELECTRIC", "POWER", "UTILITY", "WATER", "INTERNET", "CABLE", "PHONE"),
    ),
    StaticRule(
        "Healthcare", 85, keywords=("PHARMACY", "MEDICAL", "CLINIC", "HOSPITAL", "DOCTOR", "DENTAL")
    ),
    StaticRule("Entertainment", 80, keywords=("MOVIE", "CINEMA", "THEATRE", "THEATER", "STREAMING")),
)


__all__ = ["StaticRule", "DEFAULT_MERCHANT_RULES", "DEFAULT_KEYWORD_RULES"]
