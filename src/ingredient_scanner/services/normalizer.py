"""Matching keys for product identity resolution."""

import re

# Generic category words that label photos add or drop inconsistently.
STOPWORDS = frozenset(
    {
        "drink",
        "drinks",
        "soft",
        "snack",
        "snacks",
        "product",
        "products",
        "brand",
        "mix",
        "bar",
        "bars",
        "food",
        "foods",
        "beverage",
        "beverages",
        "packaged",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize_key(brand: str | None, name: str | None) -> str:
    """Return the fuzzy matching key for a brand and product name.

    An empty result means the pair carries nothing usable for matching.
    """
    text = " ".join(part for part in (brand, name) if part).lower()
    text = _PUNCTUATION.sub(" ", text)
    tokens = [token for token in text.split() if token not in STOPWORDS]
    return " ".join(tokens)


def exact_key(name: str | None, brand: str | None) -> str:
    """Return the case- and whitespace-insensitive equality key."""
    return f"{_squash(name)}|{_squash(brand)}"


def _squash(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().lower()
