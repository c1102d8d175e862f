"""Ingredient string parsing using ingredient-parser-nlp."""

import logging
import math
import re

from cachetools import LRUCache
from ingredient_parser import parse_ingredient

from recipebox.models import Ingredient

logger = logging.getLogger(__name__)

DEFAULT_UNIT = "whole"

# "1/0 cup" has no meaningful quantity
_ZERO_DENOMINATOR_RE = re.compile(r"\d\s*/\s*0+(?![\d.])")

# The same stored lines are parsed on every page view
_line_cache: LRUCache[str, Ingredient] = LRUCache(maxsize=1024)

# pint unit names -> the short tokens the conversion tables use
_UNIT_NORMALIZE = {
    "gram": "g",
    "kilogram": "kg",
    "milliliter": "ml",
    "millilitre": "ml",
    "liter": "l",
    "litre": "l",
    "fluid_ounce": "fl oz",
    "degree_Celsius": "°C",
    "degree_Fahrenheit": "°F",
    "tbsps": "tbsp",
    "tsps": "tsp",
    "cloves": "clove",
    "slices": "slice",
}


def parse_ingredients(text: str) -> list[Ingredient]:
    """Parse one ingredient per non-empty line."""
    lines = [line.strip() for line in text.split("\n")]
    return [parse_ingredient_line(line) for line in lines if line]


def parse_ingredient_line(line: str) -> Ingredient:
    """Parse "2 cups flour" into Ingredient(2.0, "cup", "flour").

    Lines without a usable quantity count as one whole item.
    """
    line = line.strip()
    cached = _line_cache.get(line)
    if cached is not None:
        return cached

    ingredient = _parse_single(line)
    _line_cache[line] = ingredient
    return ingredient


def _parse_single(line: str) -> Ingredient:
    unparsed = Ingredient(amount=1, unit=DEFAULT_UNIT, item=line)
    if _ZERO_DENOMINATOR_RE.search(line):
        logger.debug("Zero denominator in ingredient line: %s", line)
        return unparsed
    try:
        result = parse_ingredient(line)
        amt = _find_primary_amount(result)
        if amt is None:
            logger.debug("No quantity in ingredient line: %s", line)
            return unparsed
        amount = float(amt.quantity)
        unit = _extract_unit(amt)
        item = _extract_item(result)
    except Exception:
        logger.debug("Failed to parse ingredient: %s", line)
        return unparsed

    if not math.isfinite(amount) or amount < 0 or not item:
        return unparsed
    return Ingredient(amount=amount, unit=unit, item=item)


def _find_primary_amount(result):
    """Return the first amount entry that has a real numeric quantity.

    "Heaping 1/3 cup" yields an entry for "Heaping" with an empty quantity
    before the one for "1/3 cup".
    """
    if not result.amount:
        return None
    for amt in result.amount:
        if amt.quantity != "" and amt.quantity is not None:
            return amt
    return None


def _extract_unit(amt) -> str:
    unit = amt.unit if isinstance(amt.unit, str) else str(amt.unit)
    unit = unit.strip()
    if unit in ("", "None", "dimensionless"):
        return DEFAULT_UNIT
    return _UNIT_NORMALIZE.get(unit, unit)


def _extract_item(result) -> str:
    """Name parts plus preparation and comment: "onion, diced"."""
    if not result.name:
        return ""
    item = " and ".join(part.text for part in result.name)
    extras = [field.text for field in (result.preparation, result.comment) if field]
    return ", ".join([item, *extras])
