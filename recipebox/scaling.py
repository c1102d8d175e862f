"""Ingredient scaling and metric/US display conversion."""

import bisect
import logging
import math
from collections.abc import Callable
from typing import Literal

from recipebox.models import DisplayAmount, Ingredient, InvalidArgument

logger = logging.getLogger(__name__)

DisplaySystem = Literal["metric", "us"]
FormatMode = Literal["card", "page"]

NON_SCALABLE_UNITS = frozenset({"whole", "each", "clove", "slice"})
TEMPERATURE_UNITS = frozenset({"°c", "°f", "celsius", "fahrenheit", "f"})

# -- "Scale card" formatting: nearest eighth-style glyph below 1 --

_CARD_GLYPHS = [
    (1 / 8, "⅛"),
    (1 / 4, "¼"),
    (1 / 3, "⅓"),
    (1 / 2, "½"),
    (5 / 8, "⅝"),
    (2 / 3, "⅔"),
    (3 / 4, "¾"),
    (7 / 8, "⅞"),
]
# Midpoints between neighbouring glyph values
_CARD_BREAKPOINTS = [
    (a + b) / 2 for (a, _), (b, _) in zip(_CARD_GLYPHS, _CARD_GLYPHS[1:])
]

# -- "Full recipe page" formatting: common fractions within a tolerance --

_PAGE_FRACTIONS = {
    0.125: "⅛",
    0.25: "¼",
    0.333: "⅓",
    0.5: "½",
    0.667: "⅔",
    0.75: "¾",
}
_PAGE_TOLERANCE = 0.01

# Metric -> US, keyed by the exact stored unit token
_US_FACTORS = {
    "g": (0.035274, "oz"),
    "kg": (2.20462, "lbs"),
    "ml": (0.033814, "fl oz"),
    "l": (4.22675, "cups"),
}
_US_FORMULAS: dict[str, tuple[Callable[[float], float], str]] = {
    "°C": (lambda c: _round_half_up(c * 9 / 5 + 32), "°F"),
}

# US -> metric, keyed by the lower-cased unit token
_METRIC_FACTORS = {
    "cup": (240, "ml"),
    "cups": (240, "ml"),
    "c": (240, "ml"),
    "tablespoon": (15, "ml"),
    "tablespoons": (15, "ml"),
    "tbsp": (15, "ml"),
    "tbs": (15, "ml"),
    "teaspoon": (5, "ml"),
    "teaspoons": (5, "ml"),
    "tsp": (5, "ml"),
    "ounce": (28.35, "g"),
    "ounces": (28.35, "g"),
    "oz": (28.35, "g"),
    "pound": (0.45359, "kg"),
    "pounds": (0.45359, "kg"),
    "lb": (0.45359, "kg"),
    "lbs": (0.45359, "kg"),
}
_FAHRENHEIT_UNITS = frozenset({"fahrenheit", "°f", "f"})


def scale(amount: float, unit: str, factor: float) -> float:
    """Multiply ``amount`` by ``factor`` unless ``unit`` is a counted unit."""
    _check_factor(factor)
    _check_amount(amount, unit)
    if unit in NON_SCALABLE_UNITS:
        return amount
    return amount * factor


def format_amount(amount: float) -> str:
    """Format an amount for the scale card (eighths below 1, one decimal below 10)."""
    _check_amount(amount, "")
    if amount == 0:
        return "0"
    if amount < 1:
        index = bisect.bisect_left(_CARD_BREAKPOINTS, amount)
        return _CARD_GLYPHS[index][1]
    if amount % 1 == 0:
        return str(int(amount))
    if amount < 10:
        return f"{amount:.1f}"
    return str(_round_half_up(amount))


def format_fraction(amount: float) -> str:
    """Format an amount for the full recipe page.

    Common fractions become vulgar-fraction glyphs, including mixed numbers
    ("2½"). Anything else is shown with at most two decimals.
    """
    _check_amount(amount, "")
    if amount % 1 == 0:
        return str(int(amount))

    whole = math.floor(amount)
    glyph = _match_fraction(amount - whole)
    if glyph is not None:
        return f"{whole}{glyph}" if whole else glyph
    # 1.999 sits within tolerance of the next integer
    if amount - whole > 1 - _PAGE_TOLERANCE:
        return str(whole + 1)
    return f"{amount:.2f}".rstrip("0").rstrip(".")


def to_us_display(amount: float, unit: str) -> DisplayAmount:
    """Convert a metric (amount, unit) pair for US display."""
    _check_amount(amount, unit)
    if unit in _US_FORMULAS:
        formula, us_unit = _US_FORMULAS[unit]
        return DisplayAmount(amount=str(formula(amount)), unit=us_unit)
    if unit in _US_FACTORS:
        factor, us_unit = _US_FACTORS[unit]
        return DisplayAmount(amount=format_amount(amount * factor), unit=us_unit)
    return _passthrough(amount, unit, format_amount)


def to_metric_display(amount: float, unit: str) -> DisplayAmount:
    """Convert a US (amount, unit) pair for metric display.

    Volumes land in whole millilitres, ounces in whole grams and pounds in
    kilograms to two decimals. Units that are already metric (or unknown)
    keep their unit and are shown with ``format_fraction``.
    """
    _check_amount(amount, unit)
    key = unit.lower()
    if key in _FAHRENHEIT_UNITS:
        return DisplayAmount(amount=str(_round_half_up((amount - 32) * 5 / 9)), unit="°C")
    if key in _METRIC_FACTORS:
        factor, metric_unit = _METRIC_FACTORS[key]
        value = amount * factor
        if metric_unit == "kg":
            text = f"{value:.2f}".rstrip("0").rstrip(".")
        else:
            text = str(_round_half_up(value))
        return DisplayAmount(amount=text, unit=metric_unit)
    return _passthrough(amount, unit, format_fraction)


def convert(amount: float, unit: str, to_metric: bool) -> DisplayAmount:
    """Scale-card conversion: metric mode shows stored units as they are."""
    if to_metric:
        return _passthrough(amount, unit, format_amount)
    return to_us_display(amount, unit)


def scale_and_convert(
    ingredient: Ingredient, factor: float, display_system: DisplaySystem
) -> DisplayAmount:
    """Scale an ingredient and convert it to the requested unit system.

    "us" converts metric units to US ones, "metric" converts US units to
    metric ones. Units with no counterpart pass through.
    """
    amount = scale(ingredient.amount, ingredient.unit, factor)
    if display_system == "us":
        return to_us_display(amount, ingredient.unit)
    if display_system == "metric":
        return to_metric_display(amount, ingredient.unit)
    raise InvalidArgument(f"Unknown display system {display_system!r}")


def format_ingredient(
    ingredient: Ingredient,
    factor: float = 1,
    display_system: DisplaySystem = "metric",
    mode: FormatMode = "page",
) -> str:
    """Render an ingredient line such as "2½ cups flour".

    "page" uses ``scale_and_convert``; "card" uses the scale-card pair
    ``scale`` + ``convert``.
    """
    if mode == "card":
        amount = scale(ingredient.amount, ingredient.unit, factor)
        shown = convert(amount, ingredient.unit, display_system == "metric")
    else:
        shown = scale_and_convert(ingredient, factor, display_system)
    # Counted items read better without the placeholder unit
    parts = [shown.amount] if shown.unit in ("", "whole") else [shown.amount, shown.unit]
    return " ".join([*parts, ingredient.item]).strip()


def _match_fraction(fraction: float) -> str | None:
    for value, glyph in _PAGE_FRACTIONS.items():
        if abs(fraction - value) <= _PAGE_TOLERANCE:
            return glyph
    return None


def _passthrough(amount: float, unit: str, formatter) -> DisplayAmount:
    _check_amount(amount, unit)
    # Temperatures can be below zero and are shown in whole degrees
    if unit.lower() in TEMPERATURE_UNITS:
        return DisplayAmount(amount=str(_round_half_up(amount)), unit=unit)
    return DisplayAmount(amount=formatter(amount), unit=unit)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _check_factor(factor: float) -> None:
    if not math.isfinite(factor) or factor <= 0:
        logger.warning("Rejected scale factor %r", factor)
        raise InvalidArgument(f"Scale factor must be a positive number, got {factor!r}")


def _check_amount(amount: float, unit: str) -> None:
    if not math.isfinite(amount):
        raise InvalidArgument(f"Amount must be a finite number, got {amount!r}")
    if amount < 0 and unit.lower() not in TEMPERATURE_UNITS:
        raise InvalidArgument(f"Amount must not be negative, got {amount!r}")
