"""Fuzzy recipe search, sorting and tag filtering."""

import html
import logging
import re
from datetime import datetime, timezone

from thefuzz import fuzz

from recipebox.models import StoredRecipe

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.4
MIN_QUERY_LENGTH = 2

# Name matters most, instructions least
FIELD_WEIGHTS = {
    "name": 2.0,
    "recipe_tags": 1.8,
    "recipe_ingredient": 1.5,
    "description": 1.0,
    "source": 0.8,
    "recipe_instructions": 0.5,
}


def search_recipes(
    recipes: list[StoredRecipe], query: str, threshold: float = DEFAULT_THRESHOLD
) -> list[StoredRecipe]:
    """Return recipes matching ``query``, best match first.

    ``threshold`` follows the 0 (exact) .. 1 (anything) convention: a field
    matches when its partial-ratio score is at least ``(1 - threshold) * 100``.
    """
    query = (query or "").strip().lower()
    if len(query) < MIN_QUERY_LENGTH:
        return list(recipes)

    cutoff = (1 - threshold) * 100
    scored = []
    for position, recipe in enumerate(recipes):
        score = _score(recipe, query, cutoff)
        if score > 0:
            scored.append((score, position, recipe))

    scored.sort(key=lambda s: (-s[0], s[1]))
    logger.debug("Search %r matched %d of %d recipes", query, len(scored), len(recipes))
    return [recipe for _, _, recipe in scored]


def sort_recipes(recipes: list[StoredRecipe], sort_by: str | None) -> list[StoredRecipe]:
    if sort_by == "name":
        return sorted(recipes, key=lambda r: r.name.lower())
    if sort_by == "date":
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(recipes, key=lambda r: r.date_added or epoch, reverse=True)
    return list(recipes)


def all_tags(recipes: list[StoredRecipe]) -> list[str]:
    tags = set()
    for recipe in recipes:
        tags.update(recipe.recipe_tags)
    return sorted(tags)


def filter_by_tags(recipes: list[StoredRecipe], tags: list[str]) -> list[StoredRecipe]:
    """Keep recipes carrying every one of ``tags``."""
    if not tags:
        return list(recipes)
    return [r for r in recipes if all(tag in r.recipe_tags for tag in tags)]


def highlight_terms(text: str, query: str) -> str:
    """HTML-escape ``text`` and wrap each query term in <mark>."""
    text = text or ""
    terms = [t for t in (query or "").split() if t]
    if not terms:
        return html.escape(text)
    # Match on the raw text so terms never land inside an entity
    pattern = re.compile("(%s)" % "|".join(re.escape(t) for t in terms), re.IGNORECASE)
    pieces = pattern.split(text)
    return "".join(
        f"<mark>{html.escape(piece)}</mark>" if i % 2 else html.escape(piece)
        for i, piece in enumerate(pieces)
    )


def _score(recipe: StoredRecipe, query: str, cutoff: float) -> float:
    total = 0.0
    for field, weight in FIELD_WEIGHTS.items():
        value = getattr(recipe, field) or ""
        values = value if isinstance(value, list) else [value]
        best = max((fuzz.partial_ratio(query, v.lower()) for v in values if v), default=0)
        if best >= cutoff:
            total += weight * best
    return total
