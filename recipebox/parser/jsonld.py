"""Schema.org/Recipe JSON-LD: normalize, validate, import and export."""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import extruct

from recipebox.models import JSONLD_CONTEXT, ParseError, StoredRecipe, is_http_url

logger = logging.getLogger(__name__)

_INTERNAL_FIELDS = {"id", "dateAdded", "dateModified"}
_DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?")


@dataclass
class InvalidRecipe:
    index: int
    name: str
    errors: list[str]


@dataclass
class ImportResult:
    imported: int = 0
    failed: int = 0
    invalid: list[InvalidRecipe] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.imported > 0


def normalize_recipe(data: dict) -> dict:
    """Bring a JSON-LD recipe into the shape the collection stores."""
    item_type = _type_string(data.get("@type", "Recipe"))
    if "Recipe" not in item_type:
        logger.warning("Importing object with @type %r as a Recipe", item_type)

    normalized: dict[str, Any] = {
        "name": str(data.get("name") or "").strip(),
        "recipeIngredient": _normalize_ingredients(data.get("recipeIngredient")),
        "recipeInstructions": normalize_instructions(data.get("recipeInstructions")),
        "description": data.get("description") or "",
        "prepTime": data.get("prepTime") or None,
        "cookTime": data.get("cookTime") or None,
        "totalTime": data.get("totalTime") or None,
        "recipeYield": _normalize_yield(data.get("recipeYield")),
        "image": _normalize_image(data.get("image")),
        "source": data.get("source") or data.get("x-source") or "",
        "sourceUrl": _http_only(data.get("sourceUrl") or data.get("x-sourceUrl")),
        "recipeTags": _normalize_tags(data.get("recipeTags")),
    }
    for key in ("keywords", "recipeCategory", "recipeCuisine"):
        value = data.get(key)
        if value:
            normalized[key] = ", ".join(value) if isinstance(value, list) else str(value)
    return normalized


def validate_recipe(data: dict) -> list[str]:
    """Return a list of problems; empty when the recipe can be stored."""
    errors = []
    if not str(data.get("name") or "").strip():
        errors.append("Recipe name is required")
    if not data.get("recipeIngredient"):
        errors.append("At least one ingredient is required")
    if not data.get("recipeInstructions"):
        errors.append("Recipe instructions are required")
    return errors


def normalize_instructions(raw) -> str:
    """Flatten recipeInstructions into one string, steps separated by a blank line."""
    if isinstance(raw, str):
        return raw.strip()

    if isinstance(raw, dict):
        if raw.get("@type") == "HowToSection":
            return normalize_instructions(raw.get("itemListElement", []))
        return str(raw.get("text", "")).strip()

    if isinstance(raw, list):
        steps = []
        for item in raw:
            if isinstance(item, (dict, list)):
                steps.append(normalize_instructions(item))
            elif item is not None:
                steps.append(str(item).strip())
        return "\n\n".join(s for s in steps if s)

    return ""


def load_recipe_json(text: str) -> list[dict]:
    """Parse an uploaded JSON document into a list of recipe objects.

    Accepts a single recipe, a list of recipes, a ``{"recipes": [...]}``
    collection file, or a JSON-LD ``@graph``.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Rejected invalid JSON upload: %s", e)
        raise ParseError("invalid_json", f"Invalid JSON format: {e.msg} (line {e.lineno}).")

    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if not isinstance(data, dict):
        raise ParseError("invalid_json", "Expected a recipe object or a list of recipes.")
    if isinstance(data.get("recipes"), list):
        return [item for item in data["recipes"] if isinstance(item, dict)]
    if isinstance(data.get("@graph"), list):
        return [
            node
            for node in data["@graph"]
            if isinstance(node, dict) and "Recipe" in _type_string(node.get("@type", ""))
        ]
    return [data]


def extract_jsonld_from_html(html: str, url: str | None = None) -> list[dict]:
    """Find Recipe objects embedded in a saved web page."""
    try:
        # uniform=True gives microdata items the same "@type" shape as JSON-LD
        data = extruct.extract(
            html, base_url=url, syntaxes=["json-ld", "microdata"], uniform=True
        )
    except ValueError as e:
        logger.warning("Rejected page with unreadable structured data: %s", e)
        raise ParseError(
            "invalid_html",
            "The page's recipe data couldn't be read. Try exporting the recipe as JSON instead.",
        ) from e

    recipes = _find_recipe_objects(data.get("json-ld", []))
    if not recipes:
        recipes = _find_recipe_objects(data.get("microdata", []))
    logger.debug("Found %d structured recipes in HTML", len(recipes))
    return recipes


def import_recipes(recipes: list[dict], store) -> ImportResult:
    """Normalize, validate and add recipe objects to ``store``."""
    result = ImportResult()
    valid = []
    for index, raw in enumerate(recipes):
        normalized = normalize_recipe(raw)
        errors = validate_recipe(normalized)
        if errors:
            result.invalid.append(
                InvalidRecipe(
                    index=index,
                    name=normalized["name"] or f"Recipe {index + 1}",
                    errors=errors,
                )
            )
        else:
            valid.append(normalized)

    if result.invalid:
        logger.warning("%d recipes failed validation on import", len(result.invalid))

    if valid:
        added, failures = store.batch_add(valid)
        result.imported = len(added)
        result.failed = len(failures)
        result.errors = failures
    elif not result.invalid:
        result.errors.append("No recipes found in the uploaded file.")

    logger.info(
        "Imported %d recipes (%d invalid, %d failed)",
        result.imported,
        len(result.invalid),
        result.failed,
    )
    return result


def export_recipe(recipe: StoredRecipe) -> dict:
    """Serialize a stored recipe as JSON-LD, dropping collection-only fields."""
    data = recipe.model_dump(mode="json", by_alias=True, exclude_none=True)
    for key in _INTERNAL_FIELDS:
        data.pop(key, None)
    return {"@context": JSONLD_CONTEXT, "@type": "Recipe", **data}


def export_recipes(recipes: list[StoredRecipe]) -> list[dict]:
    return [export_recipe(r) for r in recipes]


def format_duration(duration: str | None) -> str:
    """Convert an ISO 8601 duration to a short string ("PT1H30M" -> "1h 30m")."""
    if not duration:
        return ""
    match = _DURATION_RE.match(duration.upper())
    if not match or not any(match.groups()):
        return duration
    hours, minutes = match.groups()
    parts = []
    if hours and int(hours):
        parts.append(f"{int(hours)}h")
    if minutes and int(minutes):
        parts.append(f"{int(minutes)}m")
    return " ".join(parts)


def minutes_to_duration(minutes: int | None) -> str | None:
    if not minutes or minutes <= 0:
        return None
    return f"PT{minutes}M"


def duration_to_minutes(duration: str | None) -> int | None:
    if not duration:
        return None
    match = _DURATION_RE.match(duration.upper())
    if not match or not any(match.groups()):
        return None
    hours, minutes = match.groups()
    return int(hours or 0) * 60 + int(minutes or 0)


def _find_recipe_objects(data: list[dict]) -> list[dict]:
    """Collect Recipe objects from JSON-LD or microdata items, including @graph."""
    found = []
    for item in data:
        if not isinstance(item, dict):
            continue
        if "Recipe" in _type_string(item.get("@type", "")):
            found.append(item)
        graph = item.get("@graph")
        for node in graph if isinstance(graph, list) else []:
            if isinstance(node, dict) and "Recipe" in _type_string(node.get("@type", "")):
                found.append(node)
    return found


def _type_string(item_type) -> str:
    if isinstance(item_type, list):
        return " ".join(str(t) for t in item_type)
    return str(item_type)


def _normalize_ingredients(raw) -> list[str]:
    if isinstance(raw, list):
        return [str(i).strip() for i in raw if str(i).strip()]
    if isinstance(raw, str):
        return [line.strip() for line in raw.split("\n") if line.strip()]
    return []


def _normalize_yield(raw) -> str:
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    return str(raw) if raw is not None else ""


def _normalize_image(raw) -> str:
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if isinstance(raw, dict):
        raw = raw.get("url")
    return _http_only(raw)


def _http_only(raw) -> str:
    """Links end up in href/src attributes, so anything but http(s) is dropped."""
    value = str(raw).strip() if raw else ""
    return value if is_http_url(value) else ""


def _normalize_tags(raw) -> list[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list):
        return []
    tags: dict[str, None] = {}
    for tag in raw:
        tag = str(tag).strip().lower()
        if tag:
            tags.setdefault(tag)
    return list(tags)
