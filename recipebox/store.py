"""Recipe collection persisted to a local JSON file."""

import json
import logging
import secrets
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from recipebox.models import RecipeNotFound, StoredRecipe

logger = logging.getLogger(__name__)

DEFAULT_TAGS = [
    "appetizers", "asian", "bbq", "beverages", "bread", "breakfast", "chicken",
    "cuban", "desserts", "dinner", "grilling", "holiday", "indian", "italian",
    "mexican", "one-pan", "pasta", "pizza", "pork", "quick & easy", "rice",
    "salads", "seafood", "slow cooker", "soups", "vegetarian",
]

Listener = Callable[[list[StoredRecipe]], None]


class RecipeStore:
    """Keeps recipes in memory and rewrites the JSON file after each change.

    The file holds ``{"recipes": [...], "availableTags": [...]}``. When it
    does not exist yet, an optional read-only seed file with the same shape
    is used to populate the collection.
    """

    def __init__(self, path: Path, seed_path: Path | None = None):
        self.path = Path(path)
        self.seed_path = Path(seed_path) if seed_path else None
        self._recipes: dict[str, StoredRecipe] = {}
        self._tags: list[str] = []
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def load(self) -> None:
        source = self.path
        if not source.exists() and self.seed_path and self.seed_path.exists():
            logger.info("No collection at %s, seeding from %s", self.path, self.seed_path)
            source = self.seed_path

        data = self._read(source)
        recipes = data.get("recipes", []) if isinstance(data, dict) else data
        self._recipes = {}
        for raw in recipes or []:
            try:
                recipe = StoredRecipe.model_validate(
                    {"id": raw.get("id") or _new_id(), **{k: v for k, v in raw.items() if k != "id"}}
                )
            except (ValidationError, AttributeError) as e:
                logger.warning("Skipping unreadable recipe in %s: %s", source, e)
                continue
            self._recipes[recipe.id] = recipe
        self._tags = list(data.get("availableTags") or []) if isinstance(data, dict) else []
        logger.info("Loaded %d recipes from %s", len(self._recipes), source)

    @property
    def available_tags(self) -> list[str]:
        """Persisted tag menu merged with every tag in use, sorted."""
        tags = set(self._tags or DEFAULT_TAGS)
        for recipe in self._recipes.values():
            tags.update(recipe.recipe_tags)
        return sorted(tags)

    def list_recipes(self) -> list[StoredRecipe]:
        return list(self._recipes.values())

    def get(self, recipe_id: str) -> StoredRecipe:
        try:
            return self._recipes[recipe_id]
        except KeyError:
            raise RecipeNotFound(recipe_id)

    def find_by_name(self, name: str) -> StoredRecipe | None:
        wanted = name.strip().lower()
        for recipe in self._recipes.values():
            if recipe.name.lower() == wanted:
                return recipe
        return None

    def add(self, data: dict) -> StoredRecipe:
        with self._lock:
            recipe = self._build(data)
            self._recipes[recipe.id] = recipe
            self._save()
        logger.info("Added recipe %r (%s)", recipe.name, recipe.id)
        self._notify()
        return recipe

    def batch_add(self, items: list[dict]) -> tuple[list[StoredRecipe], list[str]]:
        """Add several recipes with one write; returns (added, error messages)."""
        added, errors = [], []
        with self._lock:
            for data in items:
                try:
                    recipe = self._build(data)
                except ValidationError as e:
                    errors.append(f"{data.get('name') or 'Unknown'}: {e.error_count()} invalid fields")
                    continue
                self._recipes[recipe.id] = recipe
                added.append(recipe)
            if added:
                self._save()
        if added:
            self._notify()
        return added, errors

    def update(self, recipe_id: str, data: dict) -> StoredRecipe:
        with self._lock:
            current = self.get(recipe_id)
            merged = {
                **current.model_dump(by_alias=True),
                **{k: v for k, v in data.items() if k not in ("id", "dateAdded")},
                "dateModified": _utcnow(),
            }
            recipe = StoredRecipe.model_validate(merged)
            self._recipes[recipe_id] = recipe
            self._save()
        logger.info("Updated recipe %r (%s)", recipe.name, recipe_id)
        self._notify()
        return recipe

    def delete(self, recipe_id: str) -> None:
        with self._lock:
            recipe = self._recipes.pop(recipe_id, None)
            if recipe is None:
                raise RecipeNotFound(recipe_id)
            self._save()
        logger.info("Deleted recipe %r (%s)", recipe.name, recipe_id)
        self._notify()

    def on_change(self, callback: Listener) -> Callable[[], None]:
        """Call ``callback`` with all recipes after every change.

        Returns a function that removes the listener.
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _build(self, data: dict) -> StoredRecipe:
        now = _utcnow()
        fields = {k: v for k, v in data.items() if k not in ("id", "dateAdded", "dateModified")}
        return StoredRecipe.model_validate(
            {"id": _new_id(), **fields, "dateAdded": now, "dateModified": now}
        )

    def _read(self, path: Path):
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not read recipe file %s: %s", path, e)
            return {}

    def _save(self) -> None:
        data = {
            "recipes": [r.model_dump(mode="json", by_alias=True) for r in self._recipes.values()],
            "availableTags": self._tags,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp.replace(self.path)

    def _notify(self) -> None:
        recipes = self.list_recipes()
        for listener in list(self._listeners):
            listener(recipes)


def _new_id() -> str:
    return secrets.token_hex(8)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
