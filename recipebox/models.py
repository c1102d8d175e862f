import html
import re
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

JSONLD_CONTEXT = "https://schema.org"

_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


def is_http_url(value: str) -> bool:
    return bool(_HTTP_URL_RE.match(value or ""))


class ParsedRecipe(BaseModel):
    """A recipe segmented out of free text by the smart-add parser.

    Field aliases are the schema.org JSON-LD names so a parsed recipe can be
    dumped straight into the persisted representation.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str = ""
    recipe_ingredient: list[str] = Field(alias="recipeIngredient")
    recipe_instructions: str = Field(alias="recipeInstructions")
    prep_time: str | None = Field(default=None, alias="prepTime")
    cook_time: str | None = Field(default=None, alias="cookTime")
    recipe_yield: str = Field(default="", alias="recipeYield")
    source: str = ""
    source_url: str = Field(default="", alias="sourceUrl")
    recipe_tags: list[str] = Field(default_factory=list, alias="recipeTags")

    def to_jsonld(self) -> dict:
        return {
            "@context": JSONLD_CONTEXT,
            "@type": "Recipe",
            **self.model_dump(by_alias=True),
        }


class Ingredient(BaseModel):
    """A quantity/unit/item triple used for scaling and unit display."""

    amount: float
    unit: str
    item: str


class DisplayAmount(BaseModel):
    amount: str
    unit: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRecipe(BaseModel):
    """A recipe as kept in the collection file."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    recipe_ingredient: list[str] = Field(default_factory=list, alias="recipeIngredient")
    recipe_instructions: str = Field(default="", alias="recipeInstructions")
    prep_time: str | None = Field(default=None, alias="prepTime")
    cook_time: str | None = Field(default=None, alias="cookTime")
    total_time: str | None = Field(default=None, alias="totalTime")
    recipe_yield: str = Field(default="", alias="recipeYield")
    image: str = ""
    source: str = ""
    source_url: str = Field(default="", alias="sourceUrl")
    recipe_tags: list[str] = Field(default_factory=list, alias="recipeTags")
    keywords: str | None = None
    recipe_category: str | None = Field(default=None, alias="recipeCategory")
    recipe_cuisine: str | None = Field(default=None, alias="recipeCuisine")
    date_added: datetime = Field(default_factory=_utcnow, alias="dateAdded")
    date_modified: datetime = Field(default_factory=_utcnow, alias="dateModified")

    @field_validator("source_url", "image")
    @classmethod
    def http_only(cls, value: str) -> str:
        """Links are rendered as href/src, so only http(s) URLs are kept."""
        return value if is_http_url(value) else ""

    @field_validator("date_added", "date_modified")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Hand-written files may carry dates without a timezone
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def clean_text(self) -> "StoredRecipe":
        """Decode HTML entities and strip whitespace from text fields."""
        self.name = html.unescape(self.name).strip()
        self.recipe_ingredient = [
            html.unescape(s).strip() for s in self.recipe_ingredient if s.strip()
        ]
        self.recipe_instructions = html.unescape(self.recipe_instructions).strip()
        return self

    @property
    def steps(self) -> list[str]:
        return [s.strip() for s in self.recipe_instructions.split("\n\n") if s.strip()]


class ParseError(Exception):
    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        self.message = message
        super().__init__(message)


class InvalidArgument(ValueError):
    """Raised for non-finite or out-of-range numbers passed to the converter."""


class RecipeNotFound(KeyError):
    def __init__(self, recipe_id: str):
        self.recipe_id = recipe_id
        super().__init__(recipe_id)
