"""Smart-add: segment pasted recipe text into a structured recipe."""

import logging
import re

from recipebox.models import ParsedRecipe, ParseError

logger = logging.getLogger(__name__)

# Metadata is only looked for this close to the top of the text
_METADATA_LINES = 5
# Auto-detection starts after the name and at least one more line
_AUTODETECT_FROM = 2
_MIN_DESCRIPTION_LENGTH = 10

_TIME_UNITS = r"(min|minutes|minute|hours|hour|hrs|hr)"
_PREP_RE = re.compile(rf"prep(?:\s+time)?:\s*(\d+)\s*{_TIME_UNITS}", re.IGNORECASE)
_COOK_RE = re.compile(rf"cook(?:\s+time)?:\s*(\d+)\s*{_TIME_UNITS}", re.IGNORECASE)
_YIELD_RE = re.compile(r"(?:serves|servings|yield|makes):\s*(.+)", re.IGNORECASE)
_METADATA_WORDS_RE = re.compile(r"prep|cook|serves|yield|makes", re.IGNORECASE)

_SECTION_HEADERS = [
    ("ingredients", re.compile(r"^ingredients?:?$")),
    ("instructions", re.compile(r"^(?:instructions?|directions?|steps?|method):?$")),
    ("source", re.compile(r"^(?:source|from|recipe\s+from):?$")),
    ("tags", re.compile(r"^(?:tags?|categories?):?$")),
]

_FRACTION_GLYPHS = "¼½¾⅓⅔⅛⅜⅝⅞⅕⅖⅗⅘⅙⅚"
_INGREDIENT_START_RE = re.compile(rf"^[\d\-•*{_FRACTION_GLYPHS}]")
_BULLET_RE = re.compile(r"^[-•*–]\s*")
_NUMBERED_STEP_RE = re.compile(r"^\d+[.)]\s")
_URL_RE = re.compile(r"^https?://")

COOKING_VERBS = (
    "add", "bake", "beat", "blend", "boil", "bring", "broil", "brown", "chill",
    "chop", "combine", "cook", "cover", "cream", "cut", "dice", "drain", "fold",
    "fry", "garnish", "grate", "grease", "grill", "heat", "knead", "let", "line",
    "marinate", "melt", "mince", "mix", "place", "pour", "preheat", "put",
    "reduce", "refrigerate", "remove", "rinse", "roast", "roll", "saute",
    "sauté", "season", "serve", "set", "simmer", "slice", "spread", "sprinkle",
    "stir", "strain", "top", "toss", "transfer", "whisk",
)
_COOKING_VERB_RE = re.compile(
    r"^(?:%s)\b" % "|".join(COOKING_VERBS), re.IGNORECASE
)


def parse_recipe_text(text: str) -> ParsedRecipe:
    """Parse pasted recipe text into a ParsedRecipe.

    The first non-empty line is the name. Sections are switched by explicit
    headers ("Ingredients:", "Directions", ...) or, when the text has none, by
    recognising the first bullet/quantity line and the first cooking-verb line.

    Raises ParseError when no name, ingredients or instructions are found.
    """
    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if line]

    name = re.sub(r"^#+\s*", "", lines[0]) if lines else ""
    description = ""
    ingredients: list[str] = []
    instruction_lines: list[str] = []
    prep_time = cook_time = None
    recipe_yield = ""
    source = source_url = ""
    tags: dict[str, None] = {}

    section = "header"
    explicit_header = False

    for i, line in enumerate(lines[1:], start=1):
        if i < _METADATA_LINES:
            if m := _PREP_RE.search(line):
                prep_time = _to_duration(m.group(1), m.group(2))
            if m := _COOK_RE.search(line):
                cook_time = _to_duration(m.group(1), m.group(2))
            if m := _YIELD_RE.search(line):
                recipe_yield = m.group(1).strip()

        header = _match_header(line.lower())
        if header is not None:
            section = header
            explicit_header = True
            continue

        if not explicit_header and i >= _AUTODETECT_FROM:
            if not ingredients and section == "header" and _looks_like_ingredient(line):
                logger.debug("Auto-detected ingredients at line %d: %r", i, line)
                section = "ingredients"
            elif ingredients and not instruction_lines and _looks_like_instruction(line):
                logger.debug("Auto-detected instructions at line %d: %r", i, line)
                section = "instructions"

        if section == "ingredients":
            ingredient = _BULLET_RE.sub("", line).strip()
            if ingredient:
                ingredients.append(ingredient)
        elif section == "instructions":
            instruction_lines.append(line)
        elif section == "source":
            source = line
            if _URL_RE.match(line):
                source_url = line
        elif section == "tags":
            for tag in line.split(","):
                tag = tag.strip().lower()
                if tag:
                    tags.setdefault(tag)
        elif (
            not description
            and len(line) > _MIN_DESCRIPTION_LENGTH
            and not _METADATA_WORDS_RE.search(line)
        ):
            description = line

    instructions = "\n\n".join(instruction_lines)

    if not name:
        raise ParseError(
            "missing_name",
            "Couldn't find a recipe name. Put the recipe's name on the first line.",
        )
    if not ingredients:
        raise ParseError(
            "missing_ingredients",
            "Couldn't find any ingredients. Add an \"Ingredients:\" header "
            "or start each ingredient with \"-\".",
        )
    if not instructions:
        raise ParseError(
            "missing_instructions",
            "Couldn't find any instructions. Add an \"Instructions:\" header "
            "above the steps.",
        )

    logger.debug(
        "Parsed %r: %d ingredients, %d instruction lines",
        name,
        len(ingredients),
        len(instruction_lines),
    )
    return ParsedRecipe(
        name=name,
        description=description,
        recipe_ingredient=ingredients,
        recipe_instructions=instructions,
        prep_time=prep_time,
        cook_time=cook_time,
        recipe_yield=recipe_yield,
        source=source,
        source_url=source_url,
        recipe_tags=list(tags),
    )


def _to_duration(amount: str, unit: str) -> str:
    """'10', 'minutes' -> 'PT10M'; hours stay hours."""
    suffix = "H" if unit.lower().startswith("h") else "M"
    return f"PT{int(amount)}{suffix}"


def _match_header(lower_line: str) -> str | None:
    for section, pattern in _SECTION_HEADERS:
        if pattern.match(lower_line):
            return section
    return None


def _looks_like_ingredient(line: str) -> bool:
    return bool(_INGREDIENT_START_RE.match(line))


def _looks_like_instruction(line: str) -> bool:
    return bool(_COOKING_VERB_RE.match(line) or _NUMBERED_STEP_RE.match(line))
