"""Tests for the smart-add plain-text recipe parser."""

import pytest
from pydantic import ValidationError

from recipebox.models import ParseError
from recipebox.parser.jsonld import normalize_recipe
from recipebox.parser.text import parse_recipe_text

PANCAKES_TEXT = (
    "Pancakes\n"
    "Prep: 10 minutes\n"
    "Ingredients:\n"
    "- 2 cups flour\n"
    "- 1 egg\n"
    "Instructions:\n"
    "Mix ingredients.\n"
    "Cook on griddle."
)

FULL_TEXT = """
# Banana Bread

Moist loaf that uses up overripe bananas.
Prep time: 15 min
Cook time: 1 hour
Serves: 8 slices

Ingredients
• 3 ripe bananas
* 1/3 cup melted butter
- 3/4 cup sugar

Directions:
Preheat the oven to 350°F.
Mash the bananas and stir in the butter.

Source:
https://example.com/banana-bread

Tags:
Baking, Breakfast , baking
"""

NO_HEADERS_TEXT = """Simple Salad
A crisp green salad for summer.
- 1 head lettuce
- 2 tomatoes
Chop the lettuce.
Toss with tomatoes.
- garnish with basil"""

NUMBERED_STEPS_TEXT = """Omelette
Quick and easy eggs.
2 eggs
1 tbsp butter
1. Whisk the eggs.
2. Melt butter and cook."""


# -- Example recipes --


def test_pancakes_example():
    recipe = parse_recipe_text(PANCAKES_TEXT)
    assert recipe.name == "Pancakes"
    assert recipe.prep_time == "PT10M"
    assert recipe.recipe_ingredient == ["2 cups flour", "1 egg"]
    assert recipe.recipe_instructions == "Mix ingredients.\n\nCook on griddle."


def test_full_recipe_with_all_sections():
    recipe = parse_recipe_text(FULL_TEXT)
    assert recipe.name == "Banana Bread"
    assert recipe.description == "Moist loaf that uses up overripe bananas."
    assert recipe.prep_time == "PT15M"
    assert recipe.cook_time == "PT1H"
    assert recipe.recipe_yield == "8 slices"
    assert recipe.recipe_ingredient == [
        "3 ripe bananas",
        "1/3 cup melted butter",
        "3/4 cup sugar",
    ]
    assert recipe.recipe_instructions == (
        "Preheat the oven to 350°F.\n\nMash the bananas and stir in the butter."
    )
    assert recipe.source == "https://example.com/banana-bread"
    assert recipe.source_url == "https://example.com/banana-bread"
    assert recipe.recipe_tags == ["baking", "breakfast"]


def test_windows_line_endings():
    recipe = parse_recipe_text(PANCAKES_TEXT.replace("\n", "\r\n"))
    assert recipe.name == "Pancakes"
    assert recipe.recipe_ingredient == ["2 cups flour", "1 egg"]


# -- Name --


def test_markdown_header_stripped_from_name():
    recipe = parse_recipe_text("## Pancakes\n" + PANCAKES_TEXT.split("\n", 1)[1])
    assert recipe.name == "Pancakes"


def test_leading_blank_lines_ignored():
    recipe = parse_recipe_text("\n\n   \n" + PANCAKES_TEXT)
    assert recipe.name == "Pancakes"


# -- Metadata --


def test_hour_durations_are_kept_in_hours():
    text = "Stew\nCook: 2 hrs\nIngredients:\n- beef\nSteps:\nSimmer."
    recipe = parse_recipe_text(text)
    assert recipe.cook_time == "PT2H"


def test_metadata_only_read_near_the_top():
    text = (
        "Toast\nIngredients:\n- bread\n- butter\nInstructions:\nToast the bread.\n"
        "Prep: 5 minutes"
    )
    recipe = parse_recipe_text(text)
    assert recipe.prep_time is None
    assert recipe.recipe_instructions.endswith("Prep: 5 minutes")


def test_metadata_lines_are_not_the_description():
    text = "Soup\nServes: 4 people\nIngredients:\n- water\nMethod:\nBoil."
    recipe = parse_recipe_text(text)
    assert recipe.recipe_yield == "4 people"
    assert recipe.description == ""


def test_short_lines_are_not_the_description():
    text = "Soup\nYum!\nA warming winter soup.\nIngredients:\n- water\nMethod\nBoil."
    recipe = parse_recipe_text(text)
    assert recipe.description == "A warming winter soup."


# -- Sections --


def test_source_without_url():
    text = PANCAKES_TEXT + "\nRecipe from:\nGrandma's recipe box"
    recipe = parse_recipe_text(text)
    assert recipe.source == "Grandma's recipe box"
    assert recipe.source_url == ""


def test_categories_header_collects_tags():
    text = PANCAKES_TEXT + "\nCategories:\nBreakfast, Sweet\nweekend"
    recipe = parse_recipe_text(text)
    assert recipe.recipe_tags == ["breakfast", "sweet", "weekend"]


def test_explicit_headers_disable_auto_detection():
    text = "Bread\nIngredients:\n- flour\nMix well\nInstructions:\nBake."
    recipe = parse_recipe_text(text)
    assert recipe.recipe_ingredient == ["flour", "Mix well"]
    assert recipe.recipe_instructions == "Bake."


# -- Auto-detection without headers --


def test_auto_detects_bullets_and_cooking_verbs():
    recipe = parse_recipe_text(NO_HEADERS_TEXT)
    assert recipe.description == "A crisp green salad for summer."
    assert recipe.recipe_ingredient == ["1 head lettuce", "2 tomatoes"]
    assert recipe.recipe_instructions.startswith("Chop the lettuce.\n\nToss with tomatoes.")


def test_auto_detection_never_switches_back():
    recipe = parse_recipe_text(NO_HEADERS_TEXT)
    assert recipe.recipe_instructions.endswith("- garnish with basil")
    assert "garnish with basil" not in recipe.recipe_ingredient


def test_auto_detects_numbered_steps():
    recipe = parse_recipe_text(NUMBERED_STEPS_TEXT)
    assert recipe.recipe_ingredient == ["2 eggs", "1 tbsp butter"]
    assert recipe.recipe_instructions == "1. Whisk the eggs.\n\n2. Melt butter and cook."


def test_auto_detects_unicode_fraction_ingredients():
    text = "Dressing\nTangy and bright.\n½ cup olive oil\n¼ cup vinegar\nWhisk together."
    recipe = parse_recipe_text(text)
    assert recipe.recipe_ingredient == ["½ cup olive oil", "¼ cup vinegar"]
    assert recipe.recipe_instructions == "Whisk together."


def test_no_auto_detection_on_second_line():
    text = "Salad\n- lettuce\n- tomato\nToss."
    recipe = parse_recipe_text(text)
    assert recipe.recipe_ingredient == ["tomato"]


# -- Failures --


def test_empty_text_fails_with_missing_name():
    with pytest.raises(ParseError) as excinfo:
        parse_recipe_text("")
    assert excinfo.value.error_type == "missing_name"


def test_missing_ingredients():
    with pytest.raises(ParseError, match="Ingredients:") as excinfo:
        parse_recipe_text("Toast\nInstructions:\nToast the bread.")
    assert excinfo.value.error_type == "missing_ingredients"


def test_missing_instructions():
    with pytest.raises(ParseError, match="Instructions:") as excinfo:
        parse_recipe_text("Toast\nIngredients:\n- bread")
    assert excinfo.value.error_type == "missing_instructions"


def test_name_only_fails_with_missing_ingredients():
    with pytest.raises(ParseError) as excinfo:
        parse_recipe_text("Just a title")
    assert excinfo.value.error_type == "missing_ingredients"


# -- Result record --


def test_parsed_recipe_is_frozen():
    recipe = parse_recipe_text(PANCAKES_TEXT)
    with pytest.raises(ValidationError):
        recipe.name = "Waffles"


def test_jsonld_round_trip_preserves_ingredients_and_instructions():
    recipe = parse_recipe_text(FULL_TEXT)
    data = recipe.to_jsonld()
    assert data["@type"] == "Recipe"
    data["recipeIngredient"] = "\n".join(data["recipeIngredient"])

    normalized = normalize_recipe(data)
    assert normalized["recipeIngredient"] == recipe.recipe_ingredient
    assert normalized["recipeInstructions"] == recipe.recipe_instructions
