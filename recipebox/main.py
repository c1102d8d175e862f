"""FastAPI application for Recipe Box."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from recipebox.config import settings
from recipebox.models import (
    DisplayAmount,
    Ingredient,
    InvalidArgument,
    ParseError,
    RecipeNotFound,
)
from recipebox.parser.ingredients import parse_ingredient_line
from recipebox.parser.jsonld import (
    duration_to_minutes,
    export_recipe,
    export_recipes,
    extract_jsonld_from_html,
    format_duration,
    import_recipes,
    load_recipe_json,
    minutes_to_duration,
    normalize_recipe,
    validate_recipe,
)
from recipebox.parser.text import parse_recipe_text
from recipebox.scaling import FormatMode, format_ingredient, scale_and_convert
from recipebox.search import filter_by_tags, highlight_terms, search_recipes, sort_recipes
from recipebox.state import SCALE_OPTIONS, AppState
from recipebox.store import RecipeStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="Recipe Box")
app.state.limiter = limiter
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=BASE_DIR / "templates")
templates.env.filters["duration"] = format_duration
templates.env.filters["highlight"] = highlight_terms


@lru_cache
def get_store() -> RecipeStore:
    store = RecipeStore(settings.recipes_path, settings.seed_path)
    store.load()
    return store


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "error_message": (
                "You're sending too many requests. Please wait a moment and try again."
            )
        },
        status_code=429,
    )


@app.exception_handler(RecipeNotFound)
async def not_found_handler(request: Request, exc: RecipeNotFound):
    logger.warning("Recipe not found: %s", exc.recipe_id)
    return templates.TemplateResponse(
        request,
        "error.html",
        {"error_message": "That recipe isn't in your collection."},
        status_code=404,
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app.add_middleware(SecurityHeadersMiddleware)


def render_ingredients(lines: list[str], state: AppState, mode: FormatMode) -> list[str]:
    """Scale and convert stored ingredient strings for display."""
    rendered = []
    for raw in lines:
        ingredient = parse_ingredient_line(raw)
        if ingredient.item == raw.strip():
            # No leading quantity, nothing to scale
            rendered.append(raw)
        else:
            rendered.append(
                format_ingredient(ingredient, state.scale, state.display_system, mode)
            )
    return rendered


# -- Browse --


@app.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    q: str = "",
    tag: list[str] = Query(default=[]),
    sort: str = "",
    store: RecipeStore = Depends(get_store),
):
    state = AppState.from_params(tags=tag, default_units=settings.default_units)
    recipes = filter_by_tags(store.list_recipes(), state.selected_tags)
    recipes = search_recipes(recipes, q, settings.search_threshold)
    recipes = sort_recipes(recipes, sort)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "recipes": recipes,
            "total": len(store.list_recipes()),
            "available_tags": store.available_tags,
            "state": state,
            "q": q,
            "sort": sort,
        },
    )


# -- Add / edit --


@app.get("/recipes/new", response_class=HTMLResponse)
async def new_recipe(request: Request):
    return templates.TemplateResponse(request, "edit.html", {"recipe": None, "form": {}})


@app.post("/recipes")
async def create_recipe(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    ingredients: str = Form(""),
    instructions: str = Form(""),
    prep_minutes: str = Form(""),
    cook_minutes: str = Form(""),
    recipe_yield: str = Form(""),
    source: str = Form(""),
    source_url: str = Form(""),
    tags: str = Form(""),
    store: RecipeStore = Depends(get_store),
):
    form = await request.form()
    data = _recipe_from_form(
        name, description, ingredients, instructions, prep_minutes, cook_minutes,
        recipe_yield, source, source_url, tags,
    )
    errors = validate_recipe(data)
    if errors:
        logger.warning("Rejected new recipe %r: %s", name, errors)
        return templates.TemplateResponse(
            request,
            "edit.html",
            {"recipe": None, "form": dict(form), "errors": errors},
            status_code=400,
        )
    recipe = store.add(data)
    return RedirectResponse(f"/recipes/{recipe.id}", status_code=303)


@app.get("/recipes/{recipe_id}/edit", response_class=HTMLResponse)
async def edit_recipe(request: Request, recipe_id: str, store: RecipeStore = Depends(get_store)):
    recipe = store.get(recipe_id)
    form = {
        "name": recipe.name,
        "description": recipe.description,
        "ingredients": "\n".join(recipe.recipe_ingredient),
        "instructions": "\n\n".join(recipe.steps),
        "prep_minutes": duration_to_minutes(recipe.prep_time) or "",
        "cook_minutes": duration_to_minutes(recipe.cook_time) or "",
        "recipe_yield": recipe.recipe_yield,
        "source": recipe.source,
        "source_url": recipe.source_url,
        "tags": ", ".join(recipe.recipe_tags),
    }
    return templates.TemplateResponse(request, "edit.html", {"recipe": recipe, "form": form})


@app.post("/recipes/{recipe_id}")
async def update_recipe(
    request: Request,
    recipe_id: str,
    name: str = Form(""),
    description: str = Form(""),
    ingredients: str = Form(""),
    instructions: str = Form(""),
    prep_minutes: str = Form(""),
    cook_minutes: str = Form(""),
    recipe_yield: str = Form(""),
    source: str = Form(""),
    source_url: str = Form(""),
    tags: str = Form(""),
    store: RecipeStore = Depends(get_store),
):
    recipe = store.get(recipe_id)
    form = await request.form()
    data = _recipe_from_form(
        name, description, ingredients, instructions, prep_minutes, cook_minutes,
        recipe_yield, source, source_url, tags,
    )
    errors = validate_recipe(data)
    if errors:
        logger.warning("Rejected edit of %s: %s", recipe_id, errors)
        return templates.TemplateResponse(
            request,
            "edit.html",
            {"recipe": recipe, "form": dict(form), "errors": errors},
            status_code=400,
        )
    store.update(recipe_id, data)
    return RedirectResponse(f"/recipes/{recipe_id}", status_code=303)


@app.post("/recipes/{recipe_id}/delete")
async def delete_recipe(recipe_id: str, store: RecipeStore = Depends(get_store)):
    store.delete(recipe_id)
    return RedirectResponse("/", status_code=303)


# -- View / cook --


@app.get("/recipes/{recipe_id}", response_class=HTMLResponse)
async def recipe_detail(
    request: Request,
    recipe_id: str,
    scale: float = 1,
    units: str | None = None,
    store: RecipeStore = Depends(get_store),
):
    recipe = store.get(recipe_id)
    state = AppState.from_params(units=units, scale=scale, default_units=settings.default_units)
    return templates.TemplateResponse(
        request,
        "recipe.html",
        {
            "recipe": recipe,
            "state": state,
            "scale_options": SCALE_OPTIONS,
            "ingredients": render_ingredients(recipe.recipe_ingredient, state, "card"),
        },
    )


@app.get("/recipes/{recipe_id}/cook", response_class=HTMLResponse)
async def cooking_mode(
    request: Request,
    recipe_id: str,
    scale: float = 1,
    units: str | None = None,
    store: RecipeStore = Depends(get_store),
):
    recipe = store.get(recipe_id)
    state = AppState.from_params(units=units, scale=scale, default_units=settings.default_units)
    return templates.TemplateResponse(
        request,
        "cook.html",
        {
            "recipe": recipe,
            "state": state,
            "ingredients": render_ingredients(recipe.recipe_ingredient, state, "page"),
        },
    )


# -- Smart add --


@app.get("/smart-add", response_class=HTMLResponse)
async def smart_add_form(request: Request):
    return templates.TemplateResponse(request, "smart_add.html", {"text": ""})


@app.post("/smart-add", response_class=HTMLResponse)
@limiter.limit(settings.rate_limit)
async def smart_add_preview(
    request: Request,
    text: str = Form(""),
    images: list[UploadFile] | None = File(None),
):
    try:
        if any(image.filename for image in images or []):
            raise ParseError(
                "image_not_supported",
                "Image parsing requires manual entry. Please type or paste the "
                "recipe text from the image.",
            )
        if not text.strip():
            raise ParseError("missing_text", "Please paste recipe text or upload an image.")
        parsed = parse_recipe_text(text)
    except ParseError as e:
        logger.warning("Smart add failed [%s]: %s", e.error_type, e.message)
        return templates.TemplateResponse(
            request, "smart_add.html", {"text": text, "error_message": e.message}
        )
    logger.info("Parsed smart-add recipe %r", parsed.name)
    return templates.TemplateResponse(
        request, "smart_add.html", {"text": text, "parsed": parsed}
    )


@app.post("/smart-add/save")
async def smart_add_save(
    request: Request,
    text: str = Form(""),
    store: RecipeStore = Depends(get_store),
):
    try:
        parsed = parse_recipe_text(text)
    except ParseError as e:
        logger.warning("Smart add save failed [%s]: %s", e.error_type, e.message)
        return templates.TemplateResponse(
            request,
            "smart_add.html",
            {"text": text, "error_message": e.message},
            status_code=400,
        )
    recipe = store.add(parsed.model_dump(by_alias=True))
    return RedirectResponse(f"/recipes/{recipe.id}", status_code=303)


# -- Import / export --


@app.get("/import", response_class=HTMLResponse)
async def import_form(request: Request):
    return templates.TemplateResponse(request, "import.html", {})


@app.post("/import", response_class=HTMLResponse)
@limiter.limit(settings.rate_limit)
async def import_upload(
    request: Request,
    file: UploadFile = File(...),
    store: RecipeStore = Depends(get_store),
):
    content = (await file.read()).decode("utf-8", errors="replace")
    filename = (file.filename or "").lower()
    try:
        if filename.endswith((".html", ".htm")) or content.lstrip().startswith("<"):
            recipes = extract_jsonld_from_html(content)
        else:
            recipes = load_recipe_json(content)
    except ParseError as e:
        logger.warning("Import of %s failed [%s]: %s", file.filename, e.error_type, e.message)
        return templates.TemplateResponse(
            request, "import.html", {"error_message": e.message}, status_code=400
        )
    result = import_recipes(recipes, store)
    return templates.TemplateResponse(request, "import.html", {"result": result})


@app.get("/export")
async def export_all(store: RecipeStore = Depends(get_store)):
    return JSONResponse(
        export_recipes(store.list_recipes()),
        headers={"Content-Disposition": 'attachment; filename="recipes.json"'},
    )


@app.get("/recipes/{recipe_id}/export")
async def export_one(recipe_id: str, store: RecipeStore = Depends(get_store)):
    recipe = store.get(recipe_id)
    return JSONResponse(
        export_recipe(recipe),
        headers={"Content-Disposition": f'attachment; filename="recipe-{recipe_id}.json"'},
    )


# -- JSON API --


class ParseRequest(BaseModel):
    text: str


class ScaleRequest(BaseModel):
    ingredient: Ingredient
    factor: float = 1
    display_system: Literal["metric", "us"] = "metric"


@app.post("/api/parse")
@limiter.limit(settings.rate_limit)
async def api_parse(request: Request, body: ParseRequest):
    try:
        parsed = parse_recipe_text(body.text)
    except ParseError as e:
        logger.warning("API parse failed [%s]: %s", e.error_type, e.message)
        return JSONResponse(
            {"error_type": e.error_type, "message": e.message}, status_code=422
        )
    return parsed.to_jsonld()


@app.post("/api/scale", response_model=DisplayAmount)
async def api_scale(body: ScaleRequest):
    try:
        return scale_and_convert(body.ingredient, body.factor, body.display_system)
    except InvalidArgument as e:
        logger.warning("API scale rejected: %s", e)
        return JSONResponse({"error_type": "invalid_argument", "message": str(e)}, status_code=422)


def _recipe_from_form(
    name: str,
    description: str,
    ingredients: str,
    instructions: str,
    prep_minutes: str,
    cook_minutes: str,
    recipe_yield: str,
    source: str,
    source_url: str,
    tags: str,
) -> dict:
    """Turn the add/edit form fields into a normalized JSON-LD recipe."""
    return normalize_recipe(
        {
            "name": name,
            "description": description.strip(),
            "recipeIngredient": ingredients,
            # Steps are separated by a blank line; a step may span lines
            "recipeInstructions": [
                s.strip() for s in instructions.replace("\r\n", "\n").split("\n\n") if s.strip()
            ],
            "prepTime": minutes_to_duration(_to_minutes(prep_minutes)),
            "cookTime": minutes_to_duration(_to_minutes(cook_minutes)),
            "recipeYield": recipe_yield.strip(),
            "source": source.strip(),
            "sourceUrl": source_url.strip(),
            "recipeTags": tags,
        }
    )


def _to_minutes(value: str) -> int | None:
    value = value.strip()
    return int(value) if value.isdigit() else None
