"""Provider response parsing, structural validation and default filling."""

from __future__ import annotations

import json
import logging
import math
import re
import sys

from nutrivida.errors import IncompleteMealPlan, InvalidInput, MalformedOutput
from nutrivida.models import (
    REQUIRED_MEALS,
    DayPlan,
    GenerationMetadata,
    GenerationMethod,
    MacroBalance,
    MealPlan,
    MealType,
    Nutrition,
    Recipe,
    WeeklyNutrition,
)
from nutrivida.prompts import PROMPT_VERSION

logger = logging.getLogger(__name__)

DEFAULT_PREP_MIN = 10
DEFAULT_COOK_MIN = 20
DEFAULT_SERVINGS = 1
DEFAULT_CALORIES = 400

# Larger values are treated as missing
MAX_MINUTES = 7 * 24 * 60
MAX_AMOUNT = 100_000.0

_DAY_KEY = re.compile(r"day[\s_]*(\d{1,6})", re.IGNORECASE)


def _finite(raw: int | float | str) -> float | None:
    try:
        value = float(raw)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def normalize_minutes(raw: str | int | float | None) -> int | None:
    """Parse varied time formats into integer minutes.

    Handles: 15, "15", "10 minutes", "5 mins", "1 hour 30 minutes",
    "1.5 hours" -> 90, "0 mins" -> 0, "" -> None.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = _finite(raw)
        if value is None or not 0 <= value <= MAX_MINUTES:
            return None
        return int(value)

    s = str(raw).strip()
    if not s:
        return None

    total = 0.0
    found = False

    m = re.search(r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?|h)\b", s, re.IGNORECASE)
    if m:
        total += float(m.group(1)) * 60
        found = True

    m = re.search(r"(?<![\d.])(\d+)\s*(?:minutes?|mins?|m)\b", s, re.IGNORECASE)
    if m:
        total += float(m.group(1))
        found = True

    if not found:
        m = re.match(r"(\d+)$", s)
        if not m:
            return None
        total = float(m.group(1))

    return round(total) if total <= MAX_MINUTES else None


def normalize_servings(raw: str | int | float | None) -> int | None:
    """Parse "4", 4, "Serves 4", "4 servings", "4 to 6" (midpoint) into an integer."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = _finite(raw)
        return int(value) if value is not None and value >= 1 else None

    s = str(raw).strip()
    m = re.search(r"(?:serves?|servings?:?)\s*(\d{1,6})", s, re.IGNORECASE)
    if m:
        val = int(m.group(1))
        return val if val >= 1 else None

    m = re.match(r"(\d{1,6})\s*(?:to|-)\s*(\d{1,6})", s)
    if m:
        return (int(m.group(1)) + int(m.group(2))) // 2

    m = re.match(r"(\d{1,6})", s)
    if m and int(m.group(1)) >= 1:
        return int(m.group(1))

    return None


def normalize_amount(raw: object) -> float | None:
    """Parse 25, "25", "25g", "25.5 g" into a float."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = _finite(raw)
    else:
        m = re.match(r"\s*(\d+(?:\.\d+)?)", str(raw))
        value = _finite(m.group(1)) if m else None
    if value is None or abs(value) > MAX_AMOUNT:
        return None
    return value


def _string_list(raw: object) -> list[str]:
    if isinstance(raw, str):
        return [raw.strip()] if raw.strip() else []
    if not isinstance(raw, list):
        return []
    return [str(item).strip() for item in raw if item is not None and str(item).strip()]


def extract_json_object(raw_text: str) -> str:
    """Return the outermost {...} span in text that may be wrapped in prose or fences."""
    text = (raw_text or "").strip()

    # Strip markdown fences if present
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text[: text.rfind("```")]
        text = text.strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise MalformedOutput("No JSON object found in provider response")
    return text[start : end + 1]


def _reject_constant(name: str) -> float:
    raise MalformedOutput(f"Provider response uses non-standard JSON number {name}")


def load_json_object(raw_text: str) -> dict:
    """Extract and parse the JSON object in a provider response.

    NaN and Infinity literals are rejected; numbers too large for a float
    decode as inf and are dropped by the normalizers.
    """
    try:
        data = json.loads(extract_json_object(raw_text), parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedOutput(f"Provider response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedOutput("Provider response JSON is not an object")
    return data


def _day_number(raw: object) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 1 else None
    m = re.search(r"\d{1,6}", str(raw))
    return int(m.group(0)) if m and int(m.group(0)) >= 1 else None


def _day_entries(data: dict) -> dict[int, dict]:
    """Map 1-indexed day number -> raw day object, from a days list or week object."""
    entries: dict[int, dict] = {}

    if isinstance(data.get("days"), list):
        for position, entry in enumerate(data["days"], 1):
            if not isinstance(entry, dict):
                continue
            number = _day_number(
                entry.get("day", entry.get("dayNumber", entry.get("day_number")))
            )
            entries.setdefault(number or position, entry)
        return entries

    week = data.get("week")
    if isinstance(week, dict):
        for key, entry in week.items():
            m = _DAY_KEY.fullmatch(str(key).strip())
            if m and isinstance(entry, dict):
                entries.setdefault(int(m.group(1)), entry)
        return entries

    raise MalformedOutput("Meal plan has no 'days' or 'week' container")


def _parse_nutrition(raw: object) -> Nutrition:
    if not isinstance(raw, dict):
        return Nutrition(calories=DEFAULT_CALORIES)
    calories = normalize_amount(raw.get("calories"))
    return Nutrition(
        calories=calories if calories is not None else DEFAULT_CALORIES,
        protein_g=normalize_amount(raw.get("protein")) or 0.0,
        carbs_g=normalize_amount(raw.get("carbs")) or 0.0,
        fat_g=normalize_amount(raw.get("fat")) or 0.0,
        fiber_g=normalize_amount(raw.get("fiber")) or 0.0,
    )


def build_recipe(raw: object, day: int, meal_type: MealType) -> Recipe:
    """Validate one raw recipe object and fill optional fields with defaults."""
    if not isinstance(raw, dict):
        raise IncompleteMealPlan(day, meal_type.value)

    name = str(raw.get("name") or "").strip()
    if not name:
        raise IncompleteMealPlan(day, meal_type.value, "name")
    ingredients = _string_list(raw.get("ingredients"))
    if not ingredients:
        raise IncompleteMealPlan(day, meal_type.value, "ingredients")
    instructions = _string_list(raw.get("instructions"))
    if not instructions:
        raise IncompleteMealPlan(day, meal_type.value, "instructions")

    prep = normalize_minutes(raw.get("prepTime", raw.get("prep_time")))
    cook = normalize_minutes(raw.get("cookTime", raw.get("cook_time")))
    servings = normalize_servings(raw.get("servings"))

    return Recipe(
        name=name,
        description=str(raw.get("description") or "").strip(),
        ingredients=ingredients,
        instructions=instructions,
        prep_time_min=prep if prep is not None else DEFAULT_PREP_MIN,
        cook_time_min=cook if cook is not None else DEFAULT_COOK_MIN,
        servings=servings if servings is not None else DEFAULT_SERVINGS,
        nutrition=_parse_nutrition(raw.get("nutrition")),
        cultural_notes=str(raw.get("culturalNotes", raw.get("cultural_notes")) or "").strip(),
    )


def _build_day(day: int, entry: dict) -> DayPlan:
    # Some providers nest the meals one level down
    meals = entry["meals"] if isinstance(entry.get("meals"), dict) else entry

    required = {
        meal_type: build_recipe(meals.get(meal_type.value), day, meal_type)
        for meal_type in REQUIRED_MEALS
    }

    snack = None
    raw_snack = meals.get("snack")
    if raw_snack is None and isinstance(meals.get("snacks"), list) and meals["snacks"]:
        raw_snack = meals["snacks"][0]
    if raw_snack is not None:
        try:
            snack = build_recipe(raw_snack, day, MealType.SNACK)
        except IncompleteMealPlan as e:
            logger.warning("Dropping unusable snack: %s", e)

    return DayPlan(
        day=day,
        date=str(entry.get("date") or f"Day {day}"),
        breakfast=required[MealType.BREAKFAST],
        lunch=required[MealType.LUNCH],
        dinner=required[MealType.DINNER],
        snack=snack,
    )


def _parse_percent(raw: object) -> int | None:
    value = normalize_amount(raw)
    return int(round(value)) if value is not None else None


def _parse_weekly_nutrition(raw: object) -> WeeklyNutrition | None:
    if not isinstance(raw, dict):
        return None
    avg_calories = normalize_amount(raw.get("avgCaloriesPerDay"))
    macros = raw.get("avgMacros")
    if avg_calories is None or not isinstance(macros, dict):
        return None
    carbs = _parse_percent(macros.get("carbs"))
    protein = _parse_percent(macros.get("protein"))
    fat = _parse_percent(macros.get("fat", macros.get("fats")))
    if carbs is None or protein is None or fat is None:
        return None
    return WeeklyNutrition(
        avg_calories_per_day=avg_calories,
        avg_macros=MacroBalance(carbs_pct=carbs, protein_pct=protein, fat_pct=fat),
    )


def _parse_shopping_list(raw: object) -> dict[str, list[str]]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): _string_list(v) for k, v in raw.items()}


def validate_plan_data(data: dict, expected_duration: int) -> MealPlan:
    """Check a decoded plan object has every day and required meal; fill defaults."""
    entries = _day_entries(data)

    days = []
    for day in range(1, expected_duration + 1):
        entry = entries.get(day)
        if entry is None:
            raise IncompleteMealPlan(day)
        days.append(_build_day(day, entry))

    extra = [d for d in entries if d > expected_duration]
    if extra:
        logger.debug("Ignoring %d day(s) beyond the requested %d", len(extra), expected_duration)

    tips = data.get("tips")
    return MealPlan(
        days=days,
        metadata=GenerationMetadata(method=GenerationMethod.AI, prompt_version=PROMPT_VERSION),
        shopping_list=_parse_shopping_list(data.get("shoppingList")),
        weekly_nutrition=_parse_weekly_nutrition(data.get("weeklyNutrition")),
        cultural_insights=str(data.get("culturalInsights") or "").strip(),
        tips=_string_list(tips),
    )


def parse_and_validate(raw_text: str, expected_duration: int) -> MealPlan:
    """Turn raw provider text into a MealPlan covering days 1..expected_duration.

    Raises MalformedOutput when no JSON object can be decoded and
    IncompleteMealPlan naming the first missing day, meal or field.
    """
    return validate_plan_data(load_json_object(raw_text), expected_duration)


def parse_recipe(raw_text: str, day: int, meal_type: MealType) -> Recipe:
    """Parse a single-recipe response, accepting a bare recipe or {"recipe": {...}}."""
    data = load_json_object(raw_text)
    if "name" not in data and isinstance(data.get("recipe"), dict):
        data = data["recipe"]
    return build_recipe(data, day, meal_type)


def plan_from_dict(data: dict) -> MealPlan:
    """Re-hydrate a plan saved with MealPlan.to_dict()."""
    duration = len(_day_entries(data))
    if duration == 0:
        raise MalformedOutput("Saved plan contains no days")
    plan = validate_plan_data(data, duration)

    meta = data.get("generationMetadata")
    if isinstance(meta, dict):
        try:
            method = GenerationMethod(meta.get("method"))
        except ValueError:
            method = GenerationMethod.AI
        elapsed = meta.get("generationTimeMs")
        elapsed_ms = _finite(elapsed) if isinstance(elapsed, (int, float)) else None
        plan.metadata = GenerationMetadata(
            method=method,
            generation_time_ms=int(elapsed_ms) if elapsed_ms is not None and elapsed_ms >= 0 else 0,
            prompt_version=str(meta.get("promptVersion") or ""),
            model=meta.get("model"),
            tokens_used=meta.get("tokensUsed"),
            estimated_cost_usd=meta.get("estimatedCostUsd"),
            fallback_reason=meta.get("fallbackReason"),
            culture=meta.get("culture"),
            health_goal=meta.get("healthGoal"),
            avg_minutes_per_meal=meta.get("avgMinutesPerMeal"),
        )
    return plan


def load_plan_file(plan_file: str | None) -> MealPlan:
    """Load a saved plan from a JSON file, or stdin when no path is given."""
    if plan_file:
        try:
            with open(plan_file) as f:
                text = f.read()
        except OSError as e:
            raise InvalidInput(f"Cannot read plan file {plan_file}: {e}") from e
    else:
        text = sys.stdin.read()
    return plan_from_dict(load_json_object(text))
