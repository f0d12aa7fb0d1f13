"""Deterministic meal plan synthesis from the knowledge base alone.

Used whenever the completion provider is unavailable or its output is
unusable. Items rotate through each cultural list by day index, so the same
inputs always produce the same plan and no ingredient appears outside the
culture's staples, proteins, vegetables and spices.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from nutrivida.errors import InvalidInput
from nutrivida.models import (
    CulturalProfile,
    DayPlan,
    GenerationMetadata,
    GenerationMethod,
    HealthGoalProfile,
    MealPlan,
    MealType,
    Nutrition,
    Recipe,
)
from nutrivida.prompts import PROMPT_VERSION
from nutrivida.shopping import derive_shopping_list
from nutrivida.summary import average_minutes_per_meal, compute_weekly_nutrition

GENERAL_TIPS = (
    "Prepare ingredients in advance to save time",
    "Adjust portion sizes based on your hunger levels",
    "Stay hydrated throughout the day",
    "Listen to your body and make adjustments as needed",
)


@dataclass(frozen=True)
class MealBand:
    calories: int
    fiber_g: int
    prep_min: int
    cook_min: int
    # Offset into the cultural lists so meals on the same day differ
    offset: int


MEAL_BANDS = {
    MealType.BREAKFAST: MealBand(calories=350, fiber_g=6, prep_min=10, cook_min=15, offset=0),
    MealType.LUNCH: MealBand(calories=450, fiber_g=8, prep_min=15, cook_min=25, offset=1),
    MealType.DINNER: MealBand(calories=550, fiber_g=10, prep_min=20, cook_min=35, offset=2),
    MealType.SNACK: MealBand(calories=150, fiber_g=4, prep_min=5, cook_min=0, offset=3),
}


def _pick(items: tuple[str, ...], index: int) -> str:
    return items[index % len(items)]


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def _band_nutrition(band: MealBand, goal: HealthGoalProfile) -> Nutrition:
    macros = goal.macro_balance
    return Nutrition(
        calories=band.calories,
        protein_g=round(band.calories * macros.protein_pct / 100 / 4),
        carbs_g=round(band.calories * macros.carbs_pct / 100 / 4),
        fat_g=round(band.calories * macros.fat_pct / 100 / 9),
        fiber_g=band.fiber_g,
    )


def fallback_recipe(
    meal_type: MealType,
    day: int,
    culture: CulturalProfile,
    goal: HealthGoalProfile,
    servings: int = 1,
    variant: int = 0,
) -> Recipe:
    """Synthesize one recipe for a 1-indexed day.

    variant shifts the rotation so a replacement differs from the original.
    """
    band = MEAL_BANDS[meal_type]
    i = (day - 1) + band.offset + variant

    staple = _pick(culture.staples, i)
    protein = _pick(culture.proteins, i)
    vegetable = _pick(culture.vegetables, i)
    spice = _pick(culture.spices, i)
    second_spice = _pick(culture.spices, i + 1)
    method = _pick(culture.cooking_methods, i)
    dish = _pick(culture.traditional_dishes, i)

    if meal_type == MealType.BREAKFAST:
        name = f"{culture.name} {staple} breakfast with {protein}"
        ingredients = [staple, protein, vegetable, spice]
        instructions = [
            f"Prepare the {staple}.",
            f"Cook the {protein} with {vegetable} and season with {spice}.",
            "Serve warm.",
        ]
        description = f"Healthy breakfast featuring {staple}"
    elif meal_type == MealType.LUNCH:
        name = f"{culture.name} {protein} and {vegetable} bowl"
        ingredients = [vegetable, protein, staple, spice]
        instructions = [
            f"Season the {protein} with {spice}.",
            f"Cook the {protein} by {method} until done.",
            f"Serve over {staple} with {vegetable}.",
        ]
        description = "Balanced lunch with traditional spices"
    elif meal_type == MealType.DINNER:
        name = f"{protein.capitalize()} with {vegetable}, inspired by {dish}"
        ingredients = [protein, vegetable, staple, spice, second_spice]
        instructions = [
            f"Season the {protein} with {spice} and {second_spice}.",
            f"Cook using {method}, about {band.cook_min} minutes.",
            f"Serve with {vegetable} and {staple}.",
        ]
        description = f"Complete dinner in the spirit of {dish}"
    else:
        name = f"{vegetable.capitalize()} with {spice}"
        ingredients = [vegetable, spice]
        instructions = [f"Slice the {vegetable}.", f"Sprinkle with {spice} and enjoy fresh."]
        description = "Light, nutritious snack"

    return Recipe(
        name=name,
        description=description,
        ingredients=_unique(ingredients),
        instructions=instructions,
        prep_time_min=band.prep_min,
        cook_time_min=band.cook_min,
        servings=servings,
        nutrition=_band_nutrition(band, goal),
        cultural_notes=f"Traditional {culture.name} flavors from {spice} and {method}",
    )


def generate_fallback(
    culture: CulturalProfile,
    goal: HealthGoalProfile,
    duration: int,
    start_date: date | None = None,
    servings: int = 1,
) -> MealPlan:
    """Build a complete, schema-valid plan without any network call."""
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise InvalidInput(f"Duration must be a positive integer, got {duration!r}")

    days = []
    for day in range(1, duration + 1):
        if start_date is not None:
            label = (start_date + timedelta(days=day - 1)).isoformat()
        else:
            label = f"Day {day}"
        days.append(
            DayPlan(
                day=day,
                date=label,
                breakfast=fallback_recipe(MealType.BREAKFAST, day, culture, goal, servings),
                lunch=fallback_recipe(MealType.LUNCH, day, culture, goal, servings),
                dinner=fallback_recipe(MealType.DINNER, day, culture, goal, servings),
                snack=fallback_recipe(MealType.SNACK, day, culture, goal, servings),
            )
        )

    tips = (
        list(GENERAL_TIPS)
        + list(goal.guidelines)
        + [f"Swap {old} for {new}" for old, new in culture.healthy_swaps.items()]
    )

    plan = MealPlan(
        days=days,
        metadata=GenerationMetadata(
            method=GenerationMethod.FALLBACK,
            prompt_version=PROMPT_VERSION,
            culture=culture.name,
            health_goal=goal.focus,
        ),
        weekly_nutrition=compute_weekly_nutrition(days, goal.macro_balance),
        cultural_insights=(
            f"This meal plan incorporates authentic {culture.name} ingredients and cooking "
            f"methods while supporting your goal of {goal.focus.lower()}."
        ),
        tips=tips,
    )
    plan.shopping_list = derive_shopping_list(plan)
    plan.metadata.avg_minutes_per_meal = average_minutes_per_meal(plan)
    return plan
