"""Markdown and JSON output for meal plans and recipes."""

from __future__ import annotations

import json
from datetime import datetime

from nutrivida.models import MealPlan, MealType, Recipe


def format_recipe_markdown(recipe: Recipe, title: str | None = None) -> str:
    """Render one recipe with ingredients and numbered instructions."""
    n = recipe.nutrition
    lines = [f"### {title or recipe.name}", ""]
    if recipe.description:
        lines.append(f"*{recipe.description}*")
        lines.append("")
    lines.append(
        f"Prep {recipe.prep_time_min} min · Cook {recipe.cook_time_min} min · "
        f"Serves {recipe.servings} · {n.calories:.0f} kcal, "
        f"{n.protein_g:.0f}g protein, {n.carbs_g:.0f}g carbs, {n.fat_g:.0f}g fat"
    )
    lines.append("")

    lines.append("#### Ingredients")
    lines.append("")
    for item in recipe.ingredients:
        lines.append(f"- {item}")
    lines.append("")

    lines.append("#### Instructions")
    lines.append("")
    for i, step in enumerate(recipe.instructions, 1):
        lines.append(f"{i}. {step}")
    lines.append("")

    if recipe.cultural_notes:
        lines.append(f"> {recipe.cultural_notes}")
        lines.append("")

    return "\n".join(lines)


def format_plan_markdown(plan: MealPlan, include_recipes: bool = False) -> str:
    """Format a meal plan as markdown with front matter and per-day tables."""
    meta = plan.metadata
    lines = [
        "---",
        "type: meal-plan",
        f"date_created: {datetime.now().strftime('%Y-%m-%d')}",
        f"days: {plan.duration}",
        f"culture: {meta.culture or ''}",
        f"health_goal: {meta.health_goal or ''}",
        f"generation_method: {meta.method.value}",
        f"prompt_version: {meta.prompt_version}",
        "---",
        "",
        f"# Meal Plan: {plan.duration} days",
        "",
    ]

    if meta.fallback_reason:
        lines.append(f"*Generated from the built-in food guide ({meta.fallback_reason}).*")
        lines.append("")

    for day_plan in plan.days:
        lines.append(f"## Day {day_plan.day} ({day_plan.date})")
        lines.append("")
        lines.append("| Meal | Recipe | Calories | Protein | Time |")
        lines.append("|------|--------|----------|---------|------|")

        for meal_type, recipe in day_plan.meals():
            lines.append(
                f"| {meal_type.value.title()} "
                f"| {recipe.name} "
                f"| {recipe.nutrition.calories:.0f} "
                f"| {recipe.nutrition.protein_g:.0f}g "
                f"| {recipe.total_time_min}m |"
            )

        day_pro = sum(r.nutrition.protein_g for _, r in day_plan.meals())
        lines.append(f"| **Total** | | **{day_plan.calories():.0f}** | **{day_pro:.0f}g** | |")
        lines.append("")

    lines.append("## Weekly Summary")
    lines.append("")
    if plan.weekly_nutrition is not None:
        wn = plan.weekly_nutrition
        macros = wn.avg_macros
        lines.append(f"- Average calories: ~{wn.avg_calories_per_day:.0f}/day")
        lines.append(
            f"- Macros: {macros.carbs_pct}% carbs, {macros.protein_pct}% protein, "
            f"{macros.fat_pct}% fat"
        )
    unique_recipes = len({recipe.name for _d, _m, recipe in plan.recipes()})
    lines.append(f"- Unique recipes: {unique_recipes}")
    if meta.avg_minutes_per_meal is not None:
        lines.append(f"- Average time per meal: {meta.avg_minutes_per_meal} min")
    lines.append("")

    if plan.cultural_insights:
        lines.append("## Cultural Insights")
        lines.append("")
        lines.append(plan.cultural_insights)
        lines.append("")

    if plan.tips:
        lines.append("## Tips")
        lines.append("")
        for tip in plan.tips:
            lines.append(f"- {tip}")
        lines.append("")

    if include_recipes:
        lines.append("## Recipes")
        lines.append("")
        for day_plan in plan.days:
            for meal_type, recipe in day_plan.meals():
                title = f"Day {day_plan.day} {meal_type.value.title()}: {recipe.name}"
                lines.append(format_recipe_markdown(recipe, title=title))

    return "\n".join(lines)


def format_plan_json(plan: MealPlan) -> str:
    """Format a meal plan as JSON in the same shape the validator reads back."""
    return json.dumps(plan.to_dict(), indent=2, ensure_ascii=False)


def format_recipe_json(recipe: Recipe, day: int, meal_type: MealType) -> str:
    data = {"day": day, "mealType": meal_type.value, "recipe": recipe.to_dict()}
    return json.dumps(data, indent=2, ensure_ascii=False)
