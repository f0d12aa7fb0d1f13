"""Plan-wide nutrition and time summaries."""

from __future__ import annotations

from nutrivida.models import DayPlan, MacroBalance, MealPlan, WeeklyNutrition


def compute_weekly_nutrition(days: list[DayPlan], target: MacroBalance) -> WeeklyNutrition:
    """Average daily calories and the calorie share of each macro.

    Falls back to the target balance when recipes carry no macro grams.
    """
    if not days:
        return WeeklyNutrition(avg_calories_per_day=0.0, avg_macros=target)

    total_cal = 0.0
    carbs_kcal = protein_kcal = fat_kcal = 0.0
    for day in days:
        for _meal, recipe in day.meals():
            n = recipe.nutrition
            total_cal += n.calories
            carbs_kcal += n.carbs_g * 4
            protein_kcal += n.protein_g * 4
            fat_kcal += n.fat_g * 9

    macro_kcal = carbs_kcal + protein_kcal + fat_kcal
    if macro_kcal > 0:
        carbs = round(carbs_kcal / macro_kcal * 100)
        protein = round(protein_kcal / macro_kcal * 100)
        macros = MacroBalance(carbs_pct=carbs, protein_pct=protein, fat_pct=100 - carbs - protein)
    else:
        macros = target

    return WeeklyNutrition(
        avg_calories_per_day=round(total_cal / len(days)),
        avg_macros=macros,
    )


def average_minutes_per_meal(plan: MealPlan) -> int:
    """Mean prep plus cook minutes across every meal in the plan."""
    totals = [recipe.total_time_min for _day, _meal, recipe in plan.recipes()]
    if not totals:
        return 0
    return round(sum(totals) / len(totals))
