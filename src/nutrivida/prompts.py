"""Prompt construction for meal plan and single-meal generation."""

from __future__ import annotations

from nutrivida.errors import InvalidInput
from nutrivida.models import CulturalProfile, HealthGoalProfile, MealType, UserProfile

PROMPT_VERSION = "v1.1"

SYSTEM_SUFFIX = """\
You create culturally authentic, health-focused meal plans that respect traditional cooking \
methods while optimizing for modern nutritional goals. Always prioritize:

1. Cultural authenticity and traditional flavors
2. Health and nutritional balance
3. Practical preparation within time constraints
4. Family-friendly portions and ingredients
5. Clear, detailed cooking instructions

Respond only with valid JSON in the exact format requested. Do not include any text outside \
the JSON object."""

MEAL_SYSTEM_INSTRUCTION = (
    "You are a nutritionist creating culturally authentic, healthy recipes. "
    "Return only valid JSON."
)

RECIPE_SCHEMA = """\
{{
  "name": "Dish Name",
  "description": "Brief description",
  "ingredients": ["ingredient 1", "ingredient 2"],
  "instructions": ["step 1", "step 2"],
  "prepTime": 15,
  "cookTime": 20,
  "servings": {servings},
  "nutrition": {{"calories": 350, "protein": 25, "carbs": 30, "fat": 12, "fiber": 8}},
  "culturalNotes": "Why this dish fits the cultural background"
}}"""

PLAN_SCHEMA = """\
{{
  "days": [
    {{
      "day": 1,
      "date": "Day 1",
      "breakfast": {recipe},
      "lunch": {{ /* same structure */ }},
      "dinner": {{ /* same structure */ }},
      "snack": {{ /* same structure */ }}
    }}
    /* ... continue through day {duration} */
  ],
  "shoppingList": {{
    "proteins": ["item1"],
    "vegetables": ["item1"],
    "grains": ["item1"],
    "spices": ["item1"],
    "other": ["item1"]
  }},
  "weeklyNutrition": {{
    "avgCaloriesPerDay": 1800,
    "avgMacros": {{"protein": "25%", "carbs": "45%", "fat": "30%"}}
  }},
  "culturalInsights": "How this plan honors the cultural background while meeting health goals",
  "tips": ["tip 1", "tip 2", "tip 3"]
}}"""


def system_instruction(culture: CulturalProfile) -> str:
    """System prompt: the cuisine's expert persona plus the JSON-only rules."""
    return f"{culture.system_context}\n\n{SYSTEM_SUFFIX}"


def _people(family_size: int) -> str:
    return f"{family_size} {'person' if family_size == 1 else 'people'}"


def _preference_lines(user: UserProfile) -> list[str]:
    lines = []
    if user.dietary_restrictions:
        lines.append(f"- Dietary restrictions: {', '.join(user.dietary_restrictions)}")
    if user.allergies:
        lines.append(
            f"- Allergies (never include these): {', '.join(user.allergies)}"
        )
    lines.append(f"- Cooking skill level: {user.cooking_skill_level.value}")
    lines.append(f"- Time available for cooking: {user.time_available.value}")
    lines.append(f"- Budget level: {user.budget_level.value}")
    lines.append(f"- Family size: {_people(user.family_size)}")
    if user.age is not None:
        lines.append(f"- Age: {user.age}")
    if user.gender:
        lines.append(f"- Gender: {user.gender}")
    if user.activity_level:
        lines.append(f"- Activity level: {user.activity_level}")
    return lines


def build_prompt(
    culture: CulturalProfile,
    goal: HealthGoalProfile,
    user: UserProfile,
    duration: int,
) -> str:
    """Render the full meal plan request for a user and duration."""
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise InvalidInput(f"Duration must be a positive integer, got {duration!r}")

    swaps = ", ".join(f"{old} -> {new}" for old, new in culture.healthy_swaps.items())
    macros = goal.macro_balance

    lines = [
        f"Create a comprehensive {duration}-day meal plan for someone with "
        f"{culture.name} cultural background focusing on {goal.focus}.",
        "",
        "CULTURAL REQUIREMENTS:",
        f"- Use authentic {culture.name} ingredients: {', '.join(culture.staples)}",
        f"- Include traditional spices and seasonings: {', '.join(culture.spices)}",
        f"- Feature traditional cooking methods: {', '.join(culture.cooking_methods)}",
        "- Incorporate these traditional dishes as inspiration: "
        f"{', '.join(culture.traditional_dishes)}",
        f"- Apply these healthy modifications: {swaps}",
        "",
        "HEALTH GOALS:",
        f"- Primary focus: {goal.focus}",
        f"- Macro balance target: {macros.carbs_pct}% carbs, "
        f"{macros.protein_pct}% protein, {macros.fat_pct}% fats",
        f"- Key guidelines: {'; '.join(goal.guidelines)}",
        f"- Foods to emphasize: {', '.join(goal.prefer_foods)}",
        f"- Foods to minimize: {', '.join(goal.avoid_foods)}",
        "",
        "USER PREFERENCES:",
        *_preference_lines(user),
        "",
        f"Please provide a detailed {duration}-day meal plan in the following JSON format. "
        f"The \"days\" array must contain exactly {duration} entries numbered 1 to {duration}, "
        "each with breakfast, lunch, dinner and snack. prepTime and cookTime are minutes; "
        "nutrition values are calories and grams.",
        PLAN_SCHEMA.format(
            recipe=RECIPE_SCHEMA.format(servings=user.family_size).replace("\n", "\n      "),
            duration=duration,
        ),
        "",
        "Make sure all recipes use authentic ingredients and cooking methods while being "
        "practical for the specified cooking skill level and time constraints. Include "
        "cultural context for why each dish fits the tradition.",
    ]
    return "\n".join(lines)


def build_meal_prompt(
    meal_type: MealType,
    day: int,
    culture: CulturalProfile,
    goal: HealthGoalProfile,
    user: UserProfile,
    avoid: list[str] | None = None,
) -> str:
    """Render a request for one replacement recipe."""
    restrictions = ", ".join(user.dietary_restrictions) or "none"
    allergies = ", ".join(user.allergies) or "none"
    lines = [
        f"Generate a single {meal_type.value} recipe for day {day} of a {culture.name} "
        f"meal plan focused on {goal.focus}.",
        "",
        f"Cultural requirements: Use {culture.name} ingredients "
        f"({', '.join(culture.staples)}) and cooking methods "
        f"({', '.join(culture.cooking_methods)}).",
        f"Health goal: {goal.focus}",
        f"Dietary restrictions: {restrictions}",
        f"Allergies: {allergies}",
        f"Cooking skill level: {user.cooking_skill_level.value}",
    ]
    if avoid:
        lines.append(f"Do not repeat these dishes: {', '.join(avoid)}")
    lines += [
        "",
        "Provide the response in this exact JSON format:",
        RECIPE_SCHEMA.format(servings=user.family_size),
    ]
    return "\n".join(lines)
