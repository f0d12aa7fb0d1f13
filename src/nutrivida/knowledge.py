"""Cultural food and health goal lookup tables."""

from __future__ import annotations

import json
import logging

from nutrivida.errors import ConfigurationError
from nutrivida.models import (
    CulturalProfile,
    CultureId,
    HealthGoalId,
    HealthGoalProfile,
    MacroBalance,
)

logger = logging.getLogger(__name__)

DEFAULT_CULTURE = CultureId.LATINO
DEFAULT_GOAL = HealthGoalId.GENERAL_HEALTH

CULTURAL_PROFILES: dict[CultureId, CulturalProfile] = {
    CultureId.LATINO: CulturalProfile(
        name="Latino",
        staples=("rice", "black beans", "corn tortillas", "quinoa", "sweet potatoes", "plantains"),
        proteins=("chicken", "fish", "turkey", "eggs", "black beans", "lentils"),
        vegetables=(
            "bell peppers", "tomatoes", "onions", "cilantro", "avocado", "jalapeños", "spinach",
        ),
        spices=("cumin", "chili powder", "paprika", "oregano", "lime", "garlic"),
        cooking_methods=("grilling", "sautéing", "roasting", "steaming"),
        traditional_dishes=(
            "arroz con pollo", "black bean soup", "fish tacos", "quinoa salad", "stuffed peppers",
        ),
        healthy_swaps={
            "white rice": "brown rice or quinoa",
            "refried beans": "whole black beans",
            "fried plantains": "baked plantains",
            "sour cream": "Greek yogurt",
        },
        system_context=(
            "You are a Latino nutrition expert specializing in Mexican, Central American, "
            "and South American cuisines. Focus on traditional ingredients like beans, corn, "
            "rice, avocados, tomatoes, chiles, and cilantro. Use authentic cooking methods "
            "like braising, grilling, and slow-cooking."
        ),
    ),
    CultureId.SOMALI: CulturalProfile(
        name="Somali",
        staples=("rice", "injera", "pasta", "potatoes", "lentils", "sorghum"),
        proteins=("goat meat", "chicken", "fish", "camel milk", "eggs", "lentils"),
        vegetables=("tomatoes", "onions", "spinach", "okra", "carrots", "green beans"),
        spices=("berbere", "cardamom", "cinnamon", "coriander", "fenugreek", "ginger"),
        cooking_methods=("stewing", "grilling", "steaming", "fermenting"),
        traditional_dishes=("anjero", "maraq", "bariis", "hilib ari", "suugo"),
        healthy_swaps={
            "white rice": "brown rice or sorghum",
            "regular pasta": "whole grain pasta",
            "fried foods": "grilled or steamed alternatives",
        },
        system_context=(
            "You are a Somali nutrition expert specializing in East African and Middle "
            "Eastern influenced cuisine. Focus on traditional ingredients like injera, berbere "
            "spice, lentils, goat meat, camel milk, and aromatic spices. Use traditional "
            "cooking methods like stewing and fermentation."
        ),
    ),
    CultureId.SOUTH_ASIAN: CulturalProfile(
        name="South Asian",
        staples=("basmati rice", "lentils", "chickpeas", "whole wheat roti", "quinoa"),
        proteins=("chicken", "fish", "paneer", "lentils", "chickpeas", "eggs"),
        vegetables=(
            "spinach", "cauliflower", "okra", "eggplant", "tomatoes", "onions", "green beans",
        ),
        spices=("turmeric", "cumin", "coriander", "garam masala", "ginger", "garlic", "cardamom"),
        cooking_methods=("curry-making", "tandoori", "steaming", "sautéing"),
        traditional_dishes=(
            "dal", "chicken curry", "vegetable biryani", "tandoori fish", "saag paneer",
        ),
        healthy_swaps={
            "white rice": "brown basmati rice",
            "ghee": "olive oil in moderation",
            "regular yogurt": "Greek yogurt",
            "naan": "whole wheat roti",
        },
        system_context=(
            "You are a South Asian nutrition expert specializing in Indian, Pakistani, "
            "Bangladeshi, and Sri Lankan cuisines. Focus on traditional ingredients like "
            "basmati rice, lentils, turmeric, cumin, garam masala, and yogurt. Use authentic "
            "cooking methods like tempering spices, slow-cooking curries, and tandoor-style "
            "preparation."
        ),
    ),
    CultureId.MEDITERRANEAN: CulturalProfile(
        name="Mediterranean",
        staples=("olive oil", "whole grains", "legumes", "nuts", "fish"),
        proteins=("fish", "chicken", "eggs", "legumes", "nuts", "Greek yogurt"),
        vegetables=(
            "tomatoes", "olives", "spinach", "zucchini", "eggplant", "peppers", "cucumbers",
        ),
        spices=("oregano", "basil", "thyme", "rosemary", "lemon", "garlic"),
        cooking_methods=("grilling", "roasting", "sautéing with olive oil", "steaming"),
        traditional_dishes=("Greek salad", "grilled fish", "ratatouille", "hummus", "tabbouleh"),
        healthy_swaps={
            "butter": "extra virgin olive oil",
            "refined grains": "whole grains",
            "processed meats": "fresh fish and poultry",
        },
        system_context=(
            "You are a Mediterranean nutrition expert specializing in Greek, Turkish, "
            "Lebanese, and Italian cuisines. Focus on traditional ingredients like olive oil, "
            "tomatoes, herbs, legumes, fish, and whole grains. Use authentic cooking methods "
            "like grilling, roasting, and fresh preparation."
        ),
    ),
    CultureId.CARIBBEAN: CulturalProfile(
        name="Caribbean",
        staples=("rice", "beans", "yuca", "plantains", "sweet potatoes", "breadfruit"),
        proteins=("fish", "chicken", "beans", "eggs", "shellfish"),
        vegetables=("callaloo", "okra", "tomatoes", "bell peppers", "onions", "sweet peppers"),
        spices=("allspice", "scotch bonnet peppers", "thyme", "ginger", "garlic", "lime"),
        cooking_methods=("jerk seasoning", "steaming", "grilling", "stewing"),
        traditional_dishes=(
            "jerk chicken", "rice and peas", "callaloo", "fish stew", "roasted plantains",
        ),
        healthy_swaps={
            "fried plantains": "baked plantains",
            "coconut oil": "use in moderation",
            "white rice": "brown rice or quinoa",
        },
        system_context=(
            "You are a Caribbean nutrition expert specializing in Jamaican, Cuban, Puerto "
            "Rican, and other island cuisines. Focus on traditional ingredients like plantains, "
            "yuca, beans, rice, tropical fruits, and jerk spices. Use authentic cooking methods "
            "like slow-cooking, grilling, and tropical preparation."
        ),
    ),
    CultureId.MIDDLE_EASTERN: CulturalProfile(
        name="Middle Eastern",
        staples=("bulgur", "rice", "lentils", "chickpeas", "olive oil", "tahini"),
        proteins=("chicken", "fish", "lamb (lean cuts)", "lentils", "chickpeas", "nuts"),
        vegetables=("tomatoes", "cucumbers", "eggplant", "zucchini", "spinach", "parsley"),
        spices=("za'atar", "sumac", "cardamom", "cinnamon", "mint", "lemon"),
        cooking_methods=("grilling", "roasting", "steaming", "slow cooking"),
        traditional_dishes=(
            "hummus", "tabbouleh", "grilled kebabs", "stuffed vegetables", "lentil soup",
        ),
        healthy_swaps={
            "white rice": "bulgur or brown rice",
            "fried foods": "grilled or baked alternatives",
            "heavy cream": "tahini or Greek yogurt",
        },
        system_context=(
            "You are a Middle Eastern nutrition expert specializing in Lebanese, Persian, "
            "Turkish, and Moroccan cuisines. Focus on traditional ingredients like tahini, "
            "dates, nuts, lamb, bulgur, and aromatic spices. Use authentic cooking methods "
            "like slow-braising, grilling, and spice blending."
        ),
    ),
}

HEALTH_GOALS: dict[HealthGoalId, HealthGoalProfile] = {
    HealthGoalId.BLOOD_SUGAR_CONTROL: HealthGoalProfile(
        focus="Blood sugar stability",
        macro_balance=MacroBalance(carbs_pct=40, protein_pct=30, fat_pct=30),
        guidelines=(
            "Focus on complex carbohydrates with high fiber",
            "Pair carbs with protein or healthy fats",
            "Include foods with low glycemic index",
            "Emphasize lean proteins and healthy fats",
            "Include plenty of non-starchy vegetables",
        ),
        avoid_foods=("refined sugars", "white bread", "sugary drinks", "processed foods"),
        prefer_foods=("quinoa", "brown rice", "lean proteins", "leafy greens", "nuts", "seeds"),
    ),
    HealthGoalId.WEIGHT_LOSS: HealthGoalProfile(
        focus="Sustainable weight management",
        macro_balance=MacroBalance(carbs_pct=35, protein_pct=35, fat_pct=30),
        guidelines=(
            "Create moderate calorie deficit",
            "Prioritize high-protein foods for satiety",
            "Include high-fiber foods",
            "Focus on nutrient-dense foods",
            "Control portion sizes",
        ),
        avoid_foods=("processed snacks", "sugary beverages", "fried foods", "refined carbs"),
        prefer_foods=("lean proteins", "vegetables", "fruits", "whole grains", "legumes"),
    ),
    HealthGoalId.ENERGY_BOOST: HealthGoalProfile(
        focus="Sustained energy levels",
        macro_balance=MacroBalance(carbs_pct=45, protein_pct=25, fat_pct=30),
        guidelines=(
            "Include complex carbohydrates for steady energy",
            "Add iron-rich foods to prevent fatigue",
            "Include B-vitamin rich foods",
            "Stay well hydrated",
            "Balance meals to avoid energy crashes",
        ),
        avoid_foods=("simple sugars", "excessive caffeine", "heavy meals"),
        prefer_foods=("oats", "quinoa", "leafy greens", "nuts", "lean meats", "citrus fruits"),
    ),
    HealthGoalId.GLP1_SUPPORT: HealthGoalProfile(
        focus="Supporting GLP-1 medication effects",
        macro_balance=MacroBalance(carbs_pct=35, protein_pct=40, fat_pct=25),
        guidelines=(
            "Eat smaller, more frequent meals",
            "Focus on high-protein foods",
            "Include fiber-rich foods",
            "Stay well hydrated",
            "Avoid foods that cause nausea",
        ),
        avoid_foods=("high-fat foods", "spicy foods", "large portions", "sugary foods"),
        prefer_foods=("lean proteins", "mild vegetables", "whole grains", "low-fat dairy"),
    ),
    HealthGoalId.GENERAL_HEALTH: HealthGoalProfile(
        focus="Overall wellness and nutrition",
        macro_balance=MacroBalance(carbs_pct=45, protein_pct=25, fat_pct=30),
        guidelines=(
            "Include variety of colors in fruits and vegetables",
            "Balance all macronutrients",
            "Include foods from all food groups",
            "Practice portion control",
            "Stay hydrated",
        ),
        avoid_foods=("excessive processed foods", "too much added sugar", "excessive sodium"),
        prefer_foods=(
            "variety of fruits and vegetables", "whole grains", "lean proteins", "healthy fats",
        ),
    ),
}


def get_cultural_profile(culture_id: CultureId | str | None) -> CulturalProfile:
    """Look up a cultural profile; unknown ids get the default culture."""
    culture = CultureId.parse(culture_id)
    if not isinstance(culture_id, CultureId) and culture.value != str(culture_id or "").strip().lower():
        logger.debug("Unknown culture '%s', using %s", culture_id, DEFAULT_CULTURE.value)
    return CULTURAL_PROFILES[culture]


def get_health_goal_profile(goal_id: HealthGoalId | str | None) -> HealthGoalProfile:
    """Look up a health goal profile; unknown ids get general health."""
    goal = HealthGoalId.parse(goal_id)
    if not isinstance(goal_id, HealthGoalId) and goal.value != str(goal_id or "").strip().lower():
        logger.debug("Unknown health goal '%s', using %s", goal_id, DEFAULT_GOAL.value)
    return HEALTH_GOALS[goal]


def validate_knowledge_base(
    cultures: dict[CultureId, CulturalProfile] | None = None,
    goals: dict[HealthGoalId, HealthGoalProfile] | None = None,
) -> None:
    """Check the lookup tables are complete; raise ConfigurationError if not.

    The fallback generator relies on every list being non-empty, so this
    runs once at startup rather than failing a request later.
    """
    cultures = CULTURAL_PROFILES if cultures is None else cultures
    goals = HEALTH_GOALS if goals is None else goals

    missing = [c.value for c in CultureId if c not in cultures]
    if missing:
        raise ConfigurationError(f"No cultural profile for: {', '.join(missing)}")
    missing = [g.value for g in HealthGoalId if g not in goals]
    if missing:
        raise ConfigurationError(f"No health goal profile for: {', '.join(missing)}")

    for culture_id, profile in cultures.items():
        for attr in (
            "staples",
            "proteins",
            "vegetables",
            "spices",
            "cooking_methods",
            "traditional_dishes",
        ):
            if not getattr(profile, attr):
                raise ConfigurationError(
                    f"Cultural profile '{culture_id.value}' has an empty {attr} list"
                )
        if not profile.healthy_swaps:
            raise ConfigurationError(
                f"Cultural profile '{culture_id.value}' has no healthy swaps"
            )

    for goal_id, goal in goals.items():
        if goal.macro_balance.total != 100:
            raise ConfigurationError(
                f"Macro balance for '{goal_id.value}' sums to "
                f"{goal.macro_balance.total}, expected 100"
            )
        if not goal.guidelines:
            raise ConfigurationError(f"Health goal '{goal_id.value}' has no guidelines")


def format_profile_markdown(culture: CulturalProfile, goal: HealthGoalProfile) -> str:
    macros = goal.macro_balance
    lines = [f"# {culture.name} / {goal.focus}", ""]
    for title, items in (
        ("Staples", culture.staples),
        ("Proteins", culture.proteins),
        ("Vegetables", culture.vegetables),
        ("Spices", culture.spices),
        ("Cooking Methods", culture.cooking_methods),
        ("Traditional Dishes", culture.traditional_dishes),
    ):
        lines.append(f"**{title}:** {', '.join(items)}")
    lines.append("")
    lines.append("## Healthy Swaps")
    lines.append("")
    for old, new in culture.healthy_swaps.items():
        lines.append(f"- {old} -> {new}")
    lines.append("")
    lines.append("## Health Goal")
    lines.append("")
    lines.append(
        f"Target macros: {macros.carbs_pct}% carbs, {macros.protein_pct}% protein, "
        f"{macros.fat_pct}% fat"
    )
    lines.append("")
    for guideline in goal.guidelines:
        lines.append(f"- {guideline}")
    lines.append("")
    lines.append(f"**Prefer:** {', '.join(goal.prefer_foods)}")
    lines.append(f"**Limit:** {', '.join(goal.avoid_foods)}")
    lines.append("")
    return "\n".join(lines)


def format_profile_json(culture: CulturalProfile, goal: HealthGoalProfile) -> str:
    data = {
        "culture": {
            "name": culture.name,
            "staples": list(culture.staples),
            "proteins": list(culture.proteins),
            "vegetables": list(culture.vegetables),
            "spices": list(culture.spices),
            "cookingMethods": list(culture.cooking_methods),
            "traditionalDishes": list(culture.traditional_dishes),
            "healthySwaps": dict(culture.healthy_swaps),
        },
        "healthGoal": {
            "focus": goal.focus,
            "macroBalance": goal.macro_balance.to_dict(),
            "guidelines": list(goal.guidelines),
            "avoidFoods": list(goal.avoid_foods),
            "preferFoods": list(goal.prefer_foods),
        },
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def run_profile(
    culture: str | None = None,
    goal: str | None = None,
    output_format: str = "markdown",
) -> None:
    """CLI entry point for profile command."""
    cultural = get_cultural_profile(culture)
    health = get_health_goal_profile(goal)
    if output_format == "json":
        print(format_profile_json(cultural, health))
    else:
        print(format_profile_markdown(cultural, health))
