"""Shopping list derivation from a meal plan."""

from __future__ import annotations

import json
import logging
import re

from nutrivida.models import MealPlan

logger = logging.getLogger(__name__)

CATEGORY_ORDER = (
    "proteins",
    "vegetables",
    "fruits",
    "grains",
    "dairy",
    "spices",
    "pantry",
    "other",
)

# Ordered rules: the first category with a keyword starting a word in the item wins.
# Multi-word and compound items sit in earlier rules so that "olive oil",
# "eggplant" and "green beans" are not claimed by "olive", "egg" and "beans".
CATEGORY_RULES: list[tuple[str, list[str]]] = [
    (
        "pantry",
        [
            "olive oil",
            "coconut milk",
            "coconut oil",
            "tahini",
            "oil",
            "vinegar",
            "broth",
            "stock",
            "sauce",
            "honey",
            "sugar",
        ],
    ),
    (
        "spices",
        [
            "black pepper",
            "peppercorn",
            "scotch bonnet",
            "chili powder",
            "garam masala",
            "berbere",
            "za'atar",
            "sumac",
            "allspice",
            "cumin",
            "paprika",
            "oregano",
            "basil",
            "thyme",
            "rosemary",
            "turmeric",
            "coriander",
            "cardamom",
            "cinnamon",
            "fenugreek",
            "ginger",
            "garlic",
            "mint",
            "salt",
            "spice",
            "herb",
            "seasoning",
        ],
    ),
    (
        "dairy",
        ["yogurt", "cheese", "paneer", "milk", "butter", "cream", "kefir", "ghee"],
    ),
    (
        "fruits",
        [
            "breadfruit",
            "plantain",
            "avocado",
            "lemon",
            "lime",
            "apple",
            "banana",
            "orange",
            "mango",
            "berry",
            "berries",
            "dates",
            "papaya",
            "guava",
            "pineapple",
            "grape",
            "melon",
            "fruit",
        ],
    ),
    (
        "grains",
        [
            "whole grains",
            "tortilla",
            "injera",
            "roti",
            "naan",
            "pita",
            "bread",
            "pasta",
            "noodle",
            "rice",
            "quinoa",
            "bulgur",
            "sorghum",
            "couscous",
            "barley",
            "oats",
            "oatmeal",
            "flour",
            "grain",
        ],
    ),
    (
        "vegetables",
        [
            "eggplant",
            "green beans",
            "sweet potato",
            "pepper",
            "tomato",
            "onion",
            "spinach",
            "cauliflower",
            "okra",
            "carrot",
            "zucchini",
            "cucumber",
            "olive",
            "callaloo",
            "cilantro",
            "parsley",
            "jalapeño",
            "jalapeno",
            "lettuce",
            "cabbage",
            "kale",
            "broccoli",
            "potato",
            "yuca",
            "cassava",
            "squash",
            "mushroom",
            "celery",
            "corn",
            "greens",
            "vegetable",
        ],
    ),
    (
        "proteins",
        [
            "chicken",
            "turkey",
            "beef",
            "lamb",
            "goat",
            "pork",
            "fish",
            "salmon",
            "tuna",
            "shrimp",
            "shellfish",
            "egg",
            "meat",
            "beans",
            "lentil",
            "chickpea",
            "legume",
            "tofu",
            "tempeh",
            "nuts",
            "seeds",
            "peanut",
            "almond",
        ],
    ),
]


def normalize_ingredient(item: str) -> str:
    """Lowercase and collapse whitespace so duplicates compare equal."""
    return " ".join(item.lower().split())


def classify_category(item: str) -> str:
    """Classify an ingredient into a shopping category.

    Keywords must start a word, so "oil" does not claim "boiled eggs". Only
    when nothing matches that way are compounds such as "blueberries" matched
    on a keyword anywhere in the name.
    """
    name_lower = normalize_ingredient(item)
    for category, keywords in CATEGORY_RULES:
        for kw in keywords:
            if re.search(rf"\b{re.escape(kw)}", name_lower):
                return category
    for category, keywords in CATEGORY_RULES:
        for kw in keywords:
            if kw in name_lower:
                return category
    return "other"


def derive_shopping_list(plan: MealPlan) -> dict[str, list[str]]:
    """Bucket every distinct ingredient in the plan into exactly one category.

    All categories are present in CATEGORY_ORDER; each list is sorted.
    """
    items = {
        normalize_ingredient(ingredient)
        for _day, _meal, recipe in plan.recipes()
        for ingredient in recipe.ingredients
        if ingredient.strip()
    }

    sections: dict[str, list[str]] = {category: [] for category in CATEGORY_ORDER}
    for item in items:
        sections[classify_category(item)].append(item)

    for category in sections:
        sections[category].sort()
    return sections


def subtract_pantry(
    sections: dict[str, list[str]],
    pantry_items: list[str],
) -> dict[str, list[str]]:
    """Return a copy of the list without items the user already has."""
    pantry_set = {normalize_ingredient(p) for p in pantry_items if p.strip()}
    if not pantry_set:
        return {k: list(v) for k, v in sections.items()}

    result = {}
    for category, items in sections.items():
        kept = [i for i in items if not any(p in i or i in p for p in pantry_set)]
        removed = len(items) - len(kept)
        if removed:
            logger.debug("Skipping %d pantry item(s) in %s", removed, category)
        result[category] = kept
    return result


def format_shopping_markdown(sections: dict[str, list[str]]) -> str:
    """Format a shopping list as markdown with checkboxes, skipping empty sections."""
    lines = ["# Shopping List", ""]

    for category in CATEGORY_ORDER:
        items = sections.get(category)
        if not items:
            continue
        lines.append(f"## {category.title()}")
        lines.append("")
        for item in items:
            lines.append(f"- [ ] {item}")
        lines.append("")

    return "\n".join(lines)


def format_shopping_json(sections: dict[str, list[str]]) -> str:
    """Format a shopping list as JSON."""
    return json.dumps(sections, indent=2, ensure_ascii=False)


def parse_pantry(pantry: str | None) -> list[str]:
    """Split a comma-separated --pantry value."""
    if not pantry:
        return []
    return [p.strip() for p in pantry.split(",") if p.strip()]


def run_shopping_list(
    plan_file: str | None = None,
    pantry: str | None = None,
    output_format: str = "markdown",
) -> None:
    """CLI entry point for shopping-list command."""
    from nutrivida.validator import load_plan_file

    plan = load_plan_file(plan_file)
    sections = subtract_pantry(derive_shopping_list(plan), parse_pantry(pantry))

    if not any(sections.values()):
        logger.warning("No ingredients to list")
        return

    if output_format == "json":
        print(format_shopping_json(sections))
    else:
        print(format_shopping_markdown(sections))
