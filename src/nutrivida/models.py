"""Shared data models for meal plan generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from nutrivida.errors import InvalidInput


class MealType(Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


REQUIRED_MEALS = (MealType.BREAKFAST, MealType.LUNCH, MealType.DINNER)


class CultureId(Enum):
    LATINO = "latino"
    SOMALI = "somali"
    SOUTH_ASIAN = "south_asian"
    MEDITERRANEAN = "mediterranean"
    CARIBBEAN = "caribbean"
    MIDDLE_EASTERN = "middle_eastern"

    @classmethod
    def parse(cls, value: object) -> CultureId:
        """Return the matching culture, or LATINO for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.LATINO


class HealthGoalId(Enum):
    BLOOD_SUGAR_CONTROL = "blood_sugar_control"
    WEIGHT_LOSS = "weight_loss"
    ENERGY_BOOST = "energy_boost"
    GLP1_SUPPORT = "glp1_support"
    GENERAL_HEALTH = "general_health"

    @classmethod
    def parse(cls, value: object) -> HealthGoalId:
        """Return the matching goal, or GENERAL_HEALTH for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.GENERAL_HEALTH


class SkillLevel(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class TimeAvailable(Enum):
    MINIMAL = "minimal"
    MODERATE = "moderate"
    FLEXIBLE = "flexible"


class BudgetLevel(Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class GenerationMethod(Enum):
    AI = "ai"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class MacroBalance:
    carbs_pct: int
    protein_pct: int
    fat_pct: int

    @property
    def total(self) -> int:
        return self.carbs_pct + self.protein_pct + self.fat_pct

    def to_dict(self) -> dict:
        return {
            "carbs": f"{self.carbs_pct}%",
            "protein": f"{self.protein_pct}%",
            "fat": f"{self.fat_pct}%",
        }


@dataclass(frozen=True)
class CulturalProfile:
    name: str
    staples: tuple[str, ...]
    proteins: tuple[str, ...]
    vegetables: tuple[str, ...]
    spices: tuple[str, ...]
    cooking_methods: tuple[str, ...]
    traditional_dishes: tuple[str, ...]
    healthy_swaps: dict[str, str]
    # Expert persona used as the system instruction for this cuisine
    system_context: str = ""

    def ingredient_pool(self) -> set[str]:
        """All ingredients a fallback recipe may draw from."""
        return {
            item.lower()
            for group in (self.staples, self.proteins, self.vegetables, self.spices)
            for item in group
        }


@dataclass(frozen=True)
class HealthGoalProfile:
    focus: str
    macro_balance: MacroBalance
    guidelines: tuple[str, ...]
    avoid_foods: tuple[str, ...]
    prefer_foods: tuple[str, ...]


def _enum_value(enum_cls: type[Enum], raw: object, default: Enum) -> Enum:
    if raw is None or raw == "":
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        valid = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"Unknown {enum_cls.__name__} '{raw}'. Valid: {valid}")


def _str_list(raw: object) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [s.strip() for s in raw.split(",") if s.strip()]
    return [str(s).strip() for s in raw if str(s).strip()]


@dataclass
class UserProfile:
    cultural_background: CultureId = CultureId.LATINO
    primary_goal: HealthGoalId = HealthGoalId.GENERAL_HEALTH
    dietary_restrictions: list[str] = field(default_factory=list)
    allergies: list[str] = field(default_factory=list)
    cooking_skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    time_available: TimeAvailable = TimeAvailable.MODERATE
    budget_level: BudgetLevel = BudgetLevel.MODERATE
    family_size: int = 1
    age: int | None = None
    gender: str | None = None
    activity_level: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.family_size, bool) or not isinstance(self.family_size, int):
            raise InvalidInput(f"family_size must be an integer, got {self.family_size!r}")
        if self.family_size < 1:
            raise InvalidInput(f"family_size must be positive, got {self.family_size}")

    @classmethod
    def from_dict(cls, data: dict) -> UserProfile:
        """Build a profile from loosely typed quiz, config or CLI data.

        Accepts snake_case or camelCase keys. Unknown culture and goal ids
        fall back to their defaults; unknown skill, time or budget values
        raise InvalidInput.
        """

        def get(snake: str, camel: str) -> object:
            return data.get(snake, data.get(camel))

        family_size = get("family_size", "familySize")
        try:
            family_size = int(family_size) if family_size is not None else 1
        except (TypeError, ValueError):
            raise InvalidInput(f"family_size must be an integer, got {family_size!r}")

        age = get("age", "age")
        try:
            age = int(age) if age not in (None, "") else None
        except (TypeError, ValueError):
            raise InvalidInput(f"age must be an integer, got {age!r}")

        return cls(
            cultural_background=CultureId.parse(get("cultural_background", "culturalBackground")),
            primary_goal=HealthGoalId.parse(get("primary_goal", "primaryGoal")),
            dietary_restrictions=_str_list(get("dietary_restrictions", "dietaryRestrictions")),
            allergies=_str_list(get("allergies", "allergies")),
            cooking_skill_level=_enum_value(
                SkillLevel, get("cooking_skill_level", "cookingSkillLevel"), SkillLevel.INTERMEDIATE
            ),
            time_available=_enum_value(
                TimeAvailable, get("time_available", "timeAvailable"), TimeAvailable.MODERATE
            ),
            budget_level=_enum_value(
                BudgetLevel, get("budget_level", "budgetLevel"), BudgetLevel.MODERATE
            ),
            family_size=family_size,
            age=age,
            gender=get("gender", "gender") or None,
            activity_level=get("activity_level", "activityLevel") or None,
        )


@dataclass
class Nutrition:
    calories: float
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0

    def to_dict(self) -> dict:
        return {
            "calories": self.calories,
            "protein": self.protein_g,
            "carbs": self.carbs_g,
            "fat": self.fat_g,
            "fiber": self.fiber_g,
        }


@dataclass
class Recipe:
    name: str
    ingredients: list[str]
    instructions: list[str]
    nutrition: Nutrition
    description: str = ""
    prep_time_min: int = 10
    cook_time_min: int = 20
    servings: int = 1
    cultural_notes: str = ""

    @property
    def total_time_min(self) -> int:
        return self.prep_time_min + self.cook_time_min

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "prepTime": self.prep_time_min,
            "cookTime": self.cook_time_min,
            "servings": self.servings,
            "nutrition": self.nutrition.to_dict(),
            "culturalNotes": self.cultural_notes,
        }


@dataclass
class DayPlan:
    day: int  # 1-indexed day of the plan
    date: str
    breakfast: Recipe
    lunch: Recipe
    dinner: Recipe
    snack: Recipe | None = None

    def meals(self) -> Iterator[tuple[MealType, Recipe]]:
        """Yield (meal_type, recipe) in canonical order, skipping a missing snack."""
        for meal_type in MealType:
            recipe = self.meal(meal_type)
            if recipe is not None:
                yield meal_type, recipe

    def meal(self, meal_type: MealType) -> Recipe | None:
        return getattr(self, meal_type.value)

    def calories(self) -> float:
        return sum(r.nutrition.calories for _, r in self.meals())

    def to_dict(self) -> dict:
        data: dict = {"day": self.day, "date": self.date}
        for meal_type, recipe in self.meals():
            data[meal_type.value] = recipe.to_dict()
        return data


@dataclass
class WeeklyNutrition:
    avg_calories_per_day: float
    avg_macros: MacroBalance

    def to_dict(self) -> dict:
        return {
            "avgCaloriesPerDay": self.avg_calories_per_day,
            "avgMacros": self.avg_macros.to_dict(),
        }


@dataclass
class GenerationMetadata:
    method: GenerationMethod
    generation_time_ms: int = 0
    prompt_version: str = ""
    model: str | None = None
    tokens_used: int | None = None
    estimated_cost_usd: float | None = None
    fallback_reason: str | None = None
    culture: str | None = None
    health_goal: str | None = None
    avg_minutes_per_meal: int | None = None

    def to_dict(self) -> dict:
        return {
            "method": self.method.value,
            "generationTimeMs": self.generation_time_ms,
            "promptVersion": self.prompt_version,
            "model": self.model,
            "tokensUsed": self.tokens_used,
            "estimatedCostUsd": self.estimated_cost_usd,
            "fallbackReason": self.fallback_reason,
            "culture": self.culture,
            "healthGoal": self.health_goal,
            "avgMinutesPerMeal": self.avg_minutes_per_meal,
        }


@dataclass
class MealPlan:
    days: list[DayPlan]
    metadata: GenerationMetadata
    shopping_list: dict[str, list[str]] = field(default_factory=dict)
    weekly_nutrition: WeeklyNutrition | None = None
    cultural_insights: str = ""
    tips: list[str] = field(default_factory=list)

    @property
    def duration(self) -> int:
        return len(self.days)

    def day(self, day: int) -> DayPlan:
        """Return the plan for a 1-indexed day."""
        if day < 1 or day > len(self.days):
            raise InvalidInput(f"Day {day} is outside the plan (1..{len(self.days)})")
        return self.days[day - 1]

    def recipes(self) -> Iterator[tuple[int, MealType, Recipe]]:
        for day_plan in self.days:
            for meal_type, recipe in day_plan.meals():
                yield day_plan.day, meal_type, recipe

    def to_dict(self) -> dict:
        return {
            "days": [d.to_dict() for d in self.days],
            "shoppingList": {k: list(v) for k, v in self.shopping_list.items()},
            "weeklyNutrition": (
                self.weekly_nutrition.to_dict() if self.weekly_nutrition else None
            ),
            "culturalInsights": self.cultural_insights,
            "tips": list(self.tips),
            "generationMetadata": self.metadata.to_dict(),
        }
