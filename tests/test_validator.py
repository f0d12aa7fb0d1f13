import json

import pytest

from nutrivida.errors import IncompleteMealPlan, MalformedOutput, ValidationError
from nutrivida.models import CultureId, GenerationMethod, HealthGoalId, MealType
from nutrivida.fallback import generate_fallback
from nutrivida.knowledge import get_cultural_profile, get_health_goal_profile
from nutrivida.validator import (
    DEFAULT_CALORIES,
    DEFAULT_COOK_MIN,
    DEFAULT_PREP_MIN,
    DEFAULT_SERVINGS,
    normalize_amount,
    normalize_minutes,
    normalize_servings,
    parse_and_validate,
    parse_recipe,
    plan_from_dict,
)


class TestNormalizeMinutes:
    def test_integer(self):
        assert normalize_minutes(15) == 15

    def test_zero_is_kept(self):
        assert normalize_minutes(0) == 0
        assert normalize_minutes("0 mins") == 0

    def test_text_forms(self):
        assert normalize_minutes("15 mins") == 15
        assert normalize_minutes("10 minutes") == 10
        assert normalize_minutes("1 hour 30 minutes") == 90
        assert normalize_minutes("2 hrs") == 120

    def test_decimal_hours(self):
        assert normalize_minutes("1.5 hours") == 90
        assert normalize_minutes("0.25 h") == 15
        assert normalize_minutes("1.5 hours 10 minutes") == 100

    def test_non_finite_and_huge(self):
        assert normalize_minutes(float("inf")) is None
        assert normalize_minutes(float("nan")) is None
        assert normalize_minutes(10**400) is None
        assert normalize_minutes("9" * 400 + " hours") is None
        assert normalize_minutes(-5) is None

    def test_unparseable(self):
        assert normalize_minutes("") is None
        assert normalize_minutes("a while") is None
        assert normalize_minutes(None) is None


class TestNormalizeServings:
    def test_forms(self):
        assert normalize_servings(4) == 4
        assert normalize_servings("Serves 6") == 6
        assert normalize_servings("4 to 6") == 5
        assert normalize_servings("3 servings") == 3

    def test_zero_rejected(self):
        assert normalize_servings(0) is None

    def test_non_finite(self):
        assert normalize_servings(float("inf")) is None
        assert normalize_servings(float("nan")) is None


class TestNormalizeAmount:
    def test_forms(self):
        assert normalize_amount(25) == 25.0
        assert normalize_amount("25.5 g") == 25.5
        assert normalize_amount("about ten") is None

    def test_non_finite_and_huge(self):
        assert normalize_amount(float("inf")) is None
        assert normalize_amount(float("-inf")) is None
        assert normalize_amount(float("nan")) is None
        assert normalize_amount(10**400) is None
        assert normalize_amount("9" * 400) is None


class TestParseAndValidate:
    def test_days_list(self, make_plan_json):
        plan = parse_and_validate(make_plan_json(7), 7)
        assert plan.duration == 7
        assert [d.day for d in plan.days] == list(range(1, 8))
        assert plan.metadata.method == GenerationMethod.AI
        assert plan.days[2].lunch.name == "Lentil salad 3"
        assert plan.weekly_nutrition.avg_macros.protein_pct == 30
        assert plan.tips == ["Cook grains in batches", "Keep cut vegetables ready"]

    def test_week_object(self, make_plan_data):
        data = make_plan_data(3)
        data["week"] = {f"day{d['day']}": d for d in data.pop("days")}
        plan = parse_and_validate(json.dumps(data), 3)
        assert plan.duration == 3
        assert plan.days[0].breakfast.name == "Herb omelette 1"

    def test_nested_meals_object(self, make_plan_data):
        data = make_plan_data(1)
        day = data["days"][0]
        data["days"][0] = {
            "day": 1,
            "meals": {k: day[k] for k in ("breakfast", "lunch", "dinner", "snack")},
        }
        plan = parse_and_validate(json.dumps(data), 1)
        assert plan.days[0].dinner.name == "Grilled fish 1"

    def test_prose_wrapped_and_short(self, make_plan_json):
        text = "Here is your plan:\n" + make_plan_json(6) + "\nEnjoy!"
        with pytest.raises(IncompleteMealPlan) as exc:
            parse_and_validate(text, 7)
        assert exc.value.day == 7
        assert exc.value.meal_type is None
        assert "Missing data for day 7" in str(exc.value)

    def test_fenced_json(self, make_plan_json):
        text = "```json\n" + make_plan_json(2) + "\n```"
        assert parse_and_validate(text, 2).duration == 2

    def test_missing_meal(self, make_plan_data):
        data = make_plan_data(3)
        del data["days"][1]["lunch"]
        with pytest.raises(IncompleteMealPlan) as exc:
            parse_and_validate(json.dumps(data), 3)
        assert exc.value.day == 2
        assert exc.value.meal_type == "lunch"

    def test_missing_recipe_field(self, make_plan_data):
        data = make_plan_data(2)
        data["days"][0]["dinner"]["ingredients"] = []
        with pytest.raises(IncompleteMealPlan, match="Missing ingredients in dinner for day 1"):
            parse_and_validate(json.dumps(data), 2)

    @pytest.mark.parametrize(
        "text",
        [
            "Sorry, I cannot help with that.",
            '{"days": [',
            '{"days": [}',
            "[1, 2, 3]",
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(MalformedOutput):
            parse_and_validate(text, 7)

    def test_no_day_container(self):
        with pytest.raises(MalformedOutput, match="no 'days' or 'week'"):
            parse_and_validate('{"plan": "nothing"}', 1)

    def test_errors_share_validation_base(self):
        assert issubclass(MalformedOutput, ValidationError)
        assert issubclass(IncompleteMealPlan, ValidationError)

    def test_defaults_filled(self, make_plan_data):
        data = make_plan_data(1)
        breakfast = data["days"][0]["breakfast"]
        for key in ("prepTime", "cookTime", "servings", "nutrition", "description"):
            del breakfast[key]
        plan = parse_and_validate(json.dumps(data), 1)
        recipe = plan.days[0].breakfast
        assert recipe.prep_time_min == DEFAULT_PREP_MIN
        assert recipe.cook_time_min == DEFAULT_COOK_MIN
        assert recipe.servings == DEFAULT_SERVINGS
        assert recipe.nutrition.calories == DEFAULT_CALORIES
        assert recipe.description == ""

    @pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN"])
    def test_non_standard_numbers_rejected(self, make_plan_json, literal):
        text = make_plan_json(1).replace('"prepTime": 10', f'"prepTime": {literal}', 1)
        with pytest.raises(MalformedOutput, match=literal):
            parse_and_validate(text, 1)

    def test_overflowing_numbers_use_defaults(self, make_plan_json):
        text = make_plan_json(1).replace('"prepTime": 10', '"prepTime": 1e400', 1)
        text = text.replace('"calories": 400', '"calories": 1e400', 1)
        plan = parse_and_validate(text, 1)
        recipe = plan.days[0].breakfast
        assert recipe.prep_time_min == DEFAULT_PREP_MIN
        assert recipe.nutrition.calories == DEFAULT_CALORIES

    def test_text_times(self, make_plan_data):
        data = make_plan_data(1)
        data["days"][0]["lunch"].update(prepTime="15 mins", cookTime="1 hour", servings="Serves 4")
        recipe = parse_and_validate(json.dumps(data), 1).days[0].lunch
        assert recipe.prep_time_min == 15
        assert recipe.cook_time_min == 60
        assert recipe.servings == 4

    def test_broken_snack_dropped(self, make_plan_data):
        data = make_plan_data(2)
        data["days"][1]["snack"]["instructions"] = []
        plan = parse_and_validate(json.dumps(data), 2)
        assert plan.days[1].snack is None
        assert plan.days[0].snack is not None
        assert [m for m, _ in plan.days[1].meals()] == [
            MealType.BREAKFAST,
            MealType.LUNCH,
            MealType.DINNER,
        ]

    def test_missing_snack_allowed(self, make_plan_data):
        data = make_plan_data(1)
        del data["days"][0]["snack"]
        assert parse_and_validate(json.dumps(data), 1).days[0].snack is None

    def test_extra_days_ignored(self, make_plan_json):
        plan = parse_and_validate(make_plan_json(9), 7)
        assert plan.duration == 7

    def test_days_out_of_order(self, make_plan_data):
        data = make_plan_data(3)
        data["days"].reverse()
        plan = parse_and_validate(json.dumps(data), 3)
        assert [d.day for d in plan.days] == [1, 2, 3]
        assert plan.days[0].lunch.name == "Lentil salad 1"


class TestParseRecipe:
    def test_bare_recipe(self, make_recipe_data):
        text = json.dumps(make_recipe_data("Shakshuka", ["eggs", "tomatoes"]))
        recipe = parse_recipe(text, 2, MealType.BREAKFAST)
        assert recipe.name == "Shakshuka"
        assert recipe.ingredients == ["eggs", "tomatoes"]

    def test_wrapped_recipe(self, make_recipe_data):
        text = json.dumps({"recipe": make_recipe_data("Fattoush", ["cucumbers", "sumac"])})
        assert parse_recipe(text, 1, MealType.LUNCH).name == "Fattoush"

    def test_missing_name(self, make_recipe_data):
        text = json.dumps(make_recipe_data("", ["eggs"]))
        with pytest.raises(IncompleteMealPlan, match="Missing name in snack for day 3"):
            parse_recipe(text, 3, MealType.SNACK)


class TestPlanFromDict:
    def test_saved_plan_restores(self):
        plan = generate_fallback(
            get_cultural_profile(CultureId.SOMALI),
            get_health_goal_profile(HealthGoalId.ENERGY_BOOST),
            4,
        )
        restored = plan_from_dict(json.loads(json.dumps(plan.to_dict())))
        assert restored.to_dict() == plan.to_dict()
        assert restored.metadata.method == GenerationMethod.FALLBACK

    def test_empty_plan_rejected(self):
        with pytest.raises(MalformedOutput):
            plan_from_dict({"days": []})
