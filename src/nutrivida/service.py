"""Meal plan orchestration: AI generation with a deterministic fallback."""

from __future__ import annotations

import asyncio
import copy
import logging
import sys
import time
from datetime import date, timedelta
from enum import Enum

from nutrivida.config import DEFAULTS
from nutrivida.errors import GenerationError, InvalidInput, ValidationError
from nutrivida.fallback import fallback_recipe, generate_fallback
from nutrivida.generation import Completion, GenerationClient, estimate_cost
from nutrivida.knowledge import (
    get_cultural_profile,
    get_health_goal_profile,
    validate_knowledge_base,
)
from nutrivida.models import (
    CulturalProfile,
    GenerationMethod,
    HealthGoalProfile,
    MealPlan,
    MealType,
    Recipe,
    UserProfile,
)
from nutrivida.prompts import (
    MEAL_SYSTEM_INSTRUCTION,
    PROMPT_VERSION,
    build_meal_prompt,
    build_prompt,
    system_instruction,
)
from nutrivida.shopping import derive_shopping_list
from nutrivida.summary import average_minutes_per_meal, compute_weekly_nutrition
from nutrivida.validator import parse_and_validate, parse_recipe

logger = logging.getLogger(__name__)


class GenerationState(Enum):
    ATTEMPTING = "attempting"
    ATTEMPTING_FALLBACK = "attempting_fallback"
    SUCCEEDED_AI = "succeeded_ai"
    SUCCEEDED_FALLBACK = "succeeded_fallback"


TRANSITIONS = {
    GenerationState.ATTEMPTING: {
        GenerationState.SUCCEEDED_AI,
        GenerationState.ATTEMPTING_FALLBACK,
    },
    GenerationState.ATTEMPTING_FALLBACK: {GenerationState.SUCCEEDED_FALLBACK},
}


def _transition(current: GenerationState, target: GenerationState, why: str = "") -> GenerationState:
    if target not in TRANSITIONS.get(current, set()):
        raise RuntimeError(f"Illegal generation transition {current.value} -> {target.value}")
    logger.debug("Generation %s -> %s %s", current.value, target.value, why)
    return target


def parse_meal_type(value: MealType | str) -> MealType:
    if isinstance(value, MealType):
        return value
    try:
        return MealType(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(m.value for m in MealType)
        raise InvalidInput(f"Unknown meal type '{value}'. Valid: {valid}")


def replace_meal(plan: MealPlan, day: int, meal_type: MealType, recipe: Recipe) -> MealPlan:
    """Return a copy of the plan with one meal swapped and summaries recomputed."""
    updated = copy.deepcopy(plan)
    setattr(updated.day(day), meal_type.value, recipe)
    updated.shopping_list = derive_shopping_list(updated)
    if updated.weekly_nutrition is not None:
        updated.weekly_nutrition = compute_weekly_nutrition(
            updated.days, updated.weekly_nutrition.avg_macros
        )
    updated.metadata.avg_minutes_per_meal = average_minutes_per_meal(updated)
    return updated


class MealPlanService:
    """Public operation surface for meal plan generation.

    client=None means no provider is configured; every request then goes
    straight to the fallback generator.
    """

    def __init__(self, client: GenerationClient | None, config: dict | None = None) -> None:
        validate_knowledge_base()
        self.client = client
        self.config = config if config is not None else copy.deepcopy(DEFAULTS)

    @classmethod
    def from_config(cls, config: dict, offline: bool = False) -> MealPlanService:
        client = None if offline else GenerationClient.from_config(config)
        return cls(client, config)

    def get_cultural_profile(self, culture_id: object) -> CulturalProfile:
        return get_cultural_profile(culture_id)  # type: ignore[arg-type]

    def get_health_goal_profile(self, goal_id: object) -> HealthGoalProfile:
        return get_health_goal_profile(goal_id)  # type: ignore[arg-type]

    def _check_duration(self, duration: int) -> None:
        plan_cfg = self.config["plan"]
        low, high = plan_cfg["min_duration"], plan_cfg["max_duration"]
        if isinstance(duration, bool) or not isinstance(duration, int):
            raise InvalidInput(f"Duration must be an integer, got {duration!r}")
        if not low <= duration <= high:
            raise InvalidInput(f"Duration must be between {low} and {high} days, got {duration}")

    async def generate_meal_plan(
        self,
        user: UserProfile,
        duration: int | None = None,
        start_date: date | None = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> MealPlan:
        """Generate a plan; provider or output failures fall back, never raise.

        Only InvalidInput escapes, and only before any network call. A caller
        deadline (``timeout`` seconds) or a set ``cancel`` event ends the
        provider call and yields the fallback plan.
        """
        if duration is None:
            duration = int(self.config["plan"]["duration"])
        self._check_duration(duration)

        culture = get_cultural_profile(user.cultural_background)
        goal = get_health_goal_profile(user.primary_goal)
        prompt = build_prompt(culture, goal, user, duration)

        started = time.monotonic()
        state = GenerationState.ATTEMPTING
        completion: Completion | None = None
        plan: MealPlan | None = None
        fallback_reason: str | None = None

        if self.client is None:
            fallback_reason = "provider not configured"
        else:
            try:
                completion = await self.client.generate(
                    prompt, system_instruction(culture), timeout=timeout, cancel=cancel
                )
                plan = parse_and_validate(completion.text, duration)
            except GenerationError as e:
                fallback_reason = f"generation failed ({e.reason}): {e}"
            except ValidationError as e:
                fallback_reason = f"unusable output: {e}"

        if plan is None:
            state = _transition(state, GenerationState.ATTEMPTING_FALLBACK, fallback_reason or "")
            logger.warning("Using fallback meal plan for %s: %s", culture.name, fallback_reason)
            plan = generate_fallback(
                culture, goal, duration, start_date=start_date, servings=user.family_size
            )
            state = _transition(state, GenerationState.SUCCEEDED_FALLBACK)
        else:
            state = _transition(state, GenerationState.SUCCEEDED_AI)
            if start_date is not None:
                for day_plan in plan.days:
                    day_plan.date = (start_date + timedelta(days=day_plan.day - 1)).isoformat()
            if plan.weekly_nutrition is None:
                plan.weekly_nutrition = compute_weekly_nutrition(plan.days, goal.macro_balance)
            if not plan.cultural_insights:
                plan.cultural_insights = (
                    f"Built around {culture.name} staples to support {goal.focus.lower()}."
                )

        plan.shopping_list = derive_shopping_list(plan)

        meta = plan.metadata
        meta.method = (
            GenerationMethod.AI
            if state == GenerationState.SUCCEEDED_AI
            else GenerationMethod.FALLBACK
        )
        meta.generation_time_ms = int((time.monotonic() - started) * 1000)
        meta.prompt_version = PROMPT_VERSION
        meta.fallback_reason = fallback_reason
        meta.culture = culture.name
        meta.health_goal = goal.focus
        meta.avg_minutes_per_meal = average_minutes_per_meal(plan)
        if completion is not None:
            meta.model = completion.model
            meta.tokens_used = completion.total_tokens
            meta.estimated_cost_usd = estimate_cost(
                self.config.get("pricing", {}),
                completion.model,
                completion.prompt_tokens,
                completion.completion_tokens,
            )

        if meta.method == GenerationMethod.AI:
            logger.info(
                "Generated %d-day %s plan in %dms (%s tokens)",
                duration,
                culture.name,
                meta.generation_time_ms,
                meta.tokens_used,
            )
        return plan

    async def regenerate_meal(
        self,
        meal_type: MealType | str,
        day: int,
        user: UserProfile,
        existing_plan: MealPlan,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Recipe:
        """Produce a replacement recipe for one meal; existing_plan is not modified."""
        meal_type = parse_meal_type(meal_type)
        day_plan = existing_plan.day(day)
        current = day_plan.meal(meal_type)

        culture = get_cultural_profile(user.cultural_background)
        goal = get_health_goal_profile(user.primary_goal)

        if self.client is not None:
            avoid = sorted(
                {r.name for _d, m, r in existing_plan.recipes() if m == meal_type}
            )
            prompt = build_meal_prompt(meal_type, day, culture, goal, user, avoid=avoid)
            gen = self.config["generation"]
            try:
                completion = await self.client.generate(
                    prompt,
                    MEAL_SYSTEM_INSTRUCTION,
                    max_tokens=int(gen["meal_max_tokens"]),
                    temperature=float(gen["meal_temperature"]),
                    timeout=timeout,
                    cancel=cancel,
                )
                return parse_recipe(completion.text, day, meal_type)
            except GenerationError as e:
                logger.warning("Meal regeneration failed (%s), using fallback: %s", e.reason, e)
            except ValidationError as e:
                logger.warning("Unusable regenerated meal, using fallback: %s", e)

        # Rotate until the replacement differs from the meal it replaces
        longest = max(
            len(culture.staples), len(culture.proteins), len(culture.vegetables), len(culture.spices)
        )
        recipe = fallback_recipe(meal_type, day, culture, goal, user.family_size, variant=1)
        for variant in range(2, longest + 2):
            if current is None or recipe.name != current.name:
                break
            recipe = fallback_recipe(meal_type, day, culture, goal, user.family_size, variant=variant)
        return recipe


def parse_start_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidInput(f"Start date must be YYYY-MM-DD, got '{value}'")


def _write_plan(plan: MealPlan, save_path: str) -> None:
    from nutrivida.render import format_plan_json

    with open(save_path, "w") as f:
        f.write(format_plan_json(plan))
    print(f"Plan saved to {save_path}", file=sys.stderr)


def run_plan(
    config: dict,
    start_date: str | None = None,
    output_format: str = "markdown",
    recipes: bool = False,
    shopping_list: bool = False,
    save_plan: str | None = None,
    offline: bool = False,
    pantry: str | None = None,
) -> None:
    """CLI entry point for plan command."""
    from nutrivida.render import format_plan_json, format_plan_markdown
    from nutrivida.shopping import (
        format_shopping_json,
        format_shopping_markdown,
        parse_pantry,
        subtract_pantry,
    )

    user = UserProfile.from_dict(config["profile"])
    start = parse_start_date(start_date)
    service = MealPlanService.from_config(config, offline=offline)

    plan = asyncio.run(
        service.generate_meal_plan(user, int(config["plan"]["duration"]), start)
    )

    # --save-plan: persist plan JSON to file
    if save_plan is not None:
        if save_plan == "auto":
            save_path = f"meal-plan-{(start or date.today()).isoformat()}.json"
        else:
            save_path = save_plan
        _write_plan(plan, save_path)

    if output_format == "json":
        print(format_plan_json(plan))
    else:
        print(format_plan_markdown(plan, include_recipes=recipes))

    if shopping_list:
        sections = subtract_pantry(plan.shopping_list, parse_pantry(pantry))
        if output_format == "json":
            print(format_shopping_json(sections))
        else:
            print("---")
            print()
            print(format_shopping_markdown(sections))


def run_regenerate(
    config: dict,
    plan_file: str | None,
    day: int,
    meal: str,
    output_format: str = "markdown",
    save_plan: str | None = None,
    offline: bool = False,
) -> None:
    """CLI entry point for regenerate command."""
    from nutrivida.render import format_recipe_json, format_recipe_markdown
    from nutrivida.validator import load_plan_file

    meal_type = parse_meal_type(meal)
    plan = load_plan_file(plan_file)
    user = UserProfile.from_dict(config["profile"])
    service = MealPlanService.from_config(config, offline=offline)

    recipe = asyncio.run(service.regenerate_meal(meal_type, day, user, plan))

    if save_plan:
        _write_plan(replace_meal(plan, day, meal_type, recipe), save_plan)

    if output_format == "json":
        print(format_recipe_json(recipe, day, meal_type))
    else:
        title = f"Day {day} {meal_type.value.title()}: {recipe.name}"
        print(format_recipe_markdown(recipe, title=title))
