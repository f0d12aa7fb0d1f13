import asyncio
import json
from datetime import date

import httpx
import openai
import pytest

from nutrivida.errors import InvalidInput
from nutrivida.fallback import fallback_recipe, generate_fallback
from nutrivida.models import CultureId, GenerationMethod, HealthGoalId, MealType, UserProfile
from nutrivida.prompts import PROMPT_VERSION
from nutrivida.service import (
    GenerationState,
    MealPlanService,
    _transition,
    parse_meal_type,
    replace_meal,
)
from nutrivida.shopping import derive_shopping_list

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


@pytest.fixture
def offline_service(config):
    return MealPlanService(None, config)


class TestGenerateMealPlan:
    @pytest.mark.asyncio
    async def test_ai_plan(self, config, user, make_client, fake_provider, make_plan_json):
        provider = fake_provider(make_plan_json(7))
        service = MealPlanService(make_client(provider), config)

        plan = await service.generate_meal_plan(user, 7)

        assert plan.metadata.method == GenerationMethod.AI
        assert plan.metadata.fallback_reason is None
        assert plan.metadata.prompt_version == PROMPT_VERSION
        assert plan.metadata.tokens_used == 3600
        assert plan.metadata.estimated_cost_usd == pytest.approx(0.00162)
        assert plan.metadata.culture == "Mediterranean"
        assert plan.duration == 7
        assert plan.shopping_list == derive_shopping_list(plan)
        assert "CULTURAL REQUIREMENTS:" in provider.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_provider_down_falls_back(self, config, user, make_client, fake_provider):
        provider = fake_provider(openai.APIConnectionError(request=REQUEST))
        service = MealPlanService(make_client(provider), config)

        plan = await service.generate_meal_plan(user, 3)

        assert plan.metadata.method == GenerationMethod.FALLBACK
        assert "unreachable" in plan.metadata.fallback_reason
        assert plan.duration == 3
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_unconfigured_falls_back(self, offline_service, user):
        plan = await offline_service.generate_meal_plan(user, 7)
        assert plan.metadata.method == GenerationMethod.FALLBACK
        assert plan.metadata.fallback_reason == "provider not configured"
        assert plan.metadata.tokens_used is None

    @pytest.mark.asyncio
    async def test_short_plan_falls_back(self, config, user, make_client, fake_provider, make_plan_json):
        provider = fake_provider("Here you go! " + make_plan_json(6))
        service = MealPlanService(make_client(provider), config)

        plan = await service.generate_meal_plan(user, 7)

        assert plan.metadata.method == GenerationMethod.FALLBACK
        assert "Missing data for day 7" in plan.metadata.fallback_reason
        assert plan.duration == 7
        # Output problems are not retried
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_garbage_falls_back(self, config, user, make_client, fake_provider):
        service = MealPlanService(make_client(fake_provider("I'm not sure.")), config)
        plan = await service.generate_meal_plan(user, 2)
        assert plan.metadata.method == GenerationMethod.FALLBACK
        assert plan.metadata.fallback_reason.startswith("unusable output")

    @pytest.mark.asyncio
    async def test_fallback_matches_direct_generation(self, offline_service, user, mediterranean, weight_loss):
        plan = await offline_service.generate_meal_plan(user, 3)
        direct = generate_fallback(mediterranean, weight_loss, 3, servings=user.family_size)
        assert [d.to_dict() for d in plan.days] == [d.to_dict() for d in direct.days]
        assert plan.shopping_list == direct.shopping_list

    @pytest.mark.asyncio
    async def test_start_date_applied(self, config, user, make_client, fake_provider, make_plan_json):
        service = MealPlanService(make_client(fake_provider(make_plan_json(2))), config)
        plan = await service.generate_meal_plan(user, 2, start_date=date(2025, 1, 31))
        assert [d.date for d in plan.days] == ["2025-01-31", "2025-02-01"]

    @pytest.mark.asyncio
    async def test_default_duration(self, offline_service, user):
        plan = await offline_service.generate_meal_plan(user)
        assert plan.duration == 7

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0, 31, -2])
    async def test_bad_duration_before_any_call(self, config, user, make_client, fake_provider, duration):
        provider = fake_provider("{}")
        service = MealPlanService(make_client(provider), config)
        with pytest.raises(InvalidInput):
            await service.generate_meal_plan(user, duration)
        assert provider.calls == []

    def test_bad_family_size(self):
        with pytest.raises(InvalidInput):
            UserProfile(family_size=0)

    @pytest.mark.asyncio
    async def test_concurrent_requests(self, config, make_client, fake_provider, make_plan_json):
        provider = fake_provider(make_plan_json(3), delay=0.05)
        service = MealPlanService(make_client(provider), config)
        users = [
            UserProfile(cultural_background=c, primary_goal=HealthGoalId.ENERGY_BOOST)
            for c in (CultureId.SOMALI, CultureId.LATINO, CultureId.MIDDLE_EASTERN)
        ]

        plans = await asyncio.gather(*(service.generate_meal_plan(u, 3) for u in users))

        assert [p.metadata.culture for p in plans] == ["Somali", "Latino", "Middle Eastern"]
        assert all(p.metadata.method == GenerationMethod.AI for p in plans)
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_caller_deadline_falls_back(self, config, user, make_client, fake_provider, make_plan_json):
        provider = fake_provider(make_plan_json(1), delay=5)
        service = MealPlanService(make_client(provider, timeout_s=10), config)

        plan = await asyncio.wait_for(service.generate_meal_plan(user, 1, timeout=0.05), 2)

        assert plan.metadata.method == GenerationMethod.FALLBACK
        assert "timeout" in plan.metadata.fallback_reason
        assert plan.duration == 1
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_cancel_event_falls_back(self, config, user, make_client, fake_provider, make_plan_json):
        provider = fake_provider(make_plan_json(2), delay=5)
        service = MealPlanService(make_client(provider, timeout_s=10), config)
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, cancel.set)

        plan = await service.generate_meal_plan(user, 2, cancel=cancel)

        assert plan.metadata.method == GenerationMethod.FALLBACK
        assert "cancelled" in plan.metadata.fallback_reason
        assert plan.duration == 2

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, config, user, make_client, fake_provider, make_plan_json):
        provider = fake_provider(make_plan_json(1), delay=5)
        service = MealPlanService(make_client(provider, timeout_s=10), config)

        task = asyncio.ensure_future(service.generate_meal_plan(user, 1))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_non_finite_numbers_fall_back(self, config, user, make_client, fake_provider, make_plan_json):
        text = make_plan_json(2).replace('"prepTime": 10', '"prepTime": Infinity', 1)
        assert "Infinity" in text
        service = MealPlanService(make_client(fake_provider(text)), config)

        plan = await service.generate_meal_plan(user, 2)

        assert plan.metadata.method == GenerationMethod.FALLBACK
        assert plan.metadata.fallback_reason.startswith("unusable output")


class TestRegenerateMeal:
    @pytest.fixture
    def plan(self, mediterranean, weight_loss):
        return generate_fallback(mediterranean, weight_loss, 3)

    @pytest.mark.asyncio
    async def test_fallback_differs(self, offline_service, user, plan, mediterranean):
        recipe = await offline_service.regenerate_meal("lunch", 2, user, plan)
        assert recipe.name != plan.day(2).lunch.name
        assert {i.lower() for i in recipe.ingredients} <= mediterranean.ingredient_pool()

    @pytest.mark.asyncio
    async def test_fallback_skips_matching_variant(self, offline_service, user, plan, mediterranean, weight_loss):
        clash = fallback_recipe(MealType.DINNER, 1, mediterranean, weight_loss, 2, variant=1)
        plan.day(1).dinner = clash
        recipe = await offline_service.regenerate_meal(MealType.DINNER, 1, user, plan)
        assert recipe.name != clash.name

    @pytest.mark.asyncio
    async def test_ai_replacement(self, config, user, plan, make_client, fake_provider, make_recipe_data):
        provider = fake_provider(json.dumps(make_recipe_data("Shakshuka", ["eggs", "tomatoes"])))
        service = MealPlanService(make_client(provider), config)

        recipe = await service.regenerate_meal("breakfast", 1, user, plan)

        assert recipe.name == "Shakshuka"
        call = provider.calls[0]
        assert call["max_tokens"] == 1000
        assert call["temperature"] == 0.8
        assert plan.day(1).breakfast.name in call["prompt"]

    @pytest.mark.asyncio
    async def test_ai_failure_uses_fallback(self, config, user, plan, make_client, fake_provider):
        provider = fake_provider("not json at all")
        service = MealPlanService(make_client(provider), config)
        recipe = await service.regenerate_meal("snack", 3, user, plan)
        assert recipe.name != plan.day(3).snack.name

    @pytest.mark.asyncio
    async def test_caller_deadline_uses_fallback(self, config, user, plan, make_client, fake_provider, make_recipe_data):
        provider = fake_provider(json.dumps(make_recipe_data("Shakshuka", ["eggs"])), delay=5)
        service = MealPlanService(make_client(provider, timeout_s=10), config)
        recipe = await service.regenerate_meal("lunch", 1, user, plan, timeout=0.05)
        assert recipe.name != "Shakshuka"
        assert recipe.name != plan.day(1).lunch.name

    @pytest.mark.asyncio
    async def test_original_untouched(self, offline_service, user, plan):
        before = plan.to_dict()
        await offline_service.regenerate_meal("dinner", 2, user, plan)
        assert plan.to_dict() == before

    @pytest.mark.asyncio
    async def test_day_out_of_range(self, offline_service, user, plan):
        with pytest.raises(InvalidInput):
            await offline_service.regenerate_meal("lunch", 4, user, plan)

    @pytest.mark.asyncio
    async def test_unknown_meal(self, offline_service, user, plan):
        with pytest.raises(InvalidInput, match="Unknown meal type"):
            await offline_service.regenerate_meal("brunch", 1, user, plan)


class TestReplaceMeal:
    def test_splices_copy(self, mediterranean, weight_loss):
        plan = generate_fallback(mediterranean, weight_loss, 2)
        new = fallback_recipe(MealType.LUNCH, 1, mediterranean, weight_loss, variant=3)
        new.ingredients = ["sumac", "bulgur"]

        updated = replace_meal(plan, 1, MealType.LUNCH, new)

        assert updated.day(1).lunch.ingredients == ["sumac", "bulgur"]
        assert plan.day(1).lunch.ingredients != ["sumac", "bulgur"]
        assert "bulgur" in updated.shopping_list["grains"]
        assert "bulgur" not in plan.shopping_list["grains"]


class TestStateMachine:
    def test_ai_path(self):
        state = _transition(GenerationState.ATTEMPTING, GenerationState.SUCCEEDED_AI)
        assert state == GenerationState.SUCCEEDED_AI

    def test_fallback_path(self):
        state = _transition(GenerationState.ATTEMPTING, GenerationState.ATTEMPTING_FALLBACK)
        state = _transition(state, GenerationState.SUCCEEDED_FALLBACK)
        assert state == GenerationState.SUCCEEDED_FALLBACK

    def test_terminal_states_final(self):
        with pytest.raises(RuntimeError):
            _transition(GenerationState.SUCCEEDED_AI, GenerationState.ATTEMPTING_FALLBACK)
        with pytest.raises(RuntimeError):
            _transition(GenerationState.ATTEMPTING_FALLBACK, GenerationState.SUCCEEDED_AI)

    def test_parse_meal_type(self):
        assert parse_meal_type(" Dinner ") == MealType.DINNER
        assert parse_meal_type(MealType.SNACK) == MealType.SNACK

    def test_profile_lookups(self, offline_service):
        assert offline_service.get_cultural_profile("atlantean").name == "Latino"
        assert offline_service.get_health_goal_profile("weight_loss").focus == (
            "Sustainable weight management"
        )
