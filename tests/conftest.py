import asyncio
import copy
import json

import pytest

from nutrivida.config import DEFAULTS
from nutrivida.generation import Completion, GenerationClient
from nutrivida.knowledge import get_cultural_profile, get_health_goal_profile
from nutrivida.models import CultureId, HealthGoalId, UserProfile


class FakeProvider:
    """Scripted CompletionProvider.

    Each call consumes the next scripted item; the last one repeats. Strings
    become completions, exceptions are raised.
    """

    def __init__(self, *responses, delay: float = 0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls: list[dict] = []

    async def complete(self, system_prompt, user_prompt, max_tokens, temperature):
        self.calls.append(
            {
                "system": system_prompt,
                "prompt": user_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Completion):
            return item
        return Completion(
            text=item, model="gpt-4o-mini", prompt_tokens=1200, completion_tokens=2400
        )


def _recipe(name: str, ingredients: list[str], **extra) -> dict:
    data = {
        "name": name,
        "description": f"A simple {name.lower()}",
        "ingredients": ingredients,
        "instructions": ["Prepare the ingredients.", "Cook and serve."],
        "prepTime": 10,
        "cookTime": 20,
        "servings": 2,
        "nutrition": {"calories": 400, "protein": 25, "carbs": 40, "fat": 12, "fiber": 6},
        "culturalNotes": "Everyday home cooking",
    }
    data.update(extra)
    return data


def _day(n: int) -> dict:
    return {
        "day": n,
        "date": f"Day {n}",
        "breakfast": _recipe(f"Herb omelette {n}", ["eggs", "spinach", "oregano"]),
        "lunch": _recipe(f"Lentil salad {n}", ["lentils", "tomatoes", "olive oil"]),
        "dinner": _recipe(f"Grilled fish {n}", ["fish", "zucchini", "lemon"]),
        "snack": _recipe(f"Yogurt cup {n}", ["Greek yogurt", "nuts"], cookTime=0),
    }


@pytest.fixture
def make_plan_data():
    """Factory for a provider-shaped plan dict with the given number of days."""

    def factory(duration: int = 7) -> dict:
        return {
            "days": [_day(n) for n in range(1, duration + 1)],
            "weeklyNutrition": {
                "avgCaloriesPerDay": 1600,
                "avgMacros": {"carbs": "40%", "protein": "30%", "fat": "30%"},
            },
            "culturalInsights": "Mediterranean staples throughout the week.",
            "tips": ["Cook grains in batches", "Keep cut vegetables ready"],
        }

    return factory


@pytest.fixture
def make_plan_json(make_plan_data):
    def factory(duration: int = 7) -> str:
        return json.dumps(make_plan_data(duration))

    return factory


@pytest.fixture
def make_recipe_data():
    return _recipe


@pytest.fixture
def user() -> UserProfile:
    return UserProfile(
        cultural_background=CultureId.MEDITERRANEAN,
        primary_goal=HealthGoalId.WEIGHT_LOSS,
        allergies=["shellfish"],
        family_size=2,
    )


@pytest.fixture
def mediterranean():
    return get_cultural_profile(CultureId.MEDITERRANEAN)


@pytest.fixture
def weight_loss():
    return get_health_goal_profile(HealthGoalId.WEIGHT_LOSS)


@pytest.fixture
def config() -> dict:
    return copy.deepcopy(DEFAULTS)


@pytest.fixture
def make_client():
    def factory(provider, timeout_s: float = 1.0, max_retries: int = 1) -> GenerationClient:
        return GenerationClient(provider, timeout_s=timeout_s, max_retries=max_retries)

    return factory


@pytest.fixture
def fake_provider():
    return FakeProvider
