"""In-memory stand-ins for the Mongo repositories, Redis and the OpenAI client."""
from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock

import httpx
import openai

from dermreco.domain.models.llm import LLMRankOutput, LLMRankedItem
from dermreco.domain.models.product import ProductRow, SkinAnalysis, SkinTrait, UserProfile


def make_product(pid: str, **overrides: Any) -> ProductRow:
    data = {
        "id": pid,
        "name": f"Product {pid}",
        "brand": "Brand",
        "product_type": "Cleanser",
        "price_usd": 20.0,
        "merchants": ["Amazon"],
        "active_ingredients": [],
        "all_ingredients": None,
        "product_link": None,
        "dupe_group_id": None,
        "is_active": True,
    }
    data.update(overrides)
    return ProductRow(**data)


def make_profile(**overrides: Any) -> UserProfile:
    data = {
        "skin_concerns": [],
        "skin_goals": [],
        "ingredients_to_avoid": [],
        "budget_min_usd": 0,
        "budget_max_usd": 1000,
    }
    data.update(overrides)
    return UserProfile(**data)


def make_trait(tid: str, severity: str = "moderate") -> SkinTrait:
    return SkinTrait(id=tid, name=tid.replace("-", " ").title(), severity=severity, description=f"{tid} detected")


def make_analysis(aid: str = "a1", user_id: str = "u1", traits=None, completed_at=None) -> SkinAnalysis:
    return SkinAnalysis(
        id=aid,
        user_id=user_id,
        status="complete",
        detected_traits=traits or [],
        completed_at=completed_at,
    )


def ranked_item(pid: str, vendor: str = "Amazon", score: float = 0.9, step: str = "Cleanser") -> LLMRankedItem:
    return LLMRankedItem(product_id=pid, score=score, reason="good fit", step=step, selected_vendor=vendor)


def ranked_output(*items: LLMRankedItem, confidence: float = 80) -> LLMRankOutput:
    # model_construct skips the 8-12 length rule so unit tests can rank a handful of products
    return LLMRankOutput.model_construct(items=list(items), confidence=confidence)


def rank_payload(ids, key: str = "items", confidence_key: str = "confidence") -> str:
    return json.dumps({
        key: [
            {"product_id": pid, "score": 0.9, "reason": "fits", "step": "Cleanser", "selected_vendor": "Amazon"}
            for pid in ids
        ],
        confidence_key: 88,
    })


class FakeProductRepo:
    def __init__(self, products):
        self.products = list(products)
        self.calls: list[tuple] = []

    async def list_active_in_budget(self, budget_min: float, budget_max: float):
        self.calls.append(("list_active_in_budget", budget_min, budget_max))
        rows = [p for p in self.products if p.is_active and budget_min <= p.price_usd <= budget_max]
        return sorted(rows, key=lambda p: p.price_usd)

    async def get_many_by_ids(self, ids):
        self.calls.append(("get_many_by_ids", list(ids)))
        wanted = set(ids)
        return [p for p in self.products if p.id in wanted]

    async def get_dupe_group_prices(self, group_ids):
        self.calls.append(("get_dupe_group_prices", list(group_ids)))
        wanted = set(group_ids)
        return [
            {"dupe_group_id": p.dupe_group_id, "price_usd": p.price_usd}
            for p in self.products
            if p.is_active and p.dupe_group_id in wanted
        ]


class FakeOnboardingRepo:
    def __init__(self, profiles: Optional[dict] = None):
        self.profiles = profiles or {}

    async def get_profile(self, user_id: str):
        return self.profiles.get(user_id)


class FakeAnalysisRepo:
    def __init__(self, analyses=()):
        self.analyses = list(analyses)

    async def get_completed(self, user_id: str, analysis_id: Optional[str] = None):
        mine = [a for a in self.analyses if a.user_id == user_id and a.status == "complete"]
        if analysis_id:
            return next((a for a in mine if a.id == analysis_id), None)
        if not mine:
            return None
        return sorted(mine, key=lambda a: a.completed_at or 0, reverse=True)[0]


class FakeLLM:
    rerank_model = "fake-model"

    def __init__(self, output=None, error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.inputs = []

    async def rerank_products(self, rank_input):
        self.inputs.append(rank_input)
        if self.error:
            raise self.error
        return self.output


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


def completion(content: Optional[str]):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=20, total_tokens=30),
        model="gpt-4o-mini",
    )


def status_error(code: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(code, request=request)
    if code == 429:
        cls = openai.RateLimitError
    elif code >= 500:
        cls = openai.InternalServerError
    else:
        cls = openai.BadRequestError
    return cls(f"status {code}", response=response, body=None)


def fake_openai_client(*side_effect):
    create = AsyncMock(side_effect=list(side_effect))
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
