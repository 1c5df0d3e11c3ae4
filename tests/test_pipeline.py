from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import sys
import unittest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "tests"))

from dermreco.domain.repositories.reco_cache_repo import RecommendationCacheRepo
from dermreco.domain.services.llm_svc import RerankError
from dermreco.domain.services.pipeline_svc import generate_recommendations
from fakes import (
    FakeAnalysisRepo,
    FakeLLM,
    FakeOnboardingRepo,
    FakeProductRepo,
    FakeRedis,
    make_analysis,
    make_product,
    make_profile,
    make_trait,
    ranked_item,
    ranked_output,
)


def _deps(products, llm, profile=None):
    return dict(
        product_repo=FakeProductRepo(products),
        onboarding_repo=FakeOnboardingRepo({"u1": profile or make_profile(budget_min_usd=10, budget_max_usd=60)}),
        analysis_repo=FakeAnalysisRepo([make_analysis(traits=[make_trait("acne", "high")])]),
        llm=llm,
    )


CATALOG = [
    make_product("A", price_usd=12, dupe_group_id="g1", active_ingredients=["Salicylic Acid"], merchants=["Sephora"]),
    make_product("B", price_usd=30, dupe_group_id="g1", product_type="Treatment"),
    make_product("C", price_usd=45, product_type="Sunscreen", product_link="https://shop.example.com/c"),
    make_product("D", price_usd=80, product_type="Moisturizer"),  # over budget
]


class TestGenerateRecommendations(unittest.IsolatedAsyncioTestCase):
    async def test_end_to_end(self) -> None:
        llm = FakeLLM(ranked_output(ranked_item("A", vendor="sephora"), ranked_item("C", vendor="Amazon")))
        deps = _deps(CATALOG, llm)
        recs = await generate_recommendations("u1", **deps)

        self.assertEqual([r.id for r in recs], ["A", "C"])
        a, c = recs
        self.assertEqual((a.price_usd, a.retail_usd), (12, 30))
        self.assertEqual(a.vendor, "sephora")
        self.assertEqual(a.concern_tags, ["acne"])
        self.assertEqual(c.url, "https://shop.example.com/c")

        sent = llm.inputs[0]
        self.assertEqual([p.id for p in sent.candidate_products], ["A", "B", "C"])
        self.assertEqual(sent.detected_traits[0].severity, "high")
        self.assertEqual(sent.instructions.required_steps, ["Cleanser", "Treatment", "Moisturizer", "Sunscreen"])
        # full rows re-fetched for exactly the candidate ids
        self.assertIn(("get_many_by_ids", ["A", "B", "C"]), deps["product_repo"].calls)

    async def test_empty_pool_skips_llm(self) -> None:
        llm = FakeLLM(ranked_output(ranked_item("A")))
        deps = _deps([make_product("X", price_usd=500)], llm)
        recs = await generate_recommendations("u1", **deps)
        self.assertEqual(recs, [])
        self.assertEqual(llm.inputs, [])

    async def test_llm_failure_propagates(self) -> None:
        llm = FakeLLM(error=RerankError("OpenAI response is not valid JSON"))
        with self.assertRaises(RerankError):
            await generate_recommendations("u1", **_deps(CATALOG, llm))

    async def test_cache_round_trip(self) -> None:
        redis = FakeRedis()
        cache = RecommendationCacheRepo(redis)
        llm = FakeLLM(ranked_output(ranked_item("A")))
        deps = _deps(CATALOG, llm)

        first = await generate_recommendations("u1", cache=cache, **deps)
        second = await generate_recommendations("u1", cache=cache, **deps)

        self.assertEqual(first, second)
        self.assertEqual(len(llm.inputs), 1)
        self.assertEqual(len(redis.store), 1)

    async def test_empty_result_not_cached(self) -> None:
        redis = FakeRedis()
        llm = FakeLLM(ranked_output(ranked_item("ghost")))
        recs = await generate_recommendations("u1", cache=RecommendationCacheRepo(redis), **_deps(CATALOG, llm))
        self.assertEqual(recs, [])
        self.assertEqual(redis.store, {})

    async def test_cache_misses_after_avoid_list_changes(self) -> None:
        catalog = [
            make_product("F", price_usd=20, all_ingredients="Water, Fragrance"),
            make_product("G", price_usd=25, product_type="Moisturizer"),
        ]
        redis = FakeRedis()
        cache = RecommendationCacheRepo(redis)
        llm = FakeLLM(ranked_output(ranked_item("F"), ranked_item("G")))
        deps = _deps(catalog, llm)

        first = await generate_recommendations("u1", cache=cache, **deps)
        self.assertEqual([r.id for r in first], ["F", "G"])

        deps["onboarding_repo"].profiles["u1"] = make_profile(
            budget_min_usd=10, budget_max_usd=60, ingredients_to_avoid=["fragrance"]
        )
        second = await generate_recommendations("u1", cache=cache, **deps)

        self.assertEqual([r.id for r in second], ["G"])
        self.assertEqual(len(llm.inputs), 2)
        self.assertEqual([p.id for p in llm.inputs[1].candidate_products], ["G"])

    async def test_cache_misses_after_budget_change(self) -> None:
        redis = FakeRedis()
        cache = RecommendationCacheRepo(redis)
        llm = FakeLLM(ranked_output(ranked_item("A"), ranked_item("C")))
        deps = _deps(CATALOG, llm)

        await generate_recommendations("u1", cache=cache, **deps)
        deps["onboarding_repo"].profiles["u1"] = make_profile(budget_min_usd=10, budget_max_usd=40)
        recs = await generate_recommendations("u1", cache=cache, **deps)

        self.assertEqual([r.id for r in recs], ["A"])
        self.assertEqual(len(llm.inputs), 2)

    async def test_cache_misses_after_new_analysis(self) -> None:
        redis = FakeRedis()
        cache = RecommendationCacheRepo(redis)
        llm = FakeLLM(ranked_output(ranked_item("A")))
        deps = _deps(CATALOG, llm)
        deps["analysis_repo"] = FakeAnalysisRepo([
            make_analysis("a1", traits=[make_trait("acne", "high")], completed_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ])

        await generate_recommendations("u1", cache=cache, **deps)
        deps["analysis_repo"].analyses.append(
            make_analysis("a2", traits=[make_trait("dryness", "high")], completed_at=datetime(2024, 6, 1, tzinfo=timezone.utc))
        )
        await generate_recommendations("u1", cache=cache, **deps)

        self.assertEqual(len(llm.inputs), 2)
        self.assertEqual(llm.inputs[1].detected_traits[0].name, "Dryness")
        self.assertEqual(len(redis.store), 2)

    async def test_unreadable_cache_entry_is_recomputed(self) -> None:
        redis = FakeRedis()
        cache = RecommendationCacheRepo(redis)
        llm = FakeLLM(ranked_output(ranked_item("A")))
        deps = _deps(CATALOG, llm)
        profile = deps["onboarding_repo"].profiles["u1"]
        key = cache.key("u1", "a1", FakeLLM.rerank_model, profile)
        redis.store[key] = "{not json"

        recs = await generate_recommendations("u1", cache=cache, **deps)

        self.assertEqual([r.id for r in recs], ["A"])
        self.assertEqual(len(llm.inputs), 1)
        self.assertEqual(await cache.get(key), recs)


if __name__ == "__main__":
    unittest.main()
