from __future__ import annotations

from pathlib import Path
import sys
import unittest

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "tests"))

from dermreco.api.deps import (
    get_analysis_repo,
    get_llm_service,
    get_onboarding_repo,
    get_product_repo,
    get_reco_cache,
)
from dermreco.domain.services.llm_svc import RerankError
from dermreco.main import create_app
from fakes import (
    FakeAnalysisRepo,
    FakeLLM,
    FakeOnboardingRepo,
    FakeProductRepo,
    make_analysis,
    make_product,
    make_profile,
    make_trait,
    ranked_item,
    ranked_output,
)

HEADERS = {"X-User-Id": "u1"}


class TestRecommendationsEndpoint(unittest.TestCase):
    def setUp(self) -> None:
        self.products = FakeProductRepo([
            make_product("A", price_usd=12, dupe_group_id="g1", active_ingredients=["Salicylic Acid"]),
            make_product("B", price_usd=30, dupe_group_id="g1", product_type="Treatment"),
        ])
        self.onboarding = FakeOnboardingRepo({"u1": make_profile(budget_min_usd=5, budget_max_usd=50)})
        self.analyses = FakeAnalysisRepo([make_analysis(traits=[make_trait("acne", "high")])])
        self.llm = FakeLLM(ranked_output(ranked_item("A", vendor="yesstyle"), ranked_item("B")))

        self.app = create_app()
        self.app.dependency_overrides[get_product_repo] = lambda: self.products
        self.app.dependency_overrides[get_onboarding_repo] = lambda: self.onboarding
        self.app.dependency_overrides[get_analysis_repo] = lambda: self.analyses
        self.app.dependency_overrides[get_llm_service] = lambda: self.llm
        self.app.dependency_overrides[get_reco_cache] = lambda: None

    def _post(self, json=None, headers=HEADERS):
        with TestClient(self.app) as client:
            return client.post("/api/recommendations", json=json, headers=headers)

    def test_success_envelope(self) -> None:
        res = self._post({})
        self.assertEqual(res.status_code, 200, res.text)
        body = res.json()
        self.assertTrue(body["success"])
        recs = body["data"]["recommendations"]
        self.assertEqual([r["id"] for r in recs], ["A", "B"])
        self.assertEqual(recs[0]["vendor"], "yesstyle")
        self.assertEqual(recs[0]["retail_usd"], 30)
        self.assertEqual(recs[0]["concern_tags"], ["acne"])
        self.assertTrue(res.headers.get("X-Request-ID"))

    def test_body_is_optional(self) -> None:
        res = self._post(None)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(len(self.llm.inputs), 1)

    def test_requires_identity(self) -> None:
        res = self._post({}, headers={})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json(), {
            "success": False,
            "error": {"code": "unauthorized/missing_credentials", "message": "Authentication required"},
        })

    def test_other_user_is_rejected(self) -> None:
        res = self._post({"userId": "someone-else"})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["error"]["message"], "Cannot access recommendations for another user")
        self.assertEqual(self.llm.inputs, [])

    def test_unknown_field_is_invalid_input(self) -> None:
        res = self._post({"analysisId": "a1", "limit": 5})
        self.assertEqual(res.status_code, 400)
        error = res.json()["error"]
        self.assertEqual(error["code"], "bad_request/invalid_input")
        self.assertTrue(error["details"])

    def test_missing_analysis_is_not_found(self) -> None:
        self.analyses.analyses = []
        res = self._post({})
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "not_found/analysis_missing")

    def test_missing_onboarding_is_not_found(self) -> None:
        self.onboarding.profiles = {}
        res = self._post({"analysisId": "a1"})
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "not_found/onboarding_missing")

    def test_llm_failure_is_ai_service_error(self) -> None:
        self.llm.error = RerankError("OpenAI rerank API failed after 3 attempts")
        res = self._post({})
        self.assertEqual(res.status_code, 500)
        error = res.json()["error"]
        self.assertEqual(error["code"], "internal/ai_service_error")
        self.assertTrue(error["message"].startswith("AI service error:"))
        self.assertIn("after 3 attempts", error["message"])


class TestAnalysisAndHealth(unittest.TestCase):
    def setUp(self) -> None:
        self.analyses = FakeAnalysisRepo([make_analysis("a1", traits=[make_trait("redness", "low")])])
        self.app = create_app()
        self.app.dependency_overrides[get_analysis_repo] = lambda: self.analyses

    def test_latest_analysis(self) -> None:
        with TestClient(self.app) as client:
            res = client.get("/api/analysis/latest", headers=HEADERS)
        self.assertEqual(res.status_code, 200, res.text)
        analysis = res.json()["data"]["analysis"]
        self.assertEqual(analysis["id"], "a1")
        self.assertEqual(analysis["detected_traits"][0]["severity"], "low")

    def test_latest_analysis_missing(self) -> None:
        with TestClient(self.app) as client:
            res = client.get("/api/analysis/latest", headers={"X-User-Id": "nobody"})
        self.assertEqual(res.status_code, 404)
        self.assertFalse(res.json()["success"])

    def test_unexpected_error_hides_details(self) -> None:
        class BrokenAnalysisRepo:
            async def get_completed(self, user_id, analysis_id=None):
                raise RuntimeError("connection refused: mongodb://admin:s3cret@db:27017")

        self.app.dependency_overrides[get_analysis_repo] = lambda: BrokenAnalysisRepo()
        with TestClient(self.app, raise_server_exceptions=False) as client:
            res = client.get("/api/analysis/latest", headers=HEADERS)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json(), {
            "success": False,
            "error": {"code": "internal/server_error", "message": "An unexpected error occurred"},
        })
        self.assertNotIn("s3cret", res.text)

    def test_health_reports_checks(self) -> None:
        with TestClient(self.app) as client:
            res = client.get("/health")
        self.assertEqual(res.status_code, 200)
        checks = res.json()["checks"]
        self.assertEqual(checks["mongodb"], "skipped")
        self.assertEqual(checks["redis"], "skipped")
        self.assertIn(res.json()["status"], ("ok", "degraded"))

    def test_incoming_request_id_is_echoed(self) -> None:
        with TestClient(self.app) as client:
            res = client.get("/api/analysis/latest", headers={**HEADERS, "X-Request-ID": "req_abc"})
        self.assertEqual(res.headers["X-Request-ID"], "req_abc")


if __name__ == "__main__":
    unittest.main()
