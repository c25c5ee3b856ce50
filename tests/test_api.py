"""
API tests through FastAPI's TestClient.

The app gets prebuilt services, so no Redis, no real provider and no
scheduler are involved.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider, RecordingCache, make_http_client, make_settings, provider_error, success
from fintrack.container import build_services
from fintrack.main import create_app

HEADERS = {"X-User-Id": "user-1"}


class DownCache(RecordingCache):
    async def ping(self):
        return False


def _client(*script, cache=None, **settings_overrides):
    settings = make_settings(**settings_overrides)
    provider = FakeProvider(*(script or (success(1.0),)))
    services = build_services(
        settings,
        cache or RecordingCache(),
        http_client=make_http_client(provider),
    )
    app = create_app(settings, services=services, enable_scheduler=False)
    return app, services, provider


def _expense(**overrides):
    body = {
        "type": "expense",
        "amount": "100",
        "currency": "USD",
        "category": "Food",
    }
    body.update(overrides)
    return body


class TestRoot:

    def test_root(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "FINTRACK"


class TestConvertEndpoint:

    def test_convert(self):
        app, _, provider = _client(success(1.2))
        with TestClient(app) as client:
            response = client.get(
                "/api/v1/convert",
                params={"amount": "100", "from_currency": "eur", "to_currency": "usd"},
            )

        assert response.status_code == 200
        assert response.json() == {
            "amount": "100",
            "from_currency": "EUR",
            "to_currency": "USD",
            "converted_amount": "120.00",
        }
        assert provider.paths == ["/v6/test-api-key/pair/EUR/USD"]

    def test_defaults_to_base_currency(self):
        app, _, _ = _client(success(2))
        with TestClient(app) as client:
            response = client.get("/api/v1/convert", params={"amount": "5", "from_currency": "GBP"})

        assert response.json()["to_currency"] == "USD"
        assert response.json()["converted_amount"] == "10.00"

    @pytest.mark.parametrize("amount", ["abc", "-5", "0"])
    def test_invalid_amount(self, amount):
        app, _, provider = _client()
        with TestClient(app) as client:
            response = client.get(
                "/api/v1/convert", params={"amount": amount, "from_currency": "EUR"}
            )

        assert response.status_code == 400
        assert response.json()["detail"]["error"]["code"] == "FINTRACK_INVALID_AMOUNT"
        assert provider.requests == []

    def test_provider_rejection_is_bad_gateway(self):
        app, _, _ = _client(provider_error("invalid-key", status_code=403))
        with TestClient(app) as client:
            response = client.get(
                "/api/v1/convert", params={"amount": "1", "from_currency": "EUR"}
            )

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "FINTRACK_CONVERSION_FAILED"
        assert error["message"] == "Currency conversion failed: The provided API key is invalid."
        assert error["details"] == {"kind": "INVALID_KEY"}
        assert "test-api-key" not in response.text

    def test_unsupported_code_is_bad_request(self):
        app, _, _ = _client(provider_error("unsupported-code"))
        with TestClient(app) as client:
            response = client.get(
                "/api/v1/convert", params={"amount": "1", "from_currency": "XYZ"}
            )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"kind": "UNSUPPORTED_CODE"}

    def test_missing_key_is_bad_gateway(self):
        app, _, provider = _client(exchange_rate_api_key="")
        with TestClient(app) as client:
            response = client.get(
                "/api/v1/convert", params={"amount": "1", "from_currency": "EUR"}
            )

        assert response.status_code == 502
        assert response.json()["error"]["details"] == {"kind": "MISSING_CREDENTIALS"}
        assert provider.requests == []


class TestTransactionEndpoints:

    def test_create_and_fetch(self):
        app, _, _ = _client(success(1.2))
        with TestClient(app) as client:
            created = client.post(
                "/api/v1/transactions", json=_expense(currency="EUR"), headers=HEADERS
            )
            transaction_id = created.json()["transaction_id"]
            fetched = client.get(f"/api/v1/transactions/{transaction_id}")

        assert created.status_code == 201
        assert created.json()["base_currency"] == "USD"
        assert float(created.json()["base_amount"]) == 120.0
        assert fetched.status_code == 200
        assert fetched.json()["user_id"] == "user-1"

    def test_conversion_failure_saves_nothing(self):
        app, services, _ = _client(provider_error("quota-reached", 429))
        with TestClient(app) as client:
            response = client.post(
                "/api/v1/transactions", json=_expense(currency="EUR"), headers=HEADERS
            )

        assert response.status_code == 502
        assert response.json()["error"]["details"] == {"kind": "QUOTA_REACHED"}
        assert services.repository.transactions == {}

    def test_user_header_required(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.post("/api/v1/transactions", json=_expense())

        assert response.status_code == 422

    def test_validation(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.post(
                "/api/v1/transactions", json=_expense(amount="-1"), headers=HEADERS
            )

        assert response.status_code == 422

    def test_list(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            client.post("/api/v1/transactions", json=_expense(), headers=HEADERS)
            client.post("/api/v1/transactions", json=_expense(category="Bills"), headers=HEADERS)
            response = client.get(
                "/api/v1/transactions", params={"category": "Bills"}, headers=HEADERS
            )

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 1
        assert body["transactions"][0]["category"] == "Bills"

    def test_update_currency_without_amount(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            created = client.post("/api/v1/transactions", json=_expense(), headers=HEADERS)
            response = client.put(
                f"/api/v1/transactions/{created.json()['transaction_id']}",
                json={"currency": "EUR"},
            )

        assert response.status_code == 400
        assert response.json()["detail"]["error"]["message"] == "Amount is required for currency conversion"

    def test_delete(self):
        app, services, _ = _client()
        with TestClient(app) as client:
            created = client.post("/api/v1/transactions", json=_expense(), headers=HEADERS)
            transaction_id = created.json()["transaction_id"]
            deleted = client.delete(f"/api/v1/transactions/{transaction_id}")
            missing = client.get(f"/api/v1/transactions/{transaction_id}")

        assert deleted.status_code == 200
        assert missing.status_code == 404
        assert missing.json()["detail"]["error"]["code"] == "FINTRACK_NOT_FOUND"


class TestBudgetEndpoints:

    BUDGET = {
        "title": "Food",
        "category": "Food",
        "monthly_limit": "100",
        "currency": "USD",
        "start_date": "2020-01-01T00:00:00Z",
        "end_date": "2999-01-01T00:00:00Z",
    }

    def test_spend_and_remaining(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            budget_id = client.post("/api/v1/budgets", json=self.BUDGET, headers=HEADERS).json()["budget_id"]
            spent = client.post(
                f"/api/v1/budgets/{budget_id}/spent", json={"amount": "40", "currency": "USD"}
            )
            remaining = client.get(f"/api/v1/budgets/{budget_id}/remaining")

        assert spent.status_code == 200
        assert spent.json()["spent"] == "40.00"
        assert spent.json()["exceeded"] is False
        assert remaining.json()["remaining_percentage"] == "60.00"

    def test_exceeded(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            budget_id = client.post("/api/v1/budgets", json=self.BUDGET, headers=HEADERS).json()["budget_id"]
            spent = client.post(
                f"/api/v1/budgets/{budget_id}/spent", json={"amount": "150", "currency": "USD"}
            )

        assert spent.json()["exceeded"] is True
        assert spent.json()["message"] == "Budget exceeded!"

    def test_invalid_period(self):
        app, _, _ = _client()
        body = dict(self.BUDGET, end_date="2019-01-01T00:00:00Z")
        with TestClient(app) as client:
            response = client.post("/api/v1/budgets", json=body, headers=HEADERS)

        assert response.status_code == 422

    def test_unknown_budget(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.get("/api/v1/budgets/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404


class TestGoalEndpoints:

    def test_income_funds_goal(self):
        app, _, _ = _client()
        goal = {
            "title": "Emergency fund",
            "target_amount": "1000",
            "currency": "USD",
            "allocation_categories": ["Salary"],
            "allocation_percentage": "20",
        }
        with TestClient(app) as client:
            goal_id = client.post("/api/v1/goals", json=goal, headers=HEADERS).json()["goal_id"]
            client.post(
                "/api/v1/transactions",
                json=_expense(type="income", amount="500", category="Salary"),
                headers=HEADERS,
            )
            response = client.get(f"/api/v1/goals/{goal_id}")

        assert response.status_code == 200
        assert float(response.json()["saved_amount"]) == 100.0


class TestHealthEndpoint:

    def test_healthy(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["cache"] == "connected"
        assert response.json()["base_currency"] == "USD"

    def test_cache_down(self):
        app, _, _ = _client(cache=DownCache())
        with TestClient(app) as client:
            response = client.get("/api/v1/health")

        assert response.status_code == 503
        assert response.json()["detail"]["error"]["code"] == "FINTRACK_UNHEALTHY"


class TestLargeAmountEndpoints:

    def test_convert_beyond_default_precision(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.get(
                "/api/v1/convert",
                params={"amount": "1e27", "from_currency": "USD", "to_currency": "USD"},
            )

        assert response.status_code == 200
        assert response.json()["converted_amount"] == "1000000000000000000000000000.00"

    def test_transaction_beyond_default_precision(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.post(
                "/api/v1/transactions", json=_expense(amount="1e27"), headers=HEADERS
            )

        assert response.status_code == 201
        assert float(response.json()["base_amount"]) == 1e27

    @pytest.mark.parametrize("amount", ["inf", "NaN"])
    def test_non_finite_amount(self, amount):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.get(
                "/api/v1/convert", params={"amount": amount, "from_currency": "USD"}
            )

        assert response.status_code == 400


class TestTransactionDateFilter:

    def test_range(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            for day in ("01", "15", "28"):
                client.post(
                    "/api/v1/transactions",
                    json=_expense(date=f"2024-02-{day}T00:00:00Z"),
                    headers=HEADERS,
                )
            response = client.get(
                "/api/v1/transactions",
                params={"start_date": "2024-02-10T00:00:00Z", "end_date": "2024-02-20T00:00:00Z"},
                headers=HEADERS,
            )

        body = response.json()
        assert body["total"] == 1
        assert body["transactions"][0]["date"].startswith("2024-02-15")


class TestBudgetUpdateEndpoint:

    def test_update_limit(self):
        app, _, _ = _client(success(1.1))
        with TestClient(app) as client:
            budget_id = client.post(
                "/api/v1/budgets", json=TestBudgetEndpoints.BUDGET, headers=HEADERS
            ).json()["budget_id"]
            response = client.put(
                f"/api/v1/budgets/{budget_id}", json={"monthly_limit": "300", "currency": "EUR"}
            )

        assert response.status_code == 200
        assert response.json()["currency"] == "EUR"
        assert float(response.json()["base_amount"]) == 330.0

    def test_invalid_period(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            budget_id = client.post(
                "/api/v1/budgets", json=TestBudgetEndpoints.BUDGET, headers=HEADERS
            ).json()["budget_id"]
            response = client.put(
                f"/api/v1/budgets/{budget_id}", json={"end_date": "2019-01-01T00:00:00Z"}
            )

        assert response.status_code == 400
        assert response.json()["detail"]["error"]["message"] == "End date must be after start date."

    def test_unknown_budget(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.put(
                "/api/v1/budgets/00000000-0000-0000-0000-000000000000", json={"title": "x"}
            )

        assert response.status_code == 404


class TestGoalSavingsEndpoints:

    GOAL = {"title": "Car", "target_amount": "200", "currency": "USD"}

    def test_savings_and_progress(self):
        app, _, _ = _client(success(2))
        with TestClient(app) as client:
            goal_id = client.post("/api/v1/goals", json=self.GOAL, headers=HEADERS).json()["goal_id"]
            saved = client.post(
                f"/api/v1/goals/{goal_id}/savings", json={"amount": "25", "currency": "EUR"}
            )
            progress = client.get(f"/api/v1/goals/{goal_id}/progress")

        assert saved.status_code == 200
        assert saved.json()["saved_amount"] == "50.00"
        assert progress.json()["progress"] == "25.00"
        assert progress.json()["is_completed"] is False

    def test_update_goal(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            goal_id = client.post("/api/v1/goals", json=self.GOAL, headers=HEADERS).json()["goal_id"]
            response = client.put(f"/api/v1/goals/{goal_id}", json={"title": "New car"})

        assert response.status_code == 200
        assert response.json()["title"] == "New car"

    def test_savings_conversion_failure(self):
        app, _, _ = _client(provider_error("invalid-key"))
        with TestClient(app) as client:
            goal_id = client.post("/api/v1/goals", json=self.GOAL, headers=HEADERS).json()["goal_id"]
            response = client.post(
                f"/api/v1/goals/{goal_id}/savings", json={"amount": "25", "currency": "EUR"}
            )
            progress = client.get(f"/api/v1/goals/{goal_id}/progress")

        assert response.status_code == 502
        assert progress.json()["saved_amount"] == "0.00"

    def test_unknown_goal(self):
        app, _, _ = _client()
        with TestClient(app) as client:
            response = client.get("/api/v1/goals/00000000-0000-0000-0000-000000000000/progress")

        assert response.status_code == 404


class TestLogLevel:

    def setup_method(self):
        self.root_level = logging.getLogger().level

    def teardown_method(self):
        logging.getLogger().setLevel(self.root_level)

    def test_root_level_follows_settings(self):
        _client(log_level="debug")
        assert logging.getLogger().level == logging.DEBUG

        _client(log_level="WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            make_settings(log_level="chatty")
