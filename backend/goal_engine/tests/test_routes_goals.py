from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from goal_engine.database import get_db
from goal_engine.main import app
from goal_engine.models import AnalyticsEvent, AnalyticsPageView


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = lambda: db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def funnel_goal(service, db_session):
    day = datetime(2024, 1, 10, 12, 0)
    db_session.add_all([
        AnalyticsPageView(visitor_id="v1", path="/cart", created_at=day),
        AnalyticsPageView(visitor_id="v2", path="/cart", created_at=day),
        AnalyticsPageView(visitor_id="v3", path="/cart", created_at=day),
        AnalyticsPageView(visitor_id="v4", path="/cart", created_at=day),
        AnalyticsEvent(visitor_id="v1", name="purchase", created_at=day),
    ])
    db_session.commit()
    return service.create(
        name="Checkout",
        type="event",
        conditions={"event_name": "purchase"},
        funnel_steps=[
            {"name": "Cart", "type": "pageview", "path_exact": "/cart"},
            {"name": "Purchase", "type": "event", "event_name": "purchase"},
        ],
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_and_get_goals(client, service):
    signup = service.create(name="Signup", type="event", conditions={"event_name": "signup"})
    pricing = service.create(name="Pricing", type="pageview", conditions={"path_exact": "/pricing"})
    service.deactivate(pricing)

    resp = client.get("/goals")
    assert resp.status_code == 200
    assert [g["name"] for g in resp.json()] == ["Pricing", "Signup"]

    assert [g["name"] for g in client.get("/goals", params={"active": True}).json()] == ["Signup"]
    assert [g["name"] for g in client.get("/goals", params={"type": "pageview"}).json()] == ["Pricing"]

    detail = client.get(f"/goals/{signup.id}").json()
    assert detail["conditions"] == {"event_name": "signup"}
    assert detail["allow_multiple"] is False


def test_unknown_goal_is_404(client):
    assert client.get("/goals/999").status_code == 404
    assert client.get("/goals/999/funnel").status_code == 404


def test_funnel_report(client, funnel_goal):
    resp = client.get(f"/goals/{funnel_goal.id}/funnel", params={"start": "2024-01-01", "end": "2024-01-31"})

    assert resp.status_code == 200
    data = resp.json()
    assert [s["visitors"] for s in data["steps"]] == [4, 1]
    assert data["overall_conversion"] == 25.0
    assert data["date_range"] == {"start": "2024-01-01", "end": "2024-01-31"}


def test_funnel_without_steps_is_422(client, service):
    goal = service.create(name="Signup", type="event", conditions={})
    resp = client.get(f"/goals/{goal.id}/funnel")
    assert resp.status_code == 422
    assert "no funnel steps" in resp.json()["detail"]


def test_bad_dates_are_400(client, funnel_goal):
    assert client.get(f"/goals/{funnel_goal.id}/funnel", params={"start": "yesterday-ish"}).status_code == 400
    resp = client.get(f"/goals/{funnel_goal.id}/funnel", params={"start": "2024-02-01", "end": "2024-01-01"})
    assert resp.status_code == 400


def test_compare_defaults_to_previous_period(client, funnel_goal):
    resp = client.get(
        f"/goals/{funnel_goal.id}/funnel/compare",
        params={"start": "2024-01-01", "end": "2024-01-31"},
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["previous"]["date_range"] == {"start": "2023-12-01", "end": "2023-12-31"}
    assert data["change"] == 25.0
    assert data["trend"] == "up"


def test_bottlenecks(client, funnel_goal):
    resp = client.get(
        f"/goals/{funnel_goal.id}/funnel/bottlenecks",
        params={"start": "2024-01-01", "end": "2024-01-31", "limit": 1},
    )

    assert resp.status_code == 200
    bottlenecks = resp.json()["bottlenecks"]
    assert len(bottlenecks) == 1
    assert bottlenecks[0]["name"] == "Purchase"
    assert bottlenecks[0]["dropoff_rate"] == 75.0
