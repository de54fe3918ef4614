from datetime import datetime
from types import SimpleNamespace

import pytest

from goal_engine.date_range import DateRange
from goal_engine.exceptions import ConfigurationError
from goal_engine.funnel_analyzer import FunnelAnalyzer
from goal_engine.models import AnalyticsEvent, AnalyticsPageView
from goal_engine.stores import Scope
from goal_engine.visitor_query import SqlVisitorQuery

JANUARY = DateRange.from_strings("2024-01-01", "2024-01-31")
DECEMBER = DateRange.from_strings("2023-12-01", "2023-12-31")


class FakeVisitorQuery:
    """Distinct visitor counts per date range and step name."""

    def __init__(self, counts_by_range):
        self.counts_by_range = counts_by_range

    def distinct_visitors(self, criteria, date_range):
        count = self.counts_by_range[date_range.key].get(criteria.name, 0)
        return {f"v{i}" for i in range(count)}


def _goal(*step_names, steps=None):
    return SimpleNamespace(
        id=1,
        name="Checkout",
        funnel_steps=steps if steps is not None else [{"name": name, "type": "event"} for name in step_names],
    )


def _analyzer(counts, date_range=JANUARY):
    return FunnelAnalyzer(FakeVisitorQuery({date_range.key: counts}))


# ── analyze ─────────────────────────────────────────────────────────────

def test_rates_per_step():
    goal = _goal("Visit", "Cart", "Pay")
    report = _analyzer({"Visit": 200, "Cart": 50, "Pay": 20}).analyze(goal, JANUARY)

    first, cart, pay = report.steps
    assert (first.step, first.visitors, first.conversion_rate, first.dropoff_rate) == (1, 200, 100.0, 0.0)
    assert (cart.conversion_rate, cart.dropoff_rate, cart.dropoff_count) == (25.0, 75.0, 150)
    assert (pay.conversion_rate, pay.dropoff_rate, pay.dropoff_count) == (40.0, 60.0, 30)
    assert report.overall_conversion == 10.0
    assert report.total_steps == 3
    assert report.entry_visitors == 200
    assert report.completed_visitors == 20
    assert report.total_dropoff == 180
    assert report.date_range == {"start": "2024-01-01", "end": "2024-01-31"}


def test_first_step_is_always_baseline():
    report = _analyzer({"Visit": 0, "Cart": 5}).analyze(_goal("Visit", "Cart"), JANUARY)
    assert report.steps[0].conversion_rate == 100.0
    assert report.steps[0].dropoff_rate == 0.0


def test_zero_entry_visitors_do_not_divide_by_zero():
    report = _analyzer({}).analyze(_goal("Visit", "Cart"), JANUARY)

    assert report.overall_conversion == 0.0
    assert report.steps[1].conversion_rate == 0.0
    assert report.steps[1].dropoff_rate == 100.0


def test_later_step_may_exceed_earlier_step():
    # steps are counted independently, so a step can have more visitors than the one before it
    report = _analyzer({"Visit": 10, "Cart": 15}).analyze(_goal("Visit", "Cart"), JANUARY)

    assert report.steps[1].conversion_rate == 150.0
    assert report.steps[1].dropoff_rate == -50.0
    assert report.steps[1].dropoff_count == 0


def test_default_names_and_unknown_step_types():
    goal = _goal(steps=[{"type": "event", "event_name": "visit"}, {"type": "click", "selector": "#buy"}])
    report = _analyzer({}).analyze(goal, JANUARY)

    assert [s.name for s in report.steps] == ["Step 1", "Step 2"]
    assert report.steps[1].type == "click"
    assert report.steps[1].visitors == 0


@pytest.mark.parametrize("steps", [None, [], {"name": "Visit"}])
def test_goal_without_steps_is_a_configuration_error(steps):
    goal = SimpleNamespace(id=1, name="No funnel", funnel_steps=steps)
    with pytest.raises(ConfigurationError):
        _analyzer({}).analyze(goal, JANUARY)


# ── compare / bottlenecks ───────────────────────────────────────────────

def test_compare_periods():
    analyzer = FunnelAnalyzer(FakeVisitorQuery({
        JANUARY.key: {"Visit": 100, "Pay": 50},
        DECEMBER.key: {"Visit": 100, "Pay": 40},
    }))

    comparison = analyzer.compare(_goal("Visit", "Pay"), JANUARY, DECEMBER)

    assert comparison.current.overall_conversion == 50.0
    assert comparison.previous.overall_conversion == 40.0
    assert comparison.change == 10.0
    assert comparison.change_percent == 25.0
    assert comparison.trend == "up"
    assert comparison.step_changes[1].rate_change == 10.0
    assert comparison.step_changes[1].visitor_change == 10


def test_compare_stable_and_from_zero():
    analyzer = FunnelAnalyzer(FakeVisitorQuery({
        JANUARY.key: {"Visit": 10, "Pay": 5},
        DECEMBER.key: {},
    }))
    comparison = analyzer.compare(_goal("Visit", "Pay"), JANUARY, DECEMBER)
    assert comparison.change_percent == 100.0
    assert comparison.trend == "up"

    same = analyzer.compare(_goal("Visit", "Pay"), JANUARY, JANUARY)
    assert same.change == 0.0
    assert same.trend == "stable"
    assert same.to_dict()["current"]["steps"][0]["name"] == "Visit"


def test_bottlenecks_rank_by_dropoff():
    # dropoff rates 0, 10, 70, 5
    counts = {"Land": 2000, "Signup": 1800, "Trial": 540, "Pay": 513}
    analyzer = _analyzer(counts)
    goal = _goal("Land", "Signup", "Trial", "Pay")

    top = analyzer.get_bottlenecks(goal, JANUARY, limit=1)
    assert [(s.name, s.dropoff_rate) for s in top] == [("Trial", 70.0)]

    ranked = analyzer.get_bottlenecks(goal, JANUARY, limit=10)
    assert [s.name for s in ranked] == ["Trial", "Signup", "Pay"]
    assert analyzer.get_bottlenecks(goal, JANUARY, limit=0) == []


# ── SqlVisitorQuery ─────────────────────────────────────────────────────

def _seed(db_session):
    day = datetime(2024, 1, 10, 9, 0)
    db_session.add_all([
        AnalyticsPageView(visitor_id="v1", session_id="s1", path="/pricing", created_at=day),
        AnalyticsPageView(visitor_id="v1", session_id="s1", path="/pricing", created_at=day),
        AnalyticsPageView(visitor_id="v2", session_id="s2", path="/pricing", created_at=day),
        AnalyticsPageView(visitor_id="v3", session_id="s3", path="/pricing", created_at=day, site_id=2),
        AnalyticsPageView(visitor_id="v4", session_id="s4", path="/pricing", created_at=datetime(2024, 2, 2)),
        AnalyticsPageView(visitor_id=None, session_id="s5", path="/pricing", created_at=day),
        AnalyticsPageView(visitor_id="v1", session_id="s1", path="/order/42/confirmation", created_at=day),
        AnalyticsPageView(visitor_id="v2", session_id="s2", path="/order/abc/confirmation", created_at=day),
        AnalyticsPageView(visitor_id="v3", session_id="s3", path="/blog/100%_off", created_at=day),
        AnalyticsEvent(visitor_id="v1", session_id="s1", name="signup", created_at=day),
        AnalyticsEvent(visitor_id="v2", session_id="s2", name="signup", created_at=day),
        AnalyticsEvent(visitor_id="v1", session_id="s1", name="purchase", category="shop",
                       properties={"plan": "pro"}, created_at=day),
        AnalyticsEvent(visitor_id="v2", session_id="s2", name="purchase", category="shop",
                       properties={"plan": "basic"}, created_at=day),
    ])
    db_session.commit()


def test_funnel_from_database(db_session):
    _seed(db_session)
    goal = SimpleNamespace(id=7, name="Pro funnel", funnel_steps=[
        {"name": "Pricing", "type": "pageview", "criteria": {"path": "/pricing"}},
        {"name": "signup", "type": "event"},
        {"name": "Pro purchase", "type": "event", "event_name": "purchase", "event_category": "shop",
         "property_matches": {"plan": {"in": ["pro", "enterprise"]}}},
    ])

    report = FunnelAnalyzer.for_db(db_session).analyze(goal, JANUARY)

    assert [s.visitors for s in report.steps] == [3, 2, 1]
    assert [s.type for s in report.steps] == ["pageview", "event", "event"]
    assert report.steps[1].conversion_rate == 66.67
    assert report.overall_conversion == 33.33


def test_page_view_path_filters(db_session):
    _seed(db_session)
    query = SqlVisitorQuery(db_session)

    def visitors(**criteria):
        goal = SimpleNamespace(id=1, name="Paths", funnel_steps=[{"type": "pageview", **criteria}])
        return FunnelAnalyzer(query).analyze(goal, JANUARY).steps[0].visitors

    assert visitors(path_pattern="/order/*/confirmation") == 2
    assert visitors(path_regex="/^\\/order\\/[0-9]+\\/confirmation$/") == 1
    assert visitors(path_contains="100%_") == 1
    assert visitors(path_contains="%") == 1
    assert visitors(path_regex="/[unclosed/") == 0


def test_scope_filters_visitor_rows(db_session):
    _seed(db_session)
    step = {"name": "Pricing", "type": "pageview", "path_exact": "/pricing"}
    goal = SimpleNamespace(id=1, name="Pricing", funnel_steps=[step])

    assert FunnelAnalyzer.for_db(db_session, Scope(site_id=1)).analyze(goal, JANUARY).entry_visitors == 2
    assert FunnelAnalyzer.for_db(db_session, Scope(site_id=2)).analyze(goal, JANUARY).entry_visitors == 3
