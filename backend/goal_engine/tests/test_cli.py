from goal_engine.cli import _render, goal_rows
from goal_engine.triggers import EventTrigger


def test_goal_rows_include_conversion_counts(service, db_session):
    signup = service.create(name="Signup", type="event", conditions={"event_name": "signup"})
    service.create(name="Pricing", type="pageview", conditions={"path_exact": "/pricing"}, site_id=2)
    matcher = service.matcher()
    matcher.evaluate(EventTrigger(name="signup", session_id="s1"))
    matcher.evaluate(EventTrigger(name="signup", session_id="s2"))

    rows = goal_rows(db_session)
    assert rows == [
        [str(service.find_by_name("Pricing").id), "Pricing", "pageview", "Yes", "none", "0"],
        [str(signup.id), "Signup", "event", "Yes", "none", "2"],
    ]

    assert [r[1] for r in goal_rows(db_session, site_id=1)] == ["Signup"]


def test_render_aligns_columns():
    text = _render(["ID", "Name"], [["1", "Signup"], ["12", "A"]])
    lines = text.splitlines()
    assert lines[0] == "ID  Name  "
    assert lines[2] == "1   Signup"
