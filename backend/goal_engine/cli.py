"""
Command-line listing of goals with their conversion counts.

Usage:
  python scripts/goals_list.py [--active] [--site 3]
"""
from __future__ import annotations

import argparse
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from sqlalchemy.orm import Session  # noqa: E402

from goal_engine.database import Base, SessionLocal, engine  # noqa: E402
from goal_engine.goal_service import GoalService  # noqa: E402
from goal_engine.stores import ConversionStore, Scope  # noqa: E402


def goal_rows(db: Session, active_only: bool = False, site_id: Optional[int] = None) -> List[List[str]]:
    service = GoalService(db, Scope(site_id=site_id))
    goals = service.active() if active_only else service.all()
    counts = ConversionStore(db).counts_by_goal()
    return [
        [
            str(goal.id),
            goal.name,
            goal.type,
            "Yes" if goal.is_active else "No",
            goal.value_type,
            str(counts.get(goal.id, 0)),
        ]
        for goal in goals
    ]


def _render(headers: List[str], rows: List[List[str]]) -> str:
    widths = [max(len(h), *(len(r[i]) for r in rows)) if rows else len(h) for i, h in enumerate(headers)]
    line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    out = [line, "  ".join("-" * w for w in widths)]
    out.extend("  ".join(c.ljust(w) for c, w in zip(row, widths)) for row in rows)
    return "\n".join(out)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="List analytics goals with conversion counts")
    ap.add_argument("--active", action="store_true", help="Only show active goals")
    ap.add_argument("--site", type=int, default=None, help="Restrict to one site id")
    args = ap.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        rows = goal_rows(db, active_only=args.active, site_id=args.site)
    finally:
        db.close()

    if not rows:
        print("No goals found.")
        return 0
    print(_render(["ID", "Name", "Type", "Active", "Value Type", "Conversions"], rows))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
