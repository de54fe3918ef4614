"""
List analytics goals with their conversion counts.

Usage:
  python scripts/goals_list.py --active --site 3
"""
from goal_engine.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
