"""
Funnel report models (dataclasses) shared by the funnel analyzer and the API.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FunnelStepResult:
    """Visitor count and rates for one funnel step."""
    step: int  # 1-based position
    name: str
    type: str
    visitors: int
    conversion_rate: float
    dropoff_rate: float
    dropoff_count: int = 0


@dataclass
class FunnelReport:
    goal_id: Optional[int]
    goal_name: str
    date_range: Dict[str, str]
    steps: List[FunnelStepResult]
    overall_conversion: float
    total_steps: int = 0
    total_dropoff: int = 0
    entry_visitors: int = 0
    completed_visitors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StepChange:
    step: int
    name: str
    current_rate: float
    previous_rate: float
    rate_change: float
    current_visitors: int
    previous_visitors: int
    visitor_change: int


@dataclass
class ComparisonReport:
    current: FunnelReport
    previous: FunnelReport
    change: float  # percentage points
    change_percent: float
    trend: str  # "up", "down", "stable"
    step_changes: List[StepChange] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
