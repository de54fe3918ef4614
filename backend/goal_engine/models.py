"""
All SQLAlchemy models in a single module.

Goals and conversions are owned by the engine. Events and page views are
written by the ingestion pipeline and only read here (funnel queries).
"""

from sqlalchemy import Column, ForeignKey, Boolean, Index, UniqueConstraint
from sqlalchemy import JSON as JSON_TYPE
from sqlalchemy.sql import func
from sqlalchemy.types import Integer, String, TIMESTAMP, NUMERIC, Text

from goal_engine.database import Base

DEDUPE_CONSTRAINT = "uq_conversions_goal_dedupe"


# ── Goal definitions & conversions ──────────────────────────────────────

class Goal(Base):
    __tablename__ = "analytics_goals"
    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, nullable=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(30), nullable=False)  # event | pageview | duration | pages_per_session
    conditions = Column(JSON_TYPE, nullable=False, default=dict)
    value_type = Column(String(20), nullable=False, default="none")  # none | fixed | dynamic
    fixed_value = Column(NUMERIC(15, 4, asdecimal=False), nullable=True)
    dynamic_value_path = Column(String(255), nullable=True)
    allow_multiple = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    funnel_steps = Column(JSON_TYPE, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Goal id={self.id} name={self.name!r} type={self.type}>"


class Conversion(Base):
    __tablename__ = "analytics_conversions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    goal_id = Column(Integer, ForeignKey("analytics_goals.id", ondelete="CASCADE"), nullable=False, index=True)
    site_id = Column(Integer, nullable=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    session_id = Column(String(64), nullable=True)
    visitor_id = Column(String(64), nullable=True)
    event_id = Column(String(64), nullable=True)
    page_view_id = Column(String(64), nullable=True)
    value = Column(NUMERIC(15, 4, asdecimal=False), nullable=True)
    trigger_metadata = Column("metadata", JSON_TYPE, nullable=True)
    # "session:<id>" / "visitor:<id>" for single-conversion goals, NULL otherwise
    dedupe_key = Column(String(160), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("goal_id", "dedupe_key", name=DEDUPE_CONSTRAINT),
    )


# ── Behavioral facts (read-only) ────────────────────────────────────────

class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, nullable=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    session_id = Column(String(64), nullable=True, index=True)
    visitor_id = Column(String(64), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    properties = Column(JSON_TYPE, nullable=True)
    value = Column(NUMERIC(15, 4, asdecimal=False), nullable=True)
    path = Column(String(500), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())


class AnalyticsPageView(Base):
    __tablename__ = "analytics_page_views"
    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, nullable=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    session_id = Column(String(64), nullable=True, index=True)
    visitor_id = Column(String(64), nullable=True, index=True)
    path = Column(String(500), nullable=False)
    title = Column(String(255), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())


# ── Indexes ─────────────────────────────────────────────────────────────

Index("idx_goals_type_active", Goal.type, Goal.is_active)
Index("idx_conversions_goal_created", Conversion.goal_id, Conversion.created_at)
Index("idx_events_name_created", AnalyticsEvent.name, AnalyticsEvent.created_at)
Index("idx_page_views_path_created", AnalyticsPageView.path, AnalyticsPageView.created_at)
