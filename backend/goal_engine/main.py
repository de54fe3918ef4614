"""
FastAPI application exposing goal and funnel reports.

Run with:  uvicorn goal_engine.main:app
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from fastapi import FastAPI  # noqa: E402

from goal_engine import config  # noqa: E402
from goal_engine.database import Base, SessionLocal, engine  # noqa: E402
from goal_engine.exceptions import GoalEngineError  # noqa: E402
from goal_engine.goal_loader import load_goal_definitions, sync_goals  # noqa: E402
from goal_engine.goal_service import GoalService  # noqa: E402
from goal_engine.routes_goals import router as goals_router  # noqa: E402

config.configure_logging()
logger = logging.getLogger(__name__)


def create_db_and_tables():
    logger.info("Connecting to database to create tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully.")

    if not config.GOALS_FILE:
        return
    db = SessionLocal()
    try:
        result = load_goal_definitions(config.GOALS_FILE)
        sync_goals(GoalService(db), result.definitions)
    except GoalEngineError as e:
        logger.error(f"Error loading goals from {config.GOALS_FILE}: {e}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    create_db_and_tables()
    yield


app = FastAPI(title="Goal Engine", lifespan=lifespan)
app.include_router(goals_router)


@app.get("/health")
def health():
    return {"status": "ok"}
