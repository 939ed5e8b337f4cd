# Standard library imports
from contextlib import asynccontextmanager
from pathlib import Path

# Third-party imports
from fastapi import FastAPI
import uvicorn

# Local application imports
from ontracked.config import settings, logger
from ontracked.goal_store import GoalStore
from ontracked.routers import goals, health

goal_store = None


@asynccontextmanager
async def lifespan(_: FastAPI):
    """
    Manage application lifespan events.
    Opens the goal store on startup; it holds no resources to release on exit.
    """
    # Startup
    global goal_store
    goals_file = Path(settings.GOALS_FILE_PATH)
    goals_file.parent.mkdir(parents=True, exist_ok=True)
    goal_store = GoalStore(goals_file)
    logger.info(f"Application started with goal store at {goals_file}")

    yield

    # Shutdown
    logger.info("Shutting down")

app = FastAPI(lifespan=lifespan)
app.title = "OnTracked - Backend"
app.version = "0.1.0"

# Include routers
app.include_router(goals.router)
app.include_router(health.router)


@app.get("/",
         tags=["Root"],
         summary="Welcome Endpoint",
         description="Returns a welcome message including the application title and version.")
def root():
    return {"message": f"Welcome to {app.title} v{app.version}"}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
