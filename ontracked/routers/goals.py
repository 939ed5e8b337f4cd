from fastapi import APIRouter, HTTPException, Body, Path, Depends
from typing import List

from ontracked.models import GoalCreate, GoalResponse, ValidationError
from ontracked.goal_store import GoalStore, MalformedRecordError, StorageIOError
from ontracked.config import logger

router = APIRouter(prefix="/goals", tags=["Goals"])

def get_goal_store() -> GoalStore:
    """Get the goal store from the main app context"""
    from ontracked.fastapi_app import goal_store
    return goal_store


@router.get("/index",
         summary="Goal index",
         description="Simple connectivity check for the goals endpoints.")
def index():
    logger.info("GET /goals/index")
    return {"message": "Goal Controller"}


@router.get("/",
         summary="List goals",
         description="Retrieves every goal currently stored.",
         response_model=List[GoalResponse])
def list_goals(store: GoalStore = Depends(get_goal_store)):
    """
    List all stored goals. Missing storage yields an empty list.
    """
    logger.info("GET /goals/")
    try:
        goals = store.load_all()
    except (MalformedRecordError, ValidationError) as e:
        logger.error(f"Failed to load goals: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load goals: {e}")
    return [GoalResponse.from_goal(g) for g in goals]


@router.post("/",
          summary="Save a goal",
          description="Validates a single goal and appends it to the goal store.",
          response_model=GoalResponse)
def save_goal(goal_data: GoalCreate = Body(..., description="Goal to persist"),
              store: GoalStore = Depends(get_goal_store)):
    """
    Save one goal. Invalid fields are rejected with 400, storage failures with 500.
    """
    logger.info("POST /goals/")
    try:
        goal = goal_data.to_goal()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        store.save_all([goal])
    except StorageIOError as e:
        logger.error(f"Failed to save goal: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save goal: {e}")
    return GoalResponse.from_goal(goal)


@router.post("/batch",
          summary="Save multiple goals",
          description="Validates a list of goals and appends all of them to the goal store. Nothing is written if any goal is invalid.",
          response_model=List[GoalResponse])
def save_goals(goals_data: List[GoalCreate] = Body(..., description="Goals to persist"),
               store: GoalStore = Depends(get_goal_store)):
    """
    Save several goals in one append.
    """
    logger.info("POST /goals/batch")
    if not goals_data:
        raise HTTPException(status_code=400, detail="Goal list cannot be empty")

    try:
        goals = [goal_data.to_goal() for goal_data in goals_data]
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        store.save_all(goals)
    except StorageIOError as e:
        logger.error(f"Failed to save multiple goals: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save multiple goals: {e}")
    return [GoalResponse.from_goal(g) for g in goals]


@router.get("/{goal_id}",
         summary="Get a goal",
         description="Retrieves a goal by its unique identifier.",
         response_model=GoalResponse)
def get_goal(goal_id: str = Path(..., description="Unique identifier of the goal"),
             store: GoalStore = Depends(get_goal_store)):
    """
    Retrieve a goal by ID.
    """
    logger.info(f"GET /goals/{goal_id}")
    if not goal_id.strip():
        raise HTTPException(status_code=400, detail="Missing or blank ID")

    try:
        goal = store.retrieve_goal(goal_id)
    except (MalformedRecordError, ValidationError) as e:
        logger.error(f"Failed to load goals: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load goals: {e}")

    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return GoalResponse.from_goal(goal)


@router.get("/{goal_id}/children",
         summary="Get goal children",
         description="Retrieves the goals whose parent is the given goal.",
         response_model=List[GoalResponse])
def get_goal_children(goal_id: str = Path(..., description="Identifier of the parent goal"),
                      store: GoalStore = Depends(get_goal_store)):
    """
    Retrieve every stored goal whose parent_id is goal_id.
    """
    logger.info(f"GET /goals/{goal_id}/children")
    try:
        goals = store.load_all()
    except (MalformedRecordError, ValidationError) as e:
        logger.error(f"Failed to load goals: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load goals: {e}")

    if not any(g.id == goal_id for g in goals):
        raise HTTPException(status_code=404, detail="Goal not found")
    return [GoalResponse.from_goal(g) for g in goals if g.parent_id == goal_id]
