from fastapi import APIRouter, HTTPException

from ontracked.models import ValidationError
from ontracked.goal_store import MalformedRecordError

router = APIRouter(tags=["Health"])

def get_goal_store():
    """Get the goal store from the main app context"""
    from ontracked.fastapi_app import goal_store
    return goal_store

@router.get("/health",
         summary="Health check",
         description="Parses the goal store and returns the application's health status.")
def health_check():
    """
    Health endpoint to check the goal store can be read.
    """
    try:
        get_goal_store().load_all()
        return {"status": "healthy"}
    except (MalformedRecordError, ValidationError):
        raise HTTPException(status_code=503, detail="Goal store unreadable")
