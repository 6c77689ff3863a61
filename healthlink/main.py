"""Main FastAPI application."""

import logging
from datetime import datetime, timezone
from functools import lru_cache, partial
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .calendar_sync.client import CalendarClient, CalendarError
from .calendar_sync.tokens import CalendarTokenStore
from .config import settings
from .goals.database import GoalDatabase
from .goals.errors import GoalError
from .goals.schemas import (
    CalendarConnect,
    CalendarEventCreate,
    CalendarEventDelete,
    GoalCreate,
    GoalEnvelope,
    GoalListResponse,
    GoalResponse,
    GoalStatsResponse,
    GoalUpdate,
    MilestoneCreate,
    MilestoneUpdate,
    ReadingsRequest,
    ReadingsResponse,
)
from .goals.service import GoalService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="HealthLink Goals",
    description="Health goal tracking with progress, milestones and calendar sync",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url, "http://localhost:5173", "http://localhost:5174"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_service() -> GoalService:
    """Build the goal service once per process."""
    calendar_factory = partial(
        CalendarClient,
        api_url=settings.google_calendar_api_url,
        timeout=settings.calendar_timeout,
    )
    return GoalService(
        db=GoalDatabase(settings.database_path),
        tokens=CalendarTokenStore(settings.database_path),
        calendar_factory=calendar_factory,
    )


def current_user(user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Acting patient, as identified by the upstream auth layer."""
    return user_id


@app.exception_handler(GoalError)
async def goal_error_handler(request: Request, exc: GoalError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc)},
    )


@app.exception_handler(CalendarError)
async def calendar_error_handler(request: Request, exc: CalendarError):
    logger.error(f"Calendar error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"success": False, "message": str(exc) or "Calendar request failed"},
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "HealthLink Goals API",
        "version": "1.0.0",
        "endpoints": {
            "goals": "/api/goals",
            "stats": "/api/goals/stats",
            "calendar": "/api/calendar/status",
            "health": "/api/health",
        },
    }


@app.get("/api/health")
async def health():
    """Liveness endpoint."""
    return {
        "status": "OK",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/goals", response_model=GoalEnvelope, status_code=201)
async def create_goal(
    body: GoalCreate,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    """Create a health goal."""
    goal = service.create_goal(user_id, body)
    return GoalEnvelope(
        message="Health goal created successfully", data=GoalResponse.from_goal(goal)
    )


@app.get("/api/goals", response_model=GoalListResponse)
async def list_goals(
    status: Optional[str] = None,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    """
    List goals, newest first.

    In-progress goals past their deadline are re-evaluated and saved.
    """
    goals = service.list_goals(user_id, status)
    return GoalListResponse(
        data=[GoalResponse.from_goal(g) for g in goals], total=len(goals)
    )


@app.get("/api/goals/stats", response_model=GoalStatsResponse)
async def goal_stats(
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    return GoalStatsResponse(data=service.goal_stats(user_id))


@app.post("/api/goals/update-all", response_model=ReadingsResponse)
async def update_all_goals(
    body: ReadingsRequest,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    """Apply the latest health-log readings to every in-progress goal."""
    goals = service.apply_readings(user_id, body.readings)
    return ReadingsResponse(
        message=f"{len(goals)} goals updated successfully",
        updated_count=len(goals),
        data=[GoalResponse.from_goal(g) for g in goals],
    )


@app.get("/api/goals/{goal_id}", response_model=GoalEnvelope)
async def get_goal(
    goal_id: int,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    return GoalEnvelope(data=GoalResponse.from_goal(service.get_goal(user_id, goal_id)))


@app.put("/api/goals/{goal_id}", response_model=GoalEnvelope)
async def edit_goal(
    goal_id: int,
    body: GoalUpdate,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    goal = service.edit_goal(user_id, goal_id, body)
    return GoalEnvelope(message="Goal updated successfully", data=GoalResponse.from_goal(goal))


@app.delete("/api/goals/{goal_id}")
def delete_goal(
    goal_id: int,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    """Delete a goal and, best-effort, its calendar event."""
    service.delete_goal(user_id, goal_id)
    return {"success": True, "message": "Goal deleted successfully"}


@app.put("/api/goals/{goal_id}/progress", response_model=GoalEnvelope)
async def update_goal_progress(
    goal_id: int,
    body: ReadingsRequest,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    """Apply the latest health-log readings to a single goal."""
    service.apply_readings(user_id, body.readings, goal_id=goal_id)
    goal = service.get_goal(user_id, goal_id)
    return GoalEnvelope(message="Goal progress updated", data=GoalResponse.from_goal(goal))


@app.post("/api/goals/{goal_id}/milestone", response_model=GoalEnvelope)
async def add_milestone(
    goal_id: int,
    body: MilestoneCreate,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    goal = service.add_milestone(user_id, goal_id, body.value, body.note)
    return GoalEnvelope(message="Milestone added successfully", data=GoalResponse.from_goal(goal))


@app.put("/api/goals/{goal_id}/milestone/{index}", response_model=GoalEnvelope)
async def edit_milestone(
    goal_id: int,
    index: int,
    body: MilestoneUpdate,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    goal = service.edit_milestone(user_id, goal_id, index, body.value, body.note)
    return GoalEnvelope(message="Milestone updated successfully", data=GoalResponse.from_goal(goal))


@app.delete("/api/goals/{goal_id}/milestone/{index}", response_model=GoalEnvelope)
async def delete_milestone(
    goal_id: int,
    index: int,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    goal = service.delete_milestone(user_id, goal_id, index)
    return GoalEnvelope(message="Milestone deleted successfully", data=GoalResponse.from_goal(goal))


@app.post("/api/calendar/connect")
async def connect_calendar(
    body: CalendarConnect,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    """Store the user's calendar access token (obtained by the client)."""
    service.connect_calendar(user_id, body.access_token)
    return {"success": True, "connected": True}


@app.get("/api/calendar/status")
async def calendar_status(
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    return {"success": True, "connected": service.calendar_connected(user_id)}


@app.get("/api/calendar/events")
async def synced_events(
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    """Goals that have a calendar event."""
    events = service.synced_events(user_id)
    return {"success": True, "data": [e.model_dump(mode="json") for e in events]}


@app.post("/api/calendar/create-event")
def create_calendar_event(
    body: CalendarEventCreate,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    event = service.link_calendar_event(user_id, body)
    return {
        "success": True,
        "message": "Event created successfully",
        "data": {"event_id": event["id"], "html_link": event["htmlLink"]},
    }


@app.post("/api/calendar/delete-event")
def delete_calendar_event(
    body: CalendarEventDelete,
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    service.unlink_calendar_event(user_id, body.event_id)
    return {"success": True, "message": "Event deleted successfully"}


@app.post("/api/calendar/disconnect")
async def disconnect_calendar(
    user_id: str = Depends(current_user),
    service: GoalService = Depends(get_service),
):
    service.disconnect_calendar(user_id)
    return {"success": True, "message": "Google Calendar disconnected successfully"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
