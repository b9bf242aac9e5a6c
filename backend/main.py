import logging
from typing import Optional
from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from config import CORS_ORIGINS, PORT, HOST, DEBUG, LOG_LEVEL, MEETUP_STORE, ROSTER_RETRY_ATTEMPTS
from constants import (
    COURT_TYPES, MAX_PLAYERS_DEFAULT, MAX_PLAYERS_MIN, MAX_PLAYERS_MAX,
    MEETUP_LIST_LIMIT_DEFAULT, MEETUP_LIST_LIMIT_MAX, USER_ID_MAX_LENGTH
)
from errors import RosterError
from models import Meetup, MeetupCreate, MeetupCancel, PlayerApproval, UserMeetupsResponse
from roster import RosterManager, retry_on_conflict
from store import build_store

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="VB Meetup API",
    version="1.0.0",
    docs_url="/api/docs" if DEBUG else None,
    redoc_url="/api/redoc" if DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RosterError)
async def roster_exception_handler(request: Request, exc: RosterError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": True, "status_code": exc.status_code, "code": exc.code, "message": exc.message, "path": str(request.url.path)}
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": True, "status_code": exc.status_code, "message": exc.detail, "path": str(request.url.path)}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": True, "status_code": 500, "message": "Internal server error", "path": str(request.url.path)}
    )


@app.on_event("startup")
async def startup():
    store = build_store(MEETUP_STORE)
    await store.open()
    app.state.roster = RosterManager(store)


@app.on_event("shutdown")
async def shutdown():
    roster = getattr(app.state, "roster", None)
    if roster is not None:
        await roster.store.close()


def get_roster(request: Request) -> RosterManager:
    return request.app.state.roster


def require_user(x_user_id: Optional[str]) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    user_id = x_user_id.strip()
    # Same limit as PlayerApproval.user_id
    if len(user_id) > USER_ID_MAX_LENGTH:
        raise HTTPException(status_code=400, detail=f"X-User-Id must be at most {USER_ID_MAX_LENGTH} characters")
    return user_id


# ============ MEETUPS ============

@app.post("/api/meetups", response_model=Meetup)
async def create_meetup(meetup: MeetupCreate, x_user_id: Optional[str] = Header(None),
                        roster: RosterManager = Depends(get_roster)):
    host_id = require_user(x_user_id)
    return await roster.create_meetup(meetup, host_id)


@app.get("/api/meetups", response_model=list[Meetup])
async def list_meetups(limit: int = Query(MEETUP_LIST_LIMIT_DEFAULT, ge=1, le=MEETUP_LIST_LIMIT_MAX),
                       roster: RosterManager = Depends(get_roster)):
    return await roster.list_active_meetups(limit)


@app.get("/api/meetups/{meetup_id}", response_model=Meetup)
async def get_meetup(meetup_id: str, roster: RosterManager = Depends(get_roster)):
    return await roster.get_meetup(meetup_id)


@app.post("/api/meetups/{meetup_id}/cancel", response_model=Meetup)
async def cancel_meetup(meetup_id: str, cancel: MeetupCancel, x_user_id: Optional[str] = Header(None),
                        roster: RosterManager = Depends(get_roster)):
    actor_id = require_user(x_user_id)
    return await retry_on_conflict(
        lambda: roster.cancel_meetup(meetup_id, cancel.reason, actor_id=actor_id),
        ROSTER_RETRY_ATTEMPTS,
    )


# ============ ROSTER ============

@app.post("/api/meetups/{meetup_id}/waitlist", response_model=Meetup)
async def join_waitlist(meetup_id: str, x_user_id: Optional[str] = Header(None),
                        roster: RosterManager = Depends(get_roster)):
    user_id = require_user(x_user_id)
    return await retry_on_conflict(
        lambda: roster.request_join(meetup_id, user_id),
        ROSTER_RETRY_ATTEMPTS,
    )


@app.post("/api/meetups/{meetup_id}/players", response_model=Meetup)
async def approve_player(meetup_id: str, approval: PlayerApproval, x_user_id: Optional[str] = Header(None),
                         roster: RosterManager = Depends(get_roster)):
    actor_id = require_user(x_user_id)
    return await retry_on_conflict(
        lambda: roster.approve_player(meetup_id, approval.user_id, actor_id=actor_id),
        ROSTER_RETRY_ATTEMPTS,
    )


@app.delete("/api/meetups/{meetup_id}/players/{user_id}", response_model=Meetup)
async def remove_player(meetup_id: str, user_id: str = Path(..., max_length=USER_ID_MAX_LENGTH), x_user_id: Optional[str] = Header(None),
                        roster: RosterManager = Depends(get_roster)):
    actor_id = require_user(x_user_id)
    return await retry_on_conflict(
        lambda: roster.remove_player(meetup_id, user_id, actor_id=actor_id),
        ROSTER_RETRY_ATTEMPTS,
    )


# ============ USERS ============

@app.get("/api/users/{user_id}/meetups", response_model=UserMeetupsResponse)
async def get_user_meetups(user_id: str, roster: RosterManager = Depends(get_roster)):
    """Meetups the user hosts, and the ones they hold an approved slot in."""
    return await roster.user_meetups(user_id)


# ============ CONFIGURATION ============

@app.get("/api/config")
def get_config():
    return {
        "court_types": COURT_TYPES,
        "max_players": {"default": MAX_PLAYERS_DEFAULT, "min": MAX_PLAYERS_MIN, "max": MAX_PLAYERS_MAX},
    }


# ============ HEALTH CHECK ============

@app.get("/api/health")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT, reload=DEBUG)
