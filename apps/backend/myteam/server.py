import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware

from .api_client import default_client
from .config import SETTINGS, configure_logging
from .errors import ApiError, InvalidFormation, PersistenceFailed, SubstitutionRejected, UnknownPlayer
from .formation import supported_formations
from .render import render_squad_md
from .scheduler import start_resync_scheduler
from .session import TeamSession

log = logging.getLogger(__name__)

_RESYNC_SCHEDULER: Optional[BackgroundScheduler] = None
# One session per (team id, bearer token); edits are saved with the token that made them.
_TEAM_SESSIONS: Dict[Tuple[str, str], TeamSession] = {}


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:  # type: ignore[misc]
    """Start the re-sync job on startup and stop it on shutdown."""
    global _RESYNC_SCHEDULER
    configure_logging()
    if SETTINGS.resync_enabled and _RESYNC_SCHEDULER is None:
        _RESYNC_SCHEDULER = start_resync_scheduler(lambda: _TEAM_SESSIONS.values())

    yield  # application runs here

    if _RESYNC_SCHEDULER:
        _RESYNC_SCHEDULER.shutdown()
        _RESYNC_SCHEDULER = None


app = FastAPI(lifespan=_lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _token(authorization: Optional[str]) -> str:
    raw = (authorization or "").strip()
    if raw.lower().startswith("bearer "):
        return raw[7:].strip()
    return raw


def _session(team_id: str, authorization: Optional[str] = None, reload: bool = False) -> TeamSession:
    token = _token(authorization)
    key = (team_id, token)
    session = _TEAM_SESSIONS.get(key)
    if session is None or reload:
        session = TeamSession.load(default_client(token), team_id)
        _TEAM_SESSIONS[key] = session
    return session


def _save(session: TeamSession) -> Dict[str, Any]:
    try:
        session.save()
    except PersistenceFailed as exc:
        return {"error": str(exc), "view": session.view()}
    return {"ok": True, "view": session.view()}


@app.get("/health")
def health() -> Dict[str, str]:
    """Liveness probe endpoint.  Returns ``{"status": "ok"}`` when the server is up."""
    return {"status": "ok"}


@app.get("/api/formations")
def formations() -> Dict[str, Any]:
    return {
        "default": SETTINGS.default_formation,
        "formations": [
            {
                "name": str(f),
                "defenders": f.defenders,
                "midfielders": f.midfielders,
                "forwards": f.forwards,
            }
            for f in supported_formations()
        ],
    }


@app.get("/api/teams/{team_id}")
def get_team(team_id: str, reload: bool = False, authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    """Return the squad view for *team_id*, loading it from the team API on first use.

    ``reload=true`` discards the cached session and rebuilds it from a fresh
    roster fetch.
    """
    try:
        session = _session(team_id, authorization, reload=reload)
    except ApiError as exc:
        return {"error": str(exc)}
    return session.view()


@app.post("/api/teams/{team_id}/formation")
def change_formation(
    team_id: str, payload: Dict[str, Any], authorization: Optional[str] = Header(None)
) -> Dict[str, Any]:
    """Switch formation, rebuild the starting XI and save it.

    A malformed or unsupported formation leaves the current lineup untouched.
    """
    descriptor = str(payload.get("formation") or "").strip()
    if not descriptor:
        return {"error": "formation is required"}
    try:
        session = _session(team_id, authorization)
        session.change_formation(descriptor)
    except InvalidFormation as exc:
        return {"error": str(exc)}
    except ApiError as exc:
        return {"error": str(exc)}
    return _save(session)


@app.post("/api/teams/{team_id}/substitution")
def substitution(
    team_id: str, payload: Dict[str, Any], authorization: Optional[str] = Header(None)
) -> Dict[str, Any]:
    """Swap two players (drag and drop). Bench/pitch swaps must share a position."""
    a_id = str(payload.get("player_a") or "").strip()
    b_id = str(payload.get("player_b") or "").strip()
    if not a_id or not b_id:
        return {"error": "player_a and player_b are required"}
    try:
        session = _session(team_id, authorization)
        check = session.substitute(a_id, b_id)
    except SubstitutionRejected as exc:
        return {"error": "substitution rejected", "reason": exc.reason}
    except (UnknownPlayer, ApiError) as exc:
        return {"error": str(exc)}
    if check.noop:
        return {"ok": True, "view": session.view()}
    return _save(session)


@app.post("/api/teams/{team_id}/captain")
def captain(team_id: str, payload: Dict[str, Any], authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    player_id = str(payload.get("player_id") or "").strip()
    if not player_id:
        return {"error": "player_id is required"}
    try:
        session = _session(team_id, authorization)
        session.set_captain(player_id)
    except (UnknownPlayer, ApiError) as exc:
        return {"error": str(exc)}
    return _save(session)


@app.post("/api/teams/{team_id}/save")
def save(team_id: str, authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    try:
        session = _session(team_id, authorization)
    except ApiError as exc:
        return {"error": str(exc)}
    return _save(session)


@app.get("/api/teams/{team_id}/markdown")
def markdown(team_id: str, authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    try:
        session = _session(team_id, authorization)
    except ApiError as exc:
        return {"error": str(exc)}
    return {"md": render_squad_md(session.squad, session.name)}
