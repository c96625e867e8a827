"""API JSON du dashboard (FastAPI)."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Iterator, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel

from . import stats
from .collectors.hltv import HltvClient
from .collectors.ingest import fetch_top_teams, fetch_team_matches, start_full_collection
from .config import MATCHES_PER_TEAM
from .db import (
    Session, init_db, get_session, to_dict,
    get_teams, get_player, get_match, get_rounds_by_match, get_match_player_stats,
    get_grenade_death_locations,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="CS2 Stats", version="0.1.0", lifespan=lifespan)


def get_db() -> Iterator[Session]:
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def get_client() -> Iterator[HltvClient]:
    client = HltvClient()
    try:
        yield client
    finally:
        client.close()


def _fail(message: str, exc: Exception) -> HTTPException:
    logger.error(f"{message}: {exc}")
    return HTTPException(status_code=500, detail=message)


class CollectionRequest(BaseModel):
    team_id: Optional[int] = None


def run_collection(team_id: int | None = None):
    """Collecte en tâche de fond : une équipe ou toutes."""
    db = get_session()
    client = HltvClient()
    try:
        if team_id is not None:
            fetch_team_matches(client, db, team_id, MATCHES_PER_TEAM)
        else:
            start_full_collection(client, db, MATCHES_PER_TEAM)
    except Exception as e:
        logger.error(f"Collecte [{'all' if team_id is None else team_id}] : {e}")
    finally:
        client.close()
        db.close()


# ── Teams ─────────────────────────────────────────────────────────────────────

@app.get("/api/teams")
def list_teams(db: Session = Depends(get_db)):
    try:
        return [to_dict(t) for t in get_teams(db)]
    except Exception as e:
        raise _fail("Failed to fetch teams", e)


@app.get("/api/teams/{team_id}")
def team_detail(team_id: int, db: Session = Depends(get_db)):
    try:
        detail = stats.get_team_detail(db, team_id)
    except Exception as e:
        raise _fail("Failed to fetch team details", e)
    if detail is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return detail


@app.post("/api/teams/fetch")
def fetch_teams(db: Session = Depends(get_db), client: HltvClient = Depends(get_client)):
    try:
        teams = fetch_top_teams(client, db)
    except Exception as e:
        raise _fail("Failed to fetch teams from HLTV", e)
    return {"success": True, "count": len(teams)}


# ── Players ───────────────────────────────────────────────────────────────────

@app.get("/api/players")
def list_players(db: Session = Depends(get_db)):
    try:
        return stats.get_players_with_stats(db)
    except Exception as e:
        raise _fail("Failed to fetch players", e)


@app.get("/api/players/{player_id}")
def player_detail(player_id: int, db: Session = Depends(get_db)):
    try:
        player = get_player(db, player_id)
        found = stats.get_player_with_stats(db, player_id) if player else None
    except Exception as e:
        raise _fail("Failed to fetch player", e)
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return found or to_dict(player)


# ── Matches ───────────────────────────────────────────────────────────────────

@app.get("/api/matches")
def list_matches(db: Session = Depends(get_db)):
    try:
        return stats.get_matches_with_teams(db)
    except Exception as e:
        raise _fail("Failed to fetch matches", e)


@app.get("/api/matches/{match_id}")
def match_detail(match_id: int, db: Session = Depends(get_db)):
    try:
        match = get_match(db, match_id)
        if match is not None:
            return {
                "match": to_dict(match),
                "rounds": [to_dict(r) for r in get_rounds_by_match(db, match_id)],
                "player_stats": [to_dict(s) for s in get_match_player_stats(db, match_id)],
            }
    except Exception as e:
        raise _fail("Failed to fetch match", e)
    raise HTTPException(status_code=404, detail="Match not found")


# ── Stats ─────────────────────────────────────────────────────────────────────

@app.get("/api/stats/dashboard")
def dashboard(db: Session = Depends(get_db)):
    try:
        return stats.get_dashboard_stats(db)
    except Exception as e:
        raise _fail("Failed to fetch dashboard stats", e)


@app.get("/api/stats/grenades")
def grenades(db: Session = Depends(get_db)):
    try:
        return stats.get_grenade_overview(db)
    except Exception as e:
        raise _fail("Failed to fetch grenade stats", e)


@app.get("/api/stats/maps")
def maps(db: Session = Depends(get_db)):
    try:
        return stats.get_map_overview(db)
    except Exception as e:
        raise _fail("Failed to fetch map stats", e)


@app.get("/api/stats/maps/{map_name}/deaths")
def map_deaths(map_name: str, db: Session = Depends(get_db)):
    try:
        return [to_dict(loc) for loc in get_grenade_death_locations(db, map_name)]
    except Exception as e:
        raise _fail("Failed to fetch grenade death locations", e)


@app.get("/api/stats/rankings")
def rankings(db: Session = Depends(get_db)):
    try:
        return stats.get_rankings(db)
    except Exception as e:
        raise _fail("Failed to fetch rankings", e)


# ── Collection ────────────────────────────────────────────────────────────────

@app.get("/api/collection")
def collection(db: Session = Depends(get_db)):
    try:
        return stats.get_collection_overview(db)
    except Exception as e:
        raise _fail("Failed to fetch collection data", e)


@app.post("/api/collection/start")
def start_collection(background: BackgroundTasks, body: CollectionRequest | None = None):
    team_id = body.team_id if body else None
    background.add_task(run_collection, team_id)
    if team_id is not None:
        return {"success": True, "message": f"Started collection for team {team_id}"}
    return {"success": True, "message": "Started full collection"}
