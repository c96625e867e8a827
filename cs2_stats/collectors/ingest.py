"""
Pipeline d'ingestion HLTV → base locale.

Séquentiel et volontairement lent : un appel sortant à la fois, délais fixes
entre équipes et matchs. Chaque unité de travail (équipe, match) est isolée :
une erreur est loguée et la suite du lot continue.

Suivi par équipe dans data_collection_jobs :
    pending → in_progress → completed | failed
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable

from ..config import (
    HLTV_BASE, TOP_TEAMS, MATCHES_PER_TEAM,
    TEAM_DELAY, MATCH_DELAY, TEAM_COLLECTION_DELAY, map_name,
)
from ..db import (
    Session, JOB_IN_PROGRESS, JOB_COMPLETED, JOB_FAILED,
    upsert_team, upsert_player, upsert_match, update_match,
    get_teams, get_team_by_name, get_match, get_matches_without_stats,
    add_match_player_stats,
    get_collection_job, create_collection_job, update_collection_job,
)

logger = logging.getLogger(__name__)


def _slug(name: str) -> str:
    return "-".join(name.lower().split())


def team_url(team_id: int, name: str | None = None) -> str:
    if not name:
        return f"{HLTV_BASE}/team/{team_id}"
    return f"{HLTV_BASE}/team/{team_id}/{_slug(name)}"


def player_url(player_id: int, name: str) -> str:
    return f"{HLTV_BASE}/player/{player_id}/{_slug(name)}"


def match_url(match_id: int) -> str:
    return f"{HLTV_BASE}/matches/{match_id}"


# ── Équipes ───────────────────────────────────────────────────────────────────

def fetch_top_teams(client, session: Session, top: int = TOP_TEAMS,
                    delay: float = TEAM_DELAY,
                    sleep: Callable[[float], None] = time.sleep) -> list[dict]:
    """
    Récupère le top N HLTV, puis le détail et les joueurs de chaque équipe.

    Si le détail d'une équipe échoue, on garde une fiche minimale
    (nom, rang, URL) et on passe à la suivante.
    """
    logger.info(f"HLTV : récupération du top {top} équipes…")
    try:
        ranking = client.get_team_ranking()[:top]
    except Exception as e:
        logger.error(f"HLTV : classement indisponible : {e}")
        raise

    teams = []
    for entry in ranking:
        team_id = entry["team"]["id"]
        name = entry["team"]["name"]
        try:
            if delay > 0:
                sleep(delay)
            data = client.get_team(team_id)
            row = {
                "id": team_id,
                "name": name,
                "logo": data.get("logo") or entry["team"].get("logo"),
                "rank": entry["place"],
                "country": data.get("country"),
                "hltv_url": team_url(team_id, name),
            }
            # L'équipe d'abord : les joueurs la référencent
            upsert_team(session, row)
            for p in data.get("players", []):
                upsert_player(session, {
                    "id": p["id"],
                    "name": p["name"],
                    "team_id": team_id,
                    "hltv_url": player_url(p["id"], p["name"]),
                })
            teams.append(row)
            logger.info(f"Équipe {name} (#{row['rank']}) : {len(data.get('players', []))} joueurs")
        except Exception as e:
            session.rollback()
            logger.error(f"Équipe {name} [{team_id}] : {e} — fiche minimale")
            row = {
                "id": team_id,
                "name": name,
                "logo": None,
                "rank": entry["place"],
                "country": None,
                "hltv_url": team_url(team_id),
            }
            upsert_team(session, row)
            teams.append(row)

    logger.info(f"HLTV : {len(teams)} équipes enregistrées")
    return teams


# ── Matchs d'une équipe ───────────────────────────────────────────────────────

def _team_id_by_name(session: Session, team: dict | None) -> int | None:
    name = (team or {}).get("name")
    if not name:
        return None
    found = get_team_by_name(session, name)
    return found.id if found else None


def build_match_row(session: Session, result: dict) -> dict:
    """Convertit un résultat HLTV en ligne `matches` (équipes résolues par nom)."""
    team1_id = _team_id_by_name(session, result.get("team1"))
    team2_id = _team_id_by_name(session, result.get("team2"))
    score = result.get("result")

    winner_id = None
    if score:
        if score["team1"] > score["team2"]:
            winner_id = team1_id
        elif score["team2"] > score["team1"]:
            winner_id = team2_id

    return {
        "id": result["id"],
        "team1_id": team1_id,
        "team2_id": team2_id,
        "team1_score": score["team1"] if score else None,
        "team2_score": score["team2"] if score else None,
        "winner_id": winner_id,
        "map_name": map_name(result.get("map")),
        "event_name": (result.get("event") or {}).get("name") or None,
        "date": result.get("date"),
        "hltv_url": match_url(result["id"]),
        "demo_parsed": False,
        "stats_collected": False,
    }


def fetch_team_matches(client, session: Session, team_id: int,
                       limit: int = MATCHES_PER_TEAM,
                       delay: float = MATCH_DELAY,
                       sleep: Callable[[float], None] = time.sleep) -> int:
    """
    Collecte les `limit` derniers résultats d'une équipe.

    Retourne le nombre de matchs enregistrés. Si la liste des résultats
    est inaccessible, le job passe en failed et l'erreur remonte.
    """
    logger.info(f"Équipe {team_id} : collecte des matchs…")

    job = get_collection_job(session, team_id)
    if job is None:
        job = create_collection_job(session, team_id, matches_target=limit)
    update_collection_job(
        session, job,
        status=JOB_IN_PROGRESS, started_at=datetime.utcnow(),
        completed_at=None, error=None,
        matches_collected=0, matches_target=limit,
    )

    try:
        results = client.get_results(team_id)
    except Exception as e:
        session.rollback()
        update_collection_job(session, job, status=JOB_FAILED, error=str(e))
        logger.error(f"Équipe {team_id} : résultats indisponibles : {e}")
        raise

    collected = 0
    for result in results[:limit]:
        try:
            if delay > 0:
                sleep(delay)
            upsert_match(session, build_match_row(session, result))
            collected += 1
            update_collection_job(session, job, matches_collected=collected)
            logger.info(
                f"Match {result['id']} : {(result.get('team1') or {}).get('name')} "
                f"vs {(result.get('team2') or {}).get('name')}"
            )
        except Exception as e:
            session.rollback()
            logger.error(f"Match {result.get('id')} : {e}")

    update_collection_job(
        session, job,
        status=JOB_COMPLETED, completed_at=datetime.utcnow(),
        matches_collected=collected,
    )
    logger.info(f"Équipe {team_id} : {collected} matchs collectés")
    return collected


# ── Stats par match ───────────────────────────────────────────────────────────

def fetch_match_stats(client, session: Session, match_id: int) -> int:
    """
    Enregistre les stats joueurs d'un match et le marque stats_collected.

    Un match absent de la base ou déjà traité n'est pas collecté. Retourne le
    nombre de lignes créées.
    """
    match = get_match(session, match_id)
    if match is None:
        logger.warning(f"Match {match_id} absent de la base, stats ignorées")
        return 0
    if match.stats_collected:
        logger.info(f"Match {match_id} : stats déjà collectées")
        return 0

    try:
        data = client.get_match_stats(match_id)
        created = 0
        for team_name, rows in data.get("player_stats", {}).items():
            team = get_team_by_name(session, team_name)
            for stat in rows:
                kills = stat.get("kills") or 0
                headshots = stat.get("headshots") or 0
                add_match_player_stats(
                    session,
                    match_id=match_id,
                    player_id=(stat.get("player") or {}).get("id"),
                    team_id=team.id if team else None,
                    kills=kills,
                    deaths=stat.get("deaths") or 0,
                    assists=stat.get("assists") or 0,
                    adr=stat.get("adr"),
                    kast=stat.get("kast"),
                    rating=stat.get("rating"),
                    headshots=headshots,
                    headshot_percentage=round(headshots / kills * 100, 1) if kills else None,
                )
                created += 1
        update_match(session, match_id, stats_collected=True)
    except Exception as e:
        session.rollback()
        logger.error(f"Match {match_id} : stats indisponibles : {e}")
        raise

    logger.info(f"Match {match_id} : {created} lignes de stats")
    return created


def fetch_pending_match_stats(client, session: Session, limit: int = 20) -> dict:
    """Stats pour les matchs qui n'en ont pas encore, un échec n'arrête pas le lot."""
    done = failed = 0
    for match in get_matches_without_stats(session, limit):
        try:
            fetch_match_stats(client, session, match.id)
            done += 1
        except Exception:
            failed += 1
    return {"collected": done, "failed": failed}


# ── Collecte complète ─────────────────────────────────────────────────────────

def queue_collection_jobs(session: Session, limit: int = MATCHES_PER_TEAM) -> int:
    """Crée un job pending pour chaque équipe qui n'en a pas."""
    created = 0
    for team in get_teams(session):
        if get_collection_job(session, team.id) is None:
            create_collection_job(session, team.id, matches_target=limit)
            created += 1
    return created


def start_full_collection(client, session: Session,
                          limit: int = MATCHES_PER_TEAM,
                          team_delay: float = TEAM_COLLECTION_DELAY,
                          match_delay: float = MATCH_DELAY,
                          sleep: Callable[[float], None] = time.sleep) -> dict:
    """
    Collecte les matchs de toutes les équipes connues, une par une.

    Une équipe en échec est loguée et n'empêche pas les suivantes.
    """
    queue_collection_jobs(session, limit)
    teams = get_teams(session)
    summary = {"teams": len(teams), "completed": 0, "failed": 0, "matches": 0}

    for i, team in enumerate(teams):
        try:
            summary["matches"] += fetch_team_matches(
                client, session, team.id, limit, delay=match_delay, sleep=sleep,
            )
            summary["completed"] += 1
        except Exception as e:
            summary["failed"] += 1
            logger.error(f"Équipe {team.name} : collecte échouée : {e}")
        if team_delay > 0 and i < len(teams) - 1:
            sleep(team_delay)

    logger.info(
        f"Collecte complète : {summary['completed']}/{summary['teams']} équipes, "
        f"{summary['matches']} matchs"
    )
    return summary
