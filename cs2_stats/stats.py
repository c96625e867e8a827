"""
Agrégats pour le dashboard : classements, grenades, cartes, collecte.

Tout est calculé en Python sur les tables chargées en mémoire ; les volumes
(top 30 × 50 matchs) ne justifient pas d'agrégation SQL.
"""
from __future__ import annotations

from collections import defaultdict

from .config import HE_GRENADE, MOLOTOV_TYPES
from .db import (
    Session, Team, Player, Match, Kill, MatchPlayerStats,
    JOB_COMPLETED, JOB_IN_PROGRESS, JOB_FAILED, to_dict,
    get_teams, get_team, get_matches, get_matches_for_team, get_players_by_team,
    get_collection_jobs,
)


def _avg(total: float, count: int) -> float:
    return total / count if count else 0


def _match_dict(m: Match, teams: dict[int, Team]) -> dict:
    row = to_dict(m)
    row["team1"] = to_dict(teams.get(m.team1_id))
    row["team2"] = to_dict(teams.get(m.team2_id))
    row["winner"] = to_dict(teams.get(m.winner_id))
    return row


def _team_map(session: Session) -> dict[int, Team]:
    return {t.id: t for t in session.query(Team).all()}


# ── Matchs ────────────────────────────────────────────────────────────────────

def get_matches_with_teams(session: Session, limit: int = 100) -> list[dict]:
    teams = _team_map(session)
    return [_match_dict(m, teams) for m in get_matches(session, limit)]


def get_matches_by_team(session: Session, team_id: int) -> list[dict]:
    teams = _team_map(session)
    return [_match_dict(m, teams) for m in get_matches_for_team(session, team_id)]


def _team_record(matches: list[dict], team_id: int) -> tuple[int, int, float]:
    """(matchs, victoires, % victoires) d'une équipe."""
    played = [m for m in matches if team_id in (m["team1_id"], m["team2_id"])]
    wins = sum(1 for m in played if m["winner_id"] == team_id)
    return len(played), wins, _avg(wins, len(played)) * 100


# ── Joueurs ───────────────────────────────────────────────────────────────────

def _stats_by_player(session: Session) -> dict[int, list[MatchPlayerStats]]:
    grouped: dict[int, list[MatchPlayerStats]] = defaultdict(list)
    for s in session.query(MatchPlayerStats).all():
        grouped[s.player_id].append(s)
    return grouped


def get_players_with_stats(session: Session) -> list[dict]:
    """Moyennes par joueur sur tous ses matchs enregistrés."""
    teams = _team_map(session)
    stats = _stats_by_player(session)
    result = []
    for player in session.query(Player).all():
        rows = stats.get(player.id, [])
        played = len(rows)
        row = to_dict(player)
        row.update({
            "team": to_dict(teams.get(player.team_id)),
            "avg_kills": _avg(sum(s.kills or 0 for s in rows), played),
            "avg_deaths": _avg(sum(s.deaths or 0 for s in rows), played),
            "avg_rating": _avg(sum(s.rating or 0 for s in rows), played),
            "total_grenade_kills": sum(
                (s.he_grenade_kills or 0) + (s.molotov_kills or 0) for s in rows
            ),
            "matches_played": played,
        })
        result.append(row)
    return result


def get_player_with_stats(session: Session, player_id: int) -> dict | None:
    for p in get_players_with_stats(session):
        if p["id"] == player_id:
            return p
    return None


# ── Grenades ──────────────────────────────────────────────────────────────────

def get_grenade_stats(session: Session) -> list[dict]:
    """Joueurs avec au moins un kill grenade, triés par total HE + molotov."""
    teams = _team_map(session)
    stats = _stats_by_player(session)
    result = []
    for player in session.query(Player).all():
        rows = stats.get(player.id, [])
        played = len(rows)
        he = sum(s.he_grenade_kills or 0 for s in rows)
        molotov = sum(s.molotov_kills or 0 for s in rows)
        if he + molotov == 0:
            continue
        team = teams.get(player.team_id)
        result.append({
            "player_id": player.id,
            "player_name": player.name,
            "team_name": team.name if team else "Unknown",
            "total_he_kills": he,
            "total_molotov_kills": molotov,
            "avg_he_damage": _avg(sum(s.he_grenade_damage or 0 for s in rows), played),
            "avg_grenades_bought": _avg(sum(s.he_grenades_bought or 0 for s in rows), played),
            "matches_played": played,
        })
    return sorted(result, key=lambda r: r["total_he_kills"] + r["total_molotov_kills"], reverse=True)


def get_grenade_overview(session: Session) -> dict:
    top_players = get_grenade_stats(session)
    total_he = sum(p["total_he_kills"] for p in top_players)
    total_molotov = sum(p["total_molotov_kills"] for p in top_players)
    match_count = session.query(Match).count() or 1

    by_team: dict[str, dict] = {}
    for p in top_players:
        t = by_team.setdefault(p["team_name"], {"team_name": p["team_name"], "he_kills": 0, "molotov_kills": 0})
        t["he_kills"] += p["total_he_kills"]
        t["molotov_kills"] += p["total_molotov_kills"]
    team_stats = sorted(
        ({**t, "total_kills": t["he_kills"] + t["molotov_kills"]} for t in by_team.values()),
        key=lambda t: t["total_kills"], reverse=True,
    )

    return {
        "top_players": top_players,
        "summary": {
            "total_he_kills": total_he,
            "total_molotov_kills": total_molotov,
            "avg_he_per_match": total_he / match_count,
            "avg_molotov_per_match": total_molotov / match_count,
            "most_deadly_player": top_players[0]["player_name"] if top_players else "N/A",
            "most_deadly_team": team_stats[0]["team_name"] if team_stats else "N/A",
        },
        "team_stats": team_stats,
    }


# ── Cartes ────────────────────────────────────────────────────────────────────

def get_map_grenade_stats(session: Session) -> list[dict]:
    """Morts à la grenade par carte (carte du match où a eu lieu le kill)."""
    maps_by_match = {m.id: m.map_name for m in session.query(Match).all()}
    maps: dict[str, dict] = {}
    for kill in session.query(Kill).filter(Kill.is_grenade.is_(True)).all():
        name = maps_by_match.get(kill.match_id)
        if not name:
            continue
        s = maps.setdefault(name, {"total": 0, "he": 0, "molotov": 0, "matches": set()})
        s["total"] += 1
        s["matches"].add(kill.match_id)
        if kill.grenade_type == HE_GRENADE:
            s["he"] += 1
        elif kill.grenade_type in MOLOTOV_TYPES:
            s["molotov"] += 1

    result = [
        {
            "map_name": name,
            "total_grenade_deaths": s["total"],
            "he_deaths": s["he"],
            "molotov_deaths": s["molotov"],
            "avg_deaths_per_match": _avg(s["total"], len(s["matches"])),
        }
        for name, s in maps.items()
    ]
    return sorted(result, key=lambda r: r["total_grenade_deaths"], reverse=True)


def get_map_overview(session: Session) -> dict:
    maps = get_map_grenade_stats(session)
    return {
        "maps": maps,
        "summary": {
            "total_maps_played": len(maps),
            "total_grenade_deaths": sum(m["total_grenade_deaths"] for m in maps),
            "most_deadly_map": maps[0]["map_name"] if maps else "N/A",
            "avg_deaths_per_match": _avg(sum(m["avg_deaths_per_match"] for m in maps), len(maps)),
        },
    }


# ── Dashboard ─────────────────────────────────────────────────────────────────

def get_dashboard_stats(session: Session) -> dict:
    total_teams = session.query(Team).count()
    completed = sum(1 for j in get_collection_jobs(session) if j.status == JOB_COMPLETED)
    return {
        "total_teams": total_teams,
        "total_matches": session.query(Match).count(),
        "total_grenade_kills": session.query(Kill).filter(Kill.is_grenade.is_(True)).count(),
        "collection_progress": round(completed / total_teams * 100) if total_teams else 0,
        "recent_matches": get_matches_with_teams(session, 10),
        "top_grenade_killers": get_grenade_stats(session)[:5],
        "map_stats": get_map_grenade_stats(session)[:7],
    }


# ── Équipe ────────────────────────────────────────────────────────────────────

def get_team_detail(session: Session, team_id: int) -> dict | None:
    team = get_team(session, team_id)
    if team is None:
        return None

    matches = get_matches_by_team(session, team_id)
    played, wins, win_rate = _team_record(matches, team_id)
    player_stats = [p for p in get_players_with_stats(session) if p["team_id"] == team_id]
    for p in player_stats:
        p["player"] = {"id": p["id"], "name": p["name"], "avatar": p["avatar"]}

    return {
        "team": to_dict(team),
        "players": [to_dict(p) for p in get_players_by_team(session, team_id)],
        "matches": matches[:50],
        "stats": {
            "total_matches": played,
            "wins": wins,
            "losses": played - wins,
            "win_rate": win_rate,
            "avg_kills": _avg(sum(p["avg_kills"] for p in player_stats), len(player_stats)),
            "avg_deaths": _avg(sum(p["avg_deaths"] for p in player_stats), len(player_stats)),
            "total_grenade_kills": sum(p["total_grenade_kills"] for p in player_stats),
        },
        "player_stats": player_stats,
    }


# ── Classements ───────────────────────────────────────────────────────────────

def get_rankings(session: Session) -> dict:
    players = get_players_with_stats(session)
    matches = [to_dict(m) for m in get_matches(session)]
    active = [p for p in players if p["matches_played"] > 0]

    team_rows = []
    for team in get_teams(session):
        played, _, win_rate = _team_record(matches, team.id)
        if not played:
            continue
        roster = [p for p in players if p["team_id"] == team.id]
        team_rows.append({
            **to_dict(team),
            "win_rate": win_rate,
            "total_matches": played,
            "avg_rating": _avg(sum(p["avg_rating"] for p in roster), len(roster)),
        })

    return {
        "top_players": sorted(active, key=lambda p: p["avg_rating"], reverse=True)[:20],
        "top_teams": sorted(team_rows, key=lambda t: t["win_rate"], reverse=True)[:15],
        "top_fraggers": sorted(active, key=lambda p: p["avg_kills"], reverse=True)[:20],
        "top_grenade_killers": sorted(
            (p for p in players if p["total_grenade_kills"] > 0),
            key=lambda p: p["total_grenade_kills"], reverse=True,
        )[:20],
    }


# ── Collecte ──────────────────────────────────────────────────────────────────

def get_collection_overview(session: Session) -> dict:
    teams = get_teams(session)
    team_by_id = {t.id: t for t in teams}
    jobs = get_collection_jobs(session)

    def count(status: str) -> int:
        return sum(1 for j in jobs if j.status == status)

    completed, in_progress, failed = count(JOB_COMPLETED), count(JOB_IN_PROGRESS), count(JOB_FAILED)
    return {
        "teams": [to_dict(t) for t in teams],
        "jobs": [{**to_dict(j), "team": to_dict(team_by_id.get(j.team_id))} for j in jobs],
        "summary": {
            "total_teams": len(teams),
            "completed_teams": completed,
            "in_progress_teams": in_progress,
            "failed_teams": failed,
            "pending_teams": max(len(teams) - completed - in_progress - failed, 0),
            "total_matches": session.query(Match).count(),
        },
    }
