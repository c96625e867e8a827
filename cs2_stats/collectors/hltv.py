"""
Collecteur HLTV.org — scraping HTML (classement, équipes, résultats, stats).

HLTV n'expose pas d'API publique : on lit les pages HTML comme un navigateur.
Le site est derrière Cloudflare, d'où la session cloudscraper (une session
requests qui résout le challenge JS).

⚠️  HLTV bannit les IP trop gourmandes : toutes les requêtes passent par un
    limiteur qui impose RATE_LIMIT_SECONDS entre deux appels.

Les fonctions parse_* travaillent sur du HTML brut et ne font aucun appel
réseau ; HltvClient se charge du transport et du rythme.
"""
from __future__ import annotations

import logging
import re
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import cloudscraper
import requests
from bs4 import BeautifulSoup

from ..config import HLTV_BASE, HTTP_TIMEOUT, RATE_LIMIT_SECONDS

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": "https://www.hltv.org/",
}

_TEAM_HREF = re.compile(r"/team/(\d+)/")
_PLAYER_HREF = re.compile(r"/(?:stats/)?players?/(\d+)/([^/?#]+)")
_MATCH_HREF = re.compile(r"/matches/(\d+)/")
_FIRST_INT = re.compile(r"\d+")

# Rythme partagé par tous les clients du process (API, tâches de fond, CLI)
_last_request = 0.0
_request_lock = threading.Lock()


class HltvError(Exception):
    pass


class HltvClient:
    """Client HTML pour HLTV, une requête à la fois."""

    def __init__(self, base_url: str = HLTV_BASE,
                 min_interval: float = RATE_LIMIT_SECONDS,
                 session: requests.Session | None = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip("/")
        self.min_interval = min_interval
        self._sleep = sleep
        self._session = session or cloudscraper.create_scraper()
        self._session.headers.update(_HEADERS)

    def _throttle(self):
        global _last_request
        with _request_lock:
            elapsed = time.monotonic() - _last_request
            if _last_request and elapsed < self.min_interval:
                self._sleep(self.min_interval - elapsed)
            _last_request = time.monotonic()

    def _get(self, path: str, params: dict | None = None) -> str:
        self._throttle()
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.get(url, params=params, timeout=HTTP_TIMEOUT)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise HltvError(f"HLTV GET {url}: {e}") from e
        logger.debug(f"HLTV GET {url} → {resp.status_code}")
        return resp.text

    def close(self):
        self._session.close()

    # ── Pages ─────────────────────────────────────────────────────────────────

    def get_team_ranking(self) -> list[dict]:
        return parse_team_ranking(self._get("/ranking/teams"))

    def get_team(self, team_id: int) -> dict:
        return parse_team(self._get(f"/team/{team_id}/_"), team_id)

    def get_results(self, team_id: int) -> list[dict]:
        return parse_results(self._get("/results", {"team": team_id}))

    def get_match_stats(self, match_id: int) -> dict:
        return parse_match_stats(self._get(f"/stats/matches/{match_id}/_"), match_id)


# ── Parsing ───────────────────────────────────────────────────────────────────

def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def parse_team_ranking(html: str) -> list[dict]:
    """
    Classement mondial HLTV.

    Retourne une liste ordonnée :
        {place, points, team: {id, name, logo}}
    """
    soup = _soup(html)
    ranking = []
    for box in soup.select(".ranked-team"):
        link = box.select_one("a.moreLink[href*='/team/']") or box.select_one("a[href*='/team/']")
        name_el = box.select_one(".teamLine .name") or box.select_one(".name")
        if not link or not name_el:
            continue
        m = _TEAM_HREF.search(link.get("href", ""))
        if not m:
            continue
        logo_el = box.select_one(".team-logo img")
        points_el = box.select_one(".teamLine .points")
        ranking.append({
            "place": _safe_int(_text(box.select_one(".position"))) or len(ranking) + 1,
            "points": _safe_int(_text(points_el)),
            "team": {
                "id": int(m.group(1)),
                "name": name_el.get_text(strip=True),
                "logo": logo_el.get("src") if logo_el else None,
            },
        })
    if not ranking:
        raise HltvError("Classement HLTV introuvable dans la page")
    return ranking


def parse_team(html: str, team_id: int) -> dict:
    """
    Page équipe HLTV.

    Retourne :
        {id, name, logo, country, players: [{id, name}]}
    """
    soup = _soup(html)
    name_el = soup.select_one(".profile-team-name")
    if not name_el:
        raise HltvError(f"Page équipe {team_id} illisible")

    logo_el = soup.select_one("img.teamlogo")
    country_el = soup.select_one(".team-country")

    players = []
    seen = set()
    for a in soup.select(".bodyshot-team a[href*='/player/']"):
        m = _PLAYER_HREF.search(a.get("href", ""))
        if not m:
            continue
        pid = int(m.group(1))
        if pid in seen:
            continue
        seen.add(pid)
        nick = a.get("title") or a.get_text(strip=True) or m.group(2)
        players.append({"id": pid, "name": nick})

    return {
        "id": team_id,
        "name": name_el.get_text(strip=True),
        "logo": logo_el.get("src") if logo_el else None,
        "country": country_el.get_text(strip=True) if country_el else None,
        "players": players,
    }


def parse_results(html: str) -> list[dict]:
    """
    Page résultats (filtrée par équipe), du plus récent au plus ancien.

    Retourne une liste de dicts :
        {id, team1: {name}, team2: {name}, result: {team1, team2} | None,
         map, event, date}
    `map` est le code brut HLTV ("mrg", "bo3"...).
    """
    soup = _soup(html)
    results = []
    seen = set()
    for con in soup.select(".result-con"):
        link = con.select_one("a[href*='/matches/']")
        m = _MATCH_HREF.search(link.get("href", "")) if link else None
        if not m:
            continue
        match_id = int(m.group(1))
        if match_id in seen:
            continue
        seen.add(match_id)
        results.append({
            "id": match_id,
            "team1": {"name": _text(con.select_one(".team1 .team"))},
            "team2": {"name": _text(con.select_one(".team2 .team"))},
            "result": _parse_score(_text(con.select_one(".result-score"))),
            "map": _text(con.select_one(".map-text")),
            "event": {"name": _text(con.select_one(".event-name"))},
            "date": _parse_unix_ms(con.get("data-zonedgrouping-entry-unix")),
        })
    return results


def parse_match_stats(html: str, match_id: int) -> dict:
    """
    Page stats d'un match : un tableau totalstats par équipe.

    Retourne :
        {id, player_stats: {team_name: [{player: {id, name}, kills, headshots,
                                         assists, deaths, kast, adr, rating}]}}
    """
    soup = _soup(html)
    tables = soup.select("table.stats-table.totalstats")
    if not tables:
        raise HltvError(f"Stats du match {match_id} introuvables")

    player_stats: dict[str, list[dict]] = {}
    for i, table in enumerate(tables):
        header = table.select_one("thead th")
        team_name = _text(header) or f"team{i + 1}"
        rows = []
        for tr in table.select("tbody tr"):
            link = tr.select_one(".st-player a")
            m = _PLAYER_HREF.search(link.get("href", "")) if link else None
            if not m:
                continue
            kills, headshots = _parse_pair(_text(tr.select_one(".st-kills")))
            assists, _ = _parse_pair(_text(tr.select_one(".st-assists")))
            deaths, _ = _parse_pair(_text(tr.select_one(".st-deaths")))
            rows.append({
                "player": {"id": int(m.group(1)), "name": link.get_text(strip=True)},
                "kills": kills,
                "headshots": headshots,
                "assists": assists,
                "deaths": deaths,
                "kast": _safe_float(_text(tr.select_one(".st-kdratio")).rstrip("%")),
                "adr": _safe_float(_text(tr.select_one(".st-adr"))),
                "rating": _safe_float(_text(tr.select_one(".st-rating"))),
            })
        player_stats[team_name] = rows
    return {"id": match_id, "player_stats": player_stats}


# ── Helpers ───────────────────────────────────────────────────────────────────

def _text(el) -> str:
    return el.get_text(" ", strip=True) if el else ""


def _parse_score(text: str) -> Optional[dict]:
    """'2 - 1' → {team1: 2, team2: 1} ; None si pas de score."""
    nums = _FIRST_INT.findall(text or "")
    if len(nums) < 2:
        return None
    return {"team1": int(nums[0]), "team2": int(nums[1])}


def _parse_pair(text: str) -> tuple[int, Optional[int]]:
    """'22 (10)' → (22, 10) ; '17' → (17, None)."""
    nums = _FIRST_INT.findall(text or "")
    if not nums:
        return 0, None
    return int(nums[0]), (int(nums[1]) if len(nums) > 1 else None)


def _parse_unix_ms(val: Optional[str]) -> Optional[datetime]:
    ts = _safe_int(val)
    if ts is None:
        return None
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).replace(tzinfo=None)


def _safe_int(val) -> Optional[int]:
    if val is None:
        return None
    m = _FIRST_INT.search(str(val))
    return int(m.group()) if m else None


def _safe_float(val) -> Optional[float]:
    try:
        return float(val)
    except (TypeError, ValueError):
        return None
