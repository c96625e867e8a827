"""
Fixtures pytest : base SQLite en mémoire et faux client HLTV.

Aucun appel réseau, aucune base sur disque.
"""
import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Modules importables depuis la racine du repo, base jetable par défaut
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
os.environ.setdefault("DATABASE_URL", "sqlite://")
for _delay in ("TEAM_DELAY", "MATCH_DELAY", "TEAM_COLLECTION_DELAY"):
    os.environ.setdefault(_delay, "0")

from cs2_stats.collectors.hltv import HltvError  # noqa: E402
from cs2_stats.db import (  # noqa: E402
    Base, Team, Player, Match, Kill, MatchPlayerStats, DataCollectionJob,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    db = sessionmaker(bind=engine, autoflush=False)()
    yield db
    db.close()


class FakeHltvClient:
    """Répond à partir de dicts ; une valeur Exception est levée à l'appel."""

    def __init__(self, ranking=None, teams=None, results=None, match_stats=None):
        self.ranking = ranking if ranking is not None else []
        self.teams = teams or {}
        self.results = results or {}
        self.match_stats = match_stats or {}
        self.calls = []
        self.closed = False

    def _answer(self, value):
        if isinstance(value, Exception):
            raise value
        return value

    def get_team_ranking(self):
        self.calls.append(("ranking",))
        return self._answer(self.ranking)

    def get_team(self, team_id):
        self.calls.append(("team", team_id))
        return self._answer(self.teams.get(team_id, HltvError(f"team {team_id} inconnue")))

    def get_results(self, team_id):
        self.calls.append(("results", team_id))
        return self._answer(self.results.get(team_id, []))

    def get_match_stats(self, match_id):
        self.calls.append(("match_stats", match_id))
        return self._answer(self.match_stats.get(match_id, HltvError(f"match {match_id} inconnu")))

    def close(self):
        self.closed = True


@pytest.fixture
def fake_client():
    return FakeHltvClient


def _result(match_id, team1, team2, score=(2, 1), map_code="mrg", event="BLAST Premier", date=None):
    """Un résultat HLTV tel que renvoyé par parse_results."""
    return {
        "id": match_id,
        "team1": {"name": team1},
        "team2": {"name": team2},
        "result": {"team1": score[0], "team2": score[1]} if score else None,
        "map": map_code,
        "event": {"name": event},
        "date": date or datetime(2024, 6, 10, 16, 0),
    }


@pytest.fixture
def make_result():
    return _result


@pytest.fixture
def seeded(session):
    """
    Deux équipes, quatre joueurs, deux matchs sur Mirage/Inferno, stats et
    kills grenade.
    """
    session.add_all([
        Team(id=9565, name="Vitality", rank=1, country="France"),
        Team(id=4608, name="Natus Vincere", rank=2, country="Europe"),
        Player(id=11893, name="ZywOo", team_id=9565),
        Player(id=7322, name="apEX", team_id=9565),
        Player(id=18987, name="b1t", team_id=4608),
        Player(id=21167, name="iM", team_id=4608),
        Match(id=1, team1_id=9565, team2_id=4608, team1_score=13, team2_score=7,
              winner_id=9565, map_name="Mirage", date=datetime(2024, 6, 1)),
        Match(id=2, team1_id=4608, team2_id=9565, team1_score=13, team2_score=10,
              winner_id=4608, map_name="Inferno", date=datetime(2024, 6, 2)),
    ])
    session.flush()
    session.add_all([
        MatchPlayerStats(match_id=1, player_id=11893, team_id=9565, kills=25, deaths=12,
                         rating=1.50, he_grenade_kills=2, molotov_kills=1,
                         he_grenade_damage=120, he_grenades_bought=4),
        MatchPlayerStats(match_id=2, player_id=11893, team_id=9565, kills=19, deaths=16,
                         rating=1.10, he_grenade_kills=1, molotov_kills=0,
                         he_grenade_damage=80, he_grenades_bought=2),
        MatchPlayerStats(match_id=1, player_id=7322, team_id=9565, kills=10, deaths=15,
                         rating=0.80),
        MatchPlayerStats(match_id=1, player_id=18987, team_id=4608, kills=14, deaths=18,
                         rating=0.95, molotov_kills=3, he_grenade_damage=40,
                         he_grenades_bought=1),
        Kill(match_id=1, weapon="hegrenade", is_grenade=True, grenade_type="hegrenade"),
        Kill(match_id=1, weapon="inferno", is_grenade=True, grenade_type="inferno"),
        Kill(match_id=1, weapon="ak47", is_grenade=False),
        Kill(match_id=2, weapon="molotov", is_grenade=True, grenade_type="molotov"),
        DataCollectionJob(team_id=9565, status="completed", matches_collected=2),
    ])
    session.commit()
    return session
