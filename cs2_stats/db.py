"""Base de données SQLite via SQLAlchemy (sync)."""
from __future__ import annotations
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    create_engine, Column, Integer, String, Float,
    DateTime, Boolean, Text, ForeignKey,
    func, desc, asc, or_
)
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from .config import DATABASE_URL, GRENADE_TYPES


JOB_PENDING = "pending"
JOB_IN_PROGRESS = "in_progress"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
JOB_STATUSES = (JOB_PENDING, JOB_IN_PROGRESS, JOB_COMPLETED, JOB_FAILED)


def _uuid() -> str:
    return str(uuid.uuid4())


# ── ORM ──────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


class Team(Base):
    __tablename__ = "teams"
    id           = Column(Integer, primary_key=True)       # ID HLTV
    name         = Column(String(100), nullable=False)
    logo         = Column(Text)
    rank         = Column(Integer)
    country      = Column(String(80))
    hltv_url     = Column(Text)
    last_updated = Column(DateTime, default=datetime.utcnow)


class Player(Base):
    __tablename__ = "players"
    id        = Column(Integer, primary_key=True)          # ID HLTV
    name      = Column(String(100), nullable=False)
    real_name = Column(String(120))
    team_id   = Column(Integer, ForeignKey("teams.id"), index=True)
    country   = Column(String(80))
    avatar    = Column(Text)
    hltv_url  = Column(Text)


class Match(Base):
    __tablename__ = "matches"
    id              = Column(Integer, primary_key=True)    # ID HLTV
    team1_id        = Column(Integer, ForeignKey("teams.id"), index=True)
    team2_id        = Column(Integer, ForeignKey("teams.id"), index=True)
    team1_score     = Column(Integer)
    team2_score     = Column(Integer)
    winner_id       = Column(Integer, ForeignKey("teams.id"))
    map_name        = Column(String(40))
    event_name      = Column(String(200))
    date            = Column(DateTime)
    hltv_url        = Column(Text)
    demo_url        = Column(Text)
    demo_parsed     = Column(Boolean, default=False)
    stats_collected = Column(Boolean, default=False)


class Round(Base):
    __tablename__ = "rounds"
    id             = Column(String(36), primary_key=True, default=_uuid)
    match_id       = Column(Integer, ForeignKey("matches.id"), index=True)
    round_number   = Column(Integer, nullable=False)
    winner_team_id = Column(Integer, ForeignKey("teams.id"))
    win_reason     = Column(String(40))
    ct_score       = Column(Integer)
    t_score        = Column(Integer)


class Kill(Base):
    __tablename__ = "kills"
    id           = Column(String(36), primary_key=True, default=_uuid)
    round_id     = Column(String(36), ForeignKey("rounds.id"), index=True)
    match_id     = Column(Integer, ForeignKey("matches.id"), index=True)
    attacker_id  = Column(Integer, ForeignKey("players.id"))
    victim_id    = Column(Integer, ForeignKey("players.id"))
    weapon       = Column(String(40))
    is_headshot  = Column(Boolean, default=False)
    is_wallbang  = Column(Boolean, default=False)
    is_grenade   = Column(Boolean, default=False)
    grenade_type = Column(String(20))   # hegrenade, molotov, inferno...
    position_x   = Column(Float)
    position_y   = Column(Float)
    position_z   = Column(Float)
    tick         = Column(Integer)


class MatchPlayerStats(Base):
    __tablename__ = "match_player_stats"
    id                  = Column(String(36), primary_key=True, default=_uuid)
    match_id            = Column(Integer, ForeignKey("matches.id"), index=True)
    player_id           = Column(Integer, ForeignKey("players.id"), index=True)
    team_id             = Column(Integer, ForeignKey("teams.id"))
    kills               = Column(Integer, default=0)
    deaths              = Column(Integer, default=0)
    assists             = Column(Integer, default=0)
    adr                 = Column(Float)
    kast                = Column(Float)
    rating              = Column(Float)
    # Utilitaires
    he_grenade_kills    = Column(Integer, default=0)
    he_grenade_damage   = Column(Integer, default=0)
    he_grenades_bought  = Column(Integer, default=0)
    molotov_kills       = Column(Integer, default=0)
    molotov_damage      = Column(Integer, default=0)
    flashes_thrown      = Column(Integer, default=0)
    enemies_flashed     = Column(Integer, default=0)
    smokes_thrown       = Column(Integer, default=0)
    headshots           = Column(Integer, default=0)
    headshot_percentage = Column(Float)


class GrenadeDeathLocation(Base):
    __tablename__ = "grenade_death_locations"
    id           = Column(String(36), primary_key=True, default=_uuid)
    map_name     = Column(String(40), nullable=False, index=True)
    grenade_type = Column(String(20), nullable=False)
    position_x   = Column(Float, nullable=False)
    position_y   = Column(Float, nullable=False)
    position_z   = Column(Float)
    death_count  = Column(Integer, default=1)


class DataCollectionJob(Base):
    __tablename__ = "data_collection_jobs"
    id                = Column(String(36), primary_key=True, default=_uuid)
    team_id           = Column(Integer, ForeignKey("teams.id"), index=True)
    status            = Column(String(20), default=JOB_PENDING)
    matches_collected = Column(Integer, default=0)
    matches_target    = Column(Integer, default=50)
    started_at        = Column(DateTime)
    completed_at      = Column(DateTime)
    error             = Column(Text)


# ── Engine & session ──────────────────────────────────────────────────────────

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db():
    """Crée les tables si elles n'existent pas."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


def to_dict(row: Base | None) -> dict | None:
    """Sérialise une ligne ORM en dict (colonnes uniquement)."""
    if row is None:
        return None
    return {c.name: getattr(row, c.name) for c in row.__table__.columns}


# ── Upserts ───────────────────────────────────────────────────────────────────

def upsert_team(session: Session, row: dict) -> Team:
    values = {**row, "last_updated": datetime.utcnow()}
    stmt = sqlite_insert(Team).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={k: v for k, v in values.items() if k != "id"}
    )
    session.execute(stmt)
    session.commit()
    return session.get(Team, row["id"], populate_existing=True)


def upsert_player(session: Session, row: dict) -> Player:
    stmt = sqlite_insert(Player).values(**row)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={k: v for k, v in row.items() if k != "id"}
    )
    session.execute(stmt)
    session.commit()
    return session.get(Player, row["id"], populate_existing=True)


def upsert_match(session: Session, row: dict) -> Match:
    stmt = sqlite_insert(Match).values(**row)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={k: v for k, v in row.items() if k != "id"}
    )
    session.execute(stmt)
    session.commit()
    return session.get(Match, row["id"], populate_existing=True)


def update_match(session: Session, match_id: int, **values: Any) -> Match | None:
    match = session.get(Match, match_id)
    if match is None:
        return None
    for k, v in values.items():
        setattr(match, k, v)
    session.commit()
    return match


# ── Teams / players / matches ─────────────────────────────────────────────────

def get_teams(session: Session) -> list[Team]:
    # NULLS LAST: une équipe sans rang passe après le classement
    return (
        session.query(Team)
        .order_by(Team.rank.is_(None), asc(Team.rank), asc(Team.name))
        .all()
    )


def get_team(session: Session, team_id: int) -> Team | None:
    return session.get(Team, team_id)


def get_team_by_name(session: Session, name: str) -> Team | None:
    return (
        session.query(Team)
        .filter(func.lower(Team.name) == name.strip().lower())
        .first()
    )


def get_players(session: Session) -> list[Player]:
    return session.query(Player).order_by(asc(Player.name)).all()


def get_player(session: Session, player_id: int) -> Player | None:
    return session.get(Player, player_id)


def get_players_by_team(session: Session, team_id: int) -> list[Player]:
    return session.query(Player).filter_by(team_id=team_id).order_by(asc(Player.name)).all()


def get_matches(session: Session, limit: int | None = None) -> list[Match]:
    query = session.query(Match).order_by(Match.date.is_(None), desc(Match.date), desc(Match.id))
    if limit:
        query = query.limit(limit)
    return query.all()


def get_match(session: Session, match_id: int) -> Match | None:
    return session.get(Match, match_id)


def get_matches_for_team(session: Session, team_id: int) -> list[Match]:
    return (
        session.query(Match)
        .filter(or_(Match.team1_id == team_id, Match.team2_id == team_id))
        .order_by(Match.date.is_(None), desc(Match.date), desc(Match.id))
        .all()
    )


def get_matches_without_stats(session: Session, limit: int = 20) -> list[Match]:
    return (
        session.query(Match)
        .filter(Match.stats_collected.is_not(True))
        .order_by(Match.date.is_(None), desc(Match.date))
        .limit(limit)
        .all()
    )


# ── Rounds / kills ────────────────────────────────────────────────────────────

def add_round(session: Session, **values: Any) -> Round:
    round_ = Round(**values)
    session.add(round_)
    session.commit()
    return round_


def get_rounds_by_match(session: Session, match_id: int) -> list[Round]:
    return (
        session.query(Round)
        .filter_by(match_id=match_id)
        .order_by(asc(Round.round_number))
        .all()
    )


def add_kill(session: Session, **values: Any) -> Kill:
    """Enregistre un kill ; is_grenade est déduit de l'arme si absent."""
    grenade_type = values.get("grenade_type") or (
        values.get("weapon") if values.get("weapon") in GRENADE_TYPES else None
    )
    values["grenade_type"] = grenade_type
    values.setdefault("is_grenade", grenade_type is not None)
    kill = Kill(**values)
    session.add(kill)
    session.commit()
    return kill


def get_kills_by_match(session: Session, match_id: int) -> list[Kill]:
    return session.query(Kill).filter_by(match_id=match_id).all()


def get_kills_by_round(session: Session, round_id: str) -> list[Kill]:
    return session.query(Kill).filter_by(round_id=round_id).all()


# ── Match player stats ────────────────────────────────────────────────────────

def add_match_player_stats(session: Session, **values: Any) -> MatchPlayerStats:
    row = MatchPlayerStats(**values)
    session.add(row)
    session.commit()
    return row


def get_match_player_stats(session: Session, match_id: int) -> list[MatchPlayerStats]:
    return session.query(MatchPlayerStats).filter_by(match_id=match_id).all()


# ── Grenade death locations (heatmap) ─────────────────────────────────────────

def record_grenade_death(session: Session, map_name: str, grenade_type: str,
                         x: float, y: float, z: float | None = None) -> GrenadeDeathLocation:
    """Incrémente la case de heatmap à cette position, la crée sinon."""
    loc = (
        session.query(GrenadeDeathLocation)
        .filter_by(map_name=map_name, grenade_type=grenade_type,
                   position_x=x, position_y=y, position_z=z)
        .first()
    )
    if loc:
        loc.death_count = (loc.death_count or 0) + 1
    else:
        loc = GrenadeDeathLocation(map_name=map_name, grenade_type=grenade_type,
                                   position_x=x, position_y=y, position_z=z,
                                   death_count=1)
        session.add(loc)
    session.commit()
    return loc


def get_grenade_death_locations(session: Session, map_name: str | None = None) -> list[GrenadeDeathLocation]:
    query = session.query(GrenadeDeathLocation)
    if map_name:
        query = query.filter(func.lower(GrenadeDeathLocation.map_name) == map_name.lower())
    return query.order_by(desc(GrenadeDeathLocation.death_count)).all()


# ── Collection jobs ───────────────────────────────────────────────────────────

def get_collection_jobs(session: Session) -> list[DataCollectionJob]:
    return session.query(DataCollectionJob).all()


def get_collection_job(session: Session, team_id: int) -> DataCollectionJob | None:
    return session.query(DataCollectionJob).filter_by(team_id=team_id).first()


def create_collection_job(session: Session, team_id: int, matches_target: int = 50) -> DataCollectionJob:
    job = DataCollectionJob(team_id=team_id, status=JOB_PENDING,
                            matches_collected=0, matches_target=matches_target)
    session.add(job)
    session.commit()
    return job


def update_collection_job(session: Session, job: DataCollectionJob, **values: Any) -> DataCollectionJob:
    status = values.get("status")
    if status is not None and status not in JOB_STATUSES:
        raise ValueError(f"Statut de job inconnu : {status}")
    for k, v in values.items():
        setattr(job, k, v)
    session.commit()
    return job
