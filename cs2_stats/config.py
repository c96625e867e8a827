"""Configuration globale et pool de cartes CS2."""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cs2_stats.db")
HLTV_BASE = os.getenv("HLTV_BASE", "https://www.hltv.org")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "15"))

# HLTV bannit les clients trop rapides : écart minimum entre deux requêtes sortantes
RATE_LIMIT_SECONDS = float(os.getenv("RATE_LIMIT_SECONDS", "3.0"))
TEAM_DELAY = float(os.getenv("TEAM_DELAY", "1.0"))
MATCH_DELAY = float(os.getenv("MATCH_DELAY", "2.0"))
TEAM_COLLECTION_DELAY = float(os.getenv("TEAM_COLLECTION_DELAY", "5.0"))

TOP_TEAMS = int(os.getenv("TOP_TEAMS", "30"))
MATCHES_PER_TEAM = int(os.getenv("MATCHES_PER_TEAM", "50"))

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Types de grenades tels que remontés par les kill feeds
HE_GRENADE = "hegrenade"
MOLOTOV_TYPES = {"molotov", "inferno", "incgrenade"}
GRENADE_TYPES = {HE_GRENADE} | MOLOTOV_TYPES


@dataclass
class GameMap:
    key: str         # Nom moteur (de_*)
    name: str        # Nom affiché
    aliases: list    # Codes HLTV et variantes acceptées


MAPS: dict[str, GameMap] = {
    "de_ancient": GameMap("de_ancient", "Ancient", ["anc", "ancient"]),
    "de_anubis": GameMap("de_anubis", "Anubis", ["anb", "anubis"]),
    "de_dust2": GameMap("de_dust2", "Dust2", ["d2", "dust2", "dust 2", "dust_2"]),
    "de_inferno": GameMap("de_inferno", "Inferno", ["inf", "inferno"]),
    "de_mirage": GameMap("de_mirage", "Mirage", ["mrg", "mirage"]),
    "de_nuke": GameMap("de_nuke", "Nuke", ["nuke"]),
    "de_overpass": GameMap("de_overpass", "Overpass", ["ovp", "overpass"]),
    "de_train": GameMap("de_train", "Train", ["trn", "train"]),
    "de_vertigo": GameMap("de_vertigo", "Vertigo", ["vtg", "vertigo"]),
}

# Lookup rapide par alias
_ALIAS_MAP: dict[str, str] = {}
for key, game_map in MAPS.items():
    _ALIAS_MAP[key] = key
    _ALIAS_MAP[game_map.name.lower()] = key
    for alias in game_map.aliases:
        _ALIAS_MAP[alias] = key


def resolve_map(text: str | None) -> GameMap | None:
    """Résout un code/alias de carte HLTV vers l'objet GameMap."""
    if not text:
        return None
    key = _ALIAS_MAP.get(text.strip().lower())
    return MAPS.get(key) if key else None


def map_name(text: str | None) -> str | None:
    """Nom affiché d'une carte, None pour bo3/bo5/def ou texte inconnu."""
    game_map = resolve_map(text)
    return game_map.name if game_map else None


def all_maps() -> list[GameMap]:
    return list(MAPS.values())
