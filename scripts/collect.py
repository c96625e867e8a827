"""Script de collecte autonome — peut être appelé en cron."""
import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging
import argparse
from cs2_stats.db import init_db, get_session
from cs2_stats.config import TOP_TEAMS, MATCHES_PER_TEAM
from cs2_stats.collectors.hltv import HltvClient
from cs2_stats.collectors.ingest import (
    fetch_top_teams, fetch_team_matches, start_full_collection, fetch_pending_match_stats,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Collecte des données CS2 depuis HLTV")
    parser.add_argument("--team", type=int, default=None, help="ID HLTV d'une équipe (défaut : toutes)")
    parser.add_argument("--top", type=int, default=TOP_TEAMS, help="Taille du classement à rafraîchir")
    parser.add_argument("--limit", type=int, default=MATCHES_PER_TEAM, help="Matchs par équipe")
    parser.add_argument("--skip-teams", action="store_true", help="Ne pas rafraîchir le classement")
    parser.add_argument("--stats", type=int, default=0, help="Nb de matchs dont récupérer les stats joueurs")
    args = parser.parse_args()

    init_db()
    db = get_session()
    client = HltvClient()

    try:
        if not args.skip_teams:
            try:
                fetch_top_teams(client, db, args.top)
            except Exception as e:
                logger.error(f"Classement indisponible, on continue avec les équipes en base : {e}")

        if args.team:
            try:
                fetch_team_matches(client, db, args.team, args.limit)
            except Exception as e:
                logger.error(f"Erreur [{args.team}]: {e}")
                sys.exit(1)
        else:
            summary = start_full_collection(client, db, args.limit)
            logger.info(f"Résumé : {summary}")

        if args.stats:
            logger.info(f"Stats match : {fetch_pending_match_stats(client, db, args.stats)}")
    finally:
        client.close()
        db.close()

    logger.info("Collecte terminée.")


if __name__ == "__main__":
    main()
