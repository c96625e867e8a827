"""cs2-stats — CLI stats CS2 pro (HLTV).

Usage :
    cs2-stats fetch-teams --top 30
    cs2-stats collect --team 9565
    cs2-stats collect
    cs2-stats match-stats --limit 20
    cs2-stats equipes
    cs2-stats equipe 9565
    cs2-stats joueurs --top 20
    cs2-stats matchs --last 10
    cs2-stats grenades
    cs2-stats cartes
    cs2-stats classements
    cs2-stats jobs
    cs2-stats serve
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging
from typing import Optional
import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from cs2_stats.config import (
    TOP_TEAMS, MATCHES_PER_TEAM, DATABASE_URL, API_HOST, API_PORT, RATE_LIMIT_SECONDS,
)
from cs2_stats.db import init_db, get_session, get_teams, JOB_COMPLETED, JOB_FAILED, JOB_IN_PROGRESS
from cs2_stats import stats

app = typer.Typer(
    name="cs2-stats",
    help="🎯 cs2-stats — Stats CS2 pro : top équipes HLTV, grenades, cartes",
    rich_markup_mode="rich",
)
console = Console()

_EMPTY = "[yellow]Aucune donnée. Lance : cs2-stats fetch-teams puis cs2-stats collect[/yellow]"

_STATUS_STYLE = {
    JOB_COMPLETED: "green",
    JOB_IN_PROGRESS: "cyan",
    JOB_FAILED: "red",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Logs détaillés")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    init_db()


def _team_name(team: Optional[dict]) -> str:
    return team["name"] if team else "—"


def _bar(value: float, max_value: float, width: int = 12) -> str:
    if not max_value:
        return "░" * width
    filled = int(min(value / max_value, 1.0) * width)
    return "█" * filled + "░" * (width - filled)


# ── equipes ──────────────────────────────────────────────────────────────────

@app.command()
def equipes():
    """🏆 Classement HLTV des équipes suivies."""
    db = get_session()
    teams = get_teams(db)
    db.close()

    if not teams:
        console.print(_EMPTY)
        raise typer.Exit()

    t = Table(title="🏆 Top équipes HLTV", box=box.ROUNDED, header_style="bold white")
    t.add_column("#", width=4, style="bold dim", justify="right")
    t.add_column("Équipe", style="bold", min_width=20)
    t.add_column("Pays", min_width=12)
    t.add_column("ID", style="dim", justify="right")

    for team in teams:
        t.add_row(str(team.rank or "—"), team.name, team.country or "—", str(team.id))

    console.print(t)


@app.command()
def equipe(team_id: int = typer.Argument(..., help="ID HLTV de l'équipe")):
    """🔎 Fiche équipe : bilan, joueurs, derniers matchs."""
    db = get_session()
    detail = stats.get_team_detail(db, team_id)
    db.close()

    if detail is None:
        console.print(f"[red]Équipe inconnue : {team_id}[/red]")
        raise typer.Exit(1)

    team, s = detail["team"], detail["stats"]
    console.print(Panel(
        f"[bold]{team['name']}[/bold] (#{team['rank'] or '—'}, {team['country'] or '—'})\n\n"
        f"Matchs : {s['total_matches']}  |  "
        f"[green]{s['wins']} V[/green] / [red]{s['losses']} D[/red]  |  "
        f"{s['win_rate']:.1f}%\n"
        f"Kills moy. : {s['avg_kills']:.1f}  |  Morts moy. : {s['avg_deaths']:.1f}  |  "
        f"Kills grenade : {s['total_grenade_kills']}",
        title="🔎 Équipe", border_style="blue",
    ))

    t = Table(box=box.SIMPLE_HEAD, header_style="bold white")
    t.add_column("Joueur", style="bold", min_width=16)
    t.add_column("Matchs", justify="right", width=7)
    t.add_column("K moy.", justify="right", style="green", width=7)
    t.add_column("D moy.", justify="right", style="red", width=7)
    t.add_column("Rating", justify="right", style="cyan", width=7)
    t.add_column("Grenades", justify="right", style="magenta", width=9)
    for p in detail["player_stats"]:
        t.add_row(
            p["name"], str(p["matches_played"]),
            f"{p['avg_kills']:.1f}", f"{p['avg_deaths']:.1f}",
            f"{p['avg_rating']:.2f}", str(p["total_grenade_kills"]),
        )
    console.print(t)

    _print_matches(detail["matches"][:10], f"{team['name']} — 10 derniers matchs")


# ── joueurs ──────────────────────────────────────────────────────────────────

@app.command()
def joueurs(top: int = typer.Option(20, "--top", "-n")):
    """👤 Joueurs par rating moyen."""
    db = get_session()
    players = [p for p in stats.get_players_with_stats(db) if p["matches_played"] > 0]
    db.close()

    if not players:
        console.print("[yellow]Aucune stat joueur. Lance : cs2-stats match-stats[/yellow]")
        raise typer.Exit()

    players.sort(key=lambda p: p["avg_rating"], reverse=True)
    t = Table(title=f"👤 Top {top} joueurs (rating)", box=box.ROUNDED, header_style="bold yellow")
    t.add_column("#", width=4, style="dim", justify="right")
    t.add_column("Joueur", style="bold", min_width=16)
    t.add_column("Équipe", min_width=16)
    t.add_column("Rating", justify="right", style="cyan bold", width=7)
    t.add_column("K moy.", justify="right", style="green", width=7)
    t.add_column("D moy.", justify="right", style="red", width=7)
    t.add_column("Matchs", justify="right", style="dim", width=7)

    for i, p in enumerate(players[:top], 1):
        t.add_row(
            str(i), p["name"], _team_name(p["team"]),
            f"{p['avg_rating']:.2f}", f"{p['avg_kills']:.1f}", f"{p['avg_deaths']:.1f}",
            str(p["matches_played"]),
        )
    console.print(t)


# ── matchs ───────────────────────────────────────────────────────────────────

def _print_matches(matches: list[dict], title: str):
    t = Table(title=title, box=box.SIMPLE_HEAD, header_style="bold white")
    t.add_column("Date", style="dim", width=12)
    t.add_column("Équipe 1", style="bold", min_width=18)
    t.add_column("Score", justify="center", style="bold yellow", width=7)
    t.add_column("Équipe 2", min_width=18)
    t.add_column("Carte", style="cyan", width=10)
    t.add_column("Événement", style="dim", min_width=20)

    for m in matches:
        score = f"{m['team1_score']} - {m['team2_score']}" if m["team1_score"] is not None else "— - —"
        date_str = m["date"].strftime("%d/%m/%Y") if m["date"] else "—"
        t.add_row(
            date_str, _team_name(m["team1"]), score, _team_name(m["team2"]),
            m["map_name"] or "—", m["event_name"] or "—",
        )
    console.print(t)


@app.command()
def matchs(last: int = typer.Option(10, "--last", "-n", help="Nombre de matchs à afficher")):
    """📋 Derniers résultats enregistrés."""
    db = get_session()
    matches = stats.get_matches_with_teams(db, last)
    db.close()

    if not matches:
        console.print(_EMPTY)
        raise typer.Exit()
    _print_matches(matches, f"📋 {last} derniers matchs")


# ── grenades ─────────────────────────────────────────────────────────────────

@app.command()
def grenades(top: int = typer.Option(15, "--top", "-n")):
    """💣 Top tueurs à la grenade (HE + molotov)."""
    db = get_session()
    data = stats.get_grenade_overview(db)
    db.close()

    if not data["top_players"]:
        console.print("[yellow]Aucun kill grenade enregistré.[/yellow]")
        raise typer.Exit()

    s = data["summary"]
    t = Table(title="💣 Kills grenade", box=box.ROUNDED, header_style="bold magenta")
    t.add_column("#", width=4, style="dim", justify="right")
    t.add_column("Joueur", style="bold", min_width=16)
    t.add_column("Équipe", min_width=16)
    t.add_column("HE", justify="right", style="green bold", width=5)
    t.add_column("Molotov", justify="right", style="red bold", width=8)
    t.add_column("Dégâts HE moy.", justify="right", width=15)
    t.add_column("Matchs", justify="right", style="dim", width=7)

    for i, p in enumerate(data["top_players"][:top], 1):
        t.add_row(
            str(i), p["player_name"], p["team_name"],
            str(p["total_he_kills"]), str(p["total_molotov_kills"]),
            f"{p['avg_he_damage']:.1f}", str(p["matches_played"]),
        )
    console.print(t)
    console.print(
        f"[dim]Total HE : {s['total_he_kills']} ({s['avg_he_per_match']:.2f}/match)  |  "
        f"Molotov : {s['total_molotov_kills']} ({s['avg_molotov_per_match']:.2f}/match)  |  "
        f"Équipe la plus meurtrière : {s['most_deadly_team']}[/dim]"
    )


# ── cartes ───────────────────────────────────────────────────────────────────

@app.command()
def cartes():
    """🗺️  Morts à la grenade par carte."""
    db = get_session()
    data = stats.get_map_overview(db)
    db.close()

    if not data["maps"]:
        console.print("[yellow]Aucune mort grenade enregistrée.[/yellow]")
        raise typer.Exit()

    t = Table(title="🗺️  Grenades par carte", box=box.ROUNDED, header_style="bold blue")
    t.add_column("Carte", style="bold", min_width=12)
    t.add_column("Total", justify="right", style="bold", width=6)
    t.add_column("HE", justify="right", style="green", width=5)
    t.add_column("Molotov", justify="right", style="red", width=8)
    t.add_column("Moy./match", justify="right", style="cyan", width=10)
    t.add_column("Intensité", width=14)

    max_total = max(m["total_grenade_deaths"] for m in data["maps"])
    for m in data["maps"]:
        t.add_row(
            m["map_name"], str(m["total_grenade_deaths"]),
            str(m["he_deaths"]), str(m["molotov_deaths"]),
            f"{m['avg_deaths_per_match']:.2f}",
            _bar(m["total_grenade_deaths"], max_total),
        )
    console.print(t)


# ── classements ──────────────────────────────────────────────────────────────

@app.command()
def classements():
    """📊 Classements : équipes par % de victoires, meilleurs fraggers."""
    db = get_session()
    data = stats.get_rankings(db)
    db.close()

    if not data["top_teams"]:
        console.print(_EMPTY)
        raise typer.Exit()

    t = Table(title="📊 Équipes par % de victoires", box=box.ROUNDED, header_style="bold cyan")
    t.add_column("#", width=4, style="dim", justify="right")
    t.add_column("Équipe", style="bold", min_width=18)
    t.add_column("Matchs", justify="right", width=7)
    t.add_column("% V", justify="right", style="green bold", width=7)
    t.add_column("Rating moy.", justify="right", style="cyan", width=11)
    for i, team in enumerate(data["top_teams"], 1):
        t.add_row(
            str(i), team["name"], str(team["total_matches"]),
            f"{team['win_rate']:.1f}", f"{team['avg_rating']:.2f}",
        )
    console.print(t)

    if data["top_fraggers"]:
        f = Table(title="🔫 Top fraggers (kills/match)", box=box.SIMPLE_HEAD, header_style="bold green")
        f.add_column("#", width=4, style="dim", justify="right")
        f.add_column("Joueur", style="bold", min_width=16)
        f.add_column("Équipe", min_width=16)
        f.add_column("K moy.", justify="right", style="green bold", width=7)
        for i, p in enumerate(data["top_fraggers"][:10], 1):
            f.add_row(str(i), p["name"], _team_name(p["team"]), f"{p['avg_kills']:.1f}")
        console.print(f)


# ── jobs ─────────────────────────────────────────────────────────────────────

@app.command()
def jobs():
    """📦 Avancement de la collecte par équipe."""
    db = get_session()
    data = stats.get_collection_overview(db)
    db.close()

    s = data["summary"]
    console.print(Panel(
        f"Équipes : {s['total_teams']}  |  [green]terminées {s['completed_teams']}[/green]  |  "
        f"[cyan]en cours {s['in_progress_teams']}[/cyan]  |  [red]échecs {s['failed_teams']}[/red]  |  "
        f"en attente {s['pending_teams']}\nMatchs en base : {s['total_matches']}",
        title="📦 Collecte", border_style="blue",
    ))
    if not data["jobs"]:
        raise typer.Exit()

    t = Table(box=box.SIMPLE_HEAD, header_style="bold white")
    t.add_column("Équipe", style="bold", min_width=18)
    t.add_column("Statut", width=12)
    t.add_column("Matchs", justify="right", width=9)
    t.add_column("Progression", width=14)
    t.add_column("Erreur", style="red dim")
    for job in data["jobs"]:
        style = _STATUS_STYLE.get(job["status"], "dim")
        t.add_row(
            _team_name(job["team"]),
            f"[{style}]{job['status']}[/{style}]",
            f"{job['matches_collected']}/{job['matches_target']}",
            _bar(job["matches_collected"] or 0, job["matches_target"] or 0),
            (job["error"] or "")[:60],
        )
    console.print(t)


# ── fetch-teams ──────────────────────────────────────────────────────────────

@app.command("fetch-teams")
def fetch_teams(top: int = typer.Option(TOP_TEAMS, "--top", "-n", help="Nombre d'équipes du classement")):
    """📥 Récupère le top N HLTV (équipes + joueurs)."""
    from cs2_stats.collectors.hltv import HltvClient
    from cs2_stats.collectors.ingest import fetch_top_teams

    db = get_session()
    client = HltvClient()
    try:
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console) as progress:
            progress.add_task(f"HLTV — top {top} équipes (≥ {RATE_LIMIT_SECONDS:.0f}s entre requêtes)…")
            teams = fetch_top_teams(client, db, top)
    except Exception as e:
        console.print(f"[red]Classement HLTV indisponible : {e}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()
        db.close()

    console.print(f"[green]✅ {len(teams)} équipes enregistrées.[/green]")


# ── collect ──────────────────────────────────────────────────────────────────

@app.command()
def collect(
    team: Optional[int] = typer.Option(None, "--team", "-t", help="ID HLTV d'une équipe (défaut : toutes)"),
    limit: int = typer.Option(MATCHES_PER_TEAM, "--limit", "-n", help="Matchs par équipe"),
):
    """📥 Collecte les résultats HLTV d'une équipe ou de toutes."""
    from cs2_stats.collectors.hltv import HltvClient
    from cs2_stats.collectors.ingest import fetch_team_matches, start_full_collection

    db = get_session()
    client = HltvClient()
    try:
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console) as progress:
            if team:
                progress.add_task(f"Équipe {team} — {limit} matchs…")
                try:
                    collected = fetch_team_matches(client, db, team, limit)
                except Exception as e:
                    console.print(f"\n[red]Erreur [{team}]: {e}[/red]")
                    raise typer.Exit(1)
                summary = {"teams": 1, "completed": 1, "failed": 0, "matches": collected}
            else:
                progress.add_task(f"Toutes les équipes — {limit} matchs chacune…")
                summary = start_full_collection(client, db, limit)
    finally:
        client.close()
        db.close()

    console.print(
        f"\n[green]✅ Collecte terminée : {summary['completed']}/{summary['teams']} équipes, "
        f"{summary['matches']} matchs[/green]"
        + (f" [red]({summary['failed']} échecs)[/red]" if summary["failed"] else "")
    )


@app.command("match-stats")
def match_stats(limit: int = typer.Option(20, "--limit", "-n", help="Nb de matchs sans stats à traiter")):
    """📈 Récupère les stats joueurs des matchs qui n'en ont pas."""
    from cs2_stats.collectors.hltv import HltvClient
    from cs2_stats.collectors.ingest import fetch_pending_match_stats

    db = get_session()
    client = HltvClient()
    try:
        result = fetch_pending_match_stats(client, db, limit)
    finally:
        client.close()
        db.close()

    console.print(f"[green]✅ {result['collected']} matchs traités[/green]"
                  + (f" [red]({result['failed']} échecs)[/red]" if result["failed"] else ""))


# ── status / serve ───────────────────────────────────────────────────────────

@app.command()
def status():
    """ℹ️  Statut de la base de données."""
    db = get_session()
    data = stats.get_dashboard_stats(db)
    db.close()

    console.print(Panel(
        f"[bold]cs2-stats[/bold]\n\n"
        f"Équipes : {data['total_teams']}\n"
        f"Matchs : {data['total_matches']}\n"
        f"Kills grenade : {data['total_grenade_kills']}\n"
        f"Collecte : [{'green' if data['collection_progress'] == 100 else 'yellow'}]"
        f"{data['collection_progress']}%[/]\n"
        f"Base : {DATABASE_URL}",
        title="🎯 Statut", border_style="blue"
    ))


@app.command()
def serve(
    host: str = typer.Option(API_HOST, "--host"),
    port: int = typer.Option(API_PORT, "--port", "-p"),
):
    """🌐 Lance l'API JSON du dashboard."""
    import uvicorn
    uvicorn.run("cs2_stats.api:app", host=host, port=port)


if __name__ == "__main__":
    app()
