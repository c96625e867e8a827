import pytest
import requests

from cs2_stats.collectors import hltv
from cs2_stats.collectors.hltv import (
    HltvClient, HltvError,
    parse_team_ranking, parse_team, parse_results, parse_match_stats,
)


RANKING_HTML = """
<div class="ranking">
  <div class="ranked-team standard-box">
    <div class="ranking-header">
      <span class="position">#1</span>
      <div class="relative">
        <span class="team-logo"><img src="https://img-cdn.hltv.org/teamlogo/vitality.svg" alt="Vitality"></span>
        <div class="teamLine sectionTeamPlayers">
          <span class="name">Vitality</span><span class="points">(1000 points)</span>
        </div>
      </div>
    </div>
    <div class="lineup-con">
      <a href="/player/11893/zywoo" class="pointer">ZywOo</a>
      <div class="more"><a href="/team/9565/vitality" class="moreLink">HLTV Team profile</a></div>
    </div>
  </div>
  <div class="ranked-team standard-box">
    <div class="ranking-header">
      <span class="position">#2</span>
      <div class="relative">
        <div class="teamLine sectionTeamPlayers">
          <span class="name">Natus Vincere</span><span class="points">(812 points)</span>
        </div>
      </div>
    </div>
    <div class="lineup-con">
      <div class="more"><a href="/team/4608/natus-vincere" class="moreLink">HLTV Team profile</a></div>
    </div>
  </div>
</div>
"""

TEAM_HTML = """
<div class="profile-team-container">
  <img class="teamlogo" src="https://img-cdn.hltv.org/teamlogo/vitality.svg" alt="Vitality">
  <h1 class="profile-team-name text-ellipsis">Vitality</h1>
  <div class="team-country text-ellipsis"><img class="flag" alt="France" src="/img/FR.gif"> France</div>
</div>
<div class="bodyshot-team g-grid">
  <a href="/player/11893/zywoo" class="col-custom" title="ZywOo"><span class="text-ellipsis bold">ZywOo</span></a>
  <a href="/player/7322/apex" class="col-custom" title="apEX"><span class="text-ellipsis bold">apEX</span></a>
  <a href="/player/7322/apex" class="col-custom" title="apEX">doublon</a>
</div>
"""

RESULTS_HTML = """
<div class="results-all">
  <div class="results-sublist">
    <div class="result-con" data-zonedgrouping-entry-unix="1718035200000">
      <a href="/matches/2372000/vitality-vs-natus-vincere-blast" class="a-reset">
        <div class="result"><table><tr>
          <td class="team-cell"><div class="line-align team1"><div class="team team-won">Vitality</div></div></td>
          <td class="result-score"><span class="score-won">2</span> - <span class="score-lost">1</span></td>
          <td class="team-cell"><div class="line-align team2"><div class="team">Natus Vincere</div></div></td>
          <td class="event"><span class="event-name">BLAST Premier Spring Final</span></td>
          <td class="star-cell"><div class="map-text">bo3</div></td>
        </tr></table></div>
      </a>
    </div>
    <div class="result-con" data-zonedgrouping-entry-unix="1717948800000">
      <a href="/matches/2371990/vitality-vs-mouz-blast" class="a-reset">
        <div class="result"><table><tr>
          <td class="team-cell"><div class="line-align team1"><div class="team">Vitality</div></div></td>
          <td class="result-score"><span class="score-lost">11</span> - <span class="score-won">13</span></td>
          <td class="team-cell"><div class="line-align team2"><div class="team team-won">MOUZ</div></div></td>
          <td class="event"><span class="event-name">BLAST Premier Spring Final</span></td>
          <td class="star-cell"><div class="map-text">mrg</div></td>
        </tr></table></div>
      </a>
    </div>
  </div>
</div>
"""

MATCH_STATS_HTML = """
<table class="stats-table totalstats">
  <thead><tr><th class="st-teamname text-ellipsis">Vitality</th><th class="st-kills">K (hs)</th></tr></thead>
  <tbody>
    <tr>
      <td class="st-player"><a href="/stats/players/11893/zywoo">ZywOo</a></td>
      <td class="st-kills">25 (12)</td><td class="st-assists">4 (1)</td><td class="st-deaths">14</td>
      <td class="st-kdratio">78.3%</td><td class="st-kddiff">+11</td>
      <td class="st-adr">95.2</td><td class="st-rating">1.45</td>
    </tr>
  </tbody>
</table>
<table class="stats-table totalstats">
  <thead><tr><th class="st-teamname text-ellipsis">MOUZ</th></tr></thead>
  <tbody>
    <tr>
      <td class="st-player"><a href="/stats/players/18850/torzsi">torzsi</a></td>
      <td class="st-kills">15 (3)</td><td class="st-assists">2 (0)</td><td class="st-deaths">20</td>
      <td class="st-kdratio">-</td><td class="st-kddiff">-5</td>
      <td class="st-adr">70.1</td><td class="st-rating">0.88</td>
    </tr>
  </tbody>
</table>
"""


class TestParsing:

    def test_team_ranking(self):
        ranking = parse_team_ranking(RANKING_HTML)
        assert [r["place"] for r in ranking] == [1, 2]
        assert ranking[0]["team"] == {
            "id": 9565, "name": "Vitality",
            "logo": "https://img-cdn.hltv.org/teamlogo/vitality.svg",
        }
        assert ranking[0]["points"] == 1000
        assert ranking[1]["team"]["id"] == 4608
        assert ranking[1]["team"]["logo"] is None

    def test_empty_ranking_is_an_error(self):
        with pytest.raises(HltvError):
            parse_team_ranking("<html><body>Just a moment...</body></html>")

    def test_team_page(self):
        team = parse_team(TEAM_HTML, 9565)
        assert team["name"] == "Vitality"
        assert team["country"] == "France"
        assert team["logo"].endswith("vitality.svg")
        assert team["players"] == [{"id": 11893, "name": "ZywOo"}, {"id": 7322, "name": "apEX"}]

    def test_unreadable_team_page(self):
        with pytest.raises(HltvError):
            parse_team("<html></html>", 1)

    def test_results(self):
        results = parse_results(RESULTS_HTML)
        assert [r["id"] for r in results] == [2372000, 2371990]
        first = results[0]
        assert first["team1"]["name"] == "Vitality"
        assert first["team2"]["name"] == "Natus Vincere"
        assert first["result"] == {"team1": 2, "team2": 1}
        assert first["map"] == "bo3"
        assert first["event"]["name"] == "BLAST Premier Spring Final"
        assert (first["date"].year, first["date"].month, first["date"].day) == (2024, 6, 10)
        assert results[1]["result"] == {"team1": 11, "team2": 13}
        assert results[1]["map"] == "mrg"

    def test_no_results(self):
        assert parse_results("<div class='results-all'></div>") == []

    def test_match_stats(self):
        data = parse_match_stats(MATCH_STATS_HTML, 2372000)
        assert list(data["player_stats"]) == ["Vitality", "MOUZ"]
        zywoo = data["player_stats"]["Vitality"][0]
        assert zywoo["player"] == {"id": 11893, "name": "ZywOo"}
        assert (zywoo["kills"], zywoo["headshots"]) == (25, 12)
        assert zywoo["assists"] == 4
        assert zywoo["deaths"] == 14
        assert zywoo["kast"] == pytest.approx(78.3)
        assert zywoo["adr"] == pytest.approx(95.2)
        assert zywoo["rating"] == pytest.approx(1.45)
        assert data["player_stats"]["MOUZ"][0]["kast"] is None

    def test_match_stats_missing(self):
        with pytest.raises(HltvError):
            parse_match_stats("<html></html>", 1)


class FakeResponse:

    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeSession:

    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class TestHltvClient:

    @pytest.fixture(autouse=True)
    def fresh_pacing(self, monkeypatch):
        monkeypatch.setattr(hltv, "_last_request", 0.0)

    def test_pages_and_params(self):
        http = FakeSession([FakeResponse(RANKING_HTML), FakeResponse(RESULTS_HTML)])
        client = HltvClient(min_interval=0, session=http)

        assert len(client.get_team_ranking()) == 2
        assert len(client.get_results(9565)) == 2
        assert http.requests == [
            ("https://www.hltv.org/ranking/teams", None),
            ("https://www.hltv.org/results", {"team": 9565}),
        ]
        assert "User-Agent" in http.headers

    def test_min_interval_between_requests(self):
        sleeps = []
        http = FakeSession([FakeResponse(TEAM_HTML), FakeResponse(TEAM_HTML)])
        client = HltvClient(min_interval=3.0, session=http, sleep=sleeps.append)

        client.get_team(9565)
        assert sleeps == []
        client.get_team(9565)
        assert len(sleeps) == 1
        assert 0 < sleeps[0] <= 3.0

    def test_interval_shared_between_clients(self):
        sleeps = []
        first = HltvClient(min_interval=3.0, session=FakeSession([FakeResponse(TEAM_HTML)]),
                           sleep=sleeps.append)
        second = HltvClient(min_interval=3.0, session=FakeSession([FakeResponse(TEAM_HTML)]),
                            sleep=sleeps.append)

        first.get_team(9565)
        second.get_team(9565)
        assert len(sleeps) == 1
        assert 0 < sleeps[0] <= 3.0

    def test_http_error_becomes_hltv_error(self):
        client = HltvClient(min_interval=0, session=FakeSession([FakeResponse(status_code=403)]))
        with pytest.raises(HltvError, match="403"):
            client.get_team_ranking()

    def test_transport_error_becomes_hltv_error(self):
        http = FakeSession([requests.exceptions.ConnectionError("reset")])
        client = HltvClient(min_interval=0, session=http)
        with pytest.raises(HltvError):
            client.get_match_stats(1)

    def test_close(self):
        http = FakeSession([])
        HltvClient(session=http).close()
        assert http.closed
