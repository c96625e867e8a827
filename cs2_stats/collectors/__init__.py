"""
Collecteurs de données.

Sources disponibles :
- hltv   : HLTV.org via scraping HTML (cloudscraper + BeautifulSoup) — sans clé, rythme imposé
- ingest : pipeline HLTV → base locale (top équipes, résultats, stats match, jobs de collecte)
"""
