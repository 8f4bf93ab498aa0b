"""
Services package

- Upstream clients: igdb_client, steam_client, steamgriddb_client, steamspy_client (token_cache for IGDB auth)
- payload: parsing of raw IGDB payloads
- enrichment_service: fetch, merge and persist one game
- relation_reconciler: reference entities, associations and release dates
- image_resolver: SteamGridDB art backfill
- priority_service: update priority scoring and view tracking
- staleness_scheduler: stale, popular and recent refreshes plus the release window import
- stats_sync_service: SteamSpy stats sync with backoff
- factory: wiring of all of the above
"""
