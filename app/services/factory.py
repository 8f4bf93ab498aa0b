"""
Builds the clients and services of one process from settings.

Everything is constructed once and passed by reference: the IGDB token cache
in particular is shared by every IGDB call of the process.
"""
from dataclasses import dataclass
from typing import Callable, Optional

from services.enrichment_service import SourceEnricher
from services.igdb_client import IGDBClient
from services.image_resolver import ImageResolver
from services.priority_service import PriorityScorer, PriorityService
from services.relation_reconciler import RelationReconciler
from services.staleness_scheduler import StalenessScheduler
from services.stats_sync_service import RetryCoordinator
from services.steam_client import SteamStoreClient
from services.steamgriddb_client import SteamGridDBClient
from services.steamspy_client import SteamSpyClient
from services.token_cache import TokenCache


@dataclass
class Services:
    igdb: IGDBClient
    steam: SteamStoreClient
    steamgriddb: SteamGridDBClient
    steamspy: SteamSpyClient
    priority: PriorityService
    images: ImageResolver
    reconciler: RelationReconciler
    enricher: SourceEnricher
    scheduler: StalenessScheduler
    stats: RetryCoordinator


def build_services(settings, dispatch_stats_step: Optional[Callable] = None) -> Services:
    apis = settings["apis"]
    sync = settings["sync"]
    stats = settings["stats"]
    timeout = apis.get("request_timeout", 15)

    token_cache = TokenCache(apis["igdb_client_id"], apis["igdb_client_secret"], timeout=timeout)
    igdb = IGDBClient(
        apis["igdb_client_id"],
        token_cache,
        rate_limit_delay=apis["igdb_rate_limit_delay_ms"] / 1000.0,
        timeout=timeout,
    )
    steam = SteamStoreClient(country_code=apis.get("steam_country_code", "us"), timeout=timeout)
    steamgriddb = SteamGridDBClient(apis.get("steamgriddb_api_key"))
    steamspy = SteamSpyClient(rate_limit_delay=stats["rate_limit_delay_ms"] / 1000.0, timeout=timeout)

    priority = PriorityService(PriorityScorer())
    images = ImageResolver(steamgriddb, enabled=sync.get("fetch_images", True))
    reconciler = RelationReconciler()
    enricher = SourceEnricher(
        igdb,
        steam,
        reconciler,
        images,
        priority,
        active_sources=sync.get("active_external_sources", [1]),
        fetch_images=sync.get("fetch_images", True),
    )

    return Services(
        igdb=igdb,
        steam=steam,
        steamgriddb=steamgriddb,
        steamspy=steamspy,
        priority=priority,
        images=images,
        reconciler=reconciler,
        enricher=enricher,
        scheduler=StalenessScheduler(enricher, sync),
        stats=RetryCoordinator(steamspy, stats, dispatch=dispatch_stats_step),
    )
