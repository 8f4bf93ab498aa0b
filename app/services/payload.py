"""
Parsing of raw IGDB game payloads.

IGDB omits empty arrays and may expand nested objects or return bare ids
depending on the projection, so the raw JSON is read once here into a
PartialGame. Defaults for missing values are applied later, at the merge.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import EXTERNAL_SOURCE_NAMES, EXTERNAL_SOURCE_STEAM, EXTERNAL_SOURCE_STORE_URLS
from utils import from_timestamp

STEAM_APP_URL_RE = re.compile(r"/app/(\d+)")

# payload key -> reference kind handled by the relation reconciler
RELATION_KINDS = ("platforms", "genres", "game_modes", "game_engines", "player_perspectives")


@dataclass
class ExternalSourceData:
    source_id: int
    source_name: str
    external_uid: str
    external_url: Optional[str] = None


@dataclass
class PartialGame:
    igdb_id: int
    name: Optional[str] = None
    slug: Optional[str] = None
    summary: Optional[str] = None
    first_release_date: Any = None
    game_type: Optional[int] = None
    cover_image_id: Optional[str] = None
    hero_image_id: Optional[str] = None
    screenshots: Optional[List[Dict]] = None
    trailers: Optional[List[Dict]] = None
    similar_games: Optional[List[Dict]] = None
    # kind -> [{"igdb_id", "name"}]; None when the payload has nothing for that kind
    relations: Dict[str, Optional[List[Dict]]] = field(default_factory=dict)
    companies: Optional[List[Dict]] = None
    release_dates: Optional[List[Dict]] = None
    external_sources: List[ExternalSourceData] = field(default_factory=list)
    steam_app_id: Optional[str] = None
    steam_data: Optional[Dict] = None
    raw: Dict = field(default_factory=dict)

    @classmethod
    def from_igdb(cls, payload: Dict) -> "PartialGame":
        artworks = payload.get("artworks") or []
        game = cls(
            igdb_id=int(payload["id"]),
            name=payload.get("name") or None,
            slug=payload.get("slug") or None,
            summary=payload.get("summary") or None,
            first_release_date=from_timestamp(payload.get("first_release_date")),
            game_type=payload.get("game_type"),
            cover_image_id=_image_id(payload.get("cover")),
            hero_image_id=_image_id(artworks[0]) if artworks else None,
            screenshots=_list_or_none(payload.get("screenshots")),
            trailers=_list_or_none(payload.get("videos")),
            similar_games=_list_or_none(payload.get("similar_games")),
            relations={kind: _references(payload.get(kind)) for kind in RELATION_KINDS},
            companies=_companies(payload.get("involved_companies")),
            release_dates=_release_dates(payload.get("release_dates")),
            raw=payload,
        )
        game.external_sources = extract_external_sources(payload)
        game.steam_app_id = find_steam_app_id(payload)

        if game.steam_app_id and not any(s.source_id == EXTERNAL_SOURCE_STEAM for s in game.external_sources):
            # Found through a store URL only, still worth a link
            game.external_sources.append(ExternalSourceData(
                source_id=EXTERNAL_SOURCE_STEAM,
                source_name=EXTERNAL_SOURCE_NAMES[EXTERNAL_SOURCE_STEAM],
                external_uid=game.steam_app_id,
                external_url=EXTERNAL_SOURCE_STORE_URLS[EXTERNAL_SOURCE_STEAM] + game.steam_app_id,
            ))
        return game


def _image_id(value):
    if isinstance(value, dict):
        return value.get("image_id") or None
    return None


def _list_or_none(value):
    return list(value) if value else None


def _references(items):
    if not items:
        return None
    refs = []
    for item in items:
        if isinstance(item, dict) and item.get("id") is not None:
            refs.append({"igdb_id": int(item["id"]), "name": item.get("name")})
        elif isinstance(item, int):
            refs.append({"igdb_id": item, "name": None})
    return refs or None


def _companies(items):
    if not items:
        return None
    companies = {}
    for item in items:
        company = item.get("company") if isinstance(item, dict) else None
        if isinstance(company, int):
            company = {"id": company}
        if not isinstance(company, dict) or company.get("id") is None:
            continue
        igdb_id = int(company["id"])
        # A company can appear twice (developer and publisher entries)
        entry = companies.setdefault(
            igdb_id, {"igdb_id": igdb_id, "name": company.get("name"), "is_developer": False, "is_publisher": False}
        )
        entry["is_developer"] = entry["is_developer"] or bool(item.get("developer"))
        entry["is_publisher"] = entry["is_publisher"] or bool(item.get("publisher"))
    return list(companies.values()) or None


def _release_dates(items):
    if not items:
        return None
    dates = []
    for item in items:
        if not isinstance(item, dict):
            continue
        platform = item.get("platform")
        if isinstance(platform, dict):
            platform = platform.get("id")
        dates.append({
            "igdb_release_date_id": item.get("id"),
            "platform_igdb_id": platform,
            "date": from_timestamp(item.get("date")),
            "year": item.get("y"),
            "month": item.get("m"),
            "day": item.get("d"),
            "region": item.get("region"),
            "human_readable": item.get("human"),
            "status": item.get("status"),
        })
    return dates or None


def _source_id(external_game):
    source = external_game.get("external_game_source")
    if isinstance(source, dict):
        return source.get("id"), source.get("name")
    source_id = source if source is not None else external_game.get("category")
    return source_id, None


def extract_external_sources(payload: Dict) -> List[ExternalSourceData]:
    """Store identifiers from ``external_games``. Items without a source id or uid are skipped."""
    sources = []
    for external_game in payload.get("external_games") or []:
        if not isinstance(external_game, dict):
            continue
        source_id, source_name = _source_id(external_game)
        uid = external_game.get("uid")
        if not source_id or not uid:
            continue
        source_id = int(source_id)
        sources.append(ExternalSourceData(
            source_id=source_id,
            source_name=source_name or EXTERNAL_SOURCE_NAMES.get(source_id, "Unknown"),
            external_uid=str(uid),
            external_url=external_game.get("url"),
        ))
    return sources


def find_steam_app_id(payload: Dict) -> Optional[str]:
    """
    Steam app id for a game, first match wins:
    1. an external_games record typed as Steam with an all-digit uid
    2. any external_games or websites url containing /app/<digits>
    """
    external_games = [e for e in payload.get("external_games") or [] if isinstance(e, dict)]

    for external_game in external_games:
        source_id, _ = _source_id(external_game)
        uid = str(external_game.get("uid") or "")
        if source_id is not None and int(source_id) == EXTERNAL_SOURCE_STEAM and uid.isdigit():
            return uid

    websites = [w for w in payload.get("websites") or [] if isinstance(w, dict)]
    for item in external_games + websites:
        match = STEAM_APP_URL_RE.search(item.get("url") or "")
        if match:
            return match.group(1)
    return None
