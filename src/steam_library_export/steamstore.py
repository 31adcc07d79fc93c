"""
Steam store API client for steam-library-export.

Fetches store metadata (cover image, description, developers, genres, ...)
for a single app id from the public ``appdetails`` endpoint.

Endpoint: https://store.steampowered.com/api/appdetails?appids=<id>
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import StoreConfig

logger = logging.getLogger(__name__)


@dataclass
class ReleaseDate:
    """Release information as the store reports it."""

    coming_soon: bool = False
    date: str = ""  # free text, e.g. "14 Nov, 2023" or "Coming soon"

    def to_dict(self) -> dict[str, Any]:
        return {"coming_soon": self.coming_soon, "date": self.date}


@dataclass
class Metacritic:
    """Metacritic score block."""

    score: int
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"score": self.score}
        if self.url:
            result["url"] = self.url
        return result


@dataclass
class StoreTag:
    """A category or genre entry."""

    id: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "description": self.description}


@dataclass
class Platforms:
    """Supported operating systems."""

    windows: bool = False
    mac: bool = False
    linux: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"windows": self.windows, "mac": self.mac, "linux": self.linux}


@dataclass
class StoreDetails:
    """
    Store metadata for one app.

    Built only from a successful response; a failed lookup yields no
    ``StoreDetails`` at all rather than a partially filled one.
    """

    name: str
    steam_appid: int
    header_image: str | None = None
    short_description: str | None = None
    detailed_description: str | None = None
    developers: list[str] = field(default_factory=list)
    publishers: list[str] = field(default_factory=list)
    release_date: ReleaseDate | None = None
    metacritic: Metacritic | None = None
    categories: list[StoreTag] = field(default_factory=list)
    genres: list[StoreTag] = field(default_factory=list)
    platforms: Platforms | None = None
    controller_support: str | None = None  # "full", "partial" or absent
    required_age: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary in the store's own field names."""
        result: dict[str, Any] = {
            "name": self.name,
            "steam_appid": self.steam_appid,
        }
        if self.header_image:
            result["header_image"] = self.header_image
        if self.short_description:
            result["short_description"] = self.short_description
        if self.detailed_description:
            result["detailed_description"] = self.detailed_description
        if self.developers:
            result["developers"] = self.developers
        if self.publishers:
            result["publishers"] = self.publishers
        if self.release_date:
            result["release_date"] = self.release_date.to_dict()
        if self.metacritic:
            result["metacritic"] = self.metacritic.to_dict()
        if self.categories:
            result["categories"] = [c.to_dict() for c in self.categories]
        if self.genres:
            result["genres"] = [g.to_dict() for g in self.genres]
        if self.platforms:
            result["platforms"] = self.platforms.to_dict()
        if self.controller_support:
            result["controller_support"] = self.controller_support
        if self.required_age:
            result["required_age"] = self.required_age
        return result

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=None)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoreDetails":
        """
        Create from an ``appdetails`` ``data`` object.

        Raises:
            ValueError, TypeError, KeyError: If the payload has the wrong shape
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")

        release_date = None
        if isinstance(data.get("release_date"), dict):
            rd = data["release_date"]
            release_date = ReleaseDate(
                coming_soon=bool(rd.get("coming_soon", False)),
                date=str(rd.get("date") or ""),
            )

        metacritic = None
        if isinstance(data.get("metacritic"), dict):
            mc = data["metacritic"]
            metacritic = Metacritic(score=int(mc["score"]), url=mc.get("url"))

        platforms = None
        if isinstance(data.get("platforms"), dict):
            p = data["platforms"]
            platforms = Platforms(
                windows=bool(p.get("windows", False)),
                mac=bool(p.get("mac", False)),
                linux=bool(p.get("linux", False)),
            )

        return cls(
            name=str(data["name"]),
            steam_appid=int(data["steam_appid"]),
            header_image=data.get("header_image") or None,
            short_description=data.get("short_description") or None,
            detailed_description=data.get("detailed_description") or None,
            developers=[str(d) for d in data.get("developers") or []],
            publishers=[str(p) for p in data.get("publishers") or []],
            release_date=release_date,
            metacritic=metacritic,
            categories=_parse_tags(data.get("categories")),
            genres=_parse_tags(data.get("genres")),
            platforms=platforms,
            controller_support=data.get("controller_support") or None,
            required_age=_parse_age(data.get("required_age")),
        )


def _parse_tags(items: Any) -> list[StoreTag]:
    """Parse ``[{"id": ..., "description": ...}]`` lists."""
    tags = []
    for item in items or []:
        tags.append(StoreTag(id=str(item["id"]), description=str(item["description"])))
    return tags


def _parse_age(value: Any) -> int:
    # The store sends both 0 and "18"
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class SteamStoreClient:
    """
    Client for the Steam store ``appdetails`` endpoint.

    One attempt per lookup, no retries: every kind of failure comes back as
    ``None`` so callers can render a basic note instead.
    """

    def __init__(
        self,
        api_base: str = "https://store.steampowered.com/api",
        timeout_seconds: float = 10.0,
        language: str | None = None,
        country: str | None = None,
    ):
        """
        Initialize the store client.

        Args:
            api_base: Base URL of the store API (no trailing slash)
            timeout_seconds: Request timeout in seconds
            language: Optional ``l`` parameter (e.g. "english")
            country: Optional ``cc`` parameter (e.g. "us")
        """
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout_seconds
        self.language = language
        self.country = country

    @classmethod
    def from_config(cls, config: StoreConfig) -> "SteamStoreClient":
        return cls(
            api_base=config.api_base,
            timeout_seconds=config.timeout_seconds,
            language=config.language,
            country=config.country,
        )

    def _params(self, app_id: int) -> dict[str, str]:
        params = {"appids": str(app_id)}
        if self.language:
            params["l"] = self.language
        if self.country:
            params["cc"] = self.country
        return params

    async def fetch(self, app_id: int | None) -> StoreDetails | None:
        """
        Look up store details for an app.

        Args:
            app_id: Steam app id; zero or missing skips the request

        Returns:
            StoreDetails if the store answered successfully, None otherwise
        """
        if not app_id or app_id <= 0:
            return None

        url = f"{self.api_base}/appdetails"
        logger.debug(f"Fetching store details for app {app_id}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    url, params=self._params(app_id), follow_redirects=True
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                logger.warning(f"HTTP error fetching app {app_id}: {e}")
                return None
            except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
                logger.warning(f"Request failed for app {app_id}: {e}")
                return None
            except ValueError as e:
                logger.warning(f"Malformed response for app {app_id}: {e}")
                return None

        return self._parse_envelope(app_id, data)

    def _parse_envelope(self, app_id: int, data: Any) -> StoreDetails | None:
        """Unwrap ``{"<id>": {"success": bool, "data": {...}}}``."""
        entry = data.get(str(app_id)) if isinstance(data, dict) else None
        if not isinstance(entry, dict) or entry.get("success") is not True:
            logger.info(f"Store reports no details for app {app_id}")
            return None

        try:
            return StoreDetails.from_dict(entry.get("data"))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unexpected store payload for app {app_id}: {e}")
            return None
