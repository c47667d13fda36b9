import asyncio
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Final, NamedTuple, TypeVar

import httpx
from loguru import logger

from cpuscope.common.config import config
from cpuscope.errors.sourcemap import SourceMapError, SourceMapFetchError
from cpuscope.sourcemap.codec import SourceMap
from cpuscope.sourcemap.fetch import (
    FetchedResource,
    ResourceFetcher,
    decode_data_uri,
    find_source_mapping_url,
    is_data_uri,
    resolve_url,
)
from cpuscope.sourcemap.types import Location, ResolvedLocation

T = TypeVar("T")

ORIGINAL_SOURCE_MARKERS: Final[tuple[str, ...]] = ("/src/", "/source/", "webpack://")
MINIFIED_URL_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"\.min\.js$"),
    re.compile(r"\.[a-f0-9]{8,}\.js$"),
    re.compile(r"\.(chunk|bundle|dll|entry|plugin)\.js$"),
    re.compile(r"/(bundles?|dist|build)/.*\.js$"),
)
MINIFIED_FILENAME_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^(app|main|runtime|vendor|polyfill)\.[a-f0-9]+\.js$"),
    re.compile(r"^kbn-.*\.js$"),
)
VIRTUAL_MODULE_PREFIX: Final[re.Pattern[str]] = re.compile(r"^webpack:///?")
DEPENDENCY_PATH: Final[re.Pattern[str]] = re.compile(r"node_modules/((?:@[^/]+/)?[^/]+)(?:/(.+))?")
MAX_PATH_SEGMENTS: Final[int] = 6


def is_minified_javascript(url: str) -> bool:
    """Whether a script url looks like minified or bundled output worth a source map lookup."""
    url = url.split("#")[0].split("?")[0]
    if not url.endswith(".js"):
        return False
    if any(marker in url for marker in ORIGINAL_SOURCE_MARKERS):
        return False
    if any(pattern.search(url) for pattern in MINIFIED_URL_PATTERNS):
        return True
    file_name = url.split("/")[-1]
    return any(pattern.search(file_name) for pattern in MINIFIED_FILENAME_PATTERNS)


def clean_source_path(source_path: str) -> str:
    """Shorten an original source path for display."""
    source_path = VIRTUAL_MODULE_PREFIX.sub("", source_path)
    source_path = source_path.removeprefix("./")

    if "node_modules" in source_path:
        match = DEPENDENCY_PATH.search(source_path)
        if match is not None:
            package_name, file_path = match.groups()
            if file_path is None:
                return f"node_modules/{package_name}"
            parts = file_path.split("/")
            if len(parts) > 2:
                return f"node_modules/{package_name}/.../{'/'.join(parts[-2:])}"
            return f"node_modules/{package_name}/{file_path}"

    parts = source_path.split("/")
    if len(parts) > MAX_PATH_SEGMENTS:
        return f"{parts[0]}/.../{'/'.join(parts[-3:])}"
    return source_path


class SourceMapCacheEntry(NamedTuple):
    url: str
    source_map: SourceMap


class SourceMapResolver:
    """
    Maps minified script positions back to original source positions.

    Owns all of its caches, so one resolver lives for one analysis run:
    - fetched resources (scripts and external maps), failures included
    - parsed source maps per script locator, `None` meaning "no map available"
    - url-only resolutions, reused by `resolve_all`

    Entries are written once and never invalidated. Concurrent lookups of the same locator
    share one in-flight task, so a resource is fetched at most once per run.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        fetch_timeout_s: float | None = None,
        max_concurrent_fetches: int | None = None,
    ) -> None:
        self.fetch_timeout_s: float = fetch_timeout_s or config.fetch_timeout_s
        self._owns_client: bool = client is None
        self.client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=httpx.Timeout(self.fetch_timeout_s))
        self.fetcher: ResourceFetcher = ResourceFetcher(self.client)
        self._fetch_slots: asyncio.Semaphore = asyncio.Semaphore(
            max_concurrent_fetches or config.max_concurrent_fetches
        )

        self._contents: dict[str, FetchedResource | None] = {}
        self._source_maps: dict[str, SourceMapCacheEntry | None] = {}
        self._locations: dict[str, ResolvedLocation] = {}
        self._inflight_contents: dict[str, asyncio.Task[FetchedResource | None]] = {}
        self._inflight_source_maps: dict[str, asyncio.Task[SourceMapCacheEntry | None]] = {}
        self.nb_fetches: int = 0

    async def astart(self) -> None:
        pass

    async def astop(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SourceMapResolver":
        await self.astart()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.astop()

    @staticmethod
    async def _single_flight(
        key: str,
        cache: dict[str, T],
        inflight: dict[str, asyncio.Task[T]],
        load: Callable[[str], Awaitable[T]],
    ) -> T:
        if key in cache:
            return cache[key]
        task = inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(load(key))
            inflight[key] = task
            task.add_done_callback(lambda _: inflight.pop(key, None))
        # a cancelled waiter must not cancel the fetch the other waiters share
        return await asyncio.shield(task)

    async def _get_resource(self, locator: str) -> FetchedResource | None:
        return await self._single_flight(locator, self._contents, self._inflight_contents, self._load_resource)

    async def _load_resource(self, locator: str) -> FetchedResource | None:
        resource: FetchedResource | None = None
        async with self._fetch_slots:
            self.nb_fetches += 1
            try:
                async with asyncio.timeout(self.fetch_timeout_s):
                    resource = await self.fetcher.fetch(locator)
            except TimeoutError:
                logger.warning(f"Fetching {locator} timed out after {self.fetch_timeout_s}s")
            except SourceMapFetchError as e:
                logger.warning(e.dev_message)
        self._contents[locator] = resource
        return resource

    async def _get_source_map(self, url: str) -> SourceMapCacheEntry | None:
        return await self._single_flight(url, self._source_maps, self._inflight_source_maps, self._load_source_map)

    async def _load_source_map(self, url: str) -> SourceMapCacheEntry | None:
        entry: SourceMapCacheEntry | None = None
        try:
            entry = await self._retrieve_source_map(url)
        except SourceMapError as e:
            logger.warning(e.dev_message)
        finally:
            # any failure is cached as "no map available" for the rest of the run
            self._source_maps[url] = entry
        return entry

    async def _retrieve_source_map(self, url: str) -> SourceMapCacheEntry | None:
        resource = await self._get_resource(url)
        if resource is None:
            return None

        map_locator = resource.source_map_header or find_source_mapping_url(resource.content)
        if map_locator is None:
            logger.debug(f"No source map reference in {url}")
            return None

        if is_data_uri(map_locator):
            return SourceMapCacheEntry(url=url, source_map=SourceMap.from_json(decode_data_uri(map_locator, url), url))

        map_url = resolve_url(url, map_locator)
        map_resource = await self._get_resource(map_url)
        if map_resource is None:
            return None
        return SourceMapCacheEntry(url=map_url, source_map=SourceMap.from_json(map_resource.content, map_url))

    def _lookup(
        self, entry: SourceMapCacheEntry, url: str, line: int, column: int, hinted_name: str | None
    ) -> ResolvedLocation | None:
        source_map = entry.source_map
        # `column` is 1-based, source map columns are 0-based
        generated_column = max(column - 1, 0)
        mapping = source_map.original_position_for(line, generated_column)
        if mapping is None or mapping.source is None:
            return None

        name = mapping.name
        if name is None:
            nearest = source_map.find_nearest_named(
                line,
                generated_column,
                line_radius=config.nearest_name_line_radius,
                column_radius=config.nearest_name_column_radius,
            )
            name = nearest.name if nearest is not None else hinted_name

        return ResolvedLocation(
            original_file=clean_source_path(mapping.source),
            original_line=mapping.original_line or line,
            original_column=mapping.original_column + 1 if mapping.original_column is not None else column,
            original_name=name,
            is_resolved=True,
            minified_url=url,
            full_original_path=mapping.source,
            source_map_url=entry.url,
        )

    async def resolve(
        self, url: str, line: int = 1, column: int = 1, hinted_name: str | None = None
    ) -> ResolvedLocation:
        """Best-effort original location of a 1-based (`line`, `column`) in `url`. Never raises."""
        default = ResolvedLocation.unresolved(url, line, column)
        if not is_minified_javascript(url):
            return default

        try:
            entry = await self._get_source_map(url)
            if entry is None:
                return default
            return self._lookup(entry, url, line, column, hinted_name) or default
        except Exception as e:
            logger.warning(f"Failed to resolve source map for {url}: {e}")
            return default

    async def resolve_all(self, locations: Sequence[Location]) -> list[ResolvedLocation]:
        """Resolve concurrently, results in input order."""

        async def resolve_one(location: Location) -> ResolvedLocation:
            url_only = location.line is None and location.column is None
            if url_only and location.url in self._locations:
                return self._locations[location.url]
            resolved = await self.resolve(location.url, location.line or 1, location.column or 1, location.hinted_name)
            self._locations[location.url] = resolved
            return resolved

        return list(await asyncio.gather(*(resolve_one(location) for location in locations)))
