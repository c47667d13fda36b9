import asyncio
import base64
import binascii
import os
import re
from pathlib import Path
from typing import Final
from urllib.parse import unquote, urljoin, urlparse
from urllib.request import url2pathname

import httpx
from pydantic import BaseModel

from cpuscope.errors.sourcemap import SourceMapFetchError, SourceMapParseError

SOURCE_MAP_HEADERS: Final[tuple[str, ...]] = ("SourceMap", "X-SourceMap")

# `//# sourceMappingURL=...` or `/*# sourceMappingURL=... */` at the end of a line (`@` is the legacy pragma)
SOURCE_MAPPING_URL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?://[@#]\s*sourceMappingURL=([^\s'\"]+)\s*$)|(?:/\*[@#]\s*sourceMappingURL=([^\s*'\"]+)\s*\*/\s*$)",
    re.MULTILINE,
)


class FetchedResource(BaseModel):
    locator: str
    content: str
    # out-of-band source map locator, sent as a response header
    source_map_header: str | None = None


def is_http_locator(locator: str) -> bool:
    return locator.startswith(("http://", "https://"))


def is_data_uri(locator: str) -> bool:
    return locator.startswith("data:")


def locator_to_path(locator: str) -> Path:
    locator = locator.strip()
    if locator.startswith("file://"):
        return Path(url2pathname(urlparse(locator).path))
    return Path(locator)


def find_source_mapping_url(content: str) -> str | None:
    """Last `sourceMappingURL` comment of a script: bundlers can emit several, the final one wins."""
    last_match: re.Match[str] | None = None
    for match in SOURCE_MAPPING_URL_PATTERN.finditer(content):
        last_match = match
    if last_match is None:
        return None
    return last_match.group(1) or last_match.group(2)


def decode_data_uri(uri: str, locator: str = "") -> str:
    """Decode an inline `data:application/json[;charset=...][;base64],...` source map."""
    header, sep, payload = uri.partition(",")
    if sep == "":
        raise SourceMapParseError(locator, "data URI without payload")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise SourceMapParseError(locator, f"invalid base64 data URI ({e})") from e
    return unquote(payload)


def resolve_url(base: str, relative: str) -> str:
    """Resolve a source map locator relative to the script that references it."""
    if base == "" or is_http_locator(relative) or relative.startswith(("file:", "data:")):
        return relative
    if "://" in base:
        return urljoin(base, relative)
    return os.path.normpath(os.path.join(os.path.dirname(base), relative))


class ResourceFetcher:
    """Fetches scripts and source maps over HTTP or from the filesystem."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client: httpx.AsyncClient = client

    async def fetch(self, locator: str) -> FetchedResource:
        locator = locator.strip()
        if is_http_locator(locator):
            return await self._fetch_http(locator)
        return await self._fetch_file(locator)

    async def _fetch_http(self, locator: str) -> FetchedResource:
        try:
            response = await self.client.get(locator, follow_redirects=True)
        except httpx.TimeoutException as e:
            raise SourceMapFetchError(locator, f"timed out ({type(e).__name__})") from e
        except httpx.HTTPError as e:
            raise SourceMapFetchError(locator, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise SourceMapFetchError(locator, f"HTTP {response.status_code}")

        header = next((response.headers[name] for name in SOURCE_MAP_HEADERS if name in response.headers), None)
        return FetchedResource(locator=locator, content=response.text, source_map_header=header)

    async def _fetch_file(self, locator: str) -> FetchedResource:
        path = locator_to_path(locator)
        if not path.is_file():
            raise SourceMapFetchError(locator, f"no such file {path}")
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            raise SourceMapFetchError(locator, str(e)) from e
        return FetchedResource(locator=locator, content=content)
