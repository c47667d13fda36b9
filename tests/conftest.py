import json
from collections import Counter
from collections.abc import Callable

import httpx
import pytest

from tests.helpers import BUNDLE_MAP_URL, BUNDLE_URL, bundle_script, make_source_map


class MockCdn:
    """In-memory HTTP server for scripts and source maps, counting requests per url."""

    def __init__(self) -> None:
        self.responses: dict[str, Callable[[], httpx.Response]] = {}
        self.requests: Counter[str] = Counter()

    def serve(self, url: str, content: str, headers: dict[str, str] | None = None, status_code: int = 200) -> None:
        self.responses[url] = lambda: httpx.Response(status_code, text=content, headers=headers)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests[url] += 1
        response = self.responses.get(url)
        if response is None:
            return httpx.Response(404, text="not found")
        return response()

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def cdn() -> MockCdn:
    cdn = MockCdn()
    cdn.serve(BUNDLE_URL, bundle_script())
    cdn.serve(BUNDLE_MAP_URL, json.dumps(make_source_map()))
    return cdn
