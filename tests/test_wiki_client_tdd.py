from __future__ import annotations

import httpx
import pytest

from bingopedia.exceptions import ArticleNotFoundError, RedirectServiceError, TransientContentError
from bingopedia.retry import RetryPolicy
from bingopedia.wiki import WikipediaClient

QUERY_RESPONSES = {
    "Canine": {
        "query": {
            "redirects": [{"from": "Canine", "to": "Dog"}],
            "pages": {"4269567": {"pageid": 4269567, "ns": 0, "title": "Dog"}},
        }
    },
    "xyzzy_page": {
        "query": {
            "normalized": [{"from": "xyzzy_page", "to": "Xyzzy page"}],
            "pages": {"-1": {"ns": 0, "title": "Xyzzy page", "missing": ""}},
        }
    },
}


def make_client(routes, requests, **kwargs):
    """``routes`` maps URL path suffixes to (status, body) pairs."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("api.php"):
            title = request.url.params["titles"]
            if title == "Broken":
                return httpx.Response(503)
            return httpx.Response(200, json=QUERY_RESPONSES[title])
        for suffix, (status, body) in routes.items():
            if request.url.path.endswith(suffix):
                if isinstance(body, dict):
                    return httpx.Response(status, json=body)
                return httpx.Response(status, text=body)
        return httpx.Response(404)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WikipediaClient(client=http, **kwargs), http


async def test_redirect_chain_resolved():
    requests = []
    client, http = make_client({}, requests)
    async with http:
        assert await client.resolve_canonical("Canine") == "Dog"
    params = requests[0].url.params
    assert params["redirects"] == "1"
    assert params["action"] == "query"


async def test_missing_page_is_none():
    client, http = make_client({}, [])
    async with http:
        assert await client.resolve_canonical("xyzzy_page") is None


async def test_server_error_is_retryable():
    client, http = make_client({}, [])
    async with http:
        with pytest.raises(RedirectServiceError) as excinfo:
            await client.resolve_canonical("Broken")
    assert excinfo.value.is_retryable


async def test_desktop_html_preferred_and_cached():
    requests = []
    client, http = make_client({"/page/html/Dog": (200, "<p>desktop dog</p>")}, requests)
    async with http:
        assert await client.fetch_content("Dog") == "<p>desktop dog</p>"
        assert await client.fetch_content("dog") == "<p>desktop dog</p>"
    assert len(requests) == 1


async def test_falls_back_to_mobile_then_summary():
    routes = {
        "/page/mobile-html/Cat": (200, "<p>mobile cat</p>"),
        "/page/summary/Bird": (200, {"extract_html": "<p>bird summary</p>", "extract": "bird"}),
    }
    requests = []
    client, http = make_client(routes, requests)
    async with http:
        assert await client.fetch_content("Cat") == "<p>mobile cat</p>"
        assert await client.fetch_content("Bird") == "<p>bird summary</p>"
    assert requests[1].url.host == "en.m.wikipedia.org"


async def test_spaces_encoded_as_underscores():
    requests = []
    client, http = make_client({"/page/html/New_York_City": (200, "<p>nyc</p>")}, requests)
    async with http:
        assert await client.fetch_content("New York City") == "<p>nyc</p>"


async def test_all_404_is_not_found():
    client, http = make_client({}, [])
    async with http:
        with pytest.raises(ArticleNotFoundError) as excinfo:
            await client.fetch_content("Nothing")
    assert not excinfo.value.is_retryable


async def test_server_errors_are_transient_after_retries():
    requests = []
    routes = {"/page/html/Flaky": (503, "down")}
    client, http = make_client(
        routes, requests, retry_policy=RetryPolicy(max_attempts=2, initial_delay=0.0, max_delay=0.0)
    )
    async with http:
        with pytest.raises(TransientContentError):
            await client.fetch_content("Flaky")
    desktop_hits = [r for r in requests if r.url.path.endswith("/page/html/Flaky")]
    assert len(desktop_hits) == 2


async def test_non_json_summary_counts_as_missing():
    routes = {"/page/summary/Odd": (200, "<html>not json</html>")}
    client, http = make_client(routes, [])
    async with http:
        with pytest.raises(ArticleNotFoundError):
            await client.fetch_content("Odd")
