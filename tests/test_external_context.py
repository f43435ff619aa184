"""
Tests for external context links.
"""

import asyncio
import time

import httpx
import pytest

from hirescope import external_context
from hirescope.cache import TTLCache
from hirescope.external_context import (
    LINKEDIN_NOTE,
    TIMEOUT_NOTE,
    UNREACHABLE_NOTE,
    ContextLink,
    LinkSummary,
    build_external_context_signals,
    compact_text,
    extract_page_summary,
    fetch_context_link,
    is_blocked_host,
    is_linkedin_url,
    normalize_context_links,
    resolve_external_context,
    summarize_external_context,
)

PORTFOLIO_HTML = """
<html><head>
<title>Jane Doe &amp; Co</title>
<meta content="Backend engineer building data tools" name="description">
<style>body { color: red; }</style>
<script>console.log("hidden")</script>
</head>
<body><h1>Hi, I'm <b>Jane</b></h1><p>I build   things.</p></body></html>
"""


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestNormalizeContextLinks:
    def test_strings_and_mappings(self):
        links = normalize_context_links(
            [
                "https://www.jane.dev/about",
                {"label": "  Blog ", "url": "https://blog.example.org/posts"},
            ]
        )

        assert links == [
            ContextLink("jane", "https://www.jane.dev/about"),
            ContextLink("Blog", "https://blog.example.org/posts"),
        ]

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://files.example.org/cv.pdf",
            "http://localhost:8000/admin",
            "http://127.0.0.1/",
            "http://10.0.0.8/internal",
            "http://192.168.1.1/",
            "http://169.254.169.254/latest/meta-data",
            "http://[::1]/",
            "http://127.1/",
            "http://2130706433/",
            "http://0x7f000001/",
            "http://10.1/",
            "http://[::ffff:127.0.0.1]/",
            "not a url",
            "",
        ],
    )
    def test_unsafe_or_invalid_urls_dropped(self, url):
        assert normalize_context_links([url]) == []

    def test_at_most_eight_links(self):
        urls = [f"https://site{i}.example.org/" for i in range(12)]
        assert len(normalize_context_links(urls)) == 8

    def test_label_truncated(self):
        links = normalize_context_links(
            [{"label": "x" * 100, "url": "https://example.org/a"}]
        )
        assert len(links[0].label) == 60

    def test_non_list_input(self):
        assert normalize_context_links("https://example.org") == []
        assert normalize_context_links(None) == []


def test_is_blocked_host():
    assert is_blocked_host("LOCALHOST")
    assert is_blocked_host("0.0.0.0")
    assert is_blocked_host("172.16.0.4")
    assert not is_blocked_host("example.org")
    assert not is_blocked_host("8.8.8.8")


@pytest.mark.parametrize(
    "host", ["127.1", "2130706433", "0x7f000001", "10.1", "0x0a.0.0.1", "::ffff:10.0.0.1"]
)
def test_shorthand_internal_addresses_blocked(host):
    assert is_blocked_host(host)


@pytest.mark.parametrize("host", ["134744072", "8.8.8.8.", "cafe.dev", "1.example.org"])
def test_public_hosts_allowed(host):
    assert not is_blocked_host(host)


def test_is_linkedin_url():
    assert is_linkedin_url("https://www.linkedin.com/in/jane")
    assert is_linkedin_url("https://de.linkedin.com/in/jane")
    assert not is_linkedin_url("https://notlinkedin.com/in/jane")
    assert not is_linkedin_url("")


class TestPageSummary:
    def test_extracts_fields(self):
        summary = extract_page_summary(PORTFOLIO_HTML)

        assert summary["title"] == "Jane Doe & Co"
        assert summary["description"] == "Backend engineer building data tools"
        assert summary["heading"] == "Hi, I'm Jane"
        assert "hidden" not in summary["snippet"]
        assert "color" not in summary["snippet"]
        assert "I build things." in summary["snippet"]

    def test_og_description_preferred(self):
        html = (
            '<meta name="description" content="plain">'
            '<meta property="og:description" content="open graph">'
        )
        assert extract_page_summary(html)["description"] == "open graph"

    def test_compact_text(self):
        assert compact_text("<p>a&nbsp;&nbsp;b</p>\n\n<i>c</i>") == "a b c"
        assert compact_text(None) == ""

    def test_snippet_capped(self):
        html = "<p>" + "word " * 200 + "</p>"
        assert len(extract_page_summary(html)["snippet"]) == 320


class TestFetchContextLink:
    def test_reachable_page(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, text=PORTFOLIO_HTML)

        link = ContextLink("Portfolio", "https://jane.dev/")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert summary.reachable is True
        assert summary.restricted is False
        assert summary.status == 200
        assert summary.title == "Jane Doe & Co"
        assert summary.note == "Public metadata and text snippet extracted."
        assert seen["user-agent"] == "HireScope-App"

    def test_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="<title>Down</title>")

        link = ContextLink("Blog", "https://blog.example.org/")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert summary.reachable is False
        assert summary.status == 503
        assert summary.note == "Could not access page content (status 503)."

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        link = ContextLink("Blog", "https://blog.example.org/")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert summary.reachable is False
        assert summary.note == TIMEOUT_NOTE

    def test_slow_body_is_cut_off_by_wall_clock_timeout(self, monkeypatch):
        monkeypatch.setattr(external_context, "FETCH_TIMEOUT_SECONDS", 0.3)

        async def trickle():
            for _ in range(50):
                await asyncio.sleep(0.1)
                yield b"<"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=trickle())

        link = ContextLink("Blog", "https://blog.example.org/")
        started = time.monotonic()
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert time.monotonic() - started < 2.0
        assert summary.reachable is False
        assert summary.note == TIMEOUT_NOTE

    def test_public_redirect_is_followed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/":
                return httpx.Response(301, headers={"Location": "/home"})
            return httpx.Response(200, text="<title>Home</title>")

        link = ContextLink("Portfolio", "https://jane.dev/")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert summary.reachable is True
        assert summary.final_url == "https://jane.dev/home"
        assert summary.title == "Home"

    @pytest.mark.parametrize(
        "location",
        [
            "http://169.254.169.254/latest/meta-data",
            "http://127.1/admin",
            "file:///etc/passwd",
        ],
    )
    def test_redirect_to_internal_address_is_refused(self, location):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(302, headers={"Location": location})

        link = ContextLink("Blog", "https://blog.example.org/")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert requested == ["https://blog.example.org/"]
        assert summary.reachable is False
        assert summary.note == UNREACHABLE_NOTE

    def test_redirect_loop_gives_up(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "https://blog.example.org/"})

        link = ContextLink("Blog", "https://blog.example.org/")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert summary.note == UNREACHABLE_NOTE


    def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        link = ContextLink("Blog", "https://blog.example.org/")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert summary.note == UNREACHABLE_NOTE

    def test_linkedin_is_not_fetched(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("LinkedIn should not be requested")

        link = ContextLink("LinkedIn", "https://www.linkedin.com/in/jane")
        summary = asyncio.run(fetch_context_link(link, client=_client(handler)))

        assert summary.restricted is True
        assert summary.reachable is True
        assert summary.note == LINKEDIN_NOTE

    def test_results_cached_including_failures(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url)
            raise httpx.ConnectError("refused", request=request)

        cache = TTLCache("link", 3600)
        client = _client(handler)
        link = ContextLink("Blog", "https://blog.example.org/")

        async def run():
            await fetch_context_link(link, cache=cache, client=client)
            return await fetch_context_link(link, cache=cache, client=client)

        summary = asyncio.run(run())

        assert summary.note == UNREACHABLE_NOTE
        assert len(calls) == 1

    def test_resolve_keeps_input_order(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=f"<title>{request.url.host}</title>")

        links = [ContextLink(f"site{i}", f"https://site{i}.example.org/") for i in range(4)]
        summaries = asyncio.run(
            resolve_external_context(links, client=_client(handler))
        )

        assert [s.title for s in summaries] == [f"site{i}.example.org" for i in range(4)]


def _summary(label, **fields) -> LinkSummary:
    return LinkSummary(label=label, url="https://x.org", final_url="https://x.org", **fields)


class TestSummaries:
    def test_signal_lines(self):
        summaries = [
            _summary("Down", note=UNREACHABLE_NOTE),
            _summary("LinkedIn", reachable=True, restricted=True),
            _summary("Blog", reachable=True, title="Notes", description="Essays"),
            _summary("Bare", reachable=True, snippet="hello world"),
            _summary("Empty", reachable=True),
        ]

        assert build_external_context_signals(summaries) == [
            f"Down: {UNREACHABLE_NOTE}",
            "LinkedIn: restricted public view. Limited public details available.",
            "Blog: title: Notes | description: Essays",
            "Bare: snippet: hello world",
            "Empty: Public link reachable but no clear summary text.",
        ]

    def test_no_links(self):
        result = summarize_external_context([])

        assert result.highlights == []
        assert result.totals == {"total": 0, "reachable": 0, "usable": 0}
        assert "No external profile links" in result.note

    def test_highlights_deduplicate_and_cap(self):
        summaries = [
            _summary(f"Site{i}", reachable=True, title="Same", heading="Same", description="Desc")
            for i in range(5)
        ]
        result = summarize_external_context(summaries)

        assert len(result.highlights) == 3
        assert result.highlights[0] == "Site0: Same | Desc"
        assert result.note.startswith("External context considered: ")
        assert result.totals == {"total": 5, "reachable": 5, "usable": 5}

    def test_only_restricted_links(self):
        result = summarize_external_context(
            [_summary("LinkedIn", reachable=True, restricted=True)]
        )
        assert "restricted/auth-gated" in result.note
        assert result.totals["usable"] == 0

    def test_only_unreachable_links(self):
        result = summarize_external_context([_summary("Down")])
        assert "GitHub evidence only" in result.note
