"""
External context links.

Candidates may supply a few public links (portfolio, blog, LinkedIn). Each
link is validated, fetched with a short timeout and reduced to a title,
description, heading and text snippet with regular expressions. A link that
cannot be fetched becomes an unreachable summary instead of an error.
"""

import asyncio
import ipaddress
import re
import socket
from typing import Any, NamedTuple

import httpx
from rich.console import Console

from hirescope.cache import TTLCache
from hirescope.concurrency import map_with_concurrency
from hirescope.http_client import _get_async_http_client
from hirescope.outcome import attempt

console = Console(stderr=True)

MAX_CONTEXT_LINKS = 8
MAX_LABEL_CHARS = 60
FETCH_TIMEOUT_SECONDS = 7.0
MAX_SNIPPET_CHARS = 320
MAX_HIGHLIGHT_CHARS = 240
MAX_HIGHLIGHTS = 3
LINK_FETCH_CONCURRENCY = 2
MAX_REDIRECTS = 5

USER_AGENT = "HireScope-App"
ACCEPT_HTML = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,text/plain;q=0.8,*/*;q=0.5"
)

BLOCKED_HOSTS = frozenset({"localhost", "0.0.0.0", "::1", "169.254.169.254"})

LINKEDIN_NOTE = (
    "LinkedIn pages are usually auth-gated and block automated fetches; "
    "recommendation uses GitHub evidence with limited external context."
)
TIMEOUT_NOTE = "Timed out while fetching this link."
UNREACHABLE_NOTE = "Unable to fetch this link from the server."

_SCRIPT_BLOCK = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_NUMERIC_IPV4 = re.compile(r"(0x[0-9a-f]+|\d+)(\.(0x[0-9a-f]+|\d+)){0,3}")
_TITLE = re.compile(r"<title[^>]*>([\s\S]{1,400}?)</title>", re.IGNORECASE)
_H1 = re.compile(r"<h1[^>]*>([\s\S]{1,500}?)</h1>", re.IGNORECASE)
_RESTRICTED_TEXT = re.compile(
    r"sign in|join linkedin|logged out|authentication required|challenge",
    re.IGNORECASE,
)
_ENTITIES = (
    (re.compile(r"&nbsp;", re.IGNORECASE), " "),
    (re.compile(r"&amp;", re.IGNORECASE), "&"),
    (re.compile(r"&quot;", re.IGNORECASE), '"'),
    (re.compile(r"&#39;", re.IGNORECASE), "'"),
)


class ContextLink(NamedTuple):
    label: str
    url: str


class LinkSummary(NamedTuple):
    """What could be learned from one external link."""

    label: str
    url: str
    final_url: str
    status: int = 0
    reachable: bool = False
    restricted: bool = False
    title: str = ""
    description: str = ""
    heading: str = ""
    snippet: str = ""
    note: str = ""


class ExternalContextSummary(NamedTuple):
    note: str
    highlights: list[str]
    totals: dict[str, int]


def _parse_ip_host(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """
    Parse a literal IP host, including the shorthand and numeric IPv4 forms
    (`127.1`, `2130706433`, `0x7f000001`) that resolvers expand.
    """
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None
        if _NUMERIC_IPV4.fullmatch(host):
            try:
                address = ipaddress.ip_address(socket.inet_ntoa(socket.inet_aton(host)))
            except OSError:
                return None
    if address is not None and address.version == 6 and address.ipv4_mapped:
        return address.ipv4_mapped
    return address


def is_blocked_host(host: str) -> bool:
    """Reject loopback, private, link-local and unspecified destinations."""
    host = host.strip("[]").rstrip(".").lower()
    if not host or host in BLOCKED_HOSTS:
        return True
    address = _parse_ip_host(host)
    if address is None:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
        or address.is_reserved
    )


def _default_label(host: str) -> str:
    hostname = re.sub(r"^www\.", "", host)
    return hostname.split(".")[0] or "External Context"


def normalize_context_links(items: Any) -> list[ContextLink]:
    """
    Validate user-supplied links.

    Args:
        items: Up to 8 URL strings or {"label", "url"} mappings; extra
            entries are ignored.

    Returns:
        Safe http(s) links with a label of at most 60 characters.
    """
    if not isinstance(items, (list, tuple)):
        return []

    links = []
    for item in items[:MAX_CONTEXT_LINKS]:
        raw_label = ""
        raw_url = ""
        if isinstance(item, str):
            raw_url = item.strip()
        elif isinstance(item, dict):
            label = item.get("label")
            url = item.get("url")
            raw_label = label.strip() if isinstance(label, str) else ""
            raw_url = url.strip() if isinstance(url, str) else ""

        if not raw_url:
            continue

        try:
            parsed = httpx.URL(raw_url)
        except httpx.InvalidURL:
            continue

        if parsed.scheme.lower() not in ("http", "https"):
            continue
        host = parsed.host.lower()
        if is_blocked_host(host):
            continue

        label = raw_label or _default_label(host)
        links.append(ContextLink(label=label[:MAX_LABEL_CHARS], url=str(parsed)))

    return links


def compact_text(value: str) -> str:
    """Strip markup and collapse whitespace."""
    if not isinstance(value, str):
        return ""
    text = _SCRIPT_BLOCK.sub(" ", value)
    text = _STYLE_BLOCK.sub(" ", text)
    text = _TAG.sub(" ", text)
    for pattern, replacement in _ENTITIES:
        text = pattern.sub(replacement, text)
    return re.sub(r"\s+", " ", text).strip()


def extract_meta(html: str, attr_name: str, attr_value: str) -> str:
    """Content of a <meta> tag matched by attribute, in either attribute order."""
    if not html:
        return ""
    escaped = re.escape(attr_value)
    patterns = (
        rf"<meta[^>]*{attr_name}=[\"']{escaped}[\"'][^>]*content=[\"']([^\"']{{1,600}})[\"'][^>]*>",
        rf"<meta[^>]*content=[\"']([^\"']{{1,600}})[\"'][^>]*{attr_name}=[\"']{escaped}[\"'][^>]*>",
    )
    for pattern in patterns:
        match = re.search(pattern, html, re.IGNORECASE)
        if match and match.group(1):
            return compact_text(match.group(1))
    return ""


def extract_page_summary(html: str) -> dict[str, str]:
    """Title, description, first heading and a short body snippet."""
    title_match = _TITLE.search(html)
    heading_match = _H1.search(html)
    description = (
        extract_meta(html, "property", "og:description")
        or extract_meta(html, "name", "description")
        or extract_meta(html, "property", "twitter:description")
    )
    return {
        "title": compact_text(title_match.group(1)) if title_match else "",
        "description": description,
        "heading": compact_text(heading_match.group(1)) if heading_match else "",
        "snippet": compact_text(html)[:MAX_SNIPPET_CHARS],
    }


def is_linkedin_url(raw_url: str) -> bool:
    if not isinstance(raw_url, str) or not raw_url.strip():
        return False
    try:
        host = httpx.URL(raw_url).host
    except httpx.InvalidURL:
        return bool(re.search(r"linkedin\.com", raw_url, re.IGNORECASE))
    hostname = re.sub(r"^www\.", "", host.lower())
    return hostname == "linkedin.com" or hostname.endswith(".linkedin.com")


class BlockedRedirectError(Exception):
    """A redirect pointed at a non-http(s) or internal destination."""


async def _get(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """GET `url`, following redirects only to public http(s) destinations."""
    target = httpx.URL(url)
    for _ in range(MAX_REDIRECTS + 1):
        response = await client.get(
            target,
            headers={"User-Agent": USER_AGENT, "Accept": ACCEPT_HTML},
            follow_redirects=False,
            timeout=FETCH_TIMEOUT_SECONDS,
        )
        if not response.is_redirect:
            return response
        target = response.url.join(response.headers["location"])
        if target.scheme not in ("http", "https") or is_blocked_host(target.host):
            raise BlockedRedirectError(f"redirect to {target} is not allowed")
    raise httpx.TooManyRedirects(
        "Exceeded maximum allowed redirects.", request=response.request
    )


async def fetch_context_link(
    link: ContextLink,
    cache: TTLCache | None = None,
    client: httpx.AsyncClient | None = None,
) -> LinkSummary:
    """
    Fetch one link and summarize it. Never raises for network failures.

    The whole exchange, redirects and body included, is bounded by
    FETCH_TIMEOUT_SECONDS of wall-clock time.
    """
    cache_key = f"external-context|{link.url}"
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

    if is_linkedin_url(link.url):
        summary = LinkSummary(
            label=link.label,
            url=link.url,
            final_url=link.url,
            reachable=True,
            restricted=True,
            note=LINKEDIN_NOTE,
        )
    else:
        client = client or await _get_async_http_client()
        outcome = await attempt(
            asyncio.wait_for(_get(client, link.url), FETCH_TIMEOUT_SECONDS)
        )
        if outcome.ok:
            summary = _summarize_response(link, outcome.value)
        else:
            timed_out = isinstance(
                outcome.error, (httpx.TimeoutException, asyncio.TimeoutError)
            )
            console.print(
                f"  [yellow]⚠️  Could not fetch {link.url}: {outcome.describe()}[/yellow]"
            )
            summary = LinkSummary(
                label=link.label,
                url=link.url,
                final_url=link.url,
                note=TIMEOUT_NOTE if timed_out else UNREACHABLE_NOTE,
            )

    if cache is not None:
        cache.set(cache_key, summary)
    return summary


def _summarize_response(link: ContextLink, response: httpx.Response) -> LinkSummary:
    extracted = extract_page_summary(response.text)
    final_url = str(response.url) if response.url else link.url

    detection_text = " ".join(
        (
            extracted["title"],
            extracted["description"],
            extracted["heading"],
            extracted["snippet"],
        )
    )
    restricted = is_linkedin_url(final_url) and bool(
        _RESTRICTED_TEXT.search(detection_text)
    )

    if not response.is_success:
        note = f"Could not access page content (status {response.status_code})."
    elif restricted:
        note = "Page responded but public content is limited (likely auth-gated)."
    else:
        note = "Public metadata and text snippet extracted."

    return LinkSummary(
        label=link.label,
        url=link.url,
        final_url=final_url,
        status=response.status_code,
        reachable=response.is_success,
        restricted=restricted,
        note=note,
        **extracted,
    )


async def resolve_external_context(
    links: list[ContextLink],
    cache: TTLCache | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[LinkSummary]:
    """Fetch all links, two at a time, in input order."""
    if not links:
        return []
    return await map_with_concurrency(
        links,
        LINK_FETCH_CONCURRENCY,
        lambda link: fetch_context_link(link, cache=cache, client=client),
    )


def build_external_context_signals(summaries: list[LinkSummary]) -> list[str]:
    """One descriptive line per link."""
    signals = []
    for entry in summaries:
        if not entry.reachable:
            signals.append(f"{entry.label}: {entry.note}")
            continue

        if entry.restricted:
            detail = entry.title or entry.description or "Limited public details available."
            signals.append(f"{entry.label}: restricted public view. {detail}")
            continue

        parts = []
        if entry.title:
            parts.append(f"title: {entry.title}")
        if entry.description:
            parts.append(f"description: {entry.description}")
        if not parts and entry.snippet:
            parts.append(f"snippet: {entry.snippet}")
        detail = " | ".join(parts) or "Public link reachable but no clear summary text."
        signals.append(f"{entry.label}: {detail}")
    return signals


def summarize_external_context(summaries: list[LinkSummary]) -> ExternalContextSummary:
    """Recommendation note, up to three highlights and reachability totals."""
    if not summaries:
        return ExternalContextSummary(
            note="No external profile links were provided for additional hiring context.",
            highlights=[],
            totals={"total": 0, "reachable": 0, "usable": 0},
        )

    reachable = [entry for entry in summaries if entry.reachable]
    usable = [entry for entry in reachable if not entry.restricted]

    highlights = []
    for entry in usable:
        segments = [
            value.strip()
            for value in (entry.title, entry.description, entry.heading)
            if value and value.strip()
        ]
        unique = list(dict.fromkeys(segments))[:2]
        if not unique:
            continue
        highlights.append(f"{entry.label}: {' | '.join(unique)}"[:MAX_HIGHLIGHT_CHARS])
    highlights = highlights[:MAX_HIGHLIGHTS]

    if highlights:
        note = "External context considered: " + " || ".join(highlights)
    elif reachable:
        note = (
            "External links were reachable but mostly restricted/auth-gated, so "
            "recommendation stays mostly weighted toward GitHub evidence."
        )
    else:
        note = (
            "External links could not be fetched from the server, so recommendation "
            "is based on GitHub evidence only."
        )

    return ExternalContextSummary(
        note=note,
        highlights=highlights,
        totals={
            "total": len(summaries),
            "reachable": len(reachable),
            "usable": len(usable),
        },
    )
