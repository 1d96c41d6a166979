"""Pure-text link extraction for ticket and design URLs.

Every function here is total: malformed input yields an empty result,
never an exception. No network I/O.

Usage:
    urls = find_ticket_urls(pr_body, hosts=["jira.example.com"])
    key = extract_ticket_key_from_url(urls[0])          # "PROJ-123"
    info = parse_design_url("https://www.figma.com/design/AbC/Page?node-id=1-2")
    # DesignUrlInfo(file_key="AbC", node_id="1:2", file_name="Page")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlsplit

# Ticket-hosting domains recognised without configuration
_DEFAULT_TICKET_HOST = r"[a-zA-Z0-9-]+\.atlassian\.net"

# Design-provider domains recognised without configuration (any subdomain)
_DEFAULT_DESIGN_HOSTS = ("figma.com",)

# Characters a sentence or parenthetical can leave glued to a URL
_TRAILING_PUNCT = re.compile(r"[)\]}>.,;:!?]+$")

_KEY_PATTERNS = (
    re.compile(r"/browse/([A-Z][A-Z0-9]*-\d+)", re.IGNORECASE),
    re.compile(r"selectedIssue=([A-Z][A-Z0-9]*-\d+)", re.IGNORECASE),
    re.compile(r"/issues/([A-Z][A-Z0-9]*-\d+)", re.IGNORECASE),
    # Fallback: any TEAM-123-shaped token
    re.compile(r"([A-Z]{2,}-\d+)", re.IGNORECASE),
)

_DESIGN_PATH = re.compile(r"/(file|design|proto)/([a-zA-Z0-9]+)")
_NODE_ID_PARAM = re.compile(r"(?<=[?&])node-id=([^&#]*)")


@dataclass(frozen=True)
class DesignUrlInfo:
    file_key: str
    node_id: Optional[str] = None
    file_name: Optional[str] = None


def strip_trailing_punctuation(url: str) -> str:
    return _TRAILING_PUNCT.sub("", url.strip())


def _dedup(items: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _host_alternation(default: str, hosts: Optional[Iterable[str]]) -> str:
    alternatives = [default]
    for host in hosts or ():
        host = host.strip().lower()
        if host:
            alternatives.append(re.escape(host))
    return "(?:" + "|".join(alternatives) + ")"


# ---------------------------------------------------------------------------
# Ticket URLs
# ---------------------------------------------------------------------------


def find_ticket_urls(text: Optional[str], hosts: Optional[Iterable[str]] = None) -> List[str]:
    """Find ticket URLs in free text (a PR description).

    Bare URLs, markdown ``[label](url)`` links and HTML ``href="url"``
    attributes are all recognised. Results are cleaned of trailing
    punctuation and deduplicated in first-seen order.

    Args:
        text: Text to scan. ``None`` or non-string input yields ``[]``.
        hosts: Extra host names accepted besides ``*.atlassian.net``.
    """
    if not text or not isinstance(text, str):
        return []

    host = _host_alternation(_DEFAULT_TICKET_HOST, hosts)
    direct = re.compile(rf"https?://{host}/[^\s\])\"'>]*", re.IGNORECASE)
    markdown = re.compile(rf"\[[^\]]*\]\((https?://{host}/[^)\s]+)\)", re.IGNORECASE)
    html = re.compile(rf"href=[\"'](https?://{host}/[^\"']+)[\"']", re.IGNORECASE)

    urls: List[str] = [m.group(0) for m in direct.finditer(text)]
    urls.extend(m.group(1) for m in markdown.finditer(text))
    urls.extend(m.group(1) for m in html.finditer(text))

    return _dedup(strip_trailing_punctuation(url) for url in urls)


def extract_ticket_key_from_url(url: Optional[str]) -> Optional[str]:
    """Return the upper-cased ticket key carried by a URL, or None.

    Recognises ``/browse/KEY``, ``selectedIssue=KEY`` and ``/issues/KEY``,
    then falls back to any ``TEAM-123``-shaped token in the URL.
    """
    if not url or not isinstance(url, str):
        return None

    clean = strip_trailing_punctuation(url)
    for pattern in _KEY_PATTERNS:
        match = pattern.search(clean)
        if match:
            return match.group(1).upper()
    return None


# ---------------------------------------------------------------------------
# Design URLs
# ---------------------------------------------------------------------------


def _is_design_host(hostname: str, hosts: Optional[Iterable[str]]) -> bool:
    hostname = hostname.lower()
    candidates = list(_DEFAULT_DESIGN_HOSTS) + [h.strip().lower() for h in hosts or () if h.strip()]
    return any(hostname == h or hostname.endswith("." + h) for h in candidates)


def _api_node_id(raw: str) -> str:
    # Node IDs in URLs use "-" but the API expects ":"
    return unquote(raw).replace("-", ":")


def parse_design_url(url: Optional[str], hosts: Optional[Iterable[str]] = None) -> Optional[DesignUrlInfo]:
    """Parse a design URL into file key, API node id and file name.

    Supported path shapes: ``/file/KEY/...``, ``/design/KEY/...`` and
    ``/proto/KEY/...``. The ``node-id`` query value is percent-decoded and
    translated to the API separator (``1-2`` -> ``1:2``).
    """
    if not url or not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None

    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    if not _is_design_host(parts.hostname, hosts):
        return None

    path_match = _DESIGN_PATH.search(parts.path)
    if not path_match:
        return None

    node_id: Optional[str] = None
    node_match = _NODE_ID_PARAM.search("?" + parts.query) if parts.query else None
    if node_match and node_match.group(1):
        node_id = _api_node_id(node_match.group(1))

    segments = [s for s in parts.path.split("/") if s]
    file_name = unquote(segments[-1]) if len(segments) > 2 else None

    return DesignUrlInfo(file_key=path_match.group(2), node_id=node_id, file_name=file_name)


def is_design_url(url: Optional[str], hosts: Optional[Iterable[str]] = None) -> bool:
    return parse_design_url(url, hosts) is not None


def normalize_design_url(url: str) -> str:
    """Rewrite the ``node-id`` query value into API form, preserving the rest."""
    url = url.strip()
    return _NODE_ID_PARAM.sub(lambda m: "node-id=" + _api_node_id(m.group(1)), url)


def find_design_urls(text: Optional[str], hosts: Optional[Iterable[str]] = None) -> List[str]:
    """Scan free text for valid design URLs, normalised and deduplicated."""
    if not text or not isinstance(text, str):
        return []

    domains = [re.escape(h) for h in _DEFAULT_DESIGN_HOSTS]
    domains += [re.escape(h.strip().lower()) for h in hosts or () if h.strip()]
    pattern = re.compile(
        r"https?://(?:[a-zA-Z0-9-]+\.)*(?:" + "|".join(domains) + r")"
        r"/(?:file|design|proto)/[^\s)\]\"'<>]+",
        re.IGNORECASE,
    )

    found: List[str] = []
    for match in pattern.finditer(text):
        candidate = strip_trailing_punctuation(match.group(0))
        if is_design_url(candidate, hosts):
            found.append(normalize_design_url(candidate))
    return _dedup(found)


def validate_design_links(links: Iterable[object], hosts: Optional[Iterable[str]] = None) -> List[str]:
    """Keep only well-formed design URLs, normalised and deduplicated in order."""
    valid: List[str] = []
    for link in links:
        if isinstance(link, str) and is_design_url(link.strip(), hosts):
            valid.append(normalize_design_url(link))
    return _dedup(valid)
