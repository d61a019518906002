import logging
import re
from typing import Callable, NamedTuple
from urllib.parse import quote, urlsplit

import requests

from .errors import InvalidIdentifier, ResolutionFailed
from .identifiers import is_canonical_channel_id, looks_like_channel_url, looks_like_handle


logger = logging.getLogger(__name__)

YOUTUBE_HANDLE_URL = "https://www.youtube.com/{handle}"
DEFAULT_USER_AGENT = "Mozilla/5.0"
RESOLVE_TIMEOUT_SECONDS = 5.0

JSON_CHANNEL_ID_RE = re.compile(r'"channelId":"(UC[0-9A-Za-z_-]{21}[AQgw])"')
CANONICAL_LINK_RE = re.compile(
    r'<link rel="canonical" href="https://www\.youtube\.com/channel/(UC[0-9A-Za-z_-]+)"'
)


class Resolution(NamedTuple):
    channel_id: str
    display_name: str | None = None


def extract_channel_id_from_json(html: str) -> str | None:
    match = JSON_CHANNEL_ID_RE.search(html or "")
    if match:
        return match.group(1)
    return None


def extract_channel_id_from_canonical_link(html: str) -> str | None:
    match = CANONICAL_LINK_RE.search(html or "")
    if match:
        return match.group(1)
    return None


# Tried in order; the first strategy to return an id wins.
EXTRACTION_STRATEGIES: tuple[Callable[[str], str | None], ...] = (
    extract_channel_id_from_json,
    extract_channel_id_from_canonical_link,
)


def extract_channel_id(html: str) -> str | None:
    for strategy in EXTRACTION_STRATEGIES:
        channel_id = strategy(html)
        if channel_id:
            return channel_id
    return None


def _channel_page_url(value: str) -> str:
    url = value if "://" in value else f"https://{value.lstrip('/')}"
    try:
        parts = urlsplit(url)
    except ValueError:
        raise InvalidIdentifier()
    host = (parts.hostname or "").lower()
    if parts.scheme not in {"http", "https"}:
        raise InvalidIdentifier()
    if host != "youtube.com" and not host.endswith(".youtube.com"):
        raise InvalidIdentifier()
    return url


class ChannelResolver:
    """
    Turns a normalized identifier into a canonical channel id.

    Canonical ids are returned as-is. Handles and channel URLs are fetched
    once and the page is scanned with EXTRACTION_STRATEGIES; there is no
    retry here, callers decide whether to try again.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = RESOLVE_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.user_agent = user_agent

    def resolve(self, normalized_id: str) -> Resolution:
        value = (normalized_id or "").strip()

        if is_canonical_channel_id(value):
            return Resolution(value)

        if looks_like_handle(value):
            url = YOUTUBE_HANDLE_URL.format(handle=quote(value, safe="@._-"))
            return Resolution(self._scrape_channel_id(url), value)

        if looks_like_channel_url(value):
            return Resolution(self._scrape_channel_id(_channel_page_url(value)))

        raise InvalidIdentifier()

    def _fetch_html(self, url: str) -> str:
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Channel page fetch failed for %s: %s", url, exc.__class__.__name__)
            raise ResolutionFailed()

        if response.status_code != 200:
            logger.warning("Channel page %s returned HTTP %s", url, response.status_code)
            raise ResolutionFailed()
        return response.text or ""

    def _scrape_channel_id(self, url: str) -> str:
        channel_id = extract_channel_id(self._fetch_html(url))
        if not channel_id:
            logger.warning("No channel id found on %s", url)
            raise ResolutionFailed()
        logger.info("Resolved %s to %s", url, channel_id)
        return channel_id

    def close(self) -> None:
        self.session.close()
