import pytest

from backend.app.services.channel_store import ChannelStore
from backend.app.services.channels import ChannelService
from backend.app.services.rate_limit import FixedWindowRateLimiter
from backend.app.services.resolver import ChannelResolver
from backend.app.services.ttl_cache import StalenessCache


CHANNEL_ID = "UC" + "x" * 18 + "AQgw"
OTHER_CHANNEL_ID = "UC" + "y" * 18 + "AQgA"
ADMIN_ID = "admin-1"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200):
        self.text = text
        self.status_code = status_code


class FakeSession:
    """Stands in for requests.Session; pages maps url -> html, str, or an exception."""

    def __init__(self, pages: dict | None = None):
        self.pages = dict(pages or {})
        self.calls: list[dict] = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return FakeResponse("", status_code=404)
        if isinstance(page, FakeResponse):
            return page
        return FakeResponse(page)

    def close(self):
        pass


def channel_page(channel_id: str) -> str:
    return f'<html><script>var ytInitialData = {{"channelId":"{channel_id}","title":"x"}};</script></html>'


def canonical_link_page(channel_id: str) -> str:
    return f'<html><head><link rel="canonical" href="https://www.youtube.com/channel/{channel_id}"></head></html>'


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def store(tmp_path):
    channel_store = ChannelStore(tmp_path / "channels.sqlite")
    channel_store.init_db()
    return channel_store


@pytest.fixture
def service(store, session, clock):
    return ChannelService(
        store=store,
        cache=StalenessCache(ttl_seconds=10, clock=clock),
        resolver=ChannelResolver(session=session, timeout=3),
        global_limiter=FixedWindowRateLimiter(points=50, duration_seconds=10, scope="global", clock=clock),
        vote_limiter=FixedWindowRateLimiter(points=1, duration_seconds=60, scope="vote", clock=clock),
        admin_ids=[ADMIN_ID],
    )
