import pytest
import requests

from backend.app.services.errors import InvalidIdentifier, ResolutionFailed
from backend.app.services.resolver import (
    ChannelResolver,
    Resolution,
    extract_channel_id,
    extract_channel_id_from_canonical_link,
    extract_channel_id_from_json,
)
from conftest import (
    CHANNEL_ID,
    OTHER_CHANNEL_ID,
    FakeResponse,
    FakeSession,
    canonical_link_page,
    channel_page,
)


HANDLE_URL = "https://www.youtube.com/@SomeHandle"


def test_json_strategy_requires_fixed_length_id():
    assert extract_channel_id_from_json(channel_page(CHANNEL_ID)) == CHANNEL_ID
    # 25 characters: too long for the fixed-length pattern.
    assert extract_channel_id_from_json('"channelId":"UC' + "x" * 22 + 'A"') is None
    # Last character outside [AQgw].
    assert extract_channel_id_from_json('"channelId":"UC' + "x" * 22 + '"') is None


def test_canonical_link_strategy():
    assert extract_channel_id_from_canonical_link(canonical_link_page(CHANNEL_ID)) == CHANNEL_ID
    assert extract_channel_id_from_canonical_link("<html></html>") is None


def test_strategies_run_in_order():
    html = canonical_link_page(OTHER_CHANNEL_ID) + channel_page(CHANNEL_ID)
    assert extract_channel_id(html) == CHANNEL_ID
    assert extract_channel_id(canonical_link_page(OTHER_CHANNEL_ID)) == OTHER_CHANNEL_ID
    assert extract_channel_id("") is None


def test_canonical_id_needs_no_network():
    session = FakeSession()
    resolver = ChannelResolver(session=session)
    assert resolver.resolve(CHANNEL_ID) == Resolution(CHANNEL_ID, None)
    assert session.calls == []


def test_handle_resolves_from_page_json():
    session = FakeSession({HANDLE_URL: channel_page(CHANNEL_ID)})
    resolver = ChannelResolver(session=session, timeout=2.5)

    first = resolver.resolve("@SomeHandle")
    second = resolver.resolve("@SomeHandle")

    assert first == Resolution(CHANNEL_ID, "@SomeHandle")
    assert second == first
    assert [call["url"] for call in session.calls] == [HANDLE_URL, HANDLE_URL]
    assert session.calls[0]["headers"]["User-Agent"] == "Mozilla/5.0"
    assert session.calls[0]["timeout"] == 2.5


def test_handle_falls_back_to_canonical_link():
    session = FakeSession({HANDLE_URL: canonical_link_page(CHANNEL_ID)})
    resolver = ChannelResolver(session=session)
    assert resolver.resolve("@SomeHandle") == Resolution(CHANNEL_ID, "@SomeHandle")


def test_handle_without_any_pattern_fails():
    session = FakeSession({HANDLE_URL: "<html>nothing here</html>"})
    with pytest.raises(ResolutionFailed):
        ChannelResolver(session=session).resolve("@SomeHandle")


def test_url_resolves_without_display_name():
    url = "https://www.youtube.com/c/SomeCustomName"
    session = FakeSession({url: channel_page(CHANNEL_ID)})
    assert ChannelResolver(session=session).resolve(url) == Resolution(CHANNEL_ID, None)


def test_url_without_scheme_is_fetched_over_https():
    session = FakeSession({"https://youtube.com/c/SomeCustomName": channel_page(CHANNEL_ID)})
    resolution = ChannelResolver(session=session).resolve("youtube.com/c/SomeCustomName")
    assert resolution.channel_id == CHANNEL_ID


def test_foreign_hosts_and_unknown_shapes_are_rejected_without_io():
    session = FakeSession()
    resolver = ChannelResolver(session=session)
    for value in ("https://evil.example/youtube.com/c/x", "notachannel", "", "UCshort"):
        with pytest.raises(InvalidIdentifier):
            resolver.resolve(value)
    assert session.calls == []


def test_transport_errors_and_bad_status_become_resolution_failed():
    session = FakeSession(
        {
            HANDLE_URL: requests.Timeout("slow"),
            "https://www.youtube.com/@Missing": FakeResponse(channel_page(CHANNEL_ID), status_code=404),
        }
    )
    resolver = ChannelResolver(session=session)
    with pytest.raises(ResolutionFailed):
        resolver.resolve("@SomeHandle")
    with pytest.raises(ResolutionFailed):
        resolver.resolve("@Missing")


def test_resolution_failed_hides_upstream_detail():
    session = FakeSession({HANDLE_URL: "<html>secret upstream body</html>"})
    with pytest.raises(ResolutionFailed) as exc_info:
        ChannelResolver(session=session).resolve("@SomeHandle")
    assert "secret" not in exc_info.value.detail
    assert exc_info.value.error_code == "resolution_failed"
