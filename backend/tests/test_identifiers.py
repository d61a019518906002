from backend.app.services.identifiers import (
    clean_channel_id,
    is_canonical_channel_id,
    looks_like_handle,
)
from conftest import CHANNEL_ID


def test_is_canonical_channel_id():
    assert is_canonical_channel_id(CHANNEL_ID)
    assert is_canonical_channel_id("UC" + "a" * 18)
    assert not is_canonical_channel_id("UC" + "a" * 17)
    assert not is_canonical_channel_id("UX" + "a" * 22)
    assert not is_canonical_channel_id(f"{CHANNEL_ID}/videos")
    assert not is_canonical_channel_id("")
    assert not is_canonical_channel_id(None)


def test_looks_like_handle():
    assert looks_like_handle("@SomeHandle")
    assert not looks_like_handle("@")
    assert not looks_like_handle("SomeHandle")


def test_canonical_and_handle_inputs_pass_through():
    assert clean_channel_id(CHANNEL_ID) == CHANNEL_ID
    assert clean_channel_id("@SomeHandle") == "@SomeHandle"
    assert clean_channel_id(f"  {CHANNEL_ID}\n") == CHANNEL_ID


def test_channel_and_handle_urls():
    assert clean_channel_id(f"https://www.youtube.com/channel/{CHANNEL_ID}") == CHANNEL_ID
    assert clean_channel_id(f"https://www.youtube.com/channel/{CHANNEL_ID}/videos?view=0") == CHANNEL_ID
    assert clean_channel_id("https://www.youtube.com/@SomeHandle/videos") == "@SomeHandle"
    assert clean_channel_id("https://m.youtube.com/@SomeHandle") == "@SomeHandle"


def test_bare_paths_get_a_synthesized_base():
    assert clean_channel_id(f"/channel/{CHANNEL_ID}") == CHANNEL_ID
    assert clean_channel_id(f"channel/{CHANNEL_ID}/about") == CHANNEL_ID
    assert clean_channel_id("youtube.com/@SomeHandle") == "@SomeHandle"
    assert clean_channel_id(f"{CHANNEL_ID}/") == CHANNEL_ID


def test_first_matching_segment_wins():
    raw = f"https://www.youtube.com/@SomeHandle/channel/{CHANNEL_ID}"
    assert clean_channel_id(raw) == "@SomeHandle"


def test_regex_fallback_when_url_cannot_be_parsed():
    # Unbalanced IPv6 bracket makes urlsplit raise ValueError.
    assert clean_channel_id(f"http://[{CHANNEL_ID}/") == CHANNEL_ID


def test_embedded_id_found_outside_the_path():
    raw = f"https://www.youtube.com/watch?channel={CHANNEL_ID}"
    assert clean_channel_id(raw) == CHANNEL_ID


def test_unrecognised_input_is_returned_unchanged():
    assert clean_channel_id("https://www.youtube.com/c/SomeCustomName") == "https://www.youtube.com/c/SomeCustomName"
    assert clean_channel_id("just some words") == "just some words"
    assert clean_channel_id("UCshort") == "UCshort"
    assert clean_channel_id("") == ""
    assert clean_channel_id(None) == ""
