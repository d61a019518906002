import re
from urllib.parse import urlsplit


CHANNEL_ID_PREFIX = "UC"
CHANNEL_ID_MIN_LENGTH = 20
HANDLE_SIGIL = "@"

CANONICAL_CHANNEL_ID_RE = re.compile(r"UC[0-9A-Za-z_-]{18,}")

# Fallbacks for inputs that urlsplit could not turn into useful segments.
EXACT_OR_SLASHED_CHANNEL_ID_RE = re.compile(r"^UC[a-zA-Z0-9_-]{22}$|UC[a-zA-Z0-9_-]{22}/")
LEADING_HANDLE_RE = re.compile(r"^@[^/\s]+")
EMBEDDED_CHANNEL_ID_RE = re.compile(r"UC[a-zA-Z0-9_-]{20,}")


def is_canonical_channel_id(value: str | None) -> bool:
    """True for a bare ``UC...`` id of at least 20 URL-safe characters."""
    if not value:
        return False
    return CANONICAL_CHANNEL_ID_RE.fullmatch(value) is not None


def looks_like_handle(value: str | None) -> bool:
    return bool(value) and value.startswith(HANDLE_SIGIL) and len(value) > 1


def looks_like_channel_url(value: str | None) -> bool:
    return bool(value) and "youtube.com" in value.lower()


def _segment_is_channel_id(segment: str) -> bool:
    return segment.startswith(CHANNEL_ID_PREFIX) and len(segment) >= CHANNEL_ID_MIN_LENGTH


def _channel_segment_from_url(raw: str) -> str | None:
    if "http" in raw:
        url = raw
    elif raw.startswith("/"):
        url = f"https://youtube.com{raw}"
    else:
        url = f"https://youtube.com/{raw}"

    parts = urlsplit(url)
    for segment in parts.path.lstrip("/").split("/"):
        if _segment_is_channel_id(segment):
            return segment
        if segment.startswith(HANDLE_SIGIL):
            return segment
    return None


def _channel_segment_from_regex(raw: str) -> str | None:
    match = EXACT_OR_SLASHED_CHANNEL_ID_RE.search(raw)
    if match:
        return match.group(0).replace("/", "")

    match = LEADING_HANDLE_RE.search(raw)
    if match:
        return match.group(0)

    match = EMBEDDED_CHANNEL_ID_RE.search(raw)
    if match:
        return match.group(0)
    return None


def clean_channel_id(raw_id: str | None) -> str:
    """
    Best-effort reduction of user input to a channel id or @handle.
    Never raises and performs no I/O; unrecognised input comes back unchanged
    so the resolver can reject or fetch it.
    """
    raw = (raw_id or "").strip()
    if not raw:
        return raw

    if is_canonical_channel_id(raw):
        return raw

    if raw.startswith(HANDLE_SIGIL):
        return raw

    if looks_like_channel_url(raw) or "/" in raw:
        try:
            segment = _channel_segment_from_url(raw)
        except ValueError:
            segment = None
        if segment:
            return segment

        segment = _channel_segment_from_regex(raw)
        if segment:
            return segment

    return raw
