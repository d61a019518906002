from __future__ import annotations

import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import jwt
from starlette.requests import Request

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import backend.main as main_module
from backend.app.services.errors import ChannelError, RateLimited

CHANNEL_ID = "UCsmokeSmokeSmokeSmokeAw"
HANDLE = "@SmokeChannel"
SMOKE_JWT_SECRET = "smoke-session-secret-0123456789abcdef"


class SmokeResponse:
    status_code = 200
    text = f'<script>{{"channelId":"{CHANNEL_ID}"}}</script>'


def make_request(ip: str = "127.0.0.1") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [],
            "client": (ip, 8000),
            "query_string": b"",
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
        }
    )


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def build_service(db_dir: str):
    with patch.object(main_module, "CHANNEL_DB_PATH", Path(db_dir) / "smoke.sqlite"):
        return main_module.build_channel_service()


def test_health(_service) -> None:
    payload = main_module.health()
    assert_true(payload.get("ok") is True, "/health should return ok=true")


def test_channel_by_handle(service) -> None:
    call_count = {"get": 0}

    def fake_get(url: str, headers=None, timeout=None):
        _ = (headers, timeout)
        call_count["get"] += 1
        assert_true(url.endswith(HANDLE), f"unexpected fetch {url}")
        return SmokeResponse()

    with patch.object(service.resolver.session, "get", side_effect=fake_get):
        payload_1 = main_module.get_channel(HANDLE, make_request(), service=service)
        payload_2 = main_module.get_channel(CHANNEL_ID, make_request(), service=service)

    assert_true(payload_1["id"] == CHANNEL_ID, "/channel should resolve the handle")
    assert_true(payload_1["name"] == HANDLE, "/channel should backfill the handle as name")
    assert_true(payload_1 == payload_2, "/channel by id should return the same record")
    assert_true(call_count["get"] == 1, "canonical ids should not be fetched")


def test_vote_cooldown(service) -> None:
    request = make_request("198.51.100.20")
    vote = main_module.VoteRequest(channelId=CHANNEL_ID, vote="for")
    main_module.vote(vote, request, service=service)
    try:
        main_module.vote(vote, request, service=service)
    except RateLimited as exc:
        assert_true(exc.error_code == "vote_cooldown", "second vote should hit the cooldown")
    else:
        raise AssertionError("second vote inside the cooldown should fail")

    payload = main_module.get_channel(CHANNEL_ID, request, service=service)
    assert_true(payload["votesFor"] == 1, "/vote should be visible on the next read")


def test_verify(service) -> None:
    admin = next(iter(service.admin_ids), None)
    if admin is None:
        service.admin_ids = frozenset({"smoke-admin"})
        admin = "smoke-admin"
    verify = main_module.VerifyRequest(channelId=CHANNEL_ID, status=2)
    token = jwt.encode({"id": admin, "username": "smoke"}, SMOKE_JWT_SECRET, algorithm="HS256")
    me = main_module.me(
        make_request(), authorization=f"Bearer {token}", service=service, jwt_secret=SMOKE_JWT_SECRET
    )
    assert_true(me["isAdmin"] is True, "/me should report the admin flag")
    main_module.verify(
        verify,
        make_request(),
        authorization=f"Bearer {token}",
        service=service,
        jwt_secret=SMOKE_JWT_SECRET,
    )
    payload = main_module.get_channel(CHANNEL_ID, make_request(), service=service)
    assert_true(payload["verificationStatus"] == 2, "/verify should be visible on the next read")


def run() -> int:
    checks = [
        ("health", test_health),
        ("channel by handle", test_channel_by_handle),
        ("vote cooldown", test_vote_cooldown),
        ("verify", test_verify),
    ]

    failures = []
    with tempfile.TemporaryDirectory() as db_dir:
        service = build_service(db_dir)
        for check_name, check_fn in checks:
            try:
                check_fn(service)
                print(f"[PASS] {check_name}")
            except (AssertionError, ChannelError) as exc:
                failures.append((check_name, str(exc)))
                print(f"[FAIL] {check_name}: {exc}")
        service.close()

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
