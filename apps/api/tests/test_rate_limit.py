"""Rate limit bucketing."""

from starlette.requests import Request

from app.core.deps import COOKIE_NAME
from app.core.rate_limit import DEFAULT_LIMITS, MEMORY_STORAGE, rate_limit_key, resolve_storage_uri


def _request(headers: dict[str, str] | None = None, client: str = "203.0.113.7") -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/detections",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (client, 51234),
    }
    return Request(scope)


def test_anonymous_requests_keyed_by_address():
    assert rate_limit_key(_request()) == "ip:203.0.113.7"


def test_devices_behind_one_address_get_separate_buckets():
    crib_cam = rate_limit_key(_request({"Authorization": "Bearer token-crib"}))
    hall_cam = rate_limit_key(_request({"Authorization": "Bearer token-hall"}))

    assert crib_cam.startswith("token:")
    assert crib_cam != hall_cam
    assert "token-crib" not in crib_cam


def test_cookie_and_bearer_share_a_bucket():
    via_cookie = rate_limit_key(_request({"Cookie": f"{COOKIE_NAME}=same-token"}))
    via_header = rate_limit_key(_request({"Authorization": "Bearer same-token"}))

    assert via_cookie == via_header


def test_test_mode_uses_memory_without_default_limits():
    assert resolve_storage_uri() == MEMORY_STORAGE
    assert DEFAULT_LIMITS == []
