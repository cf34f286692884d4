"""Rate-limit keying."""

from starlette.requests import Request

from app.middleware import security


def _request(headers=None, client=("203.0.113.7", 51000)) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/invitations/token/abc",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    })


class TestClientIp:
    def test_forwarded_headers_ignored_by_default(self, monkeypatch):
        monkeypatch.setattr(security.settings, "trust_proxy_headers", False)
        request = _request({"X-Forwarded-For": "198.51.100.1", "X-Real-IP": "198.51.100.2"})

        assert security.get_client_ip(request) == "203.0.113.7"

    def test_forwarded_for_used_behind_trusted_proxy(self, monkeypatch):
        monkeypatch.setattr(security.settings, "trust_proxy_headers", True)
        request = _request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})

        assert security.get_client_ip(request) == "198.51.100.1"

    def test_real_ip_used_when_forwarded_for_absent(self, monkeypatch):
        monkeypatch.setattr(security.settings, "trust_proxy_headers", True)

        assert security.get_client_ip(_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"
