"""
Health checks and forwarded identity tests.
"""

import pytest

from workday.auth import Identity


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live_reports_db_and_clock(self, client):
        res = client.get("/api/v1/health/live")

        assert res.status_code == 200
        body = res.get_json()
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["clock"]["today"] == "2025-03-10"

    def test_request_id_echoed(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers


class TestIdentity:
    @pytest.mark.parametrize("headers", [
        {},
        {"X-User-Id": "abc", "X-User-Role": "member"},
        {"X-User-Id": "5", "X-User-Role": "owner"},
    ])
    def test_missing_or_malformed_identity(self, client, headers):
        res = client.get("/api/v1/member/day-close/status", headers=headers)

        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_role_header_case_insensitive(self, client, member):
        res = client.get(
            "/api/v1/member/day-close/status",
            headers={"X-User-Id": str(member.id), "X-User-Role": "Member"},
        )
        assert res.status_code == 200

    def test_gateway_token_enforced_when_configured(self, app, client, member, headers_for, monkeypatch):
        monkeypatch.setitem(app.config, "GATEWAY_TOKEN", "s3cret")

        res = client.get("/api/v1/member/day-close/status", headers=headers_for(member))
        assert res.status_code == 401

        res = client.get(
            "/api/v1/member/day-close/status",
            headers=dict(headers_for(member), **{"X-Gateway-Token": "s3cret"}),
        )
        assert res.status_code == 200

    def test_health_needs_no_identity_even_with_token(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "GATEWAY_TOKEN", "s3cret")
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_unknown_route_404(self, client, member, headers_for):
        res = client.get("/api/v1/member/nothing-here", headers=headers_for(member))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_is_admin(self):
        assert Identity(1, "admin").is_admin is True
        assert Identity(2, "team_manager").is_admin is False
