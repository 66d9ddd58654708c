"""Integration tests for the /otp endpoints."""

from fastapi.testclient import TestClient

from app import create_app
from otp_support import build_settings, drain, make_token

PHONE = "+15550001111"


def _send(client, destination=PHONE, channel="sms", purpose="login", path="/otp/send"):
    body = {"destination": destination, "channel": channel, "purpose": purpose}
    return client.post(path, json=body)


def _verify(client, code, destination=PHONE, purpose="login", headers=None):
    return client.post(
        "/otp/verify",
        json={"destination": destination, "purpose": purpose, "code": code},
        headers=headers or {},
    )


class TestSend:
    def test_send_returns_code_in_development(self, client):
        resp = _send(client)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert len(body["code"]) == 6
        assert body["request_id"] == resp.headers["X-Request-ID"]
        assert "expires_at" in body

    def test_send_honours_incoming_request_id(self, client):
        resp = client.post(
            "/otp/send",
            json={"destination": PHONE, "channel": "sms", "purpose": "login"},
            headers={"X-Request-ID": "req_from_gateway"},
        )
        assert resp.headers["X-Request-ID"] == "req_from_gateway"
        assert resp.json()["request_id"] == "req_from_gateway"

    def test_cooldown_returns_429(self, client):
        assert _send(client).status_code == 200
        resp = _send(client, path="/otp/resend")
        assert resp.status_code == 429
        body = resp.json()
        assert body["code"] == "rate_limit_exceeded"
        assert 0 < body["details"]["retry_after"] <= 60
        assert resp.headers["Retry-After"] == str(body["details"]["retry_after"])

    def test_body_owner_without_token_cannot_dodge_cooldown(self, client):
        statuses = [
            client.post(
                "/otp/send",
                json={
                    "destination": PHONE,
                    "channel": "sms",
                    "purpose": "login",
                    "ownerId": f"x{i}",
                },
            ).status_code
            for i in range(5)
        ]
        assert statuses == [200, 429, 429, 429, 429]

    def test_malformed_phone(self, client):
        resp = _send(client, destination="5550001111")
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert resp.json()["field"] == "destination"

    def test_unknown_channel(self, client):
        resp = _send(client, channel="fax")
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_production_without_provider_fails_without_leaking(self, prod_client):
        resp = _send(prod_client)
        assert resp.status_code == 500
        body = resp.json()
        assert body["code"] == "delivery_failed"
        assert "details" not in body


class TestVerify:
    def test_send_then_verify(self, client):
        code = _send(client).json()["code"]
        drain(client)
        resp = _verify(client, code)
        assert resp.status_code == 200
        assert resp.json()["success"] is True

        again = _verify(client, code)
        assert again.status_code == 400
        assert again.json()["code"] == "invalid_or_expired"

    def test_wrong_code(self, client):
        code = _send(client).json()["code"]
        drain(client)
        wrong = "000000" if code != "000000" else "111111"
        resp = _verify(client, wrong)
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_code"
        assert resp.json()["details"] == {"attempts_remaining": 2}

    def test_attempts_exhausted(self, client):
        code = _send(client).json()["code"]
        drain(client)
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(3):
            _verify(client, wrong)
        resp = _verify(client, code)
        assert resp.status_code == 400
        assert resp.json()["code"] == "attempts_exhausted"

    def test_nothing_sent(self, client):
        resp = _verify(client, "123456")
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_or_expired"

    def test_requires_a_key(self, client):
        resp = client.post("/otp/verify", json={"purpose": "login", "code": "123456"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_email_flow(self, client):
        code = _send(
            client, destination="Rider@Example.com", channel="email", purpose="verification"
        ).json()["code"]
        drain(client)
        resp = _verify(client, code, destination="rider@example.com", purpose="verification")
        assert resp.status_code == 200


class TestAuthenticatedFlow:
    def test_token_owner_keys_the_record(self, client):
        headers = {"Authorization": f"Bearer {make_token('rider-9')}"}
        code = client.post(
            "/otp/send",
            json={"destination": PHONE, "channel": "sms", "purpose": "passwordReset"},
            headers=headers,
        ).json()["code"]
        drain(client)

        status = client.get("/otp/status", params={"purpose": "passwordReset"}, headers=headers)
        assert status.status_code == 200
        assert status.json()["active"] is True

        resp = client.post(
            "/otp/verify",
            json={"purpose": "passwordReset", "code": code, "ownerId": "rider-9"},
        )
        assert resp.status_code == 200

    def test_body_owner_must_match_token(self, client):
        resp = client.post(
            "/otp/send",
            json={
                "destination": PHONE,
                "channel": "sms",
                "purpose": "login",
                "ownerId": "rider-1",
            },
            headers={"Authorization": f"Bearer {make_token('rider-9')}"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "authentication_error"

    def test_unauthenticated_body_owner_is_ignored(self, client):
        code = client.post(
            "/otp/send",
            json={"destination": PHONE, "channel": "sms", "purpose": "login", "ownerId": "rider-1"},
        ).json()["code"]
        drain(client)

        by_owner = client.post(
            "/otp/verify", json={"purpose": "login", "code": code, "ownerId": "rider-1"}
        )
        assert by_owner.status_code == 400
        assert _verify(client, code).status_code == 200

    def test_authenticated_send_supersedes_anonymous_code(self):
        with TestClient(create_app(build_settings(cooldown_seconds=0))) as client:
            anonymous_code = _send(client).json()["code"]
            owner_code = client.post(
                "/otp/send",
                json={"destination": PHONE, "channel": "sms", "purpose": "login"},
                headers={"Authorization": f"Bearer {make_token('rider-9')}"},
            ).json()["code"]
            drain(client)

            if anonymous_code != owner_code:
                stale = _verify(client, anonymous_code)
                assert stale.status_code == 400
                assert stale.json()["code"] == "invalid_code"
            assert _verify(client, owner_code).status_code == 200

    def test_invalid_token_is_401(self, client):
        resp = client.post(
            "/otp/send",
            json={"destination": PHONE, "channel": "sms", "purpose": "login"},
            headers={"Authorization": f"Bearer {make_token(secret='wrong')}"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "authentication_error"


class TestStatusAndStats:
    def test_status_by_destination(self, client):
        _send(client)
        drain(client)
        resp = client.get("/otp/status", params={"key": PHONE, "purpose": "login"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["active"] is True
        assert body["attempts_remaining"] == 3
        assert 0 < body["resend_available_in"] <= 60

    def test_status_requires_key_or_token(self, client):
        resp = client.get("/otp/status", params={"purpose": "login"})
        assert resp.status_code == 400
        assert resp.json()["field"] == "key"

    def test_stats_requires_token(self, client):
        assert client.get("/otp/stats").status_code == 401

    def test_stats(self, client):
        code = _send(client).json()["code"]
        drain(client)
        _verify(client, code)
        resp = client.get(
            "/otp/stats",
            params={"period": "day"},
            headers={"Authorization": f"Bearer {make_token()}"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["totals"]["generated"] == 1
        assert body["totals"]["verified"] == 1
        assert body["success_rate"] == 100.0
        assert body["by_channel"]["sms"]["verified"] == 1

    def test_stats_rejects_unknown_period(self, client):
        resp = client.get(
            "/otp/stats",
            params={"period": "decade"},
            headers={"Authorization": f"Bearer {make_token()}"},
        )
        assert resp.status_code == 400
