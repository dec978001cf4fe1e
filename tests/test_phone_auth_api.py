from phone_auth.errors import RateLimited
from tests.conftest import EMAIL, PHONE

URL = "/functions/v1/phone-auth"

CORS = {
    "access-control-allow-origin": "*",
    "access-control-allow-headers": "authorization, x-client-info, apikey, content-type",
}


def _assert_cors(resp):
    for k, v in CORS.items():
        assert resp.headers[k] == v


def test_preflight_is_empty_204(client):
    resp = client.options(URL)
    assert resp.status_code == 204
    assert resp.content == b""
    _assert_cors(resp)


def test_send_verify_reset_flow(client, sms, otps, identity, owner):
    resp = client.post(URL, json={"action": "send_otp", "phone": PHONE})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "OTP sent successfully"}
    _assert_cors(resp)
    code = sms.sent[-1][1]

    resp = client.post(URL, json={"action": "verify_otp", "phone": PHONE, "otp": code})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True and body["message"] == "OTP verified successfully"
    assert body["token"]
    assert otps.rows == {}

    resp = client.post(URL, json={"action": "verify_otp", "phone": PHONE, "otp": code})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid or expired OTP"}

    resp = client.post(URL, json={"action": "reset_password", "token": body["token"], "password": "n3w-secret"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Password reset successfully"}
    assert identity.passwords[EMAIL] == "n3w-secret"


def test_alias_path(client, owner):
    resp = client.post("/phone-auth", json={"action": "send_otp", "phone": PHONE})
    assert resp.status_code == 200


def test_send_unknown_phone_is_404(client, otps):
    resp = client.post(URL, json={"action": "send_otp", "phone": "+15550000000"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "No account found with this phone number"}
    _assert_cors(resp)
    assert otps.rows == {}


def test_send_invalid_phone_is_400(client):
    resp = client.post(URL, json={"action": "send_otp", "phone": "555-1234"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid phone number"}


def test_storage_failure_is_500_without_details(client, otps, owner):
    otps.fail_upsert = True
    resp = client.post(URL, json={"action": "send_otp", "phone": PHONE})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to create OTP"}


def test_enable_otp_bad_phone_is_400_and_no_write(client, profiles):
    p = profiles.add("someone@x.test")
    # "12345" itself satisfies the pattern; a non-digit makes it fail
    resp = client.post(URL, json={"action": "enable_otp", "user_id": str(p.id), "phone": "12345-"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid phone number format"}
    assert profiles.writes == []


def test_enable_and_disable(client, profiles):
    p = profiles.add("someone@x.test")
    resp = client.post(URL, json={"action": "enable_otp", "user_id": str(p.id), "phone": "+15557654321"})
    assert resp.json() == {"success": True, "message": "OTP enabled successfully"}
    assert p.otp_enabled

    resp = client.post(URL, json={"action": "disable_otp", "user_id": str(p.id)})
    assert resp.json() == {"success": True, "message": "OTP disabled successfully"}
    assert not p.otp_enabled


def test_missing_fields_are_400(client):
    cases = [
        ({"action": "verify_otp", "phone": PHONE}, "Phone number and OTP required"),
        ({"action": "reset_password", "password": "x"}, "Token and password required"),
        ({"action": "enable_otp", "phone": PHONE}, "User ID and phone number required"),
        ({"action": "disable_otp"}, "User ID required"),
    ]
    for body, message in cases:
        resp = client.post(URL, json=body)
        assert resp.status_code == 400, body
        assert resp.json() == {"error": message}


def test_invalid_action_is_400(client):
    resp = client.post(URL, json={"action": "drop_tables"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid action"}
    _assert_cors(resp)


def test_malformed_json_is_internal_error(client):
    resp = client.post(URL, content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}
    _assert_cors(resp)


def test_rate_limited_send(client, owner, limiter, monkeypatch):
    async def _deny(ip):
        raise RateLimited(retry_after=7)

    monkeypatch.setattr(limiter, "limit_otp_request", _deny)
    resp = client.post(URL, json={"action": "send_otp", "phone": PHONE})
    assert resp.status_code == 429
    assert resp.json() == {"error": "Too many requests"}
    assert resp.headers["retry-after"] == "7"


def test_rate_limit_not_applied_to_profile_actions(client, profiles, limiter, monkeypatch):
    async def _deny(ip):
        raise RateLimited()

    monkeypatch.setattr(limiter, "limit_otp_request", _deny)
    monkeypatch.setattr(limiter, "limit_otp_verify", _deny)
    p = profiles.add("someone@x.test")
    resp = client.post(URL, json={"action": "disable_otp", "user_id": str(p.id)})
    assert resp.status_code == 200


def test_request_id_echoed(client):
    resp = client.post(URL, json={"action": "nope"}, headers={"X-Request-ID": "abc123"})
    assert resp.headers["x-request-id"] == "abc123"


def test_send_succeeds_when_sms_transport_fails(client, sms, otps, owner):
    sms.error = ConnectionError("api.twilio.com unreachable")
    resp = client.post(URL, json={"action": "send_otp", "phone": PHONE})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "OTP sent successfully"}
    assert list(otps.rows) == [PHONE]


def test_metrics_endpoint(client):
    client.post(URL, json={"action": "nope"})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
