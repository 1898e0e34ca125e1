"""HTTP tests for the user-facing endpoints."""

from vivasmart.database import db
from vivasmart.models import Analysis, User


def login(client, email="student@college.in"):
    resp = client.post("/api/auth/login", json={"email": email})
    assert resp.status_code == 200
    return resp.get_json()["user"]


class TestAuthAndStatus:
    def test_login_returns_user(self, client):
        user = login(client, "Rahul@College.in")
        assert user["email"] == "rahul@college.in"
        assert user["trials_left"] == 3
        assert user["can_analyze"] is True

    def test_login_requires_email(self, client):
        resp = client.post("/api/auth/login", json={})
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "error": "Email is required.", "code": "INVALID_INPUT"}

    def test_status(self, client):
        uid = login(client)["id"]
        resp = client.get(f"/api/users/{uid}/status")
        assert resp.status_code == 200
        assert resp.get_json()["user"]["id"] == uid

    def test_status_unknown_user(self, client):
        resp = client.get("/api/users/999/status")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "User not found."

    def test_status_non_numeric_id_is_not_found(self, client):
        resp = client.get("/api/users/abc/status")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "USER_NOT_FOUND"

    def test_unknown_route(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Route not found."}


class TestAnalyze:
    def test_three_trials_then_trial_limit(self, client, fake_analyzer, project_text):
        uid = login(client)["id"]

        for used in (1, 2, 3):
            resp = client.post("/api/analyze", json={"userId": uid, "text": project_text})
            assert resp.status_code == 200
            body = resp.get_json()
            assert body["data"]["projectTitle"] == "Smart Irrigation System"
            assert body["user"]["trials_used"] == used

        resp = client.post("/api/analyze", json={"userId": uid, "text": project_text})
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "TRIAL_LIMIT"
        assert fake_analyzer.calls == 3
        assert db.session.query(Analysis).count() == 3

    def test_analyzer_failure_does_not_consume(self, client, fake_analyzer, project_text):
        uid = login(client)["id"]
        fake_analyzer.fail = True

        resp = client.post("/api/analyze", json={"userId": uid, "text": project_text})

        assert resp.status_code == 502
        assert resp.get_json()["code"] == "ANALYZER_FAILED"
        assert db.session.get(User, uid).trials_used == 0
        assert db.session.query(Analysis).count() == 0

    def test_admin_not_metered(self, client, settings, project_text):
        uid = login(client, settings.admin_email)["id"]
        for _ in range(5):
            assert client.post("/api/analyze", json={"userId": uid, "text": project_text}).status_code == 200
        assert db.session.get(User, uid).trials_used == 0

    def test_short_text_rejected_before_quota(self, client, fake_analyzer):
        uid = login(client)["id"]
        resp = client.post("/api/analyze", json={"userId": uid, "text": "too short"})
        assert resp.status_code == 400
        assert fake_analyzer.calls == 0

    def test_requires_user(self, app, project_text):
        # fresh client: no session cookie from a login
        resp = app.test_client().post("/api/analyze", json={"text": project_text})
        assert resp.status_code == 400


class TestPaymentsAndCoupons:
    def test_submit_payment(self, client):
        uid = login(client)["id"]
        resp = client.post("/api/payments/submit", json={"userId": uid, "plan": "99", "upiRef": "UPI-HTTP-1"})
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["message"] == "Payment submitted! Admin will verify shortly."
        assert body["paymentId"]

        dup = client.post("/api/payments/submit", json={"userId": uid, "plan": "99", "upiRef": "UPI-HTTP-1"})
        assert dup.status_code == 409
        assert dup.get_json()["error"] == "This UPI reference was already submitted."

    def test_redeem_coupon(self, client, make_coupon):
        make_coupon("VS-HTTP0001", trial_grant=2, max_uses=1)
        uid = login(client)["id"]

        resp = client.post("/api/coupons/redeem", json={"userId": uid, "code": "vs-http0001"})
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Coupon applied! 2 extra analyses added."

        again = client.post("/api/coupons/redeem", json={"userId": uid, "code": "VS-HTTP0001"})
        assert again.status_code == 409
        assert again.get_json()["code"] == "ALREADY_REDEEMED"

    def test_redeem_unknown_code(self, client):
        uid = login(client)["id"]
        resp = client.post("/api/coupons/redeem", json={"userId": uid, "code": "VS-MISSING1"})
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Invalid coupon code."
