"""Tests for admin user actions, dashboards and the admin secret gate."""

from datetime import timedelta

import pytest

from vivasmart.database import db
from vivasmart.errors import InvalidInput, UnknownAction, UserNotFound
from vivasmart.models import Analysis, User
from vivasmart.services import admin, coupons, payments
from vivasmart.services.admin import (
    AddTrials,
    GrantMonthly,
    GrantOneTime,
    ResetUsed,
    RevokeAll,
    SetTrials,
    UpdateName,
    parse_admin_action,
)


class TestParseAction:
    @pytest.mark.parametrize(
        "action, params, expected",
        [
            ("grant_monthly", {}, GrantMonthly(days=None)),
            ("grant_monthly", {"days": "7"}, GrantMonthly(days=7)),
            ("GRANT_ONE_TIME", {}, GrantOneTime()),
            ("add_trials", {"count": 4}, AddTrials(count=4)),
            ("set_trials", {"count": "6"}, SetTrials(count=6)),
            ("reset_used", {}, ResetUsed()),
            ("revoke_all", {}, RevokeAll()),
            ("update_name", {"name": " Asha "}, UpdateName(name="Asha")),
        ],
    )
    def test_known_actions(self, action, params, expected):
        assert parse_admin_action(action, params) == expected

    @pytest.mark.parametrize("action", ["delete_user", "", None])
    def test_unknown_action(self, action):
        with pytest.raises(UnknownAction):
            parse_admin_action(action, {})

    def test_set_trials_requires_count(self):
        with pytest.raises(InvalidInput):
            parse_admin_action("set_trials", {})

    def test_update_name_requires_name(self):
        with pytest.raises(InvalidInput):
            parse_admin_action("update_name", {"name": "  "})


class TestUpdateUser:
    def test_grant_monthly(self, settings, make_user, now):
        uid = make_user()
        user = admin.update_user(uid, "grant_monthly", {}, settings, now)
        assert (user.subscribed, user.sub_plan, user.sub_expires) == (True, "monthly", now + timedelta(days=30))

    def test_grant_monthly_custom_days(self, settings, make_user, now):
        uid = make_user()
        user = admin.update_user(uid, "grant_monthly", {"days": 7}, settings, now)
        assert user.sub_expires == now + timedelta(days=7)

    def test_grant_one_time(self, settings, make_user, now):
        uid = make_user()
        user = admin.update_user(uid, "grant_one_time", {}, settings, now)
        assert (user.subscribed, user.sub_plan, user.sub_expires) == (True, "one_time", None)

    def test_add_trials_clamps(self, settings, make_user):
        uid = make_user()
        assert admin.update_user(uid, "add_trials", {"count": 0}, settings).trials_total == 4
        assert admin.update_user(uid, "add_trials", {"count": 5}, settings).trials_total == 9

    def test_set_trials_resets_used(self, settings, make_user):
        uid = make_user(trials_used=3)
        user = admin.update_user(uid, "set_trials", {"count": 10}, settings)
        assert (user.trials_total, user.trials_used) == (10, 0)

    def test_reset_used(self, settings, make_user):
        uid = make_user(trials_used=2)
        assert admin.update_user(uid, "reset_used", {}, settings).trials_used == 0

    def test_revoke_all(self, settings, make_user, now):
        uid = make_user(trials_total=12, trials_used=4, subscribed=True, sub_plan="monthly", sub_expires=now + timedelta(days=9))
        user = admin.update_user(uid, "revoke_all", {}, settings, now)
        assert (user.subscribed, user.sub_plan, user.sub_expires) == (False, None, None)
        assert (user.trials_total, user.trials_used) == (3, 0)

    def test_update_name(self, settings, make_user):
        uid = make_user()
        assert admin.update_user(uid, "update_name", {"name": "Asha K"}, settings).name == "Asha K"

    def test_unknown_action_leaves_user_untouched(self, settings, make_user):
        uid = make_user(trials_used=1)
        with pytest.raises(UnknownAction):
            admin.update_user(uid, "make_admin", {}, settings)
        user = db.session.get(User, uid)
        assert (user.role, user.trials_used) == ("student", 1)

    def test_unknown_user(self, settings, app):
        with pytest.raises(UserNotFound):
            admin.update_user(555, "reset_used", {}, settings)


class TestViews:
    def test_user_detail(self, settings, make_user, now):
        uid = make_user()
        payments.submit_payment(uid, None, "10", "UPI-D-1", now=now)
        db.session.add(Analysis(user_id=uid, email="student@college.in", project_title="Line Follower", analyzed_at=now))
        db.session.commit()

        detail = admin.user_detail(uid, now)

        assert detail["user"]["id"] == uid
        assert [p["upi_ref"] for p in detail["payments"]] == ["UPI-D-1"]
        assert [a["project_title"] for a in detail["analyses"]] == ["Line Follower"]

    def test_list_users_normalizes(self, make_user, now):
        make_user("a@college.in", subscribed=True, sub_plan="monthly", sub_expires=now - timedelta(days=1))
        make_user("b@college.in")
        users = admin.list_users(now)
        assert len(users) == 2
        assert all(u.subscribed is False for u in users)

    def test_stats(self, settings, make_user, make_coupon, now):
        uid = make_user("a@college.in", subscribed=True, sub_plan="one_time")
        make_user("b@college.in")
        make_coupon("VS-STATS001")
        make_coupon("VS-STATS002", active=False)
        verified = payments.submit_payment(uid, None, "10", "UPI-S-1").id
        payments.submit_payment(uid, None, "10", "UPI-S-2")
        payments.verify_payment(verified, settings)
        db.session.add_all([
            Analysis(user_id=uid, project_title="Old", analyzed_at=now - timedelta(days=2)),
            Analysis(user_id=uid, project_title="New", analyzed_at=now - timedelta(hours=1)),
        ])
        db.session.commit()

        stats = admin.stats(now)

        assert stats == {
            "total_users": 2,
            "subscribed_users": 1,
            "pending_payments": 1,
            "verified_payments": 1,
            "rejected_payments": 0,
            "total_analyses": 2,
            "analyses_last_24h": 1,
            "active_coupons": 1,
        }


class TestAdminRoutes:
    def test_requires_secret(self, client):
        assert client.get("/api/admin/stats").status_code == 401
        assert client.get("/api/admin/stats", headers={"X-Admin-Secret": "nope"}).status_code == 401

    def test_no_configured_secret_means_closed(self, app, client):
        app.config["ADMIN_SECRET"] = ""
        assert client.get("/api/admin/stats", headers={"X-Admin-Secret": ""}).status_code == 401

    def test_stats_ok(self, client, admin_headers):
        resp = client.get("/api/admin/stats", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["stats"]["total_users"] == 0

    def test_update_user_unknown_action(self, client, admin_headers, make_user):
        uid = make_user()
        resp = client.post(f"/api/admin/users/{uid}/update", json={"action": "nuke"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "UNKNOWN_ACTION"

    def test_update_user_add_trials(self, client, admin_headers, make_user):
        uid = make_user()
        resp = client.post(
            f"/api/admin/users/{uid}/update",
            json={"action": "add_trials", "params": {"count": 2}},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["user"]["trials_total"] == 5

    def test_verify_payment_route(self, client, admin_headers, make_user):
        uid = make_user()
        pid = payments.submit_payment(uid, None, "10", "UPI-R-1").id
        resp = client.post(f"/api/admin/payments/{pid}/verify", json={"trialsToGrant": 5}, headers=admin_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["message"] == "Payment verified and subscription activated."
        assert body["payment"]["trials_granted"] == 5
        assert body["user"]["trials_total"] == 8

        again = client.post(f"/api/admin/payments/{pid}/verify", json={}, headers=admin_headers)
        assert again.status_code == 409
        assert again.get_json()["code"] == "ALREADY_VERIFIED"

    def test_coupon_crud_routes(self, client, admin_headers):
        created = client.post(
            "/api/admin/coupons", json={"code": "vs-fest2026", "trialGrant": 2}, headers=admin_headers
        ).get_json()["coupon"]
        assert created["code"] == "VS-FEST2026"
        assert created["max_uses"] == 100

        dup = client.post("/api/admin/coupons", json={"code": "VS-FEST2026"}, headers=admin_headers)
        assert dup.status_code == 409

        cid = created["id"]
        edited = client.put(f"/api/admin/coupons/{cid}", json={"maxUses": None}, headers=admin_headers)
        assert edited.get_json()["coupon"]["max_uses"] is None

        toggled = client.put(f"/api/admin/coupons/{cid}/toggle", headers=admin_headers)
        assert toggled.get_json() == {"success": True, "active": False}

        listed = client.get("/api/admin/coupons", headers=admin_headers).get_json()["coupons"]
        assert [c["code"] for c in listed] == ["VS-FEST2026"]

        assert client.delete(f"/api/admin/coupons/{cid}", headers=admin_headers).get_json() == {"success": True}
        assert client.delete(f"/api/admin/coupons/{cid}", headers=admin_headers).status_code == 404
        assert coupons.list_coupons() == []
