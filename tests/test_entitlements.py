"""Tests for the pure entitlement rules.

Covers:
- who may analyze (admin / subscribed / trial balance)
- metering of a successful analysis
- grants, resets and the clamp-to-1 leniency
- lazy expiry of monthly subscriptions
"""

from datetime import datetime, timedelta

import pytest

from vivasmart.entitlements import (
    PLAN_COUPON,
    PLAN_MONTHLY,
    PLAN_ONE_TIME,
    Entitlement,
    can_analyze,
    coerce_grant_count,
    consume_analysis,
    grant_trials,
    grant_unlimited,
    is_expired,
    normalize,
    reset_used,
    revoke_all,
    set_trials_total,
)
from vivasmart.errors import InvalidInput, TrialLimitReached

NOW = datetime(2026, 3, 1, 12, 0, 0)


def student(total=3, used=0, **kw):
    return Entitlement(role="student", trials_total=total, trials_used=used, **kw)


def monthly(expires, **kw):
    return student(subscribed=True, sub_plan=PLAN_MONTHLY, sub_expires=expires, **kw)


class TestCanAnalyze:
    @pytest.mark.parametrize(
        "ent, expected",
        [
            (Entitlement(role="admin", trials_total=0, trials_used=9), True),
            (student(total=3, used=3, subscribed=True, sub_plan=PLAN_ONE_TIME), True),
            (student(total=3, used=2), True),
            (student(total=3, used=3), False),
            (student(total=0, used=0), False),
        ],
    )
    def test_truth_table(self, ent, expected):
        assert can_analyze(ent) is expected

    def test_expired_monthly_denied_after_normalize(self):
        ent = monthly(NOW - timedelta(seconds=1), total=3, used=3)
        assert can_analyze(normalize(ent, NOW)) is False

    def test_trials_left_only_for_metered_users(self):
        assert student(total=5, used=2).trials_left == 3
        assert student(total=3, used=3, subscribed=True, sub_plan=PLAN_ONE_TIME).trials_left is None
        assert Entitlement(role="admin", trials_total=0, trials_used=0).trials_left is None


class TestConsumeAnalysis:
    def test_metered_user_charged_once(self):
        assert consume_analysis(student(total=3, used=1)).trials_used == 2

    def test_admin_not_charged(self):
        ent = Entitlement(role="admin", trials_total=3, trials_used=3)
        assert consume_analysis(ent) == ent

    def test_subscriber_not_charged(self):
        ent = student(total=3, used=0, subscribed=True, sub_plan=PLAN_COUPON)
        assert consume_analysis(ent).trials_used == 0

    def test_never_exceeds_total(self):
        with pytest.raises(TrialLimitReached):
            consume_analysis(student(total=3, used=3))


class TestGrants:
    @pytest.mark.parametrize("raw, expected", [(5, 5), ("4", 4), (0, 1), (-3, 1), ("abc", 1), (None, 1)])
    def test_coerce_grant_count_clamps_to_one(self, raw, expected):
        assert coerce_grant_count(raw) == expected

    def test_grant_trials_adds_to_total(self):
        assert grant_trials(student(total=3, used=2), 5) == student(total=8, used=2)

    def test_grant_trials_zero_still_grants_one(self):
        assert grant_trials(student(total=3), 0).trials_total == 4

    def test_monthly_defaults_to_thirty_days(self):
        ent = grant_unlimited(student(), PLAN_MONTHLY, NOW)
        assert ent.subscribed is True
        assert ent.sub_plan == PLAN_MONTHLY
        assert ent.sub_expires == NOW + timedelta(days=30)

    @pytest.mark.parametrize("days, expected", [(7, 7), (0, 30), (-2, 30), ("x", 30)])
    def test_monthly_days(self, days, expected):
        ent = grant_unlimited(student(), PLAN_MONTHLY, NOW, days=days)
        assert ent.sub_expires == NOW + timedelta(days=expected)

    @pytest.mark.parametrize("plan", [PLAN_ONE_TIME, PLAN_COUPON])
    def test_non_monthly_plans_never_expire(self, plan):
        ent = grant_unlimited(monthly(NOW + timedelta(days=3)), plan, NOW)
        assert ent.sub_plan == plan
        assert ent.sub_expires is None

    def test_unknown_plan_rejected(self):
        with pytest.raises(InvalidInput):
            grant_unlimited(student(), "lifetime", NOW)

    def test_grants_keep_trial_counters(self):
        ent = grant_unlimited(student(total=4, used=2), PLAN_ONE_TIME, NOW)
        assert (ent.trials_total, ent.trials_used) == (4, 2)


class TestResets:
    def test_reset_used(self):
        assert reset_used(student(total=3, used=3)).trials_used == 0

    def test_set_trials_total_also_resets_used(self):
        ent = set_trials_total(student(total=3, used=3), 10)
        assert (ent.trials_total, ent.trials_used) == (10, 0)

    def test_set_trials_total_floors_at_zero(self):
        assert set_trials_total(student(), -4).trials_total == 0

    def test_revoke_all_is_a_full_reset(self):
        ent = revoke_all(monthly(NOW + timedelta(days=10), total=9, used=7), free_trials=3)
        assert ent == student(total=3, used=0)


class TestLifecycle:
    def test_monthly_expired_one_second_ago(self):
        ent = monthly(NOW - timedelta(seconds=1))
        assert is_expired(ent, NOW)
        cleared = normalize(ent, NOW)
        assert (cleared.subscribed, cleared.sub_plan, cleared.sub_expires) == (False, None, None)

    def test_not_expired_at_exact_instant(self):
        ent = monthly(NOW)
        assert normalize(ent, NOW) == ent

    def test_one_time_never_expires(self):
        ent = student(subscribed=True, sub_plan=PLAN_ONE_TIME)
        assert normalize(ent, NOW + timedelta(days=3650)) == ent

    def test_normalize_is_idempotent(self):
        ent = monthly(NOW - timedelta(days=1), total=3, used=1)
        once = normalize(ent, NOW)
        assert normalize(once, NOW) == once
