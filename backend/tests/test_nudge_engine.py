"""
Test Suite for the Nudge Engine

End-to-end checks of NudgeEngine.run_checks over an in-memory database.

Key tests:
1. A firing rule with no history produces exactly one delivery
2. Cooldown suppresses repeats until the window has passed
3. Mute and unmute
4. Disable and re-enable
5. One failing rule does not stop the others
6. Dismissal hides a nudge but does not reset its cooldown
7. Push dispatch only for warning/high severity, never fatal
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

from mindspend.models.db_models import NudgeCode, NudgeDeliveryDB
from mindspend.services.nudges import (
    NudgeEngine,
    NudgeDeliveryService,
    NudgePreferenceService,
    PreferenceChange,
    LedgerReader,
    NudgeRule,
    RULES,
)

from conftest import NOW, TODAY, make_category, add_expense, set_budget, make_user


def codes(deliveries):
    return [d.nudge_code for d in deliveries]


@pytest.fixture
def engine_under_test(db, dispatcher):
    return NudgeEngine(db, dispatcher=dispatcher)


@pytest.fixture
def overspent(db, user):
    """Dining budget 200, spent 250 this month."""
    dining = make_category(db, user, "Dining")
    set_budget(db, user, dining, 200)
    add_expense(db, user, dining, 250, date(2026, 3, 2))
    return dining


@pytest.fixture
def spiky_week(db, user):
    """Daily totals [10,10,10,10,10,10,50] ending today."""
    groceries = make_category(db, user, "Groceries")
    for i, amount in enumerate([10, 10, 10, 10, 10, 10, 50]):
        add_expense(db, user, groceries, amount, TODAY - timedelta(days=6 - i))
    return groceries


# =============================================================================
# FIRST DELIVERY
# =============================================================================

class TestFirstDelivery:

    def test_nothing_to_say_for_empty_ledger(self, engine_under_test, user):
        assert engine_under_test.run_checks(user.id, now=NOW) == []

    def test_spike_delivers_exactly_once(self, db, engine_under_test, user, spiky_week, dispatcher):
        created = engine_under_test.run_checks(user.id, now=NOW)

        assert codes(created) == ["spending_spike"]
        delivery = created[0]
        assert delivery.id is not None
        assert delivery.severity == "warning"
        assert delivery.shown_at == NOW
        assert delivery.dismissed_at is None
        assert "218%" in delivery.message
        assert db.query(NudgeDeliveryDB).count() == 1
        dispatcher.notify.assert_called_once_with(user.id, delivery.message)

    def test_budget_over_scenario(self, engine_under_test, user, overspent):
        created = engine_under_test.run_checks(user.id, now=NOW)

        assert codes(created) == ["budget_over"]
        assert "Dining" in created[0].message
        assert "50.00" in created[0].message

    def test_spending_exactly_the_limit_in_cents(self, db, engine_under_test, user, dispatcher):
        """0.10 + 0.20 against a 0.30 budget is at the limit, not over it."""
        dining = make_category(db, user, "Dining")
        set_budget(db, user, dining, Decimal("0.30"))
        add_expense(db, user, dining, Decimal("0.10"), date(2026, 3, 2))
        add_expense(db, user, dining, Decimal("0.20"), date(2026, 3, 2))

        assert engine_under_test.run_checks(user.id, now=NOW) == []
        dispatcher.notify.assert_not_called()

        add_expense(db, user, dining, Decimal("0.01"), date(2026, 3, 2))
        created = engine_under_test.run_checks(user.id, now=NOW)

        assert codes(created) == ["budget_over"]
        assert "by 0.01" in created[0].message

    def test_repeat_category_scenario(self, db, engine_under_test, user, dispatcher):
        coffee = make_category(db, user, "Coffee")
        for hours_ago in (1, 5, 9):
            add_expense(db, user, coffee, Decimal("4.50"), created_at=NOW - timedelta(hours=hours_ago))

        created = engine_under_test.run_checks(user.id, now=NOW)

        assert codes(created) == ["repeat_category"]
        assert '3 expenses in "Coffee"' in created[0].message
        dispatcher.notify.assert_not_called()

    def test_late_night_uses_creation_time(self, db, engine_under_test, user):
        snacks = make_category(db, user, "Snacks")
        late = datetime(2026, 3, 11, 22, 40)
        # User backdated the expense; creation time is what matters
        add_expense(db, user, snacks, 6, expense_date=date(2026, 3, 1), created_at=late)

        created = engine_under_test.run_checks(user.id, now=late + timedelta(minutes=5))

        assert codes(created) == ["late_night"]

    def test_weekend_scenario(self, db, engine_under_test, user):
        saturday = datetime(2026, 3, 14, 12, 0)
        fun = make_category(db, user, "Fun")
        for day, amount in [(8, 30), (9, 10), (10, 10), (12, 10), (14, 20)]:
            add_expense(db, user, fun, amount, date(2026, 3, day), created_at=datetime(2026, 3, day, 9, 0))

        created = engine_under_test.run_checks(user.id, now=saturday)

        assert "weekend_spend" in codes(created)

    def test_output_follows_rule_order(self, engine_under_test, user, spiky_week, overspent):
        created = engine_under_test.run_checks(user.id, now=NOW)

        assert codes(created) == ["spending_spike", "budget_over"]

    def test_aware_now_is_normalized(self, engine_under_test, user, overspent):
        from datetime import timezone

        created = engine_under_test.run_checks(user.id, now=NOW.replace(tzinfo=timezone.utc))

        assert created[0].shown_at == NOW


# =============================================================================
# COOLDOWN
# =============================================================================

class TestCooldown:

    def test_budget_over_waits_twelve_hours(self, engine_under_test, user, overspent):
        assert len(engine_under_test.run_checks(user.id, now=NOW)) == 1

        assert engine_under_test.run_checks(user.id, now=NOW + timedelta(hours=1)) == []
        assert engine_under_test.run_checks(user.id, now=NOW + timedelta(hours=11, minutes=59)) == []

        again = engine_under_test.run_checks(user.id, now=NOW + timedelta(hours=12, minutes=1))
        assert codes(again) == ["budget_over"]

    def test_cooldown_is_per_user(self, db, engine_under_test, user, overspent):
        other = make_user(db, "sam")
        dining = make_category(db, other, "Dining")
        set_budget(db, other, dining, 10)
        add_expense(db, other, dining, 20, date(2026, 3, 3))

        engine_under_test.run_checks(user.id, now=NOW)

        assert codes(engine_under_test.run_checks(other.id, now=NOW)) == ["budget_over"]


# =============================================================================
# MUTE / DISABLE
# =============================================================================

class TestPreferencesGateDelivery:

    def test_mute_suppresses_until_instant(self, db, engine_under_test, user, overspent):
        prefs = NudgePreferenceService(db)
        prefs.set_preference(user.id, "budget_over", PreferenceChange.from_fields(muted_until=NOW + timedelta(days=7)), now=NOW)

        assert engine_under_test.run_checks(user.id, now=NOW) == []
        assert engine_under_test.run_checks(user.id, now=NOW + timedelta(days=6)) == []

    def test_explicit_null_unmutes_immediately(self, db, engine_under_test, user, overspent):
        prefs = NudgePreferenceService(db)
        prefs.set_preference(user.id, "budget_over", PreferenceChange.from_fields(muted_until=NOW + timedelta(days=7)), now=NOW)
        prefs.set_preference(user.id, "budget_over", PreferenceChange.from_fields(muted_until=None), now=NOW)

        assert codes(engine_under_test.run_checks(user.id, now=NOW)) == ["budget_over"]

    def test_disable_until_reenabled(self, db, engine_under_test, user, overspent):
        prefs = NudgePreferenceService(db)
        prefs.set_preference(user.id, "budget_over", PreferenceChange.from_fields(disabled=True), now=NOW)

        assert engine_under_test.run_checks(user.id, now=NOW) == []
        assert engine_under_test.run_checks(user.id, now=NOW + timedelta(days=20)) == []

        prefs.set_preference(user.id, "budget_over", PreferenceChange.from_fields(disabled=False), now=NOW)
        assert codes(engine_under_test.run_checks(user.id, now=NOW)) == ["budget_over"]

    def test_muting_one_rule_leaves_others(self, db, engine_under_test, user, spiky_week, overspent):
        NudgePreferenceService(db).set_preference(
            user.id, "spending_spike", PreferenceChange.from_fields(disabled=True), now=NOW
        )

        assert codes(engine_under_test.run_checks(user.id, now=NOW)) == ["budget_over"]


# =============================================================================
# FAILURE ISOLATION
# =============================================================================

class TestFailureIsolation:

    def test_storage_failure_in_one_rule(self, db, engine_under_test, user, spiky_week, overspent):
        """Spike and weekend read daily totals; budget_over still delivers."""
        with patch.object(LedgerReader, "daily_expense_totals", side_effect=RuntimeError("db timeout")):
            created = engine_under_test.run_checks(user.id, now=NOW)

        assert codes(created) == ["budget_over"]

    def test_raising_rule_does_not_abort_batch(self, db, dispatcher, user, overspent):
        def explode(ctx):
            raise ValueError("bad data")

        rules = (NudgeRule(NudgeCode.SPENDING_SPIKE, 24, explode),) + tuple(
            r for r in RULES if r.code == NudgeCode.BUDGET_OVER
        )

        created = NudgeEngine(db, dispatcher=dispatcher, rules=rules).run_checks(user.id, now=NOW)

        assert codes(created) == ["budget_over"]

    def test_write_failure_records_nothing(self, db, engine_under_test, user, overspent):
        with patch.object(NudgeDeliveryService, "deliver", side_effect=RuntimeError("disk full")):
            assert engine_under_test.run_checks(user.id, now=NOW) == []

        assert db.query(NudgeDeliveryDB).count() == 0
        # Nothing was recorded, so the next check can fire
        assert codes(engine_under_test.run_checks(user.id, now=NOW)) == ["budget_over"]

    def test_dispatch_error_does_not_lose_delivery(self, db, engine_under_test, user, overspent, dispatcher):
        dispatcher.notify.side_effect = RuntimeError("push backend down")

        created = engine_under_test.run_checks(user.id, now=NOW)

        assert codes(created) == ["budget_over"]
        assert db.query(NudgeDeliveryDB).count() == 1


# =============================================================================
# DISMISS THEN RE-CHECK
# =============================================================================

class TestDismissal:

    def test_dismissed_nudge_stays_in_cooldown(self, db, engine_under_test, user, overspent):
        delivery = engine_under_test.run_checks(user.id, now=NOW)[0]
        deliveries = NudgeDeliveryService(db)

        assert deliveries.dismiss(user.id, delivery.id, now=NOW + timedelta(minutes=1)) is True
        assert deliveries.list_active(user.id) == []
        assert engine_under_test.run_checks(user.id, now=NOW + timedelta(hours=2)) == []
