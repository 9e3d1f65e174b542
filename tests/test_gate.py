import asyncio

import pytest

from canteen_gate.schemas import (
    DEFAULT_MAINTENANCE_MESSAGE,
    DEFAULT_MAINTENANCE_TITLE,
    CandidateUser,
    MaintenanceRule,
)
from canteen_gate.services.maintenance import GateReason, GateState, MaintenanceGate, decide

ADMIN = CandidateUser(id="1", role="admin", is_admin=True)
STUDENT = CandidateUser(
    id="2", role="student", register_number="711523CSE001",
    department="CSE", current_study_year=2,
)
STAFF = CandidateUser(id="4", role="staff", staff_id="KIT-STF-042")

ACTIVE_ALL = MaintenanceRule(is_active=True, targeting_type="all")


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class RuleSource:
    """Stands in for the server or the store."""

    def __init__(self, rule=None):
        self.rule = rule or MaintenanceRule()
        self.error = None
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.rule


# =============================================================================
# TRANSITIONS
# =============================================================================

def test_unavailable_status_opens():
    decision = decide(None, STUDENT)
    assert decision.state == GateState.OPEN
    assert decision.reason == GateReason.STATUS_UNAVAILABLE


def test_anonymous_user_opens():
    decision = decide(ACTIVE_ALL, None)
    assert decision.state == GateState.OPEN
    assert decision.reason == GateReason.ANONYMOUS


def test_inactive_rule_opens():
    decision = decide(MaintenanceRule(is_active=False), STUDENT)
    assert not decision.blocked
    assert decision.reason == GateReason.INACTIVE


def test_admin_bypass_only_where_allowed():
    assert decide(ACTIVE_ALL, ADMIN, allow_admin_access=True).reason == GateReason.ADMIN_BYPASS
    assert decide(ACTIVE_ALL, ADMIN, allow_admin_access=False).blocked


def test_admin_bypass_does_not_apply_to_non_admins():
    assert decide(ACTIVE_ALL, STUDENT, allow_admin_access=True).blocked


def test_targeted_user_gets_notice():
    rule = MaintenanceRule(
        is_active=True,
        title="Menu upgrade",
        message="Back soon",
        estimated_time="30 minutes",
        contact_info="canteen@kit.edu",
    )
    decision = decide(rule, STUDENT)

    assert decision.state == GateState.BLOCKED
    assert decision.reason == GateReason.TARGETED
    assert decision.notice.title == "Menu upgrade"
    assert decision.notice.message == "Back soon"
    assert decision.notice.estimated_time == "30 minutes"
    assert decision.notice.contact_info == "canteen@kit.edu"


def test_notice_falls_back_to_default_texts():
    rule = MaintenanceRule(is_active=True, title="", message=None, estimated_time="")
    notice = decide(rule, STUDENT).notice

    assert notice.title == DEFAULT_MAINTENANCE_TITLE
    assert notice.message == DEFAULT_MAINTENANCE_MESSAGE
    assert notice.estimated_time is None


def test_untargeted_user_opens():
    rule = MaintenanceRule(is_active=True, targeting_type="department", target_departments=["ECE"])
    decision = decide(rule, STUDENT)
    assert decision.reason == GateReason.NOT_TARGETED
    assert decision.to_dict() == {"state": "open", "reason": "not-targeted", "notice": None}


# =============================================================================
# REFRESH AND FAIL-OPEN
# =============================================================================

@pytest.mark.anyio
async def test_gate_blocks_with_fetched_rule():
    gate = MaintenanceGate(fetch_rule=RuleSource(ACTIVE_ALL), poll_interval=30)
    decision = await gate.evaluate(STUDENT)
    assert decision.blocked
    assert gate.rule.is_active


@pytest.mark.anyio
async def test_fetch_failure_fails_open():
    source = RuleSource()
    source.error = RuntimeError("connection refused")
    gate = MaintenanceGate(fetch_rule=source, poll_interval=30)

    decision = await gate.evaluate(STUDENT)

    assert decision.state == GateState.OPEN
    assert decision.reason == GateReason.STATUS_UNAVAILABLE
    assert gate.last_error == "connection refused"


@pytest.mark.anyio
async def test_failed_refresh_drops_previous_rule():
    clock = FakeClock()
    source = RuleSource(ACTIVE_ALL)
    gate = MaintenanceGate(fetch_rule=source, poll_interval=30, clock=clock)

    assert (await gate.evaluate(STUDENT)).blocked

    source.error = ConnectionError("down")
    clock.now += 30
    decision = await gate.evaluate(STUDENT)

    assert not decision.blocked
    assert gate.rule is None


@pytest.mark.anyio
async def test_gate_recovers_after_outage():
    clock = FakeClock()
    source = RuleSource(ACTIVE_ALL)
    source.error = TimeoutError()
    gate = MaintenanceGate(fetch_rule=source, poll_interval=30, clock=clock)

    assert not (await gate.evaluate(STUDENT)).blocked
    assert gate.last_error == "TimeoutError"

    source.error = None
    clock.now += 30
    assert (await gate.evaluate(STUDENT)).blocked
    assert gate.last_error is None


# =============================================================================
# STALENESS AND INVALIDATION
# =============================================================================

@pytest.mark.anyio
async def test_fresh_rule_is_reused_within_interval():
    clock = FakeClock()
    source = RuleSource()
    gate = MaintenanceGate(fetch_rule=source, poll_interval=30, clock=clock)

    await gate.evaluate(STUDENT)
    clock.now += 29
    await gate.evaluate(STUDENT)

    assert source.calls == 1


@pytest.mark.anyio
async def test_stale_rule_is_refreshed_on_navigation():
    clock = FakeClock()
    source = RuleSource()
    gate = MaintenanceGate(fetch_rule=source, poll_interval=30, clock=clock)

    assert not (await gate.evaluate(STUDENT)).blocked

    source.rule = ACTIVE_ALL
    clock.now += 30
    assert (await gate.evaluate(STUDENT)).blocked
    assert source.calls == 2


@pytest.mark.anyio
async def test_invalidate_forces_refetch():
    clock = FakeClock()
    source = RuleSource()
    gate = MaintenanceGate(fetch_rule=source, poll_interval=30, clock=clock)
    await gate.evaluate(STUDENT)

    source.rule = ACTIVE_ALL
    gate.invalidate()
    assert gate.rule is None
    assert gate.is_stale

    assert (await gate.evaluate(STUDENT)).blocked
    assert source.calls == 2


# =============================================================================
# POLLING
# =============================================================================

@pytest.mark.anyio
async def test_polling_picks_up_changes():
    source = RuleSource()
    gate = MaintenanceGate(fetch_rule=source, poll_interval=0.01)

    gate.start()
    assert gate.running
    await asyncio.sleep(0.05)
    source.rule = ACTIVE_ALL
    await asyncio.sleep(0.05)
    await gate.stop()

    assert not gate.running
    assert source.calls >= 2
    assert gate.rule.is_active


@pytest.mark.anyio
async def test_polling_survives_fetch_errors():
    source = RuleSource()
    source.error = RuntimeError("boom")
    gate = MaintenanceGate(fetch_rule=source, poll_interval=0.01)

    gate.start()
    await asyncio.sleep(0.05)
    assert gate.running
    await gate.stop()

    assert source.calls >= 2
    assert gate.rule is None


@pytest.mark.anyio
async def test_start_is_idempotent_and_stop_without_start_is_safe():
    gate = MaintenanceGate(fetch_rule=RuleSource(), poll_interval=10)
    await gate.stop()

    gate.start()
    task = gate._task
    gate.start()
    assert gate._task is task
    await gate.stop()


@pytest.mark.anyio
async def test_fetch_overtaken_by_invalidate_is_discarded():
    gate = None

    async def fetch_then_admin_writes():
        rule = MaintenanceRule(is_active=False)
        gate.invalidate()
        return rule

    gate = MaintenanceGate(fetch_rule=fetch_then_admin_writes, poll_interval=30)
    await gate.refresh()

    assert gate.rule is None
    assert gate.is_stale


@pytest.mark.parametrize("interval", [0, -5])
def test_non_positive_poll_interval_is_rejected(interval):
    with pytest.raises(ValueError):
        MaintenanceGate(fetch_rule=RuleSource(), poll_interval=interval)


def test_poll_interval_defaults_to_settings():
    assert MaintenanceGate(fetch_rule=RuleSource()).poll_interval == 60
