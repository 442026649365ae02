"""
ESCALATION POLICY
=================

Which step the monitor takes for one pending lead.
"""

from datetime import datetime, timedelta, timezone

import pytest

from leadflow.domain.entities import EscalationStage
from leadflow.domain.services.escalation_policy import (
    EscalationPolicy,
    EscalationStep,
    hours_since,
)


@pytest.fixture
def policy():
    return EscalationPolicy()


@pytest.mark.parametrize("elapsed", [0, 3, 5.99])
def test_nothing_before_first_threshold(policy, elapsed):
    assert policy.next_step(elapsed, EscalationStage.NONE) == EscalationStep.NONE


def test_first_reminder_at_six_hours(policy):
    assert policy.next_step(6, EscalationStage.NONE) == EscalationStep.FIRST_REMINDER
    assert policy.next_step(8, EscalationStage.REMINDED_6H) == EscalationStep.NONE


def test_final_reminder_at_eleven_hours(policy):
    assert policy.next_step(11, EscalationStage.REMINDED_6H) == EscalationStep.FINAL_REMINDER
    assert policy.next_step(11.5, EscalationStage.REMINDED_11H) == EscalationStep.NONE


def test_latest_threshold_wins_after_delay(policy):
    # Monitor was down: first look at the lead happens past the timeout
    assert policy.next_step(13, EscalationStage.NONE) == EscalationStep.TIMEOUT
    # First look between the final reminder and the timeout
    assert policy.next_step(11.2, EscalationStage.NONE) == EscalationStep.FINAL_REMINDER


def test_no_late_first_reminder_after_final(policy):
    assert policy.next_step(11.8, EscalationStage.REMINDED_11H) == EscalationStep.NONE


def test_timeout_fires_once(policy):
    assert policy.next_step(12, EscalationStage.REMINDED_11H) == EscalationStep.TIMEOUT
    assert policy.next_step(14, EscalationStage.TIMED_OUT) == EscalationStep.NONE


def test_hours_remaining_quoted_in_reminders(policy):
    assert policy.hours_remaining(EscalationStep.FIRST_REMINDER) == 6
    assert policy.hours_remaining(EscalationStep.FINAL_REMINDER) == 1


def test_thresholds_must_be_increasing():
    with pytest.raises(ValueError):
        EscalationPolicy(first_reminder_hours=6, final_reminder_hours=5, timeout_hours=12)
    with pytest.raises(ValueError):
        EscalationPolicy(first_reminder_hours=0, final_reminder_hours=1, timeout_hours=2)


def test_policy_from_settings():
    class FakeSettings:
        first_reminder_hours = 2
        final_reminder_hours = 3
        acceptance_timeout_hours = 4

    policy = EscalationPolicy.from_settings(FakeSettings())

    assert policy.timeout_hours == 4
    assert policy.hours_remaining(EscalationStep.FIRST_REMINDER) == 2


def test_hours_since_accepts_naive_values():
    now = datetime(2026, 3, 2, 20, 30, tzinfo=timezone.utc)
    naive_assigned = datetime(2026, 3, 2, 8, 0)

    assert hours_since(naive_assigned, now) == pytest.approx(12.5)
    assert hours_since(now - timedelta(minutes=90), now) == pytest.approx(1.5)
