"""
LEAD ASSIGNMENT STATE MACHINE
=============================

Assign / accept / decline / timeout transitions, counters and audit trail.

Run with: pytest tests/test_assignment_service.py -v
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from leadflow.domain.entities import (
    AcceptStatus,
    AssignmentState,
    AuditAction,
    AuditLog,
    EmailNotificationLog,
    Lead,
    LeadStatus,
    NotificationKind,
    UserRole,
)
from leadflow.domain.exceptions import (
    LeadNotFound,
    MissingFacility,
    NotAssignee,
    NotPending,
    PermissionDenied,
    UserNotFound,
)
from leadflow.infrastructure.services.assignment_service import (
    AssignmentOutcome,
    LeadAssignmentService,
)
from tests.utils import T0, create_pending_lead, create_pool, create_user, hours, lead_data


async def audit_trail(db, lead_id):
    result = await db.execute(
        select(AuditLog).where(AuditLog.lead_id == lead_id).order_by(AuditLog.id)
    )
    return [(e.action, e.from_value, e.to_value) for e in result.scalars().all()]


# =============================================================================
# ASSIGNMENT
# =============================================================================

async def test_create_lead_assigns_head_of_rotation(service, db_session, falkenberg, notifier):
    result = await service.create_lead(lead_data(), now=T0)

    lead = result.lead
    assert result.outcome == AssignmentOutcome.ASSIGNED
    assert result.seller_id == falkenberg["a"].id
    assert lead.assigned_to_id == falkenberg["a"].id
    assert lead.status == LeadStatus.PENDING_ACCEPTANCE.value
    assert lead.accept_status == AcceptStatus.PENDING.value
    assert lead.assignment_state == AssignmentState.PENDING_ACCEPTANCE
    assert lead.reminder_sent_at_6h is None
    assert lead.reminder_sent_at_11h is None
    assert lead.timeout_notified_at is None
    assert lead.assignment_version == 1

    assert await audit_trail(db_session, lead.id) == [
        (AuditAction.ASSIGNED.value, None, "Anna"),
    ]
    notifier.send_lead_assigned.assert_awaited_once()


async def test_fairness_visits_each_seller_once_in_order(db_session, notifier):
    sellers = [await create_user(db_session, f"s{i}@leadflow.se") for i in range(4)]
    await create_pool(db_session, "Falkenberg", sellers)
    await db_session.commit()
    service = LeadAssignmentService(db_session, notifier)

    assignees = []
    for i in range(len(sellers)):
        now = T0 + timedelta(minutes=i)
        result = await service.create_lead(lead_data(), now=now)
        await service.accept(result.lead.id, result.seller_id, now=now)
        assignees.append(result.seller_id)

    assert assignees == [s.id for s in sellers]


async def test_create_lead_without_eligible_seller(service, db_session, notifier):
    await create_user(db_session, "a@leadflow.se")
    await db_session.commit()

    result = await service.create_lead(lead_data(), now=T0)

    assert result.outcome == AssignmentOutcome.NO_ELIGIBLE_SELLER
    assert result.lead.id is not None
    assert result.lead.assignment_state == AssignmentState.UNASSIGNED
    notifier.send_lead_assigned.assert_not_awaited()


async def test_auto_assign_requires_facility(service, db_session, falkenberg):
    result = await service.create_lead(lead_data(facility=None), now=T0)
    assert result.outcome == AssignmentOutcome.NO_ELIGIBLE_SELLER

    with pytest.raises(MissingFacility):
        await service.auto_assign(result.lead.id)


async def test_auto_assign_unknown_lead(service, falkenberg):
    with pytest.raises(LeadNotFound):
        await service.auto_assign(4040)


async def test_auto_assign_released_lead(service, db_session, falkenberg):
    lead = Lead(**lead_data(), created_at=T0)
    db_session.add(lead)
    await db_session.commit()

    result = await service.auto_assign(lead.id, acting_user_id=falkenberg["manager"].id, now=T0)

    assert result.outcome == AssignmentOutcome.ASSIGNED
    assert lead.assigned_to_id == falkenberg["a"].id
    assert lead.assigned_at is not None


async def test_assignment_email_respects_opt_out(service, db_session, notifier):
    seller = await create_user(db_session, "a@leadflow.se", email_on_lead_assignment=False)
    await create_pool(db_session, "Falkenberg", [seller])
    await db_session.commit()

    result = await service.create_lead(lead_data(), now=T0)

    assert result.outcome == AssignmentOutcome.ASSIGNED
    notifier.send_lead_assigned.assert_not_awaited()


async def test_failed_assignment_email_keeps_assignment(service, db_session, falkenberg, notifier):
    notifier.send_lead_assigned.side_effect = RuntimeError("smtp down")

    result = await service.create_lead(lead_data(), now=T0)

    assert result.outcome == AssignmentOutcome.ASSIGNED
    assert result.lead.is_pending_acceptance

    logs = (await db_session.execute(select(EmailNotificationLog))).scalars().all()
    assert len(logs) == 1
    assert logs[0].kind == NotificationKind.LEAD_ASSIGNED.value
    assert logs[0].success is False
    assert "smtp down" in logs[0].error_message


# =============================================================================
# ACCEPT
# =============================================================================

async def test_accept_ends_the_cycle(service, db_session, falkenberg):
    seller = falkenberg["a"]
    lead = await create_pending_lead(
        db_session, seller, assigned_at=T0, reminder_sent_at_6h=T0 + hours(6)
    )
    await db_session.commit()

    accepted = await service.accept(lead.id, seller.id, now=T0 + hours(7))

    assert accepted.status == LeadStatus.NEW.value
    assert accepted.accept_status == AcceptStatus.ACCEPTED.value
    assert accepted.accepted_at is not None
    assert accepted.assigned_to_id == seller.id
    assert accepted.assignment_state == AssignmentState.ACCEPTED
    assert accepted.reminder_sent_at_6h is None

    await db_session.refresh(seller)
    assert seller.leads_accepted_count == 1
    assert await audit_trail(db_session, lead.id) == [
        (AuditAction.ACCEPTED.value, None, "Anna"),
    ]


async def test_accept_by_someone_else_changes_nothing(service, db_session, falkenberg):
    lead = await create_pending_lead(db_session, falkenberg["a"])
    await db_session.commit()

    with pytest.raises(NotAssignee):
        await service.accept(lead.id, falkenberg["b"].id)

    await db_session.refresh(lead)
    assert lead.is_pending_acceptance
    assert await audit_trail(db_session, lead.id) == []


async def test_accept_twice_is_not_pending(service, db_session, falkenberg):
    seller = falkenberg["a"]
    lead = await create_pending_lead(db_session, seller)
    await db_session.commit()

    await service.accept(lead.id, seller.id)

    with pytest.raises(NotPending):
        await service.accept(lead.id, seller.id)

    await db_session.refresh(seller)
    assert seller.leads_accepted_count == 1


# =============================================================================
# DECLINE
# =============================================================================

async def test_decline_hands_lead_to_next_seller(service, db_session, falkenberg, notifier):
    a, b = falkenberg["a"], falkenberg["b"]
    lead = await create_pending_lead(db_session, a, assigned_at=T0)
    await db_session.commit()

    result = await service.decline(lead.id, a.id, reason="On vacation", now=T0 + hours(1))

    assert result.outcome == AssignmentOutcome.REASSIGNED
    assert result.seller_id == b.id
    assert result.previous_seller_id == a.id
    assert lead.assigned_to_id == b.id
    assert lead.status == LeadStatus.PENDING_ACCEPTANCE.value
    assert lead.accept_status == AcceptStatus.PENDING.value
    assert lead.assigned_at is not None
    assert lead.assignment_version == 2
    # The next seller starts clean; the reason stays in the audit trail
    assert lead.declined_at is None
    assert lead.decline_reason is None

    await db_session.refresh(a)
    assert a.leads_declined_count == 1
    assert a.leads_reassigned_count == 1

    assert await audit_trail(db_session, lead.id) == [
        (AuditAction.DECLINED.value, "Anna", "On vacation"),
        (AuditAction.REASSIGNED.value, "Anna", "Bertil"),
    ]
    notifier.send_lead_assigned.assert_awaited_once()
    assert notifier.send_lead_assigned.await_args.args[0].id == b.id


async def test_decline_by_only_seller_releases_lead(service, db_session):
    a = await create_user(db_session, "a@leadflow.se", first_name="Anna")
    await create_pool(db_session, "Falkenberg", [a])
    lead = await create_pending_lead(db_session, a, reminder_sent_at_6h=T0 + hours(6))
    await db_session.commit()

    result = await service.decline(lead.id, a.id, now=T0 + hours(7))

    assert result.outcome == AssignmentOutcome.RELEASED
    assert result.seller_id is None
    assert lead.assigned_to_id is None
    assert lead.assigned_at is None
    assert lead.status == LeadStatus.NEW.value
    assert lead.assignment_state == AssignmentState.UNASSIGNED
    assert lead.reminder_sent_at_6h is None

    await db_session.refresh(a)
    assert a.leads_declined_count == 1
    assert a.leads_reassigned_count == 0

    assert await audit_trail(db_session, lead.id) == [
        (AuditAction.DECLINED.value, "Anna", None),
        (AuditAction.RELEASED.value, "Anna", None),
    ]


async def test_decline_never_returns_lead_to_decliner(service, db_session):
    sellers = [await create_user(db_session, f"s{i}@leadflow.se") for i in range(3)]
    await create_pool(db_session, "Falkenberg", sellers)
    # Last assigned lead went to the third seller, so plain rotation wraps to the first
    await create_pending_lead(db_session, sellers[2], assigned_at=T0)
    lead = await create_pending_lead(db_session, sellers[0], assigned_at=T0 - hours(1))
    await db_session.commit()

    result = await service.decline(lead.id, sellers[0].id)

    assert result.outcome == AssignmentOutcome.REASSIGNED
    assert result.seller_id != sellers[0].id


async def test_decline_of_resolved_lead(service, db_session, falkenberg):
    a = falkenberg["a"]
    lead = await create_pending_lead(db_session, a)
    await db_session.commit()
    await service.accept(lead.id, a.id)

    with pytest.raises(NotPending):
        await service.decline(lead.id, a.id)


# =============================================================================
# TIMEOUT
# =============================================================================

async def test_timeout_reassigns_and_notifies_manager(service, db_session, falkenberg, notifier):
    a, b, manager = falkenberg["a"], falkenberg["b"], falkenberg["manager"]
    lead = await create_pending_lead(
        db_session, a, assigned_at=T0,
        reminder_sent_at_6h=T0 + hours(6), reminder_sent_at_11h=T0 + hours(11),
    )
    await db_session.commit()

    escalation = await service.escalate_timeout(lead, now=T0 + hours(12))

    assert escalation.result.outcome == AssignmentOutcome.REASSIGNED
    assert escalation.timed_out_seller_id == a.id
    assert lead.assigned_to_id == b.id
    assert lead.status == LeadStatus.PENDING_ACCEPTANCE.value
    assert lead.reminder_sent_at_6h is None
    assert lead.reminder_sent_at_11h is None
    assert lead.timeout_notified_at is None

    await db_session.refresh(a)
    assert a.leads_timed_out_count == 1

    assert await audit_trail(db_session, lead.id) == [
        (AuditAction.AUTO_DECLINED.value, "Anna", "Bertil"),
    ]

    assert escalation.manager_id == manager.id
    assert escalation.manager_notified is True
    notified_manager, timed_out_seller, notified_lead = notifier.send_manager_timeout_notice.await_args.args
    assert (notified_manager.id, timed_out_seller.id, notified_lead.id) == (manager.id, a.id, lead.id)


async def test_timeout_without_other_seller_releases_and_marks(service, db_session, notifier):
    manager = await create_user(db_session, "m@leadflow.se", role=UserRole.MANAGER)
    a = await create_user(db_session, "a@leadflow.se")
    await create_pool(db_session, "Falkenberg", [a])
    lead = await create_pending_lead(db_session, a, assigned_at=T0)
    await db_session.commit()

    escalation = await service.escalate_timeout(lead, now=T0 + hours(13))

    assert escalation.result.outcome == AssignmentOutcome.RELEASED
    assert lead.assignment_state == AssignmentState.UNASSIGNED
    assert lead.timeout_notified_at is not None
    assert escalation.manager_id == manager.id
    notifier.send_manager_timeout_notice.assert_awaited_once()


async def test_timeout_without_manager_is_only_logged(service, db_session, notifier):
    a = await create_user(db_session, "a@leadflow.se")
    b = await create_user(db_session, "b@leadflow.se")
    await create_pool(db_session, "Falkenberg", [a, b])
    lead = await create_pending_lead(db_session, a, assigned_at=T0)
    await db_session.commit()

    escalation = await service.escalate_timeout(lead, now=T0 + hours(12))

    assert escalation.result.outcome == AssignmentOutcome.REASSIGNED
    assert escalation.manager_id is None
    assert escalation.manager_notified is False
    notifier.send_manager_timeout_notice.assert_not_awaited()


async def test_failed_manager_notice_keeps_transition(service, db_session, falkenberg, notifier):
    notifier.send_manager_timeout_notice.side_effect = RuntimeError("mailbox full")
    lead = await create_pending_lead(db_session, falkenberg["a"], assigned_at=T0)
    await db_session.commit()

    escalation = await service.escalate_timeout(lead, now=T0 + hours(12))

    assert escalation.manager_notified is False
    await db_session.refresh(lead)
    assert lead.assigned_to_id == falkenberg["b"].id


async def test_timeout_loses_race_against_accept(session_factory, falkenberg, notifier):
    """
    The monitor read the lead before the seller accepted it: its timeout
    must not overwrite the accepted state.
    """
    a = falkenberg["a"]

    async with session_factory() as setup:
        lead = await create_pending_lead(setup, a, assigned_at=T0)
        await setup.commit()
        lead_id = lead.id

    async with session_factory() as monitor_session, session_factory() as request_session:
        monitor_service = LeadAssignmentService(monitor_session, notifier)
        stale_lead = await monitor_service.get_lead(lead_id)

        await LeadAssignmentService(request_session, notifier).accept(lead_id, a.id)

        with pytest.raises(NotPending):
            await monitor_service.escalate_timeout(stale_lead, now=T0 + hours(12))

        fresh = await monitor_service.get_lead(lead_id)
        assert fresh.accept_status == AcceptStatus.ACCEPTED.value
        assert fresh.assigned_to_id == a.id
        assert fresh.timeout_notified_at is None

    notifier.send_manager_timeout_notice.assert_not_awaited()


# =============================================================================
# MANUAL REASSIGNMENT / QUERIES
# =============================================================================

async def test_manager_reassigns_to_specific_user(service, db_session, falkenberg, notifier):
    a, b, manager = falkenberg["a"], falkenberg["b"], falkenberg["manager"]
    lead = await create_pending_lead(db_session, a, reminder_sent_at_6h=T0 + hours(6))
    await db_session.commit()

    updated = await service.manual_reassign(lead.id, manager.id, b.id, now=T0 + hours(8))

    assert updated.assigned_to_id == b.id
    assert updated.is_pending_acceptance
    assert updated.reminder_sent_at_6h is None
    assert await audit_trail(db_session, lead.id) == [
        (AuditAction.REASSIGNED.value, "Anna", "Bertil"),
    ]
    notifier.send_lead_assigned.assert_awaited_once()


async def test_only_managers_reassign(service, db_session, falkenberg):
    lead = await create_pending_lead(db_session, falkenberg["a"])
    await db_session.commit()

    with pytest.raises(PermissionDenied):
        await service.manual_reassign(lead.id, falkenberg["b"].id, falkenberg["b"].id)

    with pytest.raises(UserNotFound):
        await service.manual_reassign(lead.id, falkenberg["manager"].id, 777)


async def test_list_pending_acceptance(service, db_session, falkenberg):
    a, b = falkenberg["a"], falkenberg["b"]
    lead_a = await create_pending_lead(db_session, a, assigned_at=T0)
    lead_b = await create_pending_lead(db_session, b, assigned_at=T0 + hours(1))
    accepted = await create_pending_lead(db_session, a, assigned_at=T0 + hours(2))
    await db_session.commit()
    await service.accept(accepted.id, a.id)

    assert [lead.id for lead in await service.list_pending_acceptance()] == [lead_a.id, lead_b.id]
    assert [lead.id for lead in await service.list_pending_acceptance(b.id)] == [lead_b.id]


async def test_lead_activity_newest_first(service, db_session, falkenberg):
    a = falkenberg["a"]
    lead = await create_pending_lead(db_session, a)
    await db_session.commit()

    await service.decline(lead.id, a.id, reason="Busy")
    activity = await service.get_lead_activity(lead.id)

    assert [entry.action for entry in activity] == [
        AuditAction.REASSIGNED.value,
        AuditAction.DECLINED.value,
    ]


async def test_lead_view_is_limited_to_manager_and_assignee(service, db_session, falkenberg):
    manager, a, b = falkenberg["manager"], falkenberg["a"], falkenberg["b"]
    lead = await create_pending_lead(db_session, a)
    await db_session.commit()

    assert (await service.get_lead_for_viewer(lead.id, a)).id == lead.id
    assert (await service.get_lead_for_viewer(lead.id, manager)).id == lead.id

    with pytest.raises(PermissionDenied):
        await service.get_lead_for_viewer(lead.id, b)

    with pytest.raises(PermissionDenied):
        await service.get_lead_activity(lead.id, viewer=b)


async def test_audit_entries_are_immutable(service, db_session, falkenberg):
    a = falkenberg["a"]
    lead = await create_pending_lead(db_session, a)
    await db_session.commit()
    await service.accept(lead.id, a.id)

    [entry] = await service.get_lead_activity(lead.id)
    entry.to_value = "someone else"

    with pytest.raises(ValueError):
        await db_session.flush()
