"""
Tests unitaires DistributionStateMachine

Invariants testés:
    DIST_001: PENDING -> DONE une seule fois
    DIST_002: read_flag ne régresse jamais
    DIST_003: Groupe ALL dérivé
    DIST_004: Transition et notifications atomiques
    DIST_005: mark_read limité au propriétaire
    ACL_002: PDF inexistant = NotFound pour tous les rôles
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.audit import AuditEmitter, AuditEventType
from src.auth.authorization_guard import AuthorizationGuard
from src.auth.interfaces import Identity, Role
from src.cache import IdentityCache
from src.core.crypto_provider import CryptoProvider
from src.core.errors import Forbidden, NotFound, StoreUnavailable, Unauthorized, ValidationFailed
from src.distribution import (
    AssignedGroup,
    Assignment,
    AssignmentStatus,
    DistributionState,
    DistributionStateMachine,
    IDistributionStateMachine,
    Notification,
)
from src.network import TimeoutConfig, TimeoutManager
from src.stores import DistributorRecord


ADMIN = Identity("u-admin", "admin@example.com", Role.ADMIN)
DIST_1 = Identity("u-dist-1", "dist1@example.com", Role.DISTRIBUTOR)
DIST_2 = Identity("u-dist-2", "dist2@example.com", Role.DISTRIBUTOR)
ORPHAN = Identity("u-orphan", "orphan@example.com", Role.DISTRIBUTOR)


@pytest.fixture
def cache():
    return IdentityCache()


@pytest.fixture
def audit():
    return AuditEmitter(CryptoProvider())


@pytest.fixture
def machine(resource_store, cache, audit, quiet_logger):
    return DistributionStateMachine(
        resource_store,
        AuthorizationGuard(logger=quiet_logger),
        cache,
        timeouts=TimeoutManager(TimeoutConfig(request_timeout=1.0)),
        audit=audit,
        logger=quiet_logger,
    )


async def _seed_single(store, pdf_id="pdf-1", distributor_id="d-1"):
    await store.create_assignment(Assignment(
        pdf_id=pdf_id,
        file_name=f"{pdf_id}.pdf",
        assigned_group=AssignedGroup.SINGLE,
        uploaded_by="u-admin",
        assigned_distributor_id=distributor_id,
    ))
    await store.create_notifications([
        Notification(f"n-{pdf_id}-{distributor_id}", pdf_id, distributor_id),
    ])


# ══════════════════════════════════════════════════════════════════════════════
# TESTS ÉTAT
# ══════════════════════════════════════════════════════════════════════════════


class TestStateFor:

    def test_implements_interface(self, machine):
        assert isinstance(machine, IDistributionStateMachine)

    def test_states(self, machine):
        assignment = Assignment("pdf-1", "a.pdf", AssignedGroup.SINGLE, "u-admin", "d-1")
        assert machine.state_for(assignment, "d-1") == DistributionState.PENDING
        assert machine.state_for(assignment, "d-2") == DistributionState.NOT_VISIBLE
        assert machine.state_for(assignment, None) == DistributionState.NOT_VISIBLE

        assignment.status = AssignmentStatus.DONE
        assert machine.state_for(assignment, "d-1") == DistributionState.DONE

    def test_DIST_003_all_visible_to_anyone(self, machine):
        assignment = Assignment("pdf-1", "a.pdf", AssignedGroup.ALL, "u-admin")
        assert machine.state_for(assignment, "d-created-later") == DistributionState.PENDING

    def test_multiple_recipients(self, machine):
        assignment = Assignment(
            "pdf-1", "a.pdf", AssignedGroup.MULTIPLE, "u-admin", "d-1", recipient_ids=("d-1", "d-2")
        )
        assert machine.state_for(assignment, "d-2") == DistributionState.PENDING
        assert machine.state_for(assignment, "d-3") == DistributionState.NOT_VISIBLE


# ══════════════════════════════════════════════════════════════════════════════
# TESTS TÉLÉCHARGEMENT
# ══════════════════════════════════════════════════════════════════════════════


class TestAuthorizeDownload:

    @pytest.mark.asyncio
    async def test_DIST_001_first_download_transitions(self, machine, resource_store):
        await _seed_single(resource_store)

        grant = await machine.authorize_download(DIST_1, "pdf-1")

        assert grant.status_transitioned is True
        assert grant.notifications_marked == 1
        assert grant.distributor_id == "d-1"
        assert grant.assignment.status == AssignmentStatus.DONE
        assert (await resource_store.find_assignment("pdf-1")).status == AssignmentStatus.DONE
        assert await resource_store.find_notifications("pdf-1", "d-1", read_flag=False) == []

    @pytest.mark.asyncio
    async def test_DIST_001_second_download_is_idempotent(self, machine, resource_store):
        await _seed_single(resource_store)
        await machine.authorize_download(DIST_1, "pdf-1")

        grant = await machine.authorize_download(DIST_1, "pdf-1")

        assert grant.status_transitioned is False
        assert grant.notifications_marked == 0
        assert grant.assignment.status == AssignmentStatus.DONE

    @pytest.mark.asyncio
    async def test_non_recipient_forbidden_without_side_effects(self, machine, resource_store, audit):
        await _seed_single(resource_store)

        with pytest.raises(Forbidden):
            await machine.authorize_download(DIST_2, "pdf-1")

        assert (await resource_store.find_assignment("pdf-1")).status == AssignmentStatus.PENDING
        assert len(await resource_store.find_notifications("pdf-1", "d-1")) == 1
        assert audit.get_events(AuditEventType.ACCESS_DENIED)

    @pytest.mark.asyncio
    async def test_admin_granted_without_side_effects(self, machine, resource_store):
        await _seed_single(resource_store)

        grant = await machine.authorize_download(ADMIN, "pdf-1")

        assert grant.status_transitioned is False
        assert grant.distributor_id is None
        assert (await resource_store.find_assignment("pdf-1")).status == AssignmentStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identity", [ADMIN, DIST_1, DIST_2])
    async def test_ACL_002_missing_pdf_not_found_for_every_role(self, machine, identity):
        with pytest.raises(NotFound):
            await machine.authorize_download(identity, "pdf-missing")

    @pytest.mark.asyncio
    async def test_anonymous_unauthorized_before_lookup(self, machine, resource_store):
        resource_store.find_assignment = AsyncMock()
        with pytest.raises(Unauthorized):
            await machine.authorize_download(None, "pdf-1")
        resource_store.find_assignment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_distributor_without_record_forbidden(self, machine, resource_store):
        await resource_store.create_assignment(Assignment("pdf-all", "all.pdf", AssignedGroup.ALL, "u-admin"))
        with pytest.raises(Forbidden):
            await machine.authorize_download(ORPHAN, "pdf-all")

    @pytest.mark.asyncio
    async def test_DIST_003_all_group_for_distributor_created_later(self, machine, resource_store):
        await resource_store.create_assignment(Assignment("pdf-all", "all.pdf", AssignedGroup.ALL, "u-admin"))
        resource_store.add_distributor(DistributorRecord("d-late", "late@example.com"))
        late = Identity("u-late", "late@example.com", Role.DISTRIBUTOR)

        grant = await machine.authorize_download(late, "pdf-all")
        assert grant.distributor_id == "d-late"

    @pytest.mark.asyncio
    async def test_distributor_id_resolved_through_cache(self, machine, resource_store, cache):
        await _seed_single(resource_store)
        lookup = AsyncMock(return_value="d-1")
        resource_store.find_distributor_id_by_email = lookup

        await machine.authorize_download(DIST_1, "pdf-1")
        await machine.authorize_download(DIST_1, "pdf-1")

        assert lookup.await_count == 1
        assert cache.get("dist1@example.com") == "d-1"

    @pytest.mark.asyncio
    async def test_DIST_004_failure_rolls_back_transition(self, machine, resource_store):
        await _seed_single(resource_store)
        resource_store.mark_notifications_read = AsyncMock(side_effect=ConnectionError("lost"))

        with pytest.raises(StoreUnavailable):
            await machine.authorize_download(DIST_1, "pdf-1")

        assert (await resource_store.find_assignment("pdf-1")).status == AssignmentStatus.PENDING
        assert len(await resource_store.find_notifications("pdf-1", "d-1", read_flag=False)) == 1

    @pytest.mark.asyncio
    async def test_DIST_004_concurrent_downloads_transition_once(self, machine, resource_store):
        await _seed_single(resource_store)

        grants = await asyncio.gather(*[machine.authorize_download(DIST_1, "pdf-1") for _ in range(5)])

        assert sum(1 for g in grants if g.status_transitioned) == 1
        assert sum(g.notifications_marked for g in grants) == 1

    @pytest.mark.asyncio
    async def test_store_timeout_is_store_unavailable(self, machine, resource_store):
        async def slow(pdf_id):
            await asyncio.sleep(2)

        resource_store.find_assignment = slow
        with pytest.raises(StoreUnavailable):
            await machine.authorize_download(DIST_1, "pdf-1")

    @pytest.mark.asyncio
    async def test_download_audited(self, machine, resource_store, audit):
        await _seed_single(resource_store)
        await machine.authorize_download(DIST_1, "pdf-1")

        events = audit.get_events(AuditEventType.PDF_DOWNLOADED)
        assert len(events) == 1
        assert events[0].resource_id == "pdf-1"
        assert audit.verify_event_signature(events[0])


# ══════════════════════════════════════════════════════════════════════════════
# TESTS NOTIFICATIONS
# ══════════════════════════════════════════════════════════════════════════════


class TestMarkRead:

    @pytest.mark.asyncio
    async def test_owner_marks_read(self, machine, resource_store):
        await _seed_single(resource_store)

        notification = await machine.mark_read("n-pdf-1-d-1", "d-1")

        assert notification.read_flag is True
        assert (await resource_store.find_notification("n-pdf-1-d-1")).read_flag is True

    @pytest.mark.asyncio
    async def test_DIST_005_other_distributor_gets_not_found(self, machine, resource_store):
        await _seed_single(resource_store)

        with pytest.raises(NotFound):
            await machine.mark_read("n-pdf-1-d-1", "d-2")
        assert (await resource_store.find_notification("n-pdf-1-d-1")).read_flag is False

    @pytest.mark.asyncio
    async def test_unknown_notification_not_found(self, machine):
        with pytest.raises(NotFound):
            await machine.mark_read("n-missing", "d-1")

    @pytest.mark.asyncio
    async def test_DIST_002_mark_read_is_idempotent(self, machine, resource_store):
        await _seed_single(resource_store)
        await machine.mark_read("n-pdf-1-d-1", "d-1")
        notification = await machine.mark_read("n-pdf-1-d-1", "d-1")
        assert notification.read_flag is True

    @pytest.mark.asyncio
    async def test_read_notification_from_session(self, machine, resource_store):
        await _seed_single(resource_store)

        with pytest.raises(NotFound):
            await machine.read_notification(DIST_2, "n-pdf-1-d-1")
        with pytest.raises(NotFound):
            await machine.read_notification(ORPHAN, "n-pdf-1-d-1")

        notification = await machine.read_notification(DIST_1, "n-pdf-1-d-1")
        assert notification.read_flag is True

    @pytest.mark.asyncio
    async def test_admin_reads_any_notification(self, machine, resource_store):
        await _seed_single(resource_store)
        notification = await machine.read_notification(ADMIN, "n-pdf-1-d-1")
        assert notification.read_flag is True

    @pytest.mark.asyncio
    async def test_mark_many_read_only_owned(self, machine, resource_store):
        await _seed_single(resource_store, "pdf-1", "d-1")
        await _seed_single(resource_store, "pdf-2", "d-1")
        await _seed_single(resource_store, "pdf-3", "d-2")

        marked = await machine.mark_many_read(
            ["n-pdf-1-d-1", "n-pdf-2-d-1", "n-pdf-3-d-2", "n-unknown"], "d-1"
        )

        assert marked == 2
        assert (await resource_store.find_notification("n-pdf-3-d-2")).read_flag is False

    @pytest.mark.asyncio
    async def test_mark_all_read_and_unread_count(self, machine, resource_store):
        await _seed_single(resource_store, "pdf-1", "d-1")
        await _seed_single(resource_store, "pdf-2", "d-1")
        await _seed_single(resource_store, "pdf-3", "d-2")

        assert await machine.unread_count("d-1") == 2
        assert await machine.mark_all_read("d-1") == 2
        assert await machine.unread_count("d-1") == 0
        assert await machine.unread_count("d-2") == 1

    @pytest.mark.asyncio
    async def test_mark_all_read_as_admin(self, machine, resource_store):
        await _seed_single(resource_store, "pdf-1", "d-1")
        await _seed_single(resource_store, "pdf-2", "d-2")

        with pytest.raises(Forbidden):
            await machine.mark_all_read_as_admin(DIST_1)
        assert await machine.mark_all_read_as_admin(ADMIN) == 2
        assert await machine.unread_count("d-2") == 0


# ══════════════════════════════════════════════════════════════════════════════
# TESTS BOÎTE DE RÉCEPTION
# ══════════════════════════════════════════════════════════════════════════════


BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


async def _seed_inbox(store):
    await store.create_notifications([
        Notification("n-old", "pdf-1", "d-1", created_at=BASE_TIME),
        Notification("n-new", "pdf-2", "d-1", created_at=BASE_TIME + timedelta(hours=2)),
        Notification("n-read", "pdf-3", "d-1", read_flag=True, created_at=BASE_TIME + timedelta(hours=1)),
        Notification("n-other", "pdf-1", "d-2", created_at=BASE_TIME + timedelta(hours=3)),
    ])


class TestListNotifications:

    @pytest.mark.asyncio
    async def test_owner_scoped_newest_first(self, machine, resource_store):
        await _seed_inbox(resource_store)

        inbox = await machine.list_notifications(DIST_1)

        assert [n.notification_id for n in inbox] == ["n-new", "n-read", "n-old"]
        assert [n.notification_id for n in await machine.list_notifications(DIST_2)] == ["n-other"]

    @pytest.mark.asyncio
    async def test_read_flag_filter(self, machine, resource_store):
        await _seed_inbox(resource_store)

        unread = await machine.list_notifications(DIST_1, read_flag=False)
        read = await machine.list_notifications(DIST_1, read_flag=True)

        assert [n.notification_id for n in unread] == ["n-new", "n-old"]
        assert [n.notification_id for n in read] == ["n-read"]

    @pytest.mark.asyncio
    async def test_admin_sees_every_inbox(self, machine, resource_store):
        await _seed_inbox(resource_store)

        inbox = await machine.list_notifications(ADMIN, read_flag=False)

        assert [n.notification_id for n in inbox] == ["n-other", "n-new", "n-old"]

    @pytest.mark.asyncio
    async def test_distributor_without_record_not_found(self, machine, resource_store):
        await _seed_inbox(resource_store)
        with pytest.raises(NotFound):
            await machine.list_notifications(ORPHAN)

    @pytest.mark.asyncio
    async def test_anonymous_unauthorized(self, machine):
        with pytest.raises(Unauthorized):
            await machine.list_notifications(None)

    @pytest.mark.asyncio
    async def test_returned_copies_do_not_alias_store(self, machine, resource_store):
        await _seed_inbox(resource_store)

        inbox = await machine.list_notifications(DIST_1, read_flag=False)
        inbox[0].read_flag = True

        assert (await resource_store.find_notification("n-new")).read_flag is False


# ══════════════════════════════════════════════════════════════════════════════
# TESTS AFFECTATION
# ══════════════════════════════════════════════════════════════════════════════


class TestAssign:

    @pytest.mark.asyncio
    async def test_single(self, machine, resource_store):
        assignment = await machine.assign(ADMIN, "pdf-1", "price-list.pdf", AssignedGroup.SINGLE, ["d-1"])

        assert assignment.assigned_distributor_id == "d-1"
        assert assignment.status == AssignmentStatus.PENDING
        assert assignment.uploaded_by == "u-admin"
        assert await machine.unread_count("d-1") == 1

    @pytest.mark.asyncio
    async def test_multiple_keeps_all_recipients(self, machine, resource_store):
        assignment = await machine.assign(
            ADMIN, "pdf-1", "promo.pdf", AssignedGroup.MULTIPLE, ["d-1", "d-2", "d-1"]
        )

        assert assignment.assigned_distributor_id == "d-1"
        assert assignment.recipient_ids == ("d-1", "d-2")
        grant = await machine.authorize_download(DIST_2, "pdf-1")
        assert grant.status_transitioned

    @pytest.mark.asyncio
    async def test_all_notifies_active_distributors(self, machine, resource_store):
        await machine.assign(ADMIN, "pdf-1", "catalogue.pdf", AssignedGroup.ALL)

        assert await machine.unread_count("d-1") == 1
        assert await machine.unread_count("d-2") == 1
        assert await machine.unread_count("d-inactive") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "pdf_id,file_name,group,targets",
        [
            ("", "a.pdf", AssignedGroup.ALL, []),
            ("pdf-1", "", AssignedGroup.ALL, []),
            ("pdf-1", "a.pdf", AssignedGroup.SINGLE, []),
            ("pdf-1", "a.pdf", AssignedGroup.SINGLE, ["d-1", "d-2"]),
            ("pdf-1", "a.pdf", AssignedGroup.MULTIPLE, []),
        ],
    )
    async def test_invalid_input(self, machine, pdf_id, file_name, group, targets):
        with pytest.raises(ValidationFailed):
            await machine.assign(ADMIN, pdf_id, file_name, group, targets)

    @pytest.mark.asyncio
    async def test_duplicate_pdf_rejected(self, machine):
        await machine.assign(ADMIN, "pdf-1", "a.pdf", AssignedGroup.ALL)
        with pytest.raises(ValidationFailed):
            await machine.assign(ADMIN, "pdf-1", "a.pdf", AssignedGroup.ALL)

    @pytest.mark.asyncio
    async def test_requires_admin(self, machine):
        with pytest.raises(Forbidden):
            await machine.assign(DIST_1, "pdf-1", "a.pdf", AssignedGroup.ALL)
        with pytest.raises(Unauthorized):
            await machine.assign(None, "pdf-1", "a.pdf", AssignedGroup.ALL)

    @pytest.mark.asyncio
    async def test_assignment_audited(self, machine, audit):
        await machine.assign(ADMIN, "pdf-1", "a.pdf", AssignedGroup.ALL)
        events = audit.get_events(AuditEventType.PDF_ASSIGNED)
        assert events[0].metadata["recipients"] == 2


class TestListVisible:

    @pytest.mark.asyncio
    async def test_visibility_by_role(self, machine):
        await machine.assign(ADMIN, "pdf-1", "one.pdf", AssignedGroup.SINGLE, ["d-1"])
        await machine.assign(ADMIN, "pdf-2", "two.pdf", AssignedGroup.SINGLE, ["d-2"])
        await machine.assign(ADMIN, "pdf-3", "all.pdf", AssignedGroup.ALL)

        assert {a.pdf_id for a in await machine.list_visible(ADMIN)} == {"pdf-1", "pdf-2", "pdf-3"}
        assert {a.pdf_id for a in await machine.list_visible(DIST_1)} == {"pdf-1", "pdf-3"}
        assert {a.pdf_id for a in await machine.list_visible(DIST_2)} == {"pdf-2", "pdf-3"}
        assert await machine.list_visible(ORPHAN) == []

    @pytest.mark.asyncio
    async def test_status_filter(self, machine):
        await machine.assign(ADMIN, "pdf-1", "one.pdf", AssignedGroup.SINGLE, ["d-1"])
        await machine.assign(ADMIN, "pdf-2", "all.pdf", AssignedGroup.ALL)
        await machine.authorize_download(DIST_1, "pdf-1")

        done = await machine.list_visible(DIST_1, status=AssignmentStatus.DONE)
        assert [a.pdf_id for a in done] == ["pdf-1"]

    @pytest.mark.asyncio
    async def test_anonymous_unauthorized(self, machine):
        with pytest.raises(Unauthorized):
            await machine.list_visible(None)
