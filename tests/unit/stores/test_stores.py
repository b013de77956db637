"""
Tests unitaires stores en mémoire
"""

from datetime import datetime, timezone

import pytest

from src.auth.interfaces import AccountStatus, CredentialRecord, Role
from src.core.errors import NotFound, ValidationFailed
from src.distribution import AssignedGroup, Assignment, AssignmentStatus, Notification
from src.stores import DistributorRecord, InMemoryCredentialStore, InMemoryResourceStore


class TestInMemoryCredentialStore:

    @pytest.mark.asyncio
    async def test_find_by_email_is_normalized(self, credential_store):
        record = await credential_store.find_by_email("  DIST1@Example.com ")
        assert record.user_id == "u-dist-1"
        assert await credential_store.find_by_email("") is None
        assert await credential_store.find_by_email("nobody@example.com") is None

    def test_duplicates_rejected(self, credential_store):
        with pytest.raises(ValidationFailed):
            credential_store.add(CredentialRecord("u-admin", "other@example.com", Role.ADMIN, "h"))
        with pytest.raises(ValidationFailed):
            credential_store.add(CredentialRecord("u-new", "Admin@Example.com", Role.ADMIN, "h"))

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, credential_store):
        record = await credential_store.find_by_id("u-dist-1")
        record.status = AccountStatus.INACTIVE
        assert (await credential_store.find_by_id("u-dist-1")).status == AccountStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_update_status_and_record_login(self, credential_store):
        at = datetime(2024, 6, 1, tzinfo=timezone.utc)
        await credential_store.update_status("u-dist-1", AccountStatus.INACTIVE)
        await credential_store.record_login("u-dist-1", at)

        record = await credential_store.find_by_id("u-dist-1")
        assert record.status == AccountStatus.INACTIVE
        assert record.last_login == at

    @pytest.mark.asyncio
    async def test_unknown_user_not_found(self):
        store = InMemoryCredentialStore()
        with pytest.raises(NotFound):
            await store.update_status("u-missing", AccountStatus.ACTIVE)
        with pytest.raises(NotFound):
            await store.record_login("u-missing", datetime.now(timezone.utc))


class TestInMemoryResourceStore:

    @pytest.mark.asyncio
    async def test_distributor_lookup(self, resource_store):
        assert await resource_store.find_distributor_id_by_email("Dist2@example.com") == "d-2"
        assert await resource_store.find_distributor_id_by_email("orphan@example.com") is None
        assert set(await resource_store.list_active_distributor_ids()) == {"d-1", "d-2"}

    @pytest.mark.asyncio
    async def test_distributor_status(self, resource_store):
        resource_store.set_distributor_status("d-2", AccountStatus.INACTIVE)
        assert await resource_store.list_active_distributor_ids() == ["d-1"]
        with pytest.raises(NotFound):
            resource_store.set_distributor_status("d-missing", AccountStatus.ACTIVE)

    def test_duplicate_distributor_email_rejected(self, resource_store):
        with pytest.raises(ValidationFailed):
            resource_store.add_distributor(DistributorRecord("d-9", "DIST1@example.com"))

    @pytest.mark.asyncio
    async def test_duplicate_assignment_rejected(self):
        store = InMemoryResourceStore()
        assignment = Assignment("pdf-1", "a.pdf", AssignedGroup.ALL, "u-admin")
        await store.create_assignment(assignment)
        with pytest.raises(ValidationFailed):
            await store.create_assignment(assignment)

    @pytest.mark.asyncio
    async def test_mark_notifications_counts_only_unread(self):
        store = InMemoryResourceStore()
        await store.create_notifications([
            Notification("n-1", "pdf-1", "d-1"),
            Notification("n-2", "pdf-1", "d-1", read_flag=True),
        ])

        assert await store.mark_notifications_read(["n-1", "n-2", "n-missing"]) == 1
        assert await store.list_unread_notification_ids() == []

    @pytest.mark.asyncio
    async def test_find_notifications_filters(self):
        store = InMemoryResourceStore()
        await store.create_notifications([
            Notification("n-1", "pdf-1", "d-1"),
            Notification("n-2", "pdf-1", "d-1", read_flag=True),
            Notification("n-3", "pdf-1", "d-2"),
        ])

        unread = await store.find_notifications("pdf-1", "d-1")
        assert [n.notification_id for n in unread] == ["n-1"]
        assert len(await store.find_notifications("pdf-1", "d-1", read_flag=None)) == 2

    @pytest.mark.asyncio
    async def test_list_notifications_newest_first(self):
        store = InMemoryResourceStore()
        base = datetime(2024, 6, 1, tzinfo=timezone.utc)
        await store.create_notifications([
            Notification("n-1", "pdf-1", "d-1", created_at=base),
            Notification("n-2", "pdf-2", "d-1", read_flag=True, created_at=base.replace(hour=2)),
            Notification("n-3", "pdf-3", "d-1", created_at=base.replace(hour=1)),
            Notification("n-4", "pdf-1", "d-2", created_at=base.replace(hour=3)),
        ])

        mine = await store.list_notifications("d-1")
        assert [n.notification_id for n in mine] == ["n-2", "n-3", "n-1"]
        unread = await store.list_notifications("d-1", read_flag=False)
        assert [n.notification_id for n in unread] == ["n-3", "n-1"]
        assert len(await store.list_notifications(None)) == 4

    @pytest.mark.asyncio
    async def test_transaction_commits(self):
        store = InMemoryResourceStore()
        await store.create_assignment(Assignment("pdf-1", "a.pdf", AssignedGroup.ALL, "u-admin"))

        async with store.transaction():
            await store.update_assignment_status("pdf-1", AssignmentStatus.DONE)

        assert (await store.find_assignment("pdf-1")).status == AssignmentStatus.DONE

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self):
        store = InMemoryResourceStore()
        await store.create_assignment(Assignment("pdf-1", "a.pdf", AssignedGroup.ALL, "u-admin"))
        await store.create_notifications([Notification("n-1", "pdf-1", "d-1")])

        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.update_assignment_status("pdf-1", AssignmentStatus.DONE)
                await store.mark_notifications_read(["n-1"])
                raise RuntimeError("boom")

        assert (await store.find_assignment("pdf-1")).status == AssignmentStatus.PENDING
        assert (await store.find_notification("n-1")).read_flag is False
