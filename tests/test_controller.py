"""Tests for the SyncController: session lifecycle, edits and reconciliation."""

import logging

import pytest

from ward_planner.errors import (
    AuthenticationFailedError,
    StorageUnavailableError,
    ValidationFailedError,
)
from ward_planner.sync.controller import DELETE_ITEM, NEW_ITEM, SyncController
from ward_planner.sync.gateway import ServiceWardGateway
from ward_planner.sync.session import SessionStatus
from ward_planner.tenants.models import GoalItem, TenantDocument
from ward_planner.tenants.service import TenantService

QUIET = 0.05


class RecordingGateway(ServiceWardGateway):
    """Counts persists and can be told to fail fetches or persists."""

    def __init__(self, service, fail_fetch=False, fail_persist=False):
        super().__init__(service)
        self.fail_fetch = fail_fetch
        self.fail_persist = fail_persist
        self.persisted = []

    async def fetch_document(self, tenant_id):
        if self.fail_fetch:
            raise StorageUnavailableError("fetch failed")
        return await super().fetch_document(tenant_id)

    async def persist_document(self, tenant_id, document):
        if self.fail_persist:
            raise StorageUnavailableError("persist failed")
        self.persisted.append(document.snapshot())
        await super().persist_document(tenant_id, document)


@pytest.fixture()
def service(sqlite_store, change_channel):
    return TenantService(sqlite_store, change_channel)


@pytest.fixture()
def gateway(service):
    return RecordingGateway(service)


@pytest.fixture()
async def controller(gateway, change_channel):
    ctrl = SyncController(gateway, change_channel=change_channel, debounce_seconds=QUIET)
    await ctrl.select_tenant("primavera")
    yield ctrl
    await ctrl.logout()


async def _stored(sqlite_store, tenant_id="primavera") -> TenantDocument:
    return (await sqlite_store.find_by_id(tenant_id)).data


class TestSession:
    @pytest.mark.asyncio
    async def test_select_tenant_loads_plan(self, gateway, sqlite_store):
        document = TenantDocument()
        document.teaching.items.append(GoalItem(what="existing"))
        await sqlite_store.replace_document("primavera", document)

        ctrl = SyncController(gateway, debounce_seconds=QUIET)
        assert ctrl.status == SessionStatus.UNAUTHENTICATED

        session = await ctrl.select_tenant("primavera")
        assert ctrl.status == SessionStatus.READY
        assert session.tenant_id == "primavera"
        assert session.tenant_name == "Barrio Primavera"
        assert ctrl.document == document
        assert session.loaded_from_fallback is False

    @pytest.mark.asyncio
    async def test_wrong_passphrase_stays_unauthenticated(self, gateway):
        ctrl = SyncController(gateway, debounce_seconds=QUIET)
        with pytest.raises(AuthenticationFailedError):
            await ctrl.select_tenant("Primavera")
        assert ctrl.status == SessionStatus.UNAUTHENTICATED
        assert ctrl.session is None

    @pytest.mark.asyncio
    async def test_failed_fetch_falls_back_to_empty_plan(self, service, sqlite_store):
        stored = TenantDocument()
        stored.finding.items.append(GoalItem(what="on the server"))
        await sqlite_store.replace_document("primavera", stored)

        gateway = RecordingGateway(service, fail_fetch=True)
        ctrl = SyncController(gateway, debounce_seconds=QUIET)
        session = await ctrl.select_tenant("primavera")

        assert ctrl.status == SessionStatus.READY
        assert ctrl.document == TenantDocument()
        assert session.loaded_from_fallback is True
        assert session.is_online is False

        # Editing in that state overwrites what the store held
        ctrl.add_item("returning", what="typed offline")
        await ctrl.flush()
        saved = await _stored(sqlite_store)
        assert saved.finding.items == []
        assert saved.returning.items[0].what == "typed offline"
        assert session.is_online is True
        assert session.loaded_from_fallback is False

    @pytest.mark.asyncio
    async def test_switching_wards_drops_previous_session(self, controller):
        await controller.select_tenant("Jardines-2024")
        assert controller.session.tenant_id == "jardines"

    @pytest.mark.asyncio
    async def test_logout(self, controller, gateway, change_channel):
        controller.add_item("finding", what="never saved")
        await controller.logout()

        assert controller.status == SessionStatus.UNAUTHENTICATED
        assert controller.document is None
        assert change_channel.subscriber_count("primavera") == 0
        assert gateway.persisted == []


class TestEdits:
    @pytest.mark.asyncio
    async def test_add_toggle_delete_scenario(self, controller, sqlite_store):
        item_id = controller.apply_edit("finding", NEW_ITEM, {"what": "Contact 3 families"})
        item = controller.document.finding.items[0]
        assert item.id == item_id
        assert (item.what, item.how, item.when, item.is_completed) == ("Contact 3 families", "", "", False)

        await controller.wait_until_saved()
        assert [i.what for i in (await _stored(sqlite_store)).finding.items] == ["Contact 3 families"]

        assert controller.toggle_completion("finding", item_id) is True
        await controller.wait_until_saved()
        assert (await _stored(sqlite_store)).finding.items[0].is_completed is True

        assert controller.apply_edit("finding", DELETE_ITEM, {"id": item_id}) == item_id
        await controller.wait_until_saved()
        assert (await _stored(sqlite_store)).finding.items == []

    @pytest.mark.asyncio
    async def test_edits_are_visible_before_persist(self, controller, gateway):
        controller.add_item("teaching", what="visible now")
        assert controller.document.teaching.items[0].what == "visible now"
        assert controller.has_pending_changes
        assert gateway.persisted == []

    @pytest.mark.asyncio
    async def test_burst_of_edits_persists_once(self, controller, gateway, sqlite_store):
        item_id = controller.add_item("teaching", what="draft")
        for n in range(5):
            controller.update_item("teaching", item_id, what=f"draft {n}")
        controller.update_item("teaching", item_id, when="12 de marzo de 2026")

        await controller.wait_until_saved()

        assert len(gateway.persisted) == 1
        saved = (await _stored(sqlite_store)).teaching.items[0]
        assert saved.what == "draft 4"
        assert saved.when == "12 de marzo de 2026"

    @pytest.mark.asyncio
    async def test_add_then_delete_in_one_window(self, controller, gateway, sqlite_store):
        item_id = controller.add_item("new_members", what="short lived")
        controller.delete_item("new_members", item_id)
        await controller.wait_until_saved()

        assert len(gateway.persisted) == 1
        assert (await _stored(sqlite_store)).new_members.items == []

    @pytest.mark.asyncio
    async def test_update_keeps_id_and_order(self, controller):
        first = controller.add_item("returning", what="a")
        second = controller.add_item("returning", what="b")
        controller.update_item("returning", first, isCompleted=True, how="[x] done")

        items = controller.document.returning.items
        assert [i.id for i in items] == [first, second]
        assert items[0].is_completed is True
        assert items[0].how == "[x] done"

    @pytest.mark.asyncio
    async def test_missing_item_is_a_noop(self, controller, gateway):
        assert controller.update_item("finding", "404", what="ghost") is None
        assert controller.delete_item("finding", "404") is None
        assert controller.toggle_completion("finding", "404") is False
        assert not controller.has_pending_changes
        assert gateway.persisted == []

    @pytest.mark.asyncio
    async def test_invalid_edits_are_rejected(self, controller):
        with pytest.raises(ValidationFailedError):
            controller.add_item("baptisms", what="x")
        with pytest.raises(ValidationFailedError):
            controller.add_item("finding", colour="red")
        with pytest.raises(ValidationFailedError):
            controller.apply_edit("finding", DELETE_ITEM)
        item_id = controller.add_item("finding", what="x")
        with pytest.raises(ValidationFailedError):
            controller.update_item("finding", item_id, is_completed="maybe")

    @pytest.mark.asyncio
    async def test_edits_need_a_session(self, gateway):
        ctrl = SyncController(gateway, debounce_seconds=QUIET)
        with pytest.raises(ValidationFailedError):
            ctrl.add_item("finding", what="x")

    @pytest.mark.asyncio
    async def test_completion_blocked_by_pending_steps(self, controller):
        item_id = controller.add_item("finding", what="visits", how="[x] first\n[ ] second")
        assert controller.toggle_completion("finding", item_id) is False
        assert controller.document.finding.items[0].is_completed is False

        controller.update_item("finding", item_id, how="[x] first\n[x] second")
        assert controller.toggle_completion("finding", item_id) is True
        # Reopening is always allowed
        controller.update_item("finding", item_id, how="[x] first\n[ ] second")
        assert controller.toggle_completion("finding", item_id) is True
        assert controller.document.finding.items[0].is_completed is False

    @pytest.mark.asyncio
    async def test_checking_steps_unlocks_completion(self, controller, sqlite_store):
        item_id = controller.add_item("finding", what="visits", how="[ ] list\n• call")

        assert controller.toggle_step("finding", item_id, 0) is True
        assert controller.toggle_completion("finding", item_id) is False
        assert controller.toggle_step("finding", item_id, 1) is True
        assert controller.document.finding.items[0].how == "[x] list\n[x] call"
        assert controller.toggle_completion("finding", item_id) is True

        assert controller.toggle_step("finding", item_id, 0) is False
        await controller.flush()
        assert (await _stored(sqlite_store, "primavera")).finding.items[0].how == "[ ] list\n[x] call"

    @pytest.mark.asyncio
    async def test_toggle_step_of_missing_goal_or_step(self, controller):
        assert controller.toggle_step("finding", "404", 0) is None
        item_id = controller.add_item("finding", what="visits", how="[ ] only")
        for index in (1, -1):
            with pytest.raises(ValidationFailedError):
                controller.toggle_step("finding", item_id, index)
        assert controller.document.finding.items[0].how == "[ ] only"


class TestPersistence:
    @pytest.mark.asyncio
    async def test_failed_persist_marks_offline_and_keeps_edits(self, service):
        gateway = RecordingGateway(service, fail_persist=True)
        ctrl = SyncController(gateway, debounce_seconds=QUIET)
        await ctrl.select_tenant("primavera")

        ctrl.add_item("finding", what="kept locally")
        await ctrl.wait_until_saved()

        assert ctrl.session.is_online is False
        assert ctrl.session.last_error
        assert ctrl.status == SessionStatus.READY
        assert ctrl.document.finding.items[0].what == "kept locally"

        # The next edit retries with the whole plan
        gateway.fail_persist = False
        ctrl.add_item("finding", what="second")
        await ctrl.wait_until_saved()
        assert ctrl.session.is_online is True
        assert len(gateway.persisted[-1].finding.items) == 2
        await ctrl.logout()

    @pytest.mark.asyncio
    async def test_flush_persists_immediately(self, gateway, change_channel, sqlite_store):
        ctrl = SyncController(gateway, change_channel=change_channel, debounce_seconds=60)
        await ctrl.select_tenant("primavera")
        ctrl.add_item("finding", what="now")
        await ctrl.flush()
        assert (await _stored(sqlite_store)).finding.items[0].what == "now"
        assert not ctrl.has_pending_changes
        await ctrl.logout()


class TestRemoteChanges:
    @pytest.mark.asyncio
    async def test_other_client_sees_change_and_own_echo_is_ignored(self, service, change_channel):
        alice = SyncController(RecordingGateway(service), change_channel=change_channel, debounce_seconds=QUIET)
        bob = SyncController(RecordingGateway(service), change_channel=change_channel, debounce_seconds=QUIET)
        await alice.select_tenant("primavera")
        await bob.select_tenant("primavera")

        alice.add_item("finding", what="from alice")
        await alice.flush()

        assert bob.document.finding.items[0].what == "from alice"
        assert bob.remote_overwrites == 0
        assert alice.remote_overwrites == 0
        assert alice.document.finding.items[0].what == "from alice"

        await alice.logout()
        await bob.logout()

    @pytest.mark.asyncio
    async def test_remote_change_replaces_pending_local_edits(self, service, change_channel, sqlite_store):
        alice = SyncController(RecordingGateway(service), change_channel=change_channel, debounce_seconds=QUIET)
        bob = SyncController(RecordingGateway(service), change_channel=change_channel, debounce_seconds=60)
        await alice.select_tenant("primavera")
        await bob.select_tenant("primavera")

        bob.add_item("teaching", what="bob unsaved")
        alice.add_item("finding", what="alice saved")
        await alice.flush()

        assert bob.remote_overwrites == 1
        assert bob.document.teaching.items == []
        assert bob.document.finding.items[0].what == "alice saved"

        # Bob's pending persist still fires and writes the adopted plan back
        await bob.flush()
        saved = await _stored(sqlite_store)
        assert saved.teaching.items == []
        assert saved.finding.items[0].what == "alice saved"

        await alice.logout()
        await bob.logout()

    @pytest.mark.asyncio
    async def test_revert_to_previously_saved_plan_is_adopted(self, service, change_channel, sqlite_store):
        alice = SyncController(RecordingGateway(service), change_channel=change_channel, debounce_seconds=QUIET)
        bob = SyncController(RecordingGateway(service), change_channel=change_channel, debounce_seconds=QUIET)
        await alice.select_tenant("primavera")
        await bob.select_tenant("primavera")

        alice.add_item("finding", what="X")
        await alice.flush()
        added = bob.add_item("finding", what="Y")
        await bob.flush()
        assert [i.what for i in alice.document.finding.items] == ["X", "Y"]

        # Back to exactly the plan alice saved first
        bob.delete_item("finding", added)
        await bob.flush()

        stored = await _stored(sqlite_store)
        assert [i.what for i in stored.finding.items] == ["X"]
        assert alice.document == stored
        assert bob.document == stored

        await alice.logout()
        await bob.logout()

    @pytest.mark.asyncio
    async def test_echo_is_only_ignored_once(self, controller):
        controller.add_item("finding", what="saved")
        await controller.flush()
        saved = controller.document.snapshot()

        controller.update_item("finding", saved.finding.items[0].id, what="edited locally")
        controller.on_remote_change(saved)

        assert controller.document == saved

    @pytest.mark.asyncio
    async def test_failed_save_expects_no_echo(self, service, caplog):
        gateway = RecordingGateway(service, fail_persist=True)
        ctrl = SyncController(gateway, debounce_seconds=QUIET)
        await ctrl.select_tenant("primavera")
        ctrl.add_item("finding", what="unsaved")
        await ctrl.flush()
        unsaved = ctrl.document.snapshot()

        # Another client happens to write the same plan
        caplog.set_level(logging.DEBUG, logger="ward_planner.sync.controller")
        ctrl.on_remote_change(unsaved)

        assert "Ignoring echo" not in caplog.text
        assert "Adopted remote plan change" in caplog.text
        assert ctrl.document == unsaved
        await ctrl.logout()

    @pytest.mark.asyncio
    async def test_remote_change_without_session_is_ignored(self, gateway):
        ctrl = SyncController(gateway, debounce_seconds=QUIET)
        ctrl.on_remote_change(TenantDocument())
        assert ctrl.document is None
