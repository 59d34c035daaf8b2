# ward_planner/sync/controller.py
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .debounce import DebouncedTask
from .gateway import AbstractWardGateway
from .notifications import AbstractChangeChannel, NullChangeChannel, Unsubscribe
from .session import SessionStatus, TenantSession
from ..errors import ValidationFailedError, WardPlannerError
from ..settings import settings
from ..tenants.areas import AreaId, parse_area_id
from ..tenants.checklist import has_pending_steps, parse_checklist, toggle_step
from ..tenants.models import GoalItem, TenantDocument, normalize_item_patch

logger = logging.getLogger(__name__)

NEW_ITEM = "new"
DELETE_ITEM = "delete"


class SyncController:
    """
    Keeps one client's copy of a ward plan in step with the core.

    Edits are applied to memory immediately and persisted after a quiet
    period, collapsing bursts into one full-document write. Optionally
    listens for remote changes and adopts them as they arrive.

    States: unauthenticated -> loading -> ready <-> saving, and back to
    unauthenticated on logout.
    """

    def __init__(
        self,
        gateway: AbstractWardGateway,
        change_channel: Optional[AbstractChangeChannel] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self.gateway = gateway
        self.change_channel = change_channel or NullChangeChannel()
        self.debounce_seconds = settings.sync_debounce_seconds if debounce_seconds is None else debounce_seconds

        self._status = SessionStatus.UNAUTHENTICATED
        self._session: Optional[TenantSession] = None
        self._persister: Optional[DebouncedTask] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._last_sent: Optional[TenantDocument] = None

        # Remote pushes adopted while a local persist was pending (lost-update window)
        self.remote_overwrites = 0

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def session(self) -> Optional[TenantSession]:
        return self._session

    @property
    def document(self) -> Optional[TenantDocument]:
        return self._session.document if self._session else None

    @property
    def has_pending_changes(self) -> bool:
        return self._persister is not None and (self._persister.pending or self._persister.running)

    def _require_session(self) -> TenantSession:
        if self._session is None:
            raise ValidationFailedError("No ward selected.")
        return self._session

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def select_tenant(self, passphrase: str) -> TenantSession:
        """
        Authenticate and load a ward.

        A wrong passphrase raises AuthenticationFailedError and leaves the
        controller unauthenticated. If the plan cannot be fetched afterwards
        the session still opens with an empty plan. Editing in that state
        overwrites whatever the store holds.
        """
        if self._session is not None:
            await self.logout()

        # Errors propagate with the controller still unauthenticated
        result = await self.gateway.authenticate(passphrase)

        session = TenantSession(tenant_id=result.tenant_id, tenant_name=result.tenant_name)
        self._session = session
        self._status = SessionStatus.LOADING
        logger.info(f"Ward '{session.tenant_id}' selected, loading plan.")

        try:
            document = await self.gateway.fetch_document(session.tenant_id)
        except WardPlannerError as e:
            logger.error(f"Could not load plan for ward '{session.tenant_id}', showing an empty plan: {e.detail}")
            document = TenantDocument()
            session.loaded_from_fallback = True
            session.mark_offline(str(e.detail))

        if self._session is not session:
            # Logged out while the fetch was in flight
            return session

        session.document = document
        self._persister = DebouncedTask(
            self.debounce_seconds, self._persist, name=f"persist-{session.tenant_id}"
        )
        try:
            self._unsubscribe = await self.change_channel.subscribe(session.tenant_id, self.on_remote_change)
        except Exception as e:
            logger.warning(f"Live updates unavailable for ward '{session.tenant_id}': {e}")
            self._unsubscribe = None

        self._status = SessionStatus.READY
        return session

    async def logout(self) -> None:
        """
        Drop the active ward. A persist still waiting for its quiet period is
        discarded; call flush() first to keep it.
        """
        if self._persister is not None:
            self._persister.cancel()
        if self._unsubscribe is not None:
            try:
                await self._unsubscribe()
            except Exception as e:
                logger.warning(f"Error while stopping live updates: {e}")

        if self._session is not None:
            logger.info(f"Ward '{self._session.tenant_id}' logged out.")
        self._session = None
        self._persister = None
        self._unsubscribe = None
        self._last_sent = None
        self._status = SessionStatus.UNAUTHENTICATED

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def apply_edit(
        self,
        area_id: str,
        target: str,
        patch: Optional[Dict[str, Any]] = None,
        item_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Apply one edit to the in-memory plan and schedule a persist.

        Args:
            area_id: Area holding the goal
            target: A goal id to update, "new" to append a goal or "delete"
                to remove one
            patch: Field values. For "new" the initial fields, for an update
                the fields to replace, for "delete" may carry the goal "id"
            item_id: Goal to remove when target is "delete"

        Returns:
            The id of the added, updated or deleted goal, or None when the
            referenced goal does not exist (a no-op, e.g. it was deleted by a
            racing edit)

        Raises:
            ValidationFailedError: Unknown area or field, bad value, no ward selected
        """
        session = self._require_session()
        try:
            area = session.document.area(parse_area_id(area_id))
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e
        patch = dict(patch or {})

        if target == NEW_ITEM:
            item = self._build_item(patch)
            area.items.append(item)
            logger.debug(f"Added goal '{item.id}' to area '{area.id.value}'.")
            self._schedule_persist()
            return item.id

        if target == DELETE_ITEM:
            victim = item_id or patch.get("id")
            if not victim:
                raise ValidationFailedError("A goal id is required to delete a goal.")
            remaining = [item for item in area.items if item.id != victim]
            if len(remaining) == len(area.items):
                logger.debug(f"Delete of unknown goal '{victim}' in area '{area.id.value}' ignored.")
                return None
            area.items[:] = remaining
            self._schedule_persist()
            return victim

        for index, item in enumerate(area.items):
            if item.id == target:
                area.items[index] = self._merge_item(item, patch)
                self._schedule_persist()
                return target
        logger.debug(f"Update of unknown goal '{target}' in area '{area.id.value}' ignored.")
        return None

    @staticmethod
    def _build_item(patch: Dict[str, Any]) -> GoalItem:
        try:
            return GoalItem(**normalize_item_patch(patch))
        except (ValueError, ValidationError) as e:
            raise ValidationFailedError(str(e)) from e

    @staticmethod
    def _merge_item(item: GoalItem, patch: Dict[str, Any]) -> GoalItem:
        try:
            fields = normalize_item_patch(patch)
            return GoalItem(**{**item.model_dump(), **fields})
        except (ValueError, ValidationError) as e:
            raise ValidationFailedError(str(e)) from e

    def add_item(self, area_id: str, **fields: Any) -> str:
        return self.apply_edit(area_id, NEW_ITEM, fields)

    def update_item(self, area_id: str, item_id: str, **fields: Any) -> Optional[str]:
        return self.apply_edit(area_id, item_id, fields)

    def delete_item(self, area_id: str, item_id: str) -> Optional[str]:
        return self.apply_edit(area_id, DELETE_ITEM, item_id=item_id)

    def toggle_completion(self, area_id: str, item_id: str) -> bool:
        """
        Flip a goal's completion flag.

        A goal whose checklist still has unchecked steps cannot be completed;
        reopening a completed goal is always allowed.

        Returns:
            True if the flag changed
        """
        session = self._require_session()
        try:
            area = session.document.area(parse_area_id(area_id))
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e
        item = area.find_item(item_id)
        if item is None:
            return False
        if not item.is_completed and has_pending_steps(item.how):
            logger.info(f"Goal '{item_id}' still has pending steps and cannot be completed.")
            return False
        self.apply_edit(area_id, item_id, {"is_completed": not item.is_completed})
        return True

    def toggle_step(self, area_id: str, item_id: str, index: int) -> Optional[bool]:
        """
        Check or uncheck one step of a goal's checklist (0-based index).

        Returns:
            The new state of the step, or None when the goal does not exist

        Raises:
            ValidationFailedError: The checklist has no step at `index`
        """
        session = self._require_session()
        try:
            area = session.document.area(parse_area_id(area_id))
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e
        item = area.find_item(item_id)
        if item is None:
            return None
        if index < 0:
            raise ValidationFailedError(f"Goal '{item_id}' has no step {index}.")
        try:
            how = toggle_step(item.how, index)
        except IndexError as e:
            raise ValidationFailedError(f"Goal '{item_id}' has no step {index}.") from e
        self.apply_edit(area_id, item_id, {"how": how})
        return parse_checklist(how)[index].checked

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _schedule_persist(self) -> None:
        if self._persister is not None:
            self._persister.trigger()

    async def _persist(self) -> None:
        session = self._session
        if session is None:
            return

        snapshot = session.document.snapshot()
        # Recorded before the write so our own change notification is recognised
        self._last_sent = snapshot
        self._status = SessionStatus.SAVING
        logger.debug(f"Persisting plan for ward '{session.tenant_id}'.")
        try:
            await self.gateway.persist_document(session.tenant_id, snapshot)
        except WardPlannerError as e:
            # Nothing was written, so no echo will follow
            if self._last_sent is snapshot:
                self._last_sent = None
            logger.warning(f"Saving plan for ward '{session.tenant_id}' failed, will retry on next edit: {e.detail}")
            session.mark_offline(str(e.detail))
        else:
            session.mark_saved()
            session.loaded_from_fallback = False
        finally:
            if self._session is session:
                self._status = SessionStatus.READY

    async def flush(self) -> None:
        """Persist pending edits now instead of waiting for the quiet period."""
        if self._persister is not None:
            await self._persister.flush()

    async def wait_until_saved(self) -> None:
        """Wait for the current debounce cycle (if any) to complete."""
        if self._persister is not None:
            await self._persister.wait_idle()

    # ------------------------------------------------------------------
    # Remote changes
    # ------------------------------------------------------------------

    def on_remote_change(self, document: TenantDocument) -> None:
        """
        Adopt a plan pushed by another client.

        Applied even when a local persist is pending. That persist still
        fires and writes the adopted plan back, so local edits made since the
        last save are lost. Such overwrites are counted in `remote_overwrites`.
        """
        session = self._session
        if session is None:
            return
        # One echo per save: once consumed, or superseded by another client's
        # plan, an equal document is a genuine remote change
        last_sent, self._last_sent = self._last_sent, None
        if last_sent is not None and document == last_sent:
            logger.debug(f"Ignoring echo of our own save for ward '{session.tenant_id}'.")
            return

        if self.has_pending_changes:
            self.remote_overwrites += 1
            logger.warning(
                f"Remote change for ward '{session.tenant_id}' arrived while local edits are pending; "
                f"unsaved local edits are replaced by it."
            )
        session.document = document.snapshot()
        session.loaded_from_fallback = False
        logger.info(f"Adopted remote plan change for ward '{session.tenant_id}'.")
