import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from docvault.blobs import BlobLifecycleManager
from docvault.config import Settings
from docvault.documents import DocumentList, DocumentService
from docvault.errors import ActionNotPermitted, Advisory, VaultError
from docvault.models import ActionMenuState, BlobHandle, Busy, Document, DownloadedFile, ShareLink, ShareOptions
from docvault.privacy import PrivacyReconciler, RolledBack, ToggleResult
from docvault.sharing import ShareLinkService

logger = logging.getLogger(__name__)

VIEW_FAILED_MESSAGE = "Unable to view this file. Please try downloading instead."


class Action(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DOWNLOAD = "download"
    SHARE = "share"
    DELETE = "delete"
    TOGGLE_PRIVACY = "toggle_privacy"


BUSY_FOR_ACTION = {
    Action.VIEW: Busy.VIEWING,
    Action.SHARE: Busy.GENERATING_LINK,
    Action.DELETE: Busy.DELETING,
}

# the menu cannot be dismissed while these are outstanding
HOLDS_MENU_OPEN = {Busy.GENERATING_LINK, Busy.DELETING}


@dataclass
class ActionOutcome:
    action: Action
    ok: bool
    advisory: Advisory | None = None
    document: Document | None = None
    share_link: ShareLink | None = None
    handle: BlobHandle | None = None
    file: DownloadedFile | None = None
    privacy: ToggleResult | None = None


Confirm = Callable[[Document], bool | Awaitable[bool]]


class ActionMenuController:
    def __init__(
        self,
        store: DocumentList,
        documents: DocumentService,
        sharing: ShareLinkService,
        privacy: PrivacyReconciler,
        blobs: BlobLifecycleManager,
        settings: Settings,
    ):
        self.store = store
        self.documents = documents
        self.sharing = sharing
        self.privacy = privacy
        self.blobs = blobs
        self.settings = settings
        self._states: dict[str, ActionMenuState] = {}
        self._handles: list[BlobHandle] = []

    def state(self, document_id: str) -> ActionMenuState:
        return self._states.setdefault(document_id, ActionMenuState())

    def open(self, document_id: str) -> ActionMenuState:
        if document_id not in self.store:
            raise KeyError(document_id)
        state = self.state(document_id)
        state.open = True
        return state

    def dismiss(self, document_id: str) -> bool:
        state = self._states.get(document_id)
        if state is None:
            return True
        if state.busy in HOLDS_MENU_OPEN:
            return False
        state.open = False
        return True

    def dismiss_all(self) -> None:
        for document_id in list(self._states):
            self.dismiss(document_id)

    def prune(self) -> None:
        """Forget menu state for documents no longer in the list."""
        for document_id in list(self._states):
            if document_id not in self.store:
                del self._states[document_id]

    def is_enabled(self, document_id: str, action: Action) -> bool:
        document = self.store.get(document_id)
        if document is None:
            return False
        state = self._states.get(document_id)
        busy = state.busy if state else Busy.NONE

        if busy is Busy.DELETING:
            return False
        if action is Action.SHARE and not document.is_public:
            return False
        if action in BUSY_FOR_ACTION:
            return busy is Busy.NONE
        return True

    async def view(self, document_id: str) -> ActionOutcome:
        rejected = self._reject(document_id, Action.VIEW)
        if rejected:
            return rejected

        document = self.store.get(document_id)
        self._enter(document_id, Busy.VIEWING)
        try:
            file = await self.documents.fetch_view(document_id)
            handle = self.blobs.create(file.content, file.content_type, ttl=self.settings.view_blob_ttl_seconds)
        except VaultError as exc:
            logger.warning("viewing document %s failed: %s", document_id, exc)
            advisory = Advisory(
                kind=exc.kind,
                message=VIEW_FAILED_MESSAGE,
                detail=exc.message,
                transient=exc.transient,
            )
            return ActionOutcome(Action.VIEW, ok=False, advisory=advisory, document=document)
        finally:
            self._leave(document_id, Busy.VIEWING)

        self._track(handle)
        return ActionOutcome(Action.VIEW, ok=True, document=document, handle=handle)

    async def share(self, document_id: str, options: ShareOptions | None = None) -> ActionOutcome:
        rejected = self._reject(document_id, Action.SHARE)
        if rejected:
            return rejected

        document = self.store.get(document_id)
        self._enter(document_id, Busy.GENERATING_LINK)
        try:
            link = await self.sharing.request_link(document_id, options)
        except VaultError as exc:
            logger.warning("sharing document %s failed: %s", document_id, exc)
            return ActionOutcome(Action.SHARE, ok=False, advisory=exc.to_advisory(), document=document)
        finally:
            self._leave(document_id, Busy.GENERATING_LINK)

        return ActionOutcome(Action.SHARE, ok=True, document=document, share_link=link)

    async def delete(self, document_id: str, confirm: Confirm) -> ActionOutcome:
        rejected = self._reject(document_id, Action.DELETE)
        if rejected:
            return rejected

        document = self.store.get(document_id)
        approved = confirm(document)
        if inspect.isawaitable(approved):
            approved = await approved
        if not approved:
            return ActionOutcome(Action.DELETE, ok=False, document=document)

        # the list may have changed while the user was deciding
        rejected = self._reject(document_id, Action.DELETE)
        if rejected:
            return rejected

        self._enter(document_id, Busy.DELETING)
        try:
            await self.documents.delete_document(document_id)
        except VaultError as exc:
            logger.warning("deleting document %s failed: %s", document_id, exc)
            self._leave(document_id, Busy.DELETING, close=False)
            return ActionOutcome(Action.DELETE, ok=False, advisory=exc.to_advisory(), document=document)
        except Exception:
            self._leave(document_id, Busy.DELETING, close=False)
            raise

        self.store.remove(document_id)
        self._states.pop(document_id, None)
        return ActionOutcome(Action.DELETE, ok=True, document=document)

    async def download(self, document_id: str) -> ActionOutcome:
        rejected = self._reject(document_id, Action.DOWNLOAD)
        if rejected:
            return rejected

        document = self.store.get(document_id)
        try:
            file = await self.documents.download(document_id, document.name)
        except VaultError as exc:
            logger.warning("downloading document %s failed: %s", document_id, exc)
            return ActionOutcome(Action.DOWNLOAD, ok=False, advisory=exc.to_advisory(), document=document)
        finally:
            self._close_if_idle(document_id)

        return ActionOutcome(Action.DOWNLOAD, ok=True, document=document, file=file)

    def edit(self, document_id: str) -> ActionOutcome:
        rejected = self._reject(document_id, Action.EDIT)
        if rejected:
            return rejected
        self._close_if_idle(document_id)
        return ActionOutcome(Action.EDIT, ok=True, document=self.store.get(document_id))

    async def toggle_privacy(self, document_id: str) -> ActionOutcome:
        rejected = self._reject(document_id, Action.TOGGLE_PRIVACY)
        if rejected:
            return rejected

        result = await self.privacy.toggle(document_id)
        self._close_if_idle(document_id)
        document = self.store.get(document_id)
        if isinstance(result, RolledBack):
            return ActionOutcome(
                Action.TOGGLE_PRIVACY, ok=False, advisory=result.advisory, document=document, privacy=result
            )
        return ActionOutcome(Action.TOGGLE_PRIVACY, ok=True, document=document, privacy=result)

    def close(self) -> None:
        for handle in self._handles:
            self.blobs.release(handle)
        self._handles = []

    def _reject(self, document_id: str, action: Action) -> ActionOutcome | None:
        document = self.store.get(document_id)
        if document is None:
            error = ActionNotPermitted("This document is no longer available")
        elif self.is_enabled(document_id, action):
            return None
        elif action is Action.SHARE and not document.is_public:
            error = ActionNotPermitted("Make the document public before sharing it")
        else:
            error = ActionNotPermitted("Another action is still in progress for this document")

        logger.debug("rejected %s on document %s: %s", action.value, document_id, error.message)
        return ActionOutcome(action, ok=False, advisory=error.to_advisory(), document=document)

    def _enter(self, document_id: str, busy: Busy) -> None:
        state = self.state(document_id)
        state.open = True
        state.busy = busy

    def _leave(self, document_id: str, busy: Busy, close: bool = True) -> None:
        state = self._states.get(document_id)
        if state is None or state.busy is not busy:
            return
        state.busy = Busy.NONE
        if close:
            state.open = False

    def _close_if_idle(self, document_id: str) -> None:
        state = self._states.get(document_id)
        if state is not None and state.busy is Busy.NONE:
            state.open = False

    def _track(self, handle: BlobHandle) -> None:
        self._handles = [h for h in self._handles if self.blobs.is_live(h)]
        self._handles.append(handle)
