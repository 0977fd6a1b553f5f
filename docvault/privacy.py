import logging
from dataclasses import dataclass

from docvault.documents import DocumentList, DocumentService
from docvault.errors import Advisory, VaultError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Committed:
    value: bool


@dataclass(frozen=True)
class RolledBack:
    previous_value: bool
    error: VaultError

    @property
    def advisory(self) -> Advisory:
        return self.error.to_advisory()


@dataclass(frozen=True)
class Superseded:
    sequence: int


ToggleResult = Committed | RolledBack | Superseded


class PrivacyReconciler:
    def __init__(self, documents: DocumentService, store: DocumentList):
        self.documents = documents
        self.store = store
        self._issued: dict[str, int] = {}
        self._settled: dict[str, int] = {}
        self._confirmed: dict[str, bool] = {}
        self._pending: dict[str, int] = {}

    def confirmed_value(self, document_id: str) -> bool | None:
        if document_id in self._confirmed:
            return self._confirmed[document_id]
        document = self.store.get(document_id)
        return document.is_public if document else None

    def pending(self, document_id: str) -> int:
        return self._pending.get(document_id, 0)

    async def toggle(self, document_id: str) -> ToggleResult:
        document = self.store.get(document_id)
        if document is None:
            raise KeyError(document_id)

        previous = document.is_public
        target = not previous
        self._confirmed.setdefault(document_id, previous)
        sequence = self._issued.get(document_id, 0) + 1
        self._issued[document_id] = sequence
        self._pending[document_id] = self.pending(document_id) + 1
        self.store.set_public(document_id, target)

        error = None
        try:
            await self.documents.update_privacy(document_id, target)
        except VaultError as exc:
            error = exc
        except Exception:
            self._settle_unexpected(document_id, sequence, previous)
            raise
        finally:
            self._pending[document_id] -= 1

        if sequence < self._settled.get(document_id, 0):
            logger.info("discarding stale privacy settlement #%d for document %s", sequence, document_id)
            return Superseded(sequence)
        self._settled[document_id] = sequence

        if error is None:
            self._confirmed[document_id] = target
            self.store.set_public(document_id, target)
            return Committed(target)

        logger.info("privacy toggle for document %s rejected, reverting to %s: %s", document_id, previous, error)
        self.store.set_public(document_id, previous)
        return RolledBack(previous, error)

    def _settle_unexpected(self, document_id: str, sequence: int, previous: bool) -> None:
        if sequence >= self._settled.get(document_id, 0):
            self._settled[document_id] = sequence
            self.store.set_public(document_id, previous)
