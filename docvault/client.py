import logging

import httpx

from docvault.blobs import BlobLifecycleManager
from docvault.config import Settings, get_settings
from docvault.credentials import CredentialProvider
from docvault.documents import DocumentList, DocumentService
from docvault.menu import ActionMenuController
from docvault.models import Document
from docvault.privacy import PrivacyReconciler
from docvault.sharing import ShareLinkService
from docvault.transport import VaultTransport
from docvault.viewer import SharedViewerFetcher

logger = logging.getLogger(__name__)


class VaultClient:
    def __init__(
        self,
        settings: Settings,
        credentials: CredentialProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.transport = VaultTransport(settings, credentials, client=http_client)
        self.blobs = BlobLifecycleManager(default_ttl=settings.shared_blob_ttl_seconds)
        self.store = DocumentList()
        self.documents = DocumentService(self.transport)
        self.sharing = ShareLinkService(self.transport, settings)
        self.privacy = PrivacyReconciler(self.documents, self.store)
        self.menus = ActionMenuController(
            self.store,
            self.documents,
            self.sharing,
            self.privacy,
            self.blobs,
            settings,
        )

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.menus.close()
        self.blobs.close()
        await self.transport.aclose()

    async def refresh(self, category: str | None = None) -> list[Document]:
        if category:
            documents = await self.documents.list_by_category(category)
        else:
            documents = await self.documents.list_documents()
        self.store.replace(documents)
        self.menus.prune()
        logger.debug("loaded %d documents", len(documents))
        return documents

    async def upload(
        self,
        content: bytes,
        filename: str,
        category: str,
        content_type: str = "application/octet-stream",
    ) -> Document:
        document = await self.documents.upload_document(content, filename, category, content_type)
        self.store.upsert(document)
        return document

    async def update(self, document_id: str, **changes) -> Document:
        document = await self.documents.update_document(document_id, **changes)
        self.store.upsert(document)
        return document

    def open_shared(self, address: str) -> SharedViewerFetcher:
        return SharedViewerFetcher.from_address(address, self.transport, self.blobs)

    def shared_viewer(self, token: str) -> SharedViewerFetcher:
        return SharedViewerFetcher(self.transport, self.blobs, token)


def create_client(
    settings: Settings | None = None,
    credentials: CredentialProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> VaultClient:
    settings = settings or get_settings()
    return VaultClient(settings, credentials, http_client)
