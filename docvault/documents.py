import logging
from collections.abc import Iterable, Iterator
from urllib.parse import quote

import httpx

from docvault.content import filename_from_disposition, parse_content_type
from docvault.models import Document, DownloadedFile
from docvault.transport import VaultTransport

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def file_from_response(response: httpx.Response, fallback_name: str) -> DownloadedFile:
    content_type, _ = parse_content_type(response.headers.get("content-type"))
    filename = filename_from_disposition(response.headers.get("content-disposition"))
    return DownloadedFile(
        filename=filename or fallback_name,
        content_type=content_type,
        content=response.content,
    )


class DocumentService:
    """Authenticated document operations against the vault API."""

    def __init__(self, transport: VaultTransport):
        self.transport = transport

    async def list_documents(self) -> list[Document]:
        response = await self.transport.request("GET", "documents", fallback="Failed to fetch documents")
        return [Document.model_validate(row) for row in response.json()]

    async def list_by_category(self, category: str) -> list[Document]:
        response = await self.transport.request(
            "GET",
            f"documents/category/{_segment(category)}",
            fallback="Failed to fetch documents by category",
        )
        return [Document.model_validate(row) for row in response.json()]

    async def get_document(self, document_id: str) -> Document:
        response = await self.transport.request(
            "GET", f"documents/{_segment(document_id)}", fallback="Failed to fetch document"
        )
        return Document.model_validate(response.json())

    async def upload_document(
        self,
        content: bytes,
        filename: str,
        category: str,
        content_type: str = "application/octet-stream",
    ) -> Document:
        response = await self.transport.request(
            "POST",
            "documents/upload",
            data={"category": category, "filename": filename},
            files={"file": (filename, content, content_type)},
            fallback="Failed to upload document",
        )
        return Document.model_validate(response.json())

    async def update_document(
        self,
        document_id: str,
        *,
        content: bytes | None = None,
        filename: str | None = None,
        category: str | None = None,
        content_type: str = "application/octet-stream",
    ) -> Document:
        if not document_id:
            raise ValueError("Document ID is required")

        data = {}
        if category:
            data["category"] = category
        if filename:
            data["filename"] = filename
        files = None
        if content is not None:
            files = {"file": (filename or f"document-{document_id}", content, content_type)}

        response = await self.transport.request(
            "PUT",
            f"documents/{_segment(document_id)}",
            data=data,
            files=files,
            fallback="Failed to update document",
        )
        return Document.model_validate(response.json())

    async def update_privacy(self, document_id: str, is_public: bool) -> None:
        # only success or failure matters, the body is not trusted
        await self.transport.request(
            "PATCH",
            f"documents/{_segment(document_id)}/privacy",
            json={"isPublic": is_public},
            fallback="Failed to update document privacy",
        )

    async def delete_document(self, document_id: str) -> None:
        if not document_id:
            raise ValueError("Document ID is required")
        response = await self.transport.request(
            "DELETE",
            f"documents/{_segment(document_id)}",
            accept=(404,),
            fallback="Failed to delete document",
        )
        if response.status_code == 404:
            logger.info("document %s was already deleted", document_id)

    async def fetch_view(self, document_id: str) -> DownloadedFile:
        response = await self.transport.request(
            "GET",
            f"documents/view/{_segment(document_id)}",
            fallback="Failed to fetch document",
        )
        return file_from_response(response, f"document-{document_id}")

    async def download(self, document_id: str, filename: str | None = None) -> DownloadedFile:
        response = await self.transport.request(
            "GET",
            f"documents/download/{_segment(document_id)}",
            forbidden="You don't have permission to download this file",
            fallback="Download failed",
        )
        return file_from_response(response, filename or f"document-{document_id}")


class DocumentList:
    """
    The cached documents shared by every row's action menu, keyed by id.

    Only confirmed server responses go through replace/upsert/remove.
    set_public is the one optimistic write, used by the privacy reconciler.
    """

    def __init__(self, documents: Iterable[Document] = ()):
        self._documents: dict[str, Document] = {}
        self.replace(documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents.values()))

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def replace(self, documents: Iterable[Document]) -> None:
        self._documents = {doc.id: doc for doc in documents}

    def upsert(self, document: Document) -> None:
        self._documents[document.id] = document

    def remove(self, document_id: str) -> Document | None:
        return self._documents.pop(document_id, None)

    def set_public(self, document_id: str, is_public: bool) -> bool:
        document = self._documents.get(document_id)
        if document is None:
            return False
        document.is_public = is_public
        return True
