import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

from docvault.blobs import BlobLifecycleManager
from docvault.content import (
    RenderMode,
    decode_text,
    filename_from_disposition,
    parse_content_type,
    select_render_mode,
)
from docvault.errors import (
    ActionNotPermitted,
    Advisory,
    LinkExpiredOrInvalid,
    NetworkError,
    ServiceError,
    VaultError,
)
from docvault.models import BlobHandle, DownloadedFile
from docvault.sharing import token_from_address
from docvault.transport import VaultTransport

logger = logging.getLogger(__name__)

FETCH_FAILED_MESSAGE = "Failed to load shared document"
NO_TOKEN_MESSAGE = "This link does not point to a shared document"
PREVIEW_UNAVAILABLE_MESSAGE = "Preview not available for this file type"


class ViewerState(str, Enum):
    LOADING = "loading"
    DISPLAYED = "displayed"
    UNAVAILABLE = "unavailable"
    ERRORED = "errored"


@dataclass(frozen=True)
class Rendering:
    mode: RenderMode
    local_address: str
    content_type: str
    filename: str
    text: str | None = None
    notice: str | None = None

    @property
    def offers_download(self) -> bool:
        return self.mode is RenderMode.DOWNLOAD_FALLBACK


class SharedViewerFetcher:
    def __init__(
        self,
        transport: VaultTransport,
        blobs: BlobLifecycleManager,
        token: str | None,
        ttl: float | None = None,
    ):
        self.transport = transport
        self.blobs = blobs
        self.token = token or None
        self.ttl = ttl
        self.state = ViewerState.LOADING if self.token else ViewerState.UNAVAILABLE
        self.error: VaultError | None = None
        self.handle: BlobHandle | None = None
        self.rendering: Rendering | None = None
        self._attempt: asyncio.Future | None = None
        self._closed = False

    @classmethod
    def from_address(
        cls,
        address: str,
        transport: VaultTransport,
        blobs: BlobLifecycleManager,
        ttl: float | None = None,
    ) -> "SharedViewerFetcher":
        return cls(transport, blobs, token_from_address(address), ttl=ttl)

    async def __aenter__(self) -> "SharedViewerFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    @property
    def advisory(self) -> Advisory | None:
        if self.state is ViewerState.UNAVAILABLE:
            return Advisory(kind="unavailable", message=NO_TOKEN_MESSAGE, dismissible=False)
        if self.error is not None:
            return self.error.to_advisory()
        return None

    async def load(self) -> ViewerState:
        if self.state is ViewerState.UNAVAILABLE:
            return self.state
        if self._attempt is None:
            self._attempt = asyncio.ensure_future(self._fetch())
        await asyncio.shield(self._attempt)
        return self.state

    async def _fetch(self) -> None:
        try:
            response = await self.transport.request(
                "GET",
                f"documents/share/{quote(self.token, safe='')}",
                authenticated=False,
                not_found=LinkExpiredOrInvalid,
                fallback=FETCH_FAILED_MESSAGE,
            )
        except (LinkExpiredOrInvalid, NetworkError) as exc:
            self._fail(exc)
            return
        except VaultError as exc:
            self._fail(
                ServiceError(
                    FETCH_FAILED_MESSAGE,
                    status_code=exc.status_code,
                    detail=exc.message,
                    kind="fetch_failed",
                )
            )
            return

        content_type, charset = parse_content_type(response.headers.get("content-type"))
        filename = filename_from_disposition(response.headers.get("content-disposition"))
        payload = response.content

        self.handle = self.blobs.create(payload, content_type, ttl=self.ttl)
        if self._closed:
            self.blobs.release(self.handle)

        mode = select_render_mode(content_type)
        self.rendering = Rendering(
            mode=mode,
            local_address=self.handle.local_address,
            content_type=content_type,
            filename=filename or f"document-{self.token}",
            text=decode_text(payload, charset) if mode is RenderMode.LITERAL_TEXT else None,
            notice=PREVIEW_UNAVAILABLE_MESSAGE if mode is RenderMode.DOWNLOAD_FALLBACK else None,
        )
        self.state = ViewerState.DISPLAYED
        logger.debug("shared document loaded as %s (%s)", mode.value, content_type)

    def _fail(self, error: VaultError) -> None:
        logger.info("shared document fetch failed: %s", error.kind)
        self.error = error
        self.state = ViewerState.ERRORED

    def content(self) -> bytes:
        if self.handle is None:
            raise ActionNotPermitted("Nothing has been loaded yet")
        try:
            return self.blobs.read(self.handle)
        except KeyError as exc:
            raise ActionNotPermitted("This copy has expired, reload the link to view it again") from exc

    def download(self) -> DownloadedFile:
        if self.state is not ViewerState.DISPLAYED:
            raise ActionNotPermitted("Nothing to download")
        return DownloadedFile(
            filename=self.rendering.filename,
            content_type=self.rendering.content_type,
            content=self.content(),
        )

    def close(self) -> None:
        self._closed = True
        self.blobs.release(self.handle)
