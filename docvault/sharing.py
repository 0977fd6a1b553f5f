import logging
from urllib.parse import quote, unquote, urlsplit

from docvault.config import Settings
from docvault.errors import ServiceError
from docvault.models import ShareLink, ShareLinkRequest, ShareOptions
from docvault.transport import VaultTransport

logger = logging.getLogger(__name__)

SHARED_PATH = "shared"


def share_address(origin: str, token: str) -> str:
    return f"{origin.rstrip('/')}/{SHARED_PATH}/{quote(token, safe='')}"


def token_from_address(address: str) -> str | None:
    """Return the capability token of a /shared/<token> address, or None."""
    segments = [part for part in urlsplit(address).path.split("/") if part]
    for index, segment in enumerate(segments[:-1]):
        if segment == SHARED_PATH:
            return unquote(segments[index + 1]) or None
    return None


class ShareLinkService:
    def __init__(self, transport: VaultTransport, settings: Settings):
        self.transport = transport
        self.settings = settings

    def default_options(self) -> ShareOptions:
        return ShareOptions(
            expiry_days=self.settings.default_expiry_days,
            max_views=self.settings.default_max_views,
        )

    def share_address(self, token: str) -> str:
        return share_address(self.settings.client_origin, token)

    async def request_link(self, document_id: str, options: ShareOptions | None = None) -> ShareLink:
        """
        Ask the backend to mint a capability token for one document.

        Every call may return a different token; nothing is cached. Expiry
        and view limits are enforced by the server only.

        Raises:
            Forbidden: the backend refused to share this document.
            ServiceError: any other failure response, or no token returned.
            NetworkError: the request never reached the backend.
        """
        options = options or self.default_options()
        body = ShareLinkRequest(document_id=document_id, **options.model_dump())

        response = await self.transport.request(
            "POST",
            "documents/share",
            json=body.model_dump(by_alias=True),
            forbidden="You do not have permission to share this document",
            fallback="Failed to share document",
        )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise ServiceError("Failed to share document", status_code=response.status_code)

        logger.info("issued share link for document %s", document_id)
        return ShareLink(
            document_id=document_id,
            token=str(token),
            created_via=options,
            address=self.share_address(str(token)),
        )
