import logging
from collections.abc import Collection

import httpx

from docvault.config import Settings
from docvault.credentials import CredentialProvider
from docvault.errors import NetworkError, ServiceError, Unauthorized, VaultError, error_for_response

logger = logging.getLogger(__name__)


class VaultTransport:
    """
    Thin wrapper over httpx.AsyncClient for the document-vault API.

    Authenticated calls attach the bearer credential from the injected
    provider; anonymous calls never touch it. Non-success responses are
    turned into VaultError subclasses, transport failures into NetworkError
    and other request failures (such as an undecodable body) into ServiceError.
    A client passed in is closed together with the transport.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialProvider | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.credentials = credentials
        self._client = client or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=httpx.Timeout(
                settings.request_timeout_seconds,
                connect=settings.connect_timeout_seconds,
            ),
        )

    async def __aenter__(self) -> "VaultTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self.credentials.get_token() if self.credentials else None
        if not token:
            raise Unauthorized()
        return {"Authorization": f"Bearer {token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        fallback: str = "request failed",
        forbidden: str | None = None,
        not_found: type[VaultError] | None = None,
        accept: Collection[int] = (),
        **kwargs,
    ) -> httpx.Response:
        headers = self._auth_headers() if authenticated else {}
        logger.debug("%s %s authenticated=%s", method, path, authenticated)

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s did not reach the server: %s", method, path, exc)
            raise NetworkError(detail=str(exc)) from exc
        except httpx.RequestError as exc:
            logger.warning("%s %s failed while reading the response: %s", method, path, exc)
            raise ServiceError(fallback, detail=str(exc)) from exc

        if response.is_success or response.status_code in accept:
            return response

        error = error_for_response(
            response,
            fallback=fallback,
            forbidden=forbidden,
            not_found=not_found,
        )
        if isinstance(error, Unauthorized) and authenticated and self.credentials:
            self.credentials.invalidate()
        logger.warning("%s %s failed with %s: %s", method, path, response.status_code, error.message)
        raise error
