from dataclasses import dataclass

import httpx

NETWORK_MESSAGE = "Unable to reach the document service. Check your connection and try again."
LINK_EXPIRED_MESSAGE = "Shared document not found or expired"
LINK_EXPIRED_DETAIL = (
    "This could be because the link has expired, the document has been deleted, "
    "or you've reached the maximum view limit."
)


@dataclass(frozen=True)
class Advisory:
    kind: str
    message: str
    detail: str | None = None
    transient: bool = False
    dismissible: bool = True


class VaultError(Exception):
    kind = "service_error"
    default_message = "request failed"
    transient = False

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        detail: str | None = None,
        kind: str | None = None,
    ):
        self.message = message or self.default_message
        self.status_code = status_code
        self.detail = detail
        if kind:
            self.kind = kind
        super().__init__(self.message)

    def to_advisory(self) -> Advisory:
        return Advisory(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            transient=self.transient,
        )


class Unauthorized(VaultError):
    kind = "unauthorized"
    default_message = "Please log in to continue"


class Forbidden(VaultError):
    kind = "forbidden"
    default_message = "You do not have permission to perform this action"


class LinkExpiredOrInvalid(VaultError):
    kind = "link_expired_or_invalid"
    default_message = LINK_EXPIRED_MESSAGE

    def __init__(self, message: str | None = None, **kwargs):
        kwargs.setdefault("detail", LINK_EXPIRED_DETAIL)
        super().__init__(message, **kwargs)


class ServiceError(VaultError):
    kind = "service_error"


class NetworkError(VaultError):
    kind = "network_error"
    default_message = NETWORK_MESSAGE
    transient = True


class ActionNotPermitted(VaultError):
    kind = "not_permitted"
    default_message = "This action is not available right now"


def server_message(response: httpx.Response) -> str | None:
    """Pull a human readable message out of an error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    for key in ("message", "error", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def error_for_response(
    response: httpx.Response,
    *,
    fallback: str,
    forbidden: str | None = None,
    not_found: type[VaultError] | None = None,
) -> VaultError:
    status_code = response.status_code
    message = server_message(response)

    if status_code == 401:
        return Unauthorized(status_code=status_code, detail=message)
    if status_code == 403:
        return Forbidden(forbidden, status_code=status_code, detail=message)
    if status_code == 404 and not_found is not None:
        return not_found(status_code=status_code)
    return ServiceError(message or fallback, status_code=status_code)
