from typing import Protocol


class CredentialProvider(Protocol):
    """Source of the bearer credential for authenticated document calls."""

    def get_token(self) -> str | None: ...

    def invalidate(self) -> None: ...


class StaticCredentialProvider:
    def __init__(self, token: str | None = None):
        self._token = token

    def get_token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token

    def invalidate(self) -> None:
        self._token = None
