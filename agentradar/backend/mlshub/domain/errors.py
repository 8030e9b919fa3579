# mlshub/domain/errors.py
from __future__ import annotations


class ProviderConfigError(ValueError):
    """Bad provider configuration. Raised at registration, never at search time."""


class UnknownProviderError(KeyError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(provider_id)
        self.provider_id = provider_id

    def __str__(self) -> str:
        return f"Unknown MLS provider: {self.provider_id}"


class ProviderError(Exception):
    """
    A provider operation failed (timeout, DNS, non-2xx, bad payload).

    `status_code` is set when the provider answered with an HTTP error, so
    callers can tell "not found" apart from an outage.
    """

    def __init__(
        self,
        provider_id: str,
        operation: str,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.operation = operation
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider_id} {operation} failed: {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ProviderConnectionError(ProviderError):
    def __init__(self, provider_id: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(provider_id, "connection test", message, status_code=status_code)
        # keep the message shape admins see in the 400 response
        self.args = (f"Custom MLS provider {provider_id} connection test failed: {message}",)

    def __str__(self) -> str:
        return str(self.args[0])
