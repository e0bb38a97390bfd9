"""Exception types raised across the sync pipeline."""


class LinkcalError(Exception):
    """Base class for all Linkcal errors."""


class UnsupportedProviderError(LinkcalError, ValueError):
    """Provider string does not map to a known calendar provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unsupported calendar provider: {provider}")


class AccountNotFoundError(LinkcalError):
    """Linked account does not exist (or belongs to another user)."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Linked account not found: {account_id}")


class ReauthorizationRequired(LinkcalError):
    """The stored refresh token could not be exchanged for an access token.

    Fatal for the current sync attempt. The user must re-link the account
    unless the underlying problem (network, provider outage) clears.
    """

    def __init__(self, account_id: str, provider: str, reason: str = ""):
        self.account_id = account_id
        self.provider = provider
        self.reason = reason
        message = f"Reauthorization required for {provider} account {account_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ProviderFetchError(LinkcalError):
    """A calendar read failed at the transport or authorization layer."""

    def __init__(self, provider: str, message: str, status: int | None = None):
        self.provider = provider
        self.status = status
        super().__init__(f"{provider} calendar fetch failed: {message}")

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)


class ProviderWriteError(LinkcalError):
    """Creating or deleting an event on the provider calendar failed."""

    def __init__(self, provider: str, message: str, status: int | None = None):
        self.provider = provider
        self.status = status
        super().__init__(f"{provider} calendar write failed: {message}")
