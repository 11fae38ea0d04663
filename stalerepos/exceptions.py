"""Domain exceptions for scans, accounts and the GitHub source."""

from __future__ import annotations


class StaleReposError(Exception):
    """Base exception for application failures."""


class GitHubSourceError(StaleReposError):
    """Raised when GitHub cannot serve a request the whole scan depends on."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubAuthError(GitHubSourceError):
    """Raised when GitHub rejects the access token (expired, revoked or invalid)."""


class GitHubRateLimitError(GitHubSourceError):
    """Raised when rate-limit retries are exhausted."""


class GitHubScopeError(GitHubSourceError):
    """Raised when a token lacks a scope the dashboard needs."""


class OAuthExchangeError(StaleReposError):
    """Raised when the OAuth code-for-token exchange fails."""


class ScanNotFoundError(StaleReposError):
    """Raised when a scan id does not exist."""


class ScanStateError(StaleReposError):
    """Raised on a lifecycle transition out of a terminal scan state."""

    def __init__(self, scan_id: str, status: str):
        super().__init__(f"Scan {scan_id} is already {status}")
        self.scan_id = scan_id
        self.status = status


class ConfigValidationError(StaleReposError):
    """Raised when a configuration update is rejected before persistence."""


class AccountNotFoundError(StaleReposError):
    """Raised when a session refers to an account that no longer exists."""
