"""Resilient async GitHub client for repository scans."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from stalerepos.config.settings import settings
from stalerepos.github.contracts import (
    CommitListContract,
    FetchResult,
    FetchState,
    RepoListContract,
    UserContract,
)

logger = logging.getLogger(__name__)

_REDACTED = "***REDACTED***"
_SECRET_FIELDS = ("authorization", "token", "secret", "cookie", "session")
_SECRET_PATTERNS = (
    re.compile(r"(?i)(bearer\s+)\S+"),
    re.compile(r"(?i)\b((?:access_token|client_secret|code)=)[^&\s]+"),
    re.compile(r"\b(gh[pousr]_)[A-Za-z0-9]{16,}"),
    re.compile(r"\b(github_pat_)\w{20,}"),
)


def sanitize_for_log(value: Any) -> Any:
    """Copy a log value with GitHub credentials masked.

    Mapping fields named like a credential are replaced outright; strings are
    scrubbed of bearer headers, OAuth query params and GitHub token literals.
    """

    if isinstance(value, dict):
        return {
            str(field): _REDACTED if _is_secret_field(str(field)) else sanitize_for_log(item)
            for field, item in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item) for item in value]
    if isinstance(value, str):
        for pattern in _SECRET_PATTERNS:
            value = pattern.sub(rf"\1{_REDACTED}", value)
    return value


def sanitize_log_extra(**fields: Any) -> dict[str, Any]:
    """Build an `extra=` mapping for structured log calls."""

    return sanitize_for_log(fields)


def _is_secret_field(field: str) -> bool:
    lowered = field.lower()
    return any(marker in lowered for marker in _SECRET_FIELDS)


class _RateLimitRetryableError(Exception):
    """Retryable rate-limit signal for tenacity."""


class GitHubClient:
    """Typed GitHub API client bound to one user's access token."""

    BASE_URL = "https://api.github.com"
    API_VERSION = "2022-11-28"
    ACCEPT_JSON = "application/vnd.github+json"

    def __init__(
        self,
        token: str,
        *,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        rate_limit_buffer_seconds: Optional[int] = None,
        base_url: Optional[str] = None,
        transport: Optional[Any] = None,
    ) -> None:
        self._token = token
        self._timeout_seconds = timeout_seconds or settings.GITHUB_TIMEOUT_SECONDS
        self._max_retries = max_retries or settings.GITHUB_MAX_RETRIES
        self._backoff_base_seconds = backoff_base_seconds or settings.GITHUB_BACKOFF_BASE_SECONDS
        self._backoff_max_seconds = backoff_max_seconds or settings.GITHUB_BACKOFF_MAX_SECONDS
        self._rate_limit_buffer_seconds = (
            rate_limit_buffer_seconds
            if rate_limit_buffer_seconds is not None
            else settings.GITHUB_RATE_LIMIT_BUFFER_SECONDS
        )
        self._base_url = base_url or self.BASE_URL
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "GitHubClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_authenticated_user(self) -> UserContract:
        return await self._request("/user")

    async def list_user_repositories(
        self,
        *,
        include_private: bool = False,
        page: int = 1,
        per_page: int = 100,
    ) -> RepoListContract:
        """List repositories of the authenticated user, most recently updated first."""

        response = await self._request(
            "/user/repos",
            params={
                "type": "all" if include_private else "public",
                "sort": "updated",
                "direction": "desc",
                "per_page": per_page,
                "page": page,
            },
        )
        if response.is_failed:
            return response

        items = response.data if isinstance(response.data, list) else []
        if not items:
            return FetchResult(state=FetchState.EMPTY, data=[], status_code=response.status_code)
        return FetchResult(state=FetchState.OK, data=items, status_code=response.status_code)

    async def list_commits(self, owner: str, repo: str, *, sha: str, per_page: int = 1) -> CommitListContract:
        return await self._request(
            f"/repos/{owner}/{repo}/commits",
            params={"sha": sha, "per_page": per_page},
        )

    async def get_last_commit_date(self, owner: str, repo: str, branch: str = "main") -> FetchResult[str]:
        """Committer date of the newest commit on `branch`.

        EMPTY when the branch has no commits. 404/409 (missing branch, empty
        repository) come back as FAILED with `is_not_found` set so callers can
        tell them apart from real failures.
        """

        response = await self.list_commits(owner, repo, sha=branch, per_page=1)
        if response.is_failed:
            return FetchResult(state=FetchState.FAILED, status_code=response.status_code, error=response.error)

        commits = response.data if isinstance(response.data, list) else []
        if not commits:
            return FetchResult(state=FetchState.EMPTY, data=None, status_code=response.status_code)

        commit = commits[0].get("commit") if isinstance(commits[0], dict) else None
        committer = (commit or {}).get("committer") or {}
        committed_at = committer.get("date")
        if not committed_at:
            return FetchResult(state=FetchState.EMPTY, data=None, status_code=response.status_code)
        return FetchResult(state=FetchState.OK, data=committed_at, status_code=response.status_code)

    async def _request(
        self,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
    ) -> FetchResult[Any]:
        client = await self._ensure_client()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff_base_seconds, max=self._backoff_max_seconds),
                retry=retry_if_exception_type(_RateLimitRetryableError),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(path, params=params)

                    if self._is_rate_limited(response):
                        wait_seconds = self._compute_rate_limit_wait(response.headers)
                        logger.warning(
                            "GitHub API rate limit encountered",
                            extra=sanitize_log_extra(
                                path=path,
                                params=params,
                                status_code=response.status_code,
                                retry_after_seconds=wait_seconds,
                            ),
                        )
                        if wait_seconds > 0:
                            await asyncio.sleep(wait_seconds)
                        raise _RateLimitRetryableError(
                            f"GitHub rate limit encountered ({response.status_code})"
                        )

                    response.raise_for_status()
                    return FetchResult(
                        state=FetchState.OK,
                        data=response.json(),
                        status_code=response.status_code,
                        headers=dict(response.headers),
                    )
        except _RateLimitRetryableError as exc:
            logger.warning(
                "GitHub request failed after rate-limit retries",
                extra=sanitize_log_extra(path=path, params=params, error=str(exc), status_code=429),
            )
            return FetchResult(state=FetchState.FAILED, error=str(exc), status_code=429)
        except httpx.HTTPError as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            log = logger.debug if status_code in (404, 409) else logger.warning
            log(
                "GitHub request failed",
                extra=sanitize_log_extra(path=path, params=params, error=str(exc), status_code=status_code),
            )
            return FetchResult(state=FetchState.FAILED, error=str(exc), status_code=status_code)

        return FetchResult(state=FetchState.FAILED, error="Unknown GitHub request failure")

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client

        headers = {
            "Accept": self.ACCEPT_JSON,
            "User-Agent": settings.USER_AGENT,
            "X-GitHub-Api-Version": self.API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout_seconds,
            transport=self._transport,
        )
        return self._client

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False
        # Plain 403s are permission errors; only exhausted quotas are retried.
        return response.headers.get("x-ratelimit-remaining") == "0" or "retry-after" in response.headers

    def _compute_rate_limit_wait(self, headers: httpx.Headers) -> float:
        retry_after = headers.get("retry-after")
        if retry_after is not None:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                pass

        reset_raw = headers.get("x-ratelimit-reset")
        if reset_raw is not None:
            try:
                reset_epoch = int(reset_raw)
                wait_seconds = reset_epoch - int(time.time()) + self._rate_limit_buffer_seconds
                return float(max(wait_seconds, 0))
            except ValueError:
                pass

        return self._backoff_base_seconds
