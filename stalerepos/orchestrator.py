"""Repository scan orchestrator: fetch, enrich and report one account's repositories."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Sequence

from stalerepos.config.settings import settings
from stalerepos.exceptions import GitHubAuthError, GitHubRateLimitError, GitHubSourceError
from stalerepos.github.client import GitHubClient, sanitize_for_log, sanitize_log_extra
from stalerepos.github.contracts import FetchResult
from stalerepos.services.scan.report import ItemOutcome, ItemResult, ScanReport
from stalerepos.services.scan.repository_mapper import map_repo_payload, split_owner_repo

logger = logging.getLogger(__name__)

STATUS_FETCHING = "fetching"
STATUS_ANALYZING = "analyzing"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

StatusCallback = Callable[[str, dict[str, Any]], Any]
ProgressCallback = Callable[[int, int], Any]


def emit_status(callback: Optional[StatusCallback], status: str, payload: dict[str, Any]) -> None:
    """Call a status observer; its errors are logged, never raised."""

    if callback is None:
        return
    try:
        callback(status, payload)
    except Exception as exc:
        logger.warning("Scan status callback raised", extra=sanitize_log_extra(status=status, error=str(exc)))


class RepositoryScanOrchestrator:
    """Coordinates one full scan; per-item failures never abort the run."""

    def __init__(
        self,
        *,
        github_client_factory: Callable[[str], Any] = GitHubClient,
        page_size: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> None:
        self._github_client_factory = github_client_factory
        self._page_size = page_size or settings.SCAN_PAGE_SIZE
        self._concurrency = max(int(concurrency or settings.SCAN_COMMIT_CONCURRENCY), 1)

    async def perform_repository_scan(
        self,
        access_token: str,
        username: str,
        include_private: bool = False,
        *,
        on_status: Optional[StatusCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ScanReport:
        """Run fetch -> enrich for one account.

        Raises GitHubAuthError / GitHubSourceError when the listing itself
        cannot be fetched; everything below that is reported per item.
        Only `fetching` and `analyzing` are emitted here; the caller reports
        `completed` or `error` once the outcome is stored.
        """

        report = ScanReport(username=username)
        logger.info(
            "Repository scan started",
            extra=sanitize_log_extra(username=username, include_private=include_private),
        )
        emit_status(on_status, STATUS_FETCHING, {"message": "Fetching repositories from GitHub..."})
        async with self._github_client_factory(access_token) as client:
            repositories = await self.fetch_all_repositories(client, include_private=include_private)
            report.total = len(repositories)

            if not repositories:
                return report

            emit_status(
                on_status,
                STATUS_ANALYZING,
                {"message": f"Analyzing {len(repositories)} repositories...", "total": len(repositories)},
            )
            report.results = await self.analyze_repositories(client, repositories, on_progress=on_progress)

        logger.info("Repository scan finished", extra=sanitize_log_extra(**report.summary()))
        return report

    async def fetch_all_repositories(self, client: Any, *, include_private: bool) -> list[dict[str, Any]]:
        """Page through `/user/repos` until an empty or short page."""

        repositories: list[dict[str, Any]] = []
        page = 1
        while True:
            response = await client.list_user_repositories(
                include_private=include_private,
                page=page,
                per_page=self._page_size,
            )
            if response.is_failed:
                raise self._listing_error(response, page=page)

            items = [item for item in (response.data or []) if isinstance(item, dict)]
            if not items:
                break

            repositories.extend(items)
            if len(items) < self._page_size:
                break
            page += 1

        logger.debug("Fetched repository listing", extra=sanitize_log_extra(count=len(repositories), pages=page))
        return repositories

    async def analyze_repositories(
        self,
        client: Any,
        repositories: Sequence[dict[str, Any]],
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[ItemResult]:
        """Enrich every repository with bounded concurrency, keeping input order."""

        semaphore = asyncio.Semaphore(self._concurrency)
        total = len(repositories)
        processed = 0

        async def _run(payload: dict[str, Any]) -> ItemResult:
            nonlocal processed
            async with semaphore:
                result = await self._analyze_one(client, payload)
            processed += 1
            self._emit_progress(on_progress, processed, total)
            return result

        return list(await asyncio.gather(*(_run(payload) for payload in repositories)))

    async def _analyze_one(self, client: Any, payload: dict[str, Any]) -> ItemResult:
        full_name = str(payload.get("full_name") or payload.get("name") or "<unknown>")
        repo_id = payload.get("id") if isinstance(payload.get("id"), int) else None
        try:
            if payload.get("archived"):
                entry = map_repo_payload(payload, last_commit_date=None)
                return ItemResult(github_id=repo_id, full_name=full_name, outcome=ItemOutcome.SKIPPED, repository=entry)

            owner, repo = split_owner_repo(payload)
            branch = str(payload.get("default_branch") or "main")
            response = await client.get_last_commit_date(owner, repo, branch)
            if response.is_failed and not response.is_not_found:
                raise GitHubSourceError(
                    f"Commit lookup failed: {response.error or 'unknown error'}",
                    status_code=response.status_code,
                )
            if response.is_not_found:
                logger.debug(
                    "No commits found for repository",
                    extra=sanitize_log_extra(repo=full_name, branch=branch, status_code=response.status_code),
                )

            entry = map_repo_payload(payload, last_commit_date=response.data if response.is_ok else None)
            return ItemResult(github_id=repo_id, full_name=full_name, outcome=ItemOutcome.SUCCESS, repository=entry)
        except Exception as exc:
            error = sanitize_for_log(str(exc))
            logger.warning(
                "Repository analysis failed; dropping item",
                extra=sanitize_log_extra(repo=full_name, error=error),
            )
            return ItemResult(github_id=repo_id, full_name=full_name, outcome=ItemOutcome.FAILED, error=error)

    @staticmethod
    def _listing_error(response: FetchResult[Any], *, page: int) -> GitHubSourceError:
        if response.is_unauthorized:
            return GitHubAuthError("GitHub rejected the access token", status_code=401)
        if response.status_code == 429:
            return GitHubRateLimitError("GitHub rate limit exhausted while listing repositories", status_code=429)
        return GitHubSourceError(
            f"Failed to list repositories (page {page}): {response.error or 'unknown error'}",
            status_code=response.status_code,
        )

    @staticmethod
    def _emit_progress(callback: Optional[ProgressCallback], processed: int, total: int) -> None:
        if callback is None:
            return
        try:
            callback(processed, total)
        except Exception as exc:
            logger.warning(
                "Scan progress callback raised",
                extra=sanitize_log_extra(processed=processed, total=total, error=str(exc)),
            )
