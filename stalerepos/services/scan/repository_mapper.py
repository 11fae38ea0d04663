"""Contract-safe mapping from GitHub payloads to scan entries and table rows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from stalerepos.services.scan.classifier import parse_timestamp
from stalerepos.services.scan.report import ScannedRepository


def split_owner_repo(repo_payload: dict[str, Any]) -> tuple[str, str]:
    """Owner login and repository name, falling back to `full_name`."""

    owner = repo_payload.get("owner")
    login = owner.get("login") if isinstance(owner, dict) else None
    name = repo_payload.get("name")
    if isinstance(login, str) and login.strip() and isinstance(name, str) and name.strip():
        return login.strip(), name.strip()

    full_name = str(repo_payload.get("full_name") or "").strip()
    if "/" not in full_name:
        raise ValueError("Repository payload missing owner/name")
    owner_part, repo_part = full_name.split("/", 1)
    return owner_part.strip(), repo_part.strip()


def map_repo_payload(repo_payload: dict[str, Any], *, last_commit_date: Optional[datetime | str]) -> ScannedRepository:
    """Map one `/user/repos` item plus its commit date into a scan entry."""

    repo_id = repo_payload.get("id")
    if isinstance(repo_id, bool) or not isinstance(repo_id, int):
        raise ValueError("Repository payload missing numeric id")

    full_name = _pick_text(repo_payload.get("full_name"), required=True)
    return ScannedRepository(
        github_id=repo_id,
        name=_pick_text(repo_payload.get("name"), fallback=full_name.split("/")[-1], required=True),
        full_name=full_name,
        description=_pick_text(repo_payload.get("description")),
        private=bool(repo_payload.get("private") or False),
        html_url=_pick_text(repo_payload.get("html_url"), fallback=f"https://github.com/{full_name}", required=True),
        clone_url=_pick_text(repo_payload.get("clone_url")),
        last_commit_date=parse_timestamp(last_commit_date),
        last_push_date=parse_timestamp(repo_payload.get("pushed_at")),
        is_fork=bool(repo_payload.get("fork") or False),
        is_archived=bool(repo_payload.get("archived") or False),
        default_branch=_pick_text(repo_payload.get("default_branch"), fallback="main", required=True),
        language=_pick_text(repo_payload.get("language")),
        stars_count=_pick_int(repo_payload.get("stargazers_count")),
        forks_count=_pick_int(repo_payload.get("forks_count")),
        open_issues_count=_pick_int(repo_payload.get("open_issues_count")),
        size_kb=_pick_int(repo_payload.get("size")),
    )


def map_scanned_to_row(entry: ScannedRepository, *, scanned_at: datetime) -> dict[str, Any]:
    """Mutable `repositories` columns for an upsert."""

    return {
        "name": entry.name,
        "full_name": entry.full_name,
        "description": entry.description,
        "private": entry.private,
        "html_url": entry.html_url,
        "clone_url": entry.clone_url,
        "last_commit_date": entry.last_commit_date,
        "last_push_date": entry.last_push_date,
        "is_fork": entry.is_fork,
        "is_archived": entry.is_archived,
        "default_branch": entry.default_branch,
        "language": entry.language,
        "stars_count": entry.stars_count,
        "forks_count": entry.forks_count,
        "open_issues_count": entry.open_issues_count,
        "size_kb": entry.size_kb,
        "last_scanned_at": scanned_at,
        "updated_at": scanned_at,
    }


def _pick_text(primary: Any, *, fallback: str | None = None, required: bool = False) -> str | None:
    if isinstance(primary, str) and primary.strip():
        return primary.strip()
    if fallback is not None:
        return fallback
    if required:
        raise ValueError("Missing required textual field")
    return None


def _pick_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    return 0
