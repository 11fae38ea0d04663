from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stalerepos.config.database import init_db
from stalerepos.config.settings import settings
from stalerepos.models.account import Account
from stalerepos.services.scan.report import ScannedRepository


@pytest.fixture(autouse=True)
def required_secrets(monkeypatch):
    monkeypatch.setattr(settings, "SECRET_KEY", "test-secret-key")
    monkeypatch.setattr(settings, "GITHUB_CLIENT_ID", "test-client-id")
    monkeypatch.setattr(settings, "GITHUB_CLIENT_SECRET", "test-client-secret")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def account(db) -> Account:
    account = Account(username="octocat", access_token="gho_testtoken")
    db.add(account)
    db.commit()
    return account


def make_repo_payload(repo_id: int, name: str, **overrides: Any) -> dict[str, Any]:
    payload = {
        "id": repo_id,
        "name": name,
        "full_name": f"octocat/{name}",
        "owner": {"login": "octocat"},
        "private": False,
        "html_url": f"https://github.com/octocat/{name}",
        "clone_url": f"https://github.com/octocat/{name}.git",
        "description": None,
        "fork": False,
        "archived": False,
        "default_branch": "main",
        "language": "Python",
        "stargazers_count": 3,
        "forks_count": 1,
        "open_issues_count": 0,
        "size": 120,
        "pushed_at": "2024-01-10T12:00:00Z",
    }
    payload.update(overrides)
    return payload


def make_scanned(github_id: int, name: str | None = None, **overrides: Any) -> ScannedRepository:
    name = name or f"repo-{github_id}"
    values = {
        "github_id": github_id,
        "name": name,
        "full_name": f"octocat/{name}",
        "html_url": f"https://github.com/octocat/{name}",
        "last_commit_date": datetime(2024, 1, 10, tzinfo=UTC),
    }
    values.update(overrides)
    return ScannedRepository(**values)


@pytest.fixture
def repo_payload():
    return make_repo_payload


@pytest.fixture
def scanned():
    return make_scanned
