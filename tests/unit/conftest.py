"""Fixtures for unit tests."""

from typing import Callable, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from repo_sync_manager.configuration.models import PlatformType
from repo_sync_manager.endpoints.abc import RepositoryEndpointBase


@pytest.fixture(autouse=True)
def configure_structlog_for_caplog() -> Generator[None, None, None]:
    """Configure structlog for use with caplog."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    yield
    structlog.reset_defaults()


def _make_endpoint(platform: PlatformType) -> MagicMock:
    endpoint = MagicMock(spec=RepositoryEndpointBase)
    endpoint.platform = platform
    endpoint.clone_url = f"https://{platform.value}.example.com/acme/widgets.git"
    for name in (
        "get_repo_info",
        "get_default_branch",
        "list_branches",
        "get_branch_head",
        "create_branch",
        "update_branch",
        "commit_exists",
        "get_commit",
        "get_recent_commits",
        "list_issues",
        "create_issue",
        "update_issue",
        "list_issue_comments",
        "create_issue_comment",
        "update_issue_comment",
        "list_pull_requests",
        "create_pull_request",
        "update_pull_request",
        "close_pull_request",
        "list_releases",
        "create_release",
        "update_release",
        "download_release_asset",
        "upload_release_asset",
        "list_tags",
        "create_tag",
        "update_tag",
    ):
        setattr(endpoint, name, AsyncMock())
    endpoint.get_default_branch.return_value = "main"
    endpoint.issue_url.side_effect = lambda number: f"https://{platform.value}.example.com/acme/widgets/issues/{number}"
    endpoint.comment_url.side_effect = lambda number, comment_id: f"https://{platform.value}.example.com/acme/widgets/issues/{number}#c{comment_id}"
    return endpoint


@pytest.fixture
def make_endpoint() -> Callable[[PlatformType], MagicMock]:
    """Factory for endpoint mocks whose async methods are AsyncMocks."""
    return _make_endpoint


@pytest.fixture
def github_endpoint() -> MagicMock:
    """A mocked GitHub endpoint."""
    return _make_endpoint(PlatformType.GITHUB)


@pytest.fixture
def gitlab_endpoint() -> MagicMock:
    """A mocked GitLab endpoint."""
    return _make_endpoint(PlatformType.GITLAB)
