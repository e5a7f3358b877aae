"""Sets up the authenticated platform clients for one sync run."""

import gitlab
from githubkit import GitHub
from githubkit.auth import TokenAuthStrategy


def get_github_client(token: str, api_url: str) -> GitHub[TokenAuthStrategy]:
    """Returns an authenticated GitHub client using a personal access token."""
    if not token:
        raise RuntimeError("GitHub access requires a token.")
    # Disable HTTP caching to always get fresh data
    return GitHub(auth=TokenAuthStrategy(token), base_url=api_url, http_cache=False)


def get_gitlab_client(url: str, token: str) -> gitlab.Gitlab:
    """Returns an authenticated GitLab client that retries transient server errors."""
    if not token:
        raise RuntimeError("GitLab access requires a token.")
    return gitlab.Gitlab(url, private_token=token, retry_transient_errors=True)
