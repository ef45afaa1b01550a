"""
GitHub Backend Adapter

Verifies a login against the GitHub REST API (github.com or a GitHub
Enterprise endpoint) with HTTP basic credentials, typically a username
and a personal access token.
"""

import logging
from typing import Optional

import httpx

from authsources.auth.backends.base import BackendAdapter, ExternalProfile
from authsources.errors import BackendUnavailable, CredentialRejected

logger = logging.getLogger(__name__)


class GitHubAdapter(BackendAdapter):
    def __init__(self, config, timeout: Optional[float] = None):
        super().__init__(config)
        if timeout is None:
            from authsources.utils.config import config as settings

            timeout = settings.GITHUB_TIMEOUT
        self.timeout = timeout

    def get_name(self) -> str:
        return "github"

    @property
    def user_url(self) -> str:
        return self.config.api_endpoint.rstrip("/") + "/user"

    def verify(self, login: str, password: str) -> ExternalProfile:
        try:
            response = httpx.get(
                self.user_url,
                auth=(login, password),
                headers={"Accept": "application/vnd.github+json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"GitHub: request to {self.user_url} failed for '{login}': {e}")
            raise BackendUnavailable(login, e) from e

        if response.status_code == 401:
            logger.warning(f"GitHub: credentials rejected for '{login}'")
            raise CredentialRejected(login)

        try:
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPStatusError, ValueError) as e:
            logger.error(f"GitHub: unexpected answer from {self.user_url} for '{login}': {e}")
            raise BackendUnavailable(login, e) from e

        logger.info(f"GitHub: user '{login}' verified")
        return ExternalProfile(
            login=login,
            username=data.get("login") or "",
            full_name=data.get("name") or "",
            email=data.get("email") or "",
            website=data.get("html_url") or "",
            location=data.get("location") or "",
        )
