"""Thin async client for the GitHub contents API."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import httpx

from depscout.exceptions import NetworkError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "depscout-discovery/0.1"


def decode_base64_content(content: str | None) -> str:
    """Decode a base64 ``content`` field from the contents API; "" if invalid."""
    if not content:
        return ""
    try:
        return base64.b64decode(content).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return ""


class GitHubClient:
    """Fetches repository contents and READMEs.

    The token is optional; unauthenticated requests work for public
    repositories at a lower rate limit.

    Example:
        >>> async with httpx.AsyncClient() as http:
        ...     gh = GitHubClient(http, token=None)
        ...     readme = await gh.get_readme("facebook", "react")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token: str | None = None,
        timeout: float = 10.0,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        self._http = http_client
        self._token = token
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    def _headers(self, authenticated: bool = True) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json", "User-Agent": USER_AGENT}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def get_contents(self, owner: str, repo: str, path: str) -> Any:
        """GET ``/repos/{owner}/{repo}/contents/{path}``.

        Returns:
            A list of entries for a directory, a dict for a file.

        Raises:
            NetworkError: On any transport failure or non-2xx response.
        """
        url = f"{self._base_url}/repos/{owner}/{repo}/contents/{path}"
        return await self._get_json(url, self._headers())

    async def get_readme(self, owner: str, repo: str) -> str:
        """Fetch and decode the repository README.

        Raises:
            NetworkError: On any transport failure or non-2xx response.
        """
        data = await self._get_json(f"{self._base_url}/repos/{owner}/{repo}/readme", self._headers())
        return decode_base64_content(data.get("content") if isinstance(data, dict) else None)

    async def download_json(self, download_url: str) -> Any:
        """Fetch a raw file by its ``download_url`` and parse it as JSON.

        The raw host does not need the API token, so none is sent.
        """
        return await self._get_json(download_url, self._headers(authenticated=False))

    async def _get_json(self, url: str, headers: dict[str, str]) -> Any:
        try:
            response = await self._http.get(url, headers=headers, timeout=self._timeout)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise NetworkError(f"Request to {url} failed: {e}", url=url) from e

        if response.status_code >= 400:
            raise NetworkError(
                f"GitHub returned {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {url}", url=url) from e
