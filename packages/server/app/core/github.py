"""
GitHub REST access.

``GitHubClient`` wraps one bearer credential (OAuth token, installation
token or App JWT). ``GitHubProvider`` hands out clients for each kind of
authority and owns the OAuth code exchange; services receive it through
``get_github`` so tests can swap in a fake.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlencode

import httpx
import structlog

from app.core.config import get_settings
from app.core.errors import ProviderAPIError
from app.core.tokens import issue_app_token

log = structlog.get_logger()
settings = get_settings()

GITHUB_ACCEPT = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"
PER_PAGE = 100


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class GitHubClient:
    """Async client bound to a single bearer token."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.timeout = timeout or settings.github_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": GITHUB_ACCEPT,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request; any 4xx/5xx becomes ProviderAPIError."""
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method, url, json=json, params=params, headers=self._headers()
                )
            except httpx.HTTPError as exc:
                raise ProviderAPIError(f"{method} {path}: {exc}") from exc
        if response.status_code >= 400:
            raise ProviderAPIError(
                f"{method} {path}: {_error_message(response)}",
                status=response.status_code,
            )
        return response

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        response = await self.request("GET", path, params=params)
        return response.json()

    async def paginate(self, path: str, params: Optional[dict[str, Any]] = None) -> list[Any]:
        """Follow ``Link: rel=next`` page by page and concatenate the results."""
        items: list[Any] = []
        url: Optional[str] = path
        query = {"per_page": PER_PAGE, **(params or {})}
        while url:
            response = await self.request("GET", url, params=query)
            page = response.json()
            if not isinstance(page, list):
                raise ProviderAPIError(f"GET {path}: expected a list")
            items.extend(page)
            url = response.links.get("next", {}).get("url")
            query = None  # the next link already carries the query string
        return items

    # -- user ---------------------------------------------------------------

    async def get_user(self) -> dict[str, Any]:
        return await self.get_json("/user")

    async def get_user_emails(self) -> list[dict[str, Any]]:
        return await self.get_json("/user/emails")

    async def list_my_repos(self, **params: Any) -> list[dict[str, Any]]:
        return await self.paginate("/user/repos", params)

    # -- repositories -------------------------------------------------------

    async def create_user_repo(self, name: str, **options: Any) -> dict[str, Any]:
        response = await self.request("POST", "/user/repos", json={"name": name, **options})
        return response.json()

    async def create_org_repo(self, org: str, name: str, **options: Any) -> dict[str, Any]:
        response = await self.request(
            "POST", f"/orgs/{org}/repos", json={"name": name, **options}
        )
        return response.json()

    async def add_collaborator(
        self, owner: str, repo: str, username: str, permission: str = "push"
    ) -> int:
        """Invite or re-affirm a collaborator; returns the HTTP status."""
        response = await self.request(
            "PUT",
            f"/repos/{owner}/{repo}/collaborators/{username}",
            json={"permission": permission},
        )
        return response.status_code

    async def list_collaborators(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self.get_json(
            f"/repos/{owner}/{repo}/collaborators", params={"per_page": PER_PAGE}
        )

    # -- app ----------------------------------------------------------------

    async def get_app(self) -> dict[str, Any]:
        return await self.get_json("/app")

    async def get_installation(self, installation_id: int) -> dict[str, Any]:
        return await self.get_json(f"/app/installations/{installation_id}")

    async def create_installation_token(self, installation_id: int) -> str:
        response = await self.request(
            "POST", f"/app/installations/{installation_id}/access_tokens"
        )
        return response.json()["token"]


class GitHubProvider:
    """Factory for GitHub clients under each kind of authority."""

    def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    def oauth_client(self, access_token: str) -> GitHubClient:
        return GitHubClient(access_token, transport=self._transport)

    def app_client(self) -> GitHubClient:
        return GitHubClient(issue_app_token(), transport=self._transport)

    async def installation_client(self, installation_id: int) -> GitHubClient:
        token = await self.app_client().create_installation_token(installation_id)
        return GitHubClient(token, transport=self._transport)

    async def get_installation(self, installation_id: int) -> dict[str, Any]:
        """Installation metadata; ``account.login``, ``account.id``, ``account.type``."""
        return await self.app_client().get_installation(installation_id)

    # -- OAuth --------------------------------------------------------------

    def authorize_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": settings.github_client_id,
                "redirect_uri": settings.oauth_callback_url,
                "scope": settings.github_oauth_scopes,
                "state": state,
            }
        )
        return f"{settings.github_web_url}/login/oauth/authorize?{query}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Trade an authorization code for ``{access_token, token_type, scope}``."""
        url = f"{settings.github_web_url}/login/oauth/access_token"
        async with httpx.AsyncClient(
            timeout=settings.github_timeout_seconds, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    url,
                    data={
                        "client_id": settings.github_client_id,
                        "client_secret": settings.github_client_secret,
                        "code": code,
                        "redirect_uri": settings.oauth_callback_url,
                    },
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as exc:
                raise ProviderAPIError(f"OAuth code exchange: {exc}") from exc
        body = response.json() if response.content else {}
        if response.status_code >= 400 or not body.get("access_token"):
            reason = body.get("error_description") or body.get("error") or response.reason_phrase
            log.warning("github.oauth_exchange_failed", status=response.status_code, reason=reason)
            raise ProviderAPIError(f"OAuth code exchange: {reason}", status=response.status_code)
        return body


_provider: GitHubProvider | None = None


def get_github() -> GitHubProvider:
    """FastAPI dependency returning the shared provider."""
    global _provider
    if _provider is None:
        _provider = GitHubProvider()
    return _provider
