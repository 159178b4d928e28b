from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError


DEFAULT_API_BASE = "https://api.github.com"
API_VERSION = "2022-11-28"

logger = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    """Base error for the contents client; also used for transport failures."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubNotFoundError(GitHubError):
    """A mutating request addressed a path with no object behind it."""


class GitHubConflictError(GitHubError):
    """The supplied sha is stale or missing for an existing object."""


class GitHubNotADirectoryError(GitHubError):
    """A listing was requested for a path that resolves to a single object."""


class Committer(BaseModel):
    name: str = Field(default="Default Committer")
    email: str = Field(default="default@example.com")


class RemoteObjectMetadata(BaseModel):
    """
    Metadata of one object as reported by the contents API.

    Fields
    - sha: blob hash, the revision id used for conditional updates and deletes.
      None for collection paths.
    - content: base64 payload (GitHub wraps it with newlines). None for
      collections.
    - type: "file", "dir", "symlink" or "submodule".
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    path: str
    name: str = ""
    type: str = "file"
    sha: Optional[str] = None
    content: Optional[str] = None
    encoding: Optional[str] = None
    size: Optional[int] = None

    @property
    def revision_id(self) -> Optional[str]:
        return self.sha

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


class DirectoryEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    path: str
    type: str


class GitHubContentsClient:
    """
    Async client for the repository contents endpoint.

    Notes
    - Every call maps to exactly one HTTP request; nothing is retried.
    - Reads report a missing path as `None`; every other non-2xx status
      raises a `GitHubError` subclass.
    - When `branch` is set, reads pass it as `ref` and writes as `branch`.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str = "",
        branch: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not owner or not repo:
            raise ValueError("owner and repo are required")
        self._owner = owner
        self._repo = repo
        self._branch = branch
        self._owns_client = client is None
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = client or httpx.AsyncClient(
            base_url=api_base.rstrip("/"), timeout=timeout
        )
        self._headers = headers

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "GitHubContentsClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------- Public API ---------------
    async def get_metadata(self, path: str) -> Optional[RemoteObjectMetadata]:
        """Return metadata for `path`, or None when nothing exists there.

        A collection path yields metadata with `type == "dir"` and no sha.
        """
        resp = await self._send("GET", path, params=self._ref_params())
        if resp.status_code == 404:
            return None
        data = self._json_or_raise(resp, path)
        if isinstance(data, list):
            return RemoteObjectMetadata(path=path, name=path.rsplit("/", 1)[-1], type="dir")
        return self._parse_metadata(data)

    async def put(
        self,
        path: str,
        content_b64: str,
        *,
        sha: Optional[str] = None,
        message: str,
        committer: Committer,
    ) -> RemoteObjectMetadata:
        """Create (sha omitted) or update (sha required) the object at `path`."""
        body: Dict[str, Any] = {
            "message": message,
            "content": content_b64,
            "committer": committer.model_dump(),
        }
        if sha is not None:
            body["sha"] = sha
        if self._branch:
            body["branch"] = self._branch

        resp = await self._send("PUT", path, json=body)
        data = self._json_or_raise(resp, path)
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, dict):
            raise GitHubError(
                f"Malformed PUT response for '{path}'", status_code=resp.status_code
            )
        return self._parse_metadata(content)

    async def delete(
        self,
        path: str,
        *,
        sha: str,
        message: str,
        committer: Committer,
    ) -> Dict[str, Any]:
        """Delete the object at `path`; returns the commit confirmation."""
        body: Dict[str, Any] = {
            "message": message,
            "sha": sha,
            "committer": committer.model_dump(),
        }
        if self._branch:
            body["branch"] = self._branch

        resp = await self._send("DELETE", path, json=body)
        data = self._json_or_raise(resp, path)
        if not isinstance(data, dict):
            raise GitHubError(
                f"Malformed DELETE response for '{path}'", status_code=resp.status_code
            )
        return data

    async def list_dir(self, path: str) -> Optional[List[DirectoryEntry]]:
        """List immediate children of `path` in API order; None when missing."""
        resp = await self._send("GET", path, params=self._ref_params())
        if resp.status_code == 404:
            return None
        data = self._json_or_raise(resp, path)
        if not isinstance(data, list):
            raise GitHubNotADirectoryError(
                f"Path '{path}' is not a directory.", status_code=resp.status_code
            )
        try:
            return [DirectoryEntry.model_validate(item) for item in data]
        except ValidationError as ve:
            raise GitHubError(f"Failed to parse listing for '{path}': {ve}") from ve

    # --------------- Internal ---------------
    def _url(self, path: str) -> str:
        return f"/repos/{self._owner}/{self._repo}/contents/{quote(path, safe='/')}"

    def _ref_params(self) -> Dict[str, str]:
        return {"ref": self._branch} if self._branch else {}

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, self._url(path), headers=self._headers, **kwargs
            )
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise GitHubError(f"{method} '{path}' failed: {exc}") from exc
        logger.debug(f"{method} contents/{path} -> {resp.status_code}")
        return resp

    @staticmethod
    def _json_or_raise(resp: httpx.Response, path: str) -> Any:
        if resp.status_code in (200, 201):
            try:
                return resp.json()
            except ValueError as exc:
                raise GitHubError(
                    f"Failed to parse JSON for '{path}'", status_code=resp.status_code
                ) from exc

        detail = _error_message(resp)
        text = f"HTTP {resp.status_code} for '{path}': {detail}"
        if resp.status_code == 404:
            raise GitHubNotFoundError(text, status_code=404)
        if resp.status_code == 409:
            raise GitHubConflictError(text, status_code=409)
        if resp.status_code == 422 and "sha" in detail.lower():
            raise GitHubConflictError(text, status_code=422)
        raise GitHubError(text, status_code=resp.status_code)

    @staticmethod
    def _parse_metadata(data: Any) -> RemoteObjectMetadata:
        try:
            return RemoteObjectMetadata.model_validate(data)
        except ValidationError as ve:
            raise GitHubError(f"Failed to parse object metadata: {ve}") from ve


def _error_message(resp: httpx.Response) -> str:
    # GitHub error bodies look like {"message": "...", "documentation_url": "..."}
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return resp.text[:200]


__all__ = [
    "Committer",
    "DirectoryEntry",
    "GitHubConflictError",
    "GitHubContentsClient",
    "GitHubError",
    "GitHubNotADirectoryError",
    "GitHubNotFoundError",
    "RemoteObjectMetadata",
]
