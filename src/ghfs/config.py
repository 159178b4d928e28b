from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .github_contents import DEFAULT_API_BASE, Committer


# Environment variable names for convenience configuration
ENV_AUTH_TOKEN = "GHFS_AUTH_TOKEN"
ENV_OWNER = "GHFS_OWNER"
ENV_REPO = "GHFS_REPO"
ENV_ENCRYPTION_SECRET = "GHFS_ENCRYPTION_SECRET"
ENV_COMMITTER_NAME = "GHFS_COMMITTER_NAME"
ENV_COMMITTER_EMAIL = "GHFS_COMMITTER_EMAIL"
ENV_BRANCH = "GHFS_BRANCH"
ENV_API_BASE = "GHFS_API_BASE"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


class FileSystemConfig(BaseModel):
    """
    Construction-time settings for `VirtualFileSystem`.

    Fields
    - auth_token: GitHub token; may be empty for public read-only use.
    - owner / repo: repository that backs the filesystem.
    - encryption_secret: shared secret every blob is sealed with.
    - committer: identity attached to every commit; defaults to a placeholder.
    - branch: target branch; None means the repository default branch.
    """

    auth_token: str = Field(..., description="GitHub API token")
    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    encryption_secret: str = Field(..., min_length=1, repr=False)
    committer: Committer = Field(default_factory=Committer)
    branch: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    timeout: float = Field(default=15.0, gt=0)

    @field_validator("auth_token")
    @classmethod
    def _strip_token(cls, v: str) -> str:
        return v.strip()

    @classmethod
    def from_env(cls) -> "FileSystemConfig":
        token = _getenv(ENV_AUTH_TOKEN)
        owner = _getenv(ENV_OWNER)
        repo = _getenv(ENV_REPO)
        secret = _getenv(ENV_ENCRYPTION_SECRET)
        if not token or not owner or not repo or not secret:
            missing = [
                name
                for name, val in [
                    (ENV_AUTH_TOKEN, token),
                    (ENV_OWNER, owner),
                    (ENV_REPO, repo),
                    (ENV_ENCRYPTION_SECRET, secret),
                ]
                if not val
            ]
            raise RuntimeError(
                f"Missing required environment variables for GitHub filesystem: {', '.join(missing)}"
            )

        default = Committer()
        committer = Committer(
            name=_getenv(ENV_COMMITTER_NAME, default.name),
            email=_getenv(ENV_COMMITTER_EMAIL, default.email),
        )
        return cls(
            auth_token=token,
            owner=owner,
            repo=repo,
            encryption_secret=secret,
            committer=committer,
            branch=_getenv(ENV_BRANCH),
            api_base=_getenv(ENV_API_BASE, DEFAULT_API_BASE),
        )
