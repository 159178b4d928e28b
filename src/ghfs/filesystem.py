from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from .crypto import DecryptionError, EnvelopeCodec
from .github_contents import (
    Committer,
    DirectoryEntry,
    GitHubContentsClient,
    GitHubNotADirectoryError,
    RemoteObjectMetadata,
)

from .config import FileSystemConfig


KEEP_FILE = ".keep"
KEEP_PLACEHOLDER = "#"

logger = logging.getLogger(__name__)


class FileSystemError(RuntimeError):
    """Base error for filesystem-level failures."""


class PreconditionError(FileSystemError):
    """The operation needs an existing target of the right kind."""


class FileMissingError(PreconditionError):
    """No object exists at the requested path."""


class DirectoryMissingError(PreconditionError):
    """A directory to delete is empty or does not exist."""


class PathTypeError(PreconditionError):
    """A file operation hit a directory, or a directory operation hit a file."""


class PayloadUnavailableError(FileSystemError):
    """The contents API did not inline the stored blob (files over 1 MB)."""


def _default_message() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


class VirtualFileSystem:
    """
    Encrypted file and directory operations over a GitHub repository.

    Usage
    - Build from a `FileSystemConfig` (or `FileSystemConfig.from_env()`).
    - Every blob is sealed with AES-256-GCM before upload and opened after
      download; the repository only ever sees envelopes.
    - Directories exist only through a `<dir>/.keep` marker object.
    - Updates and deletes pass the object's current sha. A stale sha is
      rejected by GitHub and surfaces as `GitHubConflictError`; nothing is
      retried here.
    - Multi-object operations (`move_file`, `delete_dir`) are not atomic and
      can stop half way.
    """

    def __init__(
        self,
        config: FileSystemConfig,
        *,
        client: Optional[GitHubContentsClient] = None,
        codec: Optional[EnvelopeCodec] = None,
    ) -> None:
        self._config = config
        self._client = client or GitHubContentsClient(
            config.owner,
            config.repo,
            token=config.auth_token,
            branch=config.branch,
            api_base=config.api_base,
            timeout=config.timeout,
        )
        self._codec = codec or EnvelopeCodec(config.encryption_secret)
        self._committer = config.committer

    @classmethod
    def from_env(cls) -> "VirtualFileSystem":
        return cls(FileSystemConfig.from_env())

    @property
    def committer(self) -> Committer:
        return self._committer

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> "VirtualFileSystem":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------- Files --------
    async def exists(self, path: str) -> bool:
        return await self._client.get_metadata(path) is not None

    async def write_file(
        self, path: str, content: str, message: Optional[str] = None
    ) -> RemoteObjectMetadata:
        """Seal `content` and store it at `path`, creating or replacing it."""
        metadata = await self._client.get_metadata(path)
        sha = metadata.sha if metadata is not None else None

        envelope = await asyncio.to_thread(self._codec.seal, content)
        encoded = base64.b64encode(envelope.encode("utf-8")).decode("ascii")

        result = await self._client.put(
            path,
            encoded,
            sha=sha,
            message=message or _default_message(),
            committer=self._committer,
        )
        logger.info(f"{'Updated' if sha else 'Created'} '{path}'")
        return result

    async def read_file(self, path: str) -> str:
        """Return the decrypted content stored at `path`.

        Raises:
        - FileMissingError if nothing exists at `path`.
        - PathTypeError if `path` is a directory.
        - PayloadUnavailableError if GitHub withheld the blob.
        - DecryptionError if the stored envelope does not open.
        """
        metadata = await self._require_file(path)
        if metadata.encoding != "base64":
            raise PayloadUnavailableError(
                f"Content of '{path}' is not served inline (encoding={metadata.encoding!r})"
            )
        try:
            envelope = base64.b64decode(metadata.content or "").decode("ascii")
        except (binascii.Error, UnicodeDecodeError) as ex:
            raise DecryptionError(f"Stored payload at '{path}' is not an envelope") from ex
        return await asyncio.to_thread(self._codec.open, envelope)

    async def delete_file(
        self, path: str, message: Optional[str] = None
    ) -> Dict[str, Any]:
        metadata = await self._require_file(path)
        result = await self._client.delete(
            path,
            sha=metadata.sha,
            message=message or _default_message(),
            committer=self._committer,
        )
        logger.info(f"Deleted '{path}'")
        return result

    async def move_file(
        self, src_path: str, dest_path: str, message: str = "Moving file"
    ) -> None:
        content = await self.read_file(src_path)
        await self.write_file(dest_path, content, message)
        await self.delete_file(src_path, f"Deleted after move: {message}")
        logger.info(f"Moved '{src_path}' to '{dest_path}'")

    async def copy_file(
        self, src_path: str, dest_path: str, message: str = "Copying file"
    ) -> None:
        content = await self.read_file(src_path)
        await self.write_file(dest_path, content, message)

    # -------- Directories --------
    async def create_dir(
        self, path: str, message: str = "Creating directory"
    ) -> RemoteObjectMetadata:
        return await self.write_file(f"{path}/{KEEP_FILE}", KEEP_PLACEHOLDER, message)

    async def read_dir(self, path: str) -> Optional[List[DirectoryEntry]]:
        """List immediate children of `path`; None when nothing is there.

        Raises PathTypeError when `path` is a single file.
        """
        try:
            return await self._client.list_dir(path)
        except GitHubNotADirectoryError as ex:
            raise PathTypeError(f"Path '{path}' is not a directory.") from ex

    async def delete_dir(
        self, path: str, message: Optional[str] = None
    ) -> Dict[str, str]:
        """Delete everything under `path`, descending into marked subdirectories.

        Subdirectories are visited from an explicit stack. Each visited
        directory must list at least one child, otherwise
        `DirectoryMissingError` is raised.
        """
        message = message or _default_message()
        pending = [path]
        while pending:
            current = pending.pop()
            entries = await self.read_dir(current)
            if not entries:
                raise DirectoryMissingError(
                    f"Directory '{current}' is empty or does not exist."
                )

            for entry in entries:
                child = entry.path
                if await self.exists(f"{child}/{KEEP_FILE}"):
                    logger.debug(f"Descending into '{child}'")
                    pending.append(child)
                else:
                    await self.delete_file(child, message)

        logger.info(f"Deleted directory '{path}'")
        return {"message": f"Deleted all files and directory placeholder at '{path}'"}

    # -------- Internal --------
    async def _require_file(self, path: str) -> RemoteObjectMetadata:
        metadata = await self._client.get_metadata(path)
        if metadata is None:
            raise FileMissingError(f"File '{path}' does not exist.")
        if metadata.is_dir or metadata.sha is None:
            raise PathTypeError(f"Path '{path}' is not a file.")
        return metadata
