"""
Encrypted virtual filesystem stored in a GitHub repository.

Files are sealed client-side before upload; directories are emulated with
`.keep` marker objects.
"""

from .config import FileSystemConfig
from .filesystem import (
    DirectoryMissingError,
    FileMissingError,
    FileSystemError,
    PathTypeError,
    PayloadUnavailableError,
    PreconditionError,
    VirtualFileSystem,
)

__all__ = [
    "DirectoryMissingError",
    "FileMissingError",
    "FileSystemConfig",
    "FileSystemError",
    "PathTypeError",
    "PayloadUnavailableError",
    "PreconditionError",
    "VirtualFileSystem",
]
