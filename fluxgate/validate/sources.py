"""Reading endpoint artifacts from a project tree.

All file access goes through a SourceReader so the engine can be run
against an in-memory tree in tests. The filesystem implementation keeps
blocking I/O off the event loop with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

from fluxgate.schemas.pipeline import ConventionsConfig

logger = logging.getLogger(__name__)


class ArtifactNotFoundError(FileNotFoundError):
    """A required artifact (contract, logic, test or specification file) is absent."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Artifact not found: {path}")
        self.path = path


class ArtifactUnreadableError(OSError):
    """An artifact exists but cannot be read as UTF-8 text."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Artifact unreadable: {path} ({reason})")
        self.path = path
        self.reason = reason


class SourceReader(ABC):
    """Read-only view of a project tree addressed by POSIX-style relative paths."""

    @abstractmethod
    async def read_text(self, path: str) -> str:
        """Return the file's text.

        Raises:
            ArtifactNotFoundError: If the file does not exist.
            ArtifactUnreadableError: If it cannot be read or decoded.
        """

    @abstractmethod
    async def list_files(self, folder: str) -> list[str]:
        """Sorted names of regular files directly inside ``folder`` (empty if absent)."""

    @abstractmethod
    async def list_dirs(self, folder: str) -> list[str]:
        """Sorted names of sub-directories directly inside ``folder`` (empty if absent)."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        ...

    async def read_optional(self, path: str) -> str | None:
        try:
            return await self.read_text(path)
        except ArtifactNotFoundError:
            return None


class FileSystemReader(SourceReader):
    """SourceReader over a directory on disk."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        return self._root / path

    async def read_text(self, path: str) -> str:
        full = self.resolve(path)

        def _read() -> str:
            try:
                return full.read_text(encoding="utf-8")
            except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
                raise ArtifactNotFoundError(path) from exc
            except UnicodeDecodeError as exc:
                raise ArtifactUnreadableError(path, f"not valid UTF-8 at byte {exc.start}") from exc
            except PermissionError as exc:
                raise ArtifactUnreadableError(path, "permission denied") from exc

        return await asyncio.to_thread(_read)

    async def list_files(self, folder: str) -> list[str]:
        full = self.resolve(folder)

        def _list() -> list[str]:
            if not full.is_dir():
                return []
            return sorted(p.name for p in full.iterdir() if p.is_file())

        return await asyncio.to_thread(_list)

    async def list_dirs(self, folder: str) -> list[str]:
        full = self.resolve(folder)

        def _list() -> list[str]:
            if not full.is_dir():
                return []
            return sorted(
                p.name for p in full.iterdir() if p.is_dir() and not p.name.startswith(".")
            )

        return await asyncio.to_thread(_list)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self.resolve(path).exists)


def join(*parts: str) -> str:
    """Join relative path parts with forward slashes, ignoring empty parts."""
    kept = [p for p in parts if p]
    return str(PurePosixPath(*kept)) if kept else ""


def default_endpoint_folder(features_dir: str, feature: str, endpoint: str) -> str:
    return join(features_dir, feature, endpoint)


async def discover_features(reader: SourceReader, features_dir: str) -> list[str]:
    return await reader.list_dirs(features_dir)


async def discover_endpoints(
    reader: SourceReader, features_dir: str, feature: str, conventions: ConventionsConfig
) -> list[str]:
    """Endpoint folders of a feature: sub-directories holding ``<name>.contract.ts`` or logic."""
    endpoints: list[str] = []
    feature_dir = join(features_dir, feature)
    for name in await reader.list_dirs(feature_dir):
        files = await reader.list_files(join(feature_dir, name))
        own = {f"{name}{conventions.contract_suffix}", f"{name}{conventions.logic_suffix}"}
        if own & set(files):
            endpoints.append(name)
    return endpoints


def is_endpoint_helper(file_name: str, endpoint: str, helper_suffix: str = ".helper.ts") -> bool:
    """Whether ``file_name`` is ``{endpoint}.helper.ts`` or ``{endpoint}.<name>.helper.ts``."""
    if not file_name.endswith(helper_suffix):
        return False
    return file_name == f"{endpoint}{helper_suffix}" or file_name.startswith(f"{endpoint}.")


async def discover_helpers(
    reader: SourceReader, folder: str, endpoint: str, helper_suffix: str = ".helper.ts"
) -> list[str]:
    return [
        f
        for f in await reader.list_files(folder)
        if is_endpoint_helper(f, endpoint, helper_suffix)
    ]
